"""searchbridge — Generic record operations over Elasticsearch's typed and typeless APIs."""

__version__ = "0.1.0"
