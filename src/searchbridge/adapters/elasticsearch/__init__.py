"""Elasticsearch record adapter."""

from searchbridge.adapters.elasticsearch.adapter import ElasticsearchAdapter
from searchbridge.adapters.elasticsearch.dialect import ApiShim, Dialect

__all__ = ["ApiShim", "Dialect", "ElasticsearchAdapter"]
