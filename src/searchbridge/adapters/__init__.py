"""Record adapter layer — Pluggable connectors for record stores.

Built-in adapters:
  - elasticsearch: Elasticsearch 2.x-8.x (typed and typeless wire dialects)

Implement ``RecordAdapter`` to connect your own store.
"""
