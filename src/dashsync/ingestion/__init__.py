"""Ingestion layer.

Adapters turning push channel messages and REST listings into normalized
store events and snapshots. Nothing here merges state; import the
submodules directly.
"""

__all__: list[str] = []
