"""Graph data sources for permgate."""

from __future__ import annotations

import os
from typing import Optional

from ..config import PermgateConfig, load_config
from ..errors import ConfigurationError
from .base import GraphDataSource
from .inmemory import InMemoryGraphSource
from .sqlite import SQLiteGraphSource

_source_instance: GraphDataSource | None = None


def get_source(
    database_url: Optional[str] = None, config: Optional[PermgateConfig] = None
) -> GraphDataSource:
    """Factory function to obtain a graph data source.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``PERMGATE_DATABASE_URL``, or from
    loaded configuration. When no database is configured, an in-memory source
    is returned.
    """

    global _source_instance
    if _source_instance is not None and database_url is None and config is None:
        return _source_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("PERMGATE_DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _source_instance = InMemoryGraphSource()
        return _source_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _source_instance = SQLiteGraphSource(path)
    else:
        raise ConfigurationError(f"Unsupported database backend: {database_url}")

    return _source_instance


__all__ = [
    "GraphDataSource",
    "InMemoryGraphSource",
    "SQLiteGraphSource",
    "get_source",
]
