from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field


class CacheConfig(BaseModel):
    """Decision cache settings."""

    enabled: bool = True
    ttl_seconds: Optional[float] = Field(default=None, gt=0)
    max_entries: Optional[int] = Field(default=None, gt=0)


class GraphConfig(BaseModel):
    """Role graph snapshot settings."""

    max_principals: Optional[int] = Field(default=None, gt=0)


class AuditConfig(BaseModel):
    """Audit sink settings."""

    backend: Literal["null", "logging", "memory"] = "null"
    async_processing: bool = True
    max_queue_size: int = Field(default=10000, gt=0)
    logger_name: str = "permgate.audit"


class PermgateConfig(BaseModel):
    """Top-level configuration model."""

    cache: CacheConfig = CacheConfig()
    graph: GraphConfig = GraphConfig()
    audit: AuditConfig = AuditConfig()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> PermgateConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to PERMGATE_CONFIG env
            variable or 'permgate.yaml' in the current directory.
    """

    config_path = path or os.getenv("PERMGATE_CONFIG", "permgate.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = PermgateConfig(**data)
    else:
        config = PermgateConfig()

    env_db_url = os.getenv("PERMGATE_DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
