from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

from .constants import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, DEFAULT_REDIS_PREFIX, STORAGE_URL_ENV_VAR


class RedisConfig(BaseModel):
    """Connection settings used when the storage URL is not a full redis URL."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    prefix: str = DEFAULT_REDIS_PREFIX


class StorageConfig(BaseModel):
    """Snapshot storage settings."""

    url: Optional[str] = None
    redis: RedisConfig = RedisConfig()


class StepflowConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageConfig = StorageConfig()


def load_config(path: Optional[str] = None) -> StepflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to the STEPFLOW_CONFIG
            env variable or 'stepflow.yaml' in the current directory.
    """

    config_path = path or os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepflowConfig(**data)
    else:
        config = StepflowConfig()

    env_url = os.getenv(STORAGE_URL_ENV_VAR)
    if env_url:
        config.storage.url = env_url
    return config
