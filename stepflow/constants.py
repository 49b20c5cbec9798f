"""Shared constants for stepflow."""

CONFIG_ENV_VAR = "STEPFLOW_CONFIG"
STORAGE_URL_ENV_VAR = "STEPFLOW_STORAGE_URL"
DEFAULT_CONFIG_PATH = "stepflow.yaml"

# "{type}:{id}", e.g. "step:fetch-user"
SNAPSHOT_KEY_FORMAT = "{type}:{id}"

DEFAULT_REDIS_PREFIX = "stepflow:"
