from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults and return frozen dataclasses
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Fallback connection settings; DATABASE_URL / PG* environment variables win."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class InferenceConfig:
    url: str
    api_key_env: str = "INFERENCE_API_KEY"
    timeout_seconds: float | None = None  # None = requests default (no timeout)


@dataclass(frozen=True)
class StorageConfig:
    stats_table: str = "monthly_stats"
    mappings_table: str = "import_mappings"
    owner_column: str = "user_id"  # or a workspace column
    saved_mapping_limit: int = 5


@dataclass(frozen=True)
class ImportConfig:
    inference: InferenceConfig
    storage: StorageConfig = field(default_factory=StorageConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    error_log_dir: str = "./logs"
    session_file: str = "./.stats_import/session.json"
    autosave_delay_seconds: float = 1.0


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or not JSON, or the data violates it
            (missing required keys, wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    inf_raw = data["inference"]
    storage_raw = data.get("storage") or {}
    db_raw = data.get("database") or {}
    defaults = ImportConfig(inference=InferenceConfig(url=inf_raw["url"]))
    return ImportConfig(
        inference=InferenceConfig(
            url=inf_raw["url"],
            api_key_env=inf_raw.get("api_key_env", defaults.inference.api_key_env),
            timeout_seconds=inf_raw.get("timeout_seconds"),
        ),
        storage=StorageConfig(**storage_raw),
        database=DatabaseConfig(**db_raw),
        error_log_dir=data.get("error_log_dir", defaults.error_log_dir),
        session_file=data.get("session_file", defaults.session_file),
        autosave_delay_seconds=float(
            data.get("autosave_delay_seconds", defaults.autosave_delay_seconds)
        ),
    )
