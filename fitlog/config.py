# =============================================================================
# fitlog/config.py
# Settings for the FitLog offline data layer
# =============================================================================
"""
Settings are resolved from (lowest to highest precedence):

1. Defaults on FitLogSettings
2. The [fitlog] table of .streamlit/secrets.toml
3. Environment variables (a local .env file is loaded first)

Expected secrets.toml format:
    [fitlog]
    api_base_url = "https://api.fitlog.example.com"
    db_path = "local_data/fitlog.db"
"""

from __future__ import annotations
import os
import re
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from fitlog.errors import ConfigurationError
from fitlog.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SECRETS_PATH = Path(".streamlit") / "secrets.toml"


@dataclass(frozen=True)
class FitLogSettings:
    """Runtime configuration for the API client, local store and sync."""
    api_base_url: str = "http://localhost"
    db_path: str = "local_data/fitlog.db"
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay_ms: int = 1000
    queue_max_retries: int = 5
    sync_interval: float = 30.0
    drain_lease_seconds: float = 60.0

    @property
    def health_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/health"

    def for_user(self, user_id: Optional[str]) -> FitLogSettings:
        """
        Settings whose database file belongs to one signed-in user.

        local_data/fitlog.db becomes local_data/fitlog-<user>.db, so cached
        records and queued writes never cross accounts.
        """
        if not user_id:
            return self
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", str(user_id))
        path = Path(self.db_path)
        return replace(self, db_path=str(path.with_name(f"{path.stem}-{safe_id}{path.suffix}")))


# Environment variable -> settings field
ENV_KEYS = {
    "FITLOG_API_BASE_URL": "api_base_url",
    "FITLOG_DB_PATH": "db_path",
    "FITLOG_REQUEST_TIMEOUT": "request_timeout",
    "FITLOG_MAX_RETRIES": "max_retries",
    "FITLOG_RETRY_BASE_DELAY_MS": "retry_base_delay_ms",
    "FITLOG_QUEUE_MAX_RETRIES": "queue_max_retries",
    "FITLOG_SYNC_INTERVAL": "sync_interval",
    "FITLOG_DRAIN_LEASE_SECONDS": "drain_lease_seconds",
}


def _coerce(field_name: str, raw: Any) -> Any:
    """Convert a raw string/TOML value to the declared field type."""
    declared = {f.name: f.type for f in fields(FitLogSettings)}[field_name]
    try:
        if declared == "int":
            value = int(raw)
        elif declared == "float":
            value = float(raw)
        else:
            return str(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid value for {field_name}: {raw!r}",
            config_key=field_name,
            expected_type=declared,
        )

    if value < 0:
        raise ConfigurationError(
            f"{field_name} must not be negative",
            config_key=field_name,
            expected_type=declared,
        )
    return value


def _read_secrets(path: Path) -> Dict[str, Any]:
    """Read the [fitlog] table of a secrets.toml file, if present."""
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            secrets = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}", config_key="fitlog")
    return dict(secrets.get("fitlog", {}))


def load_settings(
    secrets_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
    use_dotenv: bool = True,
) -> FitLogSettings:
    """
    Build FitLogSettings from secrets.toml and the environment.

    Args:
        secrets_path: Location of secrets.toml (default: .streamlit/secrets.toml)
        environ: Mapping to read variables from (default: os.environ)
        use_dotenv: Load a .env file into os.environ before reading

    Returns:
        Resolved settings
    """
    if use_dotenv and environ is None:
        load_dotenv()
    env = os.environ if environ is None else environ

    overrides: Dict[str, Any] = {}
    known = {f.name for f in fields(FitLogSettings)}

    for key, raw in _read_secrets(secrets_path or DEFAULT_SECRETS_PATH).items():
        if key in known:
            overrides[key] = _coerce(key, raw)
        else:
            logger.warning(f"Ignoring unknown [fitlog] setting: {key}")

    for env_key, field_name in ENV_KEYS.items():
        if env.get(env_key):
            overrides[field_name] = _coerce(field_name, env[env_key])

    settings = replace(FitLogSettings(), **overrides)
    logger.debug(f"Settings resolved: api_base_url={settings.api_base_url}")
    return settings
