"""Centralized configuration for cali.

Everything lives in a single per-user directory (``~/.config/cali`` unless
``CALI_CONFIG_DIR`` says otherwise):
    config.yaml           - cali settings (endpoint, calendar, auth, output)
    credentials.json      - Google OAuth client credentials
    service-account.json  - Google service account key
    token.json            - Google OAuth tokens
    .env                  - extra CALI_* environment variables

This module auto-loads the .env file on import. Settings from
``config.yaml`` are merged with ``CALI_*`` environment variables, and the
environment wins.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

ENV_PREFIX = "CALI_"

CONFIG_DIR = Path(os.environ.get("CALI_CONFIG_DIR", Path.home() / ".config" / "cali"))

# Credential file paths
ENV_FILE = CONFIG_DIR / ".env"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
GOOGLE_CREDENTIALS = CONFIG_DIR / "credentials.json"
GOOGLE_TOKEN = CONFIG_DIR / "token.json"
GOOGLE_SERVICE_ACCOUNT = CONFIG_DIR / "service-account.json"

CONFIG_DIR_MODE = 0o700

OUTPUT_FORMATS = ("json", "yaml", "ical")


class ConfigError(Exception):
    """Raised when the configuration file cannot be used."""

    pass


@dataclass
class CaliConfig:
    """Resolved cali settings."""

    api_endpoint: str | None = None
    calendar_id: str = "primary"
    output_format: str = "json"
    log_level: str = "WARNING"
    credentials_path: Path = GOOGLE_CREDENTIALS
    oauth_token_path: Path = GOOGLE_TOKEN
    service_account_path: Path = GOOGLE_SERVICE_ACCOUNT
    # Inline credentials take precedence over the files above
    service_account: dict[str, Any] | None = None
    oauth_client: dict[str, Any] | None = None
    subject: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_service_account(self) -> bool:
        """True if a service account key is configured inline or on disk."""
        if self.service_account and self.service_account.get("client_email"):
            return True
        return Path(self.service_account_path).exists()

    @property
    def has_oauth_client(self) -> bool:
        """True if OAuth client credentials are configured inline or on disk."""
        if self.oauth_client and self.oauth_client.get("client_id"):
            return True
        return Path(self.credentials_path).exists()


_PATH_FIELDS = {"credentials_path", "oauth_token_path", "service_account_path"}


def _load_env_file(env_path: Path) -> dict[str, str]:
    """Load environment variables from a file.

    Args:
        env_path: Path to .env file.

    Returns:
        Dictionary of loaded variables.
    """
    loaded = {}
    if not env_path.exists():
        return loaded

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            # Only set if not already in environment (env vars take precedence)
            if key and key not in os.environ:
                os.environ[key] = value
                loaded[key] = value

    return loaded


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    return data


def _from_environment(environ: dict[str, str]) -> dict[str, Any]:
    """Collect CALI_* variables that name a CaliConfig field."""
    names = {f.name for f in fields(CaliConfig)} - {"service_account", "oauth_client", "extra"}
    values: dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or not value:
            continue
        name = key[len(ENV_PREFIX) :].lower()
        if name in names:
            values[name] = value
    return values


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> CaliConfig:
    """Load cali configuration.

    Args:
        path: YAML config file. Defaults to ~/.config/cali/config.yaml;
            a missing default file is not an error.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Resolved CaliConfig.

    Raises:
        ConfigError: If an explicit path is missing or any file is malformed.
    """
    environ = os.environ if environ is None else environ

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        data = _read_yaml(config_path)
    elif CONFIG_FILE.exists():
        data = _read_yaml(CONFIG_FILE)
    else:
        data = {}

    # The auth block mirrors config.example.yaml
    auth = data.pop("auth", None) or {}
    if not isinstance(auth, dict):
        raise ConfigError("'auth' must be a mapping")

    values: dict[str, Any] = {}
    known = {f.name for f in fields(CaliConfig)}
    for key, value in data.items():
        if key in known:
            values[key] = value
        else:
            values.setdefault("extra", {})[key] = value

    if auth.get("service_account"):
        values["service_account"] = auth["service_account"]
    if auth.get("oauth_client"):
        values["oauth_client"] = auth["oauth_client"]
    if auth.get("oauth_token_path"):
        values["oauth_token_path"] = auth["oauth_token_path"]
    if auth.get("subject"):
        values["subject"] = auth["subject"]

    values.update(_from_environment(environ))

    for name in _PATH_FIELDS & values.keys():
        values[name] = Path(values[name]).expanduser()

    config = CaliConfig(**values)
    if config.output_format not in OUTPUT_FORMATS:
        raise ConfigError(
            f"Unknown output format: {config.output_format}. Use one of: {list(OUTPUT_FORMATS)}"
        )
    return config


def ensure_config_dir() -> Path:
    """Create the config directory with owner-only permissions.

    Returns:
        Path to config directory.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True, mode=CONFIG_DIR_MODE)
    return CONFIG_DIR


def get_credential_status() -> dict:
    """Get status of all configured credentials.

    Returns:
        Dictionary with credential status.
    """
    return {
        "config_dir": str(CONFIG_DIR),
        "config_file": CONFIG_FILE.exists(),
        "env_file": ENV_FILE.exists(),
        "google": {
            "credentials": GOOGLE_CREDENTIALS.exists(),
            "token": GOOGLE_TOKEN.exists(),
            "service_account": GOOGLE_SERVICE_ACCOUNT.exists(),
        },
        "api_endpoint": os.environ.get("CALI_API_ENDPOINT"),
    }


# Auto-load .env from the config directory on import
_loaded = _load_env_file(ENV_FILE)
