from __future__ import annotations

import configparser
import os
from pathlib import Path

from bricksync.config import BricksyncConfig
from bricksync.errors import ConfigurationError


DEFAULT_PROFILE = "DEFAULT"
TOKEN_ENV_NAMES = ("DATABRICKS_TOKEN",)


def resolve_token(config_token: str | None = None, *, profile: str | None = None) -> str | None:
    """Resolve an access token from env, config, or the databricks CLI profile file."""
    for env_name in TOKEN_ENV_NAMES:
        value = os.getenv(env_name, "").strip()
        if value:
            return value

    if config_token and config_token.strip():
        return config_token.strip()

    return _token_from_profile_file(profile or os.getenv("DATABRICKS_CONFIG_PROFILE") or DEFAULT_PROFILE)


def profile_file_path() -> Path:
    override = os.getenv("DATABRICKS_CONFIG_FILE")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".databrickscfg"


def _token_from_profile_file(profile: str) -> str | None:
    path = profile_file_path()
    if not path.is_file():
        return None

    parser = configparser.ConfigParser()
    try:
        parser.read(path, encoding="utf-8")
    except (OSError, configparser.Error):
        return None

    if profile == DEFAULT_PROFILE:
        section = parser.defaults()
    elif parser.has_section(profile):
        section = parser[profile]
    else:
        return None

    value = (section.get("token") or "").strip()
    return value or None


def require_token(config: BricksyncConfig) -> str:
    token = resolve_token(config.token)
    if not token:
        raise ConfigurationError(
            "This command requires a workspace access token. Set `DATABRICKS_TOKEN`, "
            "add a `token` to ~/.databrickscfg, or update `.bricksync.json`."
        )
    return token
