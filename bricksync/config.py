from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from urllib.parse import urlparse

from bricksync.errors import ConfigurationError


CONFIG_FILENAME = ".bricksync.json"
DEFAULT_THREADS = 20
DEFAULT_SOURCE_ROOT = "notebooks"


@dataclass(slots=True)
class BricksyncConfig:
    host: str
    token: str = ""
    remote_prefix: str = ""
    source_root: str = DEFAULT_SOURCE_ROOT
    threads: int = DEFAULT_THREADS

    @property
    def source_root_path(self) -> Path:
        return Path(self.source_root).expanduser().resolve()


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def load_config(base_dir: Path | None = None) -> BricksyncConfig:
    path = config_path(base_dir)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}. Run `bricksync init <host>` first."
        )

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Config file is not valid JSON: {path}: {exc}") from exc

    if not isinstance(data, dict) or not data.get("host"):
        raise ConfigurationError(f"Config file must define a `host`: {path}")

    try:
        threads = int(data.get("threads", DEFAULT_THREADS))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"`threads` must be an integer in {path}") from exc

    return BricksyncConfig(
        host=normalize_host(str(data["host"])),
        token=str(data.get("token") or ""),
        remote_prefix=normalize_remote_prefix(str(data.get("remote_prefix") or "")),
        source_root=str(data.get("source_root") or DEFAULT_SOURCE_ROOT),
        threads=threads,
    )


def save_config(config: BricksyncConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    payload = asdict(config)
    payload["host"] = normalize_host(config.host)
    payload["remote_prefix"] = normalize_remote_prefix(config.remote_prefix)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")
    return path


def default_host() -> str:
    return os.getenv("DATABRICKS_HOST", "")


def normalize_host(host: str) -> str:
    value = (host or "").strip()
    if not value:
        return value

    if "://" not in value:
        value = f"https://{value}"

    parsed = urlparse(value)
    if not parsed.hostname:
        return value.rstrip("/")

    netloc = parsed.hostname
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    scheme = parsed.scheme if parsed.scheme in {"http", "https"} else "https"
    return f"{scheme}://{netloc}"


def normalize_remote_prefix(prefix: str) -> str:
    parts = [part for part in prefix.replace("\\", "/").split("/") if part]
    if not parts:
        return ""
    return "/" + "/".join(parts)
