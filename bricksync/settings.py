from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from bricksync.errors import ConfigurationError
from bricksync.models import JobSpec


def _job_entries(data: Any, path: Path) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("jobs"), list):
        return data["jobs"]
    raise ConfigurationError(
        f"Job settings must be a JSON array or an object with a `jobs` array: {path}"
    )


def load_job_specs(path: Path) -> list[JobSpec]:
    """Read declared jobs from a JSON settings file, in file order."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Job settings file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Job settings file is not valid JSON: {path}: {exc}") from exc

    specs: list[JobSpec] = []
    for index, entry in enumerate(_job_entries(data, path)):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Job #{index} in {path} is not an object")
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Job #{index} in {path} has no `name`")
        settings = {key: value for key, value in entry.items() if key != "name"}
        specs.append(JobSpec(name=name.strip(), settings=settings))
    return specs
