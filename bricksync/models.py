from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class Language(str, Enum):
    PYTHON = "PYTHON"
    SCALA = "SCALA"
    SQL = "SQL"
    R = "R"


@dataclass(frozen=True, slots=True)
class ArtifactEntry:
    local_file: Path
    directory: Path


@dataclass(frozen=True, slots=True)
class RemotePath:
    directory: str
    name: str

    @property
    def path(self) -> str:
        if not self.directory:
            return self.name
        return f"{self.directory}/{self.name}"


@dataclass(frozen=True, slots=True)
class UploadTask:
    path: str
    content: bytes
    language: Language
    overwrite: bool = True


@dataclass(slots=True)
class JobSpec:
    name: str
    settings: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RemoteJob:
    job_id: int
    name: str
    link: str | None = None
