from __future__ import annotations

import threading
from pathlib import Path

import pytest

from bricksync.errors import RemoteRejected, RemoteUnavailable
from bricksync.models import JobSpec, Language, RemoteJob


class FakeStore:
    """Thread-safe in-memory stand-in for the remote workspace and job registry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[tuple] = []
        self.directories: set[str] = set()
        self.artifacts: dict[str, tuple[bytes, Language]] = {}
        self.jobs: list[dict] = []
        self.reject_paths: set[str] = set()
        self.fail_directories: set[str] = set()
        self.reject_job_names: set[str] = set()
        self.lose_created_jobs = False
        self._next_job_id = 100

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def create_directory(self, path: str) -> None:
        self._record("create_directory", path)
        if path in self.fail_directories:
            raise RemoteUnavailable(f"mkdirs {path} timed out")
        with self._lock:
            self.directories.add(path)

    def write_artifact(self, path: str, content: bytes, language: Language, overwrite: bool = True) -> None:
        self._record("write_artifact", path, content, language, overwrite)
        if path in self.reject_paths:
            raise RemoteRejected(f"import {path} rejected", status_code=400, error_code="INVALID_PARAMETER_VALUE")
        with self._lock:
            self.artifacts[path] = (content, language)

    def add_job(self, name: str, settings: dict | None = None) -> int:
        with self._lock:
            job_id = self._next_job_id
            self._next_job_id += 1
            self.jobs.append({"job_id": job_id, "name": name, "settings": dict(settings or {})})
        return job_id

    def find_jobs(self, name: str) -> list[RemoteJob]:
        self._record("find_jobs", name)
        with self._lock:
            return [RemoteJob(job_id=job["job_id"], name=name) for job in self.jobs if job["name"] == name]

    def create_job(self, spec: JobSpec) -> int:
        self._record("create_job", spec.name)
        if spec.name in self.reject_job_names:
            raise RemoteRejected(f"job {spec.name} rejected", status_code=400)
        if self.lose_created_jobs:
            with self._lock:
                job_id = self._next_job_id
                self._next_job_id += 1
            return job_id
        return self.add_job(spec.name, spec.settings)

    def update_job(self, job_id: int, spec: JobSpec) -> None:
        self._record("update_job", job_id, spec.name)
        with self._lock:
            for job in self.jobs:
                if job["job_id"] == job_id:
                    job["settings"] = dict(spec.settings)
                    return
        raise RemoteRejected(f"job {job_id} does not exist", status_code=400)

    def get_job_link(self, job_id: int) -> str:
        return f"https://ws.example.com/#job/{job_id}"


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def make_tree(tmp_path: Path):
    """Create files under ``tmp_path / "src"`` from a ``{relative_path: text}`` mapping."""

    def _make(files: dict[str, str]) -> Path:
        root = tmp_path / "src"
        root.mkdir(exist_ok=True)
        for relative, text in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return root.resolve()

    return _make


@pytest.fixture
def make_store():
    return FakeStore
