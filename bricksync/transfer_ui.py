from __future__ import annotations

import threading
from dataclasses import dataclass

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from bricksync.models import Language


@dataclass(slots=True)
class UploadHandle:
    task_id: TaskID
    remote_path: str


class UploadProgress:
    """Live view of a sync run: one overall row plus one row per artifact.

    Upload workers report from their own threads, so every update takes the lock.
    """

    def __init__(self, console: Console | None = None, *, transient: bool = False) -> None:
        self._lock = threading.Lock()
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.fields[language]:>6}"),
            TextColumn("{task.fields[remote_path]}", markup=False),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("{task.fields[status]}"),
            TimeElapsedColumn(),
            console=console,
            transient=transient,
            expand=True,
        )
        self._overall: TaskID | None = None
        self.queued = 0
        self.succeeded = 0
        self.failed = 0

    def __enter__(self) -> "UploadProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.__exit__(exc_type, exc, tb)

    def _bump_overall(self) -> None:
        if self._overall is None:
            return
        self._progress.update(
            self._overall,
            advance=1,
            status=f"{self.succeeded} ok, {self.failed} failed",
        )

    def add_upload(self, remote_path: str, language: Language) -> UploadHandle:
        with self._lock:
            if self._overall is None:
                self._overall = self._progress.add_task(
                    "overall",
                    total=0,
                    language="",
                    remote_path="all artifacts",
                    status="",
                )
            self.queued += 1
            self._progress.update(self._overall, total=self.queued)
            task_id = self._progress.add_task(
                remote_path,
                total=1,
                start=False,
                language=language.value,
                remote_path=remote_path or "/",
                status="queued",
            )
        return UploadHandle(task_id=task_id, remote_path=remote_path)

    def uploading(self, handle: UploadHandle) -> None:
        with self._lock:
            self._progress.start_task(handle.task_id)
            self._progress.update(handle.task_id, status="uploading")

    def uploaded(self, handle: UploadHandle) -> None:
        with self._lock:
            self.succeeded += 1
            self._progress.update(handle.task_id, completed=1, status="[green]done[/green]")
            self._bump_overall()

    def upload_failed(self, handle: UploadHandle, error: BaseException) -> None:
        with self._lock:
            self.failed += 1
            self._progress.update(handle.task_id, status=f"[red]{type(error).__name__}[/red]")
            self._bump_overall()
