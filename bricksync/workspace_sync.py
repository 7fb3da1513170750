from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from bricksync.errors import TranslationFailed
from bricksync.log import get_logger
from bricksync.models import ArtifactEntry, Language, RemotePath, UploadTask
from bricksync.paths import translate_entry
from bricksync.remote import RemoteStore
from bricksync.scanner import enumerate_artifacts
from bricksync.transfer_ui import UploadHandle, UploadProgress


DEFAULT_CONCURRENCY = 20
DEFAULT_ERROR_DETAILS = 10

logger = get_logger(__name__)


@dataclass(slots=True)
class ArtifactFailure:
    local_file: Path
    remote_path: str | None
    error: Exception

    @property
    def kind(self) -> str:
        return type(self.error).__name__


@dataclass(slots=True)
class SyncReport:
    uploaded_paths: list[str] = field(default_factory=list)
    failures: list[ArtifactFailure] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)
    root_missing: bool = False

    @property
    def succeeded_count(self) -> int:
        return len(self.uploaded_paths)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def first_errors(self, limit: int = DEFAULT_ERROR_DETAILS) -> list[ArtifactFailure]:
        return self.failures[: max(0, limit)]


@dataclass(frozen=True, slots=True)
class PlannedUpload:
    entry: ArtifactEntry
    remote: RemotePath
    language: Language


@dataclass(slots=True)
class _UploadOutcome:
    planned: PlannedUpload
    error: Exception | None = None


def _check_concurrency(concurrency: int) -> None:
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")


def plan_uploads(
    root: Path,
    entries: Iterable[ArtifactEntry],
) -> tuple[list[PlannedUpload], list[ArtifactFailure]]:
    """Translate entries up front; untranslatable ones are never dispatched."""
    planned: list[PlannedUpload] = []
    failures: list[ArtifactFailure] = []
    for entry in entries:
        try:
            remote, language = translate_entry(root, entry)
        except TranslationFailed as exc:
            failures.append(ArtifactFailure(local_file=entry.local_file, remote_path=None, error=exc))
            continue
        planned.append(PlannedUpload(entry=entry, remote=remote, language=language))
    return planned, failures


def _create_directories(
    store: RemoteStore,
    planned: list[PlannedUpload],
) -> tuple[list[str], dict[str, Exception]]:
    # dict keeps first-seen order while deduplicating.
    directories = dict.fromkeys(item.remote.directory for item in planned)
    created: list[str] = []
    failed: dict[str, Exception] = {}

    for directory in directories:
        logger.info("creating dir if it does not already exist: [%s]", directory)
        try:
            store.create_directory(directory)
        except Exception as exc:
            logger.error("could not create remote dir [%s]: %s", directory, exc)
            failed[directory] = exc
            continue
        created.append(directory)

    return created, failed


def _upload_one(
    store: RemoteStore,
    planned: PlannedUpload,
    *,
    ui: UploadProgress | None = None,
    handle: UploadHandle | None = None,
) -> _UploadOutcome:
    try:
        if ui is not None and handle is not None:
            ui.uploading(handle)
        task = UploadTask(
            path=planned.remote.path,
            content=planned.entry.local_file.read_bytes(),
            language=planned.language,
        )
        logger.debug(
            "writing remote file: [%s] with source type: [%s]",
            task.path,
            task.language.value,
        )
        store.write_artifact(task.path, task.content, task.language, overwrite=task.overwrite)
    except Exception as exc:
        if ui is not None and handle is not None:
            ui.upload_failed(handle, exc)
        return _UploadOutcome(planned=planned, error=exc)

    if ui is not None and handle is not None:
        ui.uploaded(handle)
    return _UploadOutcome(planned=planned)


def _run_uploads(
    store: RemoteStore,
    planned: list[PlannedUpload],
    *,
    concurrency: int,
    ui: UploadProgress | None,
) -> list[_UploadOutcome]:
    if not planned:
        return []

    handles: list[UploadHandle | None] = [
        ui.add_upload(item.remote.path, item.language) if ui is not None else None
        for item in planned
    ]

    outcomes: list[_UploadOutcome] = []
    # The pool lives only for this run and is drained before returning.
    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="bricksync-upload") as executor:
        futures: list[Future[_UploadOutcome]] = [
            executor.submit(_upload_one, store, item, ui=ui, handle=handle)
            for item, handle in zip(planned, handles)
        ]
        for future in as_completed(futures):
            outcomes.append(future.result())
    return outcomes


def sync_workspace(
    root: Path,
    entries: Iterable[ArtifactEntry],
    store: RemoteStore,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    ui: UploadProgress | None = None,
) -> SyncReport:
    """Upload ``entries`` found under ``root`` into the remote workspace.

    Every distinct remote directory is created once, sequentially, before
    any upload starts. Uploads then run on a pool of ``concurrency`` threads
    and always overwrite; when two files map to the same remote path the
    surviving content is whichever write lands last. A failed artifact never
    stops the others; all failures are returned in the report.
    """
    _check_concurrency(concurrency)

    planned, failures = plan_uploads(root, entries)
    directories, failed_directories = _create_directories(store, planned)

    dispatchable: list[PlannedUpload] = []
    for item in planned:
        error = failed_directories.get(item.remote.directory)
        if error is not None:
            failures.append(
                ArtifactFailure(local_file=item.entry.local_file, remote_path=item.remote.path, error=error)
            )
            continue
        dispatchable.append(item)

    uploaded_paths: list[str] = []
    for outcome in _run_uploads(store, dispatchable, concurrency=concurrency, ui=ui):
        if outcome.error is None:
            uploaded_paths.append(outcome.planned.remote.path)
            continue
        logger.debug(
            "upload of [%s] failed",
            outcome.planned.remote.path,
            exc_info=outcome.error,
        )
        failures.append(
            ArtifactFailure(
                local_file=outcome.planned.entry.local_file,
                remote_path=outcome.planned.remote.path,
                error=outcome.error,
            )
        )

    failures.sort(key=lambda failure: str(failure.local_file))
    logger.info("uploaded %d file(s), %d failed", len(uploaded_paths), len(failures))
    return SyncReport(
        uploaded_paths=sorted(uploaded_paths),
        failures=failures,
        directories=directories,
    )


def sync_tree(
    root: Path,
    store: RemoteStore,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    extensions: Iterable[str] | None = None,
    ui: UploadProgress | None = None,
) -> SyncReport:
    _check_concurrency(concurrency)
    root = Path(root).expanduser().resolve()
    if not root.exists():
        # A missing root is a no-op, not a failure.
        logger.warning("No notebooks found at [%s]", root)
        return SyncReport(root_missing=True)

    logger.info("Working on copying [%s] on [%d] threads.", root, concurrency)
    entries = enumerate_artifacts(root, extensions)
    return sync_workspace(root, entries, store, concurrency=concurrency, ui=ui)
