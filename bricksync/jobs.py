from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from bricksync.errors import BricksyncError, DuplicateJobName, IntegrityFailure
from bricksync.log import get_logger
from bricksync.models import JobSpec, RemoteJob
from bricksync.remote import RemoteStore


logger = get_logger(__name__)


class JobState(str, Enum):
    PENDING = "pending"
    UPSERTED = "upserted"
    VERIFIED = "verified"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(slots=True)
class JobOutcome:
    name: str
    state: JobState = JobState.PENDING
    job: RemoteJob | None = None
    link: str | None = None
    warnings: list[str] = field(default_factory=list)
    error: BricksyncError | None = None

    @property
    def failed(self) -> bool:
        return self.state is JobState.FAILED


class JobRegistry:
    """Name-keyed job operations on top of a ``RemoteStore``.

    When several remote jobs share a name, "first" means the first one the
    store's lookup returned; no other ordering is assumed.
    """

    def __init__(self, store: RemoteStore) -> None:
        self._store = store

    def _match(self, name: str, fail_on_duplicate: bool) -> tuple[RemoteJob | None, list[RemoteJob]]:
        matches = self._store.find_jobs(name)
        if not matches:
            return None, []
        if len(matches) > 1 and fail_on_duplicate:
            raise DuplicateJobName(name, [job.job_id for job in matches])
        return matches[0], matches[1:]

    def upsert_job(self, spec: JobSpec, fail_on_duplicate: bool = True) -> list[RemoteJob]:
        """Create or update the job named ``spec.name``.

        Returns the duplicates that were left untouched, which is only ever
        non-empty when ``fail_on_duplicate`` is false.
        """
        existing, duplicates = self._match(spec.name, fail_on_duplicate)
        if existing is None:
            job_id = self._store.create_job(spec)
            logger.debug("created job [%s] with id %s", spec.name, job_id)
        else:
            self._store.update_job(existing.job_id, spec)
            logger.debug("reset job [%s] with id %s", spec.name, existing.job_id)
        return duplicates

    def get_job_by_name(self, name: str, fail_on_duplicate: bool = True) -> RemoteJob | None:
        job, _ = self._match(name, fail_on_duplicate)
        return job

    def get_job_link(self, job_id: int) -> str:
        return self._store.get_job_link(job_id)


def _duplicate_warning(name: str, kept: RemoteJob | None, skipped: list[RemoteJob]) -> str:
    skipped_ids = ", ".join(str(job.job_id) for job in skipped)
    kept_id = kept.job_id if kept is not None else "?"
    return (
        f"Found {len(skipped) + 1} remote jobs named [{name}]; updated job {kept_id}, "
        f"left duplicate(s) untouched: {skipped_ids}"
    )


def _reconcile_one(
    registry: JobRegistry,
    spec: JobSpec,
    outcome: JobOutcome,
    *,
    fail_on_duplicate: bool,
) -> None:
    skipped = registry.upsert_job(spec, fail_on_duplicate)
    outcome.state = JobState.UPSERTED

    job = registry.get_job_by_name(spec.name, fail_on_duplicate)
    if job is None:
        raise IntegrityFailure(
            f"Error creating the job [{spec.name}]: it can't be found after upsert",
            details={"name": spec.name},
        )

    if skipped:
        message = _duplicate_warning(spec.name, job, skipped)
        outcome.warnings.append(message)
        logger.warning(message)

    outcome.job = job
    outcome.link = job.link or registry.get_job_link(job.job_id)
    outcome.state = JobState.VERIFIED
    logger.info("Updated/Created Job at: %s", outcome.link)


def reconcile(
    job_specs: Iterable[JobSpec],
    store: RemoteStore,
    *,
    fail_on_duplicate: bool = True,
    single_job: str | None = None,
) -> list[JobOutcome]:
    """Upsert each declared job and verify it can be looked up afterwards.

    Jobs run one after another; the name lookup for a job must
    observe every upsert made before it. A failure stops that job only.
    """
    registry = JobRegistry(store)
    # A blank name selects every job; otherwise names must match exactly.
    target = single_job if single_job and single_job.strip() else None
    outcomes: list[JobOutcome] = []

    for spec in job_specs:
        outcome = JobOutcome(name=spec.name)
        outcomes.append(outcome)

        if target is not None and spec.name != target:
            outcome.state = JobState.SKIPPED
            logger.info("The job is skipped: %s", spec.name)
            continue

        logger.info("The job is to be upserted: %s", spec.name)
        try:
            _reconcile_one(registry, spec, outcome, fail_on_duplicate=fail_on_duplicate)
        except BricksyncError as exc:
            outcome.state = JobState.FAILED
            outcome.error = exc
            logger.error("Could not upsert job [%s]: %s", spec.name, exc)

    return outcomes
