from __future__ import annotations

import base64
import time
from typing import Any, Callable, Protocol, TypeVar

import httpx

from bricksync.config import BricksyncConfig
from bricksync.errors import RemoteRejected, RemoteUnavailable
from bricksync.log import get_logger
from bricksync.models import JobSpec, Language, RemoteJob


DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_ATTEMPTS = 3
JOBS_PAGE_SIZE = 100
USER_AGENT = "bricksync"
T = TypeVar("T")

logger = get_logger(__name__)


class RemoteStore(Protocol):
    """Operations the sync engine and job reconciler need from the remote side."""

    def create_directory(self, path: str) -> None:
        """Create ``path`` and its parents; a no-op when it already exists."""

    def write_artifact(
        self,
        path: str,
        content: bytes,
        language: Language,
        overwrite: bool = True,
    ) -> None:
        """Store ``content`` as a source artifact at ``path``."""

    def find_jobs(self, name: str) -> list[RemoteJob]:
        """Return every job named ``name``, in the store's own order."""

    def create_job(self, spec: JobSpec) -> int:
        """Register a new job and return its identifier."""

    def update_job(self, job_id: int, spec: JobSpec) -> None:
        """Replace the settings of an existing job."""

    def get_job_link(self, job_id: int) -> str:
        """Return a display URI for a job."""


def _iter_exception_chain(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _is_timeout_error(exc: BaseException) -> bool:
    return any(
        isinstance(current, (httpx.TimeoutException, TimeoutError))
        for current in _iter_exception_chain(exc)
    )


def _retry_on_timeout(
    func: Callable[[], T],
    *,
    operation: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_seconds: float = 1.0,
) -> T:
    attempt = 1
    while True:
        try:
            return func()
        except Exception as exc:
            if attempt >= max_attempts or not _is_timeout_error(exc):
                raise
            sleep_seconds = base_delay_seconds * (2 ** (attempt - 1))
            logger.debug(
                "Timeout on %s (attempt %d/%d), retrying in %.1fs",
                operation,
                attempt,
                max_attempts,
                sleep_seconds,
            )
            time.sleep(sleep_seconds)
            attempt += 1


def _error_fields(response: httpx.Response) -> tuple[str | None, str]:
    try:
        payload = response.json()
    except ValueError:
        return None, response.text.strip()
    if not isinstance(payload, dict):
        return None, str(payload)
    return payload.get("error_code"), str(payload.get("message") or "")


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    if response.is_success:
        return

    error_code, message = _error_fields(response)
    status = response.status_code
    detail = f"{operation} failed with HTTP {status}"
    if error_code:
        detail += f" [{error_code}]"
    if message:
        detail += f": {message}"

    if status == 429 or status >= 500:
        raise RemoteUnavailable(detail, details={"status_code": status, "error_code": error_code})
    raise RemoteRejected(detail, status_code=status, error_code=error_code)


class WorkspaceClient:
    """REST client for the remote workspace store and job registry.

    Workspace paths handed to this client are relative (``a/b/x``); they are
    placed under ``remote_prefix`` and made absolute before being sent.
    The underlying ``httpx.Client`` is shared by all upload threads.
    """

    def __init__(
        self,
        host: str,
        token: str,
        *,
        remote_prefix: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_seconds: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._remote_prefix = remote_prefix
        self._max_attempts = max(1, max_attempts)
        self._base_delay_seconds = base_delay_seconds
        self._client = httpx.Client(
            base_url=self._host,
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: BricksyncConfig, token: str, **kwargs: Any) -> "WorkspaceClient":
        return cls(config.host, token, remote_prefix=config.remote_prefix, **kwargs)

    def __enter__(self) -> "WorkspaceClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def workspace_path(self, path: str) -> str:
        parts = [
            part
            for part in f"{self._remote_prefix}/{path}".replace("\\", "/").split("/")
            if part
        ]
        return "/" + "/".join(parts)

    def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        retry: bool = True,
    ) -> dict[str, Any]:
        operation = f"{method} {url}"

        def _call() -> dict[str, Any]:
            try:
                response = self._client.request(method, url, json=json, params=params)
            except httpx.TransportError as exc:
                raise RemoteUnavailable(f"{operation} failed: {exc}") from exc
            _raise_for_status(response, operation)
            if not response.content:
                return {}
            try:
                payload = response.json()
            except ValueError as exc:
                raise RemoteUnavailable(f"{operation} returned a non-JSON body") from exc
            return payload if isinstance(payload, dict) else {}

        if not retry:
            return _call()
        return _retry_on_timeout(
            _call,
            operation=operation,
            max_attempts=self._max_attempts,
            base_delay_seconds=self._base_delay_seconds,
        )

    def create_directory(self, path: str) -> None:
        self._request("POST", "/api/2.0/workspace/mkdirs", json={"path": self.workspace_path(path)})

    def write_artifact(
        self,
        path: str,
        content: bytes,
        language: Language,
        overwrite: bool = True,
    ) -> None:
        self._request(
            "POST",
            "/api/2.0/workspace/import",
            json={
                "path": self.workspace_path(path),
                "format": "SOURCE",
                "language": Language(language).value,
                "content": base64.b64encode(content).decode("ascii"),
                "overwrite": overwrite,
            },
        )

    def find_jobs(self, name: str) -> list[RemoteJob]:
        jobs: list[RemoteJob] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"name": name, "limit": JOBS_PAGE_SIZE}
            if page_token:
                params["page_token"] = page_token
            payload = self._request("GET", "/api/2.1/jobs/list", params=params)

            for item in payload.get("jobs") or []:
                settings = item.get("settings") if isinstance(item, dict) else None
                if not isinstance(settings, dict) or settings.get("name") != name:
                    continue
                try:
                    job_id = int(item["job_id"])
                except (KeyError, TypeError, ValueError) as exc:
                    raise RemoteRejected(
                        f"jobs/list returned a malformed entry for [{name}]: {item!r}"
                    ) from exc
                jobs.append(RemoteJob(job_id=job_id, name=name, link=self.get_job_link(job_id)))

            page_token = payload.get("next_page_token")
            if not payload.get("has_more") or not page_token:
                return jobs

    def create_job(self, spec: JobSpec) -> int:
        # Not retried: a create that timed out may still have registered the job.
        payload = self._request(
            "POST",
            "/api/2.1/jobs/create",
            json={**spec.settings, "name": spec.name},
            retry=False,
        )
        if "job_id" not in payload:
            raise RemoteRejected(f"Job create for [{spec.name}] returned no job_id")
        return int(payload["job_id"])

    def update_job(self, job_id: int, spec: JobSpec) -> None:
        self._request(
            "POST",
            "/api/2.1/jobs/reset",
            json={"job_id": job_id, "new_settings": {**spec.settings, "name": spec.name}},
        )

    def get_job_link(self, job_id: int) -> str:
        return f"{self._host}/#job/{job_id}"
