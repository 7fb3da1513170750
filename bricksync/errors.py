"""
Exception hierarchy for bricksync.

Hierarchy::

    BricksyncError
    ├── ConfigurationError    - config/settings files, missing credentials
    ├── TranslationFailed     - local path cannot be mapped to a remote path
    │   └── InvalidLanguage   - unrecognized file extension
    ├── RemoteError
    │   ├── RemoteUnavailable - transport failure, timeouts, 429/5xx
    │   └── RemoteRejected    - the store refused a specific request
    ├── DuplicateJobName      - several remote jobs share a declared name
    └── IntegrityFailure      - upserted job cannot be looked up afterwards
"""

from __future__ import annotations


class BricksyncError(Exception):
    """Base exception for all bricksync errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(BricksyncError):
    """Raised when configuration or job settings cannot be loaded."""


class TranslationFailed(BricksyncError):
    """Raised when a local file cannot be translated to a remote path."""


class InvalidLanguage(TranslationFailed):
    """Raised when a file extension has no language mapping."""

    def __init__(self, extension: str, file_name: str) -> None:
        super().__init__(
            f"Unsupported source extension [{extension or '<none>'}] for file: {file_name}",
            details={"extension": extension, "file": file_name},
        )
        self.extension = extension


class RemoteError(BricksyncError):
    """Base class for failures reported by the remote store."""


class RemoteUnavailable(RemoteError):
    """Raised when the remote store cannot be reached."""


class RemoteRejected(RemoteError):
    """Raised when the remote store rejects a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"status_code": status_code, "error_code": error_code},
        )
        self.status_code = status_code
        self.error_code = error_code


class DuplicateJobName(BricksyncError):
    """Raised when more than one remote job carries the same name."""

    def __init__(self, name: str, job_ids: list[int]) -> None:
        ids = ", ".join(str(job_id) for job_id in job_ids)
        super().__init__(
            f"Found {len(job_ids)} remote jobs named [{name}] (ids: {ids})",
            details={"name": name, "job_ids": list(job_ids)},
        )
        self.name = name
        self.job_ids = list(job_ids)


class IntegrityFailure(BricksyncError):
    """Raised when a job reported as upserted cannot be found."""
