from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from bricksync.models import ArtifactEntry
from bricksync.paths import normalize_extension, normalize_extensions


def _is_hidden(rel_parts: tuple[str, ...]) -> bool:
    return any(part.startswith(".") for part in rel_parts)


def _is_regular_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def enumerate_artifacts(
    root: Path,
    extensions: Iterable[str] | None = None,
) -> list[ArtifactEntry]:
    """List source files below ``root`` whose extension is recognized.

    Hidden files, anything under a hidden directory and directories that
    cannot be read are skipped. A missing root gives an empty list.
    """
    if not root.is_dir():
        return []

    recognized = normalize_extensions(extensions)
    entries: list[ArtifactEntry] = []

    for file_path in sorted(root.rglob("*")):
        rel_parts = file_path.relative_to(root).parts
        if _is_hidden(rel_parts):
            continue
        if normalize_extension(file_path.suffix) not in recognized:
            continue
        if not _is_regular_file(file_path):
            continue
        entries.append(ArtifactEntry(local_file=file_path, directory=file_path.parent))

    return entries
