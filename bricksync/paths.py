from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePath

from bricksync.errors import InvalidLanguage, TranslationFailed
from bricksync.models import ArtifactEntry, Language, RemotePath


REMOTE_SEPARATOR = "/"

# Keys are upper-cased extensions without the dot.
EXTENSION_LANGUAGES: dict[str, Language] = {
    "PY": Language.PYTHON,
    "SCALA": Language.SCALA,
    "SQL": Language.SQL,
    "R": Language.R,
}


def normalize_extension(extension: str) -> str:
    return extension.strip().lstrip(".").upper()


def normalize_extensions(extensions: Iterable[str] | None) -> frozenset[str]:
    if not extensions:
        return frozenset(EXTENSION_LANGUAGES)
    return frozenset(normalize_extension(ext) for ext in extensions if ext and ext.strip())


def language_for(file_name: str) -> Language:
    extension = normalize_extension(PurePath(file_name).suffix)
    try:
        return EXTENSION_LANGUAGES[extension]
    except KeyError:
        raise InvalidLanguage(extension, file_name) from None


def translate(root: PurePath, file_path: PurePath) -> tuple[str, str, Language]:
    """Map a file below ``root`` to ``(remote_directory, leaf_name, language)``.

    The remote directory uses ``/`` whatever the local path flavour, and is
    empty for files that sit directly in ``root``.
    """
    try:
        relative = file_path.relative_to(root)
    except ValueError:
        raise TranslationFailed(
            f"File {file_path} is not below sync root {root}",
            details={"file": str(file_path), "root": str(root)},
        ) from None

    if not relative.parts:
        raise TranslationFailed(
            f"Sync root itself is not a file: {file_path}",
            details={"file": str(file_path)},
        )

    language = language_for(relative.name)
    directory = REMOTE_SEPARATOR.join(relative.parent.parts)
    return directory, relative.stem, language


def translate_entry(root: PurePath, entry: ArtifactEntry) -> tuple[RemotePath, Language]:
    directory, name, language = translate(root, entry.local_file)
    return RemotePath(directory=directory, name=name), language
