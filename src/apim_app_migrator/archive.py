"""
Application archives on disk.

An exported application lives in ``<archive_dir>/{owner}_{name}.zip``; the
zip holds the full export with its description in ``{name}/{name}.json``.
"""

import json
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

from .errors import ArchiveError, ArchiveNameError
from .models import ApplicationMetadata

logger = logging.getLogger(__name__)

SEPARATOR = "_"
SUFFIX = ".zip"
_FORBIDDEN = (SEPARATOR, "/", "\\")


@dataclass(frozen=True)
class ArchiveName:
    owner: str
    name: str

    @property
    def file_name(self) -> str:
        return encode_archive_name(self.owner, self.name)

    def __str__(self) -> str:
        return f"{self.owner}:{self.name}"


def encode_archive_name(owner: str, name: str) -> str:
    for label, part in (("owner", owner), ("name", name)):
        if not part:
            raise ArchiveNameError(f"Application {label} is empty", owner=owner, name=name)
        bad = [c for c in _FORBIDDEN if c in part]
        if bad:
            raise ArchiveNameError(
                f"Application {label} contains reserved character(s) {''.join(bad)!r}",
                owner=owner, name=name,
            )
    return f"{owner}{SEPARATOR}{name}{SUFFIX}"


def decode_archive_name(file_name: str) -> ArchiveName:
    """Split ``{owner}_{name}.zip`` back into owner and application name."""
    if not file_name.endswith(SUFFIX):
        raise ArchiveNameError("Archive file name must end with .zip", archive=file_name)
    parts = file_name[: -len(SUFFIX)].split(SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise ArchiveNameError("Archive file name is not {owner}_{name}.zip", archive=file_name)
    return ArchiveName(owner=parts[0], name=parts[1])


def write_archive(archive_dir: Path, owner: str, name: str, payload: bytes) -> Path:
    archive_path = archive_dir / encode_archive_name(owner, name)
    try:
        archive_dir.mkdir(parents=True, exist_ok=True)
        archive_path.write_bytes(payload)
    except OSError as e:
        raise ArchiveError("Cannot write archive", cause=e, archive=str(archive_path)) from e
    return archive_path


def metadata_entry(application_name: str) -> str:
    return f"{application_name}/{application_name}.json"


def read_metadata(archive_path: Path, application_name: str) -> ApplicationMetadata:
    """Parse the application description without extracting anything else."""
    entry = metadata_entry(application_name)
    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            data = zf.read(entry)
    except KeyError as e:
        raise ArchiveError("Metadata entry missing", cause=e,
                           archive=archive_path.name, entry=entry) from e
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError("Cannot open archive", cause=e, archive=archive_path.name) from e

    try:
        raw = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArchiveError("Metadata is not valid JSON", cause=e,
                           archive=archive_path.name, entry=entry) from e
    if not isinstance(raw, dict):
        raise ArchiveError("Metadata is not a JSON object", archive=archive_path.name, entry=entry)
    return ApplicationMetadata.from_dict(raw)


def read_raw_bytes(archive_path: Path) -> bytes:
    try:
        return archive_path.read_bytes()
    except OSError as e:
        raise ArchiveError("Cannot read archive", cause=e, archive=archive_path.name) from e


def discover_archives(archive_dir: Path) -> List[Tuple[Path, Union[ArchiveName, ArchiveNameError]]]:
    """
    List the ``.zip`` files of the archive store with their decoded names.

    Files whose names do not decode are returned with the decode error so the
    caller can report them; a missing directory holds no archives.
    """
    if not archive_dir.is_dir():
        logger.warning("Archive directory %s does not exist", archive_dir)
        return []

    found: List[Tuple[Path, Union[ArchiveName, ArchiveNameError]]] = []
    for path in sorted(p for p in archive_dir.iterdir() if p.is_file() and p.suffix == SUFFIX):
        try:
            found.append((path, decode_archive_name(path.name)))
        except ArchiveNameError as e:
            found.append((path, e))
    return found
