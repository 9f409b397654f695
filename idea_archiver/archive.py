"""
Idea Archiver - Archive layout, scanning and filename dates.

Screenshots are stored on disk as:
    <root>/<YYYY>/<MonthName>/<D> <MonthName> <YYYY>.png
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime

from idea_archiver.constants import HIDDEN_FILE_PREFIX, IMAGE_EXTENSION, MONTH_NAMES

logger = logging.getLogger(__name__)

# Sorts before every real capture date; returned for names that do not parse.
UNKNOWN_DATE = datetime.min

_FILENAME_RE = re.compile(
    r"^(\d{1,2})\s+([A-Za-z]+)\s+(\d+)" + re.escape(IMAGE_EXTENSION) + r"$"
)


def _parse_filename(filename: str) -> datetime | None:
    match = _FILENAME_RE.match(filename)
    if not match:
        return None
    day, month_name, year = match.groups()
    if month_name not in MONTH_NAMES:
        return None
    try:
        return datetime(int(year), MONTH_NAMES.index(month_name) + 1, int(day))
    except ValueError:
        # e.g. "31 February 2025" or year 0
        return None


def extract_date(path: str) -> datetime:
    """
    Return the capture date encoded in a filename, at local midnight.

    Accepts a bare filename or a full path. Names that do not match
    ``<day> <MonthName> <year>.png`` return UNKNOWN_DATE instead of raising,
    so any mix of files can be sorted.
    """
    parsed = _parse_filename(os.path.basename(path))
    return parsed if parsed is not None else UNKNOWN_DATE


def format_date_line(path: str) -> str:
    """Human-readable date for a capture, falling back to the bare file stem."""
    filename = os.path.basename(path)
    parsed = _parse_filename(filename)
    if parsed is None:
        stem, _ext = os.path.splitext(filename)
        return stem
    return f"{parsed.day} {MONTH_NAMES[parsed.month - 1]} {parsed.year}"


def archive_path_for(root: str, when: datetime) -> str:
    """Path where the capture for ``when`` is written."""
    month_name = MONTH_NAMES[when.month - 1]
    filename = f"{when.day} {month_name} {when.year}{IMAGE_EXTENSION}"
    return os.path.join(root, str(when.year), month_name, filename)


@dataclass(frozen=True)
class ArchiveFile:
    """One archived screenshot. Identity is the normalized path."""

    path: str
    captured_date: datetime | None = field(default=None, compare=False)

    @classmethod
    def from_path(cls, path: str) -> "ArchiveFile":
        normalized = os.path.normpath(path)
        parsed = _parse_filename(os.path.basename(normalized))
        return cls(path=normalized, captured_date=parsed)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (
            self.captured_date if self.captured_date is not None else UNKNOWN_DATE,
            self.path,
        )


def _is_archive_image(filename: str) -> bool:
    return filename.endswith(IMAGE_EXTENSION) and not filename.startswith(
        HIDDEN_FILE_PREFIX
    )


def scan_archive(root: str) -> list[ArchiveFile]:
    """
    Walk ``root`` and return every archived screenshot beneath it.

    Hidden files, symlinks and non-PNG files are skipped. A missing root
    yields an empty list. Result order is unspecified; use sort_archive_files.
    """
    if not os.path.isdir(root):
        logger.debug("Archive root %s missing; nothing to scan", root)
        return []

    found: list[ArchiveFile] = []
    for dirpath, _dirs, files in os.walk(root):
        for fname in files:
            if not _is_archive_image(fname):
                continue
            fpath = os.path.join(dirpath, fname)
            if os.path.islink(fpath) or not os.path.isfile(fpath):
                continue
            found.append(ArchiveFile.from_path(fpath))
    logger.debug("Scanned %s: %d archive file(s)", root, len(found))
    return found


def sort_archive_files(files: list[ArchiveFile]) -> list[ArchiveFile]:
    """Oldest capture first; files without a parsable date lead, ties by path."""
    return sorted(files, key=lambda f: f.sort_key)
