"""Reference data: the native library database and the competitor list."""

import logging
import re
from pathlib import Path

from sdkscope.models.analyze import LibraryReference

logger = logging.getLogger(__name__)

ANNOTATION_PATTERN = re.compile(r"\[[^\]]*\]")


def _read_lines(path: Path | None) -> list[str]:
    """Return the meaningful lines of a reference file.

    Blank lines and ``#`` comments are dropped. A missing or unreadable file
    yields no lines.
    """
    if path is None or not path.is_file():
        logger.debug("Reference file not found: %s", path)
        return []

    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Could not read reference file %s: %s", path, e)
        return []

    lines = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            lines.append(stripped)
    return lines


class LibraryDatabase:
    """Pipe-delimited library facts: ``name|description|vendor[|version]``."""

    def __init__(self, entries: list[LibraryReference] | None = None):
        self.entries = entries or []

    @classmethod
    def load(cls, path: Path | None) -> "LibraryDatabase":
        """Load the database from disk. A missing file gives an empty database."""
        entries = []
        for line in _read_lines(path):
            fields = [field.strip() for field in line.split("|")]
            if len(fields) < 3 or not fields[0]:
                logger.debug("Skipping malformed database row: %s", line)
                continue
            entries.append(
                LibraryReference(
                    name=fields[0],
                    description=fields[1],
                    vendor=fields[2],
                    version=fields[3] if len(fields) > 3 and fields[3] else None,
                )
            )
        return cls(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, library_name: str) -> LibraryReference | None:
        """Return the first row whose name is a prefix of the library name.

        Matching is case-insensitive.
        """
        lowered = library_name.lower()
        for entry in self.entries:
            if lowered.startswith(entry.name.lower()):
                return entry
        return None


def load_competitors(path: Path | None) -> list[str]:
    """Load competitor display names.

    ``[...]`` annotations are stripped from each line; lines left empty
    are dropped.
    """
    names = []
    for line in _read_lines(path):
        name = " ".join(ANNOTATION_PATTERN.sub(" ", line).split())
        if name:
            names.append(name)
    return names
