"""Evidence scanning: search six independent channels for a keyword."""

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

from sdkscope.core.reference import LibraryDatabase
from sdkscope.models.analyze import (
    EvidenceChannel,
    EvidenceRecord,
    NativeLibraryRecord,
)
from sdkscope.models.apk import UNKNOWN
from sdkscope.utils.config import DEFAULT_CODE_SCAN_LIMIT

logger = logging.getLogger(__name__)

MANIFEST_NAME = "AndroidManifest.xml"

# Path tokens that make a code file worth a content search
GENERIC_CODE_TOKENS = ("vendor", "library", "sdk")


def _files_under(root: Path) -> list[Path]:
    """All files below root, sorted for a stable scan order."""
    return sorted(path for path in root.rglob("*") if path.is_file())


def _count_matching_lines(path: Path, needle: str) -> int:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", path, e)
        return 0
    return sum(1 for line in text.splitlines() if needle in line.lower())


def _contains(path: Path, needle: str) -> bool:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", path, e)
        return False
    return needle in text.lower()


class EvidenceScanner:
    """Search the decoded and raw trees of one APK for SDK keywords.

    The code channel only reads the contents of at most ``code_scan_limit``
    files per keyword, chosen among files whose path mentions the keyword or
    a generic token (vendor, library, sdk). Content-only matches outside that
    set are missed on large, unconventionally named trees.
    """

    def __init__(
        self,
        decoded_dir: Path,
        raw_dir: Path | None = None,
        code_scan_limit: int = DEFAULT_CODE_SCAN_LIMIT,
    ):
        """Initialize evidence scanner.

        Args:
            decoded_dir: apktool output directory.
            raw_dir: Plain ZIP extraction of the same APK. Channels on binary
                content fall back to the decoded tree when absent.
            code_scan_limit: Maximum number of code files read per keyword.
        """
        if code_scan_limit < 0:
            raise ValueError(f"code_scan_limit must be >= 0: {code_scan_limit}")
        self.decoded_dir = decoded_dir
        self.raw_dir = raw_dir
        self.code_scan_limit = code_scan_limit

    def _tree_dir(
        self, raw_parts: tuple[str, ...], decoded_parts: tuple[str, ...]
    ) -> tuple[Path | None, Path | None]:
        """Prefer a raw tree directory, fall back to the decoded tree."""
        if self.raw_dir is not None:
            raw = self.raw_dir.joinpath(*raw_parts)
            if raw.is_dir():
                return raw, self.raw_dir
        decoded = self.decoded_dir.joinpath(*decoded_parts)
        if decoded.is_dir():
            return decoded, self.decoded_dir
        return None, None

    def _code_dirs(self) -> list[Path]:
        if not self.decoded_dir.is_dir():
            return []
        return sorted(
            child
            for child in self.decoded_dir.iterdir()
            if child.is_dir() and child.name.startswith("smali")
        )

    def _rel(self, path: Path, root: Path) -> str:
        return path.relative_to(root).as_posix()

    def scan_manifest(self, record: EvidenceRecord, needle: str) -> None:
        manifest = self.decoded_dir / MANIFEST_NAME
        if not manifest.is_file():
            return
        hits = _count_matching_lines(manifest, needle)
        record.hits(EvidenceChannel.MANIFEST).add(hits, MANIFEST_NAME)

    def scan_resources(self, record: EvidenceRecord, needle: str) -> None:
        res = self.decoded_dir / "res"
        if not res.is_dir():
            return
        channel = record.hits(EvidenceChannel.RESOURCES)
        for path in sorted(res.rglob("*.xml")):
            if path.is_file():
                hits = _count_matching_lines(path, needle)
                channel.add(hits, self._rel(path, self.decoded_dir))

    def scan_code(self, record: EvidenceRecord, needle: str) -> None:
        code_dirs = self._code_dirs()
        if not code_dirs:
            return

        channel = record.hits(EvidenceChannel.CODE)
        candidates = []
        for code_dir in code_dirs:
            for path in _files_under(code_dir):
                rel = self._rel(path, self.decoded_dir)
                if needle in path.name.lower():
                    channel.add(1, rel)
                lowered = rel.lower()
                if needle in lowered or any(
                    token in lowered for token in GENERIC_CODE_TOKENS
                ):
                    candidates.append(path)

        for path in candidates[: self.code_scan_limit]:
            if _contains(path, needle):
                channel.add(1, self._rel(path, self.decoded_dir))

        if len(candidates) > self.code_scan_limit:
            logger.debug(
                "Code content search for %r capped at %d of %d candidate files",
                needle,
                self.code_scan_limit,
                len(candidates),
            )

    def _scan_names(
        self,
        record: EvidenceRecord,
        channel: EvidenceChannel,
        needle: str,
        raw_parts: tuple[str, ...],
        decoded_parts: tuple[str, ...],
    ) -> None:
        directory, root = self._tree_dir(raw_parts, decoded_parts)
        if directory is None or root is None:
            return
        hits = record.hits(channel)
        for path in _files_under(directory):
            if needle in path.name.lower():
                hits.add(1, self._rel(path, root))

    def scan_native_libs(self, record: EvidenceRecord, needle: str) -> None:
        self._scan_names(
            record, EvidenceChannel.NATIVE_LIBS, needle, ("lib",), ("lib",)
        )

    def scan_assets(self, record: EvidenceRecord, needle: str) -> None:
        self._scan_names(
            record, EvidenceChannel.ASSETS, needle, ("assets",), ("assets",)
        )

    def scan_metadata(self, record: EvidenceRecord, needle: str) -> None:
        self._scan_names(
            record,
            EvidenceChannel.METADATA,
            needle,
            ("META-INF",),
            ("original", "META-INF"),
        )

    def scan(self, keyword: str) -> EvidenceRecord:
        """Search every channel for a keyword.

        Matching is a case-insensitive literal substring test on file names
        and file contents.

        Args:
            keyword: Text to search for.

        Returns:
            EvidenceRecord with per-channel counts.
        """
        needle = keyword.lower()
        record = EvidenceRecord(keyword=keyword)
        if not needle:
            return record

        channels: list[Callable[[EvidenceRecord, str], None]] = [
            self.scan_manifest,
            self.scan_resources,
            self.scan_code,
            self.scan_native_libs,
            self.scan_assets,
            self.scan_metadata,
        ]
        for scan_channel in channels:
            scan_channel(record, needle)

        logger.debug("Evidence for %r: %s", keyword, record.locations)
        return record

    def scan_all(self, keywords: list[str]) -> dict[str, EvidenceRecord]:
        """Scan several keywords, keyed in request order (duplicates dropped)."""
        evidence: dict[str, EvidenceRecord] = {}
        for keyword in keywords:
            if keyword not in evidence:
                evidence[keyword] = self.scan(keyword)
        return evidence

    def _library_files(self) -> Iterator[tuple[Path, str, Path]]:
        """Yield (file, abi, tree root) for every file under lib/.

        Files directly under lib/ carry no ABI directory and report UNKNOWN.
        """
        lib_dir, root = self._tree_dir(("lib",), ("lib",))
        if lib_dir is None or root is None:
            return
        for path in _files_under(lib_dir):
            parts = path.relative_to(lib_dir).parts
            yield path, parts[0] if len(parts) > 1 else UNKNOWN, root

    def collect_native_libraries(
        self, database: LibraryDatabase | None = None
    ) -> list[NativeLibraryRecord]:
        """Enumerate every native library, enriched from the reference database.

        Returns:
            Records sorted by (name, abi, path).
        """
        records: dict[str, NativeLibraryRecord] = {}
        for path, abi, root in self._library_files():
            rel = self._rel(path, root)
            reference = database.lookup(path.name) if database else None
            records[rel] = NativeLibraryRecord(
                name=path.name,
                abi=abi,
                path=rel,
                size=path.stat().st_size,
                description=reference.description if reference else None,
                vendor=reference.vendor if reference else None,
                version=reference.version if reference else None,
            )
        return sorted(records.values(), key=lambda r: (r.name, r.abi, r.path))
