"""Reconstruct a single APK from a split APK container (.apks, .xapk, .apkm)."""

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path, PurePosixPath
from zipfile import ZIP_DEFLATED, ZIP_STORED, BadZipFile, ZipFile

from sdkscope.exceptions import (
    BasePackageExtractionError,
    InvalidContainerError,
    NoBaseArchiveFoundError,
    RepackagingError,
    SplitPackageExtractionError,
)
from sdkscope.models.apk import MergeResult

logger = logging.getLogger(__name__)

# split_config.arm64_v8a.apk, config.xxhdpi.apk, split_config.en.apk
CONFIG_SPLIT_PATTERN = re.compile(
    r"^(?:split_)?config\.(?P<qualifier>.+)\.apk$", re.IGNORECASE
)

# bundletool layout: splits/base-master.apk, splits/base-arm64_v8a.apk, ...
BUNDLETOOL_SPLIT_PATTERN = re.compile(
    r"^(?P<module>[^-]+)-(?P<qualifier>.+)\.apk$", re.IGNORECASE
)
BUNDLETOOL_SPLITS_DIR = "splits"
BUNDLETOOL_STANDALONES_DIR = "standalones"
MASTER_QUALIFIER = "master"

ARCH_QUALIFIERS = frozenset(
    {"arm64_v8a", "armeabi_v7a", "armeabi", "x86_64", "x86", "mips64", "mips"}
)

BASE_APK_NAME = "base.apk"
BASE_MASTER_NAME = "base-master.apk"

# Entries Android expects uncompressed in the final APK
STORED_SUFFIXES = (".so", ".arsc")


def _in_top_dir(name: str, directory: str) -> bool:
    return PurePosixPath(name).parts[:1] == (directory,)


def _bundletool_qualifier(name: str) -> str | None:
    """Qualifier of a splits/<module>-<qualifier>.apk entry, if it is one."""
    path = PurePosixPath(name)
    if path.parent.name != BUNDLETOOL_SPLITS_DIR:
        return None
    match = BUNDLETOOL_SPLIT_PATTERN.match(path.name)
    return match.group("qualifier").lower() if match else None


def _split_qualifier(name: str) -> str | None:
    match = CONFIG_SPLIT_PATTERN.match(PurePosixPath(name).name)
    if match is not None:
        return match.group("qualifier").lower()
    qualifier = _bundletool_qualifier(name)
    if qualifier == MASTER_QUALIFIER:
        return None
    return qualifier


def is_master_split(name: str) -> bool:
    """Check if an entry is a bundletool module master (splits/*-master.apk)."""
    return _bundletool_qualifier(name) == MASTER_QUALIFIER


def is_config_split(name: str) -> bool:
    """Check if an entry name follows a config split naming convention."""
    return _split_qualifier(name) is not None


def is_arch_split(name: str) -> bool:
    """Check if an entry name is an architecture config split."""
    qualifier = _split_qualifier(name)
    if qualifier is None:
        return False
    return qualifier.replace("-", "_") in ARCH_QUALIFIERS


def _base_rank(name: str) -> tuple[int, str]:
    file_name = PurePosixPath(name).name.lower()
    if file_name == BASE_APK_NAME:
        return 0, name
    if file_name == BASE_MASTER_NAME:
        return 1, name
    if is_master_split(name):
        return 2, name
    return 3, name


class SplitPackageMerger:
    """Merge a split APK container into one APK.

    Merge order is base, then architecture splits, then every other split,
    each group sorted by name. The last writer wins on colliding paths.
    """

    def __init__(
        self,
        container_path: Path,
        output_path: Path | None = None,
        work_dir: Path | None = None,
    ):
        """Initialize split package merger.

        Args:
            container_path: Split container to merge.
            output_path: Merged APK path. Defaults to <stem>.merged.apk
                next to the container.
            work_dir: Parent directory for scratch and staging directories.
                Defaults to the system temp directory.
        """
        self.container_path = container_path.resolve()
        self.output_path = (
            output_path.resolve() if output_path else self._default_output_path()
        )
        self.work_dir = work_dir

    def _default_output_path(self) -> Path:
        return self.container_path.parent / f"{self.container_path.stem}.merged.apk"

    def _validate(self) -> None:
        if not self.container_path.exists():
            raise InvalidContainerError(
                f"Split container not found: {self.container_path}"
            )
        if not self.container_path.is_file():
            raise InvalidContainerError(f"Not a file: {self.container_path}")

    def _extract_container(self, scratch: Path) -> list[str]:
        """Extract the container and return its APK entry names."""
        try:
            with ZipFile(self.container_path) as container:
                container.extractall(scratch)
                names = container.namelist()
        except (BadZipFile, OSError) as e:
            raise SplitPackageExtractionError(
                f"Failed to extract split container {self.container_path.name}: {e}"
            ) from e

        return sorted(
            name
            for name in names
            if name.lower().endswith(".apk") and not name.endswith("/")
        )

    @staticmethod
    def classify(
        entries: list[str], container: str = "split container"
    ) -> tuple[str, list[str], list[str]]:
        """Split container entries into base, architecture and other splits.

        A bundletool container (splits/ directory) drops its standalones/
        entries, since those are complete APKs for older devices.

        Args:
            entries: APK entry names from the container.
            container: Container name used in the error message.

        Returns:
            Tuple of (base entry, architecture splits, other splits).

        Raises:
            NoBaseArchiveFoundError: If no entry qualifies as the base APK.
        """
        if any(_in_top_dir(name, BUNDLETOOL_SPLITS_DIR) for name in entries):
            standalones = [
                name
                for name in entries
                if _in_top_dir(name, BUNDLETOOL_STANDALONES_DIR)
            ]
            if standalones:
                logger.debug("Skipping %d standalone APK(s)", len(standalones))
            entries = [name for name in entries if name not in standalones]

        candidates = sorted(name for name in entries if not is_config_split(name))
        if not candidates:
            raise NoBaseArchiveFoundError(container, sorted(entries))

        base = min(candidates, key=_base_rank)
        arch = sorted(name for name in entries if is_arch_split(name))
        other = sorted(name for name in entries if name != base and name not in arch)
        return base, arch, other

    def _extract_apk(
        self,
        apk_path: Path,
        staging: Path,
        owners: dict[str, tuple[str, int, int]],
    ) -> int:
        """Extract one APK into staging, overwriting colliding paths.

        Returns:
            Number of paths that were already present in staging.
        """
        collisions = 0
        with ZipFile(apk_path) as apk:
            for info in apk.infolist():
                if info.is_dir():
                    continue

                previous = owners.get(info.filename)
                if previous is not None:
                    collisions += 1
                    owner, crc, size = previous
                    if (crc, size) == (info.CRC, info.file_size):
                        logger.debug(
                            "%s: identical copy in %s and %s",
                            info.filename,
                            owner,
                            apk_path.name,
                        )
                    else:
                        logger.warning(
                            "%s: content from %s replaced by %s",
                            info.filename,
                            owner,
                            apk_path.name,
                        )

                apk.extract(info, staging)
                owners[info.filename] = (apk_path.name, info.CRC, info.file_size)

        return collisions

    def _repackage(self, staging: Path) -> int:
        """Compress staging into the output APK and return the file count."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".merging-", suffix=".apk", dir=self.output_path.parent
        )
        os.close(fd)
        tmp_path = Path(tmp_name)

        files = sorted(p for p in staging.rglob("*") if p.is_file())
        try:
            with ZipFile(tmp_path, "w") as merged:
                for path in files:
                    arcname = path.relative_to(staging).as_posix()
                    compress = (
                        ZIP_STORED
                        if arcname.lower().endswith(STORED_SUFFIXES)
                        else ZIP_DEFLATED
                    )
                    merged.write(path, arcname, compress_type=compress)

            if tmp_path.stat().st_size == 0:
                raise RepackagingError(f"Merged APK is empty: {self.output_path}")

            tmp_path.replace(self.output_path)
        except OSError as e:
            raise RepackagingError(f"Failed to write merged APK: {e}") from e
        finally:
            tmp_path.unlink(missing_ok=True)

        return len(files)

    def merge(self) -> MergeResult:
        """Run the merge workflow and return the merged APK details.

        Raises:
            MergeError: (subclass) on any validation, extraction or
                repackaging failure. Scratch and staging directories are
                removed on every path.
        """
        self._validate()

        scratch = Path(tempfile.mkdtemp(prefix="sdkscope-split-", dir=self.work_dir))
        staging = Path(tempfile.mkdtemp(prefix="sdkscope-merge-", dir=self.work_dir))
        try:
            entries = self._extract_container(scratch)
            base, arch, other = self.classify(entries, self.container_path.name)

            logger.debug(
                "Base %s, %d architecture split(s), %d other split(s)",
                base,
                len(arch),
                len(other),
            )

            owners: dict[str, tuple[str, int, int]] = {}
            try:
                self._extract_apk(scratch / base, staging, owners)
            except (BadZipFile, OSError) as e:
                raise BasePackageExtractionError(
                    f"Failed to extract base APK {base}: {e}"
                ) from e

            collisions = 0
            for name in arch + other:
                try:
                    collisions += self._extract_apk(scratch / name, staging, owners)
                except (BadZipFile, OSError) as e:
                    raise SplitPackageExtractionError(
                        f"Failed to extract split APK {name}: {e}"
                    ) from e

            files_written = self._repackage(staging)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
            shutil.rmtree(staging, ignore_errors=True)

        if not self.output_path.is_file() or self.output_path.stat().st_size == 0:
            raise RepackagingError(
                f"Merged APK was not created or is empty: {self.output_path}"
            )

        return MergeResult(
            container_path=self.container_path,
            output_path=self.output_path,
            base_apk=base,
            arch_splits=arch,
            other_splits=other,
            files_written=files_written,
            collisions=collisions,
        )
