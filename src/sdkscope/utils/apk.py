"""APK and split container validation and identity helpers."""

import logging
from pathlib import Path
from zipfile import BadZipFile, ZipFile, is_zipfile

from sdkscope.exceptions import InputError, SdkScopeError

logger = logging.getLogger(__name__)

# ZIP file magic header (APKs and split containers are ZIP files)
ZIP_FILE_HEADER = b"PK\x03\x04"

APK_SUFFIX = ".apk"
SPLIT_CONTAINER_SUFFIXES = (".apks", ".xapk", ".apkm", ".zip")


def validate_apk_path(
    apk_path: Path,
    *,
    require_zip_header: bool = False,
    error_cls: type[SdkScopeError] = InputError,
) -> None:
    """Validate that an APK file path is valid.

    Performs the following checks:
    - File exists
    - Path is a file (not a directory)
    - File has .apk extension
    - Optionally: file starts with ZIP magic header

    Args:
        apk_path: Path to the APK file to validate.
        require_zip_header: If True, also verify the file starts with ZIP header.
        error_cls: Exception class to raise on validation failure.

    Raises:
        SdkScopeError (or subclass): If validation fails.
    """
    if not apk_path.exists():
        raise error_cls(f"APK not found: {apk_path}")

    if not apk_path.is_file():
        raise error_cls(f"Not a file: {apk_path}")

    if apk_path.suffix.lower() != APK_SUFFIX:
        raise error_cls(f"Not an APK file (expected .apk extension): {apk_path}")

    if require_zip_header:
        try:
            with apk_path.open("rb") as f:
                header = f.read(4)
        except OSError as e:
            raise error_cls(f"Failed to read APK header: {e}") from e

        if len(header) < len(ZIP_FILE_HEADER):
            raise error_cls("File is too small to be a valid APK")

        if header != ZIP_FILE_HEADER:
            raise error_cls(
                f"Header mismatch. Expected: {ZIP_FILE_HEADER!r}, got: {header!r}"
            )


def is_split_container(path: Path) -> bool:
    """Check whether a path looks like a split APK container.

    A container either carries one of the known container extensions, or is
    a ZIP archive whose entries include at least one ``.apk`` file.
    """
    suffix = path.suffix.lower()
    if suffix in SPLIT_CONTAINER_SUFFIXES:
        return True
    if suffix == APK_SUFFIX or not path.is_file() or not is_zipfile(path):
        return False

    try:
        with ZipFile(path) as archive:
            return any(
                name.lower().endswith(APK_SUFFIX) for name in archive.namelist()
            )
    except (BadZipFile, OSError):
        return False


def validate_input_package(path: Path) -> None:
    """Validate an analysis input: a single APK or a split container.

    Raises:
        InputError: If the path is missing, not a file, or of unknown type.
    """
    if not path.exists():
        raise InputError(f"Input not found: {path}")

    if not path.is_file():
        raise InputError(f"Not a file: {path}")

    if path.suffix.lower() == APK_SUFFIX:
        validate_apk_path(path, require_zip_header=True)
        return

    if not is_split_container(path):
        raise InputError(
            f"Unsupported input (expected .apk, .apks, .xapk or .apkm): {path}"
        )


def read_identity(apk_path: Path) -> dict[str, str]:
    """Read app identity straight from the binary manifest of an APK.

    Uses pyaxmlparser. Best-effort: any parse failure yields an empty dict.

    Returns:
        Mapping with any of ``package_name``, ``app_name``, ``version_name``,
        ``version_code``, ``min_sdk``, ``target_sdk``.
    """
    try:
        from pyaxmlparser import APK  # type: ignore[import-untyped]

        apk = APK(str(apk_path))
        values = {
            "package_name": apk.package,
            "app_name": apk.application,
            "version_name": apk.version_name,
            "version_code": apk.version_code,
            "min_sdk": apk.get_min_sdk_version(),
            "target_sdk": apk.get_target_sdk_version(),
        }
    except Exception as e:
        logger.debug("pyaxmlparser could not read %s: %s", apk_path, e)
        return {}

    return {key: str(value) for key, value in values.items() if value}
