"""APK decoding: apktool tree plus a plain ZIP extraction of the same APK."""

import logging
from pathlib import Path
from zipfile import BadZipFile, ZipFile

from sdkscope.exceptions import AnalysisError, DecompilationError, ProcessError
from sdkscope.models.apk import DecodedPackage
from sdkscope.utils.apk import validate_apk_path
from sdkscope.utils.deps import get_apktool_command, require
from sdkscope.utils.process import run_tool

logger = logging.getLogger(__name__)

MANIFEST_NAME = "AndroidManifest.xml"

# Seconds before a hung apktool run is killed
APKTOOL_TIMEOUT = 30 * 60


class APKDecompiler:
    """Produces the decoded (apktool) and raw (unzipped) trees of an APK."""

    def __init__(
        self,
        apk_path: Path,
        output_dir: Path | None = None,
    ):
        """Initialize APK decompiler.

        Args:
            apk_path: Path to the APK file.
            output_dir: Root output directory. Defaults to ./<apk_stem>/.
        """
        self.apk_path = apk_path.resolve()
        self.output_dir = (
            output_dir.resolve() if output_dir else Path.cwd() / self.apk_path.stem
        )

    def validate(self) -> None:
        """Validate that APK exists and is a valid file.

        Raises:
            DecompilationError: If APK is invalid.
        """
        validate_apk_path(
            self.apk_path, require_zip_header=True, error_cls=DecompilationError
        )

    def decompile(self, output: Path) -> Path:
        """Decode APK resources, manifest and smali with apktool.

        Args:
            output: Output directory for the decoded tree.

        Returns:
            Path to output directory.

        Raises:
            ToolNotFoundError: If apktool or java is missing.
            DecompilationError: If apktool fails or writes no manifest.
        """
        require("apktool")
        base_cmd = get_apktool_command()
        if base_cmd is None:
            raise DecompilationError("apktool command could not be resolved")
        if base_cmd[0] == "java":
            require("java")

        # apktool d -f -o <output> <apk>
        # -f: force overwrite existing directory
        cmd = base_cmd + ["d", "-f", "-o", str(output), str(self.apk_path)]

        try:
            run_tool(cmd, check=True, timeout=APKTOOL_TIMEOUT)
        except ProcessError as e:
            raise DecompilationError(f"apktool decompilation failed: {e}") from e

        if not (output / MANIFEST_NAME).is_file():
            raise DecompilationError(
                f"apktool completed but {MANIFEST_NAME} not found in: {output}"
            )

        return output

    def extract_raw(self, output: Path) -> Path:
        """Extract APK as a plain ZIP to keep native libraries and assets intact.

        Args:
            output: Output directory for the raw tree.

        Returns:
            Path to output directory.

        Raises:
            AnalysisError: If the APK cannot be read as a ZIP archive.
        """
        output.mkdir(parents=True, exist_ok=True)
        try:
            with ZipFile(self.apk_path) as apk:
                apk.extractall(output)
        except (BadZipFile, OSError) as e:
            raise AnalysisError(f"Failed to extract {self.apk_path.name}: {e}") from e

        return output

    def run(self) -> DecodedPackage:
        """Produce both trees under the output directory.

        Layout:

            <output_dir>/
            ├── decoded/  # apktool output
            └── raw/      # unzipped APK

        Returns:
            DecodedPackage pointing at both trees.
        """
        self.validate()
        self.output_dir.mkdir(parents=True, exist_ok=True)

        decoded_dir = self.decompile(self.output_dir / "decoded")
        raw_dir = self.extract_raw(self.output_dir / "raw")
        logger.debug("Decoded %s into %s", self.apk_path.name, self.output_dir)

        return DecodedPackage(
            apk_path=self.apk_path,
            decoded_dir=decoded_dir,
            raw_dir=raw_dir,
        )
