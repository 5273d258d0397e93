"""End-to-end analysis run: merge, decode, scan, report, clean up."""

import logging
import shutil
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from sdkscope.core.competitors import CompetitorMatcher
from sdkscope.core.decompiler import APKDecompiler
from sdkscope.core.merger import SplitPackageMerger
from sdkscope.core.metadata import MetadataExtractor
from sdkscope.core.reference import LibraryDatabase, load_competitors
from sdkscope.core.report import ReportAssembler
from sdkscope.core.scanner import EvidenceScanner
from sdkscope.exceptions import InputError
from sdkscope.models.apk import DecodedPackage
from sdkscope.models.report import AnalysisContext, AnalysisReport, ReportMode
from sdkscope.utils.apk import APK_SUFFIX, validate_input_package
from sdkscope.utils.config import Settings

logger = logging.getLogger(__name__)

DecompileFn = Callable[[Path, Path], DecodedPackage]


def decode_with_apktool(apk_path: Path, output_dir: Path) -> DecodedPackage:
    """Produce the decoded and raw trees with apktool and zipfile."""
    return APKDecompiler(apk_path, output_dir).run()


class AnalysisRunner:
    """Run one analysis from an input package to a written report.

    Owns the run workspace: it is created at the start of ``run`` and removed
    on both success and failure unless ``settings.keep_workdir`` is set.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        decompile: DecompileFn = decode_with_apktool,
        work_root: Path | None = None,
    ):
        """Initialize analysis runner.

        Args:
            settings: Resolved run settings.
            decompile: Callable producing a DecodedPackage from an APK and
                an output directory.
            work_root: Parent directory for run workspaces. Defaults to the
                system temp directory.
        """
        self.settings = settings or Settings()
        self.decompile = decompile
        self.work_root = work_root
        self.workdir: Path | None = None

    def prepare(
        self, mode: ReportMode, keywords: list[str] | None = None
    ) -> AnalysisContext:
        """Validate the requested mode and keywords into a fresh context.

        Raises:
            InputError: If detection mode is requested without keywords.
        """
        cleaned = [kw.strip() for kw in keywords or [] if kw.strip()]
        if mode is ReportMode.DETECTION and not cleaned:
            raise InputError("Detection mode needs at least one keyword")
        return AnalysisContext(
            mode=mode,
            keywords=list(dict.fromkeys(cleaned)),
            code_scan_limit=self.settings.code_scan_limit,
        )

    def analyze(self, context: AnalysisContext, package: DecodedPackage) -> None:
        """Run every analysis pass over decoded trees, filling the context."""
        context.package = package

        extractor = MetadataExtractor(
            package.decoded_dir, package.raw_dir, package.apk_path
        )
        context.metadata = extractor.extract()

        database = LibraryDatabase.load(self.settings.library_db)
        logger.debug("Loaded %d library database row(s)", len(database))
        scanner = EvidenceScanner(
            package.decoded_dir,
            package.raw_dir,
            code_scan_limit=self.settings.code_scan_limit,
        )
        context.libraries = scanner.collect_native_libraries(database)

        if context.mode is ReportMode.DETECTION:
            context.evidence = scanner.scan_all(context.keywords)
        else:
            competitors = load_competitors(self.settings.competitor_list)
            context.competitors = CompetitorMatcher(competitors).match(
                context.libraries
            )

    def _resolve_apk(
        self, context: AnalysisContext, input_path: Path, workdir: Path
    ) -> Path:
        """Return the APK to decode, merging split containers first."""
        if input_path.suffix.lower() == APK_SUFFIX:
            return input_path

        merger = SplitPackageMerger(
            input_path,
            output_path=workdir / "merged.apk",
            work_dir=workdir,
        )
        context.merge = merger.merge()
        logger.info(
            "Merged %s into %s (%d files)",
            input_path.name,
            context.merge.output_path.name,
            context.merge.files_written,
        )
        return context.merge.output_path

    def run(
        self,
        input_path: Path,
        mode: ReportMode,
        keywords: list[str] | None = None,
        output_dir: Path | None = None,
        output_name: str | None = None,
        generated_at: datetime | None = None,
    ) -> AnalysisReport:
        """Analyze an APK or split container and write the report.

        Args:
            input_path: APK or split container (.apks, .xapk, .apkm).
            mode: Inventory or detection layout.
            keywords: Keywords to search for in detection mode.
            output_dir: Report directory. Defaults to the current directory.
            output_name: Explicit report file name.
            generated_at: Report timestamp. Defaults to now.

        Returns:
            AnalysisReport with the written report path.

        Raises:
            SdkScopeError: (subclass) on input, environment, merge or
                decompilation failures.
        """
        input_path = input_path.resolve()
        validate_input_package(input_path)
        context = self.prepare(mode, keywords)

        if self.work_root is not None:
            self.work_root.mkdir(parents=True, exist_ok=True)
        self.workdir = Path(tempfile.mkdtemp(prefix="sdkscope-", dir=self.work_root))
        try:
            apk_path = self._resolve_apk(context, input_path, self.workdir)
            package = self.decompile(apk_path, self.workdir / "trees")
            self.analyze(context, package)
            assembler = ReportAssembler(context)
            return assembler.write(
                output_dir or Path.cwd(), output_name, generated_at
            )
        finally:
            if self.settings.keep_workdir:
                logger.info("Keeping workspace: %s", self.workdir)
            else:
                shutil.rmtree(self.workdir, ignore_errors=True)
