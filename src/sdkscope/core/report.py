"""Plain-text report composition for inventory and detection runs."""

import re
from datetime import datetime
from pathlib import Path

from sdkscope import __version__
from sdkscope.exceptions import ReportWriteError
from sdkscope.models.analyze import EvidenceChannel, SdkEntry, SdkSource
from sdkscope.models.apk import (
    UNKNOWN,
    AppMetadata,
    PackageManifestFacts,
    VersionStamp,
)
from sdkscope.models.report import AnalysisContext, AnalysisReport, ReportMode

WIDTH = 80
RULE = "=" * WIDTH
SUBRULE = "-" * WIDTH

MAX_CODE_PACKAGES = 20
SLUG_PATTERN = re.compile(r"[^a-z0-9-]+")
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

DEPENDENCY_GROUPS: list[tuple[str, tuple[str, ...]]] = [
    ("AndroidX", ("androidx.",)),
    ("Google", ("com.google.",)),
    ("Kotlin & JetBrains", ("org.jetbrains.",)),
]
OTHER_GROUP = "Other"

DETECTION_METHODS: dict[EvidenceChannel, str] = {
    EvidenceChannel.MANIFEST: "Case-insensitive search of AndroidManifest.xml",
    EvidenceChannel.RESOURCES: "Case-insensitive search of all resource XML files",
    EvidenceChannel.CODE: (
        "Decompiled code file names, plus a bounded content search of files "
        "whose path mentions the keyword, vendor, library or sdk"
    ),
    EvidenceChannel.NATIVE_LIBS: "Native library (.so) file names under lib/",
    EvidenceChannel.ASSETS: "Asset file names under assets/",
    EvidenceChannel.METADATA: "Library metadata file names under META-INF/",
}


def format_size(size: int) -> str:
    """Format a byte count for humans."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def slugify(value: str) -> str:
    """Lower-case a name and collapse every run outside [a-z0-9-] to one hyphen."""
    return SLUG_PATTERN.sub("-", value.lower())


def report_file_name(
    mode: ReportMode, facts: PackageManifestFacts, generated_at: datetime
) -> str:
    """Derive ``{mode}-android-{slug}-{timestamp}.txt`` for a report.

    The slug comes from the package identifier, or the display name when the
    identifier is unknown.
    """
    if facts.is_known:
        source = facts.package_name
    elif facts.app_name != UNKNOWN:
        source = facts.app_name
    else:
        source = UNKNOWN
    slug = slugify(source) or UNKNOWN
    return f"{mode.value}-android-{slug}-{generated_at.strftime(TIMESTAMP_FORMAT)}.txt"


def _write_new_file(output_dir: Path, name: str, text: str) -> Path:
    """Write text to a file that did not exist yet and return its path.

    Runs started within the same second derive the same name, so later ones
    get a numeric suffix instead of replacing an earlier report.
    """
    path = output_dir / name
    counter = 1
    while True:
        try:
            with path.open("x", encoding="utf-8") as f:
                f.write(text)
        except FileExistsError:
            counter += 1
            path = output_dir / f"{Path(name).stem}-{counter}{Path(name).suffix}"
            continue
        return path


def dependency_group(stamp: VersionStamp) -> str:
    """Return the report section a version stamp belongs to."""
    for title, prefixes in DEPENDENCY_GROUPS:
        if stamp.identifier.startswith(prefixes):
            return title
    return OTHER_GROUP


def aggregate_sdks(context: AnalysisContext) -> list[SdkEntry]:
    """Merge version stamps, library metadata and vendor-known native libraries.

    Entries are deduplicated by case-insensitive name and sorted
    alphabetically.
    """
    entries: dict[str, SdkEntry] = {}

    def add(entry: SdkEntry) -> None:
        entries.setdefault(entry.name.lower(), entry)

    metadata = context.metadata
    for stamp in metadata.version_stamps:
        add(
            SdkEntry(
                name=f"{stamp.group}:{stamp.artifact}",
                version=stamp.version or None,
                source=SdkSource.VERSION_STAMP,
            )
        )
    for props in metadata.library_properties:
        add(
            SdkEntry(
                name=props.name,
                version=props.version,
                source=SdkSource.LIBRARY_METADATA,
            )
        )
    for library in context.libraries:
        if library.vendor:
            name = library.description or library.name
            add(
                SdkEntry(
                    name=f"{name} ({library.vendor})",
                    version=library.version,
                    source=SdkSource.NATIVE_LIBRARY,
                )
            )

    return sorted(entries.values(), key=lambda e: (e.name.lower(), e.name))


class ReportAssembler:
    """Compose the deterministic text report of an analysis run."""

    def __init__(self, context: AnalysisContext):
        self.context = context
        self.sdks = aggregate_sdks(context)

    # Shared sections

    def _header(self, title: str, generated_at: datetime) -> list[str]:
        facts = self.context.metadata.facts
        lines = [
            RULE,
            title,
            RULE,
            f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
            "",
            "APPLICATION",
            SUBRULE,
            f"  Package:       {facts.package_name}",
            f"  App name:      {facts.app_name}",
            f"  Version:       {facts.version_name} (code {facts.version_code})",
            f"  Min SDK:       {facts.min_sdk}",
            f"  Target SDK:    {facts.target_sdk}",
            f"  Compile SDK:   {facts.compile_sdk}",
        ]
        merge = self.context.merge
        if merge is not None:
            lines.append(
                f"  Source:        split container {merge.container_path.name} "
                f"(base {merge.base_apk}, {len(merge.arch_splits)} architecture "
                f"split(s), {len(merge.other_splits)} other split(s))"
            )
        lines.append("")
        return lines

    def _section(self, title: str) -> list[str]:
        return [title, SUBRULE]

    def _sdk_section(self) -> list[str]:
        lines = self._section(f"ALL DETECTED SDKs ({len(self.sdks)})")
        if not self.sdks:
            lines.append("  No SDKs identified from version stamps or metadata.")
        for entry in self.sdks:
            version = f" {entry.version}" if entry.version else ""
            lines.append(f"  - {entry.name}{version} [{entry.source.value}]")
        lines.append("")
        return lines

    def _native_summary(self) -> list[str]:
        libraries = self.context.libraries
        lines = self._section(f"NATIVE LIBRARIES ({len(libraries)})")
        if not libraries:
            lines.append("  0 native libraries found.")
            lines.append("")
            return lines

        names = sorted({lib.name for lib in libraries})
        abis = sorted({lib.abi for lib in libraries})
        lines.append(
            f"  {len(libraries)} file(s), {len(names)} distinct name(s), "
            f"architectures: {', '.join(abis)}"
        )
        for name in names:
            lines.append(f"  - {name}")
        lines.append("")
        return lines

    def _native_details(self) -> list[str]:
        libraries = self.context.libraries
        lines = self._section(f"NATIVE LIBRARIES ({len(libraries)})")
        if not libraries:
            lines.append("  0 native libraries found.")
            lines.append("")
            return lines

        total = sum(lib.size for lib in libraries)
        lines.append(f"  {len(libraries)} file(s), {format_size(total)} total")
        for lib in libraries:
            lines.append(f"  - {lib.name} [{lib.abi}] {format_size(lib.size)}")
            lines.append(f"      Path:        {lib.path}")
            if lib.description:
                lines.append(f"      Description: {lib.description}")
            if lib.vendor:
                lines.append(f"      Vendor:      {lib.vendor}")
            if lib.version:
                lines.append(f"      Version:     {lib.version}")
        lines.append("")
        return lines

    def _footer(self) -> list[str]:
        mode = self.context.mode
        return [
            RULE,
            "TECHNICAL DETAILS",
            SUBRULE,
            f"  Tool:              sdkscope {__version__}",
            f"  Report type:       {mode.value}",
            "  Decompiler:        apktool (decoded tree) + ZIP extraction (raw tree)",
            "  Keyword matching:  case-insensitive literal substring",
            f"  Code scan limit:   {self.context.code_scan_limit} files per keyword",
            "  Evidence, not proof: absence of evidence does not prove absence.",
            RULE,
        ]

    # Inventory layout

    def _competitor_section(self) -> list[str]:
        matches = self.context.competitors
        lines = self._section(f"POTENTIAL COMPETITOR SDKs ({len(matches)})")
        if not matches:
            lines.append("  No potential competitor SDKs detected.")
        for match in matches:
            lines.append(
                f"  [WARNING] {match.library_name} may be {match.competitor} "
                f"({match.library_path}, {format_size(match.library_size)})"
            )
        if matches:
            lines.append(
                "  Name-based matches are potential only and need manual review."
            )
        lines.append("")
        return lines

    def _code_packages(self, metadata: AppMetadata) -> list[str]:
        packages = metadata.code_packages
        lines = self._section(f"CODE PACKAGES ({len(packages)})")
        if not packages:
            lines.append("  No decompiled code packages found.")
        for package in packages[:MAX_CODE_PACKAGES]:
            lines.append(f"  - {package.name} ({package.class_count} classes)")
        if len(packages) > MAX_CODE_PACKAGES:
            lines.append(f"  ... {len(packages) - MAX_CODE_PACKAGES} more")
        lines.append("")
        return lines

    def _dependency_versions(self, metadata: AppMetadata) -> list[str]:
        lines = self._section(
            f"DEPENDENCY VERSIONS ({len(metadata.version_stamps)})"
        )
        if not metadata.version_stamps:
            lines.append("  No version stamps found in META-INF.")

        groups: dict[str, list[VersionStamp]] = {}
        for stamp in metadata.version_stamps:
            groups.setdefault(dependency_group(stamp), []).append(stamp)

        titles = [title for title, _ in DEPENDENCY_GROUPS] + [OTHER_GROUP]
        for title in titles:
            stamps = groups.get(title)
            if not stamps:
                continue
            lines.append(f"  {title} ({len(stamps)})")
            for stamp in stamps:
                lines.append(f"    {stamp.group}:{stamp.artifact} {stamp.version}")

        if metadata.library_properties:
            lines.append(f"  Library metadata ({len(metadata.library_properties)})")
            for props in metadata.library_properties:
                lines.append(f"    {props.name} {props.version} ({props.path})")
        lines.append("")
        return lines

    def _kotlin(self, metadata: AppMetadata) -> list[str]:
        kotlin = metadata.kotlin
        lines = self._section("KOTLIN")
        if kotlin.present:
            version = kotlin.version or "version unknown"
            lines.append(f"  Kotlin runtime: present ({version})")
        else:
            lines.append("  Kotlin runtime: not detected")
        lines.append("")
        return lines

    def _permissions(self, metadata: AppMetadata) -> list[str]:
        lines = self._section(f"PERMISSIONS ({len(metadata.permissions)})")
        if not metadata.permissions:
            lines.append("  No permissions declared.")
        lines.extend(f"  - {permission}" for permission in metadata.permissions)
        lines.append("")
        return lines

    def _features(self, metadata: AppMetadata) -> list[str]:
        lines = self._section(f"HARDWARE FEATURES ({len(metadata.features)})")
        if not metadata.features:
            lines.append("  No hardware features declared.")
        for feature in metadata.features:
            flag = "required" if feature.required else "optional"
            lines.append(f"  - {feature.name} ({flag})")
        lines.append("")
        return lines

    def _build_info(self, metadata: AppMetadata) -> list[str]:
        lines = self._section("BUILD INFORMATION")
        if not metadata.build_info:
            lines.append("  No build provenance found.")
        for key, value in metadata.build_info.items():
            lines.append(f"  {key}: {value}")
        lines.append("")
        return lines

    def _assets(self, metadata: AppMetadata) -> list[str]:
        assets = metadata.assets
        lines = self._section("ASSETS & RESOURCES")
        lines.append(
            f"  Assets:     {assets.asset_files} file(s), "
            f"{format_size(assets.asset_bytes)}"
        )
        lines.append(
            f"  Resources:  {assets.resource_files} file(s), "
            f"{format_size(assets.resource_bytes)}"
        )
        locales = ", ".join(assets.locales) if assets.locales else "none"
        lines.append(f"  Locales ({len(assets.locales)}): {locales}")
        lines.append("")
        return lines

    def render_inventory(self, generated_at: datetime) -> str:
        metadata = self.context.metadata
        lines = self._header("SDK INVENTORY REPORT - ANDROID", generated_at)
        lines += self._sdk_section()
        lines += self._competitor_section()
        lines += self._native_details()
        lines += self._code_packages(metadata)
        lines += self._dependency_versions(metadata)
        lines += self._kotlin(metadata)
        lines += self._permissions(metadata)
        lines += self._features(metadata)
        lines += self._build_info(metadata)
        lines += self._assets(metadata)
        lines += self._footer()
        return "\n".join(lines) + "\n"

    # Detection layout

    def _keyword_banners(self) -> list[str]:
        lines = self._section("SEARCH RESULTS")
        for keyword, record in self.context.evidence.items():
            status = "FOUND" if record.found else "NOT FOUND"
            lines.append(f"  [{status}] {keyword}")
            if record.found:
                lines.append(f"    Found in: {record.locations}")
            for detail in record.channel_details():
                lines.append(f"    {detail}")
            lines.append("")

        found = self.context.found_keywords
        missing = self.context.missing_keywords
        lines.append(f"  Found ({len(found)}): {', '.join(found) or 'none'}")
        lines.append(f"  Not found ({len(missing)}): {', '.join(missing) or 'none'}")
        lines.append("")
        return lines

    def _methods(self) -> list[str]:
        lines = self._section("DETECTION METHODS")
        for index, channel in enumerate(EvidenceChannel, 1):
            lines.append(f"  {index}. {channel.label}: {DETECTION_METHODS[channel]}")
        lines.append("")
        return lines

    def _conclusion(self) -> list[str]:
        lines = self._section("CONCLUSION")
        found = self.context.found_keywords
        if found:
            lines.append(
                f"  This application contains SDK(s) matching: {', '.join(found)}."
            )
            lines.append(
                "  See the per-channel evidence above for the files supporting "
                "each finding."
            )
        else:
            searched = ", ".join(self.context.evidence) or "none"
            lines.append(
                f"  No evidence of the searched SDK(s) was found: {searched}."
            )
            lines.append(
                "  Obfuscated or renamed code may still contain them; the "
                "code content search is bounded."
            )
        lines.append("")
        return lines

    def render_detection(self, generated_at: datetime) -> str:
        lines = self._header("SDK DETECTION REPORT - ANDROID", generated_at)
        lines += self._keyword_banners()
        lines += self._sdk_section()
        lines += self._native_summary()
        lines += self._methods()
        lines += self._conclusion()
        lines += self._footer()
        return "\n".join(lines) + "\n"

    def render(self, generated_at: datetime) -> str:
        """Render the layout matching the context mode."""
        if self.context.mode is ReportMode.INVENTORY:
            return self.render_inventory(generated_at)
        return self.render_detection(generated_at)

    def assemble(self, generated_at: datetime | None = None) -> AnalysisReport:
        """Render the report without writing it."""
        generated_at = generated_at or datetime.now()
        return AnalysisReport(
            mode=self.context.mode,
            generated_at=generated_at,
            context=self.context,
            sdks=self.sdks,
            text=self.render(generated_at),
        )

    def write(
        self,
        output_dir: Path,
        output_name: str | None = None,
        generated_at: datetime | None = None,
    ) -> AnalysisReport:
        """Render the report and write it as UTF-8 text.

        Args:
            output_dir: Directory for the report file.
            output_name: Explicit file name, overwritten if present. Defaults
                to the derived ``{mode}-android-{slug}-{timestamp}.txt``, which
                gets a ``-2``, ``-3``, ... suffix when that file already exists.
            generated_at: Timestamp embedded in the report and file name.

        Returns:
            AnalysisReport with the rendered text and output path.

        Raises:
            ReportWriteError: If the directory or file cannot be written.
        """
        report = self.assemble(generated_at)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            if output_name:
                path = output_dir / output_name
                path.write_text(report.text, encoding="utf-8")
            else:
                name = report_file_name(
                    report.mode, self.context.metadata.facts, report.generated_at
                )
                path = _write_new_file(output_dir, name, report.text)
        except OSError as e:
            raise ReportWriteError(
                f"Failed to write report to {output_dir}: {e}"
            ) from e

        report.output_path = path
        return report
