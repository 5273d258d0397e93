"""Pydantic models for APK packages and the facts extracted from them."""

from pathlib import Path

from pydantic import BaseModel, Field

UNKNOWN = "unknown"


class MergeResult(BaseModel):
    """Result of reconstructing one APK from a split container."""

    container_path: Path
    """Split container that was merged."""

    output_path: Path
    """Merged APK written to disk."""

    base_apk: str
    """Container entry used as the base APK."""

    arch_splits: list[str] = Field(default_factory=list)
    """Architecture splits merged over the base, in merge order."""

    other_splits: list[str] = Field(default_factory=list)
    """Remaining config/feature splits, in merge order."""

    files_written: int = 0
    """Number of files in the merged APK."""

    collisions: int = 0
    """Paths written by more than one APK (last writer wins)."""


class DecodedPackage(BaseModel):
    """The two trees produced from one APK."""

    apk_path: Path
    """APK the trees were produced from."""

    decoded_dir: Path
    """apktool output: text manifest, res/, smali*/ directories."""

    raw_dir: Path
    """Plain ZIP extraction: lib/, assets/, META-INF/ with original bytes."""


class PackageManifestFacts(BaseModel):
    """Identity and platform configuration of the app."""

    package_name: str = UNKNOWN
    app_name: str = UNKNOWN
    version_name: str = UNKNOWN
    version_code: str = UNKNOWN
    min_sdk: str = UNKNOWN
    target_sdk: str = UNKNOWN
    compile_sdk: str = UNKNOWN

    @property
    def is_known(self) -> bool:
        """Check if the package identifier was found."""
        return self.package_name != UNKNOWN

    def missing_fields(self) -> list[str]:
        """Names of fields still holding the placeholder."""
        return [
            name for name, value in self.model_dump().items() if value == UNKNOWN
        ]


class VersionStamp(BaseModel):
    """Version recorded by a bundled library in META-INF/<id>.version."""

    identifier: str
    """Library identifier, e.g. ``androidx.core_core``."""

    version: str

    @property
    def group(self) -> str:
        """Maven group part of the identifier (text before the first ``_``)."""
        return self.identifier.split("_", 1)[0]

    @property
    def artifact(self) -> str:
        """Maven artifact part of the identifier."""
        parts = self.identifier.split("_", 1)
        return parts[1] if len(parts) > 1 else parts[0]


class LibraryProperties(BaseModel):
    """A ``*.properties`` library descriptor carrying a version."""

    name: str
    """``client`` value, or the file stem when absent."""

    version: str

    path: str
    """Path relative to the raw tree."""


class HardwareFeature(BaseModel):
    """A ``<uses-feature>`` declaration."""

    name: str
    required: bool = True


class KotlinInfo(BaseModel):
    """Kotlin runtime presence."""

    present: bool = False
    version: str | None = None


class AssetSummary(BaseModel):
    """File and byte counts for assets and resources."""

    asset_files: int = 0
    asset_bytes: int = 0
    resource_files: int = 0
    resource_bytes: int = 0
    locales: list[str] = Field(default_factory=list)
    """Distinct locale qualifiers from res/values-* directories."""


class CodePackage(BaseModel):
    """A top-level code package and the number of classes under it."""

    name: str
    """Dotted package prefix, e.g. ``com.pspdfkit``."""

    class_count: int


class AppMetadata(BaseModel):
    """Everything the metadata extractor reads from the two trees."""

    facts: PackageManifestFacts = Field(default_factory=PackageManifestFacts)
    version_stamps: list[VersionStamp] = Field(default_factory=list)
    library_properties: list[LibraryProperties] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    features: list[HardwareFeature] = Field(default_factory=list)
    build_info: dict[str, str] = Field(default_factory=dict)
    kotlin: KotlinInfo = Field(default_factory=KotlinInfo)
    assets: AssetSummary = Field(default_factory=AssetSummary)
    code_packages: list[CodePackage] = Field(default_factory=list)
