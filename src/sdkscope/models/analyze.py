"""Pydantic models for SDK evidence and library detection results."""

from enum import StrEnum

from pydantic import BaseModel, Field, computed_field

# Maximum number of file paths kept per channel for reporting
MAX_REPORTED_FILES = 10


class EvidenceChannel(StrEnum):
    """Independent search strategies, in the order they are probed."""

    MANIFEST = "manifest"
    RESOURCES = "resources"
    CODE = "code"
    NATIVE_LIBS = "native_libs"
    ASSETS = "assets"
    METADATA = "metadata"

    @property
    def label(self) -> str:
        """Human-readable channel name."""
        return CHANNEL_LABELS[self]


CHANNEL_LABELS: dict[EvidenceChannel, str] = {
    EvidenceChannel.MANIFEST: "AndroidManifest.xml",
    EvidenceChannel.RESOURCES: "Resource XML files",
    EvidenceChannel.CODE: "Decompiled code",
    EvidenceChannel.NATIVE_LIBS: "Native library names",
    EvidenceChannel.ASSETS: "Asset files",
    EvidenceChannel.METADATA: "Library metadata (META-INF)",
}


class ChannelHits(BaseModel):
    """Hit count and matching files for one evidence channel."""

    count: int = Field(default=0, ge=0)
    files: list[str] = Field(default_factory=list)
    """Distinct matching paths, relative to the scanned tree, sorted."""

    def add(self, hits: int, path: str | None = None) -> None:
        """Add hits, optionally attributing them to a file.

        Raises:
            ValueError: If hits is negative (counts never decrease).
        """
        if hits < 0:
            raise ValueError(f"Hit count cannot be negative: {hits}")
        self.count += hits
        if path is not None and hits > 0 and path not in self.files:
            self.files.append(path)
            self.files.sort()


class EvidenceRecord(BaseModel):
    """Result of searching all channels for one keyword."""

    keyword: str

    channels: dict[EvidenceChannel, ChannelHits] = Field(
        default_factory=lambda: {channel: ChannelHits() for channel in EvidenceChannel}
    )

    def hits(self, channel: EvidenceChannel) -> ChannelHits:
        """Return the hits of a channel."""
        return self.channels.setdefault(channel, ChannelHits())

    def count(self, channel: EvidenceChannel) -> int:
        """Return the hit count of a channel."""
        return self.hits(channel).count

    @computed_field  # type: ignore[prop-decorator]
    @property
    def found(self) -> bool:
        """True iff at least one channel has a positive count."""
        return any(hits.count > 0 for hits in self.channels.values())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_hits(self) -> int:
        """Sum of all channel counts."""
        return sum(hits.count for hits in self.channels.values())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def locations(self) -> str:
        """One-line summary of the channels that matched."""
        parts = [
            f"{channel.label} ({self.count(channel)})"
            for channel in EvidenceChannel
            if self.count(channel) > 0
        ]
        return ", ".join(parts) if parts else "not found"

    def channel_details(self) -> list[str]:
        """Detail lines for every channel, in probe order."""
        lines = []
        for channel in EvidenceChannel:
            hits = self.hits(channel)
            line = f"{channel.label}: {hits.count} hit(s)"
            if hits.files:
                shown = hits.files[:MAX_REPORTED_FILES]
                line += f" in {', '.join(shown)}"
                if len(hits.files) > len(shown):
                    line += f" (+{len(hits.files) - len(shown)} more)"
            lines.append(line)
        return lines


class NativeLibraryRecord(BaseModel):
    """One native binary under the package's lib/ directories."""

    name: str
    """File name, e.g. ``libpspdfkit.so``."""

    abi: str
    """Architecture directory, e.g. ``arm64-v8a``."""

    path: str
    """Path relative to the raw tree, e.g. ``lib/arm64-v8a/libpspdfkit.so``."""

    size: int
    """Size in bytes."""

    description: str | None = None
    vendor: str | None = None
    version: str | None = None


class LibraryReference(BaseModel):
    """One row of the library reference database."""

    name: str
    description: str
    vendor: str
    version: str | None = None


class CompetitorMatch(BaseModel):
    """A native library whose name resembles a competitor product."""

    library_name: str
    library_path: str
    library_size: int
    competitor: str


class SdkSource(StrEnum):
    """Where an SDK entry was discovered."""

    VERSION_STAMP = "version-stamp"
    LIBRARY_METADATA = "library-metadata"
    NATIVE_LIBRARY = "native-library"


class SdkEntry(BaseModel):
    """One entry of the aggregated SDK list."""

    name: str
    version: str | None = None
    source: SdkSource
