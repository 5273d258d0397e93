"""Pydantic models shared across sdkscope."""

from sdkscope.models.analyze import (
    ChannelHits,
    CompetitorMatch,
    EvidenceChannel,
    EvidenceRecord,
    LibraryReference,
    NativeLibraryRecord,
    SdkEntry,
    SdkSource,
)
from sdkscope.models.apk import (
    AppMetadata,
    DecodedPackage,
    MergeResult,
    PackageManifestFacts,
)
from sdkscope.models.report import AnalysisContext, AnalysisReport, ReportMode

__all__ = [
    "AnalysisContext",
    "AnalysisReport",
    "AppMetadata",
    "ChannelHits",
    "CompetitorMatch",
    "DecodedPackage",
    "EvidenceChannel",
    "EvidenceRecord",
    "LibraryReference",
    "MergeResult",
    "NativeLibraryRecord",
    "PackageManifestFacts",
    "ReportMode",
    "SdkEntry",
    "SdkSource",
]
