"""Pydantic models for an analysis run and its final report."""

from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from sdkscope.models.analyze import (
    CompetitorMatch,
    EvidenceRecord,
    NativeLibraryRecord,
    SdkEntry,
)
from sdkscope.models.apk import AppMetadata, DecodedPackage, MergeResult


class ReportMode(StrEnum):
    """Report layout, also used as the file name prefix."""

    INVENTORY = "inventory"
    DETECTION = "detection"


class AnalysisContext(BaseModel):
    """Accumulator for one analysis run, passed through every component."""

    mode: ReportMode
    keywords: list[str] = Field(default_factory=list)
    """Keywords requested in detection mode, in request order."""

    package: DecodedPackage | None = None
    merge: MergeResult | None = None
    metadata: AppMetadata = Field(default_factory=AppMetadata)
    libraries: list[NativeLibraryRecord] = Field(default_factory=list)
    evidence: dict[str, EvidenceRecord] = Field(default_factory=dict)
    """Keyword to evidence record, in request order."""

    competitors: list[CompetitorMatch] = Field(default_factory=list)
    code_scan_limit: int = 50

    @property
    def found_keywords(self) -> list[str]:
        """Keywords with evidence, in request order."""
        return [kw for kw, record in self.evidence.items() if record.found]

    @property
    def missing_keywords(self) -> list[str]:
        """Keywords without evidence, in request order."""
        return [kw for kw, record in self.evidence.items() if not record.found]


class AnalysisReport(BaseModel):
    """Final deliverable of one run."""

    mode: ReportMode
    generated_at: datetime
    context: AnalysisContext
    sdks: list[SdkEntry] = Field(default_factory=list)
    text: str
    """Rendered report body."""

    output_path: Path | None = None
    """File the text was written to."""
