from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PagePayload(BaseModel):
    """Analysis result for one page, as stored in the cache."""

    title: str
    description: str
    quality_score: int = Field(ge=1, le=10)
    category: str
    last_modified: str | None = None


class DiscoveredPage(BaseModel):
    """One page in an analysis result set. Immutable once returned."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str
    description: str
    quality_score: int = Field(ge=1, le=10)
    category: str
    last_modified: str | None = None

    @classmethod
    def from_payload(cls, url: str, payload: PagePayload) -> DiscoveredPage:
        return cls(url=url, **payload.model_dump())


class ContentAnalysis(BaseModel):
    """Output of the content-analysis collaborator."""

    title: str
    description: str
    quality_score: int = Field(ge=1, le=10)
    category: str
    ai_enhanced: bool = False  # True only when an AI model produced the analysis


class DedupResult(BaseModel):
    kept_pages: list[DiscoveredPage]
    duplicates_removed: int  # Exact + near duplicates collapsed
    low_value_removed: int  # Rejected by the affiliate/pagination/low-value filters
