"""
Pydantic models for enriched papers.

``EnrichmentResult`` is what the LLM returns per PMID; ``Paper`` is the final,
immutable record handed to the API and CLI.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from anesthesia_hub.models.journal import CanonicalJournal


class Category(str, Enum):
    """Study category assigned by the enrichment step."""

    REVIEW = "Review"
    ORIGINAL_ARTICLE = "Original Article"


class EnrichmentResult(BaseModel):
    """AI-generated fields for one article, keyed by PMID."""

    model_config = ConfigDict(populate_by_name=True)

    pmid: str = Field(min_length=1, validation_alias="identifier")
    category: Category
    clinical_impact: str = Field(validation_alias="clinicalImpact")
    summary: str
    keywords: list[str] = []

    @field_validator("pmid", mode="before")
    @classmethod
    def coerce_pmid(cls, value: object) -> object:
        # Models occasionally return the PMID as a number
        return str(value).strip() if isinstance(value, (int, str)) else value

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value: object) -> object:
        if isinstance(value, str):
            for category in Category:
                if value.strip().lower() == category.value.lower():
                    return category
        return value


class Paper(BaseModel):
    """A PubMed article merged with its enrichment. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    authors: list[str] = []
    journal: CanonicalJournal
    date: str = ""
    url: str
    abstract: str | None = None
    category: Category
    clinical_impact: str
    summary: str
    tags: list[str] = []
    keywords: list[str] = []


class DateRange(BaseModel):
    """Inclusive publication window for a search."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    def descriptor(self) -> str:
        return f"{self.start.isoformat()}:{self.end.isoformat()}"


# ------------------------------------------------------------------
# Aggregates
# ------------------------------------------------------------------


class KeywordCount(BaseModel):
    text: str
    count: int


class NamedCount(BaseModel):
    name: str
    value: int


class ResearchStats(BaseModel):
    """Paper totals broken down by category and journal."""

    total_papers: int
    by_category: list[NamedCount] = []
    by_journal: list[NamedCount] = []
