"""Data models for the Anesthesia Research Hub."""

from anesthesia_hub.models.journal import (
    CanonicalJournal,
    JournalName,
    KnownJournal,
    OtherJournal,
)
from anesthesia_hub.models.model_paper import (
    Category,
    DateRange,
    EnrichmentResult,
    Paper,
)
from anesthesia_hub.models.model_pubmed import IntermediateRecord, RawBibliographicRecord

__all__ = [
    "CanonicalJournal",
    "Category",
    "DateRange",
    "EnrichmentResult",
    "IntermediateRecord",
    "JournalName",
    "KnownJournal",
    "OtherJournal",
    "Paper",
    "RawBibliographicRecord",
]
