"""
Merge & assembly.

Joins enrichment results onto intermediate records by PMID. Every record yields
exactly one ``Paper``; records without a usable enrichment get fixed defaults.
"""

import logging

from anesthesia_hub.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_CLINICAL_IMPACT,
    DEFAULT_SUMMARY,
    SUMMARY_FALLBACK_CHARS,
)
from anesthesia_hub.models.model_paper import Category, EnrichmentResult, Paper
from anesthesia_hub.models.model_pubmed import IntermediateRecord

logger = logging.getLogger(__name__)


def default_enrichment(record: IntermediateRecord) -> EnrichmentResult:
    """Fallback enrichment used when the AI produced nothing for ``record``."""
    summary = (record.abstract or "")[:SUMMARY_FALLBACK_CHARS].strip()
    return EnrichmentResult(
        pmid=record.pmid,
        category=Category(DEFAULT_CATEGORY),
        clinical_impact=DEFAULT_CLINICAL_IMPACT,
        summary=summary or DEFAULT_SUMMARY,
        keywords=[],
    )


def assemble_paper(record: IntermediateRecord, enrichment: EnrichmentResult) -> Paper:
    return Paper(
        id=record.pmid,
        title=record.title,
        authors=record.authors,
        journal=record.journal,
        date=record.date,
        url=record.url,
        abstract=record.abstract,
        category=enrichment.category,
        clinical_impact=enrichment.clinical_impact,
        summary=enrichment.summary,
        tags=record.tags,
        keywords=enrichment.keywords,
    )


def merge_enrichments(
    records: list[IntermediateRecord], enrichments: list[EnrichmentResult]
) -> list[Paper]:
    """One Paper per record, in record order, defaulting missing enrichments."""
    by_pmid: dict[str, EnrichmentResult] = {}
    for enrichment in enrichments:
        by_pmid.setdefault(enrichment.pmid, enrichment)

    papers = []
    missing = 0
    for record in records:
        enrichment = by_pmid.get(record.pmid)
        if enrichment is None:
            missing += 1
            enrichment = default_enrichment(record)
        papers.append(assemble_paper(record, enrichment))

    if missing:
        logger.warning(
            "Used default enrichment for %d of %d papers", missing, len(records)
        )
    return papers
