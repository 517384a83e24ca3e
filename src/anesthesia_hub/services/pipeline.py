"""
Research ingestion pipeline.

search -> fetch -> normalize journal + infer tags -> enrich -> merge.

Source failures (``DataSourceError``) and missing AI credentials
(``LLMConfigurationError``) abort the run. Any other enrichment failure is
logged and the batch falls back to default enrichment.
"""

import logging

from pydantic import ValidationError

from anesthesia_hub.constants import (
    EXCLUDED_PUBLICATION_TYPES,
    RESEARCH_LOOKBACK_DAYS,
    RESEARCH_MAX_RESULTS,
)
from anesthesia_hub.data_sources.pubmed import PubMedClient
from anesthesia_hub.models.journal import JournalName
from anesthesia_hub.models.model_paper import Category, DateRange, EnrichmentResult, Paper
from anesthesia_hub.models.model_pubmed import IntermediateRecord, RawBibliographicRecord
from anesthesia_hub.services.enrichment import EnrichmentClient
from anesthesia_hub.services.journal_normalizer import resolve_journal
from anesthesia_hub.services.llm import LLMConfigurationError, LLMError
from anesthesia_hub.services.merge import merge_enrichments
from anesthesia_hub.services.tagging import infer_tags

logger = logging.getLogger(__name__)


def to_intermediate(raw: RawBibliographicRecord) -> IntermediateRecord:
    """Normalize the journal and infer tags for one fetched record."""
    abstract = raw.abstract
    return IntermediateRecord(
        pmid=raw.pmid,
        title=raw.title,
        abstract=abstract,
        journal=resolve_journal(raw.journal_title, raw.journal_abbreviation),
        authors=raw.author_names,
        date=raw.pub_date.formatted(),
        url=raw.url,
        tags=infer_tags(raw.title, abstract),
    )


class ResearchPipeline:
    """Runs the full PubMed -> AI enrichment flow for one query shape."""

    def __init__(self, pubmed: PubMedClient, enrichment: EnrichmentClient):
        self.pubmed = pubmed
        self.enrichment = enrichment

    async def run_research(
        self,
        journal: JournalName | None = None,
        date_range: DateRange | None = None,
        max_results: int = RESEARCH_MAX_RESULTS,
    ) -> list[Paper]:
        """Recent papers for one journal (or all), enriched."""
        self.enrichment.ensure_configured()
        pmids = await self.pubmed.search_pmids(
            journal=journal,
            days=RESEARCH_LOOKBACK_DAYS,
            max_results=max_results,
            date_range=date_range,
        )
        return await self._build(pmids)

    async def run_guidelines(self) -> list[Paper]:
        """Guideline and consensus papers; always categorized as reviews."""
        self.enrichment.ensure_configured()
        pmids = await self.pubmed.search_guideline_pmids()
        papers = await self._build(pmids)
        return [p.model_copy(update={"category": Category.REVIEW}) for p in papers]

    async def _build(self, pmids: list[str]) -> list[Paper]:
        if not pmids:
            logger.info("Search returned no PMIDs; skipping fetch")
            return []

        raw_records = await self.pubmed.fetch_articles(pmids)
        order = {pmid: i for i, pmid in enumerate(pmids)}
        raw_records.sort(key=lambda r: order.get(r.pmid, len(order)))

        records: dict[str, IntermediateRecord] = {}
        for raw in raw_records:
            if raw.pmid in records:
                continue
            excluded = set(raw.publication_types) & set(EXCLUDED_PUBLICATION_TYPES)
            if excluded:
                logger.info("Skipping PMID %s (%s)", raw.pmid, ", ".join(sorted(excluded)))
                continue
            try:
                records[raw.pmid] = to_intermediate(raw)
            except ValidationError as e:
                logger.warning("Skipping PMID %s: %s", raw.pmid, e)
        if not records:
            return []

        batch = list(records.values())
        enrichments = await self._enrich(batch)
        return merge_enrichments(batch, enrichments)

    async def _enrich(self, records: list[IntermediateRecord]) -> list[EnrichmentResult]:
        try:
            return await self.enrichment.enrich(records)
        except LLMConfigurationError:
            raise
        except LLMError as e:
            logger.warning(
                "Enrichment failed for %d records, using defaults: %s", len(records), e
            )
            return []
