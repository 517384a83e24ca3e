"""
Research service: the cached entry point used by the API and CLI.

Construct one ``ResearchService`` per process (``ResearchService.from_settings``)
and pass it to whatever serves requests. Each data class has its own cache tier:
research digests (24 h), guideline listings (1 week), deep critiques and weekly
briefings (24 h). Raw NCBI responses are cached inside ``PubMedClient`` (1 h).
"""

import logging
import time
from collections.abc import Callable
from datetime import date

from anesthesia_hub.config import Settings, get_settings
from anesthesia_hub.constants import WEEKLY_REPORT_DAYS
from anesthesia_hub.data_sources.pubmed import PubMedClient, lookback_range
from anesthesia_hub.models.journal import JournalName
from anesthesia_hub.models.model_paper import (
    DateRange,
    KeywordCount,
    Paper,
    ResearchStats,
)
from anesthesia_hub.services.commentary import CommentaryWriter
from anesthesia_hub.services.enrichment import EnrichmentClient
from anesthesia_hub.services.insights import keyword_frequencies, research_stats
from anesthesia_hub.services.journal_normalizer import match_journal
from anesthesia_hub.services.llm import LLMClient
from anesthesia_hub.services.pipeline import ResearchPipeline
from anesthesia_hub.utils.cache import TTLCache, cache_key

logger = logging.getLogger(__name__)

GUIDELINES_KEY = "guidelines"

# Paper fields that feed the critique prompt
DEEP_SUMMARY_FIELDS = {"id", "title", "journal", "authors", "abstract", "summary"}


def resolve_journal_filter(journal: str | JournalName | None) -> JournalName | None:
    """Map a label or abbreviation from the configured set; reject anything else."""
    if journal is None or isinstance(journal, JournalName):
        return journal
    if not journal.strip() or journal.strip().lower() == "all":
        return None
    matched = match_journal(journal)
    if matched is None:
        raise ValueError(f"Unknown journal: {journal!r}")
    return matched


def research_key(journal: JournalName | None, date_range: DateRange | None) -> str:
    """Cache key: (journal filter or "all", date range or "default")."""
    journal_part = journal.value if journal else "all"
    range_part = date_range.descriptor() if date_range else "default"
    return f"research:{journal_part}:{range_part}"


def deep_summary_key(paper: Paper) -> str:
    """Cache key over everything the critique is written from, not just the id."""
    fields = paper.model_dump(mode="json", include=DEEP_SUMMARY_FIELDS)
    return f"deep:{paper.id}:{cache_key('deep', fields)}"


def weekly_report_key(window: DateRange, papers: list[Paper]) -> str:
    """Briefing key: the window plus the exact papers it summarizes."""
    digest = cache_key("weekly", {"ids": [p.id for p in papers]})
    return f"weekly:{window.descriptor()}:{digest}"


class ResearchService:
    """Cached access to research digests, guidelines and LLM commentary."""

    def __init__(
        self,
        pipeline: ResearchPipeline,
        commentary: CommentaryWriter,
        *,
        research_cache: TTLCache | None = None,
        guideline_cache: TTLCache | None = None,
        commentary_cache: TTLCache | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.pipeline = pipeline
        self.commentary = commentary
        self.research_cache = (
            research_cache if research_cache is not None else TTLCache(name="research")
        )
        self.guideline_cache = (
            guideline_cache if guideline_cache is not None else TTLCache(name="guidelines")
        )
        self.commentary_cache = (
            commentary_cache if commentary_cache is not None else TTLCache(name="commentary")
        )
        self._today = today

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "ResearchService":
        """Wire real clients and cache tiers from configuration."""
        settings = settings or get_settings()
        llm = LLMClient(
            api_key=settings.anthropic_api_key,
            model=settings.llm_model,
            small_model=settings.small_llm_model,
        )
        pubmed = PubMedClient(
            api_key=settings.ncbi_api_key,
            raw_cache=TTLCache(
                name="pubmed_raw", ttl=settings.raw_cache_ttl_seconds, clock=clock
            ),
        )
        return cls(
            ResearchPipeline(pubmed, EnrichmentClient(llm)),
            CommentaryWriter(llm),
            research_cache=TTLCache(
                name="research", ttl=settings.research_cache_ttl_seconds, clock=clock
            ),
            guideline_cache=TTLCache(
                name="guidelines", ttl=settings.guideline_cache_ttl_seconds, clock=clock
            ),
            commentary_cache=TTLCache(
                name="commentary", ttl=settings.research_cache_ttl_seconds, clock=clock
            ),
        )

    async def close(self) -> None:
        await self.pipeline.pubmed.close()

    # -- Research ------------------------------------------------------------

    async def get_latest_research(
        self,
        journal: str | JournalName | None = None,
        date_range: DateRange | None = None,
        *,
        wait: bool = True,
    ) -> list[Paper]:
        """Enriched recent papers, from cache when fresh.

        With ``wait=False`` a concurrent refresh of the same key raises
        ``RefreshInProgressError`` instead of waiting for it.
        """
        journal_filter = resolve_journal_filter(journal)
        key = research_key(journal_filter, date_range)
        return await self.research_cache.get_or_compute(
            key,
            lambda: self.pipeline.run_research(journal_filter, date_range),
            wait=wait,
        )

    def force_refresh(
        self,
        journal: str | JournalName | None = None,
        date_range: DateRange | None = None,
    ) -> bool:
        """Invalidate one research entry; the next read re-runs the pipeline."""
        key = research_key(resolve_journal_filter(journal), date_range)
        return self.research_cache.invalidate(key)

    # -- Guidelines ----------------------------------------------------------

    async def get_guidelines(self, *, wait: bool = True) -> list[Paper]:
        return await self.guideline_cache.get_or_compute(
            GUIDELINES_KEY, self.pipeline.run_guidelines, wait=wait
        )

    def force_refresh_guidelines(self) -> bool:
        return self.guideline_cache.invalidate(GUIDELINES_KEY)

    # -- Commentary ----------------------------------------------------------

    async def get_deep_summary(self, paper: Paper) -> str:
        return await self.commentary_cache.get_or_compute(
            deep_summary_key(paper), lambda: self.commentary.deep_summary(paper)
        )

    async def get_weekly_report(self) -> str:
        """Markdown briefing over the last week of papers from all journals."""
        window = lookback_range(WEEKLY_REPORT_DAYS, today=self._today())
        papers = await self.get_latest_research(date_range=window)
        return await self.commentary_cache.get_or_compute(
            weekly_report_key(window, papers),
            lambda: self.commentary.weekly_report(papers, window.start, window.end),
        )

    # -- Insights ------------------------------------------------------------

    async def get_keyword_insights(
        self, journal: str | JournalName | None = None, top_n: int = 10
    ) -> list[KeywordCount]:
        return keyword_frequencies(await self.get_latest_research(journal), top_n)

    async def get_stats(self, journal: str | JournalName | None = None) -> ResearchStats:
        return research_stats(await self.get_latest_research(journal))
