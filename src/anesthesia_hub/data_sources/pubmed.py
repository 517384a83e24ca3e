"""
PubMed E-utilities client.

Three methods:
  1. search_pmids          : PMIDs of recent articles in the journal set (esearch)
  2. search_guideline_pmids: PMIDs of guidelines / consensus statements (esearch)
  3. fetch_articles        : Full records for given PMIDs (efetch XML)
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import date, timedelta
from typing import Any

from pydantic import ValidationError

from anesthesia_hub.config import get_settings
from anesthesia_hub.constants import (
    EXCLUDED_PUBLICATION_TYPES,
    GUIDELINE_LOOKBACK_DAYS,
    GUIDELINE_MAX_RESULTS,
    GUIDELINE_PUBLICATION_TYPES,
    NCBI_RPS_ANONYMOUS,
    NCBI_RPS_WITH_KEY,
    PUBMED_ARTICLE_URL,
    PUBMED_FETCH_BATCH_SIZE,
    PUBMED_FETCH_URL,
    PUBMED_SEARCH_URL,
    PUBMED_USER_AGENT,
    RESEARCH_LOOKBACK_DAYS,
    RESEARCH_MAX_RESULTS,
)
from anesthesia_hub.data_sources.base_client import (
    BaseClient,
    CacheConfig,
    ClientConfig,
    DataSourceError,
    RateLimitConfig,
    RequestContext,
)
from anesthesia_hub.models.journal import JOURNAL_ABBREVIATIONS, JournalName
from anesthesia_hub.models.model_paper import DateRange
from anesthesia_hub.models.model_pubmed import (
    AbstractSection,
    AuthorEntry,
    CollectiveAuthor,
    PersonAuthor,
    PublicationDate,
    RawBibliographicRecord,
)
from anesthesia_hub.utils.cache import TTLCache

logger = logging.getLogger("anesthesia_hub.data_sources.pubmed")


# ------------------------------------------------------------------
# Query builders
# ------------------------------------------------------------------


def build_journal_query(journal: JournalName | None = None) -> str:
    """OR-list of [ta] clauses for one journal or the whole configured set."""
    journals = [journal] if journal is not None else list(JournalName)
    joined = " OR ".join(f'"{JOURNAL_ABBREVIATIONS[j]}"[ta]' for j in journals)
    return f"({joined})"


def build_date_clause(date_range: DateRange) -> str:
    return (
        f'("{date_range.start:%Y/%m/%d}"[dp] : "{date_range.end:%Y/%m/%d}"[dp])'
    )


def build_research_term(journal: JournalName | None, date_range: DateRange) -> str:
    """Journal membership AND date window, minus excluded publication types."""
    term = f"{build_journal_query(journal)} AND {build_date_clause(date_range)}"
    for pub_type in EXCLUDED_PUBLICATION_TYPES:
        term += f' NOT "{pub_type}"[pt]'
    return term


def build_guideline_term(date_range: DateRange) -> str:
    """Journal membership AND date window AND a guideline-like publication type."""
    types = " OR ".join(f'"{t}"[pt]' for t in GUIDELINE_PUBLICATION_TYPES)
    return (
        f"{build_journal_query()} AND {build_date_clause(date_range)} AND ({types})"
    )


def lookback_range(days: int, today: date | None = None) -> DateRange:
    """The ``days``-long window ending today."""
    end = today or date.today()
    return DateRange(start=end - timedelta(days=days), end=end)


# ------------------------------------------------------------------
# Client
# ------------------------------------------------------------------


class PubMedClient(BaseClient):
    """Client for querying PubMed/NCBI E-utilities."""

    def __init__(
        self,
        api_key: str | None = None,
        config: ClientConfig | None = None,
        *,
        raw_cache: TTLCache | None = None,
        **kwargs: Any,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.ncbi_api_key
        if config is None:
            rps = NCBI_RPS_WITH_KEY if self._api_key else NCBI_RPS_ANONYMOUS
            config = ClientConfig(
                rate_limit=RateLimitConfig(requests_per_second=rps, burst=int(rps)),
                cache=CacheConfig(ttl_seconds=settings.raw_cache_ttl_seconds),
                timeout_seconds=settings.source_timeout_seconds,
            )
        super().__init__(config, raw_cache=raw_cache, **kwargs)

    @property
    def _source_name(self) -> str:
        return "pubmed"

    # -- Public methods -------------------------------------------------------

    async def search_pmids(
        self,
        journal: JournalName | None = None,
        days: int = RESEARCH_LOOKBACK_DAYS,
        max_results: int = RESEARCH_MAX_RESULTS,
        date_range: DateRange | None = None,
    ) -> list[str]:
        """Return PMIDs of non-letter articles in the journal set, newest first.

        An explicit ``date_range`` takes precedence over ``days``.
        """
        window = date_range or lookback_range(days)
        term = build_research_term(journal, window)
        return await self._esearch(term, max_results, method="search_pmids")

    async def search_guideline_pmids(
        self,
        days: int = GUIDELINE_LOOKBACK_DAYS,
        max_results: int = GUIDELINE_MAX_RESULTS,
    ) -> list[str]:
        """Return PMIDs of guidelines and consensus statements over a long lookback."""
        term = build_guideline_term(lookback_range(days))
        return await self._esearch(term, max_results, method="search_guideline_pmids")

    async def fetch_articles(
        self, pmids: list[str], batch_size: int = PUBMED_FETCH_BATCH_SIZE
    ) -> list[RawBibliographicRecord]:
        """Fetch and parse full records for the given PMIDs, in batches."""
        if not pmids:
            return []

        records: list[RawBibliographicRecord] = []
        for i in range(0, len(pmids), batch_size):
            batch = pmids[i : i + batch_size]
            params = self._with_api_key(
                {
                    "db": "pubmed",
                    "id": ",".join(batch),
                    "retmode": "xml",
                    "rettype": "abstract",
                }
            )
            xml_text = await self._rest_get_xml(
                PUBMED_FETCH_URL,
                params,
                cache_namespace="pubmed_fetch",
                cache_params={"ids": batch},
                context=RequestContext(
                    source=self._source_name,
                    method="fetch_articles",
                    params={"count": len(batch)},
                ),
            )
            records.extend(self._parse_pubmed_xml(xml_text))

        return records

    # -- Private helpers ------------------------------------------------------

    async def _esearch(self, term: str, max_results: int, method: str) -> list[str]:
        params = self._with_api_key(
            {
                "db": "pubmed",
                "term": term,
                "retmax": max_results,
                "retmode": "json",
                "sort": "pub_date",
            }
        )
        data = await self._rest_get(
            PUBMED_SEARCH_URL,
            params,
            cache_namespace="pubmed_search",
            cache_params={"term": term, "retmax": max_results},
            context=RequestContext(
                source=self._source_name, method=method, params={"term": term}
            ),
        )
        if not isinstance(data, dict) or "esearchresult" not in data:
            raise DataSourceError(self._source_name, "Malformed esearch response")

        result = data["esearchresult"]
        if "ERROR" in result:
            raise DataSourceError(self._source_name, f"esearch error: {result['ERROR']}")

        pmids = [str(p) for p in result.get("idlist", []) if str(p).strip()]
        unique = list(dict.fromkeys(pmids))
        logger.info("esearch [%s] returned %d PMIDs", method, len(unique))
        return unique

    def _with_api_key(self, params: dict[str, Any]) -> dict[str, Any]:
        if self._api_key:
            params["api_key"] = self._api_key
        return params

    async def _request(self, url: str, **kwargs: Any) -> Any:
        headers = {"User-Agent": PUBMED_USER_AGENT, **(kwargs.pop("headers", None) or {})}
        return await super()._request(url, headers=headers, **kwargs)

    # -- XML parsing ----------------------------------------------------------

    def _parse_pubmed_xml(self, xml_text: str) -> list[RawBibliographicRecord]:
        """Parse an efetch response into records, skipping malformed articles."""
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise DataSourceError(self._source_name, f"Failed to parse XML: {e}")

        records = []
        for article_elem in root.iter("PubmedArticle"):
            try:
                record = self._parse_article(article_elem)
            except ValidationError as e:
                logger.warning("Skipping malformed PubMed article: %s", e)
                continue
            if record is not None:
                records.append(record)
        return records

    def _parse_article(self, elem: ET.Element) -> RawBibliographicRecord | None:
        pmid = self._xml_text(elem, "MedlineCitation/PMID") or self._xml_text(
            elem, ".//PMID"
        )
        if not pmid:
            return None

        article = elem.find(".//Article")
        if article is None:
            article = ET.Element("Article")

        return RawBibliographicRecord(
            pmid=pmid,
            title=self._xml_text(article, "ArticleTitle") or "",
            abstract_sections=self._parse_abstract(article),
            journal_title=self._xml_text(article, "Journal/Title") or "",
            journal_abbreviation=(
                self._xml_text(elem, ".//MedlineJournalInfo/MedlineTA")
                or self._xml_text(article, "Journal/ISOAbbreviation")
                or ""
            ),
            authors=self._parse_authors(article),
            pub_date=self._parse_pub_date(article),
            url=PUBMED_ARTICLE_URL.format(pmid=pmid),
            publication_types=[
                t
                for t in (
                    self._element_text(p)
                    for p in article.findall("PublicationTypeList/PublicationType")
                )
                if t
            ],
        )

    def _parse_abstract(self, article: ET.Element) -> list[AbstractSection]:
        sections = []
        for abs_elem in article.findall("Abstract/AbstractText"):
            text = self._element_text(abs_elem)
            if text:
                sections.append(
                    AbstractSection(text=text, label=abs_elem.get("Label") or None)
                )
        return sections

    def _parse_authors(self, article: ET.Element) -> list[AuthorEntry]:
        authors: list[AuthorEntry] = []
        for author in article.findall("AuthorList/Author"):
            last_name = self._xml_text(author, "LastName")
            if last_name:
                authors.append(
                    PersonAuthor(
                        last_name=last_name,
                        initials=self._xml_text(author, "Initials"),
                        fore_name=self._xml_text(author, "ForeName"),
                    )
                )
                continue
            collective = self._xml_text(author, "CollectiveName")
            if collective:
                authors.append(CollectiveAuthor(name=collective))
            else:
                logger.debug("Skipping author entry with no name")
        return authors

    def _parse_pub_date(self, article: ET.Element) -> PublicationDate:
        pub_date = article.find("Journal/JournalIssue/PubDate")
        if pub_date is None:
            return PublicationDate()
        return PublicationDate(
            year=self._xml_text(pub_date, "Year"),
            month=self._xml_text(pub_date, "Month"),
            day=self._xml_text(pub_date, "Day"),
            medline_date=self._xml_text(pub_date, "MedlineDate"),
        )

    @classmethod
    def _xml_text(cls, elem: ET.Element, path: str) -> str | None:
        """Safely extract stripped text (including nested markup) at ``path``."""
        found = elem.find(path)
        if found is None:
            return None
        return cls._element_text(found) or None

    @staticmethod
    def _element_text(elem: ET.Element) -> str:
        return " ".join("".join(elem.itertext()).split())
