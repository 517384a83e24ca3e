"""Unit tests for PubMedClient."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from anesthesia_hub.data_sources.base_client import DataSourceError
from anesthesia_hub.data_sources.pubmed import (
    PubMedClient,
    build_guideline_term,
    build_journal_query,
    build_research_term,
    lookback_range,
)
from anesthesia_hub.models.journal import JournalName
from anesthesia_hub.models.model_paper import DateRange
from anesthesia_hub.models.model_pubmed import CollectiveAuthor, PersonAuthor

WINDOW = DateRange(start=date(2025, 3, 1), end=date(2025, 3, 15))


# --- Query builders ---


def test_journal_query_single_journal():
    assert build_journal_query(JournalName.BJA) == '("Br J Anaesth"[ta])'


def test_journal_query_all_journals():
    query = build_journal_query()

    assert query.startswith("(") and query.endswith(")")
    assert query.count("[ta]") == len(JournalName)
    assert '"Anesth Analg"[ta] OR ' in query


def test_research_term_has_date_window_and_excludes_letters():
    term = build_research_term(JournalName.PAIN, WINDOW)

    assert term == (
        '("Pain"[ta]) AND ("2025/03/01"[dp] : "2025/03/15"[dp]) NOT "Letter"[pt]'
    )


def test_guideline_term_restricts_publication_types():
    term = build_guideline_term(WINDOW)

    assert '"Practice Guideline"[pt]' in term
    assert '"Consensus Development Conference"[pt]' in term
    assert '("2025/03/01"[dp] : "2025/03/15"[dp])' in term


def test_lookback_range_ends_today():
    window = lookback_range(14, today=date(2025, 3, 15))

    assert window.start == date(2025, 3, 1)
    assert window.end == date(2025, 3, 15)


# --- search ---


class TestSearch:
    async def test_search_pmids_returns_unique_ids_in_order(self):
        client = PubMedClient(api_key="")
        client._rest_get = AsyncMock(
            return_value={"esearchresult": {"idlist": ["3", "1", "3", "2"]}}
        )

        result = await client.search_pmids(date_range=WINDOW, max_results=10)

        assert result == ["3", "1", "2"]
        params = client._rest_get.call_args.args[1]
        assert params["retmax"] == 10
        assert params["retmode"] == "json"
        assert '"2025/03/01"[dp]' in params["term"]
        assert "api_key" not in params

    async def test_search_includes_api_key_when_configured(self):
        client = PubMedClient(api_key="secret")
        client._rest_get = AsyncMock(return_value={"esearchresult": {"idlist": []}})

        result = await client.search_pmids(date_range=WINDOW)

        assert result == []
        assert client._rest_get.call_args.args[1]["api_key"] == "secret"
        # The key never becomes part of the cache key
        assert "api_key" not in client._rest_get.call_args.kwargs["cache_params"]

    async def test_search_malformed_response_raises(self):
        client = PubMedClient(api_key="")
        client._rest_get = AsyncMock(return_value={"unexpected": True})

        with pytest.raises(DataSourceError, match="Malformed esearch"):
            await client.search_pmids(date_range=WINDOW)

    async def test_search_error_payload_raises(self):
        client = PubMedClient(api_key="")
        client._rest_get = AsyncMock(
            return_value={"esearchresult": {"ERROR": "Invalid query"}}
        )

        with pytest.raises(DataSourceError, match="Invalid query"):
            await client.search_pmids(date_range=WINDOW)

    async def test_search_guideline_pmids_uses_guideline_term(self):
        client = PubMedClient(api_key="")
        client._rest_get = AsyncMock(return_value={"esearchresult": {"idlist": ["9"]}})

        result = await client.search_guideline_pmids(max_results=5)

        assert result == ["9"]
        assert '"Guideline"[pt]' in client._rest_get.call_args.args[1]["term"]


# --- fetch ---


class TestFetchArticles:
    async def test_empty_pmids_skips_network(self):
        client = PubMedClient(api_key="")
        client._rest_get_xml = AsyncMock()

        assert await client.fetch_articles([]) == []
        client._rest_get_xml.assert_not_called()

    async def test_fetch_in_batches(self):
        client = PubMedClient(api_key="")
        client._rest_get_xml = AsyncMock(
            return_value="<PubmedArticleSet></PubmedArticleSet>"
        )

        await client.fetch_articles([str(i) for i in range(5)], batch_size=2)

        ids = [c.args[1]["id"] for c in client._rest_get_xml.call_args_list]
        assert ids == ["0,1", "2,3", "4"]

    async def test_fetch_parses_records(self, scenario_xml):
        client = PubMedClient(api_key="")
        client._rest_get_xml = AsyncMock(return_value=scenario_xml)

        records = await client.fetch_articles(["111", "222"])

        assert [r.pmid for r in records] == ["111", "222"]
        assert records[0].journal_abbreviation == "Anesth Analg"
        assert records[0].url == "https://pubmed.ncbi.nlm.nih.gov/111/"


# --- XML parsing ---


class TestParsePubmedXml:
    def test_invalid_xml_raises_error(self):
        client = PubMedClient(api_key="")

        with pytest.raises(DataSourceError) as exc_info:
            client._parse_pubmed_xml("not valid xml <unclosed")

        assert exc_info.value.source == "pubmed"
        assert "Failed to parse XML" in str(exc_info.value)

    def test_valid_xml_no_articles_returns_empty_list(self):
        client = PubMedClient(api_key="")

        assert client._parse_pubmed_xml("<PubmedArticleSet></PubmedArticleSet>") == []

    def test_article_without_pmid_is_skipped(self):
        client = PubMedClient(api_key="")
        xml = """<PubmedArticleSet><PubmedArticle><MedlineCitation>
            <Article><ArticleTitle>No PMID</ArticleTitle></Article>
        </MedlineCitation></PubmedArticle></PubmedArticleSet>"""

        assert client._parse_pubmed_xml(xml) == []

    def test_multi_paragraph_abstract_joined_with_line_breaks(self):
        client = PubMedClient(api_key="")
        xml = """<PubmedArticleSet><PubmedArticle><MedlineCitation>
            <PMID>1</PMID>
            <Article>
                <ArticleTitle>Title with <i>markup</i></ArticleTitle>
                <Abstract>
                    <AbstractText Label="BACKGROUND">PONV is common.</AbstractText>
                    <AbstractText Label="RESULTS">Fewer   events.</AbstractText>
                    <AbstractText></AbstractText>
                </Abstract>
            </Article>
        </MedlineCitation></PubmedArticle></PubmedArticleSet>"""

        record = client._parse_pubmed_xml(xml)[0]

        assert record.title == "Title with markup"
        assert record.abstract == "BACKGROUND: PONV is common.\nRESULTS: Fewer events."
        assert len(record.abstract_sections) == 2

    def test_single_unlabelled_abstract(self):
        client = PubMedClient(api_key="")
        xml = """<PubmedArticleSet><PubmedArticle><MedlineCitation>
            <PMID>1</PMID>
            <Article><Abstract><AbstractText>Plain.</AbstractText></Abstract></Article>
        </MedlineCitation></PubmedArticle></PubmedArticleSet>"""

        assert client._parse_pubmed_xml(xml)[0].abstract == "Plain."

    def test_missing_optional_nodes(self):
        client = PubMedClient(api_key="")
        xml = """<PubmedArticleSet><PubmedArticle><MedlineCitation>
            <PMID>42</PMID>
        </MedlineCitation></PubmedArticle></PubmedArticleSet>"""

        record = client._parse_pubmed_xml(xml)[0]

        assert record.pmid == "42"
        assert record.title == ""
        assert record.abstract is None
        assert record.authors == []
        assert record.journal_title == ""
        assert record.pub_date.formatted() == ""

    def test_person_and_collective_authors(self):
        client = PubMedClient(api_key="")
        xml = """<PubmedArticleSet><PubmedArticle><MedlineCitation>
            <PMID>1</PMID>
            <Article><AuthorList>
                <Author><LastName>Smith</LastName><Initials>JA</Initials></Author>
                <Author><LastName>Lee</LastName><ForeName>Ann</ForeName></Author>
                <Author><CollectiveName>PROSPECT Working Group</CollectiveName></Author>
                <Author><AffiliationInfo>No name at all</AffiliationInfo></Author>
            </AuthorList></Article>
        </MedlineCitation></PubmedArticle></PubmedArticleSet>"""

        record = client._parse_pubmed_xml(xml)[0]

        assert isinstance(record.authors[0], PersonAuthor)
        assert isinstance(record.authors[2], CollectiveAuthor)
        assert record.author_names == ["Smith JA", "Lee Ann", "PROSPECT Working Group"]

    def test_journal_abbreviation_falls_back_to_iso(self):
        client = PubMedClient(api_key="")
        xml = """<PubmedArticleSet><PubmedArticle><MedlineCitation>
            <PMID>1</PMID>
            <Article><Journal>
                <ISOAbbreviation>J Clin Anesth</ISOAbbreviation>
                <JournalIssue><PubDate><MedlineDate>2024 Nov-Dec</MedlineDate></PubDate></JournalIssue>
            </Journal></Article>
        </MedlineCitation></PubmedArticle></PubmedArticleSet>"""

        record = client._parse_pubmed_xml(xml)[0]

        assert record.journal_abbreviation == "J Clin Anesth"
        assert record.pub_date.formatted() == "2024 Nov-Dec"

    def test_publication_date_components(self, scenario_xml):
        client = PubMedClient(api_key="")

        records = client._parse_pubmed_xml(scenario_xml)

        assert records[0].pub_date.formatted() == "2025 Mar 3"
        assert records[1].pub_date.formatted() == "2025 Feb"

    def test_publication_types_are_collected(self):
        client = PubMedClient(api_key="")
        xml = """<PubmedArticleSet><PubmedArticle><MedlineCitation>
            <PMID>1</PMID>
            <Article><PublicationTypeList>
                <PublicationType UI="D016422">Letter</PublicationType>
                <PublicationType UI="D016428">Comment</PublicationType>
                <PublicationType></PublicationType>
            </PublicationTypeList></Article>
        </MedlineCitation></PubmedArticle></PubmedArticleSet>"""

        record = client._parse_pubmed_xml(xml)[0]

        assert record.publication_types == ["Letter", "Comment"]
