"""Unit tests for the FastAPI app with a stubbed research service."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from anesthesia_hub.api.main import app
from anesthesia_hub.data_sources.base_client import DataSourceError, RateLimitError
from anesthesia_hub.models.journal import JournalName, KnownJournal
from anesthesia_hub.models.model_paper import (
    Category,
    DateRange,
    KeywordCount,
    Paper,
    ResearchStats,
)
from anesthesia_hub.services.llm import AIServiceUnreachableError, LLMConfigurationError
from anesthesia_hub.utils.cache import RefreshInProgressError

PAPER = Paper(
    id="111",
    title="Dexmedetomidine for ERAS after cesarean",
    authors=["Kim MJ"],
    journal=KnownJournal(name=JournalName.ANESTH_ANALG),
    date="2025 Mar 3",
    url="https://pubmed.ncbi.nlm.nih.gov/111/",
    category=Category.ORIGINAL_ARTICLE,
    clinical_impact="Clinical analysis pending.",
    summary="Detailed abstract not available.",
    tags=["ERAS", "Obstetric"],
)


@pytest.fixture
def service():
    mock = MagicMock()
    mock.get_latest_research = AsyncMock(return_value=[PAPER])
    mock.get_guidelines = AsyncMock(return_value=[PAPER])
    mock.get_deep_summary = AsyncMock(return_value="Deep dive")
    mock.get_weekly_report = AsyncMock(return_value="## Weekly")
    mock.get_keyword_insights = AsyncMock(return_value=[KeywordCount(text="ERAS", count=2)])
    mock.get_stats = AsyncMock(return_value=ResearchStats(total_papers=1))
    mock.force_refresh = MagicMock(return_value=True)
    mock.force_refresh_guidelines = MagicMock(return_value=False)
    return mock


@pytest.fixture
def client(service):
    app.state.service = service
    yield TestClient(app)
    app.state.service = None


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestResearch:
    def test_returns_papers(self, client, service):
        response = client.get("/api/research")

        assert response.status_code == 200
        body = response.json()
        assert body[0]["id"] == "111"
        assert body[0]["journal"] == {"kind": "known", "name": "Anesthesia & Analgesia"}
        assert body[0]["tags"] == ["ERAS", "Obstetric"]
        service.get_latest_research.assert_awaited_once_with(None, None, wait=False)

    def test_passes_journal_and_range(self, client, service):
        response = client.get(
            "/api/research",
            params={"journal": "Br J Anaesth", "start": "2025-03-01", "end": "2025-03-15"},
        )

        assert response.status_code == 200
        args = service.get_latest_research.call_args.args
        assert args[0] == "Br J Anaesth"
        assert isinstance(args[1], DateRange)
        assert args[1].descriptor() == "2025-03-01:2025-03-15"

    def test_half_open_range_is_rejected(self, client):
        response = client.get("/api/research", params={"start": "2025-03-01"})

        assert response.status_code == 400

    def test_inverted_range_is_rejected(self, client):
        response = client.get(
            "/api/research", params={"start": "2025-03-15", "end": "2025-03-01"}
        )

        assert response.status_code == 400

    def test_unknown_journal_is_bad_request(self, client, service):
        service.get_latest_research.side_effect = ValueError("Unknown journal: 'X'")

        response = client.get("/api/research", params={"journal": "X"})

        assert response.status_code == 400
        assert "Unknown journal" in response.json()["error"]

    def test_refresh_in_progress_is_503(self, client, service):
        service.get_latest_research.side_effect = RefreshInProgressError("research:all")

        response = client.get("/api/research")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "10"

    def test_source_rate_limit_is_429(self, client, service):
        service.get_latest_research.side_effect = RateLimitError("pubmed", "HTTP 429")

        assert client.get("/api/research").status_code == 429

    def test_source_failure_is_502(self, client, service):
        service.get_latest_research.side_effect = DataSourceError("pubmed", "HTTP 503")

        assert client.get("/api/research").status_code == 502

    def test_missing_ai_key_is_500(self, client, service):
        service.get_latest_research.side_effect = LLMConfigurationError("no key")

        response = client.get("/api/research")

        assert response.status_code == 500
        assert "no key" in response.json()["error"]

    def test_refresh(self, client, service):
        response = client.post("/api/research/refresh", params={"journal": "Pain"})

        assert response.json() == {"invalidated": True}
        service.force_refresh.assert_called_once_with("Pain", None)


class TestOtherEndpoints:
    def test_guidelines(self, client, service):
        response = client.get("/api/guidelines")

        assert response.status_code == 200
        service.get_guidelines.assert_awaited_once_with(wait=False)

    def test_guidelines_refresh(self, client):
        assert client.post("/api/guidelines/refresh").json() == {"invalidated": False}

    def test_keywords(self, client, service):
        response = client.get("/api/research/keywords", params={"top_n": 5})

        assert response.json() == [{"text": "ERAS", "count": 2}]
        service.get_keyword_insights.assert_awaited_once_with(None, 5)

    def test_stats(self, client):
        assert client.get("/api/research/stats").json()["total_papers"] == 1

    def test_weekly_report(self, client):
        assert client.get("/api/research/weekly-report").json() == {"report": "## Weekly"}

    def test_deep_summary(self, client, service):
        response = client.post(
            "/api/deep-summary", json={"paper": PAPER.model_dump(mode="json")}
        )

        assert response.status_code == 200
        assert response.json() == {"summary": "Deep dive"}
        assert service.get_deep_summary.call_args.args[0] == PAPER

    def test_deep_summary_ai_unreachable_is_502(self, client, service):
        service.get_deep_summary.side_effect = AIServiceUnreachableError("down")

        response = client.post(
            "/api/deep-summary", json={"paper": PAPER.model_dump(mode="json")}
        )

        assert response.status_code == 502
