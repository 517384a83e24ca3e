"""FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from anesthesia_hub import __version__
from anesthesia_hub.config import get_settings
from anesthesia_hub.data_sources.base_client import DataSourceError, RateLimitError
from anesthesia_hub.models.model_paper import (
    DateRange,
    KeywordCount,
    Paper,
    ResearchStats,
)
from anesthesia_hub.services.llm import LLMConfigurationError, LLMError
from anesthesia_hub.services.research import ResearchService
from anesthesia_hub.utils.cache import RefreshInProgressError

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 10


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    if getattr(app.state, "service", None) is None:
        app.state.service = ResearchService.from_settings(settings)
    yield
    await app.state.service.close()


app = FastAPI(
    title="Anesthesia Research Hub API",
    description="Recent anesthesiology literature from PubMed with AI commentary",
    version=__version__,
    lifespan=lifespan,
)


def get_service(request: Request) -> ResearchService:
    return request.app.state.service


def date_range_param(
    start: date | None = Query(None), end: date | None = Query(None)
) -> DateRange | None:
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValueError("Both 'start' and 'end' are required for a custom range")
    try:
        return DateRange(start=start, end=end)
    except ValidationError as e:
        raise ValueError(e.errors()[0]["msg"]) from e


class DeepSummaryRequest(BaseModel):
    paper: Paper


class DeepSummaryResponse(BaseModel):
    summary: str


class RefreshResponse(BaseModel):
    invalidated: bool


# -- Error mapping -----------------------------------------------------------


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RefreshInProgressError)
async def refresh_in_progress_handler(request: Request, exc: RefreshInProgressError):
    return JSONResponse(
        status_code=503,
        content={"error": str(exc)},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError):
    logger.warning("Rate limited: %s", exc)
    return JSONResponse(status_code=429, content={"error": str(exc)})


@app.exception_handler(DataSourceError)
async def data_source_error_handler(request: Request, exc: DataSourceError):
    logger.error("Source unavailable: %s", exc)
    return JSONResponse(status_code=502, content={"error": str(exc)})


@app.exception_handler(LLMConfigurationError)
async def configuration_error_handler(request: Request, exc: LLMConfigurationError):
    logger.error("Misconfigured: %s", exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError):
    logger.error("LLM failure: %s", exc)
    return JSONResponse(status_code=502, content={"error": str(exc)})


# -- Routes ------------------------------------------------------------------


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/api/research", response_model=list[Paper])
async def get_research(
    journal: str | None = None,
    date_range: DateRange | None = Depends(date_range_param),
    service: ResearchService = Depends(get_service),
) -> list[Paper]:
    return await service.get_latest_research(journal, date_range, wait=False)


@app.post("/api/research/refresh", response_model=RefreshResponse)
async def refresh_research(
    journal: str | None = None,
    date_range: DateRange | None = Depends(date_range_param),
    service: ResearchService = Depends(get_service),
) -> RefreshResponse:
    return RefreshResponse(invalidated=service.force_refresh(journal, date_range))


@app.get("/api/research/keywords", response_model=list[KeywordCount])
async def get_keywords(
    journal: str | None = None,
    top_n: int = Query(10, ge=1, le=50),
    service: ResearchService = Depends(get_service),
) -> list[KeywordCount]:
    return await service.get_keyword_insights(journal, top_n)


@app.get("/api/research/stats", response_model=ResearchStats)
async def get_stats(
    journal: str | None = None,
    service: ResearchService = Depends(get_service),
) -> ResearchStats:
    return await service.get_stats(journal)


@app.get("/api/research/weekly-report")
async def get_weekly_report(
    service: ResearchService = Depends(get_service),
) -> dict[str, str]:
    return {"report": await service.get_weekly_report()}


@app.get("/api/guidelines", response_model=list[Paper])
async def get_guidelines(
    service: ResearchService = Depends(get_service),
) -> list[Paper]:
    return await service.get_guidelines(wait=False)


@app.post("/api/guidelines/refresh", response_model=RefreshResponse)
async def refresh_guidelines(
    service: ResearchService = Depends(get_service),
) -> RefreshResponse:
    return RefreshResponse(invalidated=service.force_refresh_guidelines())


@app.post("/api/deep-summary", response_model=DeepSummaryResponse)
async def deep_summary(
    body: DeepSummaryRequest,
    service: ResearchService = Depends(get_service),
) -> DeepSummaryResponse:
    return DeepSummaryResponse(summary=await service.get_deep_summary(body.paper))
