"""Project-wide constants."""

# -- Base client defaults ---------------------------------------------------
DEFAULT_TIMEOUT: float = 15.0
DEFAULT_MAX_RETRIES: int = 3

# -- Cache tiers (seconds) --------------------------------------------------
RAW_CACHE_TTL: int = 3600  # raw NCBI responses, 1 hour
RESEARCH_CACHE_TTL: int = 86400  # enriched research digests, 24 hours
GUIDELINE_CACHE_TTL: int = 7 * 86400  # guideline listings, 1 week

# -- PubMed / NCBI ----------------------------------------------------------
NCBI_BASE_URL: str = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
PUBMED_SEARCH_URL: str = f"{NCBI_BASE_URL}/esearch.fcgi"
PUBMED_FETCH_URL: str = f"{NCBI_BASE_URL}/efetch.fcgi"
PUBMED_ARTICLE_URL: str = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
PUBMED_FETCH_BATCH_SIZE: int = 100
PUBMED_USER_AGENT: str = "AnesthesiaResearchHub/1.0.0"

# NCBI allows 3 req/s without an API key, 10 with one.
NCBI_RPS_ANONYMOUS: float = 3.0
NCBI_RPS_WITH_KEY: float = 10.0

# -- Research digest query shape ------------------------------------------
RESEARCH_LOOKBACK_DAYS: int = 14
RESEARCH_MAX_RESULTS: int = 15
EXCLUDED_PUBLICATION_TYPES: tuple[str, ...] = ("Letter",)

# -- Guideline query shape ------------------------------------------------
GUIDELINE_LOOKBACK_DAYS: int = 365
GUIDELINE_MAX_RESULTS: int = 20
GUIDELINE_PUBLICATION_TYPES: tuple[str, ...] = (
    "Guideline",
    "Practice Guideline",
    "Consensus Development Conference",
)

# -- Weekly briefing ------------------------------------------------------
WEEKLY_REPORT_DAYS: int = 7

# -- Merge fallbacks --------------------------------------------------------
DEFAULT_CATEGORY: str = "Original Article"
DEFAULT_CLINICAL_IMPACT: str = "Clinical analysis pending."
DEFAULT_SUMMARY: str = "Detailed abstract not available."
SUMMARY_FALLBACK_CHARS: int = 200
UNKNOWN_JOURNAL: str = "Unknown journal"

# -- LLM output fallbacks ---------------------------------------------------
DEEP_SUMMARY_FAILED: str = "Summary generation failed. Please try again."
WEEKLY_REPORT_EMPTY: str = "No major papers were published in the past week."
WEEKLY_REPORT_FAILED: str = "Weekly report generation failed."
