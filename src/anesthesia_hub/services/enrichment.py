"""
Batch AI enrichment.

One LLM call per batch of ``IntermediateRecord``s. The model must answer
through the ``record_enrichments`` tool, whose schema requires identifier,
category, clinicalImpact, summary and keywords for each article. The call is
all-or-nothing: any ``LLMError`` propagates and the merge step falls back to
defaults for the whole batch.
"""

import logging
from typing import Any

from pydantic import ValidationError

from anesthesia_hub.models.model_paper import Category, EnrichmentResult
from anesthesia_hub.models.model_pubmed import IntermediateRecord
from anesthesia_hub.services.llm import InvalidAIResponseError, LLMClient

logger = logging.getLogger(__name__)

ENRICHMENT_SYSTEM = (
    "You are an expert clinical research assistant in anesthesiology. "
    "You read real, recently published PubMed articles and write concise, "
    "accurate commentary for practising anesthesiologists."
)

ENRICHMENT_PROMPT = """\
I have a list of real research articles recently published on PubMed.
Based on the provided titles and abstracts, generate for EVERY article:
1. category: "Review" or "Original Article".
2. clinicalImpact: 1-2 powerful sentences summarizing why this matters at the bedside.
3. summary: 2-3 concise sentences explaining the primary findings.
4. keywords: 3-5 relevant medical keywords for indexing.

Use the PMID of each article as its identifier.

Articles:
{articles}"""

ENRICHMENT_TOOL: dict[str, Any] = {
    "name": "record_enrichments",
    "description": "Record the clinical enrichment for each article in the batch.",
    "input_schema": {
        "type": "object",
        "properties": {
            "papers": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "identifier": {"type": "string"},
                        "category": {
                            "type": "string",
                            "enum": [c.value for c in Category],
                        },
                        "clinicalImpact": {"type": "string"},
                        "summary": {"type": "string"},
                        "keywords": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": [
                        "identifier",
                        "category",
                        "clinicalImpact",
                        "summary",
                        "keywords",
                    ],
                },
            }
        },
        "required": ["papers"],
    },
}


def build_enrichment_prompt(records: list[IntermediateRecord]) -> str:
    articles = "\n\n".join(
        f"{i}. PMID: {r.pmid}\n"
        f"Title: {r.title}\n"
        f"Journal: {r.journal.label}\n"
        f"Abstract: {r.abstract or 'Not available.'}"
        for i, r in enumerate(records, 1)
    )
    return ENRICHMENT_PROMPT.format(articles=articles)


def parse_enrichments(
    payload: dict[str, Any], expected_pmids: set[str] | None = None
) -> list[EnrichmentResult]:
    """Validate the tool payload into results.

    A payload without a ``papers`` array is an invalid response. Individual items
    that fail validation, name an unknown PMID, or repeat a PMID are dropped;
    the merge step gives those articles default values.
    """
    items = payload.get("papers")
    if not isinstance(items, list):
        raise InvalidAIResponseError("Enrichment response has no 'papers' array")

    results: dict[str, EnrichmentResult] = {}
    for item in items:
        try:
            result = EnrichmentResult.model_validate(item)
        except ValidationError as e:
            logger.warning("Dropping malformed enrichment item: %s", e)
            continue
        if expected_pmids is not None and result.pmid not in expected_pmids:
            logger.warning("Dropping enrichment for unknown PMID %s", result.pmid)
            continue
        results.setdefault(result.pmid, result)
    return list(results.values())


class EnrichmentClient:
    """Sends a batch of records to the LLM and returns per-PMID enrichments."""

    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm or LLMClient()

    async def enrich(self, records: list[IntermediateRecord]) -> list[EnrichmentResult]:
        if not records:
            raise ValueError("Enrichment batch must not be empty")

        logger.info("Enriching batch of %d records", len(records))
        payload = await self.llm.query_tool(
            build_enrichment_prompt(records),
            ENRICHMENT_TOOL,
            system=ENRICHMENT_SYSTEM,
            small=True,
        )
        results = parse_enrichments(payload, {r.pmid for r in records})
        logger.info("Enrichment returned %d/%d results", len(results), len(records))
        return results

    def ensure_configured(self) -> None:
        self.llm.ensure_configured()
