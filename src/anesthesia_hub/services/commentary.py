"""LLM-written commentary: single-paper critiques and the weekly briefing."""

import logging
from collections import defaultdict
from datetime import date

from anesthesia_hub.constants import (
    DEEP_SUMMARY_FAILED,
    WEEKLY_REPORT_EMPTY,
    WEEKLY_REPORT_FAILED,
)
from anesthesia_hub.models.model_paper import Paper
from anesthesia_hub.services.llm import LLMClient

logger = logging.getLogger(__name__)

DEEP_SUMMARY_PROMPT = """\
As a world-class academic anesthesiologist and researcher, provide a "Deep Dive" \
clinical critique for the following article.

ARTICLE: {title}
JOURNAL: {journal}
AUTHORS: {authors}
ABSTRACT: {abstract}

Structure the response with high-impact professional formatting:
1. CLINICAL SIGNIFICANCE: What is the primary question and why does it matter?
2. METHODOLOGICAL RIGOR: Critique the design, sample size, and potential biases.
3. BEDSIDE APPLICATION: Exactly how should this change (or not change) current practice?
4. TAKE-HOME MESSAGE: The single most important takeaway."""

WEEKLY_REPORT_PROMPT = """\
Act as a senior medical editor for an anesthesiology research briefing.
I have a list of research articles published between {start} and {end}.
Please provide a "Weekly Research Briefing" in Markdown.

Structure & formatting rules:
1. Weekly Overview: a short summary of this week's research trends (2-3 sentences).
2. Key Research by Journal:
   - Write each journal name as a heading in the form "### **Journal name**".
   - Leave a blank line between journal sections.
   - One article per line, in the form: [Article title](URL) (PMID: number)
   - List only; no per-article commentary.
3. Clinical Implications: the overall message of this week's research for clinical practice.

Keep a professional, trustworthy tone.

Data:
{data}"""


def group_by_journal(papers: list[Paper]) -> dict[str, list[Paper]]:
    groups: dict[str, list[Paper]] = defaultdict(list)
    for paper in papers:
        groups[paper.journal.label].append(paper)
    return dict(groups)


def build_weekly_report_prompt(papers: list[Paper], start: date, end: date) -> str:
    sections = []
    for journal, journal_papers in group_by_journal(papers).items():
        lines = "\n".join(
            f"- [{p.title}]({p.url}) (PMID: {p.id})" for p in journal_papers
        )
        sections.append(f"[{journal}]\n{lines}")
    return WEEKLY_REPORT_PROMPT.format(
        start=start.isoformat(), end=end.isoformat(), data="\n\n".join(sections)
    )


class CommentaryWriter:
    """Long-form LLM output on the larger model."""

    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm or LLMClient()

    async def deep_summary(self, paper: Paper) -> str:
        """Structured critique of one paper."""
        prompt = DEEP_SUMMARY_PROMPT.format(
            title=paper.title,
            journal=paper.journal.label,
            authors=", ".join(paper.authors) or "Not listed",
            abstract=paper.abstract or paper.summary,
        )
        logger.info("Generating deep summary for PMID %s", paper.id)
        text = await self.llm.query(prompt, max_tokens=4096)
        return text or DEEP_SUMMARY_FAILED

    async def weekly_report(self, papers: list[Paper], start: date, end: date) -> str:
        """Markdown briefing of the week's papers, grouped by journal."""
        if not papers:
            return WEEKLY_REPORT_EMPTY
        logger.info("Generating weekly report for %d papers", len(papers))
        text = await self.llm.query(
            build_weekly_report_prompt(papers, start, end), max_tokens=4096
        )
        return text or WEEKLY_REPORT_FAILED
