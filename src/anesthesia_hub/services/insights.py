"""Aggregates over a list of papers: keyword frequencies and category/journal stats."""

from collections import Counter

from anesthesia_hub.models.model_paper import (
    KeywordCount,
    NamedCount,
    Paper,
    ResearchStats,
)


def keyword_frequencies(papers: list[Paper], top_n: int = 10) -> list[KeywordCount]:
    """Most frequent AI keywords, case-insensitive; the first spelling seen is kept.

    Sorted by count descending, then alphabetically.
    """
    counts: Counter[str] = Counter()
    spelling: dict[str, str] = {}
    for paper in papers:
        # A keyword counts once per paper
        seen = set()
        for keyword in paper.keywords:
            text = " ".join(keyword.split())
            key = text.lower()
            if not key or key in seen:
                continue
            seen.add(key)
            spelling.setdefault(key, text)
            counts[key] += 1

    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [KeywordCount(text=spelling[k], count=c) for k, c in ranked[:top_n]]


def _named_counts(values: list[str]) -> list[NamedCount]:
    ranked = sorted(Counter(values).items(), key=lambda kv: (-kv[1], kv[0]))
    return [NamedCount(name=name, value=count) for name, count in ranked]


def research_stats(papers: list[Paper]) -> ResearchStats:
    return ResearchStats(
        total_papers=len(papers),
        by_category=_named_counts([p.category.value for p in papers]),
        by_journal=_named_counts([p.journal.label for p in papers]),
    )
