"""
Keyword/pattern tag inference.

``infer_tags`` is a pure function: it concatenates title and abstract and fires
every rule with at least one matching pattern. Tags come back in rule order,
each at most once.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class TagRule:
    """A tag label and the case-insensitive patterns that trigger it."""

    tag: str
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


def _rule(tag: str, *patterns: str) -> TagRule:
    return TagRule(tag, tuple(re.compile(p, re.IGNORECASE) for p in patterns))


TAG_RULES: tuple[TagRule, ...] = (
    _rule(
        "ERAS",
        r"\bERAS\b",
        r"enhanced recovery",
        r"fast-track",
        r"early recovery",
        r"perioperative pathway",
    ),
    _rule(
        "Regional",
        r"regional an(a)?esthesia",
        r"\bnerve block\b",
        r"peripheral nerve block",
        r"epidural",
        r"spinal an(a)?esthesia",
        r"intrathecal",
        r"fascial plane",
        r"\bTAP\b",
        r"\bESP\b",
        r"\bPECS?\b",
        r"\bQL\b",
    ),
    _rule(
        "Opioid-sparing",
        r"opioid[-\s]?sparing",
        r"opioid[-\s]?free",
        r"\bOFA\b",
        r"multimodal analges",
        r"ketamine",
        r"lidocaine",
        r"magnesium",
        r"NSAID",
        r"acetaminophen",
    ),
    _rule(
        "PONV",
        r"\bPONV\b",
        r"postoperative nausea",
        r"vomiting",
        r"antiemetic",
        r"ondansetron",
        r"dexamethasone",
        r"droperidol",
        r"aprepitant",
    ),
    _rule(
        "GI recovery",
        r"ileus",
        r"gastrointestinal",
        r"\bGI\b",
        r"bowel function",
        r"tolerance of diet",
        r"feeding",
        r"nasogastric",
    ),
    _rule(
        "Airway",
        r"difficult airway",
        r"videolaryng",
        r"intubation",
        r"supraglottic",
    ),
    _rule(
        "ICU",
        r"critical care",
        r"\bICU\b",
        r"mechanical ventilation",
        r"sepsis",
    ),
    _rule(
        "Obstetric",
        r"obstetric",
        r"cesarean",
        r"caesarean",
        r"\bC-section\b",
        r"labou?r analgesia",
    ),
)

TAG_LABELS: tuple[str, ...] = tuple(rule.tag for rule in TAG_RULES)


def infer_tags(
    title: str,
    abstract: str | None = None,
    rules: tuple[TagRule, ...] = TAG_RULES,
) -> list[str]:
    """Return the tags whose rules match the title or abstract, in rule order."""
    text = f"{title}\n{abstract or ''}"
    tags = [rule.tag for rule in rules if rule.matches(text)]
    return list(dict.fromkeys(tags))
