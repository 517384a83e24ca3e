"""
Journal name normalizer.

Maps the title or abbreviation strings PubMed returns ("Anesth Analg",
"Anesthesia and analgesia", "British journal of anaesthesia"...) onto a
``KnownJournal``. Anything that matches no table entry is passed through as an
``OtherJournal``. Both functions are pure and never raise.
"""

import re

from anesthesia_hub.constants import UNKNOWN_JOURNAL
from anesthesia_hub.models.journal import (
    JOURNAL_ABBREVIATIONS,
    CanonicalJournal,
    JournalName,
    KnownJournal,
    OtherJournal,
)


def _match_key(text: str) -> str:
    """Case/punctuation-insensitive comparison key ("&" and "and" compare equal)."""
    key = text.lower().replace("&", " and ")
    key = re.sub(r"[.,:;()\[\]]", " ", key)
    key = " ".join(key.split())
    if key.startswith("the "):
        key = key[4:]
    return key


_LOOKUP: dict[str, JournalName] = {}
for _journal, _abbreviation in JOURNAL_ABBREVIATIONS.items():
    _LOOKUP[_match_key(_journal.value)] = _journal
    _LOOKUP[_match_key(_abbreviation)] = _journal


def match_journal(name: str | None) -> JournalName | None:
    """Return the enumerated journal for a label or abbreviation, else None."""
    if not name:
        return None
    return _LOOKUP.get(_match_key(name))


def normalize_journal(name: str | None) -> CanonicalJournal:
    """Canonical journal for a free-text name or abbreviation.

    Unknown names are passed through unchanged; blank input becomes a fixed
    "Unknown journal" placeholder so the result is never empty.
    """
    journal = match_journal(name)
    if journal is not None:
        return KnownJournal(name=journal)
    passthrough = (name or "").strip()
    return OtherJournal(name=passthrough or UNKNOWN_JOURNAL)


def resolve_journal(title: str | None, abbreviation: str | None) -> CanonicalJournal:
    """Canonical journal from a record's title and abbreviation.

    The abbreviation is tried first (it is NLM-controlled), then the title. An
    unmatched record keeps its full title, or its abbreviation if it has no title.
    """
    for candidate in (abbreviation, title):
        journal = match_journal(candidate)
        if journal is not None:
            return KnownJournal(name=journal)
    return normalize_journal((title or "").strip() or abbreviation)
