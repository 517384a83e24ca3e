"""
Canonical journal identifiers.

The configured journal set is closed, but PubMed may hand back journals outside
it. ``CanonicalJournal`` is therefore a tagged union: ``KnownJournal`` for one of
the enumerated journals and ``OtherJournal`` carrying the raw string unchanged.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class JournalName(str, Enum):
    """Journals covered by the research digest."""

    ANAESTHESIA = "Anaesthesia"
    ACCPM = "Anaesthesia Critical Care and Pain Medicine"
    ANESTH_ANALG = "Anesthesia & Analgesia"
    ANESTHESIOLOGY = "Anesthesiology"
    BJA_EDUCATION = "BJA Education"
    BJA = "British Journal of Anaesthesia"
    CJA = "Canadian Journal of Anesthesia"
    EJA = "European Journal of Anaesthesiology"
    J_ANESTH = "Journal of Anesthesia"
    JCVA = "Journal of Cardiothoracic and Vascular Anesthesia"
    JCA = "Journal of Clinical Anesthesia"
    JNA = "Journal of Neurosurgical Anesthesiology"
    KJA = "Korean Journal of Anesthesiology"
    KJP = "Korean Journal of Pain"
    PAEDIATR_ANAESTH = "Paediatric Anaesthesia"
    PAIN = "Pain"
    RAPM = "Regional Anesthesia & Pain Medicine"


# canonical label -> NLM title abbreviation (the [ta] value used in searches)
JOURNAL_ABBREVIATIONS: dict[JournalName, str] = {
    JournalName.ANAESTHESIA: "Anaesthesia",
    JournalName.ACCPM: "Anaesth Crit Care Pain Med",
    JournalName.ANESTH_ANALG: "Anesth Analg",
    JournalName.ANESTHESIOLOGY: "Anesthesiology",
    JournalName.BJA_EDUCATION: "BJA Educ",
    JournalName.BJA: "Br J Anaesth",
    JournalName.CJA: "Can J Anaesth",
    JournalName.EJA: "Eur J Anaesthesiol",
    JournalName.J_ANESTH: "J Anesth",
    JournalName.JCVA: "J Cardiothorac Vasc Anesth",
    JournalName.JCA: "J Clin Anesth",
    JournalName.JNA: "J Neurosurg Anesthesiol",
    JournalName.KJA: "Korean J Anesthesiol",
    JournalName.KJP: "Korean J Pain",
    JournalName.PAEDIATR_ANAESTH: "Paediatr Anaesth",
    JournalName.PAIN: "Pain",
    JournalName.RAPM: "Reg Anesth Pain Med",
}


class KnownJournal(BaseModel):
    """One of the enumerated journals."""

    kind: Literal["known"] = "known"
    name: JournalName

    @property
    def label(self) -> str:
        return self.name.value

    @property
    def abbreviation(self) -> str:
        return JOURNAL_ABBREVIATIONS[self.name]


class OtherJournal(BaseModel):
    """A journal outside the configured set, kept as PubMed reported it."""

    kind: Literal["other"] = "other"
    name: str = Field(min_length=1)

    @property
    def label(self) -> str:
        return self.name


CanonicalJournal = Annotated[
    Union[KnownJournal, OtherJournal], Field(discriminator="kind")
]
