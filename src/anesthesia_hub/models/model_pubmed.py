"""
Pydantic models for PubMed data.

These are the data contracts between the PubMed client and the pipeline.
The pipeline receives these models - it never sees raw E-utilities responses.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator

from anesthesia_hub.models.journal import CanonicalJournal

# ------------------------------------------------------------------
# Parse-boundary shapes
# ------------------------------------------------------------------


class PersonAuthor(BaseModel):
    """An individual author (<LastName>, <Initials>/<ForeName>)."""

    kind: Literal["person"] = "person"
    last_name: str
    initials: str | None = None
    fore_name: str | None = None

    @property
    def display_name(self) -> str:
        given = self.initials or self.fore_name
        return f"{self.last_name} {given}" if given else self.last_name


class CollectiveAuthor(BaseModel):
    """A group author (<CollectiveName>), e.g. a trial consortium."""

    kind: Literal["collective"] = "collective"
    name: str

    @property
    def display_name(self) -> str:
        return self.name


AuthorEntry = Annotated[
    Union[PersonAuthor, CollectiveAuthor], Field(discriminator="kind")
]


class AbstractSection(BaseModel):
    """One <AbstractText> paragraph, optionally labelled (BACKGROUND, METHODS...)."""

    text: str
    label: str | None = None

    def render(self) -> str:
        return f"{self.label}: {self.text}" if self.label else self.text


class PublicationDate(BaseModel):
    """Loosely structured <PubDate>; any component may be absent."""

    year: str | None = None
    month: str | None = None
    day: str | None = None
    medline_date: str | None = None  # free text such as "2023 Nov-Dec"

    def formatted(self) -> str:
        parts = [p for p in (self.year, self.month, self.day) if p]
        if parts:
            return " ".join(parts)
        return self.medline_date or ""


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


class RawBibliographicRecord(BaseModel):
    """A PubMed article flattened from efetch XML. Never persisted."""

    pmid: str = Field(min_length=1)
    title: str = ""
    abstract_sections: list[AbstractSection] = []
    journal_title: str = ""
    journal_abbreviation: str = ""
    authors: list[AuthorEntry] = []
    pub_date: PublicationDate = PublicationDate()
    url: str = ""
    publication_types: list[str] = []

    @property
    def abstract(self) -> str | None:
        """Paragraphs joined with line breaks; None when the article has no abstract."""
        text = "\n".join(s.render() for s in self.abstract_sections if s.text)
        return text or None

    @property
    def author_names(self) -> list[str]:
        return [a.display_name for a in self.authors if a.display_name.strip()]


class IntermediateRecord(BaseModel):
    """A record after journal normalization and tag inference, ready for enrichment."""

    pmid: str = Field(min_length=1)
    title: str
    abstract: str | None = None
    journal: CanonicalJournal
    authors: list[str] = []
    date: str = ""
    url: str
    tags: list[str] = []

    @model_validator(mode="after")
    def dedupe_tags(self) -> "IntermediateRecord":
        self.tags = list(dict.fromkeys(self.tags))
        return self
