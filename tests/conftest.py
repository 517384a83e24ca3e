"""Pytest configuration and fixtures."""

import pytest

from anesthesia_hub.models.journal import JournalName, KnownJournal
from anesthesia_hub.models.model_pubmed import IntermediateRecord


class FakeClock:
    """Manually advanced replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_record():
    """Factory for IntermediateRecord with sensible defaults."""

    def _make(pmid: str = "111", **overrides) -> IntermediateRecord:
        fields = {
            "pmid": pmid,
            "title": f"Article {pmid}",
            "abstract": f"Abstract for {pmid}.",
            "journal": KnownJournal(name=JournalName.ANESTHESIOLOGY),
            "authors": ["Smith J"],
            "date": "2025 Mar 3",
            "url": f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
            "tags": [],
        }
        fields.update(overrides)
        return IntermediateRecord(**fields)

    return _make


SCENARIO_XML = """\
<?xml version="1.0"?>
<PubmedArticleSet>
    <PubmedArticle>
        <MedlineCitation>
            <PMID Version="1">111</PMID>
            <Article>
                <Journal>
                    <JournalIssue>
                        <PubDate>
                            <Year>2025</Year>
                            <Month>Mar</Month>
                            <Day>3</Day>
                        </PubDate>
                    </JournalIssue>
                    <Title>Anesthesia and analgesia</Title>
                    <ISOAbbreviation>Anesth Analg</ISOAbbreviation>
                </Journal>
                <ArticleTitle>Dexmedetomidine for ERAS after cesarean</ArticleTitle>
                <AuthorList>
                    <Author>
                        <LastName>Kim</LastName>
                        <ForeName>Min-Ji</ForeName>
                        <Initials>MJ</Initials>
                    </Author>
                </AuthorList>
            </Article>
            <MedlineJournalInfo>
                <MedlineTA>Anesth Analg</MedlineTA>
            </MedlineJournalInfo>
        </MedlineCitation>
    </PubmedArticle>
    <PubmedArticle>
        <MedlineCitation>
            <PMID Version="1">222</PMID>
            <Article>
                <Journal>
                    <JournalIssue>
                        <PubDate>
                            <Year>2025</Year>
                            <Month>Feb</Month>
                        </PubDate>
                    </JournalIssue>
                    <Title>British journal of anaesthesia</Title>
                    <ISOAbbreviation>Br J Anaesth</ISOAbbreviation>
                </Journal>
                <ArticleTitle>Videolaryngoscopy in difficult airway</ArticleTitle>
                <AuthorList>
                    <Author>
                        <CollectiveName>Difficult Airway Society</CollectiveName>
                    </Author>
                </AuthorList>
            </Article>
            <MedlineJournalInfo>
                <MedlineTA>Br J Anaesth</MedlineTA>
            </MedlineJournalInfo>
        </MedlineCitation>
    </PubmedArticle>
</PubmedArticleSet>
"""


@pytest.fixture
def scenario_xml() -> str:
    """efetch XML for PMIDs 111 (A&A, ERAS/Obstetric) and 222 (BJA, Airway)."""
    return SCENARIO_XML
