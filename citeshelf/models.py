"""Pydantic data models for CiteShelf."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import List, Optional, Union
from enum import Enum


class CitationStyle(str, Enum):
    """Supported citation styles."""
    BIBTEX = "bibtex"
    MLA = "mla"
    APA = "apa"
    IEEE = "ieee"

    @property
    def label(self) -> str:
        return "BibTeX" if self is CitationStyle.BIBTEX else self.value.upper()


class OpenAccessStatus(str, Enum):
    """Open access category reported by the paper service."""
    GOLD = "GOLD"
    GREEN = "GREEN"
    BRONZE = "BRONZE"
    HYBRID = "HYBRID"
    CLOSED = "CLOSED"


class Author(BaseModel):
    """Paper author."""
    name: str = ""
    affiliation: Optional[str] = None


class OpenAccessPdf(BaseModel):
    url: str
    status: Optional[OpenAccessStatus] = None


class Paper(BaseModel):
    """Bibliographic record as returned by the paper service. Read-only."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    paper_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("paper_id", "paperId", "s2PaperId", "s2_paper_id"),
    )
    title: Optional[str] = None
    authors: List[Union[Author, str, None]] = Field(default_factory=list)
    venue: Optional[Union[str, List[str]]] = None
    year: Optional[int] = None
    abstract: Optional[str] = None
    citation_count: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("citation_count", "citationCount")
    )
    fields_of_study: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("fields_of_study", "fieldsOfStudy"),
    )
    open_access_pdf: Optional[OpenAccessPdf] = Field(
        default=None,
        validation_alias=AliasChoices("open_access_pdf", "openAccessPdf"),
    )
    url: Optional[str] = None
    bibtex: Optional[str] = None


class CitationFormat(BaseModel):
    """One citation style for an open paper; a placeholder until loaded."""
    id: CitationStyle
    label: str
    value: str = ""
    is_loaded: bool = False

    @property
    def is_html(self) -> bool:
        # Only BibTeX is plain text; the service renders the others as HTML
        return self.id is not CitationStyle.BIBTEX

    @classmethod
    def placeholder(cls, style: CitationStyle) -> "CitationFormat":
        return cls(id=style, label=style.label)


class FetchStatus(str, Enum):
    """Progress of the citation-format fetch for one open paper."""
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    DONE = "done"


class FetchOk(BaseModel):
    """Citation service answered with formats."""
    formats: List[CitationFormat] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True


class FetchErr(BaseModel):
    """Citation service could not be reached or returned an error."""
    reason: str

    @property
    def ok(self) -> bool:
        return False


FetchResult = Union[FetchOk, FetchErr]


class LibraryTarget(BaseModel):
    """A library the user owns or has been given access to."""
    id: Union[int, str]
    name: str
    role: Optional[str] = None
    description: Optional[str] = None
    paper_count: Optional[int] = None


class LibraryListing(BaseModel):
    """Libraries visible to the current user."""
    my_libraries: List[LibraryTarget] = Field(default_factory=list)
    shared_with_me: List[LibraryTarget] = Field(default_factory=list)

    def all(self) -> List[LibraryTarget]:
        return [*self.my_libraries, *self.shared_with_me]


class ReadingStatus(str, Enum):
    UNREAD = "unread"
    READING = "reading"
    READ = "read"


class SavePayload(BaseModel):
    """Paper as stored by the library service."""
    s2_paper_id: str = ""
    title: str = ""
    venue: str = ""
    published_year: int
    citation_count: int = 0
    fields_of_study: List[str] = Field(default_factory=list)
    abstract: str = ""
    bibtex: str = ""
    authors: List[Author] = Field(default_factory=list)
    reading_status: ReadingStatus = ReadingStatus.UNREAD
    user_note: str = ""


def _libraries(count: int) -> str:
    return f"{count} librar{'y' if count == 1 else 'ies'}"


class SaveOutcome(BaseModel):
    """Result of saving a paper into one library."""
    target: LibraryTarget
    success: bool
    error_message: Optional[str] = None

    def describe(self) -> str:
        return f"{self.target.name}: {self.error_message or 'Unknown error'}"


class SaveSummary(BaseModel):
    """Aggregated outcomes of a multi-library save."""
    outcomes: List[SaveOutcome] = Field(default_factory=list)

    @property
    def saved_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def failed(self) -> List[SaveOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def succeeded(self) -> bool:
        return self.saved_count > 0

    def message(self) -> str:
        failures = "\n".join(o.describe() for o in self.failed)
        if not self.succeeded:
            return f"Failed to save paper:\n{failures}"
        msg = f"Paper saved to {_libraries(self.saved_count)}!"
        if self.failed_count:
            msg += f"\n\nFailed to save to {_libraries(self.failed_count)}:\n{failures}"
        return msg
