"""Save a paper into one or more of the user's libraries."""

import asyncio
import logging
from datetime import date
from typing import List, Optional, Sequence

from .client import ScholarAPIClient
from .errors import NoTargetsSelectedError
from .formats import CitationFormatCache
from .formatter import author_display_name
from .models import (
    Author,
    CitationStyle,
    FetchOk,
    LibraryTarget,
    Paper,
    SaveOutcome,
    SavePayload,
    SaveSummary,
)
from .session import AuthSession

logger = logging.getLogger(__name__)


def _normalize_author(author) -> Author:
    if isinstance(author, Author):
        return Author(name=author.name or "", affiliation=author.affiliation or "")
    if isinstance(author, dict):
        return Author(name=author.get("name") or "", affiliation=author.get("affiliation") or "")
    return Author(name=author_display_name(author), affiliation="")


def build_payload(paper: Paper, bibtex: str = "", today: Optional[date] = None) -> SavePayload:
    """
    Normalize a paper into the shape the library service stores.

    A missing year defaults to the current year; a list venue keeps its
    first element.
    """
    venue = paper.venue
    if isinstance(venue, list):
        venue = venue[0] if venue else ""
    return SavePayload(
        s2_paper_id=paper.paper_id or "",
        title=paper.title or "",
        venue=venue or "",
        published_year=paper.year or (today or date.today()).year,
        citation_count=paper.citation_count or 0,
        fields_of_study=list(paper.fields_of_study or []),
        abstract=paper.abstract or "",
        bibtex=bibtex or "",
        authors=[_normalize_author(a) for a in paper.authors or []],
    )


class LibrarySaveWorkflow:
    """Resolve BibTeX, then save a paper to every selected library."""

    def __init__(self, client: ScholarAPIClient, session: Optional[AuthSession] = None):
        self.client = client
        self.session = session or client.auth

    async def resolve_bibtex(
        self, paper: Paper, formats: Optional[CitationFormatCache] = None
    ) -> str:
        """
        Best-effort BibTeX for a paper; empty string when none is available.

        Prefers an already loaded entry from an open citation view, then
        the paper's own field, then one request to the citation service.
        """
        if formats is not None and formats.is_loaded(CitationStyle.BIBTEX):
            return formats.get(CitationStyle.BIBTEX).value
        if paper.bibtex:
            return paper.bibtex
        if not paper.paper_id:
            return ""

        result = await self.client.fetch_citation_formats(paper.paper_id)
        if isinstance(result, FetchOk):
            for fmt in result.formats:
                if fmt.id is CitationStyle.BIBTEX:
                    return fmt.value
            return ""
        logger.warning("Saving %s without BibTeX: %s", paper.paper_id, result.reason)
        return ""

    async def _save_one(self, target: LibraryTarget, payload: SavePayload) -> SaveOutcome:
        try:
            await self.client.save_paper(target.id, payload)
        except Exception as e:
            logger.error("Error saving to library %s: %s", target.name, e)
            return SaveOutcome(target=target, success=False, error_message=str(e) or type(e).__name__)
        logger.info("Paper saved to library %s", target.name)
        return SaveOutcome(target=target, success=True)

    async def save(
        self,
        paper: Paper,
        targets: Sequence[LibraryTarget],
        formats: Optional[CitationFormatCache] = None,
    ) -> SaveSummary:
        """
        Save a paper to every target and report each result.

        Requests run concurrently and independently; the summary is built
        only after all of them have settled.

        Raises:
            NotAuthenticatedError: No access token
            NoTargetsSelectedError: No library selected
        """
        self.session.require_token()
        targets = list(targets)
        if not targets:
            raise NoTargetsSelectedError()

        bibtex = await self.resolve_bibtex(paper, formats)
        payload = build_payload(paper, bibtex)
        logger.debug(
            "Saving %s to %d libraries (bibtex: %d chars)",
            payload.s2_paper_id,
            len(targets),
            len(bibtex),
        )

        outcomes: List[SaveOutcome] = await asyncio.gather(
            *(self._save_one(target, payload) for target in targets)
        )
        return SaveSummary(outcomes=outcomes)

    async def create_library(
        self, name: str, description: Optional[str] = None, is_public: bool = False
    ) -> LibraryTarget:
        """
        Create a new library owned by the current user.

        Raises:
            ValueError: Blank name
            NotAuthenticatedError: No access token
            APIError: The service refused; its message is passed through
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Library name is required")
        self.session.require_token()
        return await self.client.create_library(
            name, description=(description or "").strip() or None, is_public=is_public
        )
