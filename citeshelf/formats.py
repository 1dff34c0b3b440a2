"""Per-paper citation formats, loaded once per open view."""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .formatter import format_citation
from .models import (
    CitationFormat,
    CitationStyle,
    FetchErr,
    FetchOk,
    FetchResult,
    FetchStatus,
    Paper,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[FetchResult]]

STYLE_ORDER = (
    CitationStyle.BIBTEX,
    CitationStyle.MLA,
    CitationStyle.APA,
    CitationStyle.IEEE,
)


class CitationFormatCache:
    """
    Citation formats for one open paper view.

    Every style starts as a placeholder (BibTeX is loaded straight away
    when the paper carries one). load() asks the citation service for the
    rest exactly once per open view; on failure every style not yet loaded
    is generated locally, so embedded BibTeX is kept. Loaded entries never
    change until close().

    With fallback_timeout set, styles still missing once that many seconds
    have passed (or once the service answers without them) are generated
    locally as well.
    """

    def __init__(
        self,
        paper: Paper,
        fetcher: Fetcher,
        fallback_timeout: Optional[float] = None,
    ):
        self.paper = paper
        self.fetcher = fetcher
        self.fallback_timeout = fallback_timeout
        self._entries: Dict[CitationStyle, CitationFormat] = {}
        self._status = FetchStatus.NOT_STARTED
        self._task: Optional[asyncio.Task] = None
        self._opened = False
        self._generation = 0

    def __enter__(self) -> "CitationFormatCache":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def status(self) -> FetchStatus:
        return self._status

    @property
    def is_open(self) -> bool:
        return self._opened

    @property
    def formats(self) -> List[CitationFormat]:
        return [self._entries[s] for s in STYLE_ORDER if s in self._entries]

    def get(self, style: CitationStyle) -> Optional[CitationFormat]:
        return self._entries.get(CitationStyle(style))

    def is_loaded(self, style: CitationStyle) -> bool:
        entry = self.get(style)
        return bool(entry and entry.is_loaded)

    def open(self) -> None:
        """Seed placeholders for a freshly opened view."""
        self.close()
        self._opened = True
        for style in STYLE_ORDER:
            self._entries[style] = CitationFormat.placeholder(style)
        if self.paper.bibtex:
            self._mark_loaded(CitationStyle.BIBTEX, self.paper.bibtex)

        if not self.paper.paper_id:
            # Nothing to ask the service for
            self._fill_locally(STYLE_ORDER)
            self._status = FetchStatus.DONE

    def start(self) -> Optional[asyncio.Task]:
        """
        Begin the background fetch unless one is running or has finished.

        The status is checked and set here, before anything is awaited, so
        two triggers in the same tick still produce a single request.
        """
        if not self._opened:
            raise RuntimeError("Citation view is not open")
        if self._status is FetchStatus.NOT_STARTED:
            self._status = FetchStatus.IN_FLIGHT
            self._task = asyncio.ensure_future(self._run())
        return self._task

    async def load(self) -> List[CitationFormat]:
        """Start (or join) the fetch and wait until it settles."""
        task = self.start()
        generation = self._generation
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if self._generation == generation:
                    raise
                # View closed while loading
        return self.formats

    async def _run(self) -> None:
        paper_id = self.paper.paper_id
        generation = self._generation
        try:
            try:
                if self.fallback_timeout:
                    result = await asyncio.wait_for(self.fetcher(paper_id), self.fallback_timeout)
                else:
                    result = await self.fetcher(paper_id)
            except asyncio.TimeoutError:
                logger.warning(
                    "Citation formats for %s not ready after %ss, generating locally",
                    paper_id,
                    self.fallback_timeout,
                )
                result = FetchErr(reason="timeout")
            except Exception as e:
                logger.warning("Citation fetch for %s failed: %s", paper_id, e)
                result = FetchErr(reason=str(e) or type(e).__name__)
            self._apply(result)
        finally:
            # A view closed meanwhile keeps its reset state
            if self._generation == generation:
                self._status = FetchStatus.DONE

    def _apply(self, result: FetchResult) -> None:
        if isinstance(result, FetchOk):
            for fetched in result.formats:
                entry = self._entries.get(fetched.id)
                if entry is not None and not entry.is_loaded:
                    self._mark_loaded(fetched.id, fetched.value, fetched.label)
            missing = [s for s in STYLE_ORDER if not self._entries[s].is_loaded]
            if missing and self.fallback_timeout:
                logger.info(
                    "Citation service returned no %s for %s, generating locally",
                    ", ".join(s.value for s in missing),
                    self.paper.paper_id,
                )
                self._fill_locally(missing)
            return

        logger.info("Falling back to local citations for %s: %s", self.paper.paper_id, result.reason)
        # BibTeX embedded in the paper is already loaded and is kept
        self._fill_locally(STYLE_ORDER)

    def _fill_locally(self, styles) -> None:
        for style in styles:
            if not self._entries[style].is_loaded:
                self._mark_loaded(style, format_citation(self.paper, style))

    def _mark_loaded(self, style: CitationStyle, value: str, label: Optional[str] = None) -> None:
        self._entries[style] = CitationFormat(
            id=style,
            label=label or style.label,
            value=value or "",
            is_loaded=True,
        )

    def close(self) -> None:
        """Discard everything; a pending fetch is cancelled and its result dropped."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._entries = {}
        self._status = FetchStatus.NOT_STARTED
        self._opened = False
        self._generation += 1
