"""Helper utility functions for CiteShelf."""

import math
import re
from typing import Iterable, List, Sequence, Union

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from .models import Paper

FILENAME_MAX_LENGTH = 120
PAPERS_PER_PAGE = 7
ELLIPSIS = "..."

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9._-]", re.IGNORECASE)


def sanitize_filename(s: str = "") -> str:
    """Replace every character outside [a-z0-9._-] with '-' and cap the length."""
    return _UNSAFE_FILENAME_CHARS.sub("-", s or "")[:FILENAME_MAX_LENGTH]


def html_to_text(markup: str) -> str:
    """Text content of an HTML fragment, markup removed."""
    if not markup:
        return ""
    return BeautifulSoup(markup, "html.parser").get_text()


class Page(BaseModel):
    """One page of a paginated list."""
    items: list = Field(default_factory=list)
    page: int = 1
    per_page: int = PAPERS_PER_PAGE
    total_items: int = 0
    total_pages: int = 1

    @property
    def start_index(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


def paginate(items: Sequence, page: int = 1, per_page: int = PAPERS_PER_PAGE) -> Page:
    """
    Slice a list into pages.

    Args:
        items: Full result list
        page: 1-based page number, clamped into the valid range
        per_page: Items per page

    Returns:
        Page holding the requested slice
    """
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    total_items = len(items)
    total_pages = max(1, math.ceil(total_items / per_page))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * per_page
    return Page(
        items=list(items[start:start + per_page]),
        page=page,
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
    )


def page_numbers(current: int, total: int, max_visible: int = 5) -> List[Union[int, str]]:
    """
    Page links to show in a pager, with "..." marking skipped ranges.

    e.g. page_numbers(6, 12) -> [1, "...", 5, 6, 7, "...", 12]
    """
    if total <= max_visible:
        return list(range(1, total + 1))
    if current <= 3:
        return [*range(1, max_visible + 1), ELLIPSIS, total]
    if current >= total - 2:
        return [1, ELLIPSIS, *range(total - 4, total + 1)]
    return [1, ELLIPSIS, *range(current - 1, current + 2), ELLIPSIS, total]


def sort_papers(papers: Iterable[Paper], sort_by: str = "relevance") -> List[Paper]:
    """Order results; 'relevance' keeps the service order."""
    papers = list(papers)
    if sort_by == "citations":
        papers.sort(key=lambda p: p.citation_count or 0, reverse=True)
    elif sort_by != "relevance":
        raise ValueError(f"Unknown sort order: {sort_by}")
    return papers


def available_fields(papers: Iterable[Paper], limit: int = 10) -> List[str]:
    """Sorted fields of study present in a result set, for the field filter."""
    fields = set()
    for paper in papers:
        fields.update(paper.fields_of_study or [])
    return sorted(fields)[:limit]


def filter_by_fields(papers: Iterable[Paper], selected: Iterable[str]) -> List[Paper]:
    """Papers matching any selected field of study; no selection keeps everything."""
    selected = set(selected)
    if not selected:
        return list(papers)
    return [p for p in papers if selected.intersection(p.fields_of_study or [])]
