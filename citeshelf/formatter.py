"""Citation formatting and terminal display for CiteShelf."""

import re
from collections.abc import Mapping
from typing import Any, List, Optional, Union

from rich.console import Console
from rich.table import Table

from .models import (
    Author,
    CitationFormat,
    CitationStyle,
    LibraryListing,
    Paper,
    SaveSummary,
)
from .utils import Page, html_to_text, page_numbers

console = Console()

NO_YEAR = "n.d."
UNKNOWN_VENUE = "Unknown"
DEFAULT_KEY_AUTHOR = "author"

PaperLike = Union[Paper, Mapping, None]


def _get(item: PaperLike, name: str) -> Any:
    if item is None:
        return None
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def author_display_name(author: Any) -> str:
    """Name of an author entry: structured -> its name, string -> itself, else ''."""
    if isinstance(author, Author):
        return author.name or ""
    if isinstance(author, Mapping):
        name = author.get("name")
        return name if isinstance(name, str) else ""
    if isinstance(author, str):
        return author
    return ""


def _author_names(item: PaperLike) -> List[str]:
    # Empty names are kept on purpose; joined output shows a stray separator for them
    return [author_display_name(a) for a in (_get(item, "authors") or [])]


def _year(item: PaperLike) -> str:
    year = _get(item, "year")
    return str(year) if year else NO_YEAR


def _venue(item: PaperLike) -> str:
    venue = _get(item, "venue")
    if isinstance(venue, (list, tuple)):
        venue = venue[0] if venue else None
    return venue or UNKNOWN_VENUE


def _title(item: PaperLike) -> str:
    title = _get(item, "title")
    return title if isinstance(title, str) else ""


def bibtex_key(item: PaperLike) -> str:
    """First author's name without whitespace, followed by the year token."""
    names = _author_names(item)
    first = re.sub(r"\s+", "", names[0]) if names else ""
    return f"{first or DEFAULT_KEY_AUTHOR}{_year(item)}"


def format_citation(item: PaperLike, style: Union[CitationStyle, str]) -> str:
    """
    Render a citation for a paper in one of the fixed styles.

    Total over partially populated papers: missing fields fall back to
    placeholders and an unknown style gives an empty string.

    Args:
        item: Paper (or raw paper dict)
        style: bibtex, mla, apa or ieee

    Returns:
        Citation text
    """
    try:
        style = CitationStyle(style.lower() if isinstance(style, str) else style)
    except ValueError:
        return ""

    names = _author_names(item)
    title = _title(item)
    venue = _venue(item)
    year = _year(item)

    if style is CitationStyle.BIBTEX:
        return (
            f"@inproceedings{{{bibtex_key(item)},\n"
            f"  title={{{title}}},\n"
            f"  author={{{' and '.join(names)}}},\n"
            f"  booktitle={{{venue}}},\n"
            f"  year={{{year}}},\n"
            f"}}"
        )
    authors = ", ".join(names)
    if style is CitationStyle.MLA:
        return f'{authors}. "{title}." {venue}, {year}.'
    if style is CitationStyle.APA:
        return f"{authors} ({year}). {title}. {venue}."
    return f'[1] {authors}, "{title}," {venue}, {year}.'


def format_endnote(item: PaperLike) -> str:
    """EndNote (refer) record for a paper."""
    lines = ["%0 Journal Article", f"%T {_title(item)}"]
    lines.extend(f"%A {name}" for name in _author_names(item))
    venue = _get(item, "venue")
    if isinstance(venue, (list, tuple)):
        venue = venue[0] if venue else None
    if venue:
        lines.append(f"%J {venue}")
    if _get(item, "year"):
        lines.append(f"%D {_get(item, 'year')}")
    if _get(item, "url"):
        lines.append(f"%U {_get(item, 'url')}")
    return "\n".join(lines)


def display_formats(formats: List[CitationFormat], selected: CitationStyle) -> None:
    """Show the selected citation format, or a loading line while it is pending."""
    console.print(
        "  ".join(
            f"[bold green]{f.label}[/bold green]" if f.id == selected else f"[dim]{f.label}[/dim]"
            for f in formats
        )
    )
    console.print("━" * 60)

    current: Optional[CitationFormat] = next((f for f in formats if f.id == selected), None)
    if current is None:
        console.print("No citation formats available")
    elif not current.is_loaded:
        console.print(f"[dim]Loading {current.label} format...[/dim]")
    else:
        text = html_to_text(current.value) if current.is_html else current.value
        console.print(text, markup=False, highlight=False)


def display_libraries(listing: LibraryListing) -> None:
    """Display libraries as rich table."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", width=10)
    table.add_column("Library", width=30)
    table.add_column("Role", width=12)
    table.add_column("Papers", width=7)

    for library in listing.my_libraries:
        table.add_row(str(library.id), library.name, library.role or "", str(library.paper_count or 0))
    for library in listing.shared_with_me:
        table.add_row(
            str(library.id),
            f"{library.name} [dim](shared)[/dim]",
            library.role or "",
            str(library.paper_count or 0),
        )

    if not listing.all():
        console.print("No libraries yet. Create one with [bold]citeshelf create-library[/bold].")
        return
    console.print(table)


def display_save_summary(summary: SaveSummary) -> None:
    """Show per-library save results."""
    for outcome in summary.outcomes:
        if outcome.success:
            console.print(f"  ✓ [green]{outcome.target.name}[/green]")
        else:
            console.print(f"  ✗ [red]{outcome.describe()}[/red]")
    style = "bold green" if summary.succeeded else "bold red"
    console.print()
    console.print(summary.message(), style=style, markup=False)


def display_papers(page: Page) -> None:
    """Display one page of papers."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", width=4)
    table.add_column("Title", width=45)
    table.add_column("Year", width=6)
    table.add_column("Cited", width=7)

    for offset, paper in enumerate(page.items, start=page.start_index + 1):
        table.add_row(
            str(offset),
            (paper.title or "")[:45],
            str(paper.year or NO_YEAR),
            str(paper.citation_count),
        )

    console.print(table)
    console.print(f"Page {page.page} of {page.total_pages} ({page.total_items} papers)")
    if page.total_pages > 1:
        links = [
            f"[bold reverse] {n} [/bold reverse]" if n == page.page else str(n)
            for n in page_numbers(page.page, page.total_pages)
        ]
        console.print("  " + " ".join(links))
