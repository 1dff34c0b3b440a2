"""Main CLI interface for CiteShelf."""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import aiohttp
import click
from rich.console import Console
from rich.logging import RichHandler

from .cache import CitationCache
from .client import ScholarAPIClient
from .config import Settings
from .errors import CiteShelfError, NotAuthenticatedError
from .exporter import ClipboardExporter, FileExporter, can_export
from .formats import CitationFormatCache
from .formatter import (
    author_display_name,
    display_formats,
    display_libraries,
    display_papers,
    display_save_summary,
)
from .models import CitationStyle, LibraryTarget
from .session import AuthSession, TokenStore
from .utils import available_fields, filter_by_fields, paginate, sort_papers
from .workflow import LibrarySaveWorkflow

console = Console()

STYLE_CHOICES = [s.value for s in CitationStyle]


@dataclass
class AppContext:
    settings: Settings
    session: AuthSession
    use_cache: bool
    verbose: bool = False

    def cache(self) -> CitationCache:
        return CitationCache(str(self.settings.home_dir), ttl_days=self.settings.cache_ttl_days)

    def client(self) -> ScholarAPIClient:
        cache = self.cache() if self.use_cache else None
        return ScholarAPIClient(self.settings, self.session, cache)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _run(coro):
    """Run a coroutine, turning expected failures into a clean abort."""
    try:
        return asyncio.run(coro)
    except NotAuthenticatedError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        console.print("Run [bold]citeshelf login[/bold] first.")
        raise click.Abort()
    except (CiteShelfError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e or type(e).__name__}")
        raise click.Abort()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show detailed logs")
@click.option("--no-cache", is_flag=True, help="Disable the citation cache")
@click.pass_context
def main(ctx, verbose, no_cache):
    """
    Cite research papers and keep them in your libraries.

    Examples:
      citeshelf cite 649def34f8be52c8b66281af98ae884c09aef38b --style apa --copy
      citeshelf save 649def34f8be52c8b66281af98ae884c09aef38b -l 12 -l "Reading group"
      citeshelf export-bibtex ID1 ID2 -o refs.bib
    """
    _setup_logging(verbose)
    try:
        settings = Settings.from_env()
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise click.Abort()
    session = AuthSession(store=TokenStore(settings.home_dir))
    ctx.obj = AppContext(
        settings=settings, session=session, use_cache=not no_cache, verbose=verbose
    )


@main.command()
@click.option("--token", prompt=True, hide_input=True, help="Access token from the web app")
@click.pass_obj
def login(app: AppContext, token):
    """Store an access token for library commands."""
    try:
        app.session.login(token)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise click.Abort()
    console.print("[green]Logged in.[/green]")


@main.command()
@click.pass_obj
def logout(app: AppContext):
    """Forget the stored access token."""
    app.session.invalidate()
    console.print("Logged out.")


@main.command()
@click.argument("paper_id")
@click.pass_obj
def paper(app: AppContext, paper_id):
    """Show details for a paper."""

    async def fetch():
        async with app.client() as client:
            return await client.get_paper(paper_id)

    p = _run(fetch())
    console.print(f"[bold]{p.title or 'Untitled'}[/bold]")
    names = ", ".join(author_display_name(a) for a in p.authors)
    console.print(names or "[dim]Unknown authors[/dim]")
    venue = p.venue[0] if isinstance(p.venue, list) and p.venue else p.venue
    console.print(f"{venue or 'Unknown venue'} · {p.year or 'n.d.'} · {p.citation_count} citations")
    if p.fields_of_study:
        console.print(f"[dim]{', '.join(p.fields_of_study)}[/dim]")
    if p.open_access_pdf:
        console.print(f"PDF: {p.open_access_pdf.url}")
    if p.abstract:
        console.print()
        console.print(p.abstract, markup=False)


@main.command()
@click.argument("paper_ids", nargs=-1, required=True)
@click.option("--page", type=int, default=1, help="Page to show")
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice(["relevance", "citations"]),
    default="relevance",
    help="Result order",
)
@click.option("--field", "fields", multiple=True, help="Only papers in this field of study")
@click.pass_obj
def papers(app: AppContext, paper_ids, page, sort_by, fields):
    """List several papers, seven per page."""

    async def fetch():
        async with app.client() as client:
            return await asyncio.gather(*(client.get_paper(pid) for pid in paper_ids))

    results = _run(fetch())
    visible = filter_by_fields(sort_papers(results, sort_by), fields)
    display_papers(paginate(visible, page))
    fields_of_study = available_fields(results)
    if fields_of_study:
        console.print("Filter with --field: " + ", ".join(fields_of_study), style="dim", markup=False)


@main.command()
@click.argument("paper_id")
@click.option(
    "--style", "-s", type=click.Choice(STYLE_CHOICES), default="bibtex", help="Citation style"
)
@click.option("--copy", "copy_", is_flag=True, help="Copy the citation to the clipboard")
@click.option("--download", type=click.Path(file_okay=False), help="Save the citation into DIR")
@click.option("--endnote", type=click.Path(file_okay=False), help="Save an EndNote record into DIR")
@click.pass_obj
def cite(app: AppContext, paper_id, style, copy_, download, endnote):
    """Show a paper's citation in one style."""
    selected = CitationStyle(style)

    async def load():
        async with app.client() as client:
            p = await client.get_paper(paper_id)
            view = CitationFormatCache(
                p,
                client.fetch_citation_formats,
                fallback_timeout=app.settings.fallback_timeout,
            )
            view.open()
            await view.load()
            return p, view

    p, view = _run(load())
    display_formats(view.formats, selected)
    fmt = view.get(selected)

    if copy_:
        if not can_export(fmt):
            console.print(f"[yellow]{fmt.label} is still loading; nothing copied.[/yellow]")
        elif ClipboardExporter().copy(fmt):
            console.print("[green]Copied![/green]")
    if download:
        if can_export(fmt):
            path = FileExporter(download).download(fmt, p.title)
            console.print(f"  Saved {path}")
        else:
            console.print(f"[yellow]{fmt.label} is still loading; nothing saved.[/yellow]")
    if endnote:
        path = FileExporter(endnote).download_endnote(p)
        console.print(f"  Saved {path}")
    view.close()

    # Show cache stats in verbose mode
    if app.verbose and app.use_cache:
        stats = app.cache().stats()
        console.print(f"\n  Cache: {stats['valid_entries']} entries ({stats['expired_entries']} expired)")


@main.command("export-bibtex")
@click.argument("paper_ids", nargs=-1, required=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False), required=True, help="Output .bib file")
@click.pass_obj
def export_bibtex(app: AppContext, paper_ids, output):
    """Export BibTeX for several papers to one file."""

    async def fetch():
        async with app.client() as client:
            return await asyncio.gather(*(client.get_paper(pid) for pid in paper_ids))

    results = _run(fetch())
    count = FileExporter().export_batch(results, output)
    console.print(f"  Exported {count} citations to {output}")


@main.command()
@click.pass_obj
def libraries(app: AppContext):
    """List your libraries and the ones shared with you."""
    async def fetch():
        async with app.client() as client:
            return await client.list_libraries()

    display_libraries(_run(fetch()))


def _select_targets(requested: List[str], available: List[LibraryTarget]) -> List[LibraryTarget]:
    """Match --library values against ids first, then names."""
    selected: List[LibraryTarget] = []
    for wanted in requested:
        match: Optional[LibraryTarget] = next(
            (lib for lib in available if str(lib.id) == wanted), None
        ) or next((lib for lib in available if lib.name == wanted), None)
        if match is None:
            raise click.BadParameter(f"No library named or numbered {wanted!r}", param_hint="--library")
        if match not in selected:
            selected.append(match)
    return selected


@main.command()
@click.argument("paper_id")
@click.option("--library", "-l", "library_refs", multiple=True, help="Library id or name (repeatable)")
@click.pass_obj
def save(app: AppContext, paper_id, library_refs):
    """Save a paper to one or more libraries."""

    async def run():
        async with app.client() as client:
            workflow = LibrarySaveWorkflow(client, app.session)
            app.session.require_token()
            listing = await client.list_libraries()
            targets = _select_targets(list(library_refs), listing.all())
            p = await client.get_paper(paper_id)
            return await workflow.save(p, targets)

    summary = _run(run())
    display_save_summary(summary)
    if not summary.succeeded:
        raise click.exceptions.Exit(1)


@main.command("create-library")
@click.argument("name")
@click.option("--description", "-d", help="Short description")
@click.option("--public", "is_public", is_flag=True, help="Make the library public")
@click.pass_obj
def create_library(app: AppContext, name, description, is_public):
    """Create a new library."""

    async def run():
        async with app.client() as client:
            return await LibrarySaveWorkflow(client, app.session).create_library(
                name, description=description, is_public=is_public
            )

    library = _run(run())
    console.print(f"[green]Created library[/green] {library.name} (id {library.id})")


@main.command("clear-cache")
@click.option("--expired", is_flag=True, help="Only remove entries older than the cache TTL")
@click.pass_obj
def clear_cache(app: AppContext, expired):
    """Remove cached citation formats."""
    cache = app.cache()
    if expired:
        count = cache.clear_expired()
        console.print(f"  Cleared {count} expired cache entries")
    else:
        count = cache.clear()
        console.print(f"  Cleared {count} cache entries")


if __name__ == "__main__":
    main()
