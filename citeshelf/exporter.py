"""Copy citations to the clipboard and save them to files."""

import base64
import logging
import sys
from pathlib import Path
from typing import Callable, Iterable, Optional, TextIO

import pyperclip

from .errors import FormatNotLoadedError
from .formatter import format_citation, format_endnote
from .models import CitationFormat, CitationStyle, Paper
from .utils import html_to_text, sanitize_filename

logger = logging.getLogger(__name__)

MIME_TYPES = {
    CitationStyle.BIBTEX: "application/x-bibtex",
}
ENDNOTE_MIME_TYPE = "application/x-endnote-refer"


def can_export(fmt: Optional[CitationFormat]) -> bool:
    """Copy and download are only available once the format has loaded."""
    return bool(fmt and fmt.is_loaded)


def _require_loaded(fmt: Optional[CitationFormat], style: str = "citation") -> CitationFormat:
    if not can_export(fmt):
        raise FormatNotLoadedError(fmt.label if fmt else style)
    return fmt


def citation_text(fmt: CitationFormat) -> str:
    """Plain text of a format: BibTeX as is, HTML styles with markup stripped."""
    if fmt.is_html:
        return html_to_text(fmt.value)
    return fmt.value or ""


def osc52_copy(text: str, stream: Optional[TextIO] = None) -> None:
    """Ask the terminal to put text on the clipboard (OSC 52 selection)."""
    stream = stream or sys.stdout
    if not stream.isatty():
        raise OSError("stdout is not a terminal")
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    stream.write(f"\033]52;c;{encoded}\a")
    stream.flush()


class ClipboardExporter:
    """Copy a loaded citation, falling back to terminal selection copy."""

    def __init__(
        self,
        primary: Callable[[str], None] = pyperclip.copy,
        fallback: Callable[[str], None] = osc52_copy,
    ):
        self.primary = primary
        self.fallback = fallback

    def copy(self, fmt: CitationFormat) -> bool:
        """
        Copy the citation text.

        Returns:
            True if either copy path succeeded

        Raises:
            FormatNotLoadedError: The format is still loading
        """
        text = citation_text(_require_loaded(fmt))
        try:
            self.primary(text)
            return True
        except Exception as e:
            logger.debug("Clipboard copy failed (%s), trying terminal selection", e)

        try:
            self.fallback(text)
            return True
        except Exception as e:
            # Both paths failed; the caller just shows no confirmation
            logger.debug("Terminal selection copy failed: %s", e)
            return False


class FileExporter:
    """Write citations into an output directory."""

    def __init__(self, output_dir: str = "."):
        self.output_dir = Path(output_dir)

    @staticmethod
    def filename_for(title: Optional[str], style: CitationStyle) -> str:
        extension = ".bib" if CitationStyle(style) is CitationStyle.BIBTEX else ".txt"
        return sanitize_filename(title or "paper") + extension

    @staticmethod
    def mime_type(style: CitationStyle) -> str:
        return MIME_TYPES.get(CitationStyle(style), "text/plain")

    def _write(self, filename: str, content: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        path.write_text(content, encoding="utf-8")
        return path

    def download(self, fmt: CitationFormat, title: Optional[str]) -> Path:
        """
        Save one loaded citation format to a file named after the paper.

        Raises:
            FormatNotLoadedError: The format is still loading
            OSError: The file could not be written
        """
        fmt = _require_loaded(fmt)
        path = self._write(self.filename_for(title, fmt.id), citation_text(fmt))
        logger.info("Saved %s citation (%s) to %s", fmt.label, self.mime_type(fmt.id), path)
        return path

    def download_endnote(self, paper: Paper) -> Path:
        """Save an EndNote record for the paper."""
        filename = sanitize_filename(paper.title or "citation") + ".enw"
        path = self._write(filename, format_endnote(paper))
        logger.info("Saved EndNote record (%s) to %s", ENDNOTE_MIME_TYPE, path)
        return path

    def export_batch(self, papers: Iterable[Paper], output_path: str) -> int:
        """
        Save locally generated BibTeX for many papers to one .bib file.

        Args:
            papers: Papers to export
            output_path: Path to output .bib file

        Returns:
            Number of entries exported
        """
        entries = [p.bibtex or format_citation(p, CitationStyle.BIBTEX) for p in papers]

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write("% BibTeX export by CiteShelf\n")
            f.write(f"% Entries: {len(entries)}\n\n")
            f.write("\n\n".join(entries))

        return len(entries)
