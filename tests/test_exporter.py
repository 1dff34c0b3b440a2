"""Tests for clipboard and file export."""

import io

import pytest
from citeshelf.errors import FormatNotLoadedError
from citeshelf.exporter import (
    ClipboardExporter,
    FileExporter,
    can_export,
    citation_text,
    osc52_copy,
)
from citeshelf.models import CitationFormat, CitationStyle, Paper

BIBTEX = CitationFormat(id="bibtex", label="BibTeX", value="@article{a,}", is_loaded=True)
APA = CitationFormat(id="apa", label="APA", value="<div>Doe, J. <i>Title</i>.</div>", is_loaded=True)
LOADING = CitationFormat.placeholder(CitationStyle.MLA)


class Recorder:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.copied = []

    def __call__(self, text):
        if self.fail:
            raise RuntimeError("no clipboard")
        self.copied.append(text)


def test_can_export_bound_to_is_loaded():
    """Export controls are enabled exactly when the format is loaded."""
    assert can_export(BIBTEX)
    assert not can_export(LOADING)
    assert not can_export(None)


def test_citation_text():
    """Test plain text for BibTeX and HTML styles."""
    assert citation_text(BIBTEX) == "@article{a,}"
    assert citation_text(APA) == "Doe, J. Title."


def test_copy_uses_primary():
    """Test copying through the system clipboard."""
    primary, fallback = Recorder(), Recorder()
    assert ClipboardExporter(primary, fallback).copy(APA) is True
    assert primary.copied == ["Doe, J. Title."]
    assert fallback.copied == []


def test_copy_falls_back_on_clipboard_failure():
    """Test the terminal fallback when the clipboard fails."""
    primary, fallback = Recorder(fail=True), Recorder()
    assert ClipboardExporter(primary, fallback).copy(BIBTEX) is True
    assert fallback.copied == ["@article{a,}"]


def test_copy_both_paths_fail_silently():
    """Test that a failed copy returns False without raising."""
    exporter = ClipboardExporter(Recorder(fail=True), Recorder(fail=True))
    assert exporter.copy(BIBTEX) is False


def test_copy_refuses_unloaded_format():
    """Test that a loading format cannot be copied."""
    primary = Recorder()
    with pytest.raises(FormatNotLoadedError):
        ClipboardExporter(primary, Recorder()).copy(LOADING)
    assert primary.copied == []


def test_osc52_requires_terminal():
    """Test that the terminal copy needs a tty."""
    with pytest.raises(OSError):
        osc52_copy("text", io.StringIO())


def test_filename_and_mime():
    """Test filenames, extensions and MIME types."""
    assert FileExporter.filename_for("My Paper: A Study (2024)!!", "bibtex") == "My-Paper--A-Study--2024---.bib"
    assert FileExporter.filename_for(None, CitationStyle.APA) == "paper.txt"
    assert FileExporter.mime_type("bibtex") == "application/x-bibtex"
    assert FileExporter.mime_type("ieee") == "text/plain"


def test_download_writes_file(tmp_path):
    """Test downloading BibTeX to a file."""
    path = FileExporter(str(tmp_path / "out")).download(BIBTEX, "Attention Is All You Need")
    assert path.name == "Attention-Is-All-You-Need.bib"
    assert path.read_text(encoding="utf-8") == "@article{a,}"


def test_download_html_style_as_text(tmp_path):
    """Test that HTML styles are saved without markup."""
    path = FileExporter(str(tmp_path)).download(APA, "T")
    assert path.name == "T.txt"
    assert path.read_text(encoding="utf-8") == "Doe, J. Title."


def test_download_refuses_unloaded_format(tmp_path):
    """Test that a loading format cannot be downloaded."""
    with pytest.raises(FormatNotLoadedError):
        FileExporter(str(tmp_path)).download(LOADING, "T")
    assert list(tmp_path.iterdir()) == []


def test_download_endnote(tmp_path, sample_paper):
    """Test saving an EndNote record."""
    path = FileExporter(str(tmp_path)).download_endnote(sample_paper)
    assert path.suffix == ".enw"
    assert path.read_text(encoding="utf-8").startswith("%0 Journal Article\n%T Attention")


def test_export_batch(tmp_path, sample_paper):
    """Test exporting several papers to one .bib file."""
    embedded = Paper(title="Other", bibtex="@misc{other,}")
    output = tmp_path / "refs" / "all.bib"
    count = FileExporter().export_batch([sample_paper, embedded], str(output))

    assert count == 2
    content = output.read_text(encoding="utf-8")
    assert content.startswith("% BibTeX export by CiteShelf\n% Entries: 2\n")
    assert "@inproceedings{AshishVaswani2017," in content
    assert "@misc{other,}" in content
