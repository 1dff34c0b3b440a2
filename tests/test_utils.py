"""Tests for utility functions and edge cases."""

import re

import pytest
from citeshelf.models import Paper
from citeshelf.utils import (
    available_fields,
    filter_by_fields,
    html_to_text,
    page_numbers,
    paginate,
    sanitize_filename,
    sort_papers,
)


# --- sanitize_filename ---


def test_sanitize_filename_replaces_unsafe_chars():
    """Test replacing unsafe filename characters."""
    result = sanitize_filename("My Paper: A Study (2024)!!")
    assert result == "My-Paper--A-Study--2024---"
    assert re.fullmatch(r"[A-Za-z0-9._-]*", result)


def test_sanitize_filename_keeps_case_and_safe_punctuation():
    """Test that case, dots, dashes and underscores survive."""
    assert sanitize_filename("BERT_v2.final-draft") == "BERT_v2.final-draft"


def test_sanitize_filename_truncates():
    """Test filename length limit."""
    assert len(sanitize_filename("x" * 500)) == 120


def test_sanitize_filename_non_ascii():
    """Test non-ASCII characters in filenames."""
    assert sanitize_filename("Łukasz Kaiser") == "-ukasz-Kaiser"


def test_sanitize_filename_empty():
    """Test empty filename input."""
    assert sanitize_filename("") == ""
    assert sanitize_filename(None) == ""


# --- html_to_text ---


def test_html_to_text_strips_markup():
    """Test stripping HTML tags."""
    markup = '<div class="csl-entry">Vaswani, A. (2017). <i>Attention is all you need</i>.</div>'
    assert html_to_text(markup) == "Vaswani, A. (2017). Attention is all you need."


def test_html_to_text_decodes_entities():
    """Test decoding HTML entities."""
    assert html_to_text("Smith &amp; Jones") == "Smith & Jones"


def test_html_to_text_empty():
    """Test empty HTML input."""
    assert html_to_text("") == ""


# --- pagination ---


def test_paginate_middle_page():
    """Test a full middle page."""
    page = paginate(list(range(20)), page=2, per_page=7)
    assert page.items == [7, 8, 9, 10, 11, 12, 13]
    assert page.total_pages == 3
    assert page.start_index == 7
    assert page.has_next and page.has_previous


def test_paginate_last_page_partial():
    """Test a partial last page."""
    page = paginate(list(range(20)), page=3, per_page=7)
    assert page.items == [14, 15, 16, 17, 18, 19]
    assert not page.has_next


def test_paginate_clamps_page():
    """Test clamping out-of-range pages."""
    assert paginate(list(range(10)), page=99, per_page=7).page == 2
    assert paginate(list(range(10)), page=0, per_page=7).page == 1


def test_paginate_empty():
    """Test paginating an empty list."""
    page = paginate([])
    assert page.items == []
    assert page.total_pages == 1
    assert page.per_page == 7


def test_paginate_rejects_bad_page_size():
    """Test invalid page sizes."""
    with pytest.raises(ValueError):
        paginate([1], per_page=0)


@pytest.mark.parametrize(
    "current, total, expected",
    [
        (1, 0, []),
        (2, 4, [1, 2, 3, 4]),
        (1, 5, [1, 2, 3, 4, 5]),
        (2, 10, [1, 2, 3, 4, 5, "...", 10]),
        (9, 10, [1, "...", 6, 7, 8, 9, 10]),
        (6, 12, [1, "...", 5, 6, 7, "...", 12]),
    ],
)
def test_page_numbers(current, total, expected):
    """Test pager links with gaps."""
    assert page_numbers(current, total) == expected


# --- sorting and filtering ---


@pytest.fixture
def results():
    return [
        Paper(paper_id="a", citationCount=5, fieldsOfStudy=["Biology"]),
        Paper(paper_id="b", citationCount=50, fieldsOfStudy=["Computer Science", "Mathematics"]),
        Paper(paper_id="c", citationCount=0),
    ]


def test_sort_papers(results):
    """Test sorting by citations."""
    assert [p.paper_id for p in sort_papers(results)] == ["a", "b", "c"]
    assert [p.paper_id for p in sort_papers(results, "citations")] == ["b", "a", "c"]


def test_sort_papers_unknown_order(results):
    """Test an unknown sort order."""
    with pytest.raises(ValueError):
        sort_papers(results, "date")


def test_available_fields(results):
    """Test collecting fields of study."""
    assert available_fields(results) == ["Biology", "Computer Science", "Mathematics"]
    assert available_fields(results, limit=1) == ["Biology"]


def test_filter_by_fields(results):
    """Test filtering by field of study."""
    assert [p.paper_id for p in filter_by_fields(results, ["Mathematics"])] == ["b"]
    assert len(filter_by_fields(results, [])) == 3
