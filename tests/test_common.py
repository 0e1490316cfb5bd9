import re

import pytest
from bs4 import BeautifulSoup

from review_scraper.errors import MarkupError
from review_scraper.scrapers.common import (
    first_matching,
    first_non_empty,
    generate_page_url,
    load_html,
    markup_guard,
    segment_by_markers,
    select_attr,
    select_text,
)

MARKERS = (
    ("like", re.compile(r"What do you like best about[^?]*\?", re.IGNORECASE)),
    ("dislike", re.compile(r"What do you dislike about[^?]*\?", re.IGNORECASE)),
    ("problemsSolved", re.compile(r"What problems[^?]*\?", re.IGNORECASE)),
)


def test_first_non_empty_stops_at_first_hit() -> None:
    root = BeautifulSoup("<div><span class='b'>second</span><i data-x='third'></i></div>", "html.parser")
    evaluated: list[str] = []

    def tracked(name: str, strategy):
        def wrapper(node):
            evaluated.append(name)
            return strategy(node)

        return wrapper

    strategies = (
        tracked("missing", select_text("span.a")),
        tracked("class", select_text("span.b")),
        tracked("attr", select_attr("i", "data-x")),
    )

    assert first_non_empty(root, strategies) == "second"
    assert evaluated == ["missing", "class"]


def test_first_non_empty_falls_back_to_default() -> None:
    root = BeautifulSoup("<div></div>", "html.parser")

    assert first_non_empty(root, (select_text("h1"), select_attr("a", "href")), default="N/A") == "N/A"


def test_first_matching_uses_first_selector_with_nodes() -> None:
    root = BeautifulSoup("<ul><li class='x'>1</li><li class='x'>2</li><li>3</li></ul>", "html.parser")

    nodes = first_matching(root, ("li.missing", "li.x", "li"))

    assert [node.get_text() for node in nodes] == ["1", "2"]


def test_segment_by_markers_splits_at_next_marker() -> None:
    text = "What do you like best about X? Great support What do you dislike about X? Slow UI"

    assert segment_by_markers(text, MARKERS) == {
        "like": "Great support",
        "dislike": "Slow UI",
        "problemsSolved": "",
    }


def test_segment_by_markers_follows_text_order_not_marker_order() -> None:
    text = (
        "What problems is X solving? Chat sprawl "
        "What do you dislike about X? Notifications "
        "What do you like best about X? Threads"
    )

    assert segment_by_markers(text, MARKERS) == {
        "like": "Threads",
        "dislike": "Notifications",
        "problemsSolved": "Chat sprawl",
    }


def test_generate_page_url_appends_page_parameter() -> None:
    assert generate_page_url("https://example.com/reviews", 1) == "https://example.com/reviews"
    assert generate_page_url("https://example.com/reviews", 3) == "https://example.com/reviews?page=3"
    assert generate_page_url("https://example.com/r?languages=all", 2) == "https://example.com/r?languages=all&page=2"


def test_load_html_rejects_relay_error_payload() -> None:
    with pytest.raises(MarkupError):
        load_html('{"status": "failed", "message": "Could not fetch page"}')


def test_markup_guard_wraps_unexpected_errors() -> None:
    with pytest.raises(MarkupError) as excinfo:
        with markup_guard("G2"):
            raise AttributeError("'NoneType' object has no attribute 'get_text'")

    assert isinstance(excinfo.value.__cause__, AttributeError)
