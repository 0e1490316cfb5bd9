from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from re import Pattern

from bs4 import BeautifulSoup, Tag

from review_scraper.errors import MarkupError

Strategy = Callable[[Tag], str]
Marker = tuple[str, Pattern[str]]


def clean_spaces(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def node_text(node: Tag | None) -> str:
    if node is None:
        return ""
    return clean_spaces(node.get_text(" ", strip=True))


def load_html(html: str) -> BeautifulSoup:
    body = html.lstrip()
    if body.startswith("{") and '"status"' in body:
        raise MarkupError(f"relay returned an error payload: {body[:200]}")
    return BeautifulSoup(html, "html.parser")


@contextmanager
def markup_guard(site: str) -> Iterator[None]:
    try:
        yield
    except MarkupError:
        raise
    except Exception as exc:
        raise MarkupError(f"{site} markup could not be parsed: {exc}") from exc


def select_text(selector: str) -> Strategy:
    def strategy(root: Tag) -> str:
        return node_text(root.select_one(selector))

    return strategy


def select_all_text(selector: str) -> Strategy:
    def strategy(root: Tag) -> str:
        return clean_spaces(" ".join(node_text(node) for node in root.select(selector)))

    return strategy


def select_attr(selector: str, attribute: str) -> Strategy:
    def strategy(root: Tag) -> str:
        node = root.select_one(selector)
        if node is None:
            return ""
        return str(node.get(attribute) or "").strip()

    return strategy


def select_matching_text(selector: str, pattern: Pattern[str]) -> Strategy:
    """Text of the first ``selector`` match whose own text satisfies ``pattern``."""

    def strategy(root: Tag) -> str:
        for node in root.select(selector):
            text = node_text(node)
            if pattern.search(text):
                return text
        return ""

    return strategy


def first_non_empty(root: Tag, strategies: Sequence[Strategy], default: str = "") -> str:
    for strategy in strategies:
        value = strategy(root)
        if value:
            return value
    return default


def first_matching(root: Tag, selectors: Sequence[str]) -> list[Tag]:
    for selector in selectors:
        nodes = root.select(selector)
        if nodes:
            return nodes
    return []


def segment_by_markers(text: str, markers: Sequence[Marker]) -> dict[str, str]:
    """
    Split ``text`` into answers that follow labelled markers.

    Each marker's answer runs from the end of its first match to the start of
    whichever other marker appears next, or to the end of the text. Markers that
    do not occur map to an empty string.
    """

    hits: list[tuple[int, int, str]] = []
    for name, pattern in markers:
        match = pattern.search(text)
        if match:
            hits.append((match.start(), match.end(), name))
    hits.sort()

    segments = {name: "" for name, _ in markers}
    for index, (_, end, name) in enumerate(hits):
        stop = hits[index + 1][0] if index + 1 < len(hits) else len(text)
        segments[name] = text[end:max(stop, end)].strip()
    return segments


def generate_page_url(base_url: str, page: int) -> str:
    if page == 1:
        return base_url
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}page={page}"


def with_query_param(url: str, key: str, value: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{key}={value}"
