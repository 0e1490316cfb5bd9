"""
Date resolution for scraped review dates.

Review sites report dates either as calendar dates in a handful of formats or
as elapsed time ("3 months ago"). Everything resolves to a ``datetime.date``;
strings that cannot be resolved give ``None``, which never falls inside a range.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta
from typing import TypeVar

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

_YMD_SLASH = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")
_MDY_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_LEADING_INT = re.compile(r"^\s*(\d+)")

DateResolver = Callable[[str], "date | None"]
T = TypeVar("T")


def _general_parse(text: str) -> date | None:
    try:
        return dateparser.parse(text).date()
    except (ValueError, OverflowError):
        return None


def _build_date(year: str, month: str, day: str) -> date | None:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def parse_date(text: str) -> date | None:
    """Parse an absolute date: ``YYYY/MM/DD``, ``MM/DD/YYYY`` or anything dateutil reads."""
    text = (text or "").strip()
    if not text:
        return None

    match = _YMD_SLASH.match(text)
    if match:
        year, month, day = match.groups()
        return _build_date(year, month, day)

    match = _MDY_SLASH.match(text)
    if match:
        month, day, year = match.groups()
        return _build_date(year, month, day)

    return _general_parse(text)


def resolve_relative_date(text: str, now: datetime | date | None = None) -> date | None:
    """
    Resolve "<n> years/months/days ago" against ``now``.

    Month arithmetic borrows from the year ("14 months ago" from 2024-03-15 is
    2023-01-15) and clamps the day to the length of the target month. Strings
    without a unit and a leading integer are parsed as absolute dates.
    """

    text = (text or "").strip()
    if not text:
        return None

    reference = now or datetime.now()
    if isinstance(reference, datetime):
        reference = reference.date()

    lowered = text.casefold()
    match = _LEADING_INT.match(text)
    if match:
        amount = int(match.group(1))
        try:
            if "year" in lowered:
                return reference - relativedelta(years=amount)
            if "month" in lowered:
                return reference - relativedelta(months=amount)
            if "day" in lowered:
                return reference - timedelta(days=amount)
        except (ValueError, OverflowError):
            return None

    return parse_date(text)


def in_date_range(value: date | None, start: date, end: date) -> bool:
    if value is None:
        return False
    return start <= value <= end


def filter_reviews_by_date(
    reviews: Iterable[T],
    start: date,
    end: date,
    *,
    resolve: DateResolver,
    keep_undated: bool = False,
    undated_marker: str | None = None,
) -> list[T]:
    """
    Keep reviews whose ``reviewDate`` resolves inside ``[start, end]``.

    Reviews whose date equals ``undated_marker`` are kept only when
    ``keep_undated`` is set; they carry the marker in the output.
    """

    kept: list[T] = []
    for review in reviews:
        raw = getattr(review, "reviewDate", "")
        if undated_marker is not None and raw == undated_marker:
            if keep_undated:
                kept.append(review)
            continue
        if in_date_range(resolve(raw), start, end):
            kept.append(review)
    return kept
