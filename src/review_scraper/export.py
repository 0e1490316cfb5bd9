from __future__ import annotations

import csv
import io
from collections.abc import Mapping, Sequence
from typing import Any

from review_scraper.models import ScrapeResult


def convert_to_csv(records: Sequence[Mapping[str, Any]]) -> str:
    """
    Render records as CSV text.

    The header is the first record's keys in insertion order and governs every
    row; keys missing from a later record render as empty fields. Every value is
    quoted, inner quotes doubled.
    """

    if not records:
        return ""

    headers = list(records[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in records:
        writer.writerow(["" if record.get(key) is None else str(record.get(key)) for key in headers])
    return ",".join(headers) + "\n" + buffer.getvalue().rstrip("\n")


def result_to_csv(result: ScrapeResult) -> str:
    return convert_to_csv([review.to_dict() for review in result.reviews])
