from __future__ import annotations

import logging
import re
from datetime import date
from functools import partial

from bs4 import Tag

from review_scraper.dates import filter_reviews_by_date, resolve_relative_date
from review_scraper.fetcher import Fetch
from review_scraper.models import CapterraReview, ParsedPage, ProductSummary, ReviewSite, ScrapeJob, ScrapeResult
from review_scraper.retry import RetryPolicy
from review_scraper.scrapers.common import (
    Strategy,
    first_matching,
    first_non_empty,
    load_html,
    markup_guard,
    node_text,
    select_all_text,
    select_text,
)

logger = logging.getLogger(__name__)

PRODUCT_NAME_SELECTORS = (
    "div#productHeader > div.container > div#productHeaderInfo > div.col > h1.mb-1",
    "h1[data-testid='product-name']",
    "h1.product-name",
    "h1",
    "[data-testid='product-header'] h1",
)
STARS_SELECTORS = (
    ".hbasb1j + div .sr2r3oj",
    "div#productHeader > div.container > div#productHeaderInfo > div.col"
    " > div.align-items-center.d-flex > span.star-rating-component > span.d-flex > span.ms-1",
    "[data-testid='overall-rating']",
    ".star-rating span",
    "[data-testid='product-rating']",
    ".sr2r3oj",
)
REVIEW_CARD_SELECTORS = (
    'div[data-test-id="review-cards-container"] > div.e1xzmg0z.c1ofrhif.typo-10.mb-6',
    'div[data-test-id="review-cards-container"] > div',
    "div.e1xzmg0z.c1ofrhif.typo-10.mb-6",
    '[data-test-id="review-cards-container"]',
    "div.review-card",
    ".review-card",
)
REVIEW_TEXT_SELECTORS = (
    "div[class*='mt-'] p",
    ".review-text p",
    "[data-testid='review-content'] p",
    "p:-soup-contains('Comment')",
    ".comment-text",
)

# Ordered: multi-word industries must be tried before the single words they contain.
INDUSTRY_KEYWORDS = (
    "Computer Software",
    "Information Technology",
    "Technology and Services",
    "Marketing and Advertising",
    "Food & Beverages",
    "Real Estate",
    "Mechanical or Industrial Engineering",
    "Financial Services",
    "Insurance",
    "Software",
    "Technology",
    "Services",
    "Engineering",
    "Estate",
    "Beverages",
    "Marketing",
    "Advertising",
    "Financial",
)

_REVIEWS_OF_PREFIX = re.compile(r"^Reviews\s+of\s+", re.IGNORECASE)
_REVIEWS_SUFFIX = re.compile(r"\s+Reviews$", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^(\d+\.?\d*)")
_USAGE = re.compile(r"Used the software for:\s*(.+)", re.DOTALL)
_USAGE_TAIL = re.compile(r"Used the software for:.*$", re.DOTALL)
_NAME_WITH_INITIAL = re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+[A-Z]\.\s*")
_VERIFIED_REVIEWER = re.compile(r"^Verified Reviewer\s*")
_COMPANY_TAIL = re.compile(
    r"\s+(Computer|Information|Technology|Marketing|Real|Food|Financial|Mechanical).*$"
)
_SECTION_LABELS = ("Comments:", "Pros:", "Cons:")


def _product_name(root: Tag) -> str:
    for selector in PRODUCT_NAME_SELECTORS:
        name = select_text(selector)(root)
        if name:
            return _REVIEWS_OF_PREFIX.sub("", name).strip()
    return ""


def _stars_strategy(selector: str) -> Strategy:
    def strategy(root: Tag) -> str:
        text = select_text(selector)(root)
        match = _LEADING_NUMBER.match(text)
        return match.group(1) if match else text

    return strategy


STARS_STRATEGIES = tuple(_stars_strategy(selector) for selector in STARS_SELECTORS)


def _comment_strategy(selector: str) -> Strategy:
    extract = select_all_text(selector)

    def strategy(root: Tag) -> str:
        text = extract(root)
        if any(label in text for label in _SECTION_LABELS):
            return ""
        return text

    return strategy


REVIEW_TEXT_STRATEGIES = tuple(_comment_strategy(selector) for selector in REVIEW_TEXT_SELECTORS)


def _next_paragraph(node: Tag | None) -> str:
    if node is None:
        return ""
    sibling = node.find_next_sibling()
    if sibling is None or sibling.name != "p":
        return ""
    return node_text(sibling)


def _closest_div_next_paragraph(label: Tag) -> str:
    anchor = label if label.name == "div" else label.find_parent("div")
    return _next_paragraph(anchor)


def _parent_next_paragraph(label: Tag) -> str:
    return _next_paragraph(label.parent)


def _sibling_paragraphs(label: Tag) -> str:
    parent = label.parent
    if parent is None:
        return ""
    texts = [node_text(node) for node in parent.find_all("p", recursive=False) if node is not label]
    return " ".join(text for text in texts if text)


LABELLED_TEXT_STRATEGIES = (
    _closest_div_next_paragraph,
    _parent_next_paragraph,
    _sibling_paragraphs,
)


def _labelled_text(card: Tag, label: str) -> str:
    key = label.lower()
    selectors = (
        f"span:-soup-contains('{label}')",
        f"div:-soup-contains('{label}')",
        f"[data-testid='{key}']",
        f".{key}-section",
    )
    for selector in selectors:
        node = card.select_one(selector)
        if node is None:
            continue
        text = first_non_empty(node, LABELLED_TEXT_STRATEGIES)
        if text:
            return text
    return ""


def decompose_profile(profile_text: str) -> tuple[str, str, str]:
    """
    Split a reviewer profile line into ``(job_title, industry, usage_duration)``.

    The line looks like ``"Jane D. Marketing Manager Computer Software Used the
    software for: 1-2 years"``; fields are not delimited in the markup.
    """

    profile_text = profile_text.strip()
    if not profile_text:
        return "", "", ""

    usage_match = _USAGE.search(profile_text)
    usage = usage_match.group(1).strip() if usage_match else ""

    remaining = _USAGE_TAIL.sub("", profile_text).strip()
    cleaned = _NAME_WITH_INITIAL.sub("", remaining)
    if cleaned == remaining:
        cleaned = _VERIFIED_REVIEWER.sub("", remaining)

    job_title = cleaned.strip()
    industry = ""
    for keyword in INDUSTRY_KEYWORDS:
        position = cleaned.find(keyword)
        if position > 0:
            job_title = cleaned[:position].strip()
            industry = cleaned[position:].strip()
            break

    job_title = _COMPANY_TAIL.sub("", job_title).strip()
    return job_title, industry, usage


def _parse_card(card: Tag) -> CapterraReview | None:
    reviewer_name = select_text("span.typo-20.font-semibold")(card)
    review_text = first_non_empty(card, REVIEW_TEXT_STRATEGIES)
    if not reviewer_name and not review_text:
        return None

    job_title, industry, usage = decompose_profile(select_text("div.typo-10.text-neutral-90")(card))
    return CapterraReview(
        reviewerName=reviewer_name,
        jobTitle=job_title,
        reviewDate=select_text("div.typo-0.text-neutral-90")(card),
        stars=select_text("span.sr2r3oj")(card),
        reviewTitle="",
        reviewText=review_text,
        industry=industry,
        usageDuration=usage,
        pros=_labelled_text(card, "Pros"),
        cons=_labelled_text(card, "Cons"),
    )


def parse_capterra_page(html: str) -> ParsedPage:
    with markup_guard("Capterra"):
        soup = load_html(html)
        product_name = _REVIEWS_SUFFIX.sub("", _product_name(soup))
        stars = first_non_empty(soup, STARS_STRATEGIES)

        reviews: list[CapterraReview] = []
        for card in first_matching(soup, REVIEW_CARD_SELECTORS):
            review = _parse_card(card)
            if review is not None:
                reviews.append(review)

    logger.info("Capterra page: %s reviews", len(reviews))
    return ParsedPage(
        summary=ProductSummary(
            productName=product_name,
            reviewSite=ReviewSite.CAPTERRA,
            stars=stars,
            totalReviews=str(len(reviews)),
        ),
        reviews=reviews,
    )


def _load_page(fetch: Fetch, url: str) -> ParsedPage:
    return parse_capterra_page(fetch(url))


def scrape_capterra(
    job: ScrapeJob,
    fetch: Fetch,
    *,
    policy: RetryPolicy,
    today: date | None = None,
) -> ScrapeResult:
    # Only the first page is read; Capterra pagination is not followed.
    parsed = policy.run(partial(_load_page, fetch, job.url))
    filtered = filter_reviews_by_date(
        parsed.reviews,
        job.start_date,
        job.end_date,
        resolve=partial(resolve_relative_date, now=today),
    )
    logger.info(
        "Capterra %s: %s reviews, %s within date range", job.url, len(parsed.reviews), len(filtered)
    )
    return ScrapeResult(summary=parsed.summary, reviews=tuple(filtered))
