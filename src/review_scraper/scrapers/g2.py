from __future__ import annotations

import logging
import math
import random
import re
import time
from collections.abc import Callable
from datetime import date
from functools import partial

from bs4 import Tag

from review_scraper.config import Settings
from review_scraper.dates import filter_reviews_by_date, resolve_relative_date
from review_scraper.errors import ScrapeError
from review_scraper.fetcher import Fetch
from review_scraper.models import G2Review, ParsedPage, ProductSummary, ReviewSite, ScrapeJob, ScrapeResult
from review_scraper.retry import RetryPolicy, Sleep
from review_scraper.scrapers.common import (
    first_non_empty,
    generate_page_url,
    load_html,
    markup_guard,
    node_text,
    segment_by_markers,
    select_attr,
    select_matching_text,
    select_text,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
MIN_REVIEW_TEXT_LENGTH = 10
UNKNOWN_DATE = "unknown"

_TITLE_SUFFIX = re.compile(r"\s*Reviews \d{4}: Details, Pricing, & Features \| G2$")
_PAGE_PREFIX = re.compile(r"^Page \d+ \| ")
_SITE_BOILERPLATE = re.compile(r"G2 - Business Software Reviews.*$", re.IGNORECASE)
_REVIEWS_TAIL = re.compile(r"\s*Reviews.*$", re.IGNORECASE)
_DECIMAL = re.compile(r"(\d+\.?\d*)")
_REVIEW_COUNT = re.compile(r"(\d+(?:,\d+)*)\s*review", re.IGNORECASE)
_REVIEW_RATING = re.compile(r"(\d+(?:\.\d+)?)\s*/\s*5")
_RATING_PREFIX = re.compile(r"^[0-5](?:\.\d+)?\s*/\s*5")
_SHOW_MORE = re.compile(r"\s*Show More$")
_EDGE_QUOTES = re.compile(r"^[\"']+|[\"']+$")

QUESTION_MARKERS = (
    ("like", re.compile(r"What do you like best about[^?]*\?", re.IGNORECASE)),
    ("dislike", re.compile(r"What do you dislike about[^?]*\?", re.IGNORECASE)),
    ("problemsSolved", re.compile(r"What problems[^?]*\?", re.IGNORECASE)),
)

RATING_STRATEGIES = (
    select_text('[data-testid="rating-badge"] span'),
    select_text(".rating-badge span"),
    select_text('[class*="rating"]'),
)
REVIEW_COUNT_STRATEGIES = (
    select_text('[data-testid="review-count"]'),
    select_matching_text("span", re.compile(r"\d+\s*review", re.IGNORECASE)),
    select_text(".review-count"),
    select_matching_text("h2", re.compile(r"review", re.IGNORECASE)),
    select_text('[class*="review-count"]'),
    select_matching_text("*", re.compile(r"^\d+\s*reviews?$", re.IGNORECASE)),
)


def _first_child_text(scope: str) -> Callable[[Tag], str]:
    return select_text(f"{scope} a, {scope} span, {scope} div")


REVIEWER_STRATEGIES = (
    _first_child_text('[data-testid="reviewer-info"]'),
    _first_child_text('[class*="reviewer"]'),
    _first_child_text('[class*="user"]'),
)
DATE_STRATEGIES = (
    select_attr("time[datetime]", "datetime"),
    select_attr("[datetime]", "datetime"),
    select_text("time"),
    select_text('[class*="date"]'),
)
JOB_TITLE_STRATEGIES = (
    select_text('[class*="title"]'),
    select_text('[class*="job"]'),
    select_text('[class*="position"]'),
)


def clean_product_name(page_title: str) -> str:
    name = _TITLE_SUFFIX.sub("", page_title.strip())
    name = name.replace(" | G2", "")
    name = _PAGE_PREFIX.sub("", name).strip()
    name = _SITE_BOILERPLATE.sub("", name)
    name = _REVIEWS_TAIL.sub("", name).strip()
    return name or "Unknown Product"


def _first_token(pattern: re.Pattern[str], text: str) -> str:
    match = pattern.search(text)
    return match.group(1) if match else text


def _review_container(body: Tag) -> Tag:
    anchor = body if body.name == "div" else body.find_parent("div")
    if anchor is None:
        return body
    return anchor.parent or anchor


def _clean_review_text(raw: str) -> str:
    text = _RATING_PREFIX.sub("", raw.strip())
    text = text.replace("Review collected by and hosted on G2.com.", "")
    text = _SHOW_MORE.sub("", text.strip())
    return re.sub(r"\s+", " ", text).strip()


def _parse_review(body: Tag, position: int) -> G2Review | None:
    container = _review_container(body)
    raw_text = node_text(body)

    rating_match = _REVIEW_RATING.search(raw_text)
    text = _clean_review_text(raw_text)
    answers = segment_by_markers(text, QUESTION_MARKERS)
    if not any(answers.values()) and len(text) < MIN_REVIEW_TEXT_LENGTH:
        return None

    title = select_text('[itemprop="name"] div')(container)
    title = _EDGE_QUOTES.sub("", title).strip() or f"Review {position}"

    review_date = first_non_empty(container, DATE_STRATEGIES)
    if not review_date or review_date == "Unknown Date":
        review_date = UNKNOWN_DATE

    return G2Review(
        reviewerName=first_non_empty(container, REVIEWER_STRATEGIES, default=f"Anonymous-{position}"),
        jobTitle=first_non_empty(container, JOB_TITLE_STRATEGIES, default="N/A"),
        reviewDate=review_date,
        stars=rating_match.group(1) if rating_match else "N/A",
        reviewTitle=title,
        like=answers["like"],
        dislike=answers["dislike"],
        problemsSolved=answers["problemsSolved"],
    )


def parse_g2_page(html: str) -> ParsedPage:
    with markup_guard("G2"):
        soup = load_html(html)

        title_node = soup.find("title")
        product_name = clean_product_name(title_node.get_text() if title_node else "")

        stars = first_non_empty(soup, RATING_STRATEGIES, default="N/A")
        if stars != "N/A":
            stars = _first_token(_DECIMAL, stars)

        total_reviews = first_non_empty(soup, REVIEW_COUNT_STRATEGIES, default="N/A")
        if total_reviews != "N/A":
            total_reviews = _first_token(_REVIEW_COUNT, total_reviews)

        reviews: list[G2Review] = []
        bodies = soup.select('[itemprop="reviewBody"]')
        for body in bodies:
            review = _parse_review(body, len(reviews) + 1)
            if review is not None:
                reviews.append(review)

    logger.info("G2 page: %s review bodies, %s reviews kept", len(bodies), len(reviews))
    return ParsedPage(
        summary=ProductSummary(
            productName=product_name,
            reviewSite=ReviewSite.G2,
            stars=stars,
            totalReviews=total_reviews,
        ),
        reviews=reviews,
    )


def _load_page(fetch: Fetch, url: str) -> ParsedPage:
    return parse_g2_page(fetch(url))


def scrape_g2(
    job: ScrapeJob,
    fetch: Fetch,
    settings: Settings,
    *,
    policy: RetryPolicy,
    sleep: Sleep = time.sleep,
    today: date | None = None,
    jitter: Callable[[float, float], float] = random.uniform,
) -> ScrapeResult:
    max_reviews = settings.g2_max_reviews
    in_range = partial(
        filter_reviews_by_date,
        start=job.start_date,
        end=job.end_date,
        resolve=partial(resolve_relative_date, now=today),
        keep_undated=settings.keep_undated_reviews,
        undated_marker=UNKNOWN_DATE,
    )

    first = policy.run(partial(_load_page, fetch, job.url))
    scraped = len(first.reviews)
    filtered = in_range(first.reviews)
    logger.info("G2 %s: %s reviews, %s within date range", job.url, scraped, len(filtered))

    if len(filtered) < max_reviews and len(first.reviews) >= PAGE_SIZE:
        max_pages = math.ceil(max_reviews / PAGE_SIZE)
        page = 2
        while page <= max_pages and len(filtered) < max_reviews:
            sleep(settings.g2_page_delay_seconds + jitter(0.0, settings.g2_page_delay_jitter_seconds))
            page_url = generate_page_url(job.url, page)
            try:
                parsed = policy.run(partial(_load_page, fetch, page_url))
            except ScrapeError as exc:
                logger.error("G2 page %s failed, keeping earlier pages: %s", page, exc)
                break
            if not parsed.reviews:
                break
            scraped += len(parsed.reviews)
            filtered.extend(in_range(parsed.reviews))
            page += 1

    logger.info("G2 %s: %s reviews scraped, %s kept", job.url, scraped, min(len(filtered), max_reviews))
    return ScrapeResult(summary=first.summary, reviews=tuple(filtered[:max_reviews]))
