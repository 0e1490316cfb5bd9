from __future__ import annotations

import logging
import re
import time
from functools import partial

from bs4 import Tag

from review_scraper.config import Settings
from review_scraper.dates import filter_reviews_by_date, parse_date
from review_scraper.errors import MarkupError
from review_scraper.fetcher import Fetch
from review_scraper.models import ParsedPage, ProductSummary, ReviewSite, ScrapeJob, ScrapeResult, TextReview
from review_scraper.retry import RetryPolicy, Sleep
from review_scraper.scrapers.common import (
    generate_page_url,
    load_html,
    markup_guard,
    node_text,
    select_attr,
    select_text,
    with_query_param,
)

logger = logging.getLogger(__name__)

CARD_SELECTOR = "div.styles_cardWrapper__g8amG.styles_show__Z8n7u"
NEXT_PAGE_SELECTOR = 'a[name="pagination-button-next"]'

_HEADER = re.compile(r"^(.+?)\s+Reviews\s+([\d,]+)$")


def _parse_card(card: Tag) -> TextReview | None:
    reviewer_name = select_text("article div a span")(card)
    review_title = select_text("h2[data-service-review-title-typography]")(card)
    review_text = select_text("p[data-service-review-text-typography]")(card)
    if not reviewer_name and not review_text:
        return None

    review_date = select_attr("time[data-service-review-date-time-ago]", "datetime")(card)
    if not review_date:
        review_date = select_text("time")(card)

    return TextReview(
        reviewerName=reviewer_name,
        jobTitle="",
        reviewDate=review_date.split("T")[0],
        stars=select_attr("[data-service-review-rating]", "data-service-review-rating")(card),
        reviewTitle=review_title,
        reviewText=review_text,
    )


def parse_trustpilot_page(html: str) -> ParsedPage:
    with markup_guard("Trustpilot"):
        soup = load_html(html)

        header = node_text(soup.find("h1"))
        match = _HEADER.match(header)
        if match:
            product_name, total_reviews = match.group(1), match.group(2).replace(",", "")
        else:
            product_name, total_reviews = header, ""

        reviews = [
            review
            for review in (_parse_card(card) for card in soup.select(CARD_SELECTOR))
            if review is not None
        ]
        next_link = soup.select_one(NEXT_PAGE_SELECTOR)
        has_next_page = bool(next_link is not None and next_link.get("href"))

    return ParsedPage(
        summary=ProductSummary(
            productName=product_name,
            reviewSite=ReviewSite.TRUSTPILOT,
            stars=select_text('p[data-rating-typography="true"]')(soup),
            totalReviews=total_reviews,
        ),
        reviews=reviews,
        has_next_page=has_next_page,
    )


def _load_page(fetch: Fetch, url: str) -> ParsedPage:
    return parse_trustpilot_page(fetch(url))


def scrape_trustpilot(
    job: ScrapeJob,
    fetch: Fetch,
    settings: Settings,
    *,
    policy: RetryPolicy,
    sleep: Sleep = time.sleep,
) -> ScrapeResult:
    """
    Walk review pages newest first until the window is passed or pages run out.

    A markup failure on page one abandons the job; on later pages it ends the
    walk and keeps what was collected. Transport failures always propagate.
    """

    base_url = with_query_param(job.url, "languages", "all")
    summary: ProductSummary | None = None
    collected: list[TextReview] = []
    page = 1

    while True:
        page_url = generate_page_url(base_url, page)
        logger.info("Trustpilot page %s: %s", page, page_url)
        try:
            parsed = policy.run(partial(_load_page, fetch, page_url))
        except MarkupError as exc:
            if summary is None:
                raise
            logger.error("Trustpilot page %s unparseable, stopping: %s", page, exc)
            break

        if summary is None:
            summary = parsed.summary
        if not parsed.reviews:
            logger.info("no reviews on page %s after retries, stopping", page)
            break

        in_window = filter_reviews_by_date(
            parsed.reviews, job.start_date, job.end_date, resolve=parse_date
        )
        collected.extend(in_window)
        logger.info(
            "found %s reviews on page %s, %s within date range", len(parsed.reviews), page, len(in_window)
        )

        oldest = parse_date(parsed.reviews[-1].reviewDate)
        if oldest is not None and oldest < job.start_date:
            logger.info("reached reviews older than %s, stopping", job.start_date)
            break
        if not parsed.has_next_page:
            logger.info("no more Trustpilot pages")
            break

        page += 1
        sleep(settings.trustpilot_page_delay_seconds)

    return ScrapeResult(summary=summary, reviews=tuple(collected))
