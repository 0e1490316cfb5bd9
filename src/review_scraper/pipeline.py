from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from contextlib import ExitStack
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from review_scraper.config import Settings
from review_scraper.errors import ScrapeError, UnsupportedPlatformError
from review_scraper.fetcher import Fetch, ProxyFetcher, build_client
from review_scraper.models import BatchResult, JobOutcome, ReviewSite, ScrapeJob, ScrapeResult
from review_scraper.retry import RetryPolicy, Sleep
from review_scraper.scrapers.capterra import scrape_capterra
from review_scraper.scrapers.g2 import scrape_g2
from review_scraper.scrapers.trustpilot import scrape_trustpilot

logger = logging.getLogger(__name__)

JobEntry = Mapping[str, Any]


def _host(url: str) -> str:
    if "://" not in url:
        url = f"https://{url.lstrip('/')}"
    return (urlparse(url).hostname or "").casefold()


def _is_capterra(url: str) -> bool:
    return "capterra" in _host(url)


def _is_g2(url: str) -> bool:
    host = _host(url)
    return host == "g2.com" or host.endswith(".g2.com")


def _is_trustpilot(url: str) -> bool:
    return "trustpilot" in _host(url)


PLATFORMS: tuple[tuple[ReviewSite, Callable[[str], bool]], ...] = (
    (ReviewSite.CAPTERRA, _is_capterra),
    (ReviewSite.G2, _is_g2),
    (ReviewSite.TRUSTPILOT, _is_trustpilot),
)


def detect_platform(url: str) -> ReviewSite:
    for site, matches in PLATFORMS:
        if matches(url):
            return site
    raise UnsupportedPlatformError(f"unsupported review site: {url} (supported: G2, Capterra, Trustpilot)")


def scrape_reviews(
    job: ScrapeJob,
    fetch: Fetch,
    settings: Settings,
    *,
    site: ReviewSite | None = None,
    sleep: Sleep = time.sleep,
    now: datetime | None = None,
) -> ScrapeResult:
    site = site or detect_platform(job.url)
    policy = RetryPolicy.from_settings(settings, sleep=sleep)
    today = now.date() if now else None
    logger.info("scraping %s (%s) for %s..%s", job.url, site.value, job.start_date, job.end_date)

    if site is ReviewSite.G2:
        return scrape_g2(job, fetch, settings, policy=policy, sleep=sleep, today=today)
    if site is ReviewSite.CAPTERRA:
        return scrape_capterra(job, fetch, policy=policy, today=today)
    return scrape_trustpilot(job, fetch, settings, policy=policy, sleep=sleep)


def parse_jobs(entries: JobEntry | Sequence[JobEntry]) -> tuple[list[ScrapeJob], int]:
    """Validate job descriptors; invalid entries are logged and counted, not raised."""
    items = [entries] if isinstance(entries, Mapping) else list(entries)
    if not items:
        raise ValueError("no scrape jobs supplied; expected url, start_date and end_date entries")

    jobs: list[ScrapeJob] = []
    skipped = 0
    for index, entry in enumerate(items, start=1):
        try:
            jobs.append(ScrapeJob.model_validate(entry))
        except ValidationError as exc:
            skipped += 1
            logger.error(
                "entry %s skipped: each entry needs 'url', 'start_date' and 'end_date' (%s)",
                index,
                exc.errors(include_url=False),
            )
    return jobs, skipped


def _default_fetchers(client: httpx.Client, settings: Settings) -> dict[ReviewSite, Fetch]:
    return {
        ReviewSite.G2: ProxyFetcher.from_settings(client, settings),
        ReviewSite.CAPTERRA: ProxyFetcher.from_settings(
            client, settings, wait_ms=settings.capterra_relay_wait_ms
        ),
        ReviewSite.TRUSTPILOT: ProxyFetcher.from_settings(client, settings),
    }


def _run_job(
    job: ScrapeJob,
    fetchers: Mapping[ReviewSite, Fetch],
    settings: Settings,
    *,
    sleep: Sleep,
    now: datetime | None,
) -> JobOutcome:
    try:
        site = detect_platform(job.url)
        result = scrape_reviews(job, fetchers[site], settings, site=site, sleep=sleep, now=now)
    except ScrapeError as exc:
        logger.error("failed to scrape %s: %s", job.url, exc)
        return JobOutcome(url=job.url, result=None, error=f"{type(exc).__name__}: {exc}")
    except Exception as exc:  # pragma: no cover - defensive boundary
        logger.exception("unexpected error scraping %s", job.url)
        return JobOutcome(url=job.url, result=None, error=f"unexpected error: {exc}")

    logger.info("scraping complete for %s: %s reviews", job.url, result.total_scraped_reviews)
    return JobOutcome(url=job.url, result=result)


def run_pipeline(
    entries: JobEntry | Sequence[JobEntry],
    settings: Settings,
    *,
    fetchers: Mapping[ReviewSite, Fetch] | None = None,
    sleep: Sleep = time.sleep,
    now: datetime | None = None,
) -> BatchResult:
    jobs, skipped = parse_jobs(entries)
    logger.info("found %s job(s) to scrape, %s skipped", len(jobs), skipped)

    outcomes: list[JobOutcome] = []
    with ExitStack() as stack:
        if fetchers is None:
            client = stack.enter_context(build_client(settings))
            fetchers = _default_fetchers(client, settings)

        for index, job in enumerate(jobs):
            outcomes.append(_run_job(job, fetchers, settings, sleep=sleep, now=now))
            if index < len(jobs) - 1 and settings.job_delay_seconds > 0:
                sleep(settings.job_delay_seconds)

    return BatchResult(outcomes=outcomes, skipped_entries=skipped)
