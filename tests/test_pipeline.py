from datetime import datetime

import pytest

from review_scraper.config import Settings
from review_scraper.errors import TransportError, UnsupportedPlatformError
from review_scraper.models import ReviewSite
from review_scraper.pipeline import detect_platform, parse_jobs, run_pipeline

TRUSTPILOT_URL = "https://www.trustpilot.com/review/acme.com"
G2_URL = "https://www.g2.com/products/acme/reviews"

TRUSTPILOT_PAGE = """
<html><body>
<h1><span>Acme Inc</span> Reviews <span>2</span></h1>
<p data-rating-typography="true">4.0</p>
<div class="styles_cardWrapper__g8amG styles_show__Z8n7u"><article>
  <div><a href="/users/1"><span>Jane</span></a></div>
  <div data-service-review-rating="4"></div>
  <time data-service-review-date-time-ago="true" datetime="2024-03-10T09:00:00.000Z"></time>
  <h2 data-service-review-title-typography="true">Handy</h2>
  <p data-service-review-text-typography="true">Does what it says, "mostly".</p>
</article></div>
</body></html>
"""


def _unused_fetch(url: str) -> str:
    raise AssertionError(f"unexpected fetch of {url}")


def _settings() -> Settings:
    return Settings(retry_delay_seconds=0.0, job_delay_seconds=1.0, trustpilot_page_delay_seconds=0.0)


@pytest.mark.parametrize(
    ("url", "site"),
    [
        ("https://www.g2.com/products/slack/reviews", ReviewSite.G2),
        ("https://g2.com/products/slack/reviews", ReviewSite.G2),
        ("https://www.capterra.com/p/135003/Slack/reviews/", ReviewSite.CAPTERRA),
        ("https://uk.trustpilot.com/review/slack.com", ReviewSite.TRUSTPILOT),
        ("www.g2.com/products/slack/reviews", ReviewSite.G2),
        ("capterra.com/p/135003/Slack/reviews/", ReviewSite.CAPTERRA),
    ],
)
def test_detect_platform_matches_host(url: str, site: ReviewSite) -> None:
    assert detect_platform(url) is site


def test_detect_platform_rejects_other_hosts() -> None:
    with pytest.raises(UnsupportedPlatformError):
        detect_platform("https://example.com/reviews")
    with pytest.raises(UnsupportedPlatformError):
        detect_platform("https://notg2.com/products/slack")


def test_parse_jobs_accepts_single_entry_and_counts_invalid() -> None:
    jobs, skipped = parse_jobs({"url": TRUSTPILOT_URL, "start_date": "2024-01-01", "end_date": "2024-12-31"})
    assert len(jobs) == 1
    assert skipped == 0

    jobs, skipped = parse_jobs(
        [
            {"url": TRUSTPILOT_URL, "start_date": "2024-01-01"},
            {"url": "", "start_date": "2024-01-01", "end_date": "2024-12-31"},
            {"url": G2_URL, "start_date": "not a date", "end_date": "2024-12-31"},
        ]
    )
    assert jobs == []
    assert skipped == 3


def test_parse_jobs_adds_missing_scheme() -> None:
    jobs, _ = parse_jobs(
        {"url": "www.trustpilot.com/review/acme.com", "start_date": "2024-01-01", "end_date": "2024-12-31"}
    )

    assert jobs[0].url == TRUSTPILOT_URL


def test_parse_jobs_rejects_empty_input() -> None:
    with pytest.raises(ValueError):
        parse_jobs([])


def test_run_pipeline_runs_jobs_and_isolates_failures() -> None:
    fetched: list[str] = []
    sleeps: list[float] = []

    def trustpilot_fetch(url: str) -> str:
        fetched.append(url)
        return TRUSTPILOT_PAGE

    entries = [
        {"url": TRUSTPILOT_URL, "start_date": "2024-01-01", "end_date": "2024-12-31"},
        {"url": TRUSTPILOT_URL, "start_date": "2024-01-01"},
        {"url": "https://example.com/reviews", "start_date": "2024-01-01", "end_date": "2024-12-31"},
    ]
    fetchers = {
        ReviewSite.G2: _unused_fetch,
        ReviewSite.CAPTERRA: _unused_fetch,
        ReviewSite.TRUSTPILOT: trustpilot_fetch,
    }

    batch = run_pipeline(entries, _settings(), fetchers=fetchers, sleep=sleeps.append, now=datetime(2024, 6, 1))

    assert batch.skipped_entries == 1
    assert batch.failed_jobs == 1
    assert sleeps == [1.0]
    assert fetched == [f"{TRUSTPILOT_URL}?languages=all"]

    (result,) = batch.results
    payload = result.to_dict()
    assert list(payload) == [
        "productName",
        "reviewSite",
        "stars",
        "totalReviews",
        "allReviews",
        "totalScrapedReviews",
    ]
    assert payload["reviewSite"] == "Trustpilot"
    assert payload["totalReviews"] == "2"
    assert payload["totalScrapedReviews"] == 1
    assert payload["allReviews"][0]["reviewText"] == 'Does what it says, "mostly".'

    failed = batch.outcomes[1]
    assert failed.result is None
    assert failed.error.startswith("UnsupportedPlatformError")


def test_run_pipeline_contains_transport_failures() -> None:
    calls: list[str] = []

    def broken_fetch(url: str) -> str:
        calls.append(url)
        raise TransportError(f"connection refused: {url}")

    batch = run_pipeline(
        [{"url": G2_URL, "start_date": "2024-01-01", "end_date": "2024-12-31"}],
        _settings(),
        fetchers={ReviewSite.G2: broken_fetch, ReviewSite.CAPTERRA: _unused_fetch, ReviewSite.TRUSTPILOT: _unused_fetch},
        sleep=lambda _: None,
    )

    assert batch.results == []
    assert batch.failed_jobs == 1
    assert len(calls) == 3
    assert batch.outcomes[0].error.startswith("TransportError")
