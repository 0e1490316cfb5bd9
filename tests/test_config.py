import pytest

from review_scraper.config import DEFAULT_RELAY_ENDPOINT, load_settings, mask_secret


def test_load_settings_defaults_without_environment() -> None:
    settings = load_settings(environ={})

    assert settings.scrapeops_api_key == ""
    assert settings.proxy_country == "us"
    assert settings.relay_endpoint == DEFAULT_RELAY_ENDPOINT
    assert settings.request_timeout_seconds is None
    assert settings.retry_attempts == 3
    assert settings.retry_delay_seconds == 5.0
    assert settings.g2_max_reviews == 50
    assert settings.capterra_relay_wait_ms == 1000
    assert settings.keep_undated_reviews is True


def test_load_settings_reads_overrides() -> None:
    env = {
        "SCRAPEOPS_API_KEY": " secret-key ",
        "PROXY_COUNTRY": "GB",
        "REQUEST_TIMEOUT_SECONDS": "15",
        "RETRY_ATTEMPTS": "2",
        "KEEP_UNDATED_REVIEWS": "false",
        "TRUSTPILOT_PAGE_DELAY_SECONDS": "0",
    }
    settings = load_settings(environ=env)

    assert settings.scrapeops_api_key == "secret-key"
    assert settings.proxy_country == "gb"
    assert settings.request_timeout_seconds == 15.0
    assert settings.retry_attempts == 2
    assert settings.keep_undated_reviews is False
    assert settings.trustpilot_page_delay_seconds == 0.0


def test_load_settings_rejects_invalid_values() -> None:
    with pytest.raises(ValueError):
        load_settings(environ={"PROXY_COUNTRY": "usa"})
    with pytest.raises(ValueError):
        load_settings(environ={"RETRY_ATTEMPTS": "0"})


def test_mask_secret_keeps_edges_only() -> None:
    assert mask_secret("abcdefghij") == "abc*****ij"
    assert mask_secret("abc") == "***"
    assert mask_secret("") == ""
