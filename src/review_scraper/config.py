from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_RELAY_ENDPOINT = "https://proxy.scrapeops.io/v1/"
PLACEHOLDER_API_KEY = "your_scrapeops_api_key_here"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    scrapeops_api_key: str = ""
    proxy_country: str = "us"
    relay_endpoint: str = DEFAULT_RELAY_ENDPOINT
    capterra_relay_wait_ms: int = Field(default=1000, ge=0)
    # None leaves the transport unbounded; a stalled relay blocks the run.
    request_timeout_seconds: float | None = Field(default=None, gt=0.0)
    user_agent: str = "review-scraper/0.1"
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=5.0, ge=0.0)
    g2_max_reviews: int = Field(default=50, ge=1)
    g2_page_delay_seconds: float = Field(default=3.0, ge=0.0)
    g2_page_delay_jitter_seconds: float = Field(default=2.0, ge=0.0)
    trustpilot_page_delay_seconds: float = Field(default=25.0, ge=0.0)
    job_delay_seconds: float = Field(default=5.0, ge=0.0)
    keep_undated_reviews: bool = True

    @field_validator("proxy_country")
    @classmethod
    def _validate_country(cls, value: str) -> str:
        if len(value) != 2 or not value.isalpha():
            raise ValueError("PROXY_COUNTRY must be a two-letter country code")
        return value.lower()

    @field_validator("relay_endpoint")
    @classmethod
    def _validate_relay_endpoint(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("RELAY_ENDPOINT must use https://")
        return value


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


def _env_flag(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = _env_value(environ, key)
    if not raw:
        return default
    return raw.casefold() in _TRUE_VALUES


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    source = os.environ if environ is None else environ
    timeout_raw = _env_value(source, "REQUEST_TIMEOUT_SECONDS")
    payload = {
        "scrapeops_api_key": _env_value(source, "SCRAPEOPS_API_KEY"),
        "proxy_country": _env_value(source, "PROXY_COUNTRY") or "us",
        "relay_endpoint": _env_value(source, "RELAY_ENDPOINT") or DEFAULT_RELAY_ENDPOINT,
        "capterra_relay_wait_ms": int(_env_value(source, "CAPTERRA_RELAY_WAIT_MS") or "1000"),
        "request_timeout_seconds": float(timeout_raw) if timeout_raw else None,
        "user_agent": _env_value(source, "USER_AGENT") or "review-scraper/0.1",
        "retry_attempts": int(_env_value(source, "RETRY_ATTEMPTS") or "3"),
        "retry_delay_seconds": float(_env_value(source, "RETRY_DELAY_SECONDS") or "5"),
        "g2_max_reviews": int(_env_value(source, "G2_MAX_REVIEWS") or "50"),
        "g2_page_delay_seconds": float(_env_value(source, "G2_PAGE_DELAY_SECONDS") or "3"),
        "g2_page_delay_jitter_seconds": float(
            _env_value(source, "G2_PAGE_DELAY_JITTER_SECONDS") or "2"
        ),
        "trustpilot_page_delay_seconds": float(
            _env_value(source, "TRUSTPILOT_PAGE_DELAY_SECONDS") or "25"
        ),
        "job_delay_seconds": float(_env_value(source, "JOB_DELAY_SECONDS") or "5"),
        "keep_undated_reviews": _env_flag(source, "KEEP_UNDATED_REVIEWS", True),
    }
    try:
        return Settings(**payload)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def mask_secret(value: str, visible_prefix: int = 3, visible_suffix: int = 2) -> str:
    if not value:
        return ""
    if len(value) <= visible_prefix + visible_suffix:
        return "*" * len(value)
    hidden = "*" * (len(value) - visible_prefix - visible_suffix)
    return f"{value[:visible_prefix]}{hidden}{value[-visible_suffix:]}"
