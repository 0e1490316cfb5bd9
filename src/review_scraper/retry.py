from __future__ import annotations

import logging
import time
from collections.abc import Callable

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from review_scraper.config import Settings
from review_scraper.errors import MarkupError, TransportError
from review_scraper.models import ParsedPage

logger = logging.getLogger(__name__)

Sleep = Callable[[float], None]


def _is_empty(page: ParsedPage) -> bool:
    return not page.reviews


def _final_outcome(retry_state: RetryCallState) -> ParsedPage:
    # Re-raises the last error; an empty page is returned as the final answer.
    return retry_state.outcome.result()


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    if outcome.failed:
        reason = f"{type(outcome.exception()).__name__}: {outcome.exception()}"
    else:
        reason = "0 reviews"
    logger.warning("attempt %s returned %s; retrying", retry_state.attempt_number, reason)


class RetryPolicy:
    """Bounded fetch+parse attempts with a fixed delay between them."""

    def __init__(self, attempts: int = 3, delay_seconds: float = 5.0, sleep: Sleep = time.sleep):
        self.attempts = attempts
        self.delay_seconds = delay_seconds
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, sleep: Sleep = time.sleep) -> "RetryPolicy":
        return cls(
            attempts=settings.retry_attempts,
            delay_seconds=settings.retry_delay_seconds,
            sleep=sleep,
        )

    def run(self, load_page: Callable[[], ParsedPage]) -> ParsedPage:
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.delay_seconds),
            retry=retry_if_exception_type((TransportError, MarkupError)) | retry_if_result(_is_empty),
            retry_error_callback=_final_outcome,
            before_sleep=_log_retry,
            sleep=self.sleep,
        )
        return retrying(load_page)
