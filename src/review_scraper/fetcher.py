from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from review_scraper.config import DEFAULT_RELAY_ENDPOINT, PLACEHOLDER_API_KEY, Settings, mask_secret
from review_scraper.errors import TransportError

logger = logging.getLogger(__name__)

Fetch = Callable[[str], str]


class ProxyFetcher:
    """
    GET a page, routed through the ScrapeOps bypass relay when a key is set.

    Without a usable key the target URL is requested directly; most review
    sites will then answer with a challenge page and parsing fails downstream.
    """

    def __init__(
        self,
        client: httpx.Client,
        *,
        api_key: str = "",
        country: str = "us",
        wait_ms: int | None = None,
        endpoint: str = DEFAULT_RELAY_ENDPOINT,
    ) -> None:
        self.client = client
        self.api_key = api_key.strip()
        self.country = country
        self.wait_ms = wait_ms
        self.endpoint = endpoint

    @classmethod
    def from_settings(
        cls,
        client: httpx.Client,
        settings: Settings,
        *,
        wait_ms: int | None = None,
    ) -> "ProxyFetcher":
        return cls(
            client,
            api_key=settings.scrapeops_api_key,
            country=settings.proxy_country,
            wait_ms=wait_ms,
            endpoint=settings.relay_endpoint,
        )

    @property
    def relay_enabled(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY

    def relay_params(self, url: str) -> dict[str, str]:
        params = {"api_key": self.api_key, "url": url, "country": self.country}
        if self.wait_ms is not None:
            params["wait"] = str(self.wait_ms)
        return params

    def build_url(self, url: str) -> str:
        if not self.relay_enabled:
            return url
        return str(httpx.URL(self.endpoint, params=self.relay_params(url)))

    def fetch(self, url: str) -> str:
        if self.relay_enabled:
            logger.info(
                "routing through relay key=%s url=%s", mask_secret(self.api_key), url[:80]
            )
        else:
            logger.warning("relay key not configured; requesting %s directly", url)

        try:
            if self.relay_enabled:
                response = self.client.get(self.endpoint, params=self.relay_params(url))
            else:
                response = self.client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("GET %s answered HTTP %s", url, response.status_code)
        return response.text

    __call__ = fetch


def build_client(settings: Settings) -> httpx.Client:
    return httpx.Client(
        timeout=settings.request_timeout_seconds,
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
    )
