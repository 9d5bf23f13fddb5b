# guess_the_lines/services/odds_api.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from guess_the_lines.core.config import (
    DEFAULT_MARKETS,
    DEFAULT_REGIONS,
    NFL_SPORT_KEY,
    ODDS_API_BASE,
    Settings,
)
from guess_the_lines.core.errors import UpstreamFetchError

logger = logging.getLogger("app.odds_api")

HEADERS = {"User-Agent": "Mozilla/5.0", "Accept": "application/json"}


def make_http_client(timeout: float = 8.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, headers=HEADERS)


class OddsApiClient:
    """
    Client for The Odds API v4 spreads feed.

    The httpx client is owned by the caller (the app lifespan, or a test
    with httpx.MockTransport).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str],
        regions: str = DEFAULT_REGIONS,
        markets: str = DEFAULT_MARKETS,
        bookmakers: Optional[str] = None,
        sport_key: str = NFL_SPORT_KEY,
        base_url: str = ODDS_API_BASE,
        max_tries: int = 2,
        retry_delay: float = 0.5,
    ):
        self.http = http_client
        self.api_key = api_key
        self.regions = regions
        self.markets = markets
        self.bookmakers = bookmakers
        self.sport_key = sport_key
        self.base_url = base_url.rstrip("/")
        self.max_tries = max(1, max_tries)
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "OddsApiClient":
        return cls(
            http_client,
            api_key=settings.odds_api_key,
            regions=settings.odds_regions,
            markets=settings.odds_markets,
            bookmakers=settings.odds_bookmakers,
            sport_key=settings.sport_key,
        )

    @property
    def has_key(self) -> bool:
        return bool(self.api_key)

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        last: Optional[UpstreamFetchError] = None
        for i in range(self.max_tries):
            try:
                r = await self.http.get(url, params=params)
                r.raise_for_status()
                return r.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                last = UpstreamFetchError(f"odds provider returned HTTP {status}", status_code=status)
                # 4xx won't get better on retry (bad key, quota)
                if status < 500:
                    break
            except httpx.HTTPError as e:
                last = UpstreamFetchError(f"odds provider request failed: {e!r}")
            except ValueError as e:
                last = UpstreamFetchError(f"odds provider returned invalid JSON: {e}")
                break
            logger.warning("odds_api %s attempt %s failed: %s", path, i + 1, last)
            if i + 1 < self.max_tries:
                await asyncio.sleep(self.retry_delay * (i + 1))

        logger.error("odds_api %s giving up: %s", path, last)
        raise last or UpstreamFetchError("unknown odds provider error")

    async def fetch_odds(self) -> List[Dict[str, Any]]:
        """Raw event list from /sports/{sport}/odds."""
        if not self.api_key:
            raise UpstreamFetchError("ODDS_API_KEY missing")
        params = {
            "apiKey": self.api_key,
            "regions": self.regions,
            "markets": self.markets,
            "oddsFormat": "american",
            "dateFormat": "iso",
        }
        if self.bookmakers:
            params["bookmakers"] = self.bookmakers

        data = await self._get_json(f"/sports/{self.sport_key}/odds", params)
        if not isinstance(data, list):
            raise UpstreamFetchError(f"odds provider returned {type(data).__name__}, expected a list")
        logger.info("odds_api: %d events for %s", len(data), self.sport_key)
        return data
