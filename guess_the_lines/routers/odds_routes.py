# guess_the_lines/routers/odds_routes.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from guess_the_lines.core.config import Settings
from guess_the_lines.core.deps import get_clock, get_odds_client, get_settings
from guess_the_lines.core.errors import InvalidInput, UpstreamFetchError
from guess_the_lines.models.types import OddsResponse
from guess_the_lines.services.nfl_weeks import week_number_for
from guess_the_lines.services.odds_api import OddsApiClient
from guess_the_lines.services.odds_normalizer import normalize_events
from guess_the_lines.services.week_index import build_week_index

logger = logging.getLogger("app.odds")
router = APIRouter(tags=["odds"])


def fallback_response(now: datetime, error: str) -> OddsResponse:
    """Empty slate the UI can still render: no games, current week only."""
    return {
        "games": [],
        "weeks": build_week_index([], now, include_playoffs=False),
        "currentWeek": str(week_number_for(now)),
        "error": error,
    }


@router.get("/odds")
async def odds(
    settings: Settings = Depends(get_settings),
    client: OddsApiClient = Depends(get_odds_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    This week's board: spreads for every upcoming NFL game plus the weeks the
    UI can offer. On provider failure returns 502 with the same shape.
    """
    now = clock()
    try:
        events = await asyncio.wait_for(client.fetch_odds(), timeout=settings.odds_timeout)
        games = normalize_events(
            events,
            sport_key=settings.sport_key,
            preferred_bookmaker=settings.preferred_bookmaker,
            include_playoffs=settings.include_playoffs,
        )
    except asyncio.TimeoutError:
        logger.error("odds fetch timed out after %.1fs", settings.odds_timeout)
        return JSONResponse(status_code=502, content=fallback_response(now, "Odds provider timed out"))
    except (UpstreamFetchError, InvalidInput) as e:
        logger.error("odds fetch failed: %s", e)
        return JSONResponse(status_code=502, content=fallback_response(now, f"Failed to fetch odds: {e}"))

    res: OddsResponse = {
        "games": games,
        "weeks": build_week_index(games, now, include_playoffs=settings.include_playoffs),
        "currentWeek": str(week_number_for(now)),
    }
    logger.info("ODDS games=%d weeks=%d currentWeek=%s", len(games), len(res["weeks"]), res["currentWeek"])
    return res
