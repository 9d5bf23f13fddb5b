# guess_the_lines/services/odds_normalizer.py
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from guess_the_lines.core.config import DEFAULT_BOOKMAKER, NFL_SPORT_KEY
from guess_the_lines.core.errors import InvalidInput
from guess_the_lines.models.types import Game
from guess_the_lines.services.nfl_weeks import (
    PLAYOFF_LABELS,
    parse_kickoff,
    to_local_date,
    week_label_for,
)

logger = logging.getLogger("app.odds")


def _norm(s: Any) -> str:
    if not isinstance(s, str):
        return ""
    return "".join(ch for ch in s.lower() if ch.isalnum())


def select_bookmaker(bookmakers: Any, preferred: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    The preferred bookmaker (matched on key, case-insensitive) if it quoted
    the event, otherwise the first bookmaker listed. Nothing else is tried.
    """
    if not isinstance(bookmakers, list):
        return None
    books = [bm for bm in bookmakers if isinstance(bm, dict)]
    if not books:
        return None
    if preferred:
        want = preferred.lower()
        for bm in books:
            key = bm.get("key")
            if isinstance(key, str) and key.lower() == want:
                return bm
    return books[0]


def _spread_points(bookmaker: Dict[str, Any], home: str, away: str) -> Optional[tuple[float, float]]:
    markets = bookmaker.get("markets")
    if not isinstance(markets, list):
        return None
    market = next((m for m in markets if isinstance(m, dict) and m.get("key") == "spreads"), None)
    if market is None:
        return None

    home_n, away_n = _norm(home), _norm(away)
    home_pt = away_pt = None
    outcomes = market.get("outcomes")
    if not isinstance(outcomes, list):
        return None
    for o in outcomes:
        if not isinstance(o, dict):
            continue
        pt = o.get("point")
        if isinstance(pt, bool) or not isinstance(pt, (int, float)) or not math.isfinite(pt):
            continue
        nm = _norm(o.get("name"))
        if nm == home_n and home_pt is None:
            home_pt = float(pt)
        elif nm == away_n and away_pt is None:
            away_pt = float(pt)

    if home_pt is None or away_pt is None:
        return None
    return home_pt, away_pt


def favorite_for(home: str, away: str, home_point: float) -> Optional[str]:
    """Home-relative spread: negative favors home. A zero spread has no favorite."""
    if home_point < 0:
        return home
    if home_point > 0:
        return away
    return None


def _game_id(ev: Dict[str, Any], home: str, away: str, kickoff) -> str:
    ev_id = ev.get("id")
    if isinstance(ev_id, str) and ev_id:
        return ev_id
    return f"{_norm(away)}-{_norm(home)}-{to_local_date(kickoff).strftime('%Y%m%d')}"


def normalize_event(
    ev: Dict[str, Any],
    preferred_bookmaker: Optional[str] = DEFAULT_BOOKMAKER,
    include_playoffs: bool = True,
) -> Optional[Game]:
    """One provider event -> Game, or None when it lacks a usable spread."""
    home = ev.get("home_team")
    away = ev.get("away_team")
    if not (isinstance(home, str) and home and isinstance(away, str) and away):
        return None

    kickoff = parse_kickoff(ev.get("commence_time"))
    if kickoff is None:
        return None

    bookmaker = select_bookmaker(ev.get("bookmakers"), preferred_bookmaker)
    if bookmaker is None:
        return None

    points = _spread_points(bookmaker, home, away)
    if points is None:
        return None
    home_pt, _ = points

    label = week_label_for(kickoff, include_playoffs=include_playoffs)
    return {
        "id": _game_id(ev, home, away, kickoff),
        "weekNumber": label,
        "away_team": away,
        "home_team": home,
        "commence_time": ev["commence_time"],
        "vegas_line": home_pt,
        "favorite": favorite_for(home, away, home_pt),
        "bookmaker": bookmaker.get("title") or bookmaker.get("key"),
        "type": "playoff" if label in PLAYOFF_LABELS else "regular",
    }


def normalize_events(
    events: Any,
    sport_key: str = NFL_SPORT_KEY,
    preferred_bookmaker: Optional[str] = DEFAULT_BOOKMAKER,
    include_playoffs: bool = True,
) -> List[Game]:
    """
    Raw Odds API events -> Games sorted by kickoff.

    Events for another sport, or without a usable spread from the selected
    bookmaker, are dropped. Raises InvalidInput only if `events` is not a list.
    """
    if not isinstance(events, list):
        raise InvalidInput(f"odds feed must be a list, got {type(events).__name__}")

    keyed = []
    dropped = 0
    for ev in events:
        if not isinstance(ev, dict):
            dropped += 1
            continue
        if ev.get("sport_key") != sport_key:
            dropped += 1
            continue
        game = normalize_event(ev, preferred_bookmaker, include_playoffs)
        if game is None:
            logger.debug("odds: dropped event id=%s (no usable spread)", ev.get("id"))
            dropped += 1
            continue
        keyed.append((parse_kickoff(game["commence_time"]), game))

    # stable: equal kickoffs keep feed order
    keyed.sort(key=lambda kv: kv[0])
    logger.info("odds: normalized %d games (%d dropped)", len(keyed), dropped)
    return [g for _, g in keyed]
