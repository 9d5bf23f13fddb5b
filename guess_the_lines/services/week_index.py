# guess_the_lines/services/week_index.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Set

from guess_the_lines.models.types import Game, WeekInfo
from guess_the_lines.services.nfl_weeks import (
    NY,
    PLAYOFF_LABELS,
    playoff_start_datetime,
    regular_season_over,
    season_year_for,
    week_number_for,
    week_start_datetime,
)

# One entry per week that has games, plus the current week even when the
# feed has nothing for it yet.
WEEK_INDEX_POLICY = "games-plus-current"


def _weeks_with_games(games: Iterable[Game]) -> Set[int]:
    weeks: Set[int] = set()
    for g in games:
        label = str(g.get("weekNumber") or "")
        if label.isdigit():
            weeks.add(int(label))
    return weeks


def build_week_index(
    games: Iterable[Game],
    now: datetime,
    include_playoffs: bool = True,
) -> List[WeekInfo]:
    """
    Selectable weeks for the UI, sorted by start date.

    Regular weeks are available from the current week onward. Playoff rounds
    only open once the regular season is over and the round has started.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=NY)
    season = season_year_for(now)
    current_week = week_number_for(now)

    numbers = _weeks_with_games(games)
    numbers.add(current_week)

    entries = []
    for n in numbers:
        start = week_start_datetime(season, n)
        entries.append((start, {
            "number": str(n),
            "startDate": start.isoformat(),
            "available": n >= current_week,
        }))

    if include_playoffs:
        # From February to August this is still the previous season, so week 18
        # and every round stay open until the next season's anchor.
        season_done = regular_season_over(now)
        for label in PLAYOFF_LABELS:
            start = playoff_start_datetime(season, label)
            entries.append((start, {
                "number": label,
                "startDate": start.isoformat(),
                "available": season_done and now >= start,
            }))

    entries.sort(key=lambda kv: kv[0])
    return [info for _, info in entries]
