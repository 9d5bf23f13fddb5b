# guess_the_lines/services/nfl_weeks.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

NY = ZoneInfo("America/New_York")

REGULAR_SEASON_WEEKS = 18

# Playoff rounds, as day offsets from the end of the regular season
# (anchor Thursday + 18 weeks). Wild card/divisional/conference open on a
# Saturday, the Super Bowl on the Sunday after the bye week.
PLAYOFF_ROUNDS = (
    ("wild-card", 2),
    ("divisional", 9),
    ("conference", 16),
    ("super-bowl", 31),
)
PLAYOFF_LABELS = tuple(label for label, _ in PLAYOFF_ROUNDS)

DateLike = Union[date, datetime]


def to_local_date(value: DateLike) -> date:
    """
    Calendar date of `value` as seen in New York.
    Naive datetimes are taken as already local.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(NY)
        return value.date()
    return value


def parse_kickoff(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 kickoff ('...Z' allowed). Returns None if unparsable."""
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=NY)


def season_anchor(year: int) -> date:
    """First Thursday of September."""
    d = date(year, 9, 1)
    # weekday(): Monday=0 ... Thursday=3
    return d + timedelta(days=(3 - d.weekday()) % 7)


def season_year_for(value: DateLike) -> int:
    """January..August belong to the season that started the previous year."""
    d = to_local_date(value)
    return d.year if d.month >= 9 else d.year - 1


def week_number_for(value: DateLike, upper_bound: int = REGULAR_SEASON_WEEKS) -> int:
    """
    1-based count of 7-day periods since the season anchor, clamped to
    [1, upper_bound]. Dates before the anchor map to week 1.
    """
    d = to_local_date(value)
    anchor = season_anchor(season_year_for(d))
    days = (d - anchor).days
    wk = days // 7 + 1
    if wk < 1:
        wk = 1
    if wk > upper_bound:
        wk = upper_bound
    return wk


def week_start(season: int, week: int) -> date:
    return season_anchor(season) + timedelta(days=(week - 1) * 7)


def regular_season_end(season: int) -> date:
    return season_anchor(season) + timedelta(weeks=REGULAR_SEASON_WEEKS)


def playoff_start(season: int, label: str) -> date:
    for name, offset in PLAYOFF_ROUNDS:
        if name == label:
            return regular_season_end(season) + timedelta(days=offset)
    raise ValueError(f"Unknown playoff round: {label}")


def regular_season_over(value: DateLike) -> bool:
    d = to_local_date(value)
    return d >= regular_season_end(season_year_for(d))


def playoff_round_for(value: DateLike) -> Optional[str]:
    """Latest playoff round that has started on/before `value`, if any."""
    d = to_local_date(value)
    season = season_year_for(d)
    current = None
    for label, _ in PLAYOFF_ROUNDS:
        if d >= playoff_start(season, label):
            current = label
    return current


def week_label_for(value: DateLike, include_playoffs: bool = True) -> str:
    if include_playoffs:
        label = playoff_round_for(value)
        if label:
            return label
    return str(week_number_for(value))


def week_start_datetime(season: int, week: int) -> datetime:
    """Midnight New York time on the first day of the week."""
    return datetime.combine(week_start(season, week), time.min, tzinfo=NY)


def playoff_start_datetime(season: int, label: str) -> datetime:
    return datetime.combine(playoff_start(season, label), time.min, tzinfo=NY)
