# guess_the_lines/services/scoring.py
"""
Accuracy scoring for line predictions.

A prediction is compared to the sportsbook line it was made against:
    deviation <= 0.5  -> perfect
    deviation <= 3    -> close (counts as "accurate")
    otherwise         -> miss

Thresholds are fixed, not configurable. For per-user totals, summarize()
rebuilds stats from the whole pick history and is what the pick service
uses; aggregate() is the incremental form applied to an existing total.
"""
from __future__ import annotations

import math
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from guess_the_lines.models.types import (
    Classification,
    ScoredPick,
    UserStats,
    WeekHistory,
    WeekStats,
)
from guess_the_lines.services.nfl_weeks import PLAYOFF_LABELS

PERFECT_THRESHOLD = 0.5
ACCURATE_THRESHOLD = 3.0

RESULT_LABELS = {
    Classification.PERFECT: "Perfect!",
    Classification.CLOSE: "Close",
    Classification.MISS: "Miss",
}


def deviation(predicted: float, actual: float) -> float:
    return abs(float(predicted) - float(actual))


def is_perfect(predicted: float, actual: float) -> bool:
    return deviation(predicted, actual) <= PERFECT_THRESHOLD


def is_accurate(predicted: float, actual: float) -> bool:
    return deviation(predicted, actual) <= ACCURATE_THRESHOLD


def classify(predicted: float, actual: float) -> Classification:
    dev = deviation(predicted, actual)
    if dev <= PERFECT_THRESHOLD:
        return Classification.PERFECT
    if dev <= ACCURATE_THRESHOLD:
        return Classification.CLOSE
    return Classification.MISS


def result_label(classification: Classification) -> str:
    return RESULT_LABELS[classification]


def round_half_point(value: float) -> float:
    """Nearest half point; exact quarters round away from zero (2.25 -> 2.5)."""
    doubled = abs(float(value)) * 2
    rounded = math.floor(doubled + 0.5) / 2
    return math.copysign(rounded, value) if rounded else 0.0


def empty_stats(user_id: str) -> UserStats:
    return {
        "userId": user_id,
        "totalPicks": 0,
        "accurateGuesses": 0,
        "perfectGuesses": 0,
        "averageDeviation": 0.0,
        "weeklyStats": {},
    }


def week_stats(picks: Iterable[Mapping[str, Any]]) -> WeekStats:
    stats: WeekStats = {"picks": 0, "accurate": 0, "perfect": 0}
    for p in picks:
        stats["picks"] += 1
        if is_accurate(p["predictedLine"], p["actualLine"]):
            stats["accurate"] += 1
        if is_perfect(p["predictedLine"], p["actualLine"]):
            stats["perfect"] += 1
    return stats


def aggregate(
    existing: Optional[Mapping[str, Any]],
    new_picks: List[Mapping[str, Any]],
    week: str,
    user_id: Optional[str] = None,
) -> UserStats:
    """
    Fold one week's batch of picks into running stats.

    Top-level counters are incremented and averageDeviation becomes the
    weighted mean over old and new picks. weeklyStats[week] is replaced, not
    merged, so resubmitting a week double-counts the totals; summarize()
    does not have that problem.
    """
    base: Dict[str, Any] = dict(empty_stats(user_id or ""))
    base.update(existing or {})
    if user_id:
        base["userId"] = user_id

    ws = week_stats(new_picks)
    old_total = int(base.get("totalPicks") or 0)
    old_avg = float(base.get("averageDeviation") or 0.0)
    new_total = old_total + len(new_picks)
    dev_sum = sum(deviation(p["predictedLine"], p["actualLine"]) for p in new_picks)

    weekly = dict(base.get("weeklyStats") or {})
    weekly[str(week)] = ws

    return {
        "userId": base.get("userId") or "",
        "totalPicks": new_total,
        "accurateGuesses": int(base.get("accurateGuesses") or 0) + ws["accurate"],
        "perfectGuesses": int(base.get("perfectGuesses") or 0) + ws["perfect"],
        "averageDeviation": (old_avg * old_total + dev_sum) / new_total if new_total else 0.0,
        "weeklyStats": weekly,
    }


def _group_by_week(picks: Iterable[Mapping[str, Any]]) -> Dict[str, List[Mapping[str, Any]]]:
    groups: Dict[str, List[Mapping[str, Any]]] = OrderedDict()
    for p in picks:
        groups.setdefault(str(p["week"]), []).append(p)
    return groups


def summarize(user_id: str, picks: Iterable[Mapping[str, Any]]) -> UserStats:
    """
    Stats rebuilt from a user's full pick history. Running it twice on the
    same history gives the same result, and totals always equal the sum of
    weeklyStats.
    """
    stats = empty_stats(user_id)
    dev_sum = 0.0
    for week, week_picks in _group_by_week(picks).items():
        ws = week_stats(week_picks)
        stats["weeklyStats"][week] = ws
        stats["totalPicks"] += ws["picks"]
        stats["accurateGuesses"] += ws["accurate"]
        stats["perfectGuesses"] += ws["perfect"]
        dev_sum += sum(deviation(p["predictedLine"], p["actualLine"]) for p in week_picks)
    if stats["totalPicks"]:
        stats["averageDeviation"] = dev_sum / stats["totalPicks"]
    return stats


def _week_order(week: str):
    # playoff rounds sort after week 18
    if week.isdigit():
        return (1, int(week))
    if week in PLAYOFF_LABELS:
        return (2, PLAYOFF_LABELS.index(week))
    return (0, week)


def history(picks: Iterable[Mapping[str, Any]]) -> List[WeekHistory]:
    """Picks grouped by week, most recent week first, each with its result."""
    out: List[WeekHistory] = []
    groups = _group_by_week(picks)
    for week in sorted(groups, key=_week_order, reverse=True):
        scored: List[ScoredPick] = []
        for p in groups[week]:
            dev = deviation(p["predictedLine"], p["actualLine"])
            scored.append({
                **p,
                "deviation": round(dev, 1),
                "result": result_label(classify(p["predictedLine"], p["actualLine"])),
            })
        out.append({"week": week, "picks": scored})
    return out
