# guess_the_lines/models/types.py
from enum import Enum
from typing import Dict, List, Optional

from typing_extensions import Literal, TypedDict


class Game(TypedDict):
    id: str
    weekNumber: str
    away_team: str
    home_team: str
    commence_time: str
    vegas_line: float
    favorite: Optional[str]
    bookmaker: Optional[str]
    type: Literal["regular", "playoff"]


class WeekInfo(TypedDict):
    number: str
    startDate: str
    available: bool


class Pick(TypedDict):
    userId: str
    week: str
    gameId: str
    team: str
    predictedLine: float
    actualLine: float
    timestamp: str


class WeekStats(TypedDict):
    picks: int
    accurate: int
    perfect: int


class UserStats(TypedDict):
    userId: str
    totalPicks: int
    accurateGuesses: int
    perfectGuesses: int
    averageDeviation: float
    weeklyStats: Dict[str, WeekStats]


class ScoredPick(Pick):
    deviation: float
    result: str


class WeekHistory(TypedDict):
    week: str
    picks: List[ScoredPick]


class OddsResponse(TypedDict, total=False):
    games: List[Game]
    weeks: List[WeekInfo]
    currentWeek: str
    error: str


class Classification(str, Enum):
    PERFECT = "perfect"
    CLOSE = "close"
    MISS = "miss"
