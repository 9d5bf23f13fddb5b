from typing import Any, Dict, Optional, Tuple

import pytest

from guess_the_lines.core.store import sort_key, week_prefix


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _event(
    home="Dolphins",
    away="Patriots",
    home_point=-9.5,
    commence_time="2024-10-29T20:00:00Z",
    event_id="evt-1",
    book_key="draftkings",
    sport_key="americanfootball_nfl",
) -> Dict[str, Any]:
    return {
        "id": event_id,
        "sport_key": sport_key,
        "commence_time": commence_time,
        "home_team": home,
        "away_team": away,
        "bookmakers": [
            {
                "key": book_key,
                "title": book_key.title(),
                "markets": [
                    {
                        "key": "spreads",
                        "outcomes": [
                            {"name": home, "price": -110, "point": home_point},
                            {"name": away, "price": -110, "point": -home_point},
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def make_event():
    return _event


class MemoryStore:
    """In-memory PickStore with a tiny page size so callers must paginate."""

    backend = "memory"

    def __init__(self, page_size: int = 2, fail: bool = False):
        self.items: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.stats: Dict[str, Dict[str, Any]] = {}
        self.page_size = page_size
        self.fail = fail
        self.queries = 0

    def _check(self):
        if self.fail:
            from guess_the_lines.core.errors import StoreError
            raise StoreError("store unavailable")

    async def put_pick(self, pick):
        self._check()
        self.items[(pick["userId"], sort_key(pick["week"], pick["gameId"]))] = dict(pick)

    async def query_picks(self, user_id, week=None, limit=None, start_key=None):
        self._check()
        self.queries += 1
        keys = sorted(sk for (uid, sk) in self.items if uid == user_id)
        if week:
            keys = [k for k in keys if k.startswith(week_prefix(week))]
        if start_key:
            keys = [k for k in keys if k > start_key]
        page = limit or self.page_size
        chunk = keys[:page]
        nxt: Optional[str] = chunk[-1] if len(keys) > page else None
        return [dict(self.items[(user_id, k)]) for k in chunk], nxt

    async def get_stats(self, user_id):
        self._check()
        s = self.stats.get(user_id)
        return dict(s) if s else None

    async def put_stats(self, stats):
        self._check()
        self.stats[stats["userId"]] = dict(stats)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def failing_store():
    return MemoryStore(fail=True)


def raw_pick(game_id: str, predicted: float, actual: float, team: str = "Dolphins") -> Dict[str, Any]:
    return {"gameId": game_id, "team": team, "predictedLine": predicted, "actualLine": actual}


@pytest.fixture
def make_pick():
    return raw_pick

