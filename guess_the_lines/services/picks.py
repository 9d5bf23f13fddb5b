# guess_the_lines/services/picks.py
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional

from guess_the_lines.core.store import PickStore, list_picks
from guess_the_lines.models.types import Pick, UserStats, WeekHistory
from guess_the_lines.services import scoring

logger = logging.getLogger("app.picks")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _UserLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


class PickService:
    """
    Saves picks and keeps per-user stats in step with them.

    Stats are rebuilt from the user's full pick history after every write,
    so resubmitting a week replaces its numbers instead of adding to them.
    Submissions by the same user are serialized on a per-user lock so two
    overlapping rebuilds can't write stale totals last.
    """

    def __init__(self, store: PickStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or _utc_now
        self._locks: Dict[str, _UserLock] = {}

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        # entry lives only while someone holds or waits on it
        entry = self._locks.get(user_id)
        if entry is None:
            entry = self._locks[user_id] = _UserLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[user_id]

    def build_pick(self, user_id: str, week: str, raw: Mapping[str, Any], timestamp: str) -> Pick:
        return {
            "userId": user_id,
            "week": str(week),
            "gameId": str(raw["gameId"]),
            "team": str(raw["team"]),
            "predictedLine": scoring.round_half_point(float(raw["predictedLine"])),
            "actualLine": float(raw["actualLine"]),
            "timestamp": timestamp,
        }

    async def submit(self, user_id: str, week: str, raw_picks: List[Mapping[str, Any]]) -> UserStats:
        """
        Write every pick, then rebuild stats. Stats are rebuilt even when
        some writes fail, so they always match what was stored; the first
        write error is raised afterwards.
        """
        ts = self.clock().isoformat()
        picks = [self.build_pick(user_id, week, p, ts) for p in raw_picks]

        async with self._user_lock(user_id):
            results = await asyncio.gather(
                *(self.store.put_pick(p) for p in picks),
                return_exceptions=True,
            )
            history = await list_picks(self.store, user_id)
            stats = scoring.summarize(user_id, history)
            await self.store.put_stats(stats)

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.warning(
                "PICKS partial save user=%s week=%s failed=%d/%d",
                user_id, week, len(errors), len(picks),
            )
            raise errors[0]

        logger.info(
            "PICKS saved user=%s week=%s n=%d total=%d",
            user_id, week, len(picks), stats["totalPicks"],
        )
        return stats

    async def picks(self, user_id: str, week: Optional[str] = None) -> List[Pick]:
        return await list_picks(self.store, user_id, week=week)

    async def stats(self, user_id: str) -> UserStats:
        stats = await self.store.get_stats(user_id)
        return stats or scoring.empty_stats(user_id)

    async def history(self, user_id: str) -> List[WeekHistory]:
        return scoring.history(await list_picks(self.store, user_id))
