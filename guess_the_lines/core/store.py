# guess_the_lines/core/store.py
"""
Pick and stats persistence.

Both backends expose the same key-value contract:
  - picks are items under partition key userId with sort key "{week}#{gameId}";
    writing the same (user, week, game) again replaces the item
  - query_picks returns one page plus a continuation key; list_picks loops
    until the continuation is exhausted
  - stats are one item per userId
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError

from guess_the_lines.core.db import Database
from guess_the_lines.core.errors import StoreError
from guess_the_lines.models.types import Pick, UserStats

DEFAULT_PAGE_SIZE = 100

# asyncpg can surface connection failures as plain OSError
DB_ERRORS = (SQLAlchemyError, OSError)


def sort_key(week: str, game_id: str) -> str:
    return f"{week}#{game_id}"


def week_prefix(week: str) -> str:
    return f"{week}#"


class PickStore(Protocol):
    backend: str

    async def put_pick(self, pick: Pick) -> None: ...

    async def query_picks(
        self,
        user_id: str,
        week: Optional[str] = None,
        limit: Optional[int] = None,
        start_key: Optional[str] = None,
    ) -> Tuple[List[Pick], Optional[str]]: ...

    async def get_stats(self, user_id: str) -> Optional[UserStats]: ...

    async def put_stats(self, stats: UserStats) -> None: ...


async def list_picks(store: PickStore, user_id: str, week: Optional[str] = None) -> List[Pick]:
    """Every pick for a user (optionally one week), following continuation keys."""
    out: List[Pick] = []
    start_key: Optional[str] = None
    while True:
        items, start_key = await store.query_picks(user_id, week=week, start_key=start_key)
        out.extend(items)
        if not start_key:
            return out


async def ping(store: PickStore) -> int:
    """Limit-1 query used by the debug probe. Returns the item count (0 or 1)."""
    items, _ = await store.query_picks("__ping__", limit=1)
    return len(items)


# ---------------- SQL backend ----------------

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS user_picks (
      user_id TEXT NOT NULL,
      sort_key TEXT NOT NULL,
      week TEXT NOT NULL,
      game_id TEXT NOT NULL,
      team TEXT NOT NULL,
      predicted_line DOUBLE PRECISION NOT NULL,
      actual_line DOUBLE PRECISION NOT NULL,
      created_at TEXT NOT NULL,
      PRIMARY KEY (user_id, sort_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_stats (
      user_id TEXT PRIMARY KEY,
      total_picks INTEGER NOT NULL,
      accurate_guesses INTEGER NOT NULL,
      perfect_guesses INTEGER NOT NULL,
      average_deviation DOUBLE PRECISION NOT NULL,
      weekly_stats TEXT NOT NULL
    )
    """,
)

UPSERT_PICK = """
INSERT INTO user_picks (user_id, sort_key, week, game_id, team, predicted_line, actual_line, created_at)
VALUES (:user_id, :sort_key, :week, :game_id, :team, :predicted_line, :actual_line, :created_at)
ON CONFLICT (user_id, sort_key) DO UPDATE SET
  week = EXCLUDED.week,
  game_id = EXCLUDED.game_id,
  team = EXCLUDED.team,
  predicted_line = EXCLUDED.predicted_line,
  actual_line = EXCLUDED.actual_line,
  created_at = EXCLUDED.created_at;
"""

UPSERT_STATS = """
INSERT INTO user_stats (user_id, total_picks, accurate_guesses, perfect_guesses, average_deviation, weekly_stats)
VALUES (:user_id, :total_picks, :accurate_guesses, :perfect_guesses, :average_deviation, :weekly_stats)
ON CONFLICT (user_id) DO UPDATE SET
  total_picks = EXCLUDED.total_picks,
  accurate_guesses = EXCLUDED.accurate_guesses,
  perfect_guesses = EXCLUDED.perfect_guesses,
  average_deviation = EXCLUDED.average_deviation,
  weekly_stats = EXCLUDED.weekly_stats;
"""


def _row_to_pick(r: Dict[str, Any]) -> Pick:
    return {
        "userId": r["user_id"],
        "week": r["week"],
        "gameId": r["game_id"],
        "team": r["team"],
        "predictedLine": float(r["predicted_line"]),
        "actualLine": float(r["actual_line"]),
        "timestamp": r["created_at"],
    }


class SqlPickStore:
    """Picks and stats in two SQL tables, keyed like the DynamoDB tables."""

    backend = "sql"

    def __init__(self, db: Database, page_size: int = DEFAULT_PAGE_SIZE):
        self.db = db
        self.page_size = page_size

    async def ensure_schema(self) -> None:
        try:
            for ddl in SCHEMA:
                await self.db.exec_sql(ddl)
        except DB_ERRORS as e:
            raise StoreError(f"schema setup failed: {e}") from e

    async def put_pick(self, pick: Pick) -> None:
        params = {
            "user_id": pick["userId"],
            "sort_key": sort_key(pick["week"], pick["gameId"]),
            "week": pick["week"],
            "game_id": pick["gameId"],
            "team": pick["team"],
            "predicted_line": pick["predictedLine"],
            "actual_line": pick["actualLine"],
            "created_at": pick["timestamp"],
        }
        try:
            await self.db.exec_sql(UPSERT_PICK, params)
        except DB_ERRORS as e:
            raise StoreError(f"put_pick failed: {e}") from e

    async def query_picks(
        self,
        user_id: str,
        week: Optional[str] = None,
        limit: Optional[int] = None,
        start_key: Optional[str] = None,
    ) -> Tuple[List[Pick], Optional[str]]:
        page = limit or self.page_size
        clauses = ["user_id = :user_id"]
        params: Dict[str, Any] = {"user_id": user_id, "limit": page}
        if week:
            prefix = week_prefix(week)
            clauses.append("substr(sort_key, 1, :plen) = :prefix")
            params.update(prefix=prefix, plen=len(prefix))
        if start_key:
            clauses.append("sort_key > :start_key")
            params["start_key"] = start_key

        sql = (
            "SELECT user_id, sort_key, week, game_id, team, predicted_line, actual_line, created_at "
            f"FROM user_picks WHERE {' AND '.join(clauses)} ORDER BY sort_key LIMIT :limit"
        )
        try:
            rows = await self.db.fetch_all(sql, params)
        except DB_ERRORS as e:
            raise StoreError(f"query_picks failed: {e}") from e

        # a full page may have more behind it
        nxt = rows[-1]["sort_key"] if len(rows) == page else None
        return [_row_to_pick(r) for r in rows], nxt

    async def get_stats(self, user_id: str) -> Optional[UserStats]:
        try:
            rows = await self.db.fetch_all(
                "SELECT * FROM user_stats WHERE user_id = :user_id", {"user_id": user_id}
            )
        except DB_ERRORS as e:
            raise StoreError(f"get_stats failed: {e}") from e
        if not rows:
            return None
        r = rows[0]
        return {
            "userId": r["user_id"],
            "totalPicks": int(r["total_picks"]),
            "accurateGuesses": int(r["accurate_guesses"]),
            "perfectGuesses": int(r["perfect_guesses"]),
            "averageDeviation": float(r["average_deviation"]),
            "weeklyStats": json.loads(r["weekly_stats"] or "{}"),
        }

    async def put_stats(self, stats: UserStats) -> None:
        params = {
            "user_id": stats["userId"],
            "total_picks": stats["totalPicks"],
            "accurate_guesses": stats["accurateGuesses"],
            "perfect_guesses": stats["perfectGuesses"],
            "average_deviation": stats["averageDeviation"],
            "weekly_stats": json.dumps(stats["weeklyStats"], sort_keys=True),
        }
        try:
            await self.db.exec_sql(UPSERT_STATS, params)
        except DB_ERRORS as e:
            raise StoreError(f"put_stats failed: {e}") from e
