# guess_the_lines/core/db.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger("app.db")


def normalize_database_url(url: str) -> str:
    """
    Pick the async driver for a database URL.

    Works for:
      - postgres://..., postgresql://..., postgresql+psycopg2://...  -> asyncpg
      - sqlite:///...                                               -> aiosqlite
    Anything already naming an async driver is returned unchanged.
    """
    if not url:
        return url

    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    if url.startswith("sqlite+aiosqlite://"):
        return url

    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql+psycopg2://"):
        url = "postgresql://" + url[len("postgresql+psycopg2://"):]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]

    # asyncpg takes ssl=..., not libpq's sslmode=...
    parsed = urlparse(url)
    q = dict(parse_qsl(parsed.query))
    if "sslmode" in q:
        q["ssl"] = q.pop("sslmode")
        url = urlunparse(parsed._replace(query=urlencode(q)))
    return url


def _sqlite_path(url: str) -> Path | None:
    prefix = "sqlite+aiosqlite:///"
    if not url.startswith(prefix):
        return None
    raw = url[len(prefix):].split("?", 1)[0]
    if not raw or raw == ":memory:":
        return None
    return Path(raw)


class Database:
    """Thin wrapper over an async SQLAlchemy engine running raw text() SQL."""

    def __init__(self, url: str):
        self.url = normalize_database_url(url)
        self._engine: AsyncEngine | None = None

    @property
    def dialect(self) -> str:
        return self.url.split(":", 1)[0].split("+", 1)[0]

    async def connect(self) -> AsyncEngine:
        if self._engine is None:
            path = _sqlite_path(self.url)
            if path is not None:
                path.parent.mkdir(parents=True, exist_ok=True)
            parsed = urlparse(self.url)
            # minimal debug (no secrets)
            logger.info("[DB] Using %s host=%s", self.dialect, parsed.hostname or "local")
            self._engine = create_async_engine(self.url, pool_pre_ping=True)
        return self._engine

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def exec_sql(self, sql: str, params: Dict[str, Any] | None = None) -> None:
        engine = await self.connect()
        async with engine.begin() as conn:
            await conn.execute(text(sql), params or {})

    async def fetch_all(self, sql: str, params: Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
        engine = await self.connect()
        async with engine.connect() as conn:
            result = await conn.execute(text(sql), params or {})
            return [dict(row) for row in result.mappings().all()]
