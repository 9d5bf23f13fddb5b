# guess_the_lines/core/config.py
"""
Runtime configuration.

Everything is read from environment variables once, in Settings.from_env(),
and handed to the app factory. Nothing else in the package calls os.getenv.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

ODDS_API_BASE = "https://api.the-odds-api.com/v4"
NFL_SPORT_KEY = "americanfootball_nfl"

DEFAULT_REGIONS = "us"
DEFAULT_MARKETS = "spreads"
DEFAULT_BOOKMAKER = "draftkings"

STORE_SQL = "sql"
STORE_DYNAMODB = "dynamodb"

DEFAULT_SQLITE_PATH = Path.cwd() / "data" / "guess_the_lines.db"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class Settings:
    """
    Settings for the odds provider, the pick store and the HTTP layer.

    Example usage:
        settings = Settings.from_env()
        app = create_app(settings)
    """
    odds_api_key: Optional[str] = None
    odds_regions: str = DEFAULT_REGIONS
    odds_markets: str = DEFAULT_MARKETS
    preferred_bookmaker: str = DEFAULT_BOOKMAKER
    odds_bookmakers: Optional[str] = None  # optional CSV passed through to the provider
    odds_timeout: float = 8.0
    sport_key: str = NFL_SPORT_KEY
    include_playoffs: bool = True

    store_backend: str = STORE_SQL
    database_url: Optional[str] = None

    aws_region: Optional[str] = None
    picks_table_name: str = "UserPicks"
    stats_table_name: str = "UserStats"

    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Environment variables:
            ODDS_API_KEY: The Odds API key (odds endpoint degrades without it)
            ODDS_REGIONS: provider regions (default: us)
            ODDS_BOOKMAKER: preferred bookmaker key (default: draftkings)
            ODDS_BOOKMAKERS: optional CSV of bookmaker keys to request
            ODDS_TIMEOUT: seconds before the odds fetch is abandoned (default: 8)
            INCLUDE_PLAYOFFS: model playoff rounds as symbolic weeks (default: true)
            STORE_BACKEND: sql or dynamodb (default: sql)
            DATABASE_URL: SQL store URL (if not set, uses SQLite)
            SQLITE_DB_PATH: path to the SQLite file (default: ./data/guess_the_lines.db)
            AWS_REGION: region for DynamoDB
            PICKS_TABLE_NAME / STATS_TABLE_NAME: DynamoDB table names
            CORS_ORIGINS: CSV of allowed origins (default: *)
        """
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            db_path = os.getenv("SQLITE_DB_PATH")
            sqlite_path = Path(db_path) if db_path else DEFAULT_SQLITE_PATH
            database_url = f"sqlite:///{sqlite_path}"

        return cls(
            odds_api_key=os.getenv("ODDS_API_KEY") or None,
            odds_regions=os.getenv("ODDS_REGIONS", DEFAULT_REGIONS),
            preferred_bookmaker=os.getenv("ODDS_BOOKMAKER", DEFAULT_BOOKMAKER),
            odds_bookmakers=os.getenv("ODDS_BOOKMAKERS") or None,
            odds_timeout=float(os.getenv("ODDS_TIMEOUT", "8.0")),
            include_playoffs=_env_bool("INCLUDE_PLAYOFFS", True),
            store_backend=os.getenv("STORE_BACKEND", STORE_SQL).strip().lower(),
            database_url=database_url,
            aws_region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            picks_table_name=os.getenv("PICKS_TABLE_NAME", "UserPicks"),
            stats_table_name=os.getenv("STATS_TABLE_NAME", "UserStats"),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
        )

    @property
    def is_dynamodb(self) -> bool:
        return self.store_backend == STORE_DYNAMODB
