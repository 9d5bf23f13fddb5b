# guess_the_lines/core/deps.py
# FastAPI dependencies: collaborators live on app.state, set up by create_app().
from __future__ import annotations

from datetime import datetime
from typing import Callable

from fastapi import Request

from guess_the_lines.core.config import Settings
from guess_the_lines.core.store import PickStore
from guess_the_lines.services.odds_api import OddsApiClient
from guess_the_lines.services.picks import PickService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


def get_odds_client(request: Request) -> OddsApiClient:
    return request.app.state.odds_client


def get_store(request: Request) -> PickStore:
    return request.app.state.store


def get_pick_service(request: Request) -> PickService:
    return request.app.state.pick_service
