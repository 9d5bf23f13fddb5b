# guess_the_lines/routers/picks_routes.py
from __future__ import annotations

import logging
import math
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from guess_the_lines.core.deps import get_pick_service
from guess_the_lines.core.errors import StoreError
from guess_the_lines.services.picks import PickService

logger = logging.getLogger("app.picks")
router = APIRouter(tags=["picks"])

MISSING_PARAMS = "Missing required parameters"


def _error(status: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message, **extra})


def _is_number(v: Any) -> bool:
    if isinstance(v, bool):
        return False
    if isinstance(v, (int, float)):
        return math.isfinite(v)
    if isinstance(v, str):
        try:
            return math.isfinite(float(v))
        except ValueError:
            return False
    return False


def _valid_pick(p: Any) -> bool:
    return (
        isinstance(p, dict)
        and bool(p.get("gameId"))
        and bool(p.get("team"))
        and _is_number(p.get("predictedLine"))
        and _is_number(p.get("actualLine"))
    )


@router.get("/picks")
async def get_picks(
    userId: Optional[str] = Query(None),
    week: Optional[str] = Query(None),
    service: PickService = Depends(get_pick_service),
):
    if not userId:
        return _error(400, MISSING_PARAMS)
    try:
        picks = await service.picks(userId, week=week)
    except StoreError as e:
        logger.exception("fetch picks failed user=%s week=%s: %s", userId, week, e)
        return _error(500, "Failed to fetch picks")
    return {"picks": picks}


@router.post("/picks")
async def save_picks(request: Request, service: PickService = Depends(get_pick_service)):
    """
    Body: {userId, week, picks: [{gameId, team, predictedLine, actualLine}]}.
    Each pick is stored under (userId, week, gameId); resubmitting replaces it.
    """
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Request body must be JSON")
    if not isinstance(body, dict):
        return _error(400, MISSING_PARAMS)

    user_id = body.get("userId")
    week = body.get("week")
    picks = body.get("picks")
    logger.info(
        "PICKS received user=%s week=%s n=%s",
        user_id, week, len(picks) if isinstance(picks, list) else None,
    )
    if not user_id or not week or not picks or not isinstance(picks, list):
        return _error(400, MISSING_PARAMS)

    for i, p in enumerate(picks):
        if not _valid_pick(p):
            return _error(400, f"Invalid pick at index {i}")

    try:
        stats = await service.submit(str(user_id), str(week), picks)
    except StoreError as e:
        logger.exception("save picks failed user=%s week=%s: %s", user_id, week, e)
        return _error(500, "Failed to save picks", details=str(e))
    return {"success": True, "stats": stats}


@router.get("/picks/history")
async def picks_history(
    userId: Optional[str] = Query(None),
    service: PickService = Depends(get_pick_service),
):
    """Picks grouped by week, newest first, each scored Perfect!/Close/Miss."""
    if not userId:
        return _error(400, MISSING_PARAMS)
    try:
        weeks = await service.history(userId)
    except StoreError as e:
        logger.exception("history failed user=%s: %s", userId, e)
        return _error(500, "Failed to load picks history")
    return {"weeks": weeks}


@router.get("/stats")
async def user_stats(
    userId: Optional[str] = Query(None),
    service: PickService = Depends(get_pick_service),
):
    if not userId:
        return _error(400, MISSING_PARAMS)
    try:
        stats = await service.stats(userId)
    except StoreError as e:
        logger.exception("stats failed user=%s: %s", userId, e)
        return _error(500, "Failed to load stats")
    return {"stats": stats}
