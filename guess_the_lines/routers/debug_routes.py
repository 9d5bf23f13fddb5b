# guess_the_lines/routers/debug_routes.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from guess_the_lines.core.deps import get_odds_client, get_store
from guess_the_lines.core.errors import StoreError, UpstreamFetchError
from guess_the_lines.core.store import PickStore, ping
from guess_the_lines.services.odds_api import OddsApiClient

logger = logging.getLogger("app.debug")
router = APIRouter(tags=["debug"])


@router.get("/_debug/store")
async def store_probe(store: PickStore = Depends(get_store)):
    """Limit-1 query against the pick store. Confirms credentials/URL work."""
    try:
        count = await ping(store)
    except StoreError as e:
        logger.warning("store probe failed: %s", e)
        return {"ok": False, "backend": store.backend, "error": str(e)}
    return {"ok": True, "backend": store.backend, "itemCount": count}


@router.get("/_debug/odds")
async def odds_probe(client: OddsApiClient = Depends(get_odds_client)):
    """Raw provider call: confirms the key works and shows how many events came back."""
    if not client.has_key:
        return {"ok": False, "error": "ODDS_API_KEY missing"}
    try:
        events = await client.fetch_odds()
    except UpstreamFetchError as e:
        return {"ok": False, "status": e.status_code, "error": str(e)}
    sample = events[0] if events else None
    return {
        "ok": True,
        "events_total": len(events),
        "sample_id": sample.get("id") if isinstance(sample, dict) else None,
    }
