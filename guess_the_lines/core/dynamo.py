# guess_the_lines/core/dynamo.py
from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from guess_the_lines.core.config import Settings
from guess_the_lines.core.errors import StoreError
from guess_the_lines.core.store import DEFAULT_PAGE_SIZE, sort_key, week_prefix
from guess_the_lines.models.types import Pick, UserStats

DYNAMO_ERRORS = (BotoCoreError, ClientError)


def to_item(data: Dict[str, Any]) -> Dict[str, Any]:
    """DynamoDB rejects float; round-trip through JSON to get Decimal."""
    return json.loads(json.dumps(data), parse_float=Decimal)


def from_item(item: Dict[str, Any]) -> Dict[str, Any]:
    def conv(v):
        if isinstance(v, Decimal):
            return int(v) if v == v.to_integral_value() else float(v)
        if isinstance(v, dict):
            return {k: conv(x) for k, x in v.items()}
        if isinstance(v, list):
            return [conv(x) for x in v]
        return v
    return conv(item)


def _item_to_pick(item: Dict[str, Any]) -> Pick:
    d = from_item(item)
    return {
        "userId": d["userId"],
        "week": str(d["week"]),
        "gameId": str(d["gameId"]),
        "team": d["team"],
        "predictedLine": float(d["predictedLine"]),
        "actualLine": float(d["actualLine"]),
        "timestamp": d.get("timestamp", ""),
    }


def _stats_from_item(item: Dict[str, Any]) -> UserStats:
    d = from_item(item)
    return {
        "userId": d["userId"],
        "totalPicks": int(d.get("totalPicks", 0)),
        "accurateGuesses": int(d.get("accurateGuesses", 0)),
        "perfectGuesses": int(d.get("perfectGuesses", 0)),
        "averageDeviation": float(d.get("averageDeviation", 0)),
        "weeklyStats": d.get("weeklyStats") or {},
    }


class DynamoPickStore:
    """
    UserPicks (hash userId, range sortKey) and UserStats (hash userId).

    boto3 is blocking, so every call goes through the threadpool.
    """

    backend = "dynamodb"

    def __init__(self, picks_table, stats_table, page_size: int = DEFAULT_PAGE_SIZE):
        self.picks_table = picks_table
        self.stats_table = stats_table
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "DynamoPickStore":
        db = boto3.resource("dynamodb", region_name=settings.aws_region)
        return cls(db.Table(settings.picks_table_name), db.Table(settings.stats_table_name))

    async def put_pick(self, pick: Pick) -> None:
        item = to_item({**pick, "sortKey": sort_key(pick["week"], pick["gameId"])})
        try:
            await run_in_threadpool(self.picks_table.put_item, Item=item)
        except DYNAMO_ERRORS as e:
            raise StoreError(f"put_pick failed: {e}") from e

    async def query_picks(
        self,
        user_id: str,
        week: Optional[str] = None,
        limit: Optional[int] = None,
        start_key: Optional[str] = None,
    ) -> Tuple[List[Pick], Optional[str]]:
        cond = Key("userId").eq(user_id)
        if week:
            cond = cond & Key("sortKey").begins_with(week_prefix(week))
        kwargs: Dict[str, Any] = {
            "KeyConditionExpression": cond,
            "Limit": limit or self.page_size,
        }
        if start_key:
            kwargs["ExclusiveStartKey"] = {"userId": user_id, "sortKey": start_key}

        try:
            res = await run_in_threadpool(self.picks_table.query, **kwargs)
        except DYNAMO_ERRORS as e:
            raise StoreError(f"query_picks failed: {e}") from e

        last = res.get("LastEvaluatedKey") or {}
        return [_item_to_pick(i) for i in res.get("Items", [])], last.get("sortKey")

    async def get_stats(self, user_id: str) -> Optional[UserStats]:
        try:
            res = await run_in_threadpool(self.stats_table.get_item, Key={"userId": user_id})
        except DYNAMO_ERRORS as e:
            raise StoreError(f"get_stats failed: {e}") from e
        item = res.get("Item")
        return _stats_from_item(item) if item else None

    async def put_stats(self, stats: UserStats) -> None:
        try:
            await run_in_threadpool(self.stats_table.put_item, Item=to_item(dict(stats)))
        except DYNAMO_ERRORS as e:
            raise StoreError(f"put_stats failed: {e}") from e
