import asyncio
from datetime import datetime, timezone

import pytest

from guess_the_lines.core.errors import StoreError
from guess_the_lines.services.picks import PickService

pytestmark = pytest.mark.anyio

FIXED = datetime(2024, 10, 30, 16, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(memory_store):
    return PickService(memory_store, clock=lambda: FIXED)


async def test_submit_saves_picks_and_stats(service, memory_store, make_pick):
    stats = await service.submit("u1", "8", [make_pick("g1", -3.0, -3.0), make_pick("g2", -3.2, 2.0)])

    assert stats["totalPicks"] == 2
    assert stats["perfectGuesses"] == 1
    assert stats["accurateGuesses"] == 1
    assert memory_store.stats["u1"] == stats

    saved = await service.picks("u1", week="8")
    assert [p["gameId"] for p in saved] == ["g1", "g2"]
    assert saved[1]["predictedLine"] == -3.0  # rounded to the half point
    assert saved[0]["timestamp"] == FIXED.isoformat()


async def test_resubmitting_a_week_does_not_double_count(service, make_pick):
    await service.submit("u1", "8", [make_pick("g1", -3.0, -3.0)])
    stats = await service.submit("u1", "8", [make_pick("g1", 1.0, -3.0)])
    assert stats["totalPicks"] == 1
    assert stats["perfectGuesses"] == 0
    assert stats["weeklyStats"] == {"8": {"picks": 1, "accurate": 0, "perfect": 0}}


async def test_stats_span_all_weeks_and_pages(service, make_pick):
    await service.submit("u1", "7", [make_pick(f"a{i}", 0, 0) for i in range(3)])
    stats = await service.submit("u1", "8", [make_pick(f"b{i}", 0, 5) for i in range(3)])
    assert stats["totalPicks"] == 6
    assert stats["perfectGuesses"] == 3
    assert stats["averageDeviation"] == pytest.approx(2.5)
    assert stats["totalPicks"] == sum(w["picks"] for w in stats["weeklyStats"].values())


async def test_concurrent_submissions_by_one_user_end_consistent(service, memory_store, make_pick):
    await asyncio.gather(
        service.submit("u1", "8", [make_pick("g1", 0, 0)]),
        service.submit("u1", "9", [make_pick("g2", 0, 10)]),
        service.submit("u1", "10", [make_pick("g3", 0, 2)]),
    )
    stats = memory_store.stats["u1"]
    assert stats["totalPicks"] == 3
    assert set(stats["weeklyStats"]) == {"8", "9", "10"}
    assert service._locks == {}


async def test_stats_rebuilt_when_one_write_fails(service, memory_store, make_pick):
    put_pick = memory_store.put_pick

    async def flaky_put(pick):
        if pick["gameId"] == "bad":
            raise StoreError("write rejected")
        await put_pick(pick)

    memory_store.put_pick = flaky_put
    with pytest.raises(StoreError, match="write rejected"):
        await service.submit("u1", "8", [make_pick("g1", 0, 0), make_pick("bad", 0, 0), make_pick("g2", 0, 5)])

    stats = memory_store.stats["u1"]
    assert stats["totalPicks"] == 2
    assert stats["weeklyStats"]["8"] == {"picks": 2, "accurate": 1, "perfect": 1}
    assert service._locks == {}


async def test_stats_default_to_empty(service):
    stats = await service.stats("nobody")
    assert stats["totalPicks"] == 0
    assert stats["weeklyStats"] == {}


async def test_history(service, make_pick):
    await service.submit("u1", "7", [make_pick("a", 0, 0)])
    await service.submit("u1", "8", [make_pick("b", 0, 2)])
    hist = await service.history("u1")
    assert [(h["week"], h["picks"][0]["result"]) for h in hist] == [("8", "Close"), ("7", "Perfect!")]
