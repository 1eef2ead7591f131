import asyncio
import logging
from datetime import date, datetime, timezone

import pytest

from apps.familypoints.services.errors import BackendUnavailable, InvalidIdentifier
from apps.familypoints.services.events import POINTS_CHANGED
from apps.familypoints.services.points import GAME_REASONS, make_idem_key, segment_from_count
from conftest import CANON, LEGACY, UNKNOWN, FakeAPIError, idempotent_award_rpc


def test_same_ref_is_awarded_once(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)

    first = asyncio.run(container.points.award_points(LEGACY, 10, "Math Sprint reward", ref="mathsprint:3"))
    second = asyncio.run(container.points.award_points(CANON, 10, "Math Sprint reward", ref="mathsprint:3"))

    assert (first.awarded, first.via) == (True, "rpc")
    assert first.ledger_id
    assert (second.awarded, second.via, second.ledger_id) == (False, "duplicate", None)
    rows = [r for r in sb.tables["points_ledger"] if r.get("ref") == f"{CANON}:mathsprint:3"]
    assert len(rows) == 1


def test_ref_is_scoped_to_canonical_child(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)

    asyncio.run(container.points.award_points(LEGACY, 5, "Checklist done", ref="chk-1"))

    (_, _, params), = sb.rpc_calls("award_points_idem_api")
    assert params == {"p_child": CANON, "p_delta": 5, "p_reason": "Checklist done", "p_ref": f"{CANON}:chk-1"}


def test_no_ref_means_no_key(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)

    asyncio.run(container.points.award_points(CANON, 5, "Bonus"))

    (_, _, params), = sb.rpc_calls("award_points_idem_api")
    assert params["p_ref"] is None


def test_rpc_error_falls_back_to_insert(sb, container, caplog):
    sb.rpcs["award_points_idem_api"] = FakeAPIError("permission denied")

    with caplog.at_level(logging.WARNING, logger="familypoints.points"):
        result = asyncio.run(container.points.award_points(CANON, 20, "Target: tidy desk", ref="t-9"))

    assert (result.awarded, result.via) == (True, "insert")
    (row,) = sb.tables["points_ledger"]
    assert (row["child_uid"], row["delta"], row["reason"]) == (CANON, 20, "Target: tidy desk")
    assert result.ledger_id == row["id"]
    assert "inserting points_ledger row directly" in caplog.text


@pytest.mark.parametrize("payload", [None, [], {}, [{"ledger_id": "x"}], "ok"])
def test_unconfirmed_payload_falls_back_to_insert(sb, container, payload):
    sb.rpcs["award_points_idem_api"] = payload

    result = asyncio.run(container.points.award_points(CANON, 3, "Bonus", ref="r"))

    assert result.via == "insert"
    assert len(sb.tables["points_ledger"]) == 1


def test_declined_without_key_falls_back_to_insert(sb, container):
    sb.rpcs["award_points_idem_api"] = {"awarded": False, "ledger_id": None}

    result = asyncio.run(container.points.award_points(CANON, 3, "Bonus"))

    assert (result.awarded, result.via) == (True, "insert")


def test_fallback_insert_failure_raises(sb, container):
    sb.failing.add("points_ledger")

    with pytest.raises(BackendUnavailable):
        asyncio.run(container.points.award_points(CANON, 3, "Bonus"))


def test_unknown_child_is_awarded_under_input_id(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)

    result = asyncio.run(container.points.award_points(UNKNOWN, 3, "Bonus", ref="a"))

    assert result.child_id == UNKNOWN
    assert sb.tables["points_ledger"][0]["ref"] == f"{UNKNOWN}:a"


def test_invalid_input_makes_no_calls(sb, container):
    with pytest.raises(InvalidIdentifier):
        asyncio.run(container.points.award_points("kid-42", 3, "Bonus"))
    with pytest.raises(ValueError):
        asyncio.run(container.points.award_points(CANON, 0, "Bonus"))
    with pytest.raises(ValueError):
        asyncio.run(container.points.award_points(CANON, 2.5, "Bonus"))
    assert sb.calls == []


def test_award_publishes_points_changed(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)
    seen, legacy_seen = [], []
    container.events.subscribe(POINTS_CHANGED, seen.append)
    container.events.subscribe("points-changed", legacy_seen.append)

    asyncio.run(container.points.award_points(LEGACY, 4, "Bonus", ref="e1"))
    asyncio.run(container.points.award_points(LEGACY, 4, "Bonus", ref="e1"))

    assert seen == [{"childId": CANON}]
    assert legacy_seen == [{"childId": CANON}]


def test_failing_subscriber_does_not_fail_award(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)

    def boom(payload):
        raise RuntimeError("view gone")

    container.events.subscribe(POINTS_CHANGED, boom)

    result = asyncio.run(container.points.award_points(CANON, 4, "Bonus"))

    assert result.awarded is True


def test_unsubscribe_stops_delivery(container):
    seen = []
    unsubscribe = container.events.subscribe(POINTS_CHANGED, seen.append)
    unsubscribe()

    assert container.events.publish(POINTS_CHANGED, {"childId": CANON}) == 0
    assert seen == []


def test_make_idem_key_forms():
    assert make_idem_key("quiz", 2) == "quiz:2"
    assert make_idem_key("mathsprint", 2, date(2024, 5, 1)) == "mathsprint:2024-05-01:seg:2"
    late = datetime(2024, 5, 1, 23, 30, tzinfo=timezone.utc)
    assert make_idem_key("mathsprint", 2, late) == make_idem_key("mathsprint", 2, date(2024, 5, 1))


def test_segment_from_count():
    assert segment_from_count(10, 5) == 1
    assert segment_from_count(9, 5) == 0
    assert segment_from_count(4, 5) == -1


def test_game_segment_award_uses_daily_key(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)

    first = asyncio.run(container.points.award_game_segment(LEGACY, "starcatcher", 1, 15, day=date(2024, 5, 1)))
    again = asyncio.run(container.points.award_game_segment(LEGACY, "starcatcher", 1, 15, day=date(2024, 5, 1)))
    next_day = asyncio.run(container.points.award_game_segment(LEGACY, "starcatcher", 1, 15, day=date(2024, 5, 2)))

    assert [first.awarded, again.awarded, next_day.awarded] == [True, False, True]
    (_, _, params) = sb.rpc_calls("award_points_idem_api")[0]
    assert params["p_reason"] == GAME_REASONS["starcatcher"]
    assert params["p_ref"] == f"{CANON}:starcatcher:2024-05-01:seg:1"


def test_unknown_game_is_rejected(container):
    with pytest.raises(ValueError):
        asyncio.run(container.points.award_game_segment(CANON, "pinball", 1, 5))


def test_async_subscriber_runs_after_award(sb, container):
    sb.rpcs["award_points_idem_api"] = idempotent_award_rpc(sb)
    seen = []

    async def refresh(payload):
        seen.append(payload)

    container.events.subscribe(POINTS_CHANGED, refresh)

    async def award_then_yield():
        await container.points.award_points(LEGACY, 4, "Bonus", ref="async-1")
        await asyncio.sleep(0)

    asyncio.run(award_then_yield())

    assert seen == [{"childId": CANON}]


def test_async_subscriber_without_running_loop(container):
    seen = []

    async def refresh(payload):
        seen.append(payload)

    container.events.subscribe(POINTS_CHANGED, refresh)

    assert container.events.publish(POINTS_CHANGED, {"childId": CANON}) == 1
    assert seen == [{"childId": CANON}]


def test_failing_async_subscriber_is_logged(container, caplog):
    async def boom(payload):
        raise RuntimeError("view gone")

    container.events.subscribe(POINTS_CHANGED, boom)

    async def publish_then_yield():
        container.events.publish(POINTS_CHANGED, {"childId": CANON})
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    with caplog.at_level(logging.ERROR, logger="familypoints.events"):
        asyncio.run(publish_then_yield())

    assert "async handler failed" in caplog.text
