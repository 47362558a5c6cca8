"""
Unit tests for the trigger event router.

Handlers are plain functions or coroutines; no network involved.
"""

from __future__ import annotations

import logging

import pytest

from defender_runtime.classify import (
    parse_condition_request,
    parse_envelope,
    validate_condition_response,
)
from defender_runtime.events import TriggerEventRouter
from defender_runtime.types import BlockTriggerEvent, FortaTriggerEvent, SubscriberType


# ============================================================
#  Condition requests
# ============================================================


@pytest.mark.asyncio
async def test_evaluate_selects_matching_candidates(block_event, forta_event) -> None:
    """Sync and async handlers both decide on their own event type."""
    router = TriggerEventRouter()
    seen: list[str] = []

    @router.on_block
    def large_transfer(event: BlockTriggerEvent) -> bool:
        seen.append(event.hash)
        return int(event.match_reasons[0].params["value"]) > 10**18

    @router.on_forta
    async def high_severity(event: FortaTriggerEvent) -> dict[str, str] | bool:
        seen.append(event.hash)
        return {"bot": event.alert.bot_id} if event.alert.severity == "HIGH" else False

    body = {"events": [block_event(), forta_event(), forta_event(hash="0x10w", matchReasons=[])]}
    body["events"][2]["alert"]["severity"] = "LOW"

    response = await router.evaluate(body)

    assert seen == ["0xabc", "0xdef", "0x10w"]
    assert response.to_wire() == {
        "matches": [{"hash": "0xabc"}, {"hash": "0xdef", "metadata": {"bot": "b1"}}]
    }
    validate_condition_response(response, parse_condition_request(body))


@pytest.mark.asyncio
async def test_failing_handler_only_drops_its_candidate(block_event, caplog) -> None:
    router = TriggerEventRouter()

    def flaky(event: BlockTriggerEvent) -> bool:
        if event.hash == "0xboom":
            raise RuntimeError("rpc unavailable")
        return True

    router.on_block(flaky)

    with caplog.at_level(logging.ERROR, logger="defender_runtime.events"):
        response = await router.evaluate(
            {"events": [block_event(hash="0xboom"), block_event(hash="0xok")]}
        )

    assert [m.hash for m in response.matches] == ["0xok"]
    assert "0xboom" in caplog.text


@pytest.mark.asyncio
async def test_malformed_candidates_are_skipped(block_event) -> None:
    router = TriggerEventRouter()
    router.on_block(lambda event: True)

    bad = block_event(hash="0xbad", matchReasons=[{"type": "alert-id", "value": "x"}])
    response = await router.evaluate({"events": [bad, block_event()]})

    assert [m.hash for m in response.matches] == ["0xabc"]


@pytest.mark.asyncio
async def test_unsubscribe(block_event) -> None:
    router = TriggerEventRouter()
    handler = router.on_block(lambda event: True)
    router.unsubscribe(SubscriberType.BLOCK, handler)

    response = await router.evaluate({"events": [block_event()]})

    assert response.matches == []


# ============================================================
#  Envelope routing
# ============================================================


@pytest.mark.asyncio
async def test_handle_condition_request(envelope, block_event) -> None:
    router = TriggerEventRouter()
    router.on_block(lambda event: True)

    response = await router.handle(parse_envelope(envelope(body={"events": [block_event()]})))

    assert response is not None
    assert response.to_wire() == {"matches": [{"hash": "0xabc"}]}


@pytest.mark.asyncio
async def test_handle_single_trigger_event(envelope, forta_event) -> None:
    """Every handler of the event's type is notified."""
    router = TriggerEventRouter()
    received: list[str] = []
    router.on_forta(lambda event: received.append(f"first:{event.hash}"))
    router.on_forta(lambda event: received.append(f"second:{event.hash}"))
    router.on_block(lambda event: received.append("block"))

    result = await router.handle(parse_envelope(envelope(body=forta_event())))

    assert result is None
    assert received == ["first:0xdef", "second:0xdef"]


@pytest.mark.asyncio
async def test_handle_webhook(envelope) -> None:
    router = TriggerEventRouter()
    bodies: list[object] = []

    @router.on_webhook
    async def record(body: object) -> None:
        bodies.append(body)

    body = {"type": "deposit", "events": "not-a-list"}
    result = await router.handle(parse_envelope(envelope(body=body)))

    assert result is None
    assert bodies == [body]


@pytest.mark.asyncio
async def test_handle_scheduled_run(envelope) -> None:
    router = TriggerEventRouter()
    router.on_webhook(lambda body: pytest.fail("no request to route"))

    assert await router.handle(parse_envelope(envelope())) is None
