"""
Trigger event routing for Autotask handlers.

Registers callbacks per Sentinel type (and for plain webhook bodies) and
turns a Sentinel condition request into a condition response.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Union

from defender_runtime.classify import parse_condition_request, parse_trigger_event
from defender_runtime.types import (
    AutotaskEvent,
    BlockTriggerEvent,
    FortaTriggerEvent,
    RequestKind,
    SentinelConditionMatch,
    SentinelConditionResponse,
    SubscriberType,
)

logger = logging.getLogger(__name__)

# A truthy decision selects the candidate; a mapping also becomes its metadata.
MatchDecision = Union[bool, Mapping[str, Any], None]
TriggerHandler = Callable[
    [Union[BlockTriggerEvent, FortaTriggerEvent]],
    Union[Awaitable[MatchDecision], MatchDecision],
]
WebhookHandler = Callable[[Any], Union[Awaitable[Any], Any]]


class TriggerEventRouter:
    """Routes Autotask requests to handlers registered per trigger type."""

    def __init__(self) -> None:
        self._handlers: dict[SubscriberType, list[TriggerHandler]] = defaultdict(list)
        self._webhook_handlers: list[WebhookHandler] = []

    def subscribe(self, event_type: SubscriberType, handler: TriggerHandler) -> TriggerHandler:
        """Register a handler for one trigger event type.

        Returns the handler, so the ``on_*`` shortcuts double as decorators.
        """
        self._handlers[SubscriberType(event_type)].append(handler)
        return handler

    def on_block(self, handler: TriggerHandler) -> TriggerHandler:
        return self.subscribe(SubscriberType.BLOCK, handler)

    def on_forta(self, handler: TriggerHandler) -> TriggerHandler:
        return self.subscribe(SubscriberType.FORTA, handler)

    def on_webhook(self, handler: WebhookHandler) -> WebhookHandler:
        """Register a handler for webhook bodies (passed through unmodified)."""
        self._webhook_handlers.append(handler)
        return handler

    def unsubscribe(self, event_type: SubscriberType, handler: TriggerHandler | None = None) -> None:
        """Remove a handler (or all handlers) for an event type."""
        event_type = SubscriberType(event_type)
        if handler is None:
            self._handlers.pop(event_type, None)
        else:
            handlers = self._handlers.get(event_type, [])
            self._handlers[event_type] = [h for h in handlers if h is not handler]

    async def _dispatch(self, handlers: list[Callable[[Any], Any]], payload: Any, label: str) -> list[Any]:
        """Call each handler in registration order, isolating failures."""
        results = []
        for handler in list(handlers):
            try:
                result = handler(payload)
                if asyncio.iscoroutine(result):
                    result = await result
            except Exception:
                logger.exception("Error in %s handler", label)
                continue
            results.append(result)
        return results

    async def _decide(self, event: BlockTriggerEvent | FortaTriggerEvent) -> SentinelConditionMatch | None:
        handlers = self._handlers.get(SubscriberType(event.type), [])
        decisions = await self._dispatch(handlers, event, f"{event.type} {event.hash}")
        for decision in decisions:
            if isinstance(decision, Mapping) and decision:
                return SentinelConditionMatch(hash=event.hash, metadata=dict(decision))
            if decision:
                return SentinelConditionMatch(hash=event.hash)
        return None

    async def evaluate(self, body: Any) -> SentinelConditionResponse:
        """Decide which candidates of a Sentinel condition request match.

        Malformed candidates and failing handlers only drop the candidate
        concerned, so the response always lists hashes from the request.
        """
        parsed = parse_condition_request(body)
        matches = []
        for event in parsed.events:
            match = await self._decide(event)
            if match is not None:
                matches.append(match)
        logger.debug(
            "Condition request: %d candidates, %d rejected, %d matched",
            len(parsed.events) + len(parsed.rejected),
            len(parsed.rejected),
            len(matches),
        )
        return SentinelConditionResponse(matches=matches)

    async def handle(self, event: AutotaskEvent) -> SentinelConditionResponse | None:
        """Route an Autotask invocation by what its request carries.

        Returns the condition response for condition requests and ``None``
        for single trigger events, webhooks and scheduled runs.
        """
        kind = event.request_kind
        if kind is None:
            logger.debug("Autotask run %s has no request", event.autotask_run_id)
            return None

        body = event.request.body  # type: ignore[union-attr]
        if kind is RequestKind.CONDITION_REQUEST:
            return await self.evaluate(body)
        if kind is RequestKind.SINGLE_TRIGGER_EVENT:
            trigger = parse_trigger_event(body)
            handlers = self._handlers.get(SubscriberType(trigger.type), [])
            await self._dispatch(handlers, trigger, f"{trigger.type} {trigger.hash}")
            return None

        await self._dispatch(self._webhook_handlers, body, f"webhook (run {event.autotask_run_id})")
        return None
