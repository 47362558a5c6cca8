"""
Classification and parsing for Autotask payloads.

Everything here is pure: functions take already-decoded JSON values (or the
models from :mod:`defender_runtime.types`) and either return the narrowed
variant or raise one of the errors in :mod:`defender_runtime.errors`.

Example::

    from defender_runtime import (
        RequestKind,
        is_block_trigger_event,
        parse_condition_request,
        parse_envelope,
    )

    async def handler(raw_event):
        event = parse_envelope(raw_event)
        if event.request_kind is RequestKind.CONDITION_REQUEST:
            parsed = parse_condition_request(event.request.body)
            matches = [{"hash": e.hash} for e in parsed.events if is_block_trigger_event(e)]
            return {"matches": matches}
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from defender_runtime.errors import (
    AmbiguousDiscriminant,
    ClassificationError,
    ConditionVocabularyMismatch,
    IncompleteTriggerEvent,
    MalformedEnvelope,
    UnknownMatchHash,
)
from defender_runtime.types import (
    BLOCK_CONDITION_TYPES,
    FORTA_CONDITION_TYPES,
    AlertType,
    AutotaskEvent,
    BlockAlert,
    BlockSubscriberSummary,
    BlockTriggerEvent,
    FortaSubscriberSummary,
    FortaTriggerEvent,
    ParsedConditionRequest,
    RejectedCandidate,
    RequestKind,
    SentinelConditionRequest,
    SentinelConditionResponse,
    SubscriberType,
    TxAlert,
)

logger = logging.getLogger(__name__)

_ENVELOPE_REQUIRED = ("autotaskId", "autotaskName", "autotaskRunId")
_TRIGGER_TYPES = tuple(t.value for t in SubscriberType)


# ============================================================
#  Alerts
# ============================================================


def classify_alert(alert: Any) -> AlertType:
    """Return whether a Forta alert is a TX or a BLOCK alert.

    The ``alertType`` field wins when present. Payloads produced before that
    field existed go through :func:`_classify_legacy_alert`.

    Raises:
        AmbiguousDiscriminant: The alert fits neither shape.
    """
    if isinstance(alert, TxAlert):
        return AlertType.TX
    if isinstance(alert, BlockAlert):
        return AlertType.BLOCK
    if not isinstance(alert, Mapping):
        raise AmbiguousDiscriminant(f"expected an alert object, got {type(alert).__name__}")

    tag = alert.get("alertType")
    if tag is not None:
        try:
            return AlertType(tag)
        except (TypeError, ValueError):
            raise AmbiguousDiscriminant(f"unknown alertType {tag!r}") from None
    return _classify_legacy_alert(alert)


def _classify_legacy_alert(alert: Mapping[str, Any]) -> AlertType:
    # Pre-alertType payloads: TX alerts carry both source.tx_hash and addresses,
    # BLOCK alerts carry neither.
    source = alert.get("source")
    has_tx_hash = isinstance(source, Mapping) and source.get("tx_hash") is not None
    has_addresses = alert.get("addresses") is not None

    if has_tx_hash and has_addresses:
        return AlertType.TX
    if not has_tx_hash and not has_addresses:
        return AlertType.BLOCK
    present, missing = ("source.tx_hash", "addresses") if has_tx_hash else ("addresses", "source.tx_hash")
    raise AmbiguousDiscriminant(
        f"alert {alert.get('hash')!r} has {present} but no {missing} and no alertType"
    )


def is_tx_alert(alert: Any) -> bool:
    return classify_alert(alert) is AlertType.TX


def is_block_alert(alert: Any) -> bool:
    return classify_alert(alert) is AlertType.BLOCK


# ============================================================
#  Sentinel summaries
# ============================================================


def classify_subscriber(sentinel: Any) -> SubscriberType:
    """Tell a detection-bot Sentinel summary from a block Sentinel summary.

    Only needed when the summary is seen on its own; inside a trigger event
    the event ``type`` is authoritative.
    """
    if isinstance(sentinel, FortaSubscriberSummary):
        return SubscriberType.FORTA
    if isinstance(sentinel, BlockSubscriberSummary):
        return SubscriberType.BLOCK
    if not isinstance(sentinel, Mapping):
        raise AmbiguousDiscriminant(f"expected a sentinel object, got {type(sentinel).__name__}")

    has_agents = "agents" in sentinel
    has_confirm_blocks = "confirmBlocks" in sentinel
    if has_agents and not has_confirm_blocks:
        return SubscriberType.FORTA
    if has_confirm_blocks and not has_agents:
        return SubscriberType.BLOCK
    raise AmbiguousDiscriminant(
        f"sentinel {sentinel.get('id')!r} must carry exactly one of agents/confirmBlocks"
    )


# ============================================================
#  Trigger events
# ============================================================


def classify_trigger_event(event: Any) -> SubscriberType:
    """Return the trigger event type from its mandatory ``type`` field.

    Raises:
        AmbiguousDiscriminant: ``type`` is missing or not BLOCK/FORTA.
    """
    if isinstance(event, BlockTriggerEvent):
        return SubscriberType.BLOCK
    if isinstance(event, FortaTriggerEvent):
        return SubscriberType.FORTA
    if not isinstance(event, Mapping):
        raise AmbiguousDiscriminant(f"expected a trigger event object, got {type(event).__name__}")

    tag = event.get("type")
    try:
        return SubscriberType(tag)
    except (TypeError, ValueError):
        raise AmbiguousDiscriminant(
            f"trigger event {event.get('hash')!r} has unknown type {tag!r}"
        ) from None


def is_block_trigger_event(event: Any) -> bool:
    return classify_trigger_event(event) is SubscriberType.BLOCK


def is_forta_trigger_event(event: Any) -> bool:
    return classify_trigger_event(event) is SubscriberType.FORTA


def check_condition_vocabulary(event_type: SubscriberType, match_reasons: Any) -> None:
    """Reject match reasons that belong to the other trigger event type.

    Unknown condition kinds are left for model validation to report.
    """
    if not isinstance(match_reasons, list):
        return
    allowed = BLOCK_CONDITION_TYPES if event_type is SubscriberType.BLOCK else FORTA_CONDITION_TYPES
    foreign = FORTA_CONDITION_TYPES if event_type is SubscriberType.BLOCK else BLOCK_CONDITION_TYPES
    for reason in match_reasons:
        kind = reason.get("type") if isinstance(reason, Mapping) else getattr(reason, "type", None)
        if isinstance(kind, str) and kind not in allowed and kind in foreign:
            raise ConditionVocabularyMismatch(event_type.value, kind)


def parse_trigger_event(raw: Any) -> BlockTriggerEvent | FortaTriggerEvent:
    """Classify and validate a single Sentinel trigger event.

    Raises:
        AmbiguousDiscriminant: ``type`` is missing or unknown.
        ConditionVocabularyMismatch: Match reasons from the other event type.
        IncompleteTriggerEvent: Required fields are missing or invalid.
    """
    if isinstance(raw, (BlockTriggerEvent, FortaTriggerEvent)):
        return raw

    event_type = classify_trigger_event(raw)
    check_condition_vocabulary(event_type, raw.get("matchReasons"))
    if event_type is SubscriberType.FORTA and isinstance(raw.get("alert"), Mapping):
        classify_alert(raw["alert"])

    model = BlockTriggerEvent if event_type is SubscriberType.BLOCK else FortaTriggerEvent
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise IncompleteTriggerEvent(
            f"{event_type.value} trigger event {raw.get('hash')!r} failed validation: {e}"
        ) from e


# ============================================================
#  Autotask envelope
# ============================================================


def parse_envelope(raw: Any) -> AutotaskEvent:
    """Validate the event object Defender passes to an Autotask.

    The request body is kept as-is; use :func:`classify_request_body` and
    the parsers below to read it.

    Raises:
        MalformedEnvelope: Not an object, missing ids, or invalid fields.
    """
    if not isinstance(raw, Mapping):
        raise MalformedEnvelope(f"expected an event object, got {type(raw).__name__}")

    missing = [name for name in _ENVELOPE_REQUIRED if raw.get(name) is None]
    if missing:
        raise MalformedEnvelope(f"Autotask event is missing {', '.join(missing)}")

    try:
        return AutotaskEvent.model_validate(raw)
    except ValidationError as e:
        raise MalformedEnvelope(f"Autotask event failed validation: {e}") from e


def classify_request_body(body: Any) -> RequestKind:
    """Decide what an Autotask request body carries.

    The ``events`` check runs first: condition requests never carry a
    ``type`` of their own. Anything else is a webhook body.
    """
    if isinstance(body, Mapping):
        if isinstance(body.get("events"), (list, tuple)):
            return RequestKind.CONDITION_REQUEST
        if body.get("type") in _TRIGGER_TYPES:
            return RequestKind.SINGLE_TRIGGER_EVENT
    return RequestKind.WEBHOOK


def _candidate_hash(candidate: Any) -> str | None:
    if isinstance(candidate, Mapping):
        value = candidate.get("hash")
        return value if isinstance(value, str) else None
    return None


def parse_condition_request(body: Any) -> ParsedConditionRequest:
    """Parse a Sentinel condition request one candidate at a time.

    A candidate that fails classification is recorded in ``rejected`` and
    logged; the remaining candidates are still parsed, in request order.

    Raises:
        ClassificationError: The body is not a condition request at all.
    """
    if isinstance(body, SentinelConditionRequest):
        return ParsedConditionRequest(request=body)
    if classify_request_body(body) is not RequestKind.CONDITION_REQUEST:
        raise ClassificationError("request body is not a Sentinel condition request")

    accepted = []
    rejected = []
    for index, candidate in enumerate(body["events"]):
        try:
            accepted.append(parse_trigger_event(candidate))
        except ClassificationError as e:
            candidate_hash = _candidate_hash(candidate)
            logger.warning(
                "Rejected condition candidate #%d (%s): %s", index, candidate_hash, e
            )
            rejected.append(RejectedCandidate(index=index, hash=candidate_hash, error=e))

    return ParsedConditionRequest(
        request=SentinelConditionRequest(events=accepted),
        rejected=rejected,
    )


def validate_condition_response(
    response: SentinelConditionResponse,
    request: SentinelConditionRequest | ParsedConditionRequest,
) -> None:
    """Check that a response only selects hashes the request offered.

    Candidates rejected while parsing still count as offered.

    Raises:
        UnknownMatchHash: With every offending hash, in response order.
    """
    if isinstance(request, ParsedConditionRequest):
        offered = request.request.hashes | {r.hash for r in request.rejected if r.hash}
    else:
        offered = request.hashes
    unknown = [match.hash for match in response.matches if match.hash not in offered]
    if unknown:
        raise UnknownMatchHash(unknown)
