"""Exception hierarchy for the Defender Autotask runtime helpers."""

from __future__ import annotations


class DefenderRuntimeError(Exception):
    """Base exception for all runtime helper errors."""


class MalformedEnvelope(DefenderRuntimeError):
    """The Autotask event envelope is missing required fields or is invalid."""


class ClassificationError(DefenderRuntimeError):
    """A single trigger event or alert could not be classified.

    These errors are local to one value: callers evaluating a batch of
    candidates reject the offending one and keep going.
    """


class AmbiguousDiscriminant(ClassificationError):
    """A value matches zero, or more than one, variant of a union."""


class ConditionVocabularyMismatch(ClassificationError):
    """A trigger event's match reasons belong to the other event type."""

    def __init__(self, event_type: str, condition_type: str) -> None:
        self.event_type = event_type
        self.condition_type = condition_type
        super().__init__(
            f"{event_type} trigger event cannot carry a {condition_type!r} match reason"
        )


class IncompleteTriggerEvent(ClassificationError):
    """A trigger event has a valid discriminant but missing or invalid fields."""


class UnknownMatchHash(DefenderRuntimeError):
    """A condition response selects a hash that was never a candidate."""

    def __init__(self, hashes: list[str]) -> None:
        self.hashes = hashes
        super().__init__(
            f"Condition response references hashes not in the request: {', '.join(hashes)}"
        )


class DeploymentRequestError(DefenderRuntimeError):
    """A deployment API request failed local validation."""


class UnsupportedLicense(DeploymentRequestError):
    """The requested source code license is not one the platform accepts."""


class UnsupportedNetwork(DeploymentRequestError):
    """The requested network is not one the platform supports."""


class UnexpectedResponse(DefenderRuntimeError):
    """The deployment API answered with a body of the wrong shape."""
