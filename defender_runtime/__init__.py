"""
Defender Autotask runtime helpers for Python.

Typed models and classification helpers for the events Defender injects
into Autotasks (webhooks, Sentinel matches, Sentinel condition requests),
plus an async client for the deployment API. Mirrors the TypeScript
``autotask-utils`` and ``platform-deploy-client`` packages with Pythonic
idioms.

Example::

    from defender_runtime import TriggerEventRouter, parse_envelope, is_tx_alert

    router = TriggerEventRouter()

    @router.on_forta
    def high_severity(event):
        if event.alert.severity == "HIGH" and is_tx_alert(event.alert):
            return {"bot": event.alert.bot_id}
        return False

    async def handler(raw_event):
        event = parse_envelope(raw_event)
        response = await router.handle(event)
        return response.to_wire() if response else None
"""

from defender_runtime.classify import (
    check_condition_vocabulary,
    classify_alert,
    classify_request_body,
    classify_subscriber,
    classify_trigger_event,
    is_block_alert,
    is_block_trigger_event,
    is_forta_trigger_event,
    is_tx_alert,
    parse_condition_request,
    parse_envelope,
    parse_trigger_event,
    validate_condition_response,
)
from defender_runtime.client import PlatformClient
from defender_runtime.errors import (
    AmbiguousDiscriminant,
    ClassificationError,
    ConditionVocabularyMismatch,
    DefenderRuntimeError,
    DeploymentRequestError,
    IncompleteTriggerEvent,
    MalformedEnvelope,
    UnexpectedResponse,
    UnknownMatchHash,
    UnsupportedLicense,
    UnsupportedNetwork,
)
from defender_runtime.events import TriggerEventRouter
from defender_runtime.types import (
    AlertType,
    AutotaskEvent,
    AutotaskRequestData,
    BlockAlert,
    BlockExplorerApiKeyResponse,
    BlockSubscriberSummary,
    BlockTriggerEvent,
    CreateBlockExplorerApiKeyRequest,
    DeployContractRequest,
    DeploymentConfigCreateRequest,
    DeploymentConfigResponse,
    DeploymentResponse,
    EthLog,
    EthReceipt,
    FortaSubscriberSummary,
    FortaTriggerEvent,
    Network,
    ParsedConditionRequest,
    PlatformConfig,
    PreviousAutotaskRunInfo,
    RejectedCandidate,
    RemoveResponse,
    RequestKind,
    SentinelConditionMatch,
    SentinelConditionRequest,
    SentinelConditionResponse,
    SourceCodeLicense,
    SubscriberType,
    TxAlert,
    UpdateBlockExplorerApiKeyRequest,
)

__all__ = [
    "PlatformClient",
    "PlatformConfig",
    "TriggerEventRouter",
    "AlertType",
    "SubscriberType",
    "RequestKind",
    "AutotaskEvent",
    "AutotaskRequestData",
    "PreviousAutotaskRunInfo",
    "BlockTriggerEvent",
    "FortaTriggerEvent",
    "TxAlert",
    "BlockAlert",
    "BlockSubscriberSummary",
    "FortaSubscriberSummary",
    "EthReceipt",
    "EthLog",
    "SentinelConditionRequest",
    "SentinelConditionResponse",
    "SentinelConditionMatch",
    "ParsedConditionRequest",
    "RejectedCandidate",
    "Network",
    "SourceCodeLicense",
    "DeployContractRequest",
    "DeploymentResponse",
    "DeploymentConfigCreateRequest",
    "DeploymentConfigResponse",
    "CreateBlockExplorerApiKeyRequest",
    "UpdateBlockExplorerApiKeyRequest",
    "BlockExplorerApiKeyResponse",
    "RemoveResponse",
    "classify_alert",
    "is_tx_alert",
    "is_block_alert",
    "classify_subscriber",
    "classify_trigger_event",
    "is_block_trigger_event",
    "is_forta_trigger_event",
    "check_condition_vocabulary",
    "parse_trigger_event",
    "parse_envelope",
    "classify_request_body",
    "parse_condition_request",
    "validate_condition_response",
    "DefenderRuntimeError",
    "MalformedEnvelope",
    "ClassificationError",
    "AmbiguousDiscriminant",
    "ConditionVocabularyMismatch",
    "IncompleteTriggerEvent",
    "UnknownMatchHash",
    "DeploymentRequestError",
    "UnsupportedLicense",
    "UnsupportedNetwork",
    "UnexpectedResponse",
]

__version__ = "0.1.0"
