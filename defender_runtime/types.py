"""
Pydantic models for the Defender Autotask runtime helpers.

Mirrors the payloads injected into Autotasks by Defender (trigger
events, Forta alerts, Sentinel summaries) and the deployment API records,
with Pythonic naming conventions (snake_case attributes, camelCase wire
aliases).

All records are immutable and keep unknown wire fields, so a payload read
from the platform dumps back to the same JSON. Integer and boolean fields
are strict: "12" is not read as 12 and "false" is not read as False.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    Discriminator,
    Field,
    StrictBool,
    StrictInt,
    Tag,
    field_validator,
    model_validator,
)

from defender_runtime.errors import (
    ClassificationError,
    UnsupportedLicense,
    UnsupportedNetwork,
)

Address = str
Hash = str
NetworkId = str


class _Record(BaseModel):
    """Base for wire records."""

    model_config = {"populate_by_name": True, "frozen": True, "extra": "allow"}

    def to_wire(self) -> dict[str, Any]:
        """Dump to the platform's JSON shape (camelCase, only fields that were set)."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ============================================================
#  Enumerations
# ============================================================


class AlertType(str, Enum):
    """Forta alert kinds."""

    TX = "TX"
    BLOCK = "BLOCK"


class SubscriberType(str, Enum):
    """Sentinel kinds, also the trigger event discriminant."""

    BLOCK = "BLOCK"
    FORTA = "FORTA"


class RequestKind(str, Enum):
    """What an Autotask request body carries."""

    WEBHOOK = "WEBHOOK"
    CONDITION_REQUEST = "CONDITION_REQUEST"
    SINGLE_TRIGGER_EVENT = "SINGLE_TRIGGER_EVENT"


# ============================================================
#  Condition summaries
# ============================================================


class _AbiConditionSummary(_Record):
    signature: str
    args: list[Any] = Field(default_factory=list)
    address: Address
    params: dict[str, Any] = Field(default_factory=dict)
    condition: str | None = None


class EventConditionSummary(_AbiConditionSummary):
    """Matched an emitted event."""

    type: Literal["event"]


class FunctionConditionSummary(_AbiConditionSummary):
    """Matched a top-level function call."""

    type: Literal["function"]


class InternalFunctionConditionSummary(_AbiConditionSummary):
    """Matched an internal (trace-level) function call."""

    type: Literal["internal-function"]


class TransactionConditionSummary(_Record):
    """Matched a transaction-level expression."""

    type: Literal["transaction"]
    condition: str | None = None


class AlertIdConditionSummary(_Record):
    """Matched a Forta alert id."""

    type: Literal["alert-id"]
    value: str


class SeverityConditionSummary(_Record):
    """Matched a Forta alert severity."""

    type: Literal["severity"]
    value: str


BlockConditionSummary = Annotated[
    Union[
        EventConditionSummary,
        FunctionConditionSummary,
        InternalFunctionConditionSummary,
        TransactionConditionSummary,
    ],
    Field(discriminator="type"),
]

FortaConditionSummary = Annotated[
    Union[AlertIdConditionSummary, SeverityConditionSummary],
    Field(discriminator="type"),
]

BLOCK_CONDITION_TYPES = frozenset({"event", "function", "internal-function", "transaction"})
FORTA_CONDITION_TYPES = frozenset({"alert-id", "severity"})


# ============================================================
#  Chain receipts
# ============================================================


class EthLog(_Record):
    """Ethereum transaction event log. Quantities stay hex/decimal strings."""

    address: Address | None = None
    block_hash: Hash = Field(alias="blockHash")
    block_number: str = Field(alias="blockNumber")
    data: str
    log_index: str = Field(alias="logIndex")
    removed: StrictBool
    topics: list[str]
    transaction_hash: Hash = Field(alias="transactionHash")
    transaction_index: str = Field(alias="transactionIndex")


class EthReceipt(_Record):
    """Ethereum transaction receipt. Quantities stay hex/decimal strings."""

    transaction_hash: Hash = Field(alias="transactionHash")
    transaction_index: str = Field(alias="transactionIndex")
    contract_address: Address | None = Field(alias="contractAddress")
    block_hash: Hash = Field(alias="blockHash")
    block_number: str = Field(alias="blockNumber")
    from_address: Address = Field(alias="from")
    to: Address | None
    cumulative_gas_used: str = Field(alias="cumulativeGasUsed")
    gas_used: str = Field(alias="gasUsed")
    logs: list[EthLog]
    logs_bloom: str = Field(alias="logsBloom")
    status: str


# ============================================================
#  Forta alerts
# ============================================================


class BotRef(_Record):
    id: str


class AlertBlock(_Record):
    chain_id: StrictInt = Field(alias="chainId")
    hash: Hash


class AlertSource(_Record):
    """Where an alert came from.

    Forta renamed "agents" to "detection bots"; older payloads only carry
    ``agent.id``. Use :attr:`bot_id` rather than reading either field.
    """

    transaction_hash: Hash | None = Field(None, alias="transactionHash")
    tx_hash: Hash | None = None
    agent: BotRef | None = None
    bot: BotRef | None = None
    block: AlertBlock

    @model_validator(mode="after")
    def _require_bot(self) -> AlertSource:
        if self.bot is None and self.agent is None:
            raise ValueError("alert source must identify a bot (bot.id or agent.id)")
        return self

    @property
    def bot_id(self) -> str:
        ref = self.bot if self.bot is not None else self.agent
        return ref.id  # type: ignore[union-attr]


class TxAlertSource(AlertSource):
    tx_hash: Hash


class _FortaAlertBase(_Record):
    addresses: list[Address] | None = None
    created_at: str = Field(alias="createdAt")
    severity: str
    alert_id: str = Field(alias="alertId")
    scan_node_count: StrictInt = Field(alias="scanNodeCount")
    name: str
    description: str
    hash: Hash
    protocol: str
    finding_type: str = Field(alias="findingType")
    source: AlertSource
    metadata: dict[str, Any] = Field(default_factory=dict)
    alert_type: Literal["TX", "BLOCK"] | None = Field(None, alias="alertType")

    @property
    def bot_id(self) -> str:
        return self.source.bot_id


class TxAlert(_FortaAlertBase):
    """Alert raised while scanning a transaction."""

    addresses: list[Address]
    source: TxAlertSource
    alert_type: Literal["TX"] | None = Field(None, alias="alertType")


class BlockAlert(_FortaAlertBase):
    """Alert raised while scanning a block."""

    alert_type: Literal["BLOCK"] | None = Field(None, alias="alertType")


def _alert_tag(value: Any) -> str | None:
    from defender_runtime.classify import classify_alert

    try:
        return classify_alert(value).value
    except ClassificationError:
        return None


FortaAlert = Annotated[
    Union[Annotated[TxAlert, Tag("TX")], Annotated[BlockAlert, Tag("BLOCK")]],
    Discriminator(
        _alert_tag,
        custom_error_type="invalid_alert_shape",
        custom_error_message="alert is neither a TX alert nor a BLOCK alert",
    ),
]


# ============================================================
#  Sentinel summaries
# ============================================================


SentinelConfirmation = Union[StrictInt, Literal["safe", "finalized"]]


class BlockSubscriberSummary(_Record):
    """Summary of an address/ABI based Sentinel."""

    id: str
    name: str
    network: NetworkId
    addresses: list[Address]
    confirm_blocks: SentinelConfirmation = Field(alias="confirmBlocks")
    abi: Any = None
    chain_id: StrictInt | None = Field(None, alias="chainId")


class FortaSubscriberSummary(_Record):
    """Summary of a detection-bot based Sentinel.

    ``agents`` holds detection bot ids; the platform kept the old name.
    """

    id: str
    name: str
    addresses: list[Address]
    agents: list[str]
    network: NetworkId | None = None
    chain_id: StrictInt | None = Field(None, alias="chainId")

    @property
    def bot_ids(self) -> list[str]:
        return self.agents


# ============================================================
#  Trigger events
# ============================================================


class BlockTriggerEvent(_Record):
    """A transaction matched by a block-based Sentinel."""

    type: Literal["BLOCK"]
    hash: Hash
    timestamp: StrictInt
    block_number: str = Field(alias="blockNumber")
    block_hash: Hash = Field(alias="blockHash")
    transaction: EthReceipt
    match_reasons: list[BlockConditionSummary] = Field(alias="matchReasons")
    matched_addresses: list[Address] = Field(alias="matchedAddresses")
    sentinel: BlockSubscriberSummary
    metadata: dict[str, Any] | None = None


class FortaTriggerEvent(_Record):
    """An alert matched by a detection-bot based Sentinel."""

    type: Literal["FORTA"]
    hash: Hash
    alert: FortaAlert
    match_reasons: list[FortaConditionSummary] = Field(alias="matchReasons")
    sentinel: FortaSubscriberSummary
    metadata: dict[str, Any] | None = None


SentinelTriggerEvent = Annotated[
    Union[BlockTriggerEvent, FortaTriggerEvent],
    Field(discriminator="type"),
]


# ============================================================
#  Sentinel conditions
# ============================================================


class SentinelConditionRequest(_Record):
    """Candidate matches a Sentinel asks an Autotask to decide on."""

    events: list[SentinelTriggerEvent]

    @property
    def hashes(self) -> set[str]:
        return {event.hash for event in self.events}


class SentinelConditionMatch(_Record):
    """One selected candidate, optionally enriched for the notification."""

    hash: Hash
    metadata: dict[str, Any] | None = None


class SentinelConditionResponse(_Record):
    """What an Autotask returns to a Sentinel condition request.

    Every hash must come from the originating request; see
    :func:`defender_runtime.classify.validate_condition_response`.
    """

    matches: list[SentinelConditionMatch] = Field(default_factory=list)


class RejectedCandidate(BaseModel):
    """A condition-request candidate that failed classification."""

    index: int
    hash: str | None = None
    error: ClassificationError

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class ParsedConditionRequest(BaseModel):
    """Result of parsing a condition request candidate by candidate."""

    request: SentinelConditionRequest
    rejected: list[RejectedCandidate] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def events(self) -> list[BlockTriggerEvent | FortaTriggerEvent]:
        return self.request.events


# ============================================================
#  Autotask envelope
# ============================================================


class PreviousAutotaskRunInfo(_Record):
    """Outcome of the previous invocation of a recurring Autotask."""

    trigger: Literal[
        "schedule", "webhook", "sentinel", "monitor-filter", "scenario", "manual", "manual-api"
    ]
    status: Literal["pending", "throttled", "error", "success"]
    created_at: str = Field(alias="createdAt")
    autotask_id: str = Field(alias="autotaskId")
    autotask_run_id: str = Field(alias="autotaskRunId")
    message: str | None = None


class AutotaskRequestData(_Record):
    """Request data injected for webhook and Sentinel triggers."""

    body: Any = None
    query_parameters: dict[str, str] | None = Field(None, alias="queryParameters")
    headers: dict[str, str] | None = None

    @field_validator("headers")
    @classmethod
    def _only_forwarded_headers(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        """Defender only forwards headers whose names start with ``X-``."""
        if v is None:
            return v
        rejected = [name for name in v if not name.lower().startswith("x-")]
        if rejected:
            raise ValueError(f"unexpected non X- headers: {', '.join(sorted(rejected))}")
        return v

    @model_validator(mode="after")
    def _webhook_only_fields(self) -> AutotaskRequestData:
        """Query parameters and headers come with webhook requests only."""
        if self.query_parameters is None and self.headers is None:
            return self
        from defender_runtime.classify import classify_request_body

        kind = classify_request_body(self.body)
        if kind is not RequestKind.WEBHOOK:
            raise ValueError(f"queryParameters/headers are not sent with a {kind.value} body")
        return self


class AutotaskEvent(_Record):
    """Event information injected by Defender when invoking an Autotask."""

    autotask_id: str = Field(alias="autotaskId")
    autotask_name: str = Field(alias="autotaskName")
    autotask_run_id: str = Field(alias="autotaskRunId")
    previous_run: PreviousAutotaskRunInfo | None = Field(None, alias="previousRun")
    request: AutotaskRequestData | None = None
    secrets: dict[str, str] | None = Field(None, repr=False)
    relayer_arn: str | None = Field(None, alias="relayerARN")
    kvstore_arn: str | None = Field(None, alias="kvstoreARN")
    credentials: str | None = Field(None, repr=False)

    @property
    def request_kind(self) -> RequestKind | None:
        """How the request body should be read, or ``None`` for scheduled runs."""
        if self.request is None:
            return None
        from defender_runtime.classify import classify_request_body

        return classify_request_body(self.request.body)


# ============================================================
#  Deployments
# ============================================================


class Network(str, Enum):
    """Networks supported by the deployment API."""

    MAINNET = "mainnet"
    SEPOLIA = "sepolia"
    GOERLI = "goerli"
    XDAI = "xdai"
    SOKOL = "sokol"
    FUSE = "fuse"
    BSC = "bsc"
    BSCTEST = "bsctest"
    FANTOM = "fantom"
    FANTOMTEST = "fantomtest"
    MOONBASE = "moonbase"
    MOONRIVER = "moonriver"
    MOONBEAM = "moonbeam"
    MATIC = "matic"
    MUMBAI = "mumbai"
    AVALANCHE = "avalanche"
    FUJI = "fuji"
    OPTIMISM = "optimism"
    OPTIMISM_GOERLI = "optimism-goerli"
    ARBITRUM = "arbitrum"
    ARBITRUM_NOVA = "arbitrum-nova"
    ARBITRUM_GOERLI = "arbitrum-goerli"
    CELO = "celo"
    ALFAJORES = "alfajores"
    HARMONY_S0 = "harmony-s0"
    HARMONY_TEST_S0 = "harmony-test-s0"
    AURORA = "aurora"
    AURORATEST = "auroratest"
    ZKSYNC = "zksync"
    ZKSYNC_GOERLI = "zksync-goerli"
    BASE = "base"
    BASE_GOERLI = "base-goerli"
    LINEA = "linea"
    LINEA_GOERLI = "linea-goerli"

    @classmethod
    def parse(cls, value: str) -> Network:
        """Strict lookup for outgoing requests."""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedNetwork(f"Unsupported network: {value!r}") from None

    @classmethod
    def resolve(cls, value: str) -> Network | None:
        """Lenient lookup for platform responses; ``None`` for networks added after this release."""
        try:
            return cls(value)
        except ValueError:
            return None


class SourceCodeLicense(str, Enum):
    """License identifiers accepted for source code verification."""

    NONE = "None"
    UNLICENSE = "Unlicense"
    MIT = "MIT"
    GPL_2 = "GNU GPLv2"
    GPL_3 = "GNU GPLv3"
    LGPL_2_1 = "GNU LGPLv2.1"
    LGPL_3 = "GNU LGPLv3"
    BSD_2_CLAUSE = "BSD-2-Clause"
    BSD_3_CLAUSE = "BSD-3-Clause"
    MPL_2_0 = "MPL-2.0"
    OSL_3_0 = "OSL-3.0"
    APACHE_2_0 = "Apache-2.0"
    AGPL_3 = "GNU AGPLv3"
    BSL_1_1 = "BSL 1.1"

    @classmethod
    def parse(cls, value: str) -> SourceCodeLicense:
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedLicense(f"Unsupported license type: {value!r}") from None


class DeployContractRequest(_Record):
    """Request to deploy (and optionally verify) a contract."""

    contract_name: str = Field(alias="contractName")
    contract_path: str = Field(alias="contractPath")
    network: NetworkId
    verify_source_code: StrictBool = Field(alias="verifySourceCode")
    artifact_payload: str | None = Field(None, alias="artifactPayload")
    artifact_uri: str | None = Field(None, alias="artifactUri")
    value: str | None = None
    salt: str | None = None
    license_type: str | None = Field(None, alias="licenseType")
    libraries: dict[str, str] | None = None
    constructor_inputs: list[str] | None = Field(None, alias="constructorInputs")

    def ensure_supported(self) -> None:
        """Raise if the network or license is outside the platform's fixed sets."""
        Network.parse(self.network)
        if self.license_type is not None:
            SourceCodeLicense.parse(self.license_type)


class DeploymentResponse(_Record):
    """A deployment as reported by the platform."""

    deployment_id: str = Field(alias="deploymentId")
    created_at: str = Field(alias="createdAt")
    contract_name: str | None = Field(None, alias="contractName")
    network: NetworkId
    relayer_id: str = Field(alias="relayerId")
    address: Address
    status: str
    transaction_id: str = Field(alias="transactionId")
    tx_hash: Hash = Field(alias="txHash")
    abi: str
    bytecode: str
    value: str
    salt: str
    constructor_inputs: list[str] | None = Field(None, alias="constructorInputs")

    @property
    def known_network(self) -> Network | None:
        return Network.resolve(self.network)


class DeploymentConfigCreateRequest(_Record):
    """Request to bind a relayer as the deployer for its network."""

    relayer_id: str = Field(alias="relayerId")


class DeploymentConfigResponse(_Record):
    deployment_config_id: str = Field(alias="deploymentConfigId")
    relayer_id: str = Field(alias="relayerId")
    network: NetworkId
    created_at: str = Field(alias="createdAt")

    @property
    def known_network(self) -> Network | None:
        return Network.resolve(self.network)


class CreateBlockExplorerApiKeyRequest(_Record):
    """Request to register a block explorer API key used for verification."""

    key: str = Field(repr=False)
    network: NetworkId

    def ensure_supported(self) -> None:
        Network.parse(self.network)


class UpdateBlockExplorerApiKeyRequest(_Record):
    key: str = Field(repr=False)


class BlockExplorerApiKeyResponse(_Record):
    block_explorer_api_key_id: str = Field(alias="blockExplorerApiKeyId")
    created_at: str = Field(alias="createdAt")
    key: str = Field(repr=False)
    network: NetworkId

    @property
    def known_network(self) -> Network | None:
        return Network.resolve(self.network)


class RemoveResponse(_Record):
    """Confirmation body of a delete; a 204 carries none and maps to ``None``."""

    message: str


# ============================================================
#  Configuration
# ============================================================


class PlatformConfig(BaseModel):
    """Endpoints for the deployment API and its identity pool."""

    pool_id: str = "us-west-2_94f3puJWv"
    pool_client_id: str = "40e58hbc7pktmnp9i26hh5nsav"
    api_url: str = "https://defender-api.openzeppelin.com/deployment/"

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PlatformConfig:
        """Build a config, letting ``PLATFORM_DEPLOYMENT_*`` variables override the defaults."""
        env = os.environ if environ is None else environ
        overrides = {
            field: env[var]
            for field, var in (
                ("pool_id", "PLATFORM_DEPLOYMENT_POOL_ID"),
                ("pool_client_id", "PLATFORM_DEPLOYMENT_POOL_CLIENT_ID"),
                ("api_url", "PLATFORM_DEPLOYMENT_API_URL"),
            )
            if env.get(var)
        }
        return cls(**overrides)
