"""
Shared payloads for the runtime helper tests.

Shapes follow what Defender injects into Autotasks: camelCase keys,
quantities as strings, Forta alert fields in their mixed naming.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

import pytest


_RECEIPT: dict[str, Any] = {
    "transactionHash": "0xabc",
    "transactionIndex": "0x1",
    "contractAddress": None,
    "blockHash": "0xb10c",
    "blockNumber": "0x10d4f",
    "from": "0xF00",
    "to": "0x70",
    "cumulativeGasUsed": "0x5208",
    "gasUsed": "0x5208",
    "logs": [
        {
            "address": "0x70",
            "blockHash": "0xb10c",
            "blockNumber": "0x10d4f",
            "data": "0x00000000000000000000000000000000000000000000003635c9adc5dea00000",
            "logIndex": "0x0",
            "removed": False,
            "topics": ["0xddf252ad"],
            "transactionHash": "0xabc",
            "transactionIndex": "0x1",
        }
    ],
    "logsBloom": "0x00",
    "status": "0x1",
}

_BLOCK_EVENT: dict[str, Any] = {
    "type": "BLOCK",
    "hash": "0xabc",
    "timestamp": 1690000000,
    "blockNumber": "68943",
    "blockHash": "0xb10c",
    "transaction": _RECEIPT,
    "matchReasons": [
        {
            "type": "event",
            "signature": "Transfer(address,address,uint256)",
            "args": ["0xF00", "0x70", "1000000000000000000000"],
            "address": "0x70",
            "params": {"from": "0xF00", "to": "0x70", "value": "1000000000000000000000"},
        }
    ],
    "matchedAddresses": ["0x70"],
    "sentinel": {
        "id": "sentinel-1",
        "name": "Large transfers",
        "network": "mainnet",
        "addresses": ["0x70"],
        "confirmBlocks": 12,
        "abi": [{"type": "event", "name": "Transfer", "inputs": []}],
        "chainId": 1,
    },
}

_TX_ALERT: dict[str, Any] = {
    "alertType": "TX",
    "addresses": ["0xA"],
    "createdAt": "2023-07-22T10:00:00.000Z",
    "severity": "HIGH",
    "alertId": "ATTACK-DETECTOR-1",
    "scanNodeCount": 1,
    "name": "Possible exploit",
    "description": "Suspicious funding followed by a contract call",
    "hash": "0xa1e7",
    "protocol": "ethereum",
    "findingType": "Exploit",
    "source": {
        "tx_hash": "0x1",
        "bot": {"id": "b1"},
        "block": {"chainId": 1, "hash": "0x2"},
    },
    "metadata": {"attacker": "0xBAD"},
}

_BLOCK_ALERT: dict[str, Any] = {
    "alertType": "BLOCK",
    "createdAt": "2023-07-22T10:00:00.000Z",
    "severity": "LOW",
    "alertId": "GAS-SPIKE",
    "scanNodeCount": 2,
    "name": "Gas spike",
    "description": "Base fee above threshold",
    "hash": "0xb1a7",
    "protocol": "ethereum",
    "findingType": "Info",
    "source": {
        "bot": {"id": "b2"},
        "block": {"chainId": 1, "hash": "0x3"},
    },
    "metadata": {},
}

_FORTA_EVENT: dict[str, Any] = {
    "type": "FORTA",
    "hash": "0xdef",
    "alert": _TX_ALERT,
    "matchReasons": [
        {"type": "alert-id", "value": "ATTACK-DETECTOR-1"},
        {"type": "severity", "value": "HIGH"},
    ],
    "sentinel": {
        "id": "sentinel-2",
        "name": "Attack detector",
        "addresses": [],
        "agents": ["b1"],
        "network": "mainnet",
        "chainId": 1,
    },
}


def _factory(template: dict[str, Any]) -> Callable[..., dict[str, Any]]:
    def build(**overrides: Any) -> dict[str, Any]:
        payload = copy.deepcopy(template)
        payload.update(copy.deepcopy(overrides))
        return payload

    return build


@pytest.fixture
def block_event() -> Callable[..., dict[str, Any]]:
    """Builds a BLOCK trigger event; keyword arguments replace top-level keys."""
    return _factory(_BLOCK_EVENT)


@pytest.fixture
def forta_event() -> Callable[..., dict[str, Any]]:
    """Builds a FORTA trigger event carrying a TX alert."""
    return _factory(_FORTA_EVENT)


@pytest.fixture
def tx_alert() -> Callable[..., dict[str, Any]]:
    return _factory(_TX_ALERT)


@pytest.fixture
def block_alert() -> Callable[..., dict[str, Any]]:
    return _factory(_BLOCK_ALERT)


@pytest.fixture
def envelope() -> Callable[..., dict[str, Any]]:
    """Builds an Autotask event envelope; pass ``body=`` to attach a request."""

    def build(body: Any = None, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "autotaskId": "0c5f6b42-4c71-4b5a-9c43-7d6f4b5e2a10",
            "autotaskName": "Transfer watcher",
            "autotaskRunId": "run-1",
            "relayerARN": "arn:aws:lambda:us-west-2:000000000000:function:relayer",
            "kvstoreARN": "arn:aws:lambda:us-west-2:000000000000:function:kvstore",
            "credentials": "{\"AccessKeyId\":\"AK\"}",
            "secrets": {"slackWebhook": "s3cr3t-hook"},
        }
        if body is not None:
            payload["request"] = {"body": copy.deepcopy(body)}
        payload.update(copy.deepcopy(overrides))
        return payload

    return build
