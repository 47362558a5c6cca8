"""
Defender deployment API client.

Direct HTTP client for the deployment service, using ``httpx`` for async
HTTP. Credential exchange against the identity pool is not handled here:
pass an access token obtained with the pool ids from :class:`PlatformConfig`.

Usage::

    from defender_runtime import PlatformClient, DeployContractRequest

    async with PlatformClient(api_key, access_token) as client:
        deployment = await client.deployments.deploy(
            DeployContractRequest(
                contract_name="Box",
                contract_path="contracts/Box.sol",
                network="sepolia",
                verify_source_code=True,
                artifact_payload=artifact_json,
                license_type="MIT",
            )
        )
        print(deployment.address)
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote as url_quote

import httpx

from defender_runtime.errors import UnexpectedResponse
from defender_runtime.types import (
    BlockExplorerApiKeyResponse,
    CreateBlockExplorerApiKeyRequest,
    DeployContractRequest,
    DeploymentConfigCreateRequest,
    DeploymentConfigResponse,
    DeploymentResponse,
    PlatformConfig,
    RemoveResponse,
    UpdateBlockExplorerApiKeyRequest,
)

logger = logging.getLogger(__name__)


class _HttpClient:
    """Thin wrapper around httpx for deployment API requests."""

    def __init__(self, api_url: str, api_key: str, access_token: str) -> None:
        self.base_url = api_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "X-Api-Key": api_key,
                "Authorization": f"Bearer {access_token}",
            },
            timeout=30.0,
        )

    async def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make an authenticated request to the deployment API.

        Transport errors from httpx propagate unchanged; nothing is retried.
        """
        response = await self._client.request(
            method=method,
            url=path,
            json=body,
            params=params,
        )

        # Don't use raise_for_status() directly; it would put the full
        # response body in the exception message.
        if response.status_code >= 400:
            try:
                err_data = response.json()
                err_msg = err_data.get("error", err_data.get("message", "Request failed"))
            except (ValueError, AttributeError):
                err_msg = "Request failed"
            raise httpx.HTTPStatusError(
                f"Deployment API request failed ({response.status_code}): {err_msg}",
                request=response.request,
                response=response,
            )

        if response.status_code == 204:
            return {}

        return response.json()

    async def post(self, path: str, body: dict[str, Any]) -> Any:
        return await self.request("POST", path, body)

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def list(self, path: str, query: dict[str, Any] | None = None) -> list[Any]:
        data = await self.request("GET", path, params=query)
        if not isinstance(data, list):
            raise UnexpectedResponse(
                f"Expected a list from GET {path}, got {type(data).__name__}"
            )
        return data

    async def close(self) -> None:
        await self._client.aclose()


# ============================================================
#  Sub-managers
# ============================================================


class _DeploymentManager:
    """Contract deployments."""

    def __init__(self, http: _HttpClient) -> None:
        self._http = http

    async def deploy(self, request: DeployContractRequest) -> DeploymentResponse:
        """Deploy a contract through the relayer configured for its network.

        Raises:
            UnsupportedNetwork: ``request.network`` is not a platform network.
            UnsupportedLicense: ``request.license_type`` is not an accepted license.
        """
        request.ensure_supported()
        data = await self._http.post("/deployments", request.to_wire())
        deployment = DeploymentResponse(**data)
        logger.info(
            "Deployment %s of %s submitted on %s",
            deployment.deployment_id,
            request.contract_name,
            deployment.network,
        )
        return deployment

    async def get(self, deployment_id: str) -> DeploymentResponse:
        data = await self._http.get(f"/deployments/{url_quote(deployment_id, safe='')}")
        return DeploymentResponse(**data)

    async def list(self) -> list[DeploymentResponse]:
        items = await self._http.list("/deployments")
        return [DeploymentResponse(**d) for d in items]


class _DeploymentConfigManager:
    """Which relayer deploys on which network."""

    def __init__(self, http: _HttpClient) -> None:
        self._http = http

    @staticmethod
    def _path(config_id: str) -> str:
        return f"/deployments/config/{url_quote(config_id, safe='')}"

    async def create(self, request: DeploymentConfigCreateRequest) -> DeploymentConfigResponse:
        data = await self._http.post("/deployments/config", request.to_wire())
        return DeploymentConfigResponse(**data)

    async def get(self, config_id: str) -> DeploymentConfigResponse:
        data = await self._http.get(self._path(config_id))
        return DeploymentConfigResponse(**data)

    async def list(self) -> list[DeploymentConfigResponse]:
        items = await self._http.list("/deployments/config")
        return [DeploymentConfigResponse(**c) for c in items]

    async def update(
        self, config_id: str, request: DeploymentConfigCreateRequest
    ) -> DeploymentConfigResponse:
        data = await self._http.request("PUT", self._path(config_id), request.to_wire())
        return DeploymentConfigResponse(**data)

    async def remove(self, config_id: str) -> RemoveResponse | None:
        data = await self._http.request("DELETE", self._path(config_id))
        return RemoveResponse(**data) if data else None


class _BlockExplorerApiKeyManager:
    """Block explorer API keys used for source verification."""

    def __init__(self, http: _HttpClient) -> None:
        self._http = http

    @staticmethod
    def _path(key_id: str) -> str:
        return f"/block-explorer-api-key/{url_quote(key_id, safe='')}"

    async def create(self, request: CreateBlockExplorerApiKeyRequest) -> BlockExplorerApiKeyResponse:
        """Register a key for a network.

        Raises:
            UnsupportedNetwork: ``request.network`` is not a platform network.
        """
        request.ensure_supported()
        data = await self._http.post("/block-explorer-api-key", request.to_wire())
        return BlockExplorerApiKeyResponse(**data)

    async def get(self, key_id: str) -> BlockExplorerApiKeyResponse:
        data = await self._http.get(self._path(key_id))
        return BlockExplorerApiKeyResponse(**data)

    async def list(self) -> list[BlockExplorerApiKeyResponse]:
        items = await self._http.list("/block-explorer-api-key")
        return [BlockExplorerApiKeyResponse(**k) for k in items]

    async def update(
        self, key_id: str, request: UpdateBlockExplorerApiKeyRequest
    ) -> BlockExplorerApiKeyResponse:
        data = await self._http.request("PUT", self._path(key_id), request.to_wire())
        return BlockExplorerApiKeyResponse(**data)

    async def remove(self, key_id: str) -> RemoveResponse | None:
        data = await self._http.request("DELETE", self._path(key_id))
        return RemoveResponse(**data) if data else None


# ============================================================
#  Main client
# ============================================================


class PlatformClient:
    """Client for the Defender deployment API.

    Args:
        api_key: Team API key, sent as ``X-Api-Key``.
        access_token: Token issued by the identity pool for that key.
        config: Endpoints; defaults to :meth:`PlatformConfig.from_env`.
    """

    def __init__(
        self,
        api_key: str,
        access_token: str,
        config: PlatformConfig | None = None,
    ) -> None:
        self.config = config or PlatformConfig.from_env()
        self._http = _HttpClient(self.config.api_url, api_key, access_token)

        self.deployments = _DeploymentManager(self._http)
        self.configs = _DeploymentConfigManager(self._http)
        self.block_explorer_api_keys = _BlockExplorerApiKeyManager(self._http)
        logger.debug("Deployment client targeting %s", self._http.base_url)

    @property
    def pool_id(self) -> str:
        return self.config.pool_id

    @property
    def pool_client_id(self) -> str:
        return self.config.pool_client_id

    @property
    def api_url(self) -> str:
        return self.config.api_url

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.close()

    async def __aenter__(self) -> PlatformClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
