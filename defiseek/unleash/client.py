"""
DeFiSeek - UnleashNFTs REST Client

Thin async wrapper over the bitsCrunch UnleashNFTs v2 API. Every call is a
single GET with the API key header; non-2xx responses are fatal for that
call and nothing is retried.
"""

from __future__ import annotations

from typing import Any

import httpx

from defiseek.config import UnleashConfig, settings
from defiseek.errors import (
    AgentDataUnavailable,
    AgentTransportError,
    MissingCredentialError,
)
from defiseek.logging import get_logger

logger = get_logger(__name__, component="unleash_client")

API_KEY_ENV_VAR = "UNLEASHNFTS_API_KEY"


class UnleashClient:
    """
    UnleashNFTs API client.

    Features:
    - Shared httpx.AsyncClient (connection pooling across agents)
    - Envelope validation: ``{"data": [...], "pagination": {...}}``
    - Typed failures attributed to the calling agent
    """

    def __init__(
        self,
        config: UnleashConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            config: UnleashNFTs configuration (defaults to global settings)
            http_client: Pre-built client; tests inject one with a MockTransport
        """
        self.config = config or settings.unleash
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.config.timeout_seconds)

    @property
    def headers(self) -> dict[str, str]:
        if not self.config.api_key:
            raise MissingCredentialError(API_KEY_ENV_VAR)
        return {
            "accept": "application/json",
            "x-api-key": self.config.api_key,
        }

    def url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        agent_id: str = "unleash",
    ) -> dict[str, Any]:
        """
        Fetch one endpoint and return the validated JSON envelope.

        Args:
            path: Endpoint path relative to the v2 base URL
            params: Query parameters (None values are dropped)
            agent_id: Agent the failure is attributed to

        Returns:
            Parsed body whose ``data`` field is a list

        Raises:
            MissingCredentialError: No API key configured
            AgentTransportError: Transport failure or non-2xx status
            AgentDataUnavailable: Body is not JSON or ``data`` is not a list
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}
        url = self.url(path)

        try:
            response = await self._http.get(url, params=query, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error("unleash_request_failed", agent_id=agent_id, path=path, error=str(e))
            raise AgentTransportError(
                agent_id,
                status=None,
                message=f"Could not reach the data provider: {type(e).__name__}",
            ) from e

        if not response.is_success:
            logger.warning(
                "unleash_non_2xx",
                agent_id=agent_id,
                path=path,
                status=response.status_code,
            )
            raise AgentTransportError(agent_id, status=response.status_code, body=response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise AgentDataUnavailable(agent_id, "Data provider returned a non-JSON body") from e

        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise AgentDataUnavailable(agent_id, "Data provider response has no data list")

        logger.debug("unleash_response", agent_id=agent_id, path=path, items=len(body["data"]))
        return body

    async def get_data(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        agent_id: str = "unleash",
    ) -> list[Any]:
        """Fetch an endpoint and return its non-empty ``data`` list."""
        body = await self.get(path, params, agent_id=agent_id)
        if not body["data"]:
            raise AgentDataUnavailable(agent_id, "Data provider returned no results")
        return body["data"]

    async def first_item(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        agent_id: str = "unleash",
    ) -> dict[str, Any]:
        """Fetch an endpoint and return ``data[0]``."""
        data = await self.get_data(path, params, agent_id=agent_id)
        return data[0]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
