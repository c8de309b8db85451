"""
DeFiSeek - Supported Chains

The supported-chains agent and the time-bounded cache in front of it.
"""

from __future__ import annotations

import re
import time
from typing import Callable

from defiseek.errors import DeFiSeekError
from defiseek.logging import get_logger
from defiseek.models import Blockchain

from agents.base import NoInput, UnleashAgent

logger = get_logger(__name__, component="chains")

DEFAULT_TTL_SECONDS = 300.0


class SupportedChainsAgent(UnleashAgent[NoInput, list[Blockchain]]):
    id = "supportedChainsAgent"
    description = "Fetches the list of blockchains supported by the UnleashNFTs API"
    path = "blockchains"
    output_model = list[Blockchain]

    async def run(self, params: NoInput) -> list[dict]:
        return await self.client.get_data(
            self.path,
            {"offset": 0, "limit": 30},
            agent_id=self.id,
        )


class ChainCache:
    """
    In-memory cache of supported chains.

    Refreshes when older than the TTL. A failed refresh serves the stale
    list if one was ever fetched. Concurrent refreshes are not coordinated;
    the last writer wins.
    """

    def __init__(
        self,
        agent: SupportedChainsAgent,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.agent = agent
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._chains: list[Blockchain] | None = None
        self._fetched_at = 0.0

    @property
    def is_fresh(self) -> bool:
        return self._chains is not None and (self._clock() - self._fetched_at) < self.ttl_seconds

    async def get_supported_chains(self) -> list[Blockchain]:
        """
        Cached chain list.

        Raises:
            DeFiSeekError: Refresh failed and nothing was ever cached
        """
        if self.is_fresh:
            return self._chains

        now = self._clock()
        try:
            chains = await self.agent.execute(NoInput())
        except DeFiSeekError as e:
            if self._chains is not None:
                logger.warning("chain_cache_stale", error=e.message, cached=len(self._chains))
                return self._chains
            logger.error("chain_cache_refresh_failed", error=e.message)
            raise

        self._chains = chains
        self._fetched_at = now
        logger.info("chain_cache_refreshed", chains=len(chains))
        return chains

    async def find_chain(self, identifier: str) -> Blockchain | None:
        """Match by slug or name (case-insensitive) or exact id."""
        try:
            chains = await self.get_supported_chains()
        except DeFiSeekError:
            return None
        normalized = identifier.lower().strip()
        for chain in chains:
            if (
                chain.slug.lower() == normalized
                or chain.name.lower() == normalized
                or chain.id == identifier
            ):
                return chain
        return None

    async def is_chain_supported(self, identifier: str) -> bool:
        return await self.find_chain(identifier) is not None

    async def get_chain_suggestions(self, partial: str) -> list[Blockchain]:
        try:
            chains = await self.get_supported_chains()
        except DeFiSeekError:
            return []
        normalized = partial.lower().strip()
        if not normalized:
            return chains[:5]
        return [
            c for c in chains
            if normalized in c.name.lower() or normalized in c.slug.lower()
        ]

    async def normalize_chain_identifier(self, identifier: str) -> str | None:
        chain = await self.find_chain(identifier)
        return chain.slug if chain else None

    async def chain_in_text(self, text: str) -> Blockchain | None:
        """First supported chain whose slug or name appears as a word in the text."""
        try:
            chains = await self.get_supported_chains()
        except DeFiSeekError:
            return None
        lowered = text.lower()
        best: tuple[int, Blockchain] | None = None
        for chain in chains:
            for term in {chain.slug.lower(), chain.name.lower()}:
                match = re.search(rf"\b{re.escape(term)}\b", lowered)
                if match and (best is None or match.start() < best[0]):
                    best = (match.start(), chain)
        return best[1] if best else None

    def clear(self) -> None:
        self._chains = None
        self._fetched_at = 0.0
