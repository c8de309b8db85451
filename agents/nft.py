"""
DeFiSeek - NFT Agents

UnleashNFTs NFT market endpoints: market-insight trends, collection
categories, collection metadata and marketplace metadata.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from defiseek.models import (
    MarketAnalytics,
    MarketplaceMetadataPage,
    NFTCategoryPage,
    NFTCollectionMetadataPage,
)
from defiseek.unleash import UnleashClient

from agents.base import (
    DEFAULT_CHAIN,
    WALLET_ADDRESS_RE,
    UnleashAgent,
    extract_time_range,
)
from agents.chains import ChainCache


# =============================================================================
# Inputs
# =============================================================================

class ChainInput(BaseModel):
    blockchain: str = Field(
        default=DEFAULT_CHAIN,
        description="Blockchain to analyze (e.g. ethereum, polygon, base)",
    )
    time_range: str = Field(default="all", description="Time range: 24h, 7d, 30d, 90d or all")

    @field_validator("blockchain", "time_range")
    @classmethod
    def normalize(cls, v: str) -> str:
        return v.lower().strip()


class MarketAnalyticsInput(ChainInput):
    time_range: str = Field(default="24h", description="Time range: 24h, 7d, 30d, 90d or all")


class NFTCategoryInput(ChainInput):
    sort_by: str = Field(default="volume", description="Metric to sort categories by")
    sort_order: Literal["asc", "desc"] = "desc"
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=30, ge=1, le=100)


class NFTMetadataInput(ChainInput):
    sort_order: Literal["asc", "desc"] = "desc"
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=30, ge=1, le=100)
    contract_address: str | None = Field(default=None, description="Collection contract address")


class MarketplaceMetadataInput(BaseModel):
    sort_order: Literal["asc", "desc"] = "desc"
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=30, ge=1, le=100)


# =============================================================================
# Agents
# =============================================================================

class ChainScopedAgent(UnleashAgent):
    """NFT agent whose input names a blockchain and a time range."""

    default_time_range = "all"

    def __init__(self, client: UnleashClient, chain_cache: ChainCache | None = None) -> None:
        super().__init__(client)
        self.chain_cache = chain_cache

    async def chain_from_query(self, query: str) -> str:
        if self.chain_cache is None:
            return DEFAULT_CHAIN
        chain = await self.chain_cache.chain_in_text(query)
        return chain.slug if chain else DEFAULT_CHAIN

    async def input_from_query(self, query: str):
        return self.input_model(
            blockchain=await self.chain_from_query(query),
            time_range=extract_time_range(query, self.default_time_range),
        )


class MarketAnalyticsAgent(ChainScopedAgent):
    id = "marketAnalyticsAgent"
    description = "Fetches NFT market trends: volume, floor price, buyers, sellers and sales"
    path = "nft/market-insights/analytics"
    input_model = MarketAnalyticsInput
    output_model = MarketAnalytics
    ui_component = "NFTMarketAnalyticsTool"
    default_time_range = "24h"

    async def run(self, params: MarketAnalyticsInput) -> dict:
        return await self.fetch_page(
            {"blockchain": params.blockchain, "time_range": params.time_range},
        )


class NFTCategoryAgent(ChainScopedAgent):
    id = "nftCategoryAgent"
    description = "Fetches NFT collection categories with volume, sales, holders and transactions"
    path = "nft/collection/categories"
    input_model = NFTCategoryInput
    output_model = NFTCategoryPage
    ui_component = "NFTCategoryTool"

    async def run(self, params: NFTCategoryInput) -> dict:
        return await self.fetch_page(params.model_dump())


class NFTMetadataAgent(ChainScopedAgent):
    id = "nftMetadataAgent"
    description = "Fetches NFT collection metadata such as contract, category and social links"
    path = "nft/collection/metadata"
    input_model = NFTMetadataInput
    output_model = NFTCollectionMetadataPage
    ui_component = "NFTMetadataTool"

    async def input_from_query(self, query: str) -> NFTMetadataInput:
        params = await super().input_from_query(query)
        match = WALLET_ADDRESS_RE.search(query)
        if match:
            params.contract_address = match.group(0)
        return params

    async def run(self, params: NFTMetadataInput) -> dict:
        # contract_address is dropped by the client when None
        return await self.fetch_page(params.model_dump())


class MarketplaceMetadataAgent(UnleashAgent[MarketplaceMetadataInput, MarketplaceMetadataPage]):
    id = "marketplaceMetadataAgent"
    description = "Fetches metadata for NFT marketplaces"
    path = "nft/marketplace/metadata"
    input_model = MarketplaceMetadataInput
    output_model = MarketplaceMetadataPage

    async def run(self, params: MarketplaceMetadataInput) -> dict:
        return await self.fetch_page(params.model_dump())
