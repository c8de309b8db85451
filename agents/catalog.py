"""
DeFiSeek - Agent Catalogue

Wires the concrete agents into a registry for one application context.
"""

from __future__ import annotations

from defiseek.config import Settings
from defiseek.llm import LLMFactory
from defiseek.logging import get_agent_logger
from defiseek.unleash import UnleashClient

from agents.chains import ChainCache, SupportedChainsAgent
from agents.nft import (
    MarketAnalyticsAgent,
    MarketplaceMetadataAgent,
    NFTCategoryAgent,
    NFTMetadataAgent,
)
from agents.registry import AgentRegistry
from agents.risk import MockWalletRiskAgent, WalletRiskAgent
from agents.wallet import ERC20TokenAgent, WalletMetricsAgent, WalletScoreAgent
from agents.wallet_analysis import WalletAnalysisAgent

logger = get_agent_logger()


def build_chain_cache(client: UnleashClient, settings: Settings) -> ChainCache:
    return ChainCache(
        SupportedChainsAgent(client),
        ttl_seconds=settings.unleash.chain_cache_ttl_seconds,
    )


def build_default_registry(
    client: UnleashClient,
    chain_cache: ChainCache,
    settings: Settings,
    llm_factory: LLMFactory,
) -> AgentRegistry:
    """
    Register every production agent.

    The deterministic wallet-risk agent replaces the production one only
    when ``UNLEASHNFTS_MOCK_WALLET_RISK`` is enabled.
    """
    registry = AgentRegistry()

    wallet_score = WalletScoreAgent(client)
    wallet_metrics = WalletMetricsAgent(client)
    erc20_tokens = ERC20TokenAgent(client)

    registry.register(chain_cache.agent)
    registry.register(wallet_score)
    registry.register(wallet_metrics)
    registry.register(erc20_tokens)

    if settings.unleash.mock_wallet_risk:
        logger.warning("mock_wallet_risk_enabled")
        registry.register(MockWalletRiskAgent())
    else:
        registry.register(WalletRiskAgent(client))

    registry.register(MarketAnalyticsAgent(client, chain_cache))
    registry.register(NFTCategoryAgent(client, chain_cache))
    registry.register(NFTMetadataAgent(client, chain_cache))
    registry.register(MarketplaceMetadataAgent(client))

    registry.register(WalletAnalysisAgent(
        [wallet_score, wallet_metrics, erc20_tokens],
        llm_factory,
        analysis_temperature=settings.llm.synthesis_temperature,
    ))

    logger.info("agent_registry_built", agents=registry.ids())
    return registry
