"""
DeFiSeek - Agent Tools

LangChain tools exposed to the chat model for direct tool calling. Each
tool runs one agent (or the AI router) and returns a JSON-serialisable
dict with ``success`` and a user-oriented ``message``. Failures never
carry upstream bodies or agent identifiers.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field, ValidationError

from defiseek.errors import DeFiSeekError
from defiseek.logging import get_logger

from agents.base import NoInput, WalletInput
from agents.chains import ChainCache
from agents.nft import (
    MarketAnalyticsInput,
    MarketplaceMetadataInput,
    NFTCategoryInput,
    NFTMetadataInput,
)
from agents.orchestrator import AIRouterOrchestrator
from agents.registry import AgentRegistry

logger = get_logger(__name__, component="tools")

FAILURE_MESSAGES = {
    "missing_credential": "This data source isn't configured right now, so I can't retrieve that information.",
    "input_invalid": "I couldn't find valid input in the request. Please check the address or parameters and try again.",
    "agent_not_found": "That analysis isn't available right now.",
}
DEFAULT_FAILURE_MESSAGE = (
    "I couldn't complete this analysis right now. The data might be unavailable "
    "or the service may be down. Please try again in a few minutes."
)


def failure_result(kind: str, **extra: Any) -> dict[str, Any]:
    return {
        "success": False,
        "errorType": kind,
        "message": FAILURE_MESSAGES.get(kind, DEFAULT_FAILURE_MESSAGE),
        **extra,
    }


class RouterQueryInput(BaseModel):
    query: str = Field(description="The user's blockchain query")


class ValidateChainInput(BaseModel):
    chainIdentifier: str = Field(description='Chain name or slug, e.g. "polygon", "arbitrum"')


ToolFn = Callable[..., Awaitable[dict[str, Any]]]


def _guarded(name: str, fn: ToolFn) -> ToolFn:
    async def wrapper(**kwargs: Any) -> dict[str, Any]:
        try:
            return await fn(**kwargs)
        except DeFiSeekError as e:
            logger.warning("tool_failed", tool=name, kind=e.kind, error=e.message)
            return failure_result(e.kind)
    return wrapper


def _latest(values: list[float] | None) -> float | None:
    return values[-1] if values else None


def build_tools(
    registry: AgentRegistry,
    chain_cache: ChainCache,
    orchestrator: AIRouterOrchestrator,
) -> list[BaseTool]:
    """Build the chat model's tool set over one application context."""

    async def execute(agent_id: str, args: dict[str, Any]) -> Any:
        return await registry.execute_by_id(agent_id, args)

    async def ai_router(**kwargs: Any) -> dict[str, Any]:
        result = await orchestrator.run(kwargs["query"])
        if not result.success:
            return {"success": False, "message": result.fallback_response}
        return {
            "success": True,
            "comprehensiveResponse": result.comprehensive_response,
            "routingDecision": result.routing_decision.model_dump(mode="json", by_alias=True),
            "agentsExecuted": result.total_agents_executed,
            "executionOrder": result.execution_order,
            "uiComponents": _dump_ui(result.ui_components) or None,
        }

    async def check_supported_chains(**kwargs: Any) -> dict[str, Any]:
        chains = await chain_cache.get_supported_chains()
        return {
            "success": True,
            "supportedChains": [c.model_dump() for c in chains],
            "count": len(chains),
            "message": f"Found {len(chains)} supported blockchain networks",
        }

    async def validate_chain(**kwargs: Any) -> dict[str, Any]:
        identifier = kwargs["chainIdentifier"]
        chain = await chain_cache.find_chain(identifier)
        if chain is None:
            suggestions = await chain_cache.get_chain_suggestions(identifier)
            return {
                "success": True,
                "chainIdentifier": identifier,
                "isSupported": False,
                "chainInfo": None,
                "suggestions": [c.model_dump() for c in suggestions],
                "message": f"❌ {identifier} is not supported",
            }
        return {
            "success": True,
            "chainIdentifier": identifier,
            "isSupported": True,
            "chainInfo": chain.model_dump(),
            "message": f"✅ {chain.name} is supported",
        }

    async def check_wallet_score(**kwargs: Any) -> dict[str, Any]:
        score = await execute("walletScoreAgent", kwargs)
        risk_level = "Low" if score.wallet_score >= 80 else "Medium" if score.wallet_score >= 50 else "High"
        flags = []
        if score.illicit and score.illicit.lower() != "none":
            flags.append("⚠️ Illicit Activity Detected")
        if score.classification_type != "normal":
            flags.append(f"🔍 Type: {score.classification_type}")
        return {
            "success": True,
            "walletAddress": score.wallet_address,
            "walletScore": score.wallet_score,
            "riskLevel": risk_level,
            "classification": score.classification,
            "classificationType": score.classification_type,
            "ageScore": score.wallet_age_score,
            "flags": flags,
            "data": score.model_dump(),
            "message": (
                f"Wallet {score.wallet_address} has a score of {score.wallet_score} "
                f"({risk_level} Risk), classified as {score.classification_type}."
            ),
        }

    async def check_wallet_risk(**kwargs: Any) -> dict[str, Any]:
        risk = await execute("walletRiskAgent", kwargs)
        return {
            "success": True,
            **risk.model_dump(mode="json", by_alias=True),
            "message": risk.recommendations[0] if risk.recommendations else f"Risk level {risk.risk_level.value}",
        }

    async def nft_market_analytics(**kwargs: Any) -> dict[str, Any]:
        page = await execute("marketAnalyticsAgent", kwargs)
        entry = page.data[0]
        return {
            "success": True,
            "blockchain": entry.blockchain,
            "insights": {
                "timeRange": kwargs.get("time_range", "24h"),
                "priceFloor": entry.latest("price_floor_trend"),
                "priceCeiling": entry.latest("price_ceiling_trend"),
                "volume": _first_set(entry.latest("volume_trend"), entry.volume),
                "avgPrice": entry.latest("avg_price_trend"),
                "marketCap": entry.latest("market_cap_trend"),
                "sales": _first_set(entry.latest("sales_count_trend"), entry.sales),
                "buyers": entry.latest("unique_buyers_trend"),
                "sellers": entry.latest("unique_sellers_trend"),
                "holders": entry.latest("holders_trend"),
            },
            "message": f"NFT market insights for {entry.blockchain}",
        }

    async def nft_category(**kwargs: Any) -> dict[str, Any]:
        page = await execute("nftCategoryAgent", kwargs)
        return {
            "success": True,
            "categories": [c.model_dump() for c in page.data],
            "count": len(page.data),
            "message": f"Found {len(page.data)} NFT collection categories",
        }

    async def nft_metadata(**kwargs: Any) -> dict[str, Any]:
        page = await execute("nftMetadataAgent", kwargs)
        return {
            "success": True,
            "collections": [c.model_dump() for c in page.data],
            "count": len(page.data),
            "message": f"Found metadata for {len(page.data)} NFT collections",
        }

    async def marketplace_metadata(**kwargs: Any) -> dict[str, Any]:
        page = await execute("marketplaceMetadataAgent", kwargs)
        return {
            "success": True,
            "marketplaces": [m.model_dump() for m in page.data],
            "count": len(page.data),
            "message": f"Found {len(page.data)} NFT marketplaces",
        }

    specs: list[tuple[str, str, type[BaseModel], ToolFn]] = [
        (
            "aiRouter",
            "Routes complex blockchain/DeFi queries to specialized analyses and returns one combined answer",
            RouterQueryInput,
            ai_router,
        ),
        (
            "checkSupportedChains",
            'Get a list of all supported blockchain networks. ONLY use this when users ask "which blockchains do you support?" or similar.',
            NoInput,
            check_supported_chains,
        ),
        (
            "validateChain",
            "Check if a specific blockchain network is supported for analysis.",
            ValidateChainInput,
            validate_chain,
        ),
        (
            "checkWalletScore",
            "Retrieve a wallet's reputation overview: classification, anomalous pattern, risk interaction, wallet age and interaction scores.",
            WalletInput,
            check_wallet_score,
        ),
        (
            "checkWalletRisk",
            "Assess whether a wallet is safe to interact with; returns a risk level, flags and recommendations.",
            WalletInput,
            check_wallet_risk,
        ),
        (
            "nftMarketAnalytics",
            "Fetch recent NFT market trends like volume, floor price, buyers/sellers and sales count on a blockchain.",
            MarketAnalyticsInput,
            nft_market_analytics,
        ),
        (
            "nftCategory",
            "Fetch NFT collection categories with volume, sales, holders and transaction metrics.",
            NFTCategoryInput,
            nft_category,
        ),
        (
            "nftMetadata",
            "Fetch NFT collection metadata: contract details, category, marketplaces and social links.",
            NFTMetadataInput,
            nft_metadata,
        ),
        (
            "marketplaceMetadata",
            "Fetch metadata about NFT marketplaces.",
            MarketplaceMetadataInput,
            marketplace_metadata,
        ),
    ]

    return [
        StructuredTool.from_function(
            coroutine=_guarded(name, fn),
            name=name,
            description=description,
            args_schema=schema,
        )
        for name, description, schema, fn in specs
    ]


def _first_set(*values: float | None) -> float | None:
    return next((v for v in values if v is not None), None)


def _dump_ui(ui: dict[str, Any]) -> dict[str, Any]:
    dumped: dict[str, Any] = {}
    for key, value in ui.items():
        if isinstance(value, BaseModel):
            dumped[key] = value.model_dump(mode="json", by_alias=True)
        else:
            dumped[key] = _dump_ui(value)
    return dumped


class ToolAdapter:
    """Maps model-issued tool calls onto tools and their results onto dicts."""

    def __init__(self, tools: list[BaseTool]) -> None:
        self.tools = {tool.name: tool for tool in tools}

    @property
    def names(self) -> list[str]:
        return list(self.tools)

    async def execute(self, call: dict[str, Any]) -> dict[str, Any]:
        """
        Run one tool call.

        Args:
            call: ``{"name", "args", "id"}`` as produced by LangChain tool calling

        Returns:
            Tool result dict; unknown tools and invalid arguments yield ``success: false``
        """
        name = call.get("name", "")
        tool = self.tools.get(name)
        if tool is None:
            logger.warning("unknown_tool_called", tool=name, call_id=call.get("id"))
            return {"success": False, "errorType": "unknown_tool", "message": f"Tool '{name}' is not available"}

        try:
            return await tool.ainvoke(call.get("args") or {})
        except ValidationError as e:
            logger.warning("tool_args_invalid", tool=name, errors=e.error_count())
            return failure_result("input_invalid")
        except Exception as e:
            logger.exception("tool_crashed", tool=name, error=str(e))
            return failure_result("internal_error")
