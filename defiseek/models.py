"""
DeFiSeek - Data Models

Pydantic models for routing, agent outputs, UI descriptors and the chat API.
Upstream payloads keep the UnleashNFTs snake_case field names; models that
travel to the client use camelCase aliases.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QueryType(str, Enum):
    """Routing categories a user query can fall into."""

    RISK_ANALYSIS = "risk_analysis"
    MARKET_ANALYSIS = "market_analysis"
    WALLET_ANALYSIS = "wallet_analysis"
    PROTOCOL_ANALYSIS = "protocol_analysis"
    NFT_ANALYSIS = "nft_analysis"
    GENERAL_INFO = "general_info"


class Priority(str, Enum):
    """Routing priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    """Wallet risk classification."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class VoteType(str, Enum):
    UP = "up"
    DOWN = "down"


class CamelModel(BaseModel):
    """Base for models exchanged with the client in camelCase."""

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Routing & Coordination
# =============================================================================

class RoutingDecision(CamelModel):
    """
    Structured classification produced by the router for one query.

    The language model's JSON is validated against this model before any
    field is trusted; invalid output is replaced by ``fallback()``.
    """

    query_type: QueryType = Field(default=QueryType.GENERAL_INFO, alias="queryType")
    required_agents: list[str] = Field(default_factory=list, alias="requiredAgents")
    priority: Priority = Field(default=Priority.MEDIUM)
    confidence: int = Field(default=70, ge=0, le=100)
    reasoning: str = Field(default="")

    @field_validator("confidence", mode="before")
    @classmethod
    def round_confidence(cls, v: Any) -> Any:
        if isinstance(v, float):
            return round(v)
        return v

    @classmethod
    def fallback(cls) -> "RoutingDecision":
        """Default decision used whenever routing fails."""
        return cls(
            query_type=QueryType.GENERAL_INFO,
            required_agents=[],
            priority=Priority.MEDIUM,
            confidence=70,
            reasoning="fallback",
        )


class UIComponentProps(CamelModel):
    result: dict[str, Any]
    tool_call_id: str = Field(alias="toolCallId")
    args: dict[str, Any] = Field(default_factory=dict)


class UIComponent(CamelModel):
    """Named, renderable payload the client draws above the narrative."""

    component: str
    props: UIComponentProps


class AgentFailure(BaseModel):
    """Structured failure recorded in place of an agent's output."""

    kind: str
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AgentOutcome(BaseModel):
    """Result of one agent execution within a coordinated request."""

    agent_id: str
    success: bool
    data: Any = None
    error: AgentFailure | None = None
    ui_components: dict[str, UIComponent | dict[str, UIComponent]] = Field(default_factory=dict)
    latency_ms: float = 0.0


class CoordinationResult(BaseModel):
    """Synthesized answer plus the UI side-channel for one query."""

    text_answer: str
    ui_components: dict[str, UIComponent | dict[str, UIComponent]] = Field(default_factory=dict)
    executed_agent_ids: list[str] = Field(default_factory=list)
    agent_results: dict[str, AgentOutcome] = Field(default_factory=dict)


# =============================================================================
# Agent Outputs (UnleashNFTs)
# =============================================================================

class Pagination(BaseModel):
    has_next: bool = False
    limit: int = 0
    offset: int = 0
    total_items: int = 0


class Blockchain(BaseModel):
    """A blockchain network supported by the data provider."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str
    slug: str


class WalletScore(BaseModel):
    """Wallet reputation scores from /wallet/score."""

    wallet_address: str
    blockchain: str
    chain_id: int
    classification: str
    classification_type: str
    anomalous_pattern_score: float
    associated_token_score: float
    risk_interaction_score: float
    wallet_age_score: float
    smart_contract_interaction_score: float
    staking_governance_interaction_score: float
    centralized_interaction_score: float
    wallet_score: float
    volume_score: float
    frequency_score: float
    illicit: str | None = None


class WalletMetrics(BaseModel):
    """Balance, flow and activity metrics from /wallet/metrics."""

    wallet: str
    balance_eth: float | None = None
    balance_usd: float | None = None
    first_active_day: str | None = None
    last_active_day: str | None = None
    gas: float | None = None
    gas_fee: float | None = None
    gas_price: float | None = None
    illicit_volume: float | None = None
    mixer_volume: float | None = None
    sanction_volume: float | None = None
    in_txn: int | None = None
    out_txn: int | None = None
    total_txn: int | None = None
    inflow_addresses: int | None = None
    outflow_addresses: int | None = None
    inflow_amount_eth: float | None = None
    inflow_amount_usd: float | None = None
    outflow_amount_eth: float | None = None
    outflow_amount_usd: float | None = None
    token_cnt: int | None = None
    volume_eth: float | None = None
    volume_usd: float | None = None
    wallet_active_days: int | None = None
    wallet_age: int | None = None


class WalletToken(BaseModel):
    """ERC-20 holding from /wallet/tokens."""

    address: str
    blockchain: str
    token_address: str
    token_name: str
    token_symbol: str
    chain_id: int
    decimal: int
    quantity: float


class WalletRiskAnalysis(CamelModel):
    transaction_count: int = Field(alias="transactionCount")
    total_value: float = Field(alias="totalValue")
    suspicious_activity: bool = Field(alias="suspiciousActivity")
    known_scam_association: bool = Field(alias="knownScamAssociation")
    last_activity: str = Field(alias="lastActivity")


class WalletRisk(CamelModel):
    """Risk assessment for a single wallet address."""

    address: str
    risk_score: int = Field(alias="riskScore", ge=0, le=100)
    risk_level: RiskLevel = Field(alias="riskLevel")
    flags: list[str] = Field(default_factory=list)
    analysis: WalletRiskAnalysis
    recommendations: list[str] = Field(default_factory=list)


class MarketAnalyticsItem(BaseModel):
    """NFT market trends for one chain from /nft/market-insights/analytics."""

    blockchain: str
    chain_id: int
    block_dates: list[str] = Field(default_factory=list)

    price_ceiling_trend: list[float] | None = None
    price_floor_trend: list[float] | None = None
    avg_price_trend: list[float] | None = None
    market_cap_trend: list[float] | None = None
    holders_trend: list[float] | None = None
    unique_buyers_trend: list[float] | None = None
    unique_sellers_trend: list[float] | None = None
    sales_trend: list[float] | None = None
    sales_count_trend: list[float] | None = None
    transactions_trend: list[float] | None = None
    transfers_trend: list[float] | None = None
    volume_trend: list[float] | None = None

    sales: float | None = None
    sales_change: float | None = None
    transactions: float | None = None
    transactions_change: float | None = None
    transfers: float | None = None
    transfers_change: float | None = None
    volume: float | None = None
    volume_change: float | None = None
    updated_at: str | None = None

    def latest(self, trend: str) -> float | None:
        """Most recent value of a trend series, if present."""
        values = getattr(self, trend, None)
        return values[-1] if values else None


class MarketAnalytics(BaseModel):
    data: list[MarketAnalyticsItem]
    pagination: Pagination | None = None


class NFTCategory(BaseModel):
    blockchain: str
    category: str
    chain_id: int
    description: str = ""
    holders: float = 0
    sales: float = 0
    transactions: float = 0
    volume: float = 0


class NFTCategoryPage(BaseModel):
    data: list[NFTCategory]
    pagination: Pagination | None = None


class NFTCollectionMetadata(BaseModel):
    blockchain: str
    chain_id: int
    collection: str
    contract_address: str
    collection_id: int | None = None
    brand: str | None = None
    category: str | None = None
    description: str | None = None
    contract_created_date: str | None = None
    contract_type: str | None = None
    distinct_nft_count: int | None = None
    slug_name: str | None = None
    start_token_id: str | None = None
    end_token_id: str | None = None
    marketplaces: str | None = None
    close_colours: str | None = None
    image_url: str | None = None
    banner_image_url: str | None = None
    external_url: str | None = None
    discord_url: str | None = None
    instagram_url: str | None = None
    medium_url: str | None = None
    telegram_url: str | None = None
    top_contracts: list[str] = Field(default_factory=list)


class NFTCollectionMetadataPage(BaseModel):
    data: list[NFTCollectionMetadata]
    pagination: Pagination | None = None


class MarketplaceMetadata(BaseModel):
    marketplaces: str
    blockchain: str | None = None
    chain_id: int | None = None
    contract_address: str | None = None
    external_url: str | None = None
    image_url: str | None = None


class MarketplaceMetadataPage(BaseModel):
    data: list[MarketplaceMetadata]
    pagination: Pagination | None = None


class WalletAnalysis(CamelModel):
    """Composite wallet report assembled from several wallet agents."""

    query: str
    wallet_address: str = Field(alias="walletAddress")
    wallet_data: dict[str, Any] = Field(default_factory=dict, alias="walletData")
    failures: dict[str, AgentFailure] = Field(default_factory=dict)
    analysis: str
    data_sources: list[str] = Field(default_factory=list, alias="dataSources")
    suggestions: list[str] = Field(default_factory=list)
    confidence: int = Field(default=90, ge=0, le=100)
    ui_components: dict[str, UIComponent] = Field(default_factory=dict, alias="uiComponents")


# =============================================================================
# Chat API
# =============================================================================

class ModelSpec(BaseModel):
    """A selectable chat model."""

    id: str
    label: str
    api_identifier: str
    description: str


class Attachment(CamelModel):
    url: str
    name: str | None = None
    content_type: str | None = Field(default=None, alias="contentType")


class ToolInvocation(CamelModel):
    state: Literal["partial-call", "call", "result"] = "result"
    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class ClientMessage(CamelModel):
    """A chat message as sent by the browser client."""

    id: str | None = None
    role: Literal["system", "user", "assistant", "tool", "data"]
    content: str = ""
    tool_invocations: list[ToolInvocation] | None = Field(default=None, alias="toolInvocations")
    experimental_attachments: list[Attachment] | None = None


class ChatRequest(CamelModel):
    id: str
    messages: list[ClientMessage]
    model_id: str = Field(alias="modelId")


class VoteRequest(CamelModel):
    chat_id: str = Field(alias="chatId")
    message_id: str = Field(alias="messageId")
    type: VoteType


class Chat(CamelModel):
    id: str
    user_id: str = Field(alias="userId")
    title: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="createdAt",
    )


class StoredMessage(CamelModel):
    id: str
    chat_id: str = Field(alias="chatId")
    role: str
    content: Any
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="createdAt",
    )


class Vote(CamelModel):
    chat_id: str = Field(alias="chatId")
    message_id: str = Field(alias="messageId")
    is_upvoted: bool = Field(alias="isUpvoted")
