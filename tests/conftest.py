"""Shared fixtures: settings, fake language models and a mocked UnleashNFTs API."""

import json
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult

WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
DEAD_WALLET = "0xdeadDEADdeadDEADdeadDEADdeadDEADdeadDEAD"
API_KEY = "test-api-key"
AUTH_HEADERS = {"Authorization": f"Bearer {API_KEY}", "X-User-Id": "user-1"}

CHAINS = [
    {"id": 1, "name": "Ethereum", "slug": "ethereum"},
    {"id": 137, "name": "Polygon", "slug": "polygon"},
    {"id": 8453, "name": "Base", "slug": "base"},
    {"id": 42161, "name": "Arbitrum", "slug": "arbitrum"},
    {"id": 56, "name": "BNB Chain", "slug": "bsc"},
    {"id": 10, "name": "Optimism", "slug": "optimism"},
]

WALLET_SCORE = {
    "wallet_address": WALLET,
    "blockchain": "ethereum",
    "chain_id": 1,
    "classification": "Legitimate",
    "classification_type": "normal",
    "anomalous_pattern_score": 10.0,
    "associated_token_score": 55.0,
    "risk_interaction_score": 5.0,
    "wallet_age_score": 80.0,
    "smart_contract_interaction_score": 60.0,
    "staking_governance_interaction_score": 20.0,
    "centralized_interaction_score": 40.0,
    "wallet_score": 85.0,
    "volume_score": 30.0,
    "frequency_score": 50.0,
    "illicit": "none",
}

WALLET_METRICS = {
    "wallet": WALLET,
    "balance_eth": 1.5,
    "balance_usd": 4500.0,
    "total_txn": 120,
    "in_txn": 70,
    "out_txn": 50,
    "wallet_age": 900,
}

MARKET_ANALYTICS = {
    "blockchain": "ethereum",
    "chain_id": 1,
    "block_dates": ["2024-01-01", "2024-01-02"],
    "volume_trend": [100.0, 250.0],
    "sales_count_trend": [10.0, 12.0],
    "price_floor_trend": [0.5, 0.6],
    "volume": 350.0,
}


def make_settings(**overrides: Any):
    """Settings with test keys; overrides are ``section__field=value`` or top-level fields."""
    from defiseek.config import APIConfig, LLMConfig, Settings, UnleashConfig

    sections: dict[str, dict[str, Any]] = {
        "unleash": {"api_key": "unleash-test-key"},
        "llm": {},
        "api": {"api_keys": [API_KEY]},
    }
    top_level: dict[str, Any] = {}
    for key, value in overrides.items():
        section, _, field = key.partition("__")
        if field:
            sections[section][field] = value
        else:
            top_level[key] = value

    return Settings(
        unleash=UnleashConfig(**sections["unleash"]),
        llm=LLMConfig(**sections["llm"]),
        api=APIConfig(**sections["api"]),
        **top_level,
    )


def mock_llm(*responses: str) -> MagicMock:
    """Chat model stand-in whose ``ainvoke`` returns the given texts in order."""
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=[AIMessage(content=r) for r in responses])
    return llm


def echo_llm() -> MagicMock:
    """Chat model stand-in that answers with the last prompt it was given."""
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=lambda messages: AIMessage(content=messages[-1].content))
    return llm


def failing_llm(error: Exception | None = None) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=error or RuntimeError("provider down"))
    return llm


class ScriptedChatModel(BaseChatModel):
    """
    Streaming chat model that replays scripted replies.

    Text is streamed word by word; tool calls arrive in a final chunk.
    ``bind_tools`` returns the model itself.
    """

    replies: list[AIMessage]
    calls: int = 0
    seen: list[Any] = []

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def bind_tools(self, tools, **kwargs):
        return self

    def _next_reply(self, messages) -> AIMessage:
        self.seen.append(list(messages))
        reply = self.replies[min(self.calls, len(self.replies) - 1)]
        self.calls += 1
        return reply

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        return ChatResult(generations=[ChatGeneration(message=self._next_reply(messages))])

    async def _astream(self, messages, stop=None, run_manager=None, **kwargs):
        reply = self._next_reply(messages)
        words = reply.content.split(" ") if reply.content else []
        for i, word in enumerate(words):
            yield ChatGenerationChunk(
                message=AIMessageChunk(content=word if i == 0 else f" {word}"),
            )
        if reply.tool_calls:
            yield ChatGenerationChunk(message=AIMessageChunk(
                content="",
                tool_call_chunks=[
                    {
                        "name": call["name"],
                        "args": json.dumps(call["args"]),
                        "id": call["id"],
                        "index": i,
                    }
                    for i, call in enumerate(reply.tool_calls)
                ],
            ))


def scripted_model(*replies: AIMessage | str) -> ScriptedChatModel:
    return ScriptedChatModel(
        replies=[r if isinstance(r, AIMessage) else AIMessage(content=r) for r in replies],
    )


def tool_call_reply(name: str, args: dict[str, Any], call_id: str = "call_1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


class FakeModels:
    """
    ``llm_for`` stand-in keyed on temperature.

    Models are looked up by the temperature the caller asks for, so the
    chat, title, router and synthesis models can be scripted independently.
    """

    def __init__(self, by_temperature: dict[float, Any] | None = None, missing: dict[str, str] | None = None):
        self.by_temperature = by_temperature or {}
        self.missing = missing or {}
        self.requests: list[tuple[str, float]] = []

    def __call__(self, api_identifier: str, temperature: float):
        from defiseek.errors import MissingCredentialError

        self.requests.append((api_identifier, temperature))
        for prefix, env_var in self.missing.items():
            if api_identifier.startswith(prefix):
                raise MissingCredentialError(env_var)
        if temperature not in self.by_temperature:
            return failing_llm()
        return self.by_temperature[temperature]


def unleash_transport(
    routes: dict[str, Any] | None = None,
    status: int = 200,
    calls: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """
    MockTransport answering ``{"data": [...]}`` per endpoint path suffix.

    A route value that is a callable receives the request and returns an
    ``httpx.Response``.
    """
    routes = {"blockchains": CHAINS, **(routes or {})}

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        path = request.url.path.split("/api/v2/", 1)[-1]
        route = routes.get(path)
        if callable(route):
            return route(request)
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        data = route if isinstance(route, list) else [route]
        return httpx.Response(status, json={"data": data, "pagination": {"has_next": False}})

    return httpx.MockTransport(handler)


def make_client(transport: httpx.MockTransport, api_key: str = "unleash-test-key"):
    from defiseek.config import UnleashConfig
    from defiseek.unleash import UnleashClient

    return UnleashClient(
        UnleashConfig(api_key=api_key),
        http_client=httpx.AsyncClient(transport=transport),
    )


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def build_test_context() -> Callable[..., Any]:
    """Factory for an AppContext over mocked upstream data and fake models."""

    def factory(models: FakeModels | None = None, routes: dict[str, Any] | None = None, chat_store=None, **settings_overrides):
        from api.context import build_context

        settings_overrides.setdefault("unleash__mock_wallet_risk", True)
        return build_context(
            settings=make_settings(**settings_overrides),
            http_client=httpx.AsyncClient(transport=unleash_transport(routes)),
            chat_store=chat_store,
            llm_for=models or FakeModels(),
        )

    return factory
