"""
DeFiSeek - Application Context

Everything a request handler needs, built once per application and passed
to handlers through ``app.state`` instead of module-level singletons.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable

import httpx
from langchain_core.language_models.chat_models import BaseChatModel

from defiseek.config import Settings, get_settings
from defiseek.llm import custom_model
from defiseek.logging import get_api_logger
from defiseek.storage import ChatStore, InMemoryChatStore
from defiseek.unleash import UnleashClient

from agents.catalog import build_chain_cache, build_default_registry
from agents.chains import ChainCache
from agents.orchestrator import AIRouterOrchestrator
from agents.registry import AgentRegistry
from agents.tools import ToolAdapter, build_tools

logger = get_api_logger()

# (api_identifier, temperature) -> chat model
ModelBuilder = Callable[[str, float], BaseChatModel]


@dataclass
class AppContext:
    """Per-application dependencies shared by all requests."""

    settings: Settings
    unleash: UnleashClient
    chain_cache: ChainCache
    registry: AgentRegistry
    orchestrator: AIRouterOrchestrator
    tool_adapter: ToolAdapter
    chat_store: ChatStore
    llm_for: ModelBuilder
    background_tasks: set[asyncio.Task] = field(default_factory=set)

    def spawn(self, coro) -> asyncio.Task:
        """Run a coroutine in the background, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    async def aclose(self) -> None:
        for task in list(self.background_tasks):
            task.cancel()
        if self.background_tasks:
            await asyncio.gather(*self.background_tasks, return_exceptions=True)
        await self.unleash.aclose()
        logger.info("app_context_closed")


def build_context(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    chat_store: ChatStore | None = None,
    llm_for: ModelBuilder | None = None,
) -> AppContext:
    """
    Wire the application context.

    Args:
        settings: Application settings (defaults to the cached global settings)
        http_client: Upstream HTTP client; tests inject one with a MockTransport
        chat_store: Persistence backend (defaults to in-memory)
        llm_for: Chat model builder (defaults to the provider catalogue)
    """
    resolved = settings or get_settings()

    if llm_for is None:
        def llm_for(api_identifier: str, temperature: float) -> BaseChatModel:
            return custom_model(api_identifier, resolved, temperature)

    default_model = resolved.llm.default_model

    def llm_factory(temperature: float) -> BaseChatModel:
        return llm_for(default_model, temperature)

    unleash = UnleashClient(resolved.unleash, http_client=http_client)
    chain_cache = build_chain_cache(unleash, resolved)
    registry = build_default_registry(unleash, chain_cache, resolved, llm_factory)
    orchestrator = AIRouterOrchestrator(
        registry,
        llm_factory,
        model_name=default_model,
        router_temperature=resolved.llm.router_temperature,
        synthesis_temperature=resolved.llm.synthesis_temperature,
    )
    tool_adapter = ToolAdapter(build_tools(registry, chain_cache, orchestrator))

    logger.info(
        "app_context_built",
        agents=len(registry),
        tools=tool_adapter.names,
        default_model=default_model,
    )

    return AppContext(
        settings=resolved,
        unleash=unleash,
        chain_cache=chain_cache,
        registry=registry,
        orchestrator=orchestrator,
        tool_adapter=tool_adapter,
        chat_store=chat_store or InMemoryChatStore(),
        llm_for=llm_for,
    )
