"""
DeFiSeek - AI Router Orchestrator

High-level orchestrator that wraps the LangGraph coordination graph,
providing a single async entry point for the tool layer and the API.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from defiseek.errors import DeFiSeekError
from defiseek.llm import LLMFactory
from defiseek.logging import get_logger
from defiseek.models import AgentOutcome, RoutingDecision

from agents.coordinator import Coordinator
from agents.graph import create_coordination_graph
from agents.registry import AgentRegistry
from agents.router import Router

logger = get_logger(__name__, component="orchestrator")

FALLBACK_RESPONSE = (
    "I'm having trouble analyzing your query right now. "
    "Please try rephrasing or ask a simpler question."
)


@dataclass
class RouterResult:
    """Container for one routed and coordinated query."""

    success: bool
    original_query: str
    routing_decision: RoutingDecision | None = None
    agent_results: dict[str, AgentOutcome] = field(default_factory=dict)
    execution_order: list[str] = field(default_factory=list)
    comprehensive_response: str = ""
    ui_components: dict[str, Any] = field(default_factory=dict)
    total_agents_executed: int = 0
    model_used: str = ""
    total_latency_ms: float = 0.0
    error: str | None = None
    fallback_response: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AIRouterOrchestrator:
    """
    Routes a query, runs the selected agents and synthesizes the answer.

    Language models are built on first use so a missing provider key only
    affects requests that need routing.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        llm_factory: LLMFactory,
        model_name: str = "",
        router_temperature: float = 0.1,
        synthesis_temperature: float = 0.3,
    ) -> None:
        self.registry = registry
        self.llm_factory = llm_factory
        self.model_name = model_name
        self.router_temperature = router_temperature
        self.synthesis_temperature = synthesis_temperature
        self._graph: Any = None

    def initialize(self) -> None:
        """Build the language models and compile the graph."""
        if self._graph is not None:
            return
        router = Router(self.llm_factory(self.router_temperature), self.registry)
        coordinator = Coordinator(self.llm_factory(self.synthesis_temperature), self.registry)
        self._graph = create_coordination_graph(router, coordinator)
        logger.info("orchestrator_initialized", model=self.model_name, agents=len(self.registry))

    async def run(self, query: str) -> RouterResult:
        """
        Run the full routing pipeline for one query.

        Returns:
            RouterResult; ``success`` is False when synthesis (or model
            construction) failed, with a generic ``fallback_response``
        """
        start = time.time()
        logger.info("router_pipeline_started", query_length=len(query))

        try:
            self.initialize()
            state = await self._graph.ainvoke({"query": query})
        except DeFiSeekError as e:
            logger.error("router_pipeline_failed", kind=e.kind, error=e.message)
            return RouterResult(
                success=False,
                original_query=query,
                model_used=self.model_name,
                error=e.kind,
                fallback_response=FALLBACK_RESPONSE,
                total_latency_ms=round((time.time() - start) * 1000, 1),
            )

        outcomes = state.get("agent_results", {})
        result = RouterResult(
            success=True,
            original_query=query,
            routing_decision=state["routing_decision"],
            agent_results=outcomes,
            execution_order=state.get("execution_order", []),
            comprehensive_response=state["text_answer"],
            ui_components=state.get("ui_components", {}),
            total_agents_executed=len(outcomes),
            model_used=self.model_name,
            total_latency_ms=round((time.time() - start) * 1000, 1),
        )

        logger.info(
            "router_pipeline_complete",
            query_type=result.routing_decision.query_type.value,
            agents=result.total_agents_executed,
            latency_ms=result.total_latency_ms,
        )
        return result
