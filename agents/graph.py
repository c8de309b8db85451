"""
DeFiSeek - LangGraph Coordination Graph

Defines the StateGraph that routes a query, runs the selected agents and
synthesizes one answer.

Graph topology:
    START → router ─┬→ coordinator → synthesizer → END
                    └────────────────→ synthesizer → END   (no agents required)
"""

from __future__ import annotations

from typing import Any

from langgraph.graph import END, StateGraph

from agents.coordinator import Coordinator, collect_ui_components
from agents.router import Router
from agents.state import CoordinationState


def create_coordination_graph(router: Router, coordinator: Coordinator) -> Any:
    """
    Build and compile the coordination StateGraph.

    Args:
        router: Query classifier
        coordinator: Agent executor and synthesizer

    Returns:
        Compiled LangGraph runnable
    """

    async def router_node(state: CoordinationState) -> dict[str, Any]:
        decision = await router.route(state["query"])
        return {"routing_decision": decision}

    async def coordinator_node(state: CoordinationState) -> dict[str, Any]:
        outcomes = await coordinator.execute_agents(
            state["query"],
            state["routing_decision"].required_agents,
        )
        return {
            "agent_results": outcomes,
            "execution_order": list(outcomes),
            "ui_components": collect_ui_components(outcomes),
        }

    async def synthesizer_node(state: CoordinationState) -> dict[str, Any]:
        # Join barrier: every dispatched agent has an outcome by now.
        text = await coordinator.synthesize(state["query"], state.get("agent_results", {}))
        return {"text_answer": text}

    def route_after_router(state: CoordinationState) -> str:
        if state["routing_decision"].required_agents:
            return "coordinator"
        return "synthesizer"

    graph = StateGraph(CoordinationState)

    # ── Add nodes ──────────────────────────────────────────────
    graph.add_node("router", router_node)
    graph.add_node("coordinator", coordinator_node)
    graph.add_node("synthesizer", synthesizer_node)

    graph.set_entry_point("router")

    graph.add_conditional_edges(
        "router",
        route_after_router,
        {
            "coordinator": "coordinator",
            "synthesizer": "synthesizer",
        },
    )

    graph.add_edge("coordinator", "synthesizer")
    graph.add_edge("synthesizer", END)

    return graph.compile()
