"""
DeFiSeek - Coordination State Schema

Typed state for the LangGraph coordination graph.
Each node reads from and writes to this shared state.
"""

from __future__ import annotations

from typing import Any, TypedDict

from defiseek.models import AgentOutcome, RoutingDecision


class CoordinationState(TypedDict, total=False):
    """
    State passed through the coordination StateGraph.

    Fields:
        query:             The user's question
        routing_decision:  Router output
        agent_results:     Outcome per executed agent id
        execution_order:   Agent ids in the order their outcomes were recorded
        ui_components:     UI descriptors collected from successful outcomes
        text_answer:       Synthesized answer
    """

    # Input
    query: str

    # Node outputs
    routing_decision: RoutingDecision
    agent_results: dict[str, AgentOutcome]
    execution_order: list[str]
    ui_components: dict[str, Any]
    text_answer: str
