"""
DeFiSeek - Agent Package

Schema-validated agents over the bitsCrunch UnleashNFTs API, plus the
routing and coordination layer built on LangGraph:
    - Router:       Classifies a query into a routing decision
    - Coordinator:  Runs the selected agents and synthesizes one answer
    - Tools:        Exposes agents to direct LLM tool calling

Usage:
    from agents.catalog import build_default_registry
    from agents.orchestrator import AIRouterOrchestrator
"""

from agents.base import Agent
from agents.registry import AgentRegistry
from agents.orchestrator import AIRouterOrchestrator, RouterResult

__all__ = [
    "Agent",
    "AgentRegistry",
    "AIRouterOrchestrator",
    "RouterResult",
]
