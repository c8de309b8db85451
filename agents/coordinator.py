"""
DeFiSeek - Coordinator

Executes the agents chosen by the router, collects their outcomes and UI
descriptors, and synthesizes a single answer with one language-model call.

Agent failures are folded into the synthesis context; only a failing
synthesis call is fatal.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from defiseek.errors import AgentNotFound, AgentOutputInvalid, DeFiSeekError, SynthesisFailure
from defiseek.llm import message_text
from defiseek.logging import get_logger
from defiseek.models import (
    AgentFailure,
    AgentOutcome,
    CoordinationResult,
    RoutingDecision,
    UIComponent,
)

from agents.prompts import AI_COORDINATOR_SYSTEM, create_coordinator_prompt
from agents.registry import AgentRegistry

logger = get_logger(__name__, component="coordinator")

DEGRADED_ANSWER = (
    "I couldn't retrieve the data needed to fully answer this right now. "
    "The data source may be temporarily unavailable. Please try again in a few minutes."
)
EMPTY_ANSWER = "I don't have anything to add on that yet. Could you rephrase or share more detail?"


class Coordinator:
    """Runs agents for a routing decision and synthesizes the final answer."""

    def __init__(self, llm: BaseChatModel, registry: AgentRegistry) -> None:
        self.llm = llm
        self.registry = registry

    async def coordinate(self, query: str, decision: RoutingDecision) -> CoordinationResult:
        outcomes = await self.execute_agents(query, decision.required_agents)
        text = await self.synthesize(query, outcomes)
        return CoordinationResult(
            text_answer=text,
            ui_components=collect_ui_components(outcomes),
            executed_agent_ids=list(outcomes),
            agent_results=outcomes,
        )

    async def execute_agents(self, query: str, agent_ids: list[str]) -> dict[str, AgentOutcome]:
        """Run every requested agent concurrently; all outcomes are returned, keyed by id."""
        unique_ids = list(dict.fromkeys(agent_ids))
        results = await asyncio.gather(*(self.execute_agent(query, aid) for aid in unique_ids))
        return {outcome.agent_id: outcome for outcome in results}

    async def execute_agent(self, query: str, agent_id: str) -> AgentOutcome:
        start = time.perf_counter()
        agent = self.registry.get(agent_id)

        def elapsed() -> float:
            return round((time.perf_counter() - start) * 1000, 1)

        if agent is None:
            logger.warning("agent_not_found", agent_id=agent_id)
            return AgentOutcome(
                agent_id=agent_id,
                success=False,
                error=AgentNotFound(agent_id).to_failure(),
            )

        try:
            params = await agent.input_from_query(query)
            output = await agent.execute(params)
        except AgentOutputInvalid as e:
            # already logged at error level by the agent
            return AgentOutcome(agent_id=agent_id, success=False, error=e.to_failure(), latency_ms=elapsed())
        except DeFiSeekError as e:
            logger.warning("agent_execution_failed", agent_id=agent_id, kind=e.kind, error=e.message)
            return AgentOutcome(agent_id=agent_id, success=False, error=e.to_failure(), latency_ms=elapsed())
        except Exception as e:
            logger.exception("agent_execution_crashed", agent_id=agent_id, error=str(e))
            return AgentOutcome(
                agent_id=agent_id,
                success=False,
                error=AgentFailure(kind="internal_error", message="Unexpected error while fetching data"),
                latency_ms=elapsed(),
            )

        ui = agent.build_ui(output, params)
        outcome = AgentOutcome(
            agent_id=agent_id,
            success=True,
            data=agent.dump(output),
            ui_components=_ui_map(agent.ui_component or agent_id, ui),
            latency_ms=elapsed(),
        )
        logger.info("agent_executed", agent_id=agent_id, latency_ms=outcome.latency_ms)
        return outcome

    async def synthesize(self, query: str, outcomes: dict[str, AgentOutcome]) -> str:
        """
        One synthesis call over the complete outcome map.

        Raises:
            SynthesisFailure: The language-model call failed
        """
        messages = [
            SystemMessage(content=AI_COORDINATOR_SYSTEM),
            HumanMessage(content=create_coordinator_prompt(query, synthesis_context(outcomes))),
        ]
        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            logger.error("synthesis_failed", error=str(e), agents=list(outcomes))
            raise SynthesisFailure("Synthesis call failed") from e

        text = message_text(response).strip()
        if text:
            return text

        logger.warning("synthesis_empty", agents=list(outcomes))
        if outcomes and not any(o.success for o in outcomes.values()):
            return DEGRADED_ANSWER
        return EMPTY_ANSWER


def _ui_map(
    name: str,
    ui: UIComponent | dict[str, UIComponent] | None,
) -> dict[str, UIComponent | dict[str, UIComponent]]:
    if ui is None:
        return {}
    return {name: ui}


def collect_ui_components(
    outcomes: dict[str, AgentOutcome],
) -> dict[str, UIComponent | dict[str, UIComponent]]:
    """UI descriptors of successful outcomes keyed by agent id (nested when an agent has several)."""
    collected: dict[str, Any] = {}
    for agent_id, outcome in outcomes.items():
        if not outcome.success or not outcome.ui_components:
            continue
        if len(outcome.ui_components) == 1:
            (component,) = outcome.ui_components.values()
            collected[agent_id] = component
        else:
            collected[agent_id] = dict(outcome.ui_components)
    return collected


def synthesis_context(outcomes: dict[str, AgentOutcome]) -> dict[str, Any]:
    """Per-agent result map handed to the synthesis prompt, failures included."""
    context: dict[str, Any] = {}
    for agent_id, outcome in outcomes.items():
        if outcome.success:
            entry: dict[str, Any] = {"status": "success", "data": outcome.data}
            if outcome.ui_components:
                entry["uiComponents"] = _component_names(outcome.ui_components)
            context[agent_id] = entry
        else:
            context[agent_id] = {
                "status": "error",
                "errorKind": outcome.error.kind if outcome.error else "unknown",
                "error": outcome.error.message if outcome.error else "No data",
            }
    return context


def _component_names(ui: dict[str, Any]) -> list[str]:
    names = []
    for value in ui.values():
        if isinstance(value, UIComponent):
            names.append(value.component)
        else:
            names.extend(_component_names(value))
    return names
