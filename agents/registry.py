"""
DeFiSeek - Agent Registry

Lookup from agent id to agent instance. Built once per application
context and read-only afterwards.
"""

from __future__ import annotations

from typing import Any

from defiseek.errors import AgentNotFound
from defiseek.logging import get_logger

from agents.base import Agent

logger = get_logger(__name__, component="registry")


class AgentRegistry:
    """Registry of agents keyed by id, in registration order."""

    def __init__(self) -> None:
        self._agents: dict[str, Agent] = {}

    def register(self, agent: Agent) -> None:
        if agent.id in self._agents:
            # Last write wins; a second registration usually means wiring is wrong.
            logger.warning(
                "duplicate_agent_registration",
                agent_id=agent.id,
                replaced=type(self._agents[agent.id]).__name__,
                replacement=type(agent).__name__,
            )
        self._agents[agent.id] = agent
        logger.debug("agent_registered", agent_id=agent.id)

    def get(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def get_all(self) -> list[Agent]:
        return list(self._agents.values())

    def ids(self) -> list[str]:
        return list(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    async def execute_by_id(self, agent_id: str, args: dict[str, Any] | None = None) -> Any:
        """
        Look up an agent and execute it with validated arguments.

        Raises:
            AgentNotFound: The id is not registered
        """
        agent = self.get(agent_id)
        if agent is None:
            raise AgentNotFound(agent_id)
        return await agent.execute(agent.parse_input(args))
