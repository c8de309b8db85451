"""
DeFiSeek - Wallet Analysis Agent

Composite agent: picks which wallet sub-agents to run for a query, runs
them concurrently and writes an analysis over whatever data came back.
Sub-agent failures are recorded in the result, never raised.
"""

from __future__ import annotations

import asyncio
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from defiseek.errors import DeFiSeekError
from defiseek.llm import LLMFactory, message_text
from defiseek.logging import get_logger
from defiseek.models import AgentFailure, UIComponent, WalletAnalysis

from agents.base import Agent, WalletAgent, WalletInput, extract_wallet_address
from agents.prompts import (
    AI_ROUTER_SYSTEM_PROMPT,
    WALLET_ANALYSIS_PROMPT,
    create_wallet_analysis_prompt,
    create_wallet_selection_prompt,
)
from agents.router import parse_json_text

logger = get_logger(__name__, component="wallet_analysis")

UI_KEYS = {
    "walletScoreAgent": "uiScore",
    "walletMetricsAgent": "uiMetrics",
}

SUGGESTIONS = [
    "Consider diversifying assets",
    "Review transaction history for anomalies",
]

ANALYSIS_UNAVAILABLE = "⚠️ Unable to generate wallet analysis"


class WalletAnalysisInput(BaseModel):
    query: str = Field(description="The user's question about the wallet")
    address: str = Field(description="Wallet address to analyze")


class WalletAnalysisAgent(Agent[WalletAnalysisInput, WalletAnalysis]):
    id = "walletAnalysisAgent"
    description = "Comprehensive wallet analysis combining score, metrics and token holdings"
    input_model = WalletAnalysisInput
    output_model = WalletAnalysis

    def __init__(
        self,
        sub_agents: list[WalletAgent],
        llm_factory: LLMFactory,
        selection_temperature: float = 0.0,
        analysis_temperature: float = 0.3,
    ) -> None:
        self.sub_agents = {agent.id: agent for agent in sub_agents}
        self.llm_factory = llm_factory
        self.selection_temperature = selection_temperature
        self.analysis_temperature = analysis_temperature

    async def input_from_query(self, query: str) -> WalletAnalysisInput:
        return WalletAnalysisInput(query=query, address=extract_wallet_address(query, self.id))

    async def select_sub_agents(self, query: str) -> list[str]:
        """Ask the model which sub-agents to run; all of them on any failure or empty pick."""
        everything = list(self.sub_agents)
        try:
            llm = self.llm_factory(self.selection_temperature)
            response = await llm.ainvoke([
                SystemMessage(content=AI_ROUTER_SYSTEM_PROMPT),
                HumanMessage(content=create_wallet_selection_prompt(
                    query,
                    [a.describe() for a in self.sub_agents.values()],
                )),
            ])
            parsed = parse_json_text(message_text(response))
        except Exception as e:
            logger.warning("sub_agent_selection_failed", error=str(e))
            return everything

        if isinstance(parsed, dict):
            parsed = parsed.get("requiredAgents", [])
        if isinstance(parsed, str):
            parsed = [parsed]
        if not isinstance(parsed, list):
            return everything

        selected = [
            agent_id for agent_id in parsed
            if isinstance(agent_id, str) and agent_id != self.id and agent_id in self.sub_agents
        ]
        return list(dict.fromkeys(selected)) or everything

    async def _run_sub_agent(self, agent: WalletAgent, address: str) -> tuple[str, Any, AgentFailure | None]:
        try:
            output = await agent.execute(WalletInput(address=address))
        except DeFiSeekError as e:
            logger.warning("sub_agent_failed", agent_id=agent.id, kind=e.kind, error=e.message)
            return agent.id, None, e.to_failure()
        return agent.id, output, None

    async def run(self, params: WalletAnalysisInput) -> WalletAnalysis:
        selected = await self.select_sub_agents(params.query)
        logger.info("wallet_analysis_started", address=params.address, sub_agents=selected)

        results = await asyncio.gather(*(
            self._run_sub_agent(self.sub_agents[agent_id], params.address)
            for agent_id in selected
        ))

        wallet_data: dict[str, Any] = {}
        failures: dict[str, AgentFailure] = {}
        ui_components: dict[str, UIComponent] = {}
        data_sources: list[str] = []

        for agent_id, output, failure in results:
            agent = self.sub_agents[agent_id]
            if failure is not None:
                failures[agent_id] = failure
                continue
            wallet_data[agent_id] = agent.dump(output)
            data_sources.append(agent.description)
            ui = agent.build_ui(output, WalletInput(address=params.address))
            if ui is not None and agent_id in UI_KEYS:
                ui_components[UI_KEYS[agent_id]] = ui

        analysis = await self._analyze(params, wallet_data, failures)

        return WalletAnalysis(
            query=params.query,
            wallet_address=params.address,
            wallet_data=wallet_data,
            failures=failures,
            analysis=analysis,
            data_sources=data_sources,
            suggestions=SUGGESTIONS,
            confidence=90 if not failures else 60,
            ui_components=ui_components,
        )

    async def _analyze(
        self,
        params: WalletAnalysisInput,
        wallet_data: dict[str, Any],
        failures: dict[str, AgentFailure],
    ) -> str:
        prompt = create_wallet_analysis_prompt(
            params.query,
            params.address,
            wallet_data,
            {agent_id: f.message for agent_id, f in failures.items()},
            SUGGESTIONS,
        )
        try:
            llm = self.llm_factory(self.analysis_temperature)
            response = await llm.ainvoke([
                SystemMessage(content=WALLET_ANALYSIS_PROMPT),
                HumanMessage(content=prompt),
            ])
        except Exception as e:
            logger.warning("wallet_analysis_llm_failed", error=str(e))
            return ANALYSIS_UNAVAILABLE
        return message_text(response).strip() or ANALYSIS_UNAVAILABLE

    def build_ui(
        self,
        output: WalletAnalysis,
        params: WalletAnalysisInput,
    ) -> dict[str, UIComponent] | None:
        return dict(output.ui_components) or None
