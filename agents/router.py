"""
DeFiSeek - Query Router

Classifies a user query into a ``RoutingDecision`` with one language-model
call. The model's text is never trusted directly: it is stripped of code
fences, parsed as JSON and validated against the decision schema. Any
failure yields ``RoutingDecision.fallback()``.
"""

from __future__ import annotations

import json
import re
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from defiseek.errors import RoutingParseError
from defiseek.llm import message_text
from defiseek.logging import get_logger
from defiseek.models import RoutingDecision

from agents.prompts import AI_ROUTER_SYSTEM_PROMPT, create_router_prompt
from agents.registry import AgentRegistry

logger = get_logger(__name__, component="router")

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def strip_code_fences(raw: str) -> str:
    text = raw.strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def parse_json_text(raw: str) -> Any:
    """
    Parse JSON out of model text.

    Handles Markdown fences and prose around a single JSON object or array.

    Raises:
        ValueError: No parseable JSON found
    """
    text = strip_code_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise ValueError("No JSON value found in model output")


def parse_routing_decision(raw: str) -> RoutingDecision:
    """
    Validate model text as a routing decision.

    Raises:
        RoutingParseError: Not JSON, or JSON not matching the decision schema
    """
    try:
        data = parse_json_text(raw)
    except ValueError as e:
        raise RoutingParseError(str(e)) from e

    if not isinstance(data, dict):
        raise RoutingParseError("Routing output is not a JSON object")

    try:
        return RoutingDecision.model_validate(data)
    except ValidationError as e:
        raise RoutingParseError(f"Routing output failed validation: {e.error_count()} errors") from e


class Router:
    """
    LLM-based query classifier.

    Unknown agent ids requested by the model are kept in the decision;
    the coordinator records them as not-found outcomes.
    """

    def __init__(self, llm: BaseChatModel, registry: AgentRegistry) -> None:
        self.llm = llm
        self.registry = registry

    async def route(self, query: str) -> RoutingDecision:
        """Classify a query. Never raises."""
        messages = [
            SystemMessage(content=AI_ROUTER_SYSTEM_PROMPT),
            HumanMessage(content=create_router_prompt(
                query,
                [agent.describe() for agent in self.registry.get_all()],
            )),
        ]

        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            logger.warning("router_llm_failed", error=str(e))
            return RoutingDecision.fallback()

        raw = message_text(response)
        try:
            decision = parse_routing_decision(raw)
        except RoutingParseError as e:
            logger.warning("routing_parse_failed", error=e.message, raw=raw[:200])
            return RoutingDecision.fallback()

        logger.info(
            "query_routed",
            query_type=decision.query_type.value,
            agents=decision.required_agents,
            confidence=decision.confidence,
        )
        return decision
