"""
DeFiSeek - Agent Base

Common interface for every agent: a named unit of work with a typed input,
a validated output contract and an optional UI component.

Agents are constructed once per application context and are stateless
apart from privately owned caches, so the same instance serves many
concurrent requests.
"""

from __future__ import annotations

import re
import uuid
from abc import ABC, abstractmethod
from functools import cached_property
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from defiseek.errors import AgentDataUnavailable, AgentInputInvalid, AgentOutputInvalid
from defiseek.logging import get_logger
from defiseek.models import UIComponent, UIComponentProps
from defiseek.unleash import UnleashClient

logger = get_logger(__name__, component="agent")

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT")

WALLET_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
TIME_RANGES = ("24h", "7d", "30d", "90d", "all")
_TIME_RANGE_RE = re.compile(r"\b(24h|7d|30d|90d|all)\b", re.IGNORECASE)

DEFAULT_CHAIN = "ethereum"


class NoInput(BaseModel):
    """Input for agents that take no arguments."""


class WalletInput(BaseModel):
    address: str = Field(description="Wallet address (0x followed by 40 hex characters)")
    blockchain: str = Field(default=DEFAULT_CHAIN, description="Blockchain slug")


def extract_wallet_address(query: str, agent_id: str) -> str:
    """
    First wallet address mentioned in free text.

    Raises:
        AgentInputInvalid: No address in the text
    """
    matches = WALLET_ADDRESS_RE.findall(query)
    if not matches:
        raise AgentInputInvalid(agent_id, "No valid wallet address found in the request")
    if len(set(m.lower() for m in matches)) > 1:
        logger.warning("multiple_wallet_addresses", agent_id=agent_id, used=matches[0], count=len(matches))
    return matches[0]


def extract_time_range(query: str, default: str) -> str:
    match = _TIME_RANGE_RE.search(query)
    return match.group(1).lower() if match else default


class Agent(ABC, Generic[InputT, OutputT]):
    """
    Base class for all agents.

    Subclasses declare:
        id:            Unique registry identifier
        description:   Human-readable purpose (shown to the router model)
        input_model:   Pydantic model for arguments (also the tool schema)
        output_model:  Type the raw result must validate against
        ui_component:  Client widget name, if the output is visualised
    """

    id: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]] = NoInput
    output_model: ClassVar[Any]
    ui_component: ClassVar[str | None] = None

    def describe(self) -> str:
        return f"{self.id}: {self.description}"

    @cached_property
    def output_adapter(self) -> TypeAdapter:
        return TypeAdapter(self.output_model)

    @abstractmethod
    async def run(self, params: InputT) -> Any:
        """
        Produce the raw result.

        Only transport and data errors may be raised here; validation of
        the result is done by ``execute``.
        """

    async def execute(self, params: InputT) -> OutputT:
        """Run the agent and validate its raw result against the output contract."""
        raw = await self.run(params)
        try:
            return self.output_adapter.validate_python(raw)
        except ValidationError as e:
            logger.error(
                "agent_output_invalid",
                agent_id=self.id,
                errors=e.error_count(),
                detail=str(e)[:500],
            )
            raise AgentOutputInvalid(
                self.id,
                f"Result of {self.id} did not match its output contract",
            ) from e

    def parse_input(self, args: InputT | dict[str, Any] | None) -> InputT:
        """Validate tool-call arguments into the agent's input model."""
        if isinstance(args, self.input_model):
            return args
        try:
            return self.input_model.model_validate(args or {})
        except ValidationError as e:
            raise AgentInputInvalid(self.id, f"Invalid arguments for {self.id}") from e

    async def input_from_query(self, query: str) -> InputT:
        """Derive the agent's input from a free-text query."""
        return self.input_model()

    def dump(self, output: OutputT) -> Any:
        """JSON-compatible form of a validated output."""
        return self.output_adapter.dump_python(output, mode="json", by_alias=True)

    def build_ui(
        self,
        output: OutputT,
        params: InputT,
    ) -> UIComponent | dict[str, UIComponent] | None:
        """UI descriptor for a successful output, if this agent has a widget."""
        if not self.ui_component:
            return None
        return make_ui_component(
            self.ui_component,
            self.dump(output),
            args=params.model_dump(),
            tool_call_id=f"{self.id}-{uuid.uuid4().hex[:8]}",
        )


class UnleashAgent(Agent[InputT, OutputT]):
    """Agent backed by one UnleashNFTs endpoint."""

    path: ClassVar[str]

    def __init__(self, client: UnleashClient) -> None:
        self.client = client

    async def fetch_page(self, params: dict[str, Any]) -> dict[str, Any]:
        """Fetch ``{data, pagination}`` from this agent's endpoint; empty data is a failure."""
        body = await self.client.get(self.path, params, agent_id=self.id)
        if not body["data"]:
            raise AgentDataUnavailable(self.id, "Data provider returned no results")
        return {"data": body["data"], "pagination": body.get("pagination")}


class WalletAgent(UnleashAgent[WalletInput, OutputT]):
    """UnleashNFTs agent keyed by a single wallet address."""

    input_model = WalletInput

    async def input_from_query(self, query: str) -> WalletInput:
        return WalletInput(address=extract_wallet_address(query, self.id))


def make_ui_component(
    component: str,
    data: Any,
    args: dict[str, Any] | None = None,
    tool_call_id: str | None = None,
) -> UIComponent:
    return UIComponent(
        component=component,
        props=UIComponentProps(
            result={"success": True, "data": data},
            tool_call_id=tool_call_id or f"{component}-{uuid.uuid4().hex[:8]}",
            args=args or {},
        ),
    )
