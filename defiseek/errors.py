"""
DeFiSeek - Error Taxonomy

Every failure the agent framework can produce is one of these types.
Agent-level errors are folded into the synthesized answer; only
authentication and synthesis failures become HTTP errors.
"""

from __future__ import annotations

from datetime import datetime, timezone

from defiseek.models import AgentFailure


BODY_SNIPPET_LIMIT = 500


class DeFiSeekError(Exception):
    """Base class for all DeFiSeek errors."""

    kind = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_failure(self) -> AgentFailure:
        return AgentFailure(
            kind=self.kind,
            message=self.message,
            timestamp=datetime.now(timezone.utc),
        )


class MissingCredentialError(DeFiSeekError):
    """A required API key is not configured."""

    kind = "missing_credential"

    def __init__(self, env_var: str) -> None:
        super().__init__(f"Missing API key: {env_var}")
        self.env_var = env_var


class AgentError(DeFiSeekError):
    """Base class for failures raised while executing an agent."""

    kind = "agent_error"

    def __init__(self, agent_id: str, message: str) -> None:
        super().__init__(message)
        self.agent_id = agent_id


class AgentTransportError(AgentError):
    """Upstream HTTP call failed or returned a non-2xx status."""

    kind = "transport_error"

    def __init__(
        self,
        agent_id: str,
        status: int | None,
        body: str = "",
        message: str | None = None,
    ) -> None:
        self.status = status
        self.body = body[:BODY_SNIPPET_LIMIT]
        super().__init__(
            agent_id,
            message or f"Upstream request failed with status {status}",
        )


class AgentDataUnavailable(AgentError):
    """Upstream returned 2xx but the payload was empty or malformed."""

    kind = "data_unavailable"


class AgentOutputInvalid(AgentError):
    """The agent's raw result failed validation against its output model."""

    kind = "output_invalid"


class AgentInputInvalid(AgentError):
    """The agent could not derive a valid input (e.g. no wallet address)."""

    kind = "input_invalid"


class AgentNotFound(AgentError):
    """An agent id was referenced that is not in the registry."""

    kind = "agent_not_found"

    def __init__(self, agent_id: str) -> None:
        super().__init__(agent_id, f"Agent '{agent_id}' is not registered")


class RoutingParseError(DeFiSeekError):
    """The router's classification output was not a valid decision."""

    kind = "routing_parse_error"


class SynthesisFailure(DeFiSeekError):
    """The final language-model synthesis call failed."""

    kind = "synthesis_failure"


class AuthRequired(DeFiSeekError):
    """No valid authenticated session."""

    kind = "auth_required"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)
