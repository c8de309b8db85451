"""Tests for defiseek.models (Pydantic schemas) and defiseek.errors."""

import pytest
from pydantic import ValidationError

from defiseek.models import (
    AgentOutcome,
    Blockchain,
    ChatRequest,
    ClientMessage,
    Priority,
    QueryType,
    RoutingDecision,
    UIComponent,
    VoteRequest,
    VoteType,
    WalletRisk,
)


class TestRoutingDecision:
    """Test routing decision validation."""

    def test_parses_camel_case(self):
        decision = RoutingDecision.model_validate({
            "queryType": "risk_analysis",
            "requiredAgents": ["walletRiskAgent"],
            "priority": "high",
            "confidence": 92,
            "reasoning": "wallet safety question",
        })
        assert decision.query_type == QueryType.RISK_ANALYSIS
        assert decision.required_agents == ["walletRiskAgent"]
        assert decision.priority == Priority.HIGH

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            RoutingDecision(confidence=101)
        with pytest.raises(ValidationError):
            RoutingDecision(confidence=-1)

    def test_float_confidence_rounded(self):
        assert RoutingDecision(confidence=84.6).confidence == 85

    def test_unknown_query_type_rejected(self):
        with pytest.raises(ValidationError):
            RoutingDecision.model_validate({"queryType": "astrology"})

    def test_fallback(self):
        decision = RoutingDecision.fallback()
        assert decision.query_type == QueryType.GENERAL_INFO
        assert decision.required_agents == []
        assert decision.priority == Priority.MEDIUM
        assert decision.confidence == 70
        assert decision.reasoning == "fallback"

    def test_serializes_with_aliases(self):
        data = RoutingDecision.fallback().model_dump(mode="json", by_alias=True)
        assert data["queryType"] == "general_info"
        assert data["requiredAgents"] == []


class TestAgentModels:
    """Test agent output schemas."""

    def test_blockchain_id_coerced_to_string(self):
        chain = Blockchain.model_validate({"id": 137, "name": "Polygon", "slug": "polygon"})
        assert chain.id == "137"

    def test_wallet_risk_score_bounds(self):
        analysis = {
            "transactionCount": 0,
            "totalValue": 0,
            "suspiciousActivity": False,
            "knownScamAssociation": False,
            "lastActivity": "2024-01-01T00:00:00Z",
        }
        with pytest.raises(ValidationError):
            WalletRisk(address="0x1", riskScore=150, riskLevel="LOW", analysis=analysis)

    def test_ui_component_alias(self):
        ui = UIComponent.model_validate({
            "component": "CheckWalletScoreTool",
            "props": {"result": {"success": True}, "toolCallId": "t-1", "args": {}},
        })
        assert ui.props.tool_call_id == "t-1"
        assert ui.model_dump(by_alias=True)["props"]["toolCallId"] == "t-1"

    def test_outcome_defaults(self):
        outcome = AgentOutcome(agent_id="x", success=True)
        assert outcome.ui_components == {}
        assert outcome.error is None


class TestChatSchemas:
    """Test chat API request schemas."""

    def test_chat_request(self):
        request = ChatRequest.model_validate({
            "id": "chat-1",
            "modelId": "gpt-4o-mini",
            "messages": [
                {"role": "user", "content": "hi"},
                {
                    "role": "assistant",
                    "content": "",
                    "toolInvocations": [{
                        "state": "result",
                        "toolCallId": "call_1",
                        "toolName": "checkWalletRisk",
                        "args": {"address": "0x1"},
                        "result": {"success": True},
                    }],
                },
            ],
        })
        assert request.model_id == "gpt-4o-mini"
        assert request.messages[1].tool_invocations[0].tool_name == "checkWalletRisk"

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            ClientMessage(role="robot", content="beep")

    def test_vote_type(self):
        vote = VoteRequest.model_validate({"chatId": "c", "messageId": "m", "type": "down"})
        assert vote.type == VoteType.DOWN
        with pytest.raises(ValidationError):
            VoteRequest.model_validate({"chatId": "c", "messageId": "m", "type": "sideways"})


class TestErrors:
    """Test the error taxonomy."""

    def test_transport_error_truncates_body(self):
        from defiseek.errors import AgentTransportError

        error = AgentTransportError("walletScoreAgent", status=502, body="x" * 2000)
        assert error.status == 502
        assert len(error.body) == 500
        assert error.kind == "transport_error"

    def test_to_failure(self):
        from defiseek.errors import AgentNotFound

        failure = AgentNotFound("ghostAgent").to_failure()
        assert failure.kind == "agent_not_found"
        assert "ghostAgent" in failure.message

    def test_missing_credential_names_variable(self):
        from defiseek.errors import MissingCredentialError

        error = MissingCredentialError("OPENAI_API_KEY")
        assert error.env_var == "OPENAI_API_KEY"
        assert "OPENAI_API_KEY" in error.message

    def test_hierarchy(self):
        from defiseek.errors import (
            AgentDataUnavailable,
            AgentError,
            DeFiSeekError,
            SynthesisFailure,
        )

        assert issubclass(AgentDataUnavailable, AgentError)
        assert issubclass(SynthesisFailure, DeFiSeekError)
        assert not issubclass(SynthesisFailure, AgentError)
