"""
Tests for the chat API.

Covers message conversion, the streaming session, title generation, the
generation loop and the HTTP endpoints (FastAPI TestClient).
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from api.streaming import StreamingSession

from tests.conftest import (
    AUTH_HEADERS,
    DEAD_WALLET,
    FakeModels,
    ScriptedChatModel,
    failing_llm,
    mock_llm,
    scripted_model,
    tool_call_reply,
)

CHAT_TEMPERATURE = 0.7
TITLE_TEMPERATURE = 0.5


def parse_stream(body: str) -> list[tuple[str, object]]:
    parts = []
    for line in body.splitlines():
        if not line:
            continue
        code, _, payload = line.partition(":")
        parts.append((code, json.loads(payload)))
    return parts


def chat_body(content: str = "hello", chat_id: str = "chat-1", model_id: str = "gemini-1.5-flash-latest", **extra):
    return {
        "id": chat_id,
        "modelId": model_id,
        "messages": [{"id": "m1", "role": "user", "content": content}],
        **extra,
    }


# =============================================================================
# Message Handling
# =============================================================================

class TestMessageConversion:
    """Test client message to LangChain message conversion."""

    def test_user_with_image(self):
        from api.messages import to_langchain_messages
        from defiseek.models import ClientMessage

        messages = to_langchain_messages([ClientMessage.model_validate({
            "role": "user",
            "content": "what is this?",
            "experimental_attachments": [
                {"url": "https://img/x.png", "contentType": "image/png"},
                {"url": "https://doc/x.pdf", "contentType": "application/pdf"},
            ],
        })])

        assert len(messages) == 1
        content = messages[0].content
        assert content[0] == {"type": "text", "text": "what is this?"}
        assert content[1]["image_url"]["url"] == "https://img/x.png"
        assert len(content) == 2

    def test_assistant_tool_invocations(self):
        from api.messages import to_langchain_messages
        from defiseek.models import ClientMessage

        messages = to_langchain_messages([
            ClientMessage(role="system", content="ignore me"),
            ClientMessage.model_validate({
                "role": "assistant",
                "content": "",
                "toolInvocations": [
                    {"state": "result", "toolCallId": "c1", "toolName": "checkWalletRisk", "args": {}, "result": {"ok": 1}},
                    {"state": "call", "toolCallId": "c2", "toolName": "checkWalletScore", "args": {}},
                ],
            }),
        ])

        assert isinstance(messages[0], AIMessage)
        assert [c["id"] for c in messages[0].tool_calls] == ["c1"]
        assert isinstance(messages[1], ToolMessage)
        assert json.loads(messages[1].content) == {"ok": 1}
        assert len(messages) == 2

    def test_most_recent_user_message(self):
        from api.messages import most_recent_user_message

        messages = [HumanMessage(content="first"), AIMessage(content="reply"), HumanMessage(content="second")]
        assert most_recent_user_message(messages).content == "second"
        assert most_recent_user_message([AIMessage(content="x")]) is None

    def test_filter_valid_messages(self):
        from api.messages import FALLBACK_USER_MESSAGE, filter_valid_messages

        kept = filter_valid_messages([
            HumanMessage(content="  "),
            AIMessage(content=""),
            AIMessage(content="", tool_calls=[{"name": "t", "args": {}, "id": "c1"}]),
            HumanMessage(content="real"),
        ])
        assert len(kept) == 2

        assert filter_valid_messages([HumanMessage(content="")])[0].content == FALLBACK_USER_MESSAGE

    def test_sanitize_drops_unanswered_tool_calls(self):
        from api.messages import sanitize_response_messages

        sanitized = sanitize_response_messages([
            AIMessage(content="", tool_calls=[
                {"name": "a", "args": {}, "id": "answered"},
                {"name": "b", "args": {}, "id": "dangling"},
            ]),
            ToolMessage(content="{}", tool_call_id="answered", name="a"),
            AIMessage(content="", tool_calls=[{"name": "c", "args": {}, "id": "lost"}]),
            AIMessage(content="done"),
        ])

        assert len(sanitized) == 3
        assert [c["id"] for c in sanitized[0].tool_calls] == ["answered"]
        assert sanitized[-1].content == "done"

    def test_stored_content(self):
        from api.messages import to_stored_content

        role, parts = to_stored_content(AIMessage(content="hi", tool_calls=[{"name": "t", "args": {"a": 1}, "id": "c1"}]))
        assert role == "assistant"
        assert parts[0] == {"type": "text", "text": "hi"}
        assert parts[1]["type"] == "tool-call"

        role, parts = to_stored_content(ToolMessage(content='{"success": true}', tool_call_id="c1", name="t"))
        assert role == "tool"
        assert parts[0]["result"] == {"success": True}


# =============================================================================
# Streaming Session
# =============================================================================

class CountingSession(StreamingSession):
    """StreamingSession that counts close() calls."""

    close_calls = 0

    def close(self) -> None:
        self.close_calls += 1
        super().close()


async def _drain(session) -> str:
    return "".join([part async for part in session.stream()])


class TestStreamingSession:
    """Test the data-stream writer."""

    @pytest.mark.asyncio
    async def test_parts(self):
        from api.streaming import StreamingSession

        session = StreamingSession()
        session.write_annotation({"chatId": "c1"})
        session.write_text("Hello")
        session.write_tool_call("t1", "checkWalletRisk", {"address": "0x1"})
        session.write_tool_result("t1", {"success": True})
        session.write_error("oops")
        session.write_finish()
        session.close()

        assert await _drain(session) == (
            '8:[{"chatId":"c1"}]\n'
            '0:"Hello"\n'
            '9:{"toolCallId":"t1","toolName":"checkWalletRisk","args":{"address":"0x1"}}\n'
            'a:{"toolCallId":"t1","result":{"success":true}}\n'
            '3:"oops"\n'
            'd:{"finishReason":"stop"}\n'
        )

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_drops_late_writes(self):
        from api.streaming import StreamingSession

        session = StreamingSession()
        session.write_text("a")
        session.close()
        session.close()
        session.write_text("late")

        assert session.closed is True
        assert await _drain(session) == '0:"a"\n'


# =============================================================================
# Titles
# =============================================================================

class TestTitles:
    """Test chat title generation."""

    def test_clean_title(self):
        from api.services import clean_title

        assert clean_title('  "Wallet:  Safety [Check]"  ') == "Wallet Safety Check"
        assert len(clean_title("x" * 100)) == 60

    def test_fallback_title(self):
        from api.services import fallback_title

        assert fallback_title("is my wallet safe on ethereum?") == "Wallet Safe Ethereum"
        assert fallback_title("?? !!") == "New Chat"

    def test_unique_title_suffixes(self):
        from api.services import unique_title

        existing = {"nft trends", "nft trends discussion"}
        assert unique_title("NFT Trends", existing) == "NFT Trends Analysis"
        assert unique_title("Fresh Topic", existing) == "Fresh Topic"

    def test_unique_title_after_suffixes_exhausted(self):
        from api.services import TITLE_SUFFIXES, unique_title

        existing = {"topic"} | {f"topic {s.lower()}" for s in TITLE_SUFFIXES}
        assert unique_title("Topic", existing) == "Topic 2"

    def test_unique_title_respects_length(self):
        from api.services import unique_title

        title = "A" * 60
        result = unique_title(title, {title.lower()})
        assert len(result) <= 60
        assert result.endswith(" Discussion")

    @pytest.mark.asyncio
    async def test_generate_title(self):
        from api.services import generate_title

        title = await generate_title(lambda: mock_llm('"Dead Wallet Safety Check"'), "is it safe?", set())
        assert title == "Dead Wallet Safety Check"

    @pytest.mark.asyncio
    async def test_generate_title_model_failure(self):
        from api.services import generate_title

        title = await generate_title(lambda: failing_llm(), "best defi yield farming protocols", set())
        assert title == "Best Defi Yield Farming Protocols"


# =============================================================================
# Generation Loop
# =============================================================================

class TestChatService:
    """Test the chat service generation loop."""

    @pytest.mark.asyncio
    async def test_text_reply_persisted_and_closed_once(self, build_test_context):
        from api.services import ChatService

        context = build_test_context()
        service = ChatService(context)
        session = CountingSession()

        await service.run_generation(session, "chat-1", scripted_model("All good here."), [HumanMessage(content="hi")])

        parts = parse_stream(await _drain(session))
        assert "".join(v for c, v in parts if c == "0") == "All good here."
        assert parts[-1] == ("d", {"finishReason": "stop"})
        assert session.close_calls == 1

        stored = await context.chat_store.get_messages_by_chat_id("chat-1")
        assert [m.role for m in stored] == ["assistant"]
        annotation = next(v for c, v in parts if c == "8")
        assert annotation == [{"messageIdFromServer": stored[0].id}]

    @pytest.mark.asyncio
    async def test_failure_writes_error_and_closes_once(self, build_test_context):
        from api.services import GENERATION_ERROR_MESSAGE, ChatService

        class Broken(ScriptedChatModel):
            async def _astream(self, messages, stop=None, run_manager=None, **kwargs):
                raise RuntimeError("provider exploded")
                yield  # pragma: no cover

        service = ChatService(build_test_context())
        session = CountingSession()

        await service.run_generation(session, "chat-1", Broken(replies=[]), [HumanMessage(content="hi")])

        parts = parse_stream(await _drain(session))
        assert parts == [("3", GENERATION_ERROR_MESSAGE)]
        assert session.close_calls == 1

    @pytest.mark.asyncio
    async def test_timeout(self, build_test_context):
        from api.services import GENERATION_TIMEOUT_MESSAGE, ChatService

        class Slow(ScriptedChatModel):
            async def _astream(self, messages, stop=None, run_manager=None, **kwargs):
                await asyncio.sleep(5)
                yield  # pragma: no cover

        service = ChatService(build_test_context(api__max_duration_seconds=0.05))
        session = CountingSession()

        await service.run_generation(session, "chat-1", Slow(replies=[]), [HumanMessage(content="hi")])

        parts = parse_stream(await _drain(session))
        assert parts == [("3", GENERATION_TIMEOUT_MESSAGE)]
        assert session.close_calls == 1

    @pytest.mark.asyncio
    async def test_tool_call_round_trip(self, build_test_context):
        from api.services import ChatService

        context = build_test_context()
        model = scripted_model(
            tool_call_reply("checkWalletRisk", {"address": DEAD_WALLET}),
            "🚫 AVOID this wallet: it is associated with known scams.",
        )
        session = CountingSession()

        await ChatService(context).run_generation(session, "chat-1", model, [HumanMessage(content="safe?")])

        parts = parse_stream(await _drain(session))
        codes = [c for c, _ in parts]
        assert codes.index("9") < codes.index("a") < codes.index("0")

        call = next(v for c, v in parts if c == "9")
        assert call == {"toolCallId": "call_1", "toolName": "checkWalletRisk", "args": {"address": DEAD_WALLET}}
        result = next(v for c, v in parts if c == "a")["result"]
        assert "known_scam" in result["flags"]

        # second model step saw the tool result
        assert isinstance(model.seen[1][-1], ToolMessage)

        stored = await context.chat_store.get_messages_by_chat_id("chat-1")
        assert [m.role for m in stored] == ["assistant", "tool", "assistant"]
        assert len([v for c, v in parts if c == "8"]) == 2

    @pytest.mark.asyncio
    async def test_step_limit(self, build_test_context):
        from api.services import ChatService

        context = build_test_context(llm__max_steps=1)
        model = scripted_model(tool_call_reply("checkSupportedChains", {}), "never reached")
        session = CountingSession()

        await ChatService(context).run_generation(session, "chat-1", model, [HumanMessage(content="chains?")])

        assert model.calls == 1
        parts = parse_stream(await _drain(session))
        assert ("d", {"finishReason": "stop"}) in parts

    @pytest.mark.asyncio
    async def test_ensure_chat_ownership(self, build_test_context):
        from api.services import ChatService
        from defiseek.errors import AuthRequired

        service = ChatService(build_test_context(models=FakeModels({TITLE_TEMPERATURE: mock_llm("Wallet Check")})))
        chat = await service.ensure_chat("chat-1", "user-1", HumanMessage(content="check my wallet"))
        assert chat.title == "Wallet Check"

        assert (await service.ensure_chat("chat-1", "user-1", HumanMessage(content="again"))).id == "chat-1"
        with pytest.raises(AuthRequired):
            await service.ensure_chat("chat-1", "intruder", HumanMessage(content="mine now"))

    @pytest.mark.asyncio
    async def test_title_store_failure(self, build_test_context):
        from api.services import ChatService
        from defiseek.storage import InMemoryChatStore

        class BrokenStore(InMemoryChatStore):
            async def get_chats_by_user_id(self, user_id):
                raise RuntimeError("db down")

        service = ChatService(build_test_context(chat_store=BrokenStore()))
        assert (await service.title_for("user-1", "hello")).startswith("New Chat ")


# =============================================================================
# HTTP Endpoints
# =============================================================================

@pytest.fixture
def models():
    return FakeModels(
        {
            CHAT_TEMPERATURE: scripted_model("Hello from DeFiSeek."),
            TITLE_TEMPERATURE: mock_llm("Greeting Chat", "Second Chat", "Third Chat"),
        },
        missing={"gpt-": "OPENAI_API_KEY"},
    )


@pytest.fixture
def client(build_test_context, models):
    from api.main import create_app

    with TestClient(create_app(build_test_context(models=models))) as test_client:
        yield test_client


class TestHealthEndpoints:
    """Test health endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "DeFiSeek API"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert "walletRiskAgent" in data["agents"]
        assert "aiRouter" in data["tools"]


class TestCors:
    """Test CORS configuration."""

    def test_origins_from_context_settings(self, build_test_context, models):
        from api.main import create_app

        context = build_test_context(models=models, api__cors_origins=["https://app.defiseek.xyz"])
        with TestClient(create_app(context)) as test_client:
            allowed = test_client.get("/", headers={"Origin": "https://app.defiseek.xyz"})
            other = test_client.get("/", headers={"Origin": "https://elsewhere.example"})

        assert allowed.headers["access-control-allow-origin"] == "https://app.defiseek.xyz"
        assert "access-control-allow-origin" not in other.headers


class TestAuthentication:
    """Test bearer-key authentication."""

    def test_missing_header(self, client):
        response = client.post("/api/chat", json=chat_body())
        assert response.status_code == 401

    def test_wrong_key(self, client):
        response = client.post(
            "/api/chat",
            json=chat_body(),
            headers={"Authorization": "Bearer nope", "X-User-Id": "user-1"},
        )
        assert response.status_code == 401

    def test_missing_user(self, client):
        response = client.get("/api/history", headers={"Authorization": AUTH_HEADERS["Authorization"]})
        assert response.status_code == 401


class TestChatEndpoint:
    """Test POST /api/chat."""

    def test_streams_reply(self, client):
        response = client.post("/api/chat", json=chat_body(), headers=AUTH_HEADERS)

        assert response.status_code == 200
        assert response.headers["x-vercel-ai-data-stream"] == "v1"
        parts = parse_stream(response.text)
        assert parts[0] == ("8", [{"chatId": "chat-1"}])
        assert "".join(v for c, v in parts if c == "0") == "Hello from DeFiSeek."
        assert any(c == "8" and "messageIdFromServer" in v[0] for c, v in parts)
        assert parts[-1] == ("d", {"finishReason": "stop"})

    def test_chat_created_with_title(self, client):
        client.post("/api/chat", json=chat_body(), headers=AUTH_HEADERS)

        history = client.get("/api/history", headers=AUTH_HEADERS).json()
        assert [c["id"] for c in history] == ["chat-1"]
        assert history[0]["title"] == "Greeting Chat"
        assert history[0]["userId"] == "user-1"

    def test_unknown_model(self, client):
        response = client.post("/api/chat", json=chat_body(model_id="gpt-9"), headers=AUTH_HEADERS)
        assert response.status_code == 404

    def test_empty_user_message(self, client):
        response = client.post("/api/chat", json=chat_body(content="   "), headers=AUTH_HEADERS)
        assert response.status_code == 400

    def test_no_user_message(self, client):
        body = chat_body()
        body["messages"] = [{"role": "assistant", "content": "hi"}]
        response = client.post("/api/chat", json=body, headers=AUTH_HEADERS)
        assert response.status_code == 400

    def test_missing_model_key(self, client):
        response = client.post("/api/chat", json=chat_body(model_id="gpt-4o-mini"), headers=AUTH_HEADERS)

        assert response.status_code == 500
        assert "OPENAI_API_KEY" in response.json()["details"]

    def test_other_users_chat(self, client):
        client.post("/api/chat", json=chat_body(), headers=AUTH_HEADERS)

        response = client.post(
            "/api/chat",
            json=chat_body(content="hijack"),
            headers={**AUTH_HEADERS, "X-User-Id": "user-2"},
        )
        assert response.status_code == 401

    def test_store_failure_returns_error_details(self, build_test_context, models):
        from api.main import create_app
        from defiseek.storage import InMemoryChatStore

        class BrokenStore(InMemoryChatStore):
            async def save_messages(self, messages):
                raise RuntimeError("db down")

        with TestClient(create_app(build_test_context(models=models, chat_store=BrokenStore()))) as test_client:
            response = test_client.post("/api/chat", json=chat_body(), headers=AUTH_HEADERS)

        assert response.status_code == 500
        body = response.json()
        assert set(body) == {"error", "details"}
        assert "db down" not in body["details"]


class TestChatManagement:
    """Test chat existence and deletion."""

    def test_exists(self, client):
        client.post("/api/chat", json=chat_body(), headers=AUTH_HEADERS)

        assert client.get("/api/chat/exists/chat-1", headers=AUTH_HEADERS).json() == {"exists": True}
        assert client.get("/api/chat/exists/other", headers=AUTH_HEADERS).json() == {"exists": False}
        other_user = {**AUTH_HEADERS, "X-User-Id": "user-2"}
        assert client.get("/api/chat/exists/chat-1", headers=other_user).json() == {"exists": False}

    def test_delete(self, client):
        client.post("/api/chat", json=chat_body(), headers=AUTH_HEADERS)

        assert client.delete("/api/chat", headers=AUTH_HEADERS).status_code == 404

        forbidden = client.delete("/api/chat?id=chat-1", headers={**AUTH_HEADERS, "X-User-Id": "user-2"})
        assert forbidden.status_code == 401

        response = client.delete("/api/chat?id=chat-1", headers=AUTH_HEADERS)
        assert response.status_code == 200
        assert response.text == "Chat deleted"
        assert client.get("/api/chat/exists/chat-1", headers=AUTH_HEADERS).json() == {"exists": False}

    def test_delete_without_id_checked_before_auth(self, client):
        assert client.delete("/api/chat").status_code == 404
        assert client.delete("/api/chat?id=chat-1").status_code == 401

    def test_history_never_fails(self, build_test_context, models):
        from api.main import create_app
        from defiseek.storage import InMemoryChatStore

        class BrokenStore(InMemoryChatStore):
            async def get_chats_by_user_id(self, user_id):
                raise RuntimeError("db down")

        with TestClient(create_app(build_test_context(models=models, chat_store=BrokenStore()))) as test_client:
            response = test_client.get("/api/history", headers=AUTH_HEADERS)
        assert response.status_code == 200
        assert response.json() == []


class TestVoteEndpoints:
    """Test message voting."""

    def test_vote_and_list(self, client):
        response = client.patch(
            "/api/vote",
            json={"chatId": "chat-1", "messageId": "msg-1", "type": "up"},
            headers=AUTH_HEADERS,
        )
        assert response.status_code == 200
        assert response.text == "Message voted"

        client.patch(
            "/api/vote",
            json={"chatId": "chat-1", "messageId": "msg-1", "type": "down"},
            headers=AUTH_HEADERS,
        )
        votes = client.get("/api/vote?chatId=chat-1", headers=AUTH_HEADERS).json()
        assert votes == [{"chatId": "chat-1", "messageId": "msg-1", "isUpvoted": False}]

    def test_missing_fields(self, client):
        response = client.patch("/api/vote", json={"chatId": "chat-1"}, headers=AUTH_HEADERS)
        assert response.status_code == 400

    def test_invalid_type(self, client):
        response = client.patch(
            "/api/vote",
            json={"chatId": "chat-1", "messageId": "msg-1", "type": "sideways"},
            headers=AUTH_HEADERS,
        )
        assert response.status_code == 400

    def test_list_requires_chat_id(self, client):
        assert client.get("/api/vote", headers=AUTH_HEADERS).status_code == 400

    def test_requires_auth(self, client):
        assert client.get("/api/vote?chatId=chat-1").status_code == 401
