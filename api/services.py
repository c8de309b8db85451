"""
DeFiSeek - API Services

Service layer for the chat endpoints: chat ownership and titles, the
tool-calling generation loop that feeds a StreamingSession, persistence of
the exchanged messages, history and votes.
"""

from __future__ import annotations

import asyncio
import json
import re
from datetime import date
from itertools import count
from typing import Callable
from uuid import uuid4

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from defiseek.errors import AuthRequired
from defiseek.llm import message_text
from defiseek.logging import chat_log_context, get_api_logger
from defiseek.models import Chat, StoredMessage, Vote, VoteType

from agents.prompts import SYSTEM_PROMPT, TITLE_SYSTEM_PROMPT
from api.context import AppContext
from api.messages import sanitize_response_messages, to_stored_content
from api.streaming import StreamingSession

logger = get_api_logger()

TITLE_MAX_LENGTH = 60
TITLE_SUFFIXES = ["Discussion", "Analysis", "Guide", "Overview", "Deep Dive", "Exploration"]

GENERATION_ERROR_MESSAGE = "An error occurred while processing your request"
GENERATION_TIMEOUT_MESSAGE = "The response took too long to generate. Please try again."


# =============================================================================
# Titles
# =============================================================================

def fallback_title(text: str) -> str:
    """Title-cased keywords from the message when the model can't produce a title."""
    words = [w for w in re.sub(r"[^a-zA-Z0-9\s]", " ", text.lower()).split() if len(w) > 2][:6]
    if not words:
        return "New Chat"
    title = " ".join(w[0].upper() + w[1:] for w in words)
    return title[:50] + ("..." if len(title) > 50 else "")


def clean_title(raw: str) -> str:
    title = re.sub(r"['\":\[\]]", "", raw.strip())
    return re.sub(r"\s+", " ", title).strip()[:TITLE_MAX_LENGTH]


def _with_suffix(title: str, suffix: str) -> str:
    candidate = f"{title} {suffix}"
    if len(candidate) > TITLE_MAX_LENGTH:
        candidate = f"{title[:TITLE_MAX_LENGTH - len(suffix) - 1]} {suffix}"
    return candidate


def unique_title(title: str, existing: set[str]) -> str:
    """
    Make a title distinct from the user's existing titles (compared lowercase).

    Descriptive suffixes are tried first, then a numeric counter.
    """
    if title.lower() not in existing:
        return title
    for suffix in TITLE_SUFFIXES:
        candidate = _with_suffix(title, suffix)
        if candidate.lower() not in existing:
            return candidate
    for n in count(2):
        candidate = _with_suffix(title, str(n))
        if candidate.lower() not in existing:
            return candidate


async def generate_title(
    llm_builder: Callable[[], BaseChatModel],
    text: str,
    existing_titles: set[str],
) -> str:
    """
    Generate a unique chat title for the first user message.

    Args:
        llm_builder: Zero-argument callable returning the title model
        text: Plain text of the user's message
        existing_titles: The user's current titles, lowercased
    """
    try:
        llm = llm_builder()
        result = await llm.ainvoke([
            SystemMessage(content=TITLE_SYSTEM_PROMPT),
            HumanMessage(content=text),
        ])
        base = clean_title(message_text(result))
    except Exception as e:
        logger.warning("title_generation_failed", error=str(e))
        base = ""

    if not base:
        base = clean_title(fallback_title(text))
    return unique_title(base, existing_titles)


# =============================================================================
# Chat Service
# =============================================================================

class ChatService:
    """
    Chat operations for one application context.

    Generation runs as a background task writing into a StreamingSession;
    the session is closed exactly once whether generation succeeds or fails.
    """

    def __init__(self, context: AppContext) -> None:
        self.context = context
        self.store = context.chat_store
        self.settings = context.settings

    # ── Chats ──

    async def ensure_chat(self, chat_id: str, user_id: str, first_message: HumanMessage) -> Chat:
        """
        Load the chat or create it with a generated title.

        Raises:
            AuthRequired: The chat belongs to another user
        """
        chat = await self.store.get_chat_by_id(chat_id)
        if chat is not None:
            if chat.user_id != user_id:
                logger.warning("chat_owner_mismatch", chat_id=chat_id)
                raise AuthRequired()
            return chat

        title = await self.title_for(user_id, message_text(first_message))
        chat = Chat(id=chat_id, user_id=user_id, title=title)
        await self.store.save_chat(chat)
        logger.info("chat_created", chat_id=chat_id, title=title)
        return chat

    async def title_for(self, user_id: str, text: str) -> str:
        try:
            existing = {c.title.lower() for c in await self.store.get_chats_by_user_id(user_id)}
            llm = self.settings.llm
            return await generate_title(
                lambda: self.context.llm_for(llm.default_model, llm.title_temperature),
                text,
                existing,
            )
        except Exception as e:
            logger.error("title_lookup_failed", user_id=user_id, error=str(e))
            return f"New Chat {date.today().isoformat()}"

    async def save_user_message(self, chat_id: str, message: HumanMessage) -> None:
        role, content = to_stored_content(message)
        await self.store.save_messages([
            StoredMessage(id=str(uuid4()), chat_id=chat_id, role=role, content=content),
        ])

    async def delete_chat(self, chat_id: str, user_id: str) -> bool:
        """
        Delete a chat owned by the user.

        Returns:
            False if the chat does not exist

        Raises:
            AuthRequired: The chat belongs to another user
        """
        chat = await self.store.get_chat_by_id(chat_id)
        if chat is None:
            return False
        if chat.user_id != user_id:
            raise AuthRequired()
        await self.store.delete_chat_by_id(chat_id)
        return True

    async def chat_exists(self, chat_id: str, user_id: str) -> bool:
        try:
            chat = await self.store.get_chat_by_id(chat_id)
        except Exception as e:
            logger.error("chat_exists_check_failed", chat_id=chat_id, error=str(e))
            return False
        return chat is not None and chat.user_id == user_id

    async def history(self, user_id: str) -> list[Chat]:
        return await self.store.get_chats_by_user_id(user_id)

    async def votes(self, chat_id: str) -> list[Vote]:
        return await self.store.get_votes_by_chat_id(chat_id)

    async def vote(self, chat_id: str, message_id: str, vote_type: VoteType) -> None:
        await self.store.vote_message(chat_id, message_id, vote_type)
        logger.info("message_voted", chat_id=chat_id, message_id=message_id, type=vote_type.value)

    # ── Generation ──

    def start_generation(
        self,
        chat_id: str,
        llm: BaseChatModel,
        messages: list[BaseMessage],
        session: StreamingSession | None = None,
    ) -> StreamingSession:
        """Announce the chat id and start generating in the background."""
        session = session or StreamingSession()
        session.write_annotation({"chatId": chat_id})
        self.context.spawn(self.run_generation(session, chat_id, llm, messages))
        return session

    async def run_generation(
        self,
        session: StreamingSession,
        chat_id: str,
        llm: BaseChatModel,
        messages: list[BaseMessage],
    ) -> None:
        limit = self.settings.api.max_duration_seconds
        with chat_log_context(chat_id):
            try:
                response = await asyncio.wait_for(self.stream_response(session, llm, messages), timeout=limit)
                await self.persist_response(session, chat_id, response)
                session.write_finish()
            except asyncio.TimeoutError:
                logger.error("chat_generation_timeout", limit_seconds=limit)
                session.write_error(GENERATION_TIMEOUT_MESSAGE)
            except Exception as e:
                logger.exception("chat_generation_failed", error=str(e))
                session.write_error(GENERATION_ERROR_MESSAGE)
            finally:
                session.close()

    async def stream_response(
        self,
        session: StreamingSession,
        llm: BaseChatModel,
        messages: list[BaseMessage],
    ) -> list[BaseMessage]:
        """
        Stream model output, executing tool calls between steps.

        Returns:
            Messages produced in this turn (assistant and tool messages)
        """
        adapter = self.context.tool_adapter
        model = llm.bind_tools(list(adapter.tools.values()))
        conversation: list[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT), *messages]
        produced: list[BaseMessage] = []

        for step in range(self.settings.llm.max_steps):
            aggregate = None
            async for chunk in model.astream(conversation):
                text = message_text(chunk)
                if text:
                    session.write_text(text)
                aggregate = chunk if aggregate is None else aggregate + chunk

            if aggregate is None:
                break

            calls = [
                {"name": c["name"], "args": c.get("args") or {}, "id": c.get("id") or f"call_{uuid4().hex[:12]}"}
                for c in getattr(aggregate, "tool_calls", [])
            ]
            reply = AIMessage(content=aggregate.content, tool_calls=calls)
            produced.append(reply)
            conversation.append(reply)

            if not calls:
                break

            logger.info("tool_calls_requested", step=step, tools=[c["name"] for c in calls])
            for call in calls:
                session.write_tool_call(call["id"], call["name"], call["args"])

            results = await asyncio.gather(*(adapter.execute(call) for call in calls))
            for call, result in zip(calls, results):
                session.write_tool_result(call["id"], result)
                tool_message = ToolMessage(
                    content=json.dumps(result, default=str),
                    tool_call_id=call["id"],
                    name=call["name"],
                )
                produced.append(tool_message)
                conversation.append(tool_message)

        return produced

    async def persist_response(
        self,
        session: StreamingSession,
        chat_id: str,
        response: list[BaseMessage],
    ) -> None:
        """Save the turn's messages and announce each assistant message id."""
        sanitized = sanitize_response_messages(response)
        if not sanitized:
            return

        stored = []
        for message in sanitized:
            role, content = to_stored_content(message)
            stored.append(StoredMessage(id=str(uuid4()), chat_id=chat_id, role=role, content=content))

        try:
            await self.store.save_messages(stored)
        except Exception as e:
            logger.error("response_persist_failed", chat_id=chat_id, error=str(e))
            return

        for message in stored:
            if message.role == "assistant":
                session.write_annotation({"messageIdFromServer": message.id})
        logger.info("response_persisted", chat_id=chat_id, messages=len(stored))
