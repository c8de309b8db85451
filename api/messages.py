"""
DeFiSeek - Chat Message Handling

Conversion between client chat messages, LangChain messages and the
stored message format, plus the filtering applied before generation and
before persistence.
"""

from __future__ import annotations

import json
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, ToolMessage

from defiseek.models import ClientMessage

FALLBACK_USER_MESSAGE = "Hello, I need help with blockchain analysis."


def _user_content(message: ClientMessage) -> str | list[dict[str, Any]]:
    images = [
        a for a in (message.experimental_attachments or [])
        if (a.content_type or "").startswith("image/")
    ]
    if not images:
        return message.content
    parts: list[dict[str, Any]] = []
    if message.content:
        parts.append({"type": "text", "text": message.content})
    parts += [{"type": "image_url", "image_url": {"url": a.url}} for a in images]
    return parts


def to_langchain_messages(messages: list[ClientMessage]) -> list[BaseMessage]:
    """
    Convert client messages into LangChain messages.

    Assistant tool invocations with results become an ``AIMessage`` with
    tool calls followed by one ``ToolMessage`` per result. Client-supplied
    system and data messages are ignored.
    """
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "user":
            converted.append(HumanMessage(content=_user_content(message)))
        elif message.role == "assistant":
            completed = [i for i in (message.tool_invocations or []) if i.state == "result"]
            converted.append(AIMessage(
                content=message.content,
                tool_calls=[
                    {"name": i.tool_name, "args": i.args, "id": i.tool_call_id}
                    for i in completed
                ],
            ))
            converted += [
                ToolMessage(
                    content=json.dumps(i.result, default=str),
                    tool_call_id=i.tool_call_id,
                    name=i.tool_name,
                )
                for i in completed
            ]
    return converted


def most_recent_user_message(messages: list[BaseMessage]) -> HumanMessage | None:
    for message in reversed(messages):
        if isinstance(message, HumanMessage):
            return message
    return None


def has_usable_content(message: BaseMessage) -> bool:
    content = message.content
    if isinstance(message, AIMessage) and message.tool_calls:
        return True
    if isinstance(content, str):
        return bool(content.strip())
    if not content:
        return False
    if isinstance(message, ToolMessage):
        return True
    for part in content:
        if isinstance(part, str) and part.strip():
            return True
        if isinstance(part, dict):
            if part.get("type") == "text" and str(part.get("text", "")).strip():
                return True
            if part.get("type") == "image_url" and isinstance(message, HumanMessage):
                return True
    return False


def filter_valid_messages(messages: list[BaseMessage]) -> list[BaseMessage]:
    """Drop messages with no usable content; never returns an empty list."""
    valid = [m for m in messages if has_usable_content(m)]
    return valid or [HumanMessage(content=FALLBACK_USER_MESSAGE)]


def sanitize_response_messages(messages: list[BaseMessage]) -> list[BaseMessage]:
    """Remove tool calls that never received a result, and messages left empty by that."""
    answered = {m.tool_call_id for m in messages if isinstance(m, ToolMessage)}
    sanitized: list[BaseMessage] = []
    for message in messages:
        if isinstance(message, AIMessage):
            calls = [c for c in message.tool_calls if c.get("id") in answered]
            if not calls and not has_usable_content(AIMessage(content=message.content)):
                continue
            sanitized.append(AIMessage(content=message.content, tool_calls=calls))
        else:
            sanitized.append(message)
    return sanitized


def to_stored_content(message: BaseMessage) -> tuple[str, Any]:
    """Role and content parts for persistence."""
    if isinstance(message, ToolMessage):
        try:
            result = json.loads(message.content) if isinstance(message.content, str) else message.content
        except json.JSONDecodeError:
            result = message.content
        return "tool", [{
            "type": "tool-result",
            "toolCallId": message.tool_call_id,
            "toolName": message.name,
            "result": result,
        }]

    if isinstance(message, AIMessage):
        parts: list[dict[str, Any]] = []
        text = message.content if isinstance(message.content, str) else "".join(
            p.get("text", "") for p in message.content if isinstance(p, dict)
        )
        if text:
            parts.append({"type": "text", "text": text})
        parts += [
            {"type": "tool-call", "toolCallId": c["id"], "toolName": c["name"], "args": c["args"]}
            for c in message.tool_calls
        ]
        return "assistant", parts

    return "user", message.content
