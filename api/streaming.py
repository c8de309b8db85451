"""
DeFiSeek - Streaming Session

Per-request writer for the line-oriented data-stream protocol the chat
client consumes. Each part is ``<code>:<json>\\n``:

    0  text delta
    8  message annotations (list of objects)
    9  tool call
    a  tool result
    3  error message
    d  finish
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator

from defiseek.logging import get_logger

logger = get_logger(__name__, component="streaming")

STREAM_HEADERS = {"x-vercel-ai-data-stream": "v1"}


def format_part(code: str, value: Any) -> str:
    return f"{code}:{json.dumps(value, separators=(',', ':'), default=str)}\n"


class StreamingSession:
    """
    Queue-backed stream for one chat request.

    Writers never block on the client. ``close()`` is idempotent and ends
    the stream; parts written after it are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, part: str) -> None:
        if self._closed:
            logger.debug("stream_write_after_close", part=part[:40])
            return
        self._queue.put_nowait(part)

    def write_text(self, text: str) -> None:
        self.write(format_part("0", text))

    def write_annotation(self, annotation: dict[str, Any]) -> None:
        self.write(format_part("8", [annotation]))

    def write_tool_call(self, tool_call_id: str, tool_name: str, args: dict[str, Any]) -> None:
        self.write(format_part("9", {"toolCallId": tool_call_id, "toolName": tool_name, "args": args}))

    def write_tool_result(self, tool_call_id: str, result: Any) -> None:
        self.write(format_part("a", {"toolCallId": tool_call_id, "result": result}))

    def write_error(self, message: str) -> None:
        self.write(format_part("3", message))

    def write_finish(self, reason: str = "stop") -> None:
        self.write(format_part("d", {"finishReason": reason}))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[str]:
        """Yield parts until the session is closed."""
        while True:
            part = await self._queue.get()
            if part is None:
                return
            yield part
