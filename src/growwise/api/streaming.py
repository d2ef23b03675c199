"""SSE streaming of a chat turn using native LangGraph stream modes.

Tokens from the LLM are streamed as Server-Sent Events compatible with the
OpenAI chat completion chunk format. The final chunk also carries the turn
results (applied and pending actions, goal updates).
"""

import json
import logging
import re
import time
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable

from langchain_core.messages import AIMessageChunk, BaseMessage

from ..exceptions import GrowWiseError
from .schemas import ChatCompletionChoice, ChatCompletionChunk, DeltaContent

logger = logging.getLogger(__name__)

CHAT_COMPLETION_PREFIX = "chatcmpl-"
STREAMED_NODES = ("chat", "decision")


def parse_message_chunk(chunk: BaseMessage) -> str | None:
    """Extract the text of a LangChain message chunk.

    Handles both plain string content and Gemini's list-of-blocks content,
    where only text blocks are forwarded.
    """
    if not isinstance(chunk, AIMessageChunk) or not chunk.content:
        return None

    if isinstance(chunk.content, str):
        return chunk.content

    parts = []
    for item in chunk.content:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, dict) and item.get("type") == "text":
            parts.append(item.get("text", ""))
    return "".join(parts) or None


def split_at_newline(buffer: str) -> tuple[str, str]:
    """Split off everything up to and including the last newline."""
    last_newline_idx = buffer.rfind("\n")
    if last_newline_idx == -1:
        return "", buffer
    return buffer[: last_newline_idx + 1], buffer[last_newline_idx + 1 :]


class ChunkWriter:
    """Formats SSE lines for one streamed response."""

    def __init__(self, model_name: str):
        self.response_id = f"{CHAT_COMPLETION_PREFIX}{uuid.uuid4().hex[:12]}"
        self.model_name = model_name
        self.is_first_chunk = True

    def content(self, text: str) -> str:
        delta_kwargs = {"content": re.sub(r"\n{2,}", "\n\n", text)}
        if self.is_first_chunk:
            delta_kwargs["role"] = "assistant"
            self.is_first_chunk = False
        return self._line(ChatCompletionChoice(delta=DeltaContent(**delta_kwargs)))

    def final(self, **extras) -> str:
        choice = ChatCompletionChoice(delta=DeltaContent(), finish_reason="stop")
        return self._line(choice, **{k: v for k, v in extras.items() if v})

    def _line(self, choice: ChatCompletionChoice, **extras) -> str:
        chunk = ChatCompletionChunk(
            id=self.response_id,
            created=int(time.time()),
            model=self.model_name,
            choices=[choice],
            **extras,
        )
        return "data: " + chunk.model_dump_json(exclude_unset=True, by_alias=True) + "\n\n"


async def stream_turn(
    graph,
    state: dict,
    config: dict,
    model_name: str = "growwise",
    request_id: str | None = None,
    on_complete: Callable[[dict], Awaitable[None]] | None = None,
) -> AsyncGenerator[str, None]:
    """
    Run one chat turn and stream it as SSE.

    Text is buffered and flushed at newline boundaries so markdown is never cut
    mid-line. Turns that produce no tokens (goal updates, fallback replies)
    send their final response as a single chunk.

    Args:
        graph: The compiled turn graph.
        state: Initial graph state for the turn.
        config: Run config carrying the per-request dependencies.
        model_name: The name of the model to display in the response chunks.
        request_id: Id reported back on error events.
        on_complete: Called with the final graph state once the turn finished.

    Yields:
        SSE data strings ("data: {...}\\n\\n"), ending with "data: [DONE]".
    """
    writer = ChunkWriter(model_name)
    content_buffer = ""
    streamed_any = False
    final_state: dict = {}

    try:
        async for mode, payload in graph.astream(state, config=config, stream_mode=["messages", "values"]):
            if mode == "values":
                final_state = payload
                continue

            # Payload in 'messages' mode is a tuple: (chunk, metadata)
            chunk, node_info = payload
            if node_info.get("langgraph_node") not in STREAMED_NODES:
                continue
            text = parse_message_chunk(chunk)
            if not text:
                continue

            streamed_any = True
            content_buffer += text
            to_yield, content_buffer = split_at_newline(content_buffer)
            if to_yield:
                yield writer.content(to_yield)

        if content_buffer:
            yield writer.content(content_buffer)
        if not streamed_any and final_state.get("response"):
            yield writer.content(final_state["response"])

        if on_complete is not None:
            await on_complete(final_state)

        effects = final_state.get("effects")
        yield writer.final(
            goal_updated=final_state.get("goal_updated"),
            applied_actions=effects.applied_actions if effects else None,
            pending_actions=effects.pending_actions if effects else None,
        )
    except GrowWiseError as exc:
        logger.error("Streaming turn failed (%s): %s", request_id, exc)
        yield "data: " + json.dumps({"error": exc.message, "requestId": request_id}) + "\n\n"
    except Exception:
        logger.exception("Unexpected error while streaming turn %s", request_id)
        yield "data: " + json.dumps({"error": "Something went wrong. Please try again.", "requestId": request_id}) + "\n\n"

    yield "data: [DONE]\n\n"
