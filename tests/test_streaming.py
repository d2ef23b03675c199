import json
from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessageChunk

from src.growwise.api.schemas import ChatCompletionChunk
from src.growwise.api.streaming import parse_message_chunk, stream_turn
from src.growwise.exceptions import LLMGatewayError
from src.growwise.models import EffectResult


def mock_graph(*events):
    graph = MagicMock()

    async def mock_astream(*args, **kwargs):
        for event in events:
            if isinstance(event, Exception):
                raise event
            yield event

    graph.astream = mock_astream
    return graph


def text(content, node="chat"):
    return "messages", (AIMessageChunk(content=content), {"langgraph_node": node})


async def collect(graph, **kwargs) -> tuple[list[dict], list[str]]:
    lines = [line async for line in stream_turn(graph, {}, {}, **kwargs)]
    chunks = [json.loads(line[6:]) for line in lines if line.startswith("data: ") and line.strip() != "data: [DONE]"]
    return chunks, lines


@pytest.mark.asyncio
async def test_openai_schema_compliance():
    """Verify that all generated chunks are valid ChatCompletionChunk objects."""
    graph = mock_graph(text([{"type": "text", "text": "Hello\n"}]), text("World"))

    chunks, lines = await collect(graph)

    for chunk_data in chunks:
        ChatCompletionChunk(**chunk_data)
    assert lines[-1] == "data: [DONE]\n\n"


@pytest.mark.asyncio
async def test_only_reply_nodes_are_streamed():
    """Verify that tokens from other nodes are not streamed."""
    graph = mock_graph(text("Skip this\n", node="route"), text("Keep this\n", node="decision"))

    chunks, _ = await collect(graph)

    assert len(chunks) == 2
    assert chunks[0]["choices"][0]["delta"]["content"] == "Keep this\n"
    assert "Skip" not in str(chunks)


@pytest.mark.asyncio
async def test_role_only_in_first_chunk():
    """Verify assistant role is only in the first chunk."""
    graph = mock_graph(text("Hello \n"), text(" World"))

    chunks, _ = await collect(graph)

    assert len(chunks) == 3
    assert chunks[0]["choices"][0]["delta"] == {"content": "Hello \n", "role": "assistant"}
    assert chunks[1]["choices"][0]["delta"] == {"content": " World"}


@pytest.mark.asyncio
async def test_multi_line_buffering():
    """Verify that chunks are yielded only at newlines or end of stream."""
    graph = mock_graph(text("Part 1"), text(" - Part 2\n*Next line"))

    chunks, _ = await collect(graph)

    assert [c["choices"][0]["delta"].get("content") for c in chunks] == ["Part 1 - Part 2\n", "*Next line", None]
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"


@pytest.mark.asyncio
async def test_empty_chunks_ignored():
    graph = mock_graph(text([]), text([{"type": "thinking", "thinking": "Hmm"}]), text("Valid\n"))

    chunks, _ = await collect(graph)

    assert len(chunks) == 2
    assert chunks[0]["choices"][0]["delta"]["content"] == "Valid\n"


@pytest.mark.asyncio
async def test_unstreamed_response_sent_whole():
    """Verify turns without model tokens send their final response as one chunk."""
    graph = mock_graph(("values", {"response": "Goal Updated Successfully!", "goal_updated": True}))

    chunks, _ = await collect(graph)

    assert chunks[0]["choices"][0]["delta"]["content"] == "Goal Updated Successfully!"
    assert chunks[-1]["goalUpdated"] is True


@pytest.mark.asyncio
async def test_final_chunk_carries_effects_and_completion_hook():
    """Verify the final state reaches the completion hook and the last chunk."""
    effects = EffectResult(applied_actions=["Paid $500."], pending_actions=[])
    final_state = {"response": "Done.", "effects": effects}
    graph = mock_graph(text("Done."), ("values", final_state))
    completed = []

    async def on_complete(state):
        completed.append(state)

    chunks, _ = await collect(graph, on_complete=on_complete)

    assert completed == [final_state]
    assert chunks[-1]["appliedActions"] == ["Paid $500."]
    assert "pendingActions" not in chunks[-1]
    assert "goalUpdated" not in chunks[-1]


@pytest.mark.asyncio
async def test_error_becomes_event():
    """Verify failures end the stream with an error event and [DONE]."""
    graph = mock_graph(text("Partial\n"), LLMGatewayError("rate_limited"))

    _, lines = await collect(graph, request_id="req_1")

    assert json.loads(lines[-2][6:]) == {
        "error": "We're experiencing high demand. Please try again in a moment.",
        "requestId": "req_1",
    }
    assert lines[-1] == "data: [DONE]\n\n"


@pytest.mark.asyncio
async def test_unexpected_error_is_generic():
    graph = mock_graph(RuntimeError("boom"))

    _, lines = await collect(graph)

    assert json.loads(lines[0][6:])["error"] == "Something went wrong. Please try again."


def test_parse_message_chunk():
    assert parse_message_chunk(AIMessageChunk(content="plain")) == "plain"
    assert parse_message_chunk(AIMessageChunk(content=[{"type": "text", "text": "a"}, "b"])) == "ab"
    assert parse_message_chunk(AIMessageChunk(content="")) is None
