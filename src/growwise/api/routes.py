"""FastAPI route handlers for the financial chat."""

import logging
import time
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from sqlalchemy.ext.asyncio import AsyncSession

from ..agent.graph import create_turn_graph
from ..agent.nodes import TurnDependencies
from ..agent.parser import is_structured_context
from ..agent.prompts import get_prompt_type
from ..finance.demo_profiles import get_demo_profile, reset_demo_profile
from ..finance.summary_cache import view_mode_for
from ..models import Identity
from ..storage.repositories import ConversationRepository
from .auth import get_current_user_id
from .database import db_manager, get_db
from .schemas import ChatMessage, DemoProfileResponse, FinancialChatRequest, FinancialChatResponse
from .streaming import stream_turn

router = APIRouter()

# Compiled once; overridable through app.dependency_overrides
_turn_graph = None

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_turn_graph():
    global _turn_graph
    if _turn_graph is None:
        _turn_graph = create_turn_graph()
    return _turn_graph


def new_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def resolve_identity(body: FinancialChatRequest, user_id: str | None) -> Identity:
    """Demo requests act for the persona and ignore any bearer token."""
    demo_profile_id = body.demo.demo_profile_id if body.demo else None
    if demo_profile_id:
        get_demo_profile(demo_profile_id)
        return Identity(demo_profile_id=demo_profile_id)
    return Identity(user_id=user_id)


def to_langchain_messages(messages: list[ChatMessage]) -> list[BaseMessage]:
    """Convert client messages; system prompts are chosen server-side."""
    lc_messages = []
    for msg in messages:
        if msg.role == "user":
            lc_messages.append(HumanMessage(content=msg.content))
        elif msg.role == "assistant":
            lc_messages.append(AIMessage(content=msg.content))
    return lc_messages


async def log_user_message(
    session: AsyncSession, body: FinancialChatRequest, identity: Identity
) -> bool:
    """Append the latest user message to the conversation log, if there is one."""
    if not body.conversation_id or not identity.user_id or not body.messages:
        return False
    last = body.messages[-1]
    if last.role != "user":
        return False
    conversations = ConversationRepository(session)
    await conversations.get_or_create(body.conversation_id, identity.user_id, body.context_type)
    await conversations.add_message(body.conversation_id, "user", last.content, silent=last.silent)
    return True


def build_response(body: FinancialChatRequest, result: dict[str, Any]) -> FinancialChatResponse:
    """Only fields the turn produced are set, so the JSON stays minimal."""
    context_type = body.context_type or "unknown"
    fields: dict[str, Any] = {"message": result.get("response")}

    effects = result.get("effects")
    if effects is not None:
        fields["applied_actions"] = effects.applied_actions
        fields["pending_actions"] = effects.pending_actions
    if result.get("goal_updated"):
        fields["goal_updated"] = True
    if result.get("cached"):
        fields["cached"] = True

    parsed = result.get("parsed")
    if parsed is not None and is_structured_context(context_type, get_prompt_type(context_type)):
        fields["message"] = parsed.summary
        fields["summary"] = parsed.summary
        fields["suggestions"] = parsed.suggestions
    return FinancialChatResponse(**fields)


async def cached_suggestions(
    body: FinancialChatRequest, deps: TurnDependencies
) -> FinancialChatResponse:
    """Serve the `suggestions` endpoint from the summary cache only."""
    empty = FinancialChatResponse(message=None, suggestions=[])
    view_mode = body.view_mode or view_mode_for(body.context_type)
    if deps.cache is None or view_mode is None:
        return empty
    financial = await deps.load_financials()
    if financial is None:
        return empty

    cached = await deps.cache.get_suggestions(deps.identity, view_mode, financial.snapshot)
    if cached is None:
        return empty
    return FinancialChatResponse(message=cached.summary_text, suggestions=cached.suggestions, cached=True)


async def stream_chat(graph, body: FinancialChatRequest, identity: Identity, request_id: str, state: dict):
    """Stream one turn on its own session, which outlives the request handler."""
    async with db_manager.session() as session:
        deps = TurnDependencies.for_request(identity, session, request_id)
        logged = await log_user_message(session, body, identity)

        async def on_complete(final_state: dict) -> None:
            if logged and final_state.get("response"):
                await ConversationRepository(session).add_message(
                    body.conversation_id, "assistant", final_state["response"]
                )

        async for line in stream_turn(
            graph,
            state,
            {"configurable": {"deps": deps}},
            request_id=request_id,
            on_complete=on_complete,
        ):
            yield line


@router.post(
    "/functions/v1/financial-chat",
    response_model=FinancialChatResponse,
    response_model_exclude_unset=True,
)
async def financial_chat(
    body: FinancialChatRequest,
    request: Request,
    user_id: str | None = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db),
    graph=Depends(get_turn_graph),
):
    """Answer one chat turn.

    Decision sentences ("I'd like to approve ...") apply the suggestion's
    effects before the model confirms them. Structured contexts (net worth,
    assets, liabilities, dashboard) answer with a summary and suggestions.
    """
    request_id = new_request_id()
    request.state.request_id = request_id
    started = time.perf_counter()

    identity = resolve_identity(body, user_id)
    context_type = body.context_type or "unknown"
    logger.info(
        "[%s] financial-chat start: context=%s identity=%s endpoint=%s stream=%s",
        request_id,
        context_type,
        identity.key,
        body.endpoint,
        body.stream,
    )

    if body.endpoint == "suggestions":
        deps = TurnDependencies.for_request(identity, session, request_id)
        response = await cached_suggestions(body, deps)
        logger.info("[%s] suggestions served (hit=%s)", request_id, bool(response.suggestions))
        return response

    state = {
        "messages": to_langchain_messages(body.messages),
        "context_type": context_type,
        "context_data": body.context_data or {},
    }

    # Structured contexts always answer with JSON so the summary can be parsed
    structured = is_structured_context(context_type, get_prompt_type(context_type))
    if body.stream and not structured:
        logger.info("[%s] streaming response", request_id)
        return StreamingResponse(
            stream_chat(graph, body, identity, request_id, state),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    deps = TurnDependencies.for_request(identity, session, request_id)
    logged = await log_user_message(session, body, identity)
    result = await graph.ainvoke(state, config={"configurable": {"deps": deps}})
    response = build_response(body, result)

    if logged and result.get("response"):
        await ConversationRepository(session).add_message(body.conversation_id, "assistant", result["response"])

    logger.info(
        "[%s] financial-chat done in %.0fms: route=%s cached=%s",
        request_id,
        (time.perf_counter() - started) * 1000,
        result.get("route"),
        bool(result.get("cached")),
    )
    return response


@router.get("/functions/v1/demo-profiles/{profile_id}", response_model=DemoProfileResponse)
async def demo_profile(profile_id: str):
    """Current state of a demo persona, including effects applied so far."""
    profile = get_demo_profile(profile_id)
    return DemoProfileResponse.from_profile(profile)


@router.post("/functions/v1/demo-profiles/{profile_id}/reset", response_model=DemoProfileResponse)
async def reset_demo(profile_id: str):
    """Restore a demo persona to its fixture values."""
    profile = reset_demo_profile(profile_id)
    logger.info("Demo profile %s reset", profile_id)
    return DemoProfileResponse.from_profile(profile)
