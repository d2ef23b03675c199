"""Node functions for the chat-turn graph."""

import logging
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.runnables import RunnableConfig
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..exceptions import IdentityRequiredError, InvalidTransitionError, LLMGatewayError, StoreWriteError
from ..finance.context import build_context, build_context_from_data
from ..finance.effects import TECHNICAL_ISSUE, EffectApplier
from ..finance.goal_updates import apply_goal_update, parse_goal_update
from ..finance.stores import DatabaseStore, DemoStore, FinanceStore
from ..finance.summary_cache import SummaryCache, view_mode_for
from ..models import (
    EffectResult,
    FinancialProfile,
    FinancialSnapshot,
    Identity,
    ParsedResponse,
    SuggestionActionType,
    TurnState,
)
from .decisions import (
    DECISION_CONTEXT_TYPES,
    FALLBACK_RESPONSES,
    SuggestionStateMachine,
    build_decision_prompt,
    parse_decision,
    suggestion_key,
)
from .gateway import ChatGateway, message_text
from .parser import coerce_action_type, infer_action_type, is_structured_context, parse_structured_response
from .prompts import get_prompt_type, load_prompt

logger = logging.getLogger(__name__)


class TurnDependencies:
    """Per-request collaborators, passed to the graph through its run config."""

    def __init__(
        self,
        identity: Identity,
        store: FinanceStore | None = None,
        cache: SummaryCache | None = None,
        request_id: str | None = None,
    ):
        self.identity = identity
        self.store = store
        self.cache = cache
        self.request_id = request_id

    @classmethod
    def for_request(cls, identity: Identity, session: AsyncSession, request_id: str | None = None):
        """Select the backing store once, at request entry."""
        if identity.is_demo:
            store = DemoStore.for_profile(identity.demo_profile_id)
        elif identity.user_id:
            store = DatabaseStore(session, identity.user_id)
        else:
            store = None
        cache = None if identity.is_anonymous else SummaryCache(session, ttl_hours=settings.summary_cache_ttl_hours)
        return cls(identity, store=store, cache=cache, request_id=request_id)

    async def load_financials(self) -> FinancialProfile | None:
        if self.store is None:
            return None
        return await self.store.load()

    async def financial_context(self, context_type: str, context_data: dict[str, Any] | None) -> str:
        financial = await self.load_financials()
        if financial is None:
            logger.warning("No identity available, using client data for %s context", context_type)
            return build_context_from_data(context_type, context_data)
        return build_context(financial, context_type, context_data, demo_name=self.store.display_name)


def get_dependencies(config: RunnableConfig) -> TurnDependencies:
    return config["configurable"]["deps"]


def last_user_text(messages: list[BaseMessage]) -> str | None:
    if messages and isinstance(messages[-1], HumanMessage):
        return message_text(messages[-1])
    return None


def route_turn(state: TurnState) -> dict:
    """Classify the turn as a decision, a goal update candidate or plain chat."""
    context_type = state.get("context_type") or "unknown"
    text = last_user_text(state.get("messages", []))

    if context_type in DECISION_CONTEXT_TYPES and text is not None:
        parsed = parse_decision(text)
        if parsed.is_decision:
            logger.info("Decision turn: %s %r", parsed.decision, parsed.suggestion_title)
            return {"route": "decision", "decision": parsed}

    if context_type == "goal" and (state.get("context_data") or {}).get("id"):
        return {"route": "goal_update"}
    return {"route": "chat"}


async def resolve_action_type(
    deps: TurnDependencies,
    title: str,
    context_type: str,
    context_data: dict[str, Any],
    snapshot: FinancialSnapshot | None,
) -> SuggestionActionType:
    """Explicit action type first, then the cached suggestion, then title keywords."""
    if context_data.get("actionType"):
        return coerce_action_type(context_data["actionType"], title, context_type)

    view_mode = view_mode_for(context_type)
    if deps.cache is not None and view_mode and snapshot is not None:
        cached = await deps.cache.get_including_expired(deps.identity, view_mode, snapshot)
        if cached:
            for suggestion in cached.suggestions:
                if suggestion.title.strip().lower() == title.strip().lower():
                    return suggestion.action_type
    return infer_action_type(title, context_type)


async def record_decision(
    store: FinanceStore, key: str, title: str, decision: str, context_type: str, goal_id: str | None
) -> tuple[str | None, bool]:
    """Consume the suggestion server-side.

    Returns the earlier terminal decision (if any) and whether recording worked.
    """
    previous = await store.get_decision(key)
    machine = SuggestionStateMachine(previous or "pending")
    try:
        machine.apply(decision)
    except InvalidTransitionError:
        logger.info("Suggestion %r already %s; not applying again", key, previous)
        return previous, True

    try:
        await store.record_decision(key, title, decision, context_type=context_type, goal_id=goal_id)
    except StoreWriteError:
        return None, False
    return None, True


def create_decision_node(gateway: ChatGateway):
    """Create the node that handles approve / deny / know-more turns."""

    async def decision_node(state: TurnState, config: RunnableConfig) -> dict:
        deps = get_dependencies(config)
        parsed = state["decision"]
        decision, title = parsed.decision, parsed.suggestion_title
        context_type = state.get("context_type") or "unknown"
        context_data = state.get("context_data") or {}

        financial = await deps.load_financials()
        snapshot = financial.snapshot if financial else None
        view_mode = view_mode_for(context_type)
        response_key = suggestion_key(context_type, title, context_data)
        can_cache_response = deps.cache is not None and view_mode is not None and snapshot is not None

        effects = EffectResult()
        already_decided = None

        if decision in SuggestionStateMachine.TERMINAL:
            if deps.store is None:
                if decision == "approved":
                    raise IdentityRequiredError("Sign in or pick a demo profile to act on suggestions.")
            else:
                goal_id = context_data.get("id") if context_type == "goal" else None
                already_decided, recorded = await record_decision(
                    deps.store, response_key, title, decision, context_type, goal_id
                )
                if not recorded:
                    effects = EffectResult(pending_actions=[TECHNICAL_ISSUE.format(what="plan")])
                elif decision == "approved" and already_decided is None:
                    action_type = await resolve_action_type(deps, title, context_type, context_data, snapshot)
                    effects = await EffectApplier(deps.store).apply(
                        decision, title, action_type, context_type, context_data
                    )
                    if effects.applied_actions and deps.cache is not None:
                        await deps.cache.invalidate(deps.identity)

        if decision != "approved" and can_cache_response:
            cached = await deps.cache.get_suggestion_response(
                deps.identity, view_mode, snapshot, response_key, decision
            )
            if cached:
                return {"messages": [AIMessage(content=cached)], "response": cached, "cached": True}

        financial_context = await deps.financial_context(context_type, context_data)
        system_prompt = build_decision_prompt(
            load_prompt("decision-handling"),
            financial_context,
            decision,
            title,
            effects,
            already_decided,
        )

        try:
            text = await gateway.complete(system_prompt, state.get("messages", []))
        except LLMGatewayError as exc:
            logger.warning("Decision reply failed (%s); using fallback text", exc.category)
            text = FALLBACK_RESPONSES[decision]

        if decision != "approved" and can_cache_response:
            await deps.cache.set_suggestion_response(deps.identity, view_mode, snapshot, response_key, decision, text)

        return {"messages": [AIMessage(content=text)], "response": text, "effects": effects}

    return decision_node


async def goal_update_node(state: TurnState, config: RunnableConfig) -> dict:
    """Apply "set my goal target to $X" requests for signed-in users."""
    deps = get_dependencies(config)
    if deps.store is None or deps.identity.is_demo:
        return {"goal_updated": False}

    amount = parse_goal_update(last_user_text(state.get("messages", [])))
    if amount is None:
        return {"goal_updated": False}

    goal_id = str(state["context_data"]["id"])
    financial = await deps.store.load()
    try:
        message = await apply_goal_update(deps.store, goal_id, amount, financial.profile)
    except StoreWriteError as exc:
        logger.warning("Goal update for %s failed: %s", goal_id, exc)
        return {"goal_updated": False}

    if deps.cache is not None:
        await deps.cache.invalidate(deps.identity)
    return {"messages": [AIMessage(content=message)], "response": message, "goal_updated": True}


def create_chat_node(gateway: ChatGateway):
    """Create the node that answers ordinary chat turns."""

    async def chat_node(state: TurnState, config: RunnableConfig) -> dict:
        deps = get_dependencies(config)
        context_type = state.get("context_type") or "unknown"
        context_data = state.get("context_data") or {}

        prompt_type = get_prompt_type(context_type)
        structured = is_structured_context(context_type, prompt_type)
        system_prompt = load_prompt(prompt_type) + await deps.financial_context(context_type, context_data)

        view_mode = view_mode_for(context_type) if structured else None
        financial = await deps.load_financials() if view_mode else None

        try:
            text = await gateway.complete(system_prompt, state.get("messages", []), structured=structured)
        except LLMGatewayError:
            if deps.cache is not None and financial is not None:
                cached = await deps.cache.get_including_expired(deps.identity, view_mode, financial.snapshot)
                if cached:
                    logger.warning("Serving cached summary for %s after LLM failure", deps.identity.key)
                    return {
                        "messages": [AIMessage(content=cached.summary_text)],
                        "response": cached.summary_text,
                        "parsed": ParsedResponse(summary=cached.summary_text, suggestions=cached.suggestions),
                        "cached": True,
                    }
            raise

        parsed = parse_structured_response(text, context_type, prompt_type)
        if deps.cache is not None and financial is not None:
            await deps.cache.set(deps.identity, view_mode, financial.snapshot, parsed.summary, parsed.suggestions)

        return {"messages": [AIMessage(content=text)], "response": text, "parsed": parsed}

    return chat_node