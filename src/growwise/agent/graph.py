"""LangGraph definition of one chat turn."""

from langgraph.graph import END, StateGraph

from ..models import TurnState
from .gateway import ChatGateway
from .nodes import create_chat_node, create_decision_node, goal_update_node, route_turn


def create_turn_graph(gateway: ChatGateway | None = None):
    """Create the graph that routes a turn to decision handling, goal updates or chat.

    Args:
        gateway: Chat gateway to use. Defaults to Gemini configured from settings.

    Returns:
        Compiled LangGraph graph. Per-request collaborators are passed as
        `config={"configurable": {"deps": TurnDependencies(...)}}`.
    """
    gateway = gateway or ChatGateway.from_settings()

    workflow = StateGraph(TurnState)

    workflow.add_node("router", route_turn)
    workflow.add_node("decision", create_decision_node(gateway))
    workflow.add_node("goal_update", goal_update_node)
    workflow.add_node("chat", create_chat_node(gateway))

    workflow.set_entry_point("router")

    def next_step(state: TurnState) -> str:
        return state.get("route") or "chat"

    workflow.add_conditional_edges(
        "router",
        next_step,
        {"decision": "decision", "goal_update": "goal_update", "chat": "chat"},
    )

    # Messages that are not goal updates fall through to normal chat
    def after_goal_update(state: TurnState) -> str:
        return "end" if state.get("goal_updated") else "chat"

    workflow.add_conditional_edges(
        "goal_update",
        after_goal_update,
        {"end": END, "chat": "chat"},
    )

    workflow.add_edge("decision", END)
    workflow.add_edge("chat", END)

    return workflow.compile()
