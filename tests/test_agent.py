"""Tests for the chat-turn graph and its nodes."""

import json
from datetime import date

import pytest
from langchain_core.messages import HumanMessage

from src.growwise.agent.graph import create_turn_graph
from src.growwise.agent.nodes import TurnDependencies, route_turn
from src.growwise.exceptions import IdentityRequiredError, LLMGatewayError
from src.growwise.finance.demo_profiles import get_demo_profile
from src.growwise.finance.goal_updates import age_on, parse_goal_update
from src.growwise.finance.stores import DatabaseStore
from src.growwise.models import Identity
from src.growwise.storage.tables import GoalRow, ProfileRow

APPROVE_EMERGENCY_FUND = 'I approve the suggestion: "Complete Emergency Fund"'
DENY_EMERGENCY_FUND = 'I decline the suggestion: "Complete Emergency Fund"'

STRUCTURED_REPLY = json.dumps(
    {
        "summary": "Your net worth is $104,800.",
        "suggestions": [
            {"title": "Complete Emergency Fund", "body": "Move $1,500 from Chase.", "actionType": "COMPLETE_EMERGENCY_FUND"}
        ],
    }
)


def turn(text: str, context_type: str = "dashboard", context_data: dict | None = None) -> dict:
    return {"messages": [HumanMessage(content=text)], "context_type": context_type, "context_data": context_data or {}}


def demo_config(db_session) -> dict:
    deps = TurnDependencies.for_request(Identity(demo_profile_id="young-professional"), db_session, "req_test")
    return {"configurable": {"deps": deps}}


class TestRouting:
    """Tests for classifying a turn."""

    def test_decision_in_decision_context(self):
        """Test decision sentences route to the decision handler."""
        update = route_turn(turn(APPROVE_EMERGENCY_FUND, "networth"))
        assert update["route"] == "decision"
        assert update["decision"].suggestion_title == "Complete Emergency Fund"

    def test_decision_sentence_outside_decision_context(self):
        """Test decision sentences in general chat are ordinary messages."""
        assert route_turn(turn(APPROVE_EMERGENCY_FUND, "center-chat"))["route"] == "chat"

    def test_goal_context_with_id(self):
        """Test goal views with a goal id are checked for target updates."""
        assert route_turn(turn("Set my target to $5,000", "goal", {"id": "g1"}))["route"] == "goal_update"

    def test_plain_chat(self):
        assert route_turn(turn("How am I doing?", "goal"))["route"] == "chat"


class TestDecisionTurns:
    """Tests for approve / deny / know-more turns."""

    @pytest.mark.asyncio
    async def test_approval_applies_effects_once(self, db_session, make_gateway):
        """Test approving twice moves the money once."""
        graph = create_turn_graph(make_gateway("Great choice.", "Already done."))
        config = demo_config(db_session)

        first = await graph.ainvoke(turn(APPROVE_EMERGENCY_FUND), config=config)
        second = await graph.ainvoke(turn(APPROVE_EMERGENCY_FUND), config=config)

        profile = get_demo_profile("young-professional")
        assert profile.find_account("chase").total_amount == 27000
        assert profile.find_account("marcus").total_amount == 16500
        assert profile.find_goal("emergency").current_amount == 30000
        assert first["response"] == "Great choice."
        assert first["effects"].applied_actions
        assert second["effects"].applied_actions == []
        assert second["response"] == "Already done."

    @pytest.mark.asyncio
    async def test_approval_requires_identity(self, db_session, make_gateway):
        """Test anonymous approvals fail closed."""
        deps = TurnDependencies.for_request(Identity(), db_session)
        graph = create_turn_graph(make_gateway("unused"))

        with pytest.raises(IdentityRequiredError):
            await graph.ainvoke(turn(APPROVE_EMERGENCY_FUND), config={"configurable": {"deps": deps}})

    @pytest.mark.asyncio
    async def test_anonymous_denial_is_answered(self, db_session, make_gateway):
        """Test denials need no identity."""
        deps = TurnDependencies.for_request(Identity(), db_session)
        graph = create_turn_graph(make_gateway("No problem."))

        result = await graph.ainvoke(turn(DENY_EMERGENCY_FUND), config={"configurable": {"deps": deps}})
        assert result["response"] == "No problem."

    @pytest.mark.asyncio
    async def test_denial_response_is_cached(self, db_session, make_gateway):
        """Test a repeated denial is answered from the suggestion-response cache."""
        graph = create_turn_graph(make_gateway(STRUCTURED_REPLY, "Understood, skipping it.", "Should not be used."))
        config = demo_config(db_session)

        await graph.ainvoke(turn("Summarise my finances"), config=config)
        first = await graph.ainvoke(turn(DENY_EMERGENCY_FUND), config=config)
        second = await graph.ainvoke(turn(DENY_EMERGENCY_FUND), config=config)

        assert first["response"] == "Understood, skipping it."
        assert second["response"] == "Understood, skipping it."
        assert second["cached"] is True
        assert get_demo_profile("young-professional").find_account("chase").total_amount == 28500

    @pytest.mark.asyncio
    async def test_llm_failure_uses_fallback_text(self, db_session, failing_gateway):
        """Test a failed confirmation still answers, and the effect still applies."""
        graph = create_turn_graph(failing_gateway())

        result = await graph.ainvoke(turn(APPROVE_EMERGENCY_FUND), config=demo_config(db_session))

        assert result["response"].startswith("Great! I've noted your approval.")
        assert get_demo_profile("young-professional").find_account("chase").total_amount == 27000

    @pytest.mark.asyncio
    async def test_approval_invalidates_cache(self, db_session, make_gateway):
        """Test cached summaries are dropped once money has moved."""
        graph = create_turn_graph(make_gateway(STRUCTURED_REPLY, "Done."))
        config = demo_config(db_session)
        deps = config["configurable"]["deps"]

        await graph.ainvoke(turn("Summarise my finances"), config=config)
        snapshot_before = (await deps.load_financials()).snapshot
        assert await deps.cache.get(deps.identity, "net-worth", snapshot_before) is not None

        await graph.ainvoke(turn(APPROVE_EMERGENCY_FUND), config=config)
        assert await deps.cache.get_including_expired(deps.identity, "net-worth", snapshot_before) is None

    @pytest.mark.asyncio
    async def test_rebalance_on_assets_view(self, db_session, make_gateway):
        """Test a rebalance approved on the assets view changes the brokerage, not the goal."""
        graph = create_turn_graph(make_gateway("Done."))
        profile = get_demo_profile("young-professional")
        goal_allocation = profile.find_goal("down payment").allocation

        result = await graph.ainvoke(
            turn('I approve the suggestion: "Rebalance Robinhood Portfolio"', "assets"), config=demo_config(db_session)
        )

        robinhood = profile.find_account("robinhood")
        assert (robinhood.allocation_stocks, robinhood.allocation_bonds) == (80, 20)
        assert profile.find_goal("down payment").allocation == goal_allocation
        assert "80% stocks and 20% bonds" in result["effects"].applied_actions[0]

    @pytest.mark.asyncio
    async def test_contribution_on_goal_view(self, db_session, make_gateway):
        """Test a contribution approved on a goal view adds $200 to the goal."""
        graph = create_turn_graph(make_gateway("Nice work."))

        result = await graph.ainvoke(
            turn('I approve the suggestion: "Increase Monthly Contribution"', "goal", {"id": "demo-goal-1"}),
            config=demo_config(db_session),
        )

        profile = get_demo_profile("young-professional")
        assert profile.find_goal("down payment").current_amount == 43700
        assert profile.find_account("robinhood").total_amount == 12500
        assert result["effects"].applied_actions[0].startswith("Increased your monthly contribution by $200.")


class TestChatTurns:
    """Tests for ordinary chat turns."""

    @pytest.mark.asyncio
    async def test_structured_reply_parsed_and_cached(self, db_session, make_gateway):
        """Test structured contexts return parsed suggestions and fill the cache."""
        graph = create_turn_graph(make_gateway(STRUCTURED_REPLY))
        config = demo_config(db_session)

        result = await graph.ainvoke(turn("Summarise my finances"), config=config)

        assert result["parsed"].summary == "Your net worth is $104,800."
        assert result["parsed"].suggestions[0].title == "Complete Emergency Fund"
        deps = config["configurable"]["deps"]
        snapshot = (await deps.load_financials()).snapshot
        assert (await deps.cache.get(deps.identity, "net-worth", snapshot)).summary_text == result["parsed"].summary

    @pytest.mark.asyncio
    async def test_llm_failure_serves_cached_summary(self, db_session, make_gateway, failing_gateway):
        """Test an upstream failure falls back to the last cached summary."""
        config = demo_config(db_session)
        await create_turn_graph(make_gateway(STRUCTURED_REPLY)).ainvoke(turn("Summarise"), config=config)

        result = await create_turn_graph(failing_gateway()).ainvoke(turn("Summarise again"), config=config)

        assert result["cached"] is True
        assert result["parsed"].summary == "Your net worth is $104,800."

    @pytest.mark.asyncio
    async def test_llm_failure_without_cache_raises(self, db_session, failing_gateway):
        """Test an upstream failure with nothing cached surfaces to the caller."""
        graph = create_turn_graph(failing_gateway("402 Payment Required"))

        with pytest.raises(LLMGatewayError) as exc_info:
            await graph.ainvoke(turn("Hello", "center-chat"), config=demo_config(db_session))
        assert exc_info.value.category == "payment_required"


class TestGoalUpdates:
    """Tests for free-text goal target changes."""

    @pytest.mark.parametrize(
        "text, amount",
        [
            ("Increase my goal target to $120,000", 120000),
            ("please set the target amount to 50000", 50000),
            ("Change my goal to $1,500.50", 1500.5),
            ("Raise the goal amount by $2,000 to $12,000", 2000),
        ],
    )
    def test_parse(self, text, amount):
        """Test the first dollar amount in an update request is used."""
        assert parse_goal_update(text) == amount

    @pytest.mark.parametrize("text", ["How is my goal doing?", "Increase my savings", "Set the target", None])
    def test_not_an_update(self, text):
        assert parse_goal_update(text) is None

    def test_age(self):
        assert age_on("1996-03-15", today=date(2026, 3, 14)) == 29
        assert age_on("1996-03-15", today=date(2026, 3, 15)) == 30
        assert age_on("not a date") is None

    @pytest.mark.asyncio
    async def test_signed_in_user_goal_updated(self, db_session, make_gateway):
        """Test the target and target age are written for signed-in users."""
        db_session.add_all(
            [
                ProfileRow(id="user-1", preferred_first_name="Jamie", date_of_birth="1990-01-01"),
                GoalRow(id="goal-1", user_id="user-1", name="House", target_amount=100000, allocation_savings=100),
            ]
        )
        await db_session.commit()
        deps = TurnDependencies.for_request(Identity(user_id="user-1"), db_session)
        graph = create_turn_graph(make_gateway("unused"))

        result = await graph.ainvoke(
            turn("Increase my goal target to $120,000", "goal", {"id": "goal-1"}),
            config={"configurable": {"deps": deps}},
        )

        assert result["goal_updated"] is True
        assert result["response"].startswith("Goal Updated Successfully! Your goal has been updated to $120,000.")
        goal = (await DatabaseStore(db_session, "user-1").load()).goals[0]
        assert goal.target_amount == 120000
        assert goal.target_age == age_on("1990-01-01") + 8

    @pytest.mark.asyncio
    async def test_demo_goal_update_falls_through_to_chat(self, db_session, make_gateway):
        """Test demo personas never get goal writes; the model answers instead."""
        graph = create_turn_graph(make_gateway("Let's look at that goal."))

        result = await graph.ainvoke(
            turn("Increase my goal target to $120,000", "goal", {"id": "demo-goal-1"}),
            config=demo_config(db_session),
        )

        assert result["goal_updated"] is False
        assert result["response"] == "Let's look at that goal."
        assert get_demo_profile("young-professional").find_goal("down payment").target_amount == 100000
