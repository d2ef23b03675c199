"""Tests for decision sentences and the suggestion lifecycle."""

import pytest

from src.growwise.agent.decisions import (
    SuggestionStateMachine,
    build_decision_prompt,
    decision_message,
    describe_effects,
    parse_decision,
    suggestion_key,
)
from src.growwise.exceptions import InvalidTransitionError
from src.growwise.models import EffectResult


class TestParseDecision:
    """Tests for recognising decision sentences."""

    def test_approve(self):
        """Test the approve sentence is recognised."""
        parsed = parse_decision('I approve the suggestion: "Complete Emergency Fund"')
        assert parsed.is_decision
        assert parsed.decision == "approved"
        assert parsed.suggestion_title == "Complete Emergency Fund"

    def test_deny_and_decline(self):
        """Test both deny and decline phrasings map to denied."""
        assert parse_decision('I deny the suggestion: "X"').decision == "denied"
        assert parse_decision('I decline the suggestion: "X"').decision == "denied"

    def test_know_more(self):
        """Test the know-more sentence is recognised."""
        parsed = parse_decision('I want to know more about the suggestion: "Rebalance"')
        assert parsed.decision == "know_more"
        assert parsed.suggestion_title == "Rebalance"

    def test_curly_quotes_and_case(self):
        """Test curly quotes and lower case are accepted."""
        parsed = parse_decision("i approve the suggestion: “Accelerate SoFi Loan”")
        assert parsed.decision == "approved"
        assert parsed.suggestion_title == "Accelerate SoFi Loan"

    @pytest.mark.parametrize(
        "text",
        [
            "Can you approve the suggestion for me?",
            "I approve the suggestion: Complete Emergency Fund",
            "",
            None,
            'Please: I approve the suggestion: "X"',
        ],
    )
    def test_not_a_decision(self, text):
        """Test ordinary messages are not decisions."""
        assert parse_decision(text).is_decision is False

    def test_decision_message_matches_parser(self):
        """Test the sentences the client sends are recognised by the parser."""
        for decision in ("approved", "denied", "know_more"):
            parsed = parse_decision(decision_message(decision, "Complete Emergency Fund"))
            assert parsed.decision == decision
            assert parsed.suggestion_title == "Complete Emergency Fund"


class TestSuggestionStateMachine:
    """Tests for the pending -> approved | denied lifecycle."""

    def test_pending_to_approved(self):
        """Test a pending suggestion can be approved."""
        machine = SuggestionStateMachine()
        assert machine.apply("approved") == "approved"

    def test_pending_to_denied(self):
        """Test a pending suggestion can be denied."""
        assert SuggestionStateMachine().apply("denied") == "denied"

    def test_know_more_keeps_status(self):
        """Test know-more never changes the status."""
        machine = SuggestionStateMachine()
        assert machine.apply("know_more") == "pending"
        machine.apply("approved")
        assert machine.apply("know_more") == "approved"

    @pytest.mark.parametrize("first, second", [("approved", "approved"), ("approved", "denied"), ("denied", "approved")])
    def test_terminal_states_are_final(self, first, second):
        """Test a decided suggestion cannot be decided again."""
        machine = SuggestionStateMachine()
        machine.apply(first)
        with pytest.raises(InvalidTransitionError):
            machine.apply(second)


class TestSuggestionKey:
    """Tests for the decision ledger key."""

    def test_prefers_suggestion_id(self):
        """Test an explicit suggestion id is used when given."""
        assert suggestion_key("goal", "Title", {"suggestionId": "goal-1-0"}) == "goal-1-0"

    def test_falls_back_to_title(self):
        """Test the key is built from context and normalised title."""
        assert suggestion_key("networth", "  Complete Emergency Fund ") == "networth:complete emergency fund"


class TestDecisionPrompt:
    """Tests for the decision-handling prompt."""

    def test_includes_user_action(self):
        """Test the user action line is appended after the context."""
        prompt = build_decision_prompt("TEMPLATE", "\nCONTEXT", "denied", "Rebalance", EffectResult())
        assert prompt.startswith("TEMPLATE\nCONTEXT")
        assert 'The user DENIED the suggestion: "Rebalance"' in prompt
        assert "Context After Applying Decision" not in prompt

    def test_includes_applied_and_pending_actions(self):
        """Test completed and manual steps are listed for the model."""
        effects = EffectResult(applied_actions=["Moved $1,500"], pending_actions=["Call your lender"])
        section = describe_effects(effects)
        assert "Actions already completed:\n- Moved $1,500" in section
        assert "Remaining manual steps for the user:\n- Call your lender" in section

    def test_already_decided(self):
        """Test a repeated decision tells the model nothing changed."""
        section = describe_effects(EffectResult(), already_decided="approved")
        assert "already approved" in section
