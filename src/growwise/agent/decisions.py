"""Approve / deny / know-more decisions on suggestions."""

import re
from typing import Any

from ..exceptions import InvalidTransitionError
from ..models import Decision, EffectResult, ParsedDecision, SuggestionStatus

# Context types whose replies carry actionable suggestions
DECISION_CONTEXT_TYPES = {"goal", "dashboard", "net_worth", "networth", "assets", "liabilities"}

_QUOTE = "[\"“”]"
DECISION_PATTERNS: list[tuple[Decision, re.Pattern]] = [
    ("approved", re.compile(rf"^I approve the suggestion:\s*{_QUOTE}(.+?){_QUOTE}", re.IGNORECASE)),
    ("denied", re.compile(rf"^I (?:deny|decline) the suggestion:\s*{_QUOTE}(.+?){_QUOTE}", re.IGNORECASE)),
    (
        "know_more",
        re.compile(rf"^I want to know more about the suggestion:\s*{_QUOTE}(.+?){_QUOTE}", re.IGNORECASE),
    ),
]

DECISION_SENTENCES: dict[str, str] = {
    "approved": 'I approve the suggestion: "{title}"',
    "denied": 'I decline the suggestion: "{title}"',
    "know_more": 'I want to know more about the suggestion: "{title}"',
}

USER_ACTION_LINES: dict[str, str] = {
    "approved": 'The user APPROVED the suggestion: "{title}"',
    "denied": 'The user DENIED the suggestion: "{title}"',
    "know_more": 'The user wants to KNOW MORE about the suggestion: "{title}"',
}

FALLBACK_RESPONSES: dict[str, str] = {
    "approved": "Great! I've noted your approval. This will help you reach your goal faster.",
    "denied": "Understood. Let me know if you'd like to explore other options.",
    "know_more": "Let me provide more details about this suggestion.",
}


def parse_decision(text: str | None) -> ParsedDecision:
    """Detect whether a message is a decision sentence about a suggestion."""
    text = (text or "").strip()
    for decision, pattern in DECISION_PATTERNS:
        match = pattern.match(text)
        if match:
            return ParsedDecision(is_decision=True, decision=decision, suggestion_title=match.group(1).strip())
    return ParsedDecision()


def decision_message(decision: Decision, title: str) -> str:
    """The silent user message the client sends when a decision control is used."""
    return DECISION_SENTENCES[decision].format(title=title)


def suggestion_key(context_type: str, title: str, context_data: dict[str, Any] | None = None) -> str:
    """Stable key under which a decision on a suggestion is recorded."""
    if context_data and context_data.get("suggestionId"):
        return str(context_data["suggestionId"])
    return f"{context_type}:{title.strip().lower()}"


class SuggestionStateMachine:
    """pending -> approved | denied, once. know_more leaves the status alone."""

    TERMINAL: set[str] = {"approved", "denied"}

    def __init__(self, status: SuggestionStatus = "pending"):
        self.status = status

    def apply(self, decision: Decision) -> SuggestionStatus:
        if decision == "know_more":
            return self.status
        if self.status in self.TERMINAL:
            raise InvalidTransitionError(
                f"Suggestion already {self.status}; cannot move to {decision}."
            )
        self.status = decision
        return self.status


def describe_effects(effects: EffectResult, already_decided: str | None = None) -> str:
    """Prompt section telling the model what the approval has already done."""
    if already_decided:
        return (
            "\n\n## Context After Applying Decision\n"
            f"This suggestion was already {already_decided} earlier. No further changes were made."
        )
    if not effects.applied_actions and not effects.pending_actions:
        return ""

    lines = ["", "", "## Context After Applying Decision"]
    if effects.applied_actions:
        lines.append("Actions already completed:")
        lines += [f"- {action}" for action in effects.applied_actions]
    if effects.pending_actions:
        lines.append("Remaining manual steps for the user:")
        lines += [f"- {action}" for action in effects.pending_actions]
    return "\n".join(lines)


def build_decision_prompt(
    template: str,
    financial_context: str,
    decision: Decision,
    title: str,
    effects: EffectResult,
    already_decided: str | None = None,
) -> str:
    user_action = USER_ACTION_LINES[decision].format(title=title)
    return (
        f"{template}{financial_context}\n\n## User Action\n{user_action}"
        f"{describe_effects(effects, already_decided)}"
    )
