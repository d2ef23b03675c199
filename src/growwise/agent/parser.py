"""Parsing of LLM replies into a summary plus discrete suggestions.

Structured contexts (net worth, assets, liabilities) are asked for a JSON
object; everything else, and any reply whose JSON cannot be read, goes through
the paragraph-splitting fallback. Parsing never raises.
"""

import json
import logging
import re
import time

from ..models import ACTION_CONTEXT_TYPES, ParsedResponse, Suggestion, SuggestionActionType

logger = logging.getLogger(__name__)

STRUCTURED_CONTEXT_TYPES = {"net_worth", "networth", "dashboard", "assets", "liabilities"}
STRUCTURED_PROMPT_TYPES = {"networth", "assets", "liabilities"}

MAX_SUGGESTIONS = 2
MAX_TITLE_LENGTH = 100
MAX_BODY_LENGTH = 500

CONTROL_TEXT_PATTERN = re.compile(r"Approve\s*/\s*(?:Deny|Decline)\s*/\s*Know\s*More", re.IGNORECASE)
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
BLOCK_SEPARATOR = re.compile(r"\n\s*\n")
BOLD_MARKERS = re.compile(r"^\*\*|\*\*$")

ACTION_KEYWORDS: list[tuple[SuggestionActionType, tuple[str, ...]]] = [
    (
        SuggestionActionType.COMPLETE_EMERGENCY_FUND,
        ("complete emergency fund", "emergency fund target", "increase emergency fund"),
    ),
    (SuggestionActionType.REALLOCATE_DOWN_PAYMENT, ("down payment allocation", "align down payment", "rebalance")),
    (SuggestionActionType.ACCELERATE_SOFI_LOAN, ("sofi loan", "accelerate")),
    (SuggestionActionType.REBALANCE_BROKERAGE, ("rebalance", "allocation", "diversification")),
    (
        SuggestionActionType.INCREASE_MONTHLY_CONTRIBUTION,
        ("increase monthly", "boost contribution", "monthly contribution"),
    ),
]


def is_structured_context(context_type: str | None, prompt_type: str | None = None) -> bool:
    return context_type in STRUCTURED_CONTEXT_TYPES or prompt_type in STRUCTURED_PROMPT_TYPES


def infer_action_type(title: str, context_type: str | None = None) -> SuggestionActionType:
    """Infer the effect of a suggestion from keywords in its title.

    With a context type, only effects that can run in that context are
    considered, so "rebalance" means the down-payment goal on the dashboard
    and the brokerage account on the assets view.
    """
    title = title.strip().lower()
    for action_type, keywords in ACTION_KEYWORDS:
        if context_type is not None and context_type not in ACTION_CONTEXT_TYPES[action_type]:
            continue
        if any(keyword in title for keyword in keywords):
            return action_type
        if action_type == SuggestionActionType.ACCELERATE_SOFI_LOAN and "pay down" in title and "high interest" in title:
            return action_type
    return SuggestionActionType.NO_ACTION


def coerce_action_type(value, title: str, context_type: str | None = None) -> SuggestionActionType:
    """Use an explicit action type when it is valid, else infer one from the title."""
    if isinstance(value, str):
        try:
            return SuggestionActionType(value.strip().upper())
        except ValueError:
            logger.debug("Ignoring unknown actionType %r", value)
    return infer_action_type(title, context_type)


def _suggestion_id(context_type: str, idx: int) -> str:
    return f"{context_type}-{int(time.time() * 1000)}-{idx}"


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    text = re.sub(r"^```json\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"^```\s*", "", text)
    return re.sub(r"\s*```$", "", text)


def _parse_json_response(raw: str, context_type: str) -> ParsedResponse | None:
    text = _strip_code_fences(raw)
    match = JSON_OBJECT_PATTERN.search(text)
    if match:
        text = match.group(0)

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("Failed to parse JSON response for %s: %s", context_type, exc)
        return None

    if not isinstance(data, dict):
        return None

    summary = data.get("summary")
    summary = summary.strip() if isinstance(summary, str) else ""

    suggestions = []
    items = data.get("suggestions")
    if isinstance(items, list):
        for idx, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            title, body = item.get("title"), item.get("body")
            if not isinstance(title, str) or not isinstance(body, str) or not title.strip():
                continue
            suggestions.append(
                Suggestion(
                    id=_suggestion_id(context_type, idx),
                    title=title.strip()[:MAX_TITLE_LENGTH],
                    body=body.strip()[:MAX_BODY_LENGTH],
                    status="pending",
                    context_type=context_type,
                    action_type=coerce_action_type(item.get("actionType"), title, context_type),
                )
            )

    return ParsedResponse(summary=summary or raw, suggestions=suggestions[:MAX_SUGGESTIONS])


def parse_unstructured_response(raw: str, context_type: str) -> ParsedResponse:
    """Split plain text into a summary paragraph and titled suggestion blocks."""
    cleaned = CONTROL_TEXT_PATTERN.sub("", raw).strip()
    blocks = [b.strip() for b in BLOCK_SEPARATOR.split(cleaned) if b.strip()]
    if not blocks:
        return ParsedResponse(summary=raw, suggestions=[])

    suggestions = []
    for idx, block in enumerate(blocks[1:]):
        lines = [line.strip() for line in block.split("\n") if line.strip()]
        if not lines:
            continue
        title = BOLD_MARKERS.sub("", lines[0]).strip()
        if not title:
            continue
        body = " ".join(lines[1:]).strip()
        title = title[:MAX_TITLE_LENGTH]
        suggestions.append(
            Suggestion(
                id=_suggestion_id(context_type, idx),
                title=title,
                body=body[:MAX_BODY_LENGTH] or title,
                status="pending",
                context_type=context_type,
                action_type=infer_action_type(title, context_type),
            )
        )
        if len(suggestions) == MAX_SUGGESTIONS:
            break

    return ParsedResponse(summary=blocks[0], suggestions=suggestions)


def parse_structured_response(
    raw: str | None, context_type: str | None, prompt_type: str | None = None
) -> ParsedResponse:
    """Parse an LLM reply into `{summary, suggestions}`.

    Args:
        raw: The reply text. `None` is treated as an empty reply.
        context_type: Context the reply was generated for; used in suggestion ids.
        prompt_type: Prompt template the reply was generated with.

    Returns:
        A ParsedResponse. Worst case the whole reply becomes the summary and
        there are no suggestions.
    """
    raw = raw if isinstance(raw, str) else ""
    context_type = context_type or "unknown"

    if is_structured_context(context_type, prompt_type):
        parsed = _parse_json_response(raw, context_type)
        if parsed is not None:
            return parsed

    return parse_unstructured_response(raw, context_type)
