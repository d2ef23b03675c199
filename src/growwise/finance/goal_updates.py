"""Free-text goal target updates ("increase my goal target to $120,000")."""

import logging
import re
from datetime import date

from ..models import UserProfile
from .context import format_money
from .stores import FinanceStore

logger = logging.getLogger(__name__)

UPDATE_KEYWORDS = ("increase", "change", "update", "modify", "raise", "set")
TARGET_KEYWORDS = ("target", "goal", "amount")
DOLLAR_AMOUNT = re.compile(r"\$((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?)")
AMOUNT = re.compile(r"\$?((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?)")

YEARS_TO_GOAL = 8


def parse_goal_update(text: str | None) -> float | None:
    """Return the requested target amount, or None if the text is not a goal update."""
    lowered = (text or "").lower()
    if not any(k in lowered for k in UPDATE_KEYWORDS):
        return None
    if not any(k in lowered for k in TARGET_KEYWORDS):
        return None

    match = DOLLAR_AMOUNT.search(lowered) or AMOUNT.search(lowered)
    if not match:
        return None
    amount = float(match.group(1).replace(",", ""))
    return amount if amount > 0 else None


def age_on(date_of_birth: str | None, today: date | None = None) -> int | None:
    if not date_of_birth:
        return None
    try:
        born = date.fromisoformat(date_of_birth[:10])
    except ValueError:
        logger.warning("Ignoring unparseable date of birth %r", date_of_birth)
        return None
    today = today or date.today()
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def goal_updated_message(amount: float) -> str:
    return (
        f"Goal Updated Successfully! Your goal has been updated to {format_money(amount)}. "
        f"It will now take you {YEARS_TO_GOAL} years to reach your goal. "
        "Do you want to increase the allocation to reach the goal earlier?"
    )


async def apply_goal_update(
    store: FinanceStore, goal_id: str, amount: float, profile: UserProfile | None = None
) -> str:
    """Set the goal's target and move its target age out to now + 8 years."""
    current_age = age_on(profile.date_of_birth) if profile else None
    target_age = current_age + YEARS_TO_GOAL if current_age is not None else None
    await store.update_goal_target(goal_id, amount, target_age)
    logger.info("Goal %s target set to %.2f (target age %s)", goal_id, amount, target_age)
    return goal_updated_message(amount)
