"""Financial data, effects and caching for the GrowWise assistant."""

from .context import build_context, build_context_from_data, format_money
from .demo_profiles import get_demo_profile, reset_demo_profile, reset_demo_profiles
from .effects import EffectApplier
from .goal_updates import apply_goal_update, parse_goal_update
from .stores import DatabaseStore, DemoStore, FinanceStore
from .summary_cache import SummaryCache, hash_financial_data, view_mode_for

__all__ = [
    "build_context",
    "build_context_from_data",
    "format_money",
    "get_demo_profile",
    "reset_demo_profile",
    "reset_demo_profiles",
    "EffectApplier",
    "apply_goal_update",
    "parse_goal_update",
    "DatabaseStore",
    "DemoStore",
    "FinanceStore",
    "SummaryCache",
    "hash_financial_data",
    "view_mode_for",
]
