"""Formatting of a user's financial data into the context block of a prompt."""

import json
from typing import Any

from ..models import FinancialProfile, FinancialSnapshot

FULL_CONTEXT_TYPES = {
    "networth",
    "net_worth",
    "dashboard",
    "center-chat",
    "market-insights",
    "finshorts",
    "what-if",
    "tax-loss-harvesting",
    "explore",
    "suggestions",
}
GOAL_CONTEXT_TYPES = {"goal", "goals", "goal-update"}
NO_FALLBACK_CONTEXT_TYPES = {"market-insights", "finshorts", "what-if", "tax-loss-harvesting", "explore"}


def format_money(value: float | int | None) -> str:
    """Format a dollar amount the way the web client displays it."""
    value = float(value or 0)
    if value.is_integer():
        return f"${value:,.0f}"
    return f"${value:,.2f}"


def _format_rate(rate: float | None) -> str:
    if rate is None:
        return "0"
    return f"{rate:g}"


def format_net_worth(snapshot: FinancialSnapshot) -> str:
    lines = [
        "## Net Worth Summary",
        f"Net Worth: {format_money(snapshot.net_worth)}",
        f"Total Assets: {format_money(snapshot.assets_total)}",
        f"Total Liabilities: {format_money(snapshot.liabilities_total)}",
        f"Cash: {format_money(snapshot.cash_total)}",
        f"Investments: {format_money(snapshot.investments_total)}",
    ]
    return "\n".join(lines) + "\n\n"


def format_goals(financial: FinancialProfile) -> str:
    if not financial.goals:
        return ""

    lines = [f"## Active Goals ({len(financial.goals)})"]
    for idx, goal in enumerate(financial.goals, start=1):
        lines.append(f"{idx}. {goal.name}")
        lines.append(f"   - Target: {format_money(goal.target_amount)}")
        lines.append(
            f"   - Current: {format_money(goal.current_amount)} ({goal.progress_percent:.1f}% complete)"
        )
        lines.append(
            f"   - Allocation: {goal.allocation_savings}% savings, "
            f"{goal.allocation_stocks}% stocks, {goal.allocation_bonds}% bonds"
        )
        if goal.status == "completed":
            lines.append("   - Status: completed")
        if goal.description:
            lines.append(f"   - Details: {goal.description}")
    return "\n".join(lines) + "\n\n"


def format_accounts(financial: FinancialProfile) -> str:
    if not financial.accounts:
        return ""

    banks = [a for a in financial.accounts if a.account_type == "bank"]
    investments = [a for a in financial.accounts if a.account_type == "investment"]
    loans = [a for a in financial.accounts if a.account_type == "loan"]

    lines = [f"## Linked Financial Accounts ({len(financial.accounts)})"]
    if banks:
        lines += ["", "### Bank Accounts"]
        for a in banks:
            lines.append(
                f"- {a.provider_name} (***{a.last_four_digits}): "
                f"{format_money(a.total_amount)} @ {_format_rate(a.interest_rate)}% APY"
            )
    if investments:
        lines += ["", "### Investment Accounts"]
        for a in investments:
            lines.append(
                f"- {a.provider_name} (***{a.last_four_digits}): "
                f"{format_money(a.total_amount)} @ {_format_rate(a.interest_rate)}% return"
            )
            lines.append(
                f"  Allocation: {a.allocation_savings}% savings, "
                f"{a.allocation_stocks}% stocks, {a.allocation_bonds}% bonds"
            )
    if loans:
        lines += ["", "### Loans/Liabilities"]
        for a in loans:
            lines.append(
                f"- {a.provider_name} (***{a.last_four_digits}): "
                f"{format_money(a.total_amount)} @ {_format_rate(a.interest_rate)}% APR"
            )
    return "\n".join(lines) + "\n\n"


def format_assets(financial: FinancialProfile) -> str:
    snapshot = financial.snapshot
    lines = [
        "## User Assets Data",
        f"Total Assets: {format_money(snapshot.assets_total)}",
        f"Cash: {format_money(snapshot.cash_total)}",
        f"Investments: {format_money(snapshot.investments_total)}",
        "",
    ]
    asset_accounts = [a for a in financial.accounts if a.account_type != "loan"]
    if asset_accounts:
        lines.append("### Asset Accounts")
        for a in asset_accounts:
            lines.append(f"- {a.provider_name} ({a.account_type}): {format_money(a.total_amount)}")
        lines.append("")
    return "\n".join(lines) + "\n"


def format_liabilities(financial: FinancialProfile) -> str:
    lines = [
        "## User Liabilities Data",
        f"Total Liabilities: {format_money(financial.snapshot.liabilities_total)}",
        "",
    ]
    loans = [a for a in financial.accounts if a.account_type == "loan"]
    if loans:
        lines.append("### Loan Details")
        for a in loans:
            lines.append(
                f"- {a.provider_name} (***{a.last_four_digits}): "
                f"{format_money(a.total_amount)} @ {_format_rate(a.interest_rate)}% APR"
            )
        lines.append("")
    return "\n".join(lines) + "\n"


def format_goal_data(context_data: dict[str, Any]) -> str:
    """Describe the goal the user is looking at, as sent by the client."""
    target = float(context_data.get("targetAmount") or 0)
    current = float(context_data.get("currentAmount") or 0)
    progress = current / target * 100 if target > 0 else 0.0

    lines = [
        "## User Goal Data",
        f'Goal Name: "{context_data.get("name")}"',
        f"Target Amount: {format_money(target)}",
        f"Current Amount: {format_money(current)}",
        f"Progress: {progress:.1f}%",
    ]
    allocation = context_data.get("allocation")
    if isinstance(allocation, dict):
        lines.append(
            f"Allocation: {allocation.get('savings') or 0}% savings, "
            f"{allocation.get('stocks') or 0}% stocks, {allocation.get('bonds') or 0}% bonds"
        )
    if context_data.get("description"):
        lines += ["", f"Goal Details: {context_data['description']}"]
    return "\n".join(lines) + "\n\n"


def format_alternate_investments(financial: FinancialProfile) -> str:
    p = financial.profile
    snapshot = financial.snapshot
    lines = [
        f"Income: {p.income or 'Not specified'}",
        f"Employment Type: {p.employment_type or 'Not specified'}",
        f"Financial Goals: {', '.join(p.goals) or 'Not specified'}",
        f"Risk Profile: {p.risk_inferred or 'Not specified'}",
        "",
        "",
    ]
    info = "\n".join(lines)
    info += format_goals(financial)
    info += format_accounts(financial)
    info += "\n".join(
        [
            "## Portfolio Summary",
            f"Total Assets: {format_money(snapshot.assets_total)}",
            f"Total Liabilities: {format_money(snapshot.liabilities_total)}",
            f"Net Worth: {format_money(snapshot.net_worth)}",
        ]
    )
    return info + "\n"


def build_context(
    financial: FinancialProfile,
    context_type: str,
    context_data: dict[str, Any] | None = None,
    demo_name: str | None = None,
) -> str:
    """Build the financial context block appended to the system prompt."""
    if demo_name:
        info = f"\n\n## User Financial Profile (Demo: {demo_name})\n"
    else:
        info = "\n\n## User Financial Profile\n"

    p = financial.profile
    first = p.preferred_first_name or p.legal_first_name or "User"
    info += f"Name: {first} {p.legal_last_name or ''}".rstrip() + "\n"
    if p.income:
        info += f"Income: {p.income}\n"
    if p.employment_type:
        info += f"Employment: {p.employment_type}\n"
    if p.risk_inferred:
        info += f"Risk Profile: {p.risk_inferred}\n"
    if p.city and p.state:
        info += f"Location: {p.city}, {p.state}\n"
    info += "\n"

    if context_type in FULL_CONTEXT_TYPES:
        info += format_net_worth(financial.snapshot)
        info += format_goals(financial)
        info += format_accounts(financial)
    elif context_type == "assets":
        info += format_assets(financial)
    elif context_type == "liabilities":
        info += format_liabilities(financial)
    elif context_type in GOAL_CONTEXT_TYPES:
        if context_data and context_data.get("name"):
            info += format_goal_data(context_data)
        info += format_goals(financial)
        info += format_net_worth(financial.snapshot)
    elif context_type in ("alternate-investments", "alternative-investments"):
        info += format_alternate_investments(financial)
    elif context_type == "onboarding":
        info += "User is completing onboarding.\n"
    else:
        info += format_net_worth(financial.snapshot)
        info += format_goals(financial)

    return info


def build_context_from_data(context_type: str, context_data: dict[str, Any] | None) -> str:
    """Fallback context built only from numbers the client sent along.

    Used for anonymous requests, where nothing may be read from storage.
    """
    if not context_data:
        return ""

    def money(key: str) -> str:
        return format_money(context_data.get(key))

    if context_type in ("dashboard", "net_worth", "networth"):
        lines = [
            "## User Financial Data",
            f"Net Worth: {money('netWorth')}",
            f"Total Assets: {money('assetsTotal')}",
            f"Total Liabilities: {money('liabilitiesTotal')}",
            f"Cash: {money('cashTotal')}",
            f"Investments: {money('investmentsTotal')}",
        ]
    elif context_type == "assets":
        lines = [
            "## User Assets Data",
            f"Total Assets: {money('assetsTotal')}",
            f"Cash: {money('cashTotal')}",
            f"Investments: {money('investmentsTotal')}",
        ]
    elif context_type == "liabilities":
        lines = ["## User Liabilities Data", f"Total Liabilities: {money('liabilitiesTotal')}"]
    elif context_type == "goal":
        return "\n\n" + format_goal_data(context_data).rstrip("\n")
    elif context_type in NO_FALLBACK_CONTEXT_TYPES:
        return ""
    else:
        lines = ["## Additional Context", json.dumps(context_data, indent=2)]

    return "\n\n" + "\n".join(lines)
