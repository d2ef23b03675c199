"""Effects of approving a suggestion.

One `EffectApplier` runs against whichever store the request selected. Stores
that can move money (demo personas) get the money moved; the database store
only updates the plan and reports the money movement as a manual step.
"""

import logging
from typing import Any

from ..exceptions import StoreWriteError
from ..models import (
    ACTION_CONTEXT_TYPES,
    Allocation,
    Decision,
    EffectResult,
    FinancialProfile,
    Goal,
    LinkedAccount,
    SuggestionActionType,
)
from .context import format_money
from .stores import FinanceStore

logger = logging.getLogger(__name__)

EMERGENCY_TRANSFER_CAP = 1500.0
EXTRA_LOAN_PAYMENT = 500.0
DOWN_PAYMENT_ALLOCATION = Allocation(savings=60, stocks=30, bonds=10)
BROKERAGE_ALLOCATION = Allocation(savings=0, stocks=80, bonds=20)
MONTHLY_CONTRIBUTION_INCREASE = 200.0

CHECKING_PROVIDER = "chase"
SAVINGS_PROVIDER = "marcus"
HIGH_INTEREST_LOAN_PROVIDER = "sofi"
BROKERAGE_PROVIDER = "robinhood"

NEXT_STEP_KEYWORDS = ("refinance", "consolidate", "advisor", "tax")

TECHNICAL_ISSUE = (
    "I've logged this, but hit a technical issue updating your {what}. "
    "Please try again later or make the change in your plan manually."
)
MANUAL_ACTION = (
    "This suggestion requires manual action. Please review the recommendation "
    "and take the necessary steps in your actual accounts."
)
REFINANCE_PENDING = (
    "Contact your lender or a financial advisor to explore refinancing options "
    "that could lower your interest rate."
)


class EffectApplier:
    """Applies the effect of an approved suggestion to a store."""

    def __init__(self, store: FinanceStore):
        self.store = store

    async def apply(
        self,
        decision: Decision,
        title: str,
        action_type: SuggestionActionType | None,
        context_type: str,
        context_data: dict[str, Any] | None = None,
    ) -> EffectResult:
        """Run the effect for an approved suggestion.

        Denials and know-more requests are no-ops. An effect only runs in the
        context types it belongs to; elsewhere the suggestion is a manual step.
        """
        if decision != "approved":
            return EffectResult()

        action_type = action_type or SuggestionActionType.NO_ACTION
        allowed = ACTION_CONTEXT_TYPES.get(action_type)
        if allowed is not None and context_type not in allowed:
            logger.info("%s does not apply in %s context", action_type.value, context_type)
            action_type = SuggestionActionType.NO_ACTION

        financial = await self.store.load()
        logger.info("Applying %s for %s (%r)", action_type.value, self.store.identity.key, title)

        if action_type == SuggestionActionType.COMPLETE_EMERGENCY_FUND:
            result = await self._complete_emergency_fund(financial, context_data)
        elif action_type == SuggestionActionType.REALLOCATE_DOWN_PAYMENT:
            result = await self._reallocate_down_payment(financial)
        elif action_type == SuggestionActionType.ACCELERATE_SOFI_LOAN:
            result = await self._accelerate_loan(financial)
        elif action_type == SuggestionActionType.REBALANCE_BROKERAGE:
            result = await self._rebalance_brokerage(financial, context_data)
        elif action_type == SuggestionActionType.INCREASE_MONTHLY_CONTRIBUTION:
            result = await self._increase_contribution(financial, context_data)
        else:
            result = EffectResult()

        if not result.applied_actions and not result.pending_actions:
            result = self._manual_fallback(title)
        return result

    @staticmethod
    def _manual_fallback(title: str) -> EffectResult:
        lowered = title.lower()
        if any(keyword in lowered for keyword in NEXT_STEP_KEYWORDS):
            return EffectResult(
                applied_actions=["Got it, I've logged this as a next step."],
                pending_actions=[REFINANCE_PENDING],
            )
        return EffectResult(pending_actions=[MANUAL_ACTION])

    @staticmethod
    def _emergency_goal(financial: FinancialProfile, context_data: dict[str, Any] | None) -> Goal | None:
        goal_id = (context_data or {}).get("goalId") or (context_data or {}).get("id")
        if goal_id:
            for goal in financial.goals:
                if goal.id == goal_id and "emergency" in goal.name.lower():
                    return goal
        return financial.find_goal("emergency")

    async def _complete_emergency_fund(
        self, financial: FinancialProfile, context_data: dict[str, Any] | None
    ) -> EffectResult:
        goal = self._emergency_goal(financial, context_data)
        if goal is None:
            return EffectResult()

        target = format_money(goal.target_amount)
        needed = goal.remaining
        if needed <= 0:
            return EffectResult(applied_actions=[f"Your emergency fund is already fully funded at {target}."])

        checking = financial.find_account(CHECKING_PROVIDER, "bank")
        savings = financial.find_account(SAVINGS_PROVIDER, "bank")

        if not self.store.moves_money:
            result = EffectResult()
            try:
                await self.store.complete_goal(goal.id)
                result.applied_actions.append("Marked your emergency-fund goal as completed in your GrowWise plan.")
            except StoreWriteError:
                result.pending_actions.append(TECHNICAL_ISSUE.format(what="emergency-fund goal"))
            amount = format_money(min(needed, EMERGENCY_TRANSFER_CAP))
            source = checking.provider_name if checking else "checking"
            destination = savings.provider_name if savings else "savings"
            result.pending_actions.append(
                f"Move {amount} from your {source} account to your {destination} account "
                f"to reach the {target} emergency-fund target."
            )
            return result

        if checking is None or savings is None:
            await self.store.complete_goal(goal.id)
            return EffectResult(applied_actions=[f"Marked your emergency fund as fully funded at {target}."])

        amount = min(needed, EMERGENCY_TRANSFER_CAP, checking.total_amount)
        if amount <= 0:
            return EffectResult(
                pending_actions=[f"Your {checking.provider_name} balance is too low to top up the emergency fund."]
            )

        await self.store.transfer(checking.id, savings.id, amount)
        new_current = min(goal.current_amount + amount, goal.target_amount)
        await self.store.set_goal_current_amount(goal.id, new_current)

        if new_current >= goal.target_amount:
            message = (
                f"Completed your emergency fund goal by transferring {format_money(amount)} from "
                f"{checking.provider_name} to {savings.provider_name}. "
                f"Your emergency fund is now fully funded at {target}."
            )
        else:
            message = (
                f"Transferred {format_money(amount)} from {checking.provider_name} to {savings.provider_name}. "
                f"Your emergency fund is now at {format_money(new_current)} of {target}."
            )
        return EffectResult(applied_actions=[message])

    async def _reallocate_down_payment(self, financial: FinancialProfile) -> EffectResult:
        goal = financial.find_goal("down payment")
        if goal is None:
            return EffectResult()

        allocation = DOWN_PAYMENT_ALLOCATION
        mix = f"{allocation.stocks}% stocks, {allocation.bonds}% bonds, and {allocation.savings}% savings"
        result = EffectResult()
        try:
            await self.store.set_goal_allocation(goal.id, allocation)
            result.applied_actions.append(
                f"Updated the target allocation for your down-payment goal to {mix} in your GrowWise plan."
            )
        except StoreWriteError:
            result.pending_actions.append(TECHNICAL_ISSUE.format(what="down-payment allocation"))

        if not self.store.moves_money:
            result.pending_actions.append(
                f"Adjust your actual investment accounts to match this {allocation.stocks}% stocks / "
                f"{allocation.bonds}% bonds target. GrowWise has updated your plan, "
                "but the trades happen in your brokerage."
            )
        return result

    async def _accelerate_loan(self, financial: FinancialProfile) -> EffectResult:
        loan = financial.find_account(HIGH_INTEREST_LOAN_PROVIDER, "loan")
        if loan is None:
            return EffectResult(
                pending_actions=[
                    "Increase your monthly payment on your high-interest loan through your "
                    "lender's portal to reduce interest over time."
                ]
            )

        if not self.store.moves_money:
            return EffectResult(
                pending_actions=[
                    f"Increase your monthly payment on the {format_money(loan.total_amount)} "
                    f"{loan.provider_name} loan through your lender's portal to pay it down faster."
                ]
            )

        paid = await self.store.pay_down_loan(loan.id, EXTRA_LOAN_PAYMENT)
        return EffectResult(
            applied_actions=[
                f"Applied an extra {format_money(paid)} payment to your {loan.provider_name} loan. "
                f"New balance: {format_money(loan.total_amount)}."
            ]
        )

    @staticmethod
    def _brokerage_account(financial: FinancialProfile, context_data: dict[str, Any] | None) -> LinkedAccount | None:
        account_id = (context_data or {}).get("accountId") or (context_data or {}).get("id")
        for account in financial.accounts:
            if account.id == account_id and account.account_type == "investment":
                return account
        return financial.find_account(BROKERAGE_PROVIDER, "investment")

    async def _rebalance_brokerage(
        self, financial: FinancialProfile, context_data: dict[str, Any] | None
    ) -> EffectResult:
        account = self._brokerage_account(financial, context_data)
        if account is None:
            return EffectResult()

        allocation = BROKERAGE_ALLOCATION
        result = EffectResult()
        try:
            await self.store.set_account_allocation(account.id, allocation)
            result.applied_actions.append(
                f"Updated your {account.provider_name} account target allocation to {allocation.stocks}% stocks "
                f"and {allocation.bonds}% bonds for better diversification."
            )
        except StoreWriteError:
            result.pending_actions.append(TECHNICAL_ISSUE.format(what=f"{account.provider_name} allocation"))

        if not self.store.moves_money:
            result.pending_actions.append(
                f"Review and adjust the holdings in your {account.provider_name} account to match the "
                "recommended diversification strategy."
            )
        return result

    @staticmethod
    def _linked_investment(financial: FinancialProfile, goal: Goal) -> LinkedAccount | None:
        name = (goal.investment_account or "").strip().lower()
        if not name or name == "none":
            return None
        return next(
            (a for a in financial.accounts if a.account_type != "loan" and name in a.provider_name.lower()),
            None,
        )

    async def _increase_contribution(
        self, financial: FinancialProfile, context_data: dict[str, Any] | None
    ) -> EffectResult:
        goal_id = (context_data or {}).get("goalId") or (context_data or {}).get("id")
        goal = next((g for g in financial.goals if g.id == goal_id), None)
        if goal is None:
            return EffectResult()

        increase = format_money(MONTHLY_CONTRIBUTION_INCREASE)
        if not self.store.moves_money:
            return EffectResult(
                pending_actions=[
                    f"Raise your automatic monthly contribution toward {goal.name} by {increase} "
                    "in your investment account settings."
                ]
            )

        await self.store.set_goal_current_amount(goal.id, goal.current_amount + MONTHLY_CONTRIBUTION_INCREASE)
        account = self._linked_investment(financial, goal)
        if account is not None:
            await self.store.deposit(account.id, MONTHLY_CONTRIBUTION_INCREASE)

        return EffectResult(
            applied_actions=[
                f"Increased your monthly contribution by {increase}. Your {goal.name} goal progress is now "
                f"{format_money(goal.current_amount)} of {format_money(goal.target_amount)}."
            ]
        )
