"""Backing stores for a request's financial data.

A request works against exactly one store, chosen when the request arrives:
`DemoStore` for demo personas (in-memory, can simulate money movement) or
`DatabaseStore` for authenticated users (narrow SQL updates, never moves money).
"""

import logging
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import StoreWriteError
from ..models import Allocation, DemoProfile, FinancialProfile, Goal, Identity, LinkedAccount, UserProfile
from ..storage.repositories import DecisionRepository, FinancialDataRepository
from ..storage.tables import LinkedAccountRow, SuggestionDecisionRow
from .demo_profiles import get_demo_decisions, get_demo_profile

logger = logging.getLogger(__name__)


class FinanceStore(Protocol):
    """Contract shared by the demo and database stores."""

    identity: Identity
    moves_money: bool
    display_name: str | None

    async def load(self) -> FinancialProfile: ...

    async def transfer(self, source_id: str, destination_id: str, amount: float) -> None: ...

    async def pay_down_loan(self, account_id: str, amount: float) -> float: ...

    async def deposit(self, account_id: str, amount: float) -> None: ...

    async def set_account_allocation(self, account_id: str, allocation: Allocation) -> None: ...

    async def set_goal_current_amount(self, goal_id: str, amount: float) -> None: ...

    async def complete_goal(self, goal_id: str) -> None: ...

    async def set_goal_allocation(self, goal_id: str, allocation: Allocation) -> None: ...

    async def update_goal_target(self, goal_id: str, target_amount: float, target_age: int | None) -> None: ...

    async def get_decision(self, suggestion_key: str) -> str | None: ...

    async def record_decision(
        self,
        suggestion_key: str,
        title: str,
        decision: str,
        context_type: str | None = None,
        goal_id: str | None = None,
    ) -> None: ...


class DemoStore:
    """Mutates the live in-memory state of a demo persona."""

    moves_money = True

    def __init__(self, profile: DemoProfile, decisions: dict[str, str]):
        self.profile = profile
        self.identity = Identity(demo_profile_id=profile.id)
        self.display_name = profile.name
        self._decisions = decisions

    @classmethod
    def for_profile(cls, profile_id: str) -> "DemoStore":
        return cls(get_demo_profile(profile_id), get_demo_decisions(profile_id))

    async def load(self) -> FinancialProfile:
        return self.profile

    def _account(self, account_id: str) -> LinkedAccount:
        for account in self.profile.accounts:
            if account.id == account_id:
                return account
        raise KeyError(account_id)

    def _goal(self, goal_id: str) -> Goal:
        for goal in self.profile.goals:
            if goal.id == goal_id:
                return goal
        raise KeyError(goal_id)

    async def transfer(self, source_id: str, destination_id: str, amount: float) -> None:
        source = self._account(source_id)
        destination = self._account(destination_id)
        if amount <= 0 or amount > source.total_amount:
            raise ValueError(f"cannot transfer {amount} from a balance of {source.total_amount}")
        source.total_amount -= amount
        destination.total_amount += amount
        logger.info(
            "Demo %s: moved %.2f from %s to %s",
            self.profile.id,
            amount,
            source.provider_name,
            destination.provider_name,
        )

    async def pay_down_loan(self, account_id: str, amount: float) -> float:
        """Reduce a loan balance, never below zero; returns the amount applied."""
        loan = self._account(account_id)
        paid = min(amount, loan.total_amount)
        loan.total_amount -= paid
        logger.info("Demo %s: paid %.2f toward %s", self.profile.id, paid, loan.provider_name)
        return paid

    async def deposit(self, account_id: str, amount: float) -> None:
        account = self._account(account_id)
        account.total_amount += amount
        logger.info("Demo %s: deposited %.2f into %s", self.profile.id, amount, account.provider_name)

    async def set_account_allocation(self, account_id: str, allocation: Allocation) -> None:
        account = self._account(account_id)
        account.allocation_savings = allocation.savings
        account.allocation_stocks = allocation.stocks
        account.allocation_bonds = allocation.bonds
        logger.info("Demo %s: set %s allocation to %s", self.profile.id, account.provider_name, allocation)

    async def set_goal_current_amount(self, goal_id: str, amount: float) -> None:
        goal = self._goal(goal_id)
        goal.current_amount = min(max(amount, 0.0), goal.target_amount)
        if goal.current_amount >= goal.target_amount:
            goal.status = "completed"

    async def complete_goal(self, goal_id: str) -> None:
        goal = self._goal(goal_id)
        goal.current_amount = goal.target_amount
        goal.status = "completed"

    async def set_goal_allocation(self, goal_id: str, allocation: Allocation) -> None:
        goal = self._goal(goal_id)
        goal.allocation_savings = allocation.savings
        goal.allocation_stocks = allocation.stocks
        goal.allocation_bonds = allocation.bonds

    async def update_goal_target(self, goal_id: str, target_amount: float, target_age: int | None) -> None:
        goal = self._goal(goal_id)
        goal.target_amount = target_amount
        if target_age is not None:
            goal.target_age = target_age

    async def get_decision(self, suggestion_key: str) -> str | None:
        return self._decisions.get(suggestion_key)

    async def record_decision(self, suggestion_key, title, decision, context_type=None, goal_id=None) -> None:
        self._decisions[suggestion_key] = decision


class DatabaseStore:
    """Reads and narrowly updates one authenticated user's rows."""

    moves_money = False
    display_name = None

    def __init__(self, session: AsyncSession, user_id: str):
        self.identity = Identity(user_id=user_id)
        self._session = session
        self._user_id = user_id
        self._data = FinancialDataRepository(session)
        self._decisions = DecisionRepository(session)

    @staticmethod
    def _account_from_row(row: LinkedAccountRow) -> LinkedAccount | None:
        """Rows that break the allocation rule are left out of the user's data."""
        try:
            return LinkedAccount(**row.to_dict())
        except ValidationError as exc:
            logger.warning("Skipping linked account %s of user %s: %s", row.id, row.user_id, exc)
            return None

    async def load(self) -> FinancialProfile:
        profile = await self._data.get_profile(self._user_id)
        accounts = await self._data.list_accounts(self._user_id)
        goals = await self._data.list_goals(self._user_id)
        return FinancialProfile(
            profile=UserProfile(**profile.to_dict()) if profile else UserProfile(),
            accounts=[account for account in map(self._account_from_row, accounts) if account is not None],
            goals=[Goal(**g.to_dict()) for g in goals],
        )

    # Real balances only change at the bank; callers check `moves_money` first
    async def transfer(self, source_id: str, destination_id: str, amount: float) -> None:
        raise StoreWriteError("Money cannot be moved between linked accounts from GrowWise.")

    async def pay_down_loan(self, account_id: str, amount: float) -> float:
        raise StoreWriteError("Loan payments are made through the lender.")

    async def deposit(self, account_id: str, amount: float) -> None:
        raise StoreWriteError("Contributions are made through the account provider.")

    async def set_account_allocation(self, account_id: str, allocation: Allocation) -> None:
        try:
            changed = await self._data.update_account(
                self._user_id,
                account_id,
                allocation_savings=allocation.savings,
                allocation_stocks=allocation.stocks,
                allocation_bonds=allocation.bonds,
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("Account update failed for user %s account %s: %s", self._user_id, account_id, exc)
            raise StoreWriteError("Could not update the account.") from exc
        if changed == 0:
            raise StoreWriteError(f"Account {account_id} not found for this user.")

    async def _update_goal(self, goal_id: str, **values) -> None:
        try:
            changed = await self._data.update_goal(self._user_id, goal_id, **values)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("Goal update failed for user %s goal %s: %s", self._user_id, goal_id, exc)
            raise StoreWriteError("Could not update the goal.") from exc
        if changed == 0:
            raise StoreWriteError(f"Goal {goal_id} not found for this user.")

    async def set_goal_current_amount(self, goal_id: str, amount: float) -> None:
        await self._update_goal(goal_id, current_amount=max(amount, 0.0))

    async def complete_goal(self, goal_id: str) -> None:
        await self._update_goal(goal_id, status="completed")

    async def set_goal_allocation(self, goal_id: str, allocation: Allocation) -> None:
        await self._update_goal(
            goal_id,
            allocation_savings=allocation.savings,
            allocation_stocks=allocation.stocks,
            allocation_bonds=allocation.bonds,
        )

    async def update_goal_target(self, goal_id: str, target_amount: float, target_age: int | None) -> None:
        values = {"target_amount": target_amount}
        if target_age is not None:
            values["target_age"] = target_age
        await self._update_goal(goal_id, **values)

    async def get_decision(self, suggestion_key: str) -> str | None:
        row = await self._decisions.get(self.identity.key, suggestion_key)
        return row.decision if row else None

    async def record_decision(self, suggestion_key, title, decision, context_type=None, goal_id=None) -> None:
        try:
            await self._decisions.add(
                SuggestionDecisionRow(
                    identity_key=self.identity.key,
                    suggestion_key=suggestion_key,
                    suggestion_title=title[:200],
                    context_type=context_type,
                    goal_id=goal_id,
                    decision=decision,
                )
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("Could not record decision %s for %s: %s", decision, suggestion_key, exc)
            raise StoreWriteError("Could not record your decision.") from exc
