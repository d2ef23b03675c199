"""Repositories over an async SQLAlchemy session.

Every query on user data is filtered by the owning user id. Repositories
flush but never commit; the session owner decides when to commit.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .tables import (
    ConversationRow,
    GoalRow,
    LinkedAccountRow,
    MessageRow,
    ProfileRow,
    SuggestionDecisionRow,
    SummaryCacheRow,
    WaitlistRow,
)


class FinancialDataRepository:
    """Profile, linked accounts and goals of one user."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_profile(self, user_id: str) -> ProfileRow | None:
        return await self._session.get(ProfileRow, user_id)

    async def list_accounts(self, user_id: str) -> list[LinkedAccountRow]:
        stmt = (
            select(LinkedAccountRow)
            .where(LinkedAccountRow.user_id == user_id)
            .order_by(LinkedAccountRow.created_at, LinkedAccountRow.id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_goals(self, user_id: str) -> list[GoalRow]:
        stmt = (
            select(GoalRow)
            .where(GoalRow.user_id == user_id)
            .order_by(GoalRow.created_at, GoalRow.id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_goal(self, user_id: str, goal_id: str, **values: Any) -> int:
        """Update one goal owned by the user; returns the number of rows changed."""
        stmt = (
            update(GoalRow)
            .where(GoalRow.id == goal_id, GoalRow.user_id == user_id)
            .values(**values)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount

    async def update_account(self, user_id: str, account_id: str, **values: Any) -> int:
        """Update one linked account owned by the user; returns the number of rows changed."""
        stmt = (
            update(LinkedAccountRow)
            .where(LinkedAccountRow.id == account_id, LinkedAccountRow.user_id == user_id)
            .values(**values)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount


class ConversationRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_or_create(self, conversation_id: str, user_id: str, context_type: str | None) -> ConversationRow:
        conversation = await self._session.get(ConversationRow, conversation_id)
        if conversation is None:
            conversation = ConversationRow(id=conversation_id, user_id=user_id, context_type=context_type)
            self._session.add(conversation)
            await self._session.flush()
        return conversation

    async def add_message(self, conversation_id: str, role: str, content: str, silent: bool = False) -> MessageRow:
        message = MessageRow(conversation_id=conversation_id, role=role, content=content, silent=silent)
        self._session.add(message)
        await self._session.flush()
        return message

    async def list_messages(self, conversation_id: str, include_silent: bool = True) -> list[MessageRow]:
        stmt = select(MessageRow).where(MessageRow.conversation_id == conversation_id)
        if not include_silent:
            stmt = stmt.where(MessageRow.silent.is_(False))
        result = await self._session.execute(stmt.order_by(MessageRow.id))
        return list(result.scalars().all())


class SummaryCacheRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _identity_clause(user_id: str | None, demo_profile_id: str | None):
        if demo_profile_id:
            return SummaryCacheRow.demo_profile_id == demo_profile_id
        return SummaryCacheRow.user_id == user_id

    async def find_latest(
        self,
        user_id: str | None,
        demo_profile_id: str | None,
        view_mode: str,
        data_hash: str,
        not_expired_at: datetime | None = None,
    ) -> SummaryCacheRow | None:
        """Newest row for the key, optionally only if it has not expired."""
        stmt = select(SummaryCacheRow).where(
            self._identity_clause(user_id, demo_profile_id),
            SummaryCacheRow.view_mode == view_mode,
            SummaryCacheRow.data_hash == data_hash,
        )
        if not_expired_at is not None:
            stmt = stmt.where(SummaryCacheRow.expires_at > not_expired_at)
        stmt = stmt.order_by(SummaryCacheRow.created_at.desc(), SummaryCacheRow.id.desc()).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, row: SummaryCacheRow) -> SummaryCacheRow:
        self._session.add(row)
        await self._session.flush()
        return row

    async def save(self, row: SummaryCacheRow) -> None:
        await self._session.flush()

    async def delete_for_identity(self, user_id: str | None, demo_profile_id: str | None) -> int:
        stmt = delete(SummaryCacheRow).where(self._identity_clause(user_id, demo_profile_id))
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount


class DecisionRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, identity_key: str, suggestion_key: str) -> SuggestionDecisionRow | None:
        stmt = select(SuggestionDecisionRow).where(
            SuggestionDecisionRow.identity_key == identity_key,
            SuggestionDecisionRow.suggestion_key == suggestion_key,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, row: SuggestionDecisionRow) -> SuggestionDecisionRow:
        self._session.add(row)
        await self._session.flush()
        return row


class WaitlistRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, first_name: str, last_name: str, birthday: str, email: str) -> WaitlistRow:
        """Insert a signup; raises IntegrityError when the email is already listed."""
        row = WaitlistRow(first_name=first_name, last_name=last_name, birthday=birthday, email=email)
        self._session.add(row)
        await self._session.flush()
        return row
