"""SQLAlchemy table models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp; columns store UTC without a zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def default_savings_allocation(context) -> int:
    """Cash and investment accounts inserted without a split are all savings."""
    params = context.get_current_parameters()
    if params.get("account_type") == "loan":
        return 0
    if params.get("allocation_stocks") or params.get("allocation_bonds"):
        return 0
    return 100


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class ProfileRow(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    legal_first_name: Mapped[str | None] = mapped_column(String(100))
    legal_last_name: Mapped[str | None] = mapped_column(String(100))
    preferred_first_name: Mapped[str | None] = mapped_column(String(100))
    income: Mapped[str | None] = mapped_column(String(100))
    employment_type: Mapped[str | None] = mapped_column(String(50))
    goals: Mapped[str | None] = mapped_column(Text)  # comma-separated
    risk_inferred: Mapped[str | None] = mapped_column(String(20))
    date_of_birth: Mapped[str | None] = mapped_column(String(10))
    city: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(50))

    def to_dict(self) -> dict:
        return {
            "legal_first_name": self.legal_first_name,
            "legal_last_name": self.legal_last_name,
            "preferred_first_name": self.preferred_first_name,
            "income": self.income,
            "employment_type": self.employment_type,
            "goals": [g.strip() for g in (self.goals or "").split(",") if g.strip()],
            "risk_inferred": self.risk_inferred,
            "date_of_birth": self.date_of_birth,
            "city": self.city,
            "state": self.state,
        }


class LinkedAccountRow(Base):
    __tablename__ = "linked_accounts"
    __table_args__ = (
        CheckConstraint(
            "(account_type = 'loan' AND allocation_savings + allocation_stocks + allocation_bonds = 0) "
            "OR (account_type <> 'loan' AND allocation_savings + allocation_stocks + allocation_bonds = 100)",
            name="ck_linked_accounts_allocation",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_four_digits: Mapped[str | None] = mapped_column(String(4))
    total_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    interest_rate: Mapped[float | None] = mapped_column(Float)
    allocation_savings: Mapped[int] = mapped_column(Integer, default=default_savings_allocation, nullable=False)
    allocation_stocks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    allocation_bonds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_type": self.account_type,
            "provider_name": self.provider_name,
            "last_four_digits": self.last_four_digits,
            "total_amount": self.total_amount,
            "interest_rate": self.interest_rate,
            "allocation_savings": self.allocation_savings,
            "allocation_stocks": self.allocation_stocks,
            "allocation_bonds": self.allocation_bonds,
        }


class GoalRow(Base):
    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    target_amount: Mapped[float] = mapped_column(Float, nullable=False)
    current_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    target_age: Mapped[int | None] = mapped_column(Integer)
    description: Mapped[str | None] = mapped_column(Text)
    saving_account: Mapped[str | None] = mapped_column(String(100))
    investment_account: Mapped[str | None] = mapped_column(String(100))
    allocation_savings: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    allocation_stocks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    allocation_bonds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "target_amount": self.target_amount,
            "current_amount": self.current_amount,
            "target_age": self.target_age,
            "description": self.description,
            "saving_account": self.saving_account,
            "investment_account": self.investment_account,
            "allocation_savings": self.allocation_savings,
            "allocation_stocks": self.allocation_stocks,
            "allocation_bonds": self.allocation_bonds,
            "status": self.status,
        }


class ConversationRow(Base):
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    context_type: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class MessageRow(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("conversations.id", ondelete="CASCADE"), index=True, nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    silent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class SummaryCacheRow(Base):
    __tablename__ = "summary_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str | None] = mapped_column(String(64), index=True)
    demo_profile_id: Mapped[str | None] = mapped_column(String(64), index=True)
    view_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    data_hash: Mapped[str] = mapped_column(String(32), nullable=False)
    summary_text: Mapped[str] = mapped_column(Text, nullable=False)
    financial_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    suggestions: Mapped[list | None] = mapped_column(JSON)
    suggestion_responses: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SuggestionDecisionRow(Base):
    """Server-side record of terminal decisions, one per suggestion."""

    __tablename__ = "suggestion_decisions"
    __table_args__ = (UniqueConstraint("identity_key", "suggestion_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(String(100), nullable=False)
    suggestion_key: Mapped[str] = mapped_column(String(300), nullable=False)
    suggestion_title: Mapped[str] = mapped_column(String(200), nullable=False)
    context_type: Mapped[str | None] = mapped_column(String(50))
    goal_id: Mapped[str | None] = mapped_column(String(64))
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class WaitlistRow(Base):
    __tablename__ = "waitlist"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    birthday: Mapped[str] = mapped_column(String(10), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
