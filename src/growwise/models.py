"""Core data models for the GrowWise financial chat service."""

from enum import Enum
from typing import Annotated, Any, Literal

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing_extensions import TypedDict

AccountType = Literal["bank", "investment", "loan"]
GoalStatus = Literal["active", "completed"]
SuggestionStatus = Literal["pending", "approved", "denied"]
Decision = Literal["approved", "denied", "know_more"]


class CamelModel(BaseModel):
    """Base for models serialised to the web client in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Allocation(BaseModel):
    """Target split of a balance across savings, stocks and bonds (percent)."""

    savings: int = 0
    stocks: int = 0
    bonds: int = 0

    @property
    def total(self) -> int:
        return self.savings + self.stocks + self.bonds


class LinkedAccount(BaseModel):
    """An account linked by the user (bank, investment or loan)."""

    id: str
    account_type: AccountType
    provider_name: str
    last_four_digits: str | None = None
    total_amount: float = 0.0
    interest_rate: float | None = None
    allocation_savings: int = 0
    allocation_stocks: int = 0
    allocation_bonds: int = 0

    @model_validator(mode="after")
    def check_allocation(self) -> "LinkedAccount":
        """Non-loan allocations sum to 100, loans carry no allocation."""
        total = self.allocation_savings + self.allocation_stocks + self.allocation_bonds
        if self.account_type == "loan" and total != 0:
            raise ValueError("loan accounts cannot carry an allocation")
        if self.account_type != "loan" and total != 100:
            raise ValueError(f"allocation for {self.provider_name} must sum to 100, got {total}")
        return self

    @property
    def allocation(self) -> Allocation:
        return Allocation(
            savings=self.allocation_savings,
            stocks=self.allocation_stocks,
            bonds=self.allocation_bonds,
        )


class Goal(BaseModel):
    """A savings goal with its target allocation."""

    id: str
    name: str
    target_amount: float
    current_amount: float = Field(default=0.0, ge=0)
    target_age: int | None = None
    description: str | None = None
    saving_account: str | None = None
    investment_account: str | None = None
    allocation_savings: int = 0
    allocation_stocks: int = 0
    allocation_bonds: int = 0
    status: GoalStatus = "active"

    @property
    def allocation(self) -> Allocation:
        return Allocation(
            savings=self.allocation_savings,
            stocks=self.allocation_stocks,
            bonds=self.allocation_bonds,
        )

    @property
    def progress_percent(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return round(self.current_amount / self.target_amount * 100, 1)

    @property
    def remaining(self) -> float:
        return max(self.target_amount - self.current_amount, 0.0)


class UserProfile(BaseModel):
    """Profile details collected during onboarding."""

    legal_first_name: str | None = None
    legal_last_name: str | None = None
    preferred_first_name: str | None = None
    income: str | None = None
    employment_type: str | None = None
    goals: list[str] = Field(default_factory=list)
    risk_inferred: str | None = None
    date_of_birth: str | None = None
    city: str | None = None
    state: str | None = None

    @property
    def display_name(self) -> str | None:
        first = self.preferred_first_name or self.legal_first_name
        if not first:
            return None
        return f"{first} {self.legal_last_name or ''}".strip()


class FinancialSnapshot(CamelModel):
    """Totals derived from a list of linked accounts."""

    net_worth: float = 0.0
    assets_total: float = 0.0
    liabilities_total: float = 0.0
    cash_total: float = 0.0
    investments_total: float = 0.0

    @classmethod
    def from_accounts(cls, accounts: list[LinkedAccount]) -> "FinancialSnapshot":
        """Re-derive every total from scratch."""
        cash = sum(a.total_amount for a in accounts if a.account_type == "bank")
        investments = sum(a.total_amount for a in accounts if a.account_type == "investment")
        liabilities = sum(a.total_amount for a in accounts if a.account_type == "loan")
        assets = cash + investments
        return cls(
            net_worth=assets - liabilities,
            assets_total=assets,
            liabilities_total=liabilities,
            cash_total=cash,
            investments_total=investments,
        )


class FinancialProfile(BaseModel):
    """A user's profile, accounts and goals."""

    profile: UserProfile = Field(default_factory=UserProfile)
    accounts: list[LinkedAccount] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)

    @property
    def snapshot(self) -> FinancialSnapshot:
        return FinancialSnapshot.from_accounts(self.accounts)

    def find_goal(self, keyword: str) -> Goal | None:
        keyword = keyword.lower()
        return next((g for g in self.goals if keyword in g.name.lower()), None)

    def find_account(self, provider: str, account_type: AccountType | None = None) -> LinkedAccount | None:
        provider = provider.lower()
        for account in self.accounts:
            if account_type and account.account_type != account_type:
                continue
            if provider in account.provider_name.lower():
                return account
        return None


class DemoProfile(FinancialProfile):
    """A self-contained demo persona."""

    id: str
    name: str


class SuggestionActionType(str, Enum):
    """Effect a suggestion triggers when approved."""

    COMPLETE_EMERGENCY_FUND = "COMPLETE_EMERGENCY_FUND"
    REALLOCATE_DOWN_PAYMENT = "REALLOCATE_DOWN_PAYMENT"
    ACCELERATE_SOFI_LOAN = "ACCELERATE_SOFI_LOAN"
    REBALANCE_BROKERAGE = "REBALANCE_BROKERAGE"
    INCREASE_MONTHLY_CONTRIBUTION = "INCREASE_MONTHLY_CONTRIBUTION"
    NO_ACTION = "NO_ACTION"


NET_WORTH_CONTEXT_TYPES = frozenset({"net_worth", "networth", "dashboard"})

# Context types in which each effect may run
ACTION_CONTEXT_TYPES: dict[SuggestionActionType, frozenset[str]] = {
    SuggestionActionType.COMPLETE_EMERGENCY_FUND: NET_WORTH_CONTEXT_TYPES,
    SuggestionActionType.REALLOCATE_DOWN_PAYMENT: NET_WORTH_CONTEXT_TYPES,
    SuggestionActionType.ACCELERATE_SOFI_LOAN: NET_WORTH_CONTEXT_TYPES | {"liabilities"},
    SuggestionActionType.REBALANCE_BROKERAGE: frozenset({"assets"}),
    SuggestionActionType.INCREASE_MONTHLY_CONTRIBUTION: frozenset({"goal", "goals"}),
}


class Suggestion(CamelModel):
    """A discrete, user-actionable recommendation extracted from LLM output."""

    id: str
    title: str
    body: str
    status: SuggestionStatus = "pending"
    context_type: str | None = None
    action_type: SuggestionActionType = SuggestionActionType.NO_ACTION


class ParsedResponse(BaseModel):
    """Summary text plus suggestions parsed from one LLM reply."""

    summary: str
    suggestions: list[Suggestion] = Field(default_factory=list)


class ParsedDecision(BaseModel):
    """Result of matching a message against the decision sentence patterns."""

    is_decision: bool = False
    decision: Decision | None = None
    suggestion_title: str | None = None


class EffectResult(CamelModel):
    """What an approval already did, and what the user still has to do."""

    applied_actions: list[str] = Field(default_factory=list)
    pending_actions: list[str] = Field(default_factory=list)


class Identity(BaseModel):
    """Who a request acts for: an authenticated user or a demo persona."""

    user_id: str | None = None
    demo_profile_id: str | None = None

    @model_validator(mode="after")
    def check_single_identity(self) -> "Identity":
        if self.user_id and self.demo_profile_id:
            raise ValueError("an identity is either a user or a demo profile, not both")
        return self

    @property
    def is_demo(self) -> bool:
        return self.demo_profile_id is not None

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id and not self.demo_profile_id

    @property
    def key(self) -> str:
        if self.demo_profile_id:
            return f"demo:{self.demo_profile_id}"
        if self.user_id:
            return f"user:{self.user_id}"
        return "anonymous"


class TurnState(TypedDict, total=False):
    """LangGraph state for one chat turn."""

    messages: Annotated[list[BaseMessage], add_messages]
    context_type: str
    context_data: dict[str, Any]
    route: Literal["decision", "goal_update", "chat"]
    decision: ParsedDecision
    response: str
    parsed: ParsedResponse | None
    effects: EffectResult | None
    goal_updated: bool
    cached: bool
