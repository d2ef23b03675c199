"""API request and response schemas."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import DemoProfile, FinancialSnapshot, Goal, LinkedAccount, Suggestion, UserProfile


class CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(BaseModel):
    """One chat message as sent by the web client."""

    role: Literal["system", "user", "assistant"]
    content: str
    silent: bool = Field(default=False, description="Sent to the model and logged, but not shown as a bubble")


class DemoOptions(CamelSchema):
    demo_profile_id: str | None = None


class FinancialChatRequest(CamelSchema):
    """Body of POST /functions/v1/financial-chat."""

    messages: list[ChatMessage] = Field(default_factory=list)
    conversation_id: str | None = None
    context_type: str | None = None
    context_data: dict[str, Any] | None = None
    demo: DemoOptions | None = None
    stream: bool = False
    endpoint: Literal["chat", "suggestions"] = "chat"
    view_mode: str | None = None


class FinancialChatResponse(CamelSchema):
    message: str | None
    summary: str | None = None
    suggestions: list[Suggestion] | None = None
    goal_updated: bool | None = None
    applied_actions: list[str] | None = None
    pending_actions: list[str] | None = None
    cached: bool | None = None


class DemoProfileResponse(CamelSchema):
    id: str
    name: str
    profile: UserProfile
    accounts: list[LinkedAccount]
    goals: list[Goal]
    snapshot: FinancialSnapshot

    @classmethod
    def from_profile(cls, demo: DemoProfile) -> "DemoProfileResponse":
        return cls(
            id=demo.id,
            name=demo.name,
            profile=demo.profile,
            accounts=demo.accounts,
            goals=demo.goals,
            snapshot=demo.snapshot,
        )


class WaitlistRequest(CamelSchema):
    """Body of POST /functions/v1/waitlist-submit. Presence is checked by the handler."""

    first_name: str | None = None
    last_name: str | None = None
    birthday: str | None = None
    email: str | None = None
    turnstile_token: str | None = None


class WaitlistResponse(BaseModel):
    success: bool
    message: str


class DeltaContent(BaseModel):
    """Delta content in streaming response."""

    content: str | None = None
    reasoning_content: str | None = None
    role: str | None = None


class ChatCompletionChoice(BaseModel):
    """Single choice in a streamed chunk."""

    index: int = 0
    delta: DeltaContent | None = None
    finish_reason: str | None = None


class ChatCompletionChunk(CamelSchema):
    """Streaming response chunk; the final chunk also carries turn results."""

    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    choices: list[ChatCompletionChoice]
    goal_updated: bool | None = None
    applied_actions: list[str] | None = None
    pending_actions: list[str] | None = None
