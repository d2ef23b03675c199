"""Chat-completion gateway in front of the Gemini chat model.

The gateway sends a system prompt plus conversation history to the model and
turns every upstream failure into an `LLMGatewayError` with a client-facing
category. There is no retry: a failed call surfaces immediately.
"""

import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from ..config import settings
from ..exceptions import LLMGatewayError

logger = logging.getLogger(__name__)


def create_chat_model(max_output_tokens: int | None = None, temperature: float | None = None) -> ChatGoogleGenerativeAI:
    """Create the Gemini chat model with the configured sampling settings."""
    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.google_api_key,
        temperature=settings.llm_temperature if temperature is None else temperature,
        top_p=settings.llm_top_p,
        max_output_tokens=max_output_tokens or settings.llm_max_output_tokens,
        max_retries=0,
    )


def message_text(message: BaseMessage) -> str:
    """Extract plain text from a message, skipping thinking blocks."""
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for item in content:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, dict) and item.get("type") == "text":
            parts.append(item.get("text", ""))
    return "".join(parts)


def upstream_status(exc: Exception) -> int | None:
    """Best-effort HTTP status of an upstream error."""
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return int(value)

    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value

    text = str(exc)
    if "429" in text:
        return 429
    if "402" in text:
        return 402
    return None


def to_gateway_error(exc: Exception) -> LLMGatewayError:
    """Categorise an upstream failure."""
    if isinstance(exc, LLMGatewayError):
        return exc

    status = upstream_status(exc)
    if status == 429:
        category = "rate_limited"
    elif status == 402:
        category = "payment_required"
    elif status is not None and status >= 500:
        category = "server_error"
    else:
        category = "failed"
    return LLMGatewayError(category, detail=str(exc), upstream_status=status)


def build_llm_messages(system_prompt: str, history: list[BaseMessage]) -> list[BaseMessage]:
    """System prompt first, then the user and assistant turns of the history."""
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for msg in history:
        if isinstance(msg, (HumanMessage, AIMessage)):
            messages.append(msg)
    return messages


class ChatGateway:
    """Sends prompts to a chat model and normalises its failures."""

    def __init__(self, llm: BaseChatModel, structured_llm: BaseChatModel | None = None):
        self._llm = llm
        self._structured_llm = structured_llm or llm

    @classmethod
    def from_settings(cls) -> "ChatGateway":
        return cls(
            llm=create_chat_model(settings.llm_max_output_tokens),
            structured_llm=create_chat_model(settings.llm_structured_max_output_tokens),
        )

    async def complete(
        self,
        system_prompt: str,
        history: list[BaseMessage],
        structured: bool = False,
    ) -> str:
        """Run one chat completion and return its text.

        Args:
            system_prompt: Prompt template plus financial context.
            history: Conversation so far; system messages are dropped.
            structured: Use the client configured for JSON replies.

        Raises:
            LLMGatewayError: On any upstream failure or an empty reply.
        """
        llm = self._structured_llm if structured else self._llm
        messages = build_llm_messages(system_prompt, history)
        logger.info(
            "Invoking chat model: %d messages, system prompt %d chars, structured=%s",
            len(messages),
            len(system_prompt),
            structured,
        )

        try:
            response = await llm.ainvoke(messages)
        except Exception as exc:
            error = to_gateway_error(exc)
            logger.error("Chat model call failed (%s): %s", error.category, exc)
            raise error from exc

        text = message_text(response).strip()
        if not text:
            finish_reason = (getattr(response, "response_metadata", None) or {}).get("finish_reason")
            logger.error("Chat model returned empty content (finish_reason=%s)", finish_reason)
            raise LLMGatewayError("failed", detail=f"empty response, finish_reason={finish_reason}")

        logger.info("Chat model response received: %d chars", len(text))
        return text
