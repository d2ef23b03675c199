"""Pytest fixtures for testing."""

import os

import pytest
import pytest_asyncio

# Set test environment variables before importing app modules
os.environ.setdefault("GEMINI_API_KEY", "test-api-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from langchain_core.language_models import BaseChatModel  # noqa: E402
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel  # noqa: E402
from langchain_core.messages import AIMessage  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.growwise.agent.gateway import ChatGateway  # noqa: E402
from src.growwise.finance.demo_profiles import reset_demo_profiles  # noqa: E402
from src.growwise.storage.tables import Base  # noqa: E402


class FailingChatModel(BaseChatModel):
    """Chat model whose every call fails like an upstream HTTP error."""

    error_message: str = "429 Resource has been exhausted"

    @property
    def _llm_type(self) -> str:
        return "failing"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        raise RuntimeError(self.error_message)


@pytest.fixture(autouse=True)
def fresh_demo_profiles():
    """Every test starts from the demo fixtures."""
    reset_demo_profiles()
    yield
    reset_demo_profiles()


@pytest.fixture
def make_gateway():
    """Build a gateway that answers with the given replies, in order."""

    def _make(*replies: str) -> ChatGateway:
        model = GenericFakeChatModel(messages=iter([AIMessage(content=r) for r in replies]))
        return ChatGateway(model)

    return _make


@pytest.fixture
def failing_gateway():
    """Build a gateway whose model fails with the given upstream error text."""

    def _make(error_message: str = "429 Resource has been exhausted") -> ChatGateway:
        return ChatGateway(FailingChatModel(error_message=error_message))

    return _make


@pytest_asyncio.fixture
async def db_session():
    """Session on a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def demo_payload():
    """Request body fragment selecting the young-professional persona."""
    return {"demo": {"demoProfileId": "young-professional"}}
