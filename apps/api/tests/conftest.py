"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test
- Users for every role plus bearer tokens
- HTTPX AsyncClient with an Authorization header
- Fake AI provider and LangSmith client
"""
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncGenerator, Generator

# Must be set before helpdesk modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ["AUTH_JWT_SECRET_PREVIOUS"] = ""
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["TEST_DATA_ENDPOINTS_ENABLED"] = "true"
os.environ["AI_API_KEY"] = ""
os.environ["LANGSMITH_API_KEY"] = ""
os.environ["SENTRY_DSN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from helpdesk.core import cache
from helpdesk.core.deps import get_ai_provider
from helpdesk.core.security import create_access_token
from helpdesk.db.base import Base
from helpdesk.db.enums import Role
from helpdesk.db.models import User
from helpdesk.db.session import SessionLocal, engine
from helpdesk.main import app
from helpdesk.services.ai_provider import AIProvider, AIProviderError, ChatMessage, ChatResponse
from helpdesk.services.tracing_service import Tracer, get_tracer


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def _schema() -> Generator[None, None, None]:
    """Create every table before a test and drop them afterwards."""
    Base.metadata.create_all(bind=engine)
    cache.clear()
    yield
    cache.clear()
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(_schema) -> Generator[Session, None, None]:
    session = SessionLocal()
    yield session
    session.close()


def make_user(db: Session, role: Role, name: str | None = None, **extra) -> User:
    columns = {
        "id": uuid.uuid4(),
        "email": f"{role.value.lower()}-{uuid.uuid4().hex[:8]}@test.com",
        "name": name or f"{role.value.title()} User",
        "role": role,
    }
    columns.update(extra)
    user = User(**columns)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user_factory(db: Session):
    """Callable: (role, name=None, **columns) -> committed User."""
    def build(role: Role, name: str | None = None, **extra) -> User:
        return make_user(db, role, name=name, **extra)
    return build


@pytest.fixture
def customer(db: Session) -> User:
    return make_user(db, Role.CUSTOMER, name="Casey Customer")


@pytest.fixture
def other_customer(db: Session) -> User:
    return make_user(db, Role.CUSTOMER, name="Olive Other")


@pytest.fixture
def agent(db: Session) -> User:
    return make_user(db, Role.AGENT, name="Alex Agent")


@pytest.fixture
def manager(db: Session) -> User:
    return make_user(db, Role.MANAGER, name="Morgan Manager")


@pytest.fixture
def admin(db: Session) -> User:
    return make_user(db, Role.ADMIN, name="Ada Admin")


# =============================================================================
# Auth Fixtures
# =============================================================================

def token_for(user: User) -> str:
    return create_access_token(user.id, user.email, role=user.role.value)


@pytest.fixture
def auth_headers():
    """Callable: user -> Authorization header dict."""
    def build(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user)}"}
    return build


# =============================================================================
# AI Fakes
# =============================================================================

class FakeProvider(AIProvider):
    """Returns canned content, or raises when `error` is set."""

    def __init__(self, content: str = "", error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls: list[list[ChatMessage]] = []

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        json_output: bool = False,
    ) -> ChatResponse:
        self.calls.append(messages)
        if self.error:
            raise self.error
        return ChatResponse(
            content=self.content,
            prompt_tokens=10,
            completion_tokens=5,
            total_tokens=15,
            model="fake-model",
        )


@dataclass
class _Dataset:
    id: uuid.UUID
    name: str


@dataclass
class FakeLangSmithClient:
    """Records calls made through the LangSmith client surface the tracer uses."""
    runs: dict = field(default_factory=dict)
    updates: list = field(default_factory=list)
    feedback: list = field(default_factory=list)
    datasets: dict = field(default_factory=dict)
    examples: list = field(default_factory=list)
    fail: bool = False

    def create_run(self, name, inputs, run_type, id, parent_run_id=None, **kwargs):
        if self.fail:
            raise RuntimeError("langsmith down")
        self.runs[id] = {
            "name": name,
            "inputs": inputs,
            "run_type": run_type,
            "parent_run_id": parent_run_id,
        }

    def update_run(self, run_id, outputs=None, error=None, **kwargs):
        if self.fail:
            raise RuntimeError("langsmith down")
        self.updates.append({"run_id": run_id, "outputs": outputs, "error": error})

    def create_feedback(self, run_id, key, score=None, value=None, comment=None, **kwargs):
        if self.fail:
            raise RuntimeError("langsmith down")
        self.feedback.append(
            {"run_id": run_id, "key": key, "score": score, "value": value, "comment": comment}
        )

    def list_datasets(self, dataset_name=None, **kwargs):
        if self.fail:
            raise RuntimeError("langsmith down")
        return [d for d in self.datasets.values() if d.name == dataset_name]

    def create_dataset(self, dataset_name, description=None, **kwargs):
        dataset = _Dataset(id=uuid.uuid4(), name=dataset_name)
        self.datasets[dataset_name] = dataset
        return dataset

    def create_example(self, inputs, outputs, dataset_id, metadata=None, **kwargs):
        self.examples.append(
            {"inputs": inputs, "outputs": outputs, "dataset_id": dataset_id, "metadata": metadata}
        )

    def read_run(self, run_id, **kwargs):
        if run_id not in self.runs:
            raise LookupError(f"run {run_id} not found")
        return self.runs[run_id]


@pytest.fixture
def langsmith_client() -> FakeLangSmithClient:
    return FakeLangSmithClient()


@pytest.fixture
def tracer(langsmith_client: FakeLangSmithClient) -> Tracer:
    tracer = Tracer(langsmith_client, project_name="helpdesk-test", endpoint="https://smith.test")
    app.dependency_overrides[get_tracer] = lambda: tracer
    return tracer


@pytest.fixture
def fake_provider() -> FakeProvider:
    provider = FakeProvider()
    app.dependency_overrides[get_ai_provider] = lambda: provider
    return provider


@pytest.fixture
def failing_provider() -> FakeProvider:
    provider = FakeProvider(error=AIProviderError("OpenAI returned HTTP 500"))
    app.dependency_overrides[get_ai_provider] = lambda: provider
    return provider


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
async def client(_schema) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient; pass `headers=auth_headers(user)` per request."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c
