"""Shared fixtures and fakes for the test suite."""

import asyncio
from typing import Any, Optional, Union

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from genflow.config import Config
from genflow.db.database import init_db
from genflow.services.credits import CreditsService
from genflow.services.generation_api import GenerateResponse, GenerationService, JobStatus
from genflow.services.orchestrator import GenerationOrchestrator
from genflow.session.models import WorkflowSession
from genflow.session.variants import BACKGROUND_SWAP, ON_MODEL
from genflow.tasks.cancellation import CancellationToken
from genflow.tasks.polling import JobPoller


PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAAB"
JPEG = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD"
RESULT_URL = "https://cdn.example.com/results/r1.png"


def pending(job_id: str = "j1") -> JobStatus:
    return JobStatus(job_id=job_id, status="pending")


def completed(result_ref: str, job_id: str = "j1") -> JobStatus:
    return JobStatus(job_id=job_id, status="completed", result_ref=result_ref)


class FakeGenerationService(GenerationService):
    """Scripted generation service that records every call."""
    
    def __init__(self) -> None:
        self.generate_result: Union[GenerateResponse, BaseException, None] = None
        self.statuses: list[Union[JobStatus, BaseException]] = []
        self.edit_result: Union[str, BaseException] = "https://cdn.example.com/results/edited.png"
        self.generate_calls: list[tuple[str, dict[str, Any]]] = []
        self.status_calls: list[tuple[str, str]] = []
        self.edit_calls: list[tuple[str, str]] = []
        # When set, generate() waits for it before answering
        self.release: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
    
    @property
    def network_calls(self) -> int:
        return len(self.generate_calls) + len(self.status_calls) + len(self.edit_calls)
    
    async def generate(self, feature: str, payload: dict[str, Any]) -> GenerateResponse:
        self.generate_calls.append((feature, payload))
        self.started.set()
        if self.release is not None:
            await self.release.wait()
        if isinstance(self.generate_result, BaseException):
            raise self.generate_result
        assert self.generate_result is not None, "generate_result not scripted"
        return self.generate_result
    
    async def job_status(self, feature: str, job_id: str) -> JobStatus:
        self.status_calls.append((feature, job_id))
        # The last scripted status repeats forever
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, BaseException):
            raise item
        return item
    
    async def edit(self, base_result_ref: str, instruction_text: str) -> str:
        self.edit_calls.append((base_result_ref, instruction_text))
        if isinstance(self.edit_result, BaseException):
            raise self.edit_result
        return self.edit_result


class FakeClock:
    """Monotonic clock that only moves when the poller sleeps."""
    
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
    
    def __call__(self) -> float:
        return self.now
    
    async def sleep(self, delay: float, token: CancellationToken) -> None:
        token.raise_if_cancelled()
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)
        token.raise_if_cancelled()


def make_config(**overrides: Any) -> Config:
    values = dict(
        api_base_url="http://api.test",
        api_token="",
        request_timeout=5.0,
        poll_interval_seconds=2.0,
        poll_timeout_seconds=10.0,
        poll_max_check_failures=3,
        session_storage="memory",
        redis_url="redis://localhost:6379/0",
        database_url="",
        log_level="DEBUG",
    )
    values.update(overrides)
    return Config(**values)


def on_model_session(**fields: Any) -> WorkflowSession:
    session = ON_MODEL.new_session()
    session.inputs = {0: PNG}
    session.selections.subject_id = "model-1"
    for name, value in fields.items():
        setattr(session, name, value)
    return session


def background_swap_session() -> WorkflowSession:
    session = BACKGROUND_SWAP.new_session()
    session.inputs = {0: PNG, 1: JPEG}
    session.selections.backdrop_id = 7
    return session


@pytest.fixture
def fake_service() -> FakeGenerationService:
    return FakeGenerationService()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poller(fake_service: FakeGenerationService, fake_clock: FakeClock) -> JobPoller:
    return JobPoller(
        fake_service,
        interval=2.0,
        timeout=10.0,
        max_check_failures=3,
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


@pytest_asyncio.fixture
async def credits():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"credits": 10}))
    async with httpx.AsyncClient(transport=transport, base_url="http://api.test") as client:
        yield CreditsService(client)


@pytest.fixture
def orchestrator(
    fake_service: FakeGenerationService,
    poller: JobPoller,
    credits: CreditsService,
) -> GenerationOrchestrator:
    return GenerationOrchestrator(fake_service, poller, credits=credits)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(session_maker):
    async with session_maker() as session:
        yield session
