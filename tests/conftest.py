"""Shared fixtures for the post workflow tests."""

from datetime import datetime, timezone

import pytest

from post_workflow.core import FrozenClock, Settings, build_engine, build_session_factory, init_db
from post_workflow.schemas import Actor, PostType, UserRole
from post_workflow.services import (
    AssignmentManager,
    CollectingNotifier,
    InMemoryActivityRecorder,
    PollEngine,
    PostService,
    PostWorkflowEngine,
)


# Monday
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def recorder() -> InMemoryActivityRecorder:
    return InMemoryActivityRecorder()


@pytest.fixture
def poll_engine(clock: FrozenClock) -> PollEngine:
    return PollEngine(clock)


@pytest.fixture
def workflow(recorder, clock, poll_engine) -> PostWorkflowEngine:
    return PostWorkflowEngine(recorder, clock, poll_engine)


@pytest.fixture
def assignments(recorder, clock) -> AssignmentManager:
    return AssignmentManager(recorder, clock)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", name="Alex Admin", role=UserRole.COMPANY_ADMIN)


@pytest.fixture
def author() -> Actor:
    return Actor(id="emp-1", name="Erin Employee", role=UserRole.EMPLOYEE)


@pytest.fixture
def open_post(workflow: PostWorkflowEngine, author: Actor):
    """A freshly created problem report (CREATED already recorded)."""
    return workflow.create_post(
        post_type=PostType.PROBLEM_REPORT,
        title="Broken badge reader on floor 3",
        actor=author,
    )


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'post_workflow.db'}"


@pytest.fixture
def db_engine(database_url: str):
    engine = build_engine(database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def service(session_factory, clock, notifier, database_url) -> PostService:
    return PostService(
        session_factory=session_factory,
        clock=clock,
        notifier=notifier,
        settings=Settings(database_url=database_url, max_write_retries=3),
    )
