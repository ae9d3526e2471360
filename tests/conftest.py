# tests/conftest.py
from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from ratwatch.api.v1.dependencies import get_notifier_dep
from ratwatch.db.session import Base
from ratwatch.db.session import get_db as app_get_session
from ratwatch.main import app as fastapi_app
from ratwatch.models import OutcomeRecord, Watch, WatchState
from ratwatch.schemas.events import WatchEvent
from ratwatch.services.lifecycle import LifecycleService
from ratwatch.services.notifications import WatchNotifier
from ratwatch.services.stats import StatsService
from ratwatch.services.voting import VotingService

TEST_DB_URL = "sqlite://"

GROUP_ID = 111111111
CHANNEL_ID = 222222222
ACCUSED_ID = 100000001
INITIATOR_ID = 100000002

# Fixed clock for service-level tests.
NOW = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)


@pytest.fixture()
def engine(request: pytest.FixtureRequest, tmp_path: Path) -> Generator[Engine, None, None]:
    if request.node.get_closest_marker("threaded"):
        # One connection per thread, so concurrent sessions really contend.
        engine = create_engine(
            f"sqlite:///{tmp_path / 'ratwatch.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    else:
        engine = create_engine(
            TEST_DB_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def notifier() -> WatchNotifier:
    """A notifier private to the test."""
    return WatchNotifier()


@pytest.fixture()
def events(notifier: WatchNotifier) -> list[WatchEvent]:
    """Every event published during the test, in order."""
    recorded: list[WatchEvent] = []
    notifier.subscribe(recorded.append)
    return recorded


@pytest.fixture()
def lifecycle(db_session: Session, notifier: WatchNotifier) -> LifecycleService:
    return LifecycleService(db_session, notifier)


@pytest.fixture()
def voting(db_session: Session, notifier: WatchNotifier) -> VotingService:
    return VotingService(db_session, notifier)


@pytest.fixture()
def stats(db_session: Session) -> StatsService:
    return StatsService(db_session)


@pytest.fixture()
def make_watch(db_session: Session) -> Callable[..., Watch]:
    """Insert a watch row directly, bypassing lifecycle validation."""

    def _make_watch(**overrides: Any) -> Watch:
        created_at = overrides.pop("created_at", NOW - timedelta(hours=1))
        values: dict[str, Any] = {
            "id": uuid.uuid4().hex,
            "group_id": GROUP_ID,
            "channel_id": CHANNEL_ID,
            "accused_user_id": ACCUSED_ID,
            "initiator_user_id": INITIATOR_ID,
            "origin_message_id": 333333333,
            "deadline": created_at + timedelta(hours=1),
            "custom_message": None,
            "state": WatchState.PENDING.value,
            "created_at": created_at,
            "guilty_votes": 0,
            "not_guilty_votes": 0,
        }
        values.update(overrides)
        state = values["state"]
        values["state"] = state.value if isinstance(state, WatchState) else state
        watch = Watch(**values)
        db_session.add(watch)
        db_session.commit()
        return watch

    return _make_watch


@pytest.fixture()
def make_verdict(
    db_session: Session,
    make_watch: Callable[..., Watch],
) -> Callable[..., Watch]:
    """Insert a decided watch, with its outcome record when guilty."""

    def _make_verdict(
        guilty_votes: int,
        not_guilty_votes: int,
        *,
        user_id: int = ACCUSED_ID,
        group_id: int = GROUP_ID,
        recorded_at: datetime | None = None,
        **overrides: Any,
    ) -> Watch:
        state = (
            WatchState.GUILTY if guilty_votes > not_guilty_votes else WatchState.NOT_GUILTY
        )
        recorded_at = recorded_at or NOW
        watch = make_watch(
            state=state,
            group_id=group_id,
            accused_user_id=user_id,
            guilty_votes=guilty_votes,
            not_guilty_votes=not_guilty_votes,
            voting_ended_at=recorded_at,
            **overrides,
        )
        if state is WatchState.GUILTY:
            db_session.add(
                OutcomeRecord(
                    id=uuid.uuid4().hex,
                    watch_id=watch.id,
                    group_id=group_id,
                    user_id=user_id,
                    guilty_votes=guilty_votes,
                    not_guilty_votes=not_guilty_votes,
                    recorded_at=recorded_at,
                )
            )
            db_session.commit()
        return watch

    return _make_verdict


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    notifier: WatchNotifier,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_notifier_dep] = lambda: notifier
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_notifier_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
