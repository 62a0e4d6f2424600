from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from plantops.db.connection import build_engine, init_db
from plantops.domain.approval import (
    ApprovalRequestRepository,
    ApprovalReviewService,
    DefaultMutationGate,
)
from plantops.domain.records import RecordMutatorRegistry


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'approvals.sqlite3'}", timeout=5.0)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(db) -> ApprovalRequestRepository:
    return ApprovalRequestRepository(db)


@pytest.fixture
def mutators() -> RecordMutatorRegistry:
    return RecordMutatorRegistry.in_memory()


@pytest.fixture
def gate(repo, mutators) -> DefaultMutationGate:
    return DefaultMutationGate(repo, mutators, domain_timeout=1.0)


@pytest.fixture
def review(repo, mutators) -> ApprovalReviewService:
    return ApprovalReviewService(repo, mutators, domain_timeout=1.0)


@pytest.fixture(scope="module")
def anyio_backend():
    return "asyncio"
