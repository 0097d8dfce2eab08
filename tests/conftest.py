"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. Each test
that touches the ledger creates its own customer, so tests never share
entries even though the database lives for the whole session.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_karma.db")
os.environ["LLM_API_KEY"] = ""

from datetime import date
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from karma_engine.core.errors import TextCompletionError
from karma_engine.db.base import Base, get_db
from karma_engine.main import app
from karma_engine.models.customer import Customer
from karma_engine.routers.karma import get_text_completion
from karma_engine.services.karma_service import KarmaService, build_classifier
from karma_engine.services.ledger import SqlIdentityCheck, SqlLedgerStore
from karma_engine.services.rule_table import RuleTableCache
from karma_engine.services.seed_data import seed_reference_data

SQLITE_URL = "sqlite:///./test_karma.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeCompletion:
    """
    Scripted text completion. `replies` are returned in order; an Exception
    instance in the list is raised instead. Every call is recorded.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    def complete(self, system_prompt, user_prompt, *, json_response=False, max_tokens=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "json_response": json_response,
        })
        if not self.replies:
            raise TextCompletionError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    # Seed reference data (normally done by the Alembic migration)
    db = TestingSessionLocal()
    try:
        seed_reference_data(db)
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_user(db) -> Callable[..., int]:
    def _make(name: str = "Test User", is_deleted: bool = False) -> int:
        customer = Customer(name=name, is_deleted=is_deleted)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer.id
    return _make


@pytest.fixture()
def user_id(make_user) -> int:
    return make_user()


@pytest.fixture()
def make_service(db) -> Callable[..., KarmaService]:
    def _make(completion=None, as_of: Optional[date] = None) -> KarmaService:
        store = SqlLedgerStore(db)
        kwargs = {}
        if as_of is not None:
            kwargs["clock"] = lambda: as_of
        return KarmaService(
            store=store,
            identity=SqlIdentityCheck(db),
            classifier=build_classifier(store, completion, cache=RuleTableCache(ttl_seconds=0)),
            completion=completion,
            **kwargs,
        )
    return _make


@pytest.fixture()
def service(make_service) -> KarmaService:
    return make_service()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_text_completion] = lambda: None
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def fake_completion() -> type[FakeCompletion]:
    return FakeCompletion
