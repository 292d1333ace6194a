import pytest
from fastapi.testclient import TestClient

from hangman.db import SqlUnitOfWork, add_player, add_words, init_db, make_engine, make_session_factory
from hangman.main import app, get_orchestrator
from hangman.service import GameOrchestrator


@pytest.fixture()
def session_factory():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def uow_factory(session_factory):
    return lambda: SqlUnitOfWork(session_factory)


@pytest.fixture()
def orchestrator(uow_factory):
    return GameOrchestrator(uow_factory)


@pytest.fixture()
def player(session_factory):
    return add_player("Alice", session_factory)


@pytest.fixture()
def seed_words(session_factory):
    def _seed(*words):
        return add_words(words, session_factory)
    return _seed


@pytest.fixture()
def client(orchestrator):
    # Startup hooks are not run: the client never touches the on-disk database.
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()
