"""
Pytest Configuration und Fixtures.

Dieses Modul definiert gemeinsame Fixtures für alle Tests:
- Test-Datenbank (in-memory SQLite)
- Fake-ClickHouse (zeichnet Abfragen auf, liefert vorbereitete Zeilen)
- Test-Client
"""

import os

# Vor dem Import der App: keine SQLite-Datei im Projektverzeichnis anlegen
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.clickhouse import ClickHouse
from app.models import TaskRun, TaskRunStatus


class FakeClickHouseClient:
    """
    Ersatz für ClickHouseClient.

    Liefert pro query()-Aufruf den nächsten Eintrag aus `responses`
    (Liste von Zeilen oder Exception) und zeichnet Statement und Parameter auf.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Tuple[str, Dict[str, Tuple[str, Any]]]] = []

    async def query(self, statement: str, params: Dict[str, Tuple[str, Any]]) -> List[Dict[str, Any]]:
        self.calls.append((statement, params))
        response = self.responses.pop(0) if self.responses else []
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        pass

    @property
    def last_statement(self) -> str:
        return self.calls[-1][0]

    @property
    def last_params(self) -> Dict[str, Any]:
        return {name: value for name, (_, value) in self.calls[-1][1].items()}


@pytest.fixture(scope="function")
def test_db():
    """
    Erstellt eine temporäre Test-Datenbank (in-memory SQLite).

    Yields:
        Engine: SQLModel Engine für Test-Datenbank
    """
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    SQLModel.metadata.create_all(test_engine)

    yield test_engine

    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def test_session(test_db):
    """
    Erstellt eine Test-Datenbank-Session.

    Yields:
        Session: SQLModel Session für Tests
    """
    with Session(test_db) as session:
        yield session


@pytest.fixture(scope="function")
def fake_clickhouse_client():
    """Fake-Client ohne vorbereitete Antworten (Tests setzen `responses`)."""
    return FakeClickHouseClient()


@pytest.fixture(scope="function")
def fake_clickhouse(fake_clickhouse_client):
    """ClickHouse-Zugriffspunkt auf Basis des Fake-Clients."""
    return ClickHouse(fake_clickhouse_client, "task_runs_v2")


@pytest.fixture(scope="function")
def client(test_session, fake_clickhouse):
    """
    Erstellt einen FastAPI Test-Client.

    get_session und get_clickhouse werden auf Test-Session bzw.
    Fake-ClickHouse umgebogen.
    """
    from app.clickhouse import get_clickhouse
    from app.database import get_session
    from app.main import app

    def override_get_session():
        yield test_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_clickhouse] = lambda: fake_clickhouse

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


SCOPE = {
    "organization_id": "org_1",
    "project_id": "proj_1",
    "environment_id": "env_1",
}

_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_run(
    session: Session,
    run_id: str,
    status: TaskRunStatus = TaskRunStatus.COMPLETED_SUCCESSFULLY,
    minutes: int = 0,
    **kwargs: Any,
) -> TaskRun:
    """Legt einen TaskRun im Scope SCOPE an; created_at = Basiszeit + minutes."""
    run = TaskRun(
        id=run_id,
        friendly_id=f"run_{run_id}",
        task_identifier=kwargs.pop("task_identifier", "email-sender"),
        organization_id=SCOPE["organization_id"],
        project_id=SCOPE["project_id"],
        runtime_environment_id=SCOPE["environment_id"],
        status=status,
        created_at=_BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )
    session.add(run)
    session.commit()
    return run
