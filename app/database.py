"""
Database Module.

Dieses Modul verwaltet die Verbindung zum relationalen Store und die
Session-Erstellung für SQLModel. Unterstützt SQLite (Standard) und PostgreSQL.

Features:
- SQLite WAL-Mode für bessere Concurrency
- Unterstützung für PostgreSQL (Connection-Pool)

Hinweis: Schema-Migrationen gehören nicht zu diesem Service; init_db()
legt fehlende Tabellen nur für lokale Entwicklung und Tests an.
"""

import logging
from typing import Any, Generator

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine, text

from app.config import config
from app import models  # noqa: F401  Models für Metadaten-Registrierung

logger = logging.getLogger(__name__)

# SQLite Standard-URL wenn keine DATABASE_URL gesetzt
if config.DATABASE_URL is None:
    database_url = f"sqlite:///{config.DATA_DIR}/runs.db"
else:
    database_url = config.DATABASE_URL

if database_url.startswith("sqlite"):
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()
else:
    engine = create_engine(
        database_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def init_db() -> None:
    """
    Erstellt fehlende Tabellen und aktiviert WAL-Mode für SQLite.

    Wird beim App-Start aufgerufen.
    """
    if config.DATABASE_URL is None:
        config.ensure_directories()
    SQLModel.metadata.create_all(engine)

    if database_url.startswith("sqlite"):
        with Session(engine) as session:
            session.execute(text("PRAGMA journal_mode=WAL"))
            session.commit()
        logger.info("SQLite WAL-Mode aktiviert")


def get_session() -> Generator[Session, None, None]:
    """
    Dependency für FastAPI-Endpoints zur Session-Erstellung.

    Yields:
        Session: SQLModel Session für Datenbankzugriffe
    """
    with Session(engine) as session:
        yield session
