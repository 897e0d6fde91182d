"""
Identifier-Übersetzung.

Jede Entität (Run, Batch, Schedule, Bulk-Action) hat zwei Darstellungen:
- interne ID: Primärschlüssel im relationalen Store, für Joins/Gleichheit
- Friendly-ID: Präfix + interne ID, wird Nutzern angezeigt und als Input akzeptiert

Die Übersetzung ist rein und deterministisch (kein I/O). Nur für Batch und
Schedule existiert zusätzlich ein gescopter Lookup gegen den relationalen
Store (resolve_batch_id, resolve_schedule_id).
"""

import logging
from enum import Enum
from typing import Dict, Optional

from sqlmodel import Session, select

from app.models import BatchTaskRun, TaskSchedule

logger = logging.getLogger(__name__)

_SEPARATOR = "_"


class IdKind(str, Enum):
    """Entitätsarten mit Friendly-ID."""
    RUN = "run"
    BATCH = "batch"
    SCHEDULE = "sched"
    BULK_ACTION = "bulk"


class FriendlyId:
    """
    Encode/Decode-Paar für eine Entitätsart.

    Beispiel:
        RunId.to_friendly_id("abc123") -> "run_abc123"
        RunId.to_id("run_abc123") -> "abc123"
    """

    def __init__(self, kind: IdKind):
        self.kind = kind
        self.prefix = f"{kind.value}{_SEPARATOR}"

    def __repr__(self) -> str:
        return f"FriendlyId({self.kind.value!r})"

    def is_friendly_id(self, value: str) -> bool:
        return bool(value) and value.startswith(self.prefix)

    def to_friendly_id(self, internal_id: str) -> str:
        """
        Wandelt eine interne ID in die Friendly-ID um.

        Idempotent: Ein Wert mit passendem Präfix wird unverändert zurückgegeben.

        Raises:
            ValueError: Wenn die ID leer ist
        """
        if not internal_id:
            raise ValueError(f"Leere ID für {self.kind.value}")
        if self.is_friendly_id(internal_id):
            return internal_id
        return f"{self.prefix}{internal_id}"

    def to_id(self, friendly_id: str) -> Optional[str]:
        """
        Wandelt eine Friendly-ID in die interne ID um.

        - passendes Präfix: wird entfernt
        - kein Präfix einer bekannten Art: Wert ist bereits intern
        - Präfix einer anderen Art oder leerer Rest: None (nicht gefunden)
        """
        if not friendly_id:
            return None
        if self.is_friendly_id(friendly_id):
            internal_id = friendly_id[len(self.prefix):]
            return internal_id or None
        if _prefixed_kind(friendly_id) is not None:
            return None
        return friendly_id


RunId = FriendlyId(IdKind.RUN)
BatchId = FriendlyId(IdKind.BATCH)
ScheduleId = FriendlyId(IdKind.SCHEDULE)
BulkActionId = FriendlyId(IdKind.BULK_ACTION)

ENTITY_IDS: Dict[IdKind, FriendlyId] = {
    IdKind.RUN: RunId,
    IdKind.BATCH: BatchId,
    IdKind.SCHEDULE: ScheduleId,
    IdKind.BULK_ACTION: BulkActionId,
}


def _prefixed_kind(value: str) -> Optional[IdKind]:
    for kind in IdKind:
        if value.startswith(f"{kind.value}{_SEPARATOR}"):
            return kind
    return None


def to_internal(kind: IdKind, friendly_id: str) -> Optional[str]:
    """Friendly-ID -> interne ID für die gegebene Art (None = nicht gefunden)."""
    return ENTITY_IDS[kind].to_id(friendly_id)


def to_friendly(kind: IdKind, internal_id: str) -> str:
    """Interne ID -> Friendly-ID für die gegebene Art."""
    return ENTITY_IDS[kind].to_friendly_id(internal_id)


def resolve_batch_id(session: Session, friendly_id: str, environment_id: str) -> Optional[str]:
    """
    Löst eine Batch-Friendly-ID innerhalb eines Environments auf.

    Returns:
        Interne Batch-ID oder None, wenn kein Batch im Environment passt
    """
    stmt = select(BatchTaskRun.id).where(
        BatchTaskRun.friendly_id == friendly_id,
        BatchTaskRun.runtime_environment_id == environment_id,
    )
    batch_id = session.exec(stmt).first()
    if batch_id is None:
        logger.debug("Batch %s nicht im Environment %s gefunden", friendly_id, environment_id)
    return batch_id


def resolve_schedule_id(session: Session, friendly_id: str, project_id: str) -> Optional[str]:
    """
    Löst eine Schedule-Friendly-ID innerhalb eines Projekts auf.

    Returns:
        Interne Schedule-ID oder None, wenn kein Schedule im Projekt passt
    """
    stmt = select(TaskSchedule.id).where(
        TaskSchedule.friendly_id == friendly_id,
        TaskSchedule.project_id == project_id,
    )
    schedule_id = session.exec(stmt).first()
    if schedule_id is None:
        logger.debug("Schedule %s nicht im Projekt %s gefunden", friendly_id, project_id)
    return schedule_id
