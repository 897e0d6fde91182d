"""
Normalisierung der Run-Listen-Filter.

Wandelt validierte Roh-Filter (RunListInputOptions) in einen vollständig
aufgelösten Filter-Satz (FilterRunsOptions) um:
- Zeitraum: explizite from/to-Grenzen haben Vorrang vor einem Periodenausdruck;
  die Periode wird in Millisekunden umgerechnet
- Friendly-IDs von Batch und Schedule werden per gescoptem Lookup aufgelöst;
  ohne Treffer entfällt der Filter (kein Fehler)
- Bulk-IDs werden rein übersetzt, Run-IDs in Friendly-IDs umgewandelt
- root_only wird deaktiviert, sobald nach konkreten Entitäten gefiltert wird
"""

import logging
from typing import List, Optional

from pydantic import BaseModel
from sqlmodel import Session

from app.duration import parse_duration
from app.identifiers import (
    BatchId,
    BulkActionId,
    RunId,
    ScheduleId,
    resolve_batch_id,
    resolve_schedule_id,
)
from app.models import TaskRunStatus
from app.schemas.runs import RunListInputOptions

logger = logging.getLogger(__name__)


class TimeFilters(BaseModel):
    """Ergebnis der Zeitraum-Auflösung."""
    period: Optional[str] = None
    from_: Optional[int] = None
    to: Optional[int] = None


class FilterRunsOptions(BaseModel):
    """
    Vollständig aufgelöster Filter-Satz.

    period ist eine Dauer in Millisekunden; die absolute Untergrenze wird
    erst beim Bauen der Abfrage berechnet (jetzt - period).
    """
    organization_id: str
    project_id: str
    environment_id: str
    tasks: Optional[List[str]] = None
    versions: Optional[List[str]] = None
    statuses: Optional[List[TaskRunStatus]] = None
    tags: Optional[List[str]] = None
    schedule_id: Optional[str] = None
    period: Optional[int] = None
    from_: Optional[int] = None
    to: Optional[int] = None
    is_test: Optional[bool] = None
    root_only: Optional[bool] = None
    batch_id: Optional[str] = None
    run_id: Optional[List[str]] = None
    bulk_id: Optional[str] = None


def resolve_time_filters(
    period: Optional[str], from_: Optional[int], to: Optional[int]
) -> TimeFilters:
    """
    Bestimmt den wirksamen Zeitraum.

    Sind from oder to gesetzt, wird die Periode ignoriert.
    """
    if from_ is not None or to is not None:
        return TimeFilters(from_=from_, to=to)
    return TimeFilters(period=period or None)


def normalize_run_filters(session: Session, options: RunListInputOptions) -> FilterRunsOptions:
    """
    Löst einen validierten Roh-Filter gegen den relationalen Store auf.

    Args:
        session: SQLModel Session für Batch-/Schedule-Lookups
        options: validierte Roh-Filter

    Returns:
        FilterRunsOptions für den Query-Builder
    """
    time = resolve_time_filters(options.period, options.from_, options.to)
    period_ms = parse_duration(time.period) if time.period else None
    if time.period and period_ms is None:
        logger.warning("Ungültiger Zeitraum '%s' wird ignoriert", time.period)

    batch_id = options.batch_id
    if batch_id and BatchId.is_friendly_id(batch_id):
        batch_id = resolve_batch_id(session, batch_id, options.environment_id)

    schedule_id = options.schedule_id
    if schedule_id and ScheduleId.is_friendly_id(schedule_id):
        schedule_id = resolve_schedule_id(session, schedule_id, options.project_id)

    bulk_id = options.bulk_id
    if bulk_id and BulkActionId.is_friendly_id(bulk_id):
        bulk_id = BulkActionId.to_id(bulk_id)

    run_ids = None
    if options.run_id is not None:
        run_ids = [RunId.to_friendly_id(r) for r in options.run_id]

    root_only = options.root_only
    # Bei Filter auf konkrete Entitäten alle Hierarchie-Ebenen zeigen
    if batch_id or run_ids or schedule_id or options.tasks:
        root_only = False

    return FilterRunsOptions(
        organization_id=options.organization_id,
        project_id=options.project_id,
        environment_id=options.environment_id,
        tasks=options.tasks,
        versions=options.versions,
        statuses=options.statuses,
        tags=options.tags,
        schedule_id=schedule_id,
        period=period_ms,
        from_=time.from_,
        to=time.to,
        is_test=options.is_test,
        root_only=root_only,
        batch_id=batch_id,
        run_id=run_ids,
        bulk_id=bulk_id,
    )
