"""
Run-Listen API Endpoints.

Dieses Modul enthält die REST-API-Endpoints für Run-Listen:
- Runs auflisten (Filter + Cursor-Pagination)
- Runs zählen (gleiche Filter, ohne Pagination)

Validierungsfehler (fehlender Scope, unbekannter Status) werden vor jedem
Store-Zugriff mit 422 abgelehnt. Store-Fehler werden nicht abgefangen.
"""

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlmodel import Session

from app.clickhouse import ClickHouse, get_clickhouse
from app.config import config
from app.database import get_session
from app.schemas.runs import (
    ListRunsOptions,
    RunCountResponse,
    RunListResponse,
    parse_run_list_input_options,
)
from app.services.runs_repository import RunsRepository

router = APIRouter(prefix="/runs", tags=["runs"])


def get_runs_repository(
    session: Session = Depends(get_session),
    clickhouse: ClickHouse = Depends(get_clickhouse),
) -> RunsRepository:
    """Dependency: ein Repository pro Request."""
    return RunsRepository(clickhouse=clickhouse, session=session)


def run_filter_params(
    organization_id: Optional[str] = Query(None, description="Organisation (Pflicht)"),
    project_id: Optional[str] = Query(None, description="Projekt (Pflicht)"),
    environment_id: Optional[str] = Query(None, description="Environment (Pflicht)"),
    tasks: Optional[List[str]] = Query(None, description="Filter nach Task-Identifier"),
    versions: Optional[List[str]] = Query(None, description="Filter nach Worker-Version"),
    statuses: Optional[List[str]] = Query(None, description="Filter nach Status"),
    tags: Optional[List[str]] = Query(None, description="Filter nach Tags (mindestens einer)"),
    schedule_id: Optional[str] = Query(None, description="Schedule-ID oder Friendly-ID (sched_...)"),
    period: Optional[str] = Query(None, description="Zeitraum, z.B. 1h, 7d"),
    from_: Optional[int] = Query(None, alias="from", description="Untergrenze created_at (ms)"),
    to: Optional[int] = Query(None, description="Obergrenze created_at (ms)"),
    is_test: Optional[bool] = Query(None, description="Nur Test-Runs bzw. keine Test-Runs"),
    root_only: Optional[bool] = Query(None, description="Nur Root-Runs"),
    batch_id: Optional[str] = Query(None, description="Batch-ID oder Friendly-ID (batch_...)"),
    run_id: Optional[List[str]] = Query(None, description="Konkrete Run-IDs"),
    bulk_id: Optional[str] = Query(None, description="Bulk-Action-ID oder Friendly-ID (bulk_...)"),
) -> Dict[str, Any]:
    """Sammelt die Filter-Query-Parameter; fehlende Werte werden weggelassen."""
    params = {
        "organization_id": organization_id,
        "project_id": project_id,
        "environment_id": environment_id,
        "tasks": tasks,
        "versions": versions,
        "statuses": statuses,
        "tags": tags,
        "schedule_id": schedule_id,
        "period": period,
        "from": from_,
        "to": to,
        "is_test": is_test,
        "root_only": root_only,
        "batch_id": batch_id,
        "run_id": run_id,
        "bulk_id": bulk_id,
    }
    return {key: value for key, value in params.items() if value is not None}


@router.get("", response_model=RunListResponse)
async def list_runs(
    filters: Dict[str, Any] = Depends(run_filter_params),
    page_size: int = Query(
        config.RUNS_DEFAULT_PAGE_SIZE,
        ge=1,
        le=config.RUNS_MAX_PAGE_SIZE,
        description="Anzahl Runs pro Seite",
    ),
    cursor: Optional[str] = Query(None, description="Run-ID der Seitengrenze"),
    direction: Literal["forward", "backward"] = Query("forward", description="Blätterrichtung"),
    repository: RunsRepository = Depends(get_runs_repository),
) -> RunListResponse:
    """
    Gibt eine Seite Runs zurück (neueste zuerst).

    Returns:
        RunListResponse mit runs und pagination (next_cursor, previous_cursor)
    """
    try:
        options = ListRunsOptions.model_validate(
            {**filters, "page": {"size": page_size, "cursor": cursor, "direction": direction}}
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    result = await repository.list_runs(options)
    return RunListResponse(runs=result.runs, pagination=result.pagination)


@router.get("/count", response_model=RunCountResponse)
async def count_runs(
    filters: Dict[str, Any] = Depends(run_filter_params),
    repository: RunsRepository = Depends(get_runs_repository),
) -> RunCountResponse:
    """Zählt Runs mit denselben Filtern wie GET /runs."""
    try:
        options = parse_run_list_input_options(filters)
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    count = await repository.count_runs(options)
    return RunCountResponse(count=count)
