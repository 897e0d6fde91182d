"""Request/Response-Schemas für Run-Listen."""

from datetime import datetime
from typing import Any, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models import TaskRunStatus


class RunListInputOptions(BaseModel):
    """
    Roh-Filter einer Run-Liste.

    organization_id, project_id und environment_id sind Pflicht und werden
    immer als Gleichheitsbedingung angewendet. Alle anderen Felder sind
    optional; fehlende Felder schränken nicht ein.
    """
    model_config = ConfigDict(populate_by_name=True)

    organization_id: str
    project_id: str
    environment_id: str
    tasks: Optional[List[str]] = None
    versions: Optional[List[str]] = None
    statuses: Optional[List[TaskRunStatus]] = None
    tags: Optional[List[str]] = None
    schedule_id: Optional[str] = None
    period: Optional[str] = None
    from_: Optional[int] = Field(default=None, alias="from", description="Untergrenze created_at (ms seit Epoch)")
    to: Optional[int] = Field(default=None, description="Obergrenze created_at (ms seit Epoch)")
    is_test: Optional[bool] = None
    root_only: Optional[bool] = None
    batch_id: Optional[str] = None
    run_id: Optional[List[str]] = None
    bulk_id: Optional[str] = None


class PageRequest(BaseModel):
    """Seitenanfrage: Größe, optionaler Cursor (interne Run-ID) und Richtung."""
    size: int = Field(gt=0)
    cursor: Optional[str] = None
    direction: Literal["forward", "backward"] = "forward"


class ListRunsOptions(RunListInputOptions):
    """Filter plus Seitenanfrage."""
    page: PageRequest


def parse_run_list_input_options(data: Mapping[str, Any]) -> RunListInputOptions:
    """
    Validiert einen Roh-Filter.

    Raises:
        pydantic.ValidationError: Bei fehlenden Scope-Feldern oder unbekanntem Status
    """
    return RunListInputOptions.model_validate(data)


class RunProjection(BaseModel):
    """Hydratisierter Run aus dem relationalen Store."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    friendly_id: str
    task_identifier: str
    task_version: Optional[str] = None
    runtime_environment_id: str
    status: TaskRunStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    locked_at: Optional[datetime] = None
    delay_until: Optional[datetime] = None
    updated_at: datetime
    completed_at: Optional[datetime] = None
    is_test: bool
    span_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    ttl: Optional[str] = None
    expired_at: Optional[datetime] = None
    cost_in_cents: float
    base_cost_in_cents: float
    usage_duration_ms: int
    run_tags: List[str]
    depth: int
    root_task_run_id: Optional[str] = None
    batch_id: Optional[str] = None
    metadata: Optional[str] = Field(default=None, validation_alias="metadata_")
    metadata_type: str
    machine_preset: Optional[str] = None


class PaginationCursors(BaseModel):
    next_cursor: Optional[str] = None
    previous_cursor: Optional[str] = None


class RunListResponse(BaseModel):
    """Response für GET /api/runs."""
    runs: List[RunProjection]
    pagination: PaginationCursors


class RunCountResponse(BaseModel):
    """Response für GET /api/runs/count."""
    count: int
