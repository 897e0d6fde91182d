"""
Models Module.

Dieses Modul definiert alle SQLModel-Models des relationalen Stores:
- TaskRun (autoritative Run-Datensätze)
- BatchTaskRun (Batches, Lookup per Friendly-ID)
- TaskSchedule (Schedules, Lookup per Friendly-ID)
- RuntimeEnvironment, WorkerDeployment (Deployments)
- ProjectAlertChannel, ProjectAlert (Alert-Kanäle und erzeugte Alerts)

Der analytische Store (ClickHouse) hält nur eine denormalisierte,
verzögerte Kopie der Runs; Feldwerte kommen immer von hier.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from uuid import uuid4

from sqlalchemy import Text
from sqlmodel import SQLModel, Field, JSON, Column


def _utc_now() -> datetime:
    """Gibt die aktuelle UTC-Zeit zurück (zeitzone-aware)."""
    return datetime.now(timezone.utc)


def _cuid() -> str:
    """Erzeugt eine interne ID (hex, ohne Präfix)."""
    return uuid4().hex


class TaskRunStatus(str, Enum):
    """Status eines Task-Runs (geschlossene Menge)."""
    DELAYED = "DELAYED"
    PENDING = "PENDING"
    PENDING_VERSION = "PENDING_VERSION"
    WAITING_FOR_DEPLOY = "WAITING_FOR_DEPLOY"
    EXECUTING = "EXECUTING"
    WAITING_TO_RESUME = "WAITING_TO_RESUME"
    RETRYING_AFTER_FAILURE = "RETRYING_AFTER_FAILURE"
    PAUSED = "PAUSED"
    CANCELED = "CANCELED"
    INTERRUPTED = "INTERRUPTED"
    COMPLETED_SUCCESSFULLY = "COMPLETED_SUCCESSFULLY"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"
    SYSTEM_FAILURE = "SYSTEM_FAILURE"
    CRASHED = "CRASHED"
    EXPIRED = "EXPIRED"
    TIMED_OUT = "TIMED_OUT"


class RuntimeEnvironmentType(str, Enum):
    """Typ einer Laufzeitumgebung."""
    PRODUCTION = "PRODUCTION"
    STAGING = "STAGING"
    DEVELOPMENT = "DEVELOPMENT"
    PREVIEW = "PREVIEW"


class WorkerDeploymentStatus(str, Enum):
    """Status eines Worker-Deployments."""
    PENDING = "PENDING"
    BUILDING = "BUILDING"
    DEPLOYING = "DEPLOYING"
    DEPLOYED = "DEPLOYED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    TIMED_OUT = "TIMED_OUT"


class ProjectAlertType(str, Enum):
    """Alert-Typen, die ein Kanal abonnieren kann."""
    TASK_RUN = "TASK_RUN"
    DEPLOYMENT_FAILURE = "DEPLOYMENT_FAILURE"
    DEPLOYMENT_SUCCESS = "DEPLOYMENT_SUCCESS"


class ProjectAlertChannelType(str, Enum):
    """Zustellweg eines Alert-Kanals."""
    EMAIL = "EMAIL"
    SLACK = "SLACK"
    WEBHOOK = "WEBHOOK"


class ProjectAlertStatus(str, Enum):
    """Zustellstatus eines erzeugten Alerts."""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class TaskRun(SQLModel, table=True):
    """
    TaskRun-Model.

    Autoritativer Datensatz eines Runs. Wird für die Hydration der
    Run-Listen verwendet (Status, Timing, Kosten, Hierarchie, Metadaten).
    """
    __tablename__ = "task_runs"

    id: str = Field(default_factory=_cuid, primary_key=True, description="Interne Run-ID")
    friendly_id: str = Field(index=True, unique=True, description="Friendly-ID (run_...)")
    task_identifier: str = Field(index=True, description="Task-Identifier")
    task_version: Optional[str] = Field(default=None, description="Version des Workers")
    organization_id: str = Field(index=True)
    project_id: str = Field(index=True)
    runtime_environment_id: str = Field(index=True)
    status: TaskRunStatus = Field(default=TaskRunStatus.PENDING, description="Aktueller Status")
    created_at: datetime = Field(default_factory=_utc_now)
    started_at: Optional[datetime] = Field(default=None)
    locked_at: Optional[datetime] = Field(default=None)
    delay_until: Optional[datetime] = Field(default=None)
    updated_at: datetime = Field(default_factory=_utc_now)
    completed_at: Optional[datetime] = Field(default=None)
    expired_at: Optional[datetime] = Field(default=None)
    is_test: bool = Field(default=False)
    span_id: Optional[str] = Field(default=None)
    idempotency_key: Optional[str] = Field(default=None)
    ttl: Optional[str] = Field(default=None, description="TTL als Dauer-String (z.B. 10m)")
    cost_in_cents: float = Field(default=0.0)
    base_cost_in_cents: float = Field(default=0.0)
    usage_duration_ms: int = Field(default=0)
    run_tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    depth: int = Field(default=0, description="Tiefe in der Run-Hierarchie (0 = Root)")
    root_task_run_id: Optional[str] = Field(default=None, index=True)
    batch_id: Optional[str] = Field(default=None, index=True)
    schedule_id: Optional[str] = Field(default=None, index=True)
    metadata_: Optional[str] = Field(
        default=None,
        sa_column=Column("metadata", Text),
        description="Serialisierter Metadaten-Blob",
    )
    metadata_type: str = Field(default="application/json")
    machine_preset: Optional[str] = Field(default=None)


class BatchTaskRun(SQLModel, table=True):
    """Batch von Runs; wird per Friendly-ID im Environment aufgelöst."""
    __tablename__ = "batch_task_runs"

    id: str = Field(default_factory=_cuid, primary_key=True)
    friendly_id: str = Field(index=True, unique=True)
    runtime_environment_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_utc_now)


class TaskSchedule(SQLModel, table=True):
    """Schedule eines Tasks; wird per Friendly-ID im Projekt aufgelöst."""
    __tablename__ = "task_schedules"

    id: str = Field(default_factory=_cuid, primary_key=True)
    friendly_id: str = Field(index=True, unique=True)
    project_id: str = Field(index=True)
    task_identifier: str
    generator_expression: Optional[str] = Field(default=None, description="Cron-Ausdruck")
    active: bool = Field(default=True)


class RuntimeEnvironment(SQLModel, table=True):
    """Laufzeitumgebung eines Projekts."""
    __tablename__ = "runtime_environments"

    id: str = Field(default_factory=_cuid, primary_key=True)
    project_id: str = Field(index=True)
    type: RuntimeEnvironmentType = Field(default=RuntimeEnvironmentType.DEVELOPMENT)


class WorkerDeployment(SQLModel, table=True):
    """Deployment eines Workers in eine Umgebung."""
    __tablename__ = "worker_deployments"

    id: str = Field(default_factory=_cuid, primary_key=True)
    project_id: str = Field(index=True)
    environment_id: str = Field(foreign_key="runtime_environments.id")
    status: WorkerDeploymentStatus = Field(default=WorkerDeploymentStatus.PENDING)


class ProjectAlertChannel(SQLModel, table=True):
    """
    Alert-Kanal eines Projekts.

    alert_types und environment_types sind Listen; ein Kanal erhält einen
    Alert nur, wenn beide Listen den jeweiligen Wert enthalten.
    """
    __tablename__ = "project_alert_channels"

    id: str = Field(default_factory=_cuid, primary_key=True)
    project_id: str = Field(index=True)
    type: ProjectAlertChannelType
    alert_types: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    environment_types: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    enabled: bool = Field(default=True)


class ProjectAlert(SQLModel, table=True):
    """Erzeugter Alert für einen Kanal (Zustellung erfolgt extern)."""
    __tablename__ = "project_alerts"

    id: str = Field(default_factory=_cuid, primary_key=True)
    channel_id: str = Field(foreign_key="project_alert_channels.id", index=True)
    project_id: str
    environment_id: str
    type: ProjectAlertType
    status: ProjectAlertStatus = Field(default=ProjectAlertStatus.PENDING)
    worker_deployment_id: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=_utc_now)
