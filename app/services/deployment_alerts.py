"""
Deployment-Alerts.

Nach Abschluss eines Deployments werden alle aktiven Alert-Kanäle des
Projekts ermittelt, die den Alert-Typ (DEPLOYMENT_SUCCESS/DEPLOYMENT_FAILURE)
und den Environment-Typ abonniert haben. Pro Kanal wird ein ProjectAlert
angelegt und an den Zusteller übergeben. Die Zustellung selbst (E-Mail,
Slack, Webhook) ist nicht Teil dieses Moduls.

Ausführung verzögert über APScheduler (enqueue_deployment_alerts).
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlmodel import Session, select

from app.models import (
    ProjectAlert,
    ProjectAlertChannel,
    ProjectAlertType,
    RuntimeEnvironment,
    WorkerDeployment,
    WorkerDeploymentStatus,
)

logger = logging.getLogger(__name__)

AlertDeliverer = Callable[[ProjectAlert, ProjectAlertChannel], Awaitable[None]]


async def log_alert_delivery(alert: ProjectAlert, channel: ProjectAlertChannel) -> None:
    """Standard-Zusteller: protokolliert den Alert nur."""
    logger.info(
        "Alert %s (%s) für Kanal %s (%s) erzeugt",
        alert.id,
        alert.type.value,
        channel.id,
        channel.type.value,
    )


class PerformDeploymentAlertsService:
    """Erzeugt Deployment-Alerts für alle passenden Kanäle eines Projekts."""

    def __init__(self, session: Session, deliver: Optional[AlertDeliverer] = None):
        self.session = session
        self.deliver = deliver or log_alert_delivery

    async def call(self, deployment_id: str) -> List[ProjectAlert]:
        """
        Args:
            deployment_id: interne ID des WorkerDeployments

        Returns:
            Die erzeugten Alerts (leer, wenn das Deployment nicht existiert)
        """
        deployment = self.session.get(WorkerDeployment, deployment_id)
        if deployment is None:
            logger.debug("Deployment %s nicht gefunden, keine Alerts", deployment_id)
            return []
        environment = self.session.get(RuntimeEnvironment, deployment.environment_id)
        if environment is None:
            return []

        alert_type = (
            ProjectAlertType.DEPLOYMENT_SUCCESS
            if deployment.status == WorkerDeploymentStatus.DEPLOYED
            else ProjectAlertType.DEPLOYMENT_FAILURE
        )

        stmt = select(ProjectAlertChannel).where(
            ProjectAlertChannel.project_id == deployment.project_id,
            ProjectAlertChannel.enabled == True,  # noqa: E712
        )
        # alert_types/environment_types sind JSON-Listen, Filter im Speicher
        channels = [
            channel
            for channel in self.session.exec(stmt).all()
            if alert_type.value in (channel.alert_types or [])
            and environment.type.value in (channel.environment_types or [])
        ]

        alerts = []
        for channel in channels:
            alerts.append(await self._create_and_send_alert(channel, deployment, alert_type))
        return alerts

    async def _create_and_send_alert(
        self,
        channel: ProjectAlertChannel,
        deployment: WorkerDeployment,
        alert_type: ProjectAlertType,
    ) -> ProjectAlert:
        alert = ProjectAlert(
            channel_id=channel.id,
            project_id=deployment.project_id,
            environment_id=deployment.environment_id,
            type=alert_type,
            worker_deployment_id=deployment.id,
        )
        self.session.add(alert)
        self.session.commit()
        self.session.refresh(alert)
        await self.deliver(alert, channel)
        return alert


async def perform_deployment_alerts(deployment_id: str) -> None:
    """Job-Einstiegspunkt für den Scheduler (eigene Session)."""
    from app.database import engine

    with Session(engine) as session:
        await PerformDeploymentAlertsService(session).call(deployment_id)


_alerts_scheduler: Optional[AsyncIOScheduler] = None


def get_alerts_scheduler() -> AsyncIOScheduler:
    """Prozessweiter Scheduler für Alert-Jobs (in-memory JobStore)."""
    global _alerts_scheduler
    if _alerts_scheduler is None:
        _alerts_scheduler = AsyncIOScheduler(timezone=timezone.utc)
    return _alerts_scheduler


def enqueue_deployment_alerts(
    deployment_id: str,
    run_at: Optional[datetime] = None,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> Job:
    """
    Plant perform_deployment_alerts als einmaligen Job.

    Die Job-ID ist pro Deployment eindeutig; erneutes Einplanen ersetzt
    den bestehenden Job.

    Args:
        deployment_id: interne ID des WorkerDeployments
        run_at: Ausführungszeitpunkt (None = sofort)
        scheduler: Scheduler (Standard: get_alerts_scheduler())
    """
    scheduler = scheduler or get_alerts_scheduler()
    run_date = run_at or datetime.now(timezone.utc)
    job = scheduler.add_job(
        "app.services.deployment_alerts:perform_deployment_alerts",
        trigger=DateTrigger(run_date=run_date, timezone=timezone.utc),
        id=f"performDeploymentAlerts:{deployment_id}",
        replace_existing=True,
        args=[deployment_id],
    )
    logger.info("Deployment-Alerts für %s eingeplant (%s)", deployment_id, run_date.isoformat())
    return job


def shutdown_alerts_scheduler() -> None:
    """Stoppt den Alert-Scheduler; offene Jobs verfallen."""
    global _alerts_scheduler
    if _alerts_scheduler is not None and _alerts_scheduler.running:
        _alerts_scheduler.shutdown(wait=False)
    _alerts_scheduler = None
