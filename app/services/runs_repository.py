"""
Runs-Repository: Run-Listen und Run-Zählungen.

Zweiphasiges Lesen:
1. Analytischer Store (ClickHouse): Filterung, Sortierung und Auswahl der IDs
2. Relationaler Store (SQLModel): aktuelle Feldwerte der ausgewählten Runs

ClickHouse hinkt dem relationalen Store hinterher. Deshalb wird der
Status-Filter nach der Hydration erneut im Speicher geprüft. Diese Prüfung
kann eine Seite nur verkleinern: has_more und die Cursor beruhen auf dem
Ergebnis von ClickHouse und können die tatsächlich gelieferten Runs
überschätzen. Welche IDs verworfen wurden, steht in stale_run_ids.
"""

import logging
from typing import Callable, List, Optional

from pydantic import BaseModel
from sqlmodel import Session, col, select

from app.clickhouse import ClickHouse
from app.errors import CountQueryError
from app.models import TaskRun, TaskRunStatus
from app.schemas.runs import (
    ListRunsOptions,
    PaginationCursors,
    RunListInputOptions,
    RunProjection,
)
from app.services.run_filters import FilterRunsOptions, normalize_run_filters
from app.services.run_pagination import RunIdPage, apply_page, paginate
from app.services.run_query import apply_run_filters

logger = logging.getLogger(__name__)


class RunListResult(BaseModel):
    """Ergebnis von RunsRepository.list_runs()."""
    runs: List[RunProjection]
    pagination: PaginationCursors
    has_more: bool = False
    stale_run_ids: List[str] = []


def load_run_projections(
    session: Session,
    run_ids: List[str],
    statuses: Optional[List[TaskRunStatus]] = None,
) -> List[TaskRun]:
    """
    Lädt Runs per ID-Menge aus dem relationalen Store.

    Sortiert nach ID absteigend und prüft den Status-Filter erneut gegen
    den autoritativen Status.

    Args:
        session: SQLModel Session
        run_ids: interne Run-IDs einer Seite
        statuses: angeforderte Status (None/leer = keine Prüfung)
    """
    if not run_ids:
        return []
    stmt = select(TaskRun).where(col(TaskRun.id).in_(run_ids)).order_by(col(TaskRun.id).desc())
    runs = list(session.exec(stmt).all())
    if statuses:
        runs = [run for run in runs if run.status in statuses]
    return runs


class RunsRepository:
    """
    Liest Run-Listen über ClickHouse und den relationalen Store.

    Eine Instanz pro Request; es gibt keinen geteilten Zustand.
    """

    def __init__(
        self,
        clickhouse: ClickHouse,
        session: Session,
        now_ms: Optional[Callable[[], int]] = None,
    ):
        self.clickhouse = clickhouse
        self.session = session
        self.now_ms = now_ms

    def _filters(self, options: RunListInputOptions) -> FilterRunsOptions:
        return normalize_run_filters(self.session, options)

    async def list_run_ids(self, options: ListRunsOptions) -> List[str]:
        """
        Phase 1: IDs einer Seite (plus eine Zeile Overfetch) aus ClickHouse.

        Raises:
            QueryError: Wenn die Abfrage fehlschlägt
        """
        builder = self.clickhouse.task_runs.query_builder()
        apply_run_filters(builder, self._filters(options), now_ms=self.now_ms)
        apply_page(builder, options.page)

        query_error, rows = await builder.execute()
        if query_error:
            raise query_error
        return [row.run_id for row in rows]

    async def list_run_id_page(self, options: ListRunsOptions) -> RunIdPage:
        """Phase 1 inklusive Cursor-Berechnung."""
        run_ids = await self.list_run_ids(options)
        return paginate(run_ids, options.page)

    async def list_runs(self, options: ListRunsOptions) -> RunListResult:
        """
        Liefert eine Seite hydratisierter Runs mit next/previous-Cursor.

        Raises:
            QueryError: Wenn die ClickHouse-Abfrage fehlschlägt
        """
        page = await self.list_run_id_page(options)

        # Phase 2: Feldwerte aus dem relationalen Store
        runs = load_run_projections(self.session, page.run_ids, options.statuses)

        stale_run_ids: List[str] = []
        if len(runs) < len(page.run_ids):
            loaded = {run.id for run in runs}
            stale_run_ids = [run_id for run_id in page.run_ids if run_id not in loaded]
            logger.debug(
                "%s Run(s) aus ClickHouse-Seite verworfen (Status/Replikation): %s",
                len(stale_run_ids),
                stale_run_ids,
            )

        return RunListResult(
            runs=[RunProjection.model_validate(run) for run in runs],
            pagination=PaginationCursors(
                next_cursor=page.next_cursor,
                previous_cursor=page.previous_cursor,
            ),
            has_more=page.has_more,
            stale_run_ids=stale_run_ids,
        )

    async def count_runs(self, options: RunListInputOptions) -> int:
        """
        Zählt Runs mit denselben Filtern wie list_runs (ohne Pagination).

        Raises:
            QueryError: Wenn die Abfrage fehlschlägt
            CountQueryError: Wenn keine Aggregat-Zeile zurückkommt
        """
        builder = self.clickhouse.task_runs.count_query_builder()
        apply_run_filters(builder, self._filters(options), now_ms=self.now_ms)

        query_error, rows = await builder.execute()
        if query_error:
            raise query_error
        if not rows:
            raise CountQueryError("Keine Count-Zeile zurückgegeben")
        return rows[0].count
