"""
Prädikate für die Runs-Abfrage im analytischen Store.

apply_run_filters() hängt pro gesetzter Filter-Dimension genau eine
WHERE-Bedingung an einen Query-Builder. Listen- und Count-Abfrage teilen
sich diese Funktion. Alle Werte laufen über benannte Parameter.
"""

import time
from typing import Callable, Optional

from app.clickhouse import ClickhouseQueryBuilder
from app.identifiers import RunId
from app.services.run_filters import FilterRunsOptions


def _now_ms() -> int:
    return int(time.time() * 1000)


def apply_run_filters(
    builder: ClickhouseQueryBuilder,
    options: FilterRunsOptions,
    now_ms: Optional[Callable[[], int]] = None,
) -> ClickhouseQueryBuilder:
    """
    Wendet einen aufgelösten Filter-Satz auf einen Query-Builder an.

    Args:
        builder: Listen- oder Count-Builder
        options: Ergebnis von normalize_run_filters()
        now_ms: Uhr für die Perioden-Untergrenze (Tests)

    Returns:
        Denselben Builder (verkettbar)
    """
    builder.where(
        "organization_id = {organizationId: String}",
        {"organizationId": options.organization_id},
    ).where(
        "project_id = {projectId: String}",
        {"projectId": options.project_id},
    ).where(
        "environment_id = {environmentId: String}",
        {"environmentId": options.environment_id},
    )

    if options.tasks:
        builder.where("task_identifier IN {tasks: Array(String)}", {"tasks": options.tasks})

    if options.versions:
        builder.where("task_version IN {versions: Array(String)}", {"versions": options.versions})

    if options.statuses:
        builder.where(
            "status IN {statuses: Array(String)}",
            {"statuses": [s.value for s in options.statuses]},
        )

    if options.tags:
        builder.where("hasAny(tags, {tags: Array(String)})", {"tags": options.tags})

    if options.schedule_id:
        builder.where("schedule_id = {scheduleId: String}", {"scheduleId": options.schedule_id})

    # period ist eine Dauer in ms, Untergrenze wird jetzt berechnet
    if options.period:
        clock = now_ms or _now_ms
        builder.where(
            "created_at >= fromUnixTimestamp64Milli({period: Int64})",
            {"period": clock() - options.period},
        )

    if options.from_:
        builder.where(
            "created_at >= fromUnixTimestamp64Milli({from: Int64})",
            {"from": options.from_},
        )

    if options.to:
        builder.where(
            "created_at <= fromUnixTimestamp64Milli({to: Int64})",
            {"to": options.to},
        )

    if isinstance(options.is_test, bool):
        builder.where("is_test = {isTest: Boolean}", {"isTest": options.is_test})

    if options.root_only:
        builder.where("root_run_id = ''")

    if options.batch_id:
        builder.where("batch_id = {batchId: String}", {"batchId": options.batch_id})

    if options.bulk_id:
        builder.where(
            "hasAny(bulk_action_group_ids, {bulkActionGroupIds: Array(String)})",
            {"bulkActionGroupIds": [options.bulk_id]},
        )

    if options.run_id:
        # "runIds", nicht "runId": der Cursor belegt bereits "runId"
        builder.where(
            "friendly_id IN {runIds: Array(String)}",
            {"runIds": [RunId.to_friendly_id(r) for r in options.run_id]},
        )

    return builder
