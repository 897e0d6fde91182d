"""
Cursor-Pagination über den analytischen Store.

Der Cursor ist eine interne Run-ID. Pro Seite wird eine Zeile mehr
geladen als angefordert, um festzustellen, ob es weitere Seiten gibt.

| Cursor | Richtung  | Bedingung     | Sortierung                    |
|--------|-----------|---------------|-------------------------------|
| nein   | -         | -             | created_at DESC, run_id DESC  |
| ja     | forward   | run_id < cur  | created_at DESC, run_id DESC  |
| ja     | backward  | run_id > cur  | created_at ASC, run_id ASC    |
"""

from typing import List, Optional

from pydantic import BaseModel

from app.clickhouse import ClickhouseQueryBuilder
from app.schemas.runs import PageRequest

_ORDER_DESC = "created_at DESC, run_id DESC"
_ORDER_ASC = "created_at ASC, run_id ASC"


class RunIdPage(BaseModel):
    """Eine Seite Run-IDs in Anzeigereihenfolge (absteigend) plus Cursor."""
    run_ids: List[str]
    next_cursor: Optional[str] = None
    previous_cursor: Optional[str] = None
    has_more: bool = False


def _at(items: List[str], index: int) -> Optional[str]:
    return items[index] if 0 <= index < len(items) else None


def apply_page(builder: ClickhouseQueryBuilder, page: PageRequest) -> ClickhouseQueryBuilder:
    """Hängt Cursor-Bedingung, Sortierung und Limit (size + 1) an."""
    if page.cursor:
        if page.direction == "forward":
            builder.where("run_id < {runId: String}", {"runId": page.cursor}).order_by(_ORDER_DESC)
        else:
            builder.where("run_id > {runId: String}", {"runId": page.cursor}).order_by(_ORDER_ASC)
    else:
        # Erste Seite, kein Cursor
        builder.order_by(_ORDER_DESC)
    return builder.limit(page.size + 1)


def paginate(run_ids: List[str], page: PageRequest) -> RunIdPage:
    """
    Berechnet Seiteninhalt und Cursor aus dem Ergebnis der Abfrage.

    Args:
        run_ids: IDs in der Reihenfolge der Abfrage (höchstens size + 1)
        page: die Seitenanfrage, mit der die Abfrage gebaut wurde

    Returns:
        RunIdPage mit höchstens size IDs in absteigender Reihenfolge
    """
    size = page.size
    has_more = len(run_ids) > size
    next_cursor: Optional[str] = None
    previous_cursor: Optional[str] = None

    if page.direction == "backward":
        # Aufsteigend geladen, für die Anzeige umdrehen
        ordered = list(reversed(run_ids))
        if has_more:
            previous_cursor = _at(ordered, 1)
            next_cursor = _at(ordered, size)
            page_ids = ordered[1:size + 1]
        else:
            next_cursor = _at(ordered, size - 1)
            page_ids = ordered[:size]
    else:
        ordered = list(run_ids)
        previous_cursor = _at(ordered, 0) if page.cursor else None
        if has_more:
            next_cursor = ordered[size - 1]
        page_ids = ordered[:size]

    return RunIdPage(
        run_ids=page_ids,
        next_cursor=next_cursor,
        previous_cursor=previous_cursor,
        has_more=has_more,
    )
