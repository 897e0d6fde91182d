"""
Zentrale API-Request/Response-Schemas (Pydantic).

Wiederverwendbare Modelle für Run-Listen und Run-Zählungen.
"""

from app.schemas.runs import (
    ListRunsOptions,
    PageRequest,
    PaginationCursors,
    RunCountResponse,
    RunListInputOptions,
    RunListResponse,
    RunProjection,
    parse_run_list_input_options,
)

__all__ = [
    "ListRunsOptions",
    "PageRequest",
    "PaginationCursors",
    "RunCountResponse",
    "RunListInputOptions",
    "RunListResponse",
    "RunProjection",
    "parse_run_list_input_options",
]
