"""
Unit-Tests für die Cursor-Pagination (app.services.run_pagination).

Testet:
- Cursor-Bedingung, Sortierung und Overfetch-Limit
- Cursor-Berechnung vorwärts/rückwärts
- Rundreise vorwärts -> rückwärts über einen simulierten Store
"""

from typing import List

import pytest

from app.schemas.runs import PageRequest
from app.services.run_pagination import apply_page, paginate


def _page(size, cursor=None, direction="forward"):
    return PageRequest(size=size, cursor=cursor, direction=direction)


def _simulate_store(ids_desc: List[str], page: PageRequest) -> List[str]:
    """
    Simuliert ClickHouse für eine Seitenanfrage.

    ids_desc ist nach (created_at, run_id) absteigend sortiert; die IDs
    steigen mit created_at.
    """
    if not page.cursor:
        rows = list(ids_desc)
    elif page.direction == "forward":
        rows = [i for i in ids_desc if i < page.cursor]
    else:
        rows = sorted(i for i in ids_desc if i > page.cursor)
    return rows[: page.size + 1]


class TestApplyPage:
    """Tests für apply_page."""

    def test_initial_page(self, fake_clickhouse):
        builder = fake_clickhouse.task_runs.query_builder()
        apply_page(builder, _page(25))
        statement, params = builder.build()
        assert statement.endswith("ORDER BY created_at DESC, run_id DESC LIMIT 26")
        assert "runId" not in params

    def test_forward_with_cursor(self, fake_clickhouse):
        builder = fake_clickhouse.task_runs.query_builder()
        apply_page(builder, _page(10, cursor="r5"))
        statement, params = builder.build()
        assert "run_id < {runId: String}" in statement
        assert statement.endswith("ORDER BY created_at DESC, run_id DESC LIMIT 11")
        assert params["runId"] == ("String", "r5")

    def test_backward_with_cursor(self, fake_clickhouse):
        builder = fake_clickhouse.task_runs.query_builder()
        apply_page(builder, _page(10, cursor="r5", direction="backward"))
        statement, _ = builder.build()
        assert "run_id > {runId: String}" in statement
        assert statement.endswith("ORDER BY created_at ASC, run_id ASC LIMIT 11")


class TestPaginate:
    """Tests für paginate."""

    def test_forward_initial_page_with_more(self):
        result = paginate(["c", "b", "a"], _page(2))
        assert result.run_ids == ["c", "b"]
        assert result.next_cursor == "b"
        assert result.previous_cursor is None
        assert result.has_more is True

    def test_forward_subsequent_page(self):
        result = paginate(["c", "b", "a"], _page(2, cursor="d"))
        assert result.run_ids == ["c", "b"]
        assert result.previous_cursor == "c"
        assert result.next_cursor == "b"

    def test_backward_with_more(self):
        result = paginate(["a", "b", "c"], _page(2, cursor="b", direction="backward"))
        assert result.has_more is True
        assert result.previous_cursor == "b"
        assert result.next_cursor == "a"
        assert result.run_ids == ["b", "a"]

    def test_backward_without_more(self):
        result = paginate(["x", "y"], _page(3, cursor="w", direction="backward"))
        assert result.has_more is False
        assert result.run_ids == ["y", "x"]
        assert result.previous_cursor is None
        assert result.next_cursor is None

    @pytest.mark.parametrize("direction", ["forward", "backward"])
    def test_exactly_page_size_has_no_more(self, direction):
        result = paginate(["b", "a"] if direction == "forward" else ["a", "b"], _page(2, direction=direction))
        assert result.has_more is False
        assert len(result.run_ids) == 2
        if direction == "forward":
            assert result.next_cursor is None
        else:
            assert result.previous_cursor is None

    @pytest.mark.parametrize("direction", ["forward", "backward"])
    def test_overfetch_trims_to_page_size(self, direction):
        result = paginate(["d", "c", "b"], _page(2, cursor="e", direction=direction))
        assert len(result.run_ids) == 2
        if direction == "forward":
            assert result.next_cursor is not None
        else:
            assert result.previous_cursor is not None

    @pytest.mark.parametrize("cursor,direction", [(None, "forward"), ("x", "forward"), ("x", "backward")])
    def test_empty_result(self, cursor, direction):
        result = paginate([], _page(5, cursor=cursor, direction=direction))
        assert result.run_ids == []
        assert result.next_cursor is None
        assert result.previous_cursor is None
        assert result.has_more is False


class TestRoundTrip:
    """Vorwärts- und Rückwärtsblättern über einen simulierten Store."""

    IDS = [f"r{i:02d}" for i in range(10, 0, -1)]  # r10 ... r01

    def _fetch(self, page: PageRequest):
        return paginate(_simulate_store(self.IDS, page), page)

    def test_forward_then_backward_returns_to_leading_id(self):
        first = self._fetch(_page(3))
        assert first.run_ids == ["r10", "r09", "r08"]

        back = self._fetch(_page(3, cursor=first.next_cursor, direction="backward"))
        assert back.run_ids[0] == first.run_ids[0]

    def test_backward_from_previous_cursor_restores_page(self):
        first = self._fetch(_page(3))
        second = self._fetch(_page(3, cursor=first.next_cursor))
        third = self._fetch(_page(3, cursor=second.next_cursor))
        assert second.run_ids == ["r07", "r06", "r05"]
        assert third.run_ids == ["r04", "r03", "r02"]

        back = self._fetch(_page(3, cursor=third.previous_cursor, direction="backward"))
        assert back.run_ids == second.run_ids
        assert back.previous_cursor == "r07"
        assert back.next_cursor == "r05"

        forward_again = self._fetch(_page(3, cursor=back.next_cursor))
        assert forward_again.run_ids == third.run_ids
