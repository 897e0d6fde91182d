"""
Tests für das Runs-Repository (app.services.runs_repository).

ClickHouse wird durch FakeClickHouseClient ersetzt, der relationale Store
ist eine in-memory SQLite-Datenbank.
"""

import httpx
import pytest

from app.errors import CountQueryError, QueryError
from app.models import BatchTaskRun, TaskRunStatus
from app.schemas.runs import ListRunsOptions, parse_run_list_input_options
from app.services.runs_repository import RunsRepository, load_run_projections

from conftest import SCOPE, make_run


def _list_options(size=2, cursor=None, direction="forward", **filters):
    return ListRunsOptions.model_validate(
        {**SCOPE, **filters, "page": {"size": size, "cursor": cursor, "direction": direction}}
    )


@pytest.fixture
def repository(fake_clickhouse, test_session):
    return RunsRepository(fake_clickhouse, test_session, now_ms=lambda: 1_700_000_000_000)


class TestLoadRunProjections:
    """Tests für load_run_projections."""

    def test_sorted_by_id_desc(self, test_session):
        for run_id in ["a", "c", "b"]:
            make_run(test_session, run_id)
        runs = load_run_projections(test_session, ["a", "b", "c"])
        assert [r.id for r in runs] == ["c", "b", "a"]

    def test_status_recheck_only_shrinks(self, test_session):
        make_run(test_session, "a", status=TaskRunStatus.EXECUTING)
        make_run(test_session, "b", status=TaskRunStatus.COMPLETED_SUCCESSFULLY)
        runs = load_run_projections(test_session, ["a", "b"], [TaskRunStatus.EXECUTING])
        assert [r.id for r in runs] == ["a"]

    def test_empty_id_list(self, test_session):
        assert load_run_projections(test_session, []) == []


class TestListRuns:
    """Tests für RunsRepository.list_runs."""

    @pytest.mark.asyncio
    async def test_first_page(self, repository, fake_clickhouse_client, test_session):
        for i, run_id in enumerate(["a", "b", "c"]):
            make_run(test_session, run_id, minutes=i)
        fake_clickhouse_client.responses = [[{"run_id": "c"}, {"run_id": "b"}, {"run_id": "a"}]]

        result = await repository.list_runs(_list_options(size=2))

        assert [r.id for r in result.runs] == ["c", "b"]
        assert result.runs[0].friendly_id == "run_c"
        assert result.pagination.next_cursor == "b"
        assert result.pagination.previous_cursor is None
        assert result.has_more is True
        assert result.stale_run_ids == []
        assert fake_clickhouse_client.last_statement.endswith(
            "ORDER BY created_at DESC, run_id DESC LIMIT 3"
        )

    @pytest.mark.asyncio
    async def test_backward_page(self, repository, fake_clickhouse_client, test_session):
        for i, run_id in enumerate(["a", "b", "c"]):
            make_run(test_session, run_id, minutes=i)
        fake_clickhouse_client.responses = [[{"run_id": "a"}, {"run_id": "b"}, {"run_id": "c"}]]

        result = await repository.list_runs(_list_options(size=2, cursor="b", direction="backward"))

        assert result.pagination.previous_cursor == "b"
        assert result.pagination.next_cursor == "a"
        assert [r.id for r in result.runs] == ["b", "a"]
        assert fake_clickhouse_client.last_params["runId"] == "b"

    @pytest.mark.asyncio
    async def test_stale_status_is_filtered_and_reported(self, repository, fake_clickhouse_client, test_session):
        """ClickHouse meldet EXECUTING, der relationale Store kennt schon den Endstatus."""
        make_run(test_session, "a", status=TaskRunStatus.EXECUTING)
        make_run(test_session, "b", status=TaskRunStatus.COMPLETED_SUCCESSFULLY)
        fake_clickhouse_client.responses = [[{"run_id": "b"}, {"run_id": "a"}]]

        result = await repository.list_runs(_list_options(size=2, statuses=["EXECUTING"]))

        assert [r.id for r in result.runs] == ["a"]
        assert result.stale_run_ids == ["b"]

    @pytest.mark.asyncio
    async def test_query_error_propagates(self, repository, fake_clickhouse_client):
        fake_clickhouse_client.responses = [httpx.ConnectError("connection refused")]

        with pytest.raises(QueryError):
            await repository.list_runs(_list_options())

    @pytest.mark.asyncio
    async def test_unresolvable_batch_query_equals_no_batch_filter(
        self, repository, fake_clickhouse_client
    ):
        fake_clickhouse_client.responses = [[], []]

        await repository.list_run_ids(_list_options(batch_id="batch_missing", root_only=True))
        with_batch = fake_clickhouse_client.calls[-1]
        await repository.list_run_ids(_list_options(root_only=True))
        without_batch = fake_clickhouse_client.calls[-1]

        assert with_batch == without_batch

    @pytest.mark.asyncio
    async def test_resolved_batch_filter(self, repository, fake_clickhouse_client, test_session):
        test_session.add(BatchTaskRun(id="b1", friendly_id="batch_b1", runtime_environment_id="env_1"))
        test_session.commit()
        fake_clickhouse_client.responses = [[]]

        await repository.list_run_ids(_list_options(batch_id="batch_b1", root_only=True))

        assert fake_clickhouse_client.last_params["batchId"] == "b1"
        assert "root_run_id" not in fake_clickhouse_client.last_statement


class TestCountRuns:
    """Tests für RunsRepository.count_runs."""

    @pytest.mark.asyncio
    async def test_count(self, repository, fake_clickhouse_client):
        fake_clickhouse_client.responses = [[{"count": 42}]]

        count = await repository.count_runs(parse_run_list_input_options({**SCOPE, "tags": ["vip"]}))

        assert count == 42
        assert fake_clickhouse_client.last_statement.startswith("SELECT count() AS count")
        assert "LIMIT" not in fake_clickhouse_client.last_statement

    @pytest.mark.asyncio
    async def test_empty_aggregate_raises(self, repository, fake_clickhouse_client):
        fake_clickhouse_client.responses = [[]]

        with pytest.raises(CountQueryError):
            await repository.count_runs(parse_run_list_input_options(SCOPE))
