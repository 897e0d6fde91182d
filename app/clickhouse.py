"""
ClickHouse-Client und Query-Builder.

Der analytische Store wird über die HTTP-Schnittstelle von ClickHouse
angesprochen (httpx). Werte werden nie in den Query-Text interpoliert:
Jede WHERE-Klausel deklariert benannte, typisierte Platzhalter
({name: Type}), die als param_<name> an den Server gebunden werden.

Features:
- Verkettbarer Query-Builder (where / order_by / limit)
- Validierung der Ergebniszeilen über Pydantic-Models
- execute() liefert (error, rows) statt zu werfen; der Aufrufer entscheidet
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Type

import httpx
from pydantic import BaseModel, ValidationError

from app.config import config
from app.errors import QueryError

logger = logging.getLogger(__name__)

# {name: Type} bzw. {name:Type}
_PLACEHOLDER = re.compile(r"\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*:\s*([^{}]+?)\s*\}")


class TaskRunIdRow(BaseModel):
    """Zeile der Listen-Abfrage: nur die Run-ID."""
    run_id: str


class CountRow(BaseModel):
    """Zeile der Count-Abfrage."""
    count: int


def _escape_string(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
    )


def _quote_array_item(value: Any) -> str:
    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


def format_param_value(param_type: str, value: Any) -> str:
    """
    Formatiert einen Parameterwert für die HTTP-Schnittstelle (param_<name>).

    Args:
        param_type: ClickHouse-Typ aus dem Platzhalter, z.B. "String", "Array(String)"
        value: Python-Wert
    """
    if param_type.startswith("Array("):
        return "[" + ",".join(_quote_array_item(v) for v in value) + "]"
    if param_type == "Boolean" or param_type == "Bool":
        return "true" if value else "false"
    if param_type.startswith(("Int", "UInt")):
        return str(int(value))
    return _escape_string(str(value))


class ClickHouseClient:
    """
    Dünner HTTP-Client für ClickHouse.

    Die Abfrage wird als Request-Body gesendet, Parameter als
    param_<name>-Query-Parameter, Ergebnisse als JSONEachRow gelesen.
    """

    def __init__(
        self,
        url: str,
        database: str,
        user: str = "default",
        password: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.database = database
        headers = {"X-ClickHouse-User": user}
        if password:
            headers["X-ClickHouse-Key"] = password
        self._client = httpx.AsyncClient(
            base_url=url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def query(
        self, statement: str, params: Dict[str, Tuple[str, Any]]
    ) -> List[Dict[str, Any]]:
        """
        Führt eine Abfrage aus und gibt die Zeilen als Dicts zurück.

        Args:
            statement: SQL mit {name: Type}-Platzhaltern
            params: name -> (ClickHouse-Typ, Wert)

        Raises:
            httpx.HTTPError: Bei Transportfehlern oder HTTP-Status >= 400
        """
        query_params = {
            "database": self.database,
            "default_format": "JSONEachRow",
            "output_format_json_quote_64bit_integers": "0",
        }
        for name, (param_type, value) in params.items():
            query_params[f"param_{name}"] = format_param_value(param_type, value)

        response = await self._client.post("/", params=query_params, content=statement.encode("utf-8"))
        response.raise_for_status()
        return [json.loads(line) for line in response.text.splitlines() if line.strip()]

    async def aclose(self) -> None:
        await self._client.aclose()


class ClickhouseQueryBuilder:
    """
    Verkettbarer Builder für eine parametrisierte SELECT-Abfrage.

    Beispiel:
        builder.where("status IN {statuses: Array(String)}", {"statuses": ["EXECUTING"]})
        builder.order_by("created_at DESC").limit(26)
        error, rows = await builder.execute()
    """

    def __init__(
        self,
        name: str,
        base_query: str,
        client: ClickHouseClient,
        row_model: Type[BaseModel],
    ):
        self.name = name
        self.base_query = base_query
        self.client = client
        self.row_model = row_model
        self.where_clauses: List[str] = []
        self.params: Dict[str, Tuple[str, Any]] = {}
        self.order_by_clause: Optional[str] = None
        self.limit_value: Optional[int] = None

    def where(self, clause: str, params: Optional[Dict[str, Any]] = None) -> "ClickhouseQueryBuilder":
        """
        Fügt eine WHERE-Bedingung hinzu (AND-verknüpft).

        Raises:
            ValueError: Wenn ein Platzhalter keinen Wert hat oder ein Name
                bereits mit einem anderen Wert belegt ist
        """
        params = params or {}
        for name, param_type in _PLACEHOLDER.findall(clause):
            if name not in params:
                raise ValueError(f"Kein Wert für Platzhalter '{name}' in: {clause}")
            if name in self.params and self.params[name][1] != params[name]:
                raise ValueError(f"Parameter '{name}' ist bereits mit anderem Wert gebunden")
            self.params[name] = (param_type, params[name])
        self.where_clauses.append(clause)
        return self

    def order_by(self, clause: str) -> "ClickhouseQueryBuilder":
        self.order_by_clause = clause
        return self

    def limit(self, limit: int) -> "ClickhouseQueryBuilder":
        self.limit_value = int(limit)
        return self

    def build(self) -> Tuple[str, Dict[str, Tuple[str, Any]]]:
        """Gibt SQL-Text und gebundene Parameter zurück."""
        statement = self.base_query
        if self.where_clauses:
            statement += " WHERE " + " AND ".join(self.where_clauses)
        if self.order_by_clause:
            statement += f" ORDER BY {self.order_by_clause}"
        if self.limit_value is not None:
            statement += f" LIMIT {self.limit_value}"
        return statement, dict(self.params)

    async def execute(self) -> Tuple[Optional[QueryError], List[Any]]:
        """
        Führt die Abfrage aus.

        Returns:
            (None, rows) bei Erfolg, sonst (QueryError, [])
        """
        statement, params = self.build()
        logger.debug("ClickHouse-Query %s: %s", self.name, statement)
        try:
            raw_rows = await self.client.query(statement, params)
        except httpx.HTTPStatusError as e:
            return QueryError(e.response.text.strip() or str(e), self.name, statement), []
        except httpx.HTTPError as e:
            return QueryError(str(e) or type(e).__name__, self.name, statement), []

        try:
            rows = [self.row_model.model_validate(row) for row in raw_rows]
        except ValidationError as e:
            return QueryError(f"Ungültige Ergebniszeile: {e}", self.name, statement), []
        return None, rows


class TaskRunsTable:
    """Query-Builder-Fabrik für die denormalisierte Runs-Tabelle."""

    def __init__(self, client: ClickHouseClient, table: str):
        self.client = client
        self.table = table

    def query_builder(self) -> ClickhouseQueryBuilder:
        return ClickhouseQueryBuilder(
            "listTaskRuns",
            f"SELECT run_id FROM {self.table} FINAL",
            self.client,
            TaskRunIdRow,
        )

    def count_query_builder(self) -> ClickhouseQueryBuilder:
        return ClickhouseQueryBuilder(
            "countTaskRuns",
            f"SELECT count() AS count FROM {self.table} FINAL",
            self.client,
            CountRow,
        )


class ClickHouse:
    """Zugriffspunkt auf den analytischen Store."""

    def __init__(self, client: ClickHouseClient, task_runs_table: str = "task_runs_v2"):
        self.client = client
        self.task_runs = TaskRunsTable(client, task_runs_table)

    @classmethod
    def from_config(cls) -> "ClickHouse":
        client = ClickHouseClient(
            url=config.CLICKHOUSE_URL,
            database=config.CLICKHOUSE_DATABASE,
            user=config.CLICKHOUSE_USER,
            password=config.CLICKHOUSE_PASSWORD,
            timeout=config.CLICKHOUSE_TIMEOUT,
        )
        return cls(client, config.CLICKHOUSE_TASK_RUNS_TABLE)

    async def close(self) -> None:
        await self.client.aclose()


_clickhouse: Optional[ClickHouse] = None


def get_clickhouse() -> ClickHouse:
    """
    Dependency für FastAPI-Endpoints: prozessweite ClickHouse-Instanz.

    Die Instanz wird beim ersten Zugriff aus der Config erzeugt.
    """
    global _clickhouse
    if _clickhouse is None:
        _clickhouse = ClickHouse.from_config()
    return _clickhouse


async def close_clickhouse() -> None:
    """Schließt den HTTP-Client (App-Shutdown)."""
    global _clickhouse
    if _clickhouse is not None:
        await _clickhouse.close()
        _clickhouse = None
