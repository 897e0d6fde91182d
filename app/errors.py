"""
Fehler-Typen und HTTP-Fehler-Hilfen.

- QueryError: Fehler einer Abfrage gegen den analytischen Store (ClickHouse)
- CountQueryError: Aggregat-Abfrage lieferte keine Zeile (Invariante verletzt)
- get_500_detail(): einheitliche 500-Antworten; in Produktion nur eine
  generische Meldung. Aufrufer sollten die Exception vorher loggen.

Store-Fehler werden nicht lokal behandelt, sondern unverändert an den
Aufrufer weitergereicht (kein Retry, keine Teilergebnisse).
"""

from typing import Optional

from app.config import config


class QueryError(Exception):
    """Fehler beim Ausführen einer ClickHouse-Abfrage."""

    def __init__(self, message: str, query_name: str, statement: Optional[str] = None):
        super().__init__(message)
        self.query_name = query_name
        self.statement = statement

    def __str__(self) -> str:
        return f"{self.query_name}: {self.args[0]}"


class CountQueryError(RuntimeError):
    """Die Count-Abfrage hat keine Aggregat-Zeile zurückgegeben."""


def get_500_detail(e: Exception) -> str:
    """
    Liefert den Detail-Text für HTTP-500-Antworten.
    In Produktion: generische Meldung; in Development: str(e).
    """
    if config.ENVIRONMENT == "production":
        return "Ein interner Fehler ist aufgetreten."
    return str(e)
