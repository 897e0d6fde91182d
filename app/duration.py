"""
Parser für Dauer-Strings.

Wandelt Ausdrücke wie "7d", "1h30m", "1.5h" oder "250ms" in Millisekunden um.
Mehrere Segmente werden addiert; eine Zahl ohne Einheit zählt als Millisekunden.
"""

import re
from typing import Dict, Optional

_UNIT_MS: Dict[str, float] = {
    "ns": 1e-6,
    "us": 1e-3,
    "µs": 1e-3,
    "ms": 1.0,
    "s": 1000.0,
    "sec": 1000.0,
    "second": 1000.0,
    "m": 60_000.0,
    "min": 60_000.0,
    "minute": 60_000.0,
    "h": 3_600_000.0,
    "hr": 3_600_000.0,
    "hour": 3_600_000.0,
    "d": 86_400_000.0,
    "day": 86_400_000.0,
    "w": 604_800_000.0,
    "wk": 604_800_000.0,
    "week": 604_800_000.0,
    "mo": 2_629_800_000.0,
    "month": 2_629_800_000.0,
    "y": 31_557_600_000.0,
    "yr": 31_557_600_000.0,
    "year": 31_557_600_000.0,
}

_SEGMENT = re.compile(r"(-?\d*\.?\d+(?:e[-+]?\d+)?)\s*([a-zµ]*)", re.IGNORECASE)


def _unit_factor(unit: str) -> Optional[float]:
    unit = unit.lower()
    if not unit:
        return 1.0
    if unit in _UNIT_MS:
        return _UNIT_MS[unit]
    # Plural (days, hours, mins, ...)
    if unit.endswith("s") and unit[:-1] in _UNIT_MS:
        return _UNIT_MS[unit[:-1]]
    return None


def parse_duration(value: Optional[str]) -> Optional[int]:
    """
    Parst einen Dauer-String in Millisekunden.

    Args:
        value: z.B. "30m", "1h 15m", "2 days"

    Returns:
        Dauer in Millisekunden (gerundet) oder None, wenn der String nicht
        vollständig geparst werden kann
    """
    if value is None:
        return None
    text = value.strip().replace(",", "").replace("_", "")
    if not text:
        return None

    total = 0.0
    pos = 0
    matched = False
    for match in _SEGMENT.finditer(text):
        if text[pos:match.start()].strip():
            return None
        factor = _unit_factor(match.group(2))
        if factor is None:
            return None
        total += float(match.group(1)) * factor
        pos = match.end()
        matched = True

    if not matched or text[pos:].strip():
        return None
    return round(total)
