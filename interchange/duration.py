"""
DURATION und TRIGGER Hilfsfunktionen (RFC 5545 3.3.6).
"""
import math
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

# [+-]P[nW][nD][T[nH][nM][nS]], das fuehrende P ist optional ("T1H")
_DURATION_PATTERN = re.compile(
    r"^([+-])?P?(?:(\d+)W)?(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$",
    re.IGNORECASE,
)
_ABSOLUTE_TRIGGER_PATTERN = re.compile(r"^\d{8}T\d{6}Z?$")

UNITS = ("days", "hours", "minutes", "seconds")


@dataclass(frozen=True)
class DurationParts:
    """Groesste Einheit einer Duration."""
    value: int
    unit: str


@dataclass(frozen=True)
class AlarmTrigger:
    """Vereinfachter Trigger: when ist 'before', 'after' oder 'at'."""
    when: str
    value: int
    unit: str


def _match(value: Optional[str]):
    if not value or not value.strip():
        return None
    match = _DURATION_PATTERN.match(value.strip())
    if not match or not any(match.groups()[1:]):
        return None
    return match


def duration_to_timedelta(value: Optional[str]) -> Optional[timedelta]:
    """
    Wandelt DURATION in timedelta um.

    Args:
        value: z.B. 'PT1H30M', '-P1D', 'P2W'

    Returns:
        Vorzeichenbehaftetes timedelta oder None bei ungueltigem Wert
    """
    match = _match(value)
    if not match:
        return None
    sign, weeks, days, hours, minutes, seconds = match.groups()
    delta = timedelta(
        weeks=int(weeks or 0),
        days=int(days or 0),
        hours=int(hours or 0),
        minutes=int(minutes or 0),
        seconds=int(seconds or 0),
    )
    return -delta if sign == "-" else delta


def parse_duration(value: Optional[str]) -> Optional[DurationParts]:
    """
    Parsed DURATION auf die groesste angegebene Einheit.

    'P1DT2H30M' -> DurationParts(1, 'days'). Das Vorzeichen wird
    ignoriert, Wochen zaehlen als Tage.
    """
    match = _match(value)
    if not match:
        return None
    _, weeks, days, hours, minutes, seconds = match.groups()

    total_days = int(weeks or 0) * 7 + int(days or 0)
    if weeks or days:
        return DurationParts(total_days, "days")
    for amount, unit in zip((hours, minutes, seconds), UNITS[1:]):
        if amount is not None:
            return DurationParts(int(amount), unit)
    return None


def is_valid_duration(value: Optional[str]) -> bool:
    return _match(value) is not None


def duration_to_minutes(value: Optional[str]) -> Optional[int]:
    """Gesamtdauer in Minuten, angefangene Minuten werden aufgerundet."""
    delta = duration_to_timedelta(value)
    if delta is None:
        return None
    return math.ceil(abs(delta.total_seconds()) / 60)


def format_duration(value: int, unit: str) -> str:
    """
    Formatiert Wert und Einheit als DURATION.

    Raises:
        ValueError: Bei unbekannter Einheit
    """
    if unit == "days":
        return f"P{value}D"
    if unit == "hours":
        return f"PT{value}H"
    if unit == "minutes":
        return f"PT{value}M"
    if unit == "seconds":
        return f"PT{value}S"
    raise ValueError(f"Unknown duration unit: {unit}")


def format_negative_duration(value: int, unit: str) -> str:
    return f"-{format_duration(value, unit)}"


def is_absolute_trigger(value: Optional[str]) -> bool:
    """Absoluter Trigger: DATE-TIME statt DURATION."""
    return bool(value) and bool(_ABSOLUTE_TRIGGER_PATTERN.match(value.strip()))


def parse_alarm_trigger(value: Optional[str]) -> Optional[AlarmTrigger]:
    """
    Parsed TRIGGER in when/value/unit.

    '-PT15M' -> before 15 minutes, 'PT30M' -> after 30 minutes,
    absolute Zeitpunkte -> at 0 minutes.
    """
    if not value or not value.strip():
        return None
    value = value.strip()

    if is_absolute_trigger(value):
        return AlarmTrigger("at", 0, "minutes")

    parts = parse_duration(value)
    if parts is None:
        return None
    when = "before" if value.startswith("-") else "after"
    return AlarmTrigger(when, parts.value, parts.unit)


def format_alarm_trigger(when: str, value: int, unit: str) -> str:
    """Gegenstueck zu parse_alarm_trigger, 'at' ergibt einen leeren String."""
    if when == "at":
        return ""
    if when == "before":
        return format_negative_duration(value, unit)
    return format_duration(value, unit)
