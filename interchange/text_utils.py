"""
Text-Primitive fuer iCalendar (RFC 5545) und vCard (RFC 6350).

Escaping, Line-Folding, Datumsformate, UID-Erzeugung und das Zerlegen
von Content-Lines in Name, Parameter und Wert.
"""
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# RFC 5545 3.1: max. 75 Oktette pro Zeile ohne CRLF
MAX_LINE_OCTETS = 75
CRLF = "\r\n"

_UNESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)
_UNFOLD_PATTERN = re.compile(r"\r?\n[ \t]")

# Basic (20240115T103000Z) und Extended (2024-01-15T10:30:00Z) Form
_DATE_PATTERN = re.compile(
    r"^(\d{4})-?(\d{2})-?(\d{2})"
    r"(?:[T ](\d{2}):?(\d{2})?:?(\d{2})?(?:[.,]\d+)?"
    r"(Z|[+-]\d{2}:?\d{2})?)?$",
    re.IGNORECASE,
)
_STRICT_DATE_PATTERN = re.compile(r"^\d{8}(T\d{6}Z?)?$")


@dataclass
class PropertyLine:
    """Zerlegte Content-Line: NAME;PARAM=WERT:value."""
    name: str
    value: str
    params: Dict[str, str] = field(default_factory=dict)
    group: Optional[str] = None


# --- Escaping ---

def escape_text(value: str) -> str:
    """
    Escaped TEXT-Werte: Backslash, Semikolon, Komma und Zeilenumbruch.

    Backslash wird zuerst ersetzt, damit die folgenden Escapes nicht
    doppelt maskiert werden. CR bleibt unveraendert, damit
    unescape_text(escape_text(s)) == s fuer jeden String gilt.
    """
    if not value:
        return ""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _unescape_match(match: "re.Match") -> str:
    char = match.group(1)
    if char in ("n", "N"):
        return "\n"
    if char in ("\\", ";", ",", ":"):
        return char
    return match.group(0)


def unescape_text(value: str) -> str:
    """
    Hebt escape_text auf.

    Ein einziger Durchlauf von links nach rechts, daher wird '\\\\n'
    zu Backslash + 'n' und nicht zu einem Zeilenumbruch.
    """
    if not value:
        return ""
    return _UNESCAPE_PATTERN.sub(_unescape_match, value)


def split_escaped(value: str, separator: str) -> List[str]:
    """
    Trennt an Separatoren, die nicht durch Backslash maskiert sind.

    Die Teile bleiben escaped, unescape_text muss danach pro Teil
    aufgerufen werden.
    """
    parts = []
    current = []
    escaped = False
    for char in value:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def quote_param(value: str) -> str:
    """Setzt Parameterwerte mit ':', ';' oder ',' in DQUOTEs."""
    value = value.replace('"', "")
    if any(char in value for char in ":;,"):
        return f'"{value}"'
    return value


# --- Folding ---

def fold_line(line: str) -> str:
    """
    Faltet eine Content-Line nach RFC 5545 3.1.

    Erste Zeile max. 75 Oktette, Folgezeilen ein Leerzeichen plus
    max. 74 Oktette. Multibyte-Zeichen werden nie getrennt.

    Args:
        line: Ungefaltete Zeile ohne CRLF

    Returns:
        Gefaltete Zeile, Teile mit CRLF verbunden
    """
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return line

    chunks = []
    current = []
    current_octets = 0
    limit = MAX_LINE_OCTETS

    for char in line:
        char_octets = len(char.encode("utf-8"))
        if current_octets + char_octets > limit:
            chunks.append("".join(current))
            current = []
            current_octets = 0
            limit = MAX_LINE_OCTETS - 1
        current.append(char)
        current_octets += char_octets

    if current:
        chunks.append("".join(current))

    return (CRLF + " ").join(chunks)


def unfold_lines(content: str) -> str:
    """Entfernt alle Zeilenumbrueche, denen ein Leerzeichen oder Tab folgt."""
    if not content:
        return ""
    return _UNFOLD_PATTERN.sub("", content)


def split_lines(content: str) -> List[str]:
    """Entfaltet und trennt in logische Zeilen (CRLF oder LF)."""
    return [line.rstrip("\r") for line in unfold_lines(content).split("\n")]


# --- Datum ---

def format_date_utc(value: Union[datetime, date]) -> str:
    """
    Formatiert als YYYYMMDDTHHMMSSZ in UTC.

    Naive datetimes gelten als UTC, ein reines date als Mitternacht UTC.
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y%m%dT%H%M%SZ")


def format_date_time(value: Union[datetime, date]) -> str:
    """
    Formatiert DATE-TIME Werte von Records.

    Naive datetimes sind floating und werden ohne 'Z' geschrieben,
    aware datetimes und reine dates wie format_date_utc.
    """
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.strftime("%Y%m%dT%H%M%S")
    return format_date_utc(value)


def format_date_only(value: Union[datetime, date]) -> str:
    """
    Formatiert als YYYYMMDD mit lokalen Kalenderkomponenten.

    Aware datetimes werden vorher in die lokale Zeitzone umgerechnet,
    damit ein Ganztages-Datum nicht um einen Tag verrutscht.
    """
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime("%Y%m%d")


def _resolve_zone(tzid: Optional[str]):
    if not tzid:
        return None
    try:
        return ZoneInfo(tzid.strip('"'))
    except (ZoneInfoNotFoundError, ValueError):
        return None


def parse_ics_date(value: Optional[str], tzid: Optional[str] = None) -> Optional[Union[datetime, date]]:
    """
    Parsed iCalendar DATE / DATE-TIME tolerant.

    Akzeptiert YYYYMMDD, YYYYMMDDTHHMMSS[Z] und die ISO Extended Form.
    Fehlende Minuten/Sekunden werden mit 0 aufgefuellt.

    Args:
        value: Datumswert
        tzid: Optional TZID Parameter fuer lokale Zeiten

    Returns:
        date bei reinem Datum, datetime sonst (aware bei Z, Offset oder
        bekannter TZID, sonst floating). None wenn nicht einmal ein
        Datum erkennbar ist.
    """
    if not value:
        return None

    match = _DATE_PATTERN.match(value.strip())
    if not match:
        return None

    year, month, day, hour, minute, second, suffix = match.groups()
    try:
        if hour is None:
            return date(int(year), int(month), int(day))

        result = datetime(
            int(year), int(month), int(day),
            int(hour), int(minute or 0), int(second or 0),
        )
    except ValueError:
        return None

    if suffix:
        if suffix.upper() == "Z":
            return result.replace(tzinfo=timezone.utc)
        sign = 1 if suffix[0] == "+" else -1
        digits = suffix[1:].replace(":", "")
        offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        return result.replace(tzinfo=timezone(sign * offset))

    zone = _resolve_zone(tzid)
    if zone is not None:
        return result.replace(tzinfo=zone)
    return result


def is_valid_ics_date(value: Optional[str]) -> bool:
    """Strikte Pruefung auf YYYYMMDD oder YYYYMMDDTHHMMSS[Z]."""
    if not value or not _STRICT_DATE_PATTERN.match(value.strip()):
        return False
    return parse_ics_date(value) is not None


# --- UID ---

def generate_uid(domain: str) -> str:
    """Erzeugt iCalendar UID im Format <uuid>@<domain>."""
    return f"{uuid.uuid4()}@{domain}"


def generate_urn_uid() -> str:
    """Erzeugt vCard UID als urn:uuid."""
    return f"urn:uuid:{uuid.uuid4()}"


# --- Content-Lines ---

def _split_outside_quotes(text: str, separator: str) -> List[str]:
    parts = []
    current = []
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == separator and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def parse_property_line(line: str) -> Optional[PropertyLine]:
    """
    Zerlegt eine entfaltete Content-Line.

    Property- und Parameternamen werden gross geschrieben, DQUOTEs um
    Parameterwerte entfernt. Parameter ohne Wert (vCard 2.1 'WORK')
    bekommen den Wert 'true'. Wiederholte Parameter werden mit Komma
    verbunden.

    Args:
        line: Zeile wie 'ATTENDEE;CN="Doe, John":mailto:j@example.com'

    Returns:
        PropertyLine oder None wenn kein Doppelpunkt vorhanden ist
    """
    in_quotes = False
    colon_index = -1
    for index, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif char == ":" and not in_quotes:
            colon_index = index
            break

    if colon_index <= 0:
        return None

    segments = _split_outside_quotes(line[:colon_index], ";")
    name = segments[0].strip().upper()
    group = None
    if "." in name:
        group, name = name.rsplit(".", 1)
    if not name:
        return None

    params: Dict[str, str] = {}
    for segment in segments[1:]:
        segment = segment.strip()
        if not segment:
            continue
        if "=" in segment:
            key, param_value = segment.split("=", 1)
            key = key.strip().upper()
            param_value = param_value.strip()
            if len(param_value) >= 2 and param_value[0] == param_value[-1] == '"':
                param_value = param_value[1:-1]
        else:
            key, param_value = segment.upper(), "true"

        if key in params and param_value != "true":
            params[key] = f"{params[key]},{param_value}"
        else:
            params[key] = param_value

    return PropertyLine(name=name, value=line[colon_index + 1:], params=params, group=group)
