"""
iCalendar Parser fuer VEVENT und VTODO (RFC 5545).

Zeilenbasierte Zustandsmaschine: ausserhalb/innerhalb eines Records,
VALARM wird eine Ebene tiefer im selben Verfahren gesammelt. Unbekannte
Komponenten (VTIMEZONE, VJOURNAL, ...) werden samt Inhalt uebersprungen.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from .duration import duration_to_timedelta
from .enums import (
    AlarmAction,
    AttendeeRole,
    Classification,
    EventStatus,
    ParticipationStatus,
    RelationType,
    TaskStatus,
    Transparency,
    TriggerRelation,
    is_valid_request_status_code,
    lookup,
)
from .models import (
    Alarm,
    Attachment,
    Attendee,
    ParsedEvent,
    ParsedTask,
    ParseResult,
    RequestStatus,
)
from .settings import CodecSettings, get_settings
from .text_utils import (
    PropertyLine,
    generate_uid,
    is_valid_ics_date,
    parse_ics_date,
    parse_property_line,
    split_escaped,
    split_lines,
    unescape_text,
)

logger = logging.getLogger(__name__)

VEVENT = "VEVENT"
VTODO = "VTODO"
VALARM = "VALARM"

NO_EVENTS_MESSAGE = "No events found in the ICS file."
NO_TASKS_MESSAGE = "No tasks found in the ICS file."

_MAILTO_PATTERN = re.compile(r"^mailto:", re.IGNORECASE)


class _Builder:
    """Sammelt Felder eines offenen Blocks bis zum END."""

    def __init__(self, label: str, errors: List[str]):
        self.label = label
        self.fields: Dict[str, Any] = {}
        self.errors = errors

    def append(self, key: str, value: Any) -> None:
        self.fields.setdefault(key, []).append(value)

    def extend(self, key: str, values: List[Any]) -> None:
        self.fields.setdefault(key, []).extend(values)

    def error(self, message: str) -> None:
        self.errors.append(f"{self.label}: {message}")


Handler = Callable[[PropertyLine, _Builder], None]


# --- Property Handler ---

def _text(field_name: str) -> Handler:
    def handler(prop: PropertyLine, builder: _Builder) -> None:
        builder.fields[field_name] = unescape_text(prop.value)
    return handler


def _raw(field_name: str) -> Handler:
    def handler(prop: PropertyLine, builder: _Builder) -> None:
        value = prop.value.strip()
        if value:
            builder.fields[field_name] = value
    return handler


def _parse_date_value(prop: PropertyLine, value: str, builder: _Builder):
    """Parsed einen Datumswert und meldet nicht-standardkonforme Werte."""
    result = parse_ics_date(value, prop.params.get("TZID"))
    if result is None:
        builder.error(f"invalid {prop.name} value '{value}'")
        return None
    if not is_valid_ics_date(value):
        builder.error(f"non-standard {prop.name} value '{value}'")
    if prop.params.get("VALUE", "").upper() == "DATE" and hasattr(result, "date"):
        result = result.date()
    return result


def _date(field_name: str) -> Handler:
    def handler(prop: PropertyLine, builder: _Builder) -> None:
        value = prop.value.strip()
        if value:
            builder.fields[field_name] = _parse_date_value(prop, value, builder)
    return handler


def _date_list(field_name: str) -> Handler:
    """RDATE/EXDATE: kommagetrennt, PERIOD Werte nur mit Startzeit."""
    def handler(prop: PropertyLine, builder: _Builder) -> None:
        for part in prop.value.split(","):
            part = part.split("/")[0].strip()
            if not part:
                continue
            parsed = _parse_date_value(prop, part, builder)
            if parsed is not None:
                builder.append(field_name, parsed)
    return handler


def _integer(field_name: str, low: int, high: Optional[int] = None) -> Handler:
    def handler(prop: PropertyLine, builder: _Builder) -> None:
        value = prop.value.strip()
        try:
            number = int(value)
        except ValueError:
            builder.error(f"{prop.name} is not an integer: '{value}'")
            return
        if number < low or (high is not None and number > high):
            builder.error(f"{prop.name} out of range: {number}")
            return
        builder.fields[field_name] = number
    return handler


def _enum(field_name: str, enum_cls) -> Handler:
    def handler(prop: PropertyLine, builder: _Builder) -> None:
        member = lookup(enum_cls, prop.value)
        if member is None:
            logger.debug(f"Ignoring unknown {prop.name} value: {prop.value}")
        builder.fields[field_name] = member
    return handler


def _list(field_name: str) -> Handler:
    """CATEGORIES/RESOURCES: unmaskierte Kommas trennen, mehrere Zeilen sammeln."""
    def handler(prop: PropertyLine, builder: _Builder) -> None:
        items = [unescape_text(part).strip() for part in split_escaped(prop.value, ",")]
        builder.extend(field_name, [item for item in items if item])
    return handler


def _strip_mailto(value: str) -> str:
    return _MAILTO_PATTERN.sub("", value.strip()).strip()


def _handle_geo(prop: PropertyLine, builder: _Builder) -> None:
    parts = re.split(r"[;,]", prop.value.strip())
    try:
        latitude, longitude = float(parts[0]), float(parts[1])
    except (ValueError, IndexError):
        builder.error(f"invalid GEO value '{prop.value}'")
        return
    builder.fields["geo_latitude"] = latitude
    builder.fields["geo_longitude"] = longitude


def _handle_organizer(prop: PropertyLine, builder: _Builder) -> None:
    email = _strip_mailto(prop.value)
    if email:
        builder.fields["organizer_email"] = email
    if prop.params.get("CN"):
        builder.fields["organizer_name"] = prop.params["CN"]


def _handle_attendee(prop: PropertyLine, builder: _Builder) -> None:
    email = _strip_mailto(prop.value)
    if not email:
        return
    builder.append("attendees", Attendee(
        email=email,
        name=prop.params.get("CN") or None,
        role=lookup(AttendeeRole, prop.params.get("ROLE")),
        status=lookup(ParticipationStatus, prop.params.get("PARTSTAT")),
        rsvp=prop.params.get("RSVP", "").upper() == "TRUE",
    ))


def _handle_attach(prop: PropertyLine, builder: _Builder) -> None:
    value = prop.value.strip()
    if not value:
        return
    inline = (
        prop.params.get("ENCODING", "").upper() == "BASE64"
        or prop.params.get("VALUE", "").upper() == "BINARY"
    )
    builder.append("attachments", Attachment(
        uri=None if inline else value,
        value=value if inline else None,
        fmttype=prop.params.get("FMTTYPE"),
        filename=prop.params.get("X-FILENAME") or prop.params.get("FILENAME"),
    ))


def _handle_event_start(prop: PropertyLine, builder: _Builder) -> None:
    value = prop.value.strip()
    start = _parse_date_value(prop, value, builder) if value else None
    builder.fields["start_date"] = start
    builder.fields["all_day"] = start is not None and not hasattr(start, "hour")


def _handle_related_to(prop: PropertyLine, builder: _Builder) -> None:
    value = prop.value.strip()
    if value:
        builder.fields["related_to"] = value
        builder.fields["relation_type"] = lookup(RelationType, prop.params.get("RELTYPE"))


def _handle_trigger(prop: PropertyLine, builder: _Builder) -> None:
    value = prop.value.strip()
    if not value:
        return
    builder.fields["trigger"] = value
    if "RELATED" in prop.params:
        builder.fields["related"] = lookup(TriggerRelation, prop.params["RELATED"])


def _handle_request_status(prop: PropertyLine, builder: _Builder) -> None:
    parts = split_escaped(prop.value, ";")
    code = parts[0].strip()
    if not is_valid_request_status_code(code):
        builder.error(f"invalid REQUEST-STATUS code '{code}'")
        return
    builder.append("request_status", RequestStatus(
        code=code,
        description=unescape_text(parts[1]) if len(parts) > 1 else "",
        ext_data=unescape_text(parts[2]) if len(parts) > 2 else None,
    ))


# Property-Name -> Handler, einmalig beim Import aufgebaut
_COMMON_HANDLERS: Dict[str, Handler] = {
    "UID": _raw("uid"),
    "DTSTAMP": _date("dtstamp"),
    "CREATED": _date("created"),
    "LAST-MODIFIED": _date("last_modified"),
    "DESCRIPTION": _text("description"),
    "LOCATION": _text("location"),
    "COMMENT": _text("comment"),
    "URL": _raw("url"),
    "COLOR": _raw("color"),
    "CLASS": _enum("classification", Classification),
    "PRIORITY": _integer("priority", 0, 9),
    "SEQUENCE": _integer("sequence", 0),
    "GEO": _handle_geo,
    "ORGANIZER": _handle_organizer,
    "ATTENDEE": _handle_attendee,
    "ATTACH": _handle_attach,
    "CATEGORIES": _list("categories"),
    "RESOURCES": _list("resources"),
    "RRULE": _raw("rrule"),
    "RDATE": _date_list("rdate"),
    "EXDATE": _date_list("exdate"),
    "RECURRENCE-ID": _raw("recurrence_id"),
}

EVENT_HANDLERS: Dict[str, Handler] = {
    **_COMMON_HANDLERS,
    "SUMMARY": _text("title"),
    "DTSTART": _handle_event_start,
    "DTEND": _date("end_date"),
    "DURATION": _raw("duration"),
    "STATUS": _enum("status", EventStatus),
    "TRANSP": _enum("transp", Transparency),
    "RELATED-TO": _raw("related_to"),
}

TASK_HANDLERS: Dict[str, Handler] = {
    **_COMMON_HANDLERS,
    "SUMMARY": _text("summary"),
    "DTSTART": _date("dtstart"),
    "DUE": _date("due"),
    "COMPLETED": _date("completed"),
    "DURATION": _raw("duration"),
    "STATUS": _enum("status", TaskStatus),
    "PERCENT-COMPLETE": _integer("percent_complete", 0, 100),
    "CONTACT": _text("contact"),
    "RELATED-TO": _handle_related_to,
    "REQUEST-STATUS": _handle_request_status,
}

ALARM_HANDLERS: Dict[str, Handler] = {
    "ACTION": _enum("action", AlarmAction),
    "TRIGGER": _handle_trigger,
    "SUMMARY": _text("summary"),
    "DESCRIPTION": _text("description"),
    "DURATION": _raw("duration"),
    "REPEAT": _integer("repeat", 0),
    "ATTACH": _raw("attach_uri"),
}


class ICalendarParser:
    """Parser fuer iCalendar Dateien mit VEVENT oder VTODO Komponenten."""

    def __init__(self, settings: Optional[CodecSettings] = None):
        self.settings = settings or get_settings()

    def parse_events(self, content: str) -> ParseResult[ParsedEvent]:
        """
        Parsed alle VEVENT Bloecke.

        Args:
            content: ICS Dateiinhalt (gefaltet oder entfaltet)

        Returns:
            ParseResult mit ParsedEvent Records und Fehlern
        """
        return self._parse(content, VEVENT, EVENT_HANDLERS, self._build_event, NO_EVENTS_MESSAGE)

    def parse_tasks(self, content: str) -> ParseResult[ParsedTask]:
        """Parsed alle VTODO Bloecke."""
        return self._parse(content, VTODO, TASK_HANDLERS, self._build_task, NO_TASKS_MESSAGE)

    def _parse(
        self,
        content: str,
        component: str,
        handlers: Dict[str, Handler],
        build: Callable[[_Builder], Any],
        empty_message: str,
    ) -> ParseResult:
        result = ParseResult()
        stack: List[str] = []
        record: Optional[_Builder] = None
        alarm: Optional[_Builder] = None
        block_count = 0

        for line in split_lines(content or ""):
            if not line.strip():
                continue

            prop = parse_property_line(line)
            if prop is None:
                logger.debug(f"Skipping malformed line: {line[:80]}")
                continue

            if prop.name == "BEGIN":
                name = prop.value.strip().upper()
                if name == component:
                    if record is not None:
                        record.error(f"unterminated {component} block")
                        del stack[stack.index(component):]
                    block_count += 1
                    record = _Builder(f"{component} #{block_count}", result.errors)
                    alarm = None
                elif name == VALARM and record is not None and stack and stack[-1] == component:
                    alarm = _Builder(record.label, result.errors)
                stack.append(name)
                continue

            if prop.name == "END":
                name = prop.value.strip().upper()
                if name not in stack:
                    continue
                del stack[len(stack) - 1 - stack[::-1].index(name):]

                if name == VALARM and alarm is not None and record is not None:
                    built_alarm = self._build_alarm(alarm)
                    if built_alarm is not None:
                        record.append("alarms", built_alarm)
                    alarm = None
                elif name == component and record is not None:
                    built = build(record)
                    if built is not None:
                        result.records.append(built)
                    record = None
                    alarm = None
                continue

            if record is None:
                if prop.name == "X-WR-CALNAME" and stack == ["VCALENDAR"]:
                    result.collection_name = unescape_text(prop.value)
                continue

            current = stack[-1] if stack else None
            if current == VALARM and alarm is not None:
                handler = ALARM_HANDLERS.get(prop.name)
                target = alarm
            elif current == component:
                handler = handlers.get(prop.name)
                target = record
            else:
                continue

            if handler is None:
                logger.debug(f"Ignoring {prop.name} in {target.label}")
                continue
            handler(prop, target)

        if record is not None:
            record.error(f"unterminated {component} block")

        if block_count == 0:
            result.errors.append(empty_message)
            logger.warning(f"No {component} blocks found")

        logger.info(
            f"Parsed {len(result.records)} {component} records "
            f"({len(result.errors)} errors)"
        )
        return result

    def _build_alarm(self, alarm: _Builder) -> Optional[Alarm]:
        fields = alarm.fields
        if not fields.get("trigger") or fields.get("action") is None:
            alarm.error("skipped VALARM without TRIGGER or ACTION")
            return None
        return Alarm(**fields)

    def _build_event(self, record: _Builder) -> Optional[ParsedEvent]:
        fields = record.fields
        title = fields.pop("title", None) or self.settings.default_event_title
        duration = fields.pop("duration", None)

        start = fields.get("start_date")
        if start is None:
            record.error(f'skipped "{title}": missing start or end date')
            return None

        if fields.get("end_date") is None:
            delta = duration_to_timedelta(duration)
            fields["end_date"] = start + delta if delta is not None else start

        if not fields.get("uid"):
            fields["uid"] = generate_uid(self.settings.uid_domain)

        return ParsedEvent(title=title, **fields)

    def _build_task(self, record: _Builder) -> ParsedTask:
        fields = record.fields
        summary = fields.pop("summary", None) or self.settings.default_task_title
        if not fields.get("uid"):
            fields["uid"] = generate_uid(self.settings.uid_domain)
        return ParsedTask(summary=summary, **fields)


def parse_ics_content(content: str) -> ParseResult[ParsedEvent]:
    """Parsed ICS Inhalt zu Events."""
    return ICalendarParser().parse_events(content)


def parse_todo_file(content: str) -> ParseResult[ParsedTask]:
    """Parsed ICS Inhalt zu Tasks."""
    return ICalendarParser().parse_tasks(content)
