"""
iCalendar Generator fuer VEVENT und VTODO (RFC 5545).

Optionale Properties werden nur geschrieben wenn gesetzt, jede Zeile
wird einzeln gefaltet, Zeilenende ist CRLF.
"""
import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence, Union

from .duration import is_absolute_trigger
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
    lookup,
    request_status_class,
)
from .models import Alarm, Attachment, Attendee, ParsedEvent, ParsedTask
from .settings import CodecSettings, get_settings
from .text_utils import (
    CRLF,
    escape_text,
    fold_line,
    format_date_only,
    format_date_time,
    format_date_utc,
    generate_uid,
    quote_param,
)

logger = logging.getLogger(__name__)

Record = Union[ParsedEvent, ParsedTask]


def _text(value: str) -> str:
    """Escaped TEXT, CRLF und CR vorher zu LF normalisiert."""
    return escape_text(value.replace("\r\n", "\n").replace("\r", "\n"))


def _enum_value(enum_cls, value) -> Optional[str]:
    """RFC Schreibweise, unbekannte Werte (x-name) gross geschrieben."""
    if value is None or value == "":
        return None
    member = lookup(enum_cls, value)
    if member is not None:
        return member.value
    return str(value).upper()


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def _is_date_only(value: Union[datetime, date]) -> bool:
    return not isinstance(value, datetime)


def _date_line(name: str, value: Union[datetime, date], all_day: bool = False) -> str:
    if all_day or _is_date_only(value):
        return f"{name};VALUE=DATE:{format_date_only(value)}"
    return f"{name}:{format_date_time(value)}"


def _date_list_line(name: str, values: Sequence[Union[datetime, date]]) -> str:
    if all(_is_date_only(value) for value in values):
        return f"{name};VALUE=DATE:" + ",".join(format_date_only(v) for v in values)
    return f"{name}:" + ",".join(format_date_time(v) for v in values)


class ICalendarGenerator:
    """Erzeugt VCALENDAR Dateien aus ParsedEvent / ParsedTask Records."""

    def __init__(self, settings: Optional[CodecSettings] = None):
        self.settings = settings or get_settings()

    def generate_events(
        self,
        calendar_name: Optional[str],
        events: Sequence[ParsedEvent],
        prod_id: Optional[str] = None,
    ) -> str:
        """
        Serialisiert Events zu einem VCALENDAR.

        Args:
            calendar_name: Wert fuer X-WR-CALNAME
            events: Events in Ausgabereihenfolge
            prod_id: Optional abweichende PRODID

        Returns:
            ICS Text mit CRLF Zeilenenden
        """
        stamp = format_date_utc(datetime.now(timezone.utc))
        lines = self._header(prod_id or self.settings.calendar_prod_id, calendar_name)
        for event in events:
            lines.extend(self._event_lines(event, stamp))
        lines.append("END:VCALENDAR")

        logger.info(f"Generated calendar '{calendar_name}' with {len(events)} events")
        return self._join(lines)

    def generate_tasks(
        self,
        list_name: Optional[str],
        tasks: Sequence[ParsedTask],
        prod_id: Optional[str] = None,
    ) -> str:
        """Serialisiert Tasks zu einem VCALENDAR mit VTODO Bloecken."""
        stamp = format_date_utc(datetime.now(timezone.utc))
        lines = self._header(prod_id or self.settings.tasks_prod_id, list_name)
        for task in tasks:
            lines.extend(self._task_lines(task, stamp))
        lines.append("END:VCALENDAR")

        logger.info(f"Generated task list '{list_name}' with {len(tasks)} tasks")
        return self._join(lines)

    def _join(self, lines: List[str]) -> str:
        return CRLF.join(fold_line(line) for line in lines) + CRLF

    def _header(self, prod_id: str, name: Optional[str]) -> List[str]:
        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:{prod_id}",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
        ]
        if name:
            lines.append(f"X-WR-CALNAME:{_text(name)}")
        return lines

    def _event_lines(self, event: ParsedEvent, stamp: str) -> List[str]:
        lines = [
            "BEGIN:VEVENT",
            f"UID:{event.uid or generate_uid(self.settings.uid_domain)}",
            f"DTSTAMP:{stamp}",
        ]

        if event.start_date is not None:
            lines.append(_date_line("DTSTART", event.start_date, event.all_day))
        else:
            logger.warning(f"Event '{event.title}' has no start date")
        if event.end_date is not None:
            lines.append(_date_line("DTEND", event.end_date, event.all_day))

        lines.append(f"SUMMARY:{_text(event.title)}")

        status = _enum_value(EventStatus, event.status)
        if status:
            lines.append(f"STATUS:{status}")
        transp = _enum_value(Transparency, event.transp)
        if transp:
            lines.append(f"TRANSP:{transp}")
        if event.related_to:
            lines.append(f"RELATED-TO:{event.related_to}")

        lines.extend(self._common_lines(event))
        lines.extend(self._alarm_lines(event.alarms, event.title))
        lines.append("END:VEVENT")
        return lines

    def _task_lines(self, task: ParsedTask, stamp: str) -> List[str]:
        lines = [
            "BEGIN:VTODO",
            f"UID:{task.uid or generate_uid(self.settings.uid_domain)}",
            f"DTSTAMP:{stamp}",
            f"SUMMARY:{_text(task.summary)}",
        ]

        # Zeitpunkte
        if task.dtstart is not None:
            lines.append(_date_line("DTSTART", task.dtstart))
        if task.due is not None:
            lines.append(_date_line("DUE", task.due))
        if task.completed is not None:
            lines.append(f"COMPLETED:{format_date_time(task.completed)}")
        if task.duration:
            lines.append(f"DURATION:{task.duration}")

        # Status
        status = _enum_value(TaskStatus, task.status)
        if status:
            lines.append(f"STATUS:{status}")
        if task.percent_complete is not None:
            lines.append(f"PERCENT-COMPLETE:{_clamp(task.percent_complete, 0, 100)}")
        if task.contact:
            lines.append(f"CONTACT:{_text(task.contact)}")

        # Beziehungen
        if task.related_to:
            reltype = _enum_value(RelationType, task.relation_type)
            if reltype:
                lines.append(f"RELATED-TO;RELTYPE={reltype}:{task.related_to}")
            else:
                lines.append(f"RELATED-TO:{task.related_to}")

        for request_status in task.request_status:
            status_class = request_status_class(request_status.code)
            if status_class is None:
                logger.warning(f"Skipping invalid REQUEST-STATUS '{request_status.code}' on '{task.summary}'")
                continue
            # statdesc ist Pflicht
            description = request_status.description or status_class
            value = f"{request_status.code};{_text(description)}"
            if request_status.ext_data:
                value += f";{_text(request_status.ext_data)}"
            lines.append(f"REQUEST-STATUS:{value}")

        lines.extend(self._common_lines(task))
        lines.extend(self._alarm_lines(task.alarms, task.summary))
        lines.append("END:VTODO")
        return lines

    def _common_lines(self, record: Record) -> List[str]:
        """Properties, die VEVENT und VTODO gemeinsam haben."""
        lines = []

        # Inhalt
        if record.description:
            lines.append(f"DESCRIPTION:{_text(record.description)}")
        if record.location:
            lines.append(f"LOCATION:{_text(record.location)}")
        if record.url:
            lines.append(f"URL:{record.url}")
        if record.comment:
            lines.append(f"COMMENT:{_text(record.comment)}")
        if record.color:
            lines.append(f"COLOR:{record.color}")

        # Klassifizierung
        classification = _enum_value(Classification, record.classification)
        if classification:
            lines.append(f"CLASS:{classification}")
        if record.priority is not None:
            lines.append(f"PRIORITY:{_clamp(record.priority, 0, 9)}")
        lines.append(f"SEQUENCE:{record.sequence or 0}")

        # Timestamps
        if record.created is not None:
            lines.append(f"CREATED:{format_date_utc(record.created)}")
        if record.last_modified is not None:
            lines.append(f"LAST-MODIFIED:{format_date_utc(record.last_modified)}")

        if record.geo_latitude is not None and record.geo_longitude is not None:
            lines.append(f"GEO:{record.geo_latitude};{record.geo_longitude}")

        if record.organizer_email:
            if record.organizer_name:
                lines.append(
                    f"ORGANIZER;CN={quote_param(record.organizer_name)}:mailto:{record.organizer_email}"
                )
            else:
                lines.append(f"ORGANIZER:mailto:{record.organizer_email}")

        for attendee in record.attendees:
            lines.append(self._attendee_line(attendee))

        if record.categories:
            lines.append("CATEGORIES:" + ",".join(_text(c) for c in record.categories))
        if record.resources:
            lines.append("RESOURCES:" + ",".join(_text(r) for r in record.resources))

        # Wiederholung
        if record.rrule:
            lines.append(f"RRULE:{record.rrule}")
        if record.rdate:
            lines.append(_date_list_line("RDATE", record.rdate))
        if record.exdate:
            lines.append(_date_list_line("EXDATE", record.exdate))
        if record.recurrence_id:
            lines.append(f"RECURRENCE-ID:{record.recurrence_id}")

        for attachment in record.attachments:
            line = self._attach_line(attachment)
            if line:
                lines.append(line)

        return lines

    def _attendee_line(self, attendee: Attendee) -> str:
        parts = ["ATTENDEE"]
        if attendee.name:
            parts.append(f"CN={quote_param(attendee.name)}")
        role = _enum_value(AttendeeRole, attendee.role)
        if role:
            parts.append(f"ROLE={role}")
        partstat = _enum_value(ParticipationStatus, attendee.status)
        if partstat:
            parts.append(f"PARTSTAT={partstat}")
        if attendee.rsvp:
            parts.append("RSVP=TRUE")
        return ";".join(parts) + f":mailto:{attendee.email}"

    def _attach_line(self, attachment: Attachment) -> Optional[str]:
        params = ["ATTACH"]
        if attachment.fmttype:
            params.append(f"FMTTYPE={attachment.fmttype}")
        if attachment.filename:
            params.append(f"X-FILENAME={quote_param(attachment.filename)}")
        if attachment.value:
            params.append("ENCODING=BASE64;VALUE=BINARY")
            return ";".join(params) + f":{attachment.value}"
        if attachment.uri:
            return ";".join(params) + f":{attachment.uri}"
        return None

    def _alarm_lines(self, alarms: Sequence[Alarm], title: str) -> List[str]:
        lines = []
        for alarm in alarms:
            if not alarm.trigger:
                logger.warning(f"Skipping alarm without trigger on '{title}'")
                continue

            action = lookup(AlarmAction, alarm.action) or AlarmAction.DISPLAY
            lines.append("BEGIN:VALARM")
            lines.append(f"ACTION:{action.value}")

            if is_absolute_trigger(alarm.trigger):
                lines.append(f"TRIGGER;VALUE=DATE-TIME:{alarm.trigger}")
            else:
                related = lookup(TriggerRelation, alarm.related)
                trigger = f"TRIGGER;RELATED={related.value}" if related else "TRIGGER"
                lines.append(f"{trigger}:{alarm.trigger}")

            # DISPLAY braucht DESCRIPTION, EMAIL zusaetzlich SUMMARY
            if action == AlarmAction.DISPLAY:
                description = alarm.description or alarm.summary or title
                lines.append(f"DESCRIPTION:{_text(description)}")
                if alarm.summary:
                    lines.append(f"SUMMARY:{_text(alarm.summary)}")
            elif action == AlarmAction.EMAIL:
                lines.append(f"SUMMARY:{_text(alarm.summary or title)}")
                lines.append(f"DESCRIPTION:{_text(alarm.description or title)}")
            else:
                if alarm.summary:
                    lines.append(f"SUMMARY:{_text(alarm.summary)}")
                if alarm.description:
                    lines.append(f"DESCRIPTION:{_text(alarm.description)}")

            if alarm.duration:
                lines.append(f"DURATION:{alarm.duration}")
            if alarm.repeat is not None:
                lines.append(f"REPEAT:{alarm.repeat}")
            if alarm.attach_uri:
                lines.append(f"ATTACH:{alarm.attach_uri}")
            lines.append("END:VALARM")
        return lines


def generate_ics_file(
    calendar_name: Optional[str],
    events: Sequence[ParsedEvent],
    prod_id: Optional[str] = None,
) -> str:
    """Erzeugt ICS Datei aus Events."""
    return ICalendarGenerator().generate_events(calendar_name, events, prod_id)


def generate_todo_file(
    list_name: Optional[str],
    tasks: Sequence[ParsedTask],
    prod_id: Optional[str] = None,
) -> str:
    """Erzeugt ICS Datei aus Tasks."""
    return ICalendarGenerator().generate_tasks(list_name, tasks, prod_id)
