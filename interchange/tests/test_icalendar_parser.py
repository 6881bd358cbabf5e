"""
Tests fuer iCalendar Parser (VEVENT und VTODO).
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from interchange.enums import (
    AlarmAction,
    AttendeeRole,
    Classification,
    EventStatus,
    ParticipationStatus,
    RelationType,
    TaskStatus,
    Transparency,
    TriggerRelation,
)
from interchange.icalendar_parser import (
    ICalendarParser,
    parse_ics_content,
    parse_todo_file,
)
from interchange.settings import CodecSettings

UTC = timezone.utc


def calendar(*lines: str) -> str:
    """Baut einen VCALENDAR mit CRLF Zeilenenden."""
    return "\r\n".join(["BEGIN:VCALENDAR", "VERSION:2.0", *lines, "END:VCALENDAR"])


def event(*lines: str) -> list:
    return ["BEGIN:VEVENT", *lines, "END:VEVENT"]


class TestParseBasicEvent:
    """Tests fuer einfache VEVENTs."""

    def test_parse_meeting(self):
        """UID, SUMMARY und Zeitraum werden uebernommen."""
        content = calendar(*event(
            "UID:abc",
            "SUMMARY:Meeting",
            "DTSTART:20240115T100000Z",
            "DTEND:20240115T110000Z",
        ))

        result = parse_ics_content(content)

        assert result.errors == []
        assert len(result.records) == 1
        meeting = result.records[0]
        assert meeting.uid == "abc"
        assert meeting.title == "Meeting"
        assert meeting.start_date == datetime(2024, 1, 15, 10, 0, tzinfo=UTC)
        assert meeting.end_date == datetime(2024, 1, 15, 11, 0, tzinfo=UTC)
        assert meeting.all_day is False
        assert meeting.sequence == 0

    def test_lf_line_endings(self):
        content = calendar(*event("SUMMARY:LF", "DTSTART:20240115T100000Z")).replace("\r\n", "\n")
        result = parse_ics_content(content)
        assert result.records[0].title == "LF"

    def test_defaults_for_uid_and_title(self):
        """Fehlende UID wird erzeugt, fehlende SUMMARY wird 'Untitled Event'."""
        parser = ICalendarParser(CodecSettings(uid_domain="test.local"))
        result = parser.parse_events(calendar(*event("DTSTART:20240115T100000Z")))

        parsed = result.records[0]
        assert parsed.title == "Untitled Event"
        assert parsed.uid.endswith("@test.local")

    def test_end_defaults_to_start(self):
        result = parse_ics_content(calendar(*event("SUMMARY:X", "DTSTART:20240115T100000Z")))
        parsed = result.records[0]
        assert parsed.end_date == parsed.start_date

    def test_end_from_duration(self):
        result = parse_ics_content(calendar(*event(
            "SUMMARY:X", "DTSTART:20240115T100000Z", "DURATION:PT1H30M",
        )))
        parsed = result.records[0]
        assert parsed.end_date - parsed.start_date == timedelta(hours=1, minutes=30)

    def test_all_day_event(self):
        result = parse_ics_content(calendar(*event(
            "SUMMARY:Holiday",
            "DTSTART;VALUE=DATE:20240115",
            "DTEND;VALUE=DATE:20240116",
        )))
        parsed = result.records[0]
        assert parsed.all_day is True
        assert parsed.start_date == date(2024, 1, 15)
        assert parsed.end_date == date(2024, 1, 16)

    def test_folded_and_escaped_description(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "DESCRIPTION:This is a long\r\n  description\\, with\\ncomma",
            "LOCATION:Room 1\\; Floor 2",
        ))
        parsed = parse_ics_content(content).records[0]
        assert parsed.description == "This is a long description, with\ncomma"
        assert parsed.location == "Room 1; Floor 2"

    def test_calendar_name(self):
        content = calendar("X-WR-CALNAME:Work\\, Team", *event("SUMMARY:X", "DTSTART:20240115T100000Z"))
        assert parse_ics_content(content).collection_name == "Work, Team"

    def test_multiple_events_keep_order(self):
        content = calendar(
            *event("UID:1", "SUMMARY:First", "DTSTART:20240115T100000Z"),
            *event("UID:2", "SUMMARY:Second", "DTSTART:20240116T100000Z"),
        )
        result = parse_ics_content(content)
        assert [e.uid for e in result.records] == ["1", "2"]


class TestParseEventProperties:
    """Tests fuer erweiterte Properties."""

    def test_attendees_and_organizer(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "ORGANIZER;CN=Boss:mailto:boss@example.com",
            "ATTENDEE;CN=Alice;ROLE=REQ-PARTICIPANT;PARTSTAT=ACCEPTED;RSVP=TRUE:mailto:alice@example.com",
            'ATTENDEE;CN="Doe, John";PARTSTAT=needs_action:MAILTO:john@example.com',
        ))
        parsed = parse_ics_content(content).records[0]

        assert parsed.organizer_name == "Boss"
        assert parsed.organizer_email == "boss@example.com"
        assert len(parsed.attendees) == 2

        alice, john = parsed.attendees
        assert alice.email == "alice@example.com"
        assert alice.name == "Alice"
        assert alice.role == AttendeeRole.REQ_PARTICIPANT
        assert alice.status == ParticipationStatus.ACCEPTED
        assert alice.rsvp is True
        assert john.email == "john@example.com"
        assert john.name == "Doe, John"
        assert john.status == ParticipationStatus.NEEDS_ACTION
        assert john.rsvp is False

    def test_categories_accumulate(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "CATEGORIES:Work,Meeting",
            "CATEGORIES:Urgent,A\\,B",
        ))
        parsed = parse_ics_content(content).records[0]
        assert parsed.categories == ["Work", "Meeting", "Urgent", "A,B"]

    def test_status_class_transp(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "STATUS:confirmed",
            "CLASS:PRIVATE",
            "TRANSP:TRANSPARENT",
            "PRIORITY:1",
            "SEQUENCE:4",
        ))
        parsed = parse_ics_content(content).records[0]
        assert parsed.status == EventStatus.CONFIRMED
        assert parsed.classification == Classification.PRIVATE
        assert parsed.transp == Transparency.TRANSPARENT
        assert parsed.priority == 1
        assert parsed.sequence == 4

    def test_unknown_status_degrades_to_none(self):
        content = calendar(*event("SUMMARY:X", "DTSTART:20240115T100000Z", "STATUS:BOGUS"))
        result = parse_ics_content(content)
        assert result.records[0].status is None

    def test_invalid_priority_reported(self):
        content = calendar(*event("SUMMARY:X", "DTSTART:20240115T100000Z", "PRIORITY:high"))
        result = parse_ics_content(content)
        assert result.records[0].priority is None
        assert any("PRIORITY" in error for error in result.errors)

    def test_geo(self):
        content = calendar(*event("SUMMARY:X", "DTSTART:20240115T100000Z", "GEO:37.386013;-122.082932"))
        parsed = parse_ics_content(content).records[0]
        assert parsed.geo_latitude == pytest.approx(37.386013)
        assert parsed.geo_longitude == pytest.approx(-122.082932)

    def test_invalid_geo_keeps_both_empty(self):
        content = calendar(*event("SUMMARY:X", "DTSTART:20240115T100000Z", "GEO:37.38"))
        result = parse_ics_content(content)
        assert result.records[0].geo_latitude is None
        assert result.records[0].geo_longitude is None
        assert any("GEO" in error for error in result.errors)

    def test_recurrence(self):
        content = calendar(*event(
            "SUMMARY:Weekly",
            "DTSTART:20240115T100000Z",
            "RRULE:FREQ=WEEKLY;COUNT=4",
            "EXDATE:20240122T100000Z,20240129T100000Z",
            "RDATE;VALUE=DATE:20240301",
            "RECURRENCE-ID:20240115T100000Z",
        ))
        parsed = parse_ics_content(content).records[0]
        assert parsed.rrule == "FREQ=WEEKLY;COUNT=4"
        assert parsed.exdate == [
            datetime(2024, 1, 22, 10, 0, tzinfo=UTC),
            datetime(2024, 1, 29, 10, 0, tzinfo=UTC),
        ]
        assert parsed.rdate == [date(2024, 3, 1)]
        assert parsed.recurrence_id == "20240115T100000Z"

    def test_attachments(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "ATTACH;FMTTYPE=application/pdf:https://example.com/agenda.pdf",
            "ATTACH;ENCODING=BASE64;VALUE=BINARY;X-FILENAME=a.txt:SGVsbG8=",
        ))
        uri_attachment, inline_attachment = parse_ics_content(content).records[0].attachments
        assert uri_attachment.uri == "https://example.com/agenda.pdf"
        assert uri_attachment.fmttype == "application/pdf"
        assert inline_attachment.uri is None
        assert inline_attachment.value == "SGVsbG8="
        assert inline_attachment.filename == "a.txt"

    def test_non_standard_date_is_reported(self):
        """Tolerant geparst, aber als Fehler gemeldet."""
        content = calendar(*event("SUMMARY:X", "DTSTART:2024-01-15T10:00:00Z"))
        result = parse_ics_content(content)
        assert result.records[0].start_date == datetime(2024, 1, 15, 10, 0, tzinfo=UTC)
        assert any("non-standard DTSTART" in error for error in result.errors)


class TestParseAlarms:
    """Tests fuer verschachtelte VALARM Bloecke."""

    def test_alarm(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "BEGIN:VALARM",
            "ACTION:DISPLAY",
            "TRIGGER:-PT15M",
            "DESCRIPTION:Reminder",
            "END:VALARM",
            "BEGIN:VALARM",
            "ACTION:AUDIO",
            "TRIGGER;VALUE=DATE-TIME:20240115T093000Z",
            "REPEAT:2",
            "DURATION:PT5M",
            "ATTACH:https://example.com/ding.wav",
            "END:VALARM",
        ))
        parsed = parse_ics_content(content).records[0]

        assert len(parsed.alarms) == 2
        display, audio = parsed.alarms
        assert display.action == AlarmAction.DISPLAY
        assert display.trigger == "-PT15M"
        assert display.description == "Reminder"
        assert audio.action == AlarmAction.AUDIO
        assert audio.trigger == "20240115T093000Z"
        assert audio.repeat == 2
        assert audio.duration == "PT5M"
        assert audio.attach_uri == "https://example.com/ding.wav"
        assert display.related is None

    def test_trigger_related_end(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "BEGIN:VALARM",
            "ACTION:DISPLAY",
            "TRIGGER;RELATED=END:-PT5M",
            "END:VALARM",
        ))
        alarm = parse_ics_content(content).records[0].alarms[0]
        assert alarm.trigger == "-PT5M"
        assert alarm.related == TriggerRelation.END

    def test_alarm_properties_do_not_leak(self):
        """DESCRIPTION im VALARM ueberschreibt nicht die Event-Beschreibung."""
        content = calendar(*event(
            "SUMMARY:X",
            "DESCRIPTION:Event text",
            "DTSTART:20240115T100000Z",
            "BEGIN:VALARM",
            "ACTION:DISPLAY",
            "TRIGGER:-PT5M",
            "DESCRIPTION:Alarm text",
            "END:VALARM",
        ))
        parsed = parse_ics_content(content).records[0]
        assert parsed.description == "Event text"
        assert parsed.alarms[0].description == "Alarm text"

    def test_alarm_without_action_dropped(self):
        content = calendar(*event(
            "SUMMARY:X",
            "DTSTART:20240115T100000Z",
            "BEGIN:VALARM",
            "TRIGGER:-PT15M",
            "END:VALARM",
        ))
        result = parse_ics_content(content)
        assert len(result.records) == 1
        assert result.records[0].alarms == []
        assert any("VALARM" in error for error in result.errors)


class TestParseErrors:
    """Tests fuer Fehlerfaelle."""

    def test_no_events(self):
        """Keine Bloecke -> genau ein Fehler."""
        result = parse_ics_content(calendar("PRODID:-//Test//EN"))
        assert result.records == []
        assert result.errors == ["No events found in the ICS file."]

    def test_empty_input(self):
        result = parse_ics_content("")
        assert result.errors == ["No events found in the ICS file."]

    def test_missing_start_skips_event(self):
        result = parse_ics_content(calendar(*event("SUMMARY:No date")))
        assert result.records == []
        assert len(result.errors) == 1
        assert "missing start or end date" in result.errors[0]

    def test_invalid_start_skips_event(self):
        result = parse_ics_content(calendar(*event("SUMMARY:Bad", "DTSTART:garbage")))
        assert result.records == []
        assert len(result.errors) == 2
        assert "invalid DTSTART" in result.errors[0]
        assert "missing start or end date" in result.errors[1]

    def test_unterminated_block(self):
        content = "\r\n".join([
            "BEGIN:VCALENDAR",
            "BEGIN:VEVENT",
            "UID:ok",
            "SUMMARY:Complete",
            "DTSTART:20240115T100000Z",
            "END:VEVENT",
            "BEGIN:VEVENT",
            "UID:broken",
            "DTSTART:20240116T100000Z",
        ])
        result = parse_ics_content(content)
        assert [e.uid for e in result.records] == ["ok"]
        assert any("unterminated" in error for error in result.errors)

    def test_vtimezone_skipped(self):
        content = calendar(
            "BEGIN:VTIMEZONE",
            "TZID:Europe/Berlin",
            "BEGIN:STANDARD",
            "DTSTART:19701025T030000",
            "TZNAME:CET",
            "END:STANDARD",
            "END:VTIMEZONE",
            *event("UID:1", "SUMMARY:X", "DTSTART;TZID=Europe/Berlin:20240115T100000"),
        )
        result = parse_ics_content(content)
        assert len(result.records) == 1
        assert result.records[0].start_date.replace(tzinfo=None) == datetime(2024, 1, 15, 10, 0)

    def test_vtodo_ignored_by_event_parser(self):
        content = calendar("BEGIN:VTODO", "SUMMARY:Task", "END:VTODO")
        result = parse_ics_content(content)
        assert result.errors == ["No events found in the ICS file."]


class TestParseTasks:
    """Tests fuer VTODO Parsing."""

    def test_parse_task(self):
        content = calendar(
            "BEGIN:VTODO",
            "UID:task-1",
            "SUMMARY:Write report",
            "DTSTART;VALUE=DATE:20240110",
            "DUE:20240115T170000Z",
            "COMPLETED:20240114T120000Z",
            "STATUS:NEEDS_ACTION",
            "PERCENT-COMPLETE:50",
            "PRIORITY:5",
            "CONTACT:Jane Doe\\, ACME",
            "RELATED-TO;RELTYPE=PARENT:parent-uid",
            "REQUEST-STATUS:2.0;Success",
            "DURATION:PT2H",
            "END:VTODO",
        )
        result = parse_todo_file(content)

        assert result.errors == []
        task = result.records[0]
        assert task.uid == "task-1"
        assert task.summary == "Write report"
        assert task.dtstart == date(2024, 1, 10)
        assert task.due == datetime(2024, 1, 15, 17, 0, tzinfo=UTC)
        assert task.completed == datetime(2024, 1, 14, 12, 0, tzinfo=UTC)
        assert task.status == TaskStatus.NEEDS_ACTION
        assert task.percent_complete == 50
        assert task.priority == 5
        assert task.contact == "Jane Doe, ACME"
        assert task.related_to == "parent-uid"
        assert task.relation_type == RelationType.PARENT
        assert task.request_status[0].code == "2.0"
        assert task.request_status[0].description == "Success"
        assert task.duration == "PT2H"

    def test_default_summary(self):
        result = parse_todo_file(calendar("BEGIN:VTODO", "END:VTODO"))
        assert result.records[0].summary == "Untitled Task"
        assert result.records[0].uid

    def test_percent_out_of_range(self):
        result = parse_todo_file(calendar("BEGIN:VTODO", "SUMMARY:X", "PERCENT-COMPLETE:150", "END:VTODO"))
        assert result.records[0].percent_complete is None
        assert any("PERCENT-COMPLETE" in error for error in result.errors)

    def test_invalid_request_status(self):
        result = parse_todo_file(calendar("BEGIN:VTODO", "SUMMARY:X", "REQUEST-STATUS:9.9;Nope", "END:VTODO"))
        assert result.records[0].request_status == []
        assert any("REQUEST-STATUS" in error for error in result.errors)

    def test_no_tasks(self):
        result = parse_todo_file(calendar(*event("SUMMARY:X", "DTSTART:20240115T100000Z")))
        assert result.records == []
        assert result.errors == ["No tasks found in the ICS file."]
