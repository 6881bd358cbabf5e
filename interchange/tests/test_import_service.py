"""
Tests fuer Import-Service.
"""
import pytest
from unittest.mock import Mock
from interchange.duplicate_detection import DuplicateCheckContact, DuplicateCheckEvent, DuplicateDetectionConfig
from interchange.import_service import ImportService
from interchange.models import Email, ParsedContact, ParsedEvent
from interchange.settings import CodecSettings


CALENDAR = "\r\n".join([
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "X-WR-CALNAME:Team",
    "BEGIN:VEVENT",
    "UID:known@example.com",
    "SUMMARY:Existing",
    "DTSTART:20240301T100000Z",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:fresh@example.com",
    "SUMMARY:Fresh",
    "DTSTART:20240302T100000Z",
    "END:VEVENT",
    "END:VCALENDAR",
])

CONTACTS = "\r\n".join([
    "BEGIN:VCARD", "VERSION:4.0", "FN:Max", "EMAIL:max@example.com", "END:VCARD",
    "BEGIN:VCARD", "VERSION:4.0", "N:Doe;John;;;", "END:VCARD",
])


@pytest.fixture
def service():
    return ImportService(CodecSettings())


class TestImportContent:
    """Tests fuer den Import von Dateiinhalten."""

    def test_events_against_existing_records(self, service):
        existing = [ParsedEvent(title="Old", uid="known@example.com")]

        result = service.import_events(CALENDAR, existing)

        assert [e.title for e in result.records] == ["Fresh"]
        assert [e.title for e in result.duplicates] == ["Existing"]
        assert result.collection_name == "Team"
        assert result.stats == {"parsed": 2, "imported": 1, "duplicates": 1, "errors": 0}

    def test_existing_as_projection(self, service):
        existing = [DuplicateCheckEvent(id="db-1", uid="fresh@example.com")]

        result = service.import_content("calendar", CALENDAR, existing)

        assert [e.uid for e in result.records] == ["known@example.com"]

    def test_existing_ids_may_clash(self, service):
        """Gleiche IDs im Bestand vermischen keine Records."""
        existing = [
            DuplicateCheckEvent(id="new-0", uid="fresh@example.com"),
            DuplicateCheckEvent(id="new-0", uid="other@example.com"),
        ]

        result = service.import_content("calendar", CALENDAR, existing)

        assert [e.title for e in result.records] == ["Existing"]
        assert [e.title for e in result.duplicates] == ["Fresh"]

    def test_contacts_with_errors(self, service):
        result = service.import_contacts(CONTACTS)

        assert [c.formatted_name for c in result.records] == ["Max"]
        assert len(result.errors) == 1
        assert result.stats["errors"] == 1

    def test_tasks(self, service):
        content = "\r\n".join([
            "BEGIN:VCALENDAR",
            "BEGIN:VTODO",
            "UID:t1",
            "SUMMARY:Report",
            "END:VTODO",
            "BEGIN:VTODO",
            "UID:t1",
            "SUMMARY:Report again",
            "END:VTODO",
            "END:VCALENDAR",
        ])
        result = service.import_tasks(content)

        assert [t.summary for t in result.records] == ["Report"]
        assert len(result.duplicates) == 1

    def test_unknown_kind(self, service):
        with pytest.raises(ValueError, match="Unknown import kind"):
            service.import_content("notes", "")


class TestImportFromUrl:
    def test_uses_feed_client(self):
        feed_client = Mock()
        feed_client.fetch.return_value = CALENDAR
        service = ImportService(CodecSettings(), feed_client=feed_client)

        result = service.import_from_url("webcal://example.com/team.ics", "calendar")

        feed_client.fetch.assert_called_once_with("webcal://example.com/team.ics", "calendar")
        assert len(result.records) == 2

    def test_unknown_kind_before_fetch(self):
        feed_client = Mock()
        service = ImportService(CodecSettings(), feed_client=feed_client)

        with pytest.raises(ValueError):
            service.import_from_url("https://example.com/x", "notes")
        feed_client.fetch.assert_not_called()


class TestMerge:
    """Tests fuer das Zusammenfuehren von Sammlungen."""

    def test_merge_contacts(self, service):
        first = [ParsedContact(formatted_name="Max", emails=[Email("max@example.com")])]
        second = [
            ParsedContact(formatted_name="max", emails=[Email("MAX@example.com")]),
            ParsedContact(formatted_name="Erika", emails=[Email("erika@example.com")]),
        ]

        merged = service.merge_contacts([first, second])

        assert [c.formatted_name for c in merged] == ["Max", "Erika"]
        assert merged[0] is first[0]

    def test_merge_events_by_uid(self, service):
        a = ParsedEvent(title="A", uid="same")
        b = ParsedEvent(title="B", uid="same")
        assert service.merge_events([[a], [b]]) == [a]

    def test_merge_projections_with_same_id(self, service):
        """Records werden nach Position zugeordnet, nicht nach ID."""
        alice = DuplicateCheckContact(id="1", name="Alice", emails=["alice@example.com"])
        bob = DuplicateCheckContact(id="1", name="Bob", emails=["bob@example.com"])

        merged = service.merge_contacts([[alice], [bob]])

        assert merged == [alice, bob]
        assert merged[0] is alice
        assert merged[1] is bob

    def test_merge_with_config(self, service):
        a = ParsedEvent(title="Sync", uid="1")
        b = ParsedEvent(title="sync", uid="2")
        config = DuplicateDetectionConfig(use_uid=False, use_email=False)
        assert service.merge_events([[a, b]], config) == [a]
