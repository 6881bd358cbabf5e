"""
Interchange-Modul fuer Kalender-, Aufgaben- und Kontakt-Austausch.

Formate: iCalendar (VEVENT, VTODO), vCard 4.0
"""

from .models import (
    Alarm,
    Attachment,
    Attendee,
    ParsedContact,
    ParsedEvent,
    ParsedTask,
    ParseResult,
    RequestStatus,
)
from .icalendar_parser import ICalendarParser, parse_ics_content, parse_todo_file
from .icalendar_generator import ICalendarGenerator, generate_ics_file, generate_todo_file
from .vcard_parser import VCardParser, parse_vcard_file
from .vcard_generator import VCardGenerator, generate_single_vcard, generate_vcard_file
from .duplicate_detection import (
    DeduplicationResult,
    DuplicateCheckContact,
    DuplicateCheckEvent,
    DuplicateCheckTask,
    DuplicateDetectionConfig,
    deduplicate_contacts,
    deduplicate_events,
    deduplicate_tasks,
    find_duplicates_against_existing,
    get_duplicate_ids,
)
from .import_service import ImportService, ImportResult
from .feed_client import FeedClient
from .errors import InterchangeError, FeedError
from .settings import CodecSettings, get_settings

__all__ = [
    # Models
    'Alarm',
    'Attachment',
    'Attendee',
    'ParsedContact',
    'ParsedEvent',
    'ParsedTask',
    'ParseResult',
    'RequestStatus',
    # iCalendar
    'ICalendarParser',
    'ICalendarGenerator',
    'parse_ics_content',
    'parse_todo_file',
    'generate_ics_file',
    'generate_todo_file',
    # vCard
    'VCardParser',
    'VCardGenerator',
    'parse_vcard_file',
    'generate_vcard_file',
    'generate_single_vcard',
    # Duplikate
    'DeduplicationResult',
    'DuplicateCheckContact',
    'DuplicateCheckEvent',
    'DuplicateCheckTask',
    'DuplicateDetectionConfig',
    'deduplicate_contacts',
    'deduplicate_events',
    'deduplicate_tasks',
    'find_duplicates_against_existing',
    'get_duplicate_ids',
    # Service
    'ImportService',
    'ImportResult',
    'FeedClient',
    # Fehler / Settings
    'InterchangeError',
    'FeedError',
    'CodecSettings',
    'get_settings',
]
