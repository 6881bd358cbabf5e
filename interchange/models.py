"""
Datenstrukturen fuer geparste Events, Tasks und Kontakte.

Alle Records sind unveraenderlich. Parser sammeln Felder zuerst in einem
dict und bauen den Record erst am Block-Ende (END:VEVENT etc.).
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Generic, List, Optional, TypeVar, Union

from .enums import (
    AlarmAction,
    AttendeeRole,
    Classification,
    ContactKind,
    EventStatus,
    Gender,
    ParticipationStatus,
    RelationType,
    TaskStatus,
    Transparency,
    TriggerRelation,
)

DateValue = Union[datetime, date]
T = TypeVar("T")


# --- Gemeinsame Unterstrukturen (iCalendar) ---

@dataclass(frozen=True)
class Attendee:
    """ATTENDEE Property."""
    email: str
    name: Optional[str] = None
    role: Optional[AttendeeRole] = None
    status: Optional[ParticipationStatus] = None
    rsvp: bool = False


@dataclass(frozen=True)
class Alarm:
    """VALARM Komponente."""
    trigger: str
    action: AlarmAction = AlarmAction.DISPLAY
    summary: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[str] = None
    repeat: Optional[int] = None
    attach_uri: Optional[str] = None
    related: Optional[TriggerRelation] = None  # TRIGGER;RELATED=START/END


@dataclass(frozen=True)
class Attachment:
    """ATTACH Property: entweder URI oder Base64-Inhalt."""
    uri: Optional[str] = None
    value: Optional[str] = None
    fmttype: Optional[str] = None
    filename: Optional[str] = None


@dataclass(frozen=True)
class RequestStatus:
    code: str
    description: str
    ext_data: Optional[str] = None


# --- Events ---

@dataclass(frozen=True)
class ParsedEvent:
    """VEVENT Record."""

    # Identifikation
    title: str
    start_date: Optional[DateValue] = None
    end_date: Optional[DateValue] = None
    uid: Optional[str] = None
    all_day: bool = False

    # Timestamps
    dtstamp: Optional[datetime] = None
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None

    # Inhalt
    description: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    comment: Optional[str] = None
    color: Optional[str] = None

    # Status
    status: Optional[EventStatus] = None
    classification: Optional[Classification] = None
    transp: Optional[Transparency] = None
    priority: Optional[int] = None
    sequence: int = 0

    # Geo (beide oder keine)
    geo_latitude: Optional[float] = None
    geo_longitude: Optional[float] = None

    # Organizer
    organizer_name: Optional[str] = None
    organizer_email: Optional[str] = None

    # Wiederholung
    rrule: Optional[str] = None
    rdate: List[DateValue] = field(default_factory=list)
    exdate: List[DateValue] = field(default_factory=list)
    recurrence_id: Optional[str] = None
    related_to: Optional[str] = None

    # Listen
    categories: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)
    attendees: List[Attendee] = field(default_factory=list)
    alarms: List[Alarm] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)


# --- Tasks ---

@dataclass(frozen=True)
class ParsedTask:
    """VTODO Record."""

    # Identifikation
    summary: str
    uid: Optional[str] = None

    # Zeitpunkte (keine Reihenfolge erzwungen)
    dtstamp: Optional[datetime] = None
    dtstart: Optional[DateValue] = None
    due: Optional[DateValue] = None
    completed: Optional[datetime] = None
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    duration: Optional[str] = None

    # Status
    status: Optional[TaskStatus] = None
    percent_complete: Optional[int] = None
    priority: Optional[int] = None
    classification: Optional[Classification] = None
    sequence: int = 0

    # Inhalt
    description: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    comment: Optional[str] = None
    contact: Optional[str] = None
    color: Optional[str] = None

    # Geo (beide oder keine)
    geo_latitude: Optional[float] = None
    geo_longitude: Optional[float] = None

    # Organizer
    organizer_name: Optional[str] = None
    organizer_email: Optional[str] = None

    # Wiederholung / Beziehungen
    rrule: Optional[str] = None
    rdate: List[DateValue] = field(default_factory=list)
    exdate: List[DateValue] = field(default_factory=list)
    recurrence_id: Optional[str] = None
    related_to: Optional[str] = None
    relation_type: Optional[RelationType] = None

    # Listen
    categories: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)
    attendees: List[Attendee] = field(default_factory=list)
    alarms: List[Alarm] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    request_status: List[RequestStatus] = field(default_factory=list)


# --- Kontakte ---

@dataclass(frozen=True)
class Email:
    email: str
    type: Optional[str] = None
    is_primary: bool = False


@dataclass(frozen=True)
class Phone:
    number: str
    type: Optional[str] = None
    is_primary: bool = False


@dataclass(frozen=True)
class Address:
    """ADR: PO Box;Extended;Street;Locality;Region;PostalCode;Country."""
    type: Optional[str] = None
    po_box: Optional[str] = None
    extended_address: Optional[str] = None
    street_address: Optional[str] = None
    locality: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_primary: bool = False


@dataclass(frozen=True)
class IMHandle:
    handle: str
    service: str


@dataclass(frozen=True)
class ContactRelation:
    related_name: str
    relation_type: str = "contact"


@dataclass(frozen=True)
class Language:
    tag: str
    is_primary: bool = False


@dataclass(frozen=True)
class Key:
    """KEY Property: URI oder Inline-Daten."""
    uri: Optional[str] = None
    value: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class CalendarUri:
    """FBURL, CALADRURI oder CALURI."""
    uri: str
    type: Optional[str] = None
    is_primary: bool = False


@dataclass(frozen=True)
class ParsedContact:
    """vCard Record."""

    # Name
    formatted_name: str
    family_name: Optional[str] = None
    given_name: Optional[str] = None
    additional_name: Optional[str] = None
    name_prefix: Optional[str] = None
    name_suffix: Optional[str] = None
    nickname: Optional[str] = None

    # Identifikation
    uid: Optional[str] = None
    kind: Optional[ContactKind] = None
    prod_id: Optional[str] = None
    revision: Optional[datetime] = None

    # Persoenliches
    photo_url: Optional[str] = None
    birthday: Optional[date] = None
    anniversary: Optional[date] = None
    gender: Optional[Gender] = None

    # Organisation
    organization: Optional[str] = None
    title: Optional[str] = None
    role: Optional[str] = None
    logo_url: Optional[str] = None
    members: List[str] = field(default_factory=list)

    # Geo / Zeitzone
    geo_latitude: Optional[float] = None
    geo_longitude: Optional[float] = None
    timezone: Optional[str] = None

    # Sonstiges
    note: Optional[str] = None
    url: Optional[str] = None
    sound_url: Optional[str] = None
    source_url: Optional[str] = None

    # Listen
    emails: List[Email] = field(default_factory=list)
    phones: List[Phone] = field(default_factory=list)
    addresses: List[Address] = field(default_factory=list)
    im_handles: List[IMHandle] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    relations: List[ContactRelation] = field(default_factory=list)
    languages: List[Language] = field(default_factory=list)
    keys: List[Key] = field(default_factory=list)
    fb_urls: List[CalendarUri] = field(default_factory=list)
    cal_adr_uris: List[CalendarUri] = field(default_factory=list)
    cal_uris: List[CalendarUri] = field(default_factory=list)


# --- Ergebnis ---

@dataclass
class ParseResult(Generic[T]):
    """Ergebnis eines Parser-Laufs: Records plus gesammelte Fehler."""

    records: List[T] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    collection_name: Optional[str] = None  # X-WR-CALNAME

    @property
    def has_errors(self) -> bool:
        """Prueft ob Fehler aufgetreten sind."""
        return bool(self.errors)
