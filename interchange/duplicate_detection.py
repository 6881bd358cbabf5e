"""
Duplikat-Erkennung fuer Kontakte, Events und Tasks.

Jeder Record bekommt einen Identitaets-Schluessel. Records werden von
links nach rechts gegen eine Map bereits gesehener Schluessel geprueft,
das erste Vorkommen bleibt erhalten. Laufzeit O(n).
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from .models import ParsedContact, ParsedEvent, ParsedTask

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"\D")

DateValue = Union[datetime, date]

# ((feld, wert), ...), z.B. (("name", "max"), ("email", "max@example.com"))
IdentityKey = Tuple[Tuple[str, Union[str, int]], ...]


@dataclass
class DuplicateDetectionConfig:
    """
    Welche Felder die Identitaet eines Records bestimmen.

    use_uid ist entscheidend, sobald eine UID vorhanden ist. Alle anderen
    aktivierten Felder muessen gemeinsam uebereinstimmen.
    """
    use_uid: bool = True
    use_name: bool = True
    use_email: bool = True
    use_phone: bool = False
    use_date: bool = False
    date_tolerance_seconds: int = 60


@dataclass
class DuplicateCheckRecord:
    """Minimale Projektion eines Records fuer den Vergleich."""
    id: str
    name: str = ""
    uid: Optional[str] = None
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)

    def reference_date(self) -> Optional[DateValue]:
        return None


@dataclass
class DuplicateCheckContact(DuplicateCheckRecord):
    """Kontakt: Name ist formatted_name."""

    @classmethod
    def from_record(cls, record_id: str, contact: ParsedContact) -> "DuplicateCheckContact":
        return cls(
            id=record_id,
            name=contact.formatted_name,
            uid=contact.uid,
            emails=[email.email for email in contact.emails],
            phones=[phone.number for phone in contact.phones],
        )


@dataclass
class DuplicateCheckEvent(DuplicateCheckRecord):
    """Event: Name ist der Titel, Datum ist der Start."""
    start_date: Optional[DateValue] = None

    def reference_date(self) -> Optional[DateValue]:
        return self.start_date

    @classmethod
    def from_record(cls, record_id: str, event: ParsedEvent) -> "DuplicateCheckEvent":
        return cls(
            id=record_id,
            name=event.title,
            uid=event.uid,
            emails=[attendee.email for attendee in event.attendees],
            start_date=event.start_date,
        )


@dataclass
class DuplicateCheckTask(DuplicateCheckRecord):
    """Task: Name ist die Summary, Datum ist DUE (sonst DTSTART)."""
    due_date: Optional[DateValue] = None
    start_date: Optional[DateValue] = None

    def reference_date(self) -> Optional[DateValue]:
        return self.due_date or self.start_date

    @classmethod
    def from_record(cls, record_id: str, task: ParsedTask) -> "DuplicateCheckTask":
        return cls(
            id=record_id,
            name=task.summary,
            uid=task.uid,
            emails=[attendee.email for attendee in task.attendees],
            due_date=task.due,
            start_date=task.dtstart,
        )


R = TypeVar("R", bound=DuplicateCheckRecord)


@dataclass
class DeduplicationResult:
    """Aufteilung in eindeutige Records und Duplikate."""
    unique: List[DuplicateCheckRecord] = field(default_factory=list)
    duplicates: List[DuplicateCheckRecord] = field(default_factory=list)
    duplicate_keys: Dict[str, IdentityKey] = field(default_factory=dict)  # id -> Schluessel

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicates)


def normalize_name(name: Optional[str]) -> str:
    """Kleinschreibung, Whitespace zusammengefasst und getrimmt."""
    if not name:
        return ""
    return _WHITESPACE.sub(" ", name).strip().lower()


def normalize_phone(phone: Optional[str]) -> str:
    """Nur Ziffern."""
    if not phone:
        return ""
    return _NON_DIGITS.sub("", phone)


def _date_bucket(value: DateValue, tolerance: int) -> int:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        timestamp = value.timestamp()
    else:
        timestamp = datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp()
    return int(timestamp // tolerance)


def identity_key(record: DuplicateCheckRecord, config: DuplicateDetectionConfig) -> Optional[IdentityKey]:
    """
    Berechnet den Identitaets-Schluessel eines Records.

    Args:
        record: Projektion des Records
        config: Aktivierte Vergleichsfelder

    Returns:
        (("uid", <uid>),) wenn UID aktiv und vorhanden, sonst ein Tupel
        aus (Feld, Wert) Paaren. Als Tupel kann kein Feldwert mit einem
        anderen Feld verschmelzen. None wenn ein aktiviertes Feld keinen Wert hat oder
        kein Feld aktiv ist; solche Records sind immer eindeutig.
    """
    if config.use_uid and record.uid:
        return (("uid", record.uid),)

    parts = []

    if config.use_name:
        name = normalize_name(record.name)
        if not name:
            return None
        parts.append(("name", name))

    if config.use_email:
        # Nur die erste E-Mail zaehlt
        email = record.emails[0].strip().lower() if record.emails else ""
        if not email:
            return None
        parts.append(("email", email))

    if config.use_phone:
        phone = normalize_phone(record.phones[0]) if record.phones else ""
        if not phone:
            return None
        parts.append(("phone", phone))

    if config.use_date:
        reference = record.reference_date()
        if reference is None:
            return None
        tolerance = max(1, int(config.date_tolerance_seconds))
        parts.append(("date", _date_bucket(reference, tolerance)))

    if not parts:
        return None
    return tuple(parts)


def _classify(
    records: Iterable[R],
    config: DuplicateDetectionConfig,
    seen: Dict[IdentityKey, str],
) -> DeduplicationResult:
    result = DeduplicationResult()
    for record in records:
        key = identity_key(record, config)
        if key is not None and key in seen:
            result.duplicates.append(record)
            result.duplicate_keys[record.id] = key
            continue
        if key is not None:
            seen[key] = record.id
        result.unique.append(record)
    return result


def deduplicate(
    records: Sequence[R],
    config: Optional[DuplicateDetectionConfig] = None,
) -> DeduplicationResult:
    """
    Teilt Records in eindeutige und Duplikate.

    Das erste Vorkommen eines Schluessels ist eindeutig, alle spaeteren
    Treffer sind Duplikate. Reihenfolge bleibt in beiden Listen erhalten.
    """
    config = config or DuplicateDetectionConfig()
    result = _classify(records, config, {})
    logger.info(
        f"Deduplicated {len(records)} records: "
        f"{len(result.unique)} unique, {len(result.duplicates)} duplicates"
    )
    return result


def deduplicate_contacts(
    contacts: Sequence[DuplicateCheckContact],
    config: Optional[DuplicateDetectionConfig] = None,
) -> DeduplicationResult:
    return deduplicate(contacts, config)


def deduplicate_events(
    events: Sequence[DuplicateCheckEvent],
    config: Optional[DuplicateDetectionConfig] = None,
) -> DeduplicationResult:
    """
    Dedupliziert Events.

    Ohne config gilt die Standard-Konfiguration: UID, sonst Titel plus
    E-Mail des ersten Teilnehmers. Der Start zaehlt nur mit use_date=True.
    Events ohne Teilnehmer haben bei use_email=True keinen Schluessel
    und sind immer eindeutig.
    """
    return deduplicate(events, config)


def deduplicate_tasks(
    tasks: Sequence[DuplicateCheckTask],
    config: Optional[DuplicateDetectionConfig] = None,
) -> DeduplicationResult:
    """
    Dedupliziert Tasks.

    Wie deduplicate_events: UID, sonst Summary plus erste Teilnehmer-E-Mail.
    DUE (sonst DTSTART) zaehlt nur mit use_date=True.
    """
    return deduplicate(tasks, config)


def find_duplicates_against_existing(
    new_records: Sequence[R],
    existing_records: Sequence[DuplicateCheckRecord],
    config: Optional[DuplicateDetectionConfig] = None,
) -> DeduplicationResult:
    """
    Prueft neue Records gegen einen bestehenden Bestand.

    Die Schluessel des Bestands werden vorab eingetragen, Duplikate
    innerhalb des Bestands spielen keine Rolle. Danach laeuft derselbe
    Durchgang ueber die neuen Records, ein spaeterer neuer Record, der
    einem frueheren neuen gleicht, ist also ebenfalls ein Duplikat.

    Args:
        new_records: Zu importierende Records
        existing_records: Bereits vorhandene Records
        config: Aktivierte Vergleichsfelder

    Returns:
        DeduplicationResult ueber die neuen Records
    """
    config = config or DuplicateDetectionConfig()
    seen: Dict[IdentityKey, str] = {}
    for record in existing_records:
        key = identity_key(record, config)
        if key is not None:
            seen.setdefault(key, record.id)

    result = _classify(new_records, config, seen)
    logger.info(
        f"Checked {len(new_records)} records against {len(existing_records)} existing: "
        f"{len(result.duplicates)} duplicates"
    )
    return result


def get_duplicate_ids(
    records: Sequence[DuplicateCheckRecord],
    config: Optional[DuplicateDetectionConfig] = None,
) -> List[str]:
    """IDs aller Duplikate in Eingabereihenfolge."""
    return [record.id for record in deduplicate(records, config).duplicates]
