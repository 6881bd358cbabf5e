"""
RFC 5545 / RFC 6350 Wertebereiche.

Alle Enums sind str-basiert, damit Vergleiche mit den RFC-Strings
direkt funktionieren (TaskStatus.COMPLETED == "COMPLETED").
"""
import re
from enum import Enum
from typing import Dict, Optional, Type, TypeVar, Any

E = TypeVar("E", bound=Enum)


# --- iCalendar ---

class EventStatus(str, Enum):
    """STATUS fuer VEVENT."""
    TENTATIVE = "TENTATIVE"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class TaskStatus(str, Enum):
    """STATUS fuer VTODO."""
    NEEDS_ACTION = "NEEDS-ACTION"
    IN_PROCESS = "IN-PROCESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Classification(str, Enum):
    """CLASS Property."""
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    CONFIDENTIAL = "CONFIDENTIAL"


class Transparency(str, Enum):
    OPAQUE = "OPAQUE"
    TRANSPARENT = "TRANSPARENT"


class AttendeeRole(str, Enum):
    """ROLE Parameter fuer ATTENDEE."""
    CHAIR = "CHAIR"
    REQ_PARTICIPANT = "REQ-PARTICIPANT"
    OPT_PARTICIPANT = "OPT-PARTICIPANT"
    NON_PARTICIPANT = "NON-PARTICIPANT"


class ParticipationStatus(str, Enum):
    """PARTSTAT Parameter fuer ATTENDEE."""
    NEEDS_ACTION = "NEEDS-ACTION"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    TENTATIVE = "TENTATIVE"
    DELEGATED = "DELEGATED"
    COMPLETED = "COMPLETED"
    IN_PROCESS = "IN-PROCESS"


class AlarmAction(str, Enum):
    DISPLAY = "DISPLAY"
    EMAIL = "EMAIL"
    AUDIO = "AUDIO"


class TriggerRelation(str, Enum):
    """RELATED Parameter von TRIGGER, Default ist START."""
    START = "START"
    END = "END"


class RelationType(str, Enum):
    """RELTYPE Parameter fuer RELATED-TO."""
    PARENT = "PARENT"
    CHILD = "CHILD"
    SIBLING = "SIBLING"


# --- vCard ---

class ContactKind(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    ORG = "org"
    LOCATION = "location"


class Gender(str, Enum):
    """GENDER Geschlechtskomponente (RFC 6350 6.2.7)."""
    MALE = "M"
    FEMALE = "F"
    OTHER = "O"
    NONE = "N"
    UNKNOWN = "U"


class PhoneType(str, Enum):
    CELL = "cell"
    HOME = "home"
    WORK = "work"
    FAX = "fax"
    PAGER = "pager"
    VOICE = "voice"
    TEXT = "text"
    VIDEO = "video"
    TEXTPHONE = "textphone"
    OTHER = "other"


class EmailType(str, Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"


class AddressType(str, Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"


class ContactRelationType(str, Enum):
    """TYPE Parameter fuer RELATED."""
    CONTACT = "contact"
    ACQUAINTANCE = "acquaintance"
    FRIEND = "friend"
    MET = "met"
    CO_WORKER = "co-worker"
    COLLEAGUE = "colleague"
    CO_RESIDENT = "co-resident"
    NEIGHBOR = "neighbor"
    CHILD = "child"
    PARENT = "parent"
    SIBLING = "sibling"
    SPOUSE = "spouse"
    KIN = "kin"
    MUSE = "muse"
    CRUSH = "crush"
    DATE = "date"
    SWEETHEART = "sweetheart"
    ME = "me"
    AGENT = "agent"
    EMERGENCY = "emergency"


class IMService(str, Enum):
    """Bekannte IMPP Schemes und Social-Profile."""
    XMPP = "xmpp"
    SIP = "sip"
    SKYPE = "skype"
    AIM = "aim"
    ICQ = "icq"
    IRC = "irc"
    MSN = "msn"
    YAHOO = "ymsgr"
    MATRIX = "matrix"
    TELEGRAM = "telegram"
    SIGNAL = "signal"
    WHATSAPP = "whatsapp"
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"
    OTHER = "other"


class KeyType(str, Enum):
    PGP = "pgp"
    X509 = "x509"
    SSH = "ssh"
    OTHER = "other"


# --- Numerische Wertebereiche ---

PRIORITY_VALUES: Dict[str, int] = {
    "UNDEFINED": 0,
    "HIGH": 1,
    "MEDIUM": 5,
    "LOW": 9,
}

# REQUEST-STATUS Klassen (RFC 5546 3.6)
REQUEST_STATUS_CODES: Dict[str, str] = {
    "1": "Preliminary success",
    "2": "Successful",
    "3": "Client error",
    "4": "Scheduling error",
    "5": "Server error",
}

REQUEST_STATUS_PATTERN = re.compile(r"^(\d)\.\d+$")


def _normalize(value: str) -> str:
    return value.strip().upper().replace("_", "-")


def lookup(enum_cls: Type[E], value: Any) -> Optional[E]:
    """
    Sucht Enum-Member tolerant nach Wert oder Namen.

    Gross-/Kleinschreibung wird ignoriert, '_' und '-' sind gleichwertig
    (Legacy NEEDS_ACTION == RFC NEEDS-ACTION).

    Args:
        enum_cls: Ziel-Enum
        value: String, Member oder None

    Returns:
        Enum-Member oder None bei unbekanntem Wert
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    wanted = _normalize(value)
    for member in enum_cls:
        if _normalize(member.value) == wanted or _normalize(member.name) == wanted:
            return member
    return None


def is_valid_task_status(value: Any) -> bool:
    return lookup(TaskStatus, value) is not None


def is_valid_event_status(value: Any) -> bool:
    return lookup(EventStatus, value) is not None


def is_valid_classification(value: Any) -> bool:
    return lookup(Classification, value) is not None


def is_valid_attendee_role(value: Any) -> bool:
    return lookup(AttendeeRole, value) is not None


def is_valid_attendee_status(value: Any) -> bool:
    return lookup(ParticipationStatus, value) is not None


def is_valid_alarm_action(value: Any) -> bool:
    return lookup(AlarmAction, value) is not None


def is_valid_relation_type(value: Any) -> bool:
    return lookup(RelationType, value) is not None


def is_valid_priority(value: Any) -> bool:
    """PRIORITY muss Integer 0-9 sein."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 9


def is_valid_percent_complete(value: Any) -> bool:
    """PERCENT-COMPLETE muss Integer 0-100 sein."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 100


def is_valid_request_status_code(code: Any) -> bool:
    """Prueft REQUEST-STATUS Code Format (z.B. '2.0', '3.12') und Klasse 1-5."""
    if not isinstance(code, str):
        return False
    match = REQUEST_STATUS_PATTERN.match(code)
    return bool(match) and match.group(1) in REQUEST_STATUS_CODES


def request_status_class(code: Any) -> Optional[str]:
    """Beschreibung der Statusklasse ('2.0' -> 'Successful'), None wenn ungueltig."""
    if not is_valid_request_status_code(code):
        return None
    return REQUEST_STATUS_CODES[code.split(".")[0]]
