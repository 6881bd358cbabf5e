"""
vCard Parser fuer Adressbuch-Import.

Liest vCard 4.0 und tolerant auch 3.0/2.1 (TYPE=pref, nackte
Parameter wie 'TEL;WORK;VOICE:', Gruppen-Praefixe 'item1.EMAIL').
"""
import logging
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .enums import (
    AddressType,
    ContactKind,
    ContactRelationType,
    EmailType,
    Gender,
    IMService,
    KeyType,
    PhoneType,
    lookup,
)
from .models import (
    Address,
    CalendarUri,
    ContactRelation,
    Email,
    IMHandle,
    Key,
    Language,
    ParsedContact,
    ParseResult,
    Phone,
)
from .text_utils import (
    PropertyLine,
    parse_ics_date,
    parse_property_line,
    split_escaped,
    split_lines,
    unescape_text,
)

logger = logging.getLogger(__name__)

NO_CONTACTS_MESSAGE = "No valid vCard entries found in the file."
MISSING_FN_MESSAGE = "vCard missing required FN property"

# Bekannte Parameter, alles andere ohne Wert gilt als TYPE (vCard 2.1)
_KNOWN_PARAMS = {
    "TYPE", "PREF", "VALUE", "MEDIATYPE", "CHARSET", "ENCODING", "LANGUAGE",
    "ALTID", "PID", "LABEL", "GEO", "TZ", "CALSCALE", "SORT-AS", "INDEX",
    "LEVEL", "CC", "X-SERVICE-TYPE",
}
_IGNORED_TYPES = {"pref", "internet"}
_URI_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)
_TEL_PREFIX = re.compile(r"^tel:", re.IGNORECASE)
_GEO_PREFIX = re.compile(r"^geo:", re.IGNORECASE)


def _types(params: Dict[str, str]) -> List[str]:
    values = []
    if "TYPE" in params:
        values.extend(v.strip().lower() for v in params["TYPE"].split(",") if v.strip())
    for key, value in params.items():
        if value == "true" and key not in _KNOWN_PARAMS:
            values.append(key.lower())
    return values


def _primary_type(params: Dict[str, str], enum_cls: Optional[Type[Enum]] = None) -> Optional[str]:
    """
    Erster aussagekraeftiger TYPE Wert.

    Mit enum_cls gewinnt der erste bekannte Typ in kanonischer
    Schreibweise ('CELL' -> 'cell'), unbekannte x-Typen nur als Fallback.
    """
    candidates = [value for value in _types(params) if value not in _IGNORED_TYPES]
    if enum_cls is not None:
        for value in candidates:
            member = lookup(enum_cls, value)
            if member is not None:
                return member.value
    return candidates[0] if candidates else None


def _pref_rank(params: Dict[str, str]) -> Optional[int]:
    """PREF=1..100, niedrigster Wert gewinnt. Legacy TYPE=pref zaehlt als 1."""
    if "PREF" in params:
        try:
            return int(params["PREF"])
        except ValueError:
            return 1
    if "pref" in _types(params):
        return 1
    return None


def _is_uri(value: str) -> bool:
    return bool(_URI_PATTERN.match(value))


def _optional(value: str) -> Optional[str]:
    value = unescape_text(value).strip()
    return value or None


def _components(value: str, count: int) -> List[Optional[str]]:
    """Strukturierter Wert (N, ADR): an unmaskierten Semikolons trennen."""
    parts = split_escaped(value, ";")
    parts.extend([""] * (count - len(parts)))
    return [_optional(part) for part in parts[:count]]


def _parse_vcard_date(value: str) -> Optional[date]:
    """BDAY/ANNIVERSARY: YYYYMMDD, YYYY-MM-DD oder Date-Time. '--MMDD' ohne Jahr -> None."""
    value = value.strip()
    if not value or value.startswith("--"):
        return None
    parsed = parse_ics_date(value)
    if isinstance(parsed, datetime):
        return parsed.date()
    return parsed


def _parse_geo(value: str) -> Optional[Tuple[float, float]]:
    """GEO: 'geo:lat,lon' (4.0), 'lat;lon' (3.0) oder 'lat,lon'."""
    parts = re.split(r"[;,]", _GEO_PREFIX.sub("", value.strip()))
    if len(parts) < 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


class _ContactBuilder:
    """Sammelt Properties einer vCard bis END:VCARD."""

    def __init__(self):
        self.fields: Dict[str, Any] = {}
        self.ranked: Dict[str, List[Tuple[Optional[int], Callable, Dict[str, Any]]]] = {}

    def append(self, key: str, value: Any) -> None:
        self.fields.setdefault(key, []).append(value)

    def add_ranked(self, key: str, rank: Optional[int], factory: Callable, **kwargs) -> None:
        self.ranked.setdefault(key, []).append((rank, factory, kwargs))

    def build(self) -> ParsedContact:
        for key, entries in self.ranked.items():
            self.fields[key] = self._mark_primary(entries)
        return ParsedContact(**self.fields)

    @staticmethod
    def _mark_primary(entries) -> List[Any]:
        """Genau ein Eintrag mit niedrigstem PREF wird primaer, ohne PREF keiner."""
        ranks = [rank for rank, _, _ in entries if rank is not None]
        best = min(ranks) if ranks else None

        result = []
        marked = False
        for rank, factory, kwargs in entries:
            primary = not marked and best is not None and rank == best
            marked = marked or primary
            result.append(factory(is_primary=primary, **kwargs))
        return result


Handler = Callable[[PropertyLine, _ContactBuilder], None]


# --- Property Handler ---

def _text(field_name: str) -> Handler:
    def handler(prop: PropertyLine, builder: _ContactBuilder) -> None:
        value = _optional(prop.value)
        if value:
            builder.fields[field_name] = value
    return handler


def _raw(field_name: str) -> Handler:
    def handler(prop: PropertyLine, builder: _ContactBuilder) -> None:
        value = prop.value.strip()
        if value:
            builder.fields[field_name] = value
    return handler


def _uri(field_name: str) -> Handler:
    """PHOTO/LOGO/SOUND nur als URI, Inline-Binaerdaten werden verworfen."""
    def handler(prop: PropertyLine, builder: _ContactBuilder) -> None:
        value = prop.value.strip()
        if value and _is_uri(value):
            builder.fields[field_name] = value
    return handler


def _date_field(field_name: str) -> Handler:
    def handler(prop: PropertyLine, builder: _ContactBuilder) -> None:
        parsed = _parse_vcard_date(prop.value)
        if parsed is None:
            logger.debug(f"Ignoring {prop.name} value: {prop.value}")
            return
        builder.fields[field_name] = parsed
    return handler


def _calendar_uri(field_name: str) -> Handler:
    def handler(prop: PropertyLine, builder: _ContactBuilder) -> None:
        value = prop.value.strip()
        if value:
            builder.add_ranked(
                field_name, _pref_rank(prop.params), CalendarUri,
                uri=value, type=_primary_type(prop.params),
            )
    return handler


def _social(service: Optional[str]) -> Handler:
    """X-SOCIALPROFILE (Service aus TYPE), X-TWITTER, X-FACEBOOK."""
    def handler(prop: PropertyLine, builder: _ContactBuilder) -> None:
        handle = unescape_text(prop.value).strip()
        if handle:
            name = service or _primary_type(prop.params) or IMService.OTHER.value
            builder.append("im_handles", IMHandle(handle=handle, service=name))
    return handler


def _handle_name(prop: PropertyLine, builder: _ContactBuilder) -> None:
    family, given, additional, prefix, suffix = _components(prop.value, 5)
    builder.fields.update({
        "family_name": family,
        "given_name": given,
        "additional_name": additional,
        "name_prefix": prefix,
        "name_suffix": suffix,
    })


def _handle_nickname(prop: PropertyLine, builder: _ContactBuilder) -> None:
    value = _optional(split_escaped(prop.value, ",")[0])
    if value:
        builder.fields["nickname"] = value


def _handle_email(prop: PropertyLine, builder: _ContactBuilder) -> None:
    email = prop.value.strip().lower()
    if email:
        builder.add_ranked(
            "emails", _pref_rank(prop.params), Email,
            email=email, type=_primary_type(prop.params, EmailType),
        )


def _handle_phone(prop: PropertyLine, builder: _ContactBuilder) -> None:
    number = _TEL_PREFIX.sub("", unescape_text(prop.value).strip())
    if number:
        builder.add_ranked(
            "phones", _pref_rank(prop.params), Phone,
            number=number, type=_primary_type(prop.params, PhoneType),
        )


def _handle_address(prop: PropertyLine, builder: _ContactBuilder) -> None:
    po_box, extended, street, locality, region, postal_code, country = _components(prop.value, 7)
    if not any((po_box, extended, street, locality, region, postal_code, country)):
        return
    builder.add_ranked(
        "addresses", _pref_rank(prop.params), Address,
        type=_primary_type(prop.params, AddressType),
        po_box=po_box,
        extended_address=extended,
        street_address=street,
        locality=locality,
        region=region,
        postal_code=postal_code,
        country=country,
    )


def _handle_language(prop: PropertyLine, builder: _ContactBuilder) -> None:
    tag = prop.value.strip()
    if tag:
        builder.add_ranked("languages", _pref_rank(prop.params), Language, tag=tag)


def _handle_impp(prop: PropertyLine, builder: _ContactBuilder) -> None:
    value = prop.value.strip()
    if not value:
        return
    if ":" in value:
        scheme, handle = value.split(":", 1)
    else:
        scheme, handle = prop.params.get("X-SERVICE-TYPE", IMService.OTHER.value), value

    service = prop.params.get("X-SERVICE-TYPE") or scheme
    member = lookup(IMService, service)
    builder.append("im_handles", IMHandle(
        handle=handle.lstrip("/"),
        service=member.value if member else service.lower(),
    ))


def _handle_related(prop: PropertyLine, builder: _ContactBuilder) -> None:
    name = unescape_text(prop.value).strip()
    if name:
        builder.append("relations", ContactRelation(
            related_name=name,
            relation_type=(
                _primary_type(prop.params, ContactRelationType)
                or ContactRelationType.CONTACT.value
            ),
        ))


def _handle_key(prop: PropertyLine, builder: _ContactBuilder) -> None:
    value = prop.value.strip()
    if not value:
        return

    key_type = _primary_type(prop.params, KeyType)
    if not key_type and prop.params.get("MEDIATYPE"):
        # application/pgp-keys -> pgp
        subtype = prop.params["MEDIATYPE"].split("/")[-1].lower()
        subtype = subtype[:-len("-keys")] if subtype.endswith("-keys") else subtype
        member = lookup(KeyType, subtype)
        key_type = member.value if member else subtype

    if prop.params.get("VALUE", "").upper() == "URI" or _is_uri(value):
        builder.append("keys", Key(uri=value, type=key_type))
    else:
        builder.append("keys", Key(value=value, type=key_type))


def _handle_geo(prop: PropertyLine, builder: _ContactBuilder) -> None:
    coordinates = _parse_geo(prop.value)
    if coordinates is None:
        logger.debug(f"Ignoring GEO value: {prop.value}")
        return
    builder.fields["geo_latitude"], builder.fields["geo_longitude"] = coordinates


def _handle_gender(prop: PropertyLine, builder: _ContactBuilder) -> None:
    # GENDER:M;Freitext -> nur die Geschlechtskomponente
    builder.fields["gender"] = lookup(Gender, prop.value.split(";")[0])


def _handle_kind(prop: PropertyLine, builder: _ContactBuilder) -> None:
    builder.fields["kind"] = lookup(ContactKind, prop.value)


def _handle_org(prop: PropertyLine, builder: _ContactBuilder) -> None:
    value = _optional(split_escaped(prop.value, ";")[0])
    if value:
        builder.fields["organization"] = value


def _handle_member(prop: PropertyLine, builder: _ContactBuilder) -> None:
    value = prop.value.strip()
    if value:
        builder.append("members", value)


def _handle_categories(prop: PropertyLine, builder: _ContactBuilder) -> None:
    for part in split_escaped(prop.value, ","):
        category = unescape_text(part).strip()
        if category:
            builder.append("categories", category)


def _handle_revision(prop: PropertyLine, builder: _ContactBuilder) -> None:
    parsed = parse_ics_date(prop.value)
    if isinstance(parsed, datetime):
        builder.fields["revision"] = parsed
    elif isinstance(parsed, date):
        builder.fields["revision"] = datetime(parsed.year, parsed.month, parsed.day)


VCARD_HANDLERS: Dict[str, Handler] = {
    # Name
    "FN": _text("formatted_name"),
    "N": _handle_name,
    "NICKNAME": _handle_nickname,
    # Kommunikation
    "EMAIL": _handle_email,
    "TEL": _handle_phone,
    "ADR": _handle_address,
    "IMPP": _handle_impp,
    "X-SOCIALPROFILE": _social(None),
    "X-TWITTER": _social(IMService.TWITTER.value),
    "X-FACEBOOK": _social(IMService.FACEBOOK.value),
    "LANG": _handle_language,
    # Persoenliches
    "BDAY": _date_field("birthday"),
    "ANNIVERSARY": _date_field("anniversary"),
    "GENDER": _handle_gender,
    "PHOTO": _uri("photo_url"),
    # Organisation
    "ORG": _handle_org,
    "TITLE": _text("title"),
    "ROLE": _text("role"),
    "LOGO": _uri("logo_url"),
    "MEMBER": _handle_member,
    "KIND": _handle_kind,
    # Sonstiges
    "GEO": _handle_geo,
    "TZ": _raw("timezone"),
    "NOTE": _text("note"),
    "URL": _raw("url"),
    "SOUND": _uri("sound_url"),
    "SOURCE": _raw("source_url"),
    "CATEGORIES": _handle_categories,
    "RELATED": _handle_related,
    "KEY": _handle_key,
    "FBURL": _calendar_uri("fb_urls"),
    "CALADRURI": _calendar_uri("cal_adr_uris"),
    "CALURI": _calendar_uri("cal_uris"),
    # Metadaten
    "UID": _raw("uid"),
    "PRODID": _raw("prod_id"),
    "REV": _handle_revision,
}


class VCardParser:
    """Parser fuer vCard Dateien mit beliebig vielen Eintraegen."""

    def parse(self, content: str) -> ParseResult[ParsedContact]:
        """
        Parsed alle BEGIN:VCARD ... END:VCARD Bloecke.

        Args:
            content: vCard Dateiinhalt

        Returns:
            ParseResult mit ParsedContact Records und Fehlern
        """
        result = ParseResult()
        block: Optional[List[PropertyLine]] = None
        block_count = 0

        for line in split_lines(content or ""):
            if not line.strip():
                continue
            prop = parse_property_line(line.strip())
            if prop is None:
                continue

            if prop.name == "BEGIN" and prop.value.strip().upper() == "VCARD":
                if block is not None:
                    result.errors.append(f"Unterminated vCard entry #{block_count}")
                block_count += 1
                block = []
            elif prop.name == "END" and prop.value.strip().upper() == "VCARD":
                if block is None:
                    continue
                contact = self._parse_block(block, block_count, result.errors)
                if contact is not None:
                    result.records.append(contact)
                block = None
            elif block is not None:
                block.append(prop)

        if block is not None:
            result.errors.append(f"Unterminated vCard entry #{block_count}")

        if not result.records and not result.errors:
            result.errors.append(NO_CONTACTS_MESSAGE)

        logger.info(
            f"Parsed {len(result.records)} contacts ({len(result.errors)} errors)"
        )
        return result

    def _parse_block(
        self, properties: List[PropertyLine], number: int, errors: List[str]
    ) -> Optional[ParsedContact]:
        """Baut einen Kontakt aus den Properties eines Blocks."""
        builder = _ContactBuilder()

        for prop in properties:
            handler = VCARD_HANDLERS.get(prop.name)
            if handler is None:
                continue
            handler(prop, builder)

        if not builder.fields.get("formatted_name"):
            errors.append(f"{MISSING_FN_MESSAGE} (entry #{number})")
            logger.warning(f"Skipping vCard #{number} without FN")
            return None

        return builder.build()


def parse_vcard_file(content: str) -> ParseResult[ParsedContact]:
    """Parsed vCard Datei zu Kontakten."""
    return VCardParser().parse(content)
