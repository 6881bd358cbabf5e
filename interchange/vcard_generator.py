"""
vCard 4.0 Generator (RFC 6350).

Strukturierte Werte (N, ADR) werden komponentenweise escaped und mit
unmaskiertem Semikolon verbunden.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .enums import lookup, ContactKind, Gender
from .models import (
    Address,
    CalendarUri,
    Email,
    IMHandle,
    Key,
    ParsedContact,
    Phone,
)
from .settings import CodecSettings, get_settings
from .text_utils import CRLF, escape_text, fold_line, format_date_only, generate_urn_uid, quote_param

logger = logging.getLogger(__name__)

# Nummern, die ohne Aenderung eine tel: URI ergeben
_TEL_URI_NUMBER = re.compile(r"^\+?[0-9()*#.-]+$")


def _text(value: str) -> str:
    """Escaped TEXT, CRLF und CR vorher zu LF normalisiert."""
    return escape_text(value.replace("\r\n", "\n").replace("\r", "\n"))


def _property(name: str, value: str, params: Optional[Dict[str, str]] = None) -> str:
    """Baut NAME;KEY=VALUE:value, leere Parameter werden ausgelassen."""
    line = name
    for key, param_value in (params or {}).items():
        if param_value:
            line += f";{key}={param_value}"
    return f"{line}:{value}"


def _ranked_params(type_value: Optional[str], is_primary: bool) -> Dict[str, str]:
    params = {}
    if type_value:
        params["TYPE"] = quote_param(type_value.upper())
    if is_primary:
        params["PREF"] = "1"
    return params


def _email_line(email: Email) -> str:
    return _property("EMAIL", email.email, _ranked_params(email.type, email.is_primary))


def _phone_line(phone: Phone) -> str:
    """
    TEL als tel: URI mit VALUE=uri, wenn die Nummer unveraendert eine
    gueltige URI ergibt. Sonst (Leerzeichen, Durchwahl-Text) als TEXT,
    damit die Nummer exakt erhalten bleibt.
    """
    number = phone.number
    params = {}
    if number.lower().startswith("tel:"):
        params["VALUE"] = "uri"
        value = number
    elif _TEL_URI_NUMBER.match(number):
        params["VALUE"] = "uri"
        value = f"tel:{number}"
    else:
        value = _text(number)
    params.update(_ranked_params(phone.type, phone.is_primary))
    return _property("TEL", value, params)


def _address_line(address: Address) -> str:
    parts = [
        address.po_box,
        address.extended_address,
        address.street_address,
        address.locality,
        address.region,
        address.postal_code,
        address.country,
    ]
    value = ";".join(_text(part or "") for part in parts)
    return _property("ADR", value, _ranked_params(address.type, address.is_primary))


def _impp_line(im: IMHandle) -> str:
    value = im.handle if ":" in im.handle else f"{im.service}:{im.handle}"
    return _property("IMPP", value)


def _key_line(key: Key) -> Optional[str]:
    params = {}
    if key.uri:
        params["VALUE"] = "URI"
    if key.type:
        params["MEDIATYPE"] = f"application/{key.type}-keys"
    value = key.uri or key.value
    if not value:
        return None
    return _property("KEY", value, params)


def _calendar_uri_line(name: str, calendar_uri: CalendarUri) -> str:
    return _property(
        name, calendar_uri.uri,
        _ranked_params(calendar_uri.type, calendar_uri.is_primary),
    )


class VCardGenerator:
    """Serialisiert ParsedContact Records zu vCard 4.0."""

    def __init__(self, settings: Optional[CodecSettings] = None):
        self.settings = settings or get_settings()

    def generate(self, contacts: Sequence[ParsedContact], prod_id: Optional[str] = None) -> str:
        """
        Serialisiert alle Kontakte in eine Datei.

        Args:
            contacts: Kontakte in Ausgabereihenfolge
            prod_id: Optional abweichende PRODID

        Returns:
            vCard Text mit CRLF Zeilenenden, leerer String ohne Kontakte
        """
        if not contacts:
            return ""

        revision = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        prod_id = prod_id or self.settings.contacts_prod_id

        cards = [self._card(contact, prod_id, revision) for contact in contacts]
        return CRLF.join(cards) + CRLF

    def generate_single(self, contact: ParsedContact, prod_id: Optional[str] = None) -> str:
        return self.generate([contact], prod_id)

    def _card(self, contact: ParsedContact, prod_id: str, revision: str) -> str:
        lines = [
            "BEGIN:VCARD",
            "VERSION:4.0",
            f"PRODID:{prod_id}",
            f"UID:{contact.uid or generate_urn_uid()}",
            f"FN:{_text(contact.formatted_name)}",
        ]
        lines.extend(self._identity_lines(contact))
        lines.extend(self._organization_lines(contact))
        lines.extend(self._communication_lines(contact))
        lines.extend(self._extra_lines(contact))
        lines.append(f"REV:{revision}")
        lines.append("END:VCARD")
        return CRLF.join(fold_line(line) for line in lines)

    def _identity_lines(self, contact: ParsedContact) -> List[str]:
        lines = []

        name_parts = [
            contact.family_name,
            contact.given_name,
            contact.additional_name,
            contact.name_prefix,
            contact.name_suffix,
        ]
        if any(name_parts):
            lines.append("N:" + ";".join(_text(part or "") for part in name_parts))

        if contact.nickname:
            lines.append(f"NICKNAME:{_text(contact.nickname)}")
        if contact.photo_url:
            lines.append(_property("PHOTO", contact.photo_url, {"VALUE": "URI"}))
        if contact.birthday:
            lines.append(f"BDAY:{format_date_only(contact.birthday)}")
        if contact.anniversary:
            lines.append(f"ANNIVERSARY:{format_date_only(contact.anniversary)}")

        gender = lookup(Gender, contact.gender)
        if gender:
            lines.append(f"GENDER:{gender.value}")
        kind = lookup(ContactKind, contact.kind)
        if kind:
            lines.append(f"KIND:{kind.value}")
        return lines

    def _organization_lines(self, contact: ParsedContact) -> List[str]:
        lines = []
        if contact.organization:
            lines.append(f"ORG:{_text(contact.organization)}")
        if contact.title:
            lines.append(f"TITLE:{_text(contact.title)}")
        if contact.role:
            lines.append(f"ROLE:{_text(contact.role)}")
        if contact.logo_url:
            lines.append(_property("LOGO", contact.logo_url, {"VALUE": "URI"}))
        for member in contact.members:
            lines.append(f"MEMBER:{member}")
        return lines

    def _communication_lines(self, contact: ParsedContact) -> List[str]:
        lines = [_email_line(email) for email in contact.emails]
        lines.extend(_phone_line(phone) for phone in contact.phones)
        lines.extend(_address_line(address) for address in contact.addresses)
        lines.extend(_impp_line(im) for im in contact.im_handles)
        return lines

    def _extra_lines(self, contact: ParsedContact) -> List[str]:
        lines = []

        # Geo / Zeitzone
        if contact.geo_latitude is not None and contact.geo_longitude is not None:
            lines.append(f"GEO:geo:{contact.geo_latitude},{contact.geo_longitude}")
        if contact.timezone:
            lines.append(f"TZ:{contact.timezone}")
        if contact.url:
            lines.append(f"URL:{contact.url}")

        # Notizen und Beziehungen
        if contact.note:
            lines.append(f"NOTE:{_text(contact.note)}")
        if contact.categories:
            lines.append("CATEGORIES:" + ",".join(_text(c) for c in contact.categories))
        for relation in contact.relations:
            lines.append(_property(
                "RELATED", _text(relation.related_name),
                {"TYPE": quote_param(relation.relation_type)},
            ))
        for language in contact.languages:
            lines.append(_property("LANG", language.tag, {"PREF": "1" if language.is_primary else ""}))
        for key in contact.keys:
            line = _key_line(key)
            if line:
                lines.append(line)

        if contact.sound_url:
            lines.append(_property("SOUND", contact.sound_url, {"VALUE": "URI"}))
        if contact.source_url:
            lines.append(f"SOURCE:{contact.source_url}")

        # Kalender-URIs
        for fb_url in contact.fb_urls:
            lines.append(_calendar_uri_line("FBURL", fb_url))
        for cal_adr_uri in contact.cal_adr_uris:
            lines.append(_calendar_uri_line("CALADRURI", cal_adr_uri))
        for cal_uri in contact.cal_uris:
            lines.append(_calendar_uri_line("CALURI", cal_uri))
        return lines


def generate_vcard_file(
    contacts: Sequence[ParsedContact],
    address_book_name: Optional[str] = None,
    prod_id: Optional[str] = None,
) -> str:
    """
    Erzeugt vCard Datei aus Kontakten.

    vCard kennt keinen Sammlungsnamen, address_book_name dient nur
    dem Logging.
    """
    content = VCardGenerator().generate(contacts, prod_id)
    logger.info(f"Generated address book '{address_book_name}' with {len(contacts)} contacts")
    return content


def generate_single_vcard(contact: ParsedContact, prod_id: Optional[str] = None) -> str:
    """Erzeugt eine einzelne vCard."""
    return VCardGenerator().generate_single(contact, prod_id)
