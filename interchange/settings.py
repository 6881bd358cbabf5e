"""
Settings - Konfiguration fuer Codecs und Feed-Import.

Werte-Suche (in dieser Reihenfolge):
1. Direkt uebergeben (CodecSettings(...))
2. Aus Umgebungsvariable (get_settings)
3. Default der Dataclass
"""

import os
from dataclasses import dataclass
from typing import Optional


# Feld -> Umgebungsvariable
ENV_KEYS = {
    "uid_domain": "INTERCHANGE_UID_DOMAIN",
    "feed_timeout": "INTERCHANGE_FEED_TIMEOUT",
    "feed_max_bytes": "INTERCHANGE_FEED_MAX_BYTES",
    "feed_user_agent": "INTERCHANGE_USER_AGENT",
}


@dataclass(frozen=True)
class CodecSettings:
    """Einstellungen fuer Parser, Generatoren und Feed-Client."""

    # PRODID je Collection-Typ
    calendar_prod_id: str = "-//PIM Interchange//Calendar//EN"
    tasks_prod_id: str = "-//PIM Interchange//Tasks//EN"
    contacts_prod_id: str = "-//PIM Interchange//Contacts//EN"

    # UID Erzeugung: <uuid>@<uid_domain>
    uid_domain: str = "pim-interchange"

    # Fallback-Titel
    default_event_title: str = "Untitled Event"
    default_task_title: str = "Untitled Task"

    # Feed-Import
    feed_timeout: int = 60
    feed_max_bytes: int = 5 * 1024 * 1024
    feed_user_agent: str = "PIM-Interchange/1.0"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")


def get_settings(uid_domain: Optional[str] = None) -> CodecSettings:
    """
    Baut CodecSettings aus Umgebungsvariablen.

    Args:
        uid_domain: Optional direkt uebergebene UID-Domain

    Returns:
        CodecSettings mit ueberschriebenen Werten

    Raises:
        ValueError: Numerische Umgebungsvariable ist keine Zahl
    """
    defaults = CodecSettings()
    return CodecSettings(
        uid_domain=uid_domain or os.getenv(ENV_KEYS["uid_domain"]) or defaults.uid_domain,
        feed_timeout=_int_env(ENV_KEYS["feed_timeout"], defaults.feed_timeout),
        feed_max_bytes=_int_env(ENV_KEYS["feed_max_bytes"], defaults.feed_max_bytes),
        feed_user_agent=os.getenv(ENV_KEYS["feed_user_agent"]) or defaults.feed_user_agent,
    )
