"""
Import-Service fuer Kalender, Aufgabenlisten und Adressbuecher.

Orchestriert Parser, Duplikat-Erkennung und optional den Feed-Abruf.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .duplicate_detection import (
    DuplicateCheckContact,
    DuplicateCheckEvent,
    DuplicateCheckRecord,
    DuplicateCheckTask,
    DuplicateDetectionConfig,
    deduplicate,
    find_duplicates_against_existing,
)
from .feed_client import FeedClient
from .icalendar_parser import ICalendarParser
from .models import ParseResult
from .settings import CodecSettings, get_settings
from .vcard_parser import VCardParser

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Ergebnis eines Imports."""

    records: List[Any] = field(default_factory=list)
    duplicates: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    collection_name: Optional[str] = None

    @property
    def stats(self) -> Dict[str, int]:
        """Zaehler fuer Statusmeldungen."""
        return {
            "parsed": len(self.records) + len(self.duplicates),
            "imported": len(self.records),
            "duplicates": len(self.duplicates),
            "errors": len(self.errors),
        }


class ImportService:
    """
    Haupt-Import-Service.

    Parsed Dateiinhalte, filtert Duplikate gegen den Bestand und liefert
    die zu uebernehmenden Records.
    """

    # Import-Art -> Projektion fuer die Duplikat-Erkennung
    KINDS = {
        "calendar": DuplicateCheckEvent,
        "tasks": DuplicateCheckTask,
        "contacts": DuplicateCheckContact,
    }

    def __init__(
        self,
        settings: Optional[CodecSettings] = None,
        feed_client: Optional[FeedClient] = None,
    ):
        """
        Initialisiert Import-Service.

        Args:
            settings: Optional Settings, sonst aus Umgebung
            feed_client: Optional Feed-Client fuer import_from_url
        """
        self.settings = settings or get_settings()
        self.ics_parser = ICalendarParser(self.settings)
        self.vcard_parser = VCardParser()
        self.feed_client = feed_client

    def _check_kind(self, kind: str) -> None:
        if kind not in self.KINDS:
            raise ValueError(f"Unknown import kind: {kind}")

    def _parse(self, kind: str, content: str) -> ParseResult:
        if kind == "calendar":
            return self.ics_parser.parse_events(content)
        if kind == "tasks":
            return self.ics_parser.parse_tasks(content)
        return self.vcard_parser.parse(content)

    def _project(self, kind: str, records: Iterable[Any], prefix: str) -> List[DuplicateCheckRecord]:
        """
        Projiziert Records fuer die Duplikat-Erkennung.

        Jede Projektion bekommt die ID '<prefix>-<index>', auch bereits
        projizierte Records. IDs des Aufrufers muessen nicht eindeutig sein.
        """
        check_class = self.KINDS[kind]
        projected = []
        for index, record in enumerate(records):
            record_id = f"{prefix}-{index}"
            if isinstance(record, DuplicateCheckRecord):
                projected.append(replace(record, id=record_id))
            else:
                projected.append(check_class.from_record(record_id, record))
        return projected

    def import_content(
        self,
        kind: str,
        content: str,
        existing: Sequence[Any] = (),
        config: Optional[DuplicateDetectionConfig] = None,
    ) -> ImportResult:
        """
        Parsed Inhalt und filtert Duplikate gegen den Bestand.

        Args:
            kind: calendar, tasks oder contacts
            content: ICS oder vCard Text
            existing: Bestand als Parsed*-Records oder DuplicateCheck-Projektionen
            config: Vergleichsfelder fuer die Duplikat-Erkennung

        Returns:
            ImportResult mit uebernommenen und uebersprungenen Records

        Raises:
            ValueError: Bei unbekannter Import-Art
        """
        self._check_kind(kind)
        parsed = self._parse(kind, content)

        candidates = self._project(kind, parsed.records, "new")
        by_id = {candidate.id: record for candidate, record in zip(candidates, parsed.records)}
        existing_checks = self._project(kind, existing, "existing")

        dedup = find_duplicates_against_existing(candidates, existing_checks, config)

        result = ImportResult(
            records=[by_id[candidate.id] for candidate in dedup.unique],
            duplicates=[by_id[candidate.id] for candidate in dedup.duplicates],
            errors=list(parsed.errors),
            collection_name=parsed.collection_name,
        )
        logger.info(f"Import {kind}: {result.stats}")
        return result

    def import_events(self, content: str, existing: Sequence[Any] = (),
                      config: Optional[DuplicateDetectionConfig] = None) -> ImportResult:
        return self.import_content("calendar", content, existing, config)

    def import_tasks(self, content: str, existing: Sequence[Any] = (),
                     config: Optional[DuplicateDetectionConfig] = None) -> ImportResult:
        return self.import_content("tasks", content, existing, config)

    def import_contacts(self, content: str, existing: Sequence[Any] = (),
                        config: Optional[DuplicateDetectionConfig] = None) -> ImportResult:
        return self.import_content("contacts", content, existing, config)

    def import_from_url(
        self,
        url: str,
        kind: str,
        existing: Sequence[Any] = (),
        config: Optional[DuplicateDetectionConfig] = None,
    ) -> ImportResult:
        """
        Laedt einen Feed und importiert ihn.

        Raises:
            FeedError: Abruf fehlgeschlagen
            ValueError: Bei unbekannter Import-Art
        """
        self._check_kind(kind)
        if self.feed_client is None:
            self.feed_client = FeedClient(self.settings)
        content = self.feed_client.fetch(url, kind)
        return self.import_content(kind, content, existing, config)

    def merge(
        self,
        kind: str,
        collections: Sequence[Sequence[Any]],
        config: Optional[DuplicateDetectionConfig] = None,
    ) -> List[Any]:
        """
        Fuehrt mehrere Sammlungen zusammen und entfernt Duplikate.

        Die Reihenfolge der Sammlungen bestimmt, welches Vorkommen bleibt.
        """
        self._check_kind(kind)
        records = [record for collection in collections for record in collection]
        candidates = self._project(kind, records, "merge")
        by_id = {candidate.id: record for candidate, record in zip(candidates, records)}

        dedup = deduplicate(candidates, config)
        logger.info(
            f"Merged {len(collections)} {kind} collections: "
            f"{len(dedup.unique)} records, {len(dedup.duplicates)} duplicates dropped"
        )
        return [by_id[candidate.id] for candidate in dedup.unique]

    def merge_events(self, collections, config=None) -> List[Any]:
        return self.merge("calendar", collections, config)

    def merge_tasks(self, collections, config=None) -> List[Any]:
        return self.merge("tasks", collections, config)

    def merge_contacts(self, collections, config=None) -> List[Any]:
        return self.merge("contacts", collections, config)
