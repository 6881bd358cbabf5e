"""
Exceptions fuer das Interchange-Paket.

Die Codecs selbst werfen keine Exceptions fuer fehlerhafte Eingaben,
sondern sammeln Meldungen in ParseResult.errors.
"""
from typing import Optional


class InterchangeError(Exception):
    """Basisklasse fuer alle Fehler des Pakets."""


class FeedError(InterchangeError):
    """Abruf eines entfernten Kalender- oder Kontakt-Feeds fehlgeschlagen."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
