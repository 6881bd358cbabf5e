"""
Feed-Client fuer den Import von Kalendern und Adressbuechern per URL.

webcal:// wird zu https:// umgeschrieben, Antworten ueber der
konfigurierten Groesse werden abgelehnt.
"""
import logging
from typing import Optional
from urllib.parse import urlparse

import requests

from .errors import FeedError
from .settings import CodecSettings, get_settings

logger = logging.getLogger(__name__)

# Feed-Art -> Accept Header
ACCEPT_HEADERS = {
    "calendar": "text/calendar, application/calendar+xml, */*",
    "tasks": "text/calendar, application/calendar+xml, */*",
    "contacts": "text/vcard, text/x-vcard, text/directory, */*",
}

CHUNK_SIZE = 64 * 1024


def normalize_feed_url(url: str) -> str:
    """
    Normalisiert eine Feed-URL.

    Raises:
        FeedError: Bei leerer URL oder anderem Schema als http(s)
    """
    url = (url or "").strip()
    if url.lower().startswith("webcal://"):
        url = "https://" + url[len("webcal://"):]

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise FeedError(f"Unsupported feed URL: {url!r}", url=url)
    return url


class FeedClient:
    """Laedt ICS/vCard Inhalte ueber HTTP."""

    def __init__(self, settings: Optional[CodecSettings] = None):
        self.settings = settings or get_settings()
        self.session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        if self.session is None:
            self.session = requests.Session()
            self.session.headers.update({"User-Agent": self.settings.feed_user_agent})
        return self.session

    def fetch(self, url: str, kind: str = "calendar") -> str:
        """
        Laedt einen Feed als Text.

        Args:
            url: http(s):// oder webcal:// URL
            kind: calendar, tasks oder contacts (bestimmt Accept Header)

        Returns:
            Dekodierter Feed-Inhalt

        Raises:
            FeedError: Bei HTTP-Fehlern, Timeout oder zu grossem Inhalt
            ValueError: Bei unbekannter Feed-Art
        """
        if kind not in ACCEPT_HEADERS:
            raise ValueError(f"Unknown feed kind: {kind}")

        url = normalize_feed_url(url)
        logger.info(f"Fetching {kind} feed: {url}")

        try:
            response = self._get_session().get(
                url,
                headers={"Accept": ACCEPT_HEADERS[kind]},
                timeout=self.settings.feed_timeout,
                stream=True,
            )
        except requests.Timeout:
            logger.error(f"Feed request timed out: {url}")
            raise FeedError(
                "Request timed out while fetching feed. The server may be slow or unreachable.",
                url=url,
            )
        except requests.RequestException as e:
            logger.error(f"Feed connection error: {e}")
            raise FeedError(f"Error retrieving feed: {e}", url=url)

        try:
            self._check_status(response, url)
            content = self._read_limited(response, url)
        finally:
            response.close()

        encoding = "utf-8"
        if "charset=" in response.headers.get("Content-Type", "").lower() and response.encoding:
            encoding = response.encoding
        return content.decode(encoding, errors="replace")

    def _check_status(self, response, url: str) -> None:
        status = response.status_code
        if status < 400:
            return

        logger.error(f"Feed request failed: {status} for {url}")
        if status == 404:
            raise FeedError(
                f"Feed URL not found (404). The file at {url} is no longer available.",
                url=url, status_code=status,
            )
        raise FeedError(f"Unable to retrieve feed: {status}", url=url, status_code=status)

    def _read_limited(self, response, url: str) -> bytes:
        limit = self.settings.feed_max_bytes
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise FeedError(self._too_large_message(int(declared)), url=url)

        chunks = []
        size = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            size += len(chunk)
            if size > limit:
                raise FeedError(self._too_large_message(size), url=url)
            chunks.append(chunk)
        return b"".join(chunks)

    def _too_large_message(self, size: int) -> str:
        limit_mb = self.settings.feed_max_bytes / 1024 / 1024
        return (
            f"File too large. Maximum allowed size: {limit_mb:.0f}MB. "
            f"Current size: {size / 1024 / 1024:.2f}MB"
        )
