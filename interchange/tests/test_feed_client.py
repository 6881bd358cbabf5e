"""
Tests fuer Feed-Client (HTTP gemockt).
"""
import pytest
import requests
from unittest.mock import Mock, patch
from interchange.errors import FeedError
from interchange.feed_client import ACCEPT_HEADERS, FeedClient, normalize_feed_url
from interchange.settings import CodecSettings


def make_response(status_code=200, body=b"", headers=None, encoding=None):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.encoding = encoding
    response.iter_content.return_value = [body[i:i + 4] for i in range(0, len(body), 4)]
    return response


class TestNormalizeUrl:
    def test_webcal_rewritten(self):
        assert normalize_feed_url("webcal://example.com/cal.ics") == "https://example.com/cal.ics"
        assert normalize_feed_url("WEBCAL://example.com/cal.ics") == "https://example.com/cal.ics"

    def test_http_kept(self):
        assert normalize_feed_url(" http://example.com/a.vcf ") == "http://example.com/a.vcf"

    @pytest.mark.parametrize("url", ["ftp://example.com/cal.ics", "", "example.com/cal.ics"])
    def test_unsupported(self, url):
        with pytest.raises(FeedError):
            normalize_feed_url(url)


class TestFetch:
    """Tests fuer FeedClient.fetch."""

    def test_fetch_calendar(self):
        client = FeedClient(CodecSettings())

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.return_value = make_response(body=b"BEGIN:VCALENDAR")

            content = client.fetch("webcal://example.com/cal.ics")

            assert content == "BEGIN:VCALENDAR"
            mock_session.return_value.get.assert_called_once_with(
                "https://example.com/cal.ics",
                headers={"Accept": ACCEPT_HEADERS["calendar"]},
                timeout=60,
                stream=True,
            )
            mock_session.return_value.headers.update.assert_called_once_with(
                {"User-Agent": "PIM-Interchange/1.0"}
            )

    def test_contacts_accept_header(self):
        client = FeedClient(CodecSettings())

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.return_value = make_response(body=b"BEGIN:VCARD")
            client.fetch("https://example.com/a.vcf", kind="contacts")

            _, kwargs = mock_session.return_value.get.call_args
            assert kwargs["headers"]["Accept"].startswith("text/vcard")

    def test_utf8_default(self):
        client = FeedClient(CodecSettings())
        body = "SUMMARY:Café".encode("utf-8")

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.return_value = make_response(body=body, encoding="ISO-8859-1")
            assert client.fetch("https://example.com/cal.ics") == "SUMMARY:Café"

    def test_not_found(self):
        client = FeedClient(CodecSettings())

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.return_value = make_response(status_code=404)

            with pytest.raises(FeedError) as exc_info:
                client.fetch("https://example.com/gone.ics")

            assert exc_info.value.status_code == 404
            assert "404" in str(exc_info.value)

    def test_server_error(self):
        client = FeedClient(CodecSettings())

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.return_value = make_response(status_code=500)

            with pytest.raises(FeedError, match="Unable to retrieve feed: 500"):
                client.fetch("https://example.com/cal.ics")

    def test_declared_size_too_large(self):
        client = FeedClient(CodecSettings(feed_max_bytes=10))

        with patch('requests.Session') as mock_session:
            response = make_response(body=b"x", headers={"Content-Length": "11"})
            mock_session.return_value.get.return_value = response

            with pytest.raises(FeedError, match="File too large"):
                client.fetch("https://example.com/cal.ics")
            response.iter_content.assert_not_called()
            response.close.assert_called_once()

    def test_streamed_size_too_large(self):
        client = FeedClient(CodecSettings(feed_max_bytes=10))

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.return_value = make_response(body=b"0123456789AB")

            with pytest.raises(FeedError, match="File too large"):
                client.fetch("https://example.com/cal.ics")

    def test_timeout(self):
        client = FeedClient(CodecSettings())

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.side_effect = requests.Timeout()

            with pytest.raises(FeedError, match="timed out"):
                client.fetch("https://example.com/cal.ics")

    def test_connection_error(self):
        client = FeedClient(CodecSettings())

        with patch('requests.Session') as mock_session:
            mock_session.return_value.get.side_effect = requests.ConnectionError("refused")

            with pytest.raises(FeedError, match="Error retrieving feed"):
                client.fetch("https://example.com/cal.ics")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            FeedClient(CodecSettings()).fetch("https://example.com/cal.ics", kind="notes")
