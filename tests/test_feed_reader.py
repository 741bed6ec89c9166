"""Unit tests for feed_reader: local and remote CSV feeds."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from schemas.feed import FeedConfig
from tools.feed_reader import FeedUnavailableError, read_feed, read_rows


READER_MODULE = "tools.feed_reader"


class TestReadRows:
    def test_reads_local_csv_with_bom(self, tmp_path):
        path = tmp_path / "feed.csv"
        path.write_text("\ufeffLINE name,Phone\nH1,090-1111-2222\n", encoding="utf-8")

        rows = read_rows(str(path))

        assert rows == [["LINE name", "Phone"], ["H1", "090-1111-2222"]]

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FeedUnavailableError):
            read_rows(str(tmp_path / "nope.csv"))

    @patch(f"{READER_MODULE}.requests.get")
    def test_downloads_remote_csv(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.raise_for_status.return_value = None
        mock_resp.headers = {"Content-Type": "text/csv; charset=utf-8"}
        mock_resp.text = "LINE name,Phone\nH1,090\n"
        mock_get.return_value = mock_resp

        rows = read_rows("https://example.com/feed.csv", timeout=5)

        assert rows[1] == ["H1", "090"]
        mock_get.assert_called_once_with("https://example.com/feed.csv", timeout=5)

    @patch(f"{READER_MODULE}.requests.get")
    def test_remote_csv_without_charset_is_read_as_utf8(self, mock_get):
        """requests guesses ISO-8859-1 for text/csv without a charset; the bytes are UTF-8."""
        body = "\ufeffLINE name,Full name\nH1,山田太郎\n".encode("utf-8")
        mock_resp = MagicMock()
        mock_resp.raise_for_status.return_value = None
        mock_resp.headers = {"Content-Type": "text/csv"}
        mock_resp.encoding = "ISO-8859-1"
        mock_resp.content = body
        mock_resp.text = body.decode("ISO-8859-1")
        mock_get.return_value = mock_resp

        rows = read_rows("https://example.com/feed.csv")

        assert rows == [["LINE name", "Full name"], ["H1", "山田太郎"]]

    @patch(f"{READER_MODULE}.requests.get")
    def test_remote_non_utf8_becomes_feed_unavailable(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.raise_for_status.return_value = None
        mock_resp.headers = {"Content-Type": "text/csv"}
        mock_resp.content = "LINE name\n山田\n".encode("shift_jis")
        mock_get.return_value = mock_resp

        with pytest.raises(FeedUnavailableError):
            read_rows("https://example.com/feed.csv")

    def test_non_utf8_file_becomes_feed_unavailable(self, tmp_path):
        path = tmp_path / "sjis.csv"
        path.write_bytes("LINE name,Full name\nH1,山田太郎\n".encode("shift_jis"))

        with pytest.raises(FeedUnavailableError):
            read_rows(str(path))

    def test_malformed_csv_becomes_feed_unavailable(self, tmp_path):
        path = tmp_path / "huge.csv"
        path.write_text("LINE name\n" + "x" * 200_000 + "\n", encoding="utf-8")

        with pytest.raises(FeedUnavailableError):
            read_rows(str(path))

    @patch(f"{READER_MODULE}.requests.get")
    def test_http_error_becomes_feed_unavailable(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("network down")

        with pytest.raises(FeedUnavailableError):
            read_rows("https://example.com/feed.csv")


class TestReadFeed:
    def test_cuts_header_and_data_rows(self, tmp_path):
        path = tmp_path / "survey.csv"
        path.write_text(
            "Seminar survey export\n"
            "LINE name,Phone,Seminar\n"
            "H1,090-1,Tokyo\n"
            ",,\n"
            "H2,090-2,Osaka\n",
            encoding="utf-8",
        )
        feed = FeedConfig(
            name="survey", source_type="seminar_survey", location=str(path),
            header_row=2, data_start_row=3,
        )

        header, rows = read_feed(feed)

        assert header == ["LINE name", "Phone", "Seminar"]
        assert rows == [["H1", "090-1", "Tokyo"], ["H2", "090-2", "Osaka"]]

    def test_missing_header_row_raises(self, tmp_path):
        path = tmp_path / "short.csv"
        path.write_text("only one line\n", encoding="utf-8")
        feed = FeedConfig(
            name="short", source_type="gift_claim", location=str(path),
            header_row=3, data_start_row=4,
        )

        with pytest.raises(FeedUnavailableError):
            read_feed(feed)


def test_data_row_must_follow_header():
    with pytest.raises(ValueError):
        FeedConfig(name="bad", source_type="gift_claim", location="x.csv", header_row=2, data_start_row=2)
