"""Unit tests for utility functions."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from memoapp.utils import (
    decode_payload,
    display_width,
    encode_payload,
    format_display_date,
    format_file_size,
    format_filename_date,
    ms_to_utc_iso,
    next_note_id,
    smart_display_name,
    to_utc_iso,
    truncate_display,
)


class TestNoteIds:
    """Test cases for next_note_id()."""

    def test_ids_strictly_increase(self):
        """Test IDs created in a burst never repeat."""
        ids = [next_note_id() for _ in range(100)]
        assert ids == sorted(set(ids))


class TestDates:
    """Test cases for date formatting."""

    def test_to_utc_iso(self):
        """Test naive datetimes are taken as UTC and aware ones converted."""
        assert to_utc_iso(None) is None
        assert to_utc_iso(datetime(2024, 3, 1, 9, 5)) == "2024-03-01T09:05:00+00:00"  # noqa: DTZ001
        shifted = datetime(2024, 3, 1, 10, 5, tzinfo=timezone(timedelta(hours=1)))
        assert to_utc_iso(shifted) == "2024-03-01T09:05:00+00:00"

    def test_ms_to_utc_iso(self):
        """Test millisecond timestamps convert to UTC ISO strings."""
        assert ms_to_utc_iso(0) == datetime(1970, 1, 1, tzinfo=UTC).isoformat()

    def test_display_and_filename_dates(self):
        """Test the display and filename date formats."""
        dt = datetime(2024, 3, 1, 9, 5)  # noqa: DTZ001
        assert format_display_date(dt) == "2024/03/01 09:05"
        assert format_filename_date(dt) == "20240301_0905"


class TestFormatFileSize:
    """Test cases for format_file_size()."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "0 B"),
            (1, "1 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5 MB"),
            (3 * 1024**4, "3072 GB"),
        ],
    )
    def test_sizes(self, size, expected):
        """Test sizes are shown in the largest fitting unit."""
        assert format_file_size(size) == expected


class TestDisplayNames:
    """Test cases for display widths and marker labels."""

    def test_display_width(self):
        """Test wide characters count as two units."""
        assert display_width("abc") == 3
        assert display_width("报告") == 4

    def test_truncate_display(self):
        """Test truncation never splits past the width."""
        assert truncate_display("abcdef", 4) == "abcd"
        assert truncate_display("报告书", 5) == "报告"

    def test_short_name_without_extension(self):
        """Test short names are shown whole without the extension."""
        assert smart_display_name("cat.png", 0) == "cat"
        assert smart_display_name("notes", 0) == "notes"

    def test_medium_name_is_cut(self):
        """Test names up to 20 units are cut to 10 units and an ellipsis."""
        assert smart_display_name("holiday-photos-01.jpg", 0) == "holiday-ph..."

    def test_long_name_becomes_position(self):
        """Test long names are shown as the 1-based position."""
        assert smart_display_name("x" * 30 + ".pdf", 4) == "5"

    def test_wide_characters_count_double(self):
        """Test CJK names reach the limits sooner."""
        assert smart_display_name("年度报告书.docx", 0) == "年度报告书"
        assert smart_display_name("年度财务报告书.docx", 0) == "年度财务报..."


class TestPayloads:
    """Test cases for payload encoding."""

    def test_encode_and_decode(self):
        """Test payloads are data URLs that decode back to the bytes."""
        payload = encode_payload(b"\x00\x01hello", "image/png")
        assert payload.startswith("data:image/png;base64,")
        assert decode_payload(payload) == b"\x00\x01hello"

    def test_decode_bare_base64(self):
        """Test bare base64 text decodes too."""
        assert decode_payload("aGk=") == b"hi"

    def test_decode_invalid(self):
        """Test invalid base64 raises ValueError."""
        with pytest.raises(ValueError, match="not valid base64"):
            decode_payload("data:text/plain;base64,***")
