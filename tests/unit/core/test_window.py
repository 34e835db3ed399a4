"""Tests for time windows and schedule parsing."""

from datetime import datetime

import pytest

from releasegate.core.errors import ValidationError
from releasegate.core.schedule.window import TimeWindow, parse_window_from_content, window_or_none


class TestTimeWindow:

    def test_inverted_window_rejected(self):
        with pytest.raises(ValidationError) as exc:
            TimeWindow(datetime(2024, 6, 2), datetime(2024, 6, 1))
        assert exc.value.details["code"] == "INVALID_TIME_RANGE"

    def test_empty_window_rejected(self):
        with pytest.raises(ValidationError):
            TimeWindow(datetime(2024, 6, 1), datetime(2024, 6, 1))

    def test_overlap(self):
        ban = TimeWindow(datetime(2024, 6, 1, 22), datetime(2024, 6, 2, 2))
        deploy = TimeWindow(datetime(2024, 6, 1, 23), datetime(2024, 6, 2, 0, 30))
        assert ban.overlaps(deploy)
        assert deploy.overlaps(ban)

    def test_touching_endpoints_do_not_overlap(self):
        first = TimeWindow(datetime(2024, 6, 1, 20), datetime(2024, 6, 1, 22))
        second = TimeWindow(datetime(2024, 6, 1, 22), datetime(2024, 6, 2, 2))
        assert not first.overlaps(second)
        assert not second.overlaps(first)

    def test_window_or_none(self):
        assert window_or_none(None, datetime(2024, 6, 1)) is None
        assert window_or_none(datetime(2024, 6, 1), datetime(2024, 6, 2)).duration.days == 1


class TestParseWindowFromContent:

    def test_plain_text(self):
        window = parse_window_from_content("Deploy between 2024-06-01 23:00 ~ 2024-06-02 00:30 please")
        assert window == TimeWindow(datetime(2024, 6, 1, 23), datetime(2024, 6, 2, 0, 30))

    def test_html_with_entities(self):
        content = "<p>Schedule:</p><p>2024-06-01&nbsp;23:00 &ndash; 2024-06-02&nbsp;01:00</p>"
        window = parse_window_from_content(content)
        assert window == TimeWindow(datetime(2024, 6, 1, 23), datetime(2024, 6, 2, 1))

    def test_dash_separators(self):
        assert parse_window_from_content("2024-06-01 10:00 - 2024-06-01 11:00") is not None
        assert parse_window_from_content("2024-06-01 10:00 — 2024-06-01 11:00") is not None

    @pytest.mark.parametrize("content", [
        None,
        "",
        "no schedule here",
        "2024-06-01 12:00 ~ 2024-06-01 11:00",
        "2024-13-01 12:00 ~ 2024-13-01 13:00",
    ])
    def test_no_window(self, content):
        assert parse_window_from_content(content) is None
