import pytest

from giveawaybot.durations import HOUR_MS, MINUTE_MS, humanize_ms, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("3m", 3 * MINUTE_MS),
            ("90s", 90_000),
            ("1h30m", 90 * MINUTE_MS),
            ("2 days", 48 * HOUR_MS),
            ("1.5h", 90 * MINUTE_MS),
            ("1w", 7 * 24 * HOUR_MS),
            ("  10 Minutes ", 10 * MINUTE_MS),
            ("1h, 15m", 75 * MINUTE_MS),
            ("500", 500),
            ("365d", 365 * 24 * HOUR_MS),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_duration(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "   ",
            "abc",
            "10 parsecs",
            "0m",
            "0",
            "m5",
            "1h soon",
            "-5m",
            "366d",
            "99999999999999w",
            "9" * 400 + "s",
            "9" * 400,
        ],
    )
    def test_invalid(self, raw):
        assert parse_duration(raw) is None


class TestHumanize:
    def test_compound(self):
        assert humanize_ms(90 * MINUTE_MS) == "1h 30m"

    def test_seconds(self):
        assert humanize_ms(45_000) == "45s"

    def test_days(self):
        assert humanize_ms(2 * 24 * HOUR_MS + 5 * MINUTE_MS) == "2d 5m"

    def test_zero(self):
        assert humanize_ms(0) == "0s"
