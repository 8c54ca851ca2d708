"""Tests for duration parsing."""

from datetime import timedelta

import pytest

from swrcache import parse_duration
from swrcache.duration import parse_optional_duration


class TestParseDuration:
    """Tests for parse_duration function."""

    def test_single_units(self) -> None:
        assert parse_duration("100ms") == 100
        assert parse_duration("30s") == 30_000
        assert parse_duration("5m") == 300_000
        assert parse_duration("1h") == 3_600_000
        assert parse_duration("7d") == 604_800_000

    def test_zero(self) -> None:
        assert parse_duration("0s") == 0
        assert parse_duration(0) == 0

    def test_compound(self) -> None:
        """Units can be combined, largest first by convention."""
        assert parse_duration("1h30m") == 5_400_000
        assert parse_duration("1m500ms") == 60_500

    def test_integer_passthrough(self) -> None:
        assert parse_duration(1000) == 1000
        assert parse_duration(999999) == 999999

    def test_timedelta(self) -> None:
        assert parse_duration(timedelta(minutes=2)) == 120_000
        assert parse_duration(timedelta(milliseconds=250)) == 250

    def test_optional(self) -> None:
        assert parse_optional_duration(None) is None
        assert parse_optional_duration("1s") == 1000

    @pytest.mark.parametrize("value", ["invalid", "10x", "s10", "", "10", "1h 30m"])
    def test_invalid_format(self, value: str) -> None:
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(value)

    def test_negative_and_bool_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(-1)
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(True)
