"""Tests for core utility helpers."""

import numpy as np

from roundsight.core.utils import (
    format_clock,
    format_duration,
    safe_bool,
    safe_float,
    safe_int,
    safe_str,
    team_to_side,
    timed,
    winner_from_reason,
)


class TestSafeConversions:
    """NaN-tolerant converters."""

    def test_safe_int(self):
        assert safe_int("12") == 12
        assert safe_int(np.nan) == 0
        assert safe_int(None, 5) == 5
        assert safe_int("abc") == 0

    def test_safe_float(self):
        assert safe_float("1.5") == 1.5
        assert safe_float(np.nan, -1.0) == -1.0

    def test_safe_str(self):
        assert safe_str(None) == ""
        assert safe_str(float("nan"), "x") == "x"
        assert safe_str(42) == "42"

    def test_safe_bool(self):
        assert safe_bool(1) is True
        assert safe_bool(np.nan) is False
        assert safe_bool(None, True) is True


class TestTeamToSide:
    """Team value normalisation."""

    def test_numeric(self):
        assert team_to_side(2) == "T"
        assert team_to_side(3) == "CT"
        assert team_to_side(2.0) == "T"

    def test_strings(self):
        assert team_to_side("CT") == "CT"
        assert team_to_side("TERRORIST") == "T"
        assert team_to_side("counter-terrorist") == "CT"

    def test_digit_strings(self):
        assert team_to_side("2") == "T"
        assert team_to_side(" 3 ") == "CT"
        assert team_to_side("1") == ""

    def test_non_playing_teams(self):
        assert team_to_side(0) == ""
        assert team_to_side(1) == ""
        assert team_to_side(None) == ""
        assert team_to_side(float("nan")) == ""
        assert team_to_side("SPECTATOR") == ""
        assert team_to_side("") == ""


class TestWinnerFromReason:
    """Round winners derived from reason codes."""

    def test_decisive_reasons(self):
        assert winner_from_reason(7) == "CT"
        assert winner_from_reason(12) == "CT"
        assert winner_from_reason(1) == "T"
        assert winner_from_reason("9") == "T"

    def test_draw_or_unknown(self):
        assert winner_from_reason(10) == ""
        assert winner_from_reason(None) == ""


class TestFormatting:
    """Duration and clock formatting."""

    def test_format_duration(self):
        assert format_duration(0) == "0:00"
        assert format_duration(65.9) == "1:05"
        assert format_duration(3600) == "60:00"

    def test_format_clock(self):
        assert format_clock(115) == "01:55"
        assert format_clock(9.5) == "00:09"
        assert format_clock(-3) == "00:00"


class TestTimed:
    """Timing decorator."""

    def test_returns_result(self):
        @timed
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"
