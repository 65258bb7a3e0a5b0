"""Tests for summary metrics, MVP selection and recommendations."""

import pytest

from roundsight.analysis.accumulator import PlayerAccumulator
from roundsight.analysis.summary import (
    REC_ADR,
    REC_AIM,
    REC_CONVERT,
    REC_KEEP_UP,
    REC_POSITIONING,
    adr,
    analyze_player,
    generate_recommendations,
    hs_rate,
    kd_ratio,
    key_moments,
    mvp_row,
    player_row,
    rating,
    select_mvp,
)
from roundsight.core.config import SummaryConfig


class TestMetrics:
    """Per-player derived metrics."""

    def test_adr(self):
        assert adr(300, 5) == 60.0
        assert adr(300, 0) == 0.0

    def test_hs_rate(self):
        assert hs_rate(3, 4) == 75.0
        assert hs_rate(0, 0) == 0.0

    def test_kd_ratio(self):
        assert kd_ratio(10, 5) == 2.0
        assert kd_ratio(0, 3) == 0.0

    def test_kd_ratio_zero_deaths_equals_kills(self):
        for kills in (0, 1, 7, 25):
            assert kd_ratio(kills, 0) == kills

    def test_rating(self):
        assert rating(10, 5, 80.0) == pytest.approx(1.6)
        # deaths floored at 1
        assert rating(3, 0, 100.0) == pytest.approx(3.0)

    def test_player_row(self):
        acc = PlayerAccumulator(
            steam_id=1, name="a", team="CT", kills=10, deaths=5, assists=2, headshot_kills=5, damage=800
        )
        row = player_row(acc, 10)
        assert row.adr == 80.0
        assert row.hs_rate == 50.0
        assert row.kd_ratio == 2.0
        assert row.rating == pytest.approx(1.6)
        assert row.to_dict()["rating"] == 1.6


class TestSelectMvp:
    """MVP selection."""

    def _row(self, steam_id, name, kills, deaths, damage, rounds=10):
        return player_row(
            PlayerAccumulator(steam_id=steam_id, name=name, kills=kills, deaths=deaths, damage=damage),
            rounds,
        )

    def test_highest_rating(self):
        rows = [self._row(1, "a", 10, 10, 800), self._row(2, "b", 20, 5, 1500)]
        assert select_mvp(rows)[0] == "b"

    def test_tie_goes_to_lowest_steam_id(self):
        rows = [self._row(9, "late", 10, 5, 800), self._row(3, "early", 10, 5, 800)]
        name, value = select_mvp(rows)
        assert name == "early"
        assert value == pytest.approx(1.6)
        assert select_mvp(list(reversed(rows)))[0] == "early"

    def test_no_positive_rating(self):
        rows = [self._row(1, "a", 0, 3, 200)]
        assert select_mvp(rows) == ("N/A", 0.0)
        assert select_mvp([]) == ("N/A", 0.0)

    def test_mvp_row_keeps_steam_id(self):
        rows = [self._row(7, "same", 10, 10, 800), self._row(8, "same", 20, 5, 1500)]
        best = mvp_row(rows)
        assert best.steam_id == 8
        assert mvp_row([self._row(1, "a", 0, 3, 200)]) is None


class TestRecommendations:
    """Threshold-based coaching messages."""

    def test_all_good(self):
        assert generate_recommendations(50.0, 90.0, 1.5, 900, 12) == [REC_KEEP_UP]

    def test_each_threshold(self):
        recs = generate_recommendations(10.0, 40.0, 0.5, 100, 1)
        assert recs == [REC_AIM, REC_ADR, REC_POSITIONING]

    def test_damage_without_kills(self):
        """Scenario: 300 damage over 5 official rounds, no kills."""
        player_adr = adr(300, 5)
        recs = generate_recommendations(hs_rate(0, 0), player_adr, kd_ratio(0, 2), 300, 0)
        assert REC_CONVERT in recs
        # ADR of exactly 60 is not below the threshold
        assert REC_ADR not in recs

    def test_adr_just_below_threshold(self):
        recs = generate_recommendations(50.0, 59.9, 2.0, 299, 3)
        assert recs == [REC_ADR]

    def test_custom_thresholds(self):
        config = SummaryConfig(hs_rate_threshold=60.0, adr_threshold=0.0, kd_threshold=0.0)
        assert generate_recommendations(50.0, 10.0, 0.1, 10, 1, config) == [REC_AIM]


class TestPlayerAnalysis:
    """Target player deep analysis."""

    def test_key_moments(self):
        row = player_row(PlayerAccumulator(steam_id=1, kills=4, headshot_kills=1), 3)
        moments = key_moments(row, {1: 1, 2: 3, 3: 0})
        assert moments == ["4 kills with 25.0% HS rate", "3K in round 2"]

    def test_analyze_player(self):
        acc = PlayerAccumulator(steam_id=5, name="me", team="T", kills=0, deaths=2, damage=300)
        analysis = analyze_player(player_row(acc, 5), 5)

        assert analysis.rounds_played == 5
        assert analysis.adr == 60.0
        assert analysis.key_moments == ["0 kills with 0.0% HS rate"]
        assert REC_CONVERT in analysis.recommendations
        assert REC_ADR not in analysis.recommendations
        assert analysis.to_dict()["steam_id"] == 5
