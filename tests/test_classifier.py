"""Tests for the round classifier state machine."""

from roundsight.analysis.classifier import RoundClassifier, RoundRecord
from roundsight.core.config import EngineConfig
from roundsight.core.constants import LeagueSource, RoundTag


def _play_round(
    classifier: RoundClassifier,
    start: tuple[int, int],
    end: tuple[int, int],
    weapons: list[str] = (),
    tick: int = 0,
):
    classifier.on_round_start(*start, tick=tick)
    for weapon in weapons:
        classifier.on_kill(weapon)
    return classifier.on_round_end(*end, tick=tick + 1000)


class TestRoundRecord:
    """Tests for RoundRecord tags."""

    def test_unfinalized_is_unclassified(self):
        assert RoundRecord(round_number=1).tag == RoundTag.UNCLASSIFIED

    def test_mark_warmup_clears_knife(self):
        record = RoundRecord(round_number=1, is_knife=True)
        record.mark_warmup()
        assert record.is_warmup is True
        assert record.is_knife is False
        assert record.tag == RoundTag.WARMUP

    def test_to_dict(self):
        record = RoundRecord(round_number=2, finalized=True, ct_score_end=1, t_score_end=1)
        d = record.to_dict()
        assert d["round"] == 2
        assert d["tag"] == "official"
        assert d["score_end"] == {"ct": 1, "t": 1}


class TestOfficialRounds:
    """Standard matchmaking: every scoring round is official."""

    def test_first_round_official(self):
        classifier = RoundClassifier()
        record, reclassified = _play_round(classifier, (0, 0), (1, 0), ["ak47"])

        assert record.tag == RoundTag.OFFICIAL
        assert reclassified == []
        assert classifier.official_round_start == 1
        assert classifier.league_source == LeagueSource.VALVE

    def test_round_without_kills_not_warmup(self):
        """An unchanged score only means warmup when kills happened."""
        classifier = RoundClassifier()
        record, _ = _play_round(classifier, (0, 0), (0, 0), [])
        assert record.is_warmup is False

    def test_unchanged_score_with_kills_is_warmup(self):
        classifier = RoundClassifier()
        _play_round(classifier, (0, 0), (1, 0), ["ak47"], tick=0)
        record, reclassified = _play_round(classifier, (1, 0), (1, 0), ["m4a1"], tick=2000)

        assert record.is_warmup is True
        assert reclassified == [2]
        assert classifier.official_round_start == 1

    def test_missing_scores_treated_as_zero(self):
        classifier = RoundClassifier()
        classifier.on_round_start(None, None, tick=10)
        record, _ = classifier.on_round_end(None, 1, tick=20)
        assert record.ct_score_start == 0
        assert record.ct_score_end == 0
        assert record.t_score_end == 1


class TestLeagueWarmupFormat:
    """GC leagues: rounds 1-4 start at 0-0 and are warmup."""

    def test_four_rounds_at_zero(self):
        classifier = RoundClassifier()
        for i in range(4):
            _play_round(classifier, (0, 0), (0, 0), ["ak47", "awp"], tick=i * 2000)

        assert classifier.state.is_league_warmup_format is True
        assert classifier.league_source == LeagueSource.GC
        assert all(r.is_warmup for r in classifier.rounds())
        assert classifier.warmup_rounds == 4
        assert classifier.official_rounds == 0
        assert classifier.official_round_start is None

    def test_flag_reclassifies_finished_rounds(self):
        """A round finalized as official is pulled back once the format is detected."""
        classifier = RoundClassifier()
        record, _ = _play_round(classifier, (0, 0), (1, 0), ["ak47"], tick=0)
        assert record.is_official
        assert classifier.official_round_start == 1

        reclassified = classifier.on_round_start(0, 0, tick=2000)

        assert reclassified == [1]
        assert classifier.record(1).is_warmup is True
        assert classifier.official_round_start is None

    def test_rounds_in_league_warmup_are_gated(self):
        classifier = RoundClassifier()
        _play_round(classifier, (0, 0), (0, 0), [], tick=0)
        classifier.on_round_start(0, 0, tick=2000)

        assert classifier.current.is_warmup is True
        assert classifier.on_kill("ak47") is False
        assert classifier.current.kill_count == 0

    def test_round_five_is_official(self):
        classifier = RoundClassifier()
        for i in range(4):
            _play_round(classifier, (0, 0), (0, 0), [], tick=i * 2000)
        record, _ = _play_round(classifier, (0, 0), (1, 0), ["ak47"], tick=8000)

        assert record.is_official
        assert classifier.official_round_start == 5

    def test_round_one_at_zero_does_not_set_flag(self):
        classifier = RoundClassifier()
        classifier.on_round_start(0, 0, tick=0)
        assert classifier.state.is_league_warmup_format is False
        assert classifier.current.is_warmup is False

    def test_flag_never_reverts(self):
        classifier = RoundClassifier()
        for i in range(2):
            _play_round(classifier, (0, 0), (0, 0), [], tick=i * 2000)
        for i in range(2, 10):
            _play_round(classifier, (i, 0), (i + 1, 0), ["ak47"], tick=i * 2000)
        assert classifier.state.is_league_warmup_format is True

    def test_configured_max_round(self):
        classifier = RoundClassifier(EngineConfig(league_warmup_max_round=2))
        _play_round(classifier, (0, 0), (0, 0), [], tick=0)
        _play_round(classifier, (0, 0), (0, 0), [], tick=2000)
        record, _ = _play_round(classifier, (0, 0), (1, 0), ["ak47"], tick=4000)
        assert record.is_official


class TestKnifeRound:
    """Knife round detection."""

    def test_three_of_four_melee(self):
        classifier = RoundClassifier()
        record, reclassified = _play_round(
            classifier, (0, 0), (0, 1), ["knife", "knife_t", "bayonet", "ak47"]
        )
        assert record.is_knife is True
        assert record.is_warmup is False
        assert record.tag == RoundTag.KNIFE
        assert reclassified == [1]
        assert classifier.official_round_start is None

    def test_half_melee_not_knife(self):
        classifier = RoundClassifier()
        record, _ = _play_round(
            classifier, (0, 0), (1, 0), ["knife", "knife", "knife", "ak47", "ak47", "ak47"]
        )
        assert record.is_knife is False

    def test_fewer_than_three_melee_not_knife(self):
        classifier = RoundClassifier()
        record, _ = _play_round(classifier, (0, 0), (1, 0), ["knife", "knife"])
        assert record.is_knife is False

    def test_melee_matching_is_case_insensitive(self):
        classifier = RoundClassifier()
        assert classifier.is_melee("weapon_KNIFE_karambit")
        assert classifier.is_melee("Bayonet")
        assert not classifier.is_melee("ak47")
        assert not classifier.is_melee(None)

    def test_extra_melee_weapons(self):
        classifier = RoundClassifier(EngineConfig(extra_melee_weapons=["fists"]))
        assert classifier.is_melee("fists")

    def test_knife_round_later_gated(self):
        classifier = RoundClassifier()
        _play_round(classifier, (0, 0), (0, 1), ["knife"] * 3)
        assert classifier.is_gated(1) is True

    def test_warmup_takes_precedence(self):
        """A melee-dominated round that leaves the score unchanged is warmup, not knife."""
        classifier = RoundClassifier()
        record, _ = _play_round(classifier, (0, 0), (0, 0), ["knife"] * 4)
        assert record.is_warmup is True
        assert record.is_knife is False


class TestRoundBookkeeping:
    """Round lookup and counting."""

    def test_round_at_tick(self):
        classifier = RoundClassifier()
        classifier.on_round_start(0, 0, tick=100)
        classifier.on_round_end(1, 0, tick=900)
        classifier.on_round_start(1, 0, tick=1000)

        assert classifier.round_at_tick(50) == 0
        assert classifier.round_at_tick(100) == 1
        assert classifier.round_at_tick(999) == 1
        assert classifier.round_at_tick(1000) == 2
        assert classifier.round_at_tick(50000) == 2

    def test_duplicate_round_end_ignored(self):
        classifier = RoundClassifier()
        _play_round(classifier, (0, 0), (1, 0), ["ak47"])
        record, reclassified = classifier.on_round_end(2, 0, tick=5000)
        assert record is None
        assert reclassified == []
        assert classifier.record(1).ct_score_end == 1

    def test_round_end_before_first_start_ignored(self):
        classifier = RoundClassifier()
        record, _ = classifier.on_round_end(0, 0, tick=5)
        assert record is None
        assert classifier.total_rounds == 0

    def test_round_zero_is_gated(self):
        classifier = RoundClassifier()
        assert classifier.current_round == 0
        assert classifier.is_gated() is True
        assert classifier.on_kill("ak47") is False

    def test_counts_partition_total(self):
        classifier = RoundClassifier()
        for i in range(4):
            _play_round(classifier, (0, 0), (0, 0), [], tick=i * 2000)
        _play_round(classifier, (0, 0), (0, 1), ["knife"] * 3, tick=8000)
        for i in range(5, 12):
            _play_round(classifier, (i - 5, 1), (i - 4, 1), ["ak47"], tick=i * 2000)
        classifier.on_round_start(7, 1, tick=30000)  # still running at the end

        assert classifier.total_rounds == 13
        assert classifier.warmup_rounds == 4
        assert classifier.knife_rounds == 1
        assert classifier.official_rounds == 8
        assert (
            classifier.official_rounds + classifier.warmup_rounds + classifier.knife_rounds
            == classifier.total_rounds
        )
        for r in classifier.rounds():
            assert not (r.is_warmup and r.is_knife)

    def test_summary(self):
        classifier = RoundClassifier()
        _play_round(classifier, (0, 0), (1, 0), ["ak47"])
        summary = classifier.summary()
        assert summary["official_rounds"] == 1
        assert summary["source"] == "Valve"
        assert summary["official_round_start"] == 1
