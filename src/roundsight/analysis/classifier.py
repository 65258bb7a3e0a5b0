"""
Round Classifier

Stateful per-round decision machine. Every round is tagged warmup, knife or
official, and the match as a whole gets a league-source guess:

- Round 0 (anything before the first round start) is always warmup.
- GC leagues play non-scoring warmup rounds 1..4 that all start at 0-0. Once
  a round numbered 2..4 starts at 0-0 the match is flagged as GC for good and
  every round up to 4 becomes warmup, including rounds already finalized.
- A round is a knife round when at least 3 kills, and more than half of its
  kills, were made with a melee weapon.
- A round that ends with the score it started with, despite kills, is
  retroactively treated as warmup.

Warmup always takes precedence over knife, so the tags are disjoint.

The classifier is the single source of truth for "which round is this tick
in"; the sampler and the engine query it instead of counting rounds
themselves.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field

from roundsight.core.config import EngineConfig
from roundsight.core.constants import MELEE_WEAPON_MARKERS, LeagueSource, RoundTag
from roundsight.core.utils import safe_int

logger = logging.getLogger(__name__)


@dataclass
class RoundRecord:
    """One round, created at round start and finalized at round end."""

    round_number: int
    start_tick: int = 0
    ct_score_start: int = 0
    t_score_start: int = 0
    kill_count: int = 0
    melee_kill_count: int = 0
    is_warmup: bool = False
    is_knife: bool = False
    finalized: bool = False
    end_tick: int | None = None
    winner: str = ""
    reason: int = 0
    ct_score_end: int | None = None
    t_score_end: int | None = None

    @property
    def tag(self) -> RoundTag:
        if self.is_warmup:
            return RoundTag.WARMUP
        if self.is_knife:
            return RoundTag.KNIFE
        if not self.finalized:
            return RoundTag.UNCLASSIFIED
        return RoundTag.OFFICIAL

    @property
    def is_official(self) -> bool:
        return self.finalized and not self.is_warmup and not self.is_knife

    @property
    def is_gated(self) -> bool:
        """Whether statistics for this round are excluded."""
        return self.is_warmup or self.is_knife

    def mark_warmup(self) -> None:
        self.is_warmup = True
        self.is_knife = False

    def to_dict(self) -> dict:
        return {
            "round": self.round_number,
            "tag": self.tag.value,
            "is_warmup": self.is_warmup,
            "is_knife": self.is_knife,
            "kills": self.kill_count,
            "melee_kills": self.melee_kill_count,
            "start_tick": self.start_tick,
            "end_tick": self.end_tick,
            "winner": self.winner,
            "reason": self.reason,
            "score_start": {"ct": self.ct_score_start, "t": self.t_score_start},
            "score_end": (
                {"ct": self.ct_score_end, "t": self.t_score_end}
                if self.ct_score_end is not None
                else None
            ),
        }


@dataclass
class MatchState:
    """Match-level classification state for one analysis run."""

    current_round: int = 0
    is_league_warmup_format: bool = False
    official_round_start: int | None = None
    round_start_score: dict[int, tuple[int, int]] = field(default_factory=dict)

    @property
    def league_source(self) -> LeagueSource:
        return LeagueSource.GC if self.is_league_warmup_format else LeagueSource.VALVE


class RoundClassifier:
    """
    Round classification state machine.

    Usage:
        classifier = RoundClassifier()
        classifier.on_round_start(ct_score=0, t_score=0, tick=100)
        classifier.on_kill("weapon_knife")
        record, reclassified = classifier.on_round_end(ct_score=1, t_score=0, tick=2000)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.state = MatchState()
        self._rounds: dict[int, RoundRecord] = {0: RoundRecord(round_number=0, is_warmup=True)}
        self._start_ticks: list[int] = []
        self._melee_markers = tuple(
            m.lower() for m in (*MELEE_WEAPON_MARKERS, *self.config.extra_melee_weapons) if m
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_round(self) -> int:
        return self.state.current_round

    @property
    def current(self) -> RoundRecord:
        return self._rounds[self.state.current_round]

    @property
    def league_source(self) -> LeagueSource:
        return self.state.league_source

    @property
    def official_round_start(self) -> int | None:
        return self.state.official_round_start

    def record(self, round_number: int) -> RoundRecord | None:
        return self._rounds.get(round_number)

    def rounds(self) -> list[RoundRecord]:
        """Observed rounds (1..N) in order."""
        return [self._rounds[n] for n in sorted(self._rounds) if n > 0]

    def is_gated(self, round_number: int | None = None) -> bool:
        """Whether statistics are currently excluded for a round (default: current)."""
        number = self.state.current_round if round_number is None else round_number
        record = self._rounds.get(number)
        return record is None or record.is_gated

    def round_at_tick(self, tick: int) -> int:
        """Round number in progress at a tick (0 before the first round start)."""
        return bisect.bisect_right(self._start_ticks, tick)

    def is_melee(self, weapon: str | None) -> bool:
        name = (weapon or "").lower()
        return any(marker in name for marker in self._melee_markers)

    @property
    def total_rounds(self) -> int:
        return self.state.current_round

    @property
    def warmup_rounds(self) -> int:
        return sum(1 for r in self.rounds() if r.is_warmup)

    @property
    def knife_rounds(self) -> int:
        return sum(1 for r in self.rounds() if r.is_knife and not r.is_warmup)

    @property
    def official_rounds(self) -> int:
        # Rounds still open at the end of the recording count as official
        # unless already tagged otherwise
        return self.total_rounds - self.warmup_rounds - self.knife_rounds

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def on_round_start(self, ct_score: int | None, t_score: int | None, tick: int = 0) -> list[int]:
        """
        Open the next round.

        Returns:
            Round numbers that were retroactively reclassified as warmup
            because this round start revealed the GC warmup format.
        """
        ct, t = safe_int(ct_score), safe_int(t_score)
        self.state.current_round += 1
        number = self.state.current_round
        self.state.round_start_score[number] = (ct, t)

        record = RoundRecord(round_number=number, start_tick=tick, ct_score_start=ct, t_score_start=t)
        self._rounds[number] = record
        self._start_ticks.append(tick)

        max_round = self.config.league_warmup_max_round
        reclassified: list[int] = []
        if (
            not self.state.is_league_warmup_format
            and 2 <= number <= max_round
            and ct == 0
            and t == 0
        ):
            self.state.is_league_warmup_format = True
            logger.info(f"Round {number} started at 0-0: GC warmup format detected")
            reclassified = self._apply_league_warmup()

        if self.state.is_league_warmup_format and number <= max_round:
            record.mark_warmup()

        logger.debug(f"Round {number} started at tick {tick} ({ct}-{t}), provisional tag {record.tag}")
        return reclassified

    def on_kill(self, weapon: str | None) -> bool:
        """
        Count a kill in the current round.

        Returns:
            True if the kill counts towards statistics, False when the round
            is provisionally warmup or knife.
        """
        record = self.current
        if record.is_gated:
            return False
        record.kill_count += 1
        if self.is_melee(weapon):
            record.melee_kill_count += 1
        return True

    def on_round_end(
        self,
        ct_score: int | None,
        t_score: int | None,
        tick: int = 0,
        winner: str = "",
        reason: int = 0,
    ) -> tuple[RoundRecord | None, list[int]]:
        """
        Finalize the current round.

        Returns:
            (record, reclassified) where record is the finalized round, or
            None when there is nothing to finalize (round 0 or a duplicate
            round end), and reclassified lists rounds whose final tag is
            warmup or knife.
        """
        record = self.current
        if record.round_number == 0 or record.finalized:
            logger.debug(f"Ignoring round end at tick {tick}: round {record.round_number} already closed")
            return None, []

        ct, t = safe_int(ct_score), safe_int(t_score)
        record.end_tick = tick
        record.winner = winner
        record.reason = safe_int(reason)
        record.ct_score_end = ct
        record.t_score_end = t

        cfg = self.config
        if not record.is_warmup:
            record.is_knife = (
                record.melee_kill_count >= cfg.knife_min_melee_kills
                and record.kill_count > 0
                and record.melee_kill_count / record.kill_count > cfg.knife_melee_ratio
            )

        if self.state.is_league_warmup_format and record.round_number <= cfg.league_warmup_max_round:
            record.mark_warmup()
        elif (
            not record.is_warmup
            and record.kill_count > 0
            and (ct, t) == (record.ct_score_start, record.t_score_start)
        ):
            logger.info(
                f"Round {record.round_number} left the score at {ct}-{t} despite "
                f"{record.kill_count} kills: treating as warmup"
            )
            record.mark_warmup()

        record.finalized = True
        if self.state.official_round_start is None and record.is_official:
            self.state.official_round_start = record.round_number

        if record.is_knife:
            logger.info(
                f"Round {record.round_number} is a knife round "
                f"({record.melee_kill_count}/{record.kill_count} melee kills)"
            )

        reclassified = [record.round_number] if record.is_gated else []
        return record, reclassified

    def _apply_league_warmup(self) -> list[int]:
        """Turn every already-finalized round up to the league warmup limit into warmup."""
        changed = []
        for number in range(1, self.config.league_warmup_max_round + 1):
            record = self._rounds.get(number)
            if record is None or not record.finalized or record.is_warmup:
                continue
            record.mark_warmup()
            changed.append(number)

        if self.state.official_round_start is not None and self.state.official_round_start in changed:
            self.state.official_round_start = next(
                (r.round_number for r in self.rounds() if r.is_official), None
            )
        if changed:
            logger.info(f"Reclassified rounds {changed} as warmup")
        return changed

    def summary(self) -> dict:
        return {
            "total_rounds": self.total_rounds,
            "official_rounds": self.official_rounds,
            "warmup_rounds": self.warmup_rounds,
            "knife_rounds": self.knife_rounds,
            "official_round_start": self.state.official_round_start,
            "source": self.league_source.value,
        }
