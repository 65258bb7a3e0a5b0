"""
Match engine.

MatchEngine folds the frames of one telemetry traversal into the round
classifier, the player table, the heatmap and the event log. analyze_match
drives one or two traversals (depending on the sampler mode) and assembles
the final MatchAnalysis.

Per-event order: the classifier updates first, everything else reads the
classifier's tag for the current round.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from roundsight.analysis.accumulator import PlayerTable
from roundsight.analysis.classifier import RoundClassifier
from roundsight.analysis.heatmap import HeatmapBinner
from roundsight.analysis.models import DetailedEvent, Frame, MatchAnalysis, MatchMetadata, MatchSummary
from roundsight.analysis.sampler import EventBucket, FrameSampler, SnapshotSampler
from roundsight.analysis.summary import analyze_player, mvp_row, player_row, select_mvp
from roundsight.core.config import RoundSightConfig
from roundsight.core.constants import BOMB_SITE_Z_SPLIT, BOMB_TIMER_SECONDS, EventType
from roundsight.core.utils import format_duration, timed
from roundsight.telemetry.events import (
    BombDefused,
    BombExploded,
    BombPlanted,
    Kill,
    PlayerDamaged,
    PlayerRef,
    Position,
    RoundEnd,
    RoundStart,
    TelemetryEvent,
)
from roundsight.telemetry.source import (
    TelemetryDecodeError,
    TelemetryFrame,
    TelemetrySource,
    TelemetryStream,
)

logger = logging.getLogger(__name__)


def guess_bomb_site(position: Position | None) -> str:
    """Coarse site guess from plant height."""
    if position is None:
        return ""
    return "A" if position.z < BOMB_SITE_Z_SPLIT else "B"


def _player_data(player: PlayerRef | None) -> dict | None:
    if player is None:
        return None
    return {
        "steam_id": player.steam_id,
        "name": player.name,
        "team": player.team,
        "position": player.position.to_dict(),
    }


class MatchEngine:
    """
    Stateful fold over one telemetry traversal.

    One engine instance holds all mutable state of a single analysis run.
    """

    def __init__(self, config: RoundSightConfig | None = None, target_steam_id: int | None = None):
        self.config = config or RoundSightConfig()
        self.target_steam_id = target_steam_id

        self.classifier = RoundClassifier(self.config.engine)
        self.table = PlayerTable()
        self.heatmap = HeatmapBinner(
            precision=self.config.heatmap.precision,
            top_hotspots=self.config.heatmap.top_hotspots,
        )
        self.events: list[DetailedEvent] = []
        self._events_by_round: dict[int, list[DetailedEvent]] = defaultdict(list)

        sampler_cfg = self.config.sampler
        self.sampler: SnapshotSampler | None = None
        self.bucket: EventBucket | None = None
        if sampler_cfg.mode == "interval":
            self.sampler = SnapshotSampler(sampler_cfg.snapshot_interval_ticks)
        elif sampler_cfg.mode == "frames":
            self.bucket = EventBucket(sampler_cfg.frame_stride_ticks)

        self.map_name = "unknown"
        self.tick_rate = sampler_cfg.tick_rate
        self.last_time = 0.0
        self.score_ct = 0
        self.score_t = 0
        self.partial = False

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def run(self, stream: TelemetryStream) -> None:
        """
        Fold a whole stream.

        A TelemetryDecodeError ends the traversal early; everything folded
        up to that point is kept and the run is marked partial.
        """
        self.map_name = stream.map_name
        self.tick_rate = stream.tick_rate
        self.heatmap.map_name = stream.map_name

        stride = self.sampler.interval_ticks if self.sampler else None
        frame_count = 0
        try:
            for frame in stream.frames(stride=stride):
                self.on_frame(frame, stream)
                frame_count += 1
        except TelemetryDecodeError as e:
            self.partial = True
            logger.warning(f"Telemetry decode failed at tick {stream.current_tick}, keeping partial results: {e}")

        logger.info(
            f"Event pass complete: {frame_count} frames, {len(self.events)} logged events, "
            f"{self.classifier.total_rounds} rounds"
        )

    def on_frame(self, frame: TelemetryFrame, stream: TelemetryStream) -> None:
        for event in stream.deliver(frame):
            self.handle(event, stream)

        self.last_time = stream.current_time
        if self.sampler is not None:
            self.sampler.maybe_capture(
                frame.tick, stream.current_time, self.classifier.current_round, stream.roster
            )

    def handle(self, event: TelemetryEvent, stream: TelemetryStream) -> None:
        """Dispatch one event."""
        if isinstance(event, RoundStart):
            self._on_round_start(event, stream)
        elif isinstance(event, RoundEnd):
            self._on_round_end(event, stream)
        elif isinstance(event, Kill):
            self._on_kill(event, stream)
        elif isinstance(event, PlayerDamaged):
            self._on_damage(event)
        elif isinstance(event, BombPlanted):
            self._on_bomb_planted(event, stream)
        elif isinstance(event, BombDefused):
            self._on_bomb_defused(event, stream)
        elif isinstance(event, BombExploded):
            self._on_bomb_exploded(event, stream)
        else:
            logger.debug(f"Ignoring unsupported event: {type(event).__name__}")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_round_start(self, event: RoundStart, stream: TelemetryStream) -> None:
        if event.ct_score is not None and event.t_score is not None:
            ct, t = event.ct_score, event.t_score
        else:
            ct, t = stream.scores()
        self.score_ct, self.score_t = ct, t

        self._reclassify(self.classifier.on_round_start(ct, t, tick=event.tick))
        self._log(
            EventType.ROUND_START,
            event.tick,
            stream.current_time,
            {"ct_score": ct, "t_score": t},
        )

    def _on_round_end(self, event: RoundEnd, stream: TelemetryStream) -> None:
        if event.ct_score is not None and event.t_score is not None:
            ct, t = event.ct_score, event.t_score
        else:
            ct, t = stream.scores()
        self.score_ct, self.score_t = ct, t

        self._log(
            EventType.ROUND_END,
            event.tick,
            stream.current_time,
            {"winner": event.winner, "reason": event.reason, "ct_score": ct, "t_score": t},
        )
        record, reclassified = self.classifier.on_round_end(
            ct, t, tick=event.tick, winner=event.winner, reason=event.reason
        )
        if record is None:
            return
        self._reclassify(reclassified)
        self._retag(record.round_number)

    def _on_kill(self, event: Kill, stream: TelemetryStream) -> None:
        counted = self.classifier.on_kill(event.weapon)
        round_number = self.classifier.current_round

        killer, victim = event.killer, event.victim
        self._log(
            EventType.KILL,
            event.tick,
            stream.current_time,
            {
                "killer": _player_data(killer),
                "victim": _player_data(victim),
                "assister": event.assister.name if event.assister else None,
                "headshot": event.is_headshot,
                "weapon": event.weapon,
            },
            position=victim.position if victim else (killer.position if killer else None),
            player=killer.name if killer else "",
        )

        # Heatmap is never gated by round classification
        if killer is not None:
            self.heatmap.add_point(killer.position, EventType.KILL)
        if victim is not None:
            self.heatmap.add_point(victim.position, EventType.DEATH)

        if not counted:
            return
        self.table.record_involvement(killer, "killer", headshot=event.is_headshot, round_number=round_number)
        self.table.record_involvement(victim, "victim", round_number=round_number)
        self.table.record_involvement(event.assister, "assister", round_number=round_number)

    def _on_damage(self, event: PlayerDamaged) -> None:
        if self.classifier.is_gated():
            return
        self.table.record_damage(event.attacker, event.amount, round_number=self.classifier.current_round)

    def _on_bomb_planted(self, event: BombPlanted, stream: TelemetryStream) -> None:
        position = event.position or (event.player.position if event.player else None)
        self._log(
            EventType.BOMB_PLANTED,
            event.tick,
            stream.current_time,
            {
                "player": event.player.name if event.player else None,
                "position": position.to_dict() if position else None,
                "site": event.site or guess_bomb_site(position),
                "timer": BOMB_TIMER_SECONDS,
            },
            position=position,
            player=event.player.name if event.player else "",
        )
        self.heatmap.add_point(position, EventType.BOMB_PLANTED)

    def _on_bomb_defused(self, event: BombDefused, stream: TelemetryStream) -> None:
        position = event.player.position if event.player else None
        self._log(
            EventType.BOMB_DEFUSED,
            event.tick,
            stream.current_time,
            {
                "player": event.player.name if event.player else None,
                "position": position.to_dict() if position else None,
            },
            position=position,
            player=event.player.name if event.player else "",
        )

    def _on_bomb_exploded(self, event: BombExploded, stream: TelemetryStream) -> None:
        self._log(
            EventType.BOMB_EXPLODED,
            event.tick,
            stream.current_time,
            {"position": event.position.to_dict() if event.position else None},
            position=event.position,
        )
        self.heatmap.add_point(event.position, EventType.BOMB_EXPLODED)

    # ------------------------------------------------------------------
    # Event log and reconciliation
    # ------------------------------------------------------------------

    def _log(
        self,
        event_type: EventType,
        tick: int,
        time: float,
        data: dict,
        position: Position | None = None,
        player: str = "",
    ) -> DetailedEvent:
        record = self.classifier.current
        entry = DetailedEvent(
            event_type=event_type.value,
            tick=tick,
            time=time,
            round_number=record.round_number,
            is_warmup=record.is_warmup,
            is_knife=record.is_knife,
            data=data,
            position=position,
            player=player,
        )
        self.events.append(entry)
        self._events_by_round[record.round_number].append(entry)
        if self.bucket is not None:
            self.bucket.add(entry)
        return entry

    def _retag(self, round_number: int) -> None:
        record = self.classifier.record(round_number)
        if record is None:
            return
        for entry in self._events_by_round.get(round_number, ()):
            entry.is_warmup = record.is_warmup
            entry.is_knife = record.is_knife

    def _reclassify(self, round_numbers: list[int]) -> None:
        """Drop the statistics of rounds whose final tag is warmup or knife."""
        for round_number in round_numbers:
            if self.table.revert_round(round_number):
                logger.info(f"Removed statistics accrued in round {round_number}")
            self._retag(round_number)

    # ------------------------------------------------------------------
    # Result assembly
    # ------------------------------------------------------------------

    def build_result(self, frames: list[Frame] | None = None) -> MatchAnalysis:
        for round_number in list(self._events_by_round):
            self._retag(round_number)

        classifier = self.classifier
        official = classifier.official_rounds
        rows = [player_row(acc, official) for acc in self.table.players()]
        mvp, top_rating = select_mvp(rows)
        best = mvp_row(rows)

        target = None
        if self.target_steam_id is not None:
            row = next((r for r in rows if r.steam_id == self.target_steam_id), None)
            if row is None:
                logger.warning(f"Requested player {self.target_steam_id} was not observed")
            else:
                kills_by_round = {
                    r.round_number: self.table.round_kills(r.round_number, row.steam_id)
                    for r in classifier.rounds()
                    if not r.is_gated
                }
                target = analyze_player(row, official, kills_by_round, self.config.summary)

        metadata = MatchMetadata(
            map_name=self.map_name,
            duration=format_duration(self.last_time),
            rounds=official,
            total_rounds=classifier.total_rounds,
            score_ct=self.score_ct,
            score_t=self.score_t,
            warmup_rounds=classifier.warmup_rounds,
            knife_round=classifier.knife_rounds > 0,
            knife_rounds=classifier.knife_rounds,
            source=classifier.league_source.value,
            official_round_start=classifier.official_round_start,
            tick_rate=self.tick_rate,
            partial=self.partial,
        )

        return MatchAnalysis(
            metadata=metadata,
            rounds=[r.to_dict() for r in classifier.rounds()],
            events=list(self.events),
            players=rows,
            heatmap=self.heatmap.to_dict(),
            snapshots=list(self.sampler.snapshots) if self.sampler else [],
            frames=list(frames or []),
            summary=MatchSummary(
                mvp=mvp,
                rating=top_rating,
                mvp_steam_id=best.steam_id if best else None,
                target_player=target,
            ),
        )


def sample_frames(engine: MatchEngine, stream: TelemetryStream) -> list[Frame]:
    """
    Second pass of frame mode: walk the reopened stream at the frame stride
    and join each sampled tick with the events bucketed in the first pass.
    """
    sampler_cfg = engine.config.sampler
    frame_sampler = FrameSampler(
        engine.classifier,
        engine.bucket or EventBucket(sampler_cfg.frame_stride_ticks),
        tick_rate=stream.tick_rate,
        round_time_seconds=sampler_cfg.round_time_seconds,
    )
    try:
        for frame in stream.frames(stride=sampler_cfg.frame_stride_ticks, include_events=False):
            frame_sampler.build(frame.tick, stream.roster())
    except TelemetryDecodeError as e:
        engine.partial = True
        logger.warning(f"Frame pass stopped at tick {stream.current_tick}: {e}")

    logger.info(f"Frame pass complete: {len(frame_sampler.frames)} frames")
    return frame_sampler.frames


@timed
def analyze_match(
    source: TelemetrySource,
    target_steam_id: int | None = None,
    config: RoundSightConfig | None = None,
) -> MatchAnalysis:
    """
    Analyze one recording.

    Args:
        source: Telemetry source; opened once, or twice in frame mode.
        target_steam_id: Player to produce a deep analysis for.
        config: Analysis configuration (defaults when omitted).

    Returns:
        MatchAnalysis

    Raises:
        SourceUnavailableError: If the source cannot be opened for a pass.
    """
    config = config or RoundSightConfig()
    engine = MatchEngine(config, target_steam_id=target_steam_id)

    logger.info(f"Analyzing {source.description} (sampler mode: {config.sampler.mode})")
    with source.open() as stream:
        engine.run(stream)

    frames: list[Frame] = []
    if config.sampler.mode == "frames":
        with source.open() as stream:
            frames = sample_frames(engine, stream)

    result = engine.build_result(frames)
    logger.info(
        f"Analysis complete: {result.metadata.rounds} official rounds, "
        f"{len(result.players)} players, MVP {result.summary.mvp}"
    )
    return result
