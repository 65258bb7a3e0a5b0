"""
Snapshot Sampler

Two ways of attaching positional data to the match:

Interval mode (single pass):
    SnapshotSampler captures the full roster at most once per fixed tick
    interval while the event pass runs.

Frame mode (two passes):
    Pass one runs the event fold and drops every logged event into an
    EventBucket keyed by cadence slot. Pass two re-opens the recording,
    walks it at a fixed tick stride and FrameSampler joins each sampled tick
    with the events bucketed under that same slot.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable

from roundsight.analysis.classifier import RoundClassifier
from roundsight.analysis.models import DetailedEvent, Frame, RadarSnapshot
from roundsight.core.constants import CS2_TICK_RATE, ROUND_TIME_SECONDS, SNAPSHOT_INTERVAL_TICKS
from roundsight.core.utils import format_clock
from roundsight.telemetry.events import PlayerSnapshot

logger = logging.getLogger(__name__)


class SnapshotSampler:
    """Tick-gated periodic roster capture."""

    def __init__(self, interval_ticks: int = SNAPSHOT_INTERVAL_TICKS) -> None:
        self.interval_ticks = max(int(interval_ticks), 1)
        self.snapshots: list[RadarSnapshot] = []
        self._last_tick = 0

    def due(self, tick: int) -> bool:
        return tick - self._last_tick >= self.interval_ticks

    def maybe_capture(
        self,
        tick: int,
        time: float,
        round_number: int,
        roster: Callable[[], list[PlayerSnapshot]],
    ) -> RadarSnapshot | None:
        """
        Capture a snapshot if the interval has elapsed since the last one.

        ``roster`` is only called when a capture is due. An empty roster does
        not count as a capture.
        """
        if not self.due(tick):
            return None
        players = roster()
        if not players:
            return None

        snapshot = RadarSnapshot(tick=tick, time=time, round_number=round_number, players=players)
        self.snapshots.append(snapshot)
        self._last_tick = tick
        return snapshot


class EventBucket:
    """
    Logged events grouped by the frame tick they will be joined to.

    Events are filed under the cadence tick at or before them, so every
    event lands on exactly one sampled frame.
    """

    def __init__(self, stride: int = 1) -> None:
        self.stride = max(int(stride), 1)
        self._by_tick: dict[int, list[DetailedEvent]] = defaultdict(list)
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def slot(self, tick: int) -> int:
        return tick - tick % self.stride

    def add(self, event: DetailedEvent) -> None:
        self._by_tick[self.slot(event.tick)].append(event)
        self._count += 1

    def at(self, tick: int) -> list[DetailedEvent]:
        return list(self._by_tick.get(tick, ()))

    def ticks(self) -> list[int]:
        return sorted(self._by_tick)


class FrameSampler:
    """Builds frame-mode records from sampled ticks and bucketed events."""

    def __init__(
        self,
        classifier: RoundClassifier,
        bucket: EventBucket,
        tick_rate: int = CS2_TICK_RATE,
        round_time_seconds: float = ROUND_TIME_SECONDS,
    ) -> None:
        self.classifier = classifier
        self.bucket = bucket
        self.tick_rate = tick_rate if tick_rate > 0 else CS2_TICK_RATE
        self.round_time_seconds = round_time_seconds
        self.frames: list[Frame] = []

    def round_clock(self, tick: int, round_number: int) -> str:
        """Round countdown at a tick, floored at 00:00."""
        record = self.classifier.record(round_number)
        start_tick = record.start_tick if record is not None and round_number > 0 else 0
        elapsed = max(tick - start_tick, 0) / self.tick_rate
        return format_clock(self.round_time_seconds - elapsed)

    def build(self, tick: int, players: list[PlayerSnapshot]) -> Frame:
        round_number = self.classifier.round_at_tick(tick)
        record = self.classifier.record(round_number)
        frame = Frame(
            tick=tick,
            time=tick / self.tick_rate,
            round_number=round_number,
            clock=self.round_clock(tick, round_number),
            is_warmup=record.is_warmup if record else False,
            is_knife=record.is_knife if record else False,
            players=players,
            events=[e.frame_marker() for e in self.bucket.at(tick)],
        )
        self.frames.append(frame)
        return frame
