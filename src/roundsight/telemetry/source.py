"""
Telemetry source contracts.

A TelemetrySource opens a TelemetryStream. The stream walks the recording
frame by frame in non-decreasing tick order and answers on-demand queries
(tick, time, scores, roster) for the frame currently being processed.

Error taxonomy:
- SourceUnavailableError: the recording cannot be opened (fatal)
- TelemetryDecodeError: the recording breaks partway through traversal
  (the engine keeps what it has accumulated so far)
"""

from __future__ import annotations

import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from roundsight.core.constants import CS2_TICK_RATE
from roundsight.telemetry.events import PlayerSnapshot, TelemetryEvent, event_sort_key

logger = logging.getLogger(__name__)


class TelemetryError(RuntimeError):
    """Base class for telemetry source failures."""


class SourceUnavailableError(TelemetryError):
    """The recording could not be opened or reopened."""


class TelemetryDecodeError(TelemetryError):
    """The recording could not be decoded past a certain point."""


@dataclass
class TelemetryFrame:
    """All discrete events that occurred at one tick (possibly none)."""

    tick: int
    events: list[TelemetryEvent] = field(default_factory=list)


class TelemetryStream(ABC):
    """
    One traversal of a recording.

    Subclasses provide the ordered events, the last tick of the recording and
    the per-tick state queries. Frame iteration is shared.
    """

    map_name: str = "unknown"
    tick_rate: int = CS2_TICK_RATE

    def __init__(self) -> None:
        self._current_tick = 0

    # ------------------------------------------------------------------
    # Provided by concrete streams
    # ------------------------------------------------------------------

    @abstractmethod
    def _ordered_events(self) -> Sequence[TelemetryEvent]:
        """All discrete events sorted with ``event_sort_key``."""

    @property
    @abstractmethod
    def last_tick(self) -> int:
        """Last tick present in the recording."""

    @abstractmethod
    def scores(self) -> tuple[int, int]:
        """(ct_score, t_score) as of the current frame."""

    @abstractmethod
    def roster(self) -> list[PlayerSnapshot]:
        """Every participant's state as of the current frame."""

    def _enter_frame(self, frame: TelemetryFrame) -> None:
        """Hook called before a frame is handed to the consumer."""

    def _enter_event(self, event: TelemetryEvent) -> None:
        """Hook called before a single event is handed to the consumer."""

    def close(self) -> None:
        """Release any resources held by the stream."""

    # ------------------------------------------------------------------
    # Shared behaviour
    # ------------------------------------------------------------------

    @property
    def current_tick(self) -> int:
        return self._current_tick

    @property
    def current_time(self) -> float:
        """Elapsed game time in seconds at the current frame."""
        return self._current_tick / self.tick_rate if self.tick_rate > 0 else 0.0

    def frames(self, stride: int | None = None, include_events: bool = True) -> Iterator[TelemetryFrame]:
        """
        Walk the recording.

        Args:
            stride: When set, also yield a frame every ``stride`` ticks even
                if nothing happened at that tick.
            include_events: When False, only cadence frames are yielded and
                they carry no events (used by the frame-sampling pass).

        Yields:
            TelemetryFrame objects in strictly increasing tick order.
        """
        event_ticks: Iterator[int] = iter(())
        grouped: dict[int, list[TelemetryEvent]] = {}
        if include_events:
            for tick, group in itertools.groupby(self._ordered_events(), key=lambda e: e.tick):
                grouped[tick] = list(group)
            event_ticks = iter(sorted(grouped))

        cadence: Iterator[int] = iter(())
        if stride and stride > 0:
            cadence = iter(range(0, self.last_tick + 1, stride))

        last_yielded: int | None = None
        for tick in heapq.merge(event_ticks, cadence):
            if tick == last_yielded:
                continue
            last_yielded = tick
            frame = TelemetryFrame(tick=tick, events=grouped.get(tick, []))
            self._current_tick = tick
            self._enter_frame(frame)
            yield frame

    def deliver(self, frame: TelemetryFrame) -> Iterator[TelemetryEvent]:
        """
        Hand out the events of a frame one at a time.

        Per-event state (scores in particular) advances as each event is
        yielded, so a query made while handling an event reflects every
        earlier event of the same tick and none of the later ones.
        """
        for event in frame.events:
            self._enter_event(event)
            yield event

    def __enter__(self) -> TelemetryStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class TelemetrySource(ABC):
    """Something that can be opened (repeatedly) into a TelemetryStream."""

    @abstractmethod
    def open(self) -> TelemetryStream:
        """Open a fresh traversal. Raises SourceUnavailableError on failure."""

    @property
    def description(self) -> str:
        return self.__class__.__name__


def sort_events(events: Sequence[TelemetryEvent]) -> list[TelemetryEvent]:
    """Stable sort into delivery order."""
    return sorted(events, key=event_sort_key)
