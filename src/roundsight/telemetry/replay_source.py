"""
Scripted telemetry source.

Replays a fixed list of events (and optional roster keyframes) through the
same stream interface as a decoded recording. Used for tests, fixtures and
JSON event files exported by other tools.

JSON layout::

    {
      "map": "de_mirage",
      "tick_rate": 64,
      "last_tick": 40000,
      "events": [
        {"type": "round_start", "tick": 100, "ct_score": 0, "t_score": 0},
        {"type": "kill", "tick": 900, "weapon": "ak47", "headshot": true,
         "killer": {"steam_id": 1, "name": "a", "team": "T", "position": [1, 2, 3]},
         "victim": {"steam_id": 2, "name": "b", "team": "CT"}},
        {"type": "round_end", "tick": 2000, "winner": "T", "reason": 9}
      ],
      "roster": {"0": [{"steam_id": 1, "name": "a", "team": "T", ...}]}
    }
"""

from __future__ import annotations

import bisect
import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from roundsight.core.constants import CS2_TICK_RATE
from roundsight.core.utils import (
    safe_bool,
    safe_float,
    safe_int,
    safe_str,
    team_to_side,
    winner_from_reason,
)
from roundsight.telemetry.events import (
    BombDefused,
    BombExploded,
    BombPlanted,
    Kill,
    PlayerDamaged,
    PlayerRef,
    PlayerSnapshot,
    Position,
    RoundEnd,
    RoundStart,
    TelemetryEvent,
)
from roundsight.telemetry.source import (
    SourceUnavailableError,
    TelemetryDecodeError,
    TelemetryFrame,
    TelemetrySource,
    TelemetryStream,
    sort_events,
)

logger = logging.getLogger(__name__)


class ReplayTelemetryStream(TelemetryStream):
    """Stream over an in-memory event list."""

    def __init__(
        self,
        events: Sequence[TelemetryEvent],
        roster_keyframes: Mapping[int, list[PlayerSnapshot]],
        map_name: str,
        tick_rate: int,
        last_tick: int | None,
        fail_at_tick: int | None,
    ) -> None:
        super().__init__()
        self.map_name = map_name
        self.tick_rate = tick_rate
        self._events = sort_events(events)
        self._keyframe_ticks = sorted(roster_keyframes)
        self._keyframes = dict(roster_keyframes)
        self._fail_at_tick = fail_at_tick

        known_ticks = [e.tick for e in self._events] + self._keyframe_ticks
        self._last_tick = last_tick if last_tick is not None else max(known_ticks, default=0)

        self._ct_score = 0
        self._t_score = 0

    def _ordered_events(self) -> Sequence[TelemetryEvent]:
        return self._events

    @property
    def last_tick(self) -> int:
        return self._last_tick

    def _enter_frame(self, frame: TelemetryFrame) -> None:
        if self._fail_at_tick is not None and frame.tick >= self._fail_at_tick:
            raise TelemetryDecodeError(f"Scripted decode failure at tick {frame.tick}")

    def _enter_event(self, event: TelemetryEvent) -> None:
        if isinstance(event, RoundStart):
            # A round start without scores keeps the running score
            if event.ct_score is not None:
                self._ct_score = safe_int(event.ct_score, self._ct_score)
            if event.t_score is not None:
                self._t_score = safe_int(event.t_score, self._t_score)
        elif isinstance(event, RoundEnd):
            if event.ct_score is not None or event.t_score is not None:
                self._ct_score = safe_int(event.ct_score, self._ct_score)
                self._t_score = safe_int(event.t_score, self._t_score)
            elif event.winner == "CT":
                self._ct_score += 1
            elif event.winner == "T":
                self._t_score += 1

    def scores(self) -> tuple[int, int]:
        return self._ct_score, self._t_score

    def roster(self) -> list[PlayerSnapshot]:
        idx = bisect.bisect_right(self._keyframe_ticks, self.current_tick) - 1
        if idx < 0:
            return []
        return list(self._keyframes[self._keyframe_ticks[idx]])


class ReplayTelemetrySource(TelemetrySource):
    """
    A TelemetrySource backed by a list of events.

    Args:
        events: Events in any order; they are sorted into delivery order.
        roster: Roster keyframes, tick -> snapshots. The roster at a tick is
            the latest keyframe at or before it.
        map_name: Map reported in the metadata.
        tick_rate: Ticks per second.
        last_tick: Last tick of the recording (defaults to the last known tick).
        fail_at_tick: Raise TelemetryDecodeError once traversal reaches this tick.
    """

    def __init__(
        self,
        events: Sequence[TelemetryEvent],
        roster: Mapping[int, list[PlayerSnapshot]] | None = None,
        map_name: str = "unknown",
        tick_rate: int = CS2_TICK_RATE,
        last_tick: int | None = None,
        fail_at_tick: int | None = None,
    ) -> None:
        self.events = list(events)
        self.roster = dict(roster or {})
        self.map_name = map_name
        self.tick_rate = tick_rate
        self.last_tick = last_tick
        self.fail_at_tick = fail_at_tick
        self.open_count = 0

    def open(self) -> ReplayTelemetryStream:
        self.open_count += 1
        return ReplayTelemetryStream(
            self.events,
            self.roster,
            map_name=self.map_name,
            tick_rate=self.tick_rate,
            last_tick=self.last_tick,
            fail_at_tick=self.fail_at_tick,
        )

    @property
    def description(self) -> str:
        return f"replay ({len(self.events)} events)"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReplayTelemetrySource:
        """Build a source from the JSON layout described in the module docstring."""
        events = [event_from_dict(raw) for raw in data.get("events", [])]
        roster = {
            safe_int(tick): [snapshot_from_dict(p) for p in players]
            for tick, players in (data.get("roster") or {}).items()
        }
        last_tick = data.get("last_tick")
        return cls(
            [e for e in events if e is not None],
            roster=roster,
            map_name=safe_str(data.get("map"), "unknown"),
            tick_rate=safe_int(data.get("tick_rate"), CS2_TICK_RATE),
            last_tick=safe_int(last_tick) if last_tick is not None else None,
        )

    @classmethod
    def from_json(cls, path: str | Path) -> ReplayTelemetrySource:
        """Load a scripted source from a JSON event file."""
        path = Path(path)
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceUnavailableError(f"Cannot open event file {path}: {e}") from e
        logger.info(f"Loaded {len(data.get('events', []))} scripted events from {path}")
        return cls.from_dict(data)


# ============================================================================
# JSON decoding helpers
# ============================================================================


def _position(raw: Any) -> Position | None:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return Position(safe_float(raw.get("x")), safe_float(raw.get("y")), safe_float(raw.get("z")))
    values = list(raw) + [0.0, 0.0, 0.0]
    return Position(safe_float(values[0]), safe_float(values[1]), safe_float(values[2]))


def player_from_dict(raw: Mapping[str, Any] | None) -> PlayerRef | None:
    if not raw or raw.get("steam_id") is None:
        return None
    return PlayerRef(
        steam_id=safe_int(raw.get("steam_id")),
        name=safe_str(raw.get("name")),
        team=safe_str(raw.get("team")),
        position=_position(raw.get("position")) or Position(),
        is_alive=safe_bool(raw.get("is_alive"), default=True),
    )


def snapshot_from_dict(raw: Mapping[str, Any]) -> PlayerSnapshot:
    return PlayerSnapshot(
        steam_id=safe_int(raw.get("steam_id")),
        name=safe_str(raw.get("name")),
        team=safe_str(raw.get("team")),
        position=_position(raw.get("position")) or Position(),
        health=safe_int(raw.get("health"), 100),
        armor=safe_int(raw.get("armor")),
        money=safe_int(raw.get("money")),
        weapon=safe_str(raw.get("weapon")),
        is_alive=safe_bool(raw.get("is_alive"), default=True),
    )


def _optional_int(value: Any) -> int | None:
    return None if value is None else safe_int(value)


def event_from_dict(raw: Mapping[str, Any]) -> TelemetryEvent | None:
    """Decode one scripted event; unknown types are skipped."""
    kind = safe_str(raw.get("type")).lower()
    tick = safe_int(raw.get("tick"))

    if kind == "round_start":
        return RoundStart(tick, _optional_int(raw.get("ct_score")), _optional_int(raw.get("t_score")))
    if kind == "round_end":
        winner = safe_str(raw.get("winner"))
        reason = safe_int(raw.get("reason"))
        return RoundEnd(
            tick,
            winner=team_to_side(winner) or winner_from_reason(reason),
            reason=reason,
            ct_score=_optional_int(raw.get("ct_score")),
            t_score=_optional_int(raw.get("t_score")),
        )
    if kind == "kill":
        return Kill(
            tick,
            killer=player_from_dict(raw.get("killer")),
            victim=player_from_dict(raw.get("victim")),
            assister=player_from_dict(raw.get("assister")),
            weapon=safe_str(raw.get("weapon"), "unknown"),
            is_headshot=safe_bool(raw.get("headshot")),
        )
    if kind in ("player_damaged", "player_hurt", "damage"):
        return PlayerDamaged(
            tick,
            attacker=player_from_dict(raw.get("attacker")),
            amount=safe_int(raw.get("amount")),
            victim=player_from_dict(raw.get("victim")),
        )
    if kind == "bomb_planted":
        return BombPlanted(
            tick,
            player=player_from_dict(raw.get("player")),
            position=_position(raw.get("position")),
            site=safe_str(raw.get("site")),
        )
    if kind == "bomb_defused":
        return BombDefused(tick, player=player_from_dict(raw.get("player")))
    if kind in ("bomb_exploded", "bomb_explode"):
        return BombExploded(tick, position=_position(raw.get("position")))

    logger.debug(f"Skipping unknown scripted event type: {kind!r}")
    return None
