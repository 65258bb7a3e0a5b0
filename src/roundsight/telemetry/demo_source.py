"""
Demo Telemetry Source for CS2 Replay Files

Decodes a .dem recording with demoparser2 and exposes it through the
TelemetryStream interface:
- Round boundaries, kills, damage and bomb actions as ordered events
- Team scores at round boundaries (team_rounds_total per team)
- Full roster snapshots at sampled ticks (position, health, armor, money,
  active weapon, alive flag)

demoparser2 returns one DataFrame per event type; column names vary between
parser versions, so every lookup goes through a list of candidate names.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from demoparser2 import DemoParser as Demoparser2

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

# Player props requested on events (prefixed attacker_/user_/assister_ by the parser)
EVENT_PLAYER_PROPS = ["X", "Y", "Z", "team_num", "is_alive"]

# Props requested for roster snapshots
ROSTER_PROPS = [
    "X",
    "Y",
    "Z",
    "health",
    "armor_value",
    "balance",
    "active_weapon_name",
    "is_alive",
    "team_num",
]

SCORE_PROPS = ["team_num", "team_rounds_total"]

# Scores are read a few ticks after round_end, once the game has applied them
SCORE_SETTLE_TICKS = 8

# Roster ticks are decoded in chunks so a late failure keeps earlier frames
ROSTER_CHUNK_TICKS = 2048


def _find_column(df: pd.DataFrame, options: Sequence[str]) -> str | None:
    """Find first matching column from options."""
    for col in options:
        if col in df.columns:
            return col
    return None


def _player_columns(df: pd.DataFrame, prefixes: Sequence[str]) -> dict[str, str | None]:
    """Resolve the id/name/team/position/alive columns for one participant."""

    def find(suffixes: Sequence[str]) -> str | None:
        return _find_column(df, [f"{p}_{s}" for p in prefixes for s in suffixes])

    return {
        "id": find(["steamid", "steam_id"]),
        "name": find(["name"]),
        "team": find(["team_num", "team_name", "side", "team"]),
        "x": find(["X", "x"]),
        "y": find(["Y", "y"]),
        "z": find(["Z", "z"]),
        "alive": find(["is_alive"]),
    }


def _player_ref(record: dict[str, Any], cols: dict[str, str | None]) -> PlayerRef | None:
    """Build a PlayerRef from a record, or None when the player is missing."""
    id_col = cols["id"]
    steam_id = safe_int(record.get(id_col)) if id_col else 0
    if steam_id <= 0:
        return None

    team = team_to_side(record.get(cols["team"])) if cols["team"] else ""

    return PlayerRef(
        steam_id=steam_id,
        name=safe_str(record.get(cols["name"])) if cols["name"] else "",
        team=team,
        position=Position(
            safe_float(record.get(cols["x"])) if cols["x"] else 0.0,
            safe_float(record.get(cols["y"])) if cols["y"] else 0.0,
            safe_float(record.get(cols["z"])) if cols["z"] else 0.0,
        ),
        is_alive=safe_bool(record.get(cols["alive"]), default=True) if cols["alive"] else True,
    )


def _winner_side(record: dict[str, Any]) -> str:
    """Winner of a round_end record as "CT"/"T", falling back to the reason code."""
    return team_to_side(record.get("winner")) or winner_from_reason(record.get("reason"))


class DemoTelemetryStream(TelemetryStream):
    """One traversal of a decoded .dem recording."""

    def __init__(self, parser: Any, demo_path: Path, tick_rate: int = CS2_TICK_RATE) -> None:
        super().__init__()
        self._parser = parser
        self.demo_path = demo_path
        self.tick_rate = tick_rate
        self.map_name = self._read_map_name()

        self._score_ticks: list[int] = []
        self._score_values: list[tuple[int, int]] = []
        self._score_probe_tick = 0

        self._roster_ticks: list[int] = []
        self._roster: dict[int, list[PlayerSnapshot]] = {}
        self._pending_roster_ticks: list[int] = []

        self._events = self._build_events()
        self._last_tick = self._read_last_tick()
        logger.info(
            f"Decoded {len(self._events)} events from {demo_path.name} "
            f"(map={self.map_name}, last tick={self._last_tick})"
        )

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def _read_map_name(self) -> str:
        try:
            header = self._parser.parse_header()
        except Exception as e:
            logger.warning(f"Failed to parse header: {e}")
            return "unknown"
        if isinstance(header, dict):
            return safe_str(header.get("map_name"), "unknown") or "unknown"
        return "unknown"

    def _read_last_tick(self) -> int:
        last_event_tick = max((e.tick for e in self._events), default=0)
        try:
            header = self._parser.parse_header()
            playback_ticks = safe_int(header.get("playback_ticks")) if isinstance(header, dict) else 0
        except Exception:
            playback_ticks = 0
        return max(last_event_tick, playback_ticks)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _parse_event_safe(
        self, event_name: str, player_props: list[str] | None = None
    ) -> pd.DataFrame:
        """Safely parse an event, returning empty DataFrame on failure."""
        try:
            if player_props:
                df = self._parser.parse_event(event_name, player=player_props)
            else:
                df = self._parser.parse_event(event_name)
            if df is not None and not df.empty:
                logger.debug(f"Parsed {len(df)} {event_name} events")
                return df
        except Exception as e:
            logger.debug(f"Could not parse {event_name}: {e}")
        return pd.DataFrame()

    @staticmethod
    def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
        if df.empty or "tick" not in df.columns:
            return []
        df = df.copy()
        df["tick"] = pd.to_numeric(df["tick"], errors="coerce").fillna(0).astype(np.int64)
        return df.sort_values("tick", kind="stable").to_dict("records")

    def _build_events(self) -> list[TelemetryEvent]:
        events: list[TelemetryEvent] = []

        round_end_records = self._records(self._parse_event_safe("round_end"))
        round_start_records = self._records(self._parse_event_safe("round_start"))

        # Score timeline first: RoundStart events carry the score at their tick
        self._build_score_timeline(
            [r["tick"] for r in round_start_records],
            [r["tick"] + SCORE_SETTLE_TICKS for r in round_end_records],
        )

        for r in round_start_records:
            ct, t = self._score_at(r["tick"])
            events.append(RoundStart(tick=int(r["tick"]), ct_score=ct, t_score=t))

        for r in round_end_records:
            events.append(
                RoundEnd(tick=int(r["tick"]), winner=_winner_side(r), reason=safe_int(r.get("reason")))
            )

        events.extend(self._build_kills())
        events.extend(self._build_damages())
        events.extend(self._build_bomb_events())

        return sort_events(events)

    def _build_kills(self) -> list[Kill]:
        df = self._parse_event_safe("player_death", player_props=EVENT_PLAYER_PROPS)
        if df.empty:
            return []
        killer_cols = _player_columns(df, ["attacker"])
        victim_cols = _player_columns(df, ["user", "victim"])
        assister_cols = _player_columns(df, ["assister"])
        weapon_col = _find_column(df, ["weapon", "weapon_name"])
        hs_col = _find_column(df, ["headshot", "is_headshot"])

        kills = []
        for r in self._records(df):
            kills.append(
                Kill(
                    tick=int(r["tick"]),
                    killer=_player_ref(r, killer_cols),
                    victim=_player_ref(r, victim_cols),
                    assister=_player_ref(r, assister_cols),
                    weapon=safe_str(r.get(weapon_col), "unknown") if weapon_col else "unknown",
                    is_headshot=safe_bool(r.get(hs_col)) if hs_col else False,
                )
            )
        logger.info(f"Built {len(kills)} kill events")
        return kills

    def _build_damages(self) -> list[PlayerDamaged]:
        df = self._parse_event_safe("player_hurt", player_props=EVENT_PLAYER_PROPS)
        if df.empty:
            return []
        attacker_cols = _player_columns(df, ["attacker"])
        victim_cols = _player_columns(df, ["user", "victim"])
        dmg_col = _find_column(df, ["dmg_health", "damage", "health_damage"])

        damages = []
        for r in self._records(df):
            damages.append(
                PlayerDamaged(
                    tick=int(r["tick"]),
                    attacker=_player_ref(r, attacker_cols),
                    amount=safe_int(r.get(dmg_col)) if dmg_col else 0,
                    victim=_player_ref(r, victim_cols),
                )
            )
        logger.info(f"Built {len(damages)} damage events")
        return damages

    def _build_bomb_events(self) -> list[TelemetryEvent]:
        bomb_events: list[TelemetryEvent] = []

        planted = self._parse_event_safe("bomb_planted", player_props=["X", "Y", "Z", "team_num"])
        plant_positions: list[tuple[int, Position]] = []
        if not planted.empty:
            cols = _player_columns(planted, ["user", "player"])
            site_col = _find_column(planted, ["site_name", "bombsite"])
            for r in self._records(planted):
                player = _player_ref(r, cols)
                position = player.position if player else None
                if position is not None:
                    plant_positions.append((int(r["tick"]), position))
                bomb_events.append(
                    BombPlanted(
                        tick=int(r["tick"]),
                        player=player,
                        position=position,
                        site=safe_str(r.get(site_col)) if site_col else "",
                    )
                )

        defused = self._parse_event_safe("bomb_defused", player_props=["X", "Y", "Z", "team_num"])
        if not defused.empty:
            cols = _player_columns(defused, ["user", "player"])
            for r in self._records(defused):
                bomb_events.append(BombDefused(tick=int(r["tick"]), player=_player_ref(r, cols)))

        # The bomb does not move once planted: report the latest plant position
        plant_ticks = [tick for tick, _ in plant_positions]
        for r in self._records(self._parse_event_safe("bomb_exploded")):
            idx = bisect.bisect_right(plant_ticks, int(r["tick"])) - 1
            position = plant_positions[idx][1] if idx >= 0 else None
            bomb_events.append(BombExploded(tick=int(r["tick"]), position=position))

        logger.info(f"Built {len(bomb_events)} bomb events")
        return bomb_events

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def _build_score_timeline(self, *tick_groups: Iterable[int]) -> None:
        ticks = sorted({int(t) for group in tick_groups for t in group})
        if not ticks:
            return
        try:
            df = self._parser.parse_ticks(SCORE_PROPS, ticks=ticks)
        except Exception as e:
            logger.warning(f"Failed to parse team scores: {e}")
            return
        if df is None or df.empty or "team_rounds_total" not in df.columns:
            return

        df = df.copy()
        df["team_num"] = pd.to_numeric(df["team_num"], errors="coerce").fillna(0).astype(int)
        df["team_rounds_total"] = pd.to_numeric(df["team_rounds_total"], errors="coerce").fillna(0)
        per_team = df.groupby(["tick", "team_num"])["team_rounds_total"].max().unstack(fill_value=0)

        for tick, row in per_team.sort_index().iterrows():
            self._score_ticks.append(int(tick))
            self._score_values.append((safe_int(row.get(3, 0)), safe_int(row.get(2, 0))))

    def _score_at(self, tick: int) -> tuple[int, int]:
        idx = bisect.bisect_right(self._score_ticks, tick) - 1
        if idx < 0:
            return 0, 0
        return self._score_values[idx]

    def scores(self) -> tuple[int, int]:
        return self._score_at(self._score_probe_tick)

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def _load_roster_chunk(self) -> None:
        chunk = self._pending_roster_ticks[:ROSTER_CHUNK_TICKS]
        self._pending_roster_ticks = self._pending_roster_ticks[ROSTER_CHUNK_TICKS:]
        try:
            df = self._parser.parse_ticks(ROSTER_PROPS, ticks=chunk)
        except Exception as e:
            raise TelemetryDecodeError(
                f"Failed to decode player state for ticks {chunk[0]}-{chunk[-1]}: {e}"
            ) from e
        if df is None or df.empty:
            return

        id_col = _find_column(df, ["steamid", "steam_id"])
        for tick, group in df.groupby("tick", sort=True):
            snapshots = []
            for r in group.to_dict("records"):
                # Spectators and GOTV controllers are not on either side
                team = team_to_side(r.get("team_num"))
                if not team:
                    continue
                snapshots.append(
                    PlayerSnapshot(
                        steam_id=safe_int(r.get(id_col)) if id_col else 0,
                        name=safe_str(r.get("name")),
                        team=team,
                        position=Position(
                            safe_float(r.get("X")), safe_float(r.get("Y")), safe_float(r.get("Z"))
                        ),
                        health=safe_int(r.get("health")),
                        armor=safe_int(r.get("armor_value")),
                        money=safe_int(r.get("balance")),
                        weapon=safe_str(r.get("active_weapon_name")),
                        is_alive=safe_bool(r.get("is_alive"), default=safe_int(r.get("health")) > 0),
                    )
                )
            self._roster_ticks.append(int(tick))
            self._roster[int(tick)] = snapshots

    def roster(self) -> list[PlayerSnapshot]:
        idx = bisect.bisect_right(self._roster_ticks, self.current_tick) - 1
        if idx < 0:
            return []
        return list(self._roster[self._roster_ticks[idx]])

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _ordered_events(self) -> Sequence[TelemetryEvent]:
        return self._events

    @property
    def last_tick(self) -> int:
        return self._last_tick

    def frames(self, stride: int | None = None, include_events: bool = True) -> Iterator[TelemetryFrame]:
        self._roster_ticks = []
        self._roster = {}
        self._pending_roster_ticks = (
            list(range(0, self._last_tick + 1, stride)) if stride and stride > 0 else []
        )
        yield from super().frames(stride, include_events)

    def _enter_frame(self, frame: TelemetryFrame) -> None:
        while self._pending_roster_ticks and self._pending_roster_ticks[0] <= frame.tick:
            self._load_roster_chunk()

        self._score_probe_tick = frame.tick

    def _enter_event(self, event: TelemetryEvent) -> None:
        # team_rounds_total only settles a few ticks after round_end
        if isinstance(event, RoundEnd):
            self._score_probe_tick = event.tick + SCORE_SETTLE_TICKS
        else:
            self._score_probe_tick = event.tick

    def close(self) -> None:
        self._parser = None


class DemoTelemetrySource(TelemetrySource):
    """TelemetrySource reading a CS2 .dem file through demoparser2."""

    def __init__(self, demo_path: str | Path, tick_rate: int = CS2_TICK_RATE) -> None:
        self.demo_path = Path(demo_path)
        self.tick_rate = tick_rate

    @property
    def description(self) -> str:
        return str(self.demo_path)

    def open(self) -> DemoTelemetryStream:
        if not self.demo_path.exists():
            raise SourceUnavailableError(f"Demo file not found: {self.demo_path}")
        if self.demo_path.suffix.lower() != ".dem":
            raise SourceUnavailableError(f"Expected .dem file, got: {self.demo_path.suffix}")

        logger.info(f"Opening demo: {self.demo_path}")
        try:
            parser = Demoparser2(str(self.demo_path))
        except Exception as e:
            raise SourceUnavailableError(f"Cannot open demo {self.demo_path}: {e}") from e
        return DemoTelemetryStream(parser, self.demo_path, tick_rate=self.tick_rate)
