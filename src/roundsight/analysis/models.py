"""
Result records produced by the match engine.

All records are plain dataclasses with a ``to_dict`` method; the export layer
serializes those dicts to JSON or flattens them with pandas.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from roundsight.telemetry.events import PlayerSnapshot, Position


@dataclass
class MatchMetadata:
    """Match-level information."""

    map_name: str = "unknown"
    duration: str = "0:00"
    rounds: int = 0  # official rounds
    total_rounds: int = 0
    score_ct: int = 0
    score_t: int = 0
    warmup_rounds: int = 0
    knife_round: bool = False
    knife_rounds: int = 0
    source: str = "Valve"
    official_round_start: int | None = None
    tick_rate: int = 64
    partial: bool = False

    def to_dict(self) -> dict:
        return {
            "map": self.map_name,
            "duration": self.duration,
            "rounds": self.rounds,
            "total_rounds": self.total_rounds,
            "score_ct": self.score_ct,
            "score_t": self.score_t,
            "warmup_rounds": self.warmup_rounds,
            "knife_round": self.knife_round,
            "knife_rounds": self.knife_rounds,
            "source": self.source,
            "official_round_start": self.official_round_start,
            "tick_rate": self.tick_rate,
            "partial": self.partial,
        }


@dataclass
class DetailedEvent:
    """
    One entry of the match event log.

    ``position`` and ``player`` duplicate the most relevant location and
    actor from ``data``; frame mode attaches them to the frame at the
    event's tick.
    """

    event_type: str
    tick: int
    time: float
    round_number: int
    is_warmup: bool = False
    is_knife: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    position: Position | None = None
    player: str = ""

    def frame_marker(self) -> dict:
        return {
            "type": self.event_type,
            "position": self.position.to_dict() if self.position else None,
            "player": self.player,
        }

    def to_dict(self) -> dict:
        return {
            "type": self.event_type,
            "tick": self.tick,
            "time": round(self.time, 2),
            "round": self.round_number,
            "is_warmup": self.is_warmup,
            "is_knife": self.is_knife,
            "data": self.data,
        }


@dataclass
class RadarSnapshot:
    """Every player's state at one sampled tick."""

    tick: int
    time: float
    round_number: int
    players: list[PlayerSnapshot] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "time": round(self.time, 2),
            "round": self.round_number,
            "players": [p.to_dict() for p in self.players],
        }


@dataclass
class Frame:
    """A sampled tick in frame mode, with the events that happened at that tick."""

    tick: int
    time: float
    round_number: int
    clock: str
    is_warmup: bool
    is_knife: bool
    players: list[PlayerSnapshot] = field(default_factory=list)
    events: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "time": round(self.time, 2),
            "round": self.round_number,
            "clock": self.clock,
            "is_warmup": self.is_warmup,
            "is_knife": self.is_knife,
            "players": [p.to_dict() for p in self.players],
            "events": self.events,
        }


@dataclass
class PlayerStatsRow:
    """Final statistics for one player."""

    steam_id: int
    name: str
    team: str
    kills: int
    deaths: int
    assists: int
    headshot_kills: int
    damage: int
    adr: float
    hs_rate: float
    kd_ratio: float
    rating: float

    def to_dict(self) -> dict:
        return {
            "steam_id": self.steam_id,
            "name": self.name,
            "team": self.team,
            "kills": self.kills,
            "deaths": self.deaths,
            "assists": self.assists,
            "headshot_kills": self.headshot_kills,
            "damage": self.damage,
            "adr": round(self.adr, 1),
            "hs_rate": round(self.hs_rate, 1),
            "kd_ratio": round(self.kd_ratio, 2),
            "rating": round(self.rating, 2),
        }


@dataclass
class PlayerAnalysis:
    """Deep analysis of one requested player."""

    steam_id: int
    name: str
    team: str
    kills: int
    deaths: int
    assists: int
    headshot_kills: int
    damage: int
    adr: float
    hs_rate: float
    kd_ratio: float
    rounds_played: int
    key_moments: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "steam_id": self.steam_id,
            "name": self.name,
            "team": self.team,
            "kills": self.kills,
            "deaths": self.deaths,
            "assists": self.assists,
            "headshot_kills": self.headshot_kills,
            "damage": self.damage,
            "adr": round(self.adr, 1),
            "hs_rate": round(self.hs_rate, 1),
            "kd_ratio": round(self.kd_ratio, 2),
            "rounds_played": self.rounds_played,
            "key_moments": list(self.key_moments),
            "recommendations": list(self.recommendations),
        }


@dataclass
class MatchSummary:
    mvp: str
    rating: float
    mvp_steam_id: int | None = None
    target_player: PlayerAnalysis | None = None

    def to_dict(self) -> dict:
        result = {"mvp": self.mvp, "mvp_steam_id": self.mvp_steam_id, "rating": round(self.rating, 2)}
        if self.target_player is not None:
            result["target_player"] = self.target_player.to_dict()
        return result


@dataclass
class MatchAnalysis:
    """Complete result of one analysis run."""

    metadata: MatchMetadata
    rounds: list[dict] = field(default_factory=list)
    events: list[DetailedEvent] = field(default_factory=list)
    players: list[PlayerStatsRow] = field(default_factory=list)
    heatmap: dict = field(default_factory=dict)
    snapshots: list[RadarSnapshot] = field(default_factory=list)
    frames: list[Frame] = field(default_factory=list)
    summary: MatchSummary = field(default_factory=lambda: MatchSummary(mvp="N/A", rating=0.0))

    def get_player(self, steam_id: int) -> PlayerStatsRow | None:
        for row in self.players:
            if row.steam_id == steam_id:
                return row
        return None

    def players_dataframe(self) -> pd.DataFrame:
        """Per-player statistics as a DataFrame, sorted by rating."""
        if not self.players:
            return pd.DataFrame()
        df = pd.DataFrame([p.to_dict() for p in self.players])
        return df.sort_values("rating", ascending=False, kind="stable").reset_index(drop=True)

    def events_dataframe(self) -> pd.DataFrame:
        """Event log flattened to one row per event (payload columns prefixed with data_)."""
        if not self.events:
            return pd.DataFrame()
        return pd.json_normalize([e.to_dict() for e in self.events], sep="_")

    def to_dict(self) -> dict:
        return {
            "metadata": self.metadata.to_dict(),
            "rounds": self.rounds,
            "events": [e.to_dict() for e in self.events],
            "players": [p.to_dict() for p in self.players],
            "heatmap": self.heatmap,
            "snapshots": [s.to_dict() for s in self.snapshots],
            "frames": [f.to_dict() for f in self.frames],
            "summary": self.summary.to_dict(),
        }
