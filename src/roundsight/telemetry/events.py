"""
Typed telemetry events.

Every record the telemetry sources hand to the engine is defined here.
Participant references are optional: a source that could not resolve a
player passes ``None`` and the engine skips that side of the update.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Position:
    """World position in game units."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True)
class PlayerRef:
    """A player as seen at the instant of an event."""

    steam_id: int
    name: str = ""
    team: str = ""  # "CT" or "T", empty when unknown
    position: Position = field(default_factory=Position)
    is_alive: bool = True


@dataclass(frozen=True)
class PlayerSnapshot:
    """Transient state of one player at a sampled tick."""

    steam_id: int
    name: str
    team: str
    position: Position
    health: int
    armor: int
    money: int
    weapon: str
    is_alive: bool

    def to_dict(self) -> dict:
        return {
            "steam_id": self.steam_id,
            "name": self.name,
            "team": self.team,
            "position": self.position.to_dict(),
            "health": self.health,
            "armor": self.armor,
            "money": self.money,
            "weapon": self.weapon,
            "is_alive": self.is_alive,
        }


@dataclass(frozen=True)
class RoundStart:
    tick: int
    ct_score: int | None = 0
    t_score: int | None = 0


@dataclass(frozen=True)
class RoundEnd:
    """
    End of a round.

    ``ct_score``/``t_score`` are the scores after the round when the source
    knows them; scripted sources use them to model non-scoring rounds.
    """

    tick: int
    winner: str = ""  # "CT" or "T"
    reason: int = 0
    ct_score: int | None = None
    t_score: int | None = None


@dataclass(frozen=True)
class Kill:
    tick: int
    killer: PlayerRef | None
    victim: PlayerRef | None
    assister: PlayerRef | None = None
    weapon: str = "unknown"
    is_headshot: bool = False


@dataclass(frozen=True)
class PlayerDamaged:
    tick: int
    attacker: PlayerRef | None
    amount: int = 0
    victim: PlayerRef | None = None


@dataclass(frozen=True)
class BombPlanted:
    tick: int
    player: PlayerRef | None
    position: Position | None = None
    site: str = ""


@dataclass(frozen=True)
class BombDefused:
    tick: int
    player: PlayerRef | None


@dataclass(frozen=True)
class BombExploded:
    tick: int
    position: Position | None = None


TelemetryEvent = (
    RoundStart | RoundEnd | Kill | PlayerDamaged | BombPlanted | BombDefused | BombExploded
)

# Same-tick ordering: actions, then the round closes, then the next one opens
_EVENT_ORDER = {
    PlayerDamaged: 0,
    Kill: 1,
    BombPlanted: 2,
    BombDefused: 2,
    BombExploded: 2,
    RoundEnd: 3,
    RoundStart: 4,
}


def event_sort_key(event: TelemetryEvent) -> tuple[int, int]:
    """Sort key giving non-decreasing ticks with the same-tick ordering above."""
    return event.tick, _EVENT_ORDER.get(type(event), 2)
