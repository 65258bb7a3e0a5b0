"""
Player Accumulator Table

Running per-player totals (kills, deaths, assists, headshot kills, damage)
keyed by steam id. Every increment is also written to a per-round ledger so
that a round later classified as warmup or knife can be taken back out of the
totals without touching identity fields.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from roundsight.telemetry.events import PlayerRef

logger = logging.getLogger(__name__)

ROLES = ("killer", "victim", "assister")

_ROLE_COUNTER = {
    "killer": "kills",
    "victim": "deaths",
    "assister": "assists",
}

COUNTERS = ("kills", "deaths", "assists", "headshot_kills", "damage")


@dataclass
class PlayerAccumulator:
    """Running totals for one player identity."""

    steam_id: int
    name: str = ""
    team: str = ""
    kills: int = 0
    deaths: int = 0
    assists: int = 0
    headshot_kills: int = 0
    damage: int = 0

    def update_identity(self, player: PlayerRef) -> None:
        # Last non-empty sighting wins; team swaps at half time land here
        if player.name:
            self.name = player.name
        if player.team:
            self.team = player.team

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
        }


class PlayerTable:
    """
    Accumulator table owned by one analysis run.

    Usage:
        table = PlayerTable()
        table.record_involvement(kill.killer, "killer", headshot=True, round_number=3)
        table.record_involvement(kill.victim, "victim", round_number=3)
        table.record_damage(hurt.attacker, 27, round_number=3)
        table.revert_round(3)  # round 3 turned out to be a knife round
    """

    def __init__(self) -> None:
        self._players: dict[int, PlayerAccumulator] = {}
        # round -> steam_id -> counter -> delta
        self._ledgers: dict[int, dict[int, dict[str, int]]] = defaultdict(
            lambda: defaultdict(lambda: defaultdict(int))
        )

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, steam_id: int) -> bool:
        return steam_id in self._players

    def get(self, steam_id: int) -> PlayerAccumulator | None:
        return self._players.get(steam_id)

    def players(self) -> list[PlayerAccumulator]:
        """All accumulators ordered by steam id."""
        return [self._players[sid] for sid in sorted(self._players)]

    def _touch(self, player: PlayerRef) -> PlayerAccumulator:
        acc = self._players.get(player.steam_id)
        if acc is None:
            acc = PlayerAccumulator(steam_id=player.steam_id, name=player.name, team=player.team)
            self._players[player.steam_id] = acc
            logger.debug(f"New player: {player.name or player.steam_id} ({player.team or '?'})")
        else:
            acc.update_identity(player)
        return acc

    def _add(self, acc: PlayerAccumulator, counter: str, amount: int, round_number: int | None) -> None:
        setattr(acc, counter, getattr(acc, counter) + amount)
        if round_number is not None:
            self._ledgers[round_number][acc.steam_id][counter] += amount

    def record_involvement(
        self,
        player: PlayerRef | None,
        role: str,
        headshot: bool = False,
        round_number: int | None = None,
    ) -> None:
        """
        Count one kill involvement for a player.

        Args:
            player: Participant reference; None is skipped.
            role: "killer", "victim" or "assister".
            headshot: For killers, also count a headshot kill.
            round_number: Round the involvement belongs to (ledgered when set).
        """
        if role not in _ROLE_COUNTER:
            raise ValueError(f"Unknown involvement role: {role} (expected one of {ROLES})")
        if player is None:
            return

        acc = self._touch(player)
        self._add(acc, _ROLE_COUNTER[role], 1, round_number)
        if role == "killer" and headshot:
            self._add(acc, "headshot_kills", 1, round_number)

    def record_damage(
        self, attacker: PlayerRef | None, amount: int, round_number: int | None = None
    ) -> None:
        """Add health damage for an attacker that is alive at the moment of damage."""
        if attacker is None or not attacker.is_alive:
            return
        acc = self._touch(attacker)
        self._add(acc, "damage", max(int(amount), 0), round_number)

    def revert_round(self, round_number: int) -> bool:
        """
        Take one round's ledgered increments back out of the totals.

        Identity fields and accumulators created during the round are kept.
        Returns True if anything was reverted.
        """
        ledger = self._ledgers.pop(round_number, None)
        if not ledger:
            return False

        for steam_id, deltas in ledger.items():
            acc = self._players[steam_id]
            for counter, delta in deltas.items():
                setattr(acc, counter, getattr(acc, counter) - delta)

        logger.debug(f"Reverted statistics of round {round_number} for {len(ledger)} players")
        return True

    def round_kills(self, round_number: int, steam_id: int) -> int:
        """Kills ledgered for a player in one round (0 once reverted)."""
        ledger = self._ledgers.get(round_number)
        if not ledger or steam_id not in ledger:
            return 0
        return ledger[steam_id].get("kills", 0)
