"""
Summary and rating derivation.

Per-player metrics:
    ADR     = damage / official rounds          (0 without official rounds)
    HS rate = headshot kills / kills * 100      (0 without kills)
    K/D     = kills / deaths                    (kills itself when deaths == 0)
    rating  = kills / max(deaths, 1) * ADR / 100

The MVP is the player with the highest positive rating; ties go to the lowest
steam id so repeated runs agree.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from roundsight.analysis.accumulator import PlayerAccumulator
from roundsight.analysis.models import PlayerAnalysis, PlayerStatsRow
from roundsight.core.config import SummaryConfig
from roundsight.core.constants import NO_MVP

logger = logging.getLogger(__name__)

REC_AIM = "Work on more precise aim to raise headshot rate"
REC_ADR = "Focus on dealing more damage per round (ADR)"
REC_POSITIONING = "Improve positioning to avoid unnecessary deaths"
REC_CONVERT = "Convert damage into kills - finish your trades"
REC_KEEP_UP = "Keep up the good performance!"

# Kills in a single round worth calling out as a key moment
MULTI_KILL_THRESHOLD = 3


def adr(damage: int, official_rounds: int) -> float:
    return damage / official_rounds if official_rounds > 0 else 0.0


def hs_rate(headshot_kills: int, kills: int) -> float:
    return headshot_kills / kills * 100 if kills > 0 else 0.0


def kd_ratio(kills: int, deaths: int) -> float:
    if deaths == 0:
        return float(kills)
    return kills / deaths


def rating(kills: int, deaths: int, player_adr: float) -> float:
    return (kills / max(deaths, 1)) * (player_adr / 100)


def player_row(acc: PlayerAccumulator, official_rounds: int) -> PlayerStatsRow:
    """Final statistics row for one accumulator."""
    player_adr = adr(acc.damage, official_rounds)
    return PlayerStatsRow(
        steam_id=acc.steam_id,
        name=acc.name,
        team=acc.team,
        kills=acc.kills,
        deaths=acc.deaths,
        assists=acc.assists,
        headshot_kills=acc.headshot_kills,
        damage=acc.damage,
        adr=player_adr,
        hs_rate=hs_rate(acc.headshot_kills, acc.kills),
        kd_ratio=kd_ratio(acc.kills, acc.deaths),
        rating=rating(acc.kills, acc.deaths, player_adr),
    )


def mvp_row(rows: Iterable[PlayerStatsRow]) -> PlayerStatsRow | None:
    """Highest positive rating, ties to the lowest steam id; None when nobody rated above 0."""
    best: PlayerStatsRow | None = None
    for row in rows:
        if row.rating <= 0:
            continue
        if (
            best is None
            or row.rating > best.rating
            or (row.rating == best.rating and row.steam_id < best.steam_id)
        ):
            best = row
    return best


def select_mvp(rows: Iterable[PlayerStatsRow]) -> tuple[str, float]:
    """
    Pick the MVP.

    Returns:
        (name, rating), or ("N/A", 0.0) when nobody has a positive rating.
    """
    best = mvp_row(rows)
    if best is None:
        return NO_MVP, 0.0
    return best.name or str(best.steam_id), best.rating


def generate_recommendations(
    player_hs_rate: float,
    player_adr: float,
    player_kd: float,
    damage: int,
    kills: int,
    config: SummaryConfig | None = None,
) -> list[str]:
    """Coaching messages for every threshold the player misses."""
    config = config or SummaryConfig()
    recs = []

    if player_hs_rate < config.hs_rate_threshold:
        recs.append(REC_AIM)
    if player_adr < config.adr_threshold:
        recs.append(REC_ADR)
    if player_kd < config.kd_threshold:
        recs.append(REC_POSITIONING)
    if damage > 0 and kills == 0:
        recs.append(REC_CONVERT)

    if not recs:
        recs.append(REC_KEEP_UP)

    return recs


def key_moments(row: PlayerStatsRow, kills_by_round: dict[int, int] | None = None) -> list[str]:
    moments = [f"{row.kills} kills with {row.hs_rate:.1f}% HS rate"]
    for round_number, count in sorted((kills_by_round or {}).items()):
        if count >= MULTI_KILL_THRESHOLD:
            moments.append(f"{count}K in round {round_number}")
    return moments


def analyze_player(
    row: PlayerStatsRow,
    official_rounds: int,
    kills_by_round: dict[int, int] | None = None,
    config: SummaryConfig | None = None,
) -> PlayerAnalysis:
    """Deep analysis for a requested player."""
    return PlayerAnalysis(
        steam_id=row.steam_id,
        name=row.name,
        team=row.team,
        kills=row.kills,
        deaths=row.deaths,
        assists=row.assists,
        headshot_kills=row.headshot_kills,
        damage=row.damage,
        adr=row.adr,
        hs_rate=row.hs_rate,
        kd_ratio=row.kd_ratio,
        rounds_played=official_rounds,
        key_moments=key_moments(row, kills_by_round),
        recommendations=generate_recommendations(
            row.hs_rate, row.adr, row.kd_ratio, row.damage, row.kills, config
        ),
    )
