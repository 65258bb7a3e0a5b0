"""
RoundSight - Constants

Team numbers, round-end reasons, round tags and the default thresholds used by
the round classifier, the snapshot sampler and the summary derivation.
"""

from enum import Enum, StrEnum


class Team(int, Enum):
    """CS2 team numbers."""

    UNASSIGNED = 0
    SPECTATOR = 1
    TERRORIST = 2
    CT = 3


class RoundEndReason(int, Enum):
    """
    Round end reasons from CS2.

    These are the official game event values.
    """

    TARGET_BOMBED = 1  # Terrorists bombed the target
    VIP_ESCAPED = 2  # (Legacy)
    VIP_KILLED = 3  # (Legacy)
    TERRORISTS_ESCAPED = 4  # (Legacy)
    CT_STOPPED_ESCAPE = 5  # (Legacy)
    TERRORIST_STOPPED = 6  # (Legacy)
    BOMB_DEFUSED = 7  # CTs defused the bomb
    CT_WIN = 8  # CTs eliminated terrorists
    TERRORIST_WIN = 9  # Terrorists eliminated CTs
    ROUND_DRAW = 10  # Draw
    ALL_HOSTAGES_RESCUED = 11  # CTs rescued hostages
    TARGET_SAVED = 12  # Time ran out, bomb not planted
    HOSTAGES_NOT_RESCUED = 13  # Terrorists won hostage round
    TERRORISTS_SURRENDER = 14  # Terrorists surrendered
    CT_SURRENDER = 15  # CTs surrendered


# Reason codes that award the round to each side
CT_WIN_REASONS = frozenset(
    {
        RoundEndReason.BOMB_DEFUSED,
        RoundEndReason.CT_WIN,
        RoundEndReason.ALL_HOSTAGES_RESCUED,
        RoundEndReason.TARGET_SAVED,
        RoundEndReason.TERRORISTS_SURRENDER,
    }
)
T_WIN_REASONS = frozenset(
    {
        RoundEndReason.TARGET_BOMBED,
        RoundEndReason.TERRORIST_WIN,
        RoundEndReason.HOSTAGES_NOT_RESCUED,
        RoundEndReason.CT_SURRENDER,
    }
)


class LeagueSource(StrEnum):
    """
    Where the recording most likely comes from.

    GC leagues play four non-scoring warmup rounds before the match proper;
    standard Valve matchmaking does not.
    """

    GC = "GC"
    VALVE = "Valve"


class RoundTag(StrEnum):
    """Classification of a single round."""

    UNCLASSIFIED = "unclassified"  # Provisional, before round end
    WARMUP = "warmup"
    KNIFE = "knife"
    OFFICIAL = "official"


class EventType(StrEnum):
    """Event kinds written to the analysis event log and heatmap."""

    ROUND_START = "round_start"
    ROUND_END = "round_end"
    KILL = "kill"
    DEATH = "death"  # heatmap only
    BOMB_PLANTED = "bomb_planted"
    BOMB_DEFUSED = "bomb_defused"
    BOMB_EXPLODED = "bomb_exploded"


# CS2 runs every server at 64 tick (subtick timestamps in between)
CS2_TICK_RATE = 64

# ============================================================================
# Round classification
# ============================================================================

# GC leagues: rounds 1..4 are warmup when the match opens at 0-0
LEAGUE_WARMUP_MAX_ROUND = 4

# Knife round: at least this many melee kills...
KNIFE_ROUND_MIN_MELEE_KILLS = 3
# ...and strictly more than this share of the round's kills
KNIFE_ROUND_MELEE_RATIO = 0.5

# Substrings identifying melee weapons (matched case-insensitively)
MELEE_WEAPON_MARKERS = ("knife", "bayonet")

# ============================================================================
# Snapshots and frames
# ============================================================================

# ~8 seconds at 64 tick between radar snapshots in single-pass mode
SNAPSHOT_INTERVAL_TICKS = 512

# ~32 frames per second in two-pass frame mode
FRAME_STRIDE_TICKS = 2

# Round timer shown on frames (1:55)
ROUND_TIME_SECONDS = 115.0

# ============================================================================
# Heatmap and bombs
# ============================================================================

# Decimal places kept when binning positions
HEATMAP_PRECISION = 1

# Busiest bins reported alongside the full point list
HEATMAP_TOP_HOTSPOTS = 10

# Default C4 timer attached to plant events
BOMB_TIMER_SECONDS = 40.0

# Coarse site guess: plants below this height are reported as site A
BOMB_SITE_Z_SPLIT = 100.0

# ============================================================================
# Recommendations
# ============================================================================

HS_RATE_THRESHOLD = 30.0
ADR_THRESHOLD = 60.0
KD_THRESHOLD = 1.0

NO_MVP = "N/A"
