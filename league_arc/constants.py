"""
League-wide constants for League Arc.

This module contains the fixed scoring tables and magic numbers used by the
scheduler, the standings calculator and the global leaderboard. None of these
values are user-configurable.
"""

class StandingsConstants:
    """Constants for league table calculations."""

    POINTS_FOR_WIN = 3
    POINTS_FOR_DRAW = 1
    POINTS_FOR_LOSS = 0

    # Number of recent outcomes kept in a row's form guide
    FORM_LENGTH = 5

class SchedulingConstants:
    """Constants for fixture generation."""

    MIN_ROUND_ROBIN_PARTICIPANTS = 2

    # UEFA hybrid format: top 16 of the table phase enter the Round of 16
    UEFA_KNOCKOUT_SIZE = 16

    # Placeholder user id used to even out odd participant counts
    BYE_USER_ID = "bye"

    FIRST_GAMEWEEK = 1

class TierConstants:
    """League tier weights for global score aggregation."""

    # Keyed by LeagueTier value (1=Amateur .. 4=Champions)
    TIER_WEIGHTS = {
        1: 1.0,  # Amateur
        2: 1.3,  # Competitive
        3: 1.6,  # Elite
        4: 2.0,  # Champions
    }

    TIER_NAMES = {
        1: "Amateur",
        2: "Competitive",
        3: "Elite",
        4: "Champions",
    }

class ScoringConstants:
    """Constants for the global leaderboard formulas."""

    POSITION_SCORE_SCALE = 100.0

    # sizeBonus = ln(n + 1) / ln(SIZE_BONUS_LOG_BASE) * SIZE_BONUS_SCALE
    SIZE_BONUS_LOG_BASE = 100
    SIZE_BONUS_SCALE = 20.0

    # Awarded per league to players active in more than one league
    CONSISTENCY_BONUS = 10.0

    # Fallback: winRate * WIN_RATE_WEIGHT + min(matches / MATCH_VOLUME_CAP, 1) * MATCH_VOLUME_WEIGHT
    FALLBACK_WIN_RATE_WEIGHT = 0.7
    FALLBACK_MATCH_VOLUME_CAP = 100
    FALLBACK_MATCH_VOLUME_WEIGHT = 30.0

    NO_LEAGUE_NAME = "No League Data"

class PaginationConstants:
    """Constants for paginated leaderboards."""

    DEFAULT_LIMIT = 100
    DEFAULT_OFFSET = 0
