"""
Scoring Strategy Pattern for the Global Leaderboard

This module implements the Strategy pattern for cross-league scoring, so the
leaderboard can rank every user with one formula or the other while always
returning the same PlayerGlobalScore shape.

Strategies:
- PositionWeightedStrategy: per-league position score weighted by league
  tier, plus a league-size bonus and a multi-league consistency bonus,
  averaged across the user's leagues
- WinRateFallbackStrategy: win rate and match volume only, for users whose
  per-league positions are unavailable

Everything here is a pure function of the snapshot passed in.
"""

import math
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from league_arc.constants import ScoringConstants, TierConstants, PaginationConstants
from league_arc.data_models.leaderboard import (
    BestLeague, LeagueScore, LeagueStanding, PlayerGlobalScore,
    PlayerSnapshot, PlayerStatsSummary
)
from league_arc.database.models import LeagueTier

logger = logging.getLogger(__name__)


def tier_weight(tier: LeagueTier) -> float:
    """Fixed multiplier for a league tier."""
    return TierConstants.TIER_WEIGHTS.get(int(tier), 1.0)


def position_score(position: int, league_size: int) -> float:
    """(n - p + 1) / n * 100: 100 for first place, 100 / n for last."""
    if league_size <= 0:
        raise ValueError(f"league_size must be positive, got {league_size}")
    if not 1 <= position <= league_size:
        raise ValueError(f"position {position} outside league of {league_size}")
    return (league_size - position + 1) / league_size * ScoringConstants.POSITION_SCORE_SCALE


def size_bonus(league_size: int) -> float:
    """ln(n + 1) / ln(100) * 20, rewarding larger leagues."""
    return (
        math.log(league_size + 1)
        / math.log(ScoringConstants.SIZE_BONUS_LOG_BASE)
        * ScoringConstants.SIZE_BONUS_SCALE
    )


def win_rate(total_wins: int, total_matches: int) -> float:
    """Percentage of matches won, 0 when no matches were played."""
    if total_matches <= 0:
        return 0.0
    return total_wins / total_matches * 100


def empty_best_league() -> BestLeague:
    return BestLeague(
        league_id=None,
        league_name=ScoringConstants.NO_LEAGUE_NAME,
        position=0,
        league_size=0,
        tier=LeagueTier.AMATEUR,
    )


class GlobalScoringStrategy(ABC):
    """
    Abstract base class for global scoring strategies.

    Each strategy turns one user's snapshot into a PlayerGlobalScore.
    """

    @abstractmethod
    def score(self, snapshot: PlayerSnapshot) -> PlayerGlobalScore:
        """Score a single user"""
        pass

    @abstractmethod
    def get_strategy_name(self) -> str:
        """Get the identifier reported in PlayerGlobalScore.scoring"""
        pass

    def _stats(self, snapshot: PlayerSnapshot, total_leagues: int) -> PlayerStatsSummary:
        return PlayerStatsSummary(
            total_leagues=total_leagues,
            total_wins=snapshot.total_wins,
            total_matches=snapshot.total_matches,
            win_rate=win_rate(snapshot.total_wins, snapshot.total_matches),
        )


class PositionWeightedStrategy(GlobalScoringStrategy):
    """
    Tier-weighted league position scoring.

    leagueScore = positionScore * tierWeight + sizeBonus + consistencyBonus
    globalScore = mean(leagueScore)

    A user in zero leagues gets an explicit global score of 0.
    """

    def league_score(self, standing: LeagueStanding, multi_league: bool) -> float:
        consistency = ScoringConstants.CONSISTENCY_BONUS if multi_league else 0.0
        return (
            position_score(standing.position, standing.league_size) * tier_weight(standing.tier)
            + size_bonus(standing.league_size)
            + consistency
        )

    def score(self, snapshot: PlayerSnapshot) -> PlayerGlobalScore:
        positioned = snapshot.positioned
        multi_league = len(positioned) > 1

        breakdown = [
            LeagueScore(
                league_id=s.league_id,
                league_name=s.league_name,
                tier=s.tier,
                position=s.position,
                league_size=s.league_size,
                league_score=self.league_score(s, multi_league),
            )
            for s in positioned
        ]

        if breakdown:
            global_score = sum(l.league_score for l in breakdown) / len(breakdown)
            # max() returns the first of equal scores
            best = max(breakdown, key=lambda l: l.league_score)
            best_league = BestLeague(
                league_id=best.league_id,
                league_name=best.league_name,
                position=best.position,
                league_size=best.league_size,
                tier=best.tier,
            )
        else:
            global_score = 0.0
            best_league = empty_best_league()

        # Best league first, as the profile view lists them
        breakdown.sort(key=lambda l: l.league_score, reverse=True)

        return PlayerGlobalScore(
            user_id=snapshot.user_id,
            username=snapshot.username,
            global_score=global_score,
            leagues=tuple(breakdown),
            best_league=best_league,
            stats=self._stats(snapshot, len(breakdown)),
            scoring=self.get_strategy_name(),
            member_tiers=snapshot.member_tiers,
        )

    def get_strategy_name(self) -> str:
        return "position_weighted"


class WinRateFallbackStrategy(GlobalScoringStrategy):
    """
    Simplified score used when league positions are unavailable.

    score = winRate * 0.7 + min(totalMatches / 100, 1) * 30
    """

    def score(self, snapshot: PlayerSnapshot) -> PlayerGlobalScore:
        stats = self._stats(snapshot, 0)
        volume = min(stats.total_matches / ScoringConstants.FALLBACK_MATCH_VOLUME_CAP, 1)
        global_score = (
            stats.win_rate * ScoringConstants.FALLBACK_WIN_RATE_WEIGHT
            + volume * ScoringConstants.FALLBACK_MATCH_VOLUME_WEIGHT
        )
        return PlayerGlobalScore(
            user_id=snapshot.user_id,
            username=snapshot.username,
            global_score=global_score,
            leagues=(),
            best_league=empty_best_league(),
            stats=stats,
            scoring=self.get_strategy_name(),
            member_tiers=snapshot.member_tiers,
        )

    def get_strategy_name(self) -> str:
        return "win_rate_fallback"


class LeaderboardAggregator:
    """Combines per-league standings into global scores and rankings"""

    def __init__(self, primary: Optional[GlobalScoringStrategy] = None,
                 fallback: Optional[GlobalScoringStrategy] = None):
        self.primary = primary or PositionWeightedStrategy()
        self.fallback = fallback or WinRateFallbackStrategy()

    def compute_global_score(self, snapshot: PlayerSnapshot) -> PlayerGlobalScore:
        """
        Score one user, falling back when none of their leagues has positions.

        A snapshot with no leagues at all scores an explicit zero through the
        primary strategy.
        """
        if snapshot.standings and not snapshot.positioned:
            logger.debug(f"No position data for user {snapshot.user_id}, using fallback scoring")
            return self.fallback.score(snapshot)
        return self.primary.score(snapshot)

    def compute_fallback_score(self, snapshot: PlayerSnapshot) -> PlayerGlobalScore:
        """Score one user with the fallback formula regardless of position data."""
        return self.fallback.score(snapshot)

    @staticmethod
    def build_global_leaderboard(
        scores: Sequence[PlayerGlobalScore],
        tier: Optional[LeagueTier] = None,
        limit: int = PaginationConstants.DEFAULT_LIMIT,
        offset: int = PaginationConstants.DEFAULT_OFFSET,
    ) -> List[PlayerGlobalScore]:
        """
        Rank users by global score, then filter by tier, then paginate.

        Args:
            scores: One PlayerGlobalScore per user
            tier: Keep only users who are members of a league of this tier,
                  whether or not that league has positions yet
            limit: Page size
            offset: Rows to skip after filtering

        Returns:
            The requested page, best first
        """
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must be non-negative")

        ranked = sorted(scores, key=lambda s: s.global_score, reverse=True)
        if tier is not None:
            ranked = [s for s in ranked if LeagueTier(tier) in s.tiers]
        return ranked[offset:offset + limit]
