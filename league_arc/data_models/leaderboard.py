"""
Leaderboard data models for the global cross-league ranking.

Provides immutable data transfer objects for leaderboard-related data
aggregation: the snapshot handed to the aggregator and the scores it returns.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from league_arc.database.models import LeagueTier


@dataclass(frozen=True)
class LeagueStanding:
    """One user's standing in one league, as seen by the aggregator."""
    league_id: int
    league_name: str
    tier: LeagueTier
    position: Optional[int]  # None when the league has no position data yet
    league_size: int
    wins: int = 0
    matches_played: int = 0


@dataclass(frozen=True)
class PlayerSnapshot:
    """Everything the aggregator needs to score one user."""
    user_id: str
    username: str
    standings: Tuple[LeagueStanding, ...] = ()

    @property
    def positioned(self) -> List[LeagueStanding]:
        return [s for s in self.standings if s.position is not None and s.league_size > 0]

    @property
    def total_wins(self) -> int:
        return sum(s.wins for s in self.standings)

    @property
    def total_matches(self) -> int:
        return sum(s.matches_played for s in self.standings)

    @property
    def member_tiers(self) -> FrozenSet[LeagueTier]:
        return frozenset(LeagueTier(s.tier) for s in self.standings)


@dataclass(frozen=True)
class LeagueScore:
    """Per-league breakdown of a global score."""
    league_id: int
    league_name: str
    tier: LeagueTier
    position: int
    league_size: int
    league_score: float


@dataclass(frozen=True)
class BestLeague:
    """The league contributing the highest league score."""
    league_id: Optional[int]
    league_name: str
    position: int
    league_size: int
    tier: LeagueTier


@dataclass(frozen=True)
class PlayerStatsSummary:
    """Totals across all of a user's leagues."""
    total_leagues: int
    total_wins: int
    total_matches: int
    win_rate: float


@dataclass(frozen=True)
class PlayerGlobalScore:
    """Single global leaderboard row."""
    user_id: str
    username: str
    global_score: float
    leagues: Tuple[LeagueScore, ...]
    best_league: BestLeague
    stats: PlayerStatsSummary
    scoring: str = "position_weighted"
    # Tiers of every league the user belongs to, positioned or not
    member_tiers: FrozenSet[LeagueTier] = frozenset()

    @property
    def tiers(self) -> FrozenSet[LeagueTier]:
        return self.member_tiers | frozenset(league.tier for league in self.leagues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "global_score": round(self.global_score, 2),
            "leagues": [
                {
                    "league_id": l.league_id,
                    "league_name": l.league_name,
                    "tier": int(l.tier),
                    "position": l.position,
                    "total_players": l.league_size,
                    "performance_score": round(l.league_score, 2),
                }
                for l in self.leagues
            ],
            "best_league": {
                "league_id": self.best_league.league_id,
                "league_name": self.best_league.league_name,
                "position": self.best_league.position,
                "total_players": self.best_league.league_size,
                "tier": int(self.best_league.tier),
            },
            "stats": {
                "total_leagues": self.stats.total_leagues,
                "total_wins": self.stats.total_wins,
                "total_matches": self.stats.total_matches,
                "win_rate": round(self.stats.win_rate, 1),
            },
            "scoring": self.scoring,
        }


@dataclass(frozen=True)
class LeaderboardPage:
    """Paginated global leaderboard."""
    entries: List[PlayerGlobalScore]
    total_players: int
    limit: int
    offset: int
    tier: Optional[LeagueTier] = None
    used_fallback: bool = False
