"""
Global leaderboard service.

Builds an explicit snapshot of every ranked league's standings, groups it per
user and passes it to the pure LeaderboardAggregator. The aggregator never
touches the database, so the same snapshot always ranks the same way.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from league_arc.config import Config
from league_arc.data_models.leaderboard import (
    LeaderboardPage, LeagueStanding, PlayerGlobalScore, PlayerSnapshot
)
from league_arc.database.models import League, LeagueFixture, LeagueTier
from league_arc.services.base import BaseService
from league_arc.services.standings import league_table
from league_arc.utils.league_exceptions import DatabaseError
from league_arc.utils.scoring_strategies import LeaderboardAggregator

logger = logging.getLogger(__name__)


class GlobalLeaderboardService(BaseService):
    """Service for cross-league global rankings."""

    def __init__(self, session_factory, aggregator: Optional[LeaderboardAggregator] = None):
        super().__init__(session_factory)
        self.aggregator = aggregator or LeaderboardAggregator()

    async def _load_ranked_leagues(self) -> List[League]:
        async with self.get_session() as session:
            result = await session.execute(
                select(League)
                .options(
                    selectinload(League.members),
                    selectinload(League.fixtures).selectinload(LeagueFixture.result)
                )
                .where(League.is_ranked == True)
                .order_by(League.id)
            )
            return result.scalars().all()

    async def build_snapshots(self) -> List[PlayerSnapshot]:
        """
        One PlayerSnapshot per user across all ranked leagues.

        A league where nobody has played yet contributes entries without a
        position, which routes those users to the fallback formula unless
        another league gives them a position.
        """
        try:
            leagues = await self.execute_with_retry(self._load_ranked_leagues)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load leagues for global leaderboard: {e}")
            raise DatabaseError("global leaderboard snapshot", str(e))

        standings: Dict[str, List[LeagueStanding]] = OrderedDict()
        usernames: Dict[str, str] = {}

        for league in leagues:
            rows = league_table(league)
            has_positions = any(row.played > 0 for row in rows)
            tier = LeagueTier(league.tier)

            for member in league.members:
                if member.username:
                    usernames.setdefault(member.user_id, member.username)

            for row in rows:
                standings.setdefault(row.user_id, []).append(LeagueStanding(
                    league_id=league.id,
                    league_name=league.name,
                    tier=tier,
                    position=row.position if has_positions else None,
                    league_size=len(rows),
                    wins=row.won,
                    matches_played=row.played,
                ))

            if not has_positions:
                logger.debug(f"League {league.id} has no completed results yet, positions unavailable")

        return [
            PlayerSnapshot(
                user_id=user_id,
                username=usernames.get(user_id, user_id),
                standings=tuple(entries),
            )
            for user_id, entries in standings.items()
        ]

    async def compute_global_leaderboard(
        self,
        tier: Optional[LeagueTier] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[PlayerGlobalScore]:
        """
        Global ranking across all ranked leagues.

        Sorting happens over every user before the tier filter and pagination
        are applied.

        Args:
            tier: Keep only users who are members of a league of this tier
            limit: Page size (defaults to Config.DEFAULT_LEADERBOARD_LIMIT)
            offset: Rows to skip

        Raises:
            DatabaseError: If database operation fails
        """
        page = await self.get_page(tier=tier, limit=limit, offset=offset)
        return page.entries

    async def get_page(
        self,
        tier: Optional[LeagueTier] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> LeaderboardPage:
        """Same ranking as compute_global_leaderboard, with page metadata."""
        limit = Config.DEFAULT_LEADERBOARD_LIMIT if limit is None else limit

        snapshots = await self.build_snapshots()
        scores = [self.aggregator.compute_global_score(s) for s in snapshots]

        fallback_count = sum(1 for s in scores if s.scoring != self.aggregator.primary.get_strategy_name())
        if fallback_count:
            logger.warning(f"{fallback_count} player(s) ranked with fallback scoring (no league positions)")

        entries = self.aggregator.build_global_leaderboard(scores, tier=tier, limit=limit, offset=offset)
        matching = self.aggregator.build_global_leaderboard(scores, tier=tier, limit=len(scores), offset=0)

        return LeaderboardPage(
            entries=entries,
            total_players=len(matching),
            limit=limit,
            offset=offset,
            tier=tier,
            used_fallback=any(s.scoring != self.aggregator.primary.get_strategy_name() for s in entries),
        )

    async def get_player_global_score(self, user_id: str) -> PlayerGlobalScore:
        """
        Global score for one user.

        A user without any ranked league gets an explicit zero score.
        """
        for snapshot in await self.build_snapshots():
            if snapshot.user_id == user_id:
                return self.aggregator.compute_global_score(snapshot)
        return self.aggregator.compute_global_score(PlayerSnapshot(user_id=user_id, username=user_id))
