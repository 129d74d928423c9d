"""
Standings service.

Reads a league's members, fixtures and results and hands them to the pure
StandingsCalculator. Nothing is cached or stored: the table is recomputed on
every call so it can never drift from the recorded results.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from league_arc.data_models.league import Participant, StandingsRow
from league_arc.database.models import League, LeagueFixture, FixtureStage
from league_arc.services.base import BaseService
from league_arc.utils.league_exceptions import LeagueNotFoundError, DatabaseError
from league_arc.utils.standings import StandingsCalculator

logger = logging.getLogger(__name__)


def is_table_fixture(fixture) -> bool:
    """Round-robin and table-phase fixtures count towards the table; knockouts don't."""
    return fixture.stage is None or fixture.stage == FixtureStage.TABLE_PHASE


def league_table(league: League) -> List[StandingsRow]:
    """Standings for a league loaded with members and fixtures (with results)."""
    table_fixtures = [f for f in league.fixtures if is_table_fixture(f)]
    members = [
        Participant(user_id=m.user_id, team_label=m.team_label, member_id=m.id)
        for m in league.members
    ]
    participants = StandingsCalculator.table_participants(members, table_fixtures)
    results = [f.result for f in table_fixtures if f.result is not None]
    return StandingsCalculator.compute_standings(participants, table_fixtures, results)


class StandingsService(BaseService):
    """Service computing league tables from recorded results."""

    async def load_league(self, league_id: int) -> Optional[League]:
        """League with members, fixtures and results eagerly loaded."""
        async with self.get_session() as session:
            result = await session.execute(
                select(League)
                .options(
                    selectinload(League.members),
                    selectinload(League.fixtures).selectinload(LeagueFixture.result)
                )
                .where(League.id == league_id)
            )
            return result.scalar_one_or_none()

    async def compute_standings(self, league_id: int) -> List[StandingsRow]:
        """
        Current table for a league (table phase only for UEFA hybrid leagues).

        Raises:
            LeagueNotFoundError: Unknown league
            DatabaseError: If database operation fails
        """
        league, rows = await self.compute_standings_with_league(league_id)
        return rows

    async def compute_standings_with_league(self, league_id: int) -> Tuple[League, List[StandingsRow]]:
        """Same as compute_standings, also returning the loaded league."""
        try:
            league = await self.execute_with_retry(lambda: self.load_league(league_id))
        except SQLAlchemyError as e:
            logger.error(f"Failed to load league {league_id} for standings: {e}")
            raise DatabaseError("standings calculation", str(e))

        if league is None:
            raise LeagueNotFoundError(league_id)

        rows = league_table(league)
        logger.debug(f"Computed standings for league {league_id}: {len(rows)} rows")
        return league, rows
