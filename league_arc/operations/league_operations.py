"""
League Operations Module

This module provides business logic operations for League management:
creating leagues, enrolling participants and deleting leagues.

Key functionality:
- create_league(): New league with mode, tier and capacity
- add_member(): Enroll a participant (rejects duplicates and full leagues)
- get_participants(): Ordered Participant list used by the scheduler
- delete_league(): Remove a league with its members, fixtures and results
"""

from typing import List, Optional
from contextlib import asynccontextmanager
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from league_arc.data_models.league import Participant
from league_arc.database.models import League, LeagueMember, LeagueFixture, LeagueMode, LeagueTier
from league_arc.utils.league_exceptions import (
    LeagueArcException, LeagueNotFoundError, LeagueFullError,
    DuplicateParticipantError, DatabaseError
)
from league_arc.utils.logger import setup_logger

logger = setup_logger(__name__)


class LeagueOperations:
    """
    Business logic operations for League lifecycle management.
    """

    def __init__(self, database):
        """Initialize with database instance"""
        self.db = database
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self, session: Optional[AsyncSession] = None):
        """
        Provides a session context. Uses the provided session if available,
        otherwise creates and manages a new session.
        """
        if session:
            # If a session is provided, we do not manage its lifecycle
            yield session
        else:
            # If no session is provided, we create one and manage its lifecycle
            async with self.db.transaction() as new_session:
                yield new_session

    async def create_league(
        self,
        name: str,
        tier: LeagueTier = LeagueTier.AMATEUR,
        mode: LeagueMode = LeagueMode.ROUND_ROBIN,
        max_participants: int = 20,
        is_ranked: bool = True,
        session: Optional[AsyncSession] = None
    ) -> League:
        """
        Create a new league.

        Args:
            name: Display name
            tier: Competitiveness tier used by the global leaderboard
            mode: round_robin or uefa_hybrid
            max_participants: Capacity (at least 2)
            is_ranked: Whether the league feeds the global leaderboard
            session: Optional session to join an outer transaction

        Returns:
            League: The created league
        """
        if max_participants < 2:
            raise ValueError("max_participants must be at least 2")

        try:
            async with self._get_session_context(session) as s:
                league = League(
                    name=name,
                    tier=int(LeagueTier(tier)),
                    mode=mode,
                    max_participants=max_participants,
                    is_ranked=is_ranked,
                    gameweek=0,
                )
                s.add(league)
                await s.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to create league '{name}': {e}")
            raise DatabaseError("league creation", str(e))

        self.logger.info(f"Created league {league.id} '{name}' ({mode.value}, tier {int(tier)})")
        return league

    async def add_member(
        self,
        league_id: int,
        user_id: str,
        team_label: str,
        username: Optional[str] = None,
        session: Optional[AsyncSession] = None
    ) -> LeagueMember:
        """
        Enroll a participant in a league.

        Raises:
            LeagueNotFoundError: Unknown league
            DuplicateParticipantError: User already in the league
            LeagueFullError: League at max_participants
        """
        try:
            async with self._get_session_context(session) as s:
                league = await s.get(League, league_id)
                if league is None:
                    raise LeagueNotFoundError(league_id)

                existing = (await s.execute(
                    select(LeagueMember.id).where(
                        LeagueMember.league_id == league_id,
                        LeagueMember.user_id == user_id
                    )
                )).scalar_one_or_none()
                if existing is not None:
                    raise DuplicateParticipantError(user_id)

                member_count = await s.scalar(
                    select(func.count(LeagueMember.id)).where(LeagueMember.league_id == league_id)
                )
                if member_count >= league.max_participants:
                    raise LeagueFullError(league_id, league.max_participants)

                member = LeagueMember(
                    league_id=league_id,
                    user_id=user_id,
                    team_label=team_label,
                    username=username,
                )
                s.add(member)
                await s.flush()

        except LeagueArcException:
            raise
        except IntegrityError:
            # Unique (league_id, user_id) lost a race with a concurrent join
            raise DuplicateParticipantError(user_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to add {user_id} to league {league_id}: {e}")
            raise DatabaseError("member enrollment", str(e))

        self.logger.info(f"User {user_id} joined league {league_id} as '{team_label}'")
        return member

    async def get_participants(self, league_id: int) -> List[Participant]:
        """Get a league's participants in join order"""
        league = await self.db.get_league(league_id)
        if league is None:
            raise LeagueNotFoundError(league_id)

        members = await self.db.get_league_members(league_id)
        return [
            Participant(user_id=m.user_id, team_label=m.team_label, member_id=m.id)
            for m in members
        ]

    async def delete_league(self, league_id: int) -> bool:
        """
        Delete a league.

        Uses the ORM cascade to delete members, fixtures and their results.

        Returns:
            True if the league was deleted, False if it was not found
        """
        try:
            async with self.db.transaction() as session:
                league = (await session.execute(
                    select(League)
                    .options(
                        selectinload(League.members),
                        selectinload(League.fixtures).selectinload(LeagueFixture.result)
                    )
                    .where(League.id == league_id)
                )).scalar_one_or_none()

                if league is None:
                    return False

                await session.delete(league)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to delete league {league_id}: {e}")
            raise DatabaseError("league deletion", str(e))

        self.logger.info(f"Deleted league {league_id}")
        return True
