from typing import Optional, List
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from contextlib import asynccontextmanager

from league_arc.config import Config
from league_arc.database.models import (
    Base, League, LeagueMember, LeagueFixture, FixtureStatus
)
from league_arc.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = Config.get_async_database_url(self.database_url)

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All operations within the context will be committed together on success,
        or rolled back together on failure.

        Usage:
            async with db.transaction() as session:
                session.add(result)
                fixture.status = FixtureStatus.COMPLETED
                # Both changes commit together here

        Important: Exceptions must be allowed to propagate out of the context
        for rollback to occur.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # League operations
    async def get_league(self, league_id: int) -> Optional[League]:
        """Get a league by ID"""
        async with self.get_session() as session:
            return await session.get(League, league_id)

    # Member operations
    async def get_league_members(self, league_id: int) -> List[LeagueMember]:
        """Get a league's members in join order"""
        async with self.get_session() as session:
            result = await session.execute(
                select(LeagueMember)
                .where(LeagueMember.league_id == league_id)
                .order_by(LeagueMember.id)
            )
            return result.scalars().all()

    # Fixture operations
    async def get_fixture(self, fixture_id: int) -> Optional[LeagueFixture]:
        """Get a fixture with its result loaded"""
        async with self.get_session() as session:
            result = await session.execute(
                select(LeagueFixture)
                .options(selectinload(LeagueFixture.result))
                .where(LeagueFixture.id == fixture_id)
            )
            return result.scalar_one_or_none()

    async def get_league_fixtures(
        self,
        league_id: int,
        status: Optional[FixtureStatus] = None
    ) -> List[LeagueFixture]:
        """Get a league's fixtures ordered by gameweek, results loaded"""
        async with self.get_session() as session:
            query = (
                select(LeagueFixture)
                .options(selectinload(LeagueFixture.result))
                .where(LeagueFixture.league_id == league_id)
            )
            if status is not None:
                query = query.where(LeagueFixture.status == status)
            query = query.order_by(LeagueFixture.gameweek, LeagueFixture.id)

            result = await session.execute(query)
            return result.scalars().all()
