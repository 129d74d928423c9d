"""Shared fixtures: a fresh SQLite database per test."""

import pytest
import pytest_asyncio

from league_arc.data_models.league import Participant
from league_arc.database.database import Database
from league_arc.database.fixture_operations import FixtureOperations
from league_arc.database.models import LeagueMode, LeagueTier
from league_arc.operations.league_operations import LeagueOperations
from league_arc.services.generation_lock import GenerationLock
from league_arc.services.leaderboard import GlobalLeaderboardService
from league_arc.services.standings import StandingsService


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def league_ops(db):
    return LeagueOperations(db)


@pytest.fixture
def fixture_ops(db):
    return FixtureOperations(db, GenerationLock())


@pytest.fixture
def standings_service(db):
    return StandingsService(db.async_session)


@pytest.fixture
def leaderboard_service(db):
    return GlobalLeaderboardService(db.async_session)


def make_participants(count: int, prefix: str = "u"):
    return [Participant(user_id=f"{prefix}{i}", team_label=f"Team {i}") for i in range(count)]


@pytest.fixture
def create_league(league_ops):
    """Create a league and enroll ``size`` members in join order."""
    async def _create(size: int, name: str = "League", tier: LeagueTier = LeagueTier.AMATEUR,
                      mode: LeagueMode = LeagueMode.ROUND_ROBIN, prefix: str = "u",
                      is_ranked: bool = True):
        league = await league_ops.create_league(
            name, tier=tier, mode=mode, max_participants=max(size, 2), is_ranked=is_ranked
        )
        for p in make_participants(size, prefix):
            await league_ops.add_member(league.id, p.user_id, p.team_label, username=f"{p.user_id}-name")
        return league
    return _create
