"""
League data models for fixture scheduling and standings.

Provides immutable data transfer objects passed between the pure scheduling
and standings utilities and the operations layer. Field names mirror the
persisted ``league_fixtures`` / ``league_results`` columns so that ORM rows and
these objects can be used interchangeably by the pure utilities.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from league_arc.database.models import FixtureStage, FixtureStatus


@dataclass(frozen=True)
class Participant:
    """One team entered in a league."""
    user_id: str
    team_label: str
    member_id: Optional[int] = None


@dataclass(frozen=True)
class ScheduledFixture:
    """A fixture produced by the scheduler, not yet persisted."""
    home_user_id: str
    away_user_id: str
    home_team: str
    away_team: str
    gameweek: int
    stage: Optional[FixtureStage] = None
    bracket_slot: Optional[int] = None
    status: FixtureStatus = FixtureStatus.SCHEDULED

    @property
    def pairing(self) -> frozenset:
        return frozenset((self.home_user_id, self.away_user_id))


@dataclass(frozen=True)
class KnockoutSlot:
    """Where a knockout winner goes next."""
    stage: FixtureStage
    bracket_slot: int
    side: str  # 'home' or 'away'
    user_id: str
    team_label: str


@dataclass(frozen=True)
class ResultInput:
    """One entry of a bulk result submission."""
    fixture_id: int
    home_score: int
    away_score: int


@dataclass(frozen=True)
class BatchItemError:
    """A failed item of a bulk result submission."""
    index: int
    fixture_id: int
    error: Exception


@dataclass(frozen=True)
class BatchSubmissionReport:
    """Outcome of a bulk result submission."""
    success_count: int
    errors: List[BatchItemError] = field(default_factory=list)
    completed_fixture_ids: List[int] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.errors)


@dataclass(frozen=True)
class StandingsRow:
    """Single league table row."""
    position: int
    user_id: str
    team_label: str
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int
    form: Tuple[str, ...] = ()
