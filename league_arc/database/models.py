from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from enum import Enum, IntEnum
from typing import Optional

Base = declarative_base()

class LeagueTier(IntEnum):
    AMATEUR = 1
    COMPETITIVE = 2
    ELITE = 3
    CHAMPIONS = 4

class LeagueMode(Enum):
    ROUND_ROBIN = "round_robin"
    UEFA_HYBRID = "uefa_hybrid"

class FixtureStage(Enum):
    TABLE_PHASE = "table_phase"
    ROUND_OF_16 = "round_of_16"
    QUARTER_FINAL = "quarter_final"
    SEMI_FINAL = "semi_final"
    FINAL = "final"

    @property
    def is_knockout(self) -> bool:
        return self is not FixtureStage.TABLE_PHASE

class FixtureStatus(Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"

class League(Base):
    __tablename__ = 'leagues'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    tier = Column(Integer, nullable=False, default=LeagueTier.AMATEUR.value)
    mode = Column(SQLEnum(LeagueMode), nullable=False, default=LeagueMode.ROUND_ROBIN)
    max_participants = Column(Integer, nullable=False, default=20)
    is_ranked = Column(Boolean, default=True)  # Only ranked leagues feed the global leaderboard

    # Highest gameweek ever allocated in this league, only ever increases
    gameweek = Column(Integer, nullable=False, default=0)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    members = relationship(
        "LeagueMember", back_populates="league",
        cascade="all, delete-orphan", order_by="LeagueMember.id"
    )
    fixtures = relationship(
        "LeagueFixture", back_populates="league",
        cascade="all, delete-orphan", order_by="LeagueFixture.id"
    )
    results = relationship("LeagueResult", viewonly=True)

    __table_args__ = (
        CheckConstraint('tier BETWEEN 1 AND 4', name='ck_league_tier_range'),
        CheckConstraint('max_participants >= 2', name='ck_league_min_capacity'),
    )

    @property
    def league_tier(self) -> LeagueTier:
        return LeagueTier(self.tier)

    def __repr__(self):
        return f"<League(id={self.id}, name='{self.name}', mode={self.mode}, tier={self.tier})>"

class LeagueMember(Base):
    __tablename__ = 'league_members'

    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey('leagues.id'), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    team_label = Column(String(100), nullable=False)
    username = Column(String(100), nullable=True)  # Display name from the identity service

    # Metadata
    joined_at = Column(DateTime, default=func.now())

    # Relationships
    league = relationship("League", back_populates="members")

    __table_args__ = (UniqueConstraint('league_id', 'user_id'),)

    def __repr__(self):
        return f"<LeagueMember(league_id={self.league_id}, user_id='{self.user_id}', team='{self.team_label}')>"

class LeagueFixture(Base):
    __tablename__ = 'league_fixtures'

    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey('leagues.id'), nullable=False, index=True)

    # Participants (denormalized team labels as shown on the fixture list)
    home_user_id = Column(String(64), nullable=False)
    away_user_id = Column(String(64), nullable=False)
    home_team = Column(String(100), nullable=False)
    away_team = Column(String(100), nullable=False)

    # Scheduling
    gameweek = Column(Integer, nullable=False, index=True)
    stage = Column(SQLEnum(FixtureStage), nullable=True)  # None for plain round-robin
    bracket_slot = Column(Integer, nullable=True)  # Position within a knockout stage
    status = Column(SQLEnum(FixtureStatus), nullable=False, default=FixtureStatus.SCHEDULED)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    league = relationship("League", back_populates="fixtures")
    result = relationship(
        "LeagueResult", back_populates="fixture",
        uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint('home_user_id != away_user_id', name='ck_fixture_distinct_sides'),
        CheckConstraint('gameweek >= 1', name='ck_fixture_positive_gameweek'),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == FixtureStatus.COMPLETED

    @property
    def is_knockout(self) -> bool:
        return self.stage is not None and self.stage.is_knockout

    def __repr__(self):
        stage = self.stage.value if self.stage else 'none'
        return (
            f"<LeagueFixture(id={self.id}, GW{self.gameweek}, {self.home_user_id} vs {self.away_user_id}, "
            f"stage={stage}, status={self.status})>"
        )

class LeagueResult(Base):
    __tablename__ = 'league_results'

    id = Column(Integer, primary_key=True)
    fixture_id = Column(Integer, ForeignKey('league_fixtures.id'), nullable=False, unique=True)
    league_id = Column(Integer, ForeignKey('leagues.id'), nullable=False, index=True)
    home_user_id = Column(String(64), nullable=False)
    away_user_id = Column(String(64), nullable=False)
    home_score = Column(Integer, nullable=False)
    away_score = Column(Integer, nullable=False)
    verified = Column(Boolean, default=True)

    # Metadata
    submitted_at = Column(DateTime, default=func.now())

    # Relationships
    fixture = relationship("LeagueFixture", back_populates="result")

    __table_args__ = (
        CheckConstraint('home_score >= 0', name='ck_result_home_score'),
        CheckConstraint('away_score >= 0', name='ck_result_away_score'),
    )

    @property
    def winner_user_id(self) -> Optional[str]:
        if self.home_score > self.away_score:
            return self.home_user_id
        if self.away_score > self.home_score:
            return self.away_user_id
        return None

    def __repr__(self):
        return f"<LeagueResult(fixture_id={self.fixture_id}, {self.home_score}-{self.away_score})>"
