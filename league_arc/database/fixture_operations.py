"""
Fixture Operations Module

This module provides the operational layer for league fixtures and results:
generating fixture lists, recording results and moving knockout winners
through the bracket.

Guarantees:
- Generation is serialized per league (GenerationLock) and the
  "read highest gameweek, insert fixtures, bump league counter" sequence runs
  in one transaction, so callers never supply gameweek numbers
- A single result submission is atomic: result row, fixture status and
  knockout advancement commit together or not at all
- Bulk submission applies each item in its own transaction and reports
  failures per item; one bad item never blocks the others

Patterns:
- Pattern A: Fixture generation (round-robin / UEFA hybrid)
- Pattern B: Result recording (single and batch)
- Pattern C: Knockout progression (advance winner, re-seed from table)
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from league_arc.constants import SchedulingConstants
from league_arc.data_models.league import (
    BatchItemError, BatchSubmissionReport, Participant, ResultInput
)
from league_arc.database.models import (
    League, LeagueMember, LeagueFixture, LeagueResult,
    LeagueMode, FixtureStage, FixtureStatus
)
from league_arc.services.generation_lock import GenerationLock
from league_arc.utils.league_exceptions import (
    LeagueArcException, LeagueNotFoundError, LeagueModeMismatchError, FixtureNotFoundError,
    ResultAlreadyExistsError, InvalidScoreError, KnockoutStateError, DatabaseError
)
from league_arc.utils.scheduling import FixtureScheduler, feeder_slots
from league_arc.utils.standings import StandingsCalculator
from league_arc.utils.logger import setup_logger

logger = setup_logger(__name__)


class FixtureOperations:
    """
    Core service class for LeagueFixture and LeagueResult operations.

    Wraps the pure FixtureScheduler / StandingsCalculator with persistence,
    locking and transactional result recording.
    """

    def __init__(self, database, generation_lock: Optional[GenerationLock] = None):
        """Initialize with database instance and optional generation lock"""
        self.db = database
        self.generation_lock = generation_lock or GenerationLock()
        self.logger = logger

    # ============================================================================
    # Pattern A: Fixture Generation
    # ============================================================================

    async def generate_round_robin_fixtures(
        self,
        league_id: int,
        participants: Optional[Sequence[Participant]] = None
    ) -> List[LeagueFixture]:
        """
        Generate and persist a single round-robin for a league.

        Args:
            league_id: League to schedule
            participants: Ordered participants; defaults to the league's members
                          in join order

        Returns:
            The persisted fixtures, ordered by gameweek

        Raises:
            LeagueNotFoundError: Unknown league
            InsufficientParticipantsError: Fewer than 2 participants
            DuplicateParticipantError: A participant is listed twice
            LeagueModeMismatchError: The league is not a round-robin league
            GenerationInProgressError: Another process holds the league's lock
            DatabaseError: If database operation fails
        """
        return await self._generate(league_id, participants, LeagueMode.ROUND_ROBIN)

    async def generate_uefa_tournament(
        self,
        league_id: int,
        participants: Optional[Sequence[Participant]] = None
    ) -> List[LeagueFixture]:
        """
        Generate and persist a UEFA hybrid tournament (table phase + knockout skeleton).

        Participants are seeded in the order given (first = best); at least 16
        are required.

        Raises:
            Same as generate_round_robin_fixtures; InsufficientParticipantsError
            below 16 participants; LeagueModeMismatchError when the
            league is not a UEFA hybrid league
        """
        return await self._generate(league_id, participants, LeagueMode.UEFA_HYBRID)

    async def generate_league_fixtures(
        self,
        league_id: int,
        participants: Optional[Sequence[Participant]] = None
    ) -> List[LeagueFixture]:
        """Generate fixtures in the format stored on the league (round-robin or UEFA hybrid)"""
        return await self._generate(league_id, participants)

    async def _generate(
        self,
        league_id: int,
        participants: Optional[Sequence[Participant]],
        mode: Optional[LeagueMode] = None
    ) -> List[LeagueFixture]:
        async with self.generation_lock.hold(league_id):
            try:
                async with self.db.transaction() as session:
                    league = await self._get_league(session, league_id)
                    if mode is None:
                        mode = league.mode
                    elif mode != league.mode:
                        raise LeagueModeMismatchError(league_id, league.mode.value, mode.value)

                    if participants is None:
                        participants = await self._get_participants(session, league_id)

                    existing = (await session.execute(
                        select(LeagueFixture).where(LeagueFixture.league_id == league_id)
                    )).scalars().all()
                    starting_gameweek = FixtureScheduler.next_gameweek(existing, floor=league.gameweek or 0)

                    if mode == LeagueMode.UEFA_HYBRID:
                        scheduled = FixtureScheduler.generate_uefa_tournament(participants, starting_gameweek)
                    else:
                        scheduled = FixtureScheduler.generate_round_robin(participants, starting_gameweek)

                    fixtures = [
                        LeagueFixture(
                            league_id=league_id,
                            home_user_id=f.home_user_id,
                            away_user_id=f.away_user_id,
                            home_team=f.home_team,
                            away_team=f.away_team,
                            gameweek=f.gameweek,
                            stage=f.stage,
                            bracket_slot=f.bracket_slot,
                            status=FixtureStatus.SCHEDULED,
                        )
                        for f in scheduled
                    ]
                    session.add_all(fixtures)

                    league.gameweek = max(league.gameweek or 0, max(f.gameweek for f in scheduled))
                    await session.flush()

            except LeagueArcException:
                raise
            except SQLAlchemyError as e:
                self.logger.error(f"Failed to generate fixtures for league {league_id}: {e}")
                raise DatabaseError("fixture generation", str(e))

        self.logger.info(
            f"Generated {len(fixtures)} {mode.value} fixtures for league {league_id} "
            f"(GW{starting_gameweek}-GW{league.gameweek})"
        )
        return fixtures

    # ============================================================================
    # Pattern B: Result Recording
    # ============================================================================

    async def submit_result(
        self,
        fixture_id: int,
        home_score: int,
        away_score: int,
        verified: bool = True,
        advance: bool = True
    ) -> LeagueResult:
        """
        Record the result of a fixture and mark it completed.

        For knockout fixtures the winner is moved into the next stage's slot in
        the same transaction (unless ``advance`` is False).

        Args:
            fixture_id: Fixture being resolved
            home_score: Goals scored by the home side (int >= 0)
            away_score: Goals scored by the away side (int >= 0)
            verified: Whether an admin verified the score
            advance: Carry a knockout winner into the next stage

        Returns:
            LeagueResult: The created result

        Raises:
            InvalidScoreError: Negative or non-integer score, or a knockout draw
            KnockoutStateError: A feeding fixture of the previous stage is unplayed
            FixtureNotFoundError: Unknown fixture
            ResultAlreadyExistsError: Fixture already resolved
            DatabaseError: If database operation fails
        """
        self._validate_score(home_score)
        self._validate_score(away_score)

        try:
            async with self.db.transaction() as session:
                fixture = await self._get_fixture(session, fixture_id)

                if fixture.result is not None or fixture.status == FixtureStatus.COMPLETED:
                    raise ResultAlreadyExistsError(fixture_id)

                if fixture.is_knockout and home_score == away_score:
                    raise InvalidScoreError(
                        f"{home_score}-{away_score}", "Knockout fixtures must have a winner"
                    )
                if fixture.is_knockout:
                    await self._check_feeders_completed(session, fixture)

                result = LeagueResult(
                    fixture_id=fixture.id,
                    league_id=fixture.league_id,
                    home_user_id=fixture.home_user_id,
                    away_user_id=fixture.away_user_id,
                    home_score=home_score,
                    away_score=away_score,
                    verified=verified,
                )
                fixture.result = result
                fixture.status = FixtureStatus.COMPLETED
                fixture.completed_at = datetime.now(timezone.utc)

                if advance and fixture.is_knockout:
                    await self._apply_advancement(session, fixture, result)

                await session.flush()

        except LeagueArcException:
            raise
        except IntegrityError as e:
            # Unique fixture_id lost a race with a concurrent submission
            self.logger.warning(f"Integrity error recording result for fixture {fixture_id}: {e}")
            raise ResultAlreadyExistsError(fixture_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to record result for fixture {fixture_id}: {e}")
            raise DatabaseError("result submission", str(e))

        self.logger.info(f"Recorded result {home_score}-{away_score} for fixture {fixture_id}")
        return result

    async def submit_results_batch(self, results: Sequence[ResultInput]) -> BatchSubmissionReport:
        """
        Record several results, each in its own transaction.

        A failing item never aborts the others; the caller retries only the
        items listed in ``errors``.

        Args:
            results: Results to record, in submission order

        Returns:
            BatchSubmissionReport with the success count and one BatchItemError
            (0-based index, fixture id, exception) per failed item
        """
        errors = []
        completed = []

        for index, item in enumerate(results):
            try:
                await self.submit_result(item.fixture_id, item.home_score, item.away_score)
                completed.append(item.fixture_id)
            except LeagueArcException as e:
                self.logger.warning(f"Batch item {index} (fixture {item.fixture_id}) failed: {e}")
                errors.append(BatchItemError(index=index, fixture_id=item.fixture_id, error=e))

        self.logger.info(f"Batch submission: {len(completed)} succeeded, {len(errors)} failed")
        return BatchSubmissionReport(
            success_count=len(completed),
            errors=errors,
            completed_fixture_ids=completed,
        )

    def _validate_score(self, score) -> None:
        """Scores are non-negative integers (bools rejected)"""
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidScoreError(score, "Scores must be whole numbers")
        if score < 0:
            raise InvalidScoreError(score, "Scores cannot be negative")

    # ============================================================================
    # Pattern C: Knockout Progression
    # ============================================================================

    async def advance_winner(self, fixture_id: int) -> Optional[LeagueFixture]:
        """
        Carry the winner of a completed knockout fixture into the next stage.

        Result submission already does this; calling it again rewrites the
        same slot, so it is safe to repeat.

        Returns:
            The next-stage fixture that was updated, or None after the final

        Raises:
            FixtureNotFoundError: Unknown fixture
            KnockoutStateError: Not a knockout fixture, no result yet, or the
                                next-stage fixture is already completed
        """
        try:
            async with self.db.transaction() as session:
                fixture = await self._get_fixture(session, fixture_id)
                if fixture.result is None:
                    raise KnockoutStateError(f"Fixture {fixture_id} has no result yet")
                target = await self._apply_advancement(session, fixture, fixture.result)
                await session.flush()
        except LeagueArcException:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to advance winner of fixture {fixture_id}: {e}")
            raise DatabaseError("knockout advancement", str(e))

        return target

    async def reseed_knockout(self, league_id: int) -> List[LeagueFixture]:
        """
        Re-seed the knockout skeleton of the latest tournament from its
        finished table phase.

        The top 16 of the table-phase standings replace the provisional
        seeding used at generation time. Gameweeks are kept.

        Returns:
            The knockout fixtures in bracket order

        Raises:
            LeagueNotFoundError: Unknown league
            KnockoutStateError: No UEFA tournament, table phase unfinished, or a
                                knockout fixture already played
        """
        async with self.generation_lock.hold(league_id):
            try:
                async with self.db.transaction() as session:
                    await self._get_league(session, league_id)

                    fixtures = (await session.execute(
                        select(LeagueFixture)
                        .options(selectinload(LeagueFixture.result))
                        .where(LeagueFixture.league_id == league_id)
                        .order_by(LeagueFixture.gameweek, LeagueFixture.id)
                    )).scalars().all()

                    table_phase, knockout = self._latest_tournament(fixtures)

                    if not table_phase or not knockout:
                        raise KnockoutStateError(f"League {league_id} has no UEFA tournament to re-seed")
                    if any(not f.is_completed for f in table_phase):
                        raise KnockoutStateError("The table phase is not finished yet")
                    if any(f.is_completed for f in knockout):
                        raise KnockoutStateError("The knockout stage has already started")

                    members = await self._get_participants(session, league_id)
                    participants = StandingsCalculator.table_participants(members, table_phase)
                    standings = StandingsCalculator.compute_standings(
                        participants, table_phase, [f.result for f in table_phase if f.result]
                    )
                    if len(standings) < SchedulingConstants.UEFA_KNOCKOUT_SIZE:
                        raise KnockoutStateError("Fewer than 16 teams in the table phase")

                    seeds = [
                        Participant(user_id=row.user_id, team_label=row.team_label)
                        for row in standings[:SchedulingConstants.UEFA_KNOCKOUT_SIZE]
                    ]
                    skeleton = {
                        (f.stage, f.bracket_slot): f
                        for f in FixtureScheduler.build_knockout_skeleton(seeds, SchedulingConstants.FIRST_GAMEWEEK)
                    }

                    for fixture in knockout:
                        seeded = skeleton.get((fixture.stage, fixture.bracket_slot))
                        if seeded is None:
                            raise KnockoutStateError(
                                f"Fixture {fixture.id} has no place in the bracket"
                            )
                        fixture.home_user_id = seeded.home_user_id
                        fixture.home_team = seeded.home_team
                        fixture.away_user_id = seeded.away_user_id
                        fixture.away_team = seeded.away_team

                    await session.flush()

            except LeagueArcException:
                raise
            except SQLAlchemyError as e:
                self.logger.error(f"Failed to re-seed knockout for league {league_id}: {e}")
                raise DatabaseError("knockout re-seeding", str(e))

        self.logger.info(f"Re-seeded {len(knockout)} knockout fixtures for league {league_id}")
        return knockout

    @staticmethod
    def _latest_tournament(fixtures: Sequence[LeagueFixture]):
        """
        Table phase and knockout fixtures of the most recently generated tournament.

        A league can hold several UEFA tournaments; each knockout bracket
        starts with its Round of 16 and its table phase lies between the
        previous bracket and that Round of 16.
        """
        round_of_16 = [f.gameweek for f in fixtures if f.stage == FixtureStage.ROUND_OF_16]
        if not round_of_16:
            return [], []

        bracket_start = max(round_of_16)
        previous_end = max(
            (f.gameweek for f in fixtures if f.is_knockout and f.gameweek < bracket_start),
            default=0
        )
        table_phase = [
            f for f in fixtures
            if f.stage == FixtureStage.TABLE_PHASE and previous_end < f.gameweek < bracket_start
        ]
        knockout = [f for f in fixtures if f.is_knockout and f.gameweek >= bracket_start]
        return table_phase, knockout

    async def _apply_advancement(
        self,
        session: AsyncSession,
        fixture: LeagueFixture,
        result: LeagueResult
    ) -> Optional[LeagueFixture]:
        """Write the winner of ``fixture`` into its next-stage slot"""
        slot = FixtureScheduler.advance_winner(fixture, result)
        if slot is None:
            self.logger.info(
                f"League {fixture.league_id} final decided: {result.winner_user_id} are champions"
            )
            return None

        target = (await session.execute(
            select(LeagueFixture).where(
                LeagueFixture.league_id == fixture.league_id,
                LeagueFixture.stage == slot.stage,
                LeagueFixture.bracket_slot == slot.bracket_slot,
                # Stages of one bracket sit in consecutive gameweeks
                LeagueFixture.gameweek == fixture.gameweek + 1,
            )
        )).scalar_one_or_none()

        if target is None:
            raise KnockoutStateError(
                f"No {slot.stage.value} fixture in slot {slot.bracket_slot} for league {fixture.league_id}"
            )
        if target.is_completed:
            raise KnockoutStateError(f"{slot.stage.value} fixture {target.id} has already been played")

        if slot.side == 'home':
            target.home_user_id = slot.user_id
            target.home_team = slot.team_label
        else:
            target.away_user_id = slot.user_id
            target.away_team = slot.team_label

        self.logger.info(
            f"Advanced {slot.user_id} from fixture {fixture.id} to {slot.stage.value} "
            f"slot {slot.bracket_slot} ({slot.side})"
        )
        return target

    async def _check_feeders_completed(self, session: AsyncSession, fixture: LeagueFixture) -> None:
        """Both previous-stage fixtures feeding ``fixture`` must be played first"""
        feeders = feeder_slots(fixture.stage, fixture.bracket_slot)
        if feeders is None:
            return

        stage, first_slot, second_slot = feeders
        played = (await session.execute(
            select(LeagueFixture).where(
                LeagueFixture.league_id == fixture.league_id,
                LeagueFixture.stage == stage,
                LeagueFixture.gameweek == fixture.gameweek - 1,
                LeagueFixture.bracket_slot.in_((first_slot, second_slot)),
            )
        )).scalars().all()

        if len(played) != 2 or not all(f.is_completed for f in played):
            raise KnockoutStateError(
                f"Both {stage.value} fixtures feeding this {fixture.stage.value} must be played first"
            )

    # ============================================================================
    # Lookups
    # ============================================================================

    async def _get_league(self, session: AsyncSession, league_id: int) -> League:
        league = await session.get(League, league_id)
        if league is None:
            raise LeagueNotFoundError(league_id)
        return league

    async def _get_fixture(self, session: AsyncSession, fixture_id: int) -> LeagueFixture:
        fixture = (await session.execute(
            select(LeagueFixture)
            .options(selectinload(LeagueFixture.result))
            .where(LeagueFixture.id == fixture_id)
        )).scalar_one_or_none()
        if fixture is None:
            raise FixtureNotFoundError(fixture_id)
        return fixture

    async def _get_participants(self, session: AsyncSession, league_id: int) -> List[Participant]:
        members = (await session.execute(
            select(LeagueMember)
            .where(LeagueMember.league_id == league_id)
            .order_by(LeagueMember.id)
        )).scalars().all()
        return [
            Participant(user_id=m.user_id, team_label=m.team_label, member_id=m.id)
            for m in members
        ]
