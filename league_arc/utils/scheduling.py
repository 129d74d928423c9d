"""
Fixture scheduling for round-robin leagues and UEFA-style hybrid tournaments.

The scheduler is a pure component: it turns an ordered participant list and a
starting gameweek into a list of :class:`ScheduledFixture` objects and never
touches the database. Gameweek allocation (reading the highest gameweek still
in play) is done by the operations layer under a per-league lock, which then
hands the starting number in here.

Round-robin uses the circle method: position 0 stays fixed, every other
position rotates one slot per round (last element reinserted at index 1).
An odd participant count is evened out with a bye whose pairings are dropped.

The UEFA hybrid format plays a single round-robin table phase across all
participants, followed by a knockout skeleton (Round of 16 down to the final)
seeded from the participant order. Later rounds are placeholders whose
entrants are the higher seeds of the two feeding slots until
:meth:`FixtureScheduler.advance_winner` writes in the real winners.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from league_arc.constants import SchedulingConstants
from league_arc.data_models.league import KnockoutSlot, Participant, ScheduledFixture
from league_arc.database.models import FixtureStage, FixtureStatus
from league_arc.utils.league_exceptions import (
    DuplicateParticipantError, InsufficientParticipantsError, KnockoutStateError
)

logger = logging.getLogger(__name__)

# Knockout stages in bracket order
KNOCKOUT_STAGES = [
    FixtureStage.ROUND_OF_16,
    FixtureStage.QUARTER_FINAL,
    FixtureStage.SEMI_FINAL,
    FixtureStage.FINAL,
]

_BYE = Participant(user_id=SchedulingConstants.BYE_USER_ID, team_label="BYE")


def next_knockout_stage(stage: FixtureStage) -> Optional[FixtureStage]:
    """Stage following ``stage`` in the bracket, or None after the final."""
    if stage not in KNOCKOUT_STAGES:
        raise KnockoutStateError(f"{stage.value} is not a knockout stage")
    index = KNOCKOUT_STAGES.index(stage)
    if index + 1 == len(KNOCKOUT_STAGES):
        return None
    return KNOCKOUT_STAGES[index + 1]


def feeder_slots(stage: FixtureStage, bracket_slot: int) -> Optional[Tuple[FixtureStage, int, int]]:
    """Previous stage and the two slots feeding ``bracket_slot``, None for the Round of 16."""
    if stage not in KNOCKOUT_STAGES:
        raise KnockoutStateError(f"{stage.value} is not a knockout stage")
    index = KNOCKOUT_STAGES.index(stage)
    if index == 0:
        return None
    return KNOCKOUT_STAGES[index - 1], 2 * bracket_slot, 2 * bracket_slot + 1


class FixtureScheduler:
    """Generates fixture lists for the supported league formats"""

    @staticmethod
    def validate_participants(participants: Sequence[Participant], minimum: int) -> None:
        """
        Check a participant list before generation.

        Raises:
            DuplicateParticipantError: If a user_id appears twice
            InsufficientParticipantsError: If fewer than ``minimum`` participants
        """
        seen = set()
        for participant in participants:
            if participant.user_id in seen:
                raise DuplicateParticipantError(participant.user_id)
            seen.add(participant.user_id)

        if len(participants) < minimum:
            raise InsufficientParticipantsError(minimum, len(participants))

    @staticmethod
    def next_gameweek(existing_fixtures: Iterable, floor: int = 0) -> int:
        """
        First free gameweek for a new generation call.

        Highest gameweek among non-completed fixtures plus one, or 1 when there
        are none; never at or below ``floor`` (the league's allocated counter).
        """
        open_gameweeks = [
            f.gameweek for f in existing_fixtures
            if f.status != FixtureStatus.COMPLETED
        ]
        candidate = max(open_gameweeks) + 1 if open_gameweeks else SchedulingConstants.FIRST_GAMEWEEK
        return max(candidate, floor + 1)

    @staticmethod
    def round_robin_rounds(participants: Sequence[Participant]) -> List[List[tuple]]:
        """
        Pairings per round using the circle method, byes removed.

        Returns:
            One list of ``(home, away)`` participant tuples per round
        """
        circle = list(participants)
        if len(circle) % 2 != 0:
            circle.append(_BYE)

        size = len(circle)
        rounds = []
        for _ in range(size - 1):
            pairings = []
            for i in range(size // 2):
                home = circle[i]
                away = circle[size - 1 - i]
                if home is not _BYE and away is not _BYE:
                    pairings.append((home, away))
            rounds.append(pairings)

            # Rotate everyone except position 0
            last = circle.pop()
            circle.insert(1, last)

        return rounds

    @staticmethod
    def generate_round_robin(
        participants: Sequence[Participant],
        starting_gameweek: int = SchedulingConstants.FIRST_GAMEWEEK,
        stage: Optional[FixtureStage] = None,
    ) -> List[ScheduledFixture]:
        """
        Single round-robin where every pair meets exactly once.

        Args:
            participants: Ordered, unique participants (at least 2)
            starting_gameweek: Gameweek of the first round
            stage: Stage tag for every fixture (None for plain leagues)

        Returns:
            C(n, 2) fixtures, one gameweek per round

        Raises:
            InsufficientParticipantsError: Fewer than 2 participants
            DuplicateParticipantError: A participant is listed twice
        """
        FixtureScheduler.validate_participants(
            participants, SchedulingConstants.MIN_ROUND_ROBIN_PARTICIPANTS
        )
        if starting_gameweek < SchedulingConstants.FIRST_GAMEWEEK:
            raise ValueError(f"starting_gameweek must be >= 1, got {starting_gameweek}")

        fixtures = []
        for round_index, pairings in enumerate(FixtureScheduler.round_robin_rounds(participants)):
            for home, away in pairings:
                fixtures.append(ScheduledFixture(
                    home_user_id=home.user_id,
                    away_user_id=away.user_id,
                    home_team=home.team_label,
                    away_team=away.team_label,
                    gameweek=starting_gameweek + round_index,
                    stage=stage,
                ))

        logger.debug(
            f"Generated {len(fixtures)} round-robin fixtures for {len(participants)} participants "
            f"from GW{starting_gameweek}"
        )
        return fixtures

    @staticmethod
    def build_knockout_skeleton(
        seeds: Sequence[Participant],
        starting_gameweek: int,
    ) -> List[ScheduledFixture]:
        """
        Round of 16 through the final for 16 seeded participants.

        Round of 16 slot ``i`` is seed ``i`` vs seed ``15 - i``. Every later
        slot ``i`` is fed by slots ``2i`` and ``2i + 1`` of the previous stage
        and provisionally holds their higher seeds. Each stage is one gameweek.
        """
        size = SchedulingConstants.UEFA_KNOCKOUT_SIZE
        if len(seeds) != size:
            raise InsufficientParticipantsError(size, len(seeds))

        fixtures = []
        gameweek = starting_gameweek

        # Higher seed of every Round of 16 slot, in slot order
        provisional = []
        for slot in range(size // 2):
            home, away = seeds[slot], seeds[size - 1 - slot]
            fixtures.append(FixtureScheduler._knockout_fixture(
                home, away, gameweek, FixtureStage.ROUND_OF_16, slot
            ))
            provisional.append(home)
        gameweek += 1

        for stage in KNOCKOUT_STAGES[1:]:
            feeders = provisional
            provisional = []
            for slot in range(len(feeders) // 2):
                home, away = feeders[2 * slot], feeders[2 * slot + 1]
                fixtures.append(FixtureScheduler._knockout_fixture(
                    home, away, gameweek, stage, slot
                ))
                provisional.append(home)
            gameweek += 1

        return fixtures

    @staticmethod
    def generate_uefa_tournament(
        participants: Sequence[Participant],
        starting_gameweek: int = SchedulingConstants.FIRST_GAMEWEEK,
    ) -> List[ScheduledFixture]:
        """
        Table phase across all participants plus the knockout skeleton.

        Participants are taken as pre-ordered by rank (first = best); the first
        16 are seeded into the Round of 16.

        Raises:
            InsufficientParticipantsError: Fewer than 16 participants
            DuplicateParticipantError: A participant is listed twice
        """
        FixtureScheduler.validate_participants(
            participants, SchedulingConstants.UEFA_KNOCKOUT_SIZE
        )

        table_phase = FixtureScheduler.generate_round_robin(
            participants, starting_gameweek, stage=FixtureStage.TABLE_PHASE
        )
        knockout_start = max(f.gameweek for f in table_phase) + 1
        knockout = FixtureScheduler.build_knockout_skeleton(
            participants[:SchedulingConstants.UEFA_KNOCKOUT_SIZE], knockout_start
        )

        logger.debug(
            f"Generated UEFA tournament: {len(table_phase)} table phase + {len(knockout)} knockout fixtures"
        )
        return table_phase + knockout

    @staticmethod
    def advance_winner(fixture, result) -> Optional[KnockoutSlot]:
        """
        Slot in the next stage that the winner of ``fixture`` moves into.

        Args:
            fixture: Knockout fixture (ORM row or ScheduledFixture)
            result: Its result (anything with home_score / away_score)

        Returns:
            The next-stage slot, or None when ``fixture`` is the final

        Raises:
            KnockoutStateError: Not a knockout fixture, or the result is a draw
        """
        if fixture.stage is None or not fixture.stage.is_knockout:
            raise KnockoutStateError("Only knockout fixtures have a winner to advance")
        if fixture.bracket_slot is None:
            raise KnockoutStateError("Knockout fixture has no bracket slot")
        if result.home_score == result.away_score:
            raise KnockoutStateError("A knockout fixture cannot be decided by a draw")

        if result.home_score > result.away_score:
            winner_id, winner_team = fixture.home_user_id, fixture.home_team
        else:
            winner_id, winner_team = fixture.away_user_id, fixture.away_team

        following = next_knockout_stage(fixture.stage)
        if following is None:
            return None

        return KnockoutSlot(
            stage=following,
            bracket_slot=fixture.bracket_slot // 2,
            side='home' if fixture.bracket_slot % 2 == 0 else 'away',
            user_id=winner_id,
            team_label=winner_team,
        )

    # ── Internal ──────────────────────────────────────────────────────────

    @staticmethod
    def _knockout_fixture(home: Participant, away: Participant, gameweek: int,
                          stage: FixtureStage, slot: int) -> ScheduledFixture:
        return ScheduledFixture(
            home_user_id=home.user_id,
            away_user_id=away.user_id,
            home_team=home.team_label,
            away_team=away.team_label,
            gameweek=gameweek,
            stage=stage,
            bracket_slot=slot,
        )
