"""
League table calculation from fixtures and results.

Standings are always derived, never stored: every read recomputes the table
from the completed fixtures and their results.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from league_arc.constants import StandingsConstants
from league_arc.data_models.league import Participant, StandingsRow
from league_arc.database.models import FixtureStatus

logger = logging.getLogger(__name__)


@dataclass
class _TableEntry:
    """Mutable accumulator for one participant's record."""
    user_id: str
    team_label: str
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    outcomes: List[tuple] = field(default_factory=list)  # (gameweek, fixture_id, 'W'|'D'|'L')

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def record(self, scored: int, conceded: int, gameweek: int, fixture_id) -> None:
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.won += 1
            self.points += StandingsConstants.POINTS_FOR_WIN
            outcome = 'W'
        elif scored < conceded:
            self.lost += 1
            self.points += StandingsConstants.POINTS_FOR_LOSS
            outcome = 'L'
        else:
            self.drawn += 1
            self.points += StandingsConstants.POINTS_FOR_DRAW
            outcome = 'D'
        self.outcomes.append((gameweek, fixture_id or 0, outcome))

    def form(self) -> tuple:
        recent = sorted(self.outcomes, key=lambda o: (o[0], o[1]))[-StandingsConstants.FORM_LENGTH:]
        return tuple(outcome for _, _, outcome in recent)


class StandingsCalculator:
    """Builds ordered league tables from match results"""

    @staticmethod
    def sort_key(entry) -> tuple:
        """Points, then goal difference, then goals for (all descending)."""
        return (-entry.points, -entry.goal_difference, -entry.goals_for)

    @staticmethod
    def table_participants(members: Sequence[Participant], fixtures: Iterable) -> List[Participant]:
        """
        Participants of a table: members in join order, then anyone who only
        appears in ``fixtures`` (e.g. a list passed explicitly at generation)
        in order of first appearance.
        """
        participants = list(members)
        seen = {p.user_id for p in participants}
        for fixture in fixtures:
            for user_id, team in ((fixture.home_user_id, fixture.home_team),
                                  (fixture.away_user_id, fixture.away_team)):
                if user_id not in seen:
                    seen.add(user_id)
                    participants.append(Participant(user_id=user_id, team_label=team))
        return participants

    @staticmethod
    def compute_standings(
        participants: Sequence[Participant],
        fixtures: Iterable,
        results: Iterable,
    ) -> List[StandingsRow]:
        """
        Compute the league table.

        Only fixtures with status ``completed`` that have a matching result
        count. Ties left after points, goal difference and goals for keep the
        order of ``participants``.

        Args:
            participants: League participants in table-seeding order
            fixtures: Fixtures (anything with id, status, home/away user ids, gameweek)
            results: Results (anything with fixture_id, home_score, away_score)

        Returns:
            One StandingsRow per participant, best first, positions 1-based
        """
        entries: Dict[str, _TableEntry] = {}
        for participant in participants:
            entries[participant.user_id] = _TableEntry(participant.user_id, participant.team_label)

        results_by_fixture = {r.fixture_id: r for r in results}

        for fixture in fixtures:
            if fixture.status != FixtureStatus.COMPLETED:
                continue
            result = results_by_fixture.get(fixture.id)
            if result is None:
                continue

            home = entries.get(fixture.home_user_id)
            away = entries.get(fixture.away_user_id)
            if home is None or away is None:
                logger.debug(f"Skipping fixture {fixture.id}: participant not in table")
                continue

            home.record(result.home_score, result.away_score, fixture.gameweek, fixture.id)
            away.record(result.away_score, result.home_score, fixture.gameweek, fixture.id)

        # sorted() is stable, so full ties keep participant order
        ordered = sorted(entries.values(), key=StandingsCalculator.sort_key)

        return [
            StandingsRow(
                position=position,
                user_id=entry.user_id,
                team_label=entry.team_label,
                played=entry.played,
                won=entry.won,
                drawn=entry.drawn,
                lost=entry.lost,
                goals_for=entry.goals_for,
                goals_against=entry.goals_against,
                goal_difference=entry.goal_difference,
                points=entry.points,
                form=entry.form(),
            )
            for position, entry in enumerate(ordered, start=1)
        ]
