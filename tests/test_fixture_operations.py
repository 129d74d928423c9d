"""Tests for fixture generation and result recording against SQLite."""

import pytest

from league_arc.data_models.league import ResultInput
from league_arc.database.models import FixtureStage, FixtureStatus, LeagueMode
from league_arc.utils.league_exceptions import (
    FixtureNotFoundError, InsufficientParticipantsError, InvalidScoreError,
    KnockoutStateError, LeagueModeMismatchError, LeagueNotFoundError, ResultAlreadyExistsError
)


def knockout_slot(fixtures, stage, slot):
    return next(f for f in fixtures if f.stage == stage and f.bracket_slot == slot)


class TestGeneration:

    async def test_round_robin_persisted(self, db, create_league, fixture_ops):
        league = await create_league(4)

        fixtures = await fixture_ops.generate_round_robin_fixtures(league.id)

        assert len(fixtures) == 6
        assert all(f.id is not None for f in fixtures)
        assert {f.gameweek for f in fixtures} == {1, 2, 3}
        assert all(f.stage is None and f.status == FixtureStatus.SCHEDULED for f in fixtures)

        stored = await db.get_league_fixtures(league.id)
        assert len(stored) == 6
        assert (await db.get_league(league.id)).gameweek == 3

    async def test_gameweeks_continue_across_calls(self, create_league, fixture_ops):
        league = await create_league(4)

        first = await fixture_ops.generate_round_robin_fixtures(league.id)
        second = await fixture_ops.generate_round_robin_fixtures(league.id)

        assert max(f.gameweek for f in first) == 3
        assert min(f.gameweek for f in second) == 4
        assert max(f.gameweek for f in second) == 6

    async def test_completed_gameweeks_are_not_reused(self, create_league, fixture_ops):
        league = await create_league(2)

        first = await fixture_ops.generate_round_robin_fixtures(league.id)
        await fixture_ops.submit_result(first[0].id, 1, 0)
        second = await fixture_ops.generate_round_robin_fixtures(league.id)

        assert first[0].gameweek == 1
        assert second[0].gameweek == 2

    async def test_unknown_league(self, fixture_ops):
        with pytest.raises(LeagueNotFoundError):
            await fixture_ops.generate_round_robin_fixtures(404)

    async def test_too_few_members(self, db, create_league, fixture_ops):
        league = await create_league(1)

        with pytest.raises(InsufficientParticipantsError):
            await fixture_ops.generate_round_robin_fixtures(league.id)

        assert await db.get_league_fixtures(league.id) == []
        assert (await db.get_league(league.id)).gameweek == 0

    async def test_uefa_needs_sixteen(self, create_league, fixture_ops):
        league = await create_league(15, mode=LeagueMode.UEFA_HYBRID)

        with pytest.raises(InsufficientParticipantsError):
            await fixture_ops.generate_uefa_tournament(league.id)

    async def test_uefa_tournament_persisted(self, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)

        fixtures = await fixture_ops.generate_uefa_tournament(league.id)

        assert len(fixtures) == 135
        assert sum(1 for f in fixtures if f.stage == FixtureStage.TABLE_PHASE) == 120
        final = knockout_slot(fixtures, FixtureStage.FINAL, 0)
        assert final.gameweek == 19

    async def test_repeat_uefa_generation_follows_first_bracket(self, db, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)

        first = await fixture_ops.generate_uefa_tournament(league.id)
        second = await fixture_ops.generate_uefa_tournament(league.id)

        table_phase = [f for f in second if f.stage == FixtureStage.TABLE_PHASE]
        assert len(second) == 135
        assert min(f.gameweek for f in table_phase) == 20
        assert max(f.gameweek for f in table_phase) == 34
        assert knockout_slot(second, FixtureStage.ROUND_OF_16, 0).gameweek == 35
        assert knockout_slot(second, FixtureStage.FINAL, 0).gameweek == 38
        assert (await db.get_league(league.id)).gameweek == 38

    async def test_format_defaults_to_league_mode(self, create_league, fixture_ops):
        uefa = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        plain = await create_league(4, prefix="r")

        tournament = await fixture_ops.generate_league_fixtures(uefa.id)
        league_round = await fixture_ops.generate_league_fixtures(plain.id)

        assert len(tournament) == 135
        assert len(league_round) == 6
        assert all(f.stage is None for f in league_round)

    async def test_format_must_match_league_mode(self, db, create_league, fixture_ops):
        uefa = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        plain = await create_league(16, prefix="r")

        with pytest.raises(LeagueModeMismatchError):
            await fixture_ops.generate_round_robin_fixtures(uefa.id)
        with pytest.raises(LeagueModeMismatchError):
            await fixture_ops.generate_uefa_tournament(plain.id)

        assert await db.get_league_fixtures(uefa.id) == []
        assert await db.get_league_fixtures(plain.id) == []


class TestResults:

    async def test_submit_result_completes_fixture(self, db, create_league, fixture_ops):
        league = await create_league(2)
        fixture = (await fixture_ops.generate_round_robin_fixtures(league.id))[0]

        result = await fixture_ops.submit_result(fixture.id, 2, 1)

        assert (result.home_score, result.away_score) == (2, 1)
        assert result.winner_user_id == fixture.home_user_id
        stored = await db.get_fixture(fixture.id)
        assert stored.status == FixtureStatus.COMPLETED
        assert stored.completed_at is not None
        assert stored.result.home_score == 2

    async def test_second_result_rejected(self, create_league, fixture_ops):
        league = await create_league(2)
        fixture = (await fixture_ops.generate_round_robin_fixtures(league.id))[0]
        await fixture_ops.submit_result(fixture.id, 0, 0)

        with pytest.raises(ResultAlreadyExistsError):
            await fixture_ops.submit_result(fixture.id, 1, 0)

    @pytest.mark.parametrize("home,away", [(-1, 0), (0, -3), (1.5, 0), (True, 0), ("2", 1)])
    async def test_invalid_scores_rejected(self, db, create_league, fixture_ops, home, away):
        league = await create_league(2)
        fixture = (await fixture_ops.generate_round_robin_fixtures(league.id))[0]

        with pytest.raises(InvalidScoreError):
            await fixture_ops.submit_result(fixture.id, home, away)

        assert (await db.get_fixture(fixture.id)).status == FixtureStatus.SCHEDULED

    async def test_unknown_fixture(self, fixture_ops):
        with pytest.raises(FixtureNotFoundError):
            await fixture_ops.submit_result(12345, 1, 0)

    async def test_batch_with_one_bad_item(self, db, create_league, fixture_ops):
        league = await create_league(4)
        fixtures = await fixture_ops.generate_round_robin_fixtures(league.id)
        ids = [f.id for f in fixtures]

        report = await fixture_ops.submit_results_batch([
            ResultInput(ids[0], 1, 0),
            ResultInput(ids[1], 2, 2),
            ResultInput(9999, 1, 0),
            ResultInput(ids[2], 0, 3),
            ResultInput(ids[3], 4, 1),
        ])

        assert report.success_count == 4
        assert report.failed_count == 1
        error = report.errors[0]
        assert (error.index, error.fixture_id) == (2, 9999)
        assert isinstance(error.error, FixtureNotFoundError)
        assert report.completed_fixture_ids == ids[:4]

        completed = await db.get_league_fixtures(league.id, status=FixtureStatus.COMPLETED)
        assert sorted(f.id for f in completed) == sorted(ids[:4])

    async def test_batch_reports_duplicates_and_bad_scores(self, create_league, fixture_ops):
        league = await create_league(2)
        fixture = (await fixture_ops.generate_round_robin_fixtures(league.id))[0]

        report = await fixture_ops.submit_results_batch([
            ResultInput(fixture.id, -1, 0),
            ResultInput(fixture.id, 1, 0),
            ResultInput(fixture.id, 2, 0),
        ])

        assert report.success_count == 1
        assert [e.index for e in report.errors] == [0, 2]
        assert isinstance(report.errors[0].error, InvalidScoreError)
        assert isinstance(report.errors[1].error, ResultAlreadyExistsError)


class TestKnockout:

    async def test_winner_advances_on_submission(self, db, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        fixtures = await fixture_ops.generate_uefa_tournament(league.id)

        opener = knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 0)
        await fixture_ops.submit_result(opener.id, 0, 2)
        second = knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 1)
        await fixture_ops.submit_result(second.id, 3, 1)

        quarter = await db.get_fixture(knockout_slot(fixtures, FixtureStage.QUARTER_FINAL, 0).id)
        assert quarter.home_user_id == opener.away_user_id == "u15"
        assert quarter.away_user_id == second.home_user_id == "u1"

    async def test_knockout_draw_rejected(self, db, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        fixtures = await fixture_ops.generate_uefa_tournament(league.id)
        opener = knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 0)

        with pytest.raises(InvalidScoreError):
            await fixture_ops.submit_result(opener.id, 1, 1)

        assert (await db.get_fixture(opener.id)).result is None

    async def test_advance_winner_can_be_repeated(self, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        fixtures = await fixture_ops.generate_uefa_tournament(league.id)
        match = knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 5)
        await fixture_ops.submit_result(match.id, 1, 0)

        target = await fixture_ops.advance_winner(match.id)

        assert target.stage == FixtureStage.QUARTER_FINAL
        assert target.bracket_slot == 2
        assert target.away_user_id == match.home_user_id

    async def test_advance_winner_without_result(self, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        fixtures = await fixture_ops.generate_uefa_tournament(league.id)

        with pytest.raises(KnockoutStateError):
            await fixture_ops.advance_winner(knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 0).id)

    async def test_reseed_requires_finished_table_phase(self, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        await fixture_ops.generate_uefa_tournament(league.id)

        with pytest.raises(KnockoutStateError):
            await fixture_ops.reseed_knockout(league.id)

    async def test_reseed_from_table_phase(self, db, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        fixtures = await fixture_ops.generate_uefa_tournament(league.id)

        # Higher-numbered user always wins, so u15 tops the table and u0 is last
        results = []
        for f in fixtures:
            if f.stage != FixtureStage.TABLE_PHASE:
                continue
            home_wins = int(f.home_user_id[1:]) > int(f.away_user_id[1:])
            results.append(ResultInput(f.id, 1 if home_wins else 0, 0 if home_wins else 1))
        report = await fixture_ops.submit_results_batch(results)
        assert report.success_count == 120

        knockout = await fixture_ops.reseed_knockout(league.id)

        assert len(knockout) == 15
        opener = await db.get_fixture(knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 0).id)
        assert (opener.home_user_id, opener.away_user_id) == ("u15", "u0")
        final = await db.get_fixture(knockout_slot(fixtures, FixtureStage.FINAL, 0).id)
        assert (final.home_user_id, final.away_user_id) == ("u15", "u11")
        assert final.gameweek == 19

    async def test_quarter_final_waits_for_both_feeders(self, db, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        fixtures = await fixture_ops.generate_uefa_tournament(league.id)
        quarter = knockout_slot(fixtures, FixtureStage.QUARTER_FINAL, 0)

        with pytest.raises(KnockoutStateError):
            await fixture_ops.submit_result(quarter.id, 1, 0)
        stored = await db.get_fixture(quarter.id)
        assert stored.result is None
        assert stored.status == FixtureStatus.SCHEDULED

        # One feeder played is not enough
        await fixture_ops.submit_result(knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 0).id, 2, 0)
        with pytest.raises(KnockoutStateError):
            await fixture_ops.submit_result(quarter.id, 1, 0)

        await fixture_ops.submit_result(knockout_slot(fixtures, FixtureStage.ROUND_OF_16, 1).id, 0, 1)
        result = await fixture_ops.submit_result(quarter.id, 1, 0)

        assert (result.home_user_id, result.away_user_id) == ("u0", "u14")
        semi = await db.get_fixture(knockout_slot(fixtures, FixtureStage.SEMI_FINAL, 0).id)
        assert semi.home_user_id == "u0"

    async def test_final_waits_for_semi_finals(self, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        fixtures = await fixture_ops.generate_uefa_tournament(league.id)

        report = await fixture_ops.submit_results_batch([
            ResultInput(knockout_slot(fixtures, FixtureStage.FINAL, 0).id, 1, 0),
            ResultInput(knockout_slot(fixtures, FixtureStage.SEMI_FINAL, 1).id, 1, 0),
        ])

        assert report.success_count == 0
        assert all(isinstance(e.error, KnockoutStateError) for e in report.errors)

    async def test_repeat_generation_advances_within_own_bracket(self, db, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        first = await fixture_ops.generate_uefa_tournament(league.id)
        second = await fixture_ops.generate_uefa_tournament(league.id)

        await fixture_ops.submit_result(knockout_slot(first, FixtureStage.ROUND_OF_16, 0).id, 0, 2)
        await fixture_ops.submit_result(knockout_slot(second, FixtureStage.ROUND_OF_16, 1).id, 0, 3)

        first_quarter = await db.get_fixture(knockout_slot(first, FixtureStage.QUARTER_FINAL, 0).id)
        second_quarter = await db.get_fixture(knockout_slot(second, FixtureStage.QUARTER_FINAL, 0).id)
        assert (first_quarter.home_user_id, first_quarter.away_user_id) == ("u15", "u1")
        assert (second_quarter.home_user_id, second_quarter.away_user_id) == ("u0", "u14")

        # The second bracket's slot 0 is still unplayed
        with pytest.raises(KnockoutStateError):
            await fixture_ops.submit_result(second_quarter.id, 1, 0)

    async def test_reseed_targets_latest_tournament(self, create_league, fixture_ops):
        league = await create_league(16, mode=LeagueMode.UEFA_HYBRID)
        first = await fixture_ops.generate_uefa_tournament(league.id)
        report = await fixture_ops.submit_results_batch([
            ResultInput(f.id, 1, 0) for f in first if f.stage == FixtureStage.TABLE_PHASE
        ])
        assert report.success_count == 120
        await fixture_ops.generate_uefa_tournament(league.id)

        # Only the first table phase is finished
        with pytest.raises(KnockoutStateError, match="table phase"):
            await fixture_ops.reseed_knockout(league.id)
