"""Tests for global leaderboard scoring and ranking."""

import math

import pytest

from league_arc.data_models.leaderboard import LeagueStanding, PlayerSnapshot
from league_arc.database.models import LeagueTier
from league_arc.utils.scoring_strategies import (
    LeaderboardAggregator, PositionWeightedStrategy, WinRateFallbackStrategy,
    position_score, size_bonus, tier_weight
)


def standing(league_id, position, size, tier=LeagueTier.AMATEUR, wins=0, played=0):
    return LeagueStanding(
        league_id=league_id, league_name=f"League {league_id}", tier=tier,
        position=position, league_size=size, wins=wins, matches_played=played,
    )


def snapshot(user_id, *standings):
    return PlayerSnapshot(user_id=user_id, username=user_id.title(), standings=tuple(standings))


class TestFormulaParts:

    def test_position_score_bounds(self):
        assert position_score(1, 10) == pytest.approx(100.0)
        assert position_score(10, 10) == pytest.approx(10.0)
        assert position_score(1, 1) == pytest.approx(100.0)

    @pytest.mark.parametrize("position,size", [(0, 5), (6, 5), (1, 0)])
    def test_position_score_out_of_range(self, position, size):
        with pytest.raises(ValueError):
            position_score(position, size)

    def test_size_bonus(self):
        assert size_bonus(99) == pytest.approx(20.0)
        assert size_bonus(4) == pytest.approx(math.log(5) / math.log(100) * 20)

    def test_tier_weights(self):
        assert [tier_weight(t) for t in LeagueTier] == [1.0, 1.3, 1.6, 2.0]


class TestPositionWeighted:

    def test_single_league(self):
        score = PositionWeightedStrategy().score(snapshot("ann", standing(1, 1, 4, LeagueTier.ELITE)))

        assert score.global_score == pytest.approx(100 * 1.6 + size_bonus(4))
        assert score.best_league.league_id == 1
        assert score.stats.total_leagues == 1
        assert score.scoring == "position_weighted"

    def test_multiple_leagues_average_with_consistency_bonus(self):
        score = PositionWeightedStrategy().score(snapshot(
            "ann",
            standing(1, 2, 4, LeagueTier.AMATEUR),
            standing(2, 1, 10, LeagueTier.CHAMPIONS),
        ))

        first = 75 * 1.0 + size_bonus(4) + 10
        second = 100 * 2.0 + size_bonus(10) + 10
        assert score.global_score == pytest.approx((first + second) / 2)
        assert score.best_league.league_id == 2
        assert [l.league_id for l in score.leagues] == [2, 1]

    def test_zero_leagues_scores_zero(self):
        score = LeaderboardAggregator().compute_global_score(snapshot("nobody"))

        assert score.global_score == 0.0
        assert score.leagues == ()
        assert score.best_league.league_id is None
        assert score.best_league.league_name == "No League Data"
        assert score.stats.win_rate == 0.0
        assert score.scoring == "position_weighted"

    def test_to_dict_shape(self):
        data = PositionWeightedStrategy().score(snapshot("ann", standing(1, 1, 2))).to_dict()

        assert set(data) == {"user_id", "username", "global_score", "leagues", "best_league", "stats", "scoring"}
        assert data["leagues"][0]["total_players"] == 2


class TestFallback:

    def test_fallback_formula(self):
        score = WinRateFallbackStrategy().score(snapshot(
            "bob", standing(1, None, 6, wins=6, played=10)
        ))

        assert score.global_score == pytest.approx(60 * 0.7 + 0.1 * 30)
        assert score.scoring == "win_rate_fallback"

    def test_match_volume_is_capped(self):
        score = WinRateFallbackStrategy().score(snapshot(
            "bob", standing(1, None, 6, wins=0, played=250)
        ))
        assert score.global_score == pytest.approx(30.0)

    def test_aggregator_uses_fallback_without_positions(self):
        aggregator = LeaderboardAggregator()
        unpositioned = aggregator.compute_global_score(snapshot("bob", standing(1, None, 6, wins=1, played=2)))
        positioned = aggregator.compute_global_score(snapshot("amy", standing(1, 3, 6)))

        assert unpositioned.scoring == "win_rate_fallback"
        assert positioned.scoring == "position_weighted"
        # Same output shape either way
        assert set(unpositioned.to_dict()) == set(positioned.to_dict())

    def test_forced_fallback_ignores_positions(self):
        score = LeaderboardAggregator().compute_fallback_score(
            snapshot("amy", standing(1, 1, 4, wins=3, played=3))
        )

        assert score.scoring == "win_rate_fallback"
        assert score.global_score == pytest.approx(100 * 0.7 + 0.03 * 30)
        assert score.leagues == ()


class TestGlobalLeaderboard:

    def _scores(self):
        aggregator = LeaderboardAggregator()
        return [
            aggregator.compute_global_score(snapshot("low", standing(1, 4, 4, LeagueTier.ELITE))),
            aggregator.compute_global_score(snapshot("top", standing(2, 1, 4, LeagueTier.CHAMPIONS))),
            aggregator.compute_global_score(snapshot("mid", standing(1, 1, 4, LeagueTier.ELITE))),
            aggregator.compute_global_score(snapshot("also_low", standing(1, 4, 4, LeagueTier.ELITE))),
        ]

    def test_sorted_descending_with_stable_ties(self):
        board = LeaderboardAggregator.build_global_leaderboard(self._scores())
        assert [s.user_id for s in board] == ["top", "mid", "low", "also_low"]

    def test_tier_filter_applied_after_sorting(self):
        board = LeaderboardAggregator.build_global_leaderboard(self._scores(), tier=LeagueTier.ELITE)
        assert [s.user_id for s in board] == ["mid", "low", "also_low"]

    def test_pagination_after_filtering(self):
        board = LeaderboardAggregator.build_global_leaderboard(
            self._scores(), tier=LeagueTier.ELITE, limit=1, offset=1
        )
        assert [s.user_id for s in board] == ["low"]

    def test_offset_past_end_is_empty(self):
        assert LeaderboardAggregator.build_global_leaderboard(self._scores(), offset=10) == []

    def test_negative_pagination_rejected(self):
        with pytest.raises(ValueError):
            LeaderboardAggregator.build_global_leaderboard(self._scores(), limit=-1)

    def test_tier_filter_counts_unpositioned_memberships(self):
        aggregator = LeaderboardAggregator()
        scores = [
            # Positioned in an amateur league, member of a champions league with no results yet
            aggregator.compute_global_score(snapshot(
                "amy", standing(1, 1, 4, LeagueTier.AMATEUR), standing(2, None, 4, LeagueTier.CHAMPIONS)
            )),
            aggregator.compute_global_score(snapshot("bob", standing(2, None, 4, LeagueTier.CHAMPIONS))),
            aggregator.compute_global_score(snapshot("cat", standing(1, 2, 4, LeagueTier.AMATEUR))),
        ]

        board = LeaderboardAggregator.build_global_leaderboard(scores, tier=LeagueTier.CHAMPIONS)

        assert [s.user_id for s in board] == ["amy", "bob"]
        assert scores[0].tiers == frozenset({LeagueTier.AMATEUR, LeagueTier.CHAMPIONS})
        assert [l.tier for l in scores[0].leagues] == [LeagueTier.AMATEUR]
        # Membership tiers stay out of the serialized row
        assert "member_tiers" not in scores[0].to_dict()
