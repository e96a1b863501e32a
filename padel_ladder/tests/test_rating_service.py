"""
Tests for the rating calculator.
"""

import pytest
from padel_ladder.services import rating_service


class TestMultipliers:
    """Score and rating multipliers."""

    def test_score_multiplier_pivot_is_neutral(self):
        assert rating_service.score_multiplier(4) == pytest.approx(1.0)

    def test_score_multiplier_steps_and_clamps(self):
        assert rating_service.score_multiplier(7) == pytest.approx(1.15)
        assert rating_service.score_multiplier(0) == pytest.approx(0.8)
        assert rating_service.score_multiplier(-10) == pytest.approx(0.7)
        assert rating_service.score_multiplier(30) == pytest.approx(1.5)

    def test_rating_multiplier_rewards_upsets(self):
        assert rating_service.rating_multiplier(1000, 1000) == pytest.approx(1.0)
        assert rating_service.rating_multiplier(900, 1300) == pytest.approx(1.3)
        assert rating_service.rating_multiplier(1300, 900) == pytest.approx(0.7)

    def test_rating_multiplier_clamps(self):
        assert rating_service.rating_multiplier(0, 5000) == pytest.approx(1.6)
        assert rating_service.rating_multiplier(5000, 0) == pytest.approx(0.6)

    def test_loser_multiplier_mirrors_winner_side(self):
        # A stronger team losing gives up more, a weaker team losing gives up less
        assert rating_service.loser_rating_multiplier(900, 1300) == pytest.approx(1.3)
        assert rating_service.loser_rating_multiplier(1300, 900) == pytest.approx(0.7)

    def test_provisional_bonus_bands(self):
        assert rating_service.provisional_bonus(9) == 1.8
        assert rating_service.provisional_bonus(7) == 1.8
        assert rating_service.provisional_bonus(6) == 1.5
        assert rating_service.provisional_bonus(4) == 1.5
        assert rating_service.provisional_bonus(3) == 1.3
        assert rating_service.provisional_bonus(1) == 1.3


class TestPointsChange:
    """End-to-end point calculations."""

    def test_convincing_win_between_equal_teams(self):
        """9-2 win (margin 7), equal 1000 averages, nobody provisional."""
        winner, loser = rating_service.calculate_points_change(7, 1000, 1000)
        assert winner == 29
        assert loser == -17

    def test_provisional_player_amplifies_both_sides(self):
        """Same teams, margin 8, one provisional player on the losing side."""
        winner, loser = rating_service.calculate_points_change(
            8, 1000, 1000, provisional_involved=True
        )
        # 25 x 1.2 x 1.0 x 1.8 = 54 ; 25 x 0.6 x 1.2 x 1.8 = 32.4
        assert winner == 54
        assert loser == -32
        assert winner <= 80

    def test_duo_winner_gets_strictly_less(self):
        solo, _ = rating_service.calculate_points_change(7, 1000, 1000, winner_was_duo=False)
        duo, _ = rating_service.calculate_points_change(7, 1000, 1000, winner_was_duo=True)
        assert duo < solo
        assert duo == 24

    def test_winner_points_clamped_to_max(self):
        winner, loser = rating_service.calculate_points_change(12, 600, 1400)
        assert winner == 50
        assert -35 <= loser <= -5

    def test_winner_points_clamped_to_max_when_provisional(self):
        winner, loser = rating_service.calculate_points_change(
            12, 600, 1400, provisional_involved=True
        )
        assert winner == 80
        assert loser == -60

    def test_signs_always_opposite(self):
        for margin in range(1, 14):
            for winner_rating, loser_rating in [(1000, 1000), (400, 1600), (1600, 400)]:
                for duo in (False, True):
                    for provisional in (False, True):
                        winner, loser = rating_service.calculate_points_change(
                            margin, winner_rating, loser_rating, duo, provisional
                        )
                        assert winner > 0
                        assert loser < 0

    def test_winner_points_non_decreasing_in_margin(self):
        previous = 0
        for margin in range(1, 13):
            winner, _ = rating_service.calculate_points_change(margin, 1000, 1000)
            assert winner >= previous
            previous = winner


class TestMatchDeltas:
    """Per-team deltas from set scores."""

    def test_team_a_win(self):
        sets = [{"team_a_score": 6, "team_b_score": 1}, {"team_a_score": 3, "team_b_score": 1}]
        deltas = rating_service.calculate_match_deltas(sets, "team_a", [1000, 1000], [1000, 1000])
        assert deltas == {"team_a": 29, "team_b": -17, "margin": 7}

    def test_team_b_win(self):
        sets = [{"team_a_score": 2, "team_b_score": 6}, {"team_a_score": 1, "team_b_score": 6}]
        deltas = rating_service.calculate_match_deltas(sets, "team_b", [1000, 1000], [1000, 1000])
        # margin 9: 25 x 1.25 = 31.25 ; 25 x 0.6 x 1.25 = 18.75
        assert deltas["team_b"] == 31
        assert deltas["team_a"] == -19
        assert deltas["margin"] == 9

    def test_duo_flag_follows_the_winning_team(self):
        sets = [{"team_a_score": 6, "team_b_score": 1}, {"team_a_score": 3, "team_b_score": 1}]
        losing_duo = rating_service.calculate_match_deltas(
            sets, "team_a", [1000, 1000], [1000, 1000], team_b_was_duo=True
        )
        winning_duo = rating_service.calculate_match_deltas(
            sets, "team_a", [1000, 1000], [1000, 1000], team_a_was_duo=True
        )
        assert losing_duo["team_a"] == 29
        assert winning_duo["team_a"] == 24


class TestStanding:
    """Rating floor, categories, provisional status and region detection."""

    def test_rating_floor_is_zero(self):
        assert rating_service.apply_delta(10, -17) == 0
        assert rating_service.apply_delta(1000, -17) == 983

    @pytest.mark.parametrize(
        "rating,label",
        [
            (0, "Iniciante"),
            (199, "Iniciante"),
            (200, "7ª"),
            (450, "6ª"),
            (799, "5ª"),
            (999, "4ª"),
            (1000, "3ª"),
            (1399, "2ª"),
            (1400, "1ª"),
            (2500, "1ª"),
        ],
    )
    def test_category_bands(self, rating, label):
        assert rating_service.category_for_rating(rating) == label

    def test_provisional_until_five_games(self):
        assert rating_service.is_provisional(0)
        assert rating_service.is_provisional(4)
        assert not rating_service.is_provisional(5)

    def test_inter_regional_detection(self):
        sp = ("SP", "Sao Paulo")
        rj = ("RJ", "Rio de Janeiro")
        assert not rating_service.is_inter_regional([sp, sp], [sp, sp])
        assert rating_service.is_inter_regional([sp, sp], [rj, rj])
        assert rating_service.is_inter_regional([sp, rj], [sp, sp])
