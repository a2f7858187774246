import pytest

from arena.utils.elo import EloCalculator, RatingUpdate


def test_expected_score():
    assert EloCalculator.calculate_expected_score(1500, 1500) == pytest.approx(0.5)
    assert EloCalculator.calculate_expected_score(1900, 1500) == pytest.approx(10 / 11)


def test_even_match():
    update = EloCalculator.calculate_match(1500, 1500)

    assert update == RatingUpdate(winner_before=1500, winner_after=1516, loser_before=1500, loser_after=1484)
    assert update.winner_change == 16
    assert update.loser_change == -16


def test_upset_moves_more_points():
    favourite = EloCalculator.calculate_match(1600, 1400)
    upset = EloCalculator.calculate_match(1400, 1600)

    assert favourite.winner_change == 8
    assert upset.winner_change == 24


@pytest.mark.parametrize('winner,loser', [(1500, 1500), (1600, 1400), (1234, 1789), (2100, 1100), (1501, 1499)])
def test_changes_are_near_symmetric(winner, loser):
    update = EloCalculator.calculate_match(winner, loser)
    assert abs(update.winner_change + update.loser_change) <= 1


def test_rating_floor_is_reflected_in_recorded_change():
    update = EloCalculator.calculate_match(110, 110)

    assert update.loser_after == 100
    assert update.loser_change == -10
    assert update.winner_after == 126


def test_k_factor_override():
    assert EloCalculator.calculate_rating_change(1500, 1500, 1.0, k_factor=16) == 8


def test_preview_and_probability():
    if_win, if_lose = EloCalculator.preview_rating_change(1500, 1500)
    assert (if_win, if_lose) == (16, -16)
    assert EloCalculator.calculate_win_probability(1500, 1500) == pytest.approx(50.0)


def test_format_rating_change():
    assert EloCalculator.format_rating_change(12) == '+12'
    assert EloCalculator.format_rating_change(-7) == '-7'
    assert EloCalculator.format_rating_change(0) == '±0'
