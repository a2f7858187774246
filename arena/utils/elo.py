import math
from dataclasses import dataclass
from typing import Optional

from arena.config import Config


@dataclass(frozen=True)
class RatingUpdate:
    """Before/after ratings of both players for one decided match."""
    winner_before: int
    winner_after: int
    loser_before: int
    loser_after: int

    @property
    def winner_change(self) -> int:
        return self.winner_after - self.winner_before

    @property
    def loser_change(self) -> int:
        return self.loser_after - self.loser_before


class EloCalculator:
    """Handles Elo rating calculations for the arena"""

    @staticmethod
    def calculate_expected_score(rating_a: int, rating_b: int) -> float:
        """
        Calculate the expected score for player A against player B

        Args:
            rating_a: Player A's current rating
            rating_b: Player B's current rating

        Returns:
            Expected score (0.0 to 1.0) for player A
        """
        return 1 / (1 + math.pow(10, (rating_b - rating_a) / 400))

    @staticmethod
    def calculate_rating_change(current_rating: int, opponent_rating: int,
                                actual_score: float, k_factor: Optional[int] = None) -> int:
        """
        Calculate the rating change for a player

        Args:
            current_rating: Player's current rating
            opponent_rating: Opponent's current rating
            actual_score: Actual score (1.0 for win, 0.0 for loss)
            k_factor: Override for Config.K_FACTOR

        Returns:
            Rating change (can be positive or negative), before the floor is applied
        """
        k = Config.K_FACTOR if k_factor is None else k_factor
        expected_score = EloCalculator.calculate_expected_score(current_rating, opponent_rating)
        return round(k * (actual_score - expected_score))

    @staticmethod
    def apply_change(current_rating: int, change: int) -> int:
        """New rating after `change`, never below the rating floor."""
        return max(Config.RATING_FLOOR, current_rating + change)

    @staticmethod
    def calculate_match(winner_rating: int, loser_rating: int,
                        k_factor: Optional[int] = None) -> RatingUpdate:
        """
        Calculate new ratings for both players of a decided match

        Each side's change is computed from its own expected score; the recorded
        change is after - before, so the floor is reflected in it.

        Args:
            winner_rating: Winner's rating before the match
            loser_rating: Loser's rating before the match
            k_factor: Override for Config.K_FACTOR

        Returns:
            RatingUpdate with before/after for both players
        """
        winner_delta = EloCalculator.calculate_rating_change(winner_rating, loser_rating, 1.0, k_factor)
        loser_delta = EloCalculator.calculate_rating_change(loser_rating, winner_rating, 0.0, k_factor)
        return RatingUpdate(
            winner_before=winner_rating,
            winner_after=EloCalculator.apply_change(winner_rating, winner_delta),
            loser_before=loser_rating,
            loser_after=EloCalculator.apply_change(loser_rating, loser_delta),
        )

    @staticmethod
    def preview_rating_change(rating: int, opponent_rating: int):
        """
        Rating changes a player would see against an opponent

        Returns:
            Tuple of (change_if_win, change_if_lose)
        """
        return (
            EloCalculator.calculate_rating_change(rating, opponent_rating, 1.0),
            EloCalculator.calculate_rating_change(rating, opponent_rating, 0.0),
        )

    @staticmethod
    def calculate_win_probability(rating_a: int, rating_b: int) -> float:
        """
        Calculate win probability for player A against player B

        Returns:
            Win probability as percentage (0.0 to 100.0)
        """
        return EloCalculator.calculate_expected_score(rating_a, rating_b) * 100

    @staticmethod
    def format_rating_change(change: int) -> str:
        if change > 0:
            return f"+{change}"
        elif change < 0:
            return str(change)
        else:
            return "±0"
