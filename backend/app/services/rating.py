"""Elo arithmetic for two-sided matches. Pure functions, no I/O."""

from typing import Sequence

K_FACTOR = 32.0
DEFAULT_RATING = 1000.0

WIN = 1.0
DRAW = 0.5
LOSS = 0.0
_RESULTS = (WIN, DRAW, LOSS)


def expected_score(rating: float, opponent: float) -> float:
    """Probability-like expectation of ``rating`` scoring against ``opponent``."""
    return 1 / (1 + 10 ** ((opponent - rating) / 400))


def rate(rating: float, opponent: float, result: float, k: float = K_FACTOR) -> float:
    """Return the updated rating after one game.

    Args:
        rating: Current rating of the side being rated.
        opponent: Current rating of the opposing side.
        result: ``1`` for a win, ``0.5`` for a draw and ``0`` for a loss.
        k: Maximum adjustment for a single game.
    """
    if result not in _RESULTS:
        raise ValueError(f"result must be one of 0, 0.5 or 1 (got {result!r})")
    return rating + k * (result - expected_score(rating, opponent))


def team_average(ratings: Sequence[float]) -> float:
    """Mean rating of a side, divided by its actual member count."""
    if not ratings:
        raise ValueError("a side needs at least one rating")
    return sum(ratings) / len(ratings)


def side_results(score_a: int, score_b: int) -> tuple[float, float]:
    if score_a > score_b:
        return WIN, LOSS
    if score_b > score_a:
        return LOSS, WIN
    return DRAW, DRAW


def determine_winner(score_a: int, score_b: int) -> str:
    if score_a > score_b:
        return "A"
    if score_b > score_a:
        return "B"
    return "DRAW"


def rating_deltas(
    avg_a: float, avg_b: float, result_a: float, k: float = K_FACTOR
) -> tuple[float, float]:
    """Return ``(delta_a, delta_b)`` for a game between two side averages.

    Each delta is what every member of that side gains (or loses); players
    keep their own baseline and share their side's adjustment.
    """
    result_b = 1 - result_a
    delta_a = rate(avg_a, avg_b, result_a, k) - avg_a
    delta_b = rate(avg_b, avg_a, result_b, k) - avg_b
    return delta_a, delta_b
