import logging
import os

logger = logging.getLogger(__name__)


def _parse_positive_int(env_var: str, default: int) -> int:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = int(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid integer (got %r); defaulting to %d",
            env_var,
            raw_value,
            default,
        )
        return default

    if value <= 0:
        logger.warning("%s must be positive; defaulting to %d", env_var, default)
        return default

    return value


def parse_rate(env_var: str, default: float = 0.0) -> float:
    """Read a non-negative float such as a sampling rate from ``env_var``."""

    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid float (got %r); defaulting to %.2f",
            env_var,
            raw_value,
            default,
        )
        return default

    if value < 0:
        logger.warning("%s cannot be negative; defaulting to %.2f", env_var, default)
        return default

    return value


LEADERBOARD_DEFAULT_LIMIT = _parse_positive_int("LEADERBOARD_DEFAULT_LIMIT", 50)
LEADERBOARD_MAX_LIMIT = max(
    _parse_positive_int("LEADERBOARD_MAX_LIMIT", 200), LEADERBOARD_DEFAULT_LIMIT
)

# Upper bound accepted for a single side's score.
MAX_SCORE = _parse_positive_int("MAX_SCORE", 1000)

# How many times the transaction boundary re-runs an operation that lost an
# optimistic-locking race.
TRANSACTION_MAX_ATTEMPTS = _parse_positive_int("TRANSACTION_MAX_ATTEMPTS", 3)
