from typing import Any, Iterable, List, Optional

from ..config import LEADERBOARD_DEFAULT_LIMIT, LEADERBOARD_MAX_LIMIT, MAX_SCORE
from ..exceptions import InvalidScore, InvalidTeamSize, MissingScore, ValidationError

MAX_TEAM_SIZE = 2
PLAYER_ROLES = ("PLAYER", "ADMIN")


def validate_score(raw: Any, *, side: str, max_value: int = MAX_SCORE) -> int:
    """Return ``raw`` as a score for ``side`` or raise :class:`InvalidScore`."""

    # Reject booleans explicitly (bool is a subclass of int in Python)
    if isinstance(raw, bool):
        raise InvalidScore(f"Score {side} must be an integer (not a boolean).")
    if not isinstance(raw, int):
        raise InvalidScore(f"Score {side} must be an integer.")
    if raw < 0:
        raise InvalidScore(f"Score {side} must be >= 0.")
    if max_value is not None and raw > max_value:
        raise InvalidScore(f"Score {side} must be <= {max_value}.")
    return raw


def validate_score_pair(
    score_a: Any, score_b: Any, *, required: bool = True
) -> Optional[tuple[int, int]]:
    """Validate a pair of side scores.

    Returns ``None`` when neither score is given and ``required`` is false,
    which is how a pending match is recorded. Supplying only one of the two is
    always an error.
    """

    if score_a is None and score_b is None and not required:
        return None
    if score_a is None or score_b is None:
        raise MissingScore()
    return validate_score(score_a, side="A"), validate_score(score_b, side="B")


def validate_team_players(player_ids: Iterable[Any]) -> List[int]:
    """Normalise a team roster to a list of one or two distinct player ids."""

    if isinstance(player_ids, (str, bytes)):
        raise InvalidTeamSize("Player ids must be provided as a sequence.")
    ids = list(player_ids)
    if not 1 <= len(ids) <= MAX_TEAM_SIZE:
        raise InvalidTeamSize(
            f"A team must have 1 to {MAX_TEAM_SIZE} players (got {len(ids)})."
        )
    for pid in ids:
        if isinstance(pid, bool) or not isinstance(pid, int):
            raise InvalidTeamSize(f"Player id {pid!r} must be an integer.")
    if len(set(ids)) != len(ids):
        raise InvalidTeamSize("A team cannot list the same player twice.")
    return ids


def validate_limit(limit: Optional[int]) -> int:
    if limit is None:
        return LEADERBOARD_DEFAULT_LIMIT
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError("limit must be an integer.", code="invalid_limit")
    if limit < 1 or limit > LEADERBOARD_MAX_LIMIT:
        raise ValidationError(
            f"limit must be between 1 and {LEADERBOARD_MAX_LIMIT}.",
            code="invalid_limit",
        )
    return limit


def validate_name(value: Any, *, field: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string.", code=f"invalid_{field}")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} must not be empty.", code=f"invalid_{field}")
    return trimmed


def validate_role(role: Any) -> str:
    if role not in PLAYER_ROLES:
        formatted = ", ".join(PLAYER_ROLES)
        raise ValidationError(
            f"role must be one of {formatted}.", code="invalid_role"
        )
    return role
