from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class ValidationError(DomainException):
    """Input that can never succeed as submitted."""

    def __init__(
        self, detail: str, *, code: str = "validation_error", title: str = "Invalid input"
    ) -> None:
        super().__init__(status_code=422, title=title, detail=detail, code=code)


class NotFoundError(DomainException):
    def __init__(self, title: str, detail: str, *, code: str) -> None:
        super().__init__(status_code=404, title=title, detail=detail, code=code)


class ConflictError(DomainException):
    """The request clashes with the current persisted state."""

    retryable = False

    def __init__(self, title: str, detail: str, *, code: str) -> None:
        super().__init__(status_code=409, title=title, detail=detail, code=code)


class AuthorizationError(DomainException):
    def __init__(self, title: str, detail: str, *, code: str) -> None:
        super().__init__(status_code=403, title=title, detail=detail, code=code)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class InvalidTeamSize(ValidationError):
    def __init__(self, detail: str = "a team needs one or two distinct players") -> None:
        super().__init__(detail, code="invalid_team_size", title="Invalid team size")


class MissingScore(ValidationError):
    def __init__(self) -> None:
        super().__init__(
            "both scores must be supplied together",
            code="missing_score",
            title="Missing score",
        )


class InvalidScore(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, code="invalid_score", title="Invalid score")


class SelfPlay(ValidationError):
    def __init__(self, team_id: int) -> None:
        super().__init__(
            f"team '{team_id}' cannot play against itself",
            code="self_play",
            title="Self play",
        )


class PlayersOnBothSides(ValidationError):
    def __init__(self, player_ids: list[int]) -> None:
        ids = ", ".join(str(pid) for pid in player_ids)
        super().__init__(
            f"players cannot appear on both sides: {ids}",
            code="players_on_both_sides",
            title="Duplicate players",
        )


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------
class SportNotFound(NotFoundError):
    def __init__(self, sport_id: int) -> None:
        super().__init__(
            "Sport not found", f"sport '{sport_id}' not found", code="sport_not_found"
        )


class PlayerNotFound(NotFoundError):
    def __init__(self, player_id: int) -> None:
        super().__init__(
            "Player not found", f"player '{player_id}' not found", code="player_not_found"
        )


class TeamNotFound(NotFoundError):
    def __init__(self, team_id: int) -> None:
        super().__init__(
            "Team not found", f"team '{team_id}' not found", code="team_not_found"
        )


class MatchNotFound(NotFoundError):
    def __init__(self, match_id: int) -> None:
        super().__init__(
            "Match not found", f"match '{match_id}' not found", code="match_not_found"
        )


class PlayerStatsNotFound(NotFoundError):
    def __init__(self, player_id: int, sport_id: int) -> None:
        super().__init__(
            "Stats not found",
            f"no stats for player '{player_id}' in sport '{sport_id}'",
            code="player_stats_not_found",
        )


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------
class MatchAlreadyFinished(ConflictError):
    def __init__(self, match_id: int) -> None:
        super().__init__(
            "Match already finished",
            f"match '{match_id}' has already been settled",
            code="match_already_finished",
        )


class SportNameTaken(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(
            "Sport exists", f"sport name '{name}' already exists", code="sport_exists"
        )


class SportInUse(ConflictError):
    def __init__(self, sport_id: int) -> None:
        super().__init__(
            "Sport in use",
            f"sport '{sport_id}' is referenced by recorded matches",
            code="sport_in_use",
        )


class PlayerAlreadyExists(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(
            "Player exists",
            f"username or email '{name}' already exists",
            code="player_exists",
        )


class ConcurrentUpdate(ConflictError):
    """Another transaction changed the rows this one read; safe to re-run."""

    retryable = True

    def __init__(self, detail: str = "the affected records were modified concurrently") -> None:
        super().__init__("Concurrent update", detail, code="concurrent_update")


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------
class NotParticipant(AuthorizationError):
    def __init__(self, player_id: int, match_id: int) -> None:
        super().__init__(
            "Forbidden",
            f"player '{player_id}' did not take part in match '{match_id}'",
            code="match_forbidden",
        )
