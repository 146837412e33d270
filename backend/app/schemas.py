from typing import Literal, Optional, Sequence
from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator

from .models import Match, PlayerStats, Sport, Team
from .time_utils import coerce_utc


class SportOut(BaseModel):
    id: int
    name: str

    @classmethod
    def from_model(cls, sport: Sport) -> "SportOut":
        return cls(id=sport.id, name=sport.name)


class TeamOut(BaseModel):
    id: int
    playerIds: list[int]

    @classmethod
    def from_model(cls, team: Team) -> "TeamOut":
        return cls(id=team.id, playerIds=team.member_ids)


class MatchOut(BaseModel):
    id: int
    sportId: int
    creatorId: int
    teamA: TeamOut
    teamB: TeamOut
    scoreA: int
    scoreB: int
    winner: Optional[Literal["A", "B", "DRAW"]] = None
    status: Literal["pending", "finished"]
    createdAt: Optional[datetime] = None
    finishedAt: Optional[datetime] = None

    @field_validator("createdAt", "finishedAt")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return coerce_utc(value)

    @classmethod
    def from_model(cls, match: Match) -> "MatchOut":
        return cls(
            id=match.id,
            sportId=match.sport_id,
            creatorId=match.creator_id,
            teamA=TeamOut.from_model(match.team_a),
            teamB=TeamOut.from_model(match.team_b),
            scoreA=match.score_a,
            scoreB=match.score_b,
            winner=match.winner,
            status="finished" if match.is_finished else "pending",
            createdAt=match.created_at,
            finishedAt=match.finished_at,
        )


class PlayerStatsOut(BaseModel):
    model_config = ConfigDict(extra="forbid")

    playerId: int
    sportId: int
    matchesPlayed: int
    wins: int
    losses: int
    goalsScored: int
    winRate: float
    eloRating: float
    lastUpdated: Optional[datetime] = None

    @field_validator("lastUpdated")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return coerce_utc(value)

    @classmethod
    def from_model(cls, stats: PlayerStats) -> "PlayerStatsOut":
        return cls(
            playerId=stats.player_id,
            sportId=stats.sport_id,
            matchesPlayed=stats.matches_played,
            wins=stats.wins,
            losses=stats.losses,
            goalsScored=stats.goals_scored,
            winRate=stats.win_rate,
            eloRating=stats.elo_rating,
            lastUpdated=stats.last_updated,
        )


class LeaderboardEntryOut(BaseModel):
    rank: int
    playerId: int
    username: str
    eloRating: float
    matchesPlayed: int
    wins: int
    losses: int
    winRate: float


def leaderboard_entries(rows: Sequence[PlayerStats]) -> list[LeaderboardEntryOut]:
    """Number an already ordered leaderboard, starting at rank 1."""
    return [
        LeaderboardEntryOut(
            rank=i + 1,
            playerId=row.player_id,
            username=row.player.username,
            eloRating=row.elo_rating,
            matchesPlayed=row.matches_played,
            wins=row.wins,
            losses=row.losses,
            winRate=row.win_rate,
        )
        for i, row in enumerate(rows)
    ]
