from sqlalchemy.orm import relationship
from sqlalchemy import (
    CheckConstraint,
    Column,
    String,
    DateTime,
    ForeignKey,
    Integer,
    Float,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from .db import Base


class Sport(Base):
    __tablename__ = "sport"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)


class Player(Base):
    __tablename__ = "player"
    id = Column(Integer, primary_key=True)
    username = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="PLAYER")  # "PLAYER" | "ADMIN"
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __mapper_args__ = {"eager_defaults": True}


class Team(Base):
    """One or two players competing together.

    ``member_key`` is the sorted member set (``"3:7"``, or ``"5"`` for a solo
    team); its unique constraint is what guarantees a given set of players
    maps to at most one team.
    """

    __tablename__ = "team"
    id = Column(Integer, primary_key=True)
    player1_id = Column(Integer, ForeignKey("player.id"), nullable=False)
    player2_id = Column(Integer, ForeignKey("player.id"), nullable=True)
    member_key = Column(String, nullable=False)

    __table_args__ = (UniqueConstraint("member_key", name="uq_team_member_key"),)

    @property
    def member_ids(self) -> list[int]:
        ids = [self.player1_id]
        if self.player2_id is not None:
            ids.append(self.player2_id)
        return ids


class Match(Base):
    __tablename__ = "match"
    id = Column(Integer, primary_key=True)
    sport_id = Column(Integer, ForeignKey("sport.id"), nullable=False)
    creator_id = Column(Integer, ForeignKey("player.id"), nullable=False)
    team_a_id = Column(Integer, ForeignKey("team.id"), nullable=False)
    team_b_id = Column(Integer, ForeignKey("team.id"), nullable=False)
    score_a = Column(Integer, nullable=False, default=0)
    score_b = Column(Integer, nullable=False, default=0)
    winner = Column(String, nullable=True)  # "A" | "B" | "DRAW"; NULL while pending
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    finished_at = Column(DateTime, nullable=True)

    team_a = relationship("Team", foreign_keys=[team_a_id], lazy="joined", innerjoin=True)
    team_b = relationship("Team", foreign_keys=[team_b_id], lazy="joined", innerjoin=True)

    __table_args__ = (
        CheckConstraint("team_a_id <> team_b_id", name="ck_match_distinct_teams"),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def is_finished(self) -> bool:
        return self.winner is not None


class PlayerStats(Base):
    """Running rating and aggregates for one player in one sport."""

    __tablename__ = "player_stats"
    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey("player.id"), nullable=False)
    sport_id = Column(Integer, ForeignKey("sport.id"), nullable=False)
    matches_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    goals_scored = Column(Integer, nullable=False, default=0)
    win_rate = Column(Float, nullable=False, default=0.0)
    elo_rating = Column(Float, nullable=False, default=1000.0)
    last_updated = Column(DateTime, nullable=True, server_default=func.now())
    version = Column(Integer, nullable=False)

    player = relationship("Player", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "player_id", "sport_id", name="uq_player_stats_player_id_sport_id"
        ),
    )
    __mapper_args__ = {"version_id_col": version}
