from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import insert_ignoring_conflicts
from ..exceptions import PlayerNotFound, PlayerStatsNotFound, SportNotFound
from ..models import Player, PlayerStats, Sport
from .rating import DEFAULT_RATING, LOSS, WIN
from .validation import validate_limit

_STATS_KEY = ["player_id", "sport_id"]


def _initial_row(player_id: int, sport_id: int) -> dict:
    return {
        "player_id": player_id,
        "sport_id": sport_id,
        "matches_played": 0,
        "wins": 0,
        "losses": 0,
        "goals_scored": 0,
        "win_rate": 0.0,
        "elo_rating": DEFAULT_RATING,
        "version": 1,
    }


async def ensure_player_stats(
    session: AsyncSession, sport_id: int, player_ids: Iterable[int]
) -> None:
    """Create a default stats row for each player that has none in ``sport_id``."""
    await insert_ignoring_conflicts(
        session,
        PlayerStats,
        [_initial_row(pid, sport_id) for pid in sorted(set(player_ids))],
        index_elements=_STATS_KEY,
    )


async def ensure_sport_stats(session: AsyncSession, sport_id: int) -> None:
    """Give every registered player a stats row in a newly created sport."""
    player_ids = (await session.execute(select(Player.id))).scalars().all()
    await ensure_player_stats(session, sport_id, player_ids)


async def ensure_player_stats_all_sports(session: AsyncSession, player_id: int) -> None:
    sport_ids = (await session.execute(select(Sport.id))).scalars().all()
    await insert_ignoring_conflicts(
        session,
        PlayerStats,
        [_initial_row(player_id, sid) for sid in sorted(sport_ids)],
        index_elements=_STATS_KEY,
    )


async def lock_player_stats(
    session: AsyncSession, sport_id: int, player_ids: Sequence[int]
) -> dict[int, PlayerStats]:
    """Ensure and lock the stats rows of ``player_ids`` for a read-modify-write.

    Rows are locked ``FOR UPDATE`` in ascending player order so two
    settlements sharing players cannot deadlock. Backends without row locks
    still reject a lost update through the row's version counter.
    """
    ids = sorted(set(player_ids))
    await ensure_player_stats(session, sport_id, ids)
    rows = (
        await session.execute(
            select(PlayerStats)
            .where(PlayerStats.player_id.in_(ids), PlayerStats.sport_id == sport_id)
            .order_by(PlayerStats.player_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    return {row.player_id: row for row in rows}


def record_result(stats: PlayerStats, *, result: float, delta: float, at: datetime) -> None:
    """Apply one finished match to a player's stats row.

    ``result`` is the player's side result (1, 0.5 or 0); draws count as a
    match played without touching wins or losses.
    """
    stats.matches_played += 1
    if result == WIN:
        stats.wins += 1
    elif result == LOSS:
        stats.losses += 1
    stats.win_rate = stats.wins / stats.matches_played
    stats.elo_rating += delta
    stats.last_updated = at


async def get_player_stats(
    session: AsyncSession, player_id: int, sport_id: int
) -> PlayerStats:
    if await session.get(Player, player_id) is None:
        raise PlayerNotFound(player_id)
    if await session.get(Sport, sport_id) is None:
        raise SportNotFound(sport_id)
    stats = (
        await session.execute(
            select(PlayerStats).where(
                PlayerStats.player_id == player_id, PlayerStats.sport_id == sport_id
            )
        )
    ).scalars().first()
    if stats is None:
        raise PlayerStatsNotFound(player_id, sport_id)
    return stats


async def list_player_stats(session: AsyncSession, player_id: int) -> list[PlayerStats]:
    """Return the player's stats in every sport they have a row for."""
    if await session.get(Player, player_id) is None:
        raise PlayerNotFound(player_id)
    rows = (
        await session.execute(
            select(PlayerStats)
            .where(PlayerStats.player_id == player_id)
            .order_by(PlayerStats.sport_id)
        )
    ).scalars().all()
    return list(rows)


async def get_leaderboard(
    session: AsyncSession, sport_id: int, limit: int | None = None
) -> list[PlayerStats]:
    """Top ``limit`` stats rows of a sport, highest rating first.

    Equal ratings are ordered by player id so pages are stable.
    """
    take = validate_limit(limit)
    if await session.get(Sport, sport_id) is None:
        raise SportNotFound(sport_id)
    rows = (
        await session.execute(
            select(PlayerStats)
            .where(PlayerStats.sport_id == sport_id)
            .order_by(PlayerStats.elo_rating.desc(), PlayerStats.player_id)
            .limit(take)
        )
    ).scalars().all()
    return list(rows)
