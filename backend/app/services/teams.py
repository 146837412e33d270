import logging
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import insert_ignoring_conflicts
from ..exceptions import ConcurrentUpdate, PlayerNotFound, TeamNotFound
from ..models import Player, Team
from .validation import validate_team_players

logger = logging.getLogger(__name__)


def team_member_key(player_ids: Iterable[int]) -> str:
    """Canonical, order-insensitive key for a set of players."""
    return ":".join(str(pid) for pid in sorted(player_ids))


async def _find_team(session: AsyncSession, member_key: str) -> Team | None:
    return (
        await session.execute(
            select(Team).where(Team.member_key == member_key).order_by(Team.id).limit(1)
        )
    ).scalars().first()


async def resolve_team(session: AsyncSession, player_ids: Sequence[int]) -> Team:
    """Return the team made of exactly ``player_ids``, creating it if needed.

    Lookup ignores order: ``[7, 3]`` finds a team stored as ``(3, 7)``. A new
    team keeps the order it was requested in. The insert skips on a
    ``member_key`` conflict and re-reads, so two concurrent callers end up
    with the same row.
    """

    ids = validate_team_players(player_ids)

    existing_players = (
        await session.execute(select(Player.id).where(Player.id.in_(ids)))
    ).scalars().all()
    missing = sorted(set(ids) - set(existing_players))
    if missing:
        raise PlayerNotFound(missing[0])

    member_key = team_member_key(ids)
    team = await _find_team(session, member_key)
    if team is not None:
        return team

    await insert_ignoring_conflicts(
        session,
        Team,
        [
            {
                "player1_id": ids[0],
                "player2_id": ids[1] if len(ids) > 1 else None,
                "member_key": member_key,
            }
        ],
        index_elements=["member_key"],
    )
    team = await _find_team(session, member_key)
    if team is None:
        # Skipped as a conflict, yet the conflicting row is gone again.
        raise ConcurrentUpdate()
    logger.info("Resolved new team %s for players %s", team.id, member_key)
    return team


async def get_team(session: AsyncSession, team_id: int) -> Team:
    team = await session.get(Team, team_id)
    if team is None:
        raise TeamNotFound(team_id)
    return team
