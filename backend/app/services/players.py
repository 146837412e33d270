import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import atomic
from ..db_errors import is_unique_violation
from ..exceptions import PlayerAlreadyExists, PlayerNotFound
from ..models import Player
from .player_stats import ensure_player_stats_all_sports
from .validation import validate_name, validate_role

logger = logging.getLogger(__name__)


async def get_player(session: AsyncSession, player_id: int) -> Player:
    player = await session.get(Player, player_id)
    if player is None:
        raise PlayerNotFound(player_id)
    return player


async def register_player(
    session: AsyncSession,
    username: str,
    email: str,
    password_hash: str,
    role: str = "PLAYER",
) -> Player:
    """Persist a new player and open a stats row for them in every sport.

    ``password_hash`` must already be hashed by the caller.
    """

    username = validate_name(username, field="username")
    email = validate_name(email, field="email")
    password_hash = validate_name(password_hash, field="password_hash")
    role = validate_role(role)

    try:
        async with atomic(session):
            clash = (
                await session.execute(
                    select(Player.username, Player.email).where(
                        or_(Player.username == username, Player.email == email)
                    )
                )
            ).first()
            if clash is not None:
                raise PlayerAlreadyExists(
                    username if clash.username == username else email
                )
            player = Player(
                username=username, email=email, password_hash=password_hash, role=role
            )
            session.add(player)
            await session.flush()
            await ensure_player_stats_all_sports(session, player.id)
    except IntegrityError as exc:
        if is_unique_violation(exc):
            raise PlayerAlreadyExists(username) from exc
        raise

    logger.info("Registered player %s (%s)", player.id, player.username)
    return player
