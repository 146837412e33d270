import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import atomic
from ..db_errors import is_unique_violation
from ..exceptions import SportInUse, SportNameTaken, SportNotFound
from ..models import Match, PlayerStats, Sport
from .player_stats import ensure_sport_stats
from .validation import validate_name

logger = logging.getLogger(__name__)


async def get_sport(session: AsyncSession, sport_id: int) -> Sport:
    sport = await session.get(Sport, sport_id)
    if sport is None:
        raise SportNotFound(sport_id)
    return sport


async def list_sports(session: AsyncSession) -> list[Sport]:
    rows = (
        await session.execute(select(Sport).order_by(func.lower(Sport.name), Sport.id))
    ).scalars().all()
    return list(rows)


async def create_sport(session: AsyncSession, name: str) -> Sport:
    """Add a sport and seed every existing player's stats row for it."""

    normalized = validate_name(name, field="name")
    try:
        async with atomic(session):
            existing = (
                await session.execute(select(Sport.id).where(Sport.name == normalized))
            ).scalar_one_or_none()
            if existing is not None:
                raise SportNameTaken(normalized)
            sport = Sport(name=normalized)
            session.add(sport)
            await session.flush()
            await ensure_sport_stats(session, sport.id)
    except IntegrityError as exc:
        if is_unique_violation(exc, "name"):
            raise SportNameTaken(normalized) from exc
        raise

    logger.info("Created sport %s (%s)", sport.id, sport.name)
    return sport


async def rename_sport(session: AsyncSession, sport_id: int, name: str) -> Sport:
    normalized = validate_name(name, field="name")
    try:
        async with atomic(session):
            sport = await get_sport(session, sport_id)
            if sport.name != normalized:
                taken = (
                    await session.execute(
                        select(Sport.id).where(
                            Sport.name == normalized, Sport.id != sport_id
                        )
                    )
                ).scalar_one_or_none()
                if taken is not None:
                    raise SportNameTaken(normalized)
                previous, sport.name = sport.name, normalized
                await session.flush()
                logger.info("Renamed sport %s from %s to %s", sport_id, previous, normalized)
    except IntegrityError as exc:
        if is_unique_violation(exc, "name"):
            raise SportNameTaken(normalized) from exc
        raise

    return sport


async def delete_sport(session: AsyncSession, sport_id: int) -> None:
    """Delete a sport that no match refers to, along with its stats rows."""

    async with atomic(session):
        sport = await get_sport(session, sport_id)
        match_count = (
            await session.execute(
                select(func.count()).select_from(Match).where(Match.sport_id == sport_id)
            )
        ).scalar_one()
        if match_count:
            raise SportInUse(sport_id)
        await session.execute(delete(PlayerStats).where(PlayerStats.sport_id == sport_id))
        await session.delete(sport)

    logger.info("Deleted sport %s", sport_id)
