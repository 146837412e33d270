import asyncio
import logging

from sqlalchemy import select

from app import db
from app.models import Match, Player, Sport
from app.schemas import MatchOut, SportOut, leaderboard_entries
from app.services import create_match, create_sport, get_leaderboard, register_player

logger = logging.getLogger(__name__)

SPORTS = ["Baby-foot", "Table Tennis"]
PLAYERS = [
    ("alice", "alice@example.com"),
    ("bob", "bob@example.com"),
    ("charlie", "charlie@example.com"),
    ("diana", "diana@example.com"),
]


async def seed() -> None:
    await db.init_models()
    assert db.AsyncSessionLocal is not None

    async with db.AsyncSessionLocal() as s:
        have = set((await s.execute(select(Sport.name))).scalars().all())
        for name in SPORTS:
            if name not in have:
                sport = await create_sport(s, name)
                logger.info("Seeded sport %s", SportOut.from_model(sport).model_dump_json())

        known = set((await s.execute(select(Player.username))).scalars().all())
        for username, email in PLAYERS:
            if username not in known:
                # Seed accounts are not meant to log in.
                await register_player(s, username, email, "!seed-account")

        sports = {
            x.name: x.id for x in (await s.execute(select(Sport))).scalars().all()
        }
        players = {
            x.username: x.id for x in (await s.execute(select(Player))).scalars().all()
        }

        if (await s.execute(select(Match.id).limit(1))).first() is not None:
            logger.info("Matches already present; skipping match seeding")
            return

        foosball = sports["Baby-foot"]
        ping_pong = sports["Table Tennis"]
        a, b, c, d = (players[name] for name, _ in PLAYERS)

        results = [
            await create_match(s, ping_pong, a, [a], [b], 11, 7),
            await create_match(s, ping_pong, c, [c], [d], 9, 11),
            await create_match(s, foosball, a, [a, b], [c, d], 10, 8),
            await create_match(s, foosball, d, [d, c], [b, a], 10, 10),
        ]
        for match in results:
            logger.info("Seeded %s", MatchOut.from_model(match).model_dump_json())

        for sport_name, sport_id in sports.items():
            rows = await get_leaderboard(s, sport_id)
            for entry in leaderboard_entries(rows):
                logger.info(
                    "%s #%d %s %.1f", sport_name, entry.rank, entry.username, entry.eloRating
                )


async def main():
    try:
        await seed()
    finally:
        await db.get_engine().dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
