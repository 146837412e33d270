"""Recording matches and settling their outcome into player ratings.

A match is *pending* while ``winner`` is NULL and *finished* once a winner
marker (``"A"``, ``"B"`` or ``"DRAW"``) is stored. Settlement is the single
transition between the two: it stores the scores and applies the rating and
stats changes of every participant in one transaction.
"""

import logging
from typing import Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import atomic
from ..exceptions import (
    MatchAlreadyFinished,
    MatchNotFound,
    NotParticipant,
    PlayerNotFound,
    PlayersOnBothSides,
    SelfPlay,
    SportNotFound,
)
from ..models import Match, Player, Sport, Team
from ..time_utils import utcnow
from .player_stats import lock_player_stats, record_result
from .rating import K_FACTOR, determine_winner, rating_deltas, side_results, team_average
from .teams import resolve_team
from .validation import validate_score_pair

logger = logging.getLogger(__name__)


async def get_match(session: AsyncSession, match_id: int) -> Match:
    match = await session.get(Match, match_id)
    if match is None:
        raise MatchNotFound(match_id)
    return match


async def create_match(
    session: AsyncSession,
    sport_id: int,
    creator_id: int,
    team_a_player_ids: Sequence[int],
    team_b_player_ids: Sequence[int],
    score_a: int | None = None,
    score_b: int | None = None,
) -> Match:
    """Record a match between two rosters.

    Both teams are resolved (and created if new). When both scores are given
    the match is settled before returning; with neither it stays pending.
    Nothing is persisted if any step fails.
    """

    scores = validate_score_pair(score_a, score_b, required=False)

    async with atomic(session):
        if await session.get(Sport, sport_id) is None:
            raise SportNotFound(sport_id)
        if await session.get(Player, creator_id) is None:
            raise PlayerNotFound(creator_id)

        team_a = await resolve_team(session, team_a_player_ids)
        team_b = await resolve_team(session, team_b_player_ids)
        if team_a.id == team_b.id:
            raise SelfPlay(team_a.id)
        shared = sorted(set(team_a.member_ids) & set(team_b.member_ids))
        if shared:
            raise PlayersOnBothSides(shared)

        match = Match(
            sport_id=sport_id,
            creator_id=creator_id,
            team_a=team_a,
            team_b=team_b,
            score_a=0,
            score_b=0,
            winner=None,
            finished_at=None,
        )
        session.add(match)
        await session.flush()

        if scores is not None:
            await _settle(session, match, *scores)
        else:
            logger.info("Recorded pending match %s in sport %s", match.id, sport_id)

    return match


async def settle_match(
    session: AsyncSession,
    match_id: int,
    score_a: int,
    score_b: int,
    acting_player_id: int,
) -> Match:
    """Finish a pending match with its final scores.

    Only a member of one of the two teams may settle it, and only once.
    """

    final_a, final_b = validate_score_pair(score_a, score_b)

    async with atomic(session):
        match = await get_match(session, match_id)
        participants = set(match.team_a.member_ids) | set(match.team_b.member_ids)
        if acting_player_id not in participants:
            raise NotParticipant(acting_player_id, match_id)
        if match.is_finished:
            raise MatchAlreadyFinished(match_id)

        await _settle(session, match, final_a, final_b)

    return match


async def _settle(session: AsyncSession, match: Match, score_a: int, score_b: int) -> None:
    """Finish ``match`` and apply its outcome to every participant's stats.

    Must run inside the caller's transaction; it only flushes.
    """

    now = utcnow()
    winner = determine_winner(score_a, score_b)

    # Compare-and-swap on the pending state: of two concurrent settlements of
    # the same match only one can claim the row.
    claimed = await session.execute(
        update(Match)
        .where(Match.id == match.id, Match.winner.is_(None))
        .values(score_a=score_a, score_b=score_b, winner=winner, finished_at=now)
        .execution_options(synchronize_session="evaluate")
    )
    if claimed.rowcount != 1:
        raise MatchAlreadyFinished(match.id)

    team_a: Team = match.team_a
    team_b: Team = match.team_b
    members_a = team_a.member_ids
    members_b = team_b.member_ids

    stats = await lock_player_stats(session, match.sport_id, members_a + members_b)

    avg_a = team_average([stats[pid].elo_rating for pid in members_a])
    avg_b = team_average([stats[pid].elo_rating for pid in members_b])
    result_a, result_b = side_results(score_a, score_b)
    delta_a, delta_b = rating_deltas(avg_a, avg_b, result_a, K_FACTOR)

    for pid in members_a:
        record_result(stats[pid], result=result_a, delta=delta_a, at=now)
    for pid in members_b:
        record_result(stats[pid], result=result_b, delta=delta_b, at=now)

    await session.flush()
    logger.info(
        "Settled match %s (%d-%d, winner %s): delta A %+.2f, delta B %+.2f",
        match.id,
        score_a,
        score_b,
        winner,
        delta_a,
        delta_b,
    )
