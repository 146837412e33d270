import pytest
from sqlalchemy import func, select, update

from app import db
from app.exceptions import (
    ConcurrentUpdate,
    InvalidScore,
    MatchAlreadyFinished,
    MatchNotFound,
    MissingScore,
    NotParticipant,
    PlayerNotFound,
    PlayersOnBothSides,
    SelfPlay,
    SportNotFound,
)
from app.models import Match, PlayerStats, Team
from app.schemas import MatchOut
from app.services import matches
from app.services.matches import create_match, get_match, settle_match
from app.services.rating import rating_deltas

from factories import add_players, add_sport, set_rating

SPORT = 1


async def _stats(session_factory, sport_id=SPORT):
    async with session_factory() as session:
        rows = (
            await session.execute(
                select(PlayerStats)
                .where(PlayerStats.sport_id == sport_id)
                .order_by(PlayerStats.player_id)
            )
        ).scalars().all()
        return {row.player_id: row for row in rows}


async def _setup(session_factory, *player_ids):
    async with session_factory() as session:
        await add_sport(session, SPORT, "Table Tennis")
        await add_players(session, *player_ids)


def test_solo_win_between_equal_ratings(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            match = await create_match(session, SPORT, 1, [1], [2], 11, 7)
            out = MatchOut.from_model(match)
        async with session_factory() as session:
            stored = MatchOut.from_model(await get_match(session, match.id))
        return out, stored, await _stats(session_factory)

    out, stored, stats = run(scenario())
    assert out.winner == "A"
    assert out.status == "finished"
    assert (out.scoreA, out.scoreB) == (11, 7)
    assert out.finishedAt is not None and out.finishedAt.tzinfo is not None
    assert out.finishedAt == stored.finishedAt
    assert stats[1].elo_rating == pytest.approx(1016)
    assert stats[2].elo_rating == pytest.approx(984)
    assert (stats[1].matches_played, stats[1].wins, stats[1].losses) == (1, 1, 0)
    assert (stats[2].matches_played, stats[2].wins, stats[2].losses) == (1, 0, 1)
    assert stats[1].win_rate == 1.0
    assert stats[2].win_rate == 0.0
    assert stats[1].last_updated is not None


def test_draw_between_equal_ratings_only_counts_the_match(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            match = await create_match(session, SPORT, 1, [1], [2], 5, 5)
        return match, await _stats(session_factory)

    match, stats = run(scenario())
    assert match.winner == "DRAW"
    for pid in (1, 2):
        assert stats[pid].elo_rating == pytest.approx(1000)
        assert stats[pid].matches_played == 1
        assert stats[pid].wins == 0
        assert stats[pid].losses == 0
        assert stats[pid].win_rate == 0.0


def test_duo_losing_to_stronger_rated_solo_shares_delta(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2, 3)
        async with session_factory() as session:
            await set_rating(session, 1, SPORT, 1000)
            await set_rating(session, 2, SPORT, 1200)
            await set_rating(session, 3, SPORT, 900)
        async with session_factory() as session:
            await create_match(session, SPORT, 3, [1, 2], [3], 2, 6)
        return await _stats(session_factory)

    stats = run(scenario())
    delta_a, delta_b = rating_deltas(1100, 900, 0.0)
    assert delta_a < 0
    assert delta_a == pytest.approx(-24.3119, abs=1e-3)
    assert stats[1].elo_rating - 1000 == pytest.approx(delta_a)
    assert stats[2].elo_rating - 1200 == pytest.approx(delta_a)
    assert stats[3].elo_rating - 900 == pytest.approx(delta_b)
    assert stats[1].losses == stats[2].losses == 1
    assert stats[3].wins == 1


def test_pending_match_then_settle(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2, 3)
        async with session_factory() as session:
            pending = await create_match(session, SPORT, 1, [1, 3], [2])
            pending_out = MatchOut.from_model(pending)
            stats_before = await _stats(session_factory)
        async with session_factory() as session:
            settled = await settle_match(session, pending.id, 3, 11, acting_player_id=2)
            settled_out = MatchOut.from_model(settled)
        return pending_out, stats_before, settled_out, await _stats(session_factory)

    pending_out, stats_before, settled_out, stats = run(scenario())
    assert pending_out.status == "pending"
    assert pending_out.winner is None
    assert pending_out.finishedAt is None
    assert (pending_out.scoreA, pending_out.scoreB) == (0, 0)
    assert stats_before == {}

    assert settled_out.winner == "B"
    assert settled_out.status == "finished"
    assert settled_out.finishedAt is not None and settled_out.finishedAt.tzinfo is not None
    assert settled_out.teamA.playerIds == [1, 3]
    assert stats[2].elo_rating == pytest.approx(1016)
    assert stats[1].elo_rating == stats[3].elo_rating == pytest.approx(984)


def test_second_settlement_conflicts_and_does_not_double_apply(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            match = await create_match(session, SPORT, 1, [1], [2])
        async with session_factory() as session:
            await settle_match(session, match.id, 11, 9, acting_player_id=1)
        async with session_factory() as session:
            with pytest.raises(MatchAlreadyFinished) as exc_info:
                await settle_match(session, match.id, 11, 9, acting_player_id=1)
        return exc_info.value, await _stats(session_factory)

    error, stats = run(scenario())
    assert error.status_code == 409
    assert stats[1].matches_played == stats[2].matches_played == 1
    assert stats[1].elo_rating == pytest.approx(1016)


def test_settling_a_match_created_with_scores_conflicts(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            match = await create_match(session, SPORT, 1, [1], [2], 1, 0)
        async with session_factory() as session:
            await settle_match(session, match.id, 0, 1, acting_player_id=2)

    with pytest.raises(MatchAlreadyFinished):
        run(scenario())


def test_non_participant_cannot_settle(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2, 3)
        async with session_factory() as session:
            match = await create_match(session, SPORT, 3, [1], [2])
        async with session_factory() as session:
            with pytest.raises(NotParticipant) as exc_info:
                await settle_match(session, match.id, 1, 0, acting_player_id=3)
        async with session_factory() as session:
            reloaded = await get_match(session, match.id)
        return exc_info.value, reloaded

    error, reloaded = run(scenario())
    assert error.status_code == 403
    assert reloaded.winner is None


@pytest.mark.parametrize(
    "team_a, team_b",
    [([1, 2], [2, 1]), ([1], [1])],
)
def test_self_play_is_rejected(run, session_factory, team_a, team_b):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            await create_match(session, SPORT, 1, team_a, team_b, 3, 1)

    with pytest.raises(SelfPlay):
        run(scenario())


def test_player_on_both_sides_is_rejected(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2, 3)
        async with session_factory() as session:
            await create_match(session, SPORT, 1, [1, 2], [2, 3])

    with pytest.raises(PlayersOnBothSides):
        run(scenario())


def test_unknown_sport_and_creator(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            with pytest.raises(SportNotFound):
                await create_match(session, 42, 1, [1], [2])
        async with session_factory() as session:
            with pytest.raises(PlayerNotFound):
                await create_match(session, SPORT, 42, [1], [2])
        async with session_factory() as session:
            with pytest.raises(MatchNotFound):
                await settle_match(session, 42, 1, 0, acting_player_id=1)

    run(scenario())


def test_score_validation(run, session_factory):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            with pytest.raises(MissingScore):
                await create_match(session, SPORT, 1, [1], [2], score_a=3)
            with pytest.raises(InvalidScore):
                await create_match(session, SPORT, 1, [1], [2], -1, 3)
            with pytest.raises(InvalidScore):
                await create_match(session, SPORT, 1, [1], [2], True, 3)
            match = await create_match(session, SPORT, 1, [1], [2])
            with pytest.raises(MissingScore):
                await settle_match(session, match.id, None, 2, acting_player_id=1)

    run(scenario())


def test_failed_creation_persists_nothing(run, session_factory, monkeypatch):
    def explode(stats, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(matches, "record_result", explode)

    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            with pytest.raises(RuntimeError):
                await create_match(session, SPORT, 1, [1], [2], 11, 7)
        async with session_factory() as session:
            match_count = (
                await session.execute(select(func.count()).select_from(Match))
            ).scalar_one()
            team_count = (
                await session.execute(select(func.count()).select_from(Team))
            ).scalar_one()
        return match_count, team_count, await _stats(session_factory)

    match_count, team_count, stats = run(scenario())
    assert match_count == 0
    assert team_count == 0
    assert stats == {}


def test_failed_settlement_leaves_match_pending_and_stats_untouched(
    run, session_factory, monkeypatch
):
    real_record = matches.record_result
    calls = {"n": 0}

    def fail_on_second(stats, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("boom")
        real_record(stats, **kwargs)

    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            await set_rating(session, 1, SPORT, 1000)
            await set_rating(session, 2, SPORT, 1000)
            match = await create_match(session, SPORT, 1, [1], [2])
        monkeypatch.setattr(matches, "record_result", fail_on_second)
        async with session_factory() as session:
            with pytest.raises(RuntimeError):
                await settle_match(session, match.id, 11, 7, acting_player_id=1)
        async with session_factory() as session:
            reloaded = await get_match(session, match.id)
        return reloaded, await _stats(session_factory)

    reloaded, stats = run(scenario())
    assert reloaded.winner is None
    assert (reloaded.score_a, reloaded.score_b) == (0, 0)
    for pid in (1, 2):
        assert stats[pid].matches_played == 0
        assert stats[pid].elo_rating == 1000


def _bump_versions_after_lock(monkeypatch, times=None):
    """Make another writer touch the locked stats rows before they are flushed."""

    real_lock = matches.lock_player_stats
    calls = {"n": 0}

    async def lock_then_interfere(session, sport_id, player_ids):
        rows = await real_lock(session, sport_id, player_ids)
        calls["n"] += 1
        if times is None or calls["n"] <= times:
            await session.execute(
                update(PlayerStats)
                .where(PlayerStats.sport_id == sport_id)
                .values(version=PlayerStats.version + 1)
                .execution_options(synchronize_session=False)
            )
        return rows

    monkeypatch.setattr(matches, "lock_player_stats", lock_then_interfere)
    return calls


def test_lost_update_is_reported_as_concurrent_update(run, session_factory, monkeypatch):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            match = await create_match(session, SPORT, 1, [1], [2])
        _bump_versions_after_lock(monkeypatch)
        async with session_factory() as session:
            with pytest.raises(ConcurrentUpdate) as exc_info:
                await settle_match(session, match.id, 11, 7, acting_player_id=1)
        async with session_factory() as session:
            reloaded = await get_match(session, match.id)
        return exc_info.value, reloaded

    error, reloaded = run(scenario())
    assert error.retryable is True
    assert error.code == "concurrent_update"
    assert reloaded.winner is None


def test_transaction_boundary_retries_lost_update(run, session_factory, monkeypatch):
    async def scenario():
        await _setup(session_factory, 1, 2)
        async with session_factory() as session:
            match = await create_match(session, SPORT, 1, [1], [2])
        calls = _bump_versions_after_lock(monkeypatch, times=1)

        settled = await db.run_in_transaction(
            lambda session: settle_match(session, match.id, 11, 7, acting_player_id=1)
        )
        return calls["n"], settled, await _stats(session_factory)

    attempts, settled, stats = run(scenario())
    assert attempts == 2
    assert settled.winner == "A"
    assert stats[1].matches_played == 1
    assert stats[1].elo_rating == pytest.approx(1016)
    assert stats[2].elo_rating == pytest.approx(984)
