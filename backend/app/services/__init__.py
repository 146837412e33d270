"""Match resolution, rating and stats services."""

from .rating import rate, expected_score, rating_deltas
from .teams import resolve_team, get_team
from .player_stats import (
    ensure_player_stats,
    get_player_stats,
    list_player_stats,
    get_leaderboard,
)
from .matches import create_match, settle_match, get_match
from .sports import create_sport, delete_sport, get_sport, list_sports, rename_sport
from .players import register_player, get_player

__all__ = [
    "rate",
    "expected_score",
    "rating_deltas",
    "resolve_team",
    "get_team",
    "ensure_player_stats",
    "get_player_stats",
    "list_player_stats",
    "get_leaderboard",
    "create_match",
    "settle_match",
    "get_match",
    "create_sport",
    "delete_sport",
    "get_sport",
    "list_sports",
    "rename_sport",
    "register_player",
    "get_player",
]
