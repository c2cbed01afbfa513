"""Cache key layout."""

from typing import Iterable

LEADERBOARD_STATS_KEY = "leaderboard_stats"


def leaderboard_page_key(category: str, page: int, page_size: int) -> str:
    return f"leaderboard:{category}_{page}_{page_size}"


def session_key(user_id: object, prefix: str = "session") -> str:
    return f"{prefix}:{user_id}"


def leaderboard_invalidation_keys(
    categories: Iterable[str],
    pages: int,
    page_sizes: Iterable[int],
) -> list[str]:
    """Every page key a resolution may have made stale, in a stable order."""
    sizes = list(page_sizes)
    return [
        leaderboard_page_key(category, page, size)
        for category in dict.fromkeys(categories)
        for page in range(1, pages + 1)
        for size in sizes
    ]
