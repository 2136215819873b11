"""
Leaderboards and platform statistics over accounts.

Pure functions over already-loaded accounts: the repository decides which
accounts to load, this module decides how to rank and count them.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import Account, Athlete, Role


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    account_id: str
    name: str
    location: str
    specialization: Optional[str]
    points: int
    level: Optional[str]
    badge_count: int


@dataclass(frozen=True)
class PlatformStats:
    total_users: int
    active_users: int
    verified_users: int
    users_by_type: dict[str, int]
    users_by_state: list[tuple[str, int]]
    top_performers: list[Account]


def _level_of(account: Account) -> Optional[str]:
    return account.level.value if isinstance(account, Athlete) else None


def _performance_of(account: Account) -> int:
    return account.performance_level if isinstance(account, Athlete) else 0


def rank_by_points(accounts: Iterable[Account]) -> list[Account]:
    """Points first, performance level breaks ties, then name for stability."""
    return sorted(
        accounts,
        key=lambda a: (-a.points, -_performance_of(a), a.name.lower()),
    )


def build_leaderboard(accounts: Iterable[Account], limit: int = 50) -> list[LeaderboardEntry]:
    ranked = rank_by_points(accounts)[:limit]
    return [
        LeaderboardEntry(
            rank=index + 1,
            account_id=str(account.id),
            name=account.name,
            location=account.location,
            specialization=account.specialization,
            points=account.points,
            level=_level_of(account),
            badge_count=len(account.badges),
        )
        for index, account in enumerate(ranked)
    ]


def platform_stats(accounts: list[Account], top_n: int = 10) -> PlatformStats:
    """Headline numbers for the officials' dashboard."""
    by_type = Counter(account.role.value for account in accounts)
    athletes = [a for a in accounts if a.role == Role.ATHLETE]
    by_state = Counter(a.state for a in athletes if a.state)

    return PlatformStats(
        total_users=len(accounts),
        active_users=sum(1 for a in accounts if a.is_active),
        verified_users=sum(1 for a in accounts if a.is_verified),
        users_by_type=dict(by_type),
        users_by_state=by_state.most_common(top_n),
        top_performers=sorted(athletes, key=lambda a: -a.points)[:top_n],
    )
