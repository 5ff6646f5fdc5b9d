"""
Progress overview module.

Builds caller-side views on top of the stores: habits with their
stats, the identity dashboard report, and the vote history report.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from identityforge.core.entities import HabitWithStats, IdentityDashboardItem, VoteHistoryItem
from identityforge.core.utils import format_since, format_timestamp, start_of_day_ms
from identityforge.stores import Stores

logger = logging.getLogger(__name__)


def list_habits_with_stats(stores: Stores) -> List[HabitWithStats]:
    """
    Active habits whose identity is also active, with vote stats.

    Habits of soft-deleted identities are skipped.
    """
    identity_by_id = {i.id: i for i in stores.identities.list_active()}

    enriched = []
    for habit in stores.habits.list_active():
        identity = identity_by_id.get(habit.identity_id)
        if identity is None:
            continue

        enriched.append(
            HabitWithStats(
                habit=habit,
                identity=identity,
                vote_count=stores.votes.count_for_habit(habit.id),
                last_vote_at=stores.votes.last_vote_at(habit.id),
            )
        )

    return enriched


def format_dashboard(
    items: Sequence[IdentityDashboardItem],
    now: int,
    tz_name: str = "UTC",
) -> str:
    """
    Format the identity dashboard as plain text.
    """
    lines = [
        f"IdentityForge - Dashboard ({format_timestamp(now, tz_name)})",
        f"Today started: {format_timestamp(start_of_day_ms(now), tz_name)}",
        "",
    ]

    if not items:
        lines.extend([
            "No identities yet.",
            "",
            "Start with one sentence:",
            "- Who do you want to become?",
        ])
        return "\n".join(lines)

    for item in items:
        lines.extend([
            item.identity_name,
            f"  Today: {item.votes_today}",
            f"  Last 7 days: {item.votes_last_7_days}",
            f"  Total: {item.total_votes}",
            "",
        ])

    total_today = sum(i.votes_today for i in items)
    idle = [i.identity_name for i in items if i.votes_last_7_days == 0]

    lines.append(f"Votes cast today: {total_today}")
    if idle:
        lines.append(f"No votes this week: {', '.join(idle)}")

    return "\n".join(lines)


def format_vote_history(items: Sequence[VoteHistoryItem], tz_name: str = "UTC") -> str:
    """
    Format the vote history as plain text, newest first.
    """
    if not items:
        return "No votes cast yet."

    lines = [f"Vote history ({len(items)} shown)", ""]
    for item in items:
        lines.append(f"{format_timestamp(item.created_at, tz_name)}  {item.identity_name}")

    return "\n".join(lines)


def format_habit_line(row: HabitWithStats, now: int) -> str:
    """One-line habit summary, e.g. "Read to kids (Present father): 3 votes, last 2h ago"."""
    noun = "vote" if row.vote_count == 1 else "votes"
    return (
        f"{row.habit.name} ({row.identity.name}): {row.vote_count} {noun}, "
        f"last {format_since(row.last_vote_at, now)}"
    )


def export_dashboard(
    stores: Stores,
    now: int,
    tz_name: str = "UTC",
    filepath: Optional[str] = None,
) -> str:
    """
    Export the dashboard report to a file.

    Returns file path.
    """
    if not filepath:
        stamp = format_timestamp(now, "UTC").replace("-", "").replace(":", "").replace(" ", "_")
        filepath = f"data/dashboard_{stamp}.txt"

    items = stores.identities.get_identity_dashboard_items(now)
    report = format_dashboard(items, now, tz_name)

    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report + "\n")

    logger.info(f"Dashboard exported to {filepath}")
    return str(path)
