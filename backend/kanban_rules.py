"""
Kanban task lifecycle rules.

Pure functions shared by the Kanban router and the mirroring adapter:
ordering inside a column, status derivation from a column's display name,
and the naming of mirrored branches and status comments.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple

from models import TaskStatus, utcnow

# Ordered: the first rule whose markers appear in the column name wins, so a
# column called "In Progress Review" resolves to in_progress.
STATUS_RULES: Tuple[Tuple[TaskStatus, Tuple[str, ...]], ...] = (
    (TaskStatus.DONE, ("Done", "✅")),
    (TaskStatus.IN_PROGRESS, ("Progress", "⚡")),
    (TaskStatus.REVIEW, ("Review", "👀")),
)

DEFAULT_COLUMNS = [
    {"name": "Backlog", "position": 0, "color": "#64748b"},
    {"name": "In Progress", "position": 1, "color": "#3b82f6"},
    {"name": "Review", "position": 2, "color": "#f59e0b"},
    {"name": "Done", "position": 3, "color": "#10b981"},
]

BRANCH_SLUG_LENGTH = 30


def next_position(existing_positions: Iterable[Optional[int]]) -> int:
    """Append-at-end position for a column: max + 1, or 1 for an empty column."""
    positions = [p for p in existing_positions if p is not None]
    return (max(positions) if positions else 0) + 1


def derive_status(column_name: str) -> TaskStatus:
    """Map a column's display name to a task status (case-sensitive, first match wins)."""
    for status, markers in STATUS_RULES:
        if any(marker in column_name for marker in markers):
            return status
    return TaskStatus.TODO


@dataclass
class ColumnChange:
    column_id: str
    position: int
    status: TaskStatus
    completed_at: Optional[datetime]


def plan_column_change(
    target_column_id: str,
    target_column_name: str,
    existing_positions: Iterable[Optional[int]],
    current_completed_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> ColumnChange:
    """Position, status and completion timestamp for a task entering a new column.

    completed_at is stamped whenever the destination derives ``done`` and is
    otherwise carried over untouched; leaving a Done column never clears it.
    """
    status = derive_status(target_column_name)
    completed_at = current_completed_at
    if status == TaskStatus.DONE:
        completed_at = now or utcnow()
    return ColumnChange(
        column_id=target_column_id,
        position=next_position(existing_positions),
        status=status,
        completed_at=completed_at,
    )


def slugify(text: str) -> str:
    # Git refs reject spaces, "~", "^", ":", "?" and friends
    slug = re.sub(r"\s+", "-", text.strip().lower())
    return re.sub(r"[^a-z0-9_-]", "", slug)


def branch_name_for(task_id: str, title: str) -> str:
    """``task/<short id>/<slug>`` with the slug truncated to 30 characters."""
    slug = slugify(title)[:BRANCH_SLUG_LENGTH]
    return f"task/{task_id[:8]}/{slug}"


def status_comment(status: TaskStatus) -> str:
    return f"Task moved to {status.value.upper()}"
