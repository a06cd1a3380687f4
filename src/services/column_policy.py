"""
Routing rules for AI-enabled columns.

Boards have an arbitrary, user-defined set of columns, so routing after an AI
run is derived from column order and the ``ai_enabled`` flag instead of fixed
stage names. All functions take the board's columns in any order.
"""
from typing import Optional, Sequence

from src.models.column import Column


def is_ai_column(column: Optional[Column]) -> bool:
    """True iff entering the column arms AI processing"""
    return bool(column is not None and column.ai_enabled)


def _ordered(columns: Sequence[Column]) -> list[Column]:
    return sorted(columns, key=lambda c: (c.order, c.id or 0))


def has_manual_column(columns: Sequence[Column]) -> bool:
    """A board needs at least one non-AI column to route tasks to"""
    return any(not is_ai_column(c) for c in columns)


def next_column_on_success(columns: Sequence[Column], current_column: Column) -> Optional[Column]:
    """
    Column a task goes to after a successful AI run.
    
    The nearest non-AI column after ``current_column``; when there is none,
    the last column of the board. Returns None for a board without non-AI
    columns, where no valid target exists.
    """
    ordered = _ordered(columns)
    if not ordered or not has_manual_column(ordered):
        return None
    
    for column in ordered:
        if not is_ai_column(column) and column.order > current_column.order:
            return column
    return ordered[-1]


def next_column_on_failure(columns: Sequence[Column]) -> Optional[Column]:
    """
    Column a task goes back to after a failed AI run.
    
    The non-AI column with order 0, otherwise the first column of the board.
    Returns None for a board without non-AI columns.
    """
    ordered = _ordered(columns)
    if not ordered or not has_manual_column(ordered):
        return None
    
    for column in ordered:
        if not is_ai_column(column) and column.order == 0:
            return column
    return ordered[0]
