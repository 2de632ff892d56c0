"""Global monotonic sequence allocation (ticket numbers)."""

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from helpdesk.db.models import SequenceCounter


def next_number(db: Session, sequence_name: str) -> int:
    """
    Allocate the next value of a named sequence (first value is 1).

    Uses atomic INSERT...ON CONFLICT so concurrent callers never observe the
    same value: the counter row stays write-locked until the caller's
    transaction commits, and values are handed out in commit order.
    """
    result = db.execute(
        text(
            """
            INSERT INTO sequence_counters (name, current_value, updated_at)
            VALUES (:name, 1, CURRENT_TIMESTAMP)
            ON CONFLICT (name)
            DO UPDATE SET current_value = sequence_counters.current_value + 1,
                          updated_at = CURRENT_TIMESTAMP
            RETURNING current_value
            """
        ),
        {"name": sequence_name},
    ).scalar_one_or_none()
    if result is None:
        raise RuntimeError(f"Failed to allocate from sequence {sequence_name}")
    return int(result)


def current_value(db: Session, sequence_name: str) -> int:
    """Last value handed out for a sequence (0 when unused)."""
    value = db.execute(
        select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
    ).scalar_one_or_none()
    return int(value or 0)
