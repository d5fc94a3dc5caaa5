"""
Abandoned cart reminder policy
Decides which of the three reminder emails (if any) is due for a cart snapshot
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional


@dataclass(frozen=True)
class ReminderThresholds:
    """Elapsed time since the snapshot after which each reminder becomes due."""
    first: timedelta = timedelta(hours=1)
    second: timedelta = timedelta(hours=24)
    third: timedelta = timedelta(hours=72)

    @classmethod
    def from_seconds(cls, first: int, second: int, third: int) -> "ReminderThresholds":
        return cls(timedelta(seconds=first), timedelta(seconds=second), timedelta(seconds=third))

    def as_dict(self) -> dict:
        return {
            "reminder1": int(self.first.total_seconds()),
            "reminder2": int(self.second.total_seconds()),
            "reminder3": int(self.third.total_seconds()),
        }


DEFAULT_THRESHOLDS = ReminderThresholds()


@dataclass
class CartSnapshot:
    items: list = field(default_factory=list)
    snapshot_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    reminder1_sent: bool = False
    reminder2_sent: bool = False
    reminder3_sent: bool = False

    @property
    def is_active(self) -> bool:
        return self.snapshot_at is not None

    def reminder_sent(self, number: int) -> bool:
        if number == 1:
            return self.reminder1_sent
        if number == 2:
            return self.reminder2_sent
        if number == 3:
            return self.reminder3_sent
        raise ValueError(f"unknown reminder number: {number}")


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes coming back from the store are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def decide(now: datetime, snapshot: CartSnapshot, thresholds: ReminderThresholds = DEFAULT_THRESHOLDS) -> Optional[int]:
    """
    Return the reminder number (1, 2 or 3) due for this snapshot, or None.

    Rules are checked in order and the first match wins, so at most one
    reminder is returned per call. A customer who missed the reminder 2
    window still gets reminder 2 before reminder 3.
    """
    if snapshot.snapshot_at is None:
        return None

    elapsed = as_utc(now) - as_utc(snapshot.snapshot_at)

    if elapsed >= thresholds.first and not snapshot.reminder1_sent:
        return 1
    if elapsed >= thresholds.second and snapshot.reminder1_sent and not snapshot.reminder2_sent:
        return 2
    if elapsed >= thresholds.third and snapshot.reminder2_sent and not snapshot.reminder3_sent:
        return 3
    return None
