"""
Abandoned cart nurture scheduler
Every interval, scans active cart snapshots and sends at most one due
reminder email per customer, marking it sent only once the mail went out.
"""
import asyncio
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from core.config import logger
from utils.cart_emails import render_reminder
from utils.cart_snapshots import CartSnapshotStore, Candidate
from utils.reminder_policy import DEFAULT_THRESHOLDS, ReminderThresholds, decide


@dataclass
class CycleReport:
    started_at: datetime
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: bool = False
    reason: Optional[str] = None
    sent_by_reminder: dict = field(default_factory=lambda: {1: 0, 2: 0, 3: 0})

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "reason": self.reason,
            "sent_by_reminder": {f"reminder{k}": v for k, v in self.sent_by_reminder.items()},
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CartNurtureScheduler:
    """
    Owns the periodic task. run_cycle() is a plain synchronous call so tests
    and the cron endpoint can drive a single pass without waiting on a timer.
    """

    def __init__(
        self,
        store: CartSnapshotStore,
        mailer,
        interval_seconds: float = 15 * 60,
        thresholds: ReminderThresholds = DEFAULT_THRESHOLDS,
        base_url: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.mailer = mailer
        self.interval_seconds = interval_seconds
        self.thresholds = thresholds
        self.base_url = base_url
        self.clock = clock
        self.last_report: Optional[CycleReport] = None
        self._cycle_lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_cycle(self, now: Optional[datetime] = None) -> CycleReport:
        now = now or self.clock()
        report = CycleReport(started_at=now)

        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Abandoned cart cycle still running; skipping this tick")
            report.skipped = True
            report.reason = "overlap"
            return report

        try:
            if not self.mailer.is_configured():
                logger.debug("Mail transport not configured; abandoned cart cycle skipped")
                report.skipped = True
                report.reason = "mail_not_configured"
                return report

            candidates = self.store.find_candidates()
            for candidate in candidates:
                report.processed += 1
                reminder = self._process_candidate(candidate, now)
                if reminder is None:
                    continue
                if reminder > 0:
                    report.sent += 1
                    report.sent_by_reminder[reminder] += 1
                else:
                    report.failed += 1

            logger.info(
                f"Abandoned cart cycle done: processed={report.processed} sent={report.sent} failed={report.failed}"
            )
        except Exception as ex:
            logger.exception(f"Abandoned cart cycle error: {ex}")
            report.reason = "error"
        finally:
            self.last_report = report
            self._cycle_lock.release()
        return report

    def _process_candidate(self, candidate: Candidate, now: datetime) -> Optional[int]:
        """Returns the reminder sent, -1 on failure, None when nothing was due."""
        try:
            reminder = decide(now, candidate.snapshot, self.thresholds)
            if reminder is None:
                return None

            email = render_reminder(reminder, candidate.first_name, candidate.snapshot.items, self.base_url)
            if not self.mailer.send(candidate.email, email.subject, email.html, email.text):
                logger.warning(f"Abandoned cart email #{reminder} to {candidate.email} not sent; will retry next cycle")
                return -1

            if not self.store.set_reminder_sent(candidate.id, reminder, candidate.snapshot.snapshot_at):
                # Cart was reset or flag already set since we read it
                logger.info(f"Abandoned cart reminder #{reminder} for {candidate.id} not recorded; snapshot changed")
            logger.info(f"Abandoned cart email #{reminder} -> {candidate.email}")
            return reminder
        except Exception as ex:
            logger.exception(f"Failed to process abandoned cart for customer {candidate.id}: {ex}")
            return -1

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.run_cycle)
            except Exception as ex:
                logger.exception(f"Abandoned cart scheduler tick failed: {ex}")

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Abandoned cart checker started ({int(self.interval_seconds)}s interval)")

    async def stop(self):
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Abandoned cart checker stopped")
