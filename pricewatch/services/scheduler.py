# pricewatch/services/scheduler.py

"""Self-rearming alarm that drives one poll cycle per firing.

Each firing is a one-shot APScheduler ``DateTrigger`` job. The next job is
only added once the current cycle has finished, so cycles never overlap
and every gap gets a fresh random delay.
"""

import asyncio
import enum
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.scheduler")

JOB_ID = "price-check"


def next_delay(
    min_delay: float,
    max_delay: float,
    rng: random.Random | None = None,
) -> float:
    """Pick the next inter-cycle delay uniformly from [min, max]."""
    if min_delay < 0 or max_delay < min_delay:
        raise ValueError(
            f"Invalid delay range [{min_delay}, {max_delay}]"
        )
    source = rng or random
    return source.uniform(min_delay, max_delay)


class SchedulerState(enum.Enum):
    """Alarm lifecycle states."""

    IDLE = "idle"
    ARMED = "armed"
    FIRING = "firing"


class AlarmScheduler:
    """A single repeating alarm with random jitter between firings.

    The alarm is re-armed at the end of every firing, after ``on_fire``
    has finished. A failing cycle is logged and the alarm is re-armed
    anyway. The only ways out of the loop are an explicit :meth:`stop`
    or running out of re-arm attempts, which sets :attr:`gave_up`; both
    wake :meth:`wait_stopped`.
    """

    def __init__(
        self,
        on_fire: Callable[[], Awaitable[object]],
        *,
        initial_delay: float = Settings.INITIAL_DELAY,
        min_delay: float = Settings.MIN_DELAY,
        max_delay: float = Settings.MAX_DELAY,
        unit_seconds: float = Settings.ALARM_UNIT_SECONDS,
        rearm_attempts: int = Settings.REARM_ATTEMPTS,
        rng: random.Random | None = None,
    ) -> None:
        self._on_fire = on_fire
        self.initial_delay = initial_delay
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.unit_seconds = unit_seconds
        self.rearm_attempts = max(1, rearm_attempts)
        self._rng = rng

        self.state = SchedulerState.IDLE
        self.fire_count = 0
        self.gave_up = False
        self.last_fired_at: datetime | None = None
        self.next_fire_at: datetime | None = None
        self._backend: AsyncIOScheduler | None = None
        self._cycle: asyncio.Task[None] | None = None
        self._stopped: asyncio.Event | None = None

    # ── Public API ───────────────────────────────────────

    def start(self) -> None:
        """Arm the first firing after the fixed initial delay."""
        self._stopped = asyncio.Event()
        self.gave_up = False
        logger.info(
            "Scheduler starting, first check in %.1f unit(s)",
            self.initial_delay,
        )
        self.arm(self.initial_delay)

    def arm(self, delay: float) -> None:
        """Schedule the next firing ``delay`` units from now.

        Any pending firing is replaced.
        """
        backend = self._ensure_backend()
        run_date = datetime.now(timezone.utc) + timedelta(
            seconds=delay * self.unit_seconds
        )
        backend.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_date, timezone=timezone.utc),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        self.next_fire_at = run_date
        self.state = SchedulerState.ARMED

    def stop(self) -> None:
        """Cancel the pending firing and return to IDLE."""
        self._release_backend()
        self.next_fire_at = None
        self.state = SchedulerState.IDLE
        if self._stopped is not None:
            self._stopped.set()
        logger.info("Scheduler stopped")

    async def wait_stopped(self) -> None:
        """Block until :meth:`stop` is called or re-arming gives up."""
        if self._stopped is None:
            self._stopped = asyncio.Event()
        await self._stopped.wait()

    # ── APScheduler backend ──────────────────────────────

    def _ensure_backend(self) -> AsyncIOScheduler:
        if self._backend is None or not self._backend.running:
            self._backend = AsyncIOScheduler(
                event_loop=asyncio.get_running_loop(),
                timezone=timezone.utc,
            )
            self._backend.start()
        return self._backend

    def _release_backend(self) -> None:
        backend, self._backend = self._backend, None
        if backend is None or not backend.running:
            return
        if backend.get_job(JOB_ID) is not None:
            backend.remove_job(JOB_ID)
        backend.shutdown(wait=False)

    # ── Firing ───────────────────────────────────────────

    async def _fire(self) -> None:
        """Job body: hand the cycle to its own task and return.

        The job itself finishes at once, so APScheduler has released its
        instance slot by the time the cycle re-arms the same job id.
        """
        self.next_fire_at = None
        self.state = SchedulerState.FIRING
        self.fire_count += 1
        self.last_fired_at = datetime.now(timezone.utc)
        self._cycle = asyncio.create_task(
            self._run_cycle(), name=f"poll-cycle-{self.fire_count}"
        )

    async def _run_cycle(self) -> None:
        try:
            await self._on_fire()
        except Exception:
            # A bad cycle must never stop the monitor
            logger.exception("Poll cycle %d failed", self.fire_count)
        finally:
            if self.state is SchedulerState.FIRING:
                self._rearm()

    def _rearm(self) -> None:
        """Re-arm with fresh jitter, retrying if arming itself fails."""
        for attempt in range(1, self.rearm_attempts + 1):
            try:
                delay = next_delay(
                    self.min_delay, self.max_delay, self._rng
                )
                self.arm(delay)
            except Exception:
                logger.error(
                    "Re-arm attempt %d/%d failed",
                    attempt,
                    self.rearm_attempts,
                    exc_info=True,
                )
                continue
            logger.info(
                "Next price check in %.1f unit(s)", delay,
            )
            return

        self.state = SchedulerState.IDLE
        self.gave_up = True
        logger.critical(
            "Scheduler could not re-arm after %d attempts; "
            "polling has stopped",
            self.rearm_attempts,
        )
        self._release_backend()
        if self._stopped is not None:
            self._stopped.set()
