"""Activity Tracker Module - motion samples to 5-minute activity periods.

Counts accelerometer samples whose magnitude exceeds the motion threshold,
closes the counter into an ``ActivityPeriod`` on every flush tick, keeps the
rolling 24-hour history and persists each period.
"""

import logging
import math
import threading
from datetime import datetime, timedelta
from typing import Any

from persona.engine.analysis.activity import predict_activity_level, should_suggest_break
from persona.hub.constants import EVENT_ACTIVITY_PERIOD, EVENT_TRACKING_STATE, MODULE_ACTIVITY_TRACKER
from persona.hub.core import Module, PersonaHub
from persona.shared.models import ActivityLevel, ActivityPeriod

logger = logging.getLogger(__name__)

FLUSH_TASK_ID = "activity_flush"


class ActivityTracker(Module):
    """Aggregates motion samples into fixed activity periods."""

    def __init__(self, hub: PersonaHub):
        super().__init__(MODULE_ACTIVITY_TRACKER, hub)
        self.config = hub.config.tracker
        self.history = hub.activity_history

        # Current period counters, written from the sensor callback thread
        self._lock = threading.Lock()
        self._movement_count = 0
        self._intensity_sum = 0.0
        self._last_movement_time: datetime | None = None

        self.tracking = False
        self._periods_flushed = 0

    async def shutdown(self):
        await self.stop()

    # ── Sampling ────────────────────────────────────────────────────────

    def ingest_sample(self, x: float, y: float, z: float, now: datetime | None = None) -> bool:
        """Feed one accelerometer sample. Returns True if it counted as movement."""
        if not self.tracking:
            return False
        magnitude = math.sqrt(x * x + y * y + z * z)
        if magnitude <= self.config.motion_threshold:
            return False
        with self._lock:
            self._movement_count += 1
            self._intensity_sum += magnitude
            self._last_movement_time = now or datetime.now()
        return True

    def _reset_counters(self):
        with self._lock:
            self._movement_count = 0
            self._intensity_sum = 0.0

    async def flush_period(self, now: datetime | None = None) -> ActivityPeriod:
        """Close the current counter into a period, store it and publish it."""
        now = now or datetime.now()
        with self._lock:
            count = self._movement_count
            intensity = self._intensity_sum / count if count else 0.0
            since_move = now - self._last_movement_time if self._last_movement_time else timedelta(0)
            self._movement_count = 0
            self._intensity_sum = 0.0

        period = ActivityPeriod(
            timestamp=now,
            movement_count=count,
            movement_intensity=intensity,
            time_since_last_move=max(since_move, timedelta(0)),
        )
        self.history.append(period)
        self._periods_flushed += 1
        self.logger.debug(f"Activity period: {count} movements, intensity {intensity:.2f}")

        try:
            await self.hub.store.save_activity_period(period)
        except Exception as e:
            self.logger.warning(f"Failed to persist activity period, kept in memory: {e}")

        await self.hub.publish(EVENT_ACTIVITY_PERIOD, {"period": period.to_dict()})
        return period

    async def _flush_tick(self):
        if self.tracking:
            await self.flush_period()

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def start(self, now: datetime | None = None):
        """Start tracking and schedule the periodic flush.

        Time since the last move is measured from the start until a sample counts.
        """
        if self.tracking:
            return
        self._reset_counters()
        with self._lock:
            self._last_movement_time = now or datetime.now()
        self.tracking = True
        await self.hub.schedule_task(
            task_id=FLUSH_TASK_ID,
            coro=self._flush_tick,
            interval=timedelta(seconds=self.config.flush_interval_s),
            run_immediately=False,
        )
        self.logger.info(f"Activity tracking started (flush every {self.config.flush_interval_s}s)")
        await self.hub.publish(EVENT_TRACKING_STATE, {"tracking": True})

    async def stop(self):
        """Stop tracking. The in-progress partial period is discarded."""
        if not self.tracking:
            self.hub.cancel_task(FLUSH_TASK_ID)
            return
        self.tracking = False
        self.hub.cancel_task(FLUSH_TASK_ID)
        self._reset_counters()
        self.logger.info("Activity tracking stopped")
        await self.hub.publish(EVENT_TRACKING_STATE, {"tracking": False})

    # ── Queries ─────────────────────────────────────────────────────────

    def predict_activity_level(self) -> ActivityLevel:
        return predict_activity_level(self.history.snapshot())

    def should_suggest_break(self, now: datetime | None = None) -> bool:
        return should_suggest_break(self.history.snapshot(), now or datetime.now())

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            pending = self._movement_count
        return {
            "tracking": self.tracking,
            "history_size": len(self.history),
            "periods_flushed": self._periods_flushed,
            "pending_movements": pending,
        }
