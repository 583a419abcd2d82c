"""Persona Hub - session state, module management, pub/sub and timers.

One hub per user session. It owns the store, the user profile and the two
rolling histories, and hands them by reference to every registered module.
Nothing in the core reaches for ambient or global state.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from persona.engine.config import PersonaConfig
from persona.engine.lexicon import Lexicon, get_lexicon
from persona.hub.constants import EVENT_PROFILE_UPDATED
from persona.hub.store import PersonaStore
from persona.shared.history import BoundedHistory
from persona.shared.models import ActivityPeriod, KeywordEvent
from persona.shared.profile import UserProfile

logger = logging.getLogger(__name__)

SLOW_DISPATCH_MS = 100


class Module:
    """Base class for hub modules."""

    def __init__(self, module_id: str, hub: "PersonaHub"):
        self.module_id = module_id
        self.hub = hub
        self.logger = logging.getLogger(f"module.{module_id}")

    async def initialize(self):
        """Initialize module resources."""
        pass

    async def shutdown(self):
        """Cleanup module resources."""
        pass

    async def on_event(self, event_type: str, data: dict[str, Any]):
        """Handle hub event.

        Args:
            event_type: Type of event (e.g., "activity_period", "profile_updated")
            data: Event data
        """
        pass


class PersonaHub:
    """Session object shared by all modules."""

    def __init__(
        self,
        config: PersonaConfig | None = None,
        store: PersonaStore | None = None,
        lexicon: Lexicon | None = None,
    ):
        """Initialize hub.

        Args:
            config: Session configuration (defaults to ``PersonaConfig()``)
            store: Store to use; built from ``config.store`` when omitted
            lexicon: Locale lexicon; the built-in table for ``config.locale`` when omitted
        """
        self.config = config or PersonaConfig()
        self.store = store or PersonaStore(
            str(self.config.store.db_path),
            activity_retention=self.config.store.activity_retention,
            keyword_retention=self.config.store.keyword_retention,
        )
        self.lexicon = lexicon or get_lexicon(self.config.locale)
        self.profile = UserProfile()
        self.activity_history: BoundedHistory[ActivityPeriod] = BoundedHistory(self.config.tracker.history_capacity)
        self.keyword_history: BoundedHistory[KeywordEvent] = BoundedHistory(self.config.keyword_capacity)

        self.modules: dict[str, Module] = {}
        self.module_status: dict[str, str] = {}  # module_id -> "registered" | "running" | "failed"
        self.subscribers: dict[str, set[Callable]] = {}
        self.tasks: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._running = False
        self._start_time: datetime | None = None
        self.logger = logging.getLogger("hub")

    async def initialize(self):
        """Open the store, load persisted state and start registered modules."""
        self.logger.info("Initializing Persona Hub...")
        await self.store.initialize()
        self._running = True

        await self.load_state()
        self.profile.subscribe(self._on_profile_changed)

        for module_id, module in self.modules.items():
            try:
                await module.initialize()
                self.module_status[module_id] = "running"
            except Exception as e:
                self.module_status[module_id] = "failed"
                self.logger.error(f"Module {module_id} failed to initialize: {e}")

        self._start_time = datetime.now()
        self.logger.info("Hub initialized successfully")

    async def shutdown(self):
        """Shutdown modules, cancel timers and close the store."""
        self.logger.info("Shutting down Persona Hub...")
        self._running = False

        for module_id, module in self.modules.items():
            self.logger.info(f"Shutting down module: {module_id}")
            try:
                await module.shutdown()
            except Exception as e:
                self.logger.error(f"Error shutting down module {module_id}: {e}")

        for task in list(self.tasks.values()):
            if not task.done():
                task.cancel()
        pending = [*self.tasks.values(), *self._background]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self.tasks.clear()

        self.profile.unsubscribe(self._on_profile_changed)
        await self.store.close()
        self.logger.info("Hub shutdown complete")

    # ── State loading / whole-state operations ──────────────────────────

    async def load_state(self):
        """Load histories and profile from the store.

        Each collection loads on its own; a store failure on one of them
        leaves that part of the in-memory state as it was.
        """
        try:
            activity = await self.store.load_activity_history(limit=self.activity_history.capacity)
        except Exception as e:
            self.logger.error(f"Failed to load activity history, keeping current history: {e}")
        else:
            self.activity_history.replace(activity)

        try:
            keywords = await self.store.load_keyword_history(limit=self.keyword_history.capacity)
        except Exception as e:
            self.logger.error(f"Failed to load keyword history, keeping current history: {e}")
        else:
            self.keyword_history.replace(keywords)

        profile = None
        try:
            profile = await self.store.load_profile()
        except Exception as e:
            self.logger.error(f"Failed to load profile, keeping current profile: {e}")
        else:
            self.profile.replace(profile or UserProfile())

        self.logger.info(
            f"Loaded state: {len(self.activity_history)} activity periods, "
            f"{len(self.keyword_history)} keyword events, profile={'stored' if profile else 'default'}"
        )

    async def export_state(self) -> str:
        return await self.store.export_all()

    async def import_state(self, blob: str | dict[str, Any]):
        """Replace stored and in-memory state with an export document."""
        # a queued profile save would overwrite the imported profile
        await self.drain_background()
        await self.store.import_all(blob)
        await self.load_state()

    async def clear_state(self):
        await self.store.clear_all()
        self.activity_history.clear()
        self.keyword_history.clear()
        self.profile.replace(UserProfile())

    def _on_profile_changed(self, profile: UserProfile):
        self.spawn(self._persist_profile(), "persist_profile")

    async def _persist_profile(self):
        try:
            await self.store.save_profile(self.profile)
        except Exception as e:
            self.logger.warning(f"Failed to save profile, keeping in-memory state: {e}")
        await self.publish(EVENT_PROFILE_UPDATED, {"profile": self.profile.to_dict()})

    def spawn(self, coro, name: str) -> asyncio.Task | None:
        """Run a coroutine in the background; errors are logged."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self.logger.debug(f"No running loop, dropped background job {name}")
            return None
        task = loop.create_task(coro)
        self._background.add(task)

        def _done(t: asyncio.Task):
            self._background.discard(t)
            if not t.cancelled() and t.exception():
                self.logger.error(f"Background job {name} failed: {t.exception()}")

        task.add_done_callback(_done)
        return task

    async def drain_background(self):
        """Wait for background jobs spawned so far to finish."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ── Modules ─────────────────────────────────────────────────────────

    def register_module(self, module: Module):
        """Register a module with the hub.

        Args:
            module: Module instance to register
        """
        if module.module_id in self.modules:
            raise ValueError(f"Module {module.module_id} already registered")

        self.modules[module.module_id] = module
        self.module_status[module.module_id] = "registered"
        self.logger.info(f"Registered module: {module.module_id}")

    def get_module(self, module_id: str) -> Module | None:
        return self.modules.get(module_id)

    # ── Pub/sub ─────────────────────────────────────────────────────────

    def subscribe(self, event_type: str, callback: Callable):
        """Subscribe to hub events.

        Args:
            event_type: Type of event to subscribe to
            callback: Async function to call when event occurs
        """
        self.subscribers.setdefault(event_type, set()).add(callback)
        self.logger.debug(f"Subscribed to event: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable):
        """Unsubscribe from hub events."""
        if event_type in self.subscribers:
            self.subscribers[event_type].discard(callback)
            self.logger.debug(f"Unsubscribed from event: {event_type}")

    async def publish(self, event_type: str, data: dict[str, Any]):
        """Publish an event to explicit subscribers, then to every module's on_event().

        Each callback is awaited in turn; a failing callback is logged and
        does not stop delivery to the others. Dispatch slower than 100 ms is
        logged as a warning.
        """
        self.logger.debug(f"Publishing event: {event_type}")
        dispatch_start = time.monotonic()

        for callback in list(self.subscribers.get(event_type, ())):
            try:
                await callback(data)
            except Exception as e:
                self.logger.error(f"Error in event callback for '{event_type}': {e}")

        for module in list(self.modules.values()):
            try:
                await module.on_event(event_type, data)
            except Exception as e:
                self.logger.error(f"Error in module {module.module_id} event handler: {e}")

        elapsed_ms = (time.monotonic() - dispatch_start) * 1000
        if elapsed_ms > SLOW_DISPATCH_MS:
            self.logger.warning(
                "Event '%s' dispatch took %.1f ms (threshold %d ms)", event_type, elapsed_ms, SLOW_DISPATCH_MS
            )

    # ── Timers ──────────────────────────────────────────────────────────

    async def schedule_task(
        self, task_id: str, coro: Callable, interval: timedelta | None = None, run_immediately: bool = True
    ) -> asyncio.Task:
        """Schedule a task to run periodically.

        Args:
            task_id: Unique task identifier (an existing task with the same id is replaced)
            coro: Async callable to run
            interval: Run interval (None = run once)
            run_immediately: If True, run immediately then schedule
        """
        self.cancel_task(task_id)

        async def run_task():
            if run_immediately:
                try:
                    await coro()
                except Exception as e:
                    self.logger.error(f"Task {task_id} error: {e}")

            if interval:
                while self._running:
                    await asyncio.sleep(interval.total_seconds())
                    try:
                        await coro()
                    except Exception as e:
                        self.logger.error(f"Task {task_id} error: {e}")

        task = asyncio.create_task(run_task())
        self.tasks[task_id] = task
        task.add_done_callback(lambda t: self.tasks.pop(task_id, None) if self.tasks.get(task_id) is t else None)

        self.logger.info(f"Scheduled task: {task_id}" + (f" (interval: {interval})" if interval else " (one-time)"))
        return task

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a scheduled task. Cancelling an unknown task is a no-op."""
        task = self.tasks.pop(task_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        self.logger.info(f"Cancelled task: {task_id}")
        return True

    # ── Status ──────────────────────────────────────────────────────────

    def is_running(self) -> bool:
        return self._running

    def get_uptime_seconds(self) -> float:
        if self._start_time is None:
            return 0.0
        return (datetime.now() - self._start_time).total_seconds()

    def health_check(self) -> dict[str, Any]:
        return {
            "status": "ok" if self._running else "stopped",
            "uptime_seconds": round(self.get_uptime_seconds()),
            "modules": dict(self.module_status),
            "activity_periods": len(self.activity_history),
            "keyword_events": len(self.keyword_history),
            "tasks": sorted(self.tasks),
            "timestamp": datetime.now().isoformat(),
        }
