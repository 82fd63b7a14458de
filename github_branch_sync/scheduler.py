"""Scheduler abstraction that triggers sync cycles."""

import asyncio
from typing import Any, Awaitable, Callable, Protocol

import structlog

from github_branch_sync.synchronize.engine import SyncEngine

logger = structlog.get_logger(__name__)

TickCallback = Callable[[], Awaitable[Any]]


class Scheduler(Protocol):
    """Anything that can call back on every scheduled tick."""

    def on_tick(self, callback: TickCallback) -> None:
        """Register a callback to run on every tick."""
        ...


class IntervalScheduler:
    """Calls its registered callbacks one after another at a fixed interval."""

    def __init__(self, interval: float) -> None:
        """Initialize the scheduler with the number of seconds between ticks."""
        self.interval = interval
        self.callbacks: list[TickCallback] = []

    def on_tick(self, callback: TickCallback) -> None:
        """Register a callback to run on every tick."""
        self.callbacks.append(callback)

    async def tick(self) -> None:
        """Run every registered callback once, in registration order."""
        for callback in self.callbacks:
            await callback()

    async def run(self, max_ticks: int | None = None) -> None:
        """Tick until cancelled, or until `max_ticks` ticks have run."""
        ticks = 0
        while True:
            await self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            await asyncio.sleep(self.interval)
        logger.debug("Scheduler stopped", ticks=ticks)


def register_sync(scheduler: Scheduler, engine: SyncEngine) -> None:
    """Run a sync cycle of the engine on every tick of the scheduler."""
    scheduler.on_tick(engine.run_cycle)
