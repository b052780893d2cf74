"""
Best-Effort Side Effects

Notifications and audit entries run after the triggering mutation has
committed. Their failures are logged and never propagate to the caller.

Two modes (SIDE_EFFECT_MODE):
- "await": the effect is awaited before the request returns
- "background": the effect is scheduled as a task and tracked so shutdown
  can drain it
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Literal

from app.core.config import settings

logger = logging.getLogger(__name__)

SideEffect = Callable[[], Awaitable[Any]]


class BestEffortExecutor:
    """Runs side effects with failure isolation."""

    def __init__(self, mode: Literal["await", "background"] = "await"):
        self.mode = mode
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def run(self, name: str, effect: SideEffect) -> None:
        """Run ``effect`` now or in the background depending on the mode."""
        if self.mode == "background":
            task = asyncio.create_task(self._guarded(name, effect), name=f"side-effect:{name}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return
        await self._guarded(name, effect)

    async def _guarded(self, name: str, effect: SideEffect) -> None:
        try:
            await effect()
        except Exception as e:
            logger.error(f"Side effect {name} failed: {e}", exc_info=True)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for scheduled effects to finish; cancel whatever outlives ``timeout``."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info(f"Draining {len(tasks)} pending side effect(s)...")
        _done, still_running = await asyncio.wait(tasks, timeout=timeout)

        for task in still_running:
            logger.warning(f"Cancelling side effect that did not finish: {task.get_name()}")
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)


# Process-wide executor
side_effects = BestEffortExecutor(settings.side_effect_mode)


def get_side_effects() -> BestEffortExecutor:
    """FastAPI dependency returning the process-wide executor."""
    return side_effects
