"""Per-room delayed callbacks for AI turns and turn timeouts."""
import asyncio
from typing import Awaitable, Callable, Optional

from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)


class TurnScheduler:
    """Holds at most one pending task per room.

    Scheduling a new callback for a room cancels the one already pending. A
    task removes itself from the table before its callback runs, so the
    callback is free to schedule the room's next task.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def schedule(
        self,
        room_code: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> asyncio.Task:
        """Run ``callback`` after ``delay`` seconds, superseding any pending one."""
        self.cancel(room_code)
        task = asyncio.create_task(self._run(room_code, delay, callback))
        self._tasks[room_code] = task
        return task

    async def _run(
        self,
        room_code: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        await asyncio.sleep(delay)
        if self._tasks.get(room_code) is asyncio.current_task():
            del self._tasks[room_code]
        try:
            await callback()
        except Exception as e:
            logger.error(f"Scheduled task for room {room_code} failed: {e}")

    def cancel(self, room_code: str) -> bool:
        """Cancel the pending task for a room, if any."""
        task = self._tasks.pop(room_code, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def pending(self, room_code: str) -> Optional[asyncio.Task]:
        task = self._tasks.get(room_code)
        if task is None or task.done():
            return None
        return task

    async def shutdown(self) -> None:
        """Cancel every pending task and wait for them to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Turn scheduler stopped ({len(tasks)} pending tasks cancelled)")
