"""
Matchmaking worker: runs a matchmaking sweep on a fixed interval.

Started from the FastAPI lifespan. Sweeps also run on every queue join and
on demand through the API, so this loop only picks up whatever those missed.
"""

import asyncio
import logging
import os
from typing import Optional

from padel_ladder.database import db
from padel_ladder.services.matchmaking_service import run_matchmaking_sweep

logger = logging.getLogger(__name__)

# How often the worker sweeps the queue (seconds); 0 disables the worker
SWEEP_INTERVAL_SECONDS = int(os.getenv("MATCHMAKING_SWEEP_INTERVAL_SECONDS", "60"))


class MatchmakingWorker:
    """Background service that periodically turns the queue into match proposals."""

    def __init__(self, interval_seconds: int = SWEEP_INTERVAL_SECONDS):
        self.interval_seconds = interval_seconds
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    def start(self) -> None:
        """Start the background sweep worker."""
        if not self.enabled:
            logger.info("Matchmaking worker disabled (interval is 0)")
            return
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info(f"Matchmaking worker started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the background sweep worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Matchmaking worker stopped")

    async def _poll_loop(self) -> None:
        """Main loop: sweep, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(f"Error in matchmaking worker: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

    async def sweep_once(self) -> int:
        """Run one sweep in its own transaction. Returns the number of matches created."""
        async with db.AsyncSessionLocal() as session:
            try:
                created = await run_matchmaking_sweep(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return len(created)


# Global singleton
_matchmaking_worker = MatchmakingWorker()


def get_matchmaking_worker() -> MatchmakingWorker:
    """Get the global matchmaking worker instance."""
    return _matchmaking_worker
