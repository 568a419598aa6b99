"""
Sweep Worker.

Periodic trigger for the sweep dispatcher. Runs inside the API process when
ENABLE_SWEEP_WORKER is set, or standalone:

    python -m deadline_notifier.worker
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from deadline_notifier.services.sweep_dispatcher import SweepDispatcher, SweepReport
from deadline_notifier.utils.clock import utcnow

logger = logging.getLogger(__name__)


class SweepWorker:
    """Calls run_sweep on a fixed interval until stopped."""

    def __init__(
        self,
        dispatcher: SweepDispatcher,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._stopping: Optional[asyncio.Event] = None
        self.sweeps_run = 0

    async def run_once(self) -> Optional[SweepReport]:
        """One sweep; exceptions are logged so the loop survives them."""
        try:
            report = await self.dispatcher.run_sweep(self.clock())
        except Exception:
            logger.exception("Sweep failed")
            return None
        finally:
            self.sweeps_run += 1
        return report

    async def run_forever(self):
        """Sweep, then wait one interval, until stop() is called."""
        self._stopping = asyncio.Event()
        logger.info(f"Sweep worker started, interval {self.interval_seconds}s")
        while not self._stopping.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Sweep worker stopped")

    def stop(self):
        if self._stopping is not None:
            self._stopping.set()


async def main():
    """Main entry point for the standalone sweep worker."""
    from deadline_notifier.config import get_settings
    from deadline_notifier.db.init import init_db
    from deadline_notifier.dependencies import build_container

    settings = get_settings()
    init_db()
    container = build_container(settings=settings)
    worker = SweepWorker(container.dispatcher, settings.sweep_interval_seconds)
    await worker.run_forever()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
