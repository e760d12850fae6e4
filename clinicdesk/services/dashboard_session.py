import asyncio
from typing import Optional

from clinicdesk.core.logger import logger
from clinicdesk.services.change_feed import ChangeFeed
from clinicdesk.services.edit_coordinator import EditTransactionCoordinator
from clinicdesk.services.sync_store import SyncStore

class DashboardSession:
    def __init__(self, remote, change_source, images=None, reconnect_delay: Optional[float] = None):
        self.remote = remote
        self.store = SyncStore(remote)
        self.coordinator = EditTransactionCoordinator(self.store, remote)
        self.images = images
        feed_kwargs = {} if reconnect_delay is None else {"reconnect_delay": reconnect_delay}
        self.feed = ChangeFeed(self.store, change_source, **feed_kwargs)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.feed.run(), name="appointments-change-feed")
        logger.info("Dashboard session started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Dashboard session stopped")
