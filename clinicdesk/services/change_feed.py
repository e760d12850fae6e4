import asyncio

from redis.exceptions import RedisError

from clinicdesk.core.config import settings
from clinicdesk.core.errors import FetchError, MalformedEvent
from clinicdesk.core.logger import logger
from clinicdesk.services.change_events import normalize

class ChangeFeed:
    def __init__(
        self,
        store,
        source,
        reconnect_delay: float = settings.RECONNECT_DELAY_SECONDS,
        max_reconnect_delay: float = settings.RECONNECT_MAX_DELAY_SECONDS,
    ):
        self.store = store
        self.source = source
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.connected = asyncio.Event()
        self.applied = 0
        self.dropped = 0

    async def run(self) -> None:
        delay = self.reconnect_delay
        while True:
            try:
                async with self.source.subscribe_changes() as messages:
                    self.connected.set()
                    delay = self.reconnect_delay
                    await self._heal()
                    await self._consume(messages)
                logger.warning("Change stream ended, reconnecting")
            except (RedisError, ConnectionError, OSError) as e:
                logger.warning(f"Change stream disconnected: {e}; retrying in {delay:.1f}s")
            finally:
                self.connected.clear()
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    async def _heal(self) -> None:
        try:
            await self.store.load_snapshot()
        except FetchError as e:
            # Previous rows stay visible
            logger.warning(f"Snapshot after subscribe failed, keeping previous rows: {e}")

    async def _consume(self, messages) -> None:
        async for raw in messages:
            try:
                event = normalize(raw)
            except MalformedEvent as e:
                self.dropped += 1
                logger.warning(f"Dropped malformed change event: {e}")
                continue
            self.store.apply(event)
            self.applied += 1
