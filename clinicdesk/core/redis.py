import json
from contextlib import asynccontextmanager

import redis.asyncio as redis
from clinicdesk.core.config import settings

class RedisClient:
    """Pub/sub transport for appointment change notifications."""

    def __init__(self, url: str = settings.REDIS_URL, channel: str = settings.CHANGES_CHANNEL):
        self.redis = redis.from_url(url, encoding="utf-8", decode_responses=True)
        self.channel = channel

    async def publish_change(self, op: str, row: dict) -> int:
        return await self.redis.publish(self.channel, json.dumps({"op": op, "row": row}))

    @asynccontextmanager
    async def subscribe_changes(self):
        # Yields only once the subscription is live
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self.channel)
        try:
            yield self._messages(pubsub)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    @staticmethod
    async def _messages(pubsub):
        async for message in pubsub.listen():
            if message.get("type") == "message":
                yield message["data"]

    async def close(self):
        await self.redis.aclose()
