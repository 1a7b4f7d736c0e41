"""
Tests for the Redis session mirror against an in-memory async client.
"""
import asyncio
import json

from production_studio.api.redis_state import RedisStateManager
from production_studio.core.state import create_production_state


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def delete(self, *keys):
        self.ops.append(("delete", keys))

    def hset(self, key, mapping):
        self.ops.append(("hset", (key, mapping)))

    def expire(self, key, ttl):
        self.ops.append(("expire", (key, ttl)))

    async def execute(self):
        for op, args in self.ops:
            if op == "delete":
                await self.client.delete(*args)
            elif op == "hset":
                key, mapping = args
                self.client.hashes.setdefault(key, {}).update(mapping)
            else:
                self.client.ttls[args[0]] = args[1]


class FakeRedis:
    def __init__(self):
        self.hashes = {}
        self.ttls = {}
        self.published = []

    def pipeline(self):
        return FakePipeline(self)

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def delete(self, *keys):
        return len([k for k in keys if self.hashes.pop(k, None) is not None])

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    async def scan_iter(self, pattern, count=None):
        for key in list(self.hashes):
            yield key

    async def ping(self):
        return True


def _state():
    state = create_production_state("prod_1712345678901_abcdefghi", {"title": "T", "topic": "Ocean", "scenes": []})
    state["narration_segments"] = [{"scene_id": "scene_1", "audio": b"RIFF1234", "audio_duration": 1.0}]
    return state


class TestRedisStateManager:
    """Tests for save, load, delete and events."""

    def test_save_and_load(self):
        client = FakeRedis()
        manager = RedisStateManager(client=client)
        asyncio.run(manager.save_state("prod_1712345678901_abcdefghi", _state()))

        assert client.ttls["state_hash:prod_1712345678901_abcdefghi"] == 86400
        loaded = asyncio.run(manager.get_state("prod_1712345678901_abcdefghi"))
        assert loaded["content_plan"]["topic"] == "Ocean"
        assert loaded["narration_segments"][0]["audio"] == {"bytes": 8}

    def test_missing_state(self):
        manager = RedisStateManager(client=FakeRedis())
        assert asyncio.run(manager.get_state("prod_1_abcdefghi")) is None

    def test_delete_and_list(self):
        client = FakeRedis()
        manager = RedisStateManager(client=client)
        asyncio.run(manager.save_state("prod_1712345678901_abcdefghi", _state()))

        async def sessions():
            return await manager.list_sessions()

        assert asyncio.run(sessions()) == ["prod_1712345678901_abcdefghi"]
        assert asyncio.run(manager.delete_session("prod_1712345678901_abcdefghi")) is True
        assert asyncio.run(manager.delete_session("prod_1712345678901_abcdefghi")) is False

    def test_publish_event(self):
        client = FakeRedis()
        manager = RedisStateManager(client=client)
        asyncio.run(manager.publish_event("run1", {"type": "tool_call", "message": "Calling plan_video"}))
        channel, message = client.published[0]
        assert channel == "events:run1"
        assert json.loads(message)["type"] == "tool_call"
