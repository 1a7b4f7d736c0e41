"""Redis mirror of production sessions and their progress events"""

import asyncio
import json
import logging
import redis.asyncio as redis
from typing import Dict, Any, Optional, List

from ..core.state import ProductionState, serialize_state

logger = logging.getLogger(__name__)

STATE_PREFIX = "state_hash:"
EVENTS_PREFIX = "events:"
SESSION_TTL_SECONDS = 24 * 60 * 60


def _encode_fields(state: Dict[str, Any]) -> Dict[str, str]:
    # bytes are replaced by size markers in serialize_state; unset keys are not stored
    return {
        name: json.dumps(value, default=str)
        for name, value in serialize_state(state).items()
        if value is not None
    }


def _decode_fields(raw: Dict[str, str]) -> Dict[str, Any]:
    decoded = {}
    for name, value in raw.items():
        try:
            decoded[name] = json.loads(value)
        except json.JSONDecodeError:
            decoded[name] = value
    return decoded


class RedisStateManager:
    """
    Read-only copy of production sessions for other processes.

    The SessionStore stays authoritative. Each save replaces the session's
    hash (one JSON field per state key) and resets its TTL; progress events
    go out on ``events:{run_id}``.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.redis = client or redis.Redis.from_url(
            redis_url, decode_responses=True, max_connections=30, socket_keepalive=True
        )
        self.ttl = SESSION_TTL_SECONDS

    async def save_state(self, session_id: str, state: Dict[str, Any]):
        key = STATE_PREFIX + session_id
        fields = _encode_fields(state)

        pipe = self.redis.pipeline()
        pipe.delete(key)
        if fields:
            pipe.hset(key, mapping=fields)
            pipe.expire(key, self.ttl)
        await pipe.execute()
        logger.debug(f"[Redis] Mirrored {session_id} ({len(fields)} fields)")

    async def get_state(self, session_id: str) -> Optional[Dict[str, Any]]:
        raw = await self.redis.hgetall(STATE_PREFIX + session_id)
        return _decode_fields(raw) if raw else None

    async def publish_event(self, run_id: str, event: Dict[str, Any]):
        await self.redis.publish(EVENTS_PREFIX + run_id, json.dumps(event, default=str))

    async def list_sessions(self) -> List[str]:
        """Session ids that currently have a mirrored state"""
        return [key[len(STATE_PREFIX):] async for key in self.redis.scan_iter(f"{STATE_PREFIX}*", count=100)]

    async def delete_session(self, session_id: str) -> bool:
        return bool(await self.redis.delete(STATE_PREFIX + session_id))

    async def ping(self) -> bool:
        return await self.redis.ping()

    async def close(self):
        await self.redis.aclose()

    def mirror(self, loop: asyncio.AbstractEventLoop):
        """SessionStore mirror callback for a store written from worker threads

        Writes are scheduled on ``loop``; a deleted session (None state)
        removes the hash.
        """
        def _mirror(session_id: str, state: Optional[ProductionState]):
            if state is None:
                coro = self.delete_session(session_id)
            else:
                coro = self.save_state(session_id, state)
            asyncio.run_coroutine_threadsafe(coro, loop).add_done_callback(
                lambda future: _log_failure(session_id, future))
        return _mirror


def _log_failure(session_id: str, future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.warning(f"[Redis] Mirror write for {session_id} failed: {future.exception()}")
