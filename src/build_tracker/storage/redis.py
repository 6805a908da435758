"""
Redis registry backend.

Requires redis (async): pip install redis

Keys:
- {namespace}:activeJobsByOwner - hash owner_id -> job_id
- {namespace}:jobMeta - hash job_id -> JSON JobMeta

No TTLs are set: an entry must stay until its poller observes a terminal
state. Configure the Redis server with AOF/RDB persistence, otherwise a
server restart drops in-flight jobs.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis

from ..errors import ErrorContext, RegistryReadError, RegistryWriteError
from ..jobs.registry import ACTIVE_JOBS_TABLE, JOB_META_TABLE, JobRegistry, validate_key
from ..jobs.types import JobMeta

# Delete the owner entry only while it still points at the expected job.
_REMOVE_IF_MATCH = """
if redis.call('HGET', KEYS[1], ARGV[1]) == ARGV[2] then
  return redis.call('HDEL', KEYS[1], ARGV[1])
end
return 0
"""


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisJobRegistry(JobRegistry):
    """Registry stored in two Redis hashes.

    Example:
        ```python
        registry = RedisJobRegistry.from_url("redis://localhost:6379/0")
        await registry.put("agent-42", "b-1")
        ```
    """

    def __init__(self, client: redis.Redis, namespace: str = "build_tracker") -> None:
        self._client = client
        self.namespace = namespace
        self._active_key = f"{namespace}:{ACTIVE_JOBS_TABLE}"
        self._meta_key = f"{namespace}:{JOB_META_TABLE}"

    @classmethod
    def from_url(cls, url: str, namespace: str = "build_tracker") -> RedisJobRegistry:
        return cls(redis.from_url(url, decode_responses=True), namespace=namespace)

    async def put(self, owner_id: str, job_id: str) -> None:
        validate_key("owner_id", owner_id)
        validate_key("job_id", job_id)
        try:
            await self._client.hset(self._active_key, owner_id, job_id)
        except redis.RedisError as exc:
            raise RegistryWriteError(
                "Could not store active job in Redis",
                context=ErrorContext(operation="put", owner_id=owner_id, job_id=job_id),
                cause=exc,
            ) from exc

    async def get_all(self) -> dict[str, str]:
        try:
            raw = await self._client.hgetall(self._active_key)
        except redis.RedisError as exc:
            raise RegistryReadError(
                "Could not read active jobs from Redis",
                context=ErrorContext(operation="get_all"),
                cause=exc,
            ) from exc
        return {_text(k): _text(v) for k, v in (raw or {}).items()}

    async def remove(self, owner_id: str, job_id: str | None = None) -> bool:
        try:
            if job_id is None:
                removed = await self._client.hdel(self._active_key, owner_id)
            else:
                removed = await self._client.eval(
                    _REMOVE_IF_MATCH, 1, self._active_key, owner_id, job_id
                )
        except redis.RedisError as exc:
            raise RegistryWriteError(
                "Could not remove active job from Redis",
                context=ErrorContext(operation="remove", owner_id=owner_id, job_id=job_id),
                cause=exc,
            ) from exc
        return bool(removed)

    async def put_meta(self, job_id: str, meta: JobMeta) -> None:
        validate_key("job_id", job_id)
        try:
            await self._client.hset(self._meta_key, job_id, json.dumps(meta.to_dict()))
        except redis.RedisError as exc:
            raise RegistryWriteError(
                "Could not store job metadata in Redis",
                context=ErrorContext(operation="put_meta", owner_id=meta.owner_id, job_id=job_id),
                cause=exc,
            ) from exc

    async def get_meta(self, job_id: str) -> JobMeta | None:
        try:
            raw = await self._client.hget(self._meta_key, job_id)
        except redis.RedisError as exc:
            raise RegistryReadError(
                "Could not read job metadata from Redis",
                context=ErrorContext(operation="get_meta", job_id=job_id),
                cause=exc,
            ) from exc
        if raw is None:
            return None
        try:
            return JobMeta.from_dict(json.loads(_text(raw)))
        except (json.JSONDecodeError, TypeError, ValueError):
            return None

    async def remove_meta(self, job_id: str) -> bool:
        try:
            removed = await self._client.hdel(self._meta_key, job_id)
        except redis.RedisError as exc:
            raise RegistryWriteError(
                "Could not remove job metadata from Redis",
                context=ErrorContext(operation="remove_meta", job_id=job_id),
                cause=exc,
            ) from exc
        return bool(removed)

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["RedisJobRegistry"]
