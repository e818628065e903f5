"""
Redis-backed LeaseStore for multi-process deployments.

Compare-and-set runs as a server-side Lua script so the check and the write
are a single atomic step. Any Redis failure is reported as UnavailableError:
callers deny the operation rather than assume the slot is free.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import redis
from redis.exceptions import RedisError

from reservation_core.errors import UnavailableError
from reservation_core.store.lease_store import LeaseStore

logger = logging.getLogger(__name__)

# ARGV: has_expected, expected, has_new, new, ttl_ms ("" = no TTL)
_CAS_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if ARGV[1] == '1' then
    if current ~= ARGV[2] then return 0 end
elseif current then
    return 0
end
if ARGV[3] == '1' then
    if ARGV[5] ~= '' then
        redis.call('SET', KEYS[1], ARGV[4], 'PX', ARGV[5])
    else
        redis.call('SET', KEYS[1], ARGV[4])
    end
else
    redis.call('DEL', KEYS[1])
end
return 1
"""

SCAN_BATCH_SIZE = 500


@contextmanager
def _translate_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        logger.error("Redis %s failed for %s: %s", operation, key, e)
        raise UnavailableError(
            f"Lease store unavailable during {operation}",
            details={"key": key},
        ) from e


class RedisLeaseStore(LeaseStore):
    """LeaseStore over a synchronous redis-py client with ``decode_responses=True``."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._cas = client.register_script(_CAS_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> "RedisLeaseStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )
        logger.info("Connected lease store to %s", url.rsplit("@", 1)[-1])
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        with _translate_errors("get", key):
            return self._client.get(key)

    def set(self, key: str, value: str, ttl_ms: Optional[int] = None, nx: bool = False) -> bool:
        with _translate_errors("set", key):
            return bool(self._client.set(key, value, px=ttl_ms, nx=nx))

    def compare_and_set(
        self, key: str, expected: Optional[str], new: Optional[str], ttl_ms: Optional[int] = None
    ) -> bool:
        args = [
            "1" if expected is not None else "0",
            expected or "",
            "1" if new is not None else "0",
            new or "",
            str(ttl_ms) if ttl_ms is not None else "",
        ]
        with _translate_errors("compare_and_set", key):
            return bool(self._cas(keys=[key], args=args))

    def delete(self, key: str) -> bool:
        with _translate_errors("delete", key):
            return self._client.delete(key) == 1

    def expire(self, key: str, ttl_ms: int) -> bool:
        with _translate_errors("expire", key):
            return bool(self._client.pexpire(key, ttl_ms))

    def incr(self, key: str, ttl_ms: Optional[int] = None) -> int:
        with _translate_errors("incr", key):
            if ttl_ms is None:
                return int(self._client.incr(key))
            pipe = self._client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.pexpire(key, ttl_ms)
            value, _ = pipe.execute()
            return int(value)

    def scan(self, prefix: str) -> list[str]:
        with _translate_errors("scan", prefix):
            return list(self._client.scan_iter(match=f"{prefix}*", count=SCAN_BATCH_SIZE))
