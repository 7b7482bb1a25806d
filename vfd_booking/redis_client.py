from __future__ import annotations

from redis import Redis
from redis.connection import ConnectionPool

from vfd_booking.core.config import settings

# Token cache and change fan-out calls run on the request path
SOCKET_TIMEOUT_SECONDS = 2.0

_pools: dict[str, ConnectionPool] = {}


def get_redis(url: str | None = None) -> Redis:
    url = url or settings.redis_url
    pool = _pools.get(url)
    if pool is None:
        pool = ConnectionPool.from_url(
            url,
            decode_responses=True,
            socket_timeout=SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
        )
        _pools[url] = pool
    return Redis(connection_pool=pool)
