"""Process-wide Redis pool.

The API uses it for rate limiting and the permission cache, both of which
carry on without it. ``optional_redis`` is for those callers; ``get_redis``
is for callers that need Redis to be up.
"""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str, *, max_connections: int = 50) -> None:
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool is not None:
        await _pool.aclose()
    _pool = None


def optional_redis() -> redis.Redis | None:
    return _pool


def get_redis() -> redis.Redis:
    client = optional_redis()
    if client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return client
