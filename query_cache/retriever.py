"""Compute-on-miss retrieval through the query cache."""

import logging
from typing import Awaitable, Callable

from .cache import Cache
from .hasher import derive_key

logger = logging.getLogger(__name__)

Compute = Callable[[], Awaitable[bytes]]


async def retrieve(
    cache: Cache,
    sql: str,
    command: str,
    persist: bool,
    compute: Compute,
) -> bytes:
    """
    Return the cached result for a query, computing it on a miss.

    The lock is held only while probing and inserting, never while
    ``compute`` runs. Two concurrent misses for the same key will both
    compute.

    Args:
        cache: Shared cache
        sql: Query text
        command: Result kind
        persist: Store the computed result on a miss
        compute: Zero-argument coroutine function producing the result

    Returns:
        Result bytes, from the cache or freshly computed

    Raises:
        Whatever ``compute`` raises. The cache is left untouched.
    """
    key = derive_key(sql, command)

    async with cache.lock:
        cached = cache.get(key)

    if cached is not None:
        logger.debug("Cache hit %s", key)
        return cached

    result = await compute()

    if persist:
        async with cache.lock:
            cache.set(key, result)

    return result
