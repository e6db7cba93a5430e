from typing import NamedTuple
from uuid import UUID

from loguru import logger
from redis.asyncio import Redis

from app.roles import Role
from app.settings import REDIS_URL, ROLE_CACHE_TTL

_redis: Redis | None = None


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


def _role_key(user_id: UUID) -> str:
    return f"role:{user_id}"


def _generation_key(user_id: UUID) -> str:
    return f"role_gen:{user_id}"


class RoleCacheEntry(NamedTuple):
    generation: int
    role: Role | None  # None on miss or when the entry predates an invalidation


async def get_role_cache(user_id: UUID) -> RoleCacheEntry | None:
    """
    Cached role together with the user's current generation.
    The generation must be passed back to set_role_cache on a miss.
    Returns None when Redis is unavailable.
    """
    try:
        generation_raw, data = await get_redis().mget(
            _generation_key(user_id), _role_key(user_id)
        )
    except Exception:
        logger.warning("Redis get failed: skipping role cache", exc_info=True)
        return None

    generation = int(generation_raw or 0)
    if not data:
        return RoleCacheEntry(generation, None)
    stored_generation, _, value = data.partition(":")
    if int(stored_generation) != generation:
        return RoleCacheEntry(generation, None)
    return RoleCacheEntry(generation, Role(value))


async def set_role_cache(user_id: UUID, role: Role, generation: int) -> None:
    """Stamp the entry with the generation read before the role store lookup."""
    try:
        await get_redis().setex(
            _role_key(user_id), ROLE_CACHE_TTL, f"{generation}:{role.value}"
        )
    except Exception:
        logger.warning("Redis set failed: skipping role cache", exc_info=True)


async def invalidate_role_cache(user_id: UUID) -> None:
    """Bump the generation so entries written from older reads are ignored."""
    try:
        async with get_redis().pipeline(transaction=True) as pipe:
            pipe.incr(_generation_key(user_id))
            pipe.delete(_role_key(user_id))
            await pipe.execute()
    except Exception:
        logger.warning("Redis invalidate failed for role cache", exc_info=True)
