"""Single-slot Redis cache for the last successful city profile."""

import json
from functools import partial
from typing import Optional

from pydantic import ValidationError
from redis import Redis
from redis.exceptions import RedisError

from city_profile.logging_config import logger
from city_profile.lookup_service.errors import CacheCorruptError
from city_profile.models.city import CityProfile
from city_profile.settings import get_settings

_CACHED_FIELDS = {"city_name", "region_code", "population", "locality_code", "fetched_at"}

settings = get_settings()

redis_client = Redis(
    host=settings.redis_host,
    port=settings.redis_port,
    db=settings.redis_db,
    decode_responses=True,
)


def decode_profile(raw: str) -> CityProfile:
    """Decode a cached record.

    Args:
        raw: JSON string stored under the cache key.

    Returns:
        The cached CityProfile.

    Raises:
        CacheCorruptError: If the record is not a valid profile.
    """
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise CacheCorruptError("cached record is not an object")
        profile = CityProfile(**data)
    except (ValueError, TypeError, ValidationError) as exc:
        raise CacheCorruptError(str(exc)) from exc
    if profile.fetched_at.tzinfo is None:
        raise CacheCorruptError("cached timestamp has no timezone")
    return profile


class ProfileCache:
    """Cache wrapper holding at most one CityProfile."""

    def __init__(self, client, key: str):
        self.redis_client: Redis = client
        self.key = key

    def save_profile(self, profile: CityProfile):
        """Replace the cached profile with a single SET.

        Args:
            profile: Profile from a successful population lookup.
        """
        try:
            self.redis_client.set(self.key, profile.model_dump_json(include=_CACHED_FIELDS))
            logger.info("CACHE_PROFILE_SAVED", locality_code=profile.locality_code)
        except RedisError as exc:
            logger.error("REDIS_SAVE_PROFILE_FAILED", key=self.key, error=str(exc))

    def get_profile(self) -> Optional[CityProfile]:
        """Get the cached profile.

        Corrupt records are deleted and reported as a miss.

        Returns:
            CityProfile if present and readable, otherwise None.
        """
        try:
            raw = self.redis_client.get(self.key)
        except RedisError as exc:
            logger.error("REDIS_GET_PROFILE_FAILED", key=self.key, error=str(exc))
            return None
        if not raw:
            return None
        try:
            return decode_profile(raw)
        except CacheCorruptError as exc:
            logger.warning("CACHE_PROFILE_CORRUPT", key=self.key, error=str(exc))
            self.clear()
            return None

    def clear(self):
        """Delete the cached profile."""
        try:
            self.redis_client.delete(self.key)
        except RedisError as exc:
            logger.error("REDIS_CLEAR_PROFILE_FAILED", key=self.key, error=str(exc))


profile_cache = partial(ProfileCache, client=redis_client, key=settings.cache_key)
