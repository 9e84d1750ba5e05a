import json
from datetime import datetime, timezone

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from city_profile.models.city import CityProfile
from city_profile.redis_cache.cache import ProfileCache

KEY = "last_city_data"


@pytest.fixture
def fake_redis():
    client = fakeredis.FakeRedis(decode_responses=True)
    client.flushall()
    return client


def sao_paulo(fetched_at=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)):
    return CityProfile(
        city_name="São Paulo",
        region_code="SP",
        population="11895578",
        locality_code="3550308",
        fetched_at=fetched_at,
    )


class BrokenRedis:
    def get(self, key):
        raise RedisConnectionError("down")

    def set(self, key, value):
        raise RedisConnectionError("down")

    def delete(self, key):
        raise RedisConnectionError("down")


def test_save_profile_to_cache(fake_redis):
    cache = ProfileCache(fake_redis, key=KEY)
    cache.save_profile(sao_paulo())
    assert cache.get_profile() == sao_paulo()


def test_cached_record_has_only_profile_fields(fake_redis):
    ProfileCache(fake_redis, key=KEY).save_profile(sao_paulo())
    record = json.loads(fake_redis.get(KEY))
    assert set(record) == {
        "city_name",
        "region_code",
        "population",
        "locality_code",
        "fetched_at",
    }


def test_newer_profile_overwrites_previous(fake_redis):
    cache = ProfileCache(fake_redis, key=KEY)
    cache.save_profile(sao_paulo())
    newer = sao_paulo(fetched_at=datetime(2026, 10, 19, 13, 0, tzinfo=timezone.utc))
    cache.save_profile(newer)
    assert cache.get_profile().fetched_at == newer.fetched_at
    assert fake_redis.keys("*") == [KEY]


def test_get_profile_cache_miss_returns_none(fake_redis):
    assert ProfileCache(fake_redis, key=KEY).get_profile() is None


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[]",
        json.dumps({"city_name": "São Paulo"}),
        json.dumps(
            {
                "city_name": "São Paulo",
                "region_code": "SP",
                "population": "11895578",
                "locality_code": "3550308",
                "fetched_at": "2026-10-19T12:00:00",
            }
        ),
    ],
)
def test_corrupt_record_is_a_miss_and_cleared(fake_redis, raw):
    fake_redis.set(KEY, raw)
    cache = ProfileCache(fake_redis, key=KEY)
    assert cache.get_profile() is None
    assert fake_redis.get(KEY) is None


def test_redis_errors_are_treated_as_miss():
    cache = ProfileCache(BrokenRedis(), key=KEY)
    cache.save_profile(sao_paulo())
    assert cache.get_profile() is None
