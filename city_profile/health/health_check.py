"""Health checks for Redis and the upstream lookup services."""

from typing import Dict

import httpx
from redis import Redis
from redis.exceptions import RedisError

from city_profile.logging_config import logger
from city_profile.models.health import ServiceStatus
from city_profile.settings import Settings


def is_redis_available(client: Redis) -> ServiceStatus:
    """Check Redis connectivity.

    Returns:
        ServiceStatus.available when Redis responds, else not_available.
    """
    try:
        client.ping()
        return ServiceStatus.available
    except RedisError as exc:
        logger.error("REDIS_UNAVAILABLE", error=str(exc))
        return ServiceStatus.not_available


async def _probe(client: httpx.AsyncClient, name: str, url: str) -> ServiceStatus:
    try:
        response = await client.get(url, timeout=5)
    except httpx.HTTPError as exc:
        logger.error("UPSTREAM_UNAVAILABLE", upstream=name, error=str(exc))
        return ServiceStatus.not_available
    if response.status_code >= 500:
        logger.error("UPSTREAM_UNAVAILABLE", upstream=name, status=response.status_code)
        return ServiceStatus.not_available
    return ServiceStatus.available


async def check_upstreams(
    client: httpx.AsyncClient, settings: Settings
) -> Dict[str, ServiceStatus]:
    """Probe each upstream the pipeline depends on.

    Any answer below 500 counts as reachable; the probes do not validate
    payloads.

    Returns:
        Status per upstream name.
    """
    targets = {
        "nominatim": f"{settings.nominatim_url}/status",
        "viacep": f"{settings.viacep_url}/01001000/json/",
        "ibge": f"{settings.ibge_url}/v1/localidades/estados/SP",
    }
    return {name: await _probe(client, name, url) for name, url in targets.items()}
