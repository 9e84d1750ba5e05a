"""Health report models."""

from enum import Enum
from typing import Dict

from pydantic import BaseModel


class ServiceStatus(str, Enum):
    """Reachability of one dependency."""

    available = "available"
    not_available = "not_available"


class HealthResponse(BaseModel):
    """Overall status plus one entry per upstream the pipeline calls."""

    status: str
    redis: ServiceStatus
    upstreams: Dict[str, ServiceStatus]

    @classmethod
    def from_checks(
        cls, redis: ServiceStatus, upstreams: Dict[str, ServiceStatus]
    ) -> "HealthResponse":
        """Derive ``ok``/``degraded`` from individual checks.

        Args:
            redis: Result of the cache connectivity check.
            upstreams: Result per upstream service name.

        Returns:
            A populated HealthResponse.
        """
        statuses = [redis, *upstreams.values()]
        healthy = all(status is ServiceStatus.available for status in statuses)
        return cls(
            status="ok" if healthy else "degraded",
            redis=redis,
            upstreams=upstreams,
        )
