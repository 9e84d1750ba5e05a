"""Coordinate provider interface and the static provider used over HTTP."""

from enum import Enum
from typing import Optional, Protocol

from city_profile.models.city import Coordinates


class PermissionStatus(str, Enum):
    """Location permission as reported by the host platform."""

    unknown = "unknown"
    granted = "granted"
    denied = "denied"


class CoordinateProvider(Protocol):
    """Source of device coordinates, gated by a permission grant."""

    async def permission_status(self) -> PermissionStatus: ...

    async def request_permission(self) -> bool: ...

    async def get_coordinates(self) -> Optional[Coordinates]: ...


class StaticCoordinateProvider:
    """Provider for a position known up front, e.g. sent by an HTTP client.

    A missing position behaves like a denied permission.
    """

    def __init__(self, coordinates: Optional[Coordinates]):
        self._coordinates = coordinates

    async def permission_status(self) -> PermissionStatus:
        if self._coordinates is None:
            return PermissionStatus.denied
        return PermissionStatus.granted

    async def request_permission(self) -> bool:
        return self._coordinates is not None

    async def get_coordinates(self) -> Optional[Coordinates]:
        return self._coordinates
