"""Exception taxonomy for the resolution pipeline."""

from city_profile.models.pipeline import ErrorKind, Stage


class ProfileServiceError(Exception):
    """Base exception for city profile failures."""

    kind: ErrorKind = ErrorKind.network_failure

    def __init__(self, stage: Stage, detail: str = ""):
        self.stage = stage
        self.detail = detail
        super().__init__(f"{stage.value}: {detail}" if detail else stage.value)


class PermissionDeniedError(ProfileServiceError):
    """Raised when the user refuses the location permission."""

    kind = ErrorKind.permission_denied

    def __init__(self, detail: str = ""):
        super().__init__(Stage.permission, detail)


class LocationUnavailableError(ProfileServiceError):
    """Raised when the coordinate provider fails or has no fix."""

    kind = ErrorKind.location_unavailable

    def __init__(self, detail: str = ""):
        super().__init__(Stage.coordinates, detail)


class NetworkFailureError(ProfileServiceError):
    """Raised when an upstream call fails in transport or with a bad status."""

    kind = ErrorKind.network_failure


class MalformedResponseError(ProfileServiceError):
    """Raised when an upstream answers with a payload we cannot read."""

    kind = ErrorKind.malformed_response


class NotFoundError(ProfileServiceError):
    """Raised when an upstream is reachable but has no usable data."""

    kind = ErrorKind.not_found


class CacheCorruptError(Exception):
    """Raised when the cached profile cannot be decoded."""
    pass
