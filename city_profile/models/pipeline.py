"""State machine vocabulary and the snapshot rendered by front-ends."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from city_profile.models.city import CityProfile


class Stage(str, Enum):
    """Independently retriable units of the resolution pipeline."""

    permission = "permission"
    coordinates = "coordinates"
    geocode = "geocode"
    postal_resolve = "postal_resolve"
    population = "population"
    name_ranking = "name_ranking"


STAGE_ORDER = [
    Stage.permission,
    Stage.coordinates,
    Stage.geocode,
    Stage.postal_resolve,
    Stage.population,
]


class PipelineState(str, Enum):
    """Orchestrator states."""

    idle = "idle"
    awaiting_permission = "awaiting_permission"
    awaiting_coordinates = "awaiting_coordinates"
    awaiting_postal_resolution = "awaiting_postal_resolution"
    awaiting_population = "awaiting_population"
    ready = "ready"
    error = "error"


STAGE_STATES = {
    Stage.permission: PipelineState.awaiting_permission,
    Stage.coordinates: PipelineState.awaiting_coordinates,
    Stage.geocode: PipelineState.awaiting_postal_resolution,
    Stage.postal_resolve: PipelineState.awaiting_postal_resolution,
    Stage.population: PipelineState.awaiting_population,
}


class ErrorKind(str, Enum):
    """User-facing error categories."""

    permission_denied = "permission_denied"
    location_unavailable = "location_unavailable"
    network_failure = "network_failure"
    malformed_response = "malformed_response"
    not_found = "not_found"


class ErrorInfo(BaseModel):
    """Error shown to the user together with a retry affordance."""

    kind: ErrorKind
    stage: Stage
    message: str


class ScreenState(BaseModel):
    """Snapshot of the orchestrator published on every transition."""

    state: PipelineState = PipelineState.idle
    profile: Optional[CityProfile] = None
    stale: bool = False
    error: Optional[ErrorInfo] = None
    retry_stage: Optional[Stage] = None
    status_message: str = ""
