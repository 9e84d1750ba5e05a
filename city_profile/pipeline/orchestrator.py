"""Resolution pipeline state machine for one screen session.

The orchestrator chains permission, coordinates, reverse geocoding, postal
code resolution and population lookup. It owns the cache policy, the
single in-flight run, retry handles and cancellation, and publishes a
ScreenState snapshot on every transition.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import httpx
from prometheus_client import Counter, Histogram

from city_profile.logging_config import logger
from city_profile.lookup_service.errors import (
    LocationUnavailableError,
    NotFoundError,
    PermissionDeniedError,
    ProfileServiceError,
)
from city_profile.lookup_service.names_ranking import get_name_ranking
from city_profile.lookup_service.population import get_population
from city_profile.lookup_service.postal_code import resolve_locality_code
from city_profile.lookup_service.reverse_geocoder import reverse_geocode
from city_profile.models.names import NameRankingEntry
from city_profile.models.outcome import Empty, Failure, PipelineOutcome, Success
from city_profile.models.pipeline import (
    STAGE_ORDER,
    STAGE_STATES,
    ErrorInfo,
    PipelineState,
    ScreenState,
    Stage,
)
from city_profile.pipeline.coordinates import CoordinateProvider, PermissionStatus
from city_profile.pipeline.messages import READY_MESSAGE, STATUS_MESSAGES, error_message
from city_profile.redis_cache.cache import ProfileCache
from city_profile.settings import Settings, get_settings

STAGE_LATENCY = Histogram(
    "pipeline_stage_duration_seconds", "Pipeline stage duration in seconds", ["stage"]
)
STAGE_OUTCOMES = Counter(
    "pipeline_stage_outcomes_total", "Pipeline stage outcomes", ["stage", "outcome"]
)


@dataclass(frozen=True)
class RetryHandle:
    """Restarts the pipeline at ``stage`` while ``token`` is still current."""

    stage: Stage
    token: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _outcome_label(outcome: PipelineOutcome) -> str:
    if isinstance(outcome, Success):
        return "success"
    if isinstance(outcome, Empty):
        return "empty"
    return "failure"


class ProfileOrchestrator:
    """Drives the city profile pipeline for one screen."""

    def __init__(
        self,
        provider: CoordinateProvider,
        cache: ProfileCache,
        client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._provider = provider
        self._cache = cache
        self._client = client
        self._settings = settings or get_settings()
        self._clock = clock
        self._freshness = timedelta(minutes=self._settings.cache_freshness_minutes)

        self._snapshot = ScreenState()
        self._listeners: List[Callable[[ScreenState], None]] = []
        self._task: Optional[asyncio.Task] = None
        self._run_id = 0
        self._token = 0
        self._retry: Optional[RetryHandle] = None
        self._last_error: Optional[ProfileServiceError] = None
        self._closed = False

        self._coordinates = None
        self._postcode: Optional[str] = None
        self._locality_code: Optional[str] = None
        self._profile = None

        self._names_key: Optional[str] = None
        self._names: List[NameRankingEntry] = []

        self._steps = {
            Stage.permission: self._step_permission,
            Stage.coordinates: self._step_coordinates,
            Stage.geocode: self._step_geocode,
            Stage.postal_resolve: self._step_postal_resolve,
            Stage.population: self._step_population,
        }

    @property
    def snapshot(self) -> ScreenState:
        return self._snapshot

    @property
    def retry_handle(self) -> Optional[RetryHandle]:
        return self._retry

    @property
    def last_error(self) -> Optional[ProfileServiceError]:
        return self._last_error

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Callable[[ScreenState], None]) -> Callable[[], None]:
        """Register a state-change listener.

        Args:
            listener: Called with every new ScreenState.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def resolve_city_profile(self) -> ScreenState:
        """Show the cached profile and refresh it when needed.

        A fresh cached profile is returned without any network call. A
        stale one is returned immediately while one background run
        refreshes it. Without any profile the full pipeline runs and this
        call waits for it. Requests made while a run is in flight are
        ignored.

        Returns:
            The current ScreenState.
        """
        if self._closed:
            return self._snapshot
        if self.busy:
            logger.info("PIPELINE_ALREADY_RUNNING", state=self._snapshot.state.value)
            return self._snapshot

        profile = self._snapshot.profile or await asyncio.to_thread(self._cache.get_profile)
        if self._closed or self.busy:
            return self._snapshot
        if profile is not None and profile.is_fresh(self._clock(), self._freshness):
            logger.info("CACHE_PROFILE_HIT", locality_code=profile.locality_code, fresh=True)
            self._publish(
                state=PipelineState.ready,
                profile=profile,
                stale=False,
                error=None,
                retry_stage=None,
                status_message=READY_MESSAGE,
            )
            return self._snapshot

        if profile is not None:
            logger.info("CACHE_PROFILE_HIT", locality_code=profile.locality_code, fresh=False)
            self._publish(
                state=PipelineState.ready,
                profile=profile,
                stale=True,
                error=None,
                retry_stage=None,
                status_message=READY_MESSAGE,
            )
            self._start(Stage.permission)
            return self._snapshot

        logger.info("CACHE_PROFILE_MISS")
        self._start(Stage.permission)
        await self.wait()
        return self._snapshot

    async def retry(self, handle: Optional[RetryHandle] = None) -> ScreenState:
        """Restart the pipeline at the stage that failed.

        Args:
            handle: Handle taken from ``retry_handle``; defaults to the
                current one. Superseded handles are ignored.

        Returns:
            The ScreenState after the retried run.
        """
        handle = handle or self._retry
        if self._closed or handle is None or handle != self._retry:
            logger.info("RETRY_HANDLE_STALE", stage=handle.stage.value if handle else None)
            return self._snapshot
        if self.busy:
            logger.info("PIPELINE_ALREADY_RUNNING", state=self._snapshot.state.value)
            return self._snapshot

        logger.info("PIPELINE_RETRY", stage=handle.stage.value)
        self._start(handle.stage)
        await self.wait()
        return self._snapshot

    async def wait(self):
        """Wait until the in-flight run, if any, has finished."""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def close(self):
        """Abandon the in-flight run; later results are discarded."""
        self._closed = True
        self._run_id += 1
        self._listeners.clear()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
            logger.info("PIPELINE_CANCELLED")

    async def resolve_name_ranking(
        self, locality_code: Optional[str] = None
    ) -> List[NameRankingEntry]:
        """Return the name ranking for a locality.

        Falls back to the locality of the displayed profile, then to the
        national ranking. Entries are kept for the session until the
        locality changes.

        Args:
            locality_code: Explicit IBGE locality code.

        Returns:
            Rank-ordered entries.

        Raises:
            NotFoundError: If the service has no ranking for the locality.
            NetworkFailureError: If the call failed.
            MalformedResponseError: If the payload could not be read.
        """
        if locality_code is None and self._snapshot.profile is not None:
            locality_code = self._snapshot.profile.locality_code
        key = (locality_code or "").strip()
        if self._names_key == key and self._names:
            return self._names

        started = time.perf_counter()
        outcome = await get_name_ranking(self._client, self._settings, key or None)
        self._observe(Stage.name_ranking, outcome, started)

        if isinstance(outcome, Empty):
            raise NotFoundError(Stage.name_ranking, outcome.reason)
        if isinstance(outcome, Failure):
            raise outcome.cause
        if not self._closed:
            self._names_key, self._names = key, outcome.payload
        return outcome.payload

    def _start(self, stage: Stage):
        self._run_id += 1
        self._invalidate_retry()
        self._task = asyncio.create_task(self._run(stage, self._run_id))

    def _current(self, run_id: int) -> bool:
        return not self._closed and run_id == self._run_id

    def _invalidate_retry(self):
        self._token += 1
        self._retry = None

    def _publish(self, **changes):
        if self._closed:
            return
        self._snapshot = self._snapshot.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _observe(self, stage: Stage, outcome: PipelineOutcome, started: float):
        duration_s = time.perf_counter() - started
        label = _outcome_label(outcome)
        STAGE_LATENCY.labels(stage=stage.value).observe(duration_s)
        STAGE_OUTCOMES.labels(stage=stage.value, outcome=label).inc()
        logger.info(
            "STAGE_COMPLETED",
            stage=stage.value,
            outcome=label,
            duration_ms=round(duration_s * 1000, 2),
        )

    def _reset_from(self, stage: Stage):
        index = STAGE_ORDER.index(stage)
        if index <= STAGE_ORDER.index(Stage.coordinates):
            self._coordinates = None
        if index <= STAGE_ORDER.index(Stage.geocode):
            self._postcode = None
        if index <= STAGE_ORDER.index(Stage.postal_resolve):
            self._locality_code = None
        self._profile = None

    async def _run(self, start: Stage, run_id: int):
        self._reset_from(start)
        self._last_error = None
        for stage in STAGE_ORDER[STAGE_ORDER.index(start):]:
            started = time.perf_counter()
            outcome = await self._steps[stage](run_id)
            if not self._current(run_id):
                logger.info("PIPELINE_RESULT_DISCARDED", stage=stage.value)
                return
            self._observe(stage, outcome, started)
            if not isinstance(outcome, Success):
                self._fail(stage, outcome)
                return
            self._invalidate_retry()

        await asyncio.to_thread(self._cache.save_profile, self._profile)
        self._publish(
            state=PipelineState.ready,
            profile=self._profile,
            stale=False,
            error=None,
            retry_stage=None,
            status_message=READY_MESSAGE,
        )

    def _fail(self, stage: Stage, outcome: PipelineOutcome):
        if isinstance(outcome, Empty):
            cause = NotFoundError(stage, outcome.reason)
        else:
            cause = outcome.cause
        message = error_message(cause.kind, stage)
        self._last_error = cause
        self._token += 1
        self._retry = RetryHandle(stage=stage, token=self._token)
        logger.warning(
            "PIPELINE_STAGE_FAILED",
            stage=stage.value,
            kind=cause.kind.value,
            detail=str(cause),
        )
        self._publish(
            state=PipelineState.error,
            error=ErrorInfo(kind=cause.kind, stage=stage, message=message),
            retry_stage=stage,
            status_message=message,
        )

    def _enter(self, stage: Stage, run_id: int):
        if self._current(run_id):
            self._publish(
                state=STAGE_STATES[stage],
                error=None,
                retry_stage=None,
                status_message=STATUS_MESSAGES[stage],
            )

    async def _step_permission(self, run_id: int) -> PipelineOutcome[bool]:
        try:
            status = await self._provider.permission_status()
            if status is PermissionStatus.granted:
                return Success(True)
            self._enter(Stage.permission, run_id)
            granted = await self._provider.request_permission()
        except Exception as exc:
            logger.error("PERMISSION_CHECK_FAILED", error=str(exc))
            return Failure(PermissionDeniedError(str(exc)))
        if granted:
            return Success(True)
        return Failure(PermissionDeniedError("location permission refused"))

    async def _step_coordinates(self, run_id: int) -> PipelineOutcome:
        self._enter(Stage.coordinates, run_id)
        try:
            coordinates = await self._provider.get_coordinates()
        except Exception as exc:
            logger.error("COORDINATES_FAILED", error=str(exc))
            return Failure(LocationUnavailableError(str(exc)))
        if coordinates is None:
            return Failure(LocationUnavailableError("provider returned no position"))
        if self._current(run_id):
            self._coordinates = coordinates
        return Success(coordinates)

    async def _step_geocode(self, run_id: int) -> PipelineOutcome[str]:
        self._enter(Stage.geocode, run_id)
        outcome = await reverse_geocode(self._client, self._coordinates, self._settings)
        if isinstance(outcome, Success) and self._current(run_id):
            self._postcode = outcome.payload
        return outcome

    async def _step_postal_resolve(self, run_id: int) -> PipelineOutcome[str]:
        self._enter(Stage.postal_resolve, run_id)
        outcome = await resolve_locality_code(self._client, self._postcode, self._settings)
        if isinstance(outcome, Success) and self._current(run_id):
            self._locality_code = outcome.payload
        return outcome

    async def _step_population(self, run_id: int) -> PipelineOutcome:
        self._enter(Stage.population, run_id)
        outcome = await get_population(
            self._client, self._locality_code, self._settings, now=self._clock()
        )
        if isinstance(outcome, Success) and self._current(run_id):
            self._profile = outcome.payload
        return outcome
