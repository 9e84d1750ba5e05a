"""Single-shot JSON GET shared by every lookup stage."""

from typing import Any, Optional

import httpx

from city_profile.logging_config import logger
from city_profile.lookup_service.errors import MalformedResponseError, NetworkFailureError
from city_profile.models.outcome import Failure, PipelineOutcome, Success
from city_profile.models.pipeline import Stage


def build_client(user_agent: str, timeout: float = 10.0) -> httpx.AsyncClient:
    """Create the AsyncClient shared by all stages of one process.

    Args:
        user_agent: Client identifier sent with every request.
        timeout: Default connect/read timeout in seconds.

    Returns:
        An open httpx.AsyncClient; the caller owns closing it.
    """
    return httpx.AsyncClient(headers={"User-Agent": user_agent}, timeout=timeout)


async def fetch_json(
    client: httpx.AsyncClient,
    *,
    url: str,
    stage: Stage,
    timeout: float,
    event_prefix: str,
    log_context: dict,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> PipelineOutcome[Any]:
    """Execute one HTTP GET and decode its JSON body.

    Retrying is left to the caller; a failed call is reported once.

    Args:
        client: Shared AsyncClient.
        url: The URL to call.
        stage: Pipeline stage the call belongs to, carried by errors.
        timeout: Request timeout in seconds.
        event_prefix: Log event prefix for consistent names.
        log_context: Extra log fields for all events.
        params: Query parameters to include in the request.
        headers: Extra request headers.

    Returns:
        Success with the decoded body, or Failure wrapping a
        NetworkFailureError or MalformedResponseError.
    """
    try:
        response = await client.get(url, params=params, headers=headers, timeout=timeout)
        logger.info(
            f"{event_prefix}_RESPONSE",
            **log_context,
            status=response.status_code,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        logger.error(f"{event_prefix}_BAD_STATUS", **log_context, status=status_code)
        return Failure(NetworkFailureError(stage, f"HTTP {status_code}"))
    except httpx.RequestError as exc:
        logger.error(f"{event_prefix}_REQUEST_FAILED", **log_context, error=str(exc))
        return Failure(NetworkFailureError(stage, str(exc) or type(exc).__name__))

    try:
        return Success(response.json())
    except ValueError as exc:
        logger.error(f"{event_prefix}_BAD_PAYLOAD", **log_context, error=str(exc))
        return Failure(MalformedResponseError(stage, "response is not valid JSON"))
