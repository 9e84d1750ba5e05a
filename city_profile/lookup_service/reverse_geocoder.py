"""Coordinates to postcode via Nominatim reverse geocoding."""

import httpx

from city_profile.logging_config import logger
from city_profile.lookup_service.http_client import fetch_json
from city_profile.models.city import Coordinates
from city_profile.models.outcome import Empty, PipelineOutcome, Success
from city_profile.models.pipeline import Stage
from city_profile.settings import Settings


async def reverse_geocode(
    client: httpx.AsyncClient, coordinates: Coordinates, settings: Settings
) -> PipelineOutcome[str]:
    """Look up the raw postcode for a coordinate pair.

    Args:
        client: Shared AsyncClient.
        coordinates: Device position.
        settings: Endpoint, locale, client identifier and timeout.

    Returns:
        Success with the trimmed postcode, Empty when the address has no
        postcode, or Failure when the call failed.
    """
    lat = f"{coordinates.latitude:.6f}"
    lon = f"{coordinates.longitude:.6f}"
    outcome = await fetch_json(
        client,
        url=f"{settings.nominatim_url}/reverse",
        params={
            "format": "json",
            "lat": lat,
            "lon": lon,
            "addressdetails": 1,
            "accept-language": settings.accept_language,
        },
        headers={"User-Agent": settings.user_agent},
        stage=Stage.geocode,
        timeout=settings.geocode_timeout_s,
        event_prefix="GEOCODE",
        log_context={"lat": lat, "lon": lon},
    )
    if not isinstance(outcome, Success):
        return outcome

    body = outcome.payload
    address = body.get("address") if isinstance(body, dict) else None
    postcode = address.get("postcode") if isinstance(address, dict) else None
    if not isinstance(postcode, str) or not postcode.strip():
        logger.warning("GEOCODE_NO_POSTCODE", lat=lat, lon=lon)
        return Empty("no postcode for coordinates")
    return Success(postcode.strip())
