"""Locality code to city name, region and latest population via IBGE."""

import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple

import httpx

from city_profile.logging_config import logger
from city_profile.lookup_service.http_client import fetch_json
from city_profile.models.city import CityProfile
from city_profile.models.outcome import Empty, PipelineOutcome, Success
from city_profile.models.pipeline import Stage
from city_profile.settings import Settings

# Aggregate 6579 is the yearly resident population estimate, variable 9324.
POPULATION_PATH = "/v3/agregados/6579/periodos/-1/variaveis/9324"

_NAME_PATTERN = re.compile(r"^(?P<city>[^(]*)\((?P<region>[^)]*)\)")


def latest_value(series: Mapping[str, Any]) -> Optional[Tuple[int, str]]:
    """Pick the value of the most recent year in an unordered mapping.

    Keys that are not integers are skipped.

    Args:
        series: Mapping of year strings to values.

    Returns:
        ``(year, value)`` for the largest numeric year, or None.
    """
    best = None
    for key, value in series.items():
        try:
            year = int(key)
        except (TypeError, ValueError):
            continue
        if best is None or year > best[0]:
            best = (year, str(value).strip())
    return best


def split_locality_name(full_name: str) -> Tuple[str, str]:
    """Split ``"City Name (UF)"`` into city and region code.

    Args:
        full_name: Locality name as returned by IBGE.

    Returns:
        ``(city, region)``; region is empty when no parenthesis is present.
    """
    match = _NAME_PATTERN.match(full_name)
    if match is None:
        return full_name.strip(), ""
    return match.group("city").strip(), match.group("region").strip()


def _first(value: Any) -> Optional[dict]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return None


def parse_population_payload(
    payload: Any, locality_code: str, fetched_at: datetime
) -> PipelineOutcome[CityProfile]:
    """Build a CityProfile from the aggregates payload.

    Args:
        payload: Decoded JSON body.
        locality_code: Code the lookup was made for.
        fetched_at: Timestamp stored on the profile.

    Returns:
        Success with the profile, or Empty when any level is missing.
    """
    aggregate = _first(payload)
    result = _first(aggregate.get("resultados")) if aggregate else None
    series = _first(result.get("series")) if result else None
    if series is None:
        return Empty("no population series for locality")

    locality = series.get("localidade")
    full_name = locality.get("nome") if isinstance(locality, dict) else None
    yearly = series.get("serie")
    if not isinstance(full_name, str) or not full_name.strip() or not isinstance(yearly, dict):
        return Empty("population series without name or values")

    latest = latest_value(yearly)
    if latest is None:
        return Empty("population series without a numeric year")
    year, population = latest
    if not population.isdigit():
        return Empty(f"population for {year} is not a number: {population!r}")

    city_name, region_code = split_locality_name(full_name)
    if not city_name:
        return Empty("locality name is blank")
    return Success(
        CityProfile(
            city_name=city_name,
            region_code=region_code,
            population=population,
            locality_code=locality_code,
            fetched_at=fetched_at,
        )
    )


async def get_population(
    client: httpx.AsyncClient,
    locality_code: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> PipelineOutcome[CityProfile]:
    """Fetch the latest population figure for a locality.

    Args:
        client: Shared AsyncClient.
        locality_code: IBGE locality code.
        settings: Endpoint and timeout.
        now: Timestamp for the profile; defaults to the current UTC time.

    Returns:
        Success with a complete CityProfile, Empty when the service has no
        usable data, or Failure when the call failed.
    """
    locality_code = (locality_code or "").strip()
    if not locality_code:
        return Empty("blank locality code")

    outcome = await fetch_json(
        client,
        url=f"{settings.ibge_url}{POPULATION_PATH}",
        params={"localidades": f"N6[{locality_code}]"},
        stage=Stage.population,
        timeout=settings.population_timeout_s,
        event_prefix="POPULATION_LOOKUP",
        log_context={"locality_code": locality_code},
    )
    if not isinstance(outcome, Success):
        return outcome

    parsed = parse_population_payload(
        outcome.payload, locality_code, now or datetime.now(timezone.utc)
    )
    if isinstance(parsed, Empty):
        logger.warning(
            "POPULATION_NOT_FOUND", locality_code=locality_code, reason=parsed.reason
        )
    return parsed
