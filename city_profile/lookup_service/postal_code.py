"""Postcode validation and postcode to locality code via ViaCEP."""

import re

import httpx

from city_profile.logging_config import logger
from city_profile.lookup_service.http_client import fetch_json
from city_profile.models.outcome import Empty, PipelineOutcome, Success
from city_profile.models.pipeline import Stage
from city_profile.settings import Settings

POSTAL_CODE_PATTERN = re.compile(r"\d{5}-?\d{3}")


def is_valid_postal_code(raw: str) -> bool:
    """Return True when *raw* is five digits, an optional hyphen, three digits."""
    return bool(raw) and POSTAL_CODE_PATTERN.fullmatch(raw) is not None


def normalize_postal_code(raw: str) -> str:
    """Strip separators, leaving the bare 8-digit code.

    Args:
        raw: A postcode already accepted by ``is_valid_postal_code``.

    Returns:
        The digits of the postcode.
    """
    return re.sub(r"\D", "", raw)


async def resolve_locality_code(
    client: httpx.AsyncClient, raw_postcode: str, settings: Settings
) -> PipelineOutcome[str]:
    """Resolve a postcode to its IBGE locality code.

    Malformed postcodes never reach the network.

    Args:
        client: Shared AsyncClient.
        raw_postcode: Postcode as returned by the reverse geocoder.
        settings: Endpoint and timeout.

    Returns:
        Success with the locality code, Empty when the postcode is invalid
        or unknown, or Failure when the call failed.
    """
    if not is_valid_postal_code(raw_postcode):
        logger.warning("POSTAL_CODE_INVALID", postcode=raw_postcode)
        return Empty(f"invalid postcode: {raw_postcode!r}")

    postcode = normalize_postal_code(raw_postcode)
    outcome = await fetch_json(
        client,
        url=f"{settings.viacep_url}/{postcode}/json/",
        stage=Stage.postal_resolve,
        timeout=settings.postal_timeout_s,
        event_prefix="POSTAL_LOOKUP",
        log_context={"postcode": postcode},
    )
    if not isinstance(outcome, Success):
        return outcome

    body = outcome.payload
    if not isinstance(body, dict):
        return Empty("unexpected postcode payload")
    if body.get("erro") in (True, "true"):
        logger.warning("POSTAL_CODE_UNKNOWN", postcode=postcode)
        return Empty(f"postcode not found: {postcode}")

    locality_code = body.get("ibge")
    if not isinstance(locality_code, str) or not locality_code.strip():
        return Empty(f"no locality code for postcode {postcode}")
    return Success(locality_code.strip())
