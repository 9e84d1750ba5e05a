"""First-name popularity ranking from the IBGE census names service."""

from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from city_profile.logging_config import logger
from city_profile.lookup_service.errors import MalformedResponseError
from city_profile.lookup_service.http_client import fetch_json
from city_profile.models.names import NameRankingEntry
from city_profile.models.outcome import Empty, Failure, PipelineOutcome, Success
from city_profile.models.pipeline import Stage
from city_profile.settings import Settings

RANKING_PATH = "/v2/censos/nomes/ranking"


def parse_ranking_payload(payload: Any) -> PipelineOutcome[List[NameRankingEntry]]:
    """Map ``[0].res[]`` of the ranking payload to entries, keeping order."""
    if not isinstance(payload, list):
        return Failure(MalformedResponseError(Stage.name_ranking, "expected a JSON array"))
    if not payload:
        return Empty("ranking service returned an empty array")

    first = payload[0]
    if not isinstance(first, dict):
        return Failure(MalformedResponseError(Stage.name_ranking, "expected a JSON object"))
    rows = first.get("res")
    if not rows:
        return Empty("ranking without entries")
    if not isinstance(rows, list):
        return Failure(MalformedResponseError(Stage.name_ranking, "'res' is not a list"))

    try:
        entries = [
            NameRankingEntry(
                name=row["nome"], frequency=row["frequencia"], rank=row["ranking"]
            )
            for row in rows
        ]
    except (TypeError, KeyError, ValidationError) as exc:
        logger.error("NAME_RANKING_BAD_ENTRY", error=str(exc))
        return Failure(MalformedResponseError(Stage.name_ranking, "invalid ranking entry"))
    return Success(entries)


async def get_name_ranking(
    client: httpx.AsyncClient,
    settings: Settings,
    locality_code: Optional[str] = None,
) -> PipelineOutcome[List[NameRankingEntry]]:
    """Fetch the name ranking for a locality, or the national ranking.

    Args:
        client: Shared AsyncClient.
        settings: Endpoint and timeout.
        locality_code: IBGE locality code; None or blank for the whole country.

    Returns:
        Success with rank-ordered entries, Empty when there are none, or
        Failure when the call failed or the payload is unreadable.
    """
    locality_code = (locality_code or "").strip()
    params = {"localidade": locality_code} if locality_code else None
    outcome = await fetch_json(
        client,
        url=f"{settings.ibge_url}{RANKING_PATH}",
        params=params,
        stage=Stage.name_ranking,
        timeout=settings.names_timeout_s,
        event_prefix="NAME_RANKING",
        log_context={"locality_code": locality_code or "BR"},
    )
    if not isinstance(outcome, Success):
        return outcome

    parsed = parse_ranking_payload(outcome.payload)
    if isinstance(parsed, Success):
        logger.info(
            "NAME_RANKING_PARSED",
            locality_code=locality_code or "BR",
            entries=len(parsed.payload),
        )
    return parsed


def filter_entries(entries: List[NameRankingEntry], query: str) -> List[NameRankingEntry]:
    """Keep entries whose name contains *query*, ignoring case.

    A blank query returns the list unchanged.
    """
    needle = (query or "").strip().upper()
    if not needle:
        return entries
    return [entry for entry in entries if needle in entry.name]
