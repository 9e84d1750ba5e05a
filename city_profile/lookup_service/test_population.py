import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from city_profile.lookup_service.errors import MalformedResponseError, NetworkFailureError
from city_profile.lookup_service.population import (
    get_population,
    latest_value,
    split_locality_name,
)
from city_profile.models.outcome import Empty, Failure, Success

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def population_payload(name="São Paulo (SP)", serie=None):
    return [
        {
            "id": "9324",
            "variavel": "População residente estimada",
            "unidade": "Pessoas",
            "resultados": [
                {
                    "classificacoes": [],
                    "series": [
                        {
                            "localidade": {
                                "id": "3550308",
                                "nivel": {"id": "N6", "nome": "Município"},
                                "nome": name,
                            },
                            "serie": serie or {"2024": "11895578"},
                        }
                    ],
                }
            ],
        }
    ]


def test_latest_value_picks_max_year_regardless_of_order():
    assert latest_value({"2010": "100", "2022": "150", "2015": "120"}) == (2022, "150")
    assert latest_value({"2022": "150", "2015": "120", "2010": "100"}) == (2022, "150")


def test_latest_value_skips_non_numeric_keys():
    assert latest_value({"total": "999", "2019": "10", "2021": "20"}) == (2021, "20")
    assert latest_value({"total": "999"}) is None
    assert latest_value({}) is None


def test_split_locality_name():
    assert split_locality_name("São Paulo (SP)") == ("São Paulo", "SP")
    assert split_locality_name("Brasília") == ("Brasília", "")
    assert split_locality_name("  Rio de Janeiro ( RJ ) ") == ("Rio de Janeiro", "RJ")


def test_get_population(mock_client, recorded_requests, settings):
    client = mock_client(
        lambda request: httpx.Response(
            200,
            json=population_payload(serie={"2010": "100", "2022": "150", "2015": "120"}),
        )
    )

    outcome = asyncio.run(get_population(client, "3550308", settings, now=NOW))

    assert isinstance(outcome, Success)
    profile = outcome.payload
    assert profile.city_name == "São Paulo"
    assert profile.region_code == "SP"
    assert profile.population == "150"
    assert profile.locality_code == "3550308"
    assert profile.fetched_at == NOW
    request = recorded_requests[0]
    assert request.url.path == "/api/v3/agregados/6579/periodos/-1/variaveis/9324"
    assert request.url.params["localidades"] == "N6[3550308]"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        [{}],
        [{"resultados": []}],
        [{"resultados": [{"series": []}]}],
        [{"resultados": [{"series": [{"localidade": {"nome": "X (Y)"}}]}]}],
        [{"resultados": [{"series": [{"serie": {"2022": "1"}}]}]}],
        population_payload(serie={"total": "1"}),
        population_payload(serie={"2022": "..."}),
        {"erro": "not a list"},
    ],
)
def test_missing_levels_are_empty(payload, mock_client, settings):
    client = mock_client(lambda request: httpx.Response(200, json=payload))
    outcome = asyncio.run(get_population(client, "3550308", settings, now=NOW))
    assert isinstance(outcome, Empty)


def test_blank_locality_code_skips_network(mock_client, recorded_requests, settings):
    client = mock_client(lambda request: httpx.Response(200, json=population_payload()))
    outcome = asyncio.run(get_population(client, "  ", settings, now=NOW))
    assert isinstance(outcome, Empty)
    assert recorded_requests == []


def test_server_error_is_failure(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(500))
    outcome = asyncio.run(get_population(client, "3550308", settings, now=NOW))
    assert isinstance(outcome, Failure)
    assert isinstance(outcome.cause, NetworkFailureError)


def test_malformed_json_is_failure(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(200, text="[{"))
    outcome = asyncio.run(get_population(client, "3550308", settings, now=NOW))
    assert isinstance(outcome, Failure)
    assert isinstance(outcome.cause, MalformedResponseError)
