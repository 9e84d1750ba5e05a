import asyncio

import httpx
import pytest

from city_profile.lookup_service.errors import NetworkFailureError
from city_profile.lookup_service.postal_code import (
    is_valid_postal_code,
    normalize_postal_code,
    resolve_locality_code,
)
from city_profile.models.outcome import Empty, Failure, Success


@pytest.mark.parametrize("code", ["01001000", "70040010", "99999999", "00000000"])
def test_normalized_code_keeps_validation_result(code):
    hyphenated = f"{code[:5]}-{code[5:]}"
    assert is_valid_postal_code(hyphenated)
    assert normalize_postal_code(hyphenated) == code
    assert is_valid_postal_code(normalize_postal_code(hyphenated))


@pytest.mark.parametrize(
    "raw",
    ["", "0100", "1234-567", "12345-6789", "abcde-fgh", "12345 678", "123456789", "01001--000"],
)
def test_invalid_postcode_never_calls_network(raw, mock_client, recorded_requests, settings):
    client = mock_client(lambda request: httpx.Response(200, json={"ibge": "3550308"}))

    outcome = asyncio.run(resolve_locality_code(client, raw, settings))

    assert isinstance(outcome, Empty)
    assert recorded_requests == []


def test_resolve_locality_code(mock_client, recorded_requests, settings):
    client = mock_client(
        lambda request: httpx.Response(
            200, json={"cep": "01001-000", "localidade": "São Paulo", "ibge": " 3550308 "}
        )
    )

    outcome = asyncio.run(resolve_locality_code(client, "01001-000", settings))

    assert outcome == Success("3550308")
    assert recorded_requests[0].url.path == "/ws/01001000/json/"


def test_unknown_postcode_is_empty(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(200, json={"erro": True}))
    outcome = asyncio.run(resolve_locality_code(client, "99999999", settings))
    assert isinstance(outcome, Empty)


def test_blank_locality_code_is_empty(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(200, json={"cep": "01001-000", "ibge": ""}))
    outcome = asyncio.run(resolve_locality_code(client, "01001000", settings))
    assert isinstance(outcome, Empty)


def test_postal_service_error_is_failure(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(400, text="Bad Request"))
    outcome = asyncio.run(resolve_locality_code(client, "01001000", settings))
    assert isinstance(outcome, Failure)
    assert isinstance(outcome.cause, NetworkFailureError)
