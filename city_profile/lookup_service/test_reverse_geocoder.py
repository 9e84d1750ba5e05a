import asyncio

import httpx

from city_profile.lookup_service.errors import MalformedResponseError, NetworkFailureError
from city_profile.lookup_service.reverse_geocoder import reverse_geocode
from city_profile.models.city import Coordinates
from city_profile.models.outcome import Empty, Failure, Success

SE_SQUARE = Coordinates(latitude=-23.5505199, longitude=-46.6333094)


def test_reverse_geocode_returns_trimmed_postcode(mock_client, recorded_requests, settings):
    client = mock_client(
        lambda request: httpx.Response(
            200, json={"address": {"postcode": " 01001-000 ", "city": "São Paulo"}}
        )
    )

    outcome = asyncio.run(reverse_geocode(client, SE_SQUARE, settings))

    assert outcome == Success("01001-000")
    request = recorded_requests[0]
    assert request.url.path == "/reverse"
    assert request.url.params["format"] == "json"
    assert request.url.params["lat"] == "-23.550520"
    assert request.url.params["lon"] == "-46.633309"
    assert request.url.params["addressdetails"] == "1"
    assert request.url.params["accept-language"] == "pt-BR"
    assert request.headers["User-Agent"] == settings.user_agent


def test_reverse_geocode_without_postcode_is_empty(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(200, json={"address": {"city": "X"}}))
    outcome = asyncio.run(reverse_geocode(client, SE_SQUARE, settings))
    assert isinstance(outcome, Empty)


def test_reverse_geocode_without_address_is_empty(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))
    outcome = asyncio.run(reverse_geocode(client, SE_SQUARE, settings))
    assert isinstance(outcome, Empty)


def test_reverse_geocode_bad_status_fails_without_retry(mock_client, recorded_requests, settings):
    client = mock_client(lambda request: httpx.Response(503))

    outcome = asyncio.run(reverse_geocode(client, SE_SQUARE, settings))

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.cause, NetworkFailureError)
    assert len(recorded_requests) == 1


def test_reverse_geocode_transport_error_fails(mock_client, settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    outcome = asyncio.run(reverse_geocode(mock_client(handler), SE_SQUARE, settings))

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.cause, NetworkFailureError)


def test_reverse_geocode_invalid_json_is_malformed(mock_client, settings):
    client = mock_client(lambda request: httpx.Response(200, text="<html>busy</html>"))
    outcome = asyncio.run(reverse_geocode(client, SE_SQUARE, settings))
    assert isinstance(outcome, Failure)
    assert isinstance(outcome.cause, MalformedResponseError)
