import httpx
import pytest

from city_profile.settings import Settings


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def recorded_requests():
    return []


@pytest.fixture
def mock_client(recorded_requests):
    def build(handler):
        def record(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(record))

    return build
