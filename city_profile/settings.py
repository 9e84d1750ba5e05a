"""Runtime settings read from environment variables."""

import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """Endpoints, timeouts and cache policy for the resolution pipeline."""

    model_config = ConfigDict(frozen=True)

    nominatim_url: str = "https://nominatim.openstreetmap.org"
    viacep_url: str = "https://viacep.com.br/ws"
    ibge_url: str = "https://servicodados.ibge.gov.br/api"
    user_agent: str = "CityProfileApp/1.0"
    accept_language: str = "pt-BR"

    geocode_timeout_s: float = Field(10.0, gt=0)
    postal_timeout_s: float = Field(10.0, gt=0)
    population_timeout_s: float = Field(10.0, gt=0)
    names_timeout_s: float = Field(15.0, gt=0)

    cache_freshness_minutes: int = Field(15, gt=0)
    cache_key: str = "last_city_data"

    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0


def load_settings() -> Settings:
    """Build a Settings instance from the process environment.

    Returns:
        Settings with environment overrides applied over the defaults.
    """
    overrides = {
        "nominatim_url": os.getenv("NOMINATIM_URL"),
        "viacep_url": os.getenv("VIACEP_URL"),
        "ibge_url": os.getenv("IBGE_URL"),
        "user_agent": os.getenv("APP_USER_AGENT"),
        "accept_language": os.getenv("ACCEPT_LANGUAGE"),
        "geocode_timeout_s": os.getenv("GEOCODE_TIMEOUT"),
        "postal_timeout_s": os.getenv("POSTAL_TIMEOUT"),
        "population_timeout_s": os.getenv("POPULATION_TIMEOUT"),
        "names_timeout_s": os.getenv("NAMES_TIMEOUT"),
        "cache_freshness_minutes": os.getenv("CACHE_FRESHNESS_MINUTES"),
        "cache_key": os.getenv("CACHE_KEY"),
        "redis_host": os.getenv("REDIS_HOST"),
        "redis_port": os.getenv("REDIS_PORT"),
        "redis_db": os.getenv("REDIS_DB"),
    }
    return Settings(**{key: value for key, value in overrides.items() if value})


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return load_settings()
