"""City profile and coordinate models."""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field, computed_field

from city_profile.formatting import format_population


class Coordinates(BaseModel):
    """Device position produced once per resolution attempt."""

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)


class CityProfile(BaseModel):
    """City data assembled from a successful population lookup."""

    city_name: str = Field(min_length=1)
    region_code: str
    population: str = Field(pattern=r"^\d+$")
    locality_code: str = Field(min_length=1)
    fetched_at: datetime

    @computed_field
    @property
    def population_display(self) -> str:
        return format_population(self.population)

    def is_fresh(self, now: datetime, window: timedelta) -> bool:
        """Check whether the profile is younger than the freshness window.

        Args:
            now: Current time, timezone-aware.
            window: Maximum age before a refresh is needed.

        Returns:
            True when ``now - fetched_at`` is below the window.
        """
        return now - self.fetched_at < window
