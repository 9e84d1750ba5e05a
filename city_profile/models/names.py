"""Name ranking model."""

from pydantic import BaseModel, Field, computed_field, field_validator

from city_profile.formatting import format_grouped


class NameRankingEntry(BaseModel):
    """One row of the census first-name ranking."""

    name: str
    frequency: int = Field(ge=0)
    rank: int = Field(ge=1)

    @field_validator("name")
    @classmethod
    def _upper_name(cls, value: str) -> str:
        return value.strip().upper()

    @computed_field
    @property
    def frequency_display(self) -> str:
        return format_grouped(self.frequency)
