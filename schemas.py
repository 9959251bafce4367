from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator
from typing import Optional

from enrichment import estimate_gdp


def to_utc_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class SortOption(str, Enum):
    gdp_desc = "gdp_desc"
    gdp_asc = "gdp_asc"
    name_asc = "name_asc"
    name_desc = "name_desc"


class CountryBase(BaseModel):
    name: str = Field(..., examples=["Nigeria"])
    capital: Optional[str] = Field(None, examples=["Abuja"])
    region: Optional[str] = Field(None, examples=["Africa"])
    population: Optional[int] = Field(None, description="The population of the country", examples=[200000000])
    currency_code: Optional[str] = Field(None, description="The currency code of the country", examples=["NGN"])
    exchange_rate: Optional[float] = Field(None, description="Units of local currency per 1 USD", examples=[1600.0])
    flag_url: Optional[str] = Field(None, description="The URL of the country's flag")


class CountryCreate(CountryBase):
    """Payload for manually adding a country; name, population and currency_code are required."""
    population: int = Field(..., gt=0, description="The population of the country", examples=[200000000])
    currency_code: str = Field(..., description="The currency code of the country", examples=["NGN"])
    exchange_rate: Optional[float] = Field(None, gt=0, description="Units of local currency per 1 USD", examples=[1600.0])
    estimated_gdp: Optional[float] = Field(None, description="Derived from population and exchange rate")

    @field_validator("name", "currency_code")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("is required")
        return value.strip()

    @model_validator(mode="after")
    def compute_estimated_gdp(self):
        self.estimated_gdp = estimate_gdp(self.population, self.currency_code, self.exchange_rate)
        return self


class CountryResponse(CountryBase):
    id: int
    estimated_gdp: Optional[float] = None
    last_refreshed_at: Optional[datetime] = Field(None, description="The last time the country data was refreshed")
    model_config = {"from_attributes": True}

    @field_serializer("last_refreshed_at")
    def serialize_last_refreshed_at(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_iso(value)


class RefreshResponse(BaseModel):
    message: str
    total_countries_processed: int


class StatusResponse(BaseModel):
    total_countries: int
    last_refreshed_at: Optional[str] = None
