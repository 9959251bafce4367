import asyncio
import httpx
import os
import random
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from dotenv import load_dotenv
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from enrichment import enrich_country
from logger import get_logger
from models import LAST_REFRESHED_AT_KEY, Country, GlobalSetting
from schemas import to_utc_iso
from summary import generate_summary_image

logger = get_logger(__name__)

load_dotenv()

COUNTRY_API_URL = os.getenv(
    "COUNTRY_API_URL",
    "https://restcountries.com/v2/all?fields=name,capital,region,population,flag,currencies",
)
EXCHANGE_RATE_API_URL = os.getenv("RATE_API_URL", "https://open.er-api.com/v6/latest/USD")
EXTERNAL_API_TIMEOUT = float(os.getenv("EXTERNAL_API_TIMEOUT", "30"))
SUMMARY_IMAGE_PATH = os.getenv("SUMMARY_IMAGE_PATH", os.path.join("cache", "summary.png"))
USER_AGENT = "Country-Currency-API/1.0"

MUTABLE_FIELDS = (
    "capital",
    "region",
    "population",
    "currency_code",
    "exchange_rate",
    "estimated_gdp",
    "flag_url",
)


class DataSourceUnavailable(Exception):
    """One of the upstream APIs could not be reached or returned unusable data."""

    def __init__(self, url: str, reason: Optional[str] = None):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not fetch data from {url}")


class RefreshResult(NamedTuple):
    total_processed: int
    refreshed_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CountryService:
    def __init__(
        self,
        countries_url: str = COUNTRY_API_URL,
        rates_url: str = EXCHANGE_RATE_API_URL,
        timeout: float = EXTERNAL_API_TIMEOUT,
        image_path: str = SUMMARY_IMAGE_PATH,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng=random,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.countries_url = countries_url
        self.rates_url = rates_url
        self.timeout = timeout
        self.image_path = image_path
        self.transport = transport
        self.rng = rng
        self.clock = clock

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
            transport=self.transport,
        )

    async def _get_json(self, client: httpx.AsyncClient, url: str) -> Any:
        try:
            # httpx applies the timeout per phase; this bounds the whole request
            response = await asyncio.wait_for(client.get(url), self.timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Error fetching data from {url}: {e}")
            raise DataSourceUnavailable(url, str(e)) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out after {self.timeout}s fetching {url}")
            raise DataSourceUnavailable(url, f"timed out after {self.timeout}s") from e
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            raise DataSourceUnavailable(url, "invalid JSON payload") from e

    async def fetch_countries_from_api(self) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        async with self._client() as client:
            countries_data = await self._get_json(client, self.countries_url)
            if not isinstance(countries_data, list):
                logger.error("Countries payload is not a list")
                raise DataSourceUnavailable(self.countries_url, "unexpected payload")
            logger.info(f"Fetched {len(countries_data)} countries")

            exchange_rate_data = await self._get_json(client, self.rates_url)
            rates = exchange_rate_data.get("rates") if isinstance(exchange_rate_data, dict) else None
            if not isinstance(rates, dict):
                logger.error("Exchange rates data is missing or invalid")
                raise DataSourceUnavailable(self.rates_url, "unexpected payload")
            logger.info(f"Fetched {len(rates)} exchange rates")

        return countries_data, rates

    def prepare_records(self, countries_data: List[Dict[str, Any]], rates: Dict[str, Any]) -> List[Dict[str, Any]]:
        prepared = []
        for raw in countries_data:
            if not isinstance(raw, dict) or not isinstance(raw.get("name"), str) or not raw["name"]:
                logger.warning(f"Skipping country record without a usable name: {raw!r}")
                continue
            prepared.append(enrich_country(raw, rates, self.rng))
        return prepared

    @staticmethod
    async def find_by_name(session: AsyncSession, name: str) -> Optional[Country]:
        stmt = select(Country).where(func.lower(Country.name) == name.lower())
        result = await session.execute(stmt)
        return result.scalars().first()

    async def upsert_country(self, session: AsyncSession, record: Dict[str, Any], refreshed_at: datetime) -> Country:
        existing = await self.find_by_name(session, record["name"])
        if existing:
            for field in MUTABLE_FIELDS:
                setattr(existing, field, record[field])
            existing.last_refreshed_at = refreshed_at
            return existing

        new_country = Country(
            name=record["name"],
            last_refreshed_at=refreshed_at,
            **{field: record[field] for field in MUTABLE_FIELDS},
        )
        session.add(new_country)
        return new_country

    @staticmethod
    async def set_last_refreshed_at(session: AsyncSession, refreshed_at: datetime) -> None:
        setting = await session.get(GlobalSetting, LAST_REFRESHED_AT_KEY)
        value = to_utc_iso(refreshed_at)
        if setting:
            setting.value = value
            setting.updated_at = refreshed_at
        else:
            session.add(GlobalSetting(key=LAST_REFRESHED_AT_KEY, value=value, updated_at=refreshed_at))

    @staticmethod
    async def get_last_refreshed_at(session: AsyncSession) -> Optional[str]:
        setting = await session.get(GlobalSetting, LAST_REFRESHED_AT_KEY)
        return setting.value if setting else None

    async def refresh_countries(self, session: AsyncSession) -> RefreshResult:
        # both sources must be in hand before the database is touched
        countries_data, rates = await self.fetch_countries_from_api()

        refresh_time = self.clock()
        prepared = self.prepare_records(countries_data, rates)

        try:
            async with session.begin():
                for rec in prepared:
                    await self.upsert_country(session, rec, refresh_time)
                await self.set_last_refreshed_at(session, refresh_time)
                await session.flush()

                await asyncio.to_thread(
                    generate_summary_image, prepared, len(prepared), refresh_time, self.image_path
                )
            # commit handled by context manager
        except SQLAlchemyError:
            logger.exception("Database error during refresh; rolled back.")
            raise

        logger.info(f"Refresh completed: {len(prepared)} countries processed")
        return RefreshResult(len(prepared), refresh_time)


country_service = CountryService()
