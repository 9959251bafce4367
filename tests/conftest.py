import os
import random
import tempfile
from datetime import datetime, timedelta, timezone

# Point the app at throwaway storage before any app module reads the environment.
_TMP_DIR = tempfile.mkdtemp(prefix="country-api-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["SUMMARY_IMAGE_PATH"] = os.path.join(_TMP_DIR, "cache", "summary.png")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx  # noqa: E402
import pytest  # noqa: E402

import models  # noqa: E402,F401
from database import Base, async_session, engine  # noqa: E402
from main import app  # noqa: E402
from service import country_service  # noqa: E402

COUNTRIES_URL = "https://countries.test/v2/all"
RATES_URL = "https://rates.test/v6/latest/USD"


class FakeUpstream:
    """Stands in for the country catalog and exchange-rate APIs."""

    def __init__(self):
        self.countries = []
        self.rates = {}
        self.failures = {}
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        failure = self.failures.get(url)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(failure, json={"error": "upstream down"})
        if url == COUNTRIES_URL:
            return httpx.Response(200, json=self.countries)
        if url == RATES_URL:
            return httpx.Response(200, json={"result": "success", "base_code": "USD", "rates": self.rates})
        return httpx.Response(404)


class Clock:
    def __init__(self, start=datetime(2025, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        now = self.current
        self.current = now + timedelta(minutes=5)
        return now


@pytest.fixture(autouse=True)
async def db_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def image_path(tmp_path):
    return tmp_path / "cache" / "summary.png"


@pytest.fixture(autouse=True)
def service(monkeypatch, upstream, clock, image_path):
    monkeypatch.setattr(country_service, "countries_url", COUNTRIES_URL)
    monkeypatch.setattr(country_service, "rates_url", RATES_URL)
    monkeypatch.setattr(country_service, "transport", httpx.MockTransport(upstream.handler))
    monkeypatch.setattr(country_service, "rng", random.Random(1234))
    monkeypatch.setattr(country_service, "clock", clock)
    monkeypatch.setattr(country_service, "image_path", str(image_path))
    return country_service


@pytest.fixture
async def client():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def session():
    async with async_session() as s:
        yield s


def make_country(name, population=1000000, currency="TST", region="Testregion", capital=None):
    return {
        "name": name,
        "capital": capital or f"{name} City",
        "region": region,
        "population": population,
        "flag": f"https://flags.test/{name.lower()}.svg",
        "currencies": [{"code": currency, "name": f"{currency} dollar", "symbol": "$"}] if currency else [],
    }
