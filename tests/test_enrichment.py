import random

import pytest

from enrichment import enrich_country, estimate_gdp, first_currency_code, lookup_rate


class FixedMultiplier:
    def __init__(self, value):
        self.value = value

    def uniform(self, a, b):
        assert (a, b) == (1000, 2000)
        return self.value


def test_testland_scenario():
    raw = {"name": "Testland", "population": 1000000, "currencies": [{"code": "TST"}]}
    record = enrich_country(raw, {"TST": 2}, random.Random(7))

    assert record["currency_code"] == "TST"
    assert record["exchange_rate"] == 2
    assert 500000000 <= record["estimated_gdp"] <= 1000000000


def test_gdp_uses_multiplier():
    assert estimate_gdp(1000, "TST", 4.0, FixedMultiplier(1500)) == 375000


@pytest.mark.parametrize("seed", range(20))
def test_gdp_within_bounds(seed):
    population, rate = 5_000_000, 3.5
    gdp = estimate_gdp(population, "TST", rate, random.Random(seed))
    assert population * 1000 / rate <= gdp <= population * 2000 / rate


def test_unknown_population_gives_null():
    raw = {"name": "Nowhere", "population": None, "currencies": [{"code": "TST"}]}
    assert enrich_country(raw, {"TST": 2})["estimated_gdp"] is None
    assert enrich_country({"name": "Nowhere", "currencies": []}, {})["estimated_gdp"] is None


@pytest.mark.parametrize("currencies", [[], None, [{"name": "No code"}], [{"code": ""}], [None]])
def test_missing_currency_gives_zero(currencies):
    raw = {"name": "Cashless", "population": 42, "currencies": currencies}
    record = enrich_country(raw, {"TST": 2})
    assert record["currency_code"] is None
    assert record["exchange_rate"] is None
    assert record["estimated_gdp"] == 0


def test_missing_rate_gives_null():
    raw = {"name": "Offgrid", "population": 42, "currencies": [{"code": "XYZ"}]}
    record = enrich_country(raw, {"TST": 2})
    assert record["currency_code"] == "XYZ"
    assert record["exchange_rate"] is None
    assert record["estimated_gdp"] is None


@pytest.mark.parametrize("rate", [0, -1.5])
def test_non_positive_rate_gives_null(rate):
    assert estimate_gdp(42, "TST", rate) is None


def test_only_first_currency_counts():
    assert first_currency_code([{"code": "AAA"}, {"code": "BBB"}]) == "AAA"


def test_lookup_rate_coerces_to_float():
    assert lookup_rate({"TST": "2.5"}, "TST") == 2.5
    assert lookup_rate({"TST": "n/a"}, "TST") is None
    assert lookup_rate({"TST": 2}, None) is None


def test_fields_copied_through():
    raw = {
        "name": "Testland",
        "capital": "Test City",
        "region": "Testregion",
        "population": 10,
        "flag": "https://flags.test/testland.svg",
        "currencies": [{"code": "TST"}],
    }
    record = enrich_country(raw, {"TST": 1})
    assert record["name"] == "Testland"
    assert record["capital"] == "Test City"
    assert record["region"] == "Testregion"
    assert record["population"] == 10
    assert record["flag_url"] == "https://flags.test/testland.svg"
