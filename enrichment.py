"""Turn raw country catalog entries into rows ready to persist.

estimated_gdp is a rough, randomly perturbed figure:
population * uniform(1000, 2000) / exchange_rate. It is not reproducible
unless a seeded random source is passed in.
"""
import random
from typing import Any, Dict, Mapping, Optional

GDP_MULTIPLIER_MIN = 1000
GDP_MULTIPLIER_MAX = 2000


def first_currency_code(currencies: Any) -> Optional[str]:
    if not isinstance(currencies, list) or not currencies:
        return None
    first = currencies[0]
    code = first.get("code") if isinstance(first, dict) else None
    return code or None


def lookup_rate(rates: Mapping[str, Any], currency_code: Optional[str]) -> Optional[float]:
    if not currency_code:
        return None
    rate_val = rates.get(currency_code)
    if rate_val is None:
        return None
    try:
        return float(rate_val)
    except (TypeError, ValueError):
        return None


def estimate_gdp(population: Optional[int], currency_code: Optional[str],
                 exchange_rate: Optional[float], rng=random) -> Optional[float]:
    if population is None:
        return None
    if not currency_code:
        return 0
    if exchange_rate is not None and exchange_rate > 0:
        multiplier = rng.uniform(GDP_MULTIPLIER_MIN, GDP_MULTIPLIER_MAX)
        return (population * multiplier) / exchange_rate
    # currency known but rate missing or non-positive
    return None


def enrich_country(raw: Mapping[str, Any], rates: Mapping[str, Any], rng=random) -> Dict[str, Any]:
    population = raw.get("population")
    currency_code = first_currency_code(raw.get("currencies"))
    exchange_rate = lookup_rate(rates, currency_code)

    return {
        "name": raw.get("name"),
        "capital": raw.get("capital"),
        "region": raw.get("region"),
        "population": population,
        "currency_code": currency_code,
        "exchange_rate": exchange_rate,
        "estimated_gdp": estimate_gdp(population, currency_code, exchange_rate, rng),
        "flag_url": raw.get("flag"),
    }
