"""US Census Bureau ACS demographics, with state-average estimates as a fallback."""

import logging
from typing import Any

import httpx

from app.config import settings
from app.services.content_cache import ContentCache
from app.services.http import outbound_client

logger = logging.getLogger(__name__)

CENSUS_BASE_URL = "https://api.census.gov/data"
CENSUS_YEAR = 2022
DATASET = "acs/acs5"
ACS_SOURCE = "US Census Bureau ACS 5-Year Estimates"
ESTIMATE_SOURCE = "Estimated based on state averages"

POPULATION = "B01003_001E"
MEDIAN_INCOME = "B19013_001E"
HOUSING_UNITS = "B25003_001E"
OWNER_OCCUPIED = "B25003_002E"
LABOR_FORCE = "B23025_002E"
STATE_VARIABLES = (POPULATION, MEDIAN_INCOME, HOUSING_UNITS, OWNER_OCCUPIED, LABOR_FORCE)

STATE_FIPS: dict[str, str] = {
    "Alabama": "01", "Alaska": "02", "Arizona": "04", "Arkansas": "05",
    "California": "06", "Colorado": "08", "Connecticut": "09", "Delaware": "10",
    "District of Columbia": "11", "Florida": "12", "Georgia": "13", "Hawaii": "15",
    "Idaho": "16", "Illinois": "17", "Indiana": "18", "Iowa": "19",
    "Kansas": "20", "Kentucky": "21", "Louisiana": "22", "Maine": "23",
    "Maryland": "24", "Massachusetts": "25", "Michigan": "26", "Minnesota": "27",
    "Mississippi": "28", "Missouri": "29", "Montana": "30", "Nebraska": "31",
    "Nevada": "32", "New Hampshire": "33", "New Jersey": "34", "New Mexico": "35",
    "New York": "36", "North Carolina": "37", "North Dakota": "38", "Ohio": "39",
    "Oklahoma": "40", "Oregon": "41", "Pennsylvania": "42", "Rhode Island": "44",
    "South Carolina": "45", "South Dakota": "46", "Tennessee": "47", "Texas": "48",
    "Utah": "49", "Vermont": "50", "Virginia": "51", "Washington": "53",
    "West Virginia": "54", "Wisconsin": "55", "Wyoming": "56",
}  # fmt: skip

STATE_ABBREVIATIONS: dict[str, str] = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas", "CA": "California",
    "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware", "DC": "District of Columbia",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho", "IL": "Illinois",
    "IN": "Indiana", "IA": "Iowa", "KS": "Kansas", "KY": "Kentucky", "LA": "Louisiana",
    "ME": "Maine", "MD": "Maryland", "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota",
    "MS": "Mississippi", "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma", "OR": "Oregon",
    "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina", "SD": "South Dakota",
    "TN": "Tennessee", "TX": "Texas", "UT": "Utah", "VT": "Vermont", "VA": "Virginia",
    "WA": "Washington", "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
}  # fmt: skip

# Fallback figures for the largest states; everything else uses the defaults.
STATE_POPULATION_ESTIMATES: dict[str, int] = {
    "California": 39_500_000, "Texas": 29_500_000, "Florida": 22_200_000,
    "New York": 19_800_000, "Pennsylvania": 13_000_000, "Illinois": 12_600_000,
    "Ohio": 11_800_000, "Georgia": 10_800_000, "North Carolina": 10_700_000,
    "Michigan": 10_000_000,
}  # fmt: skip
STATE_INCOME_ESTIMATES: dict[str, int] = {
    "California": 84_000, "Texas": 67_000, "Florida": 61_000, "New York": 75_000,
    "Pennsylvania": 68_000, "Illinois": 72_000, "Ohio": 60_000, "Georgia": 65_000,
    "North Carolina": 60_000, "Michigan": 63_000,
}  # fmt: skip
DEFAULT_POPULATION_ESTIMATE = 5_000_000
DEFAULT_INCOME_ESTIMATE = 55_000
CITY_POPULATION_SHARE = 0.01
PEOPLE_PER_HOUSEHOLD = 2.5

INDUSTRY_SPENDING_RATES: dict[str, float] = {
    "Food & Bev": 0.06, "Food & Beverage": 0.06, "Restaurant": 0.06, "Automotive": 0.08,
    "Health & Wellness": 0.02, "Home Services": 0.03, "Professional Services": 0.02,
    "Retail": 0.10, "Lawn Care": 0.01, "Salon": 0.01, "Real Estate": 0.05,
}  # fmt: skip
DEFAULT_SPENDING_RATE = 0.03

INDUSTRY_GROWTH_RATES: dict[str, float] = {
    "Food & Bev": 3.5, "Food & Beverage": 3.5, "Restaurant": 3.5, "Automotive": 2.0,
    "Health & Wellness": 5.5, "Home Services": 4.0, "Professional Services": 3.0,
    "Retail": 2.5, "Lawn Care": 4.5, "Salon": 3.0, "Real Estate": 2.5,
}  # fmt: skip
DEFAULT_GROWTH_RATE = 3.0


def state_name(state: str | None) -> str | None:
    """Canonical full state name for a name or two-letter abbreviation."""
    if not state:
        return None
    value = state.strip()
    if value.upper() in STATE_ABBREVIATIONS:
        return STATE_ABBREVIATIONS[value.upper()]
    for name in STATE_FIPS:
        if name.lower() == value.lower():
            return name
    return None


def state_fips(state: str | None) -> str | None:
    name = state_name(state)
    return STATE_FIPS.get(name) if name else None


def estimate_demographics(state: str | None, city: str | None = None) -> dict[str, Any]:
    """Rough demographics from state averages, scaled down for a city."""
    name = state_name(state) or state or ""
    population = STATE_POPULATION_ESTIMATES.get(name, DEFAULT_POPULATION_ESTIMATE)
    income = STATE_INCOME_ESTIMATES.get(name, DEFAULT_INCOME_ESTIMATE)
    if city:
        population = round(population * CITY_POPULATION_SHARE)

    return {
        "success": True,
        "estimated": True,
        "data": {
            "population": population,
            "median_income": income,
            "home_ownership_rate": 65,
            "labor_force": round(population * 0.48),
            "total_housing_units": round(population / PEOPLE_PER_HOUSEHOLD),
            "owner_occupied_units": round(population / PEOPLE_PER_HOUSEHOLD * 0.65),
            "source": ESTIMATE_SOURCE,
            "year": 2023,
            "geography": f"{city}, {name}" if city else name,
        },
    }


def estimate_market_size(
    demographics: dict[str, Any], industry: str, competitor_count: int = 0
) -> dict[str, Any]:
    """Total addressable market from households × income × industry spend share."""
    population = demographics.get("population") or 100_000
    income = demographics.get("median_income") or DEFAULT_INCOME_ESTIMATE
    rate = INDUSTRY_SPENDING_RATES.get(industry, DEFAULT_SPENDING_RATE)

    households = round(population / PEOPLE_PER_HOUSEHOLD)
    total_market = round(households * income * rate)
    return {
        "total_addressable_market": total_market,
        "estimated_households": households,
        "industry_spending_rate": round(rate * 100, 2),
        "market_per_business": round(total_market / (competitor_count + 1)) if competitor_count > 0 else None,
        "competitor_count": competitor_count,
    }


def estimate_growth_rate(industry: str, demographics: dict[str, Any]) -> dict[str, Any]:
    rate = INDUSTRY_GROWTH_RATES.get(industry, DEFAULT_GROWTH_RATE)
    income = demographics.get("median_income")
    if income:
        if income > 80_000:
            rate += 1.0
        elif income < 40_000:
            rate -= 0.5

    return {
        "annual_growth_rate": round(rate, 1),
        "projected_growth_5_year": round(((1 + rate / 100) ** 5) * 100 - 100),
        "confidence": "moderate",
        "note": "Based on industry averages and local demographics",
    }


def _parse_int(value: Any) -> int | None:
    try:
        return int(value) or None
    except (TypeError, ValueError):
        return None


class CensusClient:
    """State-level ACS 5-year lookups."""

    def __init__(
        self,
        cache: ContentCache,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cache = cache
        self.api_key = settings.census_api_key if api_key is None else api_key
        self._http_client = http_client

    async def get_demographics(self, state: str | None, city: str | None = None) -> dict[str, Any]:
        """Demographics for ``state``; estimates when the API is unusable."""
        if not self.api_key:
            logger.info("Census API key not configured, returning estimates")
            return estimate_demographics(state, city)

        fips = state_fips(state)
        if fips is None:
            return estimate_demographics(state, city)

        params = {"state_fips": fips, "year": CENSUS_YEAR}
        cached = await self.cache.get("demographics", params)
        if cached is not None:
            return {**cached.data, "from_cache": True}

        url = f"{CENSUS_BASE_URL}/{CENSUS_YEAR}/{DATASET}"
        query = {"get": "NAME," + ",".join(STATE_VARIABLES), "for": f"state:{fips}", "key": self.api_key}
        try:
            async with outbound_client(self._http_client) as client:
                response = await client.get(url, params=query)
                response.raise_for_status()
                rows = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Census lookup failed for state %s: %s", fips, e)
            return estimate_demographics(state, city)

        if not isinstance(rows, list) or len(rows) < 2:
            return estimate_demographics(state, city)

        headers, values = rows[0], rows[1]

        def value(variable: str) -> int | None:
            return _parse_int(values[headers.index(variable)]) if variable in headers else None

        housing = value(HOUSING_UNITS)
        owner_occupied = value(OWNER_OCCUPIED)
        result = {
            "success": True,
            "estimated": False,
            "data": {
                "population": value(POPULATION),
                "median_income": value(MEDIAN_INCOME),
                "home_ownership_rate": round(owner_occupied / housing * 100) if housing and owner_occupied else None,
                "labor_force": value(LABOR_FORCE),
                "total_housing_units": housing,
                "owner_occupied_units": owner_occupied,
                "source": ACS_SOURCE,
                "year": CENSUS_YEAR,
                "geography": values[0],
            },
        }
        await self.cache.set("demographics", params, result)
        return result
