"""Google Places: nearby competitors and market saturation."""

import logging
import math
from typing import Any

import httpx

from app.config import settings
from app.services.content_cache import ContentCache
from app.services.http import outbound_client

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
NEARBY_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"

DEFAULT_RADIUS_METERS = 5000
MAX_COMPETITORS = 20
METERS_PER_MILE = 1609.34

INDUSTRY_SEARCH_KEYWORDS: dict[str, str] = {
    "Food & Bev": "restaurant OR cafe OR bakery",
    "Food & Beverage": "restaurant OR cafe OR bakery",
    "Restaurant": "restaurant",
    "Automotive": "auto repair OR car dealer OR auto service",
    "Health & Wellness": "gym OR spa OR wellness OR health clinic",
    "Home Services": "plumber OR electrician OR contractor OR home repair",
    "Professional Services": "lawyer OR accountant OR consultant",
    "Retail": "retail store OR shop",
    "Lawn Care": "lawn care OR landscaping",
    "Salon": "hair salon OR beauty salon OR barber",
    "Real Estate": "real estate agent OR property management",
}


def industry_keyword(industry: str) -> str:
    return INDUSTRY_SEARCH_KEYWORDS.get(industry, industry.lower())


def _competitor(place: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": place.get("name"),
        "address": place.get("vicinity"),
        "rating": place.get("rating"),
        "review_count": place.get("user_ratings_total") or 0,
        "price_level": place.get("price_level"),
        "place_id": place.get("place_id"),
        "types": place.get("types") or [],
        "open_now": (place.get("opening_hours") or {}).get("open_now"),
        "location": (place.get("geometry") or {}).get("location"),
    }


def calculate_market_saturation(competitors: list[dict[str, Any]], radius: float) -> dict[str, Any]:
    """Score how crowded the market is (0 = wide open, 100 = saturated)."""
    if not competitors:
        return {"level": "low", "score": 10, "description": "Very few competitors in this area"}

    area_square_miles = math.pi * (radius / METERS_PER_MILE) ** 2
    per_square_mile = len(competitors) / area_square_miles

    ratings = [c["rating"] for c in competitors if c.get("rating")]
    avg_rating = sum(ratings) / len(ratings) if ratings else 0
    total_reviews = sum(c.get("review_count") or 0 for c in competitors)

    score = 50
    if per_square_mile < 2:
        score -= 20
    elif per_square_mile < 5:
        score -= 10
    elif per_square_mile > 15:
        score += 20
    elif per_square_mile > 10:
        score += 10

    if avg_rating > 4.5:
        score += 10
    elif avg_rating < 3.5:
        score -= 10

    if total_reviews > 5000:
        score += 15
    elif total_reviews < 500:
        score -= 15

    score = max(0, min(100, score))
    if score < 35:
        level, description = "low", "Underserved market with room for growth"
    elif score < 65:
        level, description = "medium", "Moderately competitive market"
    else:
        level, description = "high", "Highly competitive market with established players"

    return {
        "level": level,
        "score": score,
        "description": description,
        "competitors_per_sq_mile": round(per_square_mile, 2),
        "avg_rating": round(avg_rating, 2),
        "total_reviews": total_reviews,
    }


class PlacesClient:
    """Competitor lookups against the Google Places web service."""

    def __init__(
        self,
        cache: ContentCache,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cache = cache
        self.api_key = settings.google_places_api_key if api_key is None else api_key
        self._http_client = http_client

    async def _geocode(self, client: httpx.AsyncClient, location: str) -> dict[str, float] | None:
        response = await client.get(GEOCODE_URL, params={"address": location, "key": self.api_key})
        response.raise_for_status()
        results = response.json().get("results") or []
        if not results:
            return None
        return results[0]["geometry"]["location"]

    async def find_competitors(
        self, location: str, industry: str, radius: int = DEFAULT_RADIUS_METERS
    ) -> dict[str, Any]:
        """Top nearby businesses in ``industry`` around ``location``.

        Failures are reported in the result (``success: false``) rather than
        raised, so a report can still be built from the other sources.
        """
        if not self.api_key:
            return {"success": False, "error": "Google Places API not configured", "competitors": []}

        params = {"location": location.strip().lower(), "industry": industry.strip().lower(), "radius": radius}
        cached = await self.cache.get("competitors", params)
        if cached is not None:
            return {**cached.data, "from_cache": True}

        try:
            async with outbound_client(self._http_client) as client:
                coordinates = await self._geocode(client, location)
                if coordinates is None:
                    return {"success": False, "error": "Location not found", "competitors": []}

                response = await client.get(
                    NEARBY_SEARCH_URL,
                    params={
                        "location": f"{coordinates['lat']},{coordinates['lng']}",
                        "radius": radius,
                        "keyword": industry_keyword(industry),
                        "key": self.api_key,
                    },
                )
                response.raise_for_status()
                places = response.json().get("results") or []
        except httpx.HTTPError as e:
            logger.warning("Places lookup failed for %s / %s: %s", location, industry, e)
            return {"success": False, "error": "Competitor lookup failed", "competitors": []}

        result = {
            "success": True,
            "coordinates": coordinates,
            "competitors": [_competitor(place) for place in places[:MAX_COMPETITORS]],
            "total_found": len(places),
        }
        await self.cache.set("competitors", params, result)
        return result
