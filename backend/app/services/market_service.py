"""Market report assembly: competitors, saturation, demographics and scoring.

Sections beyond the basics are only included when the caller's plan lists
the matching market feature.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.plans import get_plan
from app.errors import AppError
from app.models.market_report import MarketReport
from app.services.census_client import CensusClient, estimate_growth_rate, estimate_market_size
from app.services.places_client import DEFAULT_RADIUS_METERS, PlacesClient, calculate_market_saturation
from app.services.sec_client import SecClient

logger = logging.getLogger(__name__)

COMPANY_SIZE_RADIUS: dict[str, int] = {
    "small": 5_000,
    "medium": 25_000,
    "large": 100_000,
    "national": 250_000,
}
ENTERPRISE_SIZES = frozenset({"large", "national"})

# Optional report section -> market feature that unlocks it
SECTION_FEATURES: dict[str, str] = {
    "demographics": "basic_demographics",
    "market_size": "detailed_demographics",
    "opportunity": "opportunity_score",
    "recommendations": "recommendations",
    "public_competitors": "detailed_demographics",
}

INCOME_SWEET_SPOT = {"min": 40_000, "ideal": 65_000, "max": 120_000}
NEUTRAL_MOMENTUM = 50


@dataclass
class ReportRequest:
    industry: str
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    company_size: str = "small"
    radius: int | None = None

    @property
    def location(self) -> str:
        if self.zip_code:
            return self.zip_code
        return ", ".join(part for part in (self.city, self.state) if part)

    @property
    def search_radius(self) -> int:
        return self.radius or COMPANY_SIZE_RADIUS.get(self.company_size, DEFAULT_RADIUS_METERS)


def validate_report_request(req: ReportRequest) -> None:
    """Raises AppError 400 for a missing industry or location."""
    if not (req.industry or "").strip():
        raise AppError(status.HTTP_400_BAD_REQUEST, "Industry is required")
    if not (req.city or req.state or req.zip_code):
        raise AppError(status.HTTP_400_BAD_REQUEST, "Location is required (city/state or zip code)")


def _income_fit(median_income: float | None) -> float:
    income = median_income or 55_000
    low, ideal, high = INCOME_SWEET_SPOT["min"], INCOME_SWEET_SPOT["ideal"], INCOME_SWEET_SPOT["max"]
    if low <= income <= high:
        max_distance = max(ideal - low, high - ideal)
        return 100 - abs(income - ideal) / max_distance * 40
    outside = low - income if income < low else income - high
    return max(20, 60 - outside / 10_000 * 10)


def _quality_gap(competitors: list[dict[str, Any]]) -> float:
    ratings = [c["rating"] for c in competitors if c.get("rating") is not None]
    if not ratings:
        return 50
    avg_rating = sum(ratings) / len(ratings)
    low_rated_share = len([r for r in ratings if r < 3.5]) / len(competitors)
    return (5 - avg_rating) / 2 * 50 + low_rated_share * 50


def calculate_opportunity_score(
    saturation: dict[str, Any],
    growth: dict[str, Any],
    demographics: dict[str, Any],
    competitors: list[dict[str, Any]],
) -> dict[str, Any]:
    """Weighted 0-100 score: competition 30%, growth 25%, income fit 20%, demand 15%, quality gap 10%."""
    factors = [
        ("Low Competition", 100 - saturation["score"], 0.30),
        ("Market Growth", max(0, min(100, 50 + growth["annual_growth_rate"] * 10)), 0.25),
        ("Income Match", _income_fit(demographics.get("median_income")), 0.20),
        ("Rising Demand", NEUTRAL_MOMENTUM, 0.15),
        ("Quality Gap", _quality_gap(competitors), 0.10),
    ]
    score = round(sum(value * weight for _, value, weight in factors))
    ranked = sorted(factors, key=lambda f: f[1] * f[2], reverse=True)

    if score >= 70:
        level, label = "high", "High Opportunity"
        rationale = f"Strong opportunity driven by {ranked[0][0].lower()} and {ranked[1][0].lower()}."
    elif score >= 50:
        level, label = "medium", "Moderate Opportunity"
        rationale = f"Moderate opportunity. {ranked[0][0]} is favorable, but consider {ranked[-1][0].lower()}."
    elif score >= 35:
        level, label = "low", "Limited Opportunity"
        rationale = "Limited opportunity. Focus on differentiation through quality and specialization."
    else:
        level, label = "challenging", "Challenging Market"
        rationale = (
            f"Challenging market due to {ranked[-1][0].lower()}. Success requires significant competitive advantage."
        )

    return {
        "score": score,
        "level": level,
        "label": label,
        "factors": [
            {"name": name, "score": round(value), "contribution": round(value * weight)}
            for name, value, weight in ranked
        ],
        "top_factors": [name for name, _, _ in ranked[:3]],
        "rationale": rationale,
    }


def generate_recommendations(
    demographics: dict[str, Any],
    saturation: dict[str, Any],
    opportunity: dict[str, Any],
    competitors: list[dict[str, Any]],
) -> dict[str, Any]:
    income = demographics.get("median_income") or 0
    target_customer = "General consumers"
    if income > 100_000:
        target_customer += " with high disposable income"
    elif 0 < income < 50_000:
        target_customer += " seeking value"

    differentiators = []
    avg_rating = sum(c.get("rating") or 0 for c in competitors) / len(competitors) if competitors else 0
    if avg_rating < 4.0:
        differentiators.append(
            {
                "type": "quality",
                "title": "Superior Service Quality",
                "description": f"Avg competitor rating is {avg_rating:.1f}. Aim for 4.5+ to stand out.",
            }
        )
    if saturation["score"] > 60:
        differentiators.append(
            {
                "type": "niche",
                "title": "Niche Specialization",
                "description": "Crowded market requires focused positioning on underserved segment.",
            }
        )
    elif saturation["score"] < 35:
        differentiators.append(
            {
                "type": "pioneer",
                "title": "First-Mover Advantage",
                "description": "Underserved market allows broader positioning as the go-to provider.",
            }
        )

    risks = []
    if saturation["score"] > 70:
        risks.append(
            {
                "level": "high",
                "title": "High Competition",
                "description": "Market is saturated with established players. Customer acquisition will be challenging.",
            }
        )
    if 0 < income < 40_000:
        risks.append(
            {
                "level": "medium",
                "title": "Lower Spending Power",
                "description": "Below-average income levels may limit pricing power.",
            }
        )
    if opportunity["score"] < 40:
        risks.append(
            {
                "level": "high",
                "title": "Limited Growth Potential",
                "description": "Market conditions suggest challenging environment for new entrants.",
            }
        )
    if not risks:
        risks.append(
            {
                "level": "low",
                "title": "Standard Business Risks",
                "description": "Normal market entry considerations apply. Focus on execution and customer acquisition.",
            }
        )

    if opportunity["score"] >= 60:
        summary = "Market conditions are favorable for entry with proper positioning."
    elif opportunity["score"] >= 40:
        summary = "Viable market with moderate competition. Differentiation is key."
    else:
        summary = "Consider alternative locations or significant competitive advantages before proceeding."

    return {
        "target_customer": target_customer,
        "differentiators": differentiators[:4],
        "risks": risks[:3],
        "summary": summary,
    }


def filter_sections(report: dict[str, Any], market_features: frozenset[str]) -> dict[str, Any]:
    """Drop optional sections the plan does not unlock."""
    return {
        key: value
        for key, value in report.items()
        if key not in SECTION_FEATURES or SECTION_FEATURES[key] in market_features
    }


async def build_report(
    req: ReportRequest,
    plan_name: str,
    places: PlacesClient,
    census: CensusClient,
    sec: SecClient | None = None,
) -> dict[str, Any]:
    """Assemble the full report for ``req`` filtered to ``plan_name``'s market features."""
    plan = get_plan(plan_name)
    radius = req.search_radius

    competitor_result = await places.find_competitors(req.location, req.industry, radius)
    competitors = competitor_result.get("competitors") or []
    demographic_result = await census.get_demographics(req.state, req.city)
    demographics = demographic_result.get("data") or {}

    saturation = calculate_market_saturation(competitors, radius)
    growth = estimate_growth_rate(req.industry, demographics)
    opportunity = calculate_opportunity_score(saturation, growth, demographics, competitors)

    report: dict[str, Any] = {
        "location": {
            "city": req.city,
            "state": req.state,
            "zip_code": req.zip_code,
            "coordinates": competitor_result.get("coordinates"),
            "radius_meters": radius,
        },
        "industry": req.industry,
        "company_size": req.company_size,
        "tier": plan.name,
        "competitors": {
            "items": competitors,
            "total_found": competitor_result.get("total_found", len(competitors)),
            "available": bool(competitor_result.get("success")),
            "error": competitor_result.get("error"),
        },
        "saturation": saturation,
        "growth_rate": growth,
        "demographics": {**demographics, "estimated": demographic_result.get("estimated", False)},
        "market_size": estimate_market_size(demographics, req.industry, len(competitors)),
        "opportunity": opportunity,
        "recommendations": generate_recommendations(demographics, saturation, opportunity, competitors),
    }

    if (
        sec is not None
        and competitors
        and req.company_size in ENTERPRISE_SIZES
        and SECTION_FEATURES["public_competitors"] in plan.market_features
    ):
        enriched = await sec.enrich_competitors(competitors, max_enrich=5)
        report["public_competitors"] = [c for c in enriched if c.get("sec_data")]
        logger.info("SEC enrichment: %d of %d competitors", len(report["public_competitors"]), len(enriched))

    return filter_sections(report, plan.market_features)


async def get_owned_report(db: AsyncSession, report_id: uuid.UUID, user_id: uuid.UUID) -> MarketReport:
    report = await db.get(MarketReport, report_id)
    if report is None:
        raise AppError(status.HTTP_404_NOT_FOUND, "Report not found")
    if report.user_id != user_id:
        raise AppError(status.HTTP_403_FORBIDDEN, "Access denied")
    return report


async def list_reports(
    db: AsyncSession, user_id: uuid.UUID, limit: int = 20, offset: int = 0
) -> tuple[list[MarketReport], int]:
    total = await db.scalar(select(func.count()).select_from(MarketReport).where(MarketReport.user_id == user_id))
    result = await db.execute(
        select(MarketReport)
        .where(MarketReport.user_id == user_id)
        .order_by(MarketReport.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0
