"""SEC EDGAR: public-company intelligence for competitor cards.

Data sources:
- ticker → CIK map: https://www.sec.gov/files/company_tickers.json
- submissions:      https://data.sec.gov/submissions/CIK{cik}.json
- XBRL facts:       https://data.sec.gov/api/xbrl/companyfacts/CIK{cik}.json

SEC requires a User-Agent with contact details (``settings.sec_user_agent``).
"""

import asyncio
import logging
from typing import Any

import httpx
from fastapi import Request

from app.config import settings
from app.database import utcnow
from app.services.content_cache import ContentCache
from app.services.http import outbound_client

logger = logging.getLogger(__name__)

TICKERS_URL = "https://www.sec.gov/files/company_tickers.json"
SUBMISSIONS_URL = "https://data.sec.gov/submissions/CIK{cik}.json"
FACTS_URL = "https://data.sec.gov/api/xbrl/companyfacts/CIK{cik}.json"
FILINGS_URL = (
    "https://www.sec.gov/cgi-bin/browse-edgar?action=getcompany&CIK={cik}&type=10-K&dateb=&owner=include&count=1"
)

REVENUE_CONCEPTS = (
    "RevenueFromContractWithCustomerExcludingAssessedTax",
    "Revenues",
    "SalesRevenueNet",
    "RevenueFromContractWithCustomerIncludingAssessedTax",
)
TRACKED_FORMS = ("10-K", "10-Q", "8-K")

# Common company names → ticker, checked before anything else.
KNOWN_TICKERS: dict[str, str] = {
    "alaska airlines": "ALK",
    "alaska air group": "ALK",
    "alaska air": "ALK",
    "delta air lines": "DAL",
    "delta airlines": "DAL",
    "delta": "DAL",
    "united airlines": "UAL",
    "united air lines": "UAL",
    "american airlines": "AAL",
    "southwest airlines": "LUV",
    "southwest": "LUV",
    "jetblue": "JBLU",
    "spirit airlines": "SAVE",
    "frontier airlines": "ULCC",
    "hawaiian airlines": "HA",
    "sun country": "SNCY",
    "allegiant": "ALGT",
    "skywest": "SKYW",
    "fedex": "FDX",
    "amazon": "AMZN",
    "apple": "AAPL",
    "microsoft": "MSFT",
    "google": "GOOGL",
    "alphabet": "GOOGL",
    "meta": "META",
    "facebook": "META",
    "tesla": "TSLA",
    "walmart": "WMT",
    "target": "TGT",
    "costco": "COST",
    "home depot": "HD",
    "lowes": "LOW",
    "starbucks": "SBUX",
    "mcdonalds": "MCD",
    "nike": "NKE",
    "coca-cola": "KO",
    "pepsico": "PEP",
    "pepsi": "PEP",
    "johnson & johnson": "JNJ",
    "procter & gamble": "PG",
    "exxonmobil": "XOM",
    "exxon": "XOM",
    "chevron": "CVX",
    "bank of america": "BAC",
    "jpmorgan": "JPM",
    "jp morgan": "JPM",
    "wells fargo": "WFC",
    "goldman sachs": "GS",
    "morgan stanley": "MS",
    "united parcel service": "UPS",
    "ups": "UPS",
    "boeing": "BA",
    "lockheed martin": "LMT",
    "raytheon": "RTX",
    "general electric": "GE",
    "general motors": "GM",
    "ford motor": "F",
    "ford": "F",
}


def find_ticker(company_name: str | None) -> str | None:
    """Ticker for a company name: exact match first, then substring either way."""
    if not company_name:
        return None
    normalized = company_name.strip().lower()
    if normalized in KNOWN_TICKERS:
        return KNOWN_TICKERS[normalized]
    for name, ticker in KNOWN_TICKERS.items():
        if name in normalized or normalized in name:
            return ticker
    return None


def format_financial_value(value: float | int | None) -> str | None:
    """10_400_000_000 → "$10.4B"."""
    if value is None:
        return None
    sign = "-" if value < 0 else ""
    amount = abs(value)
    if amount >= 1e12:
        return f"{sign}${amount / 1e12:.1f}T"
    if amount >= 1e9:
        return f"{sign}${amount / 1e9:.1f}B"
    if amount >= 1e6:
        return f"{sign}${amount / 1e6:.1f}M"
    if amount >= 1e3:
        return f"{sign}${amount / 1e3:.0f}K"
    return f"{sign}${amount:.0f}"


def _concept_units(facts: dict[str, Any], namespace: str, concept: str) -> list[dict[str, Any]]:
    data = ((facts.get("facts") or {}).get(namespace) or {}).get(concept) or {}
    units = data.get("units") or {}
    return units.get("USD") or units.get("shares") or units.get("pure") or []


def latest_value(facts: dict[str, Any], namespace: str, concept: str, form: str = "10-K") -> dict[str, Any] | None:
    """Most recent reported value of an XBRL concept on ``form`` filings."""
    relevant = [u for u in _concept_units(facts, namespace, concept) if not form or u.get("form") == form]
    if not relevant:
        return None
    latest = max(relevant, key=lambda u: u.get("end") or u.get("filed") or "")
    return {"value": latest.get("val"), "period": latest.get("end") or latest.get("filed"), "form": latest.get("form")}


def year_over_year_growth(facts: dict[str, Any], namespace: str, concept: str) -> dict[str, Any] | None:
    annual = sorted(
        (u for u in _concept_units(facts, namespace, concept) if u.get("form") == "10-K" and u.get("end")),
        key=lambda u: u["end"],
        reverse=True,
    )
    if len(annual) < 2:
        return None
    current, previous = annual[0]["val"], annual[1]["val"]
    if not previous:
        return None
    return {
        "current": current,
        "previous": previous,
        "growth": round((current - previous) / abs(previous) * 100, 1),
    }


def _margin(value: float, revenue: float | None) -> float | None:
    if not revenue or revenue <= 0:
        return None
    return round(value / revenue * 100, 1)


def extract_financials(facts: dict[str, Any] | None) -> dict[str, Any]:
    if not facts:
        return {}

    financials: dict[str, Any] = {}
    for concept in REVENUE_CONCEPTS:
        revenue = latest_value(facts, "us-gaap", concept)
        if revenue:
            financials["revenue"] = revenue["value"]
            financials["revenue_period"] = revenue["period"]
            growth = year_over_year_growth(facts, "us-gaap", concept)
            if growth:
                financials["revenue_growth"] = growth["growth"]
                financials["revenue_previous"] = growth["previous"]
            break

    net_income = latest_value(facts, "us-gaap", "NetIncomeLoss")
    if net_income:
        financials["net_income"] = net_income["value"]
        financials["net_margin"] = _margin(net_income["value"], financials.get("revenue"))

    operating_income = latest_value(facts, "us-gaap", "OperatingIncomeLoss")
    if operating_income:
        financials["operating_income"] = operating_income["value"]
        financials["operating_margin"] = _margin(operating_income["value"], financials.get("revenue"))

    for key, concept in (
        ("total_assets", "Assets"),
        ("total_liabilities", "Liabilities"),
        ("stockholders_equity", "StockholdersEquity"),
    ):
        found = latest_value(facts, "us-gaap", concept)
        if found:
            financials[key] = found["value"]

    employees = latest_value(facts, "dei", "EntityNumberOfEmployees")
    if employees:
        financials["employees"] = employees["value"]
    return financials


def recent_filings(submissions: dict[str, Any], limit: int = 5) -> list[dict[str, Any]]:
    recent = (submissions.get("filings") or {}).get("recent") or {}
    forms = recent.get("form") or []
    descriptions = recent.get("primaryDocDescription") or []
    filings = []
    for i, form in enumerate(forms[:10]):
        if form not in TRACKED_FORMS:
            continue
        filings.append(
            {
                "form": form,
                "filing_date": recent["filingDate"][i],
                "description": (descriptions[i] if i < len(descriptions) else None) or form,
                "accession_number": recent["accessionNumber"][i],
            }
        )
    return filings[:limit]


def competitor_summary(intel: dict[str, Any]) -> dict[str, Any] | None:
    """Display-ready subset of :meth:`SecClient.company_intelligence` output."""
    if not intel.get("success") or not intel.get("is_public"):
        return None
    company, financials = intel["company"], intel["financials"]
    growth = financials.get("revenue_growth")
    latest_10k = intel.get("latest_10k") or {}
    return {
        "is_public": True,
        "ticker": company["ticker"],
        "name": company.get("name"),
        "industry": company.get("sic_description"),
        "website": company.get("website") or None,
        "revenue": format_financial_value(financials.get("revenue")),
        "revenue_raw": financials.get("revenue"),
        "revenue_growth": f"{'+' if growth > 0 else ''}{growth}%" if growth else None,
        "net_income": format_financial_value(financials.get("net_income")),
        "net_margin": f"{financials['net_margin']}%" if financials.get("net_margin") else None,
        "operating_margin": f"{financials['operating_margin']}%" if financials.get("operating_margin") else None,
        "employees": f"{financials['employees']:,}" if financials.get("employees") else None,
        "total_assets": format_financial_value(financials.get("total_assets")),
        "fiscal_year_end": company.get("fiscal_year_end"),
        "latest_filing_date": latest_10k.get("filing_date"),
        "sec_url": latest_10k.get("url"),
    }


async def _get_json(client: httpx.AsyncClient, url: str) -> Any | None:
    """GET ``url`` as JSON; 404 means "not found" and returns None."""
    response = await client.get(url, headers={"Accept": "application/json"})
    if response.status_code == 404:
        return None
    response.raise_for_status()
    return response.json()


class TickerDirectory:
    """Ticker → zero-padded CIK map, downloaded from SEC once on first use."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._http_client = http_client
        self._ciks: dict[str, str] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def _load(self) -> None:
        async with self._lock:
            if self._loaded:
                return
            try:
                async with outbound_client(
                    self._http_client, headers={"User-Agent": settings.sec_user_agent}
                ) as client:
                    data = await _get_json(client, TICKERS_URL) or {}
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Failed to load SEC ticker directory: %s", e)
                return
            for company in data.values():
                ticker = (company.get("ticker") or "").upper()
                if ticker:
                    self._ciks[ticker] = str(company["cik_str"]).zfill(10)
            self._loaded = True
            logger.info("Loaded %d SEC tickers", len(self._ciks))

    async def cik_for(self, ticker: str) -> str | None:
        if not self._loaded:
            await self._load()
        return self._ciks.get(ticker.upper())


def get_ticker_directory(request: Request) -> TickerDirectory:
    """FastAPI dependency: the directory created in the app lifespan."""
    return request.app.state.ticker_directory


class SecClient:
    """Company intelligence lookups, cached under ``sec_company``."""

    def __init__(
        self,
        cache: ContentCache,
        directory: TickerDirectory,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cache = cache
        self.directory = directory
        self._http_client = http_client

    async def company_intelligence(self, company_name: str) -> dict[str, Any]:
        params = {"company_name": company_name.strip().lower()}
        cached = await self.cache.get("sec_company", params)
        if cached is not None:
            return {**cached.data, "from_cache": True}

        ticker = find_ticker(company_name)
        if ticker is None:
            return {"success": False, "is_public": False, "reason": "Company not found in public company database"}

        cik = await self.directory.cik_for(ticker)
        if cik is None:
            return {"success": False, "is_public": False, "ticker": ticker, "reason": "Could not find SEC CIK for ticker"}

        try:
            async with outbound_client(self._http_client, headers={"User-Agent": settings.sec_user_agent}) as client:
                submissions, facts = await asyncio.gather(
                    _get_json(client, SUBMISSIONS_URL.format(cik=cik)),
                    _get_json(client, FACTS_URL.format(cik=cik)),
                )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("SEC lookup failed for %s (CIK %s): %s", company_name, cik, e)
            submissions, facts = None, None

        if not submissions:
            return {
                "success": False,
                "is_public": True,
                "ticker": ticker,
                "cik": cik,
                "reason": "Could not fetch SEC filings",
            }

        filings = recent_filings(submissions)
        latest_10k = next((f for f in filings if f["form"] == "10-K"), None)
        result = {
            "success": True,
            "is_public": True,
            "company": {
                "name": submissions.get("name"),
                "ticker": ticker,
                "cik": cik,
                "sic": submissions.get("sic"),
                "sic_description": submissions.get("sicDescription"),
                "state_of_incorporation": submissions.get("stateOfIncorporation"),
                "fiscal_year_end": submissions.get("fiscalYearEnd"),
                "website": submissions.get("website"),
            },
            "financials": extract_financials(facts),
            "recent_filings": filings,
            "latest_10k": (
                {"filing_date": latest_10k["filing_date"], "url": FILINGS_URL.format(cik=cik)} if latest_10k else None
            ),
            "fetched_at": utcnow().isoformat(),
        }
        await self.cache.set("sec_company", params, result)
        return result

    async def enrich_competitors(self, competitors: list[dict[str, Any]], max_enrich: int = 5) -> list[dict[str, Any]]:
        """Attach ``sec_data`` to up to ``max_enrich`` competitors that are public companies."""
        enriched = []
        count = 0
        for competitor in competitors:
            item = dict(competitor)
            if count < max_enrich and find_ticker(competitor.get("name")):
                intel = await self.company_intelligence(competitor["name"])
                summary = competitor_summary(intel)
                if summary is not None:
                    item["sec_data"] = summary
                    count += 1
            enriched.append(item)
        return enriched
