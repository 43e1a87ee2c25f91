"""Logo discovery for a business website.

Sources, best first: Clearbit, the site's own markup (og/twitter images,
logo-ish ``<img>`` tags, header/nav images), then Google's favicon service
which always answers.
"""

import logging
import re
from typing import Any
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from app.config import settings
from app.database import utcnow
from app.services.content_cache import ContentCache
from app.services.http import outbound_client

logger = logging.getLogger(__name__)

CLEARBIT_URL = "https://logo.clearbit.com/{domain}"
FAVICON_URL = "https://www.google.com/s2/favicons?domain={domain}&sz={size}"
SCRAPE_TIMEOUT_SECONDS = 8.0
MAX_LOGOS = 6
QUALITY_ORDER = {"high": 0, "medium": 1, "low": 2}
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
_IMAGE_EXTENSION = re.compile(r"\.(png|jpe?g|svg|webp|gif|ico)$", re.IGNORECASE)


def extract_domain(url: str) -> str:
    """``https://www.example.com/about`` → ``example.com``."""
    value = url.strip()
    if not value.startswith("http"):
        value = f"https://{value}"
    host = urlparse(value).hostname or value.split("/")[0]
    return host.removeprefix("www.")


def google_favicon(domain: str, size: int = 128) -> dict[str, str]:
    return {"url": FAVICON_URL.format(domain=domain, size=size), "source": "google-favicon", "quality": "low"}


def _mentions_logo(tag: Any) -> bool:
    attrs = " ".join(
        " ".join(value) if isinstance(value, list) else str(value)
        for key, value in tag.attrs.items()
        if key in ("class", "id", "alt", "src")
    )
    return "logo" in attrs.lower()


def find_logo_candidates(html: str, base_url: str) -> list[dict[str, str]]:
    """Logo URLs found in a page, resolved against ``base_url`` and de-duplicated."""
    soup = BeautifulSoup(html, "html.parser")
    found: list[dict[str, str]] = []

    def add(src: str | None, source: str, quality: str) -> None:
        if not src or src.startswith("data:"):
            return
        url = urljoin(base_url + "/", src.strip())
        if not any(item["url"] == url for item in found):
            found.append({"url": url, "source": source, "quality": quality})

    og_image = soup.find("meta", attrs={"property": "og:image"})
    if og_image is not None:
        add(og_image.get("content"), "og:image", "medium")

    twitter_image = soup.find("meta", attrs={"name": "twitter:image"})
    if twitter_image is not None:
        add(twitter_image.get("content"), "twitter:image", "medium")

    for img in soup.find_all("img"):
        if _mentions_logo(img):
            add(img.get("src"), "html-logo", "high")

    for container in soup.find_all(["header", "nav"]):
        img = container.find("img")
        if img is not None:
            add(img.get("src"), "header-img", "medium")

    return found


class LogoFinder:
    """Finds and caches (under ``logos``) candidate logos for a website."""

    def __init__(self, cache: ContentCache, http_client: httpx.AsyncClient | None = None) -> None:
        self.cache = cache
        self._http_client = http_client

    async def _is_image(self, client: httpx.AsyncClient, url: str) -> bool:
        try:
            response = await client.head(url, timeout=settings.logo_check_timeout_seconds)
        except httpx.HTTPError as e:
            logger.debug("Logo check failed for %s: %s", url, e)
            return False
        content_type = response.headers.get("content-type", "")
        return response.status_code == 200 and ("image" in content_type or bool(_IMAGE_EXTENSION.search(url)))

    async def _scrape(self, client: httpx.AsyncClient, domain: str) -> list[dict[str, str]]:
        base_url = f"https://{domain}"
        response = await client.get(base_url, headers={"Accept": "text/html"}, timeout=SCRAPE_TIMEOUT_SECONDS)
        if response.status_code != 200:
            return []
        return find_logo_candidates(response.text, base_url)

    async def fetch_logo(self, url: str, bypass_cache: bool = False) -> dict[str, Any]:
        """Ranked logo options for ``url``'s site.

        ``bypass_cache`` skips the cache read; the fresh result is still written.
        """
        domain = extract_domain(url)
        params = {"domain": domain}
        if not bypass_cache:
            cached = await self.cache.get("logos", params)
            if cached is not None:
                return {**cached.data, "from_cache": True}

        logos: list[dict[str, str]] = []
        errors: list[dict[str, str]] = []
        async with outbound_client(self._http_client, headers={"User-Agent": BROWSER_USER_AGENT}) as client:
            clearbit = CLEARBIT_URL.format(domain=domain)
            if await self._is_image(client, clearbit):
                logos.append({"url": clearbit, "source": "clearbit", "quality": "high"})

            try:
                scraped = await self._scrape(client, domain)
            except httpx.HTTPError as e:
                logger.info("Website scrape failed for %s: %s", domain, e)
                errors.append({"source": "scrape", "error": str(e) or type(e).__name__})
                scraped = []
            for candidate in scraped:
                if not any(item["url"] == candidate["url"] for item in logos) and await self._is_image(
                    client, candidate["url"]
                ):
                    logos.append(candidate)

        logos.append(google_favicon(domain))
        logos.sort(key=lambda item: QUALITY_ORDER.get(item["quality"], 2))

        result: dict[str, Any] = {
            "success": True,
            "domain": domain,
            "logos": logos[:MAX_LOGOS],
            "primary_logo": logos[0],
            "fetched_at": utcnow().isoformat(),
        }
        if errors:
            result["errors"] = errors
        await self.cache.set("logos", params, result)
        return result
