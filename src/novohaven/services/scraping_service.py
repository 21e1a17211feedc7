"""BrightData review scraping client.

A scrape runs in three phases per product URL: trigger a dataset
collection, poll the snapshot until it is ready, then read the rows.
Each row BrightData returns is one review of the product.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from src.novohaven.core.config import Settings
from src.novohaven.core.logging import get_logger
from src.novohaven.schemas.scraping import ReviewData, ScrapedProduct, ScrapingPlatform

logger = get_logger(__name__)

NOT_CONFIGURED_ERROR = (
    "BrightData is not configured. Please set BRIGHTDATA_API_KEY environment variable."
)


class ScrapingError(Exception):
    """A single product URL could not be scraped."""


@dataclass
class ScrapingResponse:
    success: bool
    data: list[ScrapedProduct] = field(default_factory=list)
    usage: dict[str, int] = field(
        default_factory=lambda: {"requests_made": 0, "reviews_fetched": 0}
    )
    error: str | None = None


def detect_platform(url: str) -> ScrapingPlatform | None:
    normalized = url.lower()
    if "amazon." in normalized:
        return "amazon"
    if "walmart." in normalized:
        return "walmart"
    if "wayfair." in normalized:
        return "wayfair"
    return None


def _as_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def transform_reviews(rows: list[dict[str, Any]], url: str, platform: str) -> ScrapedProduct:
    """Map BrightData review rows onto a ScrapedProduct."""
    if not rows:
        return ScrapedProduct(url=url, platform=platform)

    first = rows[0]
    product_name = first.get("product_name") or "Unknown Product"
    batch = int(time.time() * 1000)
    reviews = [
        ReviewData(
            id=str(row.get("review_id") or f"{platform}-{batch}-{index}"),
            platform=platform,
            product_url=row.get("url") or url,
            product_name=row.get("product_name") or product_name,
            product_price=(
                str(row["product_price"]) if row.get("product_price") is not None else None
            ),
            reviewer_name=row.get("author_name") or "Anonymous",
            rating=_as_float(row.get("rating")) or 0,
            review_title=row.get("review_header") or "",
            review_text=row.get("review_text") or "",
            review_date=row.get("review_posted_date") or row.get("timestamp"),
            verified_purchase=bool(row.get("is_verified", False)),
            helpful_votes=_as_int(row.get("helpful_count")) or 0,
        )
        for index, row in enumerate(rows)
    ]

    features: list[str] = []
    if isinstance(first.get("categories"), list):
        features.extend(str(c) for c in first["categories"])
    if first.get("department"):
        features.append(f"Department: {first['department']}")
    if first.get("brand"):
        features.append(f"Brand: {first['brand']}")

    return ScrapedProduct(
        url=first.get("url") or url,
        platform=platform,
        product_name=product_name,
        product_price=(
            str(first["product_price"]) if first.get("product_price") is not None else None
        ),
        product_features=features or None,
        average_rating=_as_float(first.get("product_rating")),
        total_reviews=_as_int(first.get("product_rating_count")) or len(reviews),
        reviews=reviews,
    )


def _rows_from(payload: Any) -> list[dict[str, Any]] | None:
    """The review rows in a response body: the array itself or its ``data`` array."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return None


class BrightDataClient:
    """Scrapes product reviews through BrightData's dataset API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._client = http_client or httpx.AsyncClient(base_url=settings.brightdata_base_url)

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.brightdata_api_key)

    def _dataset_for(self, platform: ScrapingPlatform) -> str:
        return {
            "amazon": self.settings.brightdata_amazon_dataset,
            "walmart": self.settings.brightdata_walmart_dataset,
            "wayfair": self.settings.brightdata_wayfair_dataset,
        }[platform]

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.brightdata_api_key}"}

    async def scrape_reviews(self, urls: list[str]) -> ScrapingResponse:
        """Scrape every URL; succeeds when at least one product was scraped.

        Per-URL failures are collected into ``error`` rather than raised.
        """
        if not self.is_configured:
            return ScrapingResponse(success=False, error=NOT_CONFIGURED_ERROR)

        products: list[ScrapedProduct] = []
        errors: list[str] = []
        for url in urls:
            platform = detect_platform(url)
            if platform is None:
                errors.append(f"Unsupported platform for URL: {url}")
                continue
            try:
                products.append(await self.scrape_url(url, platform))
            except ScrapingError as e:
                logger.warning("Scrape failed", url=url, error=str(e))
                errors.append(f"Failed to scrape: {url} ({e})")
            except httpx.HTTPError as e:
                logger.warning("Scrape request failed", url=url, error=str(e))
                errors.append(f"Error scraping {url}: {e}")

        reviews_fetched = sum(len(p.reviews) for p in products)
        return ScrapingResponse(
            success=bool(products),
            data=products,
            usage={"requests_made": len(urls), "reviews_fetched": reviews_fetched},
            error="; ".join(errors) or None,
        )

    async def scrape_url(self, url: str, platform: ScrapingPlatform) -> ScrapedProduct:
        """Trigger, poll and read one product's reviews.

        Raises:
            ScrapingError: If BrightData rejects the job, never finishes it
                within the allowed poll attempts, or returns no reviews.
            httpx.HTTPError: On transport failures.
        """
        dataset_id = self._dataset_for(platform)
        logger.info("Triggering scrape", url=url, dataset_id=dataset_id)
        response = await self._client.post(
            "/datasets/v3/scrape",
            params={"dataset_id": dataset_id, "notify": "false", "include_errors": "true"},
            headers=self._headers,
            json={"input": [{"url": url, "reviews_to_not_include": []}]},
            timeout=self.settings.brightdata_trigger_timeout_seconds,
        )
        if response.status_code not in (200, 201, 202):
            raise ScrapingError(f"trigger failed with status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ScrapingError("trigger response is not JSON") from e

        snapshot_id = None
        if isinstance(payload, dict):
            snapshot_id = (
                payload.get("snapshot_id") or payload.get("snapshotId") or payload.get("id")
            )
        if not snapshot_id:
            rows = _rows_from(payload)
            if rows:
                logger.info("Scrape returned data immediately", url=url, reviews=len(rows))
                return transform_reviews(rows, url, platform)
            raise ScrapingError("no snapshot id in trigger response")

        rows = await self._wait_for_snapshot(str(snapshot_id))
        if not rows:
            raise ScrapingError(f"no reviews found in snapshot {snapshot_id}")
        logger.info("Snapshot downloaded", url=url, snapshot_id=snapshot_id, reviews=len(rows))
        return transform_reviews(rows, url, platform)

    async def _wait_for_snapshot(self, snapshot_id: str) -> list[dict[str, Any]]:
        """Poll until the snapshot is ready (200) and return its rows; 202 means not yet."""
        attempts = self.settings.brightdata_poll_attempts
        for attempt in range(1, attempts + 1):
            response = await self._client.get(
                f"/datasets/v3/snapshot/{snapshot_id}",
                params={"format": "json"},
                headers=self._headers,
            )
            if response.status_code == 200:
                try:
                    rows = _rows_from(response.json())
                except ValueError as e:
                    raise ScrapingError("snapshot data is not JSON") from e
                if rows is None:
                    raise ScrapingError("unexpected snapshot data structure")
                return rows
            if response.status_code != 202:
                logger.warning(
                    "Unexpected snapshot response",
                    snapshot_id=snapshot_id,
                    status_code=response.status_code,
                )
            logger.debug("Snapshot not ready", snapshot_id=snapshot_id, attempt=attempt)
            await asyncio.sleep(self.settings.brightdata_poll_interval_seconds)

        raise ScrapingError(f"snapshot {snapshot_id} not ready after {attempts} attempts")
