"""Review scraping schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.novohaven.models.base import utc_now

ScrapingPlatform = Literal["amazon", "walmart", "wayfair"]


class ReviewData(BaseModel):
    """One product review, scraped or parsed from CSV."""

    id: str
    platform: str
    product_url: str = ""
    product_name: str | None = None
    product_price: str | None = None
    reviewer_name: str | None = None
    rating: float = 0
    review_title: str | None = None
    review_text: str
    review_date: str | None = None
    verified_purchase: bool | None = None
    helpful_votes: int | None = None


class ScrapedProduct(BaseModel):
    """Reviews scraped from one product page."""

    url: str
    platform: str
    product_name: str = "Unknown Product"
    product_price: str | None = None
    product_features: list[str] | None = None
    average_rating: float | None = None
    total_reviews: int = 0
    reviews: list[ReviewData] = Field(default_factory=list)
    scraped_at: datetime = Field(default_factory=utc_now)
