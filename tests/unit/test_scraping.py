"""Tests for review CSV parsing, the BrightData client and the scraping executor."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from src.novohaven.executors.scraping import ScrapingExecutor, collect_csv, collect_urls
from src.novohaven.services.csv_parser import find_column, parse_rating, parse_review_csv
from src.novohaven.services.scraping_service import (
    NOT_CONFIGURED_ERROR,
    BrightDataClient,
    detect_platform,
)
from src.novohaven.services.usage_service import UsageService
from tests.factories import RecipeStepFactory
from tests.helpers import make_context, mock_transport_client

pytestmark = pytest.mark.unit

REVIEWS_CSV = (
    "Review Text,Stars,Title,Verified\n"
    'Great lamp,5,"Love it",yes\n'
    ",3,Empty,no\n"
    "Too dim,2/5,Meh,no\n"
)

BRIGHTDATA_ROWS = [
    {
        "review_id": "R1",
        "url": "https://www.amazon.com/dp/B01",
        "product_name": "Desk Lamp",
        "product_price": 39.99,
        "author_name": "Ann",
        "rating": 4,
        "review_header": "Nice",
        "review_text": "Bright and sturdy",
        "is_verified": True,
        "helpful_count": "2",
        "brand": "Lumo",
        "product_rating": "4.4",
        "product_rating_count": 120,
    }
]


def _scraping_step():
    return RecipeStepFactory.build(
        step_type="scraping",
        ai_model=None,
        prompt_template=None,
        input_config={"variables": {"product_urls": {"type": "url_list"}}},
    )


class TestCsvParser:
    def test_exact_alias_beats_substring(self):
        headers = ["review_title", "review_text"]
        assert find_column(headers, "review_text") == 1

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("4/5", 4.0), ("3 stars", 3.0), ("8", 4.0), ("80", 4.0), ("4", 4.0), ("", 0), ("n/a", 0)],
    )
    def test_parse_rating(self, value, expected):
        assert parse_rating(value) == expected

    def test_parses_reviews_and_skips_empty(self):
        result = parse_review_csv(REVIEWS_CSV, platform="walmart")

        assert result.success
        assert [r.review_text for r in result.data] == ["Great lamp", "Too dim"]
        assert result.data[0].rating == 5
        assert result.data[0].verified_purchase is True
        assert result.data[1].rating == 2
        assert result.data[0].platform == "walmart"
        assert result.warnings == ["Skipped 1 rows with empty review text"]

    def test_missing_review_column(self):
        result = parse_review_csv("stars,title\n5,Good")
        assert not result.success
        assert result.error.startswith("Could not find review text column")

    def test_header_only(self):
        assert not parse_review_csv("review,rating").success


class TestBrightDataClient:
    async def test_trigger_poll_download(self, settings):
        settings.brightdata_api_key = "bd-key"
        settings.brightdata_poll_interval_seconds = 0
        polls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/datasets/v3/scrape":
                assert request.headers["Authorization"] == "Bearer bd-key"
                return httpx.Response(200, json={"snapshot_id": "s_1"})
            polls["count"] += 1
            if polls["count"] < 2:
                return httpx.Response(202, json={"status": "running"})
            return httpx.Response(200, json=BRIGHTDATA_ROWS)

        client = BrightDataClient(
            settings, mock_transport_client(handler, base_url=settings.brightdata_base_url)
        )
        response = await client.scrape_reviews(["https://www.amazon.com/dp/B01"])

        assert response.success
        assert polls["count"] == 2
        product = response.data[0]
        assert product.product_name == "Desk Lamp"
        assert product.product_price == "39.99"
        assert product.product_features == ["Brand: Lumo"]
        assert product.total_reviews == 120
        assert product.reviews[0].helpful_votes == 2
        assert response.usage == {"requests_made": 1, "reviews_fetched": 1}

    async def test_poll_attempts_exhausted(self, settings):
        settings.brightdata_api_key = "bd-key"
        settings.brightdata_poll_interval_seconds = 0
        settings.brightdata_poll_attempts = 3

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/datasets/v3/scrape":
                return httpx.Response(200, json={"snapshot_id": "s_2"})
            return httpx.Response(202)

        client = BrightDataClient(
            settings, mock_transport_client(handler, base_url=settings.brightdata_base_url)
        )
        response = await client.scrape_reviews(["https://www.amazon.com/dp/B02"])

        assert not response.success
        assert "not ready after 3 attempts" in response.error

    async def test_unsupported_platform(self, settings):
        settings.brightdata_api_key = "bd-key"
        client = BrightDataClient(settings, mock_transport_client(lambda r: httpx.Response(500)))
        response = await client.scrape_reviews(["https://shop.example.com/p/1"])
        assert response.error == "Unsupported platform for URL: https://shop.example.com/p/1"

    def test_detect_platform(self):
        assert detect_platform("https://www.Walmart.com/ip/1") == "walmart"
        assert detect_platform("https://example.com") is None


class TestScrapingExecutor:
    def test_collect_urls(self):
        assert collect_urls("https://a.test/1,\nhttps://a.test/2 ") == [
            "https://a.test/1",
            "https://a.test/2",
        ]
        assert collect_urls(["https://a.test/1", " "]) == ["https://a.test/1"]

    def test_collect_csv_from_upload(self):
        assert collect_csv({"csv_file": {"name": "r.csv", "content": "a,b"}}) == "a,b"

    async def test_csv_only_needs_no_api_key(self, settings):
        usage = AsyncMock(spec=UsageService)
        executor = ScrapingExecutor(BrightDataClient(settings), usage)
        result = await executor.execute(_scraping_step(), make_context({"csv_data": REVIEWS_CSV}))

        assert result.success
        payload = json.loads(result.content)
        assert payload["summary"] == {
            "total_reviews": 2,
            "urls_processed": 0,
            "csv_rows_processed": 2,
        }
        assert result.model_used == "brightdata:scrape_reviews"
        assert result.prompt_used == "Scraped 0 URL(s), processed 2 reviews"
        usage.log_usage.assert_awaited_once()

    async def test_urls_without_api_key(self, settings):
        executor = ScrapingExecutor(BrightDataClient(settings))
        context = make_context({"product_urls": "https://www.amazon.com/dp/B01"})
        result = await executor.execute(_scraping_step(), context)
        assert result.error == NOT_CONFIGURED_ERROR

    async def test_no_sources(self, settings):
        result = await ScrapingExecutor(BrightDataClient(settings)).execute(
            _scraping_step(), make_context()
        )
        assert result.error == "No product URLs or CSV data provided for scraping"

    async def test_scraped_reviews_are_flattened(self, settings):
        settings.brightdata_api_key = "bd-key"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=BRIGHTDATA_ROWS)

        client = BrightDataClient(
            settings, mock_transport_client(handler, base_url=settings.brightdata_base_url)
        )
        context = make_context({"product_urls": ["https://www.amazon.com/dp/B01"]})
        result = await ScrapingExecutor(client).execute(_scraping_step(), context)

        review = json.loads(result.content)["reviews"][0]
        assert review["product_name"] == "Desk Lamp"
        assert review["product_features"] == ["Brand: Lumo"]
        assert result.metadata["usage"] == {"requests_made": 1, "reviews_fetched": 1}

    async def test_validate_config(self, settings):
        step = RecipeStepFactory.build(step_type="scraping")
        errors = ScrapingExecutor(BrightDataClient(settings)).validate_config(step).errors
        assert errors == ["Scraping step requires input configuration or API configuration"]
