"""Review scraping executor: product URLs via BrightData and/or uploaded CSV."""

import json
import re
from typing import Any

from src.novohaven.core.logging import get_logger
from src.novohaven.executors.base import (
    ExecutorContext,
    ExecutorResult,
    StepExecutor,
    ValidationResult,
    merged_config,
)
from src.novohaven.models import RecipeStep
from src.novohaven.schemas.executor import ConfigField, ConfigFieldOption
from src.novohaven.services.csv_parser import parse_review_csv
from src.novohaven.services.scraping_service import NOT_CONFIGURED_ERROR, BrightDataClient
from src.novohaven.services.usage_service import UsageService

logger = get_logger(__name__)

_URL_SEPARATORS = re.compile(r"[\n,]")


def collect_urls(value: Any) -> list[str]:
    """Product URLs from a list or a newline/comma separated string."""
    if isinstance(value, list):
        return [str(url).strip() for url in value if str(url).strip()]
    if isinstance(value, str):
        return [url.strip() for url in _URL_SEPARATORS.split(value) if url.strip()]
    return []


def collect_csv(inputs: dict[str, Any]) -> str | None:
    """CSV text from ``csv_data``, or ``csv_file`` as text or an uploaded-file object."""
    if inputs.get("csv_data"):
        return str(inputs["csv_data"])
    csv_file = inputs.get("csv_file")
    if isinstance(csv_file, dict):
        return csv_file.get("content") or None
    if csv_file:
        return str(csv_file)
    return None


class ScrapingExecutor(StepExecutor):
    type = "scraping"
    display_name = "Web Scraping"
    icon = "🔍"
    description = "Scrape product reviews from e-commerce platforms using BrightData"

    def __init__(self, client: BrightDataClient, usage_service: UsageService | None = None):
        self.client = client
        self.usage_service = usage_service

    def validate_config(self, step: RecipeStep) -> ValidationResult:
        result = ValidationResult()
        if not step.input_config and not step.api_config:
            result.errors.append(
                "Scraping step requires input configuration or API configuration"
            )
        return result

    async def execute(self, step: RecipeStep, context: ExecutorContext) -> ExecutorResult:
        api_config = merged_config(
            {"service": "brightdata", "endpoint": "scrape_reviews"}, step.api_config
        )
        inputs = dict(context.user_inputs)
        urls = collect_urls(inputs.get("product_urls"))
        csv_text = collect_csv(inputs)
        platform = inputs.get("platform") or "amazon"

        if not urls and not csv_text:
            return ExecutorResult.failure("No product URLs or CSV data provided for scraping")

        reviews: list[dict[str, Any]] = []
        csv_rows = 0
        requests_made = 0

        if csv_text:
            parsed = parse_review_csv(csv_text, platform)
            if parsed.success and parsed.data:
                reviews.extend(review.model_dump(mode="json") for review in parsed.data)
                csv_rows = len(parsed.data)
            elif not urls:
                return ExecutorResult.failure(parsed.error or "Failed to parse CSV data")

        if urls:
            if not self.client.is_configured:
                return ExecutorResult.failure(NOT_CONFIGURED_ERROR)
            scraped = await self.client.scrape_reviews(urls)
            if scraped.success:
                for product in scraped.data:
                    for review in product.reviews:
                        reviews.append(
                            {
                                **review.model_dump(mode="json"),
                                "product_url": product.url,
                                "product_name": product.product_name,
                                "product_price": product.product_price,
                                "product_features": product.product_features,
                            }
                        )
                requests_made = scraped.usage["requests_made"]
                if scraped.error:
                    logger.warning("Some URLs failed to scrape", error=scraped.error)
            elif not reviews:
                return ExecutorResult.failure(
                    scraped.error or "Failed to scrape reviews from URLs"
                )

        usage = {"requests_made": requests_made, "reviews_fetched": len(reviews)}
        if self.usage_service is not None:
            await self.usage_service.log_usage(
                context.user_id,
                api_config["service"],
                api_config["endpoint"],
                request_count=requests_made,
                records_fetched=len(reviews),
                metadata={"execution_id": context.execution_id, "urls": len(urls)},
            )

        content = json.dumps(
            {
                "reviews": reviews,
                "summary": {
                    "total_reviews": len(reviews),
                    "urls_processed": len(urls),
                    "csv_rows_processed": csv_rows,
                },
            },
            indent=2,
        )
        return ExecutorResult(
            success=True,
            content=content,
            metadata={
                "service": api_config["service"],
                "usage": usage,
                "step_type": "scraping",
            },
            prompt_used=f"Scraped {len(urls)} URL(s), processed {len(reviews)} reviews",
            model_used=f"{api_config['service']}:{api_config['endpoint']}",
        )

    def get_config_schema(self) -> list[ConfigField]:
        return [
            ConfigField(
                name="service",
                label="Scraping Service",
                type="select",
                required=True,
                default_value="brightdata",
                options=[ConfigFieldOption(value="brightdata", label="BrightData")],
            ),
            ConfigField(
                name="endpoint",
                label="Endpoint",
                type="select",
                required=True,
                default_value="scrape_reviews",
                options=[ConfigFieldOption(value="scrape_reviews", label="Scrape Reviews")],
            ),
        ]
