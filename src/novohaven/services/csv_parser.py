"""Parser for product review CSV exports.

Column names vary between marketplaces and tools, so each review field
is looked up through a list of known aliases.
"""

import csv
import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from src.novohaven.core.logging import get_logger
from src.novohaven.schemas.scraping import ReviewData

logger = get_logger(__name__)

COLUMN_MAPPINGS: dict[str, list[str]] = {
    "review_text": [
        "review",
        "review_text",
        "text",
        "content",
        "body",
        "comment",
        "review_body",
        "review_content",
    ],
    "rating": ["rating", "star_rating", "stars", "score", "star", "review_rating"],
    "review_title": ["title", "review_title", "headline", "summary", "subject"],
    "reviewer_name": [
        "reviewer",
        "author",
        "name",
        "reviewer_name",
        "user",
        "username",
        "customer",
    ],
    "review_date": [
        "date",
        "review_date",
        "created_at",
        "posted_date",
        "timestamp",
        "created",
        "post_date",
    ],
    "product_name": ["product", "product_name", "item", "item_name", "product_title"],
    "product_price": ["price", "product_price", "cost", "amount"],
    "verified_purchase": ["verified", "verified_purchase", "verified_buyer", "is_verified"],
    "helpful_votes": ["helpful", "helpful_votes", "upvotes", "useful", "helpful_count"],
    "product_url": ["url", "product_url", "link", "product_link"],
}

_SLASH_RATING = re.compile(r"(\d+(?:\.\d+)?)\s*/\s*5")
_STARS_RATING = re.compile(r"(\d+(?:\.\d+)?)\s*stars?", re.IGNORECASE)
_LEADING_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")
_DATE_FORMATS = ("%m/%d/%Y", "%Y/%m/%d", "%B %d, %Y", "%b %d, %Y", "%d %B %Y")


@dataclass
class CsvParseResult:
    success: bool
    data: list[ReviewData] | None = None
    error: str | None = None
    warnings: list[str] | None = None


def find_column(headers: list[str], field: str) -> int:
    """Index of the column holding ``field``, else -1.

    An exact alias match wins over a header that merely contains an alias,
    so ``review_text`` is not mistaken for ``review_title``.
    """
    aliases = COLUMN_MAPPINGS.get(field, [field])
    for alias in aliases:
        if alias in headers:
            return headers.index(alias)
    for alias in aliases:
        for index, header in enumerate(headers):
            if alias in header:
                return index
    return -1


def parse_rating(value: str | None) -> float:
    """Normalise "4/5", "4 stars", "8" (out of 10) or "80" (out of 100) to a 0-5 scale."""
    if not value:
        return 0
    match = _SLASH_RATING.search(value) or _STARS_RATING.search(value)
    if match:
        return float(match.group(1))
    match = _LEADING_NUMBER.match(value)
    if not match:
        return 0
    number = float(match.group(1))
    if 5 < number <= 10:
        return number / 10 * 5
    if 10 < number <= 100:
        return number / 100 * 5
    return min(number, 5)


def parse_boolean(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in ("true", "yes", "1", "verified")


def parse_date(value: str | None) -> str | None:
    """ISO-8601 for recognisable dates; anything else is returned unchanged."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        parsed = None
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.isoformat()


def _parse_int(value: str | None) -> int:
    match = _LEADING_NUMBER.match(value or "")
    return int(float(match.group(1))) if match else 0


def _cell(row: list[str], index: int) -> str | None:
    if index == -1 or index >= len(row):
        return None
    return row[index]


def parse_review_csv(
    content: str, platform: str = "amazon", product_url: str | None = None
) -> CsvParseResult:
    """Parse review CSV text into ReviewData rows.

    Rows with empty review text are skipped with a warning.
    """
    lines = content.strip().splitlines()
    if len(lines) < 2:
        return CsvParseResult(
            success=False,
            error="Failed to parse CSV: CSV must have at least a header row and one data row",
        )
    try:
        reader = csv.reader(lines)
        headers = [header.strip().lower() for header in next(reader)]
        rows = [[cell.strip() for cell in row] for row in reader if any(c.strip() for c in row)]
    except csv.Error as e:
        return CsvParseResult(success=False, error=f"Failed to parse CSV: {e}")

    columns = {field: find_column(headers, field) for field in COLUMN_MAPPINGS}
    if columns["review_text"] == -1:
        return CsvParseResult(
            success=False,
            error="Could not find review text column. Expected column names: "
            + ", ".join(COLUMN_MAPPINGS["review_text"]),
        )

    warnings: list[str] = []
    if columns["rating"] == -1:
        warnings.append("Rating column not found - ratings will be set to 0")

    batch = int(time.time() * 1000)
    reviews: list[ReviewData] = []
    skipped = 0
    for i, row in enumerate(rows):
        text = _cell(row, columns["review_text"])
        if not text:
            skipped += 1
            continue
        verified = _cell(row, columns["verified_purchase"])
        helpful = _cell(row, columns["helpful_votes"])
        reviews.append(
            ReviewData(
                id=f"csv-{batch}-{i}",
                platform=platform,
                product_url=_cell(row, columns["product_url"]) or product_url or "",
                product_name=_cell(row, columns["product_name"]),
                product_price=_cell(row, columns["product_price"]),
                reviewer_name=_cell(row, columns["reviewer_name"]),
                rating=parse_rating(_cell(row, columns["rating"])),
                review_title=_cell(row, columns["review_title"]),
                review_text=text,
                review_date=parse_date(_cell(row, columns["review_date"])),
                verified_purchase=(
                    parse_boolean(verified) if columns["verified_purchase"] != -1 else None
                ),
                helpful_votes=_parse_int(helpful) if columns["helpful_votes"] != -1 else None,
            )
        )

    if skipped:
        warnings.append(f"Skipped {skipped} rows with empty review text")
    if not reviews:
        return CsvParseResult(success=False, error="No valid reviews found in CSV")

    logger.debug("Parsed review CSV", reviews=len(reviews), skipped=skipped)
    return CsvParseResult(success=True, data=reviews, warnings=warnings or None)
