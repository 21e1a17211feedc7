"""Usage tracking for billable external API calls."""

import contextlib
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.novohaven.core.logging import get_logger
from src.novohaven.models import ApiUsage
from src.novohaven.repositories import ApiUsageRepository

logger = get_logger(__name__)


class UsageService:
    """Records ApiUsage rows.

    Fire-and-forget design: each record is written in its own session so a
    failure never disturbs the caller's transaction, and failures are
    logged rather than raised.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def log_usage(
        self,
        user_id: int,
        service: str,
        endpoint: str,
        request_count: int = 1,
        records_fetched: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> ApiUsage | None:
        """Record one usage entry.

        Returns:
            The created ApiUsage, or None if recording failed
        """
        async with self.session_factory() as session:
            try:
                usage = ApiUsage(
                    user_id=user_id,
                    service=service,
                    endpoint=endpoint,
                    request_count=request_count,
                    records_fetched=records_fetched,
                    usage_metadata=metadata,
                )
                ApiUsageRepository(session).add(usage)
                await session.commit()
                logger.debug(
                    "Usage recorded",
                    service=service,
                    endpoint=endpoint,
                    request_count=request_count,
                    records_fetched=records_fetched,
                )
                return usage
            except Exception as e:
                # Fire-and-forget: log the failure but don't propagate
                logger.warning(
                    "Failed to record usage",
                    service=service,
                    endpoint=endpoint,
                    error=str(e),
                )
                with contextlib.suppress(Exception):
                    await session.rollback()
                return None
