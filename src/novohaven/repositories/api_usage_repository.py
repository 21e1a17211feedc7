"""Repository for ApiUsage entity."""

from sqlmodel import select

from src.novohaven.models import ApiUsage
from src.novohaven.repositories.base import BaseRepository


class ApiUsageRepository(BaseRepository[ApiUsage]):
    model = ApiUsage

    async def list_by_user(self, user_id: int, service: str | None = None) -> list[ApiUsage]:
        """Usage rows for a user, newest first, optionally for one service."""
        query = select(ApiUsage).where(ApiUsage.user_id == user_id)
        if service is not None:
            query = query.where(ApiUsage.service == service)
        result = await self.session.execute(query.order_by(ApiUsage.id.desc()))
        return list(result.scalars().all())
