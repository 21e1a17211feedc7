"""Repository for CompanyStandard entity."""

from sqlmodel import select

from src.novohaven.models import CompanyStandard
from src.novohaven.repositories.base import BaseRepository


class CompanyStandardRepository(BaseRepository[CompanyStandard]):
    model = CompanyStandard

    async def list_by_user(self, user_id: int) -> list[CompanyStandard]:
        """List all standards owned by a user, oldest first."""
        result = await self.session.execute(
            select(CompanyStandard)
            .where(CompanyStandard.user_id == user_id)
            .order_by(CompanyStandard.id)
        )
        return list(result.scalars().all())
