"""Base repository with common CRUD operations."""

from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from src.novohaven.schemas.pagination import decode_cursor, encode_cursor


ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """Base repository providing common database operations.

    Repositories handle data access only. Transaction control (commit)
    should be done in the service layer.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get a record by its primary key."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    def add(self, entity: ModelType) -> None:
        """Add entity to session (no flush/commit)."""
        self.session.add(entity)

    async def flush(self) -> None:
        """Flush pending inserts so generated ids are available."""
        await self.session.flush()

    async def paginate(
        self,
        query: Any,  # SelectOfScalar - SQLModel/SQLAlchemy query
        cursor: str | None,
        limit: int,
    ) -> tuple[list[ModelType], str | None, bool]:
        """Execute id-based cursor pagination on a query, newest first.

        Args:
            query: The base query to paginate
            cursor: Optional cursor from previous page
            limit: Maximum number of items to return

        Returns:
            Tuple of (items, next_cursor, has_more)
        """
        id_column = self.model.id  # type: ignore[attr-defined]
        if cursor:
            try:
                query = query.where(id_column < decode_cursor(cursor))
            except ValueError:
                # Invalid cursor - start from the beginning
                pass

        query = query.order_by(id_column.desc()).limit(limit + 1)

        result = await self.session.execute(query)
        items = list(result.scalars().all())

        has_more = len(items) > limit
        if has_more:
            items = items[:limit]

        next_cursor = None
        if has_more and items:
            next_cursor = encode_cursor(items[-1].id)  # type: ignore[attr-defined]

        return items, next_cursor, has_more
