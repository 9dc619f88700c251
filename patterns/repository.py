"""Async repository pattern for database access.

Provides a generic base repository with CRUD operations, pagination and
FastAPI dependency injection. Domains subclass this to add their own
queries.

Example: ProductRepository extending BaseRepository.
"""

from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)

_IMMUTABLE_COLUMNS = ("id", "created_at")


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    """Standard pagination block returned by list endpoints."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit if limit else 0,
    }


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with CRUD + pagination.

    Subclass and set `model` to your SQLAlchemy model::

        class WarehouseRepository(BaseRepository[Warehouse]):
            model = Warehouse

            async def get_by_code(self, code: str) -> Warehouse | None:
                stmt = select(self.model).where(self.model.code == code)
                result = await self.session.execute(stmt)
                return result.scalar_one_or_none()
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- List with pagination --

    async def list(
        self,
        page: int = 1,
        limit: int = 50,
        filters: dict[str, Any] | None = None,
        order_by: Sequence[Any] = (),
    ) -> tuple[list[ModelT], int]:
        """List items with pagination and optional equality filters.

        Returns (items, total_count).
        """
        stmt = select(self.model)
        count_stmt = select(func.count()).select_from(self.model)

        if filters:
            for col_name, value in filters.items():
                if hasattr(self.model, col_name) and value is not None:
                    stmt = stmt.where(getattr(self.model, col_name) == value)
                    count_stmt = count_stmt.where(getattr(self.model, col_name) == value)

        if order_by:
            stmt = stmt.order_by(*order_by)

        offset = (page - 1) * limit
        stmt = stmt.offset(offset).limit(limit)

        result = await self.session.execute(stmt)
        items = list(result.scalars().all())

        total = (await self.session.execute(count_stmt)).scalar() or 0
        return items, total

    # -- Get by ID --

    async def get(self, item_id: str | UUID) -> ModelT | None:
        """Get a single item by ID, reloading eager relationships."""
        item_id = as_uuid(item_id)
        if item_id is None:
            return None
        stmt = (
            select(self.model)
            .where(self.model.id == item_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by(self, **criteria: Any) -> ModelT | None:
        """First item matching all equality criteria."""
        stmt = select(self.model).filter_by(**criteria).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # -- Create --

    async def create(self, data: dict[str, Any]) -> ModelT:
        """Create a new item and flush it so it has an id."""
        item = self.model(**data)
        self.session.add(item)
        await self.session.flush()
        return item

    # -- Update --

    async def update(self, item: ModelT, data: dict[str, Any]) -> ModelT:
        """Apply column updates to an existing item."""
        for key, value in data.items():
            if hasattr(item, key) and key not in _IMMUTABLE_COLUMNS:
                setattr(item, key, value)

        await self.session.flush()
        return item

    # -- Delete --

    async def delete(self, item: ModelT) -> None:
        await self.session.delete(item)
        await self.session.flush()


def as_uuid(value: str | UUID | None) -> UUID | None:
    """Parse path/query ids; malformed ids behave like unknown ones."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


