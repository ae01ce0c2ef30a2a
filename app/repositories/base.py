"""
Base repository class with common CRUD operations using async SQLAlchemy.
Provides generic database operations that can be extended by specific repositories.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.sql import Select
from app.database import Base
from typing import TypeVar, Generic, Optional, List, Dict, Any, Type
import uuid
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class providing common CRUD operations.
    Every write commits immediately and rolls back on failure.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Initialize repository with model class and database session.

        Args:
            model: SQLAlchemy model class
            db: Async database session
        """
        self.model = model
        self.db = db

    def _apply_filters(self, query: Select, filters: Optional[Dict[str, Any]]) -> Select:
        """Equality filters; list values become IN clauses, None values are skipped."""
        if not filters:
            return query

        for field, value in filters.items():
            if value is None or not hasattr(self.model, field):
                continue
            column = getattr(self.model, field)
            if isinstance(value, (list, tuple, set)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)
        return query

    async def create(self, obj_in: Dict[str, Any]) -> ModelType:
        """
        Create a new record in the database.

        Args:
            obj_in: Dictionary of field values for the new record

        Returns:
            Created model instance
        """
        try:
            db_obj = self.model(**obj_in)
            self.db.add(db_obj)
            await self.db.commit()
            await self.db.refresh(db_obj)
            logger.debug(f"Created {self.model.__name__} with id: {db_obj.id}")
            return db_obj
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create {self.model.__name__}: {e}")
            raise

    async def get_by_id(self, id: uuid.UUID) -> Optional[ModelType]:
        """
        Get a record by its ID.

        Args:
            id: UUID of the record to retrieve

        Returns:
            Model instance if found, None otherwise
        """
        obj = await self.db.get(self.model, id)
        if not obj:
            logger.debug(f"{self.model.__name__} with id {id} not found")
        return obj

    async def get_multi(
        self,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None
    ) -> List[ModelType]:
        """
        Get multiple records with optional filtering, pagination, and ordering.

        Args:
            skip: Number of records to skip (for pagination)
            limit: Maximum number of records to return
            filters: Dictionary of field filters
            order_by: Field name to order by (prefix with '-' for descending)

        Returns:
            List of model instances
        """
        query = self._apply_filters(select(self.model), filters)

        if order_by:
            field_name = order_by.lstrip("-")
            if hasattr(self.model, field_name):
                column = getattr(self.model, field_name)
                query = query.order_by(column.desc() if order_by.startswith("-") else column)
        else:
            query = query.order_by(self.model.created_at.desc())

        query = query.offset(skip).limit(limit)

        result = await self.db.execute(query)
        objects = list(result.scalars().all())
        logger.debug(f"Retrieved {len(objects)} {self.model.__name__} records")
        return objects

    async def get_one(self, filters: Dict[str, Any]) -> Optional[ModelType]:
        """First record matching the equality filters, newest first."""
        query = self._apply_filters(select(self.model), filters)
        query = query.order_by(self.model.created_at.desc()).limit(1)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def update(
        self,
        id: uuid.UUID,
        obj_in: Dict[str, Any],
        exclude_none: bool = True
    ) -> Optional[ModelType]:
        """
        Update a record by its ID.

        Args:
            id: UUID of the record to update
            obj_in: Dictionary of field values to update
            exclude_none: Skip keys whose value is None (partial updates from request schemas)

        Returns:
            Updated model instance if found, None otherwise
        """
        db_obj = await self.get_by_id(id)
        if not db_obj:
            return None

        update_data = {k: v for k, v in obj_in.items() if not (exclude_none and v is None)}
        if not update_data:
            logger.warning(f"No valid data provided for updating {self.model.__name__} {id}")
            return db_obj

        for field, value in update_data.items():
            setattr(db_obj, field, value)

        return await self.save(db_obj)

    async def save(self, db_obj: ModelType) -> ModelType:
        """Commit pending changes on an already-loaded instance and reload it."""
        try:
            self.db.add(db_obj)
            await self.db.commit()
            await self.db.refresh(db_obj)
            logger.debug(f"Saved {self.model.__name__} with id: {db_obj.id}")
            return db_obj
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to save {self.model.__name__} {db_obj.id}: {e}")
            raise

    async def delete(self, id: uuid.UUID) -> bool:
        """
        Delete a record by its ID.

        Args:
            id: UUID of the record to delete

        Returns:
            True if record was deleted, False if not found
        """
        try:
            stmt = delete(self.model).where(self.model.id == id)
            result = await self.db.execute(stmt)
            await self.db.commit()

            deleted = result.rowcount > 0
            if deleted:
                logger.debug(f"Deleted {self.model.__name__} with id: {id}")
            return deleted
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete {self.model.__name__} {id}: {e}")
            raise

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """
        Count records with optional filtering.

        Args:
            filters: Dictionary of field filters

        Returns:
            Number of matching records
        """
        query = self._apply_filters(select(func.count(self.model.id)), filters)
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def count_by(self, column_name: str, filters: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """
        Group-by count over one column, e.g. records per status.

        Returns:
            Mapping of column value (enum values unwrapped) to count
        """
        column = getattr(self.model, column_name)
        query = self._apply_filters(select(column, func.count(self.model.id)), filters).group_by(column)
        result = await self.db.execute(query)

        counts: Dict[str, int] = {}
        for value, count in result.all():
            key = value.value if hasattr(value, "value") else str(value)
            counts[key] = count
        return counts
