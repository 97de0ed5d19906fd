# src/services/base_service.py
from typing import Type, TypeVar, List, Optional, Dict, Any
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from utils.logger import setup_logger
from utils.exceptions import NotFound, handle_db_exception

logger = setup_logger("BASE_SERVICE")

ModelType = TypeVar("ModelType")


class BaseService:
    def __init__(self, model: Type[ModelType]):
        self.model = model
        self.logger = setup_logger(f"SERVICE_{model.__name__}")

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if not filters:
            return query
        conditions = []
        for field, value in filters.items():
            if value is not None and hasattr(self.model, field):
                conditions.append(getattr(self.model, field) == value)
        if conditions:
            query = query.where(and_(*conditions))
        return query

    async def get(
        self, db: AsyncSession, id: UUID, refresh: bool = False
    ) -> Optional[ModelType]:
        """Get a single item by ID"""
        try:
            query = select(self.model).where(self.model.id == id)
            if refresh:
                # Reload relationships that changed in another unit of work
                query = query.execution_options(populate_existing=True)
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await handle_db_exception(db, self.logger, f"get {self.model.__name__}", e)
            return None

    async def get_or_404(
        self, db: AsyncSession, id: UUID, refresh: bool = False
    ) -> ModelType:
        item = await self.get(db, id, refresh=refresh)
        if item is None:
            raise NotFound(f"{self.model.__name__} {id} not found")
        return item

    async def get_multi(
        self,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[List[Any]] = None,
    ) -> List[ModelType]:
        """Get multiple items with pagination and filtering"""
        try:
            query = self._apply_filters(select(self.model), filters)
            if order_by:
                query = query.order_by(*order_by)
            query = query.offset(skip).limit(limit)
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await handle_db_exception(
                db, self.logger, f"get_multi {self.model.__name__}", e
            )
            return []
