# src/services/catalog_service.py
from typing import List, Optional, Iterable
from uuid import UUID
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from models.service import Service, ServiceCategory
from models.order import Order, OrderServiceLine, Inspection, OrderStatus
from schemas.auth_schemas import Principal, UserRole
from schemas.base_schemas import to_money
from schemas.service_schemas import (
    ServiceCreate,
    ServiceUpdate,
    ServiceCategorySummary,
    ServiceDeleteResult,
)
from utils.exceptions import NotFound, ReferentialConflict, handle_db_exception
from utils.logger import setup_logger
from .base_service import BaseService

logger = setup_logger("CATALOG_SERVICE")

OPEN_ORDER_STATUSES = (OrderStatus.PENDING, OrderStatus.IN_PROGRESS)


class CatalogService(BaseService):
    def __init__(self):
        super().__init__(Service)

    async def get_active(self, db: AsyncSession, service_id: UUID) -> Service:
        """Catalog entry that can still be attached to new orders"""
        service = await self.get(db, service_id)
        if service is None or not service.is_active:
            raise NotFound(f"Service {service_id} not found")
        return service

    async def get_many_active(
        self, db: AsyncSession, service_ids: Iterable[UUID]
    ) -> List[Service]:
        """Resolve ids in the given order, failing on the first unknown one"""
        return [await self.get_active(db, service_id) for service_id in service_ids]

    async def list_services(
        self,
        db: AsyncSession,
        category: Optional[ServiceCategory] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Service]:
        """List services ordered by category then name"""
        try:
            query = select(Service)
            if category:
                query = query.where(Service.category == category)
            if not include_inactive:
                query = query.where(Service.is_active.is_(True))

            result = await db.execute(
                query.order_by(Service.category, Service.name).offset(skip).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "list services", e)
            return []

    async def create_service(
        self, db: AsyncSession, principal: Principal, service_data: ServiceCreate
    ) -> Service:
        principal.require(UserRole.ADMIN, action="create services")
        try:
            service = Service(**service_data.model_dump())
            db.add(service)
            await db.commit()

            logger.info(f"Created service: {service.name} ({service.category})")
            return service
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "create service", e)

    async def update_service(
        self,
        db: AsyncSession,
        principal: Principal,
        service_id: UUID,
        service_data: ServiceUpdate,
    ) -> Service:
        """Edit a catalog entry. Order lines keep their captured snapshot."""
        principal.require(UserRole.ADMIN, action="update services")
        service = await self.get_or_404(db, service_id)
        try:
            for field, value in service_data.model_dump(exclude_unset=True).items():
                setattr(service, field, value)
            await db.commit()

            logger.info(f"Updated service {service_id}")
            return service
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "update service", e)

    async def _reference_count(
        self, db: AsyncSession, service_id: UUID, open_only: bool
    ) -> int:
        line_query = (
            select(func.count(OrderServiceLine.id))
            .join(Order, Order.id == OrderServiceLine.order_id)
            .where(OrderServiceLine.service_id == service_id)
        )
        inspection_query = (
            select(func.count(Inspection.id))
            .join(Order, Order.id == Inspection.order_id)
            .where(Inspection.service_id == service_id)
        )
        if open_only:
            line_query = line_query.where(Order.status.in_(OPEN_ORDER_STATUSES))
            inspection_query = inspection_query.where(
                Order.status.in_(OPEN_ORDER_STATUSES)
            )

        lines = (await db.execute(line_query)).scalar_one()
        inspections = (await db.execute(inspection_query)).scalar_one()
        return lines + inspections

    async def delete_service(
        self, db: AsyncSession, principal: Principal, service_id: UUID
    ) -> ServiceDeleteResult:
        """Remove a catalog entry.

        Entries still referenced by an open order cannot be removed. Entries
        referenced only by finished orders are deactivated so history stays
        intact; everything else is deleted outright.
        """
        principal.require(UserRole.ADMIN, action="delete services")
        service = await self.get_or_404(db, service_id)

        try:
            if await self._reference_count(db, service_id, open_only=True):
                logger.warning(f"Refusing to delete service {service_id}: open orders")
                raise ReferentialConflict(
                    f"Service {service_id} is used by an open order"
                )

            if await self._reference_count(db, service_id, open_only=False):
                service.is_active = False
                outcome = "deactivated"
            else:
                await db.delete(service)
                outcome = "deleted"

            await db.commit()
            logger.info(f"Service {service_id} {outcome}")
            return ServiceDeleteResult(service_id=service_id, outcome=outcome)
        except (ReferentialConflict, SQLAlchemyError) as e:
            await handle_db_exception(db, logger, "delete service", e)

    async def get_categories_summary(
        self, db: AsyncSession
    ) -> List[ServiceCategorySummary]:
        """Get summary of services by category"""
        try:
            result = await db.execute(
                select(
                    Service.category,
                    func.count(Service.id).label("total_services"),
                    func.count(Service.id)
                    .filter(Service.is_active.is_(True))
                    .label("active_services"),
                    func.avg(Service.price).label("average_price"),
                )
                .group_by(Service.category)
                .order_by(Service.category)
            )

            return [
                ServiceCategorySummary(
                    category=row.category,
                    total_services=row.total_services,
                    active_services=row.active_services,
                    average_price=to_money(row.average_price or Decimal("0")),
                )
                for row in result.all()
            ]
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "categories summary", e)
            return []


catalog_service = CatalogService()
