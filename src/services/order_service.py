# src/services/order_service.py
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from models.appointment import AppointmentStatus, ServiceTransfer, TransferStatus
from models.order import (
    CONDITION_FIELDS,
    Inspection,
    InspectionStatus,
    LineKind,
    Order,
    OrderServiceLine,
    OrderStatus,
)
from models.service import Service, ServiceCategory
from schemas.auth_schemas import Principal, UserRole
from schemas.order_schemas import OrderCreate, InspectionReport
from utils.clock import utcnow
from utils.exceptions import (
    BadRequestException,
    BaseAPIException,
    ConcurrentModification,
    DuplicateService,
    ForbiddenException,
    IllegalTransition,
    NotFound,
    handle_db_exception,
)
from utils.logger import setup_logger
from .base_service import BaseService
from .catalog_service import catalog_service
from .order_state import check_transition
from .scheduler_service import scheduler_service
from .service_lines import compute_total, order_lines, service_ids

logger = setup_logger("ORDER_SERVICE")

OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.IN_PROGRESS)


def _snapshot(service: Service) -> dict:
    """Plain copy of the catalog fields an order line captures"""
    return {
        "service_id": service.id,
        "service_name": service.name,
        "category": service.category,
        "sub_category": service.sub_category,
        "price": service.price,
    }


class OrderService(BaseService):
    def __init__(self):
        super().__init__(Order)

    # Reads

    async def get_order(
        self, db: AsyncSession, principal: Principal, order_id: UUID
    ) -> Order:
        order = await self.get_or_404(db, order_id, refresh=True)
        principal.require_owner_or_staff(order.customer_id, action="view this order")
        return order

    async def list_orders(
        self,
        db: AsyncSession,
        principal: Principal,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Order]:
        """Customers only ever see their own orders"""
        if principal.is_customer:
            customer_id = principal.user_id
        return await self.get_multi(
            db,
            skip=skip,
            limit=limit,
            filters={"status": status, "customer_id": customer_id},
            order_by=[Order.order_date.desc()],
        )

    # Booking

    def _resolve_customer(self, principal: Principal, data: OrderCreate) -> UUID:
        if principal.is_customer:
            if data.customer_id is not None and data.customer_id != principal.user_id:
                raise ForbiddenException("Customers can only book for themselves")
            return principal.user_id
        if principal.is_admin:
            if data.customer_id is None:
                raise BadRequestException("customer_id is required for staff bookings")
            return data.customer_id
        raise ForbiddenException(f"Role '{principal.role}' may not create orders")

    def _check_duplicates(self, data: OrderCreate) -> None:
        requested = [data.service_id] if data.service_id else []
        requested += list(data.additional_service_ids)
        if data.inspection_type_id:
            requested.append(data.inspection_type_id)
        if len(requested) != len(set(requested)):
            raise DuplicateService("The same service was selected more than once")

    async def create_order(
        self, db: AsyncSession, principal: Principal, data: OrderCreate
    ) -> Order:
        """Book a service and/or an inspection.

        Catalog ids are checked before any slot is taken. An inspection slot is
        reserved first; if the order then cannot be stored the reservation is
        released again before the error is raised.
        """
        customer_id = self._resolve_customer(principal, data)
        self._check_duplicates(data)

        primary = None
        if data.service_id:
            service = await catalog_service.get_active(db, data.service_id)
            if service.is_inspection:
                raise BadRequestException(
                    "Inspection types are booked through inspection_type_id"
                )
            primary = _snapshot(service)

        inspection = None
        if data.inspection_type_id:
            inspection_type = await catalog_service.get_active(
                db, data.inspection_type_id
            )
            if inspection_type.category != ServiceCategory.INSPECTION:
                raise BadRequestException(
                    f"Service {inspection_type.id} is not an inspection type"
                )
            inspection = _snapshot(inspection_type)

        additional = [
            _snapshot(service)
            for service in await catalog_service.get_many_active(
                db, data.additional_service_ids
            )
        ]

        token_id = None
        if inspection is not None:
            token = await scheduler_service.reserve(
                db, data.inspection_date, data.time_slot
            )
            token_id = token.id

        try:
            order = Order(
                customer_id=customer_id,
                vehicle_id=data.vehicle_id,
                status=OrderStatus.PENDING,
                payment_method=data.payment_method,
                includes_inspection=inspection is not None,
                notes=data.notes,
            )
            lines = []
            if primary is not None:
                lines.append(OrderServiceLine(kind=LineKind.PRIMARY, **primary))
            for snapshot in additional:
                lines.append(OrderServiceLine(kind=LineKind.ADDITIONAL, **snapshot))
            for position, line in enumerate(lines):
                line.position = position
            order.service_lines = lines

            if inspection is not None:
                order.inspection = Inspection(
                    service_id=inspection["service_id"],
                    service_name=inspection["service_name"],
                    sub_category=inspection["sub_category"],
                    price=inspection["price"],
                    scheduled_date=data.inspection_date,
                    time_slot=data.time_slot,
                    status=InspectionStatus.PENDING,
                )

            order.total_amount = compute_total(order_lines(order))
            db.add(order)
            await db.flush()

            if token_id is not None:
                token.order_id = order.id
            await db.commit()
        except (BaseAPIException, SQLAlchemyError) as e:
            await db.rollback()
            if token_id is not None:
                await scheduler_service.release_reservation(db, token_id)
                logger.warning(f"Released reservation {token_id} after failed booking")
            await handle_db_exception(db, logger, "create order", e)

        logger.info(
            f"Created order {order.id} for customer {customer_id} "
            f"total={order.total_amount}"
        )
        return await self.get_or_404(db, order.id, refresh=True)

    # Mutations

    async def add_service(
        self,
        db: AsyncSession,
        principal: Principal,
        order_id: UUID,
        service_id: UUID,
        notes: Optional[str] = None,
    ) -> Tuple[OrderServiceLine, Order]:
        """Attach an additional service to an open order"""
        order = await self.get_or_404(db, order_id, refresh=True)
        principal.require_owner_or_staff(order.customer_id, action="modify this order")

        if order.status not in OPEN_STATUSES:
            raise IllegalTransition(
                f"Services cannot be added to a {OrderStatus(order.status).value} order"
            )
        if service_id in service_ids(order):
            raise DuplicateService(f"Service {service_id} is already on this order")

        service = await catalog_service.get_active(db, service_id)
        try:
            line = OrderServiceLine(
                kind=LineKind.ADDITIONAL,
                position=len(order.service_lines),
                notes=notes,
                **_snapshot(service),
            )
            order.service_lines.append(line)
            order.total_amount = compute_total(order_lines(order))
            order.updated_at = utcnow()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Concurrent duplicate service on order {order_id}: {e}")
            raise DuplicateService(f"Service {service_id} is already on this order")
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "add service", e)

        logger.info(
            f"Added service {service_id} to order {order_id}, "
            f"total={order.total_amount}"
        )
        order = await self.get_or_404(db, order_id, refresh=True)
        added = next(
            line for line in order.service_lines if line.service_id == service_id
        )
        return added, order

    async def apply_status(
        self, db: AsyncSession, order: Order, new_status: OrderStatus
    ) -> None:
        """Move an order and its dependents to ``new_status`` without committing.

        Cancelling releases every held reservation of the order and its
        appointment and cancels the inspection, appointment and transfer.
        Completing closes the appointment and transfer.
        """
        check_transition(order.status, new_status)
        now = utcnow()
        previous = order.status
        order.status = new_status

        if new_status == OrderStatus.CANCELLED:
            order.cancelled_at = now
            appointment = order.appointment
            await scheduler_service.release_for_order(
                db,
                order.id,
                appointment.id if appointment is not None else None,
                commit=False,
            )
            if order.inspection is not None and order.inspection.status in (
                InspectionStatus.PENDING,
                InspectionStatus.IN_PROGRESS,
            ):
                order.inspection.status = InspectionStatus.CANCELLED
            if appointment is not None and appointment.status in (
                AppointmentStatus.SCHEDULED,
                AppointmentStatus.IN_PROGRESS,
            ):
                appointment.status = AppointmentStatus.CANCELLED
                appointment.cancelled_at = now
            if (
                order.transfer is not None
                and order.transfer.status == TransferStatus.IN_PROGRESS
            ):
                order.transfer.status = TransferStatus.CANCELLED

        elif new_status == OrderStatus.COMPLETED:
            order.completed_at = now
            appointment = order.appointment
            if appointment is not None and appointment.status in (
                AppointmentStatus.SCHEDULED,
                AppointmentStatus.IN_PROGRESS,
            ):
                appointment.status = AppointmentStatus.COMPLETED
                appointment.completed_at = now
            if (
                order.transfer is not None
                and order.transfer.status == TransferStatus.IN_PROGRESS
            ):
                order.transfer.status = TransferStatus.COMPLETED

        order.total_amount = compute_total(order_lines(order))
        logger.info(
            f"Order {order.id}: {OrderStatus(previous).value} -> "
            f"{OrderStatus(new_status).value}"
        )

    async def set_status(
        self,
        db: AsyncSession,
        principal: Principal,
        order_id: UUID,
        new_status: OrderStatus,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Explicit transition requested by staff; illegal moves change nothing"""
        order = await self.get_or_404(db, order_id, refresh=True)

        is_own_cancel = (
            principal.is_customer
            and principal.user_id == order.customer_id
            and new_status == OrderStatus.CANCELLED
            and order.status == OrderStatus.PENDING
        )
        if not is_own_cancel:
            principal.require(
                UserRole.ADMIN, UserRole.MECHANIC, action="change order status"
            )

        if expected_version is not None and expected_version != order.version_id:
            logger.warning(
                f"Stale status update on order {order_id}: expected version "
                f"{expected_version}, found {order.version_id}"
            )
            raise ConcurrentModification(
                f"Order {order_id} is at version {order.version_id}"
            )

        try:
            await self.apply_status(db, order, OrderStatus(new_status))
            await db.commit()
        except (BaseAPIException, SQLAlchemyError, StaleDataError) as e:
            await handle_db_exception(db, logger, "set order status", e)

        return await self.get_or_404(db, order_id, refresh=True)

    async def cancel_order(
        self, db: AsyncSession, principal: Principal, order_id: UUID
    ) -> Order:
        return await self.set_status(db, principal, order_id, OrderStatus.CANCELLED)

    # Inspections

    async def submit_inspection_report(
        self,
        db: AsyncSession,
        principal: Principal,
        inspection_id: UUID,
        report: InspectionReport,
    ) -> Inspection:
        """Record condition grades and close the inspection and its appointment"""
        principal.require(
            UserRole.ADMIN, UserRole.MECHANIC, action="submit inspection reports"
        )
        result = await db.execute(
            select(Inspection)
            .where(Inspection.id == inspection_id)
            .execution_options(populate_existing=True)
        )
        inspection = result.scalar_one_or_none()
        if inspection is None:
            raise NotFound(f"Inspection {inspection_id} not found")

        order = await self.get_or_404(db, inspection.order_id, refresh=True)
        appointment = order.appointment
        if not principal.is_admin and (
            appointment is None or appointment.mechanic_id != principal.user_id
        ):
            raise ForbiddenException("Only the assigned mechanic can report")

        if order.is_terminal or inspection.status not in (
            InspectionStatus.PENDING,
            InspectionStatus.IN_PROGRESS,
        ):
            raise IllegalTransition(
                f"Inspection {inspection_id} is "
                f"{InspectionStatus(inspection.status).value}"
            )

        try:
            values = report.model_dump(exclude_unset=True)
            for field in CONDITION_FIELDS:
                if field in values:
                    setattr(inspection, field, values[field])
            if "notes" in values:
                inspection.notes = values["notes"]

            now = utcnow()
            inspection.status = InspectionStatus.COMPLETED
            inspection.completed_at = now
            if appointment is not None and appointment.status in (
                AppointmentStatus.SCHEDULED,
                AppointmentStatus.IN_PROGRESS,
            ):
                appointment.status = AppointmentStatus.COMPLETED
                appointment.completed_at = now
            order.updated_at = now
            await db.commit()
        except (SQLAlchemyError, StaleDataError) as e:
            await handle_db_exception(db, logger, "submit inspection report", e)

        logger.info(f"Inspection {inspection_id} completed for order {order.id}")
        order = await self.get_or_404(db, order.id, refresh=True)
        return order.inspection

    async def transfer_inspection_to_service(
        self,
        db: AsyncSession,
        principal: Principal,
        order_id: UUID,
        notes: Optional[str] = None,
    ) -> Order:
        """Open the service engagement that follows a completed inspection"""
        principal.require(
            UserRole.ADMIN, UserRole.MECHANIC, action="transfer inspections"
        )
        order = await self.get_or_404(db, order_id, refresh=True)

        if order.is_terminal:
            raise IllegalTransition(f"Order {order_id} is already closed")
        if not order.is_inspection_only:
            raise IllegalTransition(f"Order {order_id} is not an inspection-only order")
        if order.inspection.status != InspectionStatus.COMPLETED:
            raise IllegalTransition("The inspection has not been completed yet")
        if order.appointment is None:
            raise IllegalTransition("No mechanic has been assigned to this order")
        if order.transfer is not None:
            raise IllegalTransition(f"Order {order_id} was already transferred")

        try:
            db.add(
                ServiceTransfer(
                    order_id=order.id,
                    appointment_id=order.appointment.id,
                    mechanic_id=order.appointment.mechanic_id,
                    status=TransferStatus.IN_PROGRESS,
                    notes=notes,
                )
            )
            if order.status == OrderStatus.PENDING:
                await self.apply_status(db, order, OrderStatus.IN_PROGRESS)
            order.updated_at = utcnow()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Concurrent transfer of order {order_id}: {e}")
            raise IllegalTransition(f"Order {order_id} was already transferred")
        except (BaseAPIException, SQLAlchemyError, StaleDataError) as e:
            await handle_db_exception(db, logger, "transfer inspection", e)

        logger.info(f"Order {order_id} transferred to service")
        return await self.get_or_404(db, order_id, refresh=True)


order_service = OrderService()
