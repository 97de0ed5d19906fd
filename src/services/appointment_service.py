# src/services/appointment_service.py
from typing import List, Optional
from uuid import UUID
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from models.appointment import (
    Appointment,
    AppointmentStatus,
    ServiceTransfer,
    TransferStatus,
)
from models.order import InspectionStatus, Order, OrderStatus
from schemas.auth_schemas import Principal, UserRole
from schemas.appointment_schemas import (
    AssignMechanicRequest,
    AppointmentReschedule,
    TransferStatusUpdate,
)
from utils.clock import today
from utils.exceptions import (
    BaseAPIException,
    ForbiddenException,
    IllegalTransition,
    NoMechanicAvailable,
    NotFound,
    handle_db_exception,
)
from utils.logger import setup_logger
from .base_service import BaseService
from .order_service import order_service
from .scheduler_service import scheduler_service

logger = setup_logger("APPOINTMENT_SERVICE")


class AppointmentService(BaseService):
    def __init__(self):
        super().__init__(Appointment)

    async def _check_mechanic_free(
        self,
        db: AsyncSession,
        mechanic_id: UUID,
        appointment_date: date,
        time_slot: str,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        query = select(Appointment.id).where(
            Appointment.mechanic_id == mechanic_id,
            Appointment.appointment_date == appointment_date,
            Appointment.time_slot == time_slot,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        if exclude_id is not None:
            query = query.where(Appointment.id != exclude_id)

        conflict = (await db.execute(query.limit(1))).scalar_one_or_none()
        if conflict is not None:
            logger.warning(
                f"Mechanic {mechanic_id} already booked {appointment_date} {time_slot}"
            )
            raise NoMechanicAvailable(
                f"Mechanic {mechanic_id} already has an appointment "
                f"on {appointment_date} at {time_slot}"
            )

    async def assign_mechanic(
        self,
        db: AsyncSession,
        principal: Principal,
        order_id: UUID,
        request: AssignMechanicRequest,
    ) -> Appointment:
        """Schedule a mechanic for an order.

        The appointment takes its own scheduler slot. The date falls back to
        the inspection's booked day, then to today. A pending order and its
        inspection move to in progress.
        """
        principal.require(UserRole.ADMIN, UserRole.MECHANIC, action="assign mechanics")
        order = await order_service.get_or_404(db, order_id, refresh=True)

        if order.is_terminal:
            raise IllegalTransition(f"Order {order_id} is already closed")
        if order.appointment is not None:
            raise IllegalTransition(f"Order {order_id} already has an appointment")

        appointment_date = request.appointment_date
        if appointment_date is None:
            appointment_date = (
                order.inspection.scheduled_date if order.inspection else today()
            )

        await self._check_mechanic_free(
            db, request.mechanic_id, appointment_date, request.slot
        )

        token = await scheduler_service.reserve(
            db, appointment_date, request.slot, order_id=order_id
        )
        token_id = token.id

        try:
            order = await order_service.get_or_404(db, order_id, refresh=True)
            appointment = Appointment(
                order_id=order_id,
                mechanic_id=request.mechanic_id,
                appointment_date=appointment_date,
                time_slot=request.slot,
                status=AppointmentStatus.SCHEDULED,
                notes=request.notes,
            )
            db.add(appointment)
            await db.flush()
            token.appointment_id = appointment.id

            if order.status == OrderStatus.PENDING:
                await order_service.apply_status(db, order, OrderStatus.IN_PROGRESS)
            if (
                order.inspection is not None
                and order.inspection.status == InspectionStatus.PENDING
            ):
                order.inspection.status = InspectionStatus.IN_PROGRESS
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            await scheduler_service.release_reservation(db, token_id)
            logger.warning(f"Concurrent mechanic assignment on order {order_id}: {e}")
            existing = await db.execute(
                select(Appointment.id).where(Appointment.order_id == order_id)
            )
            if existing.scalar_one_or_none() is not None:
                raise IllegalTransition(f"Order {order_id} already has an appointment")
            raise NoMechanicAvailable(
                f"Mechanic {request.mechanic_id} already has an appointment "
                f"on {appointment_date} at {request.slot}"
            )
        except (BaseAPIException, SQLAlchemyError, StaleDataError) as e:
            await db.rollback()
            await scheduler_service.release_reservation(db, token_id)
            await handle_db_exception(db, logger, "assign mechanic", e)

        logger.info(
            f"Assigned mechanic {request.mechanic_id} to order {order_id} "
            f"on {appointment_date} {request.slot}"
        )
        return await self.get_or_404(db, appointment.id, refresh=True)

    async def list_appointments(
        self,
        db: AsyncSession,
        principal: Principal,
        mechanic_id: Optional[UUID] = None,
        status: Optional[AppointmentStatus] = None,
        appointment_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Appointment]:
        """Mechanics see their own schedule, customers the appointments on their orders"""
        try:
            query = select(Appointment)
            if principal.role == UserRole.MECHANIC:
                mechanic_id = principal.user_id
            if principal.is_customer:
                query = query.join(Order, Order.id == Appointment.order_id).where(
                    Order.customer_id == principal.user_id
                )
            if mechanic_id is not None:
                query = query.where(Appointment.mechanic_id == mechanic_id)
            if status is not None:
                query = query.where(Appointment.status == status)
            if appointment_date is not None:
                query = query.where(Appointment.appointment_date == appointment_date)

            result = await db.execute(
                query.order_by(Appointment.appointment_date, Appointment.time_slot)
                .offset(skip)
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "list appointments", e)
            return []

    async def reschedule(
        self,
        db: AsyncSession,
        principal: Principal,
        appointment_id: UUID,
        request: AppointmentReschedule,
    ) -> Appointment:
        """Move a scheduled appointment, carrying its slot reservation along"""
        principal.require(
            UserRole.ADMIN, UserRole.MECHANIC, action="reschedule appointments"
        )
        appointment = await self.get_or_404(db, appointment_id, refresh=True)
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise IllegalTransition(
                f"Only scheduled appointments can be moved, this one is "
                f"{AppointmentStatus(appointment.status).value}"
            )

        await self._check_mechanic_free(
            db,
            appointment.mechanic_id,
            request.appointment_date,
            request.time_slot,
            exclude_id=appointment_id,
        )

        original_date, original_slot = appointment.appointment_date, appointment.time_slot
        mechanic_id = appointment.mechanic_id
        held = await scheduler_service.held_reservations(
            db, appointment_id=appointment_id
        )
        if held:
            token = await scheduler_service.reschedule(
                db, held[0].id, request.appointment_date, request.time_slot
            )
        else:
            token = await scheduler_service.reserve(
                db,
                request.appointment_date,
                request.time_slot,
                order_id=appointment.order_id,
                appointment_id=appointment_id,
            )
        token_id = token.id

        try:
            appointment = await self.get_or_404(db, appointment_id, refresh=True)
            appointment.appointment_date = request.appointment_date
            appointment.time_slot = request.time_slot
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(
                f"Concurrent booking of mechanic on appointment {appointment_id}: {e}"
            )
            if held:
                try:
                    await scheduler_service.reschedule(
                        db, token_id, original_date, original_slot
                    )
                except BaseAPIException as restore_error:
                    logger.error(
                        f"Could not restore slot {original_date} {original_slot} "
                        f"for appointment {appointment_id}: {restore_error.detail}"
                    )
            else:
                await scheduler_service.release_reservation(db, token_id)
            raise NoMechanicAvailable(
                f"Mechanic {mechanic_id} already has an appointment "
                f"on {request.appointment_date} at {request.time_slot}"
            )
        except (SQLAlchemyError, StaleDataError) as e:
            await handle_db_exception(db, logger, "reschedule appointment", e)

        logger.info(
            f"Rescheduled appointment {appointment_id} to "
            f"{request.appointment_date} {request.time_slot}"
        )
        return appointment

    async def update_transfer_status(
        self,
        db: AsyncSession,
        principal: Principal,
        transfer_id: UUID,
        update: TransferStatusUpdate,
    ) -> ServiceTransfer:
        """Mechanic progress on a transferred service.

        A completed or cancelled transfer completes or cancels its order.
        """
        principal.require(
            UserRole.ADMIN, UserRole.MECHANIC, action="update service transfers"
        )
        result = await db.execute(
            select(ServiceTransfer)
            .where(ServiceTransfer.id == transfer_id)
            .execution_options(populate_existing=True)
        )
        transfer = result.scalar_one_or_none()
        if transfer is None:
            raise NotFound(f"Service transfer {transfer_id} not found")
        if not principal.is_admin and transfer.mechanic_id != principal.user_id:
            raise ForbiddenException("Only the assigned mechanic can update this service")
        if transfer.status != TransferStatus.IN_PROGRESS:
            raise IllegalTransition(
                f"Service transfer is already {TransferStatus(transfer.status).value}"
            )

        order = await order_service.get_or_404(db, transfer.order_id, refresh=True)
        try:
            target = TransferStatus(update.status)
            if target == TransferStatus.COMPLETED:
                await order_service.apply_status(db, order, OrderStatus.COMPLETED)
            elif target == TransferStatus.CANCELLED:
                await order_service.apply_status(db, order, OrderStatus.CANCELLED)
            transfer.status = target

            if update.notes is not None:
                transfer.notes = update.notes
            if update.eta is not None:
                transfer.eta = update.eta
            await db.commit()
        except (BaseAPIException, SQLAlchemyError, StaleDataError) as e:
            await handle_db_exception(db, logger, "update transfer status", e)

        logger.info(f"Service transfer {transfer_id} is {target.value}")
        result = await db.execute(
            select(ServiceTransfer)
            .where(ServiceTransfer.id == transfer_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()


appointment_service = AppointmentService()
