# src/services/scheduler_service.py
from datetime import date
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from core.config import settings
from models.time_slot import SlotBucket, SlotReservation
from schemas.time_slot_schemas import SlotAvailability
from utils.clock import today, utcnow
from utils.exceptions import (
    BaseAPIException,
    IllegalTransition,
    InvalidSlot,
    NotFound,
    SlotFull,
    handle_db_exception,
)
from utils.logger import setup_logger

logger = setup_logger("SCHEDULER_SERVICE")


class SchedulerService:
    """Per-day slot capacity.

    Every labelled slot on a day is a ``SlotBucket`` row. Reserving is a single
    conditional UPDATE, so concurrent callers can never push a bucket past its
    capacity; the row count tells the caller whether it got the slot.
    """

    @property
    def labels(self) -> List[str]:
        return settings.SLOT_LABELS

    @property
    def capacity(self) -> int:
        return settings.SLOT_CAPACITY

    def validate_slot(self, slot_date: date, slot_label: str) -> None:
        if slot_label not in self.labels:
            raise InvalidSlot(f"Unknown time slot '{slot_label}'")
        if slot_date < today():
            raise InvalidSlot(f"Cannot book a slot in the past ({slot_date})")

    async def open_day(self, db: AsyncSession, slot_date: date) -> None:
        """Create the day's buckets from the configured slot table if missing"""
        result = await db.execute(
            select(SlotBucket.slot_label).where(SlotBucket.slot_date == slot_date)
        )
        existing = set(result.scalars().all())
        if existing.issuperset(self.labels):
            return

        for position, label in enumerate(self.labels):
            if label not in existing:
                db.add(
                    SlotBucket(
                        slot_date=slot_date,
                        slot_label=label,
                        position=position,
                        total_capacity=self.capacity,
                        reserved_count=0,
                    )
                )
        try:
            await db.commit()
            logger.debug(f"Opened slot table for {slot_date}")
        except IntegrityError:
            # Another booking opened the same day first
            await db.rollback()

    async def get_availability(
        self, db: AsyncSession, slot_date: date
    ) -> List[SlotAvailability]:
        """Availability per slot, in configured order"""
        try:
            result = await db.execute(
                select(SlotBucket)
                .where(SlotBucket.slot_date == slot_date)
                .execution_options(populate_existing=True)
            )
            buckets = {bucket.slot_label: bucket for bucket in result.scalars().all()}
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "get availability", e)

        is_past = slot_date < today()
        availability = []
        for label in self.labels:
            bucket = buckets.get(label)
            total = bucket.total_capacity if bucket else self.capacity
            available = bucket.available_count if bucket else total
            availability.append(
                SlotAvailability(
                    slot_label=label,
                    available_slots=0 if is_past else available,
                    total_slots=total,
                )
            )
        return availability

    async def _claim(
        self,
        db: AsyncSession,
        slot_date: date,
        slot_label: str,
        order_id: Optional[UUID] = None,
        appointment_id: Optional[UUID] = None,
    ) -> SlotReservation:
        await self.open_day(db, slot_date)

        result = await db.execute(
            update(SlotBucket)
            .where(
                SlotBucket.slot_date == slot_date,
                SlotBucket.slot_label == slot_label,
                SlotBucket.reserved_count < SlotBucket.total_capacity,
            )
            .values(reserved_count=SlotBucket.reserved_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            logger.warning(f"Slot {slot_date} {slot_label} is full")
            raise SlotFull(f"Time slot {slot_label} on {slot_date} is fully booked")

        token = SlotReservation(
            slot_date=slot_date,
            slot_label=slot_label,
            order_id=order_id,
            appointment_id=appointment_id,
        )
        db.add(token)
        await db.commit()

        logger.info(f"Reserved {slot_date} {slot_label} (token {token.id})")
        return token

    async def reserve(
        self,
        db: AsyncSession,
        slot_date: date,
        slot_label: str,
        order_id: Optional[UUID] = None,
        appointment_id: Optional[UUID] = None,
    ) -> SlotReservation:
        """Take one unit of capacity and return the held reservation token.

        Runs as its own unit of work; callers persist whatever depends on the
        reservation afterwards and release the token if that fails.
        """
        self.validate_slot(slot_date, slot_label)
        try:
            return await self._claim(db, slot_date, slot_label, order_id, appointment_id)
        except (SlotFull, SQLAlchemyError) as e:
            await handle_db_exception(db, logger, "reserve slot", e)

    async def release(
        self, db: AsyncSession, slot_date: date, slot_label: str, commit: bool = True
    ) -> bool:
        """Give one unit back; never drops below zero"""
        result = await db.execute(
            update(SlotBucket)
            .where(
                SlotBucket.slot_date == slot_date,
                SlotBucket.slot_label == slot_label,
                SlotBucket.reserved_count > 0,
            )
            .values(reserved_count=SlotBucket.reserved_count - 1)
            .execution_options(synchronize_session=False)
        )
        if commit:
            await db.commit()
        released = result.rowcount == 1
        if released:
            logger.info(f"Released {slot_date} {slot_label}")
        return released

    async def release_reservation(
        self, db: AsyncSession, token_id: UUID, commit: bool = True
    ) -> bool:
        """Release a held token once. Returns False if it was already released."""
        result = await db.execute(
            update(SlotReservation)
            .where(SlotReservation.id == token_id, SlotReservation.released_at.is_(None))
            .values(released_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        token = await db.get(SlotReservation, token_id, populate_existing=True)
        await self.release(db, token.slot_date, token.slot_label, commit=False)
        if commit:
            await db.commit()
        return True

    async def held_reservations(
        self,
        db: AsyncSession,
        order_id: Optional[UUID] = None,
        appointment_id: Optional[UUID] = None,
    ) -> List[SlotReservation]:
        conditions = []
        if order_id is not None:
            conditions.append(SlotReservation.order_id == order_id)
        if appointment_id is not None:
            conditions.append(SlotReservation.appointment_id == appointment_id)
        if not conditions:
            return []

        result = await db.execute(
            select(SlotReservation)
            .where(or_(*conditions), SlotReservation.released_at.is_(None))
            .order_by(SlotReservation.created_at)
        )
        return list(result.scalars().all())

    async def release_for_order(
        self,
        db: AsyncSession,
        order_id: UUID,
        appointment_id: Optional[UUID] = None,
        commit: bool = True,
    ) -> int:
        """Release every held token of an order and its appointment"""
        tokens = await self.held_reservations(db, order_id, appointment_id)
        released = 0
        for token in tokens:
            if await self.release_reservation(db, token.id, commit=False):
                released += 1
        if commit:
            await db.commit()
        return released

    async def reschedule(
        self, db: AsyncSession, token_id: UUID, new_date: date, new_label: str
    ) -> SlotReservation:
        """Move a held reservation.

        The old slot is released first; if the new one cannot be taken the old
        slot is claimed back and the original error is raised.
        """
        token = await db.get(SlotReservation, token_id, populate_existing=True)
        if token is None:
            raise NotFound(f"Reservation {token_id} not found")
        if not token.is_held:
            raise IllegalTransition(f"Reservation {token_id} was already released")
        self.validate_slot(new_date, new_label)

        original = (token.slot_date, token.slot_label, token.order_id, token.appointment_id)
        await self.release_reservation(db, token_id)

        try:
            return await self._claim(
                db, new_date, new_label, order_id=original[2], appointment_id=original[3]
            )
        except (BaseAPIException, SQLAlchemyError) as e:
            await db.rollback()
            try:
                await self._claim(
                    db,
                    original[0],
                    original[1],
                    order_id=original[2],
                    appointment_id=original[3],
                )
            except SlotFull:
                logger.error(
                    f"Could not restore reservation {original[0]} {original[1]} "
                    f"after failed reschedule"
                )
            await handle_db_exception(db, logger, "reschedule slot", e)


scheduler_service = SchedulerService()
