import uuid
from datetime import timedelta

import pytest

from models.appointment import AppointmentStatus
from schemas.appointment_schemas import AppointmentReschedule, AssignMechanicRequest
from schemas.auth_schemas import Principal, UserRole
from services.appointment_service import appointment_service
from services.order_service import order_service
from services.scheduler_service import scheduler_service
from utils.exceptions import IllegalTransition, NoMechanicAvailable, SlotFull


async def _available(db, day, label):
    availability = await scheduler_service.get_availability(db, day)
    return next(s.available_slots for s in availability if s.slot_label == label)


async def _assign(db, order_id, principal, mechanic, slot="11:00-13:00", day=None):
    return await appointment_service.assign_mechanic(
        db,
        principal,
        order_id,
        AssignMechanicRequest(mechanic_id=mechanic.user_id, slot=slot, appointment_date=day),
    )


async def test_reschedule_moves_appointment_and_slot(
    db, make_order, admin, mechanic, booking_date
):
    order = await make_order()
    appointment = await _assign(db, order.id, admin, mechanic)
    later = booking_date + timedelta(days=1)

    moved = await appointment_service.reschedule(
        db,
        mechanic,
        appointment.id,
        AppointmentReschedule(appointment_date=later, time_slot="16:00-18:00"),
    )

    assert moved.appointment_date == later
    assert moved.time_slot == "16:00-18:00"
    assert await _available(db, booking_date, "11:00-13:00") == 3
    assert await _available(db, later, "16:00-18:00") == 2


async def test_reschedule_into_full_slot_keeps_everything(
    db, make_order, admin, mechanic, booking_date
):
    order = await make_order()
    appointment = await _assign(db, order.id, admin, mechanic)
    appointment_id = appointment.id
    for _ in range(3):
        await scheduler_service.reserve(db, booking_date, "16:00-18:00")

    with pytest.raises(SlotFull):
        await appointment_service.reschedule(
            db,
            admin,
            appointment_id,
            AppointmentReschedule(appointment_date=booking_date, time_slot="16:00-18:00"),
        )

    appointment = await appointment_service.get_or_404(db, appointment_id, refresh=True)
    assert appointment.time_slot == "11:00-13:00"
    assert await _available(db, booking_date, "11:00-13:00") == 2


async def test_reschedule_onto_mechanics_other_job_is_rejected(
    db, make_order, admin, mechanic, booking_date
):
    first = await make_order()
    second = await make_order()
    second_id = second.id
    await _assign(db, first.id, admin, mechanic, slot="14:00-16:00")
    appointment = await _assign(db, second_id, admin, mechanic, slot="16:00-18:00")

    with pytest.raises(NoMechanicAvailable):
        await appointment_service.reschedule(
            db,
            admin,
            appointment.id,
            AppointmentReschedule(appointment_date=booking_date, time_slot="14:00-16:00"),
        )


async def test_only_scheduled_appointments_move(
    db, make_order, admin, mechanic, booking_date
):
    order = await make_order()
    order_id = order.id
    appointment = await _assign(db, order_id, admin, mechanic)
    appointment_id = appointment.id
    await order_service.cancel_order(db, admin, order_id)

    with pytest.raises(IllegalTransition):
        await appointment_service.reschedule(
            db,
            admin,
            appointment_id,
            AppointmentReschedule(appointment_date=booking_date, time_slot="16:00-18:00"),
        )


async def test_assignment_without_inspection_defaults_to_today(
    db, make_order, admin, mechanic
):
    from utils.clock import today

    order = await make_order(inspection_type_id=None)

    appointment = await _assign(db, order.id, admin, mechanic, slot="16:00-18:00")

    assert appointment.appointment_date == today()


async def test_listing_is_scoped_to_the_caller(
    db, make_order, admin, mechanic, customer
):
    other_mechanic = Principal(user_id=uuid.uuid4(), role=UserRole.MECHANIC)
    stranger = Principal(user_id=uuid.uuid4(), role=UserRole.CUSTOMER)
    first = await make_order()
    second = await make_order()
    await _assign(db, first.id, admin, mechanic)
    await _assign(db, second.id, admin, other_mechanic)

    mine = await appointment_service.list_appointments(db, mechanic)
    assert [a.mechanic_id for a in mine] == [mechanic.user_id]
    # A mechanic cannot widen the filter to someone else's schedule
    widened = await appointment_service.list_appointments(
        db, mechanic, mechanic_id=other_mechanic.user_id
    )
    assert [a.mechanic_id for a in widened] == [mechanic.user_id]

    assert len(await appointment_service.list_appointments(db, customer)) == 2
    assert await appointment_service.list_appointments(db, stranger) == []
    scheduled = await appointment_service.list_appointments(
        db, admin, status=AppointmentStatus.SCHEDULED
    )
    assert len(scheduled) == 2


async def test_slot_conflict_caught_at_write_restores_the_reservation(
    db, make_order, admin, mechanic, booking_date, monkeypatch
):
    first = await make_order()
    second = await make_order()
    await _assign(db, first.id, admin, mechanic, slot="14:00-16:00")
    appointment = await _assign(db, second.id, admin, mechanic, slot="16:00-18:00")
    appointment_id = appointment.id

    async def skip_check(*args, **kwargs):
        return None

    monkeypatch.setattr(appointment_service, "_check_mechanic_free", skip_check)

    with pytest.raises(NoMechanicAvailable):
        await appointment_service.reschedule(
            db,
            admin,
            appointment_id,
            AppointmentReschedule(appointment_date=booking_date, time_slot="14:00-16:00"),
        )

    appointment = await appointment_service.get_or_404(db, appointment_id, refresh=True)
    assert appointment.time_slot == "16:00-18:00"
    assert await _available(db, booking_date, "14:00-16:00") == 2
    assert await _available(db, booking_date, "16:00-18:00") == 2


async def test_cancelled_appointment_frees_the_mechanic(
    db, make_order, admin, mechanic, booking_date
):
    first = await make_order()
    first_id = first.id
    await _assign(db, first_id, admin, mechanic, slot="14:00-16:00")
    await order_service.cancel_order(db, admin, first_id)
    second = await make_order()

    appointment = await _assign(db, second.id, admin, mechanic, slot="14:00-16:00")

    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.appointment_date == booking_date
