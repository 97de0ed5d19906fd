import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from core.config import settings
from db.database import get_db
from main import app

PREFIX = settings.API_PREFIX


def _token(user_id, role):
    return jwt.encode(
        {"sub": str(user_id), "role": role},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def auth(principal):
    return {"Authorization": f"Bearer {_token(principal.user_id, principal.role)}"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def booking(catalog, booking_date):
    return {
        "vehicle_id": str(uuid.uuid4()),
        "service_id": str(catalog["oil_change"]),
        "inspection_type_id": str(catalog["engine_inspection"]),
        "date": booking_date.isoformat(),
        "time_slot": "09:00-11:00",
        "payment_method": "cash",
        "additional_service_ids": [str(catalog["brake_repair"])],
    }


async def test_root_and_health(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["slot_capacity"] == 3


async def test_missing_token_is_unauthorized(client, booking):
    response = await client.post(f"{PREFIX}/orders", json=booking)

    assert response.status_code == 401
    assert response.json() == {
        "message": "Authorization header is missing",
        "type": "UnauthorizedException",
        "status": 401,
    }


async def test_bad_signature_is_unauthorized(client, customer):
    token = jwt.encode(
        {"sub": str(customer.user_id), "role": "customer"}, "wrong-secret", algorithm="HS256"
    )
    response = await client.get(
        f"{PREFIX}/orders", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
    assert response.json()["type"] == "UnauthorizedException"


async def test_availability_is_public(client, booking_date):
    response = await client.get(
        f"{PREFIX}/time-slots/availability", params={"date": booking_date.isoformat()}
    )

    assert response.status_code == 200
    assert response.json()[0] == {
        "slot_label": "09:00-11:00",
        "available_slots": 3,
        "total_slots": 3,
    }


async def test_booking_and_reading_an_order(client, booking, customer, booking_date):
    response = await client.post(f"{PREFIX}/orders", json=booking, headers=auth(customer))

    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "pending"
    assert created["total_amount"] == "2800.00"

    response = await client.get(
        f"{PREFIX}/orders/{created['order_id']}", headers=auth(customer)
    )
    order = response.json()
    assert order["primary_service"]["service_name"] == "Oil Change"
    assert order["primary_service"]["price"] == "2000.00"
    assert order["inspection"]["sub_category"] == "EngineInspection"
    assert [s["service_name"] for s in order["additional_services"]] == [
        "Brake Pad Replacement"
    ]
    assert order["invoice_id"] is None

    response = await client.get(
        f"{PREFIX}/time-slots/availability", params={"date": booking_date.isoformat()}
    )
    assert response.json()[0]["available_slots"] == 2


async def test_domain_errors_carry_their_kind(client, booking, customer, catalog):
    booking["additional_service_ids"].append(str(catalog["oil_change"]))

    response = await client.post(f"{PREFIX}/orders", json=booking, headers=auth(customer))

    assert response.status_code == 409
    assert response.json()["type"] == "DuplicateService"


async def test_invalid_slot_label(client, booking, customer):
    booking["time_slot"] = "07:00-08:00"

    response = await client.post(f"{PREFIX}/orders", json=booking, headers=auth(customer))

    assert response.status_code == 422
    assert response.json()["type"] == "InvalidSlot"


async def test_mechanic_only_routes_reject_customers(client, booking, customer, mechanic):
    created = (
        await client.post(f"{PREFIX}/orders", json=booking, headers=auth(customer))
    ).json()

    response = await client.post(
        f"{PREFIX}/orders/{created['order_id']}/assign-mechanic",
        json={"mechanic_id": str(mechanic.user_id), "slot": "11:00-13:00"},
        headers=auth(customer),
    )

    assert response.status_code == 403
    assert response.json()["type"] == "ForbiddenException"


async def test_order_to_paid_invoice(client, booking, customer, admin, catalog):
    order_id = (
        await client.post(f"{PREFIX}/orders", json=booking, headers=auth(customer))
    ).json()["order_id"]

    response = await client.post(
        f"{PREFIX}/orders/{order_id}/add-service",
        json={"service_id": str(catalog["tire_rotation"])},
        headers=auth(customer),
    )
    assert response.status_code == 200
    assert response.json()["total_amount"] == "2950.00"
    assert response.json()["added_service"]["is_inspection"] is False

    for target in ("in_progress", "completed"):
        response = await client.put(
            f"{PREFIX}/orders/{order_id}", json={"status": target}, headers=auth(admin)
        )
        assert response.status_code == 200
        assert response.json()["order"]["status"] == target

    response = await client.post(
        f"{PREFIX}/invoices/generate-from-order/{order_id}", headers=auth(admin)
    )
    assert response.status_code == 200
    generated = response.json()
    assert generated["is_existing"] is False
    assert generated["payment_method"] == "cash"
    assert generated["invoice"]["status"] == "pending_cash"
    assert generated["invoice"]["sub_total"] == "2950.00"
    assert generated["invoice"]["tax_amount"] == "531.00"
    assert generated["invoice"]["total_amount"] == "3481.00"
    assert len(generated["invoice_items"]) == 4
    invoice_id = generated["invoice"]["id"]

    response = await client.post(
        f"{PREFIX}/invoices/generate-from-order/{order_id}", headers=auth(admin)
    )
    assert response.json()["is_existing"] is True
    assert response.json()["invoice"]["id"] == invoice_id

    response = await client.post(
        f"{PREFIX}/payments/process-cash-payment",
        json={"invoice_id": invoice_id},
        headers=auth(admin),
    )
    assert response.status_code == 200
    assert response.json()["payment"]["amount"] == "3481.00"

    response = await client.post(
        f"{PREFIX}/payments/process-cash-payment",
        json={"invoice_id": invoice_id},
        headers=auth(admin),
    )
    assert response.status_code == 409
    assert response.json()["type"] == "AlreadyPaid"

    response = await client.get(f"{PREFIX}/invoices/{invoice_id}", headers=auth(customer))
    detail = response.json()
    assert detail["invoice"]["status"] == "paid"
    assert detail["customer"]["id"] == str(customer.user_id)
    assert len(detail["payments"]) == 1

    response = await client.get(f"{PREFIX}/orders/{order_id}", headers=auth(customer))
    assert response.json()["invoice_id"] == invoice_id


async def test_illegal_transition_returns_conflict(client, booking, customer, admin):
    order_id = (
        await client.post(f"{PREFIX}/orders", json=booking, headers=auth(customer))
    ).json()["order_id"]

    response = await client.put(
        f"{PREFIX}/orders/{order_id}", json={"status": "completed"}, headers=auth(admin)
    )

    assert response.status_code == 409
    assert response.json()["type"] == "IllegalTransition"


async def test_stale_version_returns_conflict(client, booking, customer, admin):
    order_id = (
        await client.post(f"{PREFIX}/orders", json=booking, headers=auth(customer))
    ).json()["order_id"]
    await client.put(
        f"{PREFIX}/orders/{order_id}", json={"status": "in_progress"}, headers=auth(admin)
    )

    response = await client.put(
        f"{PREFIX}/orders/{order_id}",
        json={"status": "completed", "expected_version": 1},
        headers=auth(admin),
    )

    assert response.status_code == 409
    assert response.json()["type"] == "ConcurrentModification"


async def test_catalog_delete_reports_outcome(client, admin, catalog, customer):
    response = await client.delete(
        f"{PREFIX}/services/{catalog['tire_rotation']}", headers=auth(customer)
    )
    assert response.status_code == 403

    response = await client.delete(
        f"{PREFIX}/services/{catalog['tire_rotation']}", headers=auth(admin)
    )
    assert response.status_code == 204
    assert response.headers["X-Delete-Outcome"] == "deleted"

    response = await client.get(f"{PREFIX}/services/{catalog['tire_rotation']}")
    assert response.status_code == 404
    assert response.json()["type"] == "NotFound"


async def test_null_catalog_field_is_rejected(client, admin, catalog):
    response = await client.put(
        f"{PREFIX}/services/{catalog['oil_change']}",
        json={"name": None, "price": None},
        headers=auth(admin),
    )

    assert response.status_code == 422
    response = await client.get(f"{PREFIX}/services/{catalog['oil_change']}")
    assert response.json()["name"] == "Oil Change"
    assert response.json()["price"] == "2000.00"
