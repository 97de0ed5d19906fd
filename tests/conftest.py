import os

os.environ["ENVIRONMENT"] = "testing"
os.environ["SQLITE_MODE"] = "true"
os.environ["DB_NAME"] = "motomate_test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["TIME_SLOTS"] = "09:00-11:00,11:00-13:00,14:00-16:00,16:00-18:00"
os.environ["SLOT_CAPACITY"] = "3"
os.environ["LOG_LEVEL"] = "WARNING"

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from db.database import Base, use_immediate_transactions
import models  # noqa: F401
from models.order import PaymentMethod
from models.service import Service, ServiceCategory
from schemas.auth_schemas import Principal, UserRole
from schemas.order_schemas import OrderCreate
from services.order_service import order_service
from utils.clock import today


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}",
        connect_args={"timeout": 30},
    )
    use_immediate_transactions(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def admin():
    return Principal(user_id=uuid.uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def mechanic():
    return Principal(user_id=uuid.uuid4(), role=UserRole.MECHANIC)


@pytest.fixture
def customer():
    return Principal(user_id=uuid.uuid4(), role=UserRole.CUSTOMER)


@pytest.fixture
def booking_date():
    return today() + timedelta(days=1)


@pytest_asyncio.fixture
async def catalog(db):
    services = {
        "oil_change": Service(
            name="Oil Change",
            category=ServiceCategory.MAINTENANCE,
            price=Decimal("2000.00"),
        ),
        "engine_inspection": Service(
            name="Engine Inspection",
            category=ServiceCategory.INSPECTION,
            sub_category="EngineInspection",
            price=Decimal("500.00"),
        ),
        "brake_repair": Service(
            name="Brake Pad Replacement",
            category=ServiceCategory.REPAIR,
            price=Decimal("300.00"),
        ),
        "tire_rotation": Service(
            name="Tire Rotation",
            category=ServiceCategory.MAINTENANCE,
            price=Decimal("150.00"),
        ),
    }
    db.add_all(services.values())
    await db.commit()
    # Ids only: a rollback inside a test expires the ORM instances
    return {key: service.id for key, service in services.items()}


@pytest.fixture
def make_order(db, customer, catalog, booking_date):
    """Book an order for the default customer; keyword overrides go to OrderCreate"""

    async def _make(principal=None, **overrides):
        data = {
            "vehicle_id": uuid.uuid4(),
            "service_id": catalog["oil_change"],
            "inspection_type_id": catalog["engine_inspection"],
            "date": booking_date,
            "time_slot": "09:00-11:00",
            "payment_method": PaymentMethod.CASH,
            "additional_service_ids": [catalog["brake_repair"]],
        }
        data.update(overrides)
        return await order_service.create_order(
            db, principal or customer, OrderCreate(**data)
        )

    return _make
