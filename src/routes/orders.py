# src/routes/orders.py
from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Any
from uuid import UUID
from core.dependencies import get_current_principal, require_staff
from db.database import get_db
from models.order import OrderStatus
from schemas.appointment_schemas import AssignMechanicRequest, AppointmentPublic
from schemas.auth_schemas import Principal
from schemas.order_schemas import (
    AddServiceRequest,
    AddServiceResponse,
    OrderCreate,
    OrderCreated,
    OrderDetail,
    OrderResponse,
    OrderStatusUpdate,
    ServiceLinePublic,
)
from services.appointment_service import appointment_service
from services.order_service import order_service
from utils.rate_limiter import limiter

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
    description="Book a service and/or an inspection into a time slot",
)
@limiter.limit("30/minute")
async def create_order(
    request: Request,
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """Create order endpoint"""
    order = await order_service.create_order(db, principal, order_data)
    return OrderCreated(
        order_id=order.id, status=order.status, total_amount=order.total_amount
    )


@router.get(
    "",
    response_model=List[OrderDetail],
    summary="List orders",
    description="Customers get their own orders; staff may filter by customer",
)
async def list_orders(
    skip: int = 0,
    limit: int = 100,
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None, description="Filter by customer"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    orders = await order_service.list_orders(
        db,
        principal,
        status=order_status,
        customer_id=customer_id,
        skip=skip,
        limit=limit,
    )
    return [OrderDetail.from_order(order) for order in orders]


@router.get(
    "/{order_id}",
    response_model=OrderDetail,
    summary="Get order",
    description="Order with its service lines, inspection, appointment and invoice id",
)
async def get_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    order = await order_service.get_order(db, principal, order_id)
    return OrderDetail.from_order(order)


@router.post(
    "/{order_id}/add-service",
    response_model=AddServiceResponse,
    summary="Add service",
    description="Attach an additional service to an open order",
)
async def add_service(
    order_id: UUID,
    body: AddServiceRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    line, order = await order_service.add_service(
        db, principal, order_id, body.service_id, body.notes
    )
    return AddServiceResponse(
        added_service=ServiceLinePublic.model_validate(line),
        total_amount=order.total_amount,
    )


@router.post(
    "/{order_id}/assign-mechanic",
    response_model=AppointmentPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Assign mechanic",
    description="Schedule a mechanic for the order in a time slot",
)
async def assign_mechanic(
    order_id: UUID,
    body: AssignMechanicRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> Any:
    appointment = await appointment_service.assign_mechanic(
        db, principal, order_id, body
    )
    return AppointmentPublic.model_validate(appointment)


@router.post(
    "/{order_id}/transfer-to-service",
    response_model=OrderResponse,
    summary="Transfer inspection to service",
    description="Start the service engagement after a completed inspection",
)
async def transfer_to_service(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> Any:
    order = await order_service.transfer_inspection_to_service(db, principal, order_id)
    return OrderResponse(order=OrderDetail.from_order(order))


@router.put(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Update order status",
    description="Move the order through its lifecycle",
)
async def update_order_status(
    order_id: UUID,
    body: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    order = await order_service.set_status(
        db, principal, order_id, body.status, expected_version=body.expected_version
    )
    return OrderResponse(order=OrderDetail.from_order(order))


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
    description="Cancel an order and free its reserved slots",
)
async def cancel_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    order = await order_service.cancel_order(db, principal, order_id)
    return OrderResponse(order=OrderDetail.from_order(order))
