# src/routes/services.py
from fastapi import APIRouter, Depends, Request, Response, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Any
from uuid import UUID
from core.dependencies import get_current_principal
from db.database import get_db
from models.service import ServiceCategory
from schemas.auth_schemas import Principal
from schemas.service_schemas import (
    ServiceCreate,
    ServiceUpdate,
    ServicePublic,
    ServiceCategorySummary,
)
from services.catalog_service import catalog_service
from utils.rate_limiter import limiter

router = APIRouter(prefix="/services", tags=["services"])


@router.get(
    "",
    response_model=List[ServicePublic],
    summary="List services",
    description="Get the service catalog ordered by category and name",
)
async def list_services(
    skip: int = 0,
    limit: int = 100,
    category: Optional[ServiceCategory] = Query(None, description="Filter by category"),
    include_inactive: bool = Query(False, description="Include deactivated services"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """List services endpoint"""
    services = await catalog_service.list_services(
        db,
        category=category,
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )
    return [ServicePublic.model_validate(service) for service in services]


@router.get(
    "/categories/summary",
    response_model=List[ServiceCategorySummary],
    summary="Get categories summary",
    description="Service count, active count and average price per category",
)
async def get_categories_summary(db: AsyncSession = Depends(get_db)) -> Any:
    return await catalog_service.get_categories_summary(db)


@router.post(
    "",
    response_model=ServicePublic,
    status_code=status.HTTP_201_CREATED,
    summary="Create service",
    description="Add a service to the catalog",
)
@limiter.limit("50/minute")
async def create_service(
    request: Request,
    service_data: ServiceCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """Create service endpoint"""
    service = await catalog_service.create_service(db, principal, service_data)
    return ServicePublic.model_validate(service)


@router.get(
    "/{service_id}",
    response_model=ServicePublic,
    summary="Get service",
    description="Get service by ID",
)
async def get_service(service_id: UUID, db: AsyncSession = Depends(get_db)) -> Any:
    """Get service endpoint"""
    service = await catalog_service.get_or_404(db, service_id)
    return ServicePublic.model_validate(service)


@router.put(
    "/{service_id}",
    response_model=ServicePublic,
    summary="Update service",
    description="Update a catalog entry; existing order lines keep their prices",
)
@limiter.limit("100/minute")
async def update_service(
    request: Request,
    service_id: UUID,
    service_data: ServiceUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """Update service endpoint"""
    service = await catalog_service.update_service(
        db, principal, service_id, service_data
    )
    return ServicePublic.model_validate(service)


@router.delete(
    "/{service_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete service",
    description="Delete, or deactivate when referenced by past orders",
)
async def delete_service(
    service_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Delete service endpoint"""
    result = await catalog_service.delete_service(db, principal, service_id)
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers={"X-Delete-Outcome": result.outcome},
    )
