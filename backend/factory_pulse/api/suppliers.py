# backend/factory_pulse/api/suppliers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from .deps import get_current_user
from ..database import get_db
from ..errors import ServiceError
from ..models import User
from ..schemas.base import SuccessResponse
from ..schemas.supplier import (
    PerformanceMetrics,
    PerformanceResult,
    Qualification,
    QualificationRequest,
    Supplier as SupplierSchema,
    SupplierAnalytics,
    SupplierCreate,
    SupplierSearch,
    SupplierUpdate,
)
from ..services.suppliers import supplier_service
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/suppliers", tags=["suppliers"])


@router.get("", response_model=List[SupplierSchema])
async def search_suppliers(
        name: Optional[str] = None,
        specialties: List[str] = Query(default=[]),
        country: Optional[str] = None,
        is_active: Optional[bool] = None,
        min_rating: Optional[float] = Query(None, ge=0, le=5),
        db: Session = Depends(get_db)
):
    criteria = SupplierSearch(
        name=name,
        specialties=specialties,
        country=country,
        is_active=is_active,
        min_rating=min_rating
    )
    api_logger.info("Searching suppliers", extra=criteria.model_dump(exclude_none=True))
    return supplier_service.search(db, criteria)


@router.post("", response_model=SupplierSchema)
async def create_supplier(supplier: SupplierCreate, db: Session = Depends(get_db)):
    api_logger.info("Creating supplier", extra={"supplier_name": supplier.name})

    try:
        created = supplier_service.create_supplier(db, supplier)
        api_logger.info("Successfully created supplier", extra={"supplier_id": created.id})
        return created
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating supplier", extra={"supplier_name": supplier.name, "error": str(e)})
        db.rollback()
        raise


@router.get("/{supplier_id}", response_model=SupplierSchema)
async def get_supplier(supplier_id: int, db: Session = Depends(get_db)):
    return supplier_service.get_supplier(db, supplier_id)


@router.put("/{supplier_id}", response_model=SupplierSchema)
async def update_supplier(supplier_id: int, supplier: SupplierUpdate, db: Session = Depends(get_db)):
    api_logger.info("Updating supplier", extra={
        "supplier_id": supplier_id,
        "update_fields": list(supplier.model_dump(exclude_unset=True).keys())
    })

    try:
        return supplier_service.update_supplier(db, supplier_id, supplier)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error updating supplier", extra={"supplier_id": supplier_id, "error": str(e)})
        db.rollback()
        raise


@router.delete("/{supplier_id}", response_model=SuccessResponse)
async def delete_supplier(supplier_id: int, db: Session = Depends(get_db)):
    api_logger.info("Deleting supplier", extra={"supplier_id": supplier_id})
    supplier_service.delete_supplier(db, supplier_id)
    return SuccessResponse()


@router.post("/{supplier_id}/deactivate", response_model=SupplierSchema)
async def deactivate_supplier(supplier_id: int, db: Session = Depends(get_db)):
    api_logger.info("Deactivating supplier", extra={"supplier_id": supplier_id})
    return supplier_service.deactivate_supplier(db, supplier_id)


@router.post("/{supplier_id}/qualify", response_model=Qualification)
async def qualify_supplier(
        supplier_id: int,
        request: QualificationRequest,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Qualifying supplier", extra={
        "supplier_id": supplier_id,
        "overall_score": request.overall_score
    })

    try:
        return supplier_service.qualify(db, supplier_id, request, approved_by=user.id if user else None)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error qualifying supplier", extra={"supplier_id": supplier_id, "error": str(e)})
        db.rollback()
        raise


@router.get("/{supplier_id}/qualifications", response_model=List[Qualification])
async def list_qualifications(supplier_id: int, db: Session = Depends(get_db)):
    supplier = supplier_service.get_supplier(db, supplier_id)
    return supplier.qualifications


@router.put("/{supplier_id}/performance", response_model=PerformanceResult)
async def update_performance(supplier_id: int, metrics: PerformanceMetrics, db: Session = Depends(get_db)):
    """Store delivery metrics and recompute the weighted performance score"""
    api_logger.info("Updating supplier performance", extra={
        "supplier_id": supplier_id,
        "total_orders": metrics.total_orders
    })
    supplier = supplier_service.update_performance(db, supplier_id, metrics)
    return PerformanceResult(
        supplier_id=supplier.id,
        metrics=metrics,
        score=supplier.performance_score,
        grade=supplier.performance_grade
    )


@router.get("/{supplier_id}/analytics", response_model=SupplierAnalytics)
async def get_supplier_analytics(supplier_id: int, db: Session = Depends(get_db)):
    return supplier_service.analytics(db, supplier_id)
