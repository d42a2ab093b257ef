# backend/factory_pulse/api/customers.py
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .deps import pagination
from ..database import get_db
from ..errors import ServiceError
from ..schemas.base import PaginatedResponse, SuccessResponse
from ..schemas.customer import Customer as CustomerSchema, CustomerCreate, CustomerUpdate
from ..services.customers import customer_service
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get("", response_model=PaginatedResponse[CustomerSchema])
async def list_customers(
        q: Optional[str] = None,
        country: Optional[str] = None,
        is_active: Optional[bool] = None,
        paging: Tuple[int, int] = Depends(pagination),
        db: Session = Depends(get_db)
):
    page, limit = paging
    api_logger.info("Searching customers", extra={"query": q, "country": country, "page": page})
    items, total = customer_service.search(db, q, country, is_active, page, limit)
    return PaginatedResponse[CustomerSchema](
        items=[CustomerSchema.model_validate(c) for c in items],
        total=total,
        page=page,
        limit=limit
    )


@router.post("", response_model=CustomerSchema)
async def create_customer(customer: CustomerCreate, db: Session = Depends(get_db)):
    api_logger.info("Creating customer", extra={"company_name": customer.company_name})

    try:
        created = customer_service.create_customer(db, customer)
        api_logger.info("Successfully created customer", extra={"customer_id": created.id})
        return created
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating customer", extra={
            "company_name": customer.company_name,
            "error": str(e)
        })
        db.rollback()
        raise


@router.get("/{customer_id}", response_model=CustomerSchema)
async def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return customer_service.get_customer(db, customer_id)


@router.put("/{customer_id}", response_model=CustomerSchema)
async def update_customer(customer_id: int, customer: CustomerUpdate, db: Session = Depends(get_db)):
    api_logger.info("Updating customer", extra={
        "customer_id": customer_id,
        "update_fields": list(customer.model_dump(exclude_unset=True).keys())
    })

    try:
        return customer_service.update_customer(db, customer_id, customer)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error updating customer", extra={"customer_id": customer_id, "error": str(e)})
        db.rollback()
        raise


@router.post("/{customer_id}/deactivate", response_model=CustomerSchema)
async def deactivate_customer(customer_id: int, db: Session = Depends(get_db)):
    api_logger.info("Deactivating customer", extra={"customer_id": customer_id})
    return customer_service.deactivate_customer(db, customer_id)


@router.delete("/{customer_id}", response_model=SuccessResponse)
async def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    api_logger.info("Deleting customer", extra={"customer_id": customer_id})

    try:
        customer_service.delete_customer(db, customer_id)
        return SuccessResponse()
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error deleting customer", extra={"customer_id": customer_id, "error": str(e)})
        db.rollback()
        raise
