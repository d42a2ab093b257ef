# backend/factory_pulse/services/customers.py
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError
from ..models import Customer, Project
from ..schemas.customer import CustomerCreate, CustomerUpdate
from ..utils.logging import service_logger


class CustomerService:

    def get_customer(self, db: Session, customer_id: int) -> Customer:
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer

    def search(
            self,
            db: Session,
            query_text: Optional[str] = None,
            country: Optional[str] = None,
            is_active: Optional[bool] = None,
            page: int = 1,
            limit: int = 20
    ) -> Tuple[List[Customer], int]:
        """Case-insensitive search over company, contact and email"""
        query = db.query(Customer)
        if query_text:
            pattern = f"%{query_text.strip()}%"
            query = query.filter(or_(
                Customer.company_name.ilike(pattern),
                Customer.contact_name.ilike(pattern),
                Customer.email.ilike(pattern)
            ))
        if country:
            query = query.filter(func.lower(Customer.country) == country.lower())
        if is_active is not None:
            query = query.filter(Customer.is_active == is_active)

        total = query.count()
        items = query.order_by(Customer.company_name) \
            .offset((page - 1) * limit) \
            .limit(limit) \
            .all()
        return items, total

    def create_customer(self, db: Session, data: CustomerCreate, commit: bool = True) -> Customer:
        payload = data.model_dump()
        if payload.get("email"):
            payload["email"] = str(payload["email"]).lower()
            if db.query(Customer).filter(func.lower(Customer.email) == payload["email"]).first():
                raise ConflictError(f"A customer with email {payload['email']} already exists")

        customer = Customer(**payload)
        db.add(customer)
        if commit:
            db.commit()
            db.refresh(customer)
        else:
            db.flush()
        service_logger.info("Created customer", extra={
            "customer_id": customer.id,
            "company_name": customer.company_name
        })
        return customer

    def update_customer(self, db: Session, customer_id: int, data: CustomerUpdate) -> Customer:
        customer = self.get_customer(db, customer_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "email" and value:
                value = str(value).lower()
            setattr(customer, field, value)
        db.commit()
        db.refresh(customer)
        return customer

    def deactivate_customer(self, db: Session, customer_id: int) -> Customer:
        customer = self.get_customer(db, customer_id)
        customer.is_active = False
        db.commit()
        db.refresh(customer)
        service_logger.info("Deactivated customer", extra={"customer_id": customer_id})
        return customer

    def delete_customer(self, db: Session, customer_id: int) -> None:
        customer = self.get_customer(db, customer_id)
        in_use = db.query(Project).filter(Project.customer_id == customer_id).count()
        if in_use:
            raise ConflictError(f"Customer {customer_id} has {in_use} project(s); deactivate it instead")
        db.delete(customer)
        db.commit()

    def get_or_create(
            self,
            db: Session,
            company_name: str,
            email: Optional[str] = None,
            contact_name: Optional[str] = None,
            phone: Optional[str] = None,
            country: Optional[str] = None
    ) -> Tuple[Customer, bool]:
        """Find a customer by email, then by company name; create one otherwise.

        Does not commit, so intake can create the customer and the project in
        one transaction.
        """
        customer = None
        if email:
            customer = db.query(Customer) \
                .filter(func.lower(Customer.email) == email.strip().lower()) \
                .first()
        if customer is None and company_name:
            customer = db.query(Customer) \
                .filter(func.lower(Customer.company_name) == company_name.strip().lower()) \
                .first()
        if customer is not None:
            return customer, False

        customer = self.create_customer(db, CustomerCreate(
            company_name=company_name.strip(),
            contact_name=contact_name,
            email=email.strip().lower() if email else None,
            phone=phone,
            country=country
        ), commit=False)
        return customer, True


customer_service = CustomerService()
