from __future__ import annotations

from uuid import UUID

from sqlmodel import Session, select

from spaceledger.core.errors import NotFound
from spaceledger.models.customer import Customer
from spaceledger.schemas.customer import CustomerCreate


class CustomerService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_customers(self, q: str | None = None) -> list[Customer]:
        statement = select(Customer)
        if q:
            statement = statement.where(Customer.name.ilike(f"%{q}%"))
        return list(self.session.exec(statement.order_by(Customer.created_at.desc())).all())

    def get_customer(self, customer_id: str | UUID) -> Customer:
        customer = self.session.get(Customer, UUID(str(customer_id)))
        if customer is None:
            raise NotFound("Customer", customer_id)
        return customer

    def create_customer(self, payload: CustomerCreate) -> Customer:
        customer = Customer(
            name=payload.name.strip(),
            phone=(payload.phone or "").strip() or None,
            email=(payload.email or "").strip().lower() or None,
        )
        self.session.add(customer)
        self.session.commit()
        self.session.refresh(customer)
        return customer
