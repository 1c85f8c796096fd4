from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.logging import get_logger
from app.models.customer import Customer
from app.schemas.customer import CustomerCreate, CustomerUpdate
from app.services.common import apply_pagination, get_company_customer

logger = get_logger(__name__)


class Customers:
    @staticmethod
    def create(db: Session, company_id: int, payload: CustomerCreate) -> Customer:
        customer = Customer(company_id=company_id, **payload.model_dump())
        db.add(customer)
        db.commit()
        db.refresh(customer)
        logger.info("customer_created company_id=%s customer_id=%s", company_id, customer.id)
        return customer

    @staticmethod
    def get(db: Session, company_id: int, customer_id: int) -> Customer:
        return get_company_customer(db, company_id, customer_id)

    @staticmethod
    def list(
        db: Session,
        company_id: int,
        search: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Customer]:
        query = db.query(Customer).filter(Customer.company_id == company_id)
        term = (search or "").strip()
        if term:
            pattern = f"%{term}%"
            query = query.filter(
                or_(
                    Customer.name.ilike(pattern),
                    Customer.email.ilike(pattern),
                    Customer.phone.ilike(pattern),
                )
            )
        query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, company_id: int, customer_id: int, payload: CustomerUpdate) -> Customer:
        customer = get_company_customer(db, company_id, customer_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(customer, key, value)
        db.commit()
        db.refresh(customer)
        return customer


customers = Customers()
