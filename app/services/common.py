from datetime import UTC, datetime

from fastapi import HTTPException
from sqlalchemy.orm import Query, Session

from app.models.customer import Customer


def now_utc() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on the way back; treat naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def apply_pagination(query: Query, limit: int | None, offset: int | None) -> Query:
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)
    return query


def get_company_customer(db: Session, company_id: int, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer or customer.company_id != company_id:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer
