from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db, require_company_user
from app.schemas.customer import CustomerCreate, CustomerRead, CustomerUpdate, InternalNoteRead
from app.services.customers import customers as customers_service
from app.services.notes import internal_notes as notes_service
from app.services.query_cache import get_query_cache, invalidate_company

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    return customers_service.create(db, auth.company_id, payload)


@router.get("", response_model=list[CustomerRead])
def list_customers(
    search: str | None = None,
    limit: int | None = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    return customers_service.list(db, auth.company_id, search=search, limit=limit, offset=offset)


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(customer_id: int, auth=Depends(require_company_user), db: Session = Depends(get_db)):
    return customers_service.get(db, auth.company_id, customer_id)


@router.put("/{customer_id}", response_model=CustomerRead)
async def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    customer = await run_in_threadpool(customers_service.update, db, auth.company_id, customer_id, payload)
    # List rows embed customer name, phone and VIP flag
    invalidate_company(get_query_cache(), auth.company_id)
    return customer


@router.get("/{customer_id}/notes", response_model=list[InternalNoteRead])
def list_customer_notes(customer_id: int, auth=Depends(require_company_user), db: Session = Depends(get_db)):
    return notes_service.list_for_customer(db, auth.company_id, customer_id)
