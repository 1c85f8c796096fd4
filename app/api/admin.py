from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db, require_super_admin, require_user_admin
from app.schemas.company import CompanyCreate, CompanyRead, CompanyUpdate, UserCreate, UserRead, UserUpdate
from app.services.companies import companies as companies_service
from app.services.query_cache import get_query_cache
from app.services.users import users as users_service
from app.websocket.manager import get_connection_manager

router = APIRouter(prefix="/admin", tags=["admin"])


async def _revoke_company_sockets(company) -> None:
    if not company.is_active:
        await get_connection_manager().disconnect_company(company.id, "Company is inactive")


async def _revoke_user_sockets(user) -> None:
    manager = get_connection_manager()
    if not user.is_active:
        await manager.disconnect_user(user.id, "User account is inactive")
    elif user.company_id is None:
        await manager.disconnect_user(user.id, "User not associated with a company")
    else:
        # Sockets opened under the previous company
        await manager.disconnect_user(user.id, "User moved to another company", keep_company_id=user.company_id)


@router.get(
    "/companies",
    response_model=list[CompanyRead],
    dependencies=[Depends(require_super_admin)],
)
def list_companies(is_active: bool | None = None, db: Session = Depends(get_db)):
    return companies_service.list(db, is_active=is_active)


@router.post(
    "/companies",
    response_model=CompanyRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_super_admin)],
)
def create_company(payload: CompanyCreate, db: Session = Depends(get_db)):
    return companies_service.create(db, payload)


@router.put(
    "/companies/{company_id}",
    response_model=CompanyRead,
    dependencies=[Depends(require_super_admin)],
)
async def update_company(company_id: int, payload: CompanyUpdate, db: Session = Depends(get_db)):
    company = await run_in_threadpool(companies_service.update, db, company_id, payload)
    result = CompanyRead.model_validate(company)
    await _revoke_company_sockets(result)
    return result


@router.delete(
    "/companies/{company_id}",
    response_model=CompanyRead,
    dependencies=[Depends(require_super_admin)],
)
async def deactivate_company(company_id: int, db: Session = Depends(get_db)):
    company = await run_in_threadpool(companies_service.deactivate, db, company_id)
    result = CompanyRead.model_validate(company)
    await _revoke_company_sockets(result)
    return result


@router.get("/users", response_model=list[UserRead])
def list_users(
    company_id: int | None = None,
    auth=Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    return users_service.list(db, auth, company_id=company_id)


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, auth=Depends(require_user_admin), db: Session = Depends(get_db)):
    return users_service.create(db, auth, payload)


@router.put("/users/{user_id}", response_model=UserRead)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    auth=Depends(require_user_admin),
    db: Session = Depends(get_db),
):
    user = await run_in_threadpool(users_service.update, db, auth, user_id, payload)
    result = UserRead.model_validate(user)
    await _revoke_user_sockets(result)
    return result


@router.delete("/users/{user_id}", response_model=UserRead)
async def deactivate_user(user_id: str, auth=Depends(require_user_admin), db: Session = Depends(get_db)):
    user = await run_in_threadpool(users_service.deactivate, db, auth, user_id)
    result = UserRead.model_validate(user)
    await _revoke_user_sockets(result)
    return result


@router.get("/cache/stats", dependencies=[Depends(require_super_admin)])
def cache_stats():
    return {
        "cache": get_query_cache().stats(),
        "websocket": get_connection_manager().stats(),
    }


@router.delete(
    "/cache",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_super_admin)],
)
def clear_cache():
    get_query_cache().clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
