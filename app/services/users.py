"""User administration scoped by the caller's role.

super_admin manages every company; company_admin only its own company and
never hands out super_admin.
"""

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.logging import get_logger
from app.models.company import Company, User
from app.models.enums import UserRole
from app.schemas.company import UserCreate, UserUpdate
from app.services.auth import AuthContext

logger = get_logger(__name__)


def _scoped_company_id(actor: AuthContext, company_id: int | None) -> int | None:
    if actor.is_super_admin:
        return company_id
    if actor.company_id is None:
        raise HTTPException(status_code=400, detail="User not associated with a company")
    if company_id is not None and company_id != actor.company_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return actor.company_id


def _check_grantable_role(actor: AuthContext, role: UserRole | None) -> None:
    if role == UserRole.super_admin and not actor.is_super_admin:
        raise HTTPException(status_code=403, detail="Forbidden")


def _ensure_seat_available(db: Session, company_id: int, exclude_user_id: str | None = None) -> None:
    company = db.get(Company, company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    query = (
        db.query(func.count(User.id))
        .filter(User.company_id == company_id)
        .filter(User.is_active.is_(True))
    )
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.scalar() >= company.max_users:
        raise HTTPException(status_code=400, detail="User limit reached for company")


class Users:
    @staticmethod
    def get(db: Session, actor: AuthContext, user_id: str) -> User:
        user = db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if not actor.is_super_admin and user.company_id != actor.company_id:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @staticmethod
    def list(db: Session, actor: AuthContext, company_id: int | None = None) -> list[User]:
        company_id = _scoped_company_id(actor, company_id)
        query = db.query(User)
        if company_id is not None:
            query = query.filter(User.company_id == company_id)
        return query.order_by(User.created_at.asc(), User.id.asc()).all()

    @staticmethod
    def create(db: Session, actor: AuthContext, payload: UserCreate) -> User:
        data = payload.model_dump()
        data["company_id"] = _scoped_company_id(actor, data.get("company_id"))
        _check_grantable_role(actor, payload.role)
        if db.get(User, payload.id):
            raise HTTPException(status_code=400, detail="User already exists")
        if payload.email and db.query(User).filter(User.email == payload.email).first():
            raise HTTPException(status_code=400, detail="Email already in use")
        if data["company_id"] is not None and payload.is_active:
            _ensure_seat_available(db, data["company_id"])

        user = User(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("user_provisioned user_id=%s company_id=%s role=%s", user.id, user.company_id, user.role.value)
        return user

    @staticmethod
    def update(db: Session, actor: AuthContext, user_id: str, payload: UserUpdate) -> User:
        user = Users.get(db, actor, user_id)
        data = payload.model_dump(exclude_unset=True)
        if "company_id" in data:
            data["company_id"] = _scoped_company_id(actor, data["company_id"])
        _check_grantable_role(actor, data.get("role"))
        if data.get("email") and data["email"] != user.email:
            if db.query(User).filter(User.email == data["email"]).first():
                raise HTTPException(status_code=400, detail="Email already in use")

        target_company = data.get("company_id", user.company_id)
        will_be_active = data.get("is_active", user.is_active)
        takes_new_seat = target_company != user.company_id or not user.is_active
        if target_company is not None and will_be_active and takes_new_seat:
            _ensure_seat_available(db, target_company, exclude_user_id=user.id)

        for key, value in data.items():
            setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def deactivate(db: Session, actor: AuthContext, user_id: str) -> User:
        user = Users.get(db, actor, user_id)
        if user.role == UserRole.super_admin and not actor.is_super_admin:
            raise HTTPException(status_code=403, detail="Forbidden")
        user.is_active = False
        db.commit()
        db.refresh(user)
        logger.info("user_deactivated user_id=%s", user.id)
        return user


users = Users()
