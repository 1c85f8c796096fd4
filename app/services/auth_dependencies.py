from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.enums import UserRole
from app.services import auth as auth_service
from app.services.auth import AuthContext


def _bearer_token(authorization: str | None) -> str | None:
    scheme, _, credentials = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()


def require_user_auth(
    request: Request,
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Authenticate the caller from the Authorization header or the session cookie."""
    token = _bearer_token(authorization) or request.cookies.get(auth_service.SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = auth_service.authenticate_token(db, token)
    return auth_service.build_auth_context(user)


def require_company_user(auth: AuthContext = Depends(require_user_auth)) -> AuthContext:
    if auth.company_id is None:
        raise HTTPException(status_code=400, detail="User not associated with a company")
    if not auth.company_active:
        raise HTTPException(status_code=403, detail="Company is inactive")
    return auth


def require_role(*roles: UserRole):
    allowed = frozenset(roles)

    def _check(auth: AuthContext = Depends(require_user_auth)) -> AuthContext:
        if auth.role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        return auth

    return _check
