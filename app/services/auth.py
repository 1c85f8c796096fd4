"""Identity resolution for access tokens issued by the external OpenID provider.

The provider signs the token; this module verifies it, mirrors the identity
into the ``users`` table and reduces it to the ``AuthContext`` every route
and websocket connection works with.
"""

from __future__ import annotations

from dataclasses import dataclass

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import AccessDeniedError, AuthError, TenantError
from app.logging import get_logger
from app.models.company import Company, User
from app.models.enums import UserRole

logger = get_logger(__name__)

SESSION_COOKIE = "session_token"


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: UserRole
    company_id: int | None
    company_active: bool = True
    email: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.super_admin


def decode_access_token(token: str) -> dict:
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options=options,
        )
    except JWTError as exc:
        logger.info("access_token_rejected error=%s", exc)
        raise AuthError("invalid_token", "Invalid or expired token") from exc


# User attribute -> claims to read it from, first present wins
_PROFILE_CLAIMS = {
    "email": ("email",),
    "first_name": ("given_name", "first_name"),
    "last_name": ("family_name", "last_name"),
    "profile_image_url": ("picture", "profile_image_url"),
}


def _claim(claims: dict, names: tuple[str, ...]):
    for name in names:
        value = claims.get(name)
        if value is not None:
            return value
    return None


def upsert_user_from_claims(db: Session, claims: dict) -> User:
    user_id = claims.get("sub")
    if not user_id:
        raise AuthError("invalid_token", "Token has no subject")
    user_id = str(user_id)

    user = db.get(User, user_id)
    created = user is None
    if user is None:
        user = User(id=user_id)
        db.add(user)

    changed = created
    for attr, names in _PROFILE_CLAIMS.items():
        value = _claim(claims, names)
        if value is not None and getattr(user, attr) != value:
            setattr(user, attr, value)
            changed = True

    if changed:
        db.commit()
        db.refresh(user)
    if created:
        logger.info("user_created user_id=%s", user_id)
    return user


def authenticate_token(db: Session, token: str) -> User:
    claims = decode_access_token(token)
    user = upsert_user_from_claims(db, claims)
    if not user.is_active:
        raise AccessDeniedError("user_inactive", "User account is inactive")
    return user


def build_auth_context(user: User) -> AuthContext:
    company = user.company
    return AuthContext(
        user_id=user.id,
        role=user.role,
        company_id=user.company_id,
        company_active=bool(company.is_active) if company is not None else False,
        email=user.email,
    )


def resolve_connection_tenant(db: Session, token: str) -> AuthContext:
    """Resolve the company a websocket connection belongs to.

    Raises ``AuthError`` for a bad credential and ``TenantError`` when the
    user has no company or the company is inactive.
    """
    user = authenticate_token(db, token)
    if user.company_id is None:
        raise TenantError("no_company", "User not associated with a company", status_code=403)
    context = build_auth_context(user)
    if not context.company_active:
        raise TenantError("company_inactive", "Company is inactive", status_code=403)
    return context
