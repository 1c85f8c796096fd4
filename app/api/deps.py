from fastapi import Depends

from app.db import get_db
from app.models.enums import UserRole
from app.services.auth_dependencies import require_company_user, require_role, require_user_auth

__all__ = [
    "get_db",
    "get_current_user",
    "require_company_user",
    "require_super_admin",
    "require_user_admin",
]


def get_current_user(auth=Depends(require_user_auth)):
    """Get current authenticated user info.

    Returns the AuthContext with user_id, role and company_id.
    """
    return auth


require_super_admin = require_role(UserRole.super_admin)
require_user_admin = require_role(UserRole.super_admin, UserRole.company_admin)
