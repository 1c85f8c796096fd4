from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.company import User
from app.schemas.company import UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/user", response_model=UserRead)
def get_auth_user(auth=Depends(get_current_user), db: Session = Depends(get_db)):
    user = db.get(User, auth.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
