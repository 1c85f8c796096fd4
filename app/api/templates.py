from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_company_user
from app.schemas.template import TemplateCreate, TemplateRead, TemplateUpdate
from app.services.templates import templates as templates_service

router = APIRouter(prefix="/templates", tags=["templates"])


@router.post("", response_model=TemplateRead, status_code=status.HTTP_201_CREATED)
def create_template(payload: TemplateCreate, auth=Depends(require_company_user), db: Session = Depends(get_db)):
    return templates_service.create(db, auth.company_id, auth.user_id, payload)


@router.get("", response_model=list[TemplateRead])
def list_templates(auth=Depends(require_company_user), db: Session = Depends(get_db)):
    return templates_service.list(db, auth.company_id)


@router.put("/{template_id}", response_model=TemplateRead)
def update_template(
    template_id: int,
    payload: TemplateUpdate,
    auth=Depends(require_company_user),
    db: Session = Depends(get_db),
):
    return templates_service.update(db, auth.company_id, template_id, payload)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(template_id: int, auth=Depends(require_company_user), db: Session = Depends(get_db)):
    templates_service.delete(db, auth.company_id, template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
