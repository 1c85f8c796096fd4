from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.template import Template
from app.schemas.template import TemplateCreate, TemplateUpdate


class Templates:
    @staticmethod
    def create(db: Session, company_id: int, user_id: str, payload: TemplateCreate) -> Template:
        template = Template(company_id=company_id, created_by=user_id, **payload.model_dump())
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def get(db: Session, company_id: int, template_id: int) -> Template:
        template = db.get(Template, template_id)
        if not template or template.company_id != company_id:
            raise HTTPException(status_code=404, detail="Template not found")
        return template

    @staticmethod
    def list(db: Session, company_id: int) -> list[Template]:
        return (
            db.query(Template)
            .filter(Template.company_id == company_id)
            .filter(Template.is_active.is_(True))
            .order_by(Template.title.asc(), Template.id.asc())
            .all()
        )

    @staticmethod
    def update(db: Session, company_id: int, template_id: int, payload: TemplateUpdate) -> Template:
        template = Templates.get(db, company_id, template_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(template, key, value)
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def delete(db: Session, company_id: int, template_id: int) -> None:
        template = Templates.get(db, company_id, template_id)
        template.is_active = False
        db.commit()


templates = Templates()
