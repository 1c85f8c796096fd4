from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.logging import get_logger
from app.models.company import Company
from app.schemas.company import CompanyCreate, CompanyUpdate

logger = get_logger(__name__)


class Companies:
    @staticmethod
    def create(db: Session, payload: CompanyCreate) -> Company:
        company = Company(**payload.model_dump())
        db.add(company)
        db.commit()
        db.refresh(company)
        logger.info("company_created company_id=%s", company.id)
        return company

    @staticmethod
    def get(db: Session, company_id: int) -> Company:
        company = db.get(Company, company_id)
        if not company:
            raise HTTPException(status_code=404, detail="Company not found")
        return company

    @staticmethod
    def list(db: Session, is_active: bool | None = None) -> list[Company]:
        query = db.query(Company)
        if is_active is not None:
            query = query.filter(Company.is_active.is_(is_active))
        return query.order_by(Company.name.asc(), Company.id.asc()).all()

    @staticmethod
    def update(db: Session, company_id: int, payload: CompanyUpdate) -> Company:
        company = Companies.get(db, company_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(company, key, value)
        db.commit()
        db.refresh(company)
        return company

    @staticmethod
    def deactivate(db: Session, company_id: int) -> Company:
        company = Companies.get(db, company_id)
        company.is_active = False
        db.commit()
        db.refresh(company)
        logger.info("company_deactivated company_id=%s", company.id)
        return company


companies = Companies()
