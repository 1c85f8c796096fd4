from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db, require_company_user
from app.config import settings
from app.schemas.analytics import AnalyticsSummary
from app.services import analytics as analytics_service
from app.services.query_cache import analytics_key, get_query_cache

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsSummary)
async def get_analytics(auth=Depends(require_company_user), db: Session = Depends(get_db)):
    company_id = auth.company_id
    return await get_query_cache().get(
        analytics_key(company_id),
        lambda: run_in_threadpool(analytics_service.summarize, db, company_id),
        settings.analytics_ttl_seconds,
    )
