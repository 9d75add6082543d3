# support_inbox/stats/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from support_inbox.core.database import get_db
from support_inbox.core.security import get_current_user
from support_inbox.stats import services as stats_service
from support_inbox.stats.schemas import StatsOut

router = APIRouter(prefix="/stats", tags=["Stats"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=StatsOut)
def get_stats(db: Session = Depends(get_db)):
    return stats_service.get_stats(db)
