"""Plan usage endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ProfessionalNotFound
from ..models import Professional
from ..plan_limits import get_usage_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["Plans"])


class UsageResponse(BaseModel):
    plan: str
    appointments_created: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    is_unlimited: bool
    can_book: bool


@router.get("/professionals/{professional_id}/usage", response_model=UsageResponse)
async def get_professional_usage(professional_id: str, db: Session = Depends(get_db)):
    """Lifetime appointment quota usage for a professional"""
    professional = db.query(Professional).filter(Professional.id == professional_id).first()
    if not professional:
        raise ProfessionalNotFound()
    return get_usage_stats(professional)
