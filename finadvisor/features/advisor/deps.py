"""Dependencies for the finance advisor."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from finadvisor.core.config import get_settings
from finadvisor.core.database import get_db
from finadvisor.features.advisor.service import FinanceAdvisorService
from finadvisor.features.sales_events.service import SalesEventStore


def get_advisor_service(db: AsyncSession = Depends(get_db)) -> FinanceAdvisorService:
    """Advisor bound to the request's database session."""
    return FinanceAdvisorService(SalesEventStore(db), get_settings())
