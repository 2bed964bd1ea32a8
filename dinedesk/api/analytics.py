from __future__ import annotations

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Query

from .. import models
from ..config import get_settings
from ..permissions import Capability
from ..services import analytics as analytics_service
from ..services import settings as settings_service
from .dependencies import DbSession, require_capability

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

AnalyticsUser = Annotated[models.UserProfile, Depends(require_capability(Capability.analytics))]


@router.get("")
def analytics(
    db: DbSession,
    _: AnalyticsUser,
    period: analytics_service.Period = Query(analytics_service.Period.week),
    metric: analytics_service.Metric = Query(analytics_service.Metric.all),
) -> Dict[str, Any]:
    restaurant = settings_service.get_active_settings(db)
    tz_name = restaurant.timezone if restaurant is not None else get_settings().TIMEZONE
    return analytics_service.build_report(db, period, metric, tz_name=tz_name)
