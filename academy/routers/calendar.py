from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from academy.core.errors import AcademyError, to_http_exception
from academy.core.router_guard import get_actor
from academy.core.time_provider import default_time_provider
from academy.db import get_db
from academy.schemas import PackageTypeValue
from academy.services.access_scope_service import ActorContext
from academy.services.calendar_service import month_view


router = APIRouter(prefix='/api/calendar', tags=['Calendar'])


@router.get('')
def calendar_month(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    coach_id: int | None = None,
    branch_id: int | None = None,
    package_type: PackageTypeValue | None = None,
    bypass_cache: bool = False,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    today = default_time_provider.today()
    try:
        return month_view(
            db,
            actor,
            year=year or today.year,
            month=month or today.month,
            coach_id=coach_id,
            branch_id=branch_id,
            package_type=package_type,
            bypass_cache=bypass_cache,
        )
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
