from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.core.route_policy import navigation_for
from academy.core.router_guard import get_actor
from academy.db import get_db
from academy.services.access_scope_service import ActorContext
from academy.services.dashboard_service import dashboard_stats


router = APIRouter(prefix='/api/dashboard', tags=['Dashboard'])


@router.get('/stats')
def dashboard_stats_view(
    bypass_cache: bool = False,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return dashboard_stats(db, actor, bypass_cache=bypass_cache)


@router.get('/navigation')
def dashboard_navigation(actor: ActorContext = Depends(get_actor)):
    return {'role': actor.role, 'items': navigation_for(actor.role)}
