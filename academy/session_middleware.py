import logging

from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from academy import db as db_module
from academy.core.errors import AcademyError
from academy.core.route_policy import match_route, redirect_for
from academy.core.router_guard import resolve_token
from academy.services.access_scope_service import ActorContext, resolve_actor
from academy.services.auth_service import validate_session_token


logger = logging.getLogger(__name__)


def _lookup_actor(principal: dict) -> ActorContext | None:
    db = db_module.SessionLocal()
    try:
        return resolve_actor(db, principal)
    except AcademyError as exc:
        logger.warning('page_actor_unresolved identity_id=%s error=%s', principal.get('identity_id'), exc)
        return None
    finally:
        db.close()


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Gate the dashboard screens by role before the frontend shell is served."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if request.method != 'GET' or match_route(path) is None:
            return await call_next(request)

        principal = validate_session_token(resolve_token(request))
        role = None
        if principal:
            actor = await run_in_threadpool(_lookup_actor, principal)
            if actor is not None:
                role = actor.role
                request.state.actor = actor

        target = redirect_for(path, authenticated=principal is not None, role=role)
        if target is not None:
            return RedirectResponse(url=target, status_code=303)
        return await call_next(request)
