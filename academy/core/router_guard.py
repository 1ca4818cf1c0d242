from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from academy.db import get_db
from academy.services.access_scope_service import ActorContext, resolve_actor
from academy.services.auth_service import validate_session_token


SESSION_COOKIE = 'auth_session'


def resolve_token(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith('bearer '):
        return authorization[7:].strip()
    return None


def require_auth_user(request: Request) -> dict:
    principal = validate_session_token(resolve_token(request))
    if not principal:
        raise HTTPException(status_code=401, detail='Unauthorized')
    return principal


def get_actor(request: Request, db: Session = Depends(get_db)) -> ActorContext:
    """Resolve the caller's role once per request; no coach profile means no access."""
    cached = getattr(request.state, 'actor', None)
    if isinstance(cached, ActorContext):
        return cached
    principal = require_auth_user(request)
    actor = resolve_actor(db, principal)
    if actor is None:
        raise HTTPException(status_code=403, detail='No role assigned to this account')
    request.state.actor = actor
    return actor


def require_admin_actor(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail='Access denied. Admin role required.')
    return actor
