from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from academy.config import settings
from academy.core.errors import AcademyError, to_http_exception
from academy.core.route_policy import NO_ROLE_PATH, navigation_for
from academy.core.router_guard import SESSION_COOKIE, get_actor, require_auth_user, resolve_token
from academy.db import get_db
from academy.schemas import ChangePasswordRequest, ForgotPasswordRequest, LoginRequest, ResetPasswordRequest, SignUpRequest
from academy.services.access_scope_service import ActorContext, resolve_actor
from academy.services.auth_service import (
    request_password_reset,
    reset_password,
    sign_in,
    sign_out,
    update_password,
)
from academy.services.provisioning_service import sign_up


router = APIRouter(prefix='/api/auth', tags=['Auth'])


def _session_cookie_response(db: Session, data: dict, next_url: str):
    actor = resolve_actor(db, {'identity_id': data['identity_id'], 'email': data['email']})
    role = actor.role if actor else None
    response = JSONResponse(
        {
            'ok': True,
            'token': data['token'],
            'role': role,
            'expires_at': data['expires_at'],
            'next': (next_url or '/dashboard') if role else NO_ROLE_PATH,
        }
    )
    response.set_cookie(
        key=SESSION_COOKIE,
        value=data['token'],
        httponly=True,
        samesite='lax',
        secure=settings.app_env == 'production',
        max_age=settings.auth_session_expiry_hours * 3600,
    )
    return response


@router.post('/login')
def auth_login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        data = sign_in(db, payload.email, payload.password)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return _session_cookie_response(db, data, payload.next)


@router.post('/signup')
def auth_signup(payload: SignUpRequest, db: Session = Depends(get_db)):
    try:
        data = sign_up(db, name=payload.name, email=payload.email, password=payload.password, phone=payload.phone)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return _session_cookie_response(db, data, '/dashboard')


@router.post('/logout')
def auth_logout(request: Request):
    sign_out(resolve_token(request))
    response = JSONResponse({'ok': True})
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.post('/forgot-password')
def auth_forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    try:
        request_password_reset(db, payload.email)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    # Same answer for known and unknown emails.
    return {'ok': True, 'message': 'Check your email for the password reset link'}


@router.post('/reset-password')
def auth_reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        reset_password(db, payload.token, payload.new_password)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return {'ok': True}


@router.post('/change-password')
def auth_change_password(
    payload: ChangePasswordRequest,
    principal: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    try:
        update_password(db, principal['identity_id'], payload.current_password, payload.new_password)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return {'ok': True}


@router.get('/me')
def auth_me(actor: ActorContext = Depends(get_actor)):
    return {**actor.as_dict(), 'navigation': navigation_for(actor.role)}


@router.get('/session')
def auth_session_state(principal: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    """Like ``/me`` but answers for signed-in users that have no coach profile yet."""
    try:
        actor = resolve_actor(db, principal)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    if actor is None:
        return {'authenticated': True, 'role': None, 'navigation': []}
    return {'authenticated': True, **actor.as_dict(), 'navigation': navigation_for(actor.role)}
