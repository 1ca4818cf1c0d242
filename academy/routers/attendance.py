from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.cache import SCOPE_ATTENDANCE, cache, cache_key
from academy.core.errors import AcademyError, to_http_exception
from academy.core.router_guard import get_actor
from academy.db import get_db
from academy.frontend_routes import attendance_session_url
from academy.schemas import AttendanceStatusRequest
from academy.services.access_scope_service import ActorContext
from academy.services.attendance_service import (
    get_session_attendance,
    list_attendance_sessions,
    serialize_record,
    set_attendance_status,
)
from academy.services.training_session_service import serialize_session


router = APIRouter(prefix='/api/attendance', tags=['Attendance'])


@router.get('/sessions')
def attendance_sessions(
    search: str = '',
    bypass_cache: bool = False,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    key = cache_key(SCOPE_ATTENDANCE, 'sessions', actor.role, actor.coach_id, search.strip().lower())
    cached = cache.get_cached(key, bypass=bypass_cache)
    if cached is not None:
        return cached
    payload = [
        {**serialize_session(row), 'attendance_url': attendance_session_url(row.id)}
        for row in list_attendance_sessions(db, actor, search)
    ]
    cache.set_cached(key, payload)
    return payload


@router.get('/sessions/{session_id}')
def attendance_session_detail(session_id: int, actor: ActorContext = Depends(get_actor), db: Session = Depends(get_db)):
    try:
        return get_session_attendance(db, actor, session_id)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc


@router.patch('/records/{record_id}')
def attendance_mark(
    record_id: int,
    payload: AttendanceStatusRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    try:
        record = set_attendance_status(db, record_id, payload.status, actor=actor)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_record(record)
