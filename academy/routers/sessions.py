from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from academy.cache import SCOPE_SESSIONS, cache, cache_key
from academy.core.errors import AcademyError, to_http_exception
from academy.core.router_guard import get_actor, require_admin_actor
from academy.db import get_db
from academy.schemas import ConflictCheckRequest, ParticipantsRequest, SessionRequest, SessionStatusRequest
from academy.services.access_scope_service import ActorContext
from academy.services.conflict_service import find_scheduling_conflicts
from academy.services.roster_service import get_participants, set_participants
from academy.services.student_service import serialize_student
from academy.services.training_session_service import (
    create_session,
    delete_session,
    get_session,
    list_sessions,
    serialize_session,
    set_session_status,
    update_session,
)


router = APIRouter(prefix='/api/sessions', tags=['Sessions'])


def _session_fields(payload: SessionRequest) -> dict:
    return {
        'session_date': payload.date,
        'start_time': payload.start_time,
        'end_time': payload.end_time,
        'branch_id': payload.branch_id,
        'coach_id': payload.coach_id,
        'package_type': payload.package_type,
        'status': payload.status,
        'notes': payload.notes,
    }


@router.get('')
def sessions_list(
    coach_id: int | None = None,
    branch_id: int | None = None,
    package_type: str | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str = '',
    bypass_cache: bool = False,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    key = cache_key(
        SCOPE_SESSIONS,
        actor.role,
        actor.coach_id,
        coach_id or 0,
        branch_id or 0,
        package_type or 'any',
        status or 'any',
        date_from.isoformat() if date_from else '-',
        date_to.isoformat() if date_to else '-',
        search.strip().lower(),
    )
    cached = cache.get_cached(key, bypass=bypass_cache)
    if cached is not None:
        return cached
    try:
        rows = list_sessions(
            db,
            actor,
            coach_id=coach_id,
            branch_id=branch_id,
            package_type=package_type,
            status=status,
            date_from=date_from,
            date_to=date_to,
            search=search,
        )
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    payload = [serialize_session(row) for row in rows]
    cache.set_cached(key, payload)
    return payload


@router.post('/conflicts')
def sessions_check_conflicts(
    payload: ConflictCheckRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    if payload.start_time >= payload.end_time:
        raise HTTPException(status_code=400, detail='End time must be after start time')
    conflicts = find_scheduling_conflicts(
        db,
        payload.date,
        payload.start_time,
        payload.end_time,
        payload.coach_id,
        student_ids=payload.student_ids,
        exclude_session_id=payload.exclude_session_id,
    )
    return {'has_conflicts': bool(conflicts), 'conflicts': [item.as_dict() for item in conflicts]}


@router.post('', status_code=201)
def sessions_create(
    payload: SessionRequest,
    actor: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = create_session(db, actor, student_ids=payload.student_ids or [], **_session_fields(payload))
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_session(row)


@router.get('/{session_id}')
def sessions_detail(session_id: int, actor: ActorContext = Depends(get_actor), db: Session = Depends(get_db)):
    try:
        return serialize_session(get_session(db, actor, session_id))
    except AcademyError as exc:
        raise to_http_exception(exc) from exc


@router.put('/{session_id}')
def sessions_update(
    session_id: int,
    payload: SessionRequest,
    actor: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = update_session(db, actor, session_id, student_ids=payload.student_ids, **_session_fields(payload))
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_session(row)


@router.patch('/{session_id}/status')
def sessions_status(
    session_id: int,
    payload: SessionStatusRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    try:
        row = set_session_status(db, actor, session_id, payload.status)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_session(row)


@router.delete('/{session_id}')
def sessions_delete(session_id: int, actor: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        delete_session(db, actor, session_id)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return {'ok': True}


@router.get('/{session_id}/participants')
def sessions_participants(session_id: int, actor: ActorContext = Depends(get_actor), db: Session = Depends(get_db)):
    try:
        get_session(db, actor, session_id)
        rows = get_participants(db, session_id)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return [serialize_student(row) for row in rows]


@router.put('/{session_id}/participants')
def sessions_set_participants(
    session_id: int,
    payload: ParticipantsRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        result = set_participants(db, session_id, payload.student_ids)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return result.as_dict()
