from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.cache import SCOPE_STUDENTS, cache, cache_key
from academy.core.errors import AcademyError, to_http_exception
from academy.core.router_guard import get_actor, require_admin_actor
from academy.db import get_db
from academy.schemas import PackageTypeValue, StudentRequest
from academy.services.access_scope_service import ActorContext
from academy.services.eligibility_service import list_eligible_students
from academy.services.student_service import (
    create_student,
    delete_student,
    get_student,
    list_students_for_actor,
    serialize_student,
    student_progress,
    update_student,
)


router = APIRouter(prefix='/api/students', tags=['Students'])


@router.get('')
def students_list(
    search: str = '',
    bypass_cache: bool = False,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    key = cache_key(SCOPE_STUDENTS, 'list', actor.role, actor.coach_id, search.strip().lower())
    cached = cache.get_cached(key, bypass=bypass_cache)
    if cached is not None:
        return cached
    payload = [serialize_student(row) for row in list_students_for_actor(db, actor, search)]
    cache.set_cached(key, payload)
    return payload


@router.get('/eligible')
def students_eligible(
    coach_id: int,
    package_type: PackageTypeValue | None = None,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    return [serialize_student(row) for row in list_eligible_students(db, coach_id, package_type)]


@router.get('/progress')
def students_progress(actor: ActorContext = Depends(get_actor), db: Session = Depends(get_db)):
    return student_progress(db, coach_id=None if actor.is_admin else actor.coach_id)


@router.post('', status_code=201)
def students_create(
    payload: StudentRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = create_student(db, **payload.model_dump())
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_student(row)


@router.get('/{student_id}')
def students_detail(student_id: int, _: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        return serialize_student(get_student(db, student_id))
    except AcademyError as exc:
        raise to_http_exception(exc) from exc


@router.put('/{student_id}')
def students_update(
    student_id: int,
    payload: StudentRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = update_student(db, student_id, **payload.model_dump())
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_student(row)


@router.delete('/{student_id}')
def students_delete(student_id: int, _: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        delete_student(db, student_id)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return {'ok': True}
