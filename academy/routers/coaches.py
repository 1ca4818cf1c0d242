from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.cache import SCOPE_COACHES, cache, cache_key
from academy.core.errors import AcademyError, to_http_exception
from academy.core.router_guard import require_admin_actor
from academy.db import get_db
from academy.schemas import AvailabilityRequest, CoachCreateRequest, CoachUpdateRequest, PackageTypeValue
from academy.services.access_scope_service import ActorContext
from academy.services.coach_service import (
    delete_coach,
    get_coach,
    list_coaches,
    serialize_coach,
    set_availability,
    update_coach,
)
from academy.services.eligibility_service import list_eligible_coaches, package_types_for_coach
from academy.services.provisioning_service import create_coach_account


router = APIRouter(prefix='/api/coaches', tags=['Coaches'])


@router.get('')
def coaches_list(
    search: str = '',
    bypass_cache: bool = False,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    key = cache_key(SCOPE_COACHES, 'list', search.strip().lower())
    cached = cache.get_cached(key, bypass=bypass_cache)
    if cached is not None:
        return cached
    payload = [serialize_coach(row) for row in list_coaches(db, search)]
    cache.set_cached(key, payload)
    return payload


@router.get('/eligible')
def coaches_eligible(
    package_type: PackageTypeValue | None = None,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    return [serialize_coach(row) for row in list_eligible_coaches(db, package_type)]


@router.post('', status_code=201)
def coaches_create(
    payload: CoachCreateRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = create_coach_account(
            db,
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            package_type=payload.package_type,
            availability=payload.availability,
        )
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_coach(row)


@router.get('/{coach_id}')
def coaches_detail(coach_id: int, _: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        return serialize_coach(get_coach(db, coach_id))
    except AcademyError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{coach_id}/package-types')
def coaches_package_types(coach_id: int, _: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        row = get_coach(db, coach_id)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return {'coach_id': row.id, 'package_types': package_types_for_coach(row.package_type)}


@router.put('/{coach_id}')
def coaches_update(
    coach_id: int,
    payload: CoachUpdateRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = update_coach(db, coach_id, **payload.model_dump())
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_coach(row)


@router.put('/{coach_id}/availability')
def coaches_availability(
    coach_id: int,
    payload: AvailabilityRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = set_availability(db, coach_id, payload.days)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_coach(row)


@router.delete('/{coach_id}')
def coaches_delete(coach_id: int, _: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        delete_coach(db, coach_id)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return {'ok': True}
