from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.cache import SCOPE_BRANCHES, cache, cache_key
from academy.core.errors import AcademyError, to_http_exception
from academy.core.router_guard import require_admin_actor
from academy.db import get_db
from academy.schemas import BranchRequest
from academy.services.access_scope_service import ActorContext
from academy.services.branch_service import (
    create_branch,
    delete_branch,
    get_branch,
    list_branches,
    serialize_branch,
    update_branch,
)


router = APIRouter(prefix='/api/branches', tags=['Branches'])


@router.get('')
def branches_list(
    search: str = '',
    bypass_cache: bool = False,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    key = cache_key(SCOPE_BRANCHES, 'list', search.strip().lower())
    cached = cache.get_cached(key, bypass=bypass_cache)
    if cached is not None:
        return cached
    payload = [serialize_branch(row) for row in list_branches(db, search)]
    cache.set_cached(key, payload)
    return payload


@router.post('', status_code=201)
def branches_create(
    payload: BranchRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = create_branch(db, **payload.model_dump())
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_branch(row)


@router.get('/{branch_id}')
def branches_detail(branch_id: int, _: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        return serialize_branch(get_branch(db, branch_id))
    except AcademyError as exc:
        raise to_http_exception(exc) from exc


@router.put('/{branch_id}')
def branches_update(
    branch_id: int,
    payload: BranchRequest,
    _: ActorContext = Depends(require_admin_actor),
    db: Session = Depends(get_db),
):
    try:
        row = update_branch(db, branch_id, **payload.model_dump())
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return serialize_branch(row)


@router.delete('/{branch_id}')
def branches_delete(branch_id: int, _: ActorContext = Depends(require_admin_actor), db: Session = Depends(get_db)):
    try:
        delete_branch(db, branch_id)
    except AcademyError as exc:
        raise to_http_exception(exc) from exc
    return {'ok': True}
