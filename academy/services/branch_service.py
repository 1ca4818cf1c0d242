from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from academy.cache import (
    SCOPE_ATTENDANCE,
    SCOPE_BRANCHES,
    SCOPE_CALENDAR,
    SCOPE_DASHBOARD,
    SCOPE_SESSIONS,
    invalidate_after_mutation,
)
from academy.core.errors import NotFoundError, ValidationError, storage_guard
from academy.models import Branch, TrainingSession


logger = logging.getLogger(__name__)


def serialize_branch(row: Branch) -> dict:
    return {
        'id': row.id,
        'name': row.name,
        'address': row.address or '',
        'city': row.city or '',
        'contact_phone': row.contact_phone,
        'contact_email': row.contact_email,
    }


def _clean_fields(name: str, address: str, city: str, contact_phone: str | None, contact_email: str | None) -> dict:
    clean_name = (name or '').strip()
    if not clean_name:
        raise ValidationError('Branch name is required')
    clean_email = (contact_email or '').strip().lower() or None
    if clean_email and '@' not in clean_email:
        raise ValidationError('Contact email is invalid')
    return {
        'name': clean_name,
        'address': (address or '').strip(),
        'city': (city or '').strip(),
        'contact_phone': (contact_phone or '').strip() or None,
        'contact_email': clean_email,
    }


def list_branches(db: Session, search: str | None = None) -> list[Branch]:
    query = db.query(Branch)
    term = (search or '').strip()
    if term:
        pattern = f'%{term}%'
        query = query.filter(or_(Branch.name.ilike(pattern), Branch.city.ilike(pattern)))
    return query.order_by(Branch.name.asc(), Branch.id.asc()).all()


def get_branch(db: Session, branch_id: int) -> Branch:
    row = db.query(Branch).filter(Branch.id == branch_id).first()
    if not row:
        raise NotFoundError('Branch not found')
    return row


def create_branch(
    db: Session,
    *,
    name: str,
    address: str = '',
    city: str = '',
    contact_phone: str | None = None,
    contact_email: str | None = None,
) -> Branch:
    row = Branch(**_clean_fields(name, address, city, contact_phone, contact_email))
    with storage_guard(db, 'create_branch'):
        db.add(row)
        db.commit()
        db.refresh(row)
    invalidate_after_mutation(SCOPE_BRANCHES, SCOPE_DASHBOARD)
    logger.info('branch_created branch_id=%s', row.id)
    return row


def update_branch(
    db: Session,
    branch_id: int,
    *,
    name: str,
    address: str = '',
    city: str = '',
    contact_phone: str | None = None,
    contact_email: str | None = None,
) -> Branch:
    row = get_branch(db, branch_id)
    for key, value in _clean_fields(name, address, city, contact_phone, contact_email).items():
        setattr(row, key, value)
    with storage_guard(db, 'update_branch'):
        db.commit()
        db.refresh(row)
    # Branch names are denormalized into session, calendar and attendance read models.
    invalidate_after_mutation(SCOPE_BRANCHES, SCOPE_SESSIONS, SCOPE_CALENDAR, SCOPE_ATTENDANCE)
    logger.info('branch_updated branch_id=%s', row.id)
    return row


def delete_branch(db: Session, branch_id: int) -> None:
    row = get_branch(db, branch_id)
    in_use = db.query(TrainingSession.id).filter(TrainingSession.branch_id == branch_id).first()
    if in_use:
        raise ValidationError('Branch has training sessions and cannot be deleted')
    with storage_guard(db, 'delete_branch'):
        db.delete(row)
        db.commit()
    invalidate_after_mutation(SCOPE_BRANCHES, SCOPE_DASHBOARD)
    logger.info('branch_deleted branch_id=%s', branch_id)
