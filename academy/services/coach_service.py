from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from academy.cache import (
    SCOPE_ATTENDANCE,
    SCOPE_CALENDAR,
    SCOPE_COACHES,
    SCOPE_DASHBOARD,
    SCOPE_SESSIONS,
    SCOPE_STUDENTS,
    invalidate_after_mutation,
)
from academy.core.errors import NotFoundError, ValidationError, storage_guard
from academy.models import (
    PACKAGE_TYPE_VALUES,
    ROLE_VALUES,
    Coach,
    CoachAvailability,
    DayOfWeek,
    Role,
    Student,
    TrainingSession,
)
from academy.services.eligibility_service import package_types_for_coach


logger = logging.getLogger(__name__)

_DAY_ORDER = [day.value for day in DayOfWeek]


def serialize_coach(row: Coach) -> dict:
    return {
        'id': row.id,
        'name': row.name,
        'email': row.email,
        'phone': row.phone,
        'package_type': row.package_type,
        'role': row.role,
        'auth_linked': row.auth_id is not None,
        'availability': sorted((slot.day_of_week for slot in row.availability), key=_DAY_ORDER.index),
        'available_package_types': package_types_for_coach(row.package_type),
    }


def _clean_days(days: Iterable[str]) -> list[str]:
    clean: set[str] = set()
    for day in days:
        value = str(day or '').strip().lower()
        if value not in _DAY_ORDER:
            raise ValidationError(f'Invalid day of week: {day}')
        clean.add(value)
    return sorted(clean, key=_DAY_ORDER.index)


def _clean_profile(name: str, email: str, phone: str | None, package_type: str | None, role: str | None) -> dict:
    clean_name = (name or '').strip()
    if not clean_name:
        raise ValidationError('Coach name is required')
    clean_email = (email or '').strip().lower()
    if '@' not in clean_email:
        raise ValidationError('A valid email is required')
    clean_package_type = (package_type or '').strip() or None
    if clean_package_type is not None and clean_package_type not in PACKAGE_TYPE_VALUES:
        raise ValidationError(f'Invalid package type: {package_type}')
    clean_role = (role or Role.COACH.value).strip().lower()
    if clean_role not in ROLE_VALUES:
        raise ValidationError(f'Invalid role: {role}')
    return {
        'name': clean_name,
        'email': clean_email,
        'phone': (phone or '').strip() or None,
        'package_type': clean_package_type,
        'role': clean_role,
    }


def _ensure_email_free(db: Session, email: str, exclude_coach_id: int | None = None) -> None:
    query = db.query(Coach.id).filter(func.lower(Coach.email) == email)
    if exclude_coach_id is not None:
        query = query.filter(Coach.id != exclude_coach_id)
    if query.first():
        raise ValidationError('A coach with this email already exists')


def validate_coach_profile(
    db: Session,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    package_type: str | None = None,
    role: str | None = None,
) -> dict:
    fields = _clean_profile(name, email, phone, package_type, role)
    _ensure_email_free(db, fields['email'])
    return fields


def list_coaches(db: Session, search: str | None = None, package_type: str | None = None) -> list[Coach]:
    query = db.query(Coach)
    term = (search or '').strip()
    if term:
        pattern = f'%{term}%'
        query = query.filter(or_(Coach.name.ilike(pattern), Coach.email.ilike(pattern)))
    if package_type:
        query = query.filter(Coach.package_type == package_type)
    return query.order_by(Coach.name.asc(), Coach.id.asc()).all()


def get_coach(db: Session, coach_id: int) -> Coach:
    row = db.query(Coach).filter(Coach.id == coach_id).first()
    if not row:
        raise NotFoundError('Coach not found')
    return row


def create_coach_profile(
    db: Session,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    package_type: str | None = None,
    role: str | None = None,
    auth_id: int | None = None,
    availability: Iterable[str] = (),
) -> Coach:
    fields = _clean_profile(name, email, phone, package_type, role)
    days = _clean_days(availability)
    _ensure_email_free(db, fields['email'])
    row = Coach(auth_id=auth_id, **fields)
    row.availability = [CoachAvailability(day_of_week=day) for day in days]
    with storage_guard(db, 'create_coach_profile'):
        db.add(row)
        db.commit()
        db.refresh(row)
    invalidate_after_mutation(SCOPE_COACHES, SCOPE_DASHBOARD)
    logger.info('coach_created coach_id=%s auth_linked=%s', row.id, auth_id is not None)
    return row


def update_coach(
    db: Session,
    coach_id: int,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    package_type: str | None = None,
    role: str | None = None,
    availability: Iterable[str] | None = None,
) -> Coach:
    row = get_coach(db, coach_id)
    fields = _clean_profile(name, email, phone, package_type, role or row.role)
    _ensure_email_free(db, fields['email'], exclude_coach_id=row.id)
    days = None if availability is None else _clean_days(availability)
    with storage_guard(db, 'update_coach'):
        for key, value in fields.items():
            setattr(row, key, value)
        if days is not None:
            _replace_availability(db, row, days)
        db.commit()
        db.refresh(row)
    # Coach names are denormalized into session, calendar, attendance and student read models.
    invalidate_after_mutation(
        SCOPE_COACHES,
        SCOPE_SESSIONS,
        SCOPE_CALENDAR,
        SCOPE_ATTENDANCE,
        SCOPE_STUDENTS,
        SCOPE_DASHBOARD,
    )
    logger.info('coach_updated coach_id=%s', row.id)
    return row


def _replace_availability(db: Session, row: Coach, days: list[str]) -> None:
    current = {slot.day_of_week: slot for slot in row.availability}
    for day, slot in current.items():
        if day not in days:
            row.availability.remove(slot)
    # Flush removals first so a re-added day never trips the (coach, day) unique key.
    db.flush()
    for day in days:
        if day not in current:
            row.availability.append(CoachAvailability(day_of_week=day))


def set_availability(db: Session, coach_id: int, days: Iterable[str]) -> Coach:
    row = get_coach(db, coach_id)
    clean = _clean_days(days)
    with storage_guard(db, 'set_availability'):
        _replace_availability(db, row, clean)
        db.commit()
        db.refresh(row)
    invalidate_after_mutation(SCOPE_COACHES)
    logger.info('coach_availability_set coach_id=%s days=%s', row.id, ','.join(clean))
    return row


def delete_coach(db: Session, coach_id: int) -> None:
    row = get_coach(db, coach_id)
    if db.query(TrainingSession.id).filter(TrainingSession.coach_id == coach_id).first():
        raise ValidationError('Coach has training sessions and cannot be deleted')
    with storage_guard(db, 'delete_coach'):
        unassigned = (
            db.query(Student)
            .filter(Student.coach_id == coach_id)
            .update({Student.coach_id: None}, synchronize_session='fetch')
        )
        db.delete(row)
        db.commit()
    invalidate_after_mutation(SCOPE_COACHES, SCOPE_STUDENTS, SCOPE_DASHBOARD)
    logger.info('coach_deleted coach_id=%s students_unassigned=%s', coach_id, unassigned)
