from __future__ import annotations

import logging
from datetime import date, time
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from academy.cache import SCOPE_ATTENDANCE, SCOPE_CALENDAR, SCOPE_DASHBOARD, SCOPE_SESSIONS, invalidate_after_mutation
from academy.core.errors import NotFoundError, ValidationError, storage_guard
from academy.models import (
    PACKAGE_TYPE_VALUES,
    SESSION_STATUS_VALUES,
    Branch,
    Coach,
    SessionStatus,
    TrainingSession,
)
from academy.services.access_scope_service import (
    ActorContext,
    apply_session_scope,
    assert_session_access,
    require_admin,
)
from academy.services.conflict_service import ensure_no_conflicts, lock_coach_schedule
from academy.services.eligibility_service import is_coach_eligible
from academy.services.roster_service import apply_roster, validate_roster


logger = logging.getLogger(__name__)

_SESSION_SCOPES = (SCOPE_SESSIONS, SCOPE_CALENDAR, SCOPE_DASHBOARD, SCOPE_ATTENDANCE)


def _format_time(value: time | None) -> str:
    return value.strftime('%H:%M') if value else ''


def serialize_session(row: TrainingSession) -> dict:
    return {
        'id': row.id,
        'date': row.session_date.isoformat(),
        'start_time': _format_time(row.start_time),
        'end_time': _format_time(row.end_time),
        'branch_id': row.branch_id,
        'branch_name': row.branch.name if row.branch else '',
        'coach_id': row.coach_id,
        'coach_name': row.coach.name if row.coach else '',
        'package_type': row.package_type,
        'status': row.status,
        'notes': row.notes or '',
        'student_ids': [participant.student_id for participant in row.participants],
    }


def _clean_package_type(value: str | None) -> str | None:
    clean = (value or '').strip() or None
    if clean is not None and clean not in PACKAGE_TYPE_VALUES:
        raise ValidationError(f'Invalid package type: {value}')
    return clean


def _clean_status(value: str | None) -> str:
    clean = (value or SessionStatus.SCHEDULED.value).strip().lower()
    if clean not in SESSION_STATUS_VALUES:
        raise ValidationError(f'Invalid session status: {value}')
    return clean


def _validate_schedule(session_date: date | None, start_time: time | None, end_time: time | None) -> None:
    if session_date is None or start_time is None or end_time is None:
        raise ValidationError('Date, start time and end time are required')
    if start_time >= end_time:
        raise ValidationError('End time must be after start time')


def _require_branch(db: Session, branch_id: int | None) -> Branch:
    if not branch_id:
        raise ValidationError('Branch is required')
    row = db.query(Branch).filter(Branch.id == branch_id).first()
    if not row:
        raise NotFoundError('Branch not found')
    return row


def _require_coach(db: Session, coach_id: int | None, package_type: str | None) -> Coach:
    if not coach_id:
        raise ValidationError('Coach is required')
    row = db.query(Coach).filter(Coach.id == coach_id).first()
    if not row:
        raise NotFoundError('Coach not found')
    if not is_coach_eligible(row.package_type, package_type):
        raise ValidationError(f'Coach {row.name} is not eligible for {package_type} sessions')
    return row


def _load_session(db: Session, session_id: int) -> TrainingSession:
    row = (
        db.query(TrainingSession)
        .options(joinedload(TrainingSession.branch), joinedload(TrainingSession.coach))
        .filter(TrainingSession.id == session_id)
        .first()
    )
    if not row:
        raise NotFoundError('Training session not found')
    return row


def get_session(db: Session, actor: ActorContext, session_id: int) -> TrainingSession:
    row = _load_session(db, session_id)
    assert_session_access(actor, row)
    return row


def list_sessions(
    db: Session,
    actor: ActorContext,
    *,
    coach_id: int | None = None,
    branch_id: int | None = None,
    package_type: str | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
) -> list[TrainingSession]:
    query = (
        db.query(TrainingSession)
        .join(Coach, Coach.id == TrainingSession.coach_id)
        .join(Branch, Branch.id == TrainingSession.branch_id)
        .options(joinedload(TrainingSession.branch), joinedload(TrainingSession.coach))
    )
    query = apply_session_scope(query, actor)
    if coach_id:
        query = query.filter(TrainingSession.coach_id == coach_id)
    if branch_id:
        query = query.filter(TrainingSession.branch_id == branch_id)
    if package_type:
        query = query.filter(TrainingSession.package_type == _clean_package_type(package_type))
    if status:
        query = query.filter(TrainingSession.status == _clean_status(status))
    if date_from:
        query = query.filter(TrainingSession.session_date >= date_from)
    if date_to:
        query = query.filter(TrainingSession.session_date <= date_to)
    term = (search or '').strip()
    if term:
        pattern = f'%{term}%'
        query = query.filter(
            or_(
                Coach.name.ilike(pattern),
                Branch.name.ilike(pattern),
                TrainingSession.notes.ilike(pattern),
            )
        )
    return query.order_by(
        TrainingSession.session_date.desc(),
        TrainingSession.start_time.asc(),
        TrainingSession.id.asc(),
    ).all()


def create_session(
    db: Session,
    actor: ActorContext,
    *,
    session_date: date,
    start_time: time,
    end_time: time,
    branch_id: int,
    coach_id: int,
    package_type: str | None = None,
    status: str | None = None,
    notes: str | None = None,
    student_ids: Iterable[int] = (),
) -> TrainingSession:
    require_admin(actor)
    _validate_schedule(session_date, start_time, end_time)
    clean_package_type = _clean_package_type(package_type)
    clean_status = _clean_status(status)
    _require_branch(db, branch_id)
    coach = _require_coach(db, coach_id, clean_package_type)
    roster = sorted({int(student_id) for student_id in student_ids})
    validate_roster(db, roster, int(coach.id), clean_package_type)

    with storage_guard(db, 'create_session'):
        lock_coach_schedule(db, coach.id)
        if clean_status != SessionStatus.CANCELLED.value:
            ensure_no_conflicts(db, session_date, start_time, end_time, int(coach.id), student_ids=roster)
        row = TrainingSession(
            session_date=session_date,
            start_time=start_time,
            end_time=end_time,
            branch_id=branch_id,
            coach_id=coach.id,
            package_type=clean_package_type,
            status=clean_status,
            notes=(notes or '').strip() or None,
        )
        db.add(row)
        db.flush()
        apply_roster(db, row, roster)
        db.commit()
        db.refresh(row)

    invalidate_after_mutation(*_SESSION_SCOPES)
    logger.info(
        'session_created session_id=%s coach_id=%s date=%s participants=%s',
        row.id,
        row.coach_id,
        row.session_date,
        len(roster),
    )
    return row


def update_session(
    db: Session,
    actor: ActorContext,
    session_id: int,
    *,
    session_date: date,
    start_time: time,
    end_time: time,
    branch_id: int,
    coach_id: int,
    package_type: str | None = None,
    status: str | None = None,
    notes: str | None = None,
    student_ids: Iterable[int] | None = None,
) -> TrainingSession:
    """Replace a session's fields; ``student_ids=None`` keeps the current roster."""
    require_admin(actor)
    row = _load_session(db, session_id)
    _validate_schedule(session_date, start_time, end_time)
    clean_package_type = _clean_package_type(package_type)
    clean_status = _clean_status(status or row.status)
    _require_branch(db, branch_id)
    coach = _require_coach(db, coach_id, clean_package_type)

    current_roster = sorted(int(participant.student_id) for participant in row.participants)
    roster = current_roster if student_ids is None else sorted({int(student_id) for student_id in student_ids})
    validate_roster(db, roster, int(coach.id), clean_package_type)

    with storage_guard(db, 'update_session'):
        lock_coach_schedule(db, coach.id)
        if clean_status != SessionStatus.CANCELLED.value:
            ensure_no_conflicts(
                db,
                session_date,
                start_time,
                end_time,
                int(coach.id),
                student_ids=roster,
                exclude_session_id=row.id,
            )
        row.session_date = session_date
        row.start_time = start_time
        row.end_time = end_time
        row.branch_id = branch_id
        row.coach_id = coach.id
        row.package_type = clean_package_type
        row.status = clean_status
        row.notes = (notes or '').strip() or None
        if student_ids is not None and roster != current_roster:
            apply_roster(db, row, roster)
        db.commit()
        db.refresh(row)

    invalidate_after_mutation(*_SESSION_SCOPES)
    logger.info('session_updated session_id=%s coach_id=%s status=%s', row.id, row.coach_id, row.status)
    return row


def set_session_status(db: Session, actor: ActorContext, session_id: int, status: str) -> TrainingSession:
    row = _load_session(db, session_id)
    assert_session_access(actor, row)
    clean_status = _clean_status(status)
    if clean_status == row.status:
        return row

    with storage_guard(db, 'set_session_status'):
        if row.status == SessionStatus.CANCELLED.value:
            # Re-activation competes with whatever was booked while cancelled.
            lock_coach_schedule(db, row.coach_id)
            ensure_no_conflicts(
                db,
                row.session_date,
                row.start_time,
                row.end_time,
                int(row.coach_id),
                student_ids=[participant.student_id for participant in row.participants],
                exclude_session_id=row.id,
            )
        previous = row.status
        row.status = clean_status
        db.commit()
        db.refresh(row)

    invalidate_after_mutation(*_SESSION_SCOPES)
    logger.info('session_status_changed session_id=%s from=%s to=%s', row.id, previous, clean_status)
    return row


def delete_session(db: Session, actor: ActorContext, session_id: int) -> None:
    require_admin(actor)
    row = _load_session(db, session_id)
    with storage_guard(db, 'delete_session'):
        db.delete(row)
        db.commit()
    invalidate_after_mutation(*_SESSION_SCOPES)
    logger.info('session_deleted session_id=%s', session_id)
