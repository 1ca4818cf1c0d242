from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from academy.cache import SCOPE_ATTENDANCE, SCOPE_DASHBOARD, invalidate_after_mutation
from academy.core.errors import NotFoundError, ValidationError, storage_guard
from academy.core.time_provider import TimeProvider, default_time_provider
from academy.models import ATTENDANCE_STATUS_VALUES, AttendanceRecord, AttendanceStatus, Branch, Coach, SessionStatus, TrainingSession
from academy.services.access_scope_service import ActorContext, apply_session_scope, assert_session_access
from academy.services.training_session_service import get_session, serialize_session


logger = logging.getLogger(__name__)


def attendance_summary(records: Iterable[AttendanceRecord]) -> dict:
    counts = {status: 0 for status in ATTENDANCE_STATUS_VALUES}
    for record in records:
        counts[record.status] = counts.get(record.status, 0) + 1
    counts['total'] = sum(counts[status] for status in ATTENDANCE_STATUS_VALUES)
    return counts


def serialize_record(record: AttendanceRecord) -> dict:
    return {
        'id': record.id,
        'session_id': record.session_id,
        'student_id': record.student_id,
        'student_name': record.student.name if record.student else '',
        'status': record.status,
        'marked_at': record.marked_at.isoformat() if record.marked_at else None,
    }


def set_attendance_status(
    db: Session,
    record_id: int,
    status: str,
    *,
    actor: ActorContext | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> AttendanceRecord:
    clean_status = (status or '').strip().lower()
    if clean_status not in ATTENDANCE_STATUS_VALUES:
        raise ValidationError(f'Invalid attendance status: {status}')
    record = (
        db.query(AttendanceRecord)
        .options(joinedload(AttendanceRecord.session), joinedload(AttendanceRecord.student))
        .filter(AttendanceRecord.id == record_id)
        .first()
    )
    if not record:
        raise NotFoundError('Attendance record not found')
    if actor is not None:
        assert_session_access(actor, record.session)

    record.status = clean_status
    record.marked_at = None if clean_status == AttendanceStatus.PENDING.value else time_provider.naive_now()
    with storage_guard(db, 'set_attendance_status'):
        db.commit()
        db.refresh(record)

    invalidate_after_mutation(SCOPE_ATTENDANCE, SCOPE_DASHBOARD)
    logger.info(
        'attendance_marked record_id=%s session_id=%s student_id=%s status=%s',
        record.id,
        record.session_id,
        record.student_id,
        clean_status,
    )
    return record


def list_attendance_sessions(db: Session, actor: ActorContext, search: str | None = None) -> list[TrainingSession]:
    query = (
        db.query(TrainingSession)
        .join(Coach, Coach.id == TrainingSession.coach_id)
        .join(Branch, Branch.id == TrainingSession.branch_id)
        .options(joinedload(TrainingSession.branch), joinedload(TrainingSession.coach))
        .filter(TrainingSession.status == SessionStatus.SCHEDULED.value)
    )
    query = apply_session_scope(query, actor)
    term = (search or '').strip()
    if term:
        pattern = f'%{term}%'
        query = query.filter(or_(Branch.name.ilike(pattern), Coach.name.ilike(pattern)))
    return query.order_by(TrainingSession.session_date.asc(), TrainingSession.start_time.asc()).all()


def get_session_attendance(db: Session, actor: ActorContext, session_id: int) -> dict:
    session = get_session(db, actor, session_id)
    records = (
        db.query(AttendanceRecord)
        .options(joinedload(AttendanceRecord.student))
        .filter(AttendanceRecord.session_id == session.id)
        .order_by(AttendanceRecord.id.asc())
        .all()
    )
    return {
        'session': serialize_session(session),
        'records': [serialize_record(record) for record in records],
        'summary': attendance_summary(records),
    }
