from __future__ import annotations

import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from academy.cache import SCOPE_ATTENDANCE, SCOPE_DASHBOARD, SCOPE_SESSIONS, SCOPE_STUDENTS, invalidate_after_mutation
from academy.core.errors import NotFoundError, ValidationError, storage_guard
from academy.models import PACKAGE_TYPE_VALUES, AttendanceRecord, AttendanceStatus, Coach, Student
from academy.services.access_scope_service import ActorContext


logger = logging.getLogger(__name__)


def serialize_student(row: Student) -> dict:
    return {
        'id': row.id,
        'name': row.name,
        'email': row.email or '',
        'phone': row.phone,
        'sessions': int(row.sessions or 0),
        'remaining_sessions': int(row.remaining_sessions or 0),
        'package_type': row.package_type,
        'coach_id': row.coach_id,
        'coach_name': row.coach.name if row.coach else '',
    }


def _clean_fields(
    db: Session,
    name: str,
    email: str,
    phone: str | None,
    sessions: int,
    remaining_sessions: int,
    package_type: str | None,
    coach_id: int | None,
) -> dict:
    clean_name = (name or '').strip()
    if not clean_name:
        raise ValidationError('Student name is required')
    clean_email = (email or '').strip().lower()
    if clean_email and '@' not in clean_email:
        raise ValidationError('Student email is invalid')
    total = int(sessions or 0)
    remaining = int(remaining_sessions or 0)
    if total < 0 or remaining < 0:
        raise ValidationError('Session counts cannot be negative')
    clean_package_type = (package_type or '').strip() or None
    if clean_package_type is not None and clean_package_type not in PACKAGE_TYPE_VALUES:
        raise ValidationError(f'Invalid package type: {package_type}')
    if coach_id and not db.query(Coach.id).filter(Coach.id == coach_id).first():
        raise NotFoundError('Coach not found')
    return {
        'name': clean_name,
        'email': clean_email,
        'phone': (phone or '').strip() or None,
        'sessions': total,
        'remaining_sessions': remaining,
        'package_type': clean_package_type,
        'coach_id': coach_id or None,
    }


def list_students(
    db: Session,
    search: str | None = None,
    *,
    coach_id: int | None = None,
    package_type: str | None = None,
) -> list[Student]:
    query = db.query(Student).options(joinedload(Student.coach))
    term = (search or '').strip()
    if term:
        pattern = f'%{term}%'
        query = query.filter(or_(Student.name.ilike(pattern), Student.email.ilike(pattern)))
    if coach_id:
        query = query.filter(Student.coach_id == coach_id)
    if package_type:
        query = query.filter(Student.package_type == package_type)
    return query.order_by(Student.name.asc(), Student.id.asc()).all()


def list_students_for_actor(db: Session, actor: ActorContext, search: str | None = None) -> list[Student]:
    """Coaches only ever see the students assigned to them."""
    if actor.is_admin:
        return list_students(db, search)
    return list_students(db, search, coach_id=actor.coach_id)


def get_student(db: Session, student_id: int) -> Student:
    row = db.query(Student).options(joinedload(Student.coach)).filter(Student.id == student_id).first()
    if not row:
        raise NotFoundError('Student not found')
    return row


def create_student(
    db: Session,
    *,
    name: str,
    email: str = '',
    phone: str | None = None,
    sessions: int = 0,
    remaining_sessions: int = 0,
    package_type: str | None = None,
    coach_id: int | None = None,
) -> Student:
    row = Student(**_clean_fields(db, name, email, phone, sessions, remaining_sessions, package_type, coach_id))
    with storage_guard(db, 'create_student'):
        db.add(row)
        db.commit()
        db.refresh(row)
    invalidate_after_mutation(SCOPE_STUDENTS, SCOPE_DASHBOARD)
    logger.info('student_created student_id=%s coach_id=%s', row.id, row.coach_id)
    return row


def update_student(
    db: Session,
    student_id: int,
    *,
    name: str,
    email: str = '',
    phone: str | None = None,
    sessions: int = 0,
    remaining_sessions: int = 0,
    package_type: str | None = None,
    coach_id: int | None = None,
) -> Student:
    row = get_student(db, student_id)
    fields = _clean_fields(db, name, email, phone, sessions, remaining_sessions, package_type, coach_id)
    with storage_guard(db, 'update_student'):
        for key, value in fields.items():
            setattr(row, key, value)
        db.commit()
        db.refresh(row)
    invalidate_after_mutation(SCOPE_STUDENTS, SCOPE_DASHBOARD)
    logger.info('student_updated student_id=%s coach_id=%s', row.id, row.coach_id)
    return row


def delete_student(db: Session, student_id: int) -> None:
    row = get_student(db, student_id)
    with storage_guard(db, 'delete_student'):
        db.delete(row)
        db.commit()
    # Participant and attendance rows go with the student via ON DELETE CASCADE.
    invalidate_after_mutation(SCOPE_STUDENTS, SCOPE_SESSIONS, SCOPE_ATTENDANCE, SCOPE_DASHBOARD)
    logger.info('student_deleted student_id=%s', student_id)


def student_progress(db: Session, coach_id: int | None = None) -> list[dict]:
    attended = (
        db.query(AttendanceRecord.student_id, func.count(AttendanceRecord.id))
        .filter(AttendanceRecord.status == AttendanceStatus.PRESENT.value)
        .group_by(AttendanceRecord.student_id)
        .all()
    )
    attended_by_student = {int(student_id): int(count) for student_id, count in attended}
    students = list_students(db, coach_id=coach_id)
    payload = []
    for row in students:
        total = int(row.sessions or 0)
        done = attended_by_student.get(int(row.id), 0)
        payload.append(
            {
                'student_id': row.id,
                'name': row.name,
                'package_type': row.package_type,
                'sessions': total,
                'remaining_sessions': int(row.remaining_sessions or 0),
                'attended': done,
                'progress_percent': round(done * 100.0 / total, 1) if total else 0.0,
            }
        )
    return payload
