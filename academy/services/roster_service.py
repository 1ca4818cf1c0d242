from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.orm import Session

from academy.cache import (
    SCOPE_ATTENDANCE,
    SCOPE_CALENDAR,
    SCOPE_DASHBOARD,
    SCOPE_SESSIONS,
    invalidate_after_mutation,
)
from academy.config import settings
from academy.core.errors import ConflictError, NotFoundError, ValidationError, ValidationMismatch, storage_guard
from academy.models import AttendanceRecord, AttendanceStatus, SessionParticipant, SessionStatus, Student, TrainingSession
from academy.services.conflict_service import STUDENT_CONFLICT, find_scheduling_conflicts, lock_coach_schedule
from academy.services.eligibility_service import is_student_compatible


logger = logging.getLogger(__name__)


@dataclass
class RosterResult:
    session_id: int
    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    retained: list[int] = field(default_factory=list)

    @property
    def student_ids(self) -> list[int]:
        return sorted(self.added + self.retained)

    def as_dict(self) -> dict:
        return {
            'session_id': self.session_id,
            'student_ids': self.student_ids,
            'added': self.added,
            'removed': self.removed,
            'retained': self.retained,
        }


def _load_session(db: Session, session_id: int) -> TrainingSession:
    row = db.query(TrainingSession).filter(TrainingSession.id == session_id).first()
    if not row:
        raise NotFoundError('Training session not found')
    return row


def validate_roster(db: Session, student_ids: Iterable[int], coach_id: int, package_type: str | None) -> list[Student]:
    """Every student must exist and belong to the session's coach and package type."""
    wanted = sorted({int(student_id) for student_id in student_ids})
    if not wanted:
        return []
    students = db.query(Student).filter(Student.id.in_(wanted)).all()
    found = {int(row.id) for row in students}
    missing = [student_id for student_id in wanted if student_id not in found]
    if missing:
        raise ValidationError(f'Unknown student ids: {missing}')
    mismatched = sorted(int(row.id) for row in students if not is_student_compatible(row, coach_id, package_type))
    if mismatched:
        raise ValidationMismatch(
            'Selected students must be assigned to the session coach and package type',
            student_ids=mismatched,
        )
    return students


def apply_roster(
    db: Session,
    session: TrainingSession,
    student_ids: Iterable[int],
    *,
    preserve_marks: bool | None = None,
) -> RosterResult:
    """Patch participant and attendance rows to the desired set; flushes, never commits."""
    keep_marks = settings.roster_preserve_marks if preserve_marks is None else bool(preserve_marks)
    desired = {int(student_id) for student_id in student_ids}
    participants = {int(row.student_id): row for row in session.participants}
    records = {int(row.student_id): row for row in session.attendance_records}

    result = RosterResult(session_id=int(session.id))
    for student_id in sorted(set(participants) - desired):
        session.participants.remove(participants[student_id])
        result.removed.append(student_id)
    for student_id in sorted(set(records) - desired):
        # Also drops attendance rows left behind for non-participants.
        session.attendance_records.remove(records[student_id])

    for student_id in sorted(desired):
        if student_id in participants:
            result.retained.append(student_id)
        else:
            session.participants.append(SessionParticipant(student_id=student_id))
            result.added.append(student_id)
        record = records.get(student_id)
        if record is None:
            session.attendance_records.append(
                AttendanceRecord(student_id=student_id, status=AttendanceStatus.PENDING.value, marked_at=None)
            )
        elif not keep_marks or student_id not in participants:
            record.status = AttendanceStatus.PENDING.value
            record.marked_at = None

    db.flush()
    return result


def set_participants(
    db: Session,
    session_id: int,
    student_ids: Iterable[int],
    *,
    preserve_marks: bool | None = None,
) -> RosterResult:
    session = _load_session(db, session_id)
    wanted = sorted({int(student_id) for student_id in student_ids})
    validate_roster(db, wanted, int(session.coach_id), session.package_type)

    added_ids = [student_id for student_id in wanted if student_id not in {int(p.student_id) for p in session.participants}]

    with storage_guard(db, 'set_participants'):
        lock_coach_schedule(db, int(session.coach_id))
        if added_ids and session.status != SessionStatus.CANCELLED.value:
            student_conflicts = [
                conflict
                for conflict in find_scheduling_conflicts(
                    db,
                    session.session_date,
                    session.start_time,
                    session.end_time,
                    int(session.coach_id),
                    student_ids=added_ids,
                    exclude_session_id=int(session.id),
                )
                if conflict.conflict_type == STUDENT_CONFLICT
            ]
            if student_conflicts:
                raise ConflictError(student_conflicts[0].conflict_details, conflicts=student_conflicts)
        result = apply_roster(db, session, wanted, preserve_marks=preserve_marks)
        db.commit()
    invalidate_after_mutation(SCOPE_SESSIONS, SCOPE_CALENDAR, SCOPE_ATTENDANCE, SCOPE_DASHBOARD)
    logger.info(
        'roster_updated session_id=%s added=%s removed=%s retained=%s',
        session_id,
        len(result.added),
        len(result.removed),
        len(result.retained),
    )
    return result


def get_participants(db: Session, session_id: int) -> list[Student]:
    _load_session(db, session_id)
    return (
        db.query(Student)
        .join(SessionParticipant, SessionParticipant.student_id == Student.id)
        .filter(SessionParticipant.session_id == session_id)
        .order_by(Student.name.asc(), Student.id.asc())
        .all()
    )


def verify_roster_consistency(db: Session, session_id: int) -> bool:
    participant_ids = {
        int(student_id)
        for (student_id,) in db.query(SessionParticipant.student_id).filter(SessionParticipant.session_id == session_id).all()
    }
    record_rows = db.query(AttendanceRecord.student_id).filter(AttendanceRecord.session_id == session_id).all()
    record_ids = [int(student_id) for (student_id,) in record_rows]
    return len(record_ids) == len(set(record_ids)) and set(record_ids) == participant_ids
