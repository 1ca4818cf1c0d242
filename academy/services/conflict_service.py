from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, time
from typing import Iterable

from sqlalchemy.orm import Session, joinedload

from academy.core.errors import ConflictError
from academy.core.intervals import TimeRange, overlaps
from academy.models import Coach, SessionParticipant, SessionStatus, Student, TrainingSession


logger = logging.getLogger(__name__)

COACH_CONFLICT = 'coach'
STUDENT_CONFLICT = 'student'


@dataclass(frozen=True)
class SchedulingConflict:
    conflict_type: str
    session_id: int
    conflict_details: str
    student_id: int | None = None

    def as_dict(self) -> dict:
        return asdict(self)


def _active_sessions_on(db: Session, target_date: date, exclude_session_id: int | None):
    query = db.query(TrainingSession).filter(
        TrainingSession.session_date == target_date,
        TrainingSession.status != SessionStatus.CANCELLED.value,
    )
    if exclude_session_id is not None:
        query = query.filter(TrainingSession.id != exclude_session_id)
    return query


def _session_range(row: TrainingSession) -> TimeRange:
    return TimeRange(row.start_time, row.end_time)


def lock_coach_schedule(db: Session, coach_id: int) -> None:
    """Serialize check-then-write for one coach; a no-op on SQLite."""
    db.query(Coach.id).filter(Coach.id == coach_id).with_for_update().first()


def check_conflict(
    db: Session,
    coach_id: int,
    target_date: date,
    start: time,
    end: time,
    exclude_session_id: int | None = None,
) -> TrainingSession | None:
    rows = (
        _active_sessions_on(db, target_date, exclude_session_id)
        .filter(TrainingSession.coach_id == coach_id)
        .order_by(TrainingSession.start_time.asc(), TrainingSession.id.asc())
        .all()
    )
    for row in rows:
        if overlaps(start, end, row.start_time, row.end_time):
            return row
    return None


def find_scheduling_conflicts(
    db: Session,
    target_date: date,
    start: time,
    end: time,
    coach_id: int,
    student_ids: Iterable[int] = (),
    exclude_session_id: int | None = None,
) -> list[SchedulingConflict]:
    proposed = TimeRange(start, end)
    conflicts: list[SchedulingConflict] = []

    coach_rows = (
        _active_sessions_on(db, target_date, exclude_session_id)
        .filter(TrainingSession.coach_id == coach_id)
        .order_by(TrainingSession.start_time.asc(), TrainingSession.id.asc())
        .all()
    )
    for row in coach_rows:
        existing = _session_range(row)
        if proposed.overlaps(existing):
            conflicts.append(
                SchedulingConflict(
                    conflict_type=COACH_CONFLICT,
                    session_id=row.id,
                    conflict_details=(
                        f'Coach is already booked on {target_date.isoformat()} '
                        f'from {existing.label()} (session #{row.id}).'
                    ),
                )
            )

    clean_student_ids = sorted({int(student_id) for student_id in student_ids})
    if clean_student_ids:
        participant_rows = (
            db.query(SessionParticipant)
            .join(TrainingSession, SessionParticipant.session_id == TrainingSession.id)
            .options(joinedload(SessionParticipant.session), joinedload(SessionParticipant.student))
            .filter(
                SessionParticipant.student_id.in_(clean_student_ids),
                TrainingSession.session_date == target_date,
                TrainingSession.status != SessionStatus.CANCELLED.value,
            )
            .order_by(TrainingSession.start_time.asc(), SessionParticipant.id.asc())
            .all()
        )
        for participant in participant_rows:
            row = participant.session
            if exclude_session_id is not None and row.id == exclude_session_id:
                continue
            existing = _session_range(row)
            if not proposed.overlaps(existing):
                continue
            student: Student | None = participant.student
            student_label = student.name if student else f'#{participant.student_id}'
            conflicts.append(
                SchedulingConflict(
                    conflict_type=STUDENT_CONFLICT,
                    session_id=row.id,
                    student_id=participant.student_id,
                    conflict_details=(
                        f'Student {student_label} is already booked on {target_date.isoformat()} '
                        f'from {existing.label()} (session #{row.id}).'
                    ),
                )
            )
    return conflicts


def ensure_no_conflicts(
    db: Session,
    target_date: date,
    start: time,
    end: time,
    coach_id: int,
    student_ids: Iterable[int] = (),
    exclude_session_id: int | None = None,
) -> None:
    conflicts = find_scheduling_conflicts(
        db,
        target_date,
        start,
        end,
        coach_id,
        student_ids=student_ids,
        exclude_session_id=exclude_session_id,
    )
    if conflicts:
        logger.info(
            'scheduling_conflict coach_id=%s date=%s start=%s end=%s conflicts=%s',
            coach_id,
            target_date,
            start,
            end,
            len(conflicts),
        )
        raise ConflictError(conflicts[0].conflict_details, conflicts=conflicts)
