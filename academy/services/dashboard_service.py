from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from academy.cache import SCOPE_DASHBOARD, cache_key, cached_view
from academy.core.time_provider import TimeProvider, default_time_provider
from academy.models import AttendanceRecord, AttendanceStatus, Branch, Coach, SessionStatus, Student, TrainingSession
from academy.services.access_scope_service import ActorContext
from academy.services.training_session_service import serialize_session


UPCOMING_LIMIT = 5


def _stats_key(db: Session, actor: ActorContext, *, time_provider: TimeProvider = default_time_provider) -> str:
    return cache_key(SCOPE_DASHBOARD, actor.role, actor.coach_id, time_provider.today().isoformat())


def _count(db: Session, column, *criteria) -> int:
    return int(db.query(func.count(column)).filter(*criteria).scalar() or 0)


def _admin_stats(db: Session) -> dict:
    return {
        'role': 'admin',
        'total_students': _count(db, Student.id),
        'total_coaches': _count(db, Coach.id),
        'total_branches': _count(db, Branch.id),
        'scheduled_sessions': _count(db, TrainingSession.id, TrainingSession.status == SessionStatus.SCHEDULED.value),
    }


def _coach_stats(db: Session, actor: ActorContext, time_provider: TimeProvider) -> dict:
    upcoming = (
        db.query(TrainingSession)
        .options(joinedload(TrainingSession.branch), joinedload(TrainingSession.coach))
        .filter(
            TrainingSession.coach_id == actor.coach_id,
            TrainingSession.status == SessionStatus.SCHEDULED.value,
            TrainingSession.session_date >= time_provider.today(),
        )
        .order_by(TrainingSession.session_date.asc(), TrainingSession.start_time.asc())
        .limit(UPCOMING_LIMIT)
        .all()
    )
    attended = (
        db.query(func.count(AttendanceRecord.id))
        .join(TrainingSession, TrainingSession.id == AttendanceRecord.session_id)
        .filter(
            TrainingSession.coach_id == actor.coach_id,
            AttendanceRecord.status == AttendanceStatus.PRESENT.value,
        )
        .scalar()
    )
    return {
        'role': 'coach',
        'coach_name': actor.coach_name,
        'my_students': _count(db, Student.id, Student.coach_id == actor.coach_id),
        'scheduled_sessions': _count(
            db,
            TrainingSession.id,
            TrainingSession.coach_id == actor.coach_id,
            TrainingSession.status == SessionStatus.SCHEDULED.value,
        ),
        'present_marks': int(attended or 0),
        'upcoming_sessions': [serialize_session(row) for row in upcoming],
    }


@cached_view(key_builder=_stats_key)
def dashboard_stats(db: Session, actor: ActorContext, *, time_provider: TimeProvider = default_time_provider) -> dict:
    if actor.is_admin:
        return _admin_stats(db)
    return _coach_stats(db, actor, time_provider)
