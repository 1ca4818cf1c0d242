from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import false, func, or_
from sqlalchemy.orm import Query, Session

from academy.core.errors import AccessDeniedError, storage_guard
from academy.models import ROLE_VALUES, Coach, Role, TrainingSession


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorContext:
    """Who is calling, resolved once per request and passed to services explicitly."""

    identity_id: int
    email: str
    role: str
    coach_id: int
    coach_name: str = ''

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def is_coach(self) -> bool:
        return self.role == Role.COACH.value

    def as_dict(self) -> dict:
        return {
            'identity_id': self.identity_id,
            'email': self.email,
            'role': self.role,
            'coach_id': self.coach_id,
            'coach_name': self.coach_name,
        }


def _repaired_role(value: str | None) -> str:
    # Exact match only; 'Admin' or ' admin ' are not trusted as admin.
    return value if value in ROLE_VALUES else Role.COACH.value


def _find_coach_for_principal(db: Session, identity_id: int, email: str) -> Coach | None:
    coach = db.query(Coach).filter(Coach.auth_id == identity_id).first()
    if coach:
        return coach
    clean_email = str(email or '').strip().lower()
    if not clean_email:
        return None
    return db.query(Coach).filter(func.lower(Coach.email) == clean_email).first()


def resolve_actor(db: Session, principal: dict | None) -> ActorContext | None:
    """Map an authenticated principal to a role, failing closed when no coach row exists.

    The coach row is found by identity link first and by email second; a row found
    by email gets its identity link filled in, and a legacy row without a valid
    role is defaulted to ``coach``.
    """
    if not principal:
        return None
    identity_id = int(principal.get('identity_id') or 0)
    email = str(principal.get('email') or '')
    if identity_id <= 0:
        return None

    coach = _find_coach_for_principal(db, identity_id, email)
    if not coach:
        logger.warning('actor_unresolved identity_id=%s reason=no_coach_profile', identity_id)
        return None

    dirty = False
    if coach.auth_id is None:
        coach.auth_id = identity_id
        dirty = True
        logger.info('coach_identity_linked coach_id=%s identity_id=%s', coach.id, identity_id)
    if coach.role not in ROLE_VALUES:
        logger.warning('coach_role_defaulted coach_id=%s previous_role=%s', coach.id, coach.role)
        coach.role = _repaired_role(coach.role)
        dirty = True
    if dirty:
        with storage_guard(db, 'resolve_actor'):
            db.commit()
            db.refresh(coach)

    return ActorContext(
        identity_id=identity_id,
        email=email,
        role=str(coach.role),
        coach_id=int(coach.id),
        coach_name=coach.name or '',
    )


def repair_coach_roles(db: Session) -> int:
    """One-time migration of legacy rows whose role is missing or outside the closed set."""
    rows = db.query(Coach).filter(or_(Coach.role.is_(None), Coach.role.not_in(ROLE_VALUES))).all()
    for row in rows:
        row.role = _repaired_role(row.role)
    if rows:
        with storage_guard(db, 'repair_coach_roles'):
            db.commit()
        logger.info('coach_roles_repaired count=%s', len(rows))
    return len(rows)


def require_admin(actor: ActorContext) -> None:
    if not actor.is_admin:
        raise AccessDeniedError('Access denied. Admin role required.')


def apply_session_scope(query: Query, actor: ActorContext) -> Query:
    if actor.is_admin:
        return query
    if actor.is_coach and actor.coach_id > 0:
        return query.filter(TrainingSession.coach_id == actor.coach_id)
    return query.filter(false())


def can_access_session(actor: ActorContext, session: TrainingSession) -> bool:
    if actor.is_admin:
        return True
    return actor.is_coach and int(session.coach_id or 0) == actor.coach_id


def assert_session_access(actor: ActorContext, session: TrainingSession) -> None:
    if not can_access_session(actor, session):
        raise AccessDeniedError('You do not have access to this session')
