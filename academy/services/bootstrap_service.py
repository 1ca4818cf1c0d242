import logging

from sqlalchemy.orm import Session

from academy.config import settings
from academy.core.errors import AcademyError
from academy.models import Coach, Role
from academy.services.access_scope_service import repair_coach_roles
from academy.services.provisioning_service import create_coach_account


logger = logging.getLogger(__name__)


def _seed_admin_if_needed(db: Session) -> dict:
    email = (settings.bootstrap_admin_email or '').strip().lower()
    if not email or not settings.bootstrap_admin_password:
        return {'seeded': False, 'reason': 'no_admin_configured'}
    if db.query(Coach.id).filter(Coach.role == Role.ADMIN.value).first():
        return {'seeded': False, 'reason': 'admin_exists'}
    try:
        row = create_coach_account(
            db,
            name=settings.bootstrap_admin_name,
            email=email,
            password=settings.bootstrap_admin_password,
            role=Role.ADMIN.value,
        )
    except AcademyError as exc:
        logger.error('bootstrap_admin_seed_failed error=%s', exc.message)
        return {'seeded': False, 'reason': 'provisioning_failed'}
    logger.warning('Bootstrap admin account created - change its password after first login (coach_id=%s)', row.id)
    return {'seeded': True, 'coach_id': row.id}


def run_bootstrap(db: Session) -> dict:
    repaired = repair_coach_roles(db)
    admin = _seed_admin_if_needed(db)
    result = {'ran': True, 'roles_repaired': repaired, 'admin': admin}
    logger.info('bootstrap_completed roles_repaired=%s admin_seeded=%s', repaired, admin.get('seeded'))
    return result
