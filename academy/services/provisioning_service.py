"""Two-step coach onboarding: a login identity first, then the linked coach row.

The steps are not one transaction, so a failed second step is compensated by
deleting the identity created in the first. If the compensation itself fails
the orphaned identity is logged and reported in the raised error.
"""
from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from academy.config import settings
from academy.core.errors import AcademyError, ProvisioningError, StorageError, ValidationError
from academy.models import Coach, Role
from academy.services import auth_service, coach_service


logger = logging.getLogger(__name__)


def create_coach_account(
    db: Session,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    package_type: str | None = None,
    password: str | None = None,
    role: str | None = None,
    availability: Iterable[str] = (),
) -> Coach:
    fields = coach_service.validate_coach_profile(
        db,
        name=name,
        email=email,
        phone=phone,
        package_type=package_type,
        role=role,
    )
    days = list(availability)

    try:
        identity = auth_service.create_user(
            db,
            fields['email'],
            password or settings.coach_default_password,
            {'name': fields['name'], 'role': Role.COACH.value},
        )
    except StorageError as exc:
        raise ProvisioningError(f'Failed to create login account: {exc.message}') from exc

    try:
        coach = coach_service.create_coach_profile(db, auth_id=identity.id, availability=days, **fields)
    except AcademyError as exc:
        logger.warning('coach_provisioning_failed identity_id=%s step=coach_profile error=%s', identity.id, exc.message)
        try:
            auth_service.delete_user(db, identity.id)
        except AcademyError as cleanup_exc:
            logger.error(
                'coach_provisioning_compensation_failed identity_id=%s error=%s',
                identity.id,
                cleanup_exc.message,
            )
            raise ProvisioningError(
                f'Failed to create coach profile: {exc.message}. '
                f'The login account {fields["email"]} could not be removed and needs manual cleanup.'
            ) from exc
        raise ProvisioningError(f'Failed to create coach profile: {exc.message}') from exc

    logger.info('coach_account_provisioned coach_id=%s identity_id=%s', coach.id, identity.id)
    return coach


def sign_up(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
) -> dict:
    """Self-service registration; the new account always gets the coach role."""
    if not password:
        raise ValidationError('Password is required')
    coach = create_coach_account(
        db,
        name=name,
        email=email,
        phone=phone,
        password=password,
        role=Role.COACH.value,
    )
    identity = auth_service.find_identity_by_email(db, coach.email)
    return auth_service.issue_session_token(identity)
