"""Error taxonomy shared by services and routers.

Services raise these; routers translate them to HTTP responses with
:func:`to_http_exception`. The ``detail`` string is what the dashboard shows
to the user as a transient notification.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)


class AcademyError(Exception):
    status_code = 500

    def __init__(self, message: str = '') -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(AcademyError, ValueError):
    """A required field is missing or a value breaks a business rule."""

    status_code = 400


class ValidationMismatch(ValidationError):
    """A student does not match the session's coach or package type."""

    def __init__(self, message: str = '', student_ids: list[int] | None = None) -> None:
        super().__init__(message)
        self.student_ids = list(student_ids or [])


class ConflictError(AcademyError):
    status_code = 409

    def __init__(self, message: str = '', conflicts: list | None = None) -> None:
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class NotFoundError(AcademyError, LookupError):
    status_code = 404


class ProvisioningError(AcademyError):
    status_code = 502


class StorageError(AcademyError):
    status_code = 500


class AuthenticationError(AcademyError):
    status_code = 401


class AccessDeniedError(AcademyError, PermissionError):
    status_code = 403


def to_http_exception(exc: AcademyError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def _describe_integrity_error(exc: IntegrityError) -> str:
    text = str(getattr(exc, 'orig', exc) or '').lower()
    if 'unique' in text or 'duplicate' in text:
        return 'This record already exists.'
    if 'foreign key' in text:
        return 'This record is linked to other data and cannot be modified.'
    if 'not null' in text:
        return 'Some required fields are missing.'
    if 'check' in text:
        return 'One or more fields contain invalid values.'
    return 'The operation violates database rules.'


@contextmanager
def storage_guard(db: Session, context: str) -> Iterator[None]:
    """Run a unit of work; roll back and re-raise data store failures as StorageError."""
    try:
        yield
    except AcademyError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.error('storage_integrity_error context=%s error=%s', context, exc.orig)
        raise StorageError(_describe_integrity_error(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('storage_error context=%s', context)
        raise StorageError('An unexpected database error occurred.') from exc
