from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
import threading
from datetime import timedelta

from sqlalchemy.orm import Session

from academy.config import settings
from academy.core.errors import AuthenticationError, NotFoundError, ValidationError, storage_guard
from academy.core.time_provider import TimeProvider, default_time_provider
from academy.frontend_routes import password_reset_url
from academy.models import AuthIdentity, PasswordResetToken


_REVOKED_TOKENS: set[str] = set()
_TOKENS_LOCK = threading.RLock()
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return str(email or '').strip().lower()


def _mask_email(email: str) -> str:
    clean = normalize_email(email)
    local, _, domain = clean.partition('@')
    if not domain:
        return '***'
    return f'{local[:1]}***@{domain}'


def _hash_password(password: str) -> str:
    if len(password or '') < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    salt = secrets.token_hex(16)
    iterations = 120000
    derived = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt.encode('utf-8'), iterations)
    return f'pbkdf2_sha256${iterations}${salt}${derived.hex()}'


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, iter_raw, salt, digest_hex = password_hash.split('$', 3)
    except ValueError:
        return False
    if algo != 'pbkdf2_sha256':
        return False
    derived = hashlib.pbkdf2_hmac('sha256', (password or '').encode('utf-8'), salt.encode('utf-8'), int(iter_raw)).hex()
    return hmac.compare_digest(derived, digest_hex)


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    return f'{header_part}.{payload_part}.{_b64url_encode(signature)}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
    except ValueError:
        return None

    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    expected_signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    try:
        provided_signature = _b64url_decode(signature_part)
    except ValueError:
        return None
    if not hmac.compare_digest(provided_signature, expected_signature):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def find_identity_by_email(db: Session, email: str) -> AuthIdentity | None:
    clean_email = normalize_email(email)
    if not clean_email:
        return None
    return db.query(AuthIdentity).filter(AuthIdentity.email == clean_email).first()


def create_user(db: Session, email: str, password: str, metadata: dict | None = None) -> AuthIdentity:
    """Issue a login credential. Commits on success."""
    clean_email = normalize_email(email)
    if '@' not in clean_email:
        raise ValidationError('A valid email is required')
    if find_identity_by_email(db, clean_email):
        raise ValidationError('A user with this email address has already been registered')
    row = AuthIdentity(
        email=clean_email,
        password_hash=_hash_password(password),
        metadata_json=json.dumps(metadata or {}),
    )
    with storage_guard(db, 'create_user'):
        db.add(row)
        db.commit()
        db.refresh(row)
    logger.info('identity_created identity_id=%s email=%s', row.id, _mask_email(clean_email))
    return row


def delete_user(db: Session, identity_id: int) -> None:
    row = db.query(AuthIdentity).filter(AuthIdentity.id == identity_id).first()
    if not row:
        raise NotFoundError('User not found')
    with storage_guard(db, 'delete_user'):
        db.delete(row)
        db.commit()
    logger.info('identity_deleted identity_id=%s', identity_id)


def issue_session_token(identity: AuthIdentity, *, time_provider: TimeProvider = default_time_provider) -> dict:
    now = time_provider.now()
    expires_at = now + timedelta(hours=settings.auth_session_expiry_hours)
    token = _encode_jwt(
        {
            'sub': identity.id,
            'email': identity.email,
            'iat': int(now.timestamp()),
            'exp': int(expires_at.timestamp()),
        }
    )
    return {
        'token': token,
        'identity_id': identity.id,
        'email': identity.email,
        'expires_at': expires_at.isoformat(),
    }


def sign_in(
    db: Session,
    email: str,
    password: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    identity = find_identity_by_email(db, email)
    if not identity or not identity.password_hash or not _verify_password(password, identity.password_hash):
        logger.warning('auth_login_failed email=%s', _mask_email(email))
        raise AuthenticationError('Invalid login credentials')
    identity.last_sign_in_at = time_provider.naive_now()
    with storage_guard(db, 'sign_in'):
        db.commit()
    logger.info('auth_login_success identity_id=%s', identity.id)
    return issue_session_token(identity, time_provider=time_provider)


def validate_session_token(token: str | None, *, time_provider: TimeProvider = default_time_provider) -> dict | None:
    if not token:
        return None
    with _TOKENS_LOCK:
        if token in _REVOKED_TOKENS:
            return None

    payload = _decode_jwt(token)
    if not payload:
        return None
    identity_id = payload.get('sub')
    email = payload.get('email')
    if identity_id is None or not email:
        return None
    expires = int(payload.get('exp') or 0)
    if expires and expires < int(time_provider.now().timestamp()):
        return None
    return {'identity_id': int(identity_id), 'email': str(email)}


def sign_out(token: str | None) -> None:
    if not token:
        return
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.add(token)


def request_password_reset(
    db: Session,
    email: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> str | None:
    """Create a one-time reset token; unknown emails are ignored so callers cannot probe accounts."""
    identity = find_identity_by_email(db, email)
    if not identity:
        logger.info('password_reset_unknown_email email=%s', _mask_email(email))
        return None
    raw = secrets.token_urlsafe(24)
    row = PasswordResetToken(
        identity_id=identity.id,
        token_hash=_hash_reset_token(raw),
        expires_at=time_provider.naive_now() + timedelta(minutes=settings.password_reset_expiry_minutes),
    )
    with storage_guard(db, 'request_password_reset'):
        db.add(row)
        db.commit()
    # Delivery belongs to the mail collaborator; the link is handed over through the log.
    logger.info('password_reset_link_issued identity_id=%s link=%s', identity.id, password_reset_url(raw))
    return raw


def reset_password(
    db: Session,
    token: str,
    new_password: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> None:
    row = db.query(PasswordResetToken).filter(PasswordResetToken.token_hash == _hash_reset_token(token or '')).first()
    now = time_provider.naive_now()
    if not row or row.consumed_at is not None or row.expires_at < now:
        raise AuthenticationError('Password reset link is invalid or has expired')
    row.identity.password_hash = _hash_password(new_password)
    row.consumed_at = now
    with storage_guard(db, 'reset_password'):
        db.commit()
    logger.info('password_reset_completed identity_id=%s', row.identity_id)


def update_password(db: Session, identity_id: int, current_password: str, new_password: str) -> None:
    identity = db.query(AuthIdentity).filter(AuthIdentity.id == identity_id).first()
    if not identity:
        raise NotFoundError('User not found')
    if not _verify_password(current_password, identity.password_hash):
        raise AuthenticationError('Current password is incorrect')
    identity.password_hash = _hash_password(new_password)
    with storage_guard(db, 'update_password'):
        db.commit()
    logger.info('password_updated identity_id=%s', identity_id)
