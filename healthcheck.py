import os
import sys

import httpx
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text

from academy.config import settings
from academy.db import SessionLocal, engine
from academy.models import ROLE_VALUES, AuthIdentity, Coach, Role
from academy.services.auth_service import issue_session_token, validate_session_token


REQUIRED_TABLES = {
    'auth_identities',
    'branches',
    'coaches',
    'coach_availability',
    'students',
    'training_sessions',
    'session_participants',
    'attendance_records',
}

GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_required_tables():
    present = set(inspect(engine).get_table_names())
    missing = sorted(REQUIRED_TABLES - present)
    if missing:
        raise RuntimeError(f'Missing tables: {missing}')
    return f'{len(REQUIRED_TABLES)} tables present'


def check_migration_revision():
    heads = set(ScriptDirectory('alembic').get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')
    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()
    if current is None:
        return f'no version table (schema created by bootstrap), head={sorted(heads)}'
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_settings():
    if settings.app_env == 'production' and settings.auth_secret == 'change-me':
        raise RuntimeError('AUTH_SECRET still has the default value')
    if not settings.frontend_base_url.strip():
        raise RuntimeError('FRONTEND_BASE_URL is empty')
    return f'app_env={settings.app_env}'


def check_admin_present():
    db = SessionLocal()
    try:
        admins = db.query(Coach.id).filter(Coach.role == Role.ADMIN.value).count()
        invalid = db.query(Coach.id).filter((Coach.role.is_(None)) | (Coach.role.not_in(ROLE_VALUES))).count()
    finally:
        db.close()
    if admins == 0:
        raise RuntimeError('No admin coach profile; set BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD')
    if invalid:
        raise RuntimeError(f'{invalid} coach rows have an invalid role (run bootstrap.py)')
    return f'admins={admins}'


def check_session_token_roundtrip():
    probe = AuthIdentity(id=0, email='healthcheck@academy.local')
    token = issue_session_token(probe)['token']
    principal = validate_session_token(token)
    if not principal or principal['email'] != probe.email:
        raise RuntimeError('Issued session token did not validate')
    return 'issue/validate ok'


def check_api_health():
    base_url = os.getenv('HEALTHCHECK_BASE_URL', 'http://127.0.0.1:8000').rstrip('/')
    res = httpx.get(f'{base_url}/health', timeout=8)
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code} from {base_url}/health')
    payload = res.json()
    if payload.get('status') != 'ok':
        raise RuntimeError(f'Health endpoint responded not ok: {payload}')
    return f'{base_url} ok'


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Academy tables present', check_required_tables),
        ('Migration revision', check_migration_revision),
        ('Required settings present', check_required_settings),
        ('Admin account and coach roles', check_admin_present),
        ('Session token round trip', check_session_token_roundtrip),
        ('API health endpoint reachable', check_api_health),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
