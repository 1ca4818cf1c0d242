"""initial academy tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None

_PACKAGE_TYPE_CHECK = "package_type IN ('Personal Training', 'Camp Training') OR package_type IS NULL"


def upgrade() -> None:
    op.create_table(
        'auth_identities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('metadata_json', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('last_sign_in_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_auth_identities_id', 'auth_identities', ['id'])
    op.create_index('ix_auth_identities_email', 'auth_identities', ['email'], unique=True)

    op.create_table(
        'password_reset_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('auth_identities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('consumed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_password_reset_tokens_id', 'password_reset_tokens', ['id'])
    op.create_index('ix_password_reset_tokens_identity_id', 'password_reset_tokens', ['identity_id'])

    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('city', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('contact_phone', sa.String(length=40), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_branches_id', 'branches', ['id'])

    op.create_table(
        'coaches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('phone', sa.String(length=40), nullable=True),
        sa.Column('package_type', sa.String(length=40), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=True, server_default='coach'),
        sa.Column('auth_id', sa.Integer(), sa.ForeignKey('auth_identities.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(_PACKAGE_TYPE_CHECK, name='coaches_package_type_check'),
    )
    op.create_index('ix_coaches_id', 'coaches', ['id'])
    op.create_index('ix_coaches_email', 'coaches', ['email'], unique=True)
    op.create_index('ix_coaches_auth_id', 'coaches', ['auth_id'], unique=True)

    op.create_table(
        'coach_availability',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('coach_id', sa.Integer(), sa.ForeignKey('coaches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.String(length=12), nullable=False),
        sa.UniqueConstraint('coach_id', 'day_of_week', name='uq_coach_availability_coach_day'),
    )
    op.create_index('ix_coach_availability_id', 'coach_availability', ['id'])
    op.create_index('ix_coach_availability_coach_id', 'coach_availability', ['coach_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('phone', sa.String(length=40), nullable=True),
        sa.Column('sessions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('remaining_sessions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('package_type', sa.String(length=40), nullable=True),
        sa.Column('coach_id', sa.Integer(), sa.ForeignKey('coaches.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(_PACKAGE_TYPE_CHECK, name='package_type_check'),
        sa.CheckConstraint('remaining_sessions >= 0', name='ck_students_remaining_non_negative'),
    )
    op.create_index('ix_students_id', 'students', ['id'])
    op.create_index('ix_students_name', 'students', ['name'])
    op.create_index('ix_students_coach_id', 'students', ['coach_id'])

    op.create_table(
        'training_sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('coach_id', sa.Integer(), sa.ForeignKey('coaches.id'), nullable=False),
        sa.Column('package_type', sa.String(length=40), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(_PACKAGE_TYPE_CHECK, name='training_sessions_package_type_check'),
        sa.CheckConstraint('start_time < end_time', name='ck_training_sessions_time_range'),
    )
    op.create_index('ix_training_sessions_id', 'training_sessions', ['id'])
    op.create_index('ix_training_sessions_date', 'training_sessions', ['date'])
    op.create_index('ix_training_sessions_branch_id', 'training_sessions', ['branch_id'])
    op.create_index('ix_training_sessions_coach_id', 'training_sessions', ['coach_id'])
    op.create_index('ix_training_sessions_status', 'training_sessions', ['status'])
    op.create_index('ix_training_sessions_coach_date', 'training_sessions', ['coach_id', 'date'])

    op.create_table(
        'session_participants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('training_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('session_id', 'student_id', name='uq_session_participants_session_student'),
    )
    op.create_index('ix_session_participants_id', 'session_participants', ['id'])
    op.create_index('ix_session_participants_session_id', 'session_participants', ['session_id'])
    op.create_index('ix_session_participants_student_id', 'session_participants', ['student_id'])

    op.create_table(
        'attendance_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('training_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('marked_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('session_id', 'student_id', name='uq_attendance_records_session_student'),
    )
    op.create_index('ix_attendance_records_id', 'attendance_records', ['id'])
    op.create_index('ix_attendance_records_session_id', 'attendance_records', ['session_id'])
    op.create_index('ix_attendance_records_student_id', 'attendance_records', ['student_id'])
    op.create_index('ix_attendance_records_status', 'attendance_records', ['status'])


def downgrade() -> None:
    op.drop_table('attendance_records')
    op.drop_table('session_participants')
    op.drop_table('training_sessions')
    op.drop_table('students')
    op.drop_table('coach_availability')
    op.drop_table('coaches')
    op.drop_table('branches')
    op.drop_table('password_reset_tokens')
    op.drop_table('auth_identities')
