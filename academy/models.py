from datetime import date, datetime, time
from enum import Enum

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from academy.db import Base


class Role(str, Enum):
    ADMIN = 'admin'
    COACH = 'coach'


class PackageType(str, Enum):
    PERSONAL_TRAINING = 'Personal Training'
    CAMP_TRAINING = 'Camp Training'


class SessionStatus(str, Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class AttendanceStatus(str, Enum):
    PRESENT = 'present'
    ABSENT = 'absent'
    PENDING = 'pending'


class DayOfWeek(str, Enum):
    MONDAY = 'monday'
    TUESDAY = 'tuesday'
    WEDNESDAY = 'wednesday'
    THURSDAY = 'thursday'
    FRIDAY = 'friday'
    SATURDAY = 'saturday'
    SUNDAY = 'sunday'


ROLE_VALUES = tuple(role.value for role in Role)
PACKAGE_TYPE_VALUES = tuple(item.value for item in PackageType)
SESSION_STATUS_VALUES = tuple(item.value for item in SessionStatus)
ATTENDANCE_STATUS_VALUES = tuple(item.value for item in AttendanceStatus)


def _check_package_type(value: str | None) -> str | None:
    if value is None or value == '':
        return None
    if value not in PACKAGE_TYPE_VALUES:
        raise ValueError(f'Invalid package type: {value}')
    return value


class AuthIdentity(Base):
    __tablename__ = 'auth_identities'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), default='')
    metadata_json: Mapped[str] = mapped_column(Text, default='{}')
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    reset_tokens: Mapped[list['PasswordResetToken']] = relationship(
        'PasswordResetToken',
        back_populates='identity',
        cascade='all, delete-orphan',
    )


class PasswordResetToken(Base):
    __tablename__ = 'password_reset_tokens'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    identity_id: Mapped[int] = mapped_column(ForeignKey('auth_identities.id', ondelete='CASCADE'), index=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    identity: Mapped['AuthIdentity'] = relationship('AuthIdentity', back_populates='reset_tokens')


class Branch(Base):
    __tablename__ = 'branches'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(160))
    address: Mapped[str] = mapped_column(String(255), default='')
    city: Mapped[str] = mapped_column(String(120), default='')
    contact_phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    sessions: Mapped[list['TrainingSession']] = relationship('TrainingSession', back_populates='branch')


class Coach(Base):
    __tablename__ = 'coaches'
    __table_args__ = (
        CheckConstraint(
            "package_type IN ('Personal Training', 'Camp Training') OR package_type IS NULL",
            name='coaches_package_type_check',
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    package_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    # Nullable only for legacy rows; repair_coach_roles() defaults them to 'coach'.
    role: Mapped[str | None] = mapped_column(String(20), nullable=True, default=Role.COACH.value)
    auth_id: Mapped[int | None] = mapped_column(ForeignKey('auth_identities.id', ondelete='SET NULL'), nullable=True, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    availability: Mapped[list['CoachAvailability']] = relationship(
        'CoachAvailability',
        back_populates='coach',
        cascade='all, delete-orphan',
        order_by='CoachAvailability.id',
    )
    students: Mapped[list['Student']] = relationship('Student', back_populates='coach')
    sessions: Mapped[list['TrainingSession']] = relationship('TrainingSession', back_populates='coach')

    @validates('role')
    def _validate_role(self, key, value):
        if value is None:
            return None
        clean = str(value).strip().lower()
        if clean not in ROLE_VALUES:
            raise ValueError(f'Invalid role: {value}')
        return clean

    @validates('package_type')
    def _validate_package_type(self, key, value):
        return _check_package_type(value)


class CoachAvailability(Base):
    __tablename__ = 'coach_availability'
    __table_args__ = (
        UniqueConstraint('coach_id', 'day_of_week', name='uq_coach_availability_coach_day'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    coach_id: Mapped[int] = mapped_column(ForeignKey('coaches.id', ondelete='CASCADE'), index=True)
    day_of_week: Mapped[str] = mapped_column(String(12))

    coach: Mapped['Coach'] = relationship('Coach', back_populates='availability')


class Student(Base):
    __tablename__ = 'students'
    __table_args__ = (
        CheckConstraint(
            "package_type IN ('Personal Training', 'Camp Training') OR package_type IS NULL",
            name='package_type_check',
        ),
        CheckConstraint('remaining_sessions >= 0', name='ck_students_remaining_non_negative'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(160), index=True)
    email: Mapped[str] = mapped_column(String(255), default='')
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    sessions: Mapped[int] = mapped_column(Integer, default=0)
    remaining_sessions: Mapped[int] = mapped_column(Integer, default=0)
    package_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    coach_id: Mapped[int | None] = mapped_column(ForeignKey('coaches.id', ondelete='SET NULL'), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    coach: Mapped['Coach | None'] = relationship('Coach', back_populates='students')

    @validates('package_type')
    def _validate_package_type(self, key, value):
        return _check_package_type(value)


class TrainingSession(Base):
    __tablename__ = 'training_sessions'
    __table_args__ = (
        CheckConstraint(
            "package_type IN ('Personal Training', 'Camp Training') OR package_type IS NULL",
            name='training_sessions_package_type_check',
        ),
        CheckConstraint('start_time < end_time', name='ck_training_sessions_time_range'),
        Index('ix_training_sessions_coach_date', 'coach_id', 'date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_date: Mapped[date] = mapped_column('date', Date, index=True)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    branch_id: Mapped[int] = mapped_column(ForeignKey('branches.id'), index=True)
    coach_id: Mapped[int] = mapped_column(ForeignKey('coaches.id'), index=True)
    package_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=SessionStatus.SCHEDULED.value, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    branch: Mapped['Branch'] = relationship('Branch', back_populates='sessions')
    coach: Mapped['Coach'] = relationship('Coach', back_populates='sessions')
    participants: Mapped[list['SessionParticipant']] = relationship(
        'SessionParticipant',
        back_populates='session',
        cascade='all, delete-orphan',
        passive_deletes=True,
        order_by='SessionParticipant.id',
    )
    attendance_records: Mapped[list['AttendanceRecord']] = relationship(
        'AttendanceRecord',
        back_populates='session',
        cascade='all, delete-orphan',
        passive_deletes=True,
        order_by='AttendanceRecord.id',
    )

    @validates('package_type')
    def _validate_package_type(self, key, value):
        return _check_package_type(value)

    @validates('status')
    def _validate_status(self, key, value):
        if value not in SESSION_STATUS_VALUES:
            raise ValueError(f'Invalid session status: {value}')
        return value


class SessionParticipant(Base):
    __tablename__ = 'session_participants'
    __table_args__ = (
        UniqueConstraint('session_id', 'student_id', name='uq_session_participants_session_student'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(ForeignKey('training_sessions.id', ondelete='CASCADE'), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    session: Mapped['TrainingSession'] = relationship('TrainingSession', back_populates='participants')
    student: Mapped['Student'] = relationship('Student')


class AttendanceRecord(Base):
    __tablename__ = 'attendance_records'
    __table_args__ = (
        UniqueConstraint('session_id', 'student_id', name='uq_attendance_records_session_student'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(ForeignKey('training_sessions.id', ondelete='CASCADE'), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), index=True)
    status: Mapped[str] = mapped_column(String(20), default=AttendanceStatus.PENDING.value, index=True)
    marked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    session: Mapped['TrainingSession'] = relationship('TrainingSession', back_populates='attendance_records')
    student: Mapped['Student'] = relationship('Student')

    @validates('status')
    def _validate_status(self, key, value):
        if value not in ATTENDANCE_STATUS_VALUES:
            raise ValueError(f'Invalid attendance status: {value}')
        return value
