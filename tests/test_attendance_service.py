import tempfile
import unittest
from datetime import date, datetime, time
from pathlib import Path
from zoneinfo import ZoneInfo

from freezegun import freeze_time
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from academy.core.errors import AccessDeniedError, NotFoundError, ValidationError
from academy.core.time_provider import TimeProvider
from academy.db import Base
from academy.models import AttendanceRecord, Branch, Coach, SessionParticipant, Student, TrainingSession
from academy.services.access_scope_service import ActorContext
from academy.services.attendance_service import (
    attendance_summary,
    get_session_attendance,
    list_attendance_sessions,
    set_attendance_status,
)
from academy.services.roster_service import set_participants


class FixedTimeProvider(TimeProvider):
    def __init__(self, frozen_dt: datetime):
        self._frozen_dt = frozen_dt

    def now(self) -> datetime:
        return self._frozen_dt


class AttendanceServiceTests(unittest.TestCase):
    MANILA = ZoneInfo('Asia/Manila')

    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_attendance_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        self.db.query(AttendanceRecord).delete()
        self.db.query(SessionParticipant).delete()
        self.db.query(TrainingSession).delete()
        self.db.query(Student).delete()
        self.db.query(Coach).delete()
        self.db.query(Branch).delete()
        self.db.add_all(
            [
                Branch(id=1, name='Makati Court'),
                Branch(id=2, name='Pasig Gym'),
                Coach(id=1, name='Admin', email='admin@academy.test', role='admin'),
                Coach(id=2, name='Rivera', email='rivera@academy.test', role='coach', package_type='Camp Training'),
                Coach(id=3, name='Santos', email='santos@academy.test', role='coach', package_type='Personal Training'),
                Student(id=11, name='Miguel', coach_id=2, package_type='Camp Training'),
                Student(id=12, name='Andrea', coach_id=2, package_type='Camp Training'),
                TrainingSession(
                    id=601,
                    session_date=date(2026, 3, 2),
                    start_time=time(10, 0),
                    end_time=time(11, 0),
                    branch_id=1,
                    coach_id=2,
                    package_type='Camp Training',
                    status='scheduled',
                ),
                TrainingSession(
                    id=602,
                    session_date=date(2026, 3, 3),
                    start_time=time(10, 0),
                    end_time=time(11, 0),
                    branch_id=2,
                    coach_id=3,
                    package_type='Personal Training',
                    status='scheduled',
                ),
                TrainingSession(
                    id=603,
                    session_date=date(2026, 3, 4),
                    start_time=time(10, 0),
                    end_time=time(11, 0),
                    branch_id=1,
                    coach_id=2,
                    status='completed',
                ),
            ]
        )
        self.db.commit()
        set_participants(self.db, 601, [11, 12])
        self.admin = ActorContext(identity_id=100, email='admin@academy.test', role='admin', coach_id=1)
        self.rivera = ActorContext(identity_id=200, email='rivera@academy.test', role='coach', coach_id=2)
        self.santos = ActorContext(identity_id=300, email='santos@academy.test', role='coach', coach_id=3)

    def tearDown(self):
        self.db.close()

    def _record_id(self, student_id):
        row = (
            self.db.query(AttendanceRecord)
            .filter(AttendanceRecord.session_id == 601, AttendanceRecord.student_id == student_id)
            .one()
        )
        return row.id

    def test_marking_present_stamps_time_and_pending_clears_it(self):
        provider = FixedTimeProvider(datetime(2026, 3, 2, 10, 5, 0, tzinfo=self.MANILA))
        record = set_attendance_status(self.db, self._record_id(11), 'present', actor=self.rivera, time_provider=provider)
        self.assertEqual(record.status, 'present')
        self.assertEqual(record.marked_at, datetime(2026, 3, 2, 10, 5, 0))

        record = set_attendance_status(self.db, record.id, 'pending', actor=self.rivera, time_provider=provider)
        self.assertEqual(record.status, 'pending')
        self.assertIsNone(record.marked_at)

    @freeze_time('2026-03-02 02:30:00')
    def test_default_clock_uses_academy_timezone(self):
        record = set_attendance_status(self.db, self._record_id(12), 'absent')
        self.assertEqual(record.marked_at, datetime(2026, 3, 2, 10, 30, 0))

    def test_invalid_status_and_unknown_record(self):
        with self.assertRaises(ValidationError):
            set_attendance_status(self.db, self._record_id(11), 'late')
        with self.assertRaises(NotFoundError):
            set_attendance_status(self.db, 99999, 'present')

    def test_other_coach_cannot_mark(self):
        with self.assertRaises(AccessDeniedError):
            set_attendance_status(self.db, self._record_id(11), 'present', actor=self.santos)
        self.db.rollback()
        row = self.db.query(AttendanceRecord).filter(AttendanceRecord.id == self._record_id(11)).one()
        self.assertEqual(row.status, 'pending')

    def test_session_attendance_payload(self):
        set_attendance_status(self.db, self._record_id(11), 'present')
        payload = get_session_attendance(self.db, self.admin, 601)
        self.assertEqual(payload['session']['id'], 601)
        self.assertEqual({row['student_name'] for row in payload['records']}, {'Miguel', 'Andrea'})
        self.assertEqual(payload['summary']['present'], 1)
        self.assertEqual(payload['summary']['pending'], 1)
        self.assertEqual(payload['summary']['total'], 2)
        with self.assertRaises(AccessDeniedError):
            get_session_attendance(self.db, self.santos, 601)

    def test_attendance_list_shows_scoped_scheduled_sessions(self):
        self.assertEqual([row.id for row in list_attendance_sessions(self.db, self.admin)], [601, 602])
        self.assertEqual([row.id for row in list_attendance_sessions(self.db, self.rivera)], [601])
        self.assertEqual([row.id for row in list_attendance_sessions(self.db, self.admin, 'pasig')], [602])

    def test_summary_counts_each_status(self):
        rows = [AttendanceRecord(status='present'), AttendanceRecord(status='absent'), AttendanceRecord(status='present')]
        summary = attendance_summary(rows)
        self.assertEqual(summary['present'], 2)
        self.assertEqual(summary['absent'], 1)
        self.assertEqual(summary['pending'], 0)
        self.assertEqual(summary['total'], 3)


if __name__ == '__main__':
    unittest.main()
