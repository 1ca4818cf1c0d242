import tempfile
import unittest
from datetime import date, time
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from academy.core.errors import NotFoundError, ValidationError
from academy.db import Base
from academy.models import AttendanceRecord, Branch, Coach, CoachAvailability, SessionParticipant, Student, TrainingSession
from academy.services.branch_service import create_branch, delete_branch, list_branches, update_branch
from academy.services.coach_service import delete_coach, serialize_coach, set_availability, update_coach
from academy.services.student_service import create_student, delete_student, list_students


class DirectoryServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_directory_services.db'
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
        self.db.query(CoachAvailability).delete()
        self.db.query(Coach).delete()
        self.db.query(Branch).delete()
        self.db.add_all(
            [
                Branch(id=1, name='Makati Court', city='Makati'),
                Coach(id=2, name='Rivera', email='rivera@academy.test', package_type='Camp Training'),
                Coach(id=3, name='Santos', email='santos@academy.test', package_type='Personal Training'),
                Student(id=11, name='Miguel', coach_id=3, package_type='Personal Training'),
            ]
        )
        self.db.flush()
        self.db.add(
            TrainingSession(
                id=1,
                session_date=date(2026, 3, 2),
                start_time=time(10, 0),
                end_time=time(11, 0),
                branch_id=1,
                coach_id=2,
                status='scheduled',
            )
        )
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def test_branch_crud_and_delete_guard(self):
        branch = create_branch(self.db, name='  Pasig Gym ', city='Pasig', contact_email='pasig@academy.test')
        self.assertEqual(branch.name, 'Pasig Gym')
        update_branch(self.db, branch.id, name='Pasig Arena', city='Pasig')
        self.assertEqual([row.name for row in list_branches(self.db, 'arena')], ['Pasig Arena'])
        delete_branch(self.db, branch.id)
        with self.assertRaises(ValidationError):
            delete_branch(self.db, 1)
        with self.assertRaises(ValidationError):
            create_branch(self.db, name='')
        with self.assertRaises(NotFoundError):
            delete_branch(self.db, 999)

    def test_availability_replacement_keeps_unique_days(self):
        set_availability(self.db, 2, ['monday', 'wednesday'])
        coach = set_availability(self.db, 2, ['Wednesday', 'friday', 'monday'])
        self.assertEqual(serialize_coach(coach)['availability'], ['monday', 'wednesday', 'friday'])
        with self.assertRaises(ValidationError):
            set_availability(self.db, 2, ['someday'])

    def test_update_coach_rejects_taken_email(self):
        with self.assertRaises(ValidationError):
            update_coach(self.db, 3, name='Santos', email='RIVERA@academy.test')
        coach = update_coach(self.db, 3, name='Santos Jr', email='santos@academy.test', package_type='Camp Training')
        self.assertEqual(coach.name, 'Santos Jr')
        self.assertEqual(coach.role, 'coach')

    def test_delete_coach_unassigns_students_and_guards_sessions(self):
        with self.assertRaises(ValidationError):
            delete_coach(self.db, 2)
        delete_coach(self.db, 3)
        self.db.expire_all()
        self.assertIsNone(self.db.query(Student).filter(Student.id == 11).one().coach_id)

    def test_student_validation_and_delete_cascade(self):
        with self.assertRaises(ValidationError):
            create_student(self.db, name='Bad', email='not-an-email')
        with self.assertRaises(NotFoundError):
            create_student(self.db, name='Ghost', coach_id=99)
        student = create_student(self.db, name='Andrea', coach_id=2, package_type='Camp Training', sessions=6)
        self.db.add_all(
            [
                SessionParticipant(session_id=1, student_id=student.id),
                AttendanceRecord(session_id=1, student_id=student.id, status='pending'),
            ]
        )
        self.db.commit()
        self.assertEqual([row.name for row in list_students(self.db, coach_id=2)], ['Andrea'])
        delete_student(self.db, student.id)
        self.assertEqual(self.db.query(AttendanceRecord).count(), 0)
        self.assertEqual(self.db.query(SessionParticipant).count(), 0)


if __name__ == '__main__':
    unittest.main()
