import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from academy.config import settings
from academy.core.errors import ProvisioningError, StorageError, ValidationError
from academy.db import Base
from academy.models import AuthIdentity, Coach, CoachAvailability
from academy.services import auth_service
from academy.services.bootstrap_service import run_bootstrap
from academy.services.provisioning_service import create_coach_account, sign_up


class ProvisioningTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_provisioning.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        self.db.query(CoachAvailability).delete()
        self.db.query(Coach).delete()
        self.db.query(AuthIdentity).delete()
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def test_coach_account_links_identity_and_profile(self):
        coach = create_coach_account(
            self.db,
            name='Coach Rivera',
            email='Rivera@Academy.test',
            package_type='Camp Training',
            availability=['friday', 'Monday'],
        )
        identity = auth_service.find_identity_by_email(self.db, 'rivera@academy.test')
        self.assertEqual(coach.auth_id, identity.id)
        self.assertEqual(coach.role, 'coach')
        self.assertEqual(sorted(slot.day_of_week for slot in coach.availability), ['friday', 'monday'])
        token = auth_service.sign_in(self.db, 'rivera@academy.test', settings.coach_default_password)
        self.assertEqual(token['identity_id'], identity.id)

    def test_profile_failure_removes_identity(self):
        with patch(
            'academy.services.coach_service.create_coach_profile',
            side_effect=StorageError('This record already exists.'),
        ):
            with self.assertRaises(ProvisioningError) as ctx:
                create_coach_account(self.db, name='Coach Santos', email='santos@academy.test')
        self.assertIn('Failed to create coach profile', ctx.exception.message)
        self.assertIsNone(auth_service.find_identity_by_email(self.db, 'santos@academy.test'))
        self.assertEqual(self.db.query(Coach).count(), 0)

    def test_failed_compensation_is_reported(self):
        with patch(
            'academy.services.coach_service.create_coach_profile',
            side_effect=StorageError('This record already exists.'),
        ), patch('academy.services.auth_service.delete_user', side_effect=StorageError('database is locked')):
            with self.assertLogs('academy.services.provisioning_service', level='ERROR'):
                with self.assertRaises(ProvisioningError) as ctx:
                    create_coach_account(self.db, name='Coach Santos', email='santos@academy.test')
        self.assertIn('manual cleanup', ctx.exception.message)
        self.assertIsNotNone(auth_service.find_identity_by_email(self.db, 'santos@academy.test'))

    def test_profile_is_validated_before_any_identity_exists(self):
        create_coach_account(self.db, name='Coach Rivera', email='rivera@academy.test')
        with self.assertRaises(ValidationError):
            create_coach_account(self.db, name='Again', email='RIVERA@academy.test')
        with self.assertRaises(ValidationError):
            create_coach_account(self.db, name='', email='blank@academy.test')
        with self.assertRaises(ValidationError):
            create_coach_account(self.db, name='Typo', email='typo@academy.test', package_type='Summer Camp')
        self.assertEqual(self.db.query(AuthIdentity).count(), 1)

    def test_sign_up_always_creates_a_coach(self):
        session = sign_up(self.db, name='New Coach', email='new@academy.test', password='Password@123')
        self.assertEqual(session['email'], 'new@academy.test')
        coach = self.db.query(Coach).filter(Coach.email == 'new@academy.test').one()
        self.assertEqual(coach.role, 'coach')
        with self.assertRaises(ValidationError):
            sign_up(self.db, name='Other', email='other@academy.test', password='')

    def test_bootstrap_seeds_admin_once(self):
        with patch.object(settings, 'bootstrap_admin_email', 'owner@academy.test'), patch.object(
            settings, 'bootstrap_admin_password', 'OwnerPass!1'
        ):
            first = run_bootstrap(self.db)
            second = run_bootstrap(self.db)
        self.assertTrue(first['admin']['seeded'])
        self.assertEqual(second['admin']['reason'], 'admin_exists')
        admin = self.db.query(Coach).filter(Coach.email == 'owner@academy.test').one()
        self.assertEqual(admin.role, 'admin')

    def test_bootstrap_without_admin_settings_only_repairs(self):
        result = run_bootstrap(self.db)
        self.assertEqual(result['admin']['reason'], 'no_admin_configured')
        self.assertEqual(result['roles_repaired'], 0)


if __name__ == '__main__':
    unittest.main()
