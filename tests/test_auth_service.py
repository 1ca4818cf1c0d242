import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from academy.core.errors import AuthenticationError, ValidationError
from academy.core.time_provider import TimeProvider
from academy.db import Base
from academy.models import AuthIdentity, PasswordResetToken
from academy.services import auth_service


class FixedTimeProvider(TimeProvider):
    def __init__(self, frozen_dt: datetime):
        self._frozen_dt = frozen_dt

    def now(self) -> datetime:
        return self._frozen_dt


class AuthServiceTests(unittest.TestCase):
    MANILA = ZoneInfo('Asia/Manila')

    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_auth_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        self.db.query(PasswordResetToken).delete()
        self.db.query(AuthIdentity).delete()
        self.db.commit()
        self.identity = auth_service.create_user(self.db, ' Coach@Academy.test ', 'Password@123', {'name': 'Coach'})

    def tearDown(self):
        self.db.close()

    def test_sign_in_issues_token_that_validates(self):
        session = auth_service.sign_in(self.db, 'coach@academy.test', 'Password@123')
        principal = auth_service.validate_session_token(session['token'])
        self.assertEqual(principal, {'identity_id': self.identity.id, 'email': 'coach@academy.test'})
        self.assertIsNotNone(self.db.query(AuthIdentity).one().last_sign_in_at)

    def test_wrong_password_and_unknown_email(self):
        with self.assertRaises(AuthenticationError):
            auth_service.sign_in(self.db, 'coach@academy.test', 'wrong-password')
        with self.assertRaises(AuthenticationError):
            auth_service.sign_in(self.db, 'nobody@academy.test', 'Password@123')

    def test_short_password_and_duplicate_email_rejected(self):
        with self.assertRaises(ValidationError):
            auth_service.create_user(self.db, 'short@academy.test', 'abc')
        with self.assertRaises(ValidationError):
            auth_service.create_user(self.db, 'COACH@academy.test', 'Password@123')

    def test_signed_out_token_is_rejected(self):
        token = auth_service.sign_in(self.db, 'coach@academy.test', 'Password@123')['token']
        auth_service.sign_out(token)
        self.assertIsNone(auth_service.validate_session_token(token))

    def test_tampered_and_expired_tokens_are_rejected(self):
        issued_at = FixedTimeProvider(datetime(2026, 3, 2, 8, 0, tzinfo=self.MANILA))
        token = auth_service.issue_session_token(self.identity, time_provider=issued_at)['token']
        header, payload, signature = token.split('.')
        self.assertIsNone(auth_service.validate_session_token(f'{header}.{payload}x.{signature}'))
        self.assertIsNone(auth_service.validate_session_token('not-a-token'))

        later = FixedTimeProvider(datetime(2026, 3, 3, 8, 0, tzinfo=self.MANILA))
        self.assertIsNone(auth_service.validate_session_token(token, time_provider=later))
        soon = FixedTimeProvider(datetime(2026, 3, 2, 9, 0, tzinfo=self.MANILA))
        self.assertIsNotNone(auth_service.validate_session_token(token, time_provider=soon))

    def test_password_reset_flow_is_single_use(self):
        raw = auth_service.request_password_reset(self.db, 'coach@academy.test')
        self.assertTrue(raw)
        auth_service.reset_password(self.db, raw, 'NewPassword@1')
        auth_service.sign_in(self.db, 'coach@academy.test', 'NewPassword@1')
        with self.assertRaises(AuthenticationError):
            auth_service.reset_password(self.db, raw, 'Another@123')

    def test_reset_link_expires(self):
        issued = FixedTimeProvider(datetime(2026, 3, 2, 8, 0, tzinfo=self.MANILA))
        raw = auth_service.request_password_reset(self.db, 'coach@academy.test', time_provider=issued)
        expired = FixedTimeProvider(datetime(2026, 3, 2, 8, 0, tzinfo=self.MANILA) + timedelta(hours=2))
        with self.assertRaises(AuthenticationError):
            auth_service.reset_password(self.db, raw, 'NewPassword@1', time_provider=expired)

    def test_reset_for_unknown_email_is_silent(self):
        self.assertIsNone(auth_service.request_password_reset(self.db, 'nobody@academy.test'))
        self.assertEqual(self.db.query(PasswordResetToken).count(), 0)

    def test_update_password_checks_current_password(self):
        with self.assertRaises(AuthenticationError):
            auth_service.update_password(self.db, self.identity.id, 'wrong-password', 'NewPassword@1')
        auth_service.update_password(self.db, self.identity.id, 'Password@123', 'NewPassword@1')
        auth_service.sign_in(self.db, 'coach@academy.test', 'NewPassword@1')


if __name__ == '__main__':
    unittest.main()
