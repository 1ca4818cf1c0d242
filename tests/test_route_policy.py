import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from academy.core.errors import StorageError
from academy.core.route_policy import is_public_path, match_route, navigation_for, redirect_for
from academy.db import Base
from academy.models import AuthIdentity, Coach
from academy.routers import pages
from academy.session_middleware import SessionAuthMiddleware


class RoutePolicyTests(unittest.TestCase):
    def test_unauthenticated_goes_to_landing(self):
        self.assertEqual(redirect_for('/dashboard', authenticated=False, role=None), '/')
        self.assertEqual(redirect_for('/dashboard/attendance/12', authenticated=False, role=None), '/')

    def test_missing_role_goes_to_index(self):
        self.assertEqual(redirect_for('/dashboard', authenticated=True, role=None), '/index')
        self.assertEqual(redirect_for('/settings', authenticated=True, role='owner'), '/index')

    def test_coach_bounced_from_admin_screens(self):
        for path in ('/dashboard/sessions', '/dashboard/students', '/dashboard/coaches', '/dashboard/branches/'):
            self.assertEqual(redirect_for(path, authenticated=True, role='coach'), '/dashboard')
        for path in ('/dashboard', '/dashboard/calendar', '/dashboard/attendance', '/dashboard/attendance/7', '/settings'):
            self.assertIsNone(redirect_for(path, authenticated=True, role='coach'))

    def test_admin_reaches_every_screen(self):
        for path in ('/dashboard/sessions', '/dashboard/branches', '/dashboard/coaches', '/settings'):
            self.assertIsNone(redirect_for(path, authenticated=True, role='admin'))

    def test_unmatched_and_public_paths(self):
        self.assertIsNone(match_route('/api/sessions'))
        self.assertIsNone(redirect_for('/login', authenticated=False, role=None))
        self.assertTrue(is_public_path('/forgot-password'))
        self.assertFalse(is_public_path('/dashboard'))

    def test_navigation_per_role(self):
        coach_paths = [item['path'] for item in navigation_for('coach')]
        self.assertEqual(coach_paths, ['/dashboard', '/dashboard/calendar', '/dashboard/attendance', '/settings'])
        admin_paths = [item['path'] for item in navigation_for('admin')]
        self.assertIn('/dashboard/branches', admin_paths)
        self.assertNotIn(r'/dashboard/attendance/\d+', admin_paths)
        self.assertEqual(navigation_for(None), [])


class SessionMiddlewareTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_route_policy.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)
        db = cls._session_factory()
        try:
            db.add_all(
                [
                    AuthIdentity(id=100, email='admin@academy.test'),
                    AuthIdentity(id=200, email='rivera@academy.test'),
                    AuthIdentity(id=400, email='nobody@academy.test'),
                ]
            )
            db.flush()
            db.add_all(
                [
                    Coach(id=1, name='Admin', email='admin@academy.test', role='admin', auth_id=100),
                    Coach(id=2, name='Rivera', email='rivera@academy.test', role='coach', auth_id=200),
                ]
            )
            db.commit()
        finally:
            db.close()

        def fake_validate_session_token(token: str | None):
            return {
                'token-admin': {'identity_id': 100, 'email': 'admin@academy.test'},
                'token-rivera': {'identity_id': 200, 'email': 'rivera@academy.test'},
                'token-no-profile': {'identity_id': 400, 'email': 'nobody@academy.test'},
            }.get(token or '')

        cls._patches = [
            patch('academy.db.SessionLocal', cls._session_factory),
            patch('academy.session_middleware.validate_session_token', fake_validate_session_token),
            patch('academy.routers.pages.FRONTEND_DIST', Path(cls._tmpdir.name) / 'no-build'),
        ]
        for item in cls._patches:
            item.start()

        app = FastAPI()
        app.add_middleware(SessionAuthMiddleware)
        app.include_router(pages.router)
        cls.client = TestClient(app, follow_redirects=False)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        for item in cls._patches:
            item.stop()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def _get(self, path, token=None):
        headers = {'Authorization': f'Bearer {token}'} if token else {}
        return self.client.get(path, headers=headers)

    def test_anonymous_visitor_is_sent_to_landing(self):
        response = self._get('/dashboard/calendar')
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers['location'], '/')
        self.assertEqual(self._get('/login').status_code, 200)

    def test_profileless_user_is_sent_to_index(self):
        response = self._get('/dashboard', 'token-no-profile')
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers['location'], '/index')

    def test_coach_redirected_from_admin_screen(self):
        response = self._get('/dashboard/coaches', 'token-rivera')
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers['location'], '/dashboard')

    def test_allowed_screen_returns_shell_descriptor(self):
        response = self._get('/dashboard/attendance/5', 'token-rivera')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['screen'], 'Session Attendance')
        self.assertEqual(body['role'], 'coach')
        admin = self._get('/dashboard/branches', 'token-admin')
        self.assertEqual(admin.status_code, 200)
        self.assertEqual(admin.json()['role'], 'admin')

    def test_storage_failure_during_role_lookup_is_treated_as_no_role(self):
        with patch('academy.session_middleware.resolve_actor', side_effect=StorageError('database unavailable')):
            with self.assertLogs('academy.session_middleware', level='WARNING') as logs:
                response = self._get('/dashboard', 'token-admin')
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers['location'], '/index')
        self.assertIn('page_actor_unresolved identity_id=100', logs.output[0])

    def test_unknown_dashboard_section_is_not_found(self):
        self.assertEqual(self._get('/dashboard/payroll', 'token-admin').status_code, 404)


if __name__ == '__main__':
    unittest.main()
