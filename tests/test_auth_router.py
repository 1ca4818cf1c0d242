import tempfile
import unittest
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from academy.db import Base, get_db
from academy.models import AuthIdentity, Coach, PasswordResetToken
from academy.routers import auth
from academy.services import auth_service


class AuthRouterTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_auth_router.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        app.include_router(auth.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.client.cookies.clear()
        db = self._session_factory()
        try:
            db.query(Coach).delete()
            db.query(PasswordResetToken).delete()
            db.query(AuthIdentity).delete()
            db.commit()
            admin = auth_service.create_user(db, 'admin@academy.test', 'AdminPass!1')
            auth_service.create_user(db, 'orphan@academy.test', 'OrphanPass!1')
            db.add(Coach(name='Admin', email='admin@academy.test', role='admin', auth_id=admin.id))
            db.commit()
        finally:
            db.close()

    def test_login_sets_cookie_and_me_reports_role(self):
        response = self.client.post('/api/auth/login', json={'email': 'admin@academy.test', 'password': 'AdminPass!1'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['role'], 'admin')
        self.assertEqual(response.json()['next'], '/dashboard')
        self.assertIn('auth_session', response.cookies)

        me = self.client.get('/api/auth/me')
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()['role'], 'admin')
        self.assertIn('/dashboard/branches', [item['path'] for item in me.json()['navigation']])

    def test_bad_credentials(self):
        response = self.client.post('/api/auth/login', json={'email': 'admin@academy.test', 'password': 'nope-nope'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['detail'], 'Invalid login credentials')

    def test_user_without_profile_is_sent_to_index(self):
        response = self.client.post('/api/auth/login', json={'email': 'orphan@academy.test', 'password': 'OrphanPass!1'})
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()['role'])
        self.assertEqual(response.json()['next'], '/index')
        self.assertEqual(self.client.get('/api/auth/me').status_code, 403)
        state = self.client.get('/api/auth/session').json()
        self.assertTrue(state['authenticated'])
        self.assertIsNone(state['role'])

    def test_signup_creates_coach_session(self):
        response = self.client.post(
            '/api/auth/signup',
            json={'name': 'New Coach', 'email': 'new@academy.test', 'password': 'Password@123'},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['role'], 'coach')
        duplicate = self.client.post(
            '/api/auth/signup',
            json={'name': 'New Coach', 'email': 'new@academy.test', 'password': 'Password@123'},
        )
        self.assertEqual(duplicate.status_code, 400)

    def test_logout_revokes_token(self):
        token = self.client.post(
            '/api/auth/login', json={'email': 'admin@academy.test', 'password': 'AdminPass!1'}
        ).json()['token']
        self.client.cookies.clear()
        headers = {'Authorization': f'Bearer {token}'}
        self.assertEqual(self.client.post('/api/auth/logout', headers=headers).status_code, 200)
        self.assertEqual(self.client.get('/api/auth/me', headers=headers).status_code, 401)

    def test_forgot_password_answers_the_same_for_unknown_email(self):
        known = self.client.post('/api/auth/forgot-password', json={'email': 'admin@academy.test'})
        unknown = self.client.post('/api/auth/forgot-password', json={'email': 'ghost@academy.test'})
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())


if __name__ == '__main__':
    unittest.main()
