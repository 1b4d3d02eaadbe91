import unittest

from shop_core.auth import (
    AuthState, SessionUser, dashboard_endpoint, load_session_user, resolve_client_sign_in,
    resolve_manager_sign_in, resolve_state,
)
from shop_core.extensions import get_datastore, get_identity
from shop_core.identity import EmailAlreadyRegistered, InvalidCredentials, InvalidResetToken

from tests.helpers import PASSWORD, AppTestCase, ContextTestCase


class AuthStateTestCase(unittest.TestCase):
    def test_resolve_state(self):
        self.assertIs(resolve_state(None), AuthState.PENDING)
        self.assertIs(resolve_state({'role': 'manager', 'is_active': False}), AuthState.PENDING)
        self.assertIs(resolve_state({'role': 'client', 'is_active': True}), AuthState.CLIENT)
        self.assertIs(resolve_state({'role': 'manager', 'is_active': True}), AuthState.MANAGER)

    def test_session_user(self):
        user = SessionUser({'id': 'u1', 'first_name': 'Ana', 'last_name': 'Gil', 'role': 'client', 'is_active': True})
        self.assertEqual(user.get_id(), 'u1')
        self.assertEqual(user.full_name, 'Ana Gil')
        self.assertTrue(user.is_active)
        self.assertEqual(dashboard_endpoint(user.role), 'client.dashboard')
        self.assertEqual(dashboard_endpoint('manager'), 'manager.dashboard')


class SignInResolutionTestCase(ContextTestCase):
    def test_first_sign_in_creates_pending_record(self):
        uid = self.identity.register('new@example.com', PASSWORD)
        state, record = resolve_client_sign_in(self.datastore, uid, 'new@example.com')
        self.assertIs(state, AuthState.PENDING)
        self.assertEqual(record['email'], 'new@example.com')
        self.assertFalse(record['is_active'])
        self.assertEqual(record['role'], 'client')

    def test_manager_sign_in_requires_active_manager(self):
        self.datastore.set('clients', 'm1', {'first_name': 'Mar', 'last_name': 'Sol', 'email': 'm@example.com',
                                             'role': 'manager', 'is_active': True})
        self.datastore.set('clients', 'c1', {'first_name': 'Cli', 'last_name': 'Ente', 'email': 'c@example.com',
                                             'role': 'client', 'is_active': True})
        self.assertIs(resolve_manager_sign_in(self.datastore, 'm1')[0], AuthState.MANAGER)
        self.assertIs(resolve_manager_sign_in(self.datastore, 'c1')[0], AuthState.UNAUTHENTICATED)
        self.assertIs(resolve_manager_sign_in(self.datastore, 'nobody')[0], AuthState.UNAUTHENTICATED)

    def test_session_loader_drops_inactive_users(self):
        self.datastore.set('clients', 'c1', {'first_name': 'Cli', 'last_name': 'Ente', 'email': 'c@example.com',
                                             'is_active': False})
        self.assertIsNone(load_session_user(self.datastore, 'c1'))
        self.datastore.update('clients', 'c1', {'is_active': True})
        self.assertEqual(load_session_user(self.datastore, 'c1').id, 'c1')


class IdentityProviderTestCase(ContextTestCase):
    def test_register_and_authenticate(self):
        uid = self.identity.register('Ana@Example.com', PASSWORD)
        self.assertEqual(self.identity.authenticate('ana@example.com', PASSWORD), uid)
        with self.assertRaises(InvalidCredentials):
            self.identity.authenticate('ana@example.com', 'wrong-password')
        with self.assertRaises(InvalidCredentials):
            self.identity.authenticate('nobody@example.com', PASSWORD)

    def test_duplicate_email(self):
        self.identity.register('ana@example.com', PASSWORD)
        with self.assertRaises(EmailAlreadyRegistered):
            self.identity.register('ANA@example.com', 'other-pass')

    def test_reset_token(self):
        uid = self.identity.register('ana@example.com', PASSWORD)
        token = self.identity.generate_reset_token(uid)
        self.assertEqual(self.identity.verify_reset_token(token), uid)
        self.identity.reset_password(token, 'brand-new-pass')
        self.assertEqual(self.identity.authenticate('ana@example.com', 'brand-new-pass'), uid)
        with self.assertRaises(InvalidResetToken):
            self.identity.verify_reset_token(token + 'tampered')

    def test_reset_email_only_for_known_accounts(self):
        self.identity.register('ana@example.com', PASSWORD)
        links = []

        def build_link(token):
            links.append(token)
            return f"http://localhost/reset-password/{token}"

        self.assertFalse(self.identity.send_password_reset('nobody@example.com', build_link, self.app.config))
        self.assertTrue(self.identity.send_password_reset('ana@example.com', build_link, self.app.config))
        self.assertEqual(len(links), 1)


class LoginViewTestCase(AppTestCase):
    def test_unknown_credentials(self):
        rv = self.client.post('/login', data={'email': 'x@example.com', 'password': 'nope123'})
        self.assertEqual(rv.status_code, 200)
        self.assertIn(b'Invalid email or password.', rv.data)

    def test_first_login_without_record_is_pending(self):
        with self.app.app_context():
            uid = get_identity().register('fresh@example.com', PASSWORD)
        rv = self.client.post('/login', data={'email': 'fresh@example.com', 'password': PASSWORD},
                              follow_redirects=True)
        self.assertIn(b'pending activation', rv.data)
        record = self.get_record('clients', uid)
        self.assertFalse(record['is_active'])

        rv = self.client.get('/client/dashboard')
        self.assertEqual(rv.status_code, 302)
        self.assertIn('/login', rv.headers['Location'])

    def test_inactive_client_cannot_sign_in(self):
        self.make_user('idle@example.com', is_active=False)
        rv = self.login('idle@example.com')
        self.assertEqual(rv.status_code, 302)
        rv = self.client.get('/client/dashboard')
        self.assertEqual(rv.status_code, 302)

    def test_active_client_reaches_dashboard(self):
        self.make_user('ana@example.com')
        rv = self.login('ana@example.com')
        self.assertTrue(rv.headers['Location'].endswith('/client/dashboard'))
        rv = self.client.get('/client/dashboard')
        self.assertEqual(rv.status_code, 200)
        self.assertIn(b'My Vehicles', rv.data)

    def test_client_is_refused_on_manager_login(self):
        self.make_user('ana@example.com')
        rv = self.manager_login('ana@example.com')
        self.assertEqual(rv.status_code, 200)
        self.assertIn(b'You are not authorized to access the manager portal.', rv.data)
        rv = self.client.get('/manager/dashboard')
        self.assertEqual(rv.status_code, 302)
        self.assertIn('/manager/login', rv.headers['Location'])

    def test_manager_login(self):
        self.make_user('boss@example.com', role='manager')
        rv = self.manager_login('boss@example.com')
        self.assertTrue(rv.headers['Location'].endswith('/manager/dashboard'))
        self.assertEqual(self.client.get('/manager/dashboard').status_code, 200)

    def test_wrong_role_is_sent_to_own_dashboard(self):
        self.make_user('ana@example.com')
        self.login('ana@example.com')
        rv = self.client.get('/manager/clients')
        self.assertEqual(rv.status_code, 302)
        self.assertTrue(rv.headers['Location'].endswith('/client/dashboard'))

        self.logout()
        self.make_user('boss@example.com', role='manager')
        self.manager_login('boss@example.com')
        rv = self.client.get('/client/dashboard')
        self.assertTrue(rv.headers['Location'].endswith('/manager/dashboard'))

    def test_deactivation_ends_the_session(self):
        uid = self.make_user('ana@example.com')
        self.login('ana@example.com')
        self.assertEqual(self.client.get('/client/dashboard').status_code, 200)
        with self.app.app_context():
            get_datastore().update('clients', uid, {'is_active': False})
        self.assertEqual(self.client.get('/client/dashboard').status_code, 302)

    def test_logout(self):
        self.make_user('ana@example.com')
        self.login('ana@example.com')
        rv = self.logout()
        self.assertEqual(rv.status_code, 302)
        self.assertEqual(self.client.get('/client/dashboard').status_code, 302)


class RegisterViewTestCase(AppTestCase):
    def test_register_creates_pending_client(self):
        rv = self.client.post('/register', data={
            'first_name': 'Laura', 'last_name': 'Martín', 'email': 'Laura@Example.com',
            'password': PASSWORD, 'confirm': PASSWORD,
        })
        self.assertEqual(rv.status_code, 302)
        records = self.query('clients', where=[('email', '==', 'laura@example.com')])
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]['first_name'], 'Laura')
        self.assertFalse(records[0]['is_active'])

        rv = self.login('laura@example.com')
        self.assertIn('/login', rv.headers['Location'])
        self.assertEqual(self.client.get('/client/dashboard').status_code, 302)

    def test_duplicate_email(self):
        self.make_user('ana@example.com')
        rv = self.client.post('/register', data={
            'first_name': 'Ana', 'last_name': 'Otra', 'email': 'ana@example.com',
            'password': PASSWORD, 'confirm': PASSWORD,
        })
        self.assertEqual(rv.status_code, 200)
        self.assertIn(b'An account with this email already exists.', rv.data)


class PasswordResetViewTestCase(AppTestCase):
    def test_request_does_not_reveal_accounts(self):
        rv = self.client.post('/reset-password', data={'email': 'nobody@example.com'}, follow_redirects=True)
        self.assertIn(b'If an account exists for that email, a reset link has been sent.', rv.data)

    def test_reset_with_token(self):
        uid = self.make_user('ana@example.com')
        with self.app.app_context():
            token = get_identity().generate_reset_token(uid)
        self.assertEqual(self.client.get(f'/reset-password/{token}').status_code, 200)
        rv = self.client.post(f'/reset-password/{token}', data={'password': 'new-pass-1', 'confirm': 'new-pass-1'})
        self.assertEqual(rv.status_code, 302)
        rv = self.login('ana@example.com', 'new-pass-1')
        self.assertTrue(rv.headers['Location'].endswith('/client/dashboard'))

    def test_bad_token(self):
        rv = self.client.get('/reset-password/garbage', follow_redirects=True)
        self.assertIn(b'This reset link is invalid or has expired.', rv.data)


if __name__ == '__main__':
    unittest.main()
