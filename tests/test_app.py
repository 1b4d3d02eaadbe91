import unittest

from shop_core import create_app
from shop_core.extensions import DATASTORE_KEY, get_identity

from tests.helpers import AppTestCase


class SiteTestCase(AppTestCase):
    def test_landing_page(self):
        rv = self.client.get('/')
        self.assertEqual(rv.status_code, 200)
        self.assertIn(b'Your trusted auto repair workshop', rv.data)
        self.assertIn(b'Diagnostics', rv.data)

    def test_dashboard_requires_login(self):
        rv = self.client.get('/client/dashboard', follow_redirects=True)
        self.assertIn(b'Login', rv.data)

    def test_manager_pages_redirect_to_manager_login(self):
        rv = self.client.get('/manager/invoices')
        self.assertEqual(rv.status_code, 302)
        self.assertIn('/manager/login', rv.headers['Location'])

    def test_language_switch(self):
        rv = self.client.get('/lang/es?next=/register')
        self.assertEqual(rv.status_code, 302)
        self.assertTrue(rv.headers['Location'].endswith('/register'))
        with self.client.session_transaction() as session:
            self.assertEqual(session['lang'], 'es')

        rv = self.client.get('/')
        self.assertIn(b'<html lang="es">', rv.data)

    def test_unknown_language_is_ignored(self):
        rv = self.client.get('/lang/xx?next=//evil.example.com/')
        self.assertTrue(rv.headers['Location'].endswith('/'))
        self.assertNotIn('evil', rv.headers['Location'])
        with self.client.session_transaction() as session:
            self.assertNotIn('lang', session)

    def test_lang_query_argument(self):
        rv = self.client.get('/?lang=en')
        self.assertIn(b'<html lang="en">', rv.data)

    def test_media_requires_login(self):
        self.blob_store.upload('vehicle_images/car.png', b'img')
        self.assertEqual(self.client.get('/media/vehicle_images/car.png').status_code, 302)
        ana = self.make_user('ana@example.com')
        self.make_vehicle(ana, image_path='vehicle_images/car.png', image_url='/media/vehicle_images/car.png')
        self.login('ana@example.com')
        rv = self.client.get('/media/vehicle_images/car.png')
        self.assertEqual(rv.status_code, 200)
        self.assertEqual(rv.data, b'img')

    def test_media_is_scoped_to_the_owner(self):
        self.blob_store.upload('vehicle_images/car.png', b'img')
        self.blob_store.upload('profile_images/ana-1-me.png', b'face')
        ana = self.make_user('ana@example.com', profile_image_path='profile_images/ana-1-me.png')
        self.make_vehicle(ana, image_path='vehicle_images/car.png')
        self.make_user('luis@example.com', first_name='Luis')
        self.make_user('boss@example.com', role='manager')

        self.login('luis@example.com')
        self.assertEqual(self.client.get('/media/vehicle_images/car.png').status_code, 404)
        self.assertEqual(self.client.get('/media/profile_images/ana-1-me.png').status_code, 404)
        self.logout()

        self.manager_login('boss@example.com')
        self.assertEqual(self.client.get('/media/vehicle_images/car.png').status_code, 200)
        self.assertEqual(self.client.get('/media/profile_images/ana-1-me.png').data, b'face')
        self.assertEqual(self.client.get('/media/vehicle_images/gone.png').status_code, 404)


class CommandTestCase(AppTestCase):
    def test_create_manager(self):
        runner = self.app.test_cli_runner()
        result = runner.invoke(args=['create-manager', '--email', 'Boss@Example.com', '--password', 'secret123'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Manager ready', result.output)

        records = self.query('clients', where=[('email', '==', 'boss@example.com')])
        self.assertEqual(records[0]['role'], 'manager')
        self.assertTrue(records[0]['is_active'])

        rv = self.manager_login('boss@example.com', 'secret123')
        self.assertTrue(rv.headers['Location'].endswith('/manager/dashboard'))

    def test_create_manager_promotes_existing_client(self):
        uid = self.make_user('ana@example.com', is_active=False)
        runner = self.app.test_cli_runner()
        result = runner.invoke(args=['create-manager', '--email', 'ana@example.com', '--password', 'whatever'])
        self.assertEqual(result.exit_code, 0, result.output)
        record = self.get_record('clients', uid)
        self.assertEqual(record['role'], 'manager')
        self.assertTrue(record['is_active'])
        self.assertEqual(record['first_name'], 'Ana')
        with self.app.app_context():
            self.assertEqual(get_identity().authenticate('ana@example.com', 'secret123'), uid)


class ConfigTestCase(unittest.TestCase):
    def test_unknown_config(self):
        with self.assertRaises(ValueError):
            create_app('staging')

    def test_injected_datastore(self):
        fake = object()
        app = create_app('testing', datastore=fake)
        self.assertIs(app.extensions[DATASTORE_KEY], fake)

    def test_testing_config(self):
        app = create_app('testing')
        self.assertTrue(app.config['TESTING'])
        self.assertEqual(app.config['IN_QUERY_LIMIT'], 30)
        self.assertEqual(app.config['VAT_RATE'], '0.21')


if __name__ == '__main__':
    unittest.main()
