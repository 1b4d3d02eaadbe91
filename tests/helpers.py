import shutil
import tempfile
import unittest
from datetime import date

from shop_core import create_app
from shop_core.extensions import db, get_datastore, get_identity
from utils.s3_storage import LocalBlobStore

PASSWORD = 'secret123'


class AppTestCase(unittest.TestCase):
    """
    Fresh app and in-memory database per test.

    No app context stays pushed between requests, so every test client call
    gets its own ``g`` (and its own Flask-Login user).
    """

    def setUp(self):
        self.upload_dir = tempfile.mkdtemp()
        self.blob_store = LocalBlobStore(self.upload_dir)
        self.app = create_app('testing', blob_store=self.blob_store)
        self.client = self.app.test_client()
        with self.app.app_context():
            db.create_all()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
        shutil.rmtree(self.upload_dir, ignore_errors=True)

    # ------------------------------------------------------------------
    # fixtures
    # ------------------------------------------------------------------
    def make_user(self, email, role='client', is_active=True, **fields):
        with self.app.app_context():
            uid = get_identity().register(email, PASSWORD)
            record = {
                'first_name': fields.pop('first_name', 'Ana'),
                'last_name': fields.pop('last_name', 'García'),
                'email': email,
                'role': role,
                'is_active': is_active,
            }
            record.update(fields)
            get_datastore().set('clients', uid, record)
        return uid

    def make_vehicle(self, owner_id, plate='1234ABC', **fields):
        data = {
            'make': 'Seat',
            'model': 'Ibiza',
            'year': 2018,
            'license_plate': plate,
            'vin': 'VSSZZZ6JZJR000001',
            'owner_id': owner_id,
        }
        data.update(fields)
        with self.app.app_context():
            return get_datastore().add('vehicles', data)

    def make_invoice(self, vehicle_id, client_id, number='F-001', **fields):
        data = {
            'vehicle_id': vehicle_id,
            'client_id': client_id,
            'invoice_number': number,
            'date': date(2024, 3, 1),
            'services': [{'service_catalog_id': None, 'description': 'Oil change',
                          'quantity': 1.0, 'unit_price': 50.0, 'total': 50.0}],
            'subtotal_amount': 50.0,
            'vat_amount': 10.5,
            'total_amount': 60.5,
            'status': 'pending',
        }
        data.update(fields)
        with self.app.app_context():
            return get_datastore().add('invoices', data)

    def make_maintenance(self, vehicle_id, client_id, **fields):
        data = {
            'vehicle_id': vehicle_id,
            'client_id': client_id,
            'description': 'Annual service',
            'service_tasks': ['Oil', 'Filters'],
            'status': 'upcoming',
        }
        data.update(fields)
        with self.app.app_context():
            return get_datastore().add('maintenanceItems', data)

    def get_record(self, collection, record_id):
        with self.app.app_context():
            return get_datastore().get(collection, record_id)

    def query(self, collection, where=None):
        with self.app.app_context():
            return get_datastore().query(collection, where=where)

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------
    def login(self, email, password=PASSWORD):
        return self.client.post('/login', data={'email': email, 'password': password})

    def manager_login(self, email, password=PASSWORD):
        return self.client.post('/manager/login', data={'email': email, 'password': password})

    def logout(self):
        return self.client.get('/logout')


class ContextTestCase(AppTestCase):
    """For tests that call backend modules directly; keeps an app context pushed."""

    def setUp(self):
        super().setUp()
        self.ctx = self.app.test_request_context()
        self.ctx.push()
        self.datastore = get_datastore()
        self.identity = get_identity()

    def tearDown(self):
        self.ctx.pop()
        super().tearDown()
