import io
import unittest
from datetime import date

from werkzeug.datastructures import FileStorage

from shop_core.datastore import DatastoreError, RecordNotFound
from shop_core.identity import EmailAlreadyRegistered
from shop_core.services import (
    create_client, delete_invoice, load_vehicle_detail, save_invoice, save_profile,
    save_vehicle, set_client_active, sort_invoices,
)
from utils.s3_storage import BlobStoreError

from tests.helpers import PASSWORD, ContextTestCase


def upload(name, data=b'bytes', mimetype='image/png'):
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=mimetype)


class FailingDatastore:
    """Delegates reads and fails every query on the named collections."""

    def __init__(self, inner, failing=()):
        self.inner = inner
        self.failing = set(failing)

    def get(self, collection, record_id):
        if collection in self.failing:
            raise DatastoreError("unavailable")
        return self.inner.get(collection, record_id)

    def query(self, collection, **kwargs):
        if collection in self.failing:
            raise DatastoreError("unavailable")
        return self.inner.query(collection, **kwargs)

    def update(self, collection, record_id, data):
        raise DatastoreError("read only")


class BrokenDeleteStore:
    def __init__(self, inner):
        self.inner = inner

    def upload(self, path, data, content_type=None):
        return self.inner.upload(path, data, content_type)

    def delete(self, path):
        raise BlobStoreError("delete refused")


class ServicesTestCase(ContextTestCase):
    def setUp(self):
        super().setUp()
        self.datastore.set('clients', 'ana', {'first_name': 'Ana', 'last_name': 'Gil', 'email': 'ana@example.com',
                                              'role': 'client', 'is_active': True})
        self.vehicle_payload = {'make': 'Seat', 'model': 'Ibiza', 'year': 2018, 'license_plate': '1234ABC',
                                'vin': 'VSSZZZ6JZJR000001', 'owner_id': 'ana'}


class VehicleServiceTestCase(ServicesTestCase):
    def test_create_with_image_then_replace(self):
        result = save_vehicle(self.datastore, self.blob_store, None, self.vehicle_payload, image=upload('front.png'))
        vehicle = self.datastore.get('vehicles', result.record_id)
        self.assertEqual(vehicle['image_path'], 'vehicle_images/VSSZZZ6JZJR000001-front.png')
        self.assertEqual(vehicle['image_url'], '/media/vehicle_images/VSSZZZ6JZJR000001-front.png')

        result = save_vehicle(self.datastore, self.blob_store, result.record_id, self.vehicle_payload,
                              image=upload('side.png'))
        self.assertEqual(result.warnings, [])
        self.assertFalse(self.blob_store.exists('vehicle_images/VSSZZZ6JZJR000001-front.png'))
        self.assertTrue(self.blob_store.exists('vehicle_images/VSSZZZ6JZJR000001-side.png'))

    def test_remove_image(self):
        result = save_vehicle(self.datastore, self.blob_store, None, self.vehicle_payload, image=upload('a.png'))
        path = self.datastore.get('vehicles', result.record_id)['image_path']
        save_vehicle(self.datastore, self.blob_store, result.record_id, self.vehicle_payload, remove_image=True)
        vehicle = self.datastore.get('vehicles', result.record_id)
        self.assertIsNone(vehicle['image_path'])
        self.assertIsNone(vehicle['image_url'])
        self.assertFalse(self.blob_store.exists(path))

    def test_failed_record_write_removes_new_image(self):
        result = save_vehicle(self.datastore, self.blob_store, None, self.vehicle_payload, image=upload('a.png'))
        old_path = self.datastore.get('vehicles', result.record_id)['image_path']
        read_only = FailingDatastore(self.datastore)
        with self.assertRaises(DatastoreError):
            save_vehicle(read_only, self.blob_store, result.record_id, self.vehicle_payload, image=upload('b.png'))
        self.assertFalse(self.blob_store.exists('vehicle_images/VSSZZZ6JZJR000001-b.png'))
        self.assertTrue(self.blob_store.exists(old_path))

    def test_update_missing_vehicle(self):
        with self.assertRaises(RecordNotFound):
            save_vehicle(self.datastore, self.blob_store, 'missing', self.vehicle_payload)


class ClientServiceTestCase(ServicesTestCase):
    def test_profile_image_replacement_warning(self):
        save_profile(self.datastore, self.blob_store, 'ana', {'first_name': 'Ana'}, image=upload('me.png'))
        old_path = self.datastore.get('clients', 'ana')['profile_image_path']

        result = save_profile(self.datastore, BrokenDeleteStore(self.blob_store), 'ana', {'first_name': 'Ana'},
                              image=upload('me2.png'))
        self.assertEqual(len(result.warnings), 1)
        record = self.datastore.get('clients', 'ana')
        self.assertNotEqual(record['profile_image_path'], old_path)
        self.assertTrue(self.blob_store.exists(record['profile_image_path']))

    def test_set_client_active_changes_only_the_flag(self):
        set_client_active(self.datastore, 'ana', False)
        record = self.datastore.get('clients', 'ana')
        self.assertFalse(record['is_active'])
        self.assertEqual(record['email'], 'ana@example.com')

    def test_create_client(self):
        payload = {'first_name': 'Pedro', 'last_name': 'Ruiz', 'email': 'pedro@example.com',
                   'role': 'client', 'is_active': True}
        uid = create_client(self.datastore, self.identity, payload, PASSWORD)
        self.assertEqual(self.datastore.get('clients', uid)['email'], 'pedro@example.com')
        self.assertEqual(self.identity.authenticate('pedro@example.com', PASSWORD), uid)
        with self.assertRaises(EmailAlreadyRegistered):
            create_client(self.datastore, self.identity, payload, PASSWORD)

    def test_create_client_drops_account_when_record_fails(self):
        payload = {'first_name': 'Pedro', 'last_name': 'Ruiz', 'email': 'pedro@example.com', 'shoe_size': 44}
        with self.assertRaises(DatastoreError):
            create_client(self.datastore, self.identity, payload, PASSWORD)
        self.assertIsNone(self.identity.find_account('pedro@example.com'))


class InvoiceServiceTestCase(ServicesTestCase):
    def setUp(self):
        super().setUp()
        self.vehicle_id = self.datastore.add('vehicles', self.vehicle_payload)
        self.vehicle = self.datastore.get('vehicles', self.vehicle_id)

    def _form_data(self, **overrides):
        data = {
            'invoice_number': 'F-1', 'date': date(2024, 5, 2), 'status': 'pending', 'notes': '',
            'services': [{'description': 'Oil change', 'quantity': 1, 'unit_price': '50'}],
        }
        data.update(overrides)
        return data

    def test_save_invoice_with_pdf(self):
        result = save_invoice(self.datastore, self.blob_store, self.vehicle, None, self._form_data(), '0.21',
                              pdf_file=upload('scan.pdf', b'%PDF', 'application/pdf'))
        invoice = self.datastore.get('invoices', result.record_id)
        self.assertEqual(invoice['client_id'], 'ana')
        self.assertEqual(invoice['total_amount'], 60.5)
        self.assertIsNone(invoice['notes'])
        self.assertEqual(invoice['pdf_path'], f'invoice_pdfs/{self.vehicle_id}/F-1-scan.pdf')

        delete_invoice(self.datastore, self.blob_store, result.record_id)
        self.assertIsNone(self.datastore.get('invoices', result.record_id))
        self.assertFalse(self.blob_store.exists(invoice['pdf_path']))

    def test_sort_invoices_newest_first(self):
        invoices = [{'id': 'a', 'date': date(2023, 1, 1)}, {'id': 'b', 'date': None},
                    {'id': 'c', 'date': date(2024, 1, 1)}]
        self.assertEqual([i['id'] for i in sort_invoices(invoices)], ['c', 'a', 'b'])


class VehicleDetailTestCase(ServicesTestCase):
    def setUp(self):
        super().setUp()
        self.vehicle_id = self.datastore.add('vehicles', self.vehicle_payload)

    def test_sections_fail_independently(self):
        store = FailingDatastore(self.datastore, failing=['invoices'])
        detail = load_vehicle_detail(store, self.vehicle_id)
        self.assertTrue(detail.found)
        self.assertEqual(detail.owner['first_name'], 'Ana')
        self.assertEqual(list(detail.errors), ['invoices'])
        self.assertEqual(detail.maintenance, [])

    def test_vehicle_failure(self):
        detail = load_vehicle_detail(FailingDatastore(self.datastore, failing=['vehicles']), self.vehicle_id)
        self.assertFalse(detail.found)
        self.assertIn('vehicle', detail.errors)

    def test_other_owner_sees_nothing(self):
        detail = load_vehicle_detail(self.datastore, self.vehicle_id, owner_id='someone-else')
        self.assertFalse(detail.found)
        self.assertEqual(detail.errors, {})
        self.assertIsNone(detail.owner)


if __name__ == '__main__':
    unittest.main()
