# shop_core/services.py
"""
Multi-step operations: record writes that carry blobs, and the loaders
behind the vehicle detail pages.

Blob uploads finish before the record write that points at them. When the
write fails the new blob is removed again; the blob it replaced is removed
only after the write succeeded.
"""

import logging
from collections import namedtuple

from flask_babel import gettext as _

from shop_core.datastore import DatastoreError, RecordNotFound
from shop_core.records import ABSENT, sort_key
from utils.billing import compute_invoice, totals_for_storage
from utils.s3_storage import (
    BlobStoreError,
    delete_quietly,
    invoice_pdf_path,
    profile_image_path,
    vehicle_image_path,
)

logger = logging.getLogger(__name__)

OperationResult = namedtuple('OperationResult', ['record_id', 'warnings'])


def write_with_blob(blob_store, new_blob, write, old_path=None):
    """
    Upload ``new_blob`` (a ``(path, data, content_type)`` tuple or None), then
    call ``write(url, path)``.

    Returns the list of warnings from cleaning up the replaced blob.
    """
    warnings = []
    url = path = None
    if new_blob is not None:
        path, data, content_type = new_blob
        url = blob_store.upload(path, data, content_type)

    try:
        result = write(url, path)
    except Exception:
        if path:
            try:
                delete_quietly(blob_store, path)
            except BlobStoreError:
                logger.exception("Cleanup of uploaded blob %s failed", path)
        raise

    if new_blob is not None and old_path and old_path != path:
        try:
            delete_quietly(blob_store, old_path)
        except BlobStoreError:
            logger.exception("Could not delete replaced blob %s", old_path)
            warnings.append(_("The previous file could not be removed."))
    return result, warnings


def _upload(file_storage):
    if file_storage is None or not getattr(file_storage, 'filename', ''):
        return None
    return file_storage


# ========================
# Clients
# ========================

def save_profile(datastore, blob_store, client_id, payload, image=None, remove_image=False):
    """Update a client record, optionally replacing or removing the profile image."""
    current = datastore.get('clients', client_id)
    if current is None:
        raise RecordNotFound('clients', client_id)
    old_path = current.get('profile_image_path')
    image = _upload(image)
    warnings = []

    if image is not None:
        blob = (profile_image_path(client_id, image.filename), image.stream, image.mimetype)

        def write(url, path):
            datastore.update('clients', client_id, dict(payload, profile_image_url=url, profile_image_path=path))

        _, warnings = write_with_blob(blob_store, blob, write, old_path)
    elif remove_image and old_path:
        datastore.update('clients', client_id, dict(payload, profile_image_url=ABSENT, profile_image_path=ABSENT))
        try:
            delete_quietly(blob_store, old_path)
        except BlobStoreError:
            logger.exception("Could not delete profile image %s", old_path)
            warnings.append(_("The previous file could not be removed."))
    else:
        datastore.update('clients', client_id, payload)
    return OperationResult(client_id, warnings)


def set_client_active(datastore, client_id, active):
    """Soft activation switch; vehicles, invoices and maintenance items are untouched."""
    datastore.update('clients', client_id, {'is_active': bool(active)})


def create_client(datastore, identity, payload, password):
    """Create the identity account and the client record under the same uid."""
    uid = identity.register(payload['email'], password)
    try:
        datastore.set('clients', uid, payload)
    except DatastoreError:
        identity.delete_account(uid)
        raise
    return uid


def list_clients(datastore):
    clients = datastore.query('clients')
    return sorted(clients, key=lambda c: ((c.get('last_name') or '').lower(), (c.get('first_name') or '').lower()))


def owns_image(datastore, client_id, path):
    """True when ``path`` is the client's profile image or the image of one of their vehicles."""
    if path.startswith('profile_images/'):
        record = datastore.get('clients', client_id) or {}
        return record.get('profile_image_path') == path
    if path.startswith('vehicle_images/'):
        vehicles = datastore.query(
            'vehicles', where=[('owner_id', '==', client_id), ('image_path', '==', path)], limit=1)
        return bool(vehicles)
    return False


# ========================
# Vehicles
# ========================

def save_vehicle(datastore, blob_store, vehicle_id, payload, image=None, remove_image=False):
    """Create (``vehicle_id`` None) or update a vehicle with its image."""
    current = datastore.get('vehicles', vehicle_id) if vehicle_id else None
    if vehicle_id and current is None:
        raise RecordNotFound('vehicles', vehicle_id)
    old_path = (current or {}).get('image_path')
    image = _upload(image)

    def write(url, path):
        data = dict(payload)
        if url:
            data.update(image_url=url, image_path=path)
        elif remove_image:
            data.update(image_url=ABSENT, image_path=ABSENT)
        if vehicle_id:
            datastore.update('vehicles', vehicle_id, data)
            return vehicle_id
        return datastore.add('vehicles', data)

    blob = None
    if image is not None:
        key = payload.get('vin') or vehicle_id or 'new'
        blob = (vehicle_image_path(key, image.filename), image.stream, image.mimetype)

    record_id, warnings = write_with_blob(blob_store, blob, write, old_path)

    if image is None and remove_image and old_path:
        try:
            delete_quietly(blob_store, old_path)
        except BlobStoreError:
            logger.exception("Could not delete vehicle image %s", old_path)
            warnings.append(_("The previous file could not be removed."))
    return OperationResult(record_id, warnings)


def delete_vehicle(datastore, blob_store, vehicle_id):
    """Delete the vehicle record, then its image."""
    vehicle = datastore.get('vehicles', vehicle_id)
    if vehicle is None:
        raise RecordNotFound('vehicles', vehicle_id)
    datastore.delete('vehicles', vehicle_id)

    warnings = []
    try:
        delete_quietly(blob_store, vehicle.get('image_path'))
    except BlobStoreError:
        logger.exception("Could not delete image of vehicle %s", vehicle_id)
        warnings.append(_("The vehicle was deleted but its image could not be removed."))
    return OperationResult(vehicle_id, warnings)


# ========================
# Invoices
# ========================

def invoice_payload(form_data, vat_rate):
    """Stored invoice fields from form data; totals are always recomputed."""
    totals = compute_invoice(form_data['services'], vat_rate)
    payload = {
        'invoice_number': form_data['invoice_number'].strip(),
        'date': form_data['date'],
        'status': form_data['status'],
        'notes': form_data.get('notes') or ABSENT,
    }
    payload.update(totals_for_storage(totals))
    return payload


def save_invoice(datastore, blob_store, vehicle, invoice_id, form_data, vat_rate, pdf_file=None):
    """
    Create or update an invoice for ``vehicle``.

    ``client_id`` is copied from the vehicle owner. An uploaded PDF replaces
    the stored one.
    """
    payload = invoice_payload(form_data, vat_rate)
    payload['vehicle_id'] = vehicle['id']
    payload['client_id'] = vehicle['owner_id']

    current = datastore.get('invoices', invoice_id) if invoice_id else None
    if invoice_id and current is None:
        raise RecordNotFound('invoices', invoice_id)
    pdf_file = _upload(pdf_file)

    blob = None
    if pdf_file is not None:
        path = invoice_pdf_path(vehicle['id'], payload['invoice_number'], pdf_file.filename)
        blob = (path, pdf_file.stream, 'application/pdf')

    def write(url, path):
        data = dict(payload)
        if url:
            data.update(pdf_url=url, pdf_path=path)
        if invoice_id:
            datastore.update('invoices', invoice_id, data)
            return invoice_id
        return datastore.add('invoices', data)

    record_id, warnings = write_with_blob(blob_store, blob, write, (current or {}).get('pdf_path'))
    return OperationResult(record_id, warnings)


def attach_invoice_pdf(datastore, blob_store, invoice, pdf_bytes, filename='invoice.pdf'):
    """Store a generated PDF for ``invoice`` and point the record at it."""
    path = invoice_pdf_path(invoice['vehicle_id'], invoice.get('invoice_number'), filename)

    def write(url, new_path):
        datastore.update('invoices', invoice['id'], {'pdf_url': url, 'pdf_path': new_path})
        return invoice['id']

    record_id, warnings = write_with_blob(
        blob_store, (path, pdf_bytes, 'application/pdf'), write, invoice.get('pdf_path'))
    return OperationResult(record_id, warnings)


def delete_invoice(datastore, blob_store, invoice_id):
    invoice = datastore.get('invoices', invoice_id)
    if invoice is None:
        raise RecordNotFound('invoices', invoice_id)
    datastore.delete('invoices', invoice_id)

    warnings = []
    try:
        delete_quietly(blob_store, invoice.get('pdf_path'))
    except BlobStoreError:
        logger.exception("Could not delete PDF of invoice %s", invoice_id)
        warnings.append(_("The invoice was deleted but its PDF could not be removed."))
    return OperationResult(invoice_id, warnings)


def sort_invoices(invoices):
    return sorted(invoices, key=lambda i: sort_key(i.get('date')), reverse=True)


# ========================
# Vehicle detail
# ========================

class VehicleDetail:
    """Sections of a vehicle page; each section has its own error slot."""

    def __init__(self):
        self.vehicle = None
        self.owner = None
        self.invoices = []
        self.maintenance = []
        self.errors = {}

    @property
    def found(self):
        return self.vehicle is not None


def load_vehicle_detail(datastore, vehicle_id, owner_id=None):
    """
    Fetch vehicle, owner, invoices and maintenance items, one after another.

    With ``owner_id`` set, a vehicle owned by someone else is reported exactly
    like a missing one, and the invoice and maintenance queries are scoped to
    that owner.
    """
    detail = VehicleDetail()

    try:
        vehicle = datastore.get('vehicles', vehicle_id)
    except DatastoreError:
        logger.exception("Loading vehicle %s failed", vehicle_id)
        detail.errors['vehicle'] = _("Error loading vehicle.")
        return detail

    if vehicle is None or (owner_id is not None and vehicle.get('owner_id') != owner_id):
        return detail
    detail.vehicle = vehicle

    try:
        detail.owner = datastore.get('clients', vehicle['owner_id'])
    except DatastoreError:
        logger.exception("Loading owner of vehicle %s failed", vehicle_id)
        detail.errors['owner'] = _("Error loading owner details.")

    scope = [('vehicle_id', '==', vehicle_id)]
    if owner_id is not None:
        scope.append(('client_id', '==', owner_id))

    try:
        detail.invoices = sort_invoices(datastore.query('invoices', where=scope))
    except DatastoreError:
        logger.exception("Loading invoices of vehicle %s failed", vehicle_id)
        detail.errors['invoices'] = _("Error loading invoices.")

    try:
        items = datastore.query('maintenanceItems', where=scope)
        detail.maintenance = sorted(items, key=lambda m: sort_key(m.get('created_at')), reverse=True)
    except DatastoreError:
        logger.exception("Loading maintenance of vehicle %s failed", vehicle_id)
        detail.errors['maintenance'] = _("Error loading maintenance schedule.")

    return detail
