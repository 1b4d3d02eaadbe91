# shop_core/views/manager.py
import logging
from io import BytesIO

from flask import (
    Blueprint, abort, current_app, flash, redirect, render_template, request,
    send_file, url_for,
)
from flask_babel import gettext as _
from flask_login import current_user

from forms import (
    ClientAddForm, ClientForm, ConfirmForm, InvoiceForm, MaintenanceItemForm,
    ProfileForm, ServiceCatalogItemForm, VehicleForm,
)
from shop_core.auth import role_required
from shop_core.datastore import DatastoreError, RecordNotFound
from shop_core.extensions import db, get_blob_store, get_datastore, get_identity
from shop_core.identity import EmailAlreadyRegistered, IdentityError
from shop_core.records import ABSENT, optional
from shop_core.services import (
    attach_invoice_pdf, create_client, delete_invoice, delete_vehicle,
    list_clients, load_vehicle_detail, save_invoice, save_profile, save_vehicle,
    set_client_active, sort_invoices,
)
from utils.billing import InvoiceValidationError
from utils.enrichment import enrich_invoices, enrich_vehicles, fetch_in_batches, full_name
from utils.listing import list_view_from_args
from utils.notify import invoice_whatsapp_link
from utils.pdf_generator import generate_invoice_pdf
from utils.s3_storage import BlobNotFound, BlobStoreError

from . import flash_warnings, person_form_data, person_payload

logger = logging.getLogger(__name__)

manager_bp = Blueprint('manager', __name__)

VEHICLE_SEARCH_FIELDS = ('license_plate', 'owner_dni', 'make', 'model', 'owner_name', 'client_email', 'vin')
CLIENT_SEARCH_FIELDS = ('full_name', 'email', 'document_number')
INVOICE_SEARCH_FIELDS = ('invoice_number', 'client_name', 'vehicle_identifier')
CATALOG_SEARCH_FIELDS = ('name', 'category', 'description')


def _page_size():
    return current_app.config['ITEMS_PER_PAGE']


def _chunk_size():
    return current_app.config['IN_QUERY_LIMIT']


def _catalog(active_only=True):
    where = [('is_active', '==', True)] if active_only else None
    return get_datastore().query('serviceCatalog', where=where, order_by=['name'])


def _owner_choices():
    clients = [c for c in list_clients(get_datastore()) if c.get('role') == 'client']
    return [(c['id'], f"{full_name(c)} ({c.get('email')})") for c in clients]


def _get_or_404(collection, record_id):
    try:
        record = get_datastore().get(collection, record_id)
    except DatastoreError:
        logger.exception("Loading %s/%s failed", collection, record_id)
        record = None
    if record is None:
        abort(404)
    return record


def _safe_next(default):
    target = request.form.get('next') or request.args.get('next')
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return default


# ========================
# Dashboard & Vehicles
# ========================

@manager_bp.route('/dashboard')
@role_required(['manager'])
def dashboard():
    datastore = get_datastore()
    rows = []
    try:
        vehicles = datastore.query('vehicles', order_by=['-created_at'])
        owners = fetch_in_batches(datastore, 'clients', [v.get('owner_id') for v in vehicles], _chunk_size())
        rows = enrich_vehicles(vehicles, owners)
    except DatastoreError:
        logger.exception("Loading the vehicle dashboard failed")
        flash(_("An error occurred while loading vehicles."), "error")

    view = list_view_from_args(rows, request.args, search_fields=VEHICLE_SEARCH_FIELDS, page_size=_page_size())
    return render_template('manager/dashboard.html', view=view, q=request.args.get('q', ''))


def _vehicle_payload(form):
    return {
        'make': form.make.data,
        'model': form.model.data,
        'year': form.year.data,
        'license_plate': form.license_plate.data,
        'vin': form.vin.data,
        'owner_id': form.owner_id.data,
        'engine_code': optional(form.engine_code.data),
        'current_mileage': optional(form.current_mileage.data),
        'last_service_date': optional(form.last_service_date.data),
    }


@manager_bp.route('/vehicles/add', methods=['GET', 'POST'])
@role_required(['manager'])
def add_vehicle():
    form = VehicleForm(data={'owner_id': request.args.get('owner', '')})
    form.owner_id.choices = _owner_choices()

    if form.validate_on_submit():
        try:
            result = save_vehicle(get_datastore(), get_blob_store(), None, _vehicle_payload(form),
                                  image=form.image.data)
            flash(_("Vehicle %(plate)s added successfully.", plate=form.license_plate.data), "success")
            flash_warnings(result)
            return redirect(url_for('manager.vehicle_detail', vehicle_id=result.record_id))
        except (DatastoreError, BlobStoreError):
            db.session.rollback()
            logger.exception("Adding vehicle failed")
            flash(_("An error occurred while adding the vehicle."), "error")
    return render_template('manager/vehicle_form.html', form=form, vehicle=None)


@manager_bp.route('/vehicle/<vehicle_id>/edit', methods=['GET', 'POST'])
@role_required(['manager'])
def edit_vehicle(vehicle_id):
    vehicle = _get_or_404('vehicles', vehicle_id)
    form = VehicleForm(data=vehicle)
    form.owner_id.choices = _owner_choices()

    if form.validate_on_submit():
        try:
            result = save_vehicle(get_datastore(), get_blob_store(), vehicle_id, _vehicle_payload(form),
                                  image=form.image.data, remove_image=form.remove_image.data)
            flash(_("Vehicle updated successfully."), "success")
            flash_warnings(result)
            return redirect(url_for('manager.vehicle_detail', vehicle_id=vehicle_id))
        except (DatastoreError, BlobStoreError):
            db.session.rollback()
            logger.exception("Updating vehicle %s failed", vehicle_id)
            flash(_("An error occurred while updating the vehicle."), "error")
    return render_template('manager/vehicle_form.html', form=form, vehicle=vehicle)


@manager_bp.route('/vehicle/<vehicle_id>/delete', methods=['POST'])
@role_required(['manager'])
def remove_vehicle(vehicle_id):
    form = ConfirmForm()
    if not form.validate_on_submit():
        flash(_("Delete confirmation failed or missing."), "error")
        return redirect(url_for('manager.vehicle_detail', vehicle_id=vehicle_id))
    try:
        result = delete_vehicle(get_datastore(), get_blob_store(), vehicle_id)
    except RecordNotFound:
        abort(404)
    except DatastoreError:
        db.session.rollback()
        logger.exception("Deleting vehicle %s failed", vehicle_id)
        flash(_("An error occurred while deleting the vehicle."), "error")
        return redirect(url_for('manager.vehicle_detail', vehicle_id=vehicle_id))
    flash(_("Vehicle deleted successfully."), "success")
    flash_warnings(result)
    return redirect(url_for('manager.dashboard'))


def _invoice_form_data(invoice):
    return {
        'invoice_number': invoice.get('invoice_number'),
        'date': invoice.get('date'),
        'status': invoice.get('status'),
        'notes': invoice.get('notes'),
        'services': [
            {
                'service_catalog_id': line.get('service_catalog_id') or '',
                'description': line.get('description'),
                'quantity': line.get('quantity'),
                'unit_price': line.get('unit_price'),
            }
            for line in invoice.get('services') or []
        ] or [{}],
    }


def _maintenance_form_data(item):
    return {
        'description': item.get('description'),
        'service_tasks': item.get('service_tasks') or [''],
        'due_date': item.get('due_date'),
        'due_mileage': item.get('due_mileage'),
        'status': item.get('status'),
        'notes': item.get('notes'),
    }


def _render_vehicle_detail(vehicle_id, invoice_form=None, maintenance_form=None,
                           editing_invoice=None, editing_maintenance=None):
    detail = load_vehicle_detail(get_datastore(), vehicle_id)
    if 'vehicle' in detail.errors:
        flash(detail.errors['vehicle'], "error")
        return redirect(url_for('manager.dashboard'))
    if not detail.found:
        abort(404)
    for message in detail.errors.values():
        flash(message, "error")

    try:
        catalog = _catalog()
    except DatastoreError:
        logger.exception("Loading the service catalog failed")
        flash(_("Error loading the service catalog."), "error")
        catalog = []

    if editing_invoice is None and invoice_form is None and request.args.get('editInvoice'):
        editing_invoice = next((i for i in detail.invoices if i['id'] == request.args['editInvoice']), None)
    if invoice_form is None:
        invoice_form = InvoiceForm(formdata=None, data=_invoice_form_data(editing_invoice) if editing_invoice else None)
    invoice_form.set_catalog_choices(catalog)

    if editing_maintenance is None and maintenance_form is None and request.args.get('editMaintenance'):
        editing_maintenance = next(
            (m for m in detail.maintenance if m['id'] == request.args['editMaintenance']), None)
    if maintenance_form is None:
        maintenance_form = MaintenanceItemForm(
            formdata=None, data=_maintenance_form_data(editing_maintenance) if editing_maintenance else None)

    whatsapp_links = {
        invoice['id']: invoice_whatsapp_link(detail.owner, invoice, current_app.config['SHOP_NAME'])
        for invoice in detail.invoices
    }
    return render_template(
        'manager/vehicle.html',
        detail=detail,
        catalog=catalog,
        invoice_form=invoice_form,
        maintenance_form=maintenance_form,
        editing_invoice=editing_invoice,
        editing_maintenance=editing_maintenance,
        whatsapp_links=whatsapp_links,
        confirm_form=ConfirmForm(),
    )


@manager_bp.route('/vehicle/<vehicle_id>')
@role_required(['manager'])
def vehicle_detail(vehicle_id):
    return _render_vehicle_detail(vehicle_id)


# ========================
# Invoices
# ========================

def _handle_invoice_form(vehicle_id, invoice_id=None):
    vehicle = _get_or_404('vehicles', vehicle_id)
    editing = _get_or_404('invoices', invoice_id) if invoice_id else None
    if editing and editing.get('vehicle_id') != vehicle_id:
        abort(404)

    form = InvoiceForm()
    try:
        form.set_catalog_choices(_catalog())
    except DatastoreError:
        logger.exception("Loading the service catalog failed")

    if form.validate_on_submit():
        form_data = {
            'invoice_number': form.invoice_number.data,
            'date': form.date.data,
            'status': form.status.data,
            'notes': form.notes.data,
            'services': form.service_lines(),
        }
        try:
            result = save_invoice(get_datastore(), get_blob_store(), vehicle, invoice_id, form_data,
                                  current_app.config['VAT_RATE'], pdf_file=form.pdf_file.data)
            if invoice_id:
                flash(_("Invoice %(number)s updated successfully.", number=form_data['invoice_number']), "success")
            else:
                flash(_("Invoice %(number)s created successfully.", number=form_data['invoice_number']), "success")
            flash_warnings(result)
            return redirect(url_for('manager.vehicle_detail', vehicle_id=vehicle_id))
        except InvoiceValidationError as e:
            flash(str(e), "error")
        except (DatastoreError, BlobStoreError):
            db.session.rollback()
            logger.exception("Saving invoice for vehicle %s failed", vehicle_id)
            flash(_("An error occurred while saving the invoice."), "error")
    else:
        flash(_("Please correct the errors in the invoice form."), "error")
    return _render_vehicle_detail(vehicle_id, invoice_form=form, editing_invoice=editing)


@manager_bp.route('/vehicle/<vehicle_id>/invoices', methods=['POST'])
@role_required(['manager'])
def create_invoice(vehicle_id):
    return _handle_invoice_form(vehicle_id)


@manager_bp.route('/vehicle/<vehicle_id>/invoices/<invoice_id>', methods=['POST'])
@role_required(['manager'])
def update_invoice(vehicle_id, invoice_id):
    return _handle_invoice_form(vehicle_id, invoice_id)


@manager_bp.route('/invoices')
@role_required(['manager'])
def invoices():
    datastore = get_datastore()
    rows = []
    clients = {}
    try:
        records = sort_invoices(datastore.query('invoices', order_by=['-date']))
        clients = fetch_in_batches(datastore, 'clients', [i.get('client_id') for i in records], _chunk_size())
        vehicles = fetch_in_batches(datastore, 'vehicles', [i.get('vehicle_id') for i in records], _chunk_size())
        rows = enrich_invoices(records, clients, vehicles)
    except DatastoreError:
        logger.exception("Loading invoices failed")
        flash(_("An error occurred while loading invoices."), "error")

    view = list_view_from_args(
        rows, request.args, search_fields=INVOICE_SEARCH_FIELDS,
        equality={'status': 'status', 'client': 'client_id'}, page_size=_page_size())
    client_choices = sorted(((cid, full_name(c)) for cid, c in clients.items()), key=lambda x: x[1].lower())
    shop_name = current_app.config['SHOP_NAME']
    whatsapp_links = {
        invoice['id']: invoice_whatsapp_link(clients.get(invoice.get('client_id')), invoice, shop_name)
        for invoice in view.page_items
    }
    return render_template(
        'manager/invoices.html',
        view=view,
        client_choices=client_choices,
        whatsapp_links=whatsapp_links,
        filters={k: request.args.get(k, '') for k in ('q', 'status', 'client')},
        confirm_form=ConfirmForm(),
    )


@manager_bp.route('/invoices/<invoice_id>/edit')
@role_required(['manager'])
def edit_invoice(invoice_id):
    invoice = _get_or_404('invoices', invoice_id)
    return redirect(url_for('manager.vehicle_detail', vehicle_id=invoice['vehicle_id'], editInvoice=invoice_id))


@manager_bp.route('/invoices/<invoice_id>/delete', methods=['POST'])
@role_required(['manager'])
def remove_invoice(invoice_id):
    back = _safe_next(url_for('manager.invoices'))
    form = ConfirmForm()
    if not form.validate_on_submit():
        flash(_("Delete confirmation failed or missing."), "error")
        return redirect(back)
    try:
        result = delete_invoice(get_datastore(), get_blob_store(), invoice_id)
    except RecordNotFound:
        abort(404)
    except DatastoreError:
        db.session.rollback()
        logger.exception("Deleting invoice %s failed", invoice_id)
        flash(_("An error occurred while deleting the invoice."), "error")
        return redirect(back)
    flash(_("Invoice deleted successfully."), "success")
    flash_warnings(result)
    return redirect(back)


@manager_bp.route('/invoices/<invoice_id>/pdf')
@role_required(['manager'])
def invoice_pdf(invoice_id):
    invoice = _get_or_404('invoices', invoice_id)
    if not invoice.get('pdf_path'):
        abort(404)
    try:
        data = get_blob_store().read(invoice['pdf_path'])
    except BlobNotFound:
        abort(404)
    except BlobStoreError:
        logger.exception("Reading PDF of invoice %s failed", invoice_id)
        flash(_("The invoice PDF could not be retrieved."), "error")
        return redirect(url_for('manager.vehicle_detail', vehicle_id=invoice['vehicle_id']))
    return send_file(BytesIO(data), mimetype='application/pdf',
                     download_name=f"{invoice['invoice_number']}.pdf")


@manager_bp.route('/invoices/<invoice_id>/generate-pdf', methods=['POST'])
@role_required(['manager'])
def generate_pdf(invoice_id):
    datastore = get_datastore()
    invoice = _get_or_404('invoices', invoice_id)
    try:
        client = datastore.get('clients', invoice.get('client_id'))
        vehicle = datastore.get('vehicles', invoice.get('vehicle_id'))
        pdf_bytes = generate_invoice_pdf(
            invoice, client, vehicle,
            shop_name=current_app.config['SHOP_NAME'],
            shop_phone=current_app.config['SHOP_PHONE'],
            currency=current_app.config['CURRENCY_SYMBOL'],
        )
        result = attach_invoice_pdf(datastore, get_blob_store(), invoice, pdf_bytes)
        flash(_("Invoice PDF generated."), "success")
        flash_warnings(result)
    except (DatastoreError, BlobStoreError):
        db.session.rollback()
        logger.exception("Generating PDF for invoice %s failed", invoice_id)
        flash(_("An error occurred while generating the PDF."), "error")
    return redirect(url_for('manager.vehicle_detail', vehicle_id=invoice['vehicle_id']))


# ========================
# Maintenance
# ========================

def _handle_maintenance_form(vehicle_id, item_id=None):
    vehicle = _get_or_404('vehicles', vehicle_id)
    editing = _get_or_404('maintenanceItems', item_id) if item_id else None
    if editing and editing.get('vehicle_id') != vehicle_id:
        abort(404)

    form = MaintenanceItemForm()
    if form.validate_on_submit():
        payload = {
            'vehicle_id': vehicle_id,
            'client_id': vehicle['owner_id'],
            'description': form.description.data,
            'service_tasks': form.tasks(),
            'due_date': optional(form.due_date.data),
            'due_mileage': optional(form.due_mileage.data),
            'status': form.status.data,
            'notes': optional(form.notes.data),
        }
        datastore = get_datastore()
        try:
            if item_id:
                datastore.update('maintenanceItems', item_id, payload)
                flash(_("Maintenance item updated successfully."), "success")
            else:
                datastore.add('maintenanceItems', payload)
                flash(_("Maintenance item added successfully."), "success")
            return redirect(url_for('manager.vehicle_detail', vehicle_id=vehicle_id))
        except DatastoreError:
            db.session.rollback()
            logger.exception("Saving maintenance item for vehicle %s failed", vehicle_id)
            flash(_("An error occurred while saving the maintenance item."), "error")
    else:
        flash(_("Please correct the errors in the maintenance form."), "error")
    return _render_vehicle_detail(vehicle_id, maintenance_form=form, editing_maintenance=editing)


@manager_bp.route('/vehicle/<vehicle_id>/maintenance', methods=['POST'])
@role_required(['manager'])
def create_maintenance(vehicle_id):
    return _handle_maintenance_form(vehicle_id)


@manager_bp.route('/vehicle/<vehicle_id>/maintenance/<item_id>', methods=['POST'])
@role_required(['manager'])
def update_maintenance(vehicle_id, item_id):
    return _handle_maintenance_form(vehicle_id, item_id)


@manager_bp.route('/maintenance/<item_id>/delete', methods=['POST'])
@role_required(['manager'])
def remove_maintenance(item_id):
    item = _get_or_404('maintenanceItems', item_id)
    back = url_for('manager.vehicle_detail', vehicle_id=item['vehicle_id'])
    form = ConfirmForm()
    if not form.validate_on_submit():
        flash(_("Delete confirmation failed or missing."), "error")
        return redirect(back)
    try:
        get_datastore().delete('maintenanceItems', item_id)
        flash(_("Maintenance item deleted successfully."), "success")
    except DatastoreError:
        db.session.rollback()
        logger.exception("Deleting maintenance item %s failed", item_id)
        flash(_("An error occurred while deleting the maintenance item."), "error")
    return redirect(back)


# ========================
# Clients
# ========================

@manager_bp.route('/clients')
@role_required(['manager'])
def clients():
    rows = []
    try:
        for record in list_clients(get_datastore()):
            row = dict(record)
            row['full_name'] = full_name(record)
            row['document_number'] = (record.get('identity_document') or {}).get('number')
            rows.append(row)
    except DatastoreError:
        logger.exception("Loading clients failed")
        flash(_("An error occurred while loading clients."), "error")

    view = list_view_from_args(rows, request.args, search_fields=CLIENT_SEARCH_FIELDS, page_size=_page_size())
    return render_template('manager/clients.html', view=view, q=request.args.get('q', ''),
                           confirm_form=ConfirmForm())


@manager_bp.route('/clients/add', methods=['GET', 'POST'])
@role_required(['manager'])
def add_client():
    form = ClientAddForm()
    if form.validate_on_submit():
        payload = person_payload(form)
        payload.update(email=form.email.data.lower(), role=form.role.data, is_active=form.is_active.data)
        try:
            uid = create_client(get_datastore(), get_identity(), payload, form.password.data)
            flash(_("Client %(name)s added successfully.", name=full_name(payload)), "success")
            return redirect(url_for('manager.edit_client', client_id=uid))
        except EmailAlreadyRegistered:
            flash(_("An account with this email already exists."), "error")
        except (IdentityError, DatastoreError):
            db.session.rollback()
            logger.exception("Adding client failed")
            flash(_("An error occurred while adding the client."), "error")
    return render_template('manager/client_form.html', form=form, client=None, vehicles=[])


@manager_bp.route('/clients/<client_id>', methods=['GET', 'POST'])
@role_required(['manager'])
def edit_client(client_id):
    datastore = get_datastore()
    client = _get_or_404('clients', client_id)
    form = ClientForm(data=person_form_data(client))

    if form.validate_on_submit():
        payload = person_payload(form)
        payload.update(role=form.role.data, is_active=form.is_active.data)
        if client_id == current_user.id and (payload['role'] != 'manager' or not payload['is_active']):
            flash(_("You cannot deactivate your own account or change your own role."), "error")
            payload.update(role='manager', is_active=True)
        try:
            datastore.update('clients', client_id, payload)
            flash(_("Client updated successfully."), "success")
            return redirect(url_for('manager.edit_client', client_id=client_id))
        except DatastoreError:
            db.session.rollback()
            logger.exception("Updating client %s failed", client_id)
            flash(_("An error occurred while updating the client."), "error")

    vehicles = []
    try:
        vehicles = datastore.query('vehicles', where=[('owner_id', '==', client_id)], order_by=['make'])
    except DatastoreError:
        logger.exception("Loading vehicles of client %s failed", client_id)
        flash(_("An error occurred while loading the client's vehicles."), "error")
    return render_template('manager/client_form.html', form=form, client=client, vehicles=vehicles)


@manager_bp.route('/clients/<client_id>/toggle-active', methods=['POST'])
@role_required(['manager'])
def toggle_client_active(client_id):
    client = _get_or_404('clients', client_id)
    back = _safe_next(url_for('manager.clients'))
    if client_id == current_user.id:
        flash(_("You cannot deactivate your own account."), "error")
        return redirect(back)
    try:
        set_client_active(get_datastore(), client_id, not client.get('is_active'))
        if client.get('is_active'):
            flash(_("Client %(name)s deactivated.", name=full_name(client)), "success")
        else:
            flash(_("Client %(name)s activated.", name=full_name(client)), "success")
    except DatastoreError:
        db.session.rollback()
        logger.exception("Toggling client %s failed", client_id)
        flash(_("An error occurred while updating the client."), "error")
    return redirect(back)


# ========================
# Service Catalog
# ========================

def _catalog_payload(form):
    price = form.default_unit_price.data
    return {
        'name': form.name.data,
        'description': optional(form.description.data),
        'default_unit_price': float(price) if price is not None else ABSENT,
        'category': optional(form.category.data),
        'is_active': form.is_active.data,
    }


@manager_bp.route('/service-catalog', methods=['GET', 'POST'])
@role_required(['manager'])
def service_catalog():
    form = ServiceCatalogItemForm()
    if form.validate_on_submit():
        try:
            get_datastore().add('serviceCatalog', _catalog_payload(form))
            flash(_("Service %(name)s added successfully.", name=form.name.data), "success")
            return redirect(url_for('manager.service_catalog'))
        except DatastoreError:
            db.session.rollback()
            logger.exception("Adding catalog item failed")
            flash(_("An error occurred while adding the service."), "error")

    items = []
    try:
        items = _catalog(active_only=False)
    except DatastoreError:
        logger.exception("Loading the service catalog failed")
        flash(_("Error loading the service catalog."), "error")
    view = list_view_from_args(items, request.args, search_fields=CATALOG_SEARCH_FIELDS, page_size=_page_size())
    return render_template('manager/service_catalog.html', view=view, form=form,
                           q=request.args.get('q', ''), confirm_form=ConfirmForm())


@manager_bp.route('/service-catalog/<item_id>/edit', methods=['GET', 'POST'])
@role_required(['manager'])
def edit_catalog_item(item_id):
    item = _get_or_404('serviceCatalog', item_id)
    form = ServiceCatalogItemForm(data=item)
    if form.validate_on_submit():
        try:
            get_datastore().update('serviceCatalog', item_id, _catalog_payload(form))
            flash(_("Service updated successfully."), "success")
            return redirect(url_for('manager.service_catalog'))
        except DatastoreError:
            db.session.rollback()
            logger.exception("Updating catalog item %s failed", item_id)
            flash(_("An error occurred while updating the service."), "error")
    return render_template('manager/catalog_form.html', form=form, item=item)


@manager_bp.route('/service-catalog/<item_id>/delete', methods=['POST'])
@role_required(['manager'])
def remove_catalog_item(item_id):
    form = ConfirmForm()
    if not form.validate_on_submit():
        flash(_("Delete confirmation failed or missing."), "error")
        return redirect(url_for('manager.service_catalog'))
    try:
        get_datastore().delete('serviceCatalog', item_id)
        flash(_("Service deleted successfully."), "success")
    except RecordNotFound:
        abort(404)
    except DatastoreError:
        db.session.rollback()
        logger.exception("Deleting catalog item %s failed", item_id)
        flash(_("An error occurred while deleting the service."), "error")
    return redirect(url_for('manager.service_catalog'))


# ========================
# Profile
# ========================

@manager_bp.route('/profile', methods=['GET', 'POST'])
@role_required(['manager'])
def profile():
    datastore = get_datastore()
    record = datastore.get('clients', current_user.id)
    form = ProfileForm(data=person_form_data(record))

    if form.validate_on_submit():
        try:
            result = save_profile(
                datastore, get_blob_store(), current_user.id, person_payload(form),
                image=form.profile_image.data, remove_image=form.remove_image.data)
            flash(_("Profile updated successfully."), "success")
            flash_warnings(result)
            return redirect(url_for('manager.profile'))
        except (DatastoreError, BlobStoreError):
            db.session.rollback()
            logger.exception("Updating profile of %s failed", current_user.id)
            flash(_("An error occurred while updating your profile."), "error")
    return render_template('manager/profile.html', form=form, record=record)
