# shop_core/views/client.py
import logging
from io import BytesIO

from flask import Blueprint, abort, current_app, flash, redirect, render_template, send_file, url_for
from flask_babel import gettext as _
from flask_login import current_user

from forms import ProfileForm
from shop_core.auth import role_required
from shop_core.datastore import DatastoreError
from shop_core.extensions import db, get_blob_store, get_datastore
from shop_core.services import load_vehicle_detail, save_profile
from utils.notify import appointment_links
from utils.s3_storage import BlobNotFound, BlobStoreError

from . import flash_warnings, person_form_data, person_payload

logger = logging.getLogger(__name__)

client_bp = Blueprint('client', __name__)


@client_bp.route('/dashboard')
@role_required(['client'])
def dashboard():
    vehicles = []
    try:
        vehicles = get_datastore().query(
            'vehicles', where=[('owner_id', '==', current_user.id)], order_by=['make', 'model'])
    except DatastoreError:
        logger.exception("Loading vehicles for %s failed", current_user.id)
        flash(_("An error occurred while loading your vehicles."), "error")
    return render_template('client/dashboard.html', vehicles=vehicles)


@client_bp.route('/vehicle/<vehicle_id>')
@role_required(['client'])
def vehicle_detail(vehicle_id):
    detail = load_vehicle_detail(get_datastore(), vehicle_id, owner_id=current_user.id)
    if 'vehicle' in detail.errors:
        flash(detail.errors['vehicle'], "error")
        return redirect(url_for('client.dashboard'))
    if not detail.found:
        abort(404)
    for message in detail.errors.values():
        flash(message, "error")
    shop_phone = current_app.config['SHOP_PHONE']
    appointments = {
        item['id']: appointment_links(shop_phone, item, detail.vehicle)
        for item in detail.maintenance
    }
    return render_template('client/vehicle.html', detail=detail, appointments=appointments)


@client_bp.route('/invoice/<invoice_id>/pdf')
@role_required(['client'])
def invoice_pdf(invoice_id):
    try:
        invoice = get_datastore().get('invoices', invoice_id)
    except DatastoreError:
        logger.exception("Loading invoice %s failed", invoice_id)
        abort(404)
    if not invoice or invoice.get('client_id') != current_user.id or not invoice.get('pdf_path'):
        abort(404)
    try:
        data = get_blob_store().read(invoice['pdf_path'])
    except BlobNotFound:
        abort(404)
    except BlobStoreError:
        logger.exception("Reading PDF of invoice %s failed", invoice_id)
        flash(_("The invoice PDF could not be retrieved."), "error")
        return redirect(url_for('client.vehicle_detail', vehicle_id=invoice['vehicle_id']))
    return send_file(BytesIO(data), mimetype='application/pdf',
                     download_name=f"{invoice['invoice_number']}.pdf")


@client_bp.route('/profile', methods=['GET', 'POST'])
@role_required(['client'])
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
            return redirect(url_for('client.profile'))
        except (DatastoreError, BlobStoreError):
            db.session.rollback()
            logger.exception("Updating profile of %s failed", current_user.id)
            flash(_("An error occurred while updating your profile."), "error")
    return render_template('client/profile.html', form=form, record=record)
