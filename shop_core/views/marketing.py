# shop_core/views/marketing.py
import logging
from urllib.parse import urlsplit

from flask import (
    Blueprint, abort, current_app, redirect, render_template, request,
    send_from_directory, session, url_for,
)
from flask_login import current_user, login_required

from shop_core.datastore import DatastoreError
from shop_core.extensions import get_blob_store, get_datastore
from shop_core.services import owns_image
from utils.s3_storage import BlobStoreError, LocalBlobStore

logger = logging.getLogger(__name__)

marketing_bp = Blueprint('marketing', __name__)

# Shown when the catalog is empty or unavailable
DEFAULT_SERVICES = [
    {'name': 'Mechanical Repair', 'description': 'Engine, transmission, brakes and suspension.'},
    {'name': 'Scheduled Maintenance', 'description': 'Oil changes, filters and manufacturer service plans.'},
    {'name': 'Diagnostics', 'description': 'Electronic fault diagnosis for all makes.'},
    {'name': 'Tyres & Alignment', 'description': 'Fitting, balancing and wheel alignment.'},
]


@marketing_bp.get('/')
def index():
    services = []
    try:
        services = get_datastore().query(
            'serviceCatalog', where=[('is_active', '==', True)], order_by=['name'], limit=6)
    except DatastoreError:
        logger.exception("Could not load services for the landing page")
    return render_template('marketing/index.html', services=services or DEFAULT_SERVICES)


@marketing_bp.get('/lang/<code>')
def set_language(code):
    if code in current_app.config['BABEL_SUPPORTED_LOCALES']:
        session['lang'] = code
    target = request.args.get('next')
    if not target and request.referrer:
        parts = urlsplit(request.referrer)
        if parts.netloc == request.host:
            target = parts.path + (f"?{parts.query}" if parts.query else '')
    if not target or not target.startswith('/') or target.startswith('//'):
        target = url_for('marketing.index')
    return redirect(target)


@marketing_bp.get('/media/<path:path>')
@login_required
def media(path):
    """Images kept by the local blob store. Invoice PDFs have their own routes.

    Managers see every image; clients only their own profile and vehicle images.
    """
    store = get_blob_store()
    if not isinstance(store, LocalBlobStore) or path.startswith('invoice_pdfs/'):
        abort(404)
    if current_user.role != 'manager':
        try:
            allowed = owns_image(get_datastore(), current_user.id, path)
        except DatastoreError:
            logger.exception("Checking access to %s failed", path)
            allowed = False
        if not allowed:
            abort(404)
    try:
        found = store.exists(path)
    except BlobStoreError:
        found = False
    if not found:
        abort(404)
    return send_from_directory(store.root, path)
