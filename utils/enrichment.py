# utils/enrichment.py
import logging

from shop_core.records import NOT_AVAILABLE

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 30


def chunked(values, size):
    for start in range(0, len(values), size):
        yield values[start:start + size]


def unique_ids(ids):
    """Drop empty and repeated ids, keeping first-seen order."""
    seen = set()
    result = []
    for record_id in ids:
        if record_id and record_id not in seen:
            seen.add(record_id)
            result.append(record_id)
    return result


def fetch_in_batches(datastore, collection, ids, chunk_size=DEFAULT_CHUNK_SIZE):
    """
    Look up many records by id without exceeding the datastore's ``in`` limit.

    Returns a dict keyed by id; ids with no record are simply missing from it.
    """
    ids = unique_ids(ids)
    found = {}
    for chunk in chunked(ids, chunk_size):
        for record in datastore.query(collection, where=[('id', 'in', chunk)]):
            found[record['id']] = record
    logger.debug("Fetched %d/%d %s in batches of %d", len(found), len(ids), collection, chunk_size)
    return found


def full_name(client):
    if not client:
        return NOT_AVAILABLE
    name = f"{client.get('first_name') or ''} {client.get('last_name') or ''}".strip()
    return name or NOT_AVAILABLE


def vehicle_identifier(vehicle):
    if not vehicle:
        return NOT_AVAILABLE
    return f"{vehicle.get('make', '')} {vehicle.get('model', '')} ({vehicle.get('license_plate', '')})"


def enrich_invoices(invoices, clients_by_id, vehicles_by_id):
    enriched = []
    for invoice in invoices:
        row = dict(invoice)
        row['client_name'] = full_name(clients_by_id.get(invoice.get('client_id')))
        row['vehicle_identifier'] = vehicle_identifier(vehicles_by_id.get(invoice.get('vehicle_id')))
        enriched.append(row)
    return enriched


def enrich_vehicles(vehicles, clients_by_id):
    enriched = []
    for vehicle in vehicles:
        row = dict(vehicle)
        owner = clients_by_id.get(vehicle.get('owner_id'))
        document = (owner or {}).get('identity_document') or {}
        row['owner_name'] = full_name(owner)
        row['owner_dni'] = document.get('number') or NOT_AVAILABLE
        row['client_email'] = (owner or {}).get('email') or NOT_AVAILABLE
        enriched.append(row)
    return enriched
