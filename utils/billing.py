# utils/billing.py
from collections import namedtuple
from decimal import Decimal, DecimalException, InvalidOperation, ROUND_HALF_UP

VAT_RATE = Decimal('0.21')
CENT = Decimal('0.01')

InvoiceTotals = namedtuple('InvoiceTotals', ['services', 'subtotal', 'vat', 'total'])


class InvoiceValidationError(ValueError):
    def __init__(self, message, index=None, field=None):
        super().__init__(message)
        self.index = index
        self.field = field


def to_decimal(value, default='0.00'):
    if value is None or (isinstance(value, str) and value == ''):
        return Decimal(default)
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvoiceValidationError(f"Not a number: {value!r}")
    if not number.is_finite():
        raise InvoiceValidationError(f"Not a number: {value!r}")
    return number


def round2(value):
    """Round half up to cents. Amounts too large to hold cents raise InvoiceValidationError."""
    try:
        return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except DecimalException:
        raise InvoiceValidationError(f"Amount out of range: {value}")


def compute_invoice(items, vat_rate=VAT_RATE):
    """
    Derive line totals, subtotal, VAT and total for a list of service lines.

    Each item is a mapping with ``description``, ``quantity``, ``unit_price``
    and optionally ``service_catalog_id``. Rounding is chained: every line is
    rounded, then the subtotal, then VAT on the rounded subtotal, then the total.

    Raises:
        InvoiceValidationError: no items, empty description, quantity <= 0
            or unit price < 0.
    """
    if not items:
        raise InvoiceValidationError("At least one service line is required.")

    vat_rate = to_decimal(vat_rate)
    services = []
    subtotal = Decimal('0.00')

    for index, item in enumerate(items):
        description = str(item.get('description') or '').strip()
        if not description:
            raise InvoiceValidationError(
                f"Line {index + 1}: description is required.", index, 'description')

        values = {}
        for field in ('quantity', 'unit_price'):
            try:
                values[field] = to_decimal(item.get(field))
            except InvoiceValidationError as e:
                raise InvoiceValidationError(f"Line {index + 1}: {e}", index, field)
        quantity, unit_price = values['quantity'], values['unit_price']

        if quantity <= 0:
            raise InvoiceValidationError(
                f"Line {index + 1}: quantity must be greater than 0.", index, 'quantity')
        if unit_price < 0:
            raise InvoiceValidationError(
                f"Line {index + 1}: unit price must be zero or positive.", index, 'unit_price')

        try:
            line_total = round2(quantity * unit_price)
        except (InvoiceValidationError, DecimalException):
            raise InvoiceValidationError(
                f"Line {index + 1}: amount is too large.", index, 'unit_price')
        subtotal += line_total
        services.append({
            'service_catalog_id': item.get('service_catalog_id') or None,
            'description': description,
            'quantity': quantity,
            'unit_price': unit_price,
            'total': line_total,
        })

    try:
        subtotal = round2(subtotal)
        vat = round2(subtotal * vat_rate)
        total = round2(subtotal + vat)
    except InvoiceValidationError:
        raise InvoiceValidationError("Invoice total is too large.")
    return InvoiceTotals(services, subtotal, vat, total)


def totals_for_storage(totals):
    """Float amounts for the datastore; services keep their order."""
    return {
        'services': [
            {
                'service_catalog_id': line['service_catalog_id'],
                'description': line['description'],
                'quantity': float(line['quantity']),
                'unit_price': float(line['unit_price']),
                'total': float(line['total']),
            }
            for line in totals.services
        ],
        'subtotal_amount': float(totals.subtotal),
        'vat_amount': float(totals.vat),
        'total_amount': float(totals.total),
    }
