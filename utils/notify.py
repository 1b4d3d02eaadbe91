# utils/notify.py
import re
from urllib.parse import quote

from flask_babel import gettext as _

from utils.enrichment import vehicle_identifier

WA_ME_URL = "https://wa.me/{digits}?text={text}"

# Characters left unescaped, matching encodeURIComponent
_SAFE = "-_.!~*'()"


def phone_digits(phone):
    return re.sub(r'\D', '', phone or '')


def whatsapp_link(phone, message):
    """``wa.me`` deep link, or ``None`` when the phone holds no digits."""
    digits = phone_digits(phone)
    if not digits:
        return None
    return WA_ME_URL.format(digits=digits, text=quote(message, safe=_SAFE))


def invoice_message(client, invoice, shop_name=''):
    name = (client or {}).get('first_name') or ''
    total = float(invoice.get('total_amount') or 0)
    return _(
        "Hello %(name)s, your invoice %(number)s from %(shop)s is ready. Total: %(total)s",
        name=name,
        number=invoice.get('invoice_number', ''),
        shop=shop_name,
        total=f"{total:.2f}€",
    )


def invoice_whatsapp_link(client, invoice, shop_name=''):
    if not client:
        return None
    return whatsapp_link(client.get('phone1'), invoice_message(client, invoice, shop_name))


# Maintenance items a client can still book
APPOINTMENT_STATUSES = ('upcoming', 'due')


def tel_link(phone):
    digits = phone_digits(phone)
    if not digits:
        return None
    prefix = '+' if (phone or '').strip().startswith('+') else ''
    return f"tel:{prefix}{digits}"


def appointment_message(item, vehicle=None):
    service = item.get('description', '')
    if not vehicle:
        return _("Hello, I would like to book an appointment for %(service)s.", service=service)
    return _(
        "Hello, I would like to book an appointment for %(service)s on my %(vehicle)s.",
        service=service,
        vehicle=vehicle_identifier(vehicle),
    )


def appointment_links(shop_phone, item, vehicle=None):
    """Call and WhatsApp links to the shop for a bookable maintenance item, else ``None``."""
    if item.get('status') not in APPOINTMENT_STATUSES:
        return None
    call = tel_link(shop_phone)
    if not call:
        return None
    return {'call': call, 'whatsapp': whatsapp_link(shop_phone, appointment_message(item, vehicle))}
