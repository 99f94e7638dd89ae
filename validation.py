"""
Write-time enforcement of entity invariants.

Backends call clean_draft() before a create and clean_entity() before an
update. Both either return normalized data or raise ValidationError; nothing
is checked again at read time.
"""

from dataclasses import replace

from errors import ValidationError
from schema import (PRODUCTS, CUSTOMERS, UNITS, SETTINGS, BILLS, SETTINGS_ID,
                    Product, BillItem,
                    entity_from_dict, entity_to_dict)

SETTINGS_TEXT_FIELDS = ('shop_address', 'shop_phone', 'shop_logo',
                        'bank_name', 'bank_bin', 'account_number',
                        'account_name')
BILL_TEXT_FIELDS = ('customer_name', 'customer_phone', 'customer_address',
                    'order_code')


def required_text(data: dict, field: str) -> str:
    """Get a trimmed string that must not be blank."""

    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} is required')
    return value.strip()


def optional_text(data: dict, field: str) -> str:
    """Get a trimmed string, defaulting to empty."""

    value = data.get(field)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be text')
    return value.strip()


def number(data: dict, field: str, positive: bool = False, default=None):
    """Get a numeric field (bool is not a number here)."""

    value = data.get(field, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f'{field} must be a number')
    if positive and value <= 0:
        raise ValidationError(f'{field} must be greater than zero')
    return value


def normalize_price_history(price, history) -> tuple:
    """Distinct positive prices, descending, always containing price."""

    prices = set()
    for value in list(history or ()) + [price]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError('price_history must contain numbers')
        if value <= 0:
            raise ValidationError('price_history values must be greater than zero')
        prices.add(value)
    return tuple(sorted(prices, reverse=True))


def clean_product(data: dict, creating: bool) -> dict:
    price = number(data, 'price', positive=True)
    history = [] if creating else data.get('price_history')
    return {
        'name': required_text(data, 'name'),
        'unit': optional_text(data, 'unit'),
        'price': price,
        'price_history': normalize_price_history(price, history),
    }


def clean_customer(data: dict, creating: bool) -> dict:
    return {
        'name': required_text(data, 'name'),
        'phone': optional_text(data, 'phone'),
        'address': optional_text(data, 'address'),
    }


def clean_unit(data: dict, creating: bool) -> dict:
    cleaned = {'name': required_text(data, 'name')}
    order = data.get('order')
    if order is None and creating:
        return cleaned  # store assigns the next rank
    if isinstance(order, bool) or not isinstance(order, int):
        raise ValidationError('order must be an integer')
    cleaned['order'] = order
    return cleaned


def clean_settings(data: dict, creating: bool) -> dict:
    cleaned = {'shop_name': required_text(data, 'shop_name')}
    for field in SETTINGS_TEXT_FIELDS:
        cleaned[field] = optional_text(data, field)
    return cleaned


def clean_bill_item(data) -> BillItem:
    if isinstance(data, BillItem):
        data = entity_to_dict(data)
    if not isinstance(data, dict):
        raise ValidationError('bill items must be objects')
    return BillItem(product_id=required_text(data, 'product_id'),
                    product_name=required_text(data, 'product_name'),
                    quantity=number(data, 'quantity', positive=True),
                    unit=optional_text(data, 'unit'),
                    price=number(data, 'price', positive=True))


def clean_bill(data: dict, creating: bool) -> dict:
    if not creating:
        raise ValidationError('bills cannot be updated')
    items = data.get('items')
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError('a bill needs at least one item')
    items = tuple(clean_bill_item(item) for item in items)
    discount = number(data, 'discount', default=0)
    if discount < 0:
        raise ValidationError('discount cannot be negative')
    subtotal = sum(item.price * item.quantity for item in items)
    total = subtotal - discount
    if total < 0:
        raise ValidationError('total cannot be negative')
    cleaned = {
        'items': items,
        'subtotal': subtotal,
        'discount': discount,
        'total': total,
    }
    for field in BILL_TEXT_FIELDS:
        cleaned[field] = optional_text(data, field)
    return cleaned


CLEANERS = {
    PRODUCTS: clean_product,
    CUSTOMERS: clean_customer,
    UNITS: clean_unit,
    SETTINGS: clean_settings,
    BILLS: clean_bill,
}


def clean_draft(kind: str, data: dict) -> dict:
    """
    Validate and normalize a partial entity for create.

    Args:
        kind (str): entity kind name
        data (dict): snake_case fields supplied by the caller (any id,
            created_at, subtotal or total is ignored)

    Returns:
        dict of normalized fields, without id.
    """

    if not isinstance(data, dict):
        raise ValidationError(f'{kind} data must be an object')
    return CLEANERS[kind](data, creating=True)


def clean_entity(kind: str, entity):
    """Validate and normalize a full entity for update (replace semantics)."""

    if kind == BILLS:
        raise ValidationError('bills cannot be updated')
    data = entity if isinstance(entity, dict) else entity_to_dict(entity)
    if not isinstance(data.get('id'), str) or not data['id']:
        raise ValidationError('id is required')
    if kind == SETTINGS and data['id'] != SETTINGS_ID:
        raise ValidationError(f'settings id must be "{SETTINGS_ID}"')
    cleaned = CLEANERS[kind](data, creating=False)
    return entity_from_dict(kind, {**cleaned, 'id': data['id']})


def add_price(product: Product, price) -> Product:
    """Get the product with price added to its history (same object if present)."""

    price = number({'price': price}, 'price', positive=True)
    if price in product.price_history:
        return product
    return replace(product,
                   price_history=normalize_price_history(
                       product.price, product.price_history + (price, )))
