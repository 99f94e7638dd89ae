"""Entity records for the billing store, plus conversion to/from the wire."""

from dataclasses import dataclass, fields, is_dataclass

PRODUCTS = 'products'
CUSTOMERS = 'customers'
UNITS = 'units'
SETTINGS = 'settings'
BILLS = 'bills'

KINDS = (PRODUCTS, CUSTOMERS, UNITS, SETTINGS, BILLS)

SETTINGS_ID = 'main'


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    unit: str
    price: float  # current price, always a member of price_history
    price_history: tuple[float, ...]  # distinct, descending


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    phone: str = ''
    address: str = ''


@dataclass(frozen=True)
class Unit:
    id: str
    name: str
    order: int = 0


@dataclass(frozen=True)
class Settings:
    id: str
    shop_name: str
    shop_address: str = ''
    shop_phone: str = ''
    shop_logo: str = ''
    bank_name: str = ''
    bank_bin: str = ''
    account_number: str = ''
    account_name: str = ''


@dataclass(frozen=True)
class BillItem:
    product_id: str
    product_name: str
    quantity: float
    unit: str
    price: float


@dataclass(frozen=True)
class Bill:
    id: str
    items: tuple[BillItem, ...]
    subtotal: float
    discount: float
    total: float
    created_at: str  # ISO-8601 UTC, assigned by the store
    customer_name: str = ''
    customer_phone: str = ''
    customer_address: str = ''
    order_code: str = ''


@dataclass(frozen=True)
class WindowTotals:
    total: float = 0
    count: int = 0


@dataclass(frozen=True)
class ReportSummary:
    today: WindowTotals
    week: WindowTotals
    month: WindowTotals
    all_time: WindowTotals


@dataclass(frozen=True)
class DailyTotals:
    date: str  # YYYY-MM-DD, local calendar day
    total: float = 0
    count: int = 0


ENTITY_TYPES = {
    PRODUCTS: Product,
    CUSTOMERS: Customer,
    UNITS: Unit,
    SETTINGS: Settings,
    BILLS: Bill,
}

DEFAULT_SETTINGS = Settings(id=SETTINGS_ID,
                            shop_name='Hạt điều Tinh Hoa Việt',
                            shop_address='TT Tân Khai, H. Hớn Quản, T. Bình Phước',
                            shop_phone='0349 939 393 - 0988 885 192',
                            shop_logo='',
                            bank_name='MB Bank',
                            bank_bin='970422',
                            account_number='0988885192',
                            account_name='PHAM THI HONG NHUNG')


def entity_type(kind: str) -> type:
    """Get the record class for a kind name (KeyError for unknown kinds)."""

    return ENTITY_TYPES[kind]


def entity_from_dict(kind: str, data: dict):
    """Build an entity of the given kind from a snake_case dict."""

    values = {f.name: data[f.name] for f in fields(entity_type(kind)) if f.name in data}
    if kind == PRODUCTS:
        values['price_history'] = tuple(values.get('price_history', ()))
    elif kind == BILLS:
        values['items'] = tuple(
            item if isinstance(item, BillItem) else BillItem(**item)
            for item in values.get('items', ()))
    return entity_type(kind)(**values)


def entity_to_dict(entity) -> dict:
    """Flatten an entity into plain dicts/lists (snake_case keys)."""

    return _plain(entity)


def _plain(value):
    if is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def to_camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def to_snake(name: str) -> str:
    return ''.join('_' + c.lower() if c.isupper() else c for c in name)


def to_wire(value):
    """Convert an entity, report record or draft dict to camelCase JSON data."""

    if is_dataclass(value):
        value = entity_to_dict(value)
    if isinstance(value, dict):
        return {to_camel(k): to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


def from_wire(value):
    """Convert camelCase JSON data to snake_case dicts (recursively)."""

    if isinstance(value, dict):
        return {to_snake(k): from_wire(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_wire(v) for v in value]
    return value


def summary_from_dict(data: dict) -> ReportSummary:
    return ReportSummary(today=WindowTotals(**data['today']),
                         week=WindowTotals(**data['week']),
                         month=WindowTotals(**data['month']),
                         all_time=WindowTotals(**data['all_time']))
