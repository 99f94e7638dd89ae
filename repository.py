"""
The single API surface UI code consumes.

A Repository wraps the active storage strategy behind an init-once gate: the
first operation runs schema migration and default seeding, and every other
operation waits for that to finish. Errors from the backend are never
swallowed here.

The module-level functions forward to a process-wide repository that is
built lazily from the environment (see storage_strategy.get_storage_strategy)
unless one is installed with configure().
"""

import logging
import threading

from errors import NotFoundError
from schema import PRODUCTS, CUSTOMERS, UNITS, SETTINGS, BILLS, SETTINGS_ID
from seeder import Seeder
from storage_strategy import StorageStrategy, check_kind, get_storage_strategy
from validation import add_price

logger = logging.getLogger(__name__)


class Repository:
    """Gatekeeper in front of one storage strategy."""

    def __init__(self, storage: StorageStrategy):
        self.storage = storage
        self.seeder = Seeder(storage)
        self._ready_lock = threading.Lock()
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure_ready(self):
        """Run migration and seeding exactly once; block until done."""

        if self._ready:
            return
        with self._ready_lock:
            if self._ready:
                return
            self.storage.prepare()
            self.seeder.seed()
            self._ready = True
            logger.info('Record store ready (%s)', type(self.storage).__name__)

    def list_all(self, kind: str) -> list:
        check_kind(kind)
        self.ensure_ready()
        return self.storage.list_all(kind)

    def get_by_id(self, kind: str, entity_id: str):
        check_kind(kind)
        self.ensure_ready()
        return self.storage.get_by_id(kind, entity_id)

    def create(self, kind: str, data: dict):
        check_kind(kind)
        self.ensure_ready()
        return self.storage.create(kind, data)

    def update(self, kind: str, entity):
        check_kind(kind)
        self.ensure_ready()
        return self.storage.update(kind, entity)

    def remove(self, kind: str, entity_id: str):
        check_kind(kind)
        self.ensure_ready()
        self.storage.remove(kind, entity_id)

    def list_bills(self, start_date=None, end_date=None) -> list:
        self.ensure_ready()
        return self.storage.list_bills(start_date, end_date)

    def report_summary(self):
        self.ensure_ready()
        return self.storage.report_summary()

    def report_daily(self, days: int = 30):
        self.ensure_ready()
        return self.storage.report_daily(days)

    def add_price_to_history(self, product_id: str, price):
        """Add a price to a product's history; an existing price is a no-op."""

        product = self.get_by_id(PRODUCTS, product_id)
        if product is None:
            raise NotFoundError(f'{PRODUCTS}/{product_id} not found')
        updated = add_price(product, price)
        if updated is product:
            return product
        return self.storage.update(PRODUCTS, updated)

    def migrate_legacy(self, force: bool = False) -> dict:
        self.ensure_ready()
        return self.storage.import_legacy(force=force)


_repository: Repository | None = None
_repository_lock = threading.Lock()


def configure(storage: StorageStrategy) -> Repository:
    """Install the process-wide repository over the given strategy."""

    global _repository
    with _repository_lock:
        _repository = Repository(storage)
        return _repository


def get_repository() -> Repository:
    """Get the process-wide repository, building it from the environment once."""

    global _repository
    with _repository_lock:
        if _repository is None:
            _repository = Repository(get_storage_strategy())
        return _repository


# ============ PRODUCTS ============


def get_all_products():
    return get_repository().list_all(PRODUCTS)


def get_product(product_id):
    return get_repository().get_by_id(PRODUCTS, product_id)


def add_product(product: dict):
    return get_repository().create(PRODUCTS, product)


def update_product(product):
    return get_repository().update(PRODUCTS, product)


def delete_product(product_id):
    get_repository().remove(PRODUCTS, product_id)


def add_price_to_history(product_id, price):
    return get_repository().add_price_to_history(product_id, price)


# ============ CUSTOMERS ============


def get_all_customers():
    return get_repository().list_all(CUSTOMERS)


def get_customer(customer_id):
    return get_repository().get_by_id(CUSTOMERS, customer_id)


def add_customer(customer: dict):
    return get_repository().create(CUSTOMERS, customer)


def update_customer(customer):
    return get_repository().update(CUSTOMERS, customer)


def delete_customer(customer_id):
    get_repository().remove(CUSTOMERS, customer_id)


# ============ UNITS ============


def get_all_units():
    return get_repository().list_all(UNITS)


def get_unit(unit_id):
    return get_repository().get_by_id(UNITS, unit_id)


def add_unit(name: str):
    return get_repository().create(UNITS, {'name': name})


def update_unit(unit):
    return get_repository().update(UNITS, unit)


def delete_unit(unit_id):
    get_repository().remove(UNITS, unit_id)


def init_default_units():
    """Make sure the default units and settings exist (no-op once seeded)."""

    get_repository().ensure_ready()


# ============ SETTINGS ============


def get_settings():
    """Get the settings singleton (None if it is missing)."""

    return get_repository().get_by_id(SETTINGS, SETTINGS_ID)


def save_settings(settings):
    if isinstance(settings, dict):
        settings = {**settings, 'id': SETTINGS_ID}
    return get_repository().update(SETTINGS, settings)


init_default_settings = init_default_units


def migrate_from_local_storage(force: bool = False) -> dict:
    return get_repository().migrate_legacy(force=force)


# ============ BILLS ============


def get_all_bills(start_date=None, end_date=None):
    return get_repository().list_bills(start_date, end_date)


def get_bill(bill_id):
    return get_repository().get_by_id(BILLS, bill_id)


def save_bill(bill: dict):
    return get_repository().create(BILLS, bill)


def delete_bill(bill_id):
    get_repository().remove(BILLS, bill_id)


# ============ REPORTS ============


def get_report_summary():
    return get_repository().report_summary()


def get_daily_report(days: int = 30):
    return get_repository().report_daily(days)
