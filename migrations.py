"""
Schema upgrades and legacy flat-storage import for the local store.

All functions expect an active app context for the store's Flask app and
leave committing to the caller, so an upgrade step is applied in full or
rolled back.
"""

import json
import logging

from sqlalchemy import inspect

from errors import ValidationError
from models import (db, ProductRow, CustomerRow, UnitRow, SettingsRow, BillRow,
                    StoreMeta, LegacyRecord)
from schema import (PRODUCTS, SETTINGS, SETTINGS_ID, DEFAULT_SETTINGS,
                    entity_to_dict, from_wire)
from validation import clean_entity

logger = logging.getLogger(__name__)

SCHEMA_VERSION_KEY = 'schema_version'
LEGACY_IMPORT_KEY = 'legacy_import_done'

CURRENT_VERSION = 2

# tables introduced by each version
VERSION_TABLES = {
    1: (ProductRow, CustomerRow, SettingsRow),
    2: (UnitRow, BillRow),
}

LEGACY_PRODUCTS_KEY = 'products'
LEGACY_SETTINGS_KEY = 'settings'


def get_marker(key: str) -> str | None:
    marker = db.session.get(StoreMeta, key)
    return marker.value if marker else None


def set_marker(key: str, value: str):
    marker = db.session.get(StoreMeta, key)
    if marker is None:
        db.session.add(StoreMeta(key=key, value=value))
    else:
        marker.value = value
    db.session.flush()


def schema_version() -> int:
    """Persisted schema version (0 for an unversioned store)."""

    if not inspect(db.session.connection()).has_table(StoreMeta.__tablename__):
        return 0
    value = get_marker(SCHEMA_VERSION_KEY)
    return int(value) if value else 0


def upgrade() -> int:
    """
    Step the store from its persisted version up to CURRENT_VERSION.

    Each step only creates what is missing, so re-running a step after an
    interrupted upgrade is harmless.

    Returns:
        The schema version after upgrading.
    """

    StoreMeta.__table__.create(bind=db.session.connection(), checkfirst=True)
    version = schema_version()
    while version < CURRENT_VERSION:
        target = version + 1
        for row_type in VERSION_TABLES[target]:
            row_type.__table__.create(bind=db.session.connection(), checkfirst=True)
        set_marker(SCHEMA_VERSION_KEY, str(target))
        logger.info('Upgraded local store schema v%d -> v%d', version, target)
        version = target
    return version


def _legacy_blob(key: str):
    record = db.session.get(LegacyRecord, key)
    if record is None:
        return None
    try:
        return json.loads(record.value)
    except json.JSONDecodeError:
        logger.warning('Ignoring unreadable legacy %r data', key)
        return None


def _import_products(blob) -> int:
    if not isinstance(blob, list):
        return 0
    imported = 0
    for item in blob:
        if not isinstance(item, dict) or item.get('id') in (None, ''):
            logger.warning('Skipping legacy product without id')
            continue
        data = from_wire(item)
        data['id'] = str(data['id'])
        if db.session.scalar(db.select(ProductRow).filter_by(id=data['id'])):
            continue  # structured copy wins
        try:
            product = clean_entity(PRODUCTS, data)
        except ValidationError as e:
            logger.warning('Skipping legacy product %s: %s', data['id'], e)
            continue
        row = ProductRow()
        row.assign(product)
        db.session.add(row)
        imported += 1
    return imported


def _import_settings(blob) -> int:
    if not isinstance(blob, dict):
        return 0
    if db.session.scalar(db.select(SettingsRow).filter_by(id=SETTINGS_ID)):
        return 0
    data = {**entity_to_dict(DEFAULT_SETTINGS), **from_wire(blob), 'id': SETTINGS_ID}
    try:
        settings = clean_entity(SETTINGS, data)
    except ValidationError as e:
        logger.warning('Skipping legacy settings: %s', e)
        return 0
    row = SettingsRow()
    row.assign(settings)
    db.session.add(row)
    return 1


def import_legacy(force: bool = False) -> dict:
    """
    Copy legacy flat-storage products and settings into the structured tables.

    Additive only: existing structured records are never overwritten and the
    legacy rows are left in place as a backup.

    Args:
        force (bool): run even if the completion marker is already set

    Returns:
        dict with the number of imported products and settings records.
    """

    counts = {PRODUCTS: 0, SETTINGS: 0}
    if not force and get_marker(LEGACY_IMPORT_KEY):
        return counts
    if inspect(db.session.connection()).has_table(LegacyRecord.__tablename__):
        counts[PRODUCTS] = _import_products(_legacy_blob(LEGACY_PRODUCTS_KEY))
        counts[SETTINGS] = _import_settings(_legacy_blob(LEGACY_SETTINGS_KEY))
    set_marker(LEGACY_IMPORT_KEY, '1')
    if counts[PRODUCTS] or counts[SETTINGS]:
        logger.info('Imported legacy data: %d products, %d settings',
                    counts[PRODUCTS], counts[SETTINGS])
    return counts


def migrate() -> int:
    """Upgrade the schema, then run the one-shot legacy import."""

    version = upgrade()
    import_legacy()
    return version
