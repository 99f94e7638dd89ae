"""Persisted layout of the local store (one table per entity kind)."""

from flask_sqlalchemy import SQLAlchemy

from schema import (PRODUCTS, CUSTOMERS, UNITS, SETTINGS, BILLS,
                    entity_from_dict, entity_to_dict)

db = SQLAlchemy()


class RecordMixin:
    """Row <-> entity conversion shared by the per-kind tables."""

    kind = None

    # seq is the insertion rank; id is the public key
    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(64), unique=True, nullable=False, index=True)

    @classmethod
    def listing_order(cls):
        return (cls.seq, )

    def to_entity(self):
        data = {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns if column.key != 'seq'
        }
        return entity_from_dict(self.kind, data)

    def assign(self, entity):
        for key, value in entity_to_dict(entity).items():
            setattr(self, key, value)


class ProductRow(RecordMixin, db.Model):
    __tablename__ = PRODUCTS
    kind = PRODUCTS

    name = db.Column(db.String(255), nullable=False, index=True)
    unit = db.Column(db.String(64), nullable=False, default='')
    price = db.Column(db.Float, nullable=False)
    price_history = db.Column(db.JSON, nullable=False)


class CustomerRow(RecordMixin, db.Model):
    __tablename__ = CUSTOMERS
    kind = CUSTOMERS

    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(64), nullable=False, default='')
    address = db.Column(db.String(512), nullable=False, default='')


class UnitRow(RecordMixin, db.Model):
    __tablename__ = UNITS
    kind = UNITS

    name = db.Column(db.String(64), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0, index=True)

    @classmethod
    def listing_order(cls):
        return (cls.order, cls.seq)


class SettingsRow(RecordMixin, db.Model):
    __tablename__ = SETTINGS
    kind = SETTINGS

    shop_name = db.Column(db.String(255), nullable=False)
    shop_address = db.Column(db.String(512), nullable=False, default='')
    shop_phone = db.Column(db.String(128), nullable=False, default='')
    shop_logo = db.Column(db.Text, nullable=False, default='')
    bank_name = db.Column(db.String(128), nullable=False, default='')
    bank_bin = db.Column(db.String(32), nullable=False, default='')
    account_number = db.Column(db.String(64), nullable=False, default='')
    account_name = db.Column(db.String(255), nullable=False, default='')


class BillRow(RecordMixin, db.Model):
    __tablename__ = BILLS
    kind = BILLS

    items = db.Column(db.JSON, nullable=False)
    subtotal = db.Column(db.Float, nullable=False)
    discount = db.Column(db.Float, nullable=False, default=0)
    total = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.String(32), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False, default='')
    customer_phone = db.Column(db.String(64), nullable=False, default='')
    customer_address = db.Column(db.String(512), nullable=False, default='')
    order_code = db.Column(db.String(64), nullable=False, default='')


class StoreMeta(db.Model):
    """Single-value markers (schema version, one-shot import flags)."""

    __tablename__ = 'store_meta'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.String(255), nullable=False)


class LegacyRecord(db.Model):
    """Flat string-keyed JSON blobs written by older releases (read-only here)."""

    __tablename__ = 'legacy_storage'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)


ROW_TYPES = {
    PRODUCTS: ProductRow,
    CUSTOMERS: CustomerRow,
    UNITS: UnitRow,
    SETTINGS: SettingsRow,
    BILLS: BillRow,
}
