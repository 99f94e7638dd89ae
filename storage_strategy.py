"""Storage-related functionality for the billing store."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
import threading
import uuid

import requests
from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

import migrations
import reports
from config import load_config
from errors import ValidationError, NotFoundError, BackendUnavailable
from models import db, ROW_TYPES
from schema import (KINDS, UNITS, SETTINGS, BILLS, SETTINGS_ID,
                    entity_from_dict, summary_from_dict, to_wire, from_wire,
                    DailyTotals, ReportSummary)
from validation import clean_draft, clean_entity

logger = logging.getLogger(__name__)


def check_kind(kind: str):
    if kind not in KINDS:
        raise NotFoundError(f'Unknown collection: {kind}')


class StorageStrategy(ABC):
    """
    Abstract base for storage behavior.

    Kinds are the collection names in schema.KINDS. Entities come back as the
    frozen records from schema.py.
    """

    def prepare(self):
        """Bring the backend to a usable state (schema upgrades, imports)."""

    def import_legacy(self, force: bool = False) -> dict:
        """Import legacy flat-storage data (nothing to import by default)."""

        return {}

    @abstractmethod
    def list_all(self, kind: str) -> list:
        """Get every entity of a kind in listing order."""

        raise NotImplementedError()

    @abstractmethod
    def get_by_id(self, kind: str, entity_id: str):
        """Get one entity, or None if it does not exist."""

        raise NotImplementedError()

    @abstractmethod
    def create(self, kind: str, data: dict):
        """Persist a new entity from a partial one and return it."""

        raise NotImplementedError()

    def create_many(self, kind: str, drafts: list) -> list:
        """Create several entities in order (one create per draft by default)."""

        return [self.create(kind, data) for data in drafts]

    @abstractmethod
    def update(self, kind: str, entity):
        """Replace an existing entity (NotFoundError if its id is unknown)."""

        raise NotImplementedError()

    @abstractmethod
    def remove(self, kind: str, entity_id: str):
        """Delete an entity; deleting a missing id is not an error."""

        raise NotImplementedError()

    def list_bills(self, start_date=None, end_date=None) -> list:
        """Get bills created within an inclusive local-date range."""

        return reports.filter_by_dates(self.list_all(BILLS), start_date,
                                       end_date)

    def report_summary(self) -> ReportSummary:
        """Revenue totals for today, this week, this month and all time."""

        return reports.summarize(self.list_all(BILLS))

    def report_daily(self, days: int = 30) -> list[DailyTotals]:
        """Per-day revenue for the last `days` days, oldest first."""

        return reports.daily_totals(self.list_all(BILLS), days)


class LocalStorageStrategy(StorageStrategy):
    """Storage strategy persisting to a SQL database on this device."""

    def __init__(self, app: Flask, database_uri: str | None = None,
                 clock=None):
        if database_uri:
            app.config['SQLALCHEMY_DATABASE_URI'] = database_uri
        app.config.setdefault('SQLALCHEMY_DATABASE_URI',
                              load_config().local_db)
        if 'sqlalchemy' not in app.extensions:
            db.init_app(app)
        self.app = app
        self.clock = clock or reports.utc_timestamp
        self._lock = threading.RLock()

    @classmethod
    def in_memory(cls, clock=None) -> 'LocalStorageStrategy':
        """Get a strategy backed by a private in-memory database."""

        return cls(Flask(__name__), 'sqlite:///:memory:', clock=clock)

    @contextmanager
    def _session(self):
        """Yield the session inside an app context; commit or roll back."""

        with self._lock, self.app.app_context():
            try:
                yield db.session
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.exception('Local store operation failed')
                raise BackendUnavailable(str(e)) from e
            except Exception:
                db.session.rollback()
                raise

    def prepare(self):
        """Run schema upgrades and the one-shot legacy import."""

        with self._session():
            version = migrations.migrate()
        logger.debug('Local store ready at schema v%d', version)

    def import_legacy(self, force: bool = False) -> dict:
        """Run the legacy import now (force ignores the completion marker)."""

        with self._session():
            return migrations.import_legacy(force=force)

    def schema_version(self) -> int:
        """Persisted schema version (0 before the first upgrade)."""

        with self._session():
            return migrations.schema_version()

    def _row(self, kind: str, entity_id: str):
        """Find a row by public id in the current session."""

        return db.session.scalar(
            db.select(ROW_TYPES[kind]).filter_by(id=entity_id))

    def list_all(self, kind: str) -> list:
        """Get every entity of a kind from the database in listing order."""

        check_kind(kind)
        row_type = ROW_TYPES[kind]
        with self._session() as session:
            rows = session.scalars(
                db.select(row_type).order_by(*row_type.listing_order()))
            return [row.to_entity() for row in rows]

    def get_by_id(self, kind: str, entity_id: str):
        """Get one entity by id (or None)."""

        check_kind(kind)
        with self._session():
            row = self._row(kind, entity_id)
            return row.to_entity() if row else None

    def _insert(self, session, kind: str, fields: dict):
        """Add one cleaned record to the session, assigning its id."""

        row_type = ROW_TYPES[kind]
        if kind == SETTINGS:
            if self._row(SETTINGS, SETTINGS_ID) is not None:
                raise ValidationError('settings already exist')
            fields['id'] = SETTINGS_ID
        else:
            fields['id'] = str(uuid.uuid4())
        if kind == UNITS and 'order' not in fields:
            highest = session.scalar(db.select(db.func.max(row_type.order)))
            fields['order'] = 0 if highest is None else highest + 1
        if kind == BILLS:
            fields['created_at'] = self.clock()
        entity = entity_from_dict(kind, fields)
        row = row_type()
        row.assign(entity)
        session.add(row)
        session.flush()
        return entity

    def create(self, kind: str, data: dict):
        """Insert a new entity with a store-assigned id."""

        check_kind(kind)
        fields = clean_draft(kind, data)
        with self._session() as session:
            return self._insert(session, kind, fields)

    def create_many(self, kind: str, drafts: list) -> list:
        """Insert several entities in one transaction (all or none)."""

        check_kind(kind)
        cleaned = [clean_draft(kind, data) for data in drafts]
        with self._session() as session:
            return [self._insert(session, kind, fields) for fields in cleaned]

    def update(self, kind: str, entity):
        """Replace the stored row for entity.id."""

        check_kind(kind)
        entity = clean_entity(kind, entity)
        with self._session():
            row = self._row(kind, entity.id)
            if row is None:
                raise NotFoundError(f'{kind}/{entity.id} not found')
            row.assign(entity)
        return entity

    def remove(self, kind: str, entity_id: str):
        """Delete the row for entity_id if there is one."""

        check_kind(kind)
        if kind == SETTINGS:
            raise ValidationError('settings cannot be deleted')
        with self._session() as session:
            row = self._row(kind, entity_id)
            if row is not None:
                session.delete(row)


class RemoteStorageStrategy(StorageStrategy):
    """Storage strategy talking JSON over HTTP to a remote record store."""

    def __init__(self, base_url: str, session: requests.Session | None = None,
                 timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs):
        """
        Perform one request (never retried).

        Returns:
            Decoded JSON body, or None for an empty response.

        Raises:
            ValidationError on 400, NotFoundError on 404 and
            BackendUnavailable on any other failure.
        """

        url = f'{self.base_url}{path}'
        try:
            response = self.session.request(method, url, timeout=self.timeout,
                                            **kwargs)
        except requests.RequestException as e:
            logger.warning('%s %s failed: %s', method, url, e)
            raise BackendUnavailable(f'{method} {path}: {e}') from e

        if response.status_code == 400:
            raise ValidationError(self._message(response))
        if response.status_code == 404:
            raise NotFoundError(self._message(response))
        if not response.ok:
            logger.warning('%s %s returned %d', method, url,
                           response.status_code)
            raise BackendUnavailable(
                f'{method} {path}: HTTP {response.status_code}')
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendUnavailable(f'{method} {path}: invalid JSON') from e

    @staticmethod
    def _message(response) -> str:
        try:
            return response.json().get('message', response.reason)
        except (ValueError, AttributeError):
            return response.reason or str(response.status_code)

    def list_all(self, kind: str) -> list:
        check_kind(kind)
        return [entity_from_dict(kind, from_wire(item))
                for item in self._request('GET', f'/{kind}')]

    def get_by_id(self, kind: str, entity_id: str):
        check_kind(kind)
        try:
            data = self._request('GET', f'/{kind}/{entity_id}')
        except NotFoundError:
            return None
        return entity_from_dict(kind, from_wire(data))

    def create(self, kind: str, data: dict):
        check_kind(kind)
        created = self._request('POST', f'/{kind}', json=to_wire(data))
        return entity_from_dict(kind, from_wire(created))

    def update(self, kind: str, entity):
        check_kind(kind)
        entity_id = entity.get('id') if isinstance(entity, dict) else entity.id
        if not isinstance(entity_id, str) or not entity_id:
            raise ValidationError('id is required')
        updated = self._request('PUT', f'/{kind}/{entity_id}',
                                json=to_wire(entity))
        return entity_from_dict(kind, from_wire(updated))

    def remove(self, kind: str, entity_id: str):
        check_kind(kind)
        try:
            self._request('DELETE', f'/{kind}/{entity_id}')
        except NotFoundError:
            pass

    def list_bills(self, start_date=None, end_date=None) -> list:
        params = {}
        if start_date:
            params['startDate'] = reports.parse_date(start_date).isoformat()
        if end_date:
            params['endDate'] = reports.parse_date(end_date).isoformat()
        return [entity_from_dict(BILLS, from_wire(item))
                for item in self._request('GET', f'/{BILLS}', params=params)]

    def report_summary(self) -> ReportSummary:
        return summary_from_dict(from_wire(
            self._request('GET', '/reports/summary')))

    def report_daily(self, days: int = 30) -> list[DailyTotals]:
        data = self._request('GET', '/reports/daily', params={'days': days})
        return [DailyTotals(**item) for item in data]


def get_storage_strategy(app: Flask | None = None) -> StorageStrategy:
    """
    Factory function to get a storage strategy based on the current environment.

    If 'STORE_API_URL' is set, the remote store at that URL is used.
    Otherwise records live in the local database named by 'LOCAL_DB'.

    Args:
        app (Flask|None): the Flask app hosting the local database (a private
            one is created when None)

    Returns:
        The new storage strategy instance.
    """

    config = load_config()
    if config.store_api_url:
        return RemoteStorageStrategy(config.store_api_url,
                                     timeout=config.request_timeout)

    return LocalStorageStrategy(app or Flask(__name__), config.local_db)
