"""Tests for storage_strategy.py."""

import os
import unittest
from unittest.mock import patch, Mock

import requests
from flask import Flask

from errors import ValidationError, NotFoundError, BackendUnavailable
from schema import (PRODUCTS, CUSTOMERS, UNITS, SETTINGS, BILLS, SETTINGS_ID,
                    DEFAULT_SETTINGS, entity_to_dict)
from storage_strategy import (LocalStorageStrategy, RemoteStorageStrategy,
                              get_storage_strategy)
from testing_transport import remote_session, TEST_BASE_URL
from views import create_app

BILL_DRAFT = {
    'items': [{'product_id': 'p1', 'product_name': 'Cashew', 'quantity': 2,
               'unit': 'KG', 'price': 50000}],
    'discount': 0,
    'customer_name': 'Lan'
}


class StorageStrategyFactoryTests(unittest.TestCase):
    """Tests for get_storage_strategy"""

    @patch.dict(os.environ, {'LOCAL_DB': 'sqlite:///:memory:'}, clear=True)
    def test_get_storage_strategy_local_mode(self):
        res = get_storage_strategy()

        self.assertIsInstance(res, LocalStorageStrategy)
        self.assertEqual(res.app.config['SQLALCHEMY_DATABASE_URI'],
                         'sqlite:///:memory:')

    @patch.dict(os.environ, {'LOCAL_DB': 'sqlite:///:memory:'}, clear=True)
    def test_get_storage_strategy_uses_given_app(self):
        app = Flask('__main__')

        res = get_storage_strategy(app)

        self.assertIs(res.app, app)

    @patch.dict(os.environ, {
        'STORE_API_URL': 'https://store.example.com/api/',
        'STORE_REQUEST_TIMEOUT': '3'
    }, clear=True)
    def test_get_storage_strategy_remote_mode(self):
        res = get_storage_strategy()

        self.assertIsInstance(res, RemoteStorageStrategy)
        self.assertEqual(res.base_url, 'https://store.example.com/api')
        self.assertEqual(res.timeout, 3.0)

    @patch.dict(os.environ, {'STORE_API_URL': '', 'LOCAL_DB': 'sqlite:///:memory:'},
                clear=True)
    def test_get_storage_strategy_blank_url_is_local(self):
        res = get_storage_strategy()

        self.assertIsInstance(res, LocalStorageStrategy)


class LocalStorageStrategyTests(unittest.TestCase):
    """Tests for LocalStorageStrategy"""

    def setUp(self):
        self.clock = Mock(return_value='2026-10-15T05:00:00.000Z')
        self.store = LocalStorageStrategy.in_memory(clock=self.clock)
        self.store.prepare()

    def test_prepare_reaches_current_schema(self):
        self.assertEqual(self.store.schema_version(), 2)

    def test_prepare_twice_is_harmless(self):
        self.store.create(PRODUCTS, {'name': 'Cashew', 'price': 100})

        self.store.prepare()

        self.assertEqual(len(self.store.list_all(PRODUCTS)), 1)

    def test_create_assigns_id_ignoring_caller(self):
        res = self.store.create(PRODUCTS, {
            'id': 'mine',
            'name': 'Cashew',
            'unit': 'KG',
            'price': 100
        })

        self.assertNotEqual(res.id, 'mine')
        self.assertEqual(res.price_history, (100, ))
        self.assertEqual(self.store.get_by_id(PRODUCTS, res.id), res)

    def test_create_ids_are_unique(self):
        ids = {self.store.create(CUSTOMERS, {'name': f'C{i}'}).id for i in range(5)}

        self.assertEqual(len(ids), 5)

    def test_list_in_insertion_order(self):
        for name in ('Zed', 'Amy', 'Kim'):
            self.store.create(CUSTOMERS, {'name': name})

        res = [customer.name for customer in self.store.list_all(CUSTOMERS)]

        self.assertEqual(res, ['Zed', 'Amy', 'Kim'])

    def test_get_missing_is_none(self):
        self.assertIsNone(self.store.get_by_id(PRODUCTS, 'nope'))

    def test_create_blank_name_fails(self):
        with self.assertRaises(ValidationError):
            self.store.create(CUSTOMERS, {'name': '  '})

        self.assertEqual(self.store.list_all(CUSTOMERS), [])

    def test_update_replaces(self):
        customer = self.store.create(CUSTOMERS, {'name': 'Lan', 'phone': '1'})

        self.store.update(CUSTOMERS, {'id': customer.id, 'name': 'Lan B'})

        res = self.store.get_by_id(CUSTOMERS, customer.id)
        self.assertEqual(res.name, 'Lan B')
        self.assertEqual(res.phone, '')

    def test_update_missing_fails(self):
        with self.assertRaises(NotFoundError):
            self.store.update(CUSTOMERS, {'id': 'nope', 'name': 'Lan'})

    def test_update_normalizes_price_history(self):
        product = self.store.create(PRODUCTS, {'name': 'Cashew', 'price': 100})

        res = self.store.update(PRODUCTS, {**entity_to_dict(product), 'price': 300})

        self.assertEqual(res.price_history, (300, 100))
        self.assertEqual(self.store.get_by_id(PRODUCTS, product.id), res)

    def test_remove_is_idempotent(self):
        product = self.store.create(PRODUCTS, {'name': 'Cashew', 'price': 100})

        self.store.remove(PRODUCTS, product.id)
        self.store.remove(PRODUCTS, product.id)

        self.assertEqual(self.store.list_all(PRODUCTS), [])

    def test_units_sorted_by_order(self):
        self.store.create(UNITS, {'name': 'B', 'order': 5})
        self.store.create(UNITS, {'name': 'A', 'order': 1})
        self.store.create(UNITS, {'name': 'C', 'order': 1})

        res = [unit.name for unit in self.store.list_all(UNITS)]

        self.assertEqual(res, ['A', 'C', 'B'])

    def test_unit_order_assigned_after_highest(self):
        first = self.store.create(UNITS, {'name': 'KG'})
        self.store.create(UNITS, {'name': 'Box', 'order': 7})

        res = self.store.create(UNITS, {'name': 'Bag'})

        self.assertEqual(first.order, 0)
        self.assertEqual(res.order, 8)

    def test_create_many_is_all_or_nothing(self):
        with self.assertRaises(ValidationError):
            self.store.create_many(UNITS, [{'name': 'Box'}, {'name': '  '}])

        res = self.store.create_many(UNITS, [{'name': 'Box'}, {'name': 'Bag'}])

        self.assertEqual([u.order for u in res], [0, 1])
        self.assertEqual(self.store.list_all(UNITS), res)

    def test_settings_singleton(self):
        created = self.store.create(SETTINGS, entity_to_dict(DEFAULT_SETTINGS))

        self.assertEqual(created.id, SETTINGS_ID)
        with self.assertRaises(ValidationError):
            self.store.create(SETTINGS, entity_to_dict(DEFAULT_SETTINGS))
        with self.assertRaises(ValidationError):
            self.store.remove(SETTINGS, SETTINGS_ID)
        self.assertEqual(len(self.store.list_all(SETTINGS)), 1)

    def test_bill_created_at_from_store_clock(self):
        res = self.store.create(BILLS, {**BILL_DRAFT,
                                        'created_at': '1999-01-01T00:00:00Z'})

        self.assertEqual(res.created_at, '2026-10-15T05:00:00.000Z')
        self.assertEqual(res.total, 100000)
        self.assertEqual(self.store.get_by_id(BILLS, res.id), res)

    def test_bill_cannot_be_updated(self):
        bill = self.store.create(BILLS, BILL_DRAFT)

        with self.assertRaises(ValidationError):
            self.store.update(BILLS, bill)

    def test_list_bills_by_date(self):
        self.store.create(BILLS, BILL_DRAFT)

        self.assertEqual(len(self.store.list_bills('2026-10-01', '2026-10-31')), 1)
        self.assertEqual(self.store.list_bills(end_date='2026-09-30'), [])

    def test_unknown_kind(self):
        with self.assertRaises(NotFoundError):
            self.store.list_all('widgets')

    def test_storage_fault_becomes_backend_unavailable(self):
        fresh = LocalStorageStrategy.in_memory()  # no tables yet

        with self.assertRaises(BackendUnavailable):
            fresh.list_all(PRODUCTS)


class RemoteStorageStrategyTests(unittest.TestCase):
    """Tests for RemoteStorageStrategy against the Flask server"""

    def setUp(self):
        app, _ = create_app(testing=True)
        session, self.adapter = remote_session(app)
        self.store = RemoteStorageStrategy(TEST_BASE_URL, session=session)

    def test_create_and_get(self):
        created = self.store.create(PRODUCTS, {'name': 'Cashew', 'unit': 'KG',
                                               'price': 100})

        res = self.store.get_by_id(PRODUCTS, created.id)

        self.assertEqual(res, created)
        self.assertEqual(res.price_history, (100, ))

    def test_get_missing_is_none(self):
        self.assertIsNone(self.store.get_by_id(CUSTOMERS, 'nope'))

    def test_server_seeds_defaults(self):
        self.assertEqual(len(self.store.list_all(UNITS)), 5)
        self.assertEqual(self.store.get_by_id(SETTINGS, SETTINGS_ID),
                         DEFAULT_SETTINGS)

    def test_validation_error_round_trips(self):
        with self.assertRaises(ValidationError):
            self.store.create(CUSTOMERS, {'name': ''})

    def test_update_without_id_is_validation_error(self):
        calls_before = len(self.adapter.calls)

        with self.assertRaises(ValidationError):
            self.store.update(CUSTOMERS, {'name': 'Lan'})
        self.assertEqual(len(self.adapter.calls), calls_before)

    def test_update_missing_fails(self):
        with self.assertRaises(NotFoundError):
            self.store.update(CUSTOMERS, {'id': 'nope', 'name': 'Lan'})

    def test_remove_is_idempotent(self):
        customer = self.store.create(CUSTOMERS, {'name': 'Lan'})

        self.store.remove(CUSTOMERS, customer.id)
        self.store.remove(CUSTOMERS, customer.id)

        self.assertEqual(self.store.list_all(CUSTOMERS), [])

    def test_list_bills_sends_date_range(self):
        self.store.create(BILLS, BILL_DRAFT)

        self.store.list_bills('2026-10-01', '2026-10-31')

        self.assertIn(('GET', '/bills?startDate=2026-10-01&endDate=2026-10-31'),
                      self.adapter.calls)

    def test_reports(self):
        self.store.create(BILLS, BILL_DRAFT)

        summary = self.store.report_summary()
        daily = self.store.report_daily(7)

        self.assertEqual(summary.all_time.count, 1)
        self.assertEqual(summary.today.total, 100000)
        self.assertEqual(len(daily), 7)
        self.assertEqual(daily[-1].count, 1)


class RemoteStorageFaultTests(unittest.TestCase):
    """Tests for RemoteStorageStrategy failure mapping"""

    def setUp(self):
        self.session = Mock()
        self.store = RemoteStorageStrategy('http://store.test', session=self.session)

    def response(self, status_code, body=b'', json_body=None):
        response = Mock(status_code=status_code,
                        ok=200 <= status_code < 300,
                        content=body,
                        reason='Reason')
        response.json.return_value = json_body
        return response

    def test_transport_error_is_backend_unavailable(self):
        self.session.request.side_effect = requests.ConnectionError('down')

        with self.assertRaises(BackendUnavailable):
            self.store.list_all(PRODUCTS)
        self.session.request.assert_called_once()

    def test_server_error_is_backend_unavailable_without_retry(self):
        self.session.request.return_value = self.response(500)

        with self.assertRaises(BackendUnavailable):
            self.store.create(CUSTOMERS, {'name': 'Lan'})
        self.session.request.assert_called_once()

    def test_get_server_error_is_not_swallowed(self):
        self.session.request.return_value = self.response(503)

        with self.assertRaises(BackendUnavailable):
            self.store.get_by_id(CUSTOMERS, 'c1')

    def test_bad_request_is_validation_error(self):
        self.session.request.return_value = self.response(
            400, b'{}', {'message': 'name is required'})

        with self.assertRaisesRegex(ValidationError, 'name is required'):
            self.store.create(CUSTOMERS, {'name': ''})

    def test_delete_not_found_is_ignored(self):
        self.session.request.return_value = self.response(404)

        self.store.remove(CUSTOMERS, 'c1')

    def test_request_uses_timeout_and_camel_case(self):
        self.session.request.return_value = self.response(
            201, b'{}', {'id': 'p1', 'name': 'A', 'unit': '', 'price': 5,
                         'priceHistory': [5]})

        res = self.store.create(PRODUCTS, {'name': 'A', 'price': 5})

        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('POST', 'http://store.test/products'))
        self.assertEqual(kwargs['timeout'], 10.0)
        self.assertEqual(res.price_history, (5, ))


if __name__ == '__main__':
    unittest.main()
