"""
HTTP routing and behavior for the remote record store,
separated from app.py for testing purposes.
"""

import logging

from flask import Flask, jsonify, request

from config import load_config
from errors import ValidationError, NotFoundError, BackendUnavailable
from repository import Repository
from schema import BILLS, from_wire, to_wire
from storage_strategy import LocalStorageStrategy, check_kind

logger = logging.getLogger(__name__)


def create_app(testing: bool) -> tuple[Flask, Repository]:
    """Initiate and get the "global" objects for the Flask app."""

    app = Flask(__name__)

    if testing:
        storage = LocalStorageStrategy(app, 'sqlite:///:memory:')
    else:
        storage = LocalStorageStrategy(app, load_config().local_db)
    repository = Repository(storage)

    @app.errorhandler(ValidationError)
    def validation_error(e):
        return jsonify({'message': str(e)}), 400

    @app.errorhandler(NotFoundError)
    def not_found(e):
        return jsonify({'message': str(e)}), 404

    @app.errorhandler(BackendUnavailable)
    def backend_unavailable(e):
        logger.error('Store fault: %s', e)
        return jsonify({'message': 'Store unavailable'}), 503

    def request_data() -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')
        return from_wire(data)

    @app.route('/reports/summary', methods=['GET'])
    def report_summary():
        """
        HTTP GET method for revenue totals.

        Returns:
            {today, week, month, allTime}, each {total, count}.
        """

        return jsonify(to_wire(repository.report_summary()))

    @app.route('/reports/daily', methods=['GET'])
    def report_daily():
        """
        HTTP GET method for per-day revenue.

        Args:
            request.args['days'] (int): window length (default 30)

        Returns:
            list of {date, total, count}, oldest first.
        """

        days = request.args.get('days', 30)
        try:
            days = int(days)
        except ValueError:
            raise ValidationError('days must be a positive integer')
        return jsonify(to_wire(repository.report_daily(days)))

    @app.route('/<string:kind>', methods=['GET'])
    def list_records(kind):
        """
        HTTP GET method to list a collection.

        Bills accept optional startDate/endDate (inclusive ISO dates).
        """

        check_kind(kind)
        if kind == BILLS:
            records = repository.list_bills(request.args.get('startDate'),
                                            request.args.get('endDate'))
        else:
            records = repository.list_all(kind)
        return jsonify(to_wire(records))

    @app.route('/<string:kind>', methods=['POST'])
    def create_record(kind):
        """
        HTTP POST method to create a record.

        Returns:
            tuple(record, 201) with the id (and createdAt for bills)
            assigned by the store.
        """

        check_kind(kind)
        created = repository.create(kind, request_data())
        return jsonify(to_wire(created)), 201

    @app.route('/<string:kind>/<string:record_id>', methods=['GET'])
    def get_record(kind, record_id):
        """HTTP GET method to fetch one record (404 if missing)."""

        record = repository.get_by_id(kind, record_id)
        if record is None:
            return jsonify({'message': f'{kind}/{record_id} not found'}), 404
        return jsonify(to_wire(record))

    @app.route('/<string:kind>/<string:record_id>', methods=['PUT'])
    def update_record(kind, record_id):
        """
        HTTP PUT method to replace a record.

        The body id, when present, must match the id in the path.
        """

        data = request_data()
        if data.setdefault('id', record_id) != record_id:
            raise ValidationError('Record id does not match the URL')
        return jsonify(to_wire(repository.update(kind, data)))

    @app.route('/<string:kind>/<string:record_id>', methods=['DELETE'])
    def delete_record(kind, record_id):
        """HTTP DELETE method; deleting a missing record still gives 204."""

        repository.remove(kind, record_id)
        return '', 204

    return app, repository
