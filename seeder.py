"""Default records every store needs before the UI can work with it."""

import logging
import threading

from schema import UNITS, SETTINGS, SETTINGS_ID, DEFAULT_SETTINGS, entity_to_dict

logger = logging.getLogger(__name__)

DEFAULT_UNITS = ('KG', 'Gói', 'Hộp', 'Túi', 'Cái')


class Seeder:
    """
    Inserts the default units and settings through any storage strategy.

    Only the first completed seed() touches the store; later calls return
    immediately.
    """

    def __init__(self, storage):
        self.storage = storage
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def seed(self):
        if self._done:
            return
        with self._lock:
            if self._done:
                return
            self.seed_units()
            self.seed_settings()
            self._done = True

    def seed_units(self) -> int:
        """Insert DEFAULT_UNITS (orders 0..n-1) together if there are no units."""

        if self.storage.list_all(UNITS):
            return 0
        self.storage.create_many(UNITS, [
            {'name': name, 'order': order}
            for order, name in enumerate(DEFAULT_UNITS)
        ])
        logger.info('Seeded %d default units', len(DEFAULT_UNITS))
        return len(DEFAULT_UNITS)

    def seed_settings(self) -> int:
        """Insert DEFAULT_SETTINGS if the singleton is missing."""

        if self.storage.get_by_id(SETTINGS, SETTINGS_ID) is not None:
            return 0
        self.storage.create(SETTINGS, entity_to_dict(DEFAULT_SETTINGS))
        logger.info('Seeded default settings')
        return 1
