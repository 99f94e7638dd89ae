"""Error taxonomy shared by every storage backend."""


class StoreError(Exception):
    """Base class for record store failures."""


class ValidationError(StoreError):
    """Caller-supplied data violates an entity invariant."""


class NotFoundError(StoreError):
    """Operation targets an id that does not exist."""


class BackendUnavailable(StoreError):
    """Network or storage engine fault (no data corruption implied)."""
