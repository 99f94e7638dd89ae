"""Environment-driven configuration."""

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class StoreConfig:
    store_api_url: str | None = None  # remote store base URL; local if unset
    local_db: str = 'sqlite:///billing.sqlite3'
    request_timeout: float = 10.0  # seconds per remote request
    log_level: str = 'INFO'
    port: int = 7000
    debug: bool = False


def load_config() -> StoreConfig:
    """Read configuration from the environment at call time."""

    return StoreConfig(
        store_api_url=os.environ.get('STORE_API_URL') or None,
        local_db=os.environ.get('LOCAL_DB', StoreConfig.local_db),
        request_timeout=float(
            os.environ.get('STORE_REQUEST_TIMEOUT', StoreConfig.request_timeout)),
        log_level=os.environ.get('LOG_LEVEL', StoreConfig.log_level).upper(),
        port=int(os.environ.get('PORT', StoreConfig.port)),
        debug=os.environ.get('FLASK_DEBUG', '').lower() in ('1', 'true'))
