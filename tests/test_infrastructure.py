"""Engine and Redis pool configuration."""

from ride_escrow.config import settings
from ride_escrow.infrastructure import redis_client
from ride_escrow.infrastructure.database import engine_options


def test_postgres_engine_uses_configured_pool():
    options = engine_options("postgresql+asyncpg://u:p@db:5432/rides")
    assert options["pool_size"] == settings.db_pool_size
    assert options["max_overflow"] == settings.db_max_overflow
    assert options["pool_pre_ping"] is True


def test_sqlite_engine_keeps_dialect_pool():
    assert set(engine_options("sqlite+aiosqlite:///rides.db")) == {"echo"}


def test_redis_pool_is_bounded():
    assert redis_client._pool.max_connections == settings.redis_max_connections
    kwargs = redis_client._pool.connection_kwargs
    assert kwargs["socket_connect_timeout"] == settings.redis_connect_timeout
