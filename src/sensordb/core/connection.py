"""
Lazily opened, process-reused storage connection.

`ConnectionManager` owns the single SQLAlchemy engine of a runtime together
with the introspected columns of the sensor table. Both are resolved once and
reused by every later ingestion until a forced reload (after the table is
created) or an explicit `destroy()`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from sensordb.core.config_resolver import ConfigResolver
from sensordb.core.errors import ConfigResolutionError, StorageConnectionError
from sensordb.core.single_flight import SingleFlight
from sensordb.models.config import ConnectionDescriptor, ResolvedConfig
from sensordb.types import RequestContext, request_id

logger = logging.getLogger(__name__)

# Client names accepted in the metadata store, as used by existing
# deployments, mapped to SQLAlchemy driver names. Anything else is passed
# through unchanged (e.g. "duckdb" or "postgresql+psycopg").
_CLIENT_ALIASES = {
    "pg": "postgresql",
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "mysql": "mysql+pymysql",
    "mysql2": "mysql+pymysql",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
}

# Backends addressed by a file path; the database name is that path.
_FILE_BACKENDS = {"sqlite", "duckdb"}


def driver_name(client: str) -> str:
    return _CLIENT_ALIASES.get(client.strip().lower(), client.strip())


def build_engine_url(descriptor: ConnectionDescriptor) -> URL:
    drivername = driver_name(descriptor.client)
    params = descriptor.connection
    if drivername.split("+", 1)[0] in _FILE_BACKENDS:
        return URL.create(drivername, database=params.database)

    host, port = params.host, None
    if host and host.count(":") == 1:
        name, _, maybe_port = host.partition(":")
        if maybe_port.isdigit():
            host, port = name, int(maybe_port)
    return URL.create(
        drivername,
        username=params.user,
        password=params.password,
        host=host,
        port=port,
        database=params.database,
    )


def create_storage_engine(
    descriptor: ConnectionDescriptor, *, pool_pre_ping: bool = True
) -> Engine:
    url = build_engine_url(descriptor)
    kwargs: Dict[str, Any] = {}
    if url.get_backend_name() in _FILE_BACKENDS:
        # NullPool releases the file as soon as a connection is returned.
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_pre_ping"] = pool_pre_ping
    if descriptor.version:
        kwargs["execution_options"] = {"dialect_version": descriptor.version}
    return sa.create_engine(url, **kwargs)


def _type_name(column: sa.Column, engine: Engine) -> str:
    try:
        return column.type.compile(dialect=engine.dialect)
    except Exception:
        return type(column.type).__name__


def reflect_table(
    engine: Engine, table_name: str
) -> Tuple[Optional[sa.Table], Dict[str, str]]:
    """Return the reflected table and its column -> type map; (None, {}) when absent."""
    if not sa.inspect(engine).has_table(table_name):
        return None, {}
    table = sa.Table(table_name, sa.MetaData(), autoload_with=engine)
    return table, {col.name: _type_name(col, engine) for col in table.columns}


@dataclass(frozen=True)
class ConnectionHandle:
    config: ResolvedConfig
    descriptor: ConnectionDescriptor
    engine: Engine
    table: Optional[sa.Table] = None
    table_info: Mapping[str, str] = field(default_factory=dict)

    @property
    def table_exists(self) -> bool:
        return bool(self.table_info)


class ConnectionManager:
    """
    Owns the engine and table info of one runtime.

    `reuse_count` is shared by every manager in the process and counts how many
    calls were served from cache since the last fresh resolution;
    `wrap_count` counts the same for this manager only.
    """

    reuse_count = 0
    _counter_lock = threading.Lock()

    def __init__(
        self,
        resolver: ConfigResolver,
        *,
        metadata_prefix: str,
        metadata_keys: Mapping[str, Any],
        instance: Optional[str] = None,
        engine_factory: Optional[Callable[[ConnectionDescriptor], Engine]] = None,
        pool_pre_ping: bool = True,
    ) -> None:
        self.resolver = resolver
        self.metadata_prefix = metadata_prefix
        self.metadata_keys = dict(metadata_keys)
        self.instance = instance
        self._engine_factory = engine_factory or (
            lambda descriptor: create_storage_engine(
                descriptor, pool_pre_ping=pool_pre_ping
            )
        )
        self._flight: SingleFlight[ConnectionHandle] = SingleFlight()
        self._state_lock = threading.Lock()
        self._engine: Optional[Engine] = None
        self._table_info: Dict[str, str] = {}
        self.wrap_count = 0

    def resolve_config(self, req: RequestContext) -> ResolvedConfig:
        return self.resolver.resolve(
            req, self.metadata_prefix, self.metadata_keys, self.instance
        )

    def get_connection(
        self, req: RequestContext, reload: bool = False
    ) -> ConnectionHandle:
        """
        Return the cached connection, opening it on first use or when `reload` is set.

        Overlapping first callers share one open/introspect sequence. A failure
        stays cached until the next forced reload or `destroy()`.
        """
        future, owner = self._flight.claim(force=reload)
        with ConnectionManager._counter_lock:
            if owner:
                ConnectionManager.reuse_count = 0
                self.wrap_count = 0
            else:
                ConnectionManager.reuse_count += 1
                self.wrap_count += 1
        if owner:
            self._flight.settle(future, lambda: self._open(req))
        return future.result()

    def _open(self, req: RequestContext) -> ConnectionHandle:
        config = self.resolve_config(req)
        try:
            descriptor = ConnectionDescriptor.from_config(config)
        except ValueError as exc:
            raise ConfigResolutionError(str(exc)) from exc

        logger.info(
            "[sensordb] get_database_config request=%s client=%s host=%s database=%s table=%s",
            request_id(req),
            descriptor.client,
            descriptor.connection.host,
            descriptor.connection.database,
            config.table,
        )
        engine: Optional[Engine] = None
        try:
            engine = self._engine_factory(descriptor)
            with engine.connect():
                pass
            table, table_info = reflect_table(engine, config.table)
        except (SQLAlchemyError, ImportError) as exc:
            logger.error(
                "[sensordb] get_database_config failed request=%s client=%s table=%s: %s",
                request_id(req),
                descriptor.client,
                config.table,
                exc,
            )
            if engine is not None:
                engine.dispose()
            raise StorageConnectionError(
                f"Cannot open {descriptor.client} database for table {config.table!r}: {exc}"
            ) from exc

        with self._state_lock:
            previous = self._engine
            self._engine = engine
            self._table_info = dict(table_info)
        if previous is not None and previous is not engine:
            # Checked-out connections of the old engine finish their work first.
            previous.dispose()

        return ConnectionHandle(
            config=config,
            descriptor=descriptor,
            engine=engine,
            table=table,
            table_info=dict(table_info),
        )

    @property
    def engine(self) -> Optional[Engine]:
        with self._state_lock:
            return self._engine

    @property
    def table_info(self) -> Dict[str, str]:
        with self._state_lock:
            return dict(self._table_info)

    @property
    def connected(self) -> bool:
        return self.engine is not None

    def destroy(self) -> None:
        """Close the pool and forget the connection so the next call starts over."""
        with self._state_lock:
            engine = self._engine
            self._engine = None
            self._table_info = {}
            self._flight.reset()
        if engine is not None:
            engine.dispose()
        logger.debug("[sensordb] connection pool destroyed")
