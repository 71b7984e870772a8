import threading
from pathlib import Path
from typing import Any, Dict, List

import pytest
import sqlalchemy as sa

from sensordb.core.connection import ConnectionManager, create_storage_engine
from sensordb.core.metadata import StaticMetadataProvider
from sensordb.core.settings import SensorDBSettings
from sensordb.models.config import ConnectionDescriptor
from sensordb.runtime import SensorSink, reset_default_sink


# --- Global Test Configuration ---


@pytest.fixture(autouse=True)
def reset_process_state():
    """
    Resets process-wide state before and after each test so counters and the
    default sink never leak between tests.
    """
    ConnectionManager.reuse_count = 0
    reset_default_sink()
    yield
    reset_default_sink()
    ConnectionManager.reuse_count = 0


# --- Core Fixtures ---


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of an isolated SQLite database file (not created yet)."""
    return tmp_path / "sensordata.db"


@pytest.fixture
def metadata_values(db_path: Path) -> Dict[str, Any]:
    """Metadata store contents pointing the default instance at the test database."""
    return {
        "sigfox-dbclient": "sqlite3",
        "sigfox-dbname": str(db_path),
        "sigfox-dbpassword": "secret",
    }


@pytest.fixture
def provider(metadata_values: Dict[str, Any]) -> StaticMetadataProvider:
    return StaticMetadataProvider(metadata_values)


@pytest.fixture
def settings() -> SensorDBSettings:
    """Defaults only; the test environment is never consulted."""
    return SensorDBSettings()


class RecordingEngineFactory:
    """
    Engine factory that counts engines and records every SQL statement they run.
    """

    def __init__(self) -> None:
        self.calls = 0
        self.statements: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, descriptor: ConnectionDescriptor) -> sa.engine.Engine:
        with self._lock:
            self.calls += 1
        engine = create_storage_engine(descriptor)
        sa.event.listen(engine, "before_cursor_execute", self._record)
        return engine

    def _record(self, conn, cursor, statement, parameters, context, executemany):
        with self._lock:
            self.statements.append(statement)

    def count(self, prefix: str) -> int:
        with self._lock:
            return sum(
                1 for stmt in self.statements if stmt.strip().upper().startswith(prefix)
            )


@pytest.fixture
def engine_factory() -> RecordingEngineFactory:
    return RecordingEngineFactory()


@pytest.fixture
def sink(provider, settings, engine_factory) -> SensorSink:
    """
    Provides a fresh, isolated SensorSink backed by a temporary SQLite file.
    """
    test_sink = SensorSink(provider, settings=settings, engine_factory=engine_factory)
    yield test_sink
    test_sink.close()


def fetch_rows(db_path: Path, table: str = "sensordata") -> List[Dict[str, Any]]:
    """Reads every row of `table` through an engine independent of the sink."""
    engine = sa.create_engine(f"sqlite:///{db_path}")
    try:
        reflected = sa.Table(table, sa.MetaData(), autoload_with=engine)
        with engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(sa.select(reflected))]
    finally:
        engine.dispose()


@pytest.fixture
def read_rows(db_path: Path):
    """Factory fixture returning the rows currently stored in the test database."""

    def _read(table: str = "sensordata") -> List[Dict[str, Any]]:
        return fetch_rows(db_path, table)

    return _read
