from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional, TypeVar

from sqlalchemy.engine import Engine

from sensordb.core.column_types import ColumnTypeBuilder
from sensordb.core.config_resolver import ConfigResolver
from sensordb.core.connection import ConnectionHandle, ConnectionManager
from sensordb.core.ingestion import IngestionPipeline
from sensordb.core.metadata import EnvironmentMetadataProvider, MetadataProvider
from sensordb.core.provisioning import ProvisionResult, SchemaProvisioner
from sensordb.core.settings import SensorDBSettings
from sensordb.models.config import (
    ConnectionDescriptor,
    ResolvedConfig,
    default_metadata_keys,
)
from sensordb.models.field_catalog import SENSOR_FIELDS, FieldSpec, TypeTag
from sensordb.types import Record, RequestContext

T = TypeVar("T")


class SensorSink:
    """
    One ingestion runtime: the caches a host process reuses across invocations.

    Every collaborator hangs off this object, so two sinks never share a
    configuration or a connection. Hosts that reuse a process should keep one
    sink alive (see `get_default_sink`).
    """

    def __init__(
        self,
        provider: MetadataProvider,
        *,
        settings: Optional[SensorDBSettings] = None,
        catalog: Mapping[str, FieldSpec] = SENSOR_FIELDS,
        builders: Optional[Mapping[TypeTag, ColumnTypeBuilder]] = None,
        engine_factory: Optional[Callable[[ConnectionDescriptor], Engine]] = None,
    ) -> None:
        self.settings = settings or SensorDBSettings.from_env()
        self.resolver = ConfigResolver(
            provider, function_name=self.settings.function_name
        )
        self.connections = ConnectionManager(
            self.resolver,
            metadata_prefix=self.settings.metadata_prefix,
            metadata_keys=default_metadata_keys(
                database=self.settings.default_database,
                table=self.settings.default_table,
            ),
            instance=self.settings.instance,
            engine_factory=engine_factory,
            pool_pre_ping=self.settings.pool_pre_ping,
        )
        self.provisioner = SchemaProvisioner(
            self.connections, catalog=catalog, builders=builders
        )
        self.pipeline = IngestionPipeline(
            self.connections,
            self.provisioner,
            destroy_pool=self.settings.destroy_pool,
        )

    def ingest(
        self,
        device: Optional[str],
        record: Record,
        passthrough: T = None,
        req: RequestContext = None,
    ) -> T:
        return self.pipeline.ingest(req, device, record, passthrough)

    def ensure_table(self, req: RequestContext = None) -> ProvisionResult:
        return self.provisioner.ensure_table(req)

    def get_config(self, req: RequestContext = None) -> ResolvedConfig:
        return self.connections.resolve_config(req)

    def get_connection(
        self, req: RequestContext = None, reload: bool = False
    ) -> ConnectionHandle:
        return self.connections.get_connection(req, reload=reload)

    def close(self) -> None:
        self.connections.destroy()

    def __enter__(self) -> "SensorSink":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def create_sink(
    provider: Optional[MetadataProvider] = None,
    *,
    settings: Optional[SensorDBSettings] = None,
    **kwargs: Any,
) -> SensorSink:
    """Build a sink, reading settings from the environment when none are given."""
    if provider is None:
        provider = EnvironmentMetadataProvider()
    return SensorSink(provider, settings=settings, **kwargs)


_DEFAULT_SINK: Optional[SensorSink] = None
_DEFAULT_LOCK = threading.Lock()


def get_default_sink() -> SensorSink:
    """Return the process-wide sink used by the hosting adapter, creating it once."""
    global _DEFAULT_SINK
    with _DEFAULT_LOCK:
        if _DEFAULT_SINK is None:
            _DEFAULT_SINK = create_sink()
            logging.debug("[sensordb] default sink created")
        return _DEFAULT_SINK


def reset_default_sink() -> None:
    global _DEFAULT_SINK
    with _DEFAULT_LOCK:
        sink, _DEFAULT_SINK = _DEFAULT_SINK, None
    if sink is not None:
        sink.close()
