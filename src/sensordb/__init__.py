"""
sensordb: store device telemetry records in a SQL table.

The table is created from a declarative field catalog on first use, and the
database connection is resolved lazily and reused across invocations of a
short-lived host process (AWS Lambda, Cloud Functions, worker pools).
"""

# Models
from sensordb.models.config import ConnectionDescriptor, ResolvedConfig
from sensordb.models.field_catalog import SENSOR_FIELDS, FieldSpec, TypeTag

# Core
from sensordb.core.config_resolver import ConfigResolver, instance_suffix
from sensordb.core.connection import ConnectionHandle, ConnectionManager
from sensordb.core.errors import (
    ConfigResolutionError,
    InsertionError,
    SchemaProvisionError,
    SensorDBError,
    StorageConnectionError,
)
from sensordb.core.ingestion import (
    IngestionPipeline,
    InsertFailure,
    InsertOutcome,
    coerce_timestamp,
    filter_known_fields,
)
from sensordb.core.metadata import (
    EnvironmentMetadataProvider,
    MetadataProvider,
    StaticMetadataProvider,
)
from sensordb.core.provisioning import ProvisionResult, SchemaProvisioner
from sensordb.core.settings import SensorDBSettings

# Runtime
from sensordb.runtime import SensorSink, create_sink, get_default_sink
from sensordb.handler import handle_message

__all__ = [
    # Models
    "ConnectionDescriptor",
    "FieldSpec",
    "ResolvedConfig",
    "SENSOR_FIELDS",
    "TypeTag",
    # Core objects
    "ConfigResolver",
    "ConnectionHandle",
    "ConnectionManager",
    "IngestionPipeline",
    "SchemaProvisioner",
    "ProvisionResult",
    "InsertOutcome",
    "InsertFailure",
    "SensorDBSettings",
    # Metadata providers
    "MetadataProvider",
    "EnvironmentMetadataProvider",
    "StaticMetadataProvider",
    # Errors
    "SensorDBError",
    "ConfigResolutionError",
    "StorageConnectionError",
    "SchemaProvisionError",
    "InsertionError",
    # Helpers
    "coerce_timestamp",
    "filter_known_fields",
    "instance_suffix",
    "SensorSink",
    "create_sink",
    "get_default_sink",
    "handle_message",
]
