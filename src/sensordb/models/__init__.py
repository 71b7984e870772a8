"""
Data structures shared across sensordb: the field catalog that drives the
sensor table schema, and the resolved deployment configuration.
"""

from __future__ import annotations

from sensordb.models.config import (
    METADATA_KEYS,
    ConnectionDescriptor,
    ConnectionParams,
    ResolvedConfig,
    default_metadata_keys,
)
from sensordb.models.field_catalog import (
    SENSOR_FIELDS,
    FieldSpec,
    TypeTag,
    build_catalog,
)

__all__ = [
    "METADATA_KEYS",
    "SENSOR_FIELDS",
    "ConnectionDescriptor",
    "ConnectionParams",
    "FieldSpec",
    "ResolvedConfig",
    "TypeTag",
    "build_catalog",
    "default_metadata_keys",
]
