"""sensordb exception hierarchy.

Each stage of the ingestion path raises its own error type. Storage errors
from SQLAlchemy are chained as `__cause__`.
"""

from __future__ import annotations


class SensorDBError(Exception):
    """Base exception for all sensordb failures."""


class ConfigResolutionError(SensorDBError):
    """Raised when deployment configuration cannot be resolved."""


class StorageConnectionError(SensorDBError):
    """Raised when the storage engine cannot be opened or introspected."""


class SchemaProvisionError(SensorDBError):
    """Raised when the sensor table cannot be created."""


class InsertionError(SensorDBError):
    """Describes a row that could not be stored. Carried as a value, not raised out of ingest."""

    def __init__(self, message: str, *, table: str, row: dict) -> None:
        super().__init__(message)
        self.table = table
        self.row = row
