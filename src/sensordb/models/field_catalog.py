"""
Declarative description of every column the sensor table may carry.

The catalog is pure data: each `FieldSpec` names a column, tags its storage
type, flags whether it gets a secondary index, and carries the column comment.
Turning a `TypeTag` into a concrete SQLAlchemy column is the job of
`sensordb.core.column_types`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


class TypeTag(str, Enum):
    UUID_PRIMARY_KEY = "uuid-primary-key"
    TIMESTAMP = "timestamp"
    STRING = "string"
    FLOAT = "float"
    INTEGER = "integer"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type_tag: TypeTag
    indexed: bool = False
    comment: str = ""


def build_catalog(specs: Iterable[FieldSpec]) -> Mapping[str, FieldSpec]:
    """Index specs by name, keeping declaration order. Duplicate names are rejected."""
    catalog: dict[str, FieldSpec] = {}
    for spec in specs:
        if spec.name in catalog:
            raise ValueError(f"Duplicate field in catalog: {spec.name}")
        catalog[spec.name] = spec
    return MappingProxyType(catalog)


# Default fields of the sensordata table.
SENSOR_FIELDS: Mapping[str, FieldSpec] = build_catalog(
    [
        FieldSpec(
            "uuid",
            TypeTag.UUID_PRIMARY_KEY,
            False,
            "Primary key: Unique message ID in UUID format, e.g. 4cf3ad36-3d3e-415c-a25b-9f8ab2bb4466",
        ),
        FieldSpec(
            "timestamp",
            TypeTag.TIMESTAMP,
            True,
            "Timestamp of message receipt at basestation., e.g. 1507798768000",
        ),
        FieldSpec(
            "localdatetime",
            TypeTag.STRING,
            False,
            "Human-readable local datetime, e.g. 2017-10-12 08:59:29",
        ),
        FieldSpec(
            "alt",
            TypeTag.FLOAT,
            False,
            "Altitude in metres above sea level, used by send-alt-structured demo, e.g. 86.4",
        ),
        FieldSpec(
            "avgSnr", TypeTag.FLOAT, False, "Sigfox average signal-to-noise ratio, e.g. 59.84"
        ),
        FieldSpec(
            "baseStationLat",
            TypeTag.FLOAT,
            False,
            "Sigfox basestation latitude.  Usually truncated to 0 decimal points, e.g. 1",
        ),
        FieldSpec(
            "baseStationLng",
            TypeTag.FLOAT,
            False,
            "Sigfox basestation longitude.  Usually truncated to 0 decimal points, e.g. 104",
        ),
        FieldSpec(
            "baseStationTime",
            TypeTag.INTEGER,
            False,
            "Sigfox timestamp of message receipt at basestation, in seconds since epoch (1/1/1970), e.g. 1507798768",
        ),
        FieldSpec(
            "data", TypeTag.STRING, False, "Sigfox message data, e.g. b0510001a421f90194056003"
        ),
        FieldSpec(
            "datetime",
            TypeTag.STRING,
            False,
            "Human-readable UTC datetime, e.g. 2017-10-12 08:59:29",
        ),
        FieldSpec("device", TypeTag.STRING, True, "Sigfox device ID, e.g. 2C1C85"),
        FieldSpec("deviceLat", TypeTag.FLOAT, False, "Latitude of GPS tracker e.g. UnaTumbler."),
        FieldSpec("deviceLng", TypeTag.FLOAT, False, "Longitude of GPS tracker e.g. UnaTumbler."),
        FieldSpec(
            "duplicate",
            TypeTag.BOOLEAN,
            True,
            "Sigfox sets to false if this is the first message received among all basestations.",
        ),
        FieldSpec("geolocLat", TypeTag.FLOAT, False, "Sigfox Geolocation latitude of device."),
        FieldSpec("geolocLng", TypeTag.FLOAT, False, "Sigfox Geolocation longitude of device."),
        FieldSpec(
            "geolocLocationAccuracy",
            TypeTag.FLOAT,
            False,
            "Sigfox Geolocation accuracy of device.",
        ),
        FieldSpec(
            "hmd",
            TypeTag.FLOAT,
            False,
            "% Humidity, used by send-alt-structured demo, e.g. 50.5",
        ),
        FieldSpec("lat", TypeTag.FLOAT, False, "Latitude for rendering in Ubidots."),
        FieldSpec("lng", TypeTag.FLOAT, False, "Longitude for rendering in Ubidots."),
        FieldSpec("rssi", TypeTag.FLOAT, True, "Sigfox signal strength, e.g. -122"),
        FieldSpec("seqNumber", TypeTag.INTEGER, True, "Sigfox message sequence number, e.g. 2426"),
        FieldSpec("snr", TypeTag.FLOAT, False, "Sigfox message signal-to-noise ratio, e.g. 21.61"),
        FieldSpec("station", TypeTag.STRING, True, "Sigfox basestation ID, e.g. 2464"),
        FieldSpec("station2", TypeTag.STRING, True, "Sigfox basestation ID, e.g. 2464"),
        FieldSpec(
            "tmp",
            TypeTag.FLOAT,
            False,
            "Temperature in degrees Celsius, used by send-alt-structured demo, e.g. 25.6",
        ),
    ]
)
