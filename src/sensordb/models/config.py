from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict

# Keys looked up in the metadata store (after the prefix, before the instance
# suffix) and their defaults. None means "no default".
METADATA_KEYS: Dict[str, Optional[str]] = {
    "client": None,  # Storage client, e.g. mysql, pg, sqlite3
    "host": None,  # Database server address, e.g. 127.0.0.1
    "user": "user",
    "password": None,
    "name": "sigfox",  # Database name (or file path for file-backed clients)
    "table": "sensordata",
    "version": None,  # Dialect version hint, only used by some clients e.g. 7.2
    "id": "uuid",  # Name of the primary key column
}


def default_metadata_keys(
    *, database: Optional[str] = None, table: Optional[str] = None
) -> Dict[str, Optional[str]]:
    """Return a copy of METADATA_KEYS with deployment-level defaults applied."""
    keys = dict(METADATA_KEYS)
    if database:
        keys["name"] = database
    if table:
        keys["table"] = table
    return keys


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


class ResolvedConfig(BaseModel):
    """
    Database settings for one deployment, resolved from the metadata store.

    Immutable once resolved; a process keeps the same instance until the
    resolver is explicitly invalidated.
    """

    model_config = ConfigDict(frozen=True)

    client: Optional[str] = None
    host: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    table: str = "sensordata"
    id_field: str = "uuid"
    schema_version: Optional[str] = None

    @classmethod
    def from_metadata_values(cls, values: Mapping[str, Any]) -> "ResolvedConfig":
        """Build from the raw key/value map (keys as in METADATA_KEYS)."""
        return cls(
            client=_as_optional_str(values.get("client")),
            host=_as_optional_str(values.get("host")),
            user=_as_optional_str(values.get("user")),
            password=_as_optional_str(values.get("password")),
            database=_as_optional_str(values.get("name")),
            table=str(values.get("table") or METADATA_KEYS["table"]),
            id_field=str(values.get("id") or METADATA_KEYS["id"]),
            schema_version=_as_optional_str(values.get("version")),
        )

    def redacted(self) -> Dict[str, Any]:
        """Dict form safe for logs and CLI output."""
        data = self.model_dump()
        if data.get("password"):
            data["password"] = "***"
        return data


class ConnectionParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None


class ConnectionDescriptor(BaseModel):
    """
    Everything needed to open the storage engine.

    `version` is a dialect hint forwarded opaquely to the engine; it is only
    set when the resolved config carries one.
    """

    model_config = ConfigDict(frozen=True)

    client: str
    connection: ConnectionParams
    version: Optional[str] = None

    @classmethod
    def from_config(cls, config: ResolvedConfig) -> "ConnectionDescriptor":
        if not config.client:
            raise ValueError("Database client is not configured.")
        return cls(
            client=config.client,
            connection=ConnectionParams(
                host=config.host,
                user=config.user,
                password=config.password,
                database=config.database,
            ),
            version=config.schema_version or None,
        )
