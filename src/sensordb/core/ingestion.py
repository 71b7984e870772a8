"""
Per-record ingestion into the sensor table.

A record goes through: resolve config and connection, create the table if it
is missing, drop fields the live table does not have, coerce `timestamp`,
insert. A failed insert is logged and returned as an `InsertFailure`; it never
raises out of `ingest`, so one bad record does not hold up the message chain
the pipeline is part of.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, TypeVar, Union

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from sensordb.core.connection import ConnectionHandle, ConnectionManager
from sensordb.core.errors import InsertionError
from sensordb.core.provisioning import SchemaProvisioner, resolve_in_parallel
from sensordb.types import Record, RequestContext, request_id

logger = logging.getLogger(__name__)

UTC = timezone.utc
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
TIMESTAMP_FIELD = "timestamp"

_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")

T = TypeVar("T")


@dataclass(frozen=True)
class InsertOutcome:
    table: str
    row: Dict[str, Any]
    rowcount: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class InsertFailure:
    error: InsertionError
    device: Optional[str] = None
    row: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False


InsertResult = Union[InsertOutcome, InsertFailure]


def coerce_timestamp(value: Any) -> datetime:
    """
    Convert milliseconds since the epoch to an aware UTC datetime.

    Accepts ints, floats (truncated) and strings with a leading integer, e.g.
    ``"1507798768000"``. Datetimes are returned unchanged.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a millisecond timestamp: {value!r}")
    if isinstance(value, (int, float)):
        millis = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if not match:
            raise ValueError(f"Not a millisecond timestamp: {value!r}")
        millis = int(match.group(1))
    else:
        raise ValueError(f"Not a millisecond timestamp: {value!r}")
    return EPOCH + timedelta(milliseconds=millis)


def filter_known_fields(record: Record, columns: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a new row holding only the keys of `record` that are live columns."""
    return {key: value for key, value in record.items() if key in columns}


class IngestionPipeline:
    def __init__(
        self,
        manager: ConnectionManager,
        provisioner: SchemaProvisioner,
        *,
        destroy_pool: bool = False,
    ) -> None:
        self.manager = manager
        self.provisioner = provisioner
        self.destroy_pool = destroy_pool

    def ingest(
        self,
        req: RequestContext,
        device: Optional[str],
        record: Record,
        passthrough: T,
    ) -> T:
        """
        Store `record` for `device` and hand back `passthrough` unchanged.

        Configuration, connection and table creation errors propagate; insert
        errors are logged and swallowed.
        """
        config, handle = resolve_in_parallel(self.manager, req)
        if not handle.table_exists:
            self.provisioner.ensure_table(req)
            handle = self.manager.get_connection(req)

        row = filter_known_fields(record, handle.table_info)
        result = self.insert_row(req, device, handle, row)

        if self.destroy_pool:
            # Lambda will not finish while the pool holds sockets open.
            self.manager.destroy()

        logger.info(
            "[sensordb] task request=%s device=%s table=%s ok=%s reuse_count=%s wrap_count=%s",
            request_id(req),
            device,
            config.table,
            result.ok,
            ConnectionManager.reuse_count,
            self.manager.wrap_count,
        )
        return passthrough

    def insert_row(
        self,
        req: RequestContext,
        device: Optional[str],
        handle: ConnectionHandle,
        row: Dict[str, Any],
    ) -> InsertResult:
        table_name = handle.config.table
        row = dict(row)
        try:
            if row.get(TIMESTAMP_FIELD):
                row[TIMESTAMP_FIELD] = coerce_timestamp(row[TIMESTAMP_FIELD])
            if handle.table is None:
                raise SQLAlchemyError(f"Table {table_name!r} has not been reflected")
            with handle.engine.begin() as conn:
                result = conn.execute(sa.insert(handle.table).values(row))
        except (SQLAlchemyError, ValueError, OverflowError) as exc:
            error = InsertionError(
                f"Insert into {table_name!r} failed: {exc}", table=table_name, row=row
            )
            error.__cause__ = exc
            logger.error(
                "[sensordb] task insert failed request=%s device=%s table=%s row=%s "
                "reuse_count=%s wrap_count=%s: %s",
                request_id(req),
                device,
                table_name,
                row,
                ConnectionManager.reuse_count,
                self.manager.wrap_count,
                exc,
            )
            return InsertFailure(error=error, device=device, row=row)

        return InsertOutcome(table=table_name, row=row, rowcount=result.rowcount)
