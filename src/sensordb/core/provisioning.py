"""
Create-once provisioning of the sensor table from the field catalog.

There is no schema evolution: when the table already exists nothing is
altered, and catalog fields added later are not retrofitted.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from sensordb.core.column_types import (
    COLUMN_BUILDERS,
    ColumnTypeBuilder,
    build_column,
    timestamp_columns,
)
from sensordb.core.connection import ConnectionHandle, ConnectionManager
from sensordb.core.errors import SchemaProvisionError
from sensordb.models.config import ResolvedConfig
from sensordb.models.field_catalog import SENSOR_FIELDS, FieldSpec, TypeTag
from sensordb.types import RequestContext, request_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionResult:
    table: str
    id_field: str
    created: bool
    skipped_fields: List[str] = field(default_factory=list)


def resolve_in_parallel(
    manager: ConnectionManager, req: RequestContext
) -> Tuple[ResolvedConfig, ConnectionHandle]:
    """
    Resolve configuration and connection concurrently.

    Either failure propagates. The connection itself waits on the same
    configuration flight, so the provider is still consulted only once.
    Once both are settled they are read directly.
    """
    if manager.resolver.resolved and manager.connected:
        return manager.resolve_config(req), manager.get_connection(req)
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="sensordb") as pool:
        handle_future = pool.submit(manager.get_connection, req)
        config_future = pool.submit(manager.resolve_config, req)
        return config_future.result(), handle_future.result()


def build_table(
    metadata: sa.MetaData,
    config: ResolvedConfig,
    catalog: Mapping[str, FieldSpec],
    builders: Optional[Mapping[TypeTag, ColumnTypeBuilder]] = None,
    req: RequestContext = None,
) -> Tuple[sa.Table, List[str]]:
    """Declare the table on `metadata`. Returns it with the names of fields that had no column type."""
    columns: List[sa.Column] = []
    skipped: List[str] = []
    for name, spec in catalog.items():
        column = build_column(spec, id_field=config.id_field, builders=builders)
        if column is None:
            logger.error(
                "[sensordb] create_table request=%s: unknown field type %s for %s",
                request_id(req),
                spec.type_tag,
                name,
            )
            skipped.append(name)
            continue
        columns.append(column)
    for name, column in timestamp_columns().items():
        if name not in catalog:
            columns.append(column)
    return sa.Table(config.table, metadata, *columns), skipped


class SchemaProvisioner:
    def __init__(
        self,
        manager: ConnectionManager,
        *,
        catalog: Mapping[str, FieldSpec] = SENSOR_FIELDS,
        builders: Optional[Mapping[TypeTag, ColumnTypeBuilder]] = None,
    ) -> None:
        self.manager = manager
        self.catalog = catalog
        self.builders = COLUMN_BUILDERS if builders is None else builders
        self._lock = threading.Lock()

    def ensure_table(self, req: RequestContext = None) -> ProvisionResult:
        """
        Create the configured table unless it exists, then refresh the table info.

        Calls within one process are serialized; a table created by another
        process in the meantime counts as existing.
        """
        config, handle = resolve_in_parallel(self.manager, req)
        with self._lock:
            return self._ensure_locked(req, config, handle)

    def _ensure_locked(
        self,
        req: RequestContext,
        config: ResolvedConfig,
        handle: ConnectionHandle,
    ) -> ProvisionResult:
        table, id_field = config.table, config.id_field
        engine = handle.engine
        logger.info(
            "[sensordb] create_table request=%s table=%s id=%s",
            request_id(req),
            table,
            id_field,
        )

        try:
            exists = sa.inspect(engine).has_table(table)
        except SQLAlchemyError as exc:
            raise SchemaProvisionError(
                f"Cannot check whether table {table!r} exists: {exc}"
            ) from exc

        if exists:
            if not handle.table_exists:
                self.manager.get_connection(req, reload=True)
            return ProvisionResult(table=table, id_field=id_field, created=False)

        metadata = sa.MetaData()
        sa_table, skipped = build_table(
            metadata, config, self.catalog, self.builders, req=req
        )
        created = True
        try:
            sa_table.create(engine, checkfirst=True)
        except SQLAlchemyError as exc:
            if not self._exists_now(engine, table):
                logger.error(
                    "[sensordb] create_table failed request=%s table=%s id=%s: %s",
                    request_id(req),
                    table,
                    id_field,
                    exc,
                )
                raise SchemaProvisionError(
                    f"Cannot create table {table!r}: {exc}"
                ) from exc
            logger.warning(
                "[sensordb] create_table request=%s: %s was created concurrently",
                request_id(req),
                table,
            )
            created = False

        logger.info(
            "[sensordb] create_table request=%s table=%s id=%s created=%s skipped=%s",
            request_id(req),
            table,
            id_field,
            created,
            skipped,
        )
        self.manager.get_connection(req, reload=True)
        return ProvisionResult(
            table=table, id_field=id_field, created=created, skipped_fields=skipped
        )

    @staticmethod
    def _exists_now(engine: sa.engine.Engine, table: str) -> bool:
        try:
            return sa.inspect(engine).has_table(table)
        except SQLAlchemyError:
            return False
