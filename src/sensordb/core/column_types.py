"""
Mapping from catalog `TypeTag`s to SQLAlchemy column constructors.

Kept apart from the catalog so the catalog stays storage-agnostic. The types
follow what the original Knex-built tables used: native UUID on PostgreSQL
and CHAR-sized strings elsewhere, timezone-aware timestamps, 255-character
strings.
"""

from __future__ import annotations

from typing import Callable, Dict, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.types import TypeEngine

from sensordb.models.field_catalog import FieldSpec, TypeTag

ColumnTypeBuilder = Callable[[], TypeEngine]

COLUMN_BUILDERS: Mapping[TypeTag, ColumnTypeBuilder] = {
    TypeTag.UUID_PRIMARY_KEY: lambda: sa.String(36).with_variant(
        postgresql.UUID(as_uuid=False), "postgresql"
    ),
    TypeTag.TIMESTAMP: lambda: sa.DateTime(timezone=True),
    TypeTag.STRING: lambda: sa.String(255),
    TypeTag.FLOAT: lambda: sa.Float(),
    TypeTag.INTEGER: lambda: sa.Integer(),
    TypeTag.BOOLEAN: lambda: sa.Boolean(),
}


def build_column(
    spec: FieldSpec,
    *,
    id_field: str,
    builders: Optional[Mapping[TypeTag, ColumnTypeBuilder]] = None,
) -> Optional[sa.Column]:
    """
    Build the column for one catalog entry, or None when its type has no builder.

    The entry named `id_field` becomes the primary key; indexed entries get a
    secondary index.
    """
    builder = (COLUMN_BUILDERS if builders is None else builders).get(spec.type_tag)
    if builder is None:
        return None
    is_primary = spec.name == id_field
    return sa.Column(
        spec.name,
        builder(),
        primary_key=is_primary,
        nullable=not is_primary,
        index=spec.indexed and not is_primary,
        comment=spec.comment or None,
    )


def timestamp_columns() -> Dict[str, sa.Column]:
    """created_at / updated_at, both non-null and defaulting to now()."""
    return {
        name: sa.Column(
            name,
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        )
        for name in ("created_at", "updated_at")
    }
