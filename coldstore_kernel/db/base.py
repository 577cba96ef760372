"""
Module: coldstore_kernel.db.base
Responsibility: Declarative base for the persistence adapter's ORM models.
Architecture position: Kernel > DB. Imported by every ORM module; imports
    nothing from engines or services.

Invariants enforced:
    - Quantities are ``Numeric(18, 3)``; ``Decimal`` annotations resolve to it
      automatically, so no model column ever stores a float.
    - Every tracked row records who created it (``created_by_id`` NOT NULL)
      and when (server-side ``now()``).

Primary keys are declared per model. Lot and delivery ids come from the
upstream store as opaque strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

QUANTITY_PRECISION = 18
QUANTITY_SCALE = 3


class UUIDString(TypeDecorator[UUID]):
    """UUIDs stored as 36-character text; accepts UUID or str on the way in."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value: UUID | str | None, dialect: Dialect) -> str | None:
        if value is None:
            return None
        return str(value if isinstance(value, UUID) else UUID(value))

    def process_result_value(self, value: Any, dialect: Dialect) -> UUID | None:
        return None if value is None else UUID(str(value))


class Base(DeclarativeBase):
    type_annotation_map = {
        Decimal: Numeric(QUANTITY_PRECISION, QUANTITY_SCALE),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }


ServerTimestamp = Annotated[datetime, mapped_column(server_default=func.now())]


class TrackedBase(Base):
    """Abstract base adding audit columns.

    ``updated_at`` is refreshed by the database on every UPDATE;
    ``updated_by_id`` is left for the caller to set.
    """

    __abstract__ = True

    created_at: Mapped[ServerTimestamp]
    updated_at: Mapped[ServerTimestamp] = mapped_column(onupdate=func.now())
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]
