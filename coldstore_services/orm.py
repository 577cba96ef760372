"""
Module: coldstore_services.orm
Responsibility: SQLAlchemy ORM persistence models for lots and deliveries.
    Maps the frozen dataclasses of ``coldstore_kernel.domain.lots`` to
    relational tables: lots with their bag-size entries, and deliveries with
    their allocations and lot snapshots.

Architecture position: Services > ORM.  Inherits from TrackedBase
    (coldstore_kernel.db.base).  Only ``coldstore_services.stock_store``
    queries these models.

Invariants enforced:
    - All quantities use Decimal (Numeric(18,3)) -- NEVER float.
    - ``0 <= current_quantity <= initial_quantity`` is also a table CHECK
      constraint, so a faulty commit fails inside the transaction.
    - Enum fields stored as String for portability and readability.
    - Bag-size entries and allocations keep their list order via a
      ``position`` column.

Failure modes:
    - IntegrityError on duplicate lot / delivery id or a violated CHECK.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coldstore_kernel.db.base import TrackedBase
from coldstore_kernel.domain.lots import (
    BagSizeEntry,
    Delivery,
    DeliveryAllocation,
    Location,
    Lot,
    LotType,
)
from coldstore_kernel.domain.records import lot_from_record, lot_to_record


def _location_or_none(chamber: str | None, floor: str | None, row: str | None) -> Location | None:
    if chamber is None and floor is None and row is None:
        return None
    return Location(chamber=chamber or "", floor=floor or "", row=row or "")


# =============================================================================
# LotModel
# =============================================================================

class LotModel(TrackedBase):
    """
    ORM model for an incoming lot (receipt gate pass).

    Maps to: coldstore_kernel.domain.lots.Lot (frozen dataclass).
    """

    __tablename__ = "lots"

    __table_args__ = (
        Index("idx_lot_reference", "reference_number"),
        Index("idx_lot_variety", "variety"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    variety: Mapped[str] = mapped_column(String(100), default="")
    reference_number: Mapped[int] = mapped_column(Integer)
    receipt_date: Mapped[str] = mapped_column(String(40), default="")
    lot_type: Mapped[str] = mapped_column(String(20), default=LotType.RECEIPT.value)
    remarks: Mapped[str] = mapped_column(Text, default="")

    bag_sizes: Mapped[list[BagSizeEntryModel]] = relationship(
        back_populates="lot",
        cascade="all, delete-orphan",
        order_by="BagSizeEntryModel.position",
    )

    def to_dto(self) -> Lot:
        """Convert ORM model to frozen Lot DTO."""
        return Lot(
            lot_id=self.id,
            variety=self.variety,
            reference_number=self.reference_number,
            receipt_date=self.receipt_date,
            bag_sizes=tuple(bag.to_dto() for bag in self.bag_sizes),
            lot_type=LotType(self.lot_type),
            remarks=self.remarks or "",
        )

    @classmethod
    def from_dto(cls, dto: Lot, created_by_id: UUID) -> LotModel:
        """Create ORM model (with its bag-size rows) from a frozen Lot DTO."""
        return cls(
            id=dto.lot_id,
            variety=dto.variety,
            reference_number=dto.reference_number,
            receipt_date=dto.receipt_date,
            lot_type=dto.lot_type.value,
            remarks=dto.remarks,
            bag_sizes=[
                BagSizeEntryModel.from_dto(bag, position, created_by_id)
                for position, bag in enumerate(dto.bag_sizes)
            ],
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<LotModel {self.id} ref={self.reference_number} variety={self.variety!r}>"


# =============================================================================
# BagSizeEntryModel
# =============================================================================

class BagSizeEntryModel(TrackedBase):
    """
    ORM model for one (size, location) entry of a lot.

    Maps to: coldstore_kernel.domain.lots.BagSizeEntry (frozen dataclass).
    """

    __tablename__ = "lot_bag_sizes"

    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_bag_size_current_non_negative"),
        CheckConstraint(
            "current_quantity <= initial_quantity", name="ck_bag_size_current_within_initial"
        ),
        Index("idx_bag_size_lot", "lot_id", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lot_id: Mapped[str] = mapped_column(ForeignKey("lots.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    name: Mapped[str] = mapped_column(String(100))
    initial_quantity: Mapped[Decimal] = mapped_column()
    current_quantity: Mapped[Decimal] = mapped_column()
    chamber: Mapped[str] = mapped_column(String(50), default="")
    floor: Mapped[str] = mapped_column(String(50), default="")
    row: Mapped[str] = mapped_column(String(50), default="")

    lot: Mapped[LotModel] = relationship(back_populates="bag_sizes")

    @property
    def location(self) -> Location:
        return Location(chamber=self.chamber, floor=self.floor, row=self.row)

    def to_dto(self) -> BagSizeEntry:
        return BagSizeEntry(
            name=self.name,
            initial_quantity=self.initial_quantity,
            current_quantity=self.current_quantity,
            location=self.location,
        )

    @classmethod
    def from_dto(cls, dto: BagSizeEntry, position: int, created_by_id: UUID) -> BagSizeEntryModel:
        return cls(
            position=position,
            name=dto.name,
            initial_quantity=dto.initial_quantity,
            current_quantity=dto.current_quantity,
            chamber=dto.location.chamber,
            floor=dto.location.floor,
            row=dto.location.row,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<BagSizeEntryModel lot={self.lot_id} {self.name} "
            f"{self.current_quantity}/{self.initial_quantity} at {self.location.label()}>"
        )


# =============================================================================
# DeliveryModel
# =============================================================================

class DeliveryModel(TrackedBase):
    """
    ORM model for an outgoing delivery (withdrawal gate pass).

    Maps to: coldstore_kernel.domain.lots.Delivery (frozen dataclass).

    Lot snapshots are stored as JSON records so that an edit can be
    re-seeded exactly as the delivery was composed.
    """

    __tablename__ = "deliveries"

    __table_args__ = (
        Index("idx_delivery_sequence", "sequence_number"),
        Index("idx_delivery_date", "delivery_date"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sequence_number: Mapped[int] = mapped_column(Integer)
    delivery_date: Mapped[date] = mapped_column(Date)
    remarks: Mapped[str] = mapped_column(Text, default="")
    lot_snapshots: Mapped[list] = mapped_column(JSON, default=list)

    allocations: Mapped[list[DeliveryAllocationModel]] = relationship(
        back_populates="delivery",
        cascade="all, delete-orphan",
        order_by="DeliveryAllocationModel.position",
    )

    def to_dto(self) -> Delivery:
        """Convert ORM model to frozen Delivery DTO."""
        return Delivery(
            delivery_id=self.id,
            sequence_number=self.sequence_number,
            delivery_date=self.delivery_date,
            allocations=tuple(a.to_dto() for a in self.allocations),
            lot_snapshots=tuple(lot_from_record(r) for r in (self.lot_snapshots or [])),
            remarks=self.remarks or "",
        )

    @classmethod
    def from_dto(cls, dto: Delivery, created_by_id: UUID) -> DeliveryModel:
        """Create ORM model (with allocation rows) from a frozen Delivery DTO."""
        return cls(
            id=dto.delivery_id,
            sequence_number=dto.sequence_number,
            delivery_date=dto.delivery_date,
            remarks=dto.remarks,
            lot_snapshots=[lot_to_record(lot) for lot in dto.lot_snapshots],
            allocations=[
                DeliveryAllocationModel.from_dto(a, position, created_by_id)
                for position, a in enumerate(dto.allocations)
            ],
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<DeliveryModel {self.id} seq={self.sequence_number} date={self.delivery_date}>"


# =============================================================================
# DeliveryAllocationModel
# =============================================================================

class DeliveryAllocationModel(TrackedBase):
    """
    ORM model for one allocation of a delivery.

    Maps to: coldstore_kernel.domain.lots.DeliveryAllocation (frozen dataclass).

    Location columns are NULL when the allocation carried no location.
    """

    __tablename__ = "delivery_allocations"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_allocation_quantity_positive"),
        Index("idx_allocation_delivery", "delivery_id"),
        Index("idx_allocation_lot", "lot_id", "size_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    delivery_id: Mapped[str] = mapped_column(ForeignKey("deliveries.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    lot_id: Mapped[str] = mapped_column(String(64))
    lot_reference_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    variety: Mapped[str] = mapped_column(String(100), default="")
    size_name: Mapped[str] = mapped_column(String(100))
    location_index: Mapped[int] = mapped_column(Integer, default=0)
    chamber: Mapped[str | None] = mapped_column(String(50), nullable=True)
    floor: Mapped[str | None] = mapped_column(String(50), nullable=True)
    row: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[Decimal] = mapped_column()

    delivery: Mapped[DeliveryModel] = relationship(back_populates="allocations")

    def to_dto(self) -> DeliveryAllocation:
        return DeliveryAllocation(
            lot_id=self.lot_id,
            size_name=self.size_name,
            quantity=self.quantity,
            location_index=self.location_index,
            location=_location_or_none(self.chamber, self.floor, self.row),
            lot_reference_number=self.lot_reference_number,
            variety=self.variety or "",
        )

    @classmethod
    def from_dto(
        cls, dto: DeliveryAllocation, position: int, created_by_id: UUID,
    ) -> DeliveryAllocationModel:
        loc = dto.location
        return cls(
            position=position,
            lot_id=dto.lot_id,
            lot_reference_number=dto.lot_reference_number,
            variety=dto.variety,
            size_name=dto.size_name,
            location_index=dto.location_index,
            chamber=loc.chamber if loc is not None else None,
            floor=loc.floor if loc is not None else None,
            row=loc.row if loc is not None else None,
            quantity=dto.quantity,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<DeliveryAllocationModel {self.delivery_id} lot={self.lot_id} "
            f"{self.size_name}[{self.location_index}] qty={self.quantity}>"
        )
