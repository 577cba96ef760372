"""
Pytest fixtures for the cold-store test suite.

Provides:
- In-memory SQLite database sessions for the persistence adapter tests
- Lot / bag-size factories
- A small registry of realistic lots (single and split locations)
"""

from decimal import Decimal
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from coldstore_config import ColdStoreConfig
from coldstore_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from coldstore_kernel.domain.lots import BagSizeEntry, Location, Lot, LotType
from coldstore_kernel.logging_config import LogContext, reset_logging


# =============================================================================
# Factories
# =============================================================================


def bag(
    name: str,
    initial: str | int,
    current: str | int | None = None,
    chamber: str = "",
    floor: str = "",
    row: str = "",
) -> BagSizeEntry:
    """Bag-size entry; ``current`` defaults to ``initial``."""
    return BagSizeEntry(
        name=name,
        initial_quantity=Decimal(str(initial)),
        current_quantity=Decimal(str(initial if current is None else current)),
        location=Location(chamber=chamber, floor=floor, row=row),
    )


def lot(
    lot_id: str,
    reference_number: int,
    *bags: BagSizeEntry,
    variety: str = "Jyoti",
    receipt_date: str = "2026-02-11",
    lot_type: LotType = LotType.RECEIPT,
) -> Lot:
    return Lot(
        lot_id=lot_id,
        variety=variety,
        reference_number=reference_number,
        receipt_date=receipt_date,
        bag_sizes=tuple(bags),
        lot_type=lot_type,
    )


@pytest.fixture
def make_bag():
    return bag


@pytest.fixture
def make_lot():
    return lot


@pytest.fixture
def split_lot() -> Lot:
    """Seed stored at two places, listed out of location order."""
    return lot(
        "L1", 12,
        bag("Seed", 30, 30, "C2", "F1", "R1"),
        bag("Seed", 20, 20, "C1", "F1", "R2"),
        bag("Ration", 10, 4, "C1", "F2", "R1"),
    )


@pytest.fixture
def plain_lot() -> Lot:
    return lot(
        "L2", 7,
        bag("Seed", 15, 15, "C3", "F1", "R1"),
        bag("Goli", 8, 8, "C3", "F1", "R2"),
        variety="Chipsona",
        receipt_date="2026-02-10",
    )


@pytest.fixture
def transfer_lot() -> Lot:
    return lot(
        "T1", 3,
        bag("Seed", 50, 50, "C9"),
        variety="Jyoti",
        lot_type=LotType.TRANSFER,
    )


@pytest.fixture
def config() -> ColdStoreConfig:
    return ColdStoreConfig(size_columns=("Ration", "Seed", "Goli"))


# =============================================================================
# Logging isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def clean_logging():
    reset_logging()
    yield
    reset_logging()


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with every table created."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def test_actor_id() -> UUID:
    return uuid4()
