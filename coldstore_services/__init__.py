"""
Stateful services composed from the pure engines.

    edit_session      DeliveryEditSession -- owns one ledger while composing
    delivery_service  DeliveryService -- re-validate and hand off a delivery
    orm / stock_store Reference SQLAlchemy persistence adapter
"""

from coldstore_services.delivery_service import (
    DeliveryService,
    DeliverySubmitter,
    LotSource,
)
from coldstore_services.edit_session import DeliveryEditSession
from coldstore_services.stock_store import SqlStockStore

__all__ = [
    "DeliveryEditSession",
    "DeliveryService",
    "DeliverySubmitter",
    "LotSource",
    "SqlStockStore",
]
