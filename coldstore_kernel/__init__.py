"""
Cold-Storage Kernel

Typed data model, boundary parsing, structured logging, typed exceptions and
the database base for the bag-inventory core:
- Lots (incoming receipts) with per-size, per-location bag entries
- Deliveries (outgoing withdrawals) bound back to lot slots
- Conservation of quantity (0 <= current <= initial) at construction
"""

__version__ = "0.1.0"
