"""Hand-history ledger: storage, validation and the hand lifecycle engine."""

from .db import Store
from .errors import ConflictError, InternalError, LedgerError, NotFoundError, ValidationError
from .game import HandEngine, compute_rake
from .models import (
    ActionType,
    EventKind,
    GameType,
    Position,
    RakeQuote,
    SeatAssignment,
    SeatResult,
    Street,
    TableConfig,
)
from .registry import Registry

__all__ = [
    "Store",
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InternalError",
    "HandEngine",
    "compute_rake",
    "Registry",
    "ActionType",
    "EventKind",
    "GameType",
    "Position",
    "RakeQuote",
    "SeatAssignment",
    "SeatResult",
    "Street",
    "TableConfig",
]
