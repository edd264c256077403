from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

from .models import EventKind

LOGGER = logging.getLogger("poker_ledger")


class Publisher(Protocol):
    def publish(self, table_id: str, kind: EventKind, payload: Dict[str, object]) -> int:
        """Queue ``payload`` for every subscriber of ``table_id``; return how many."""


def notify(
    publisher: Optional[Publisher],
    table_id: str,
    kind: EventKind,
    payload: Dict[str, object],
) -> None:
    # The mutation is already committed; a failed fan-out must not undo it.
    if publisher is None:
        return
    try:
        publisher.publish(table_id, kind, payload)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Broadcast of %s to table %s failed: %s", kind.value, table_id, exc)
