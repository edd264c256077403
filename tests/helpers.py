from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from ledger.db import Store
from ledger.game import HandEngine
from ledger.models import POSITION_ORDER, EventKind, GameType, SeatAssignment, TableConfig
from ledger.registry import Registry


class RecordingPublisher:
    """Stands in for the websocket hub and remembers what was published."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, EventKind, Dict[str, object]]] = []

    def publish(self, table_id: str, kind: EventKind, payload: Dict[str, object]) -> int:
        self.events.append((table_id, kind, payload))
        return 1

    def kinds(self, table_id: Optional[str] = None) -> List[EventKind]:
        return [kind for tid, kind, _ in self.events if table_id is None or tid == table_id]


def create_ledger() -> Tuple[Registry, HandEngine, RecordingPublisher]:
    """Fresh in-memory database with a registry and engine sharing one publisher."""
    store = Store("sqlite://")
    store.create_all()
    publisher = RecordingPublisher()
    return Registry(store, publisher), HandEngine(store, publisher), publisher


def seed_table(
    registry: Registry,
    name: str = "Main Table",
    *,
    small_blind: str = "1",
    big_blind: str = "2",
    max_players: int = 10,
) -> Dict[str, object]:
    return registry.create_table(
        TableConfig(
            name=name,
            game_type=GameType.CASH,
            small_blind=Decimal(small_blind),
            big_blind=Decimal(big_blind),
            max_players=max_players,
        )
    )


def seed_players(registry: Registry, count: int, prefix: str = "Player") -> List[Dict[str, object]]:
    return [registry.create_player(f"{prefix}{idx}") for idx in range(count)]


def seats_for(players: Sequence[Dict[str, object]], chips: str = "100") -> List[SeatAssignment]:
    """Seat players in canonical order (SB, BB, UTG, ...)."""
    return [
        SeatAssignment(player_id=player["id"], position=POSITION_ORDER[idx], starting_chips=Decimal(chips))
        for idx, player in enumerate(players)
    ]


def start_hand(
    registry: Registry,
    engine: HandEngine,
    *,
    players: int = 3,
    hand_number: int = 1,
) -> Tuple[Dict[str, object], List[Dict[str, object]], Dict[str, object]]:
    table = seed_table(registry)
    seated = seed_players(registry, players)
    hand = engine.create_hand(table["id"], hand_number, seats_for(seated))
    return table, seated, hand
