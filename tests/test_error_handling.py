from decimal import Decimal

import pytest

from ledger.db import PlayerRow, Store
from ledger.errors import (
    ConflictError,
    FieldError,
    InternalError,
    NotFoundError,
    ValidationError,
    error_payload,
)
from ledger.game import HandEngine
from ledger.models import ActionType, Street
from ledger.registry import Registry

from .helpers import seats_for, seed_players, seed_table


class ExplodingPublisher:
    def __init__(self) -> None:
        self.calls = 0

    def publish(self, table_id, kind, payload):
        self.calls += 1
        raise RuntimeError("hub is down")


def test_broadcast_failure_does_not_undo_the_write():
    store = Store("sqlite://")
    store.create_all()
    publisher = ExplodingPublisher()
    registry, engine = Registry(store, publisher), HandEngine(store, publisher)
    table = seed_table(registry)
    players = seed_players(registry, 2)

    hand = engine.create_hand(table["id"], 1, seats_for(players))
    action = engine.append_action(hand["id"], players[0]["id"], Street.PREFLOP, ActionType.BET, 5)

    assert action["sequence"] == 1
    assert engine.get_hand(hand["id"])["hand"]["pot"] == Decimal("5")
    assert publisher.calls == 3


def test_engine_runs_without_publisher():
    store = Store("sqlite://")
    store.create_all()
    registry, engine = Registry(store), HandEngine(store)
    table = seed_table(registry)
    players = seed_players(registry, 2)
    hand = engine.create_hand(table["id"], 1, seats_for(players))
    assert engine.complete_hand(hand["id"]).pot == Decimal("0")


def test_storage_failure_becomes_internal_error():
    store = Store("sqlite://")
    registry = Registry(store)

    with pytest.raises(InternalError) as excinfo:
        registry.list_tables()

    assert excinfo.value.status == 500
    assert error_payload(excinfo.value) == {
        "success": False,
        "error": "Storage failure",
        "code": "INTERNAL_ERROR",
    }


def test_integrity_violation_becomes_conflict():
    store = Store("sqlite://")
    store.create_all()

    with pytest.raises(ConflictError) as excinfo:
        with store.transaction() as session:
            session.add(PlayerRow(name="Twin", total_hands=0, total_winnings=Decimal("0")))
            session.add(PlayerRow(name="Twin", total_hands=0, total_winnings=Decimal("0")))
            session.flush()

    assert excinfo.value.code == "CONFLICT"
    assert Registry(store).list_players() == []


def test_ledger_errors_pass_through_transaction_untouched():
    store = Store("sqlite://")
    store.create_all()

    with pytest.raises(NotFoundError):
        with store.transaction():
            raise NotFoundError("HAND_NOT_FOUND", "Hand not found")


def test_validation_error_payload_lists_fields():
    error = ValidationError([FieldError("name", "too short"), FieldError("bigBlind", "too small")])

    assert error.status == 400
    assert error_payload(error) == {
        "success": False,
        "error": "Invalid input",
        "code": "VALIDATION_ERROR",
        "validationErrors": [
            {"field": "name", "message": "too short"},
            {"field": "bigBlind", "message": "too small"},
        ],
    }


def test_single_field_validation_error_uses_message():
    error = ValidationError.single("amount", "must be a number")
    assert error.msg == "must be a number"
    assert [item.field for item in error.errors] == ["amount"]
