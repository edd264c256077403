from decimal import Decimal

import pytest

from ledger.errors import ConflictError, NotFoundError, ValidationError
from ledger.game import compute_rake
from ledger.models import ActionType, EventKind, SeatResult, Street

from .helpers import create_ledger, start_hand


@pytest.mark.parametrize(
    "pot, rake, after",
    [
        ("0", "0", "0"),
        ("50", "2.50", "47.50"),
        ("199.99", "10.00", "189.99"),
        ("200", "10", "190"),
        ("1000", "10", "990"),
        ("0.10", "0.01", "0.09"),
        ("33.33", "1.67", "31.66"),
    ],
)
def test_compute_rake_is_five_percent_capped_at_ten(pot, rake, after):
    assert compute_rake(Decimal(pot)) == (Decimal(rake), Decimal(after))


def test_complete_hand_moves_to_showdown_and_records_rake():
    registry, engine, publisher = create_ledger()
    table, players, hand = start_hand(registry, engine, players=2)
    engine.append_action(hand["id"], players[0]["id"], Street.PREFLOP, ActionType.BET, 25)
    engine.append_action(hand["id"], players[1]["id"], Street.PREFLOP, ActionType.CALL, 25)

    quote = engine.complete_hand(hand["id"])

    assert quote.to_payload() == {
        "handId": hand["id"],
        "pot": Decimal("50"),
        "rake": Decimal("2.50"),
        "potAfterRake": Decimal("47.50"),
    }
    stored = engine.get_hand(hand["id"])["hand"]
    assert stored["street"] == "SHOWDOWN"
    assert stored["rake"] == Decimal("2.50")
    assert stored["pot"] == Decimal("50")

    table_id, kind, payload = publisher.events[-1]
    assert (table_id, kind) == (table["id"], EventKind.HAND_COMPLETED)
    assert payload["result"]["potAfterRake"] == Decimal("47.50")


def test_complete_hand_caps_large_pot():
    registry, engine, _ = create_ledger()
    _, players, hand = start_hand(registry, engine, players=2)
    engine.append_action(hand["id"], players[0]["id"], Street.PREFLOP, ActionType.ALL_IN, 500)
    engine.append_action(hand["id"], players[1]["id"], Street.PREFLOP, ActionType.CALL, 500)

    quote = engine.complete_hand(hand["id"])
    assert (quote.rake, quote.pot_after_rake) == (Decimal("10"), Decimal("990"))


def test_complete_empty_hand_takes_no_rake():
    registry, engine, _ = create_ledger()
    _, _, hand = start_hand(registry, engine)
    quote = engine.complete_hand(hand["id"])
    assert quote.rake == quote.pot == quote.pot_after_rake == Decimal("0")


def test_complete_hand_twice_gives_same_quote():
    registry, engine, _ = create_ledger()
    _, players, hand = start_hand(registry, engine, players=2)
    engine.append_action(hand["id"], players[0]["id"], Street.PREFLOP, ActionType.BET, 40)

    first = engine.complete_hand(hand["id"])
    second = engine.complete_hand(hand["id"])
    assert first == second


def test_complete_missing_hand():
    _, engine, _ = create_ledger()
    with pytest.raises(NotFoundError):
        engine.complete_hand("missing")


def _played_hand():
    registry, engine, publisher = create_ledger()
    table, players, hand = start_hand(registry, engine, players=2)
    engine.append_action(hand["id"], players[0]["id"], Street.PREFLOP, ActionType.BET, 30)
    engine.append_action(hand["id"], players[1]["id"], Street.PREFLOP, ActionType.CALL, 30)
    return registry, engine, publisher, table, players, hand


def test_settle_requires_completed_hand():
    registry, engine, _, _, players, hand = _played_hand()
    with pytest.raises(ConflictError) as excinfo:
        engine.settle_hand(hand["id"], [SeatResult(players[0]["id"], Decimal("157"), won=Decimal("57"))])
    assert excinfo.value.code == "HAND_NOT_COMPLETED"


def test_settle_updates_seats_and_player_totals():
    registry, engine, publisher, table, players, hand = _played_hand()
    engine.complete_hand(hand["id"])
    winner, loser = players

    payload = engine.settle_hand(
        hand["id"],
        [
            SeatResult(winner["id"], Decimal("157"), won=Decimal("57"), showed_down=True),
            SeatResult(loser["id"], Decimal("70"), showed_down=True),
        ],
    )

    seats = {seat["playerId"]: seat for seat in payload["players"]}
    assert seats[winner["id"]]["endingChips"] == Decimal("157")
    assert seats[winner["id"]]["won"] == Decimal("57")
    assert seats[loser["id"]]["showedDown"] is True
    assert registry.get_player(winner["id"])["totalWinnings"] == Decimal("57")
    assert registry.get_player(loser["id"])["totalWinnings"] == Decimal("-30")
    assert publisher.events[-1][:2] == (table["id"], EventKind.HAND_UPDATED)


def test_settle_rejects_player_not_in_hand():
    registry, engine, _, _, players, hand = _played_hand()
    engine.complete_hand(hand["id"])
    outsider = registry.create_player("Railbird")

    with pytest.raises(ValidationError) as excinfo:
        engine.settle_hand(
            hand["id"],
            [
                SeatResult(players[0]["id"], Decimal("100")),
                SeatResult(outsider["id"], Decimal("100")),
            ],
        )

    assert [error.field for error in excinfo.value.errors] == ["results.1.playerId"]
    seat = engine.get_hand(hand["id"])["players"][0]
    assert seat["endingChips"] == Decimal("100")


def test_settle_validates_results():
    registry, engine, _, _, players, hand = _played_hand()
    engine.complete_hand(hand["id"])

    with pytest.raises(ValidationError) as excinfo:
        engine.settle_hand(
            hand["id"],
            [
                SeatResult(players[0]["id"], Decimal("-1")),
                SeatResult(players[0]["id"], Decimal("10"), won=Decimal("0.001")),
            ],
        )
    fields = [error.field for error in excinfo.value.errors]
    assert fields == ["results.0.endingChips", "results.1.won", "results.1.playerId"]

    with pytest.raises(ValidationError):
        engine.settle_hand(hand["id"], [])


def test_player_stats_after_settlement():
    registry, engine, _, _, players, hand = _played_hand()
    engine.complete_hand(hand["id"])
    winner, loser = players
    engine.settle_hand(
        hand["id"],
        [
            SeatResult(winner["id"], Decimal("157"), won=Decimal("57"), showed_down=True),
            SeatResult(loser["id"], Decimal("70"), showed_down=True),
        ],
    )

    stats = registry.player_stats(winner["id"]).to_payload()
    assert stats["totalHands"] == 1
    assert stats["handsWon"] == 1
    assert stats["winRate"] == 100.0
    assert stats["showdownWinRate"] == 100.0
    assert stats["totalProfit"] == Decimal("57")
    assert stats["avgProfitPerHand"] == Decimal("57.00")

    losing = registry.player_stats(loser["id"])
    assert losing.win_rate == 0.0
    assert losing.total_profit == Decimal("-30")
