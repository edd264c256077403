import asyncio
import json
import random
from decimal import ROUND_HALF_UP, Decimal

from host.broadcaster import TableBroadcaster
from ledger.db import Store
from ledger.game import HandEngine
from ledger.models import POT_ACTIONS, ActionType, Street
from ledger.registry import Registry

from .helpers import create_ledger, seats_for, seed_players, seed_table
from .test_broadcaster import DummyWebSocket


def test_ledger_handles_hundred_hands_of_random_actions():
    registry, engine, _ = create_ledger()
    table = seed_table(registry)
    players = seed_players(registry, 6, prefix="Stress")
    rng = random.Random(1234)
    streets = [Street.PREFLOP, Street.FLOP, Street.TURN, Street.RIVER]
    kinds = list(ActionType)
    rake_total = Decimal("0")

    for number in range(1, 101):
        hand = engine.create_hand(table["id"], number, seats_for(players, chips="500"))
        expected_pot = Decimal("0")
        count = rng.randint(2, 20)
        for idx in range(count):
            action_type = rng.choice(kinds)
            amount = Decimal(rng.randint(0, 5000)) / 100
            player = players[rng.randrange(len(players))]
            action = engine.append_action(hand["id"], player["id"], streets[idx * 4 // count], action_type, amount)
            assert action["sequence"] == idx + 1
            if action_type in POT_ACTIONS:
                expected_pot += amount

        quote = engine.complete_hand(hand["id"])
        assert quote.pot == expected_pot
        expected_rake = min(expected_pot * Decimal("0.05"), Decimal("10"))
        assert quote.rake == expected_rake.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        assert quote.pot_after_rake + quote.rake == quote.pot
        rake_total += quote.rake

    assert len(registry.get_table(table["id"])["hands"]) == 10
    assert registry.get_player(players[0]["id"])["totalHands"] == 100
    assert rake_total > 0


def test_every_subscriber_sees_every_action_in_order():
    async def scenario() -> list[DummyWebSocket]:
        hub = TableBroadcaster()
        store = Store("sqlite://")
        store.create_all()
        registry, engine = Registry(store, hub), HandEngine(store, hub)
        table = seed_table(registry)
        players = seed_players(registry, 2)

        sockets = [DummyWebSocket() for _ in range(20)]
        for websocket in sockets:
            hub.join(hub.register(websocket), table["id"])

        hand = engine.create_hand(table["id"], 1, seats_for(players))
        for idx in range(200):
            engine.append_action(hand["id"], players[idx % 2]["id"], Street.PREFLOP, ActionType.CHECK, 0)
            if idx % 25 == 0:
                await asyncio.sleep(0)
        await hub.flush()
        await hub.close()
        return sockets

    for websocket in asyncio.run(scenario()):
        messages = [json.loads(raw) for raw in websocket.sent]
        assert messages[0]["type"] == "hand:created"
        sequences = [message["payload"]["action"]["sequence"] for message in messages[1:]]
        assert sequences == list(range(1, 201))
