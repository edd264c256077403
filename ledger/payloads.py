"""Row -> dict conversion shared by HTTP responses and real-time events.

Chip values stay ``Decimal``; the transport layers render them as JSON
numbers.
"""

from __future__ import annotations

from typing import Dict, List

from .cards import load_cards
from .db import ActionRow, HandRow, PlayerInHandRow, PlayerRow, TableRow


def table_payload(table: TableRow) -> Dict[str, object]:
    return {
        "id": table.id,
        "name": table.name,
        "gameType": table.game_type.value,
        "smallBlind": table.small_blind,
        "bigBlind": table.big_blind,
        "maxPlayers": table.max_players,
        "createdAt": table.created_at,
        "updatedAt": table.updated_at,
    }


def player_payload(player: PlayerRow) -> Dict[str, object]:
    return {
        "id": player.id,
        "name": player.name,
        "email": player.email,
        "totalHands": player.total_hands,
        "totalWinnings": player.total_winnings,
        "createdAt": player.created_at,
        "updatedAt": player.updated_at,
    }


def hand_payload(hand: HandRow) -> Dict[str, object]:
    return {
        "id": hand.id,
        "tableId": hand.table_id,
        "handNumber": hand.hand_number,
        "street": hand.street.value,
        "pot": hand.pot,
        "rake": hand.rake,
        "createdAt": hand.created_at,
        "updatedAt": hand.updated_at,
    }


def seat_payload(seat: PlayerInHandRow, *, with_player: bool = True) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "id": seat.id,
        "handId": seat.hand_id,
        "playerId": seat.player_id,
        "position": seat.position.value,
        "startingChips": seat.starting_chips,
        "endingChips": seat.ending_chips,
        "cards": load_cards(seat.cards),
        "won": seat.won,
        "showedDown": seat.showed_down,
    }
    if with_player:
        payload["player"] = player_payload(seat.player)
    return payload


def action_payload(action: ActionRow) -> Dict[str, object]:
    return {
        "id": action.id,
        "handId": action.hand_id,
        "playerId": action.player_id,
        "street": action.street.value,
        "actionType": action.action_type.value,
        "amount": action.amount,
        "sequence": action.sequence,
        "timestamp": action.created_at,
    }


def hand_with_seats_payload(hand: HandRow) -> Dict[str, object]:
    payload = hand_payload(hand)
    payload["players"] = [seat_payload(seat) for seat in hand.seats]
    return payload


def hand_details_payload(hand: HandRow) -> Dict[str, object]:
    actions: List[Dict[str, object]] = []
    for action in hand.actions:
        entry = action_payload(action)
        entry["player"] = player_payload(action.player)
        actions.append(entry)
    return {
        "hand": hand_payload(hand) | {"table": table_payload(hand.table)},
        "players": [seat_payload(seat) for seat in hand.seats],
        "actions": actions,
    }
