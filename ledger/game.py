from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import literal, select, update
from sqlalchemy.orm import Session

from .cards import dump_cards
from .db import CENT, ActionRow, Chips, HandRow, PlayerInHandRow, PlayerRow, Store, TableRow
from .errors import ConflictError, FieldError, NotFoundError, ValidationError
from .events import Publisher, notify
from .models import (
    POT_ACTIONS,
    ActionType,
    EventKind,
    Position,
    RakeQuote,
    SeatAssignment,
    SeatResult,
    Street,
)
from .payloads import action_payload, hand_details_payload, hand_payload, hand_with_seats_payload
from .validation import check_amount, check_hand, check_results, require, to_decimal

LOGGER = logging.getLogger("poker_ledger")

# HandEngine records what happened at the table; it never deals cards or
# decides whose turn it is. Storage goes through Store, fan-out through the
# injected publisher.

RAKE_RATE = Decimal("0.05")
RAKE_CAP = Decimal("10")

E = TypeVar("E", Street, ActionType, Position)


def compute_rake(pot: Decimal) -> Tuple[Decimal, Decimal]:
    """Return ``(rake, pot_after_rake)``: 5% of the pot, capped at 10."""
    rake = min(pot * RAKE_RATE, RAKE_CAP).quantize(CENT, rounding=ROUND_HALF_UP)
    return rake, pot - rake


def pot_delta(action_type: ActionType, amount: Decimal) -> Decimal:
    if action_type in POT_ACTIONS:
        return amount
    return Decimal("0")


def refresh_player_totals(session: Session, player_ids: Iterable[str]) -> None:
    """Recompute hand count and net winnings from every seat the players took."""
    ids = sorted(set(player_ids))
    if not ids:
        return
    totals: Dict[str, List[Decimal]] = {player_id: [] for player_id in ids}
    rows = session.execute(
        select(PlayerInHandRow.player_id, PlayerInHandRow.starting_chips, PlayerInHandRow.ending_chips)
        .where(PlayerInHandRow.player_id.in_(ids))
    )
    for player_id, starting, ending in rows:
        totals[player_id].append(ending - starting)
    for player in session.scalars(select(PlayerRow).where(PlayerRow.id.in_(ids))):
        nets = totals[player.id]
        player.total_hands = len(nets)
        player.total_winnings = sum(nets, Decimal("0"))


def _coerce(enum_cls: Type[E], value: object, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError.single(field, f"unknown {field} {value!r}") from None


class HandEngine:
    """Hand lifecycle: create with seats, append sequenced actions, complete, settle."""

    def __init__(self, store: Store, publisher: Optional[Publisher] = None) -> None:
        self.store = store
        self.publisher = publisher

    # Hand lifecycle --------------------------------------------------

    def create_hand(self, table_id: str, hand_number: int, seats: Sequence[SeatAssignment]) -> Dict[str, object]:
        require(check_hand(hand_number, seats))

        with self.store.transaction() as session:
            table = session.get(TableRow, table_id)
            if table is None:
                raise NotFoundError("TABLE_NOT_FOUND", "Table not found")
            if len(seats) > table.max_players:
                raise ValidationError.single("players", f"Table seats at most {table.max_players} players")

            player_ids = [seat.player_id for seat in seats]
            found = set(session.scalars(select(PlayerRow.id).where(PlayerRow.id.in_(player_ids))))
            missing = [player_id for player_id in player_ids if player_id not in found]
            if missing:
                raise NotFoundError("PLAYER_NOT_FOUND", f"Players not found: {', '.join(missing)}")

            existing = session.scalar(
                select(HandRow.id).where(HandRow.table_id == table_id, HandRow.hand_number == hand_number)
            )
            if existing is not None:
                raise ConflictError("DUPLICATE_HAND", f"Hand #{hand_number} already exists at this table")

            hand = HandRow(
                table_id=table.id,
                hand_number=hand_number,
                street=Street.PREFLOP,
                pot=Decimal("0"),
                rake=Decimal("0"),
                last_sequence=0,
            )
            for order, seat in enumerate(seats):
                starting = to_decimal(seat.starting_chips)
                hand.seats.append(
                    PlayerInHandRow(
                        player_id=seat.player_id,
                        position=Position(seat.position),
                        seat_order=order,
                        starting_chips=starting,
                        ending_chips=starting,
                        cards=dump_cards(seat.cards),
                        won=Decimal("0"),
                        showed_down=False,
                    )
                )
            session.add(hand)
            session.flush()
            refresh_player_totals(session, player_ids)
            payload = hand_with_seats_payload(hand)

        LOGGER.info("Hand #%s created at table %s with %s players", hand_number, table_id, len(seats))
        notify(self.publisher, table_id, EventKind.HAND_CREATED, payload)
        return payload

    def get_hand(self, hand_id: str) -> Dict[str, object]:
        with self.store.transaction() as session:
            hand = session.get(HandRow, hand_id)
            if hand is None:
                raise NotFoundError("HAND_NOT_FOUND", "Hand not found")
            return hand_details_payload(hand)

    def append_action(
        self,
        hand_id: str,
        player_id: str,
        street: Street,
        action_type: ActionType,
        amount: object,
    ) -> Dict[str, object]:
        street = _coerce(Street, street, "street")
        action_type = _coerce(ActionType, action_type, "actionType")
        require(check_amount(amount, "amount"))
        value = to_decimal(amount)
        delta = pot_delta(action_type, value)

        with self.store.transaction() as session:
            hand = session.get(HandRow, hand_id, with_for_update=True)
            if hand is None:
                raise NotFoundError("HAND_NOT_FOUND", "Hand not found")
            if hand.street == Street.SHOWDOWN:
                raise ConflictError("HAND_COMPLETED", "Hand is already complete")
            self._require_seated(session, hand_id, player_id)

            # Sequence and pot move in one statement so concurrent writers
            # serialize on the hand row instead of racing on max(sequence).
            session.execute(
                update(HandRow)
                .where(HandRow.id == hand_id)
                .values(
                    last_sequence=HandRow.last_sequence + 1,
                    pot=HandRow.pot + literal(delta, Chips()),
                )
                .execution_options(synchronize_session=False)
            )
            session.refresh(hand)

            action = ActionRow(
                hand_id=hand.id,
                player_id=player_id,
                street=street,
                action_type=action_type,
                amount=value,
                sequence=hand.last_sequence,
            )
            session.add(action)
            session.flush()
            table_id = hand.table_id
            action_data = action_payload(action)
            hand_data = hand_payload(hand)

        LOGGER.debug(
            "Action hand=%s seq=%s player=%s %s %s pot=%s",
            hand_id,
            action_data["sequence"],
            player_id,
            action_type.value,
            value,
            hand_data["pot"],
        )
        notify(self.publisher, table_id, EventKind.ACTION_ADDED, {"handId": hand_id, "action": action_data})
        if delta:
            notify(self.publisher, table_id, EventKind.HAND_UPDATED, hand_data)
        return action_data

    def complete_hand(self, hand_id: str) -> RakeQuote:
        with self.store.transaction() as session:
            hand = session.get(HandRow, hand_id, with_for_update=True)
            if hand is None:
                raise NotFoundError("HAND_NOT_FOUND", "Hand not found")
            pot = hand.pot
            rake, pot_after_rake = compute_rake(pot)
            hand.street = Street.SHOWDOWN
            hand.rake = rake
            session.flush()
            table_id = hand.table_id
            hand_data = hand_payload(hand)

        quote = RakeQuote(hand_id=hand_id, pot=pot, rake=rake, pot_after_rake=pot_after_rake)
        LOGGER.info("Hand %s complete: pot=%s rake=%s", hand_id, pot, rake)
        notify(
            self.publisher,
            table_id,
            EventKind.HAND_COMPLETED,
            {"handId": hand_id, "hand": hand_data, "result": quote.to_payload()},
        )
        return quote

    # Settlement ------------------------------------------------------

    def settle_hand(self, hand_id: str, results: Sequence[SeatResult]) -> Dict[str, object]:
        """Record each seat's ending stack and winnings once the hand is complete."""
        require(check_results(results))

        with self.store.transaction() as session:
            hand = session.get(HandRow, hand_id, with_for_update=True)
            if hand is None:
                raise NotFoundError("HAND_NOT_FOUND", "Hand not found")
            if hand.street != Street.SHOWDOWN:
                raise ConflictError("HAND_NOT_COMPLETED", "Complete the hand before settling it")

            seats = {seat.player_id: seat for seat in hand.seats}
            unknown = [
                FieldError(f"results.{idx}.playerId", "player is not seated in this hand")
                for idx, result in enumerate(results)
                if result.player_id not in seats
            ]
            require(unknown)

            for result in results:
                seat = seats[result.player_id]
                seat.ending_chips = to_decimal(result.ending_chips)
                seat.won = to_decimal(result.won)
                seat.showed_down = bool(result.showed_down)
            session.flush()
            refresh_player_totals(session, seats.keys())
            table_id = hand.table_id
            payload = hand_with_seats_payload(hand)

        LOGGER.info("Hand %s settled for %s players", hand_id, len(results))
        notify(self.publisher, table_id, EventKind.HAND_UPDATED, payload)
        return payload

    def _require_seated(self, session: Session, hand_id: str, player_id: str) -> None:
        seated = session.scalar(
            select(PlayerInHandRow.id).where(
                PlayerInHandRow.hand_id == hand_id,
                PlayerInHandRow.player_id == player_id,
            )
        )
        if seated is not None:
            return
        if session.get(PlayerRow, player_id) is None:
            raise NotFoundError("PLAYER_NOT_FOUND", "Player not found")
        raise ValidationError.single("playerId", "Player is not seated in this hand")
