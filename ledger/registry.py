from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select

from .db import CENT, HandRow, PlayerInHandRow, PlayerRow, Store, TableRow
from .errors import ConflictError, NotFoundError
from .events import Publisher, notify
from .models import EventKind, GameType, PlayerStats, TableConfig
from .payloads import hand_payload, player_payload, seat_payload, table_payload
from .validation import check_player, check_table, require, to_decimal

LOGGER = logging.getLogger("poker_ledger")

RECENT_HANDS_PER_TABLE = 10
RECENT_SEATS_PER_PLAYER = 20


class Registry:
    """Tables and players: the records hands are logged against."""

    def __init__(self, store: Store, publisher: Optional[Publisher] = None) -> None:
        self.store = store
        self.publisher = publisher

    # Tables ----------------------------------------------------------

    def create_table(self, config: TableConfig) -> Dict[str, object]:
        require(check_table(config))
        with self.store.transaction() as session:
            taken = session.scalar(select(TableRow.id).where(TableRow.name == config.name))
            if taken is not None:
                raise ConflictError("DUPLICATE_TABLE", f"Table name {config.name!r} is already in use")
            table = TableRow(
                name=config.name,
                game_type=GameType(config.game_type),
                small_blind=to_decimal(config.small_blind),
                big_blind=to_decimal(config.big_blind),
                max_players=config.max_players,
            )
            session.add(table)
            session.flush()
            payload = table_payload(table)
        LOGGER.info("Table %s (%s) created", payload["id"], config.name)
        return payload

    def list_tables(self) -> List[Dict[str, object]]:
        with self.store.transaction() as session:
            tables = session.scalars(select(TableRow).order_by(TableRow.created_at.desc()))
            return [table_payload(table) for table in tables]

    def get_table(self, table_id: str) -> Dict[str, object]:
        with self.store.transaction() as session:
            table = session.get(TableRow, table_id)
            if table is None:
                raise NotFoundError("TABLE_NOT_FOUND", "Table not found")
            hands = session.scalars(
                select(HandRow)
                .where(HandRow.table_id == table_id)
                .order_by(HandRow.created_at.desc(), HandRow.hand_number.desc())
                .limit(RECENT_HANDS_PER_TABLE)
            )
            payload = table_payload(table)
            payload["hands"] = [hand_payload(hand) for hand in hands]
            return payload

    def delete_table(self, table_id: str) -> None:
        with self.store.transaction() as session:
            table = session.get(TableRow, table_id)
            if table is None:
                raise NotFoundError("TABLE_NOT_FOUND", "Table not found")
            hand_count = len(table.hands)
            session.delete(table)
        LOGGER.info("Table %s deleted with %s hands", table_id, hand_count)
        notify(self.publisher, table_id, EventKind.TABLE_UPDATED, {"id": table_id, "deleted": True})

    # Players ---------------------------------------------------------

    def create_player(self, name: str, email: Optional[str] = None) -> Dict[str, object]:
        require(check_player(name, email))
        with self.store.transaction() as session:
            if session.scalar(select(PlayerRow.id).where(PlayerRow.name == name)) is not None:
                raise ConflictError("DUPLICATE_PLAYER", f"Player name {name!r} is already registered")
            if email is not None and session.scalar(select(PlayerRow.id).where(PlayerRow.email == email)) is not None:
                raise ConflictError("DUPLICATE_EMAIL", "Email is already registered")
            player = PlayerRow(name=name, email=email, total_hands=0, total_winnings=Decimal("0"))
            session.add(player)
            session.flush()
            payload = player_payload(player)
        LOGGER.info("Player %s (%s) registered", payload["id"], name)
        return payload

    def list_players(self) -> List[Dict[str, object]]:
        with self.store.transaction() as session:
            players = session.scalars(select(PlayerRow).order_by(PlayerRow.created_at.desc()))
            return [player_payload(player) for player in players]

    def get_player(self, player_id: str) -> Dict[str, object]:
        with self.store.transaction() as session:
            player = session.get(PlayerRow, player_id)
            if player is None:
                raise NotFoundError("PLAYER_NOT_FOUND", "Player not found")
            seats = session.scalars(
                select(PlayerInHandRow)
                .join(HandRow, PlayerInHandRow.hand_id == HandRow.id)
                .where(PlayerInHandRow.player_id == player_id)
                .order_by(HandRow.created_at.desc())
                .limit(RECENT_SEATS_PER_PLAYER)
            )
            history = []
            for seat in seats:
                entry = seat_payload(seat, with_player=False)
                entry["hand"] = hand_payload(seat.hand) | {"table": table_payload(seat.hand.table)}
                history.append(entry)
            payload = player_payload(player)
            payload["playerInHands"] = history
            return payload

    def player_stats(self, player_id: str) -> PlayerStats:
        with self.store.transaction() as session:
            player = session.get(PlayerRow, player_id)
            if player is None:
                raise NotFoundError("PLAYER_NOT_FOUND", "Player not found")
            rows = session.execute(
                select(
                    PlayerInHandRow.won,
                    PlayerInHandRow.starting_chips,
                    PlayerInHandRow.ending_chips,
                    PlayerInHandRow.showed_down,
                ).where(PlayerInHandRow.player_id == player_id)
            ).all()
            stats = PlayerStats(player_id=player.id, player_name=player.name)

        stats.total_hands = len(rows)
        if not rows:
            return stats
        stats.total_won = sum((won for won, _, _, _ in rows), Decimal("0"))
        stats.total_profit = sum((ending - starting for _, starting, ending, _ in rows), Decimal("0"))
        stats.hands_won = sum(1 for won, _, _, _ in rows if won > 0)
        showdowns = [won for won, _, _, showed in rows if showed]
        stats.win_rate = stats.hands_won / stats.total_hands * 100
        if showdowns:
            stats.showdown_win_rate = sum(1 for won in showdowns if won > 0) / len(showdowns) * 100
        stats.avg_profit_per_hand = (stats.total_profit / stats.total_hands).quantize(CENT)
        return stats
