from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class Street(str, Enum):
    PREFLOP = "PREFLOP"
    FLOP = "FLOP"
    TURN = "TURN"
    RIVER = "RIVER"
    SHOWDOWN = "SHOWDOWN"


class ActionType(str, Enum):
    FOLD = "FOLD"
    CHECK = "CHECK"
    CALL = "CALL"
    BET = "BET"
    RAISE = "RAISE"
    ALL_IN = "ALL_IN"


# Action types that put chips into the pot.
POT_ACTIONS = frozenset({ActionType.BET, ActionType.RAISE, ActionType.CALL, ActionType.ALL_IN})


class Position(str, Enum):
    SB = "SB"
    BB = "BB"
    UTG = "UTG"
    UTG_PLUS_1 = "UTG+1"
    UTG_PLUS_2 = "UTG+2"
    MP = "MP"
    MP_PLUS_1 = "MP+1"
    HJ = "HJ"
    CO = "CO"
    BTN = "BTN"


# Turn order for a full ring, small blind first.
POSITION_ORDER = list(Position)


class GameType(str, Enum):
    CASH = "CASH"
    TOURNAMENT = "TOURNAMENT"
    SIT_AND_GO = "SIT_AND_GO"


class EventKind(str, Enum):
    HAND_CREATED = "hand:created"
    HAND_UPDATED = "hand:updated"
    ACTION_ADDED = "action:added"
    HAND_COMPLETED = "hand:completed"
    TABLE_UPDATED = "table:updated"


@dataclass
class TableConfig:
    name: str
    game_type: GameType = GameType.CASH
    small_blind: Decimal = Decimal("1")
    big_blind: Decimal = Decimal("2")
    max_players: int = 10


@dataclass
class SeatAssignment:
    player_id: str
    position: Position
    starting_chips: Decimal
    cards: Optional[List[str]] = None


@dataclass
class SeatResult:
    player_id: str
    ending_chips: Decimal
    won: Decimal = Decimal("0")
    showed_down: bool = False


@dataclass
class RakeQuote:
    hand_id: str
    pot: Decimal
    rake: Decimal
    pot_after_rake: Decimal

    def to_payload(self) -> dict:
        return {
            "handId": self.hand_id,
            "pot": self.pot,
            "rake": self.rake,
            "potAfterRake": self.pot_after_rake,
        }


@dataclass
class PlayerStats:
    player_id: str
    player_name: str
    total_hands: int = 0
    total_won: Decimal = Decimal("0")
    total_profit: Decimal = Decimal("0")
    hands_won: int = 0
    win_rate: float = 0.0
    showdown_win_rate: float = 0.0
    avg_profit_per_hand: Decimal = Decimal("0")

    def to_payload(self) -> dict:
        return {
            "playerId": self.player_id,
            "playerName": self.player_name,
            "totalHands": self.total_hands,
            "totalWon": self.total_won,
            "totalProfit": self.total_profit,
            "handsWon": self.hands_won,
            "winRate": self.win_rate,
            "showdownWinRate": self.showdown_win_rate,
            "avgProfitPerHand": self.avg_profit_per_hand,
        }
