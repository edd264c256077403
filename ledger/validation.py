"""Field rules shared by the engine and the HTTP layer.

Each ``check_*`` function returns a list of :class:`FieldError` so callers can
report every problem in one response; ``require`` raises when the list is
non-empty.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

from .cards import parse_hole_cards
from .errors import FieldError, ValidationError
from .models import GameType, Position, SeatAssignment, SeatResult, TableConfig

NAME_PATTERN = re.compile(r"^[\w\-\s]+$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PLAYER_NAME_LENGTH = (2, 50)
TABLE_NAME_LENGTH = (3, 100)
MAX_PLAYERS_RANGE = (2, 10)
SEATS_PER_HAND = (2, 10)
HAND_NUMBER_MAX = 2**31 - 1
CHIPS_MAX = Decimal("1000000000")
BLINDS_MAX = Decimal("1000000")
CENT = Decimal("0.01")


def require(errors: List[FieldError]) -> None:
    if errors:
        raise ValidationError(errors, msg=errors[0].message)


def _check_name(value: str, field: str, bounds: tuple[int, int], label: str) -> List[FieldError]:
    low, high = bounds
    if not isinstance(value, str) or len(value.strip()) < low:
        return [FieldError(field, f"{label} must be at least {low} characters")]
    if len(value) > high:
        return [FieldError(field, f"{label} must be at most {high} characters")]
    if not NAME_PATTERN.match(value):
        return [FieldError(field, f"{label} may only contain letters, digits, spaces, '_' and '-'")]
    return []


def to_decimal(value: object) -> Decimal:
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def check_amount(
    value: object,
    field: str,
    *,
    allow_zero: bool = True,
    maximum: Decimal = CHIPS_MAX,
) -> List[FieldError]:
    if isinstance(value, bool) or value is None:
        return [FieldError(field, "must be a number")]
    try:
        amount = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return [FieldError(field, "must be a number")]
    if not amount.is_finite():
        return [FieldError(field, "must be a finite number")]
    if amount < 0 or (amount == 0 and not allow_zero):
        return [FieldError(field, "must be positive" if not allow_zero else "must not be negative")]
    if amount > maximum:
        return [FieldError(field, f"must be at most {maximum}")]
    if amount != amount.quantize(CENT):
        return [FieldError(field, "must have at most two decimal places")]
    return []


def check_table(config: TableConfig) -> List[FieldError]:
    errors = _check_name(config.name, "name", TABLE_NAME_LENGTH, "Table name")
    try:
        GameType(config.game_type)
    except ValueError:
        errors.append(FieldError("gameType", f"unknown game type {config.game_type!r}"))
    errors += check_amount(config.small_blind, "smallBlind", allow_zero=False, maximum=BLINDS_MAX)
    errors += check_amount(config.big_blind, "bigBlind", allow_zero=False, maximum=BLINDS_MAX)
    if not any(error.field in ("smallBlind", "bigBlind") for error in errors):
        if to_decimal(config.big_blind) < to_decimal(config.small_blind):
            errors.append(FieldError("bigBlind", "Big blind must be at least the small blind"))
    low, high = MAX_PLAYERS_RANGE
    if isinstance(config.max_players, bool) or not isinstance(config.max_players, int):
        errors.append(FieldError("maxPlayers", "must be an integer"))
    elif not low <= config.max_players <= high:
        errors.append(FieldError("maxPlayers", f"must be between {low} and {high}"))
    return errors


def check_player(name: str, email: Optional[str]) -> List[FieldError]:
    errors = _check_name(name, "name", PLAYER_NAME_LENGTH, "Player name")
    if email is not None and not EMAIL_PATTERN.match(email):
        errors.append(FieldError("email", "Invalid email address"))
    return errors


def check_hand(hand_number: int, seats: Sequence[SeatAssignment]) -> List[FieldError]:
    errors: List[FieldError] = []
    if isinstance(hand_number, bool) or not isinstance(hand_number, int) or hand_number < 1:
        errors.append(FieldError("handNumber", "must be a positive integer"))
    elif hand_number > HAND_NUMBER_MAX:
        errors.append(FieldError("handNumber", f"must be at most {HAND_NUMBER_MAX}"))

    low, high = SEATS_PER_HAND
    if not low <= len(seats) <= high:
        errors.append(FieldError("players", f"a hand needs between {low} and {high} players"))

    seen_players: set[str] = set()
    seen_positions: set[str] = set()
    for idx, seat in enumerate(seats):
        prefix = f"players.{idx}"
        errors += check_amount(seat.starting_chips, f"{prefix}.startingChips", allow_zero=False)
        if seat.cards is not None:
            try:
                parse_hole_cards(seat.cards)
            except ValueError as exc:
                errors.append(FieldError(f"{prefix}.cards", str(exc)))
        if seat.player_id in seen_players:
            errors.append(FieldError(f"{prefix}.playerId", "player is already seated in this hand"))
        seen_players.add(seat.player_id)
        try:
            Position(seat.position)
        except ValueError:
            errors.append(FieldError(f"{prefix}.position", f"unknown position {seat.position!r}"))
        if seat.position in seen_positions:
            errors.append(FieldError(f"{prefix}.position", "position is already taken in this hand"))
        seen_positions.add(seat.position)
    return errors


def check_results(results: Sequence[SeatResult]) -> List[FieldError]:
    errors: List[FieldError] = []
    if not results:
        errors.append(FieldError("results", "at least one result required"))
    seen: set[str] = set()
    for idx, result in enumerate(results):
        prefix = f"results.{idx}"
        errors += check_amount(result.ending_chips, f"{prefix}.endingChips")
        errors += check_amount(result.won, f"{prefix}.won")
        if result.player_id in seen:
            errors.append(FieldError(f"{prefix}.playerId", "duplicate result for player"))
        seen.add(result.player_id)
    return errors
