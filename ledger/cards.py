from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Optional, Sequence

RANKS = "AKQJT98765432"
SUITS = "shdc"

HOLE_CARD_COUNT = 2


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"


def parse_label(label: str) -> Card:
    if not isinstance(label, str) or len(label) != 2:
        raise ValueError(f"Invalid card label: {label!r}")
    return Card(label[0], label[1])


def parse_hole_cards(labels: Sequence[str]) -> List[Card]:
    """Parse a hole-card pair such as ``["As", "Kh"]``."""
    if len(labels) != HOLE_CARD_COUNT:
        raise ValueError(f"Exactly {HOLE_CARD_COUNT} hole cards required")
    cards = [parse_label(label) for label in labels]
    if cards[0] == cards[1]:
        raise ValueError("Hole cards must be different")
    return cards


def dump_cards(labels: Optional[Sequence[str]]) -> Optional[str]:
    if labels is None:
        return None
    return json.dumps([parse_label(label).label for label in labels])


def load_cards(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    try:
        labels = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(labels, list):
        return None
    return [str(label) for label in labels]
