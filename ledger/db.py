"""SQLAlchemy storage for tables, players, hands, seats and actions."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import DateTime, TypeDecorator

from .errors import ConflictError, InternalError, LedgerError
from .models import ActionType, GameType, Position, Street

LOGGER = logging.getLogger("poker_ledger.db")

CENT = Decimal("0.01")

Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Chips(TypeDecorator):
    """Decimal chip amounts stored as integer cents."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        cents = Decimal(value) * 100
        return int(cents.to_integral_value(rounding=ROUND_HALF_UP))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(value) / 100).quantize(CENT)


class UtcDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps, also on backends that store them naive."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class TableRow(Base):
    __tablename__ = "tables"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String(100), unique=True, nullable=False)
    game_type = Column(Enum(GameType, native_enum=False), nullable=False)
    small_blind = Column(Chips, nullable=False)
    big_blind = Column(Chips, nullable=False)
    max_players = Column(Integer, nullable=False, default=10)
    created_at = Column(UtcDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UtcDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    hands = relationship(
        "HandRow",
        back_populates="table",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PlayerRow(Base):
    __tablename__ = "players"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    total_hands = Column(Integer, nullable=False, default=0)
    total_winnings = Column(Chips, nullable=False, default=Decimal("0"))
    created_at = Column(UtcDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UtcDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    seats = relationship("PlayerInHandRow", back_populates="player")


class HandRow(Base):
    __tablename__ = "hands"
    __table_args__ = (UniqueConstraint("table_id", "hand_number", name="uq_hand_table_number"),)

    id = Column(String(32), primary_key=True, default=_new_id)
    table_id = Column(String(32), ForeignKey("tables.id", ondelete="CASCADE"), nullable=False, index=True)
    hand_number = Column(Integer, nullable=False)
    street = Column(Enum(Street, native_enum=False), nullable=False, default=Street.PREFLOP)
    pot = Column(Chips, nullable=False, default=Decimal("0"))
    rake = Column(Chips, nullable=False, default=Decimal("0"))
    # Highest action sequence handed out so far; bumped atomically per append.
    last_sequence = Column(Integer, nullable=False, default=0)
    created_at = Column(UtcDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UtcDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    table = relationship("TableRow", back_populates="hands")
    seats = relationship(
        "PlayerInHandRow",
        back_populates="hand",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PlayerInHandRow.seat_order",
    )
    actions = relationship(
        "ActionRow",
        back_populates="hand",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ActionRow.sequence",
    )


class PlayerInHandRow(Base):
    __tablename__ = "player_in_hands"
    __table_args__ = (UniqueConstraint("hand_id", "player_id", name="uq_seat_hand_player"),)

    id = Column(String(32), primary_key=True, default=_new_id)
    hand_id = Column(String(32), ForeignKey("hands.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(32), ForeignKey("players.id"), nullable=False, index=True)
    position = Column(Enum(Position, native_enum=False, values_callable=lambda e: [m.value for m in e]), nullable=False)
    seat_order = Column(Integer, nullable=False)
    starting_chips = Column(Chips, nullable=False)
    ending_chips = Column(Chips, nullable=False)
    cards = Column(Text, nullable=True)
    won = Column(Chips, nullable=False, default=Decimal("0"))
    showed_down = Column(Boolean, nullable=False, default=False)
    created_at = Column(UtcDateTime, nullable=False, default=_utcnow)

    hand = relationship("HandRow", back_populates="seats")
    player = relationship("PlayerRow", back_populates="seats")


class ActionRow(Base):
    __tablename__ = "actions"
    __table_args__ = (UniqueConstraint("hand_id", "sequence", name="uq_action_hand_sequence"),)

    id = Column(String(32), primary_key=True, default=_new_id)
    hand_id = Column(String(32), ForeignKey("hands.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(String(32), ForeignKey("players.id"), nullable=False)
    street = Column(Enum(Street, native_enum=False), nullable=False)
    action_type = Column(Enum(ActionType, native_enum=False), nullable=False)
    amount = Column(Chips, nullable=False, default=Decimal("0"))
    sequence = Column(Integer, nullable=False)
    created_at = Column(UtcDateTime, nullable=False, default=_utcnow)

    hand = relationship("HandRow", back_populates="actions")
    player = relationship("PlayerRow")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Store:
    """Owns the SQLAlchemy engine and hands out transactional sessions."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        kwargs: dict = {"echo": echo}
        is_sqlite = url.startswith("sqlite")
        if is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database.
                kwargs["poolclass"] = StaticPool
        self.url = url
        self.engine = create_engine(url, **kwargs)
        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on any error."""
        try:
            with self._factory.begin() as session:
                yield session
        except LedgerError:
            raise
        except IntegrityError as exc:
            LOGGER.warning("Integrity violation: %s", exc.orig)
            raise ConflictError("CONFLICT", "Record already exists") from exc
        except SQLAlchemyError as exc:
            LOGGER.exception("Storage failure")
            raise InternalError() from exc
