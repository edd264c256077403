"""HTTP routes for tables, players and hands.

Every response is ``{"success": true, "data": ...}`` or the error shape built
by :func:`ledger.errors.error_payload`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

from ledger.errors import LedgerError, error_payload
from ledger.game import HandEngine
from ledger.models import ActionType, GameType, Position, SeatAssignment, SeatResult, Street, TableConfig
from ledger.registry import Registry

LOGGER = logging.getLogger("poker_ledger.api")


def _float_to_str(value: Any) -> Any:
    # JSON numbers arrive as floats; going through str keeps 0.1 as Decimal("0.1").
    if isinstance(value, float):
        return str(value)
    return value


Chips = Annotated[Decimal, BeforeValidator(_float_to_str)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateTableBody(CamelModel):
    name: str
    game_type: GameType = GameType.CASH
    small_blind: Chips
    big_blind: Chips
    max_players: int = 10


class CreatePlayerBody(CamelModel):
    name: str
    email: Optional[str] = None


class HandSeatBody(CamelModel):
    player_id: str
    position: Position
    starting_chips: Chips
    cards: Optional[List[str]] = None


class CreateHandBody(CamelModel):
    table_id: str
    hand_number: int
    players: List[HandSeatBody]


class AddActionBody(CamelModel):
    player_id: str
    street: Street
    action_type: ActionType
    amount: Chips


class SeatResultBody(CamelModel):
    player_id: str
    ending_chips: Chips
    won: Chips = Decimal("0")
    showed_down: bool = False


class SettleHandBody(CamelModel):
    results: List[SeatResultBody]


def ok(data: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    return body


def _validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append({"field": ".".join(loc), "message": error.get("msg", "Invalid value")})
    return errors


# Routes stay `async def`: the publisher feeds asyncio queues owned by the event loop,
# so engine calls must not move to the threadpool that sync routes run in.
def create_app(registry: Registry, engine: HandEngine, *, cors_origin: Optional[str] = None) -> FastAPI:
    app = FastAPI(title="Poker Hand Ledger")
    if cors_origin:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[cors_origin],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(LedgerError)
    async def _ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
        if exc.status >= 500:
            LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.msg)
        else:
            LOGGER.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.msg)
        return JSONResponse(status_code=exc.status, content=error_payload(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = _validation_errors(exc)
        LOGGER.info("%s %s rejected: %s", request.method, request.url.path, errors)
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid input",
                "code": "VALIDATION_ERROR",
                "validationErrors": errors,
            },
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("%s %s crashed", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    router = APIRouter(prefix="/api")

    # Tables ----------------------------------------------------------

    @router.get("/tables")
    async def list_tables():
        return ok(registry.list_tables())

    @router.post("/tables", status_code=201)
    async def create_table(body: CreateTableBody):
        config = TableConfig(
            name=body.name,
            game_type=body.game_type,
            small_blind=body.small_blind,
            big_blind=body.big_blind,
            max_players=body.max_players,
        )
        return ok(registry.create_table(config))

    @router.get("/tables/{table_id}")
    async def get_table(table_id: str):
        return ok(registry.get_table(table_id))

    @router.delete("/tables/{table_id}")
    async def delete_table(table_id: str):
        registry.delete_table(table_id)
        return ok()

    # Players ---------------------------------------------------------

    @router.get("/players")
    async def list_players():
        return ok(registry.list_players())

    @router.post("/players", status_code=201)
    async def create_player(body: CreatePlayerBody):
        return ok(registry.create_player(body.name, body.email))

    @router.get("/players/{player_id}")
    async def get_player(player_id: str):
        return ok(registry.get_player(player_id))

    @router.get("/players/{player_id}/stats")
    async def player_stats(player_id: str):
        return ok(registry.player_stats(player_id).to_payload())

    # Hands -----------------------------------------------------------

    @router.post("/hands", status_code=201)
    async def create_hand(body: CreateHandBody):
        seats = [
            SeatAssignment(
                player_id=seat.player_id,
                position=seat.position,
                starting_chips=seat.starting_chips,
                cards=seat.cards,
            )
            for seat in body.players
        ]
        return ok(engine.create_hand(body.table_id, body.hand_number, seats))

    @router.get("/hands/{hand_id}")
    async def get_hand(hand_id: str):
        return ok(engine.get_hand(hand_id))

    @router.post("/hands/{hand_id}/actions", status_code=201)
    async def add_action(hand_id: str, body: AddActionBody):
        action = engine.append_action(hand_id, body.player_id, body.street, body.action_type, body.amount)
        return ok(action)

    @router.patch("/hands/{hand_id}/complete")
    async def complete_hand(hand_id: str):
        return ok(engine.complete_hand(hand_id).to_payload())

    @router.patch("/hands/{hand_id}/settle")
    async def settle_hand(hand_id: str, body: SettleHandBody):
        results = [
            SeatResult(
                player_id=result.player_id,
                ending_chips=result.ending_chips,
                won=result.won,
                showed_down=result.showed_down,
            )
            for result in body.results
        ]
        return ok(engine.settle_hand(hand_id, results))

    app.include_router(router)
    return app
