from __future__ import annotations

import logging

import uvicorn
from websockets.asyncio.server import serve

from ledger.db import Store
from ledger.game import HandEngine
from ledger.registry import Registry

from .api import create_app
from .broadcaster import TableBroadcaster, process_request
from .config import ServerConfig

LOGGER = logging.getLogger("poker_ledger")

# LedgerServer wires storage, the engine, the HTTP API and the websocket hub.
# Both listeners share one event loop, so engine calls never run in parallel.


class LedgerServer:
    def __init__(self, config: ServerConfig) -> None:
        self.config = config
        self.store = Store(config.database_url)
        self.broadcaster = TableBroadcaster(queue_size=config.ws_queue_size)
        self.registry = Registry(self.store, self.broadcaster)
        self.engine = HandEngine(self.store, self.broadcaster)
        self.app = create_app(self.registry, self.engine, cors_origin=config.cors_origin)

    async def start(self) -> None:
        self.store.create_all()
        api = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=self.config.host,
                port=self.config.port,
                log_level=self.config.log_level.lower(),
            )
        )
        try:
            async with serve(
                self.broadcaster.handle_connection,
                self.config.host,
                self.config.ws_port,
                process_request=process_request,
            ):
                LOGGER.info(
                    "Ledger listening on http://%s:%s (websocket port %s)",
                    self.config.host,
                    self.config.port,
                    self.config.ws_port,
                )
                # Returns once uvicorn handles SIGINT/SIGTERM.
                await api.serve()
        finally:
            await self.broadcaster.close()
            self.store.dispose()
            LOGGER.info("Ledger stopped")
