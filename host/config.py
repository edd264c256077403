from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    ws_port: int = 8765
    database_url: str = "sqlite:///poker_ledger.db"
    cors_origin: Optional[str] = "http://localhost:5173"
    log_level: str = "INFO"
    ws_queue_size: int = 256

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            host=env.get("HOST", defaults.host),
            port=int(env.get("PORT", defaults.port)),
            ws_port=int(env.get("WS_PORT", defaults.ws_port)),
            database_url=env.get("DATABASE_URL", defaults.database_url),
            cors_origin=env.get("CORS_ORIGIN", defaults.cors_origin) or None,
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
            ws_queue_size=int(env.get("WS_QUEUE_SIZE", defaults.ws_queue_size)),
        )
