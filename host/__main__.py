import argparse
import asyncio
import logging

from .config import ServerConfig
from .server import LedgerServer


def main() -> None:
    # Environment variables set the defaults; flags override them.
    env = ServerConfig.from_env()
    parser = argparse.ArgumentParser(description="Poker hand ledger server")
    parser.add_argument("--host", default=env.host)
    parser.add_argument("--port", type=int, default=env.port, help="HTTP API port")
    parser.add_argument("--ws-port", type=int, default=env.ws_port, help="Websocket hub port")
    parser.add_argument("--database-url", default=env.database_url)
    parser.add_argument("--cors-origin", default=env.cors_origin)
    parser.add_argument("--log-level", default=env.log_level)
    parser.add_argument(
        "--ws-queue-size",
        type=int,
        default=env.ws_queue_size,
        help="Messages buffered per websocket client before events are dropped",
    )
    args = parser.parse_args()

    config = ServerConfig(
        host=args.host,
        port=args.port,
        ws_port=args.ws_port,
        database_url=args.database_url,
        cors_origin=args.cors_origin or None,
        log_level=args.log_level.upper(),
        ws_queue_size=args.ws_queue_size,
    )
    logging.basicConfig(level=config.log_level)

    server = LedgerServer(config)
    asyncio.run(server.start())


if __name__ == "__main__":
    main()
