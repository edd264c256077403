#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List

from websockets.asyncio.client import connect

logging.basicConfig(level=logging.INFO)

# TableWatcher joins one or more table rooms and prints every event it gets.


class TableWatcher:
    def __init__(self, url: str, table_ids: List[str]) -> None:
        self.url = url
        self.table_ids = table_ids

    async def run(self) -> None:
        async with connect(self.url) as ws:
            for table_id in self.table_ids:
                await ws.send(json.dumps({"type": "join", "table_id": table_id}))
            async for raw in ws:
                self._print_message(json.loads(raw))

    def _print_message(self, msg: Dict[str, Any]) -> None:
        msg_type = msg.get("type", "?")
        print(f"\n>>> {msg_type.upper()} {msg.get('timestamp', '')}")
        payload = msg.get("payload") or {}
        if msg_type == "hand:created":
            seats = ", ".join(
                f"{seat['position']}:{seat['player']['name']} ({seat['startingChips']})"
                for seat in payload.get("players", [])
            )
            print(f"Hand #{payload.get('handNumber')} {payload.get('id')} | {seats}")
        elif msg_type == "action:added":
            action = payload.get("action", {})
            print(
                f"#{action.get('sequence')} {action.get('street')} "
                f"{action.get('playerId')} {action.get('actionType')} {action.get('amount')}"
            )
        elif msg_type == "hand:updated":
            print(f"Hand {payload.get('id')} street={payload.get('street')} pot={payload.get('pot')}")
        elif msg_type == "hand:completed":
            result = payload.get("result", {})
            print(f"Pot {result.get('pot')} rake {result.get('rake')} -> {result.get('potAfterRake')}")
        elif msg_type == "table:updated":
            print(f"Table {payload.get('id')}: {json.dumps(payload)}")
        elif msg_type in ("joined", "left"):
            print(f"Table {msg.get('table_id')}")
        elif msg_type == "error":
            print(f"Error {msg.get('code')}: {msg.get('msg')}")
        else:
            print(json.dumps(msg, indent=2))


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print live events for poker tables")
    parser.add_argument("--url", default="ws://127.0.0.1:8765")
    parser.add_argument("table_ids", nargs="+", help="Table ids to join")
    return parser.parse_args(argv)


def main(argv: list[str]) -> None:
    args = parse_args(argv)
    watcher = TableWatcher(url=args.url, table_ids=args.table_ids)
    try:
        asyncio.run(watcher.run())
    except KeyboardInterrupt:
        print("\nSession closed")


if __name__ == "__main__":
    main(sys.argv[1:])
