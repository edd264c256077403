"""Network side of the ledger: HTTP API and real-time table rooms."""

from .api import create_app
from .broadcaster import TableBroadcaster
from .config import ServerConfig
from .server import LedgerServer

__all__ = ["create_app", "TableBroadcaster", "ServerConfig", "LedgerServer"]
