"""Client-facing surface: notifications and the JSON-RPC server.

The server lives in ``lockwatch.rpc.server`` and is imported from there;
the engine depends on this package for notifications only.
"""

from .notifications import ClientEventKind, ClientNotifier, EventBuffer

__all__ = [
    "ClientEventKind",
    "ClientNotifier",
    "EventBuffer",
]
