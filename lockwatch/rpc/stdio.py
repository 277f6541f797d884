"""NDJSON stdio transport for the lockwatch RPC server.

One JSON-RPC message per line on stdin, one response per line on stdout.
Client events emitted by the service are interleaved on stdout as
``client_event`` notifications, so a host sees refresh requests without
polling. Logging must go to stderr while this transport owns stdout.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from .server import ErrorCode, RpcCore, error_response


logger = logging.getLogger(__name__)


class StdioTransport:
    """Serves one RpcCore over a pair of text streams."""

    def __init__(self, core: RpcCore, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.core = core
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._closing = False

    async def run(self) -> None:
        """Serve requests until EOF or stop()."""
        notifier = self.core.service.notifier
        notifier.add_listener(self._write_event)

        reader = asyncio.StreamReader()
        loop = asyncio.get_running_loop()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), self._stdin)
        logger.info(f"serving {self.core.service.project_dir} on stdio")

        try:
            while not self._closing:
                raw = await reader.readline()
                if not raw:
                    break
                await self._handle_line(raw.decode("utf-8", errors="replace").strip())
        except asyncio.CancelledError:
            logger.info("stdio transport cancelled")
        except Exception as e:
            logger.exception(f"stdio transport failed: {e}")
        finally:
            notifier.remove_listener(self._write_event)
            self._closing = True
            logger.info("stdio transport closed")

    async def _handle_line(self, line: str) -> None:
        if not line:
            return

        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            self._write(error_response(None, ErrorCode.PARSE_ERROR.value, f"Parse error: {e}"))
            return

        response = await self.core.handle(message)
        # notifications (no id) get no response
        if isinstance(message, dict) and "id" not in message:
            return
        self._write(response)

    def _write_event(self, event: Dict[str, Any]) -> None:
        self._write({"jsonrpc": "2.0", "method": "client_event", "params": event})

    def _write(self, payload: Dict[str, Any]) -> None:
        try:
            self._stdout.write(json.dumps(payload, separators=(",", ":")) + "\n")
            self._stdout.flush()
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"dropping unwritable message: {e}")

    def stop(self) -> None:
        self._closing = True


async def run_stdio_server(core: RpcCore) -> None:
    """Start monitoring and serve RPC requests on stdio until EOF."""
    service = core.service
    service.start()
    try:
        await StdioTransport(core).run()
        await service.join()
    finally:
        service.close()
