"""WebSocket server — pushes game state to a map client and takes its commands."""

from __future__ import annotations

import asyncio
import json
import logging

import websockets
from websockets.datastructures import Headers
from websockets.http11 import Response

from .engine import Game

logger = logging.getLogger(__name__)


class LiveServer:
    """Broadcasts ``Game.to_dict()`` over WebSocket and queues client commands."""

    def __init__(self, game: Game, host: str = "localhost", port: int = 8765):
        self.game = game
        self.host = host
        self.port = port
        self.clients: set = set()
        self._command_queue: asyncio.Queue = asyncio.Queue()
        self._server = None

    async def start(self) -> None:
        """Start the WebSocket server."""
        self._server = await websockets.serve(
            self._handler,
            self.host,
            self.port,
            process_request=self._serve_http,
        )
        logger.info("Live server running at ws://%s:%d", self.host, self.port)

    def _serve_http(self, connection, request):
        """Answer plain HTTP requests; WebSocket upgrades pass through."""
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None

        if request.path == "/api/state":
            return self._json_response(self.game.to_dict())

        headers = Headers([("Content-Type", "text/plain")])
        return Response(404, "Not Found", headers, b"Not Found")

    def _json_response(self, data: dict | list) -> Response:
        body = json.dumps(data).encode()
        headers = Headers([
            ("Content-Type", "application/json"),
            ("Content-Length", str(len(body))),
            ("Access-Control-Allow-Origin", "*"),
        ])
        return Response(200, "OK", headers, body)

    async def _handler(self, ws) -> None:
        """Handle a single WebSocket client connection."""
        self.clients.add(ws)
        logger.info("Client connected (%d total)", len(self.clients))
        try:
            await ws.send(json.dumps(self.state_message()))
            async for message in ws:
                await self.submit(message)
        except websockets.ConnectionClosed:
            pass
        finally:
            self.clients.discard(ws)
            logger.info("Client disconnected (%d remaining)", len(self.clients))

    async def submit(self, message: str | bytes) -> None:
        """Queue one raw client message if it is a JSON command object."""
        try:
            cmd = json.loads(message)
        except ValueError:
            logger.warning("Invalid JSON from client: %s", message[:100])
            return
        if not isinstance(cmd, dict):
            logger.warning("Ignoring non-object command: %r", cmd)
            return
        await self._command_queue.put(cmd)

    def state_message(self) -> dict:
        return {"type": "state", **self.game.to_dict()}

    async def broadcast(self, data: dict) -> None:
        """Send data to all connected clients."""
        if not self.clients:
            return
        msg = json.dumps(data)
        # Send to all, ignore individual failures
        await asyncio.gather(
            *[client.send(msg) for client in self.clients],
            return_exceptions=True,
        )

    async def wait_for_command(self, timeout: float = 0.1) -> dict | None:
        """Blocking wait for a command with timeout."""
        try:
            return await asyncio.wait_for(self._command_queue.get(), timeout)
        except TimeoutError:
            return None

    async def drain_commands(self) -> list[dict]:
        """Get all pending commands."""
        commands = []
        while True:
            try:
                commands.append(self._command_queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return commands

    async def process_commands(self, first: dict | None = None) -> bool:
        """Apply queued commands in order, then broadcast once.

        Returns False if a ``stop`` command was seen; anything after it is dropped.
        """
        pending = [first] if first is not None else []
        pending.extend(await self.drain_commands())
        applied = False
        running = True
        for cmd in pending:
            if cmd.get("action") == "stop":
                running = False
                break
            applied = self.game.apply_command(cmd) or applied
        if applied:
            await self.broadcast(self.state_message())
        return running

    async def serve_forever(self) -> None:
        """Run commands as they arrive until a client sends ``stop``."""
        while True:
            cmd = await self.wait_for_command(timeout=1.0)
            if cmd is None:
                continue
            if not await self.process_commands(first=cmd):
                logger.info("Stop requested by client")
                return

    async def stop(self) -> None:
        """Shut down the server."""
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            logger.info("Live server stopped")
