from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import AsyncIOOSCUDPServer

LookCallback = Callable[[float, float, float], Awaitable[None] | None]
CommandCallback = Callable[[dict[str, Any]], Awaitable[None] | None]

LOOK_ADDRESS = "/input/look"
COMMAND_ADDRESS = "/input/command"


class OSCReceiver:
    """OSC UDP receiver for the controller's inbound streams.

    - ``/input/look dx dy [dz]``: fine-grained look deltas, forwarded to the
      rotation callback.
    - ``/input/command <json>``: one movement command as a JSON object string.
    """

    def __init__(
        self,
        *,
        bind_ip: str,
        port: int,
        logger,
        on_look: LookCallback | None = None,
        on_command: CommandCallback | None = None,
    ) -> None:
        self._bind_ip = bind_ip
        self._port = int(port)
        self._logger = logger
        self._on_look = on_look
        self._on_command = on_command

        self._dispatcher = Dispatcher()
        self._server: AsyncIOOSCUDPServer | None = None
        self._transport = None
        self._protocol = None

        self._dispatcher.map(LOOK_ADDRESS, self._handle_look)
        self._dispatcher.map(COMMAND_ADDRESS, self._handle_command)

    @property
    def bind_ip(self) -> str:
        return self._bind_ip

    @property
    def port(self) -> int:
        return self._port

    async def start(self) -> None:
        if self._transport is not None:
            return

        loop = asyncio.get_running_loop()
        # python-osc's type stubs expect BaseEventLoop; get_running_loop returns AbstractEventLoop.
        self._server = AsyncIOOSCUDPServer((self._bind_ip, self._port), self._dispatcher, loop)  # type: ignore[arg-type]
        self._transport, self._protocol = await self._server.create_serve_endpoint()

        self._logger.info("osc.receiver.start", bind_ip=self._bind_ip, bind_port=self._port)

    async def close(self) -> None:
        if self._transport is None:
            return

        try:
            self._logger.info("osc.receiver.stop", bind_ip=self._bind_ip, bind_port=self._port)
        finally:
            self._transport.close()
            self._transport = None
            self._protocol = None
            self._server = None

    # -----------------
    # OSC handlers
    # -----------------

    def _handle_look(self, address: str, *args: Any) -> None:
        try:
            values = [float(a) for a in args[:3]]
        except (TypeError, ValueError):
            self._logger.warning("osc.recv.bad_look", osc_address=address, args=[repr(a) for a in args])
            return
        if len(values) < 2:
            self._logger.warning("osc.recv.bad_look", osc_address=address, args=values)
            return

        dx, dy = values[0], values[1]
        dz = values[2] if len(values) > 2 else 0.0
        if self._on_look is not None:
            self._call_cb(self._on_look, dx, dy, dz)

    def _handle_command(self, address: str, *args: Any) -> None:
        raw = args[0] if args else None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        try:
            command = json.loads(raw) if isinstance(raw, str) else None
        except json.JSONDecodeError as e:
            self._logger.warning("osc.recv.bad_command", osc_address=address, error=str(e))
            return
        if not isinstance(command, dict):
            self._logger.warning("osc.recv.bad_command", osc_address=address, error="expected a JSON object")
            return

        self._logger.debug("osc.recv.command", osc_address=address, command=command)
        if self._on_command is not None:
            self._call_cb(self._on_command, command)

    def _call_cb(self, cb: Callable[..., Awaitable[None] | None], *args: Any) -> None:
        try:
            r = cb(*args)
            if asyncio.iscoroutine(r):
                asyncio.create_task(r)  # fire-and-forget
        except Exception:  # noqa: BLE001
            # Keep the OSC server alive on callback errors.
            self._logger.exception("osc.recv.callback_failed", callback=getattr(cb, "__name__", repr(cb)))
