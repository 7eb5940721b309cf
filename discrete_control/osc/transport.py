from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pythonosc.osc_bundle_builder import IMMEDIATELY, OscBundleBuilder
from pythonosc.osc_message_builder import OscMessageBuilder
from pythonosc.udp_client import SimpleUDPClient

OSCArg = tuple[str, Any]


@dataclass(frozen=True)
class OutboundPacket:
    """One UDP datagram worth of OSC messages (sent as a bundle when > 1)."""

    messages: tuple[OSCArg, ...]
    created_at: float


def _build(packet: OutboundPacket):
    if len(packet.messages) == 1:
        address, value = packet.messages[0]
        msg = OscMessageBuilder(address=address)
        msg.add_arg(value)
        return msg.build()

    bundle = OscBundleBuilder(IMMEDIATELY)
    for address, value in packet.messages:
        msg = OscMessageBuilder(address=address)
        msg.add_arg(value)
        bundle.add_content(msg.build())
    return bundle.build()


class PacketPacer:
    """Spaces sends at least ``1 / per_second`` apart by sleeping."""

    def __init__(self, *, per_second: int) -> None:
        self._interval = 1.0 / max(1, int(per_second))
        self._next_at = 0.0

    async def wait(self) -> None:
        now = time.monotonic()
        if now < self._next_at:
            await asyncio.sleep(self._next_at - now)
            now = time.monotonic()
        self._next_at = max(now, self._next_at) + self._interval


class OSCTransport:
    """Queued OSC/UDP sender for status output.

    Producers are synchronous (output-channel listeners running inside a
    frame), so ``send_nowait``/``send_packet_nowait`` never block. A full
    queue drops its oldest packet: a stale snapshot is worth less than a new
    one.
    """

    def __init__(
        self,
        *,
        send_ip: str,
        send_port: int,
        osc_per_second: int,
        logger,
        queue_maxsize: int = 2048,
    ) -> None:
        self._client = SimpleUDPClient(send_ip, send_port)
        self._logger = logger
        self._queue: asyncio.Queue[OutboundPacket] = asyncio.Queue(maxsize=queue_maxsize)
        self._task: asyncio.Task[None] | None = None
        self._pacer = PacketPacer(per_second=osc_per_second)
        self._last_sent_at: float | None = None
        self._dropped = 0
        self._sent = 0

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def sent(self) -> int:
        return self._sent

    def last_sent_ms_ago(self) -> int | None:
        if self._last_sent_at is None:
            return None
        return max(0, int((time.monotonic() - self._last_sent_at) * 1000))

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="osc-sender")

    async def close(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    def send_nowait(self, *, address: str, value: Any) -> None:
        self.send_packet_nowait([(address, value)])

    def send_packet_nowait(self, messages: Sequence[OSCArg]) -> None:
        if not messages:
            return
        packet = OutboundPacket(messages=tuple(messages), created_at=time.monotonic())
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self._dropped += 1
            if self._dropped % 100 == 1:
                self._logger.warning("osc.queue_full", dropped=self._dropped, queue_maxsize=self._queue.maxsize)
        self._queue.put_nowait(packet)

    async def _run(self) -> None:
        while True:
            packet = await self._queue.get()
            try:
                await self._pacer.wait()
                self._client.send(_build(packet))
                self._last_sent_at = time.monotonic()
                self._sent += 1
                self._logger.debug(
                    "osc.send",
                    osc_addresses=[a for a, _ in packet.messages],
                    age_ms=int((self._last_sent_at - packet.created_at) * 1000),
                )
            finally:
                self._queue.task_done()
