from __future__ import annotations

from typing import Any

from .transport import OSCTransport


def _osc_value(v: Any) -> Any:
    # python-osc has no None type tag.
    if v is None:
        return 0
    return v


class OSCSnapshotPublisher:
    """Output channel listener that forwards snapshots as OSC.

    Each snapshot becomes one bundle with a message per field at
    ``<prefix>/<field>``; end of stream sends ``<prefix>/end`` = 1.
    Pause/drain notifications are only logged.
    """

    def __init__(self, *, transport: OSCTransport, logger, prefix: str = "/discrete/status") -> None:
        self._transport = transport
        self._logger = logger
        self._prefix = prefix.rstrip("/")
        self._published = 0

    @property
    def published(self) -> int:
        return self._published

    def on_data(self, snapshot: dict[str, Any]) -> None:
        self._transport.send_packet_nowait(
            [(f"{self._prefix}/{key}", _osc_value(value)) for key, value in snapshot.items()]
        )
        self._published += 1

    def on_end(self) -> None:
        self._transport.send_nowait(address=f"{self._prefix}/end", value=1)
        self._logger.info("osc.publisher.end", published=self._published)

    def on_pause(self) -> None:
        self._logger.debug("osc.publisher.pause")

    def on_drain(self) -> None:
        self._logger.debug("osc.publisher.drain")
