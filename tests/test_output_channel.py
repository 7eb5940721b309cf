from __future__ import annotations

import pytest

from discrete_control.domain.errors import DomainError
from discrete_control.domain.output import CallbackListener, OutputChannel
from discrete_control.observability.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _quiet_logs():
    configure_logging(level="ERROR", json_logs=True)


def _channel(max_buffer: int = 16) -> OutputChannel:
    return OutputChannel(max_buffer=max_buffer, logger=get_logger().bind(component="test-output"))


class _Recorder:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_data(self, snapshot) -> None:
        self.events.append(("data", snapshot["n"]))

    def on_end(self) -> None:
        self.events.append(("end",))

    def on_pause(self) -> None:
        self.events.append(("pause",))

    def on_drain(self) -> None:
        self.events.append(("drain",))


def test_push_delivers_immediately_when_flowing():
    ch = _channel()
    rec = _Recorder()
    ch.subscribe(rec)

    ch.push({"n": 1}).push({"n": 2})

    assert rec.events == [("data", 1), ("data", 2)]
    assert ch.buffered() == 0


def test_pause_buffers_and_resume_drains_in_order():
    ch = _channel()
    rec = _Recorder()
    ch.subscribe(rec)

    ch.pause()
    ch.pause()  # already paused: no second notification
    ch.push({"n": 1})
    ch.push({"n": 2})
    assert ch.buffered() == 2

    ch.resume()

    assert rec.events == [("pause",), ("data", 1), ("data", 2), ("drain",)]
    assert ch.paused is False


def test_listener_can_pause_during_drain():
    ch = _channel()
    seen: list[int] = []

    def _on_data(snapshot) -> None:
        seen.append(snapshot["n"])
        ch.pause()

    drains: list[bool] = []
    ch.subscribe(CallbackListener(data=_on_data, drain=lambda: drains.append(True)))

    ch.pause()
    for n in range(3):
        ch.push({"n": n})

    ch.resume()
    assert seen == [0]
    assert ch.buffered() == 2
    assert drains == []

    ch.resume()
    assert seen == [0, 1]


def test_end_marker_stops_delivery():
    ch = _channel()
    rec = _Recorder()
    ch.subscribe(rec)

    ch.pause()
    ch.push({"n": 1})
    ch.close()
    ch.push({"n": 2})  # after the end marker was queued
    ch.resume()

    assert rec.events == [("pause",), ("data", 1), ("end",), ("drain",)]
    assert ch.ended is True

    ch.push({"n": 3})
    assert rec.events[-1] == ("drain",)


def test_full_buffer_drops_oldest():
    ch = _channel(max_buffer=2)
    rec = _Recorder()
    ch.subscribe(rec)

    ch.pause()
    for n in range(5):
        ch.push({"n": n})
    ch.resume()

    assert [e for e in rec.events if e[0] == "data"] == [("data", 3), ("data", 4)]
    assert ch.dropped == 3


def test_failing_listener_does_not_block_others():
    ch = _channel()
    rec = _Recorder()

    def _boom(snapshot) -> None:
        raise RuntimeError("listener bug")

    ch.subscribe(CallbackListener(data=_boom))
    ch.subscribe(rec)

    ch.push({"n": 7})

    assert rec.events == [("data", 7)]


def test_unsubscribe():
    ch = _channel()
    rec = _Recorder()
    unsubscribe = ch.subscribe(rec)

    unsubscribe()
    unsubscribe()
    ch.push({"n": 1})

    assert rec.events == []


def test_max_buffer_must_be_positive():
    with pytest.raises(DomainError) as exc:
        OutputChannel(max_buffer=0)
    assert exc.value.code == "INVALID_ARGUMENT"


def test_pushes_after_close_are_ignored_while_paused():
    ch = _channel(max_buffer=2)
    rec = _Recorder()
    ch.subscribe(rec)

    ch.pause()
    ch.push({"n": 1})
    ch.close()
    ch.push({"n": 2})
    ch.push({"n": 3})
    ch.resume()

    assert rec.events == [("pause",), ("data", 1), ("end",), ("drain",)]
    assert ch.dropped == 0


def test_overflow_never_evicts_end_marker():
    ch = _channel(max_buffer=2)
    rec = _Recorder()
    ch.subscribe(rec)

    ch.pause()
    ch.push({"n": 1})
    ch.push({"n": 2})
    ch.close()
    ch.close()
    ch.resume()

    assert rec.events == [("pause",), ("data", 2), ("end",), ("drain",)]
    assert ch.dropped == 1
    assert ch.ended is True
