from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Any

from .config.loader import load_settings
from .config.settings import Settings
from .domain.adapter import DiscreteControlService
from .domain.controller import DiscreteControl
from .domain.errors import DomainError
from .domain.host import SimulatedBody, gravity_force
from .domain.loop import FrameLoop
from .domain.output import OutputChannel
from .domain.vector import Vec3
from .mcp_server import create_server
from .observability.logging import component_logger, configure_logging
from .osc.publisher import OSCSnapshotPublisher
from .osc.receiver import OSCReceiver
from .osc.transport import OSCTransport


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="discrete-control")

    p.add_argument("--config", type=Path, default=None, help="YAML config path (default: ./config.yaml or ./config/config.yaml)")
    p.add_argument("--transport", choices=["stdio", "sse", "http"], default=None)

    p.add_argument("--osc-send-ip", default=None)
    p.add_argument("--osc-send-port", type=int, default=None)
    p.add_argument("--no-osc", action="store_true", help="Do not publish status snapshots over OSC")

    p.add_argument("--enable-receiver", action="store_true", help="Start the OSC receiver (look deltas + JSON commands)")
    p.add_argument("--no-receiver", action="store_true", help="Do not start the OSC receiver")
    p.add_argument("--osc-receive-ip", default=None)
    p.add_argument("--osc-receive-port", type=int, default=None)

    p.add_argument("--sse-host", default=None)
    p.add_argument("--sse-port", type=int, default=None)

    p.add_argument("--http-host", default=None)
    p.add_argument("--http-port", type=int, default=None)
    p.add_argument("--http-path", default=None)

    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default=None)

    p.add_argument("--max-actions", type=int, default=None)
    p.add_argument("--fps", type=int, default=None)
    p.add_argument("--no-gravity", action="store_true", help="Run the controller without gravity hand-off")

    return p


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    o: dict[str, Any] = {}

    if args.transport is not None:
        o.setdefault("mcp", {})["transport"] = args.transport

    if args.sse_host is not None or args.sse_port is not None:
        o.setdefault("mcp", {}).setdefault("sse", {})
        if args.sse_host is not None:
            o["mcp"]["sse"]["host"] = args.sse_host
        if args.sse_port is not None:
            o["mcp"]["sse"]["port"] = args.sse_port

    if args.http_host is not None or args.http_port is not None or args.http_path is not None:
        o.setdefault("mcp", {}).setdefault("http", {})
        if args.http_host is not None:
            o["mcp"]["http"]["host"] = args.http_host
        if args.http_port is not None:
            o["mcp"]["http"]["port"] = args.http_port
        if args.http_path is not None:
            o["mcp"]["http"]["path"] = args.http_path

    if args.no_osc:
        o.setdefault("osc", {})["enabled"] = False

    if args.osc_send_ip is not None or args.osc_send_port is not None:
        o.setdefault("osc", {}).setdefault("send", {})
        if args.osc_send_ip is not None:
            o["osc"]["send"]["ip"] = args.osc_send_ip
        if args.osc_send_port is not None:
            o["osc"]["send"]["port"] = args.osc_send_port

    # Receiver tri-state: CLI overrides YAML when explicitly specified.
    if args.enable_receiver and args.no_receiver:
        raise SystemExit("--enable-receiver and --no-receiver are mutually exclusive")

    if args.enable_receiver or args.no_receiver or args.osc_receive_ip is not None or args.osc_receive_port is not None:
        o.setdefault("osc", {}).setdefault("receive", {})
        if args.enable_receiver:
            o["osc"]["receive"]["enabled"] = True
        if args.no_receiver:
            o["osc"]["receive"]["enabled"] = False
        if args.osc_receive_ip is not None:
            o["osc"]["receive"]["ip"] = args.osc_receive_ip
        if args.osc_receive_port is not None:
            o["osc"]["receive"]["port"] = args.osc_receive_port

    if args.log_level is not None:
        o.setdefault("logging", {})["level"] = args.log_level

    if args.max_actions is not None:
        o.setdefault("controller", {})["max_actions"] = args.max_actions
    if args.no_gravity:
        o.setdefault("controller", {})["gravity_aware"] = False

    if args.fps is not None:
        o.setdefault("loop", {})["fps"] = args.fps

    return o


def build_controller(settings: Settings) -> tuple[DiscreteControl, SimulatedBody]:
    """Wire a controller to a fresh simulated body per ``settings``."""

    c = settings.controller
    body = SimulatedBody(
        position=Vec3.of(settings.body.start_position),
        rotation_y=settings.body.start_rotation_y,
        ground_y=settings.body.ground_y,
    )

    gravity = None
    if c.gravity_aware:
        gravity = gravity_force(c.gravity)
        # The host owns the standing force; the controller only suspends/restores it.
        body.apply_force(gravity)

    controller = DiscreteControl(
        max_actions=c.max_actions,
        movement_bounds=c.movement_bounds.model_dump(),
        gravity=gravity,
        output=OutputChannel(max_buffer=c.output_buffer, logger=component_logger("output")),
        logger=component_logger("controller"),
    )
    controller.target(body)
    return controller, body


async def _run(settings: Settings) -> None:
    configure_logging(level=settings.logging.level, json_logs=settings.logging.json_logs)
    logger = component_logger("app")

    controller, body = build_controller(settings)
    loop = FrameLoop(
        controller=controller,
        body=body,
        fps=settings.loop.fps,
        emit_updates=settings.loop.emit_updates,
        logger=component_logger("loop"),
    )

    osc: OSCTransport | None = None
    if settings.osc.enabled:
        osc = OSCTransport(
            send_ip=settings.osc.send.ip,
            send_port=settings.osc.send.port,
            osc_per_second=settings.osc.osc_per_second,
            logger=component_logger("osc"),
        )
        await osc.start()
        controller.subscribe(
            OSCSnapshotPublisher(
                transport=osc,
                prefix=settings.osc.send.prefix,
                logger=component_logger("osc-publisher"),
            )
        )

    service = DiscreteControlService(
        controller=controller,
        loop=loop,
        transport=osc,
        logger=component_logger("domain"),
    )

    receiver: OSCReceiver | None = None
    if settings.osc.receive.enabled:
        recv_logger = component_logger("osc-receiver")

        def _on_look(dx: float, dy: float, dz: float) -> None:
            try:
                service.rotation_write(dx=dx, dy=dy, dz=dz, trace_id="osc")
            except DomainError as e:
                recv_logger.debug("look.ignored", code=e.code)

        def _on_command(command: dict[str, Any]) -> None:
            service.action_write(command=command, trace_id="osc")

        receiver = OSCReceiver(
            bind_ip=settings.osc.receive.ip,
            port=settings.osc.receive.port,
            logger=recv_logger,
            on_look=_on_look,
            on_command=_on_command,
        )
        await receiver.start()

    if settings.loop.autostart:
        await loop.start()

    mcp = create_server(adapter=service)

    logger.info(
        "server.start",
        transport=settings.mcp.transport,
        gravity_aware=controller.gravity_aware,
        max_actions=controller.max_actions,
        fps=settings.loop.fps,
        osc_enabled=settings.osc.enabled,
        osc_send_ip=settings.osc.send.ip,
        osc_send_port=settings.osc.send.port,
        receiver_enabled=settings.osc.receive.enabled,
    )

    try:
        if settings.mcp.transport == "stdio":
            await mcp.run_async(transport="stdio")
        elif settings.mcp.transport == "sse":
            await mcp.run_async(transport="sse", host=settings.mcp.sse.host, port=settings.mcp.sse.port)
        else:
            await mcp.run_async(
                transport="http",
                host=settings.mcp.http.host,
                port=settings.mcp.http.port,
                path=settings.mcp.http.path,
            )
    finally:
        await loop.stop()
        if receiver is not None:
            await receiver.close()
        if osc is not None:
            await osc.close()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    project_root = Path(__file__).resolve().parents[1]
    loaded = load_settings(project_root=project_root, config_path=args.config, cli_overrides=_cli_overrides(args))

    asyncio.run(_run(loaded.settings))
    return 0
