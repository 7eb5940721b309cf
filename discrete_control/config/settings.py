from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict


class SSESettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000


class HTTPSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    path: str = "/mcp"


class MCPSettings(BaseModel):
    transport: Literal["stdio", "sse", "http"] = "stdio"
    sse: SSESettings = Field(default_factory=SSESettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)


class OSCEndpoint(BaseModel):
    ip: str = "127.0.0.1"
    port: int = 9000
    # Address prefix for published status snapshots.
    prefix: str = "/discrete/status"

    @field_validator("port")
    @classmethod
    def _port_range(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError("port must be in [1, 65535]")
        return v


class OSCReceiveSettings(BaseModel):
    enabled: bool = False
    ip: str = "127.0.0.1"
    port: int = 9001

    @field_validator("port")
    @classmethod
    def _port_range(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError("port must be in [1, 65535]")
        return v


class OSCSettings(BaseModel):
    enabled: bool = True
    osc_per_second: int = Field(240, ge=1, le=2000)
    send: OSCEndpoint = Field(default_factory=OSCEndpoint)
    receive: OSCReceiveSettings = Field(default_factory=OSCReceiveSettings)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_logs: bool = Field(True, alias="json")


class BoundsSettings(BaseModel):
    minx: float | None = None
    maxx: float | None = None
    miny: float | None = None
    maxy: float | None = None
    minz: float | None = None
    maxz: float | None = None

    @model_validator(mode="after")
    def _min_not_above_max(self) -> "BoundsSettings":
        for axis in ("x", "y", "z"):
            lo = getattr(self, f"min{axis}")
            hi = getattr(self, f"max{axis}")
            if lo is not None and hi is not None and lo > hi:
                raise ValueError(f"min{axis} must be <= max{axis}")
        return self


class ControllerSettings(BaseModel):
    max_actions: int = Field(1024, ge=1)
    gravity_aware: bool = True
    # units/s^2, applied by the host body as a standing force
    gravity: float = Field(9.8, ge=0.0)
    output_buffer: int = Field(1024, ge=1)
    movement_bounds: BoundsSettings = Field(default_factory=BoundsSettings)


class LoopSettings(BaseModel):
    fps: int = Field(60, ge=1, le=240)
    autostart: bool = True
    # Push a status snapshot every frame while an action is current.
    emit_updates: bool = True


class BodySettings(BaseModel):
    ground_y: float = 0.0
    start_position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    start_rotation_y: float = 0.0


class Settings(BaseModel):
    mcp: MCPSettings = Field(default_factory=MCPSettings)
    osc: OSCSettings = Field(default_factory=OSCSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    controller: ControllerSettings = Field(default_factory=ControllerSettings)
    loop: LoopSettings = Field(default_factory=LoopSettings)
    body: BodySettings = Field(default_factory=BodySettings)
