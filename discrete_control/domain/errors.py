from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ErrorCode = Literal["INVALID_ARGUMENT", "CONFLICT", "NO_ACTIVE_ACTION", "INTERNAL_ERROR"]


@dataclass(frozen=True)
class DomainError(Exception):
    """Tool-boundary error. The controller core absorbs bad input instead."""

    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None
    retry_after_ms: int | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_error_obj(self) -> dict[str, Any]:
        obj: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            obj["details"] = self.details
        if self.retry_after_ms is not None:
            obj["retry_after_ms"] = self.retry_after_ms
        return obj

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.to_error_obj()}
