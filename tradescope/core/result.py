"""Uniform success/data/error result returned by the service layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ServiceResult:
    """Outcome of a service call.

    Failures are reported as values rather than raised, so callers (routes,
    CLI, UI) can surface ``error`` directly.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        return cls(success=True, data=data, error=None)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ServiceResult":
        return cls(success=False, data=data, error=error)

    def to_dict(self) -> dict:
        return {"success": self.success, "data": self.data, "error": self.error}
