from dataclasses import dataclass, field
from typing import Any, Dict

from reward_engine.errors import InvalidInput


@dataclass
class ServiceError(Exception):
    """Consistent service-layer exception with HTTP-friendly metadata."""

    status_code: int
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:  # pragma: no cover - convenience for logging
        return f"{self.status_code} {self.code}: {self.message} | {self.details}"

    def to_content(self) -> Dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message, "details": self.details}}

    @classmethod
    def from_invalid_input(cls, exc: InvalidInput) -> "ServiceError":
        details = {key: (None if value is None else str(value)) for key, value in exc.details.items()}
        return cls(status_code=400, code="VALIDATION_ERROR", message=exc.message, details=details)
