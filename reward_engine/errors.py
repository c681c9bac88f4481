from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class InvalidInput(Exception):
    """Raised when a transaction cannot be evaluated (no partial computation happens)."""

    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:  # pragma: no cover - convenience for logging
        return f"{self.message} | {self.details}"


@dataclass
class CatalogError(Exception):
    """Raised by catalog suppliers when card data cannot be loaded."""

    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:  # pragma: no cover - convenience for logging
        return f"{self.message} | {self.details}"
