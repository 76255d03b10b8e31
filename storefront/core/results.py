"""Result objects returned by the service layer instead of raising."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class UserMessage:
    """Short title plus an actionable description for a toast."""

    title: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "description": self.description}


@dataclass(frozen=True, slots=True)
class OperationResult(Generic[T]):
    success: bool
    value: T | None = None
    message: UserMessage | None = None
    errors: dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: Any = None, message: UserMessage | None = None) -> OperationResult:
        return cls(True, value, message)

    @classmethod
    def fail(
        cls,
        title: str,
        description: str,
        errors: dict[str, str] | None = None,
    ) -> OperationResult:
        return cls(False, None, UserMessage(title, description), dict(errors or {}))


RETRY_HINT = "Please try again in a moment."
SUPPORT_HINT = "Please try again or contact support."

__all__ = ["OperationResult", "UserMessage", "RETRY_HINT", "SUPPORT_HINT"]
