"""Who is acting: an anonymous guest or a signed-in user."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class Guest:
    guest_id: str

    @property
    def is_authenticated(self) -> bool:
        return False

    @property
    def owner_key(self) -> str:
        return f"guest:{self.guest_id}"


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    id: str
    email: str
    name: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def owner_key(self) -> str:
        return f"user:{self.id}"


Identity = Union[Guest, AuthenticatedUser]
