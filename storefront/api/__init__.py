from __future__ import annotations

from .app import create_app
from .deps import Container, build_container

__all__ = ["Container", "build_container", "create_app"]
