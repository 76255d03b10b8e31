"""Request-generation counter for discarding superseded async results."""
from __future__ import annotations

import itertools
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class GenerationToken:
    scope: str
    value: int


class RequestGeneration:
    """Hands out monotonically increasing tokens per scope.

    A result is applied only if its token is still the latest one issued for
    the scope; ``invalidate`` (e.g. on view teardown) makes every outstanding
    token stale.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}

    def begin(self, scope: str = "default") -> GenerationToken:
        value = next(self._counter)
        self._latest[scope] = value
        return GenerationToken(scope, value)

    def is_current(self, token: GenerationToken) -> bool:
        return self._latest.get(token.scope) == token.value

    def settle(self, token: GenerationToken) -> bool:
        """Like ``is_current``, but forgets the scope once its latest load has finished."""
        if not self.is_current(token):
            return False
        del self._latest[token.scope]
        return True

    def invalidate(self, scope: str | None = None) -> None:
        if scope is None:
            self.invalidate_prefix("")
            return
        if scope in self._latest:
            self._latest[scope] = next(self._counter)

    def invalidate_prefix(self, prefix: str) -> None:
        for key in list(self._latest):
            if key.startswith(prefix):
                self._latest[key] = next(self._counter)
