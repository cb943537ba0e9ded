"""Reusable key-combo registry primitives."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..core.events import Action


@dataclass(frozen=True)
class KeyComboBinding:
    """Mapping from one or more key tokens to the action they produce."""

    combos: tuple[str, ...]
    build: Callable[[], Action]


class KeyComboRegistry:
    """Small key-to-action table; each token resolves to at most one action."""

    def __init__(self) -> None:
        self._handlers: dict[str, Callable[[], Action]] = {}

    def register_binding(self, binding: KeyComboBinding) -> KeyComboRegistry:
        """Register one binding, overwriting existing handlers for same combos."""
        for combo in binding.combos:
            self._handlers[combo] = binding.build
        return self

    def register_bindings(self, *bindings: KeyComboBinding) -> KeyComboRegistry:
        """Register multiple bindings and return ``self`` for fluent usage."""
        for binding in bindings:
            self.register_binding(binding)
        return self

    def dispatch(self, key: str) -> Action | None:
        handler = self._handlers.get(key)
        if handler is None:
            return None
        return handler()

    def bound_keys(self) -> frozenset[str]:
        return frozenset(self._handlers)
