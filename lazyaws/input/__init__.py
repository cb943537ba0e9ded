"""Keyboard input: raw key decoding and modal routing."""

from __future__ import annotations

from .key_registry import KeyComboBinding, KeyComboRegistry
from .keys import read_key
from .router import NORMAL_KEYS, route_key

__all__ = [
    "KeyComboBinding",
    "KeyComboRegistry",
    "NORMAL_KEYS",
    "read_key",
    "route_key",
]
