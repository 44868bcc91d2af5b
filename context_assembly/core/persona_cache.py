"""PersonaCache: thread-safe memo of rendered persona blocks."""

from __future__ import annotations

import hashlib
import inspect
import json
import threading
from collections import OrderedDict
from dataclasses import replace
from typing import Any

from ..types import Message, Persona


def variables_fingerprint(variables: dict[str, Any]) -> str:
    """sha256[:16] of the variables. Non-JSON values hash by ``repr``."""
    payload = json.dumps(variables, sort_keys=True, default=repr, ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def has_dynamic_values(variables: dict[str, Any]) -> bool:
    """True when any value is resolved at render time (callable or awaitable)."""
    return any(callable(v) or inspect.isawaitable(v) for v in variables.values())


class PersonaCache:
    """LRU of ``(persona, variables, renderer) fingerprints -> rendered block``.

    Safe to share between assembler instances and threads. Entries are
    returned as fresh message copies so callers can splice freely.
    """

    def __init__(self, max_size: int = 32) -> None:
        self.max_size = max_size
        self._entries: OrderedDict[tuple[str, str, str], tuple[list[Message], list[str]]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(
        persona: Persona, variables: dict[str, Any], renderer: Any = None,
    ) -> tuple[str, str, str]:
        renderer_name = (
            f"{type(renderer).__module__}.{type(renderer).__qualname__}" if renderer is not None else ""
        )
        return persona.fingerprint(), variables_fingerprint(variables), renderer_name

    def get(self, key: tuple[str, str, str]) -> tuple[list[Message], list[str]] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            messages, names = entry
        return [replace(m) for m in messages], list(names)

    def put(self, key: tuple[str, str, str], messages: list[Message], names: list[str]) -> None:
        with self._lock:
            self._entries[key] = ([replace(m) for m in messages], list(names))
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
