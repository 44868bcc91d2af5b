"""Token counters for budget accounting.

A counter is configured by a mode string:

    estimate                  ~4 characters per token, no dependencies
    tiktoken[:encoding]       exact counts from tiktoken (default cl100k_base)
    callable:module:function  any importable ``(text) -> int``

The assembler awaits every count, so sync counters go through
``as_async_counter`` first.
"""

from __future__ import annotations

import importlib
import inspect
from typing import Awaitable, Callable, Union

from .types import TokenCounter

SyncCounter = Callable[[str], int]

DEFAULT_TIKTOKEN_ENCODING = "cl100k_base"


def estimate_tokens(text: str) -> int:
    """Rough estimate: ~4 chars per token, never below one."""
    return max(1, len(text) // 4)


def is_valid_mode(mode: str) -> bool:
    if mode == "estimate" or mode == "tiktoken" or mode.startswith("tiktoken:"):
        return True
    if mode.startswith("callable:"):
        return len(mode[len("callable:"):].rsplit(":", 1)) == 2
    return False


def _tiktoken_counter(encoding_name: str) -> SyncCounter:
    try:
        import tiktoken
    except ImportError:
        raise ImportError(
            "tiktoken not installed. Install with: pip install context-assembly[tiktoken]"
        )
    encoding = tiktoken.get_encoding(encoding_name)
    return lambda text: len(encoding.encode(text))


def _import_counter(target: str) -> SyncCounter:
    module_path, sep, func_name = target.rpartition(":")
    if not sep or not module_path:
        raise ValueError(f"Invalid counter target: {target!r}. Expected module:function")
    return getattr(importlib.import_module(module_path), func_name)


def create_token_counter(mode: str = "estimate") -> SyncCounter:
    if mode == "estimate":
        return estimate_tokens
    if mode == "tiktoken" or mode.startswith("tiktoken:"):
        _, _, encoding_name = mode.partition(":")
        return _tiktoken_counter(encoding_name or DEFAULT_TIKTOKEN_ENCODING)
    if mode.startswith("callable:"):
        return _import_counter(mode[len("callable:"):])
    raise ValueError(f"Unknown token counter mode: {mode}")


def as_async_counter(
    counter: Callable[[str], Union[int, Awaitable[int]]],
) -> TokenCounter:
    """Wrap a sync or async counter so the assembler can always ``await`` it."""
    if inspect.iscoroutinefunction(counter):
        return counter

    async def count(text: str) -> int:
        result = counter(text)
        if inspect.isawaitable(result):
            result = await result
        return result

    return count
