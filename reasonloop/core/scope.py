"""
Task-local scoped values.

Active tools, thoughts, prompts, modes and config live in ``ScopedValue``
instances backed by ``contextvars``. Each asyncio task sees its own binding;
``let`` / ``update`` restore the previous value when the block exits.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

T = TypeVar("T")


class ScopedValue(Generic[T]):

    def __init__(self, name: str, default: T):
        self._var: contextvars.ContextVar[T] = contextvars.ContextVar(name, default=default)
        self.name = name

    def get(self) -> T:
        return self._var.get()

    @contextmanager
    def let(self, value: T) -> Iterator[T]:
        token = self._var.set(value)
        try:
            yield value
        finally:
            self._var.reset(token)

    @contextmanager
    def update(self, f: Callable[[T], T]) -> Iterator[T]:
        with self.let(f(self._var.get())) as value:
            yield value

    def __repr__(self) -> str:
        return f"ScopedValue({self.name!r}, {self.get()!r})"
