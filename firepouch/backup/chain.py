"""
Sequential fail-fast fold over async steps.

Collections are processed strictly one after another: step(acc, item)
for the next item starts only once the previous one has completed, and
the first exception stops the fold.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
A = TypeVar("A")


async def fold_sequential(
    items: Iterable[T],
    step: Callable[[A, T], Awaitable[A]],
    initial: A,
) -> A:
    """Apply step to each item in order, threading the accumulator.

    Example:
        >>> async def add(total, n):
        ...     return total + n
        >>> await fold_sequential([1, 2, 3], add, 0)
        6
    """
    acc = initial
    for item in items:
        acc = await step(acc, item)
    return acc
