# Tablet Sync Batch Executor
# Windowed concurrent execution collecting per-item results

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 3

ProgressCallback = Callable[[int, int], None]


@dataclass
class BatchSuccess(Generic[T, R]):
    """An item whose operation completed."""

    item: T
    value: R


@dataclass
class BatchFailure(Generic[T]):
    """An item whose operation raised."""

    item: T
    error: Exception


@dataclass
class BatchResult(Generic[T, R]):
    """Outcome of a batch run, in input order within each list."""

    successes: list[BatchSuccess[T, R]] = field(default_factory=list)
    errors: list[BatchFailure[T]] = field(default_factory=list)

    @property
    def values(self) -> list[R]:
        """Values returned by successful operations."""
        return [success.value for success in self.successes]


async def _capture(operation: Callable[[T], Awaitable[R]], item: T) -> tuple[bool, Any]:
    try:
        return True, await operation(item)
    except Exception as e:
        return False, e


async def run_in_batches(
    items: Sequence[T],
    operation: Callable[[T], Awaitable[R]],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: Optional[ProgressCallback] = None,
) -> BatchResult[T, R]:
    """
    Run an async operation over items in fixed-size windows.

    Operations within a window run concurrently; a window starts only after
    the previous one finished. A failing item is recorded and never cancels
    its siblings or later windows.

    Args:
        items: Items to process.
        operation: Coroutine function applied to each item.
        concurrency: Window size.
        on_progress: Called as ``(completed, total)`` once per finished item,
            from this coroutine only.

    Returns:
        BatchResult with successes and failures.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    result: BatchResult[T, R] = BatchResult()
    total = len(items)
    completed = 0

    for start in range(0, total, concurrency):
        window = items[start : start + concurrency]
        outcomes = await asyncio.gather(*(_capture(operation, item) for item in window))

        for item, (ok, value) in zip(window, outcomes):
            completed += 1
            if ok:
                result.successes.append(BatchSuccess(item=item, value=value))
            else:
                result.errors.append(BatchFailure(item=item, error=value))
            if on_progress is not None:
                on_progress(completed, total)

    return result
