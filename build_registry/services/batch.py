"""
Settle-all fan-out.

Every item is attempted; one item failing never cancels its siblings.
Failures come back as data in a BatchResult so callers can report them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class ItemFailure:
    """One item of a batch that failed."""

    item_id: str
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "error": type(self.error).__name__,
            "message": self.message,
        }


@dataclass
class BatchResult:
    """Outcome of a best-effort fan-out."""

    succeeded: List[str] = field(default_factory=list)
    failed: List[ItemFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def extend(self, other: "BatchResult") -> None:
        self.succeeded.extend(other.succeeded)
        self.failed.extend(other.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "failed": [failure.to_dict() for failure in self.failed],
        }


async def gather_settled(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[Any]],
    *,
    limit: Optional[int] = None,
    key: Callable[[T], str] = str,
) -> BatchResult:
    """Run ``fn`` on every item concurrently and collect the outcome.

    Args:
        items: Items to process
        fn: Coroutine function applied to each item
        limit: Maximum concurrent calls (None = unbounded)
        key: Derives the id reported for an item

    Returns:
        BatchResult with succeeded ids and per-item failures

    Raises:
        asyncio.CancelledError: If the enclosing task is cancelled
    """
    items = list(items)
    semaphore = asyncio.Semaphore(limit) if limit else None

    async def _run(item: T) -> Any:
        if semaphore is None:
            return await fn(item)
        async with semaphore:
            return await fn(item)

    outcomes = await asyncio.gather(*(_run(item) for item in items), return_exceptions=True)

    result = BatchResult()
    for item, outcome in zip(items, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            result.failed.append(ItemFailure(item_id=key(item), error=outcome))
        else:
            result.succeeded.append(key(item))
    return result
