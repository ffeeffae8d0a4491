"""Application layer - Pooling of resolution contexts."""

from typing import List

from tessera_di.domain import ResolutionContext


class ResolutionContextPool:
    """Bounded pool of reusable resolution contexts.

    Pooling only saves allocations. A pooled context is always reset before it
    is handed out, so resolution behaves the same as with fresh contexts.

    Attributes:
        max_size: Maximum number of released contexts kept for reuse.
        _pool: Released contexts waiting to be reused.
    """

    def __init__(self, max_size: int = 10) -> None:
        """Initialize an empty pool.

        Args:
            max_size: Maximum number of contexts retained.
        """
        self.max_size = max_size
        self._pool: List[ResolutionContext] = []

    def acquire(self) -> ResolutionContext:
        """Return a reset context, reusing a released one when available."""
        if self._pool:
            context = self._pool.pop()
            context.reset()
            return context
        return ResolutionContext()

    def release(self, context: ResolutionContext) -> None:
        """Return a context to the pool, discarding it when the pool is full.

        The context's generation is bumped either way, so anything still
        holding it from the finished call tree can tell it is no longer theirs.

        Args:
            context: A context no longer used by any call tree.
        """
        context.generation += 1
        if len(self._pool) < self.max_size:
            context.reset()
            self._pool.append(context)

    def __len__(self) -> int:
        return len(self._pool)
