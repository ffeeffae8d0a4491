import inspect
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

from tessera_di.domain import (
    Binding,
    DisposalError,
    ILifetimeManager,
    Lifetime,
    ResolutionContext,
    Token,
)

logger = logging.getLogger(__name__)

# Cached instances may legitimately be None.
MISSING: Any = object()


def _disposal_hook(instance: Any) -> Optional[Callable[[], Any]]:
    for name in ("dispose", "close"):
        hook = getattr(instance, name, None)
        if callable(hook):
            return hook
    return None


class LifetimeManager(ILifetimeManager):
    """Manages cached instances for singleton and per-request lifetimes.

    Singletons live in two tiers: the general singleton cache and a micro-cache
    of promoted entries checked first on every resolution. Per-request instances
    live in the resolution context. Transient instances are never cached.

    Attributes:
        _singleton_cache: Singleton instances owned by one container.
        _micro_cache: Promoted singletons for the fastest lookup.
        _construction_order: Singleton tokens in the order they were constructed.
    """

    def __init__(self) -> None:
        """Initialize the lifetime manager with empty caches."""
        self._singleton_cache: Dict[Token, Any] = {}
        self._micro_cache: Dict[Token, Any] = {}
        self._construction_order: List[Token] = []

    def get_cached(self, token: Token) -> Any:
        """Look up a singleton, promoting general cache hits to the micro-cache.

        Args:
            token: The token to look up.

        Returns:
            The cached instance, or ``MISSING``.
        """
        instance = self._micro_cache.get(token, MISSING)
        if instance is not MISSING:
            return instance

        instance = self._singleton_cache.get(token, MISSING)
        if instance is not MISSING:
            self._micro_cache[token] = instance
        return instance

    def get_singleton(self, token: Token) -> Any:
        """Return the singleton cached for a token, or ``MISSING``."""
        return self._singleton_cache.get(token, MISSING)

    def store(
        self,
        token: Token,
        instance: Any,
        binding: Binding,
        context: ResolutionContext,
        track_disposal: bool = True,
    ) -> Any:
        """Cache an instance according to the lifetime of its binding.

        When a concurrent branch of an asynchronous resolution already cached an
        instance for the same token, that instance wins and is returned instead.

        Args:
            token: The token that was resolved.
            instance: The freshly constructed instance.
            binding: The binding that produced it.
            context: The resolution context of the current call tree.
            track_disposal: Record the singleton for disposal ordering.

        Returns:
            The instance callers must observe.
        """
        lifetime = binding.lifetime

        if lifetime == Lifetime.SINGLETON:
            existing = self._singleton_cache.get(token, MISSING)
            if existing is not MISSING:
                return existing
            self._singleton_cache[token] = instance
            self._micro_cache[token] = instance
            if track_disposal:
                self._construction_order.append(token)
            return instance

        if lifetime == Lifetime.PER_REQUEST:
            if context.has_per_request(token):
                return context.get_per_request(token)
            context.cache_per_request(token, instance)
            return instance

        # Lifetime.TRANSIENT
        return instance

    def forget_promoted(self, token: Token) -> None:
        """Drop a token from the micro-cache only.

        Args:
            token: The token whose binding changed.
        """
        self._micro_cache.pop(token, None)

    def evict(self, token: Token) -> None:
        """Remove a singleton from every cache without disposing it.

        Args:
            token: The token to evict.
        """
        self._micro_cache.pop(token, None)
        self._singleton_cache.pop(token, None)
        self._construction_order = [t for t in self._construction_order if t is not token]

    @property
    def construction_order(self) -> List[Token]:
        """Singleton tokens in construction order."""
        return list(self._construction_order)

    def _disposal_candidates(self) -> Iterator[Tuple[Token, Any]]:
        seen: Set[int] = set()
        for token in reversed(self._construction_order):
            instance = self._singleton_cache.get(token, MISSING)
            if instance is MISSING or id(instance) in seen:
                continue
            seen.add(id(instance))
            yield token, instance

    @staticmethod
    def _report(token: Token, error: Exception) -> None:
        failure = DisposalError(token, error)
        logger.error("%s", failure, exc_info=error)

    def dispose(self) -> None:
        """Run disposal hooks in reverse construction order, then clear the caches.

        A failing hook is logged and the remaining hooks still run. Hooks that
        return an awaitable are not awaited here; use ``dispose_async`` for those.
        """
        for token, instance in self._disposal_candidates():
            hook = _disposal_hook(instance)
            if hook is None:
                continue
            try:
                result = hook()
            except Exception as e:
                self._report(token, e)
                continue
            if inspect.isawaitable(result):
                logger.warning("Disposal hook of %s returned an awaitable; use dispose_async() to await it", token)
                if inspect.iscoroutine(result):
                    result.close()

        self.clear_cache()

    async def dispose_async(self) -> None:
        """Same as ``dispose`` but awaits hooks that return awaitables."""
        for token, instance in self._disposal_candidates():
            hook = _disposal_hook(instance)
            if hook is None:
                continue
            try:
                result = hook()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._report(token, e)

        self.clear_cache()

    def clear_cache(self) -> None:
        """Clear all cached singletons and the construction order.

        Useful for testing or resetting container state.
        """
        self._singleton_cache.clear()
        self._micro_cache.clear()
        self._construction_order.clear()
