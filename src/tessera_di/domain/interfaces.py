from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Sequence, TypeVar, Union

from tessera_di.domain.enums import Lifetime
from tessera_di.domain.models import AutowireOptions, Binding, ResolutionContext
from tessera_di.domain.token import Token

T = TypeVar("T")

Factory = Callable[["IContainer"], Union[T, Awaitable[T]]]


class IContainer(ABC):
    """Abstract interface for dependency injection container operations."""

    @abstractmethod
    def bind_value(self, token: Token[T], value: T) -> None:
        """Bind a precomputed value to a token.

        Args:
            token: The token to bind.
            value: The value returned on every resolution.
        """

    @abstractmethod
    def bind_factory(self, token: Token[T], factory: Factory[T], lifetime: Lifetime = Lifetime.TRANSIENT) -> None:
        """Bind a factory receiving the container to a token.

        Args:
            token: The token to bind.
            factory: Callable producing the instance.
            lifetime: How long produced instances live.
        """

    @abstractmethod
    def bind_constructor(
        self,
        token: Token[T],
        constructor: Callable[..., T],
        lifetime: Lifetime = Lifetime.TRANSIENT,
        dependencies: Sequence[Token] = (),
    ) -> None:
        """Bind a constructor and its ordered dependency tokens to a token.

        Args:
            token: The token to bind.
            constructor: Callable receiving resolved dependencies positionally.
            lifetime: How long produced instances live.
            dependencies: Tokens resolved left to right.
        """

    @abstractmethod
    def resolve(self, token: Token[T]) -> T:
        """Resolve and return an instance for the token.

        Args:
            token: The token to resolve.
        """

    @abstractmethod
    async def resolve_async(self, token: Token[T]) -> T:
        """Resolve a token, awaiting asynchronous factories.

        Args:
            token: The token to resolve.
        """

    @abstractmethod
    def resolve_all(self, token: Token[T]) -> List[T]:
        """Resolve every multi-registration of a token, in registration order."""

    @abstractmethod
    def resolve_named(self, name: str) -> Any:
        """Resolve a service registered under a name."""

    @abstractmethod
    def resolve_keyed(self, key: Hashable) -> Any:
        """Resolve a service registered under a key."""

    @abstractmethod
    def create_child(self) -> "IContainer":
        """Create a container inheriting this container's bindings."""

    @abstractmethod
    def dispose(self) -> None:
        """Dispose cached singletons in reverse construction order."""


class IResolver(ABC):
    """Abstract interface for constructor argument discovery."""

    @abstractmethod
    def resolve_arguments(
        self,
        constructor: Callable[..., Any],
        container: IContainer,
        options: AutowireOptions,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Resolve constructor arguments from the container.

        Args:
            constructor: The callable to autowire.
            container: The container to resolve dependencies from.
            options: Autowire strategy and its inputs.
            parameters: Explicit keyword values that bypass resolution.

        Returns:
            Keyword arguments for the constructor.

        Raises:
            AutowireError: If a parameter cannot be satisfied in strict mode.
        """


class ILifetimeManager(ABC):
    """Abstract interface for managing cached instances."""

    @abstractmethod
    def get_cached(self, token: Token) -> Any:
        """Return a cached singleton or the manager's missing sentinel.

        Args:
            token: The token to look up.
        """

    @abstractmethod
    def store(
        self,
        token: Token,
        instance: Any,
        binding: Binding,
        context: ResolutionContext,
        track_disposal: bool = True,
    ) -> Any:
        """Cache a freshly constructed instance according to its binding lifetime.

        Args:
            token: The token that was resolved.
            instance: The constructed instance.
            binding: The binding that produced it.
            context: The resolution context of the call tree.
            track_disposal: Record the singleton for disposal.

        Returns:
            The instance callers must observe.
        """

    @abstractmethod
    def dispose(self) -> None:
        """Invoke disposal hooks and clear the singleton caches."""

    @abstractmethod
    def clear_cache(self) -> None:
        """Clear cached instances without running disposal hooks."""
