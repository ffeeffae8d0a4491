from typing import Any, Callable, Optional, Tuple, TypeVar

from tessera_di.application import Container
from tessera_di.domain import Factory, Lifetime, Token

T = TypeVar("T")


class TestContainer(Container):
    """Child container whose bindings can be swapped for test doubles.

    Every binding of the optional parent container is inherited. Overrides
    registered here shadow the parent's bindings without touching them, and
    singletons are cached per test container, so tests never share state
    through the production container.

    Example:
        >>> container = Container()
        >>> container.bind_constructor(EmailToken, SmtpEmailService, lifetime=Lifetime.SINGLETON)
        >>> container.bind_constructor(UserServiceToken, UserService, dependencies=[EmailToken])
        >>>
        >>> def test_user_service():
        ...     test_container = TestContainer(container)
        ...     mock_email = MockEmailService()
        ...     test_container.mock_value(EmailToken, mock_email)
        ...
        ...     service = test_container.resolve(UserServiceToken)
        ...     assert service.email is mock_email
    """

    __test__ = False  # Tell pytest not to collect this class as a test

    def __init__(self, parent_container: Optional[Container] = None) -> None:
        """Initialize the test container.

        Args:
            parent_container: Optional container to inherit bindings from.
                            If None, creates an empty root container.
        """
        super().__init__(parent=parent_container)

    def mock_value(self, token: Token[T], mock_instance: T) -> None:
        """Replace a dependency with a fixed instance.

        Args:
            token: The token to mock.
            mock_instance: The instance returned for every resolution.
        """
        self._lifetime_manager.evict(token)
        self.bind_value(token, mock_instance)

    def mock_factory(self, token: Token[T], factory: Callable[[], T], lifetime: Lifetime = Lifetime.TRANSIENT) -> None:
        """Replace a dependency with a zero-argument factory.

        Args:
            token: The token to mock.
            factory: Callable returning a mock instance.
            lifetime: Lifetime of the produced mocks.

        Example:
            >>> test_container.mock_factory(HandlerToken, lambda: MockHandler())
            >>> assert test_container.resolve(HandlerToken) is not test_container.resolve(HandlerToken)
        """
        self.override_binding(token, lambda c: factory(), lifetime)

    def override_binding(self, token: Token[T], factory: Factory[T], lifetime: Lifetime) -> None:
        """Override a binding with a container-aware factory and a lifetime.

        Args:
            token: The token to override.
            factory: Factory receiving this container.
            lifetime: Lifetime for the overridden dependency.
        """
        self._lifetime_manager.evict(token)
        self.bind_factory(token, factory, lifetime)

    def reset_overrides(self) -> None:
        """Remove all overrides and cached instances, restoring the parent bindings.

        Called on context manager exit.
        """
        self._bindings.clear()
        self._fast_transients.clear()
        self._lifetime_manager.clear_cache()
        self._invalidate_binding_cache()

    def __enter__(self) -> "TestContainer":
        """Context manager entry - returns self."""
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        """Context manager exit - dispose singletons and remove overrides."""
        self.dispose()
        self.reset_overrides()
        return False


def create_mock_container(*values: Tuple[Token, Any]) -> TestContainer:
    """Create a test container with pre-configured mock values.

    Args:
        *values: Tuples of (token, mock_instance).

    Returns:
        TestContainer with mocked dependencies.

    Example:
        >>> test_container = create_mock_container(
        ...     (DatabaseToken, mock_db),
        ...     (CacheToken, mock_cache),
        ... )
    """
    container = TestContainer()

    for token, mock_instance in values:
        container.mock_value(token, mock_instance)

    return container


class MockScope:
    """Context manager for a child container with automatic disposal.

    Example:
        >>> with MockScope(container) as scoped:
        ...     ctx = scoped.resolve(RequestContextToken)
        ...     service = scoped.resolve(RequestServiceToken)
        ...     assert service.context is ctx
        ...
        ... # Singletons of the child are disposed here
    """

    def __init__(self, parent_container: Container) -> None:
        """Initialize the mock scope.

        Args:
            parent_container: The container to create the child from.
        """
        self._parent_container = parent_container
        self._scoped_container: Optional[Container] = None

    def __enter__(self) -> Container:
        """Create the child container.

        Returns:
            The child container instance.
        """
        self._scoped_container = self._parent_container.create_child()
        return self._scoped_container

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        """Dispose the child container."""
        if self._scoped_container:
            self._scoped_container.dispose()
            self._scoped_container = None
        return False
