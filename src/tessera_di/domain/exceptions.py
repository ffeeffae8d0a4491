from typing import Any, Callable, List, Optional, Sequence

from tessera_di.domain.token import Token


def _format_path(path: Sequence[Token]) -> str:
    return " -> ".join(str(token) for token in path)


class DIException(Exception):
    """Base exception for DI-related errors."""


class BindingNotFoundError(DIException):
    """Raised when no binding exists for a token anywhere in the container chain.

    Attributes:
        token: The token that could not be found.
        dependency_path: Tokens being resolved when the lookup failed.
    """

    def __init__(self, token: Token, dependency_path: Optional[Sequence[Token]] = None) -> None:
        self.token = token
        self.dependency_path: List[Token] = list(dependency_path or [])
        message = f'Token "{token}" is not bound or registered in the container.'
        if self.dependency_path:
            message += f"\n  Dependency path: {_format_path(self.dependency_path)}"
        super().__init__(message)


class CircularDependencyError(DIException):
    """Raised when a circular dependency is detected.

    Attributes:
        dependency_chain: Active resolution path with the re-entered token appended.
    """

    def __init__(self, dependency_chain: Sequence[Token]) -> None:
        self.dependency_chain: List[Token] = list(dependency_chain)
        message = f"Circular dependency detected: {_format_path(self.dependency_chain)}"
        super().__init__(message)


class ConstructionError(DIException):
    """Raised when a factory or constructor itself fails.

    Attributes:
        token: The token whose construction failed.
        dependency_path: Resolution path ending with the failing token.
        cause: The original exception.
    """

    def __init__(self, token: Token, dependency_path: Sequence[Token], cause: BaseException) -> None:
        self.token = token
        self.dependency_path: List[Token] = list(dependency_path)
        self.cause = cause
        message = f"Failed to construct {token}: {cause}"
        if len(self.dependency_path) > 1:
            message += f"\n  Dependency path: {_format_path(self.dependency_path)}"
        super().__init__(message)


class AsyncFactoryError(DIException):
    """Raised when synchronous resolution meets an awaitable factory result.

    Attributes:
        token: The token bound to the asynchronous factory.
    """

    def __init__(self, token: Token) -> None:
        self.token = token
        super().__init__(f"Async factory detected for {token}. Use resolve_async() instead.")


class DisposalError(DIException):
    """A disposal hook failed during container teardown.

    Never raised by the container. Instances are logged so that the remaining
    hooks still run.

    Attributes:
        token: Token of the singleton whose hook failed.
        cause: The original exception.
    """

    def __init__(self, token: Token, cause: BaseException) -> None:
        self.token = token
        self.cause = cause
        super().__init__(f"Failed to dispose {token}: {cause}")


class ServiceNotFoundError(DIException):
    """Raised when a named or keyed service was never registered.

    Attributes:
        kind: Either "named" or "keyed".
        identifier: The name or key that was requested.
    """

    def __init__(self, kind: str, identifier: Any) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} service {identifier!r} not found")


class AutowireError(DIException):
    """Raised when a constructor parameter cannot be autowired in strict mode.

    Attributes:
        constructor: The callable being autowired.
        reason: Why the parameter could not be satisfied.
    """

    def __init__(self, constructor: Callable[..., Any], reason: str) -> None:
        self.constructor = constructor
        self.reason = reason
        name = getattr(constructor, "__name__", repr(constructor))
        super().__init__(f"Cannot autowire {name}. Reason: {reason}")


class RegistrationError(DIException):
    """Raised for invalid registration configurations.

    This occurs when:
    - A registration is built without any target token.
    - Autowire options are incomplete for the chosen strategy.
    """
