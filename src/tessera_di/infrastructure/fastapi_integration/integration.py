import functools
import inspect
from typing import Any, Awaitable, Callable, TypeVar

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from tessera_di.application import Container
from tessera_di.domain import Token

T = TypeVar("T")


def create_fastapi_dependency(container: Container, token: Token[T]) -> Callable[[], T]:
    """Create a FastAPI Depends() callable that resolves from the DI container.

    The resolved instance lifetime follows the binding in the container
    (singleton, per-request or transient).

    Args:
        container: The DI container to resolve dependencies from.
        token: The token to resolve when the dependency is called.

    Returns:
        A callable that FastAPI can use with Depends().

    Example:
        >>> container = Container()
        >>> container.bind_constructor(UserRepositoryToken, UserRepository, dependencies=[DatabaseToken])
        >>>
        >>> get_user_repo = create_fastapi_dependency(container, UserRepositoryToken)
        >>>
        >>> @app.get("/users")
        >>> def list_users(repo: UserRepository = Depends(get_user_repo)):
        ...     return repo.list_active()
    """

    def dependency() -> T:
        """Resolve the dependency from the container."""
        return container.resolve(token)

    return dependency


def create_request_dependency(token: Token[T]) -> Callable[[Request], T]:
    """Create a FastAPI dependency that resolves from the request's child container.

    Requires the RequestContainerMiddleware to be installed.

    Args:
        token: The token to resolve from the request container.

    Returns:
        A callable that resolves from the request container.

    Example:
        >>> app.add_middleware(RequestContainerMiddleware, container=container)
        >>>
        >>> get_session = create_request_dependency(SessionToken)
        >>>
        >>> @app.post("/orders")
        >>> def create_order(session: Session = Depends(get_session)):
        ...     return {"order_id": session.add_order()}
    """

    def request_dependency(request: Request) -> T:
        """Resolve from the request's child container."""
        if not hasattr(request.state, "di_container"):
            raise RuntimeError(
                "Request does not have a DI container. Did you forget to add RequestContainerMiddleware?"
            )
        request_container: Container = request.state.di_container
        return request_container.resolve(token)

    return request_dependency


class RequestContainerMiddleware(BaseHTTPMiddleware):
    """Middleware that creates a child DI container for each request.

    Singletons resolved through the child are private to the request and are
    disposed when the response is produced. The child container is accessible
    via `request.state.di_container`.

    Attributes:
        container: The parent DI container to create children from.

    Example:
        >>> container = Container()
        >>> container.bind_factory(DatabaseToken, lambda c: Database(), lifetime=Lifetime.SINGLETON)
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(RequestContainerMiddleware, container=container)
    """

    def __init__(self, app: FastAPI, container: Container):
        """Initialize the middleware with a parent container.

        Args:
            app: The FastAPI/Starlette application.
            container: The parent DI container to create children from.
        """
        super().__init__(app)
        self.container = container

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        """Create a child container for the request and execute the endpoint.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or endpoint handler.

        Returns:
            The response from the endpoint.
        """
        request_container = self.container.create_child()
        request.state.di_container = request_container

        try:
            response = await call_next(request)
            return response
        finally:
            await request_container.dispose_async()


def inject_dependencies(container: Container, **tokens: Token[Any]) -> Callable:
    """Decorator that injects resolved dependencies into an async endpoint.

    Each keyword names a parameter of the decorated function and the token to
    resolve for it. Values passed explicitly by the caller are left untouched.

    Args:
        container: The DI container to resolve from.
        **tokens: Parameter name to token.

    Returns:
        A decorator function.

    Example:
        >>> @app.get("/users")
        >>> @inject_dependencies(container, user_service=UserServiceToken, logger=LoggerToken)
        >>> async def list_users(page: int, user_service: UserService, logger: Logger):
        ...     logger.debug("Listing page %d", page)
        ...     return user_service.page(page)
    """

    def decorator(func: Callable) -> Callable:
        """Wrap the function with dependency injection logic."""

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            """Resolve dependencies and call the original function."""
            for param_name, token in tokens.items():
                if param_name not in kwargs:
                    kwargs[param_name] = await container.resolve_async(token)

            return await func(*args, **kwargs)

        # Hide injected parameters from FastAPI's request parsing.
        signature = inspect.signature(func)
        wrapper.__signature__ = signature.replace(
            parameters=[param for name, param in signature.parameters.items() if name not in tokens]
        )
        return wrapper

    return decorator
