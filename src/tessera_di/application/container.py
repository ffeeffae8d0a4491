import asyncio
import contextvars
import inspect
import logging
import weakref
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Sequence, Tuple, TypeVar

from tessera_di.application.builder import Builder
from tessera_di.application.context_pool import ResolutionContextPool
from tessera_di.application.lifetime_manager import MISSING, LifetimeManager
from tessera_di.domain import (
    AsyncFactoryError,
    Binding,
    BindingInfo,
    BindingKind,
    BindingNotFoundError,
    CircularDependencyError,
    ConstantBinding,
    ConstructionError,
    ConstructorBinding,
    ContainerSettings,
    DIException,
    Factory,
    FactoryBinding,
    IContainer,
    Lifetime,
    RegistrationIndex,
    ResolutionContext,
    ServiceNotFoundError,
    Token,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (context, owning pooled context, owner generation when the entry was made)
_ActiveResolution = Tuple[ResolutionContext, ResolutionContext, int]

# Resolution in progress per container for the current task or thread.
_active_resolutions: ContextVar[Optional[Dict["Container", _ActiveResolution]]] = ContextVar(
    "tessera_di_active_resolutions", default=None
)


def _interface_name(interface: Hashable) -> str:
    if isinstance(interface, str):
        return interface
    return getattr(interface, "__qualname__", None) or repr(interface)


class Container(IContainer):
    """Dependency injection container.

    Maps tokens to bindings and builds object graphs on demand. Supports:
    - value, factory and constructor bindings
    - singleton, per-request and transient lifetimes
    - child containers that inherit bindings but cache singletons independently
    - circular dependency detection
    - disposal of singletons in reverse construction order

    A container is not safe for concurrent mutation; access from several
    threads must be serialized by the caller.

    Attributes:
        _parent: Container whose bindings this one inherits. The parent never references its children strongly.
        _bindings: This container's own bindings. Only changed by explicit bind calls.
        _binding_cache: Flattened view of this container's and its ancestors' bindings; child wins.
        _fast_transients: Constructors of zero-dependency transient bindings, called directly.
        _lifetime_manager: Singleton caches and disposal order.
        _index: Named, keyed and multi registration indexes attached by the builder.
        _interface_registry: Interface key to token mapping.
    """

    def __init__(self, parent: Optional["Container"] = None, settings: Optional[ContainerSettings] = None) -> None:
        """Initialize the container.

        Args:
            parent: Optional container to inherit bindings from.
            settings: Optional settings. Children default to their parent's settings and share its context pool.
        """
        self._parent = parent
        if parent is not None:
            self._settings = settings or parent._settings
            self._pool = parent._pool
        else:
            self._settings = settings or ContainerSettings()
            self._pool = ResolutionContextPool(self._settings.context_pool_size)

        self._bindings: Dict[Token, Binding] = {}
        self._binding_cache: Optional[Dict[Token, Binding]] = None
        self._fast_transients: Dict[Token, Callable[[], Any]] = {}
        self._lifetime_manager = LifetimeManager()
        self._index = RegistrationIndex()
        self._interface_registry: Dict[Hashable, Token] = {}
        self._children: "weakref.WeakSet[Container]" = weakref.WeakSet()

        if parent is not None:
            parent._children.add(self)

    @property
    def parent(self) -> Optional["Container"]:
        return self._parent

    @property
    def settings(self) -> ContainerSettings:
        return self._settings

    # Registration

    def bind_value(self, token: Token[T], value: T) -> None:
        """Bind a precomputed value to a token.

        Args:
            token: The token to bind.
            value: Value returned on every resolution.

        Example:
            >>> container.bind_value(ConfigToken, {"debug": True})
        """
        self._bind(token, ConstantBinding(value=value))

    def bind_factory(self, token: Token[T], factory: Factory[T], lifetime: Lifetime = Lifetime.TRANSIENT) -> None:
        """Bind a factory to a token.

        The factory receives the resolving container and may return an
        awaitable, in which case the token must be resolved with ``resolve_async``.

        Args:
            token: The token to bind.
            factory: Callable producing the instance.
            lifetime: How long produced instances live.

        Example:
            >>> container.bind_factory(
            ...     ConnectionToken,
            ...     lambda c: Connection(c.resolve(ConfigToken)),
            ...     lifetime=Lifetime.SINGLETON,
            ... )
        """
        self._bind(token, FactoryBinding(factory=factory, lifetime=lifetime))

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
            constructor: Callable receiving the resolved dependencies positionally.
            lifetime: How long produced instances live.
            dependencies: Tokens resolved depth-first, left to right.

        Example:
            >>> container.bind_constructor(ServiceToken, UserService, dependencies=[RepoToken, LoggerToken])
        """
        self._bind(
            token,
            ConstructorBinding(constructor=constructor, dependencies=tuple(dependencies), lifetime=lifetime),
        )

    def _bind(self, token: Token, binding: Binding) -> None:
        self._bindings[token] = binding
        self._fast_transients.pop(token, None)
        self._lifetime_manager.forget_promoted(token)
        self._invalidate_binding_cache()

        if (
            binding.kind == BindingKind.CONSTRUCTOR
            and binding.lifetime == Lifetime.TRANSIENT
            and not binding.dependencies
            and not inspect.iscoroutinefunction(binding.constructor)
        ):
            self._fast_transients[token] = binding.constructor

        logger.debug("Bound %s as %s (%s)", token, binding.kind, binding.lifetime)

    def _invalidate_binding_cache(self) -> None:
        self._binding_cache = None
        for child in list(self._children):
            child._invalidate_binding_cache()

    def set_registration_index(self, index: RegistrationIndex) -> None:
        """Attach the named, keyed and multi registration indexes.

        Args:
            index: Indexes produced by the registrar.
        """
        self._index = index

    def builder(self) -> Builder:
        """Create a fluent builder whose ``build()`` returns a child of this container."""
        return Builder(self)

    # Lookup

    def _get_binding(self, token: Token) -> Optional[Binding]:
        if self._binding_cache is None:
            self._binding_cache = self._build_binding_cache()
        return self._binding_cache.get(token)

    def _build_binding_cache(self) -> Dict[Token, Binding]:
        cache: Dict[Token, Binding] = {}
        current: Optional[Container] = self
        while current is not None:
            for token, binding in current._bindings.items():
                # First found wins, so a child shadows its ancestors.
                cache.setdefault(token, binding)
            current = current._parent
        return cache

    def is_registered(self, token: Token) -> bool:
        """Check whether a token is bound on this container or an ancestor."""
        return self._get_binding(token) is not None

    def _lookup_index(self, index_name: str, key: Hashable) -> Any:
        current: Optional[Container] = self
        while current is not None:
            entries = getattr(current._index, index_name)
            if key in entries:
                return entries[key]
            current = current._parent
        return None

    # Resolution

    def resolve(self, token: Token[T]) -> T:
        """Resolve and return an instance for the token.

        Cache tiers are consulted first (promoted singletons, singletons, then
        zero-dependency transients). Otherwise the binding is constructed within
        the resolution context of the current call tree.

        Args:
            token: The token to resolve.

        Returns:
            The instance, cached according to its lifetime.

        Raises:
            BindingNotFoundError: If no binding exists in the container chain.
            CircularDependencyError: If the token is already being resolved.
            ConstructionError: If a factory or constructor fails.
            AsyncFactoryError: If a factory returns an awaitable.

        Example:
            >>> service = container.resolve(ServiceToken)
        """
        cached = self._try_get_from_caches(token)
        if cached is not MISSING:
            return cached

        # Called from inside a factory of this call tree: reuse its context.
        context = self._current_context()
        if context is not None:
            return self._resolve_with_context(token, context)

        context = self._pool.acquire()
        reset_token = self._activate(context, context, context.generation)
        try:
            return self._resolve_with_context(token, context)
        finally:
            _active_resolutions.reset(reset_token)
            self._pool.release(context)

    async def resolve_async(self, token: Token[T]) -> T:
        """Resolve a token, awaiting asynchronous factories and constructors.

        Constructor dependencies are resolved concurrently and the constructor
        runs once all of them have settled. The order in which sibling
        dependencies are constructed is therefore not guaranteed.

        Args:
            token: The token to resolve.

        Returns:
            The instance, cached according to its lifetime.

        Raises:
            BindingNotFoundError: If no binding exists in the container chain.
            CircularDependencyError: If the token is already being resolved.
            ConstructionError: If a factory or constructor fails.
        """
        cached = await self._try_get_from_caches_async(token)
        if cached is not MISSING:
            return cached

        context = self._current_context()
        if context is not None:
            return await self._resolve_async_with_context(token, context)

        context = self._pool.acquire()
        reset_token = self._activate(context, context, context.generation)
        try:
            return await self._resolve_async_with_context(token, context)
        finally:
            _active_resolutions.reset(reset_token)
            self._pool.release(context)

    def resolve_batch(self, tokens: Sequence[Token]) -> List[Any]:
        """Resolve several tokens within a single resolution context.

        Per-request instances are therefore shared across the whole batch.

        Args:
            tokens: Tokens to resolve, in order.

        Returns:
            The resolved instances, in the same order.
        """
        context = self._current_context()
        if context is not None:
            return [self._resolve_dependency(token, context) for token in tokens]

        context = self._pool.acquire()
        reset_token = self._activate(context, context, context.generation)
        try:
            return [self._resolve_dependency(token, context) for token in tokens]
        finally:
            _active_resolutions.reset(reset_token)
            self._pool.release(context)

    def resolve_all(self, token: Token[T]) -> List[T]:
        """Resolve every multi-registration of a token, in registration order.

        Args:
            token: The public token.

        Returns:
            The resolved instances, or an empty list when none were registered.
        """
        tokens = self._lookup_index("multi", token)
        if not tokens:
            return []
        return [self.resolve(t) for t in tokens]

    def resolve_named(self, name: str) -> Any:
        """Resolve a named registration.

        Args:
            name: The registration name.

        Raises:
            ServiceNotFoundError: If no registration uses this name.
        """
        token = self._lookup_index("named", name)
        if token is None:
            raise ServiceNotFoundError("named", name)
        return self.resolve(token)

    def resolve_keyed(self, key: Hashable) -> Any:
        """Resolve a keyed registration.

        Args:
            key: The registration key.

        Raises:
            ServiceNotFoundError: If no registration uses this key.
        """
        token = self._lookup_index("keyed", key)
        if token is None:
            raise ServiceNotFoundError("keyed", key)
        return self.resolve(token)

    def _current_entry(self) -> Optional[_ActiveResolution]:
        active = _active_resolutions.get()
        if not active:
            return None
        entry = active.get(self)
        if entry is None:
            return None
        _, owner, generation = entry
        # The owner was released and may already serve an unrelated call tree.
        if owner.generation != generation:
            return None
        return entry

    def _current_context(self) -> Optional[ResolutionContext]:
        entry = self._current_entry()
        return entry[0] if entry is not None else None

    def _activate(self, context: ResolutionContext, owner: ResolutionContext, generation: int) -> contextvars.Token:
        active = dict(_active_resolutions.get() or {})
        active[self] = (context, owner, generation)
        return _active_resolutions.set(active)

    def _try_get_from_caches(self, token: Token) -> Any:
        instance = self._lifetime_manager.get_cached(token)
        if instance is not MISSING:
            return instance

        constructor = self._fast_transients.get(token)
        if constructor is not None:
            return self._ensure_sync(token, self._invoke(token, self._current_context(), constructor))

        return MISSING

    async def _try_get_from_caches_async(self, token: Token) -> Any:
        instance = self._lifetime_manager.get_cached(token)
        if instance is not MISSING:
            return instance

        constructor = self._fast_transients.get(token)
        if constructor is not None:
            context = self._current_context()
            result = self._invoke(token, context, constructor)
            if inspect.isawaitable(result):
                return await self._await_construction(token, context, result)
            return result

        return MISSING

    @staticmethod
    def _ensure_sync(token: Token, result: Any) -> Any:
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise AsyncFactoryError(token)
        return result

    def _validate_and_get_binding(self, token: Token, context: ResolutionContext) -> Binding:
        if context.is_resolving(token):
            raise CircularDependencyError([*context.get_path(), token])

        binding = self._get_binding(token)
        if binding is None:
            raise BindingNotFoundError(token, context.get_path())
        return binding

    def _get_reusable(self, token: Token, binding: Binding, context: ResolutionContext) -> Any:
        if binding.lifetime == Lifetime.PER_REQUEST and context.has_per_request(token):
            return context.get_per_request(token)
        if binding.lifetime == Lifetime.SINGLETON:
            # Only this container's cache; singleton scope is not inherited.
            return self._lifetime_manager.get_singleton(token)
        return MISSING

    def _tracks_disposal(self, token: Token, binding: Binding) -> bool:
        # Inherited constants belong to the ancestor that bound them.
        return binding.kind != BindingKind.CONSTANT or token in self._bindings

    def _resolve_dependency(self, token: Token, context: ResolutionContext) -> Any:
        cached = self._try_get_from_caches(token)
        if cached is not MISSING:
            return cached
        return self._resolve_with_context(token, context)

    def _resolve_with_context(self, token: Token, context: ResolutionContext) -> Any:
        binding = self._validate_and_get_binding(token, context)

        reusable = self._get_reusable(token, binding, context)
        if reusable is not MISSING:
            return reusable

        context.enter_resolve(token)
        try:
            instance = self._instantiate(token, binding, context)
            return self._lifetime_manager.store(
                token, instance, binding, context, track_disposal=self._tracks_disposal(token, binding)
            )
        finally:
            context.exit_resolve(token)

    def _instantiate(self, token: Token, binding: Binding, context: ResolutionContext) -> Any:
        if binding.kind == BindingKind.CONSTANT:
            return binding.value

        if binding.kind == BindingKind.FACTORY:
            result = self._invoke(token, context, binding.factory, self)
        elif binding.kind == BindingKind.CONSTRUCTOR:
            args = [self._resolve_dependency(dependency, context) for dependency in binding.dependencies]
            result = self._invoke(token, context, binding.constructor, *args)
        else:
            raise DIException(f"Unknown binding kind for {token}: {binding.kind}")

        return self._ensure_sync(token, result)

    async def _resolve_async_with_context(self, token: Token, context: ResolutionContext) -> Any:
        binding = self._validate_and_get_binding(token, context)

        reusable = self._get_reusable(token, binding, context)
        if reusable is not MISSING:
            return reusable

        context.enter_resolve(token)
        try:
            instance = await self._instantiate_async(token, binding, context)
            return self._lifetime_manager.store(
                token, instance, binding, context, track_disposal=self._tracks_disposal(token, binding)
            )
        finally:
            context.exit_resolve(token)

    async def _instantiate_async(self, token: Token, binding: Binding, context: ResolutionContext) -> Any:
        if binding.kind == BindingKind.CONSTANT:
            return binding.value

        if binding.kind == BindingKind.FACTORY:
            result = self._invoke(token, context, binding.factory, self)
        elif binding.kind == BindingKind.CONSTRUCTOR:
            args = await self._resolve_dependencies_async(binding.dependencies, context)
            result = self._invoke(token, context, binding.constructor, *args)
        else:
            raise DIException(f"Unknown binding kind for {token}: {binding.kind}")

        if inspect.isawaitable(result):
            return await self._await_construction(token, context, result)
        return result

    async def _resolve_dependencies_async(self, dependencies: Sequence[Token], context: ResolutionContext) -> List[Any]:
        if not dependencies:
            return []
        if len(dependencies) == 1:
            return [await self._resolve_dependency_async(dependencies[0], context)]

        entry = self._current_entry()
        owner, generation = (entry[1], entry[2]) if entry is not None else (context, context.generation)
        results = await asyncio.gather(
            *(self._resolve_branch(dependency, context.fork(), owner, generation) for dependency in dependencies),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    async def _resolve_branch(
        self, token: Token, branch: ResolutionContext, owner: ResolutionContext, generation: int
    ) -> Any:
        # Runs in its own task, so the context variable change stays local to the branch.
        self._activate(branch, owner, generation)
        return await self._resolve_dependency_async(token, branch)

    async def _resolve_dependency_async(self, token: Token, context: ResolutionContext) -> Any:
        cached = await self._try_get_from_caches_async(token)
        if cached is not MISSING:
            return cached
        return await self._resolve_async_with_context(token, context)

    def _invoke(self, token: Token, context: Optional[ResolutionContext], target: Callable[..., Any], *args: Any) -> Any:
        try:
            return target(*args)
        except DIException:
            raise
        except Exception as e:
            raise self._construction_failure(token, context, e) from e

    async def _await_construction(self, token: Token, context: Optional[ResolutionContext], pending: Awaitable[Any]) -> Any:
        try:
            return await pending
        except DIException:
            raise
        except Exception as e:
            raise self._construction_failure(token, context, e) from e

    @staticmethod
    def _construction_failure(
        token: Token, context: Optional[ResolutionContext], cause: Exception
    ) -> ConstructionError:
        path = context.get_path() if context is not None else []
        if not path or path[-1] is not token:
            path.append(token)
        return ConstructionError(token, path, cause)

    # Interface registry

    def find_interface_token(self, interface: Hashable) -> Optional[Token]:
        """Return the token registered for an interface in the container chain, if any.

        Args:
            interface: A type or string identifying the interface.
        """
        current: Optional[Container] = self
        while current is not None:
            token = current._interface_registry.get(interface)
            if token is not None:
                return token
            current = current._parent
        return None

    def interface_token(self, interface: Hashable) -> Token:
        """Get or create the token for an interface.

        New tokens are created on the root container so that every container
        in the chain agrees on them.

        Args:
            interface: A type or string identifying the interface.

        Returns:
            The token for the interface.
        """
        token = self.find_interface_token(interface)
        if token is not None:
            return token

        root = self
        while root._parent is not None:
            root = root._parent
        token = Token(_interface_name(interface))
        root._interface_registry[interface] = token
        return token

    def resolve_type(self, interface: Hashable) -> Any:
        """Resolve the binding registered for an interface.

        Example:
            >>> logger = container.resolve_type(ILogger)
        """
        return self.resolve(self.interface_token(interface))

    def resolve_type_all(self, interface: Hashable) -> List[Any]:
        """Resolve every registration of an interface, in registration order."""
        return self.resolve_all(self.interface_token(interface))

    def resolve_type_keyed(self, key: Hashable, interface: Optional[Hashable] = None) -> Any:
        """Resolve a keyed registration of an interface.

        Keys are unique across interfaces, so the interface only documents intent.

        Args:
            key: The registration key.
            interface: The interface the keyed registration implements.

        Raises:
            ServiceNotFoundError: If no registration uses this key.
        """
        return self.resolve_keyed(key)

    # Hierarchy and teardown

    def create_child(self) -> "Container":
        """Create a child container that inherits this container's bindings.

        The child starts with no bindings of its own and caches singletons
        independently. It keeps a reference to its parent, never the reverse.

        Returns:
            New child container.

        Example:
            >>> request_container = container.create_child()
            >>> request_container.bind_value(RequestToken, request)
        """
        child = Container(parent=self)
        logger.debug("Created child container of %r", self)
        return child

    def dispose(self) -> None:
        """Dispose this container's singletons in reverse construction order.

        Hook failures are logged and do not stop the remaining hooks. Parent
        and child containers are not affected.
        """
        self._lifetime_manager.dispose()

    async def dispose_async(self) -> None:
        """Dispose singletons, awaiting hooks that return awaitables."""
        await self._lifetime_manager.dispose_async()

    def get_registry(self) -> List[BindingInfo]:
        """Describe this container's own bindings, for debugging and visualization."""
        registry = []
        for token, binding in self._bindings.items():
            dependencies = binding.dependencies if binding.kind == BindingKind.CONSTRUCTOR else ()
            registry.append(
                BindingInfo(
                    token=str(token),
                    kind=binding.kind,
                    lifetime=binding.lifetime,
                    dependencies=[str(dependency) for dependency in dependencies],
                )
            )
        return registry
