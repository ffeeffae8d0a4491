"""Application layer - Fluent registration builder."""

import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Generic, Hashable, List, Optional, Sequence, Set, TypeVar

from tessera_di.application.resolver import DependencyResolver
from tessera_di.domain import (
    AutowireOptions,
    BindingKind,
    Factory,
    Lifetime,
    RegistrationConfig,
    RegistrationError,
    RegistrationIndex,
    Token,
)

if TYPE_CHECKING:
    from tessera_di.application.container import Container

logger = logging.getLogger(__name__)

T = TypeVar("T")

Module = Callable[["Builder"], None]


def _has_required_parameters(constructor: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(constructor)
    except (TypeError, ValueError):
        return False
    return any(
        param.default is inspect.Parameter.empty
        and param.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        for name, param in signature.parameters.items()
        if name != "self"
    )


class RegistrationBuilder(Generic[T]):
    """Fluent configuration of one registered type, instance or factory.

    Each ``as_*`` call adds a registration target. Lifetime, name, key and the
    other modifiers apply to every target added before them.

    Example:
        >>> builder.register_type(ConsoleLogger).as_interface(ILogger).single_instance()
    """

    def __init__(self, pending: RegistrationConfig, registrations: List[RegistrationConfig]) -> None:
        """Initialize the registration builder.

        Args:
            pending: Template holding the kind and the value, factory or constructor.
            registrations: Shared list the builder applies at build time.
        """
        self._pending = pending
        self._registrations = registrations
        self._configs: List[RegistrationConfig] = []

    def _add_target(self, token: Optional[Token] = None, interface: Any = None) -> RegistrationConfig:
        config = self._pending.model_copy(deep=False, update={"token": token, "interface": interface})
        config.additional_tokens = []
        self._configs.append(config)
        self._registrations.append(config)
        return config

    def as_token(self, token: Token) -> "RegistrationBuilder[T]":
        """Bind this registration to a token."""
        self._add_target(token=token)
        return self

    def as_interface(self, interface: Hashable) -> "RegistrationBuilder[T]":
        """Bind this registration to the token of an interface type or name.

        The token comes from the container's interface registry at build time.
        """
        self._add_target(interface=interface)
        return self

    def as_self(self) -> "RegistrationBuilder[T]":
        """Bind this registration to the interface of its own type."""
        if self._pending.kind == BindingKind.CONSTANT:
            return self.as_interface(type(self._pending.value))
        if self._pending.kind == BindingKind.CONSTRUCTOR:
            return self.as_interface(self._pending.constructor)
        raise RegistrationError("as_self() requires a type or instance registration")

    def as_default_interface(self, interface: Hashable) -> "RegistrationBuilder[T]":
        """Register as the default implementation of an interface."""
        self.as_interface(interface)
        return self.as_default()

    def as_keyed_interface(self, key: Hashable, interface: Hashable) -> "RegistrationBuilder[T]":
        """Register as a keyed implementation of an interface."""
        self.as_interface(interface)
        return self.keyed(key)

    def as_implemented_interfaces(self, tokens: Sequence[Token]) -> "RegistrationBuilder[T]":
        """Expose this registration under several tokens sharing one instance.

        The first token becomes the primary target unless one was already
        added. The remaining tokens resolve through the primary. Lifetime
        defaults to singleton.
        """
        if not tokens:
            return self

        if self._configs:
            for config in self._configs:
                config.lifetime = Lifetime.SINGLETON
                config.additional_tokens.extend(tokens)
            return self

        config = self._add_target(token=tokens[0])
        config.lifetime = Lifetime.SINGLETON
        config.additional_tokens.extend(tokens[1:])
        return self

    def _set(self, **values: Any) -> "RegistrationBuilder[T]":
        for config in self._configs:
            for field, value in values.items():
                setattr(config, field, value)
        return self

    def single_instance(self) -> "RegistrationBuilder[T]":
        """One instance per container."""
        return self._set(lifetime=Lifetime.SINGLETON)

    def instance_per_request(self) -> "RegistrationBuilder[T]":
        """One instance per top-level resolution call tree."""
        return self._set(lifetime=Lifetime.PER_REQUEST)

    def instance_per_dependency(self) -> "RegistrationBuilder[T]":
        """A new instance on every resolution."""
        return self._set(lifetime=Lifetime.TRANSIENT)

    def named(self, name: str) -> "RegistrationBuilder[T]":
        return self._set(name=name)

    def keyed(self, key: Hashable) -> "RegistrationBuilder[T]":
        return self._set(key=key)

    def as_default(self) -> "RegistrationBuilder[T]":
        """Mark as default. Any non-default registration for the same token replaces it."""
        return self._set(is_default=True)

    def if_not_registered(self) -> "RegistrationBuilder[T]":
        """Skip this registration when the token was already claimed."""
        return self._set(if_not_registered=True)

    def with_dependencies(self, *tokens: Token) -> "RegistrationBuilder[T]":
        """Declare the constructor's dependency tokens, in positional order."""
        return self._set(dependencies=list(tokens))

    def with_parameters(self, **values: Any) -> "RegistrationBuilder[T]":
        """Pass plain values (strings, numbers, settings) to the constructor by keyword."""
        return self._set(parameter_values=dict(values))

    def auto_wire(self, options: Optional[AutowireOptions] = None) -> "RegistrationBuilder[T]":
        """Resolve constructor arguments automatically.

        Example:
            >>> builder.register_type(EventBus).as_interface(IEventBus).auto_wire(
            ...     AutowireOptions(by=AutowireStrategy.MAP, map={"logger": LoggerToken})
            ... )
        """
        return self._set(autowire_options=options or AutowireOptions())


class Builder:
    """Collects registrations and applies them to a new child container.

    Conflicts between registrations for the same token are settled at build time:
    - default registrations are dropped when any plain registration targets the token
    - conditional and default registrations are skipped once the token is claimed
    - named and keyed registrations get private tokens recorded in side indexes
    - repeated plain registrations become multi-registrations for ``resolve_all``

    Attributes:
        _base: Container the built container inherits from.
        _registrations: Registrations in declaration order.
        _resolver: Autowiring strategy implementation.
    """

    def __init__(self, base: "Container", resolver: Optional[DependencyResolver] = None) -> None:
        """Initialize the builder.

        Args:
            base: Parent of the container produced by ``build()``.
            resolver: Optional autowiring resolver.
        """
        self._base = base
        self._registrations: List[RegistrationConfig] = []
        self._resolver = resolver or DependencyResolver()

    def _start(self, **fields: Any) -> RegistrationBuilder[Any]:
        fields.setdefault("lifetime", self._base.settings.default_lifetime)
        pending = RegistrationConfig(**fields)
        return RegistrationBuilder(pending, self._registrations)

    def register_type(self, constructor: Callable[..., T]) -> RegistrationBuilder[T]:
        """Register a class (or any callable) to be constructed on resolution."""
        return self._start(kind=BindingKind.CONSTRUCTOR, constructor=constructor)

    def register_instance(self, instance: T) -> RegistrationBuilder[T]:
        """Register a pre-created instance."""
        return self._start(kind=BindingKind.CONSTANT, value=instance, lifetime=Lifetime.SINGLETON)

    def register(self, factory: Factory[T]) -> RegistrationBuilder[T]:
        """Register a factory receiving the container."""
        return self._start(kind=BindingKind.FACTORY, factory=factory)

    def module(self, module: Module) -> "Builder":
        """Apply a function that adds a group of registrations."""
        module(self)
        return self

    def build(self) -> "Container":
        """Create a child of the base container holding every registration.

        Returns:
            The configured container.

        Raises:
            RegistrationError: If a registration has no target token.
        """
        container = self._base.create_child()

        for config in self._registrations:
            if config.token is None and config.interface is not None:
                config.token = container.interface_token(config.interface)
            if config.token is None:
                raise RegistrationError(
                    f"Registration of {config.kind} has no target; call as_token() or as_interface()"
                )

        index = RegistrationIndex()
        registered: Set[Token] = set()
        tokens_with_non_defaults = {
            config.token for config in self._registrations if not config.is_default and config.is_unqualified
        }

        for config in self._registrations:
            token = config.token
            if config.is_default and config.is_unqualified and token in tokens_with_non_defaults:
                logger.debug("Dropped default registration for %s", token)
                continue
            if config.if_not_registered and token in registered:
                logger.debug("Skipped conditional registration for %s", token)
                continue
            if config.is_default and token in registered:
                continue

            binding_token = self._binding_token(config, index)
            self._apply(container, config, binding_token)
            registered.add(token)

            for additional in config.additional_tokens:
                container.bind_factory(
                    additional,
                    lambda c, target=binding_token: c.resolve(target),
                    lifetime=config.lifetime,
                )
                registered.add(additional)

        container.set_registration_index(index)
        return container

    @staticmethod
    def _binding_token(config: RegistrationConfig, index: RegistrationIndex) -> Token:
        if config.name is not None:
            binding_token = Token(f"__named_{config.name}")
            index.named[config.name] = binding_token
            return binding_token

        if config.key is not None:
            binding_token = Token(f"__keyed_{config.key}")
            index.keyed[config.key] = binding_token
            return binding_token

        bound = index.multi.get(config.token)
        if bound is None:
            bound = index.multi[config.token] = []
            binding_token = config.token
        else:
            binding_token = Token(f"__multi_{config.token}_{len(bound)}")
        bound.append(binding_token)
        return binding_token

    def _apply(self, container: "Container", config: RegistrationConfig, token: Token) -> None:
        if config.kind == BindingKind.CONSTANT:
            container.bind_value(token, config.value)
        elif config.kind == BindingKind.FACTORY:
            container.bind_factory(token, config.factory, lifetime=config.lifetime)
        elif config.kind == BindingKind.CONSTRUCTOR:
            self._apply_type(container, config, token)
        else:
            raise RegistrationError(f"Unknown registration kind: {config.kind}")

    def _apply_type(self, container: "Container", config: RegistrationConfig, token: Token) -> None:
        constructor = config.constructor
        plain = not config.parameter_values and config.autowire_options is None

        if plain and config.dependencies is not None:
            container.bind_constructor(token, constructor, lifetime=config.lifetime, dependencies=config.dependencies)
            return

        if plain and not _has_required_parameters(constructor):
            container.bind_constructor(token, constructor, lifetime=config.lifetime)
            return

        container.bind_factory(token, self._autowiring_factory(config), lifetime=config.lifetime)

    def _autowiring_factory(self, config: RegistrationConfig) -> Callable[["Container"], Any]:
        constructor = config.constructor
        parameters: Dict[str, Any] = dict(config.parameter_values)

        if config.dependencies is not None:
            dependencies = list(config.dependencies)

            def construct_with_dependencies(container: "Container") -> Any:
                args = [container.resolve(dependency) for dependency in dependencies]
                return constructor(*args, **parameters)

            return construct_with_dependencies

        options = config.autowire_options or AutowireOptions()
        resolver = self._resolver

        def construct_autowired(container: "Container") -> Any:
            return constructor(**resolver.resolve_arguments(constructor, container, options, parameters))

        return construct_autowired
