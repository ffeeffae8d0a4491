from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tessera_di.domain.enums import AutowireStrategy, BindingKind, Lifetime
from tessera_di.domain.token import Token

Resolver = Union[Token, Callable[..., Any]]


class ConstantBinding(BaseModel):
    """Binding to a precomputed value.

    A constant never changes, so its lifetime is always singleton.

    Attributes:
        value: The value returned on every resolution.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal[BindingKind.CONSTANT] = BindingKind.CONSTANT
    lifetime: Literal[Lifetime.SINGLETON] = Lifetime.SINGLETON
    value: Any = Field(..., description="The precomputed value.")


class FactoryBinding(BaseModel):
    """Binding to a factory that receives the resolving container.

    Attributes:
        factory: Callable taking the container and returning an instance (or an awaitable).
        lifetime: How long produced instances live.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal[BindingKind.FACTORY] = BindingKind.FACTORY
    factory: Callable[..., Any] = Field(..., description="Factory receiving the container.")
    lifetime: Lifetime = Field(default=Lifetime.TRANSIENT, description="Lifetime of produced instances.")


class ConstructorBinding(BaseModel):
    """Binding to a constructor and its ordered dependency tokens.

    Attributes:
        constructor: Callable invoked with the resolved dependencies as positional arguments.
        dependencies: Tokens resolved left to right before calling the constructor.
        lifetime: How long produced instances live.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal[BindingKind.CONSTRUCTOR] = BindingKind.CONSTRUCTOR
    constructor: Callable[..., Any] = Field(..., description="Constructor to invoke.")
    dependencies: Tuple[Token, ...] = Field(default=(), description="Ordered dependency tokens.")
    lifetime: Lifetime = Field(default=Lifetime.TRANSIENT, description="Lifetime of produced instances.")


Binding = Union[ConstantBinding, FactoryBinding, ConstructorBinding]


class BindingInfo(BaseModel):
    """Read-only description of a binding, for debugging and visualization."""

    model_config = ConfigDict(frozen=True)

    token: str
    kind: BindingKind
    lifetime: Lifetime
    dependencies: List[str] = Field(default_factory=list)


class RegistrationIndex(BaseModel):
    """Side indexes built by the registrar for named, keyed and multi registrations.

    Attributes:
        named: Registration name to private token.
        keyed: Registration key to private token.
        multi: Public token to every token bound for it, in registration order.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    named: Dict[str, Token] = Field(default_factory=dict)
    keyed: Dict[Any, Token] = Field(default_factory=dict)
    multi: Dict[Token, List[Token]] = Field(default_factory=dict)


class AutowireOptions(BaseModel):
    """Configuration for autowiring a constructor.

    Attributes:
        by: Strategy used to discover arguments.
        strict: Fail on unresolvable parameters. None defers to the container settings.
        map: Parameter name to token or resolver callable (MAP strategy).
        resolvers: Positional tokens or resolver callables; None marks a parameter without DI (RESOLVERS strategy).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    by: AutowireStrategy = AutowireStrategy.TYPE_HINTS
    strict: Optional[bool] = None
    map: Dict[str, Resolver] = Field(default_factory=dict)
    resolvers: List[Optional[Resolver]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_strategy_inputs(self) -> "AutowireOptions":
        if self.by == AutowireStrategy.MAP and not self.map:
            raise ValueError("Autowire map strategy requires a non-empty 'map'")
        if self.by == AutowireStrategy.RESOLVERS and not self.resolvers:
            raise ValueError("Autowire resolvers strategy requires a non-empty 'resolvers' list")
        return self


class ResolutionContext(BaseModel):
    """Tracks one top-level resolution call tree.

    Holds the active resolution path, used for circular dependency detection,
    and the per-request instance cache shared by every resolution in the tree.

    Attributes:
        active_path: Tokens currently being resolved, in entry order.
        per_request: Instances cached for the per-request lifetime.
        generation: Bumped each time the context is released. References taken
            under an older generation belong to a finished call tree.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    active_path: Dict[Token, None] = Field(default_factory=dict)
    per_request: Dict[Token, Any] = Field(default_factory=dict)
    generation: int = 0

    def is_resolving(self, token: Token) -> bool:
        return token in self.active_path

    def enter_resolve(self, token: Token) -> None:
        self.active_path[token] = None

    def exit_resolve(self, token: Token) -> None:
        self.active_path.pop(token, None)

    def get_path(self) -> List[Token]:
        """Return a copy of the active path, outermost token first."""
        return list(self.active_path)

    def cache_per_request(self, token: Token, instance: Any) -> None:
        self.per_request[token] = instance

    def get_per_request(self, token: Token) -> Any:
        return self.per_request.get(token)

    def has_per_request(self, token: Token) -> bool:
        return token in self.per_request

    def fork(self) -> "ResolutionContext":
        """Create a branch for concurrent resolution.

        The branch copies the active path, so sibling branches never see each
        other's in-progress tokens, and shares the per-request cache.
        """
        return ResolutionContext.model_construct(
            active_path=dict(self.active_path),
            per_request=self.per_request,
            generation=self.generation,
        )

    def reset(self) -> None:
        """Clear the context for reuse.

        Fresh dictionaries are assigned rather than cleared in place, so a
        branch abandoned by an earlier call tree cannot write into a reused context.
        """
        self.active_path = {}
        self.per_request = {}


class RegistrationConfig(BaseModel):
    """A single registration collected by the builder before it is applied.

    Attributes:
        kind: Construction strategy of the pending registration.
        token: Public token, or None until an interface is turned into a token.
        interface: Interface key resolved to a token at build time.
        value: Instance for constant registrations.
        factory: Factory for factory registrations.
        constructor: Class or callable for type registrations.
        lifetime: Lifetime of produced instances.
        name: Registration name for named resolution.
        key: Registration key for keyed resolution.
        is_default: Only applies when no non-default registration targets the token.
        if_not_registered: Skipped when an earlier registration claimed the token.
        additional_tokens: Extra tokens resolving to the same registration.
        dependencies: Explicit ordered dependency tokens.
        parameter_values: Keyword values passed to the constructor as-is.
        autowire_options: Autowiring configuration.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: BindingKind
    token: Optional[Token] = None
    interface: Optional[Any] = None
    value: Any = None
    factory: Optional[Callable[..., Any]] = None
    constructor: Optional[Callable[..., Any]] = None
    lifetime: Lifetime = Lifetime.TRANSIENT
    name: Optional[str] = None
    key: Optional[Any] = None
    is_default: bool = False
    if_not_registered: bool = False
    additional_tokens: List[Token] = Field(default_factory=list)
    dependencies: Optional[List[Token]] = None
    parameter_values: Dict[str, Any] = Field(default_factory=dict)
    autowire_options: Optional[AutowireOptions] = None

    @property
    def is_unqualified(self) -> bool:
        """Neither named nor keyed."""
        return self.name is None and self.key is None
