from enum import Enum


class Lifetime(str, Enum):
    """Defines the lifetime of a dependency instance.

    Attributes:
        TRANSIENT: New instance created on each resolution.
        PER_REQUEST: Single instance per top-level resolution call tree.
        SINGLETON: Single instance per container.
    """

    TRANSIENT = "transient"
    PER_REQUEST = "per-request"
    SINGLETON = "singleton"

    def __str__(self) -> str:
        return self.value


class BindingKind(str, Enum):
    """Construction strategy of a binding."""

    CONSTANT = "constant"
    FACTORY = "factory"
    CONSTRUCTOR = "constructor"

    def __str__(self) -> str:
        return self.value


class AutowireStrategy(str, Enum):
    """How constructor arguments are discovered when autowiring.

    Attributes:
        TYPE_HINTS: Parameter annotations looked up in the interface registry.
        MAP: Explicit mapping from parameter name to token or resolver callable.
        RESOLVERS: Ordered list of tokens or resolver callables, one per position.
    """

    TYPE_HINTS = "type_hints"
    MAP = "map"
    RESOLVERS = "resolvers"

    def __str__(self) -> str:
        return self.value
