"""
Domain layer - Core business logic and models.

This layer contains tokens, bindings and the error taxonomy of the container.
It has no dependencies on other layers.
"""

from .enums import AutowireStrategy, BindingKind, Lifetime
from .exceptions import (
    AsyncFactoryError,
    AutowireError,
    BindingNotFoundError,
    CircularDependencyError,
    ConstructionError,
    DIException,
    DisposalError,
    RegistrationError,
    ServiceNotFoundError,
)
from .interfaces import Factory, IContainer, ILifetimeManager, IResolver
from .models import (
    AutowireOptions,
    Binding,
    BindingInfo,
    ConstantBinding,
    ConstructorBinding,
    FactoryBinding,
    RegistrationConfig,
    RegistrationIndex,
    ResolutionContext,
)
from .settings import ContainerSettings
from .token import Token, new_token

__all__ = [
    # Tokens
    "Token",
    "new_token",
    # Enums
    "Lifetime",
    "BindingKind",
    "AutowireStrategy",
    # Exceptions
    "DIException",
    "BindingNotFoundError",
    "CircularDependencyError",
    "ConstructionError",
    "AsyncFactoryError",
    "DisposalError",
    "ServiceNotFoundError",
    "AutowireError",
    "RegistrationError",
    # Interfaces
    "Factory",
    "IContainer",
    "IResolver",
    "ILifetimeManager",
    # Models
    "Binding",
    "ConstantBinding",
    "FactoryBinding",
    "ConstructorBinding",
    "BindingInfo",
    "RegistrationConfig",
    "RegistrationIndex",
    "AutowireOptions",
    "ResolutionContext",
    # Settings
    "ContainerSettings",
]
