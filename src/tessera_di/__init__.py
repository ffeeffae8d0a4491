"""
tessera-di: Token-based Dependency Injection container with lifetimes, child containers and a fluent builder.

Public API exports for the tessera-di package.
"""

# Application exports
from tessera_di.application.builder import Builder, RegistrationBuilder
from tessera_di.application.container import Container

# Domain exports
from tessera_di.domain.enums import AutowireStrategy, Lifetime
from tessera_di.domain.exceptions import (
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
from tessera_di.domain.models import AutowireOptions
from tessera_di.domain.settings import ContainerSettings
from tessera_di.domain.token import Token, new_token

__version__ = "0.1.0"

__all__ = [
    # Container
    "Container",
    "Builder",
    "RegistrationBuilder",
    # Tokens
    "Token",
    "new_token",
    # Enums
    "Lifetime",
    "AutowireStrategy",
    # Configuration
    "AutowireOptions",
    "ContainerSettings",
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
]
