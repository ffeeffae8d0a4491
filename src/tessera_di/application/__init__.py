"""
Application layer - Use cases and orchestration.

This layer contains the container, its caches and the registration builder.
It depends only on the Domain layer.
"""

from .builder import Builder, RegistrationBuilder
from .container import Container
from .context_pool import ResolutionContextPool
from .lifetime_manager import LifetimeManager
from .resolver import DependencyResolver

__all__ = [
    "Container",
    "Builder",
    "RegistrationBuilder",
    "DependencyResolver",
    "LifetimeManager",
    "ResolutionContextPool",
]
