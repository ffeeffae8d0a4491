from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tessera_di.domain.enums import Lifetime


class ContainerSettings(BaseSettings):
    """Container configuration, read from ``TESSERA_DI_*`` environment variables.

    Attributes:
        context_pool_size: Capacity of the resolution context pool.
        autowire_strict: Fail on unresolvable autowired parameters instead of passing None.
        default_lifetime: Lifetime the builder applies when a registration chooses none.
    """

    model_config = SettingsConfigDict(env_prefix="TESSERA_DI_", frozen=True)

    context_pool_size: int = Field(default=10, ge=0, description="Maximum number of pooled resolution contexts.")
    autowire_strict: bool = Field(default=True, description="Raise on parameters that cannot be autowired.")
    default_lifetime: Lifetime = Field(default=Lifetime.TRANSIENT, description="Builder default lifetime.")
