"""Unit tests for ContainerSettings."""

import pytest
from pydantic import ValidationError

from tessera_di.domain import ContainerSettings, Lifetime


class TestContainerSettings:
    """Test cases for ContainerSettings."""

    def test_defaults(self, monkeypatch):
        """Test default values when no environment variables are set."""
        for name in ("TESSERA_DI_CONTEXT_POOL_SIZE", "TESSERA_DI_AUTOWIRE_STRICT", "TESSERA_DI_DEFAULT_LIFETIME"):
            monkeypatch.delenv(name, raising=False)

        settings = ContainerSettings()

        assert settings.context_pool_size == 10
        assert settings.autowire_strict is True
        assert settings.default_lifetime == Lifetime.TRANSIENT

    def test_reads_environment(self, monkeypatch):
        """Test that values are read from TESSERA_DI_ variables."""
        monkeypatch.setenv("TESSERA_DI_CONTEXT_POOL_SIZE", "3")
        monkeypatch.setenv("TESSERA_DI_AUTOWIRE_STRICT", "false")
        monkeypatch.setenv("TESSERA_DI_DEFAULT_LIFETIME", "singleton")

        settings = ContainerSettings()

        assert settings.context_pool_size == 3
        assert settings.autowire_strict is False
        assert settings.default_lifetime == Lifetime.SINGLETON

    def test_explicit_values_override_environment(self, monkeypatch):
        """Test that constructor arguments win over the environment."""
        monkeypatch.setenv("TESSERA_DI_CONTEXT_POOL_SIZE", "3")
        settings = ContainerSettings(context_pool_size=5)
        assert settings.context_pool_size == 5

    def test_negative_pool_size_rejected(self):
        """Test that the pool size cannot be negative."""
        with pytest.raises(ValidationError):
            ContainerSettings(context_pool_size=-1)
