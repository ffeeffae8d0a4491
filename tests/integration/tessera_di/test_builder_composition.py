"""Integration tests composing applications with the fluent builder."""

import asyncio

import pytest

from tessera_di import AutowireOptions, AutowireStrategy, Container, Lifetime, Token


class ILogger:
    def log(self, message):
        raise NotImplementedError


class MemoryLogger(ILogger):
    def __init__(self):
        self.messages = []

    def log(self, message):
        self.messages.append(message)


class IRepository:
    pass


class UserRepository(IRepository):
    def __init__(self, logger: ILogger, table: str = "users"):
        self.logger = logger
        self.table = table


class INotifier:
    pass


class EmailNotifier(INotifier):
    def __init__(self, logger: ILogger):
        self.logger = logger


class SmsNotifier(INotifier):
    def __init__(self, logger: ILogger):
        self.logger = logger


class UserService:
    def __init__(self, repository: IRepository, logger: ILogger):
        self.repository = repository
        self.logger = logger


def infrastructure_module(builder):
    builder.register_type(MemoryLogger).as_interface(ILogger).single_instance()
    builder.register_type(UserRepository).as_interface(IRepository).with_parameters(table="accounts").auto_wire()


def notification_module(builder):
    builder.register_type(EmailNotifier).as_interface(INotifier).auto_wire()
    builder.register_type(SmsNotifier).as_interface(INotifier).auto_wire()
    builder.register_type(EmailNotifier).as_keyed_interface("email", INotifier).auto_wire()


class TestBuilderComposition:
    """Compose an application from modules and resolve it."""

    def test_modules_compose_application(self):
        """Test that registrations from several modules wire together."""
        builder = Container().builder()
        builder.module(infrastructure_module).module(notification_module)
        builder.register_type(UserService).as_self().auto_wire()
        container = builder.build()

        service = container.resolve_type(UserService)

        assert service.repository.table == "accounts"
        assert service.logger is service.repository.logger
        assert [type(n) for n in container.resolve_type_all(INotifier)] == [EmailNotifier, SmsNotifier]
        assert isinstance(container.resolve_keyed("email"), EmailNotifier)

    def test_test_overrides_in_child_build(self):
        """Test that a second build on top of an application overrides registrations."""
        app_builder = Container().builder()
        app_builder.module(infrastructure_module)
        app = app_builder.build()

        fake_logger = MemoryLogger()
        test_builder = app.builder()
        test_builder.register_instance(fake_logger).as_interface(ILogger)
        test_container = test_builder.build()

        assert test_container.resolve_type(IRepository).logger is fake_logger
        assert app.resolve_type(IRepository).logger is not fake_logger

    def test_map_autowiring_with_resolver_callables(self):
        """Test map autowiring mixing tokens and resolver callables."""
        table_token = Token("Table")
        builder = Container().builder()
        builder.register_instance("audit").as_token(table_token)
        builder.register_type(MemoryLogger).as_interface(ILogger).single_instance()
        builder.register_type(UserRepository).as_interface(IRepository).auto_wire(
            AutowireOptions(
                by=AutowireStrategy.MAP,
                map={"logger": lambda c: c.resolve_type(ILogger), "table": table_token},
            )
        )
        container = builder.build()

        repository = container.resolve_type(IRepository)

        assert repository.table == "audit"
        assert repository.logger is container.resolve_type(ILogger)

    def test_implemented_interfaces_share_singleton(self):
        """Test one implementation exposed through several tokens."""
        reader = Token("Reader")
        writer = Token("Writer")
        builder = Container().builder()
        builder.register_type(MemoryLogger).as_implemented_interfaces([reader, writer])
        container = builder.build()

        container.resolve(writer).log("hello")

        assert container.resolve(reader).messages == ["hello"]

    @pytest.mark.asyncio
    async def test_async_factory_registration(self):
        """Test builder registrations resolved asynchronously."""
        connection = Token("Connection")
        repository = Token("Repository")

        async def connect(c):
            await asyncio.sleep(0)
            return {"connected": True}

        builder = Container().builder()
        builder.register(connect).as_token(connection).single_instance()
        builder.register_type(lambda conn: ("repo", conn)).as_token(repository).with_dependencies(connection)
        container = builder.build()

        name, conn = await container.resolve_async(repository)

        assert name == "repo"
        assert conn == {"connected": True}
        assert container.resolve(connection) is conn

    def test_per_request_through_builder(self):
        """Test per-request lifetimes configured through the builder."""
        unit_of_work = Token("UnitOfWork")
        handler = Token("Handler")
        builder = Container().builder()
        builder.register_type(MemoryLogger).as_token(unit_of_work).instance_per_request()
        builder.register(lambda c: (c.resolve(unit_of_work), c.resolve(unit_of_work))).as_token(handler)
        container = builder.build()

        first, second = container.resolve(handler)
        third, _ = container.resolve(handler)

        assert first is second
        assert first is not third
        assert container.settings.default_lifetime == Lifetime.TRANSIENT
