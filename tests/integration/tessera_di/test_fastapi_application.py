"""Integration tests running a FastAPI application against the container."""

import itertools

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from tessera_di import Container, Lifetime, Token
from tessera_di.infrastructure.fastapi_integration import (
    RequestContainerMiddleware,
    create_fastapi_dependency,
    create_request_dependency,
    inject_dependencies,
)

_session_ids = itertools.count(1)


class Settings:
    def __init__(self):
        self.greeting = "hello"


class Session:
    closed = []

    def __init__(self):
        self.id = next(_session_ids)

    def close(self):
        Session.closed.append(self.id)


class Greeter:
    def __init__(self, settings, session):
        self.settings = settings
        self.session = session

    def greet(self, name):
        return f"{self.settings.greeting} {name}"


SettingsToken = Token("Settings")
SessionToken = Token("Session")
GreeterToken = Token("Greeter")


@pytest.fixture
def container():
    Session.closed = []
    container = Container()
    container.bind_constructor(SettingsToken, Settings, lifetime=Lifetime.SINGLETON)
    container.bind_constructor(SessionToken, Session, lifetime=Lifetime.SINGLETON)
    container.bind_constructor(GreeterToken, Greeter, dependencies=[SettingsToken, SessionToken])
    return container


@pytest.fixture
def client(container):
    app = FastAPI()
    app.add_middleware(RequestContainerMiddleware, container=container)

    get_settings = create_fastapi_dependency(container, SettingsToken)
    get_session = create_request_dependency(SessionToken)
    get_greeter = create_request_dependency(GreeterToken)

    @app.get("/greet/{name}")
    def greet(name: str, greeter: Greeter = Depends(get_greeter), session: Session = Depends(get_session)):
        return {"message": greeter.greet(name), "same_session": greeter.session is session, "session": session.id}

    @app.get("/settings")
    def settings(value: Settings = Depends(get_settings)):
        return {"greeting": value.greeting, "id": id(value)}

    @app.get("/injected/{name}")
    @inject_dependencies(container, greeter=GreeterToken)
    async def injected(name: str, greeter: Greeter):
        return {"message": greeter.greet(name)}

    return TestClient(app)


class TestFastAPIApplication:
    """End-to-end requests through the middleware and dependencies."""

    def test_request_dependency(self, client):
        """Test that endpoints receive instances from the request container."""
        response = client.get("/greet/ada")

        assert response.status_code == 200
        assert response.json()["message"] == "hello ada"

    def test_request_singletons_shared_within_request(self, client):
        """Test that singletons of the request container are shared by one request."""
        assert client.get("/greet/ada").json()["same_session"] is True

    def test_request_singletons_distinct_between_requests(self, client):
        """Test that each request gets its own request singletons."""
        first = client.get("/greet/ada").json()["session"]
        second = client.get("/greet/bob").json()["session"]

        assert first != second

    def test_request_singletons_disposed(self, client):
        """Test that request singletons are closed once the request completes."""
        session = client.get("/greet/ada").json()["session"]

        assert session in Session.closed

    def test_application_singletons_shared_between_requests(self, client):
        """Test that dependencies resolved from the application container are shared."""
        first = client.get("/settings").json()["id"]
        second = client.get("/settings").json()["id"]

        assert first == second

    def test_injected_endpoint(self, client):
        """Test that injected parameters are hidden from request parsing."""
        response = client.get("/injected/grace")

        assert response.status_code == 200
        assert response.json() == {"message": "hello grace"}

    def test_missing_middleware(self, container):
        """Test that request dependencies fail loudly without the middleware."""
        app = FastAPI()

        @app.get("/session")
        def session(value: Session = Depends(create_request_dependency(SessionToken))):
            return {"id": value.id}

        with pytest.raises(RuntimeError, match="RequestContainerMiddleware"):
            TestClient(app).get("/session")
