import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt

from app.config import Settings
from app.dependencies import RelationshipContainer, build_container
from app.main import create_app
from shared.auth.config import AuthSettings
from shared.events.schemas import RelationshipEvent


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        rate_limit_enabled=False,
        events_topic_arn="",
        _env_file=None,
    )


@pytest.fixture
def alice() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def bob() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def carol() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def container(settings: Settings, alice, bob, carol) -> RelationshipContainer:
    c = build_container(settings)
    for user_id in (alice, bob, carol):
        c.users.register(user_id)
    return c


@pytest.fixture
def published(container: RelationshipContainer) -> list[RelationshipEvent]:
    """Events delivered by ``await container.notifier.drain()``."""
    events: list[RelationshipEvent] = []

    async def _record(event: RelationshipEvent) -> None:
        events.append(event)

    container.notifier.subscribe(_record)
    return events


@pytest.fixture
def app(settings: Settings, container: RelationshipContainer) -> FastAPI:
    application = create_app(settings)
    application.state.container = container
    return application


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[[uuid.UUID], dict[str, str]]:
    auth = AuthSettings()

    def _headers(user_id: uuid.UUID) -> dict[str, str]:
        claims = {
            "sub": str(user_id),
            "email": f"{user_id.hex[:8]}@example.com",
            "roles": ["user"],
            "iss": auth.issuer,
            "aud": auth.audience,
            "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
        }
        token = jwt.encode(claims, auth.secret, algorithm=auth.algorithm)
        return {"Authorization": f"Bearer {token}"}

    return _headers
