"""App fixtures for the API tests.

The real routers and exception handlers run; authentication and the
services are swapped for in-memory versions through dependency overrides.
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from halaqa.auth import get_permission_context
from halaqa.dependencies import (
    get_assignment_service,
    get_homework_service,
    get_target_service,
)
from halaqa.main import create_app


@pytest.fixture
def caller(teacher_ctx):
    """Who the next request is made as. Tests switch ``caller.ctx``."""
    return SimpleNamespace(ctx=teacher_ctx)


@pytest.fixture
def app(caller, assignment_service, homework_service, target_service):
    app = create_app()
    app.dependency_overrides[get_permission_context] = lambda: caller.ctx
    app.dependency_overrides[get_assignment_service] = lambda: assignment_service
    app.dependency_overrides[get_homework_service] = lambda: homework_service
    app.dependency_overrides[get_target_service] = lambda: target_service
    return app


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
