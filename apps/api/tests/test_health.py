"""Health endpoint and error mapping."""

import pytest
from httpx import AsyncClient, ASGITransport

from helpdesk.core.config import settings
from helpdesk.main import app
from helpdesk.services.errors import (
    AccessDeniedError,
    DependencyNotFoundError,
    NoTenantError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


@pytest.mark.asyncio
async def test_health_checks_database():
    # Own connection: must not run alongside the transactional db fixture.
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "env": settings.ENV, "version": settings.VERSION}


def test_error_status_codes():
    assert ValidationError("x").status_code == 422
    assert NotFoundError("x").status_code == 404
    assert AccessDeniedError("x").status_code == 403
    assert NoTenantError("x").status_code == 403
    assert UnauthorizedError("x").status_code == 401
    assert DependencyNotFoundError("x").status_code == 422
    assert ValidationError("boom").message == "boom"
