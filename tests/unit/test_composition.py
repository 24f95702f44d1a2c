"""Tests for the composition root: the real component graph over SQLite."""

import httpx
import pytest
from fastapi import Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from src.auditing.infrastructure import AuditingRegistration
from src.bootstrap import compose, has_active_context
from src.core import ComponentWiringException
from src.infrastructure.database import Database, get_session
from tests.helpers.models import ProductModel


@pytest.fixture
async def context(settings):
    context = await compose(settings).build()
    yield context
    await context.close()


def add_product_route(app: FastAPI) -> None:
    """Test-only write endpoint."""

    @app.post("/test-products")
    async def create_product(payload: dict, session: AsyncSession = Depends(get_session)):
        product = ProductModel(name=payload["name"])
        session.add(product)
        await session.flush()
        return {
            "id": str(product.id),
            "created_by": product.created_by,
            "updated_by": product.updated_by,
            "created_at": product.created_at.isoformat() if product.created_at else None,
        }


class TestComponents:
    async def test_registers_auditing_database_web(self, context) -> None:
        assert context.names == ("auditing", "database", "web")
        assert isinstance(context["auditing"], AuditingRegistration)
        assert context["auditing"].enabled
        assert isinstance(context["database"], Database)
        assert isinstance(context["web"], FastAPI)

    async def test_database_sessions_use_audited_session_class(self, context) -> None:
        assert context["database"].session_class is context["auditing"].session_class

    async def test_close_releases_everything(self, settings) -> None:
        context = await compose(settings).build()
        auditing = context["auditing"]
        database = context["database"]

        await context.close()

        assert not auditing.enabled
        assert not database.is_connected
        assert not has_active_context()

    async def test_auditing_disabled(self, make_settings) -> None:
        context = await compose(make_settings(auditing_enabled=False)).build()
        try:
            assert context["auditing"] is None
            assert context["database"].session_class is Session
        finally:
            await context.close()

    async def test_args_are_passed_through(self, settings) -> None:
        context = await compose(settings, ["--anything", "goes"]).build()
        try:
            assert context.args == ("--anything", "goes")
        finally:
            await context.close()


class TestFailFast:
    async def test_unreachable_database_aborts_wiring(self, make_settings, tmp_path) -> None:
        missing_dir = tmp_path / "does" / "not" / "exist"
        settings = make_settings(
            database_url=f"sqlite+aiosqlite:///{missing_dir / 'shop.db'}",
            db_create_tables=False,
        )

        with pytest.raises(ComponentWiringException) as exc_info:
            await compose(settings).build()

        assert exc_info.value.component == "database"
        assert not has_active_context()


class TestAuditedWrites:
    async def test_entity_saved_without_audit_fields_is_stamped(self, context) -> None:
        async with context["database"].session() as session:
            product = ProductModel(name="Kettle", price_cents=3999)
            session.add(product)

        assert product.created_at is not None
        assert product.updated_at == product.created_at
        assert product.created_at.tzinfo is not None

    async def test_request_actor_is_recorded(self, context) -> None:
        app = context["web"]
        add_product_route(app)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/test-products", json={"name": "Kettle"}, headers={"X-Actor": "alice"}
            )
            anonymous = await client.post("/test-products", json={"name": "Teapot"})

        assert response.status_code == 200
        body = response.json()
        assert body["created_by"] == "alice"
        assert body["updated_by"] == "alice"
        assert body["created_at"] is not None
        assert anonymous.json()["created_by"] is None

    async def test_system_actor_fallback(self, make_settings) -> None:
        context = await compose(make_settings(system_actor="system")).build()
        try:
            async with context["database"].session() as session:
                product = ProductModel(name="Kettle")
                session.add(product)
            assert product.created_by == "system"
        finally:
            await context.close()
