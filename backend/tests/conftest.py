"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- An in-memory database session wired into the app
- Fake external services (store directory, AI models, web push)
- Profile, store and reporte factories with their auth headers
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest


# Set test environment variables BEFORE any imports
# This must happen first to ensure settings load with test values
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OPENROUTER_API_KEY"] = "test_api_key"
os.environ["OPENROUTER_BASE_URL"] = "https://openrouter.ai/api/v1"
os.environ["SECRET_KEY"] = "test_secret_key_at_least_32_characters_long_for_jwt"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "60"
os.environ["MEDIA_DIRECTORY"] = tempfile.mkdtemp(prefix="reportes-media-")
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["TIMEOUT_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["ZONAS"] = '["CDMX", "Pachuca", "Cuernavaca"]'
os.environ["DISABLE_RATE_LIMIT"] = "true"  # Disable rate limiting for tests

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402


class FakeStoreDirectory:
    """Store directory answering from an in-memory dict keyed by code."""

    def __init__(self):
        self.stores: Dict[str, Dict[str, Any]] = {
            "50CUE": {
                "codigo": "50CUE",
                "nombre": "OXXO Cuernavaca Centro",
                "plaza": "Plaza Cuernavaca",
                "zona": "Cuernavaca",
                "responsable_comercial": "Ana López",
                "celular": "7771234567",
                "encargado_ejecucion": "Luis Pérez",
                "movil": "7777654321",
            }
        }
        self.calls: List[str] = []

    async def lookup(self, codigo_tienda: str) -> Dict[str, Any]:
        from reportes.services.store_directory import StoreNotFoundError

        self.calls.append(codigo_tienda)
        if codigo_tienda not in self.stores:
            raise StoreNotFoundError(
                f"Tienda con código {codigo_tienda} no encontrada en el sistema"
            )
        return dict(self.stores[codigo_tienda])


class FakeTicketExtractor:
    """Ticket extractor returning a canned result, or raising a preset error."""

    def __init__(self):
        self.error: Optional[Exception] = None
        self.calls: List[str] = []
        self.result: Dict[str, Any] = {
            "codigo_tienda": "50CUE",
            "tienda": "OXXO Cuernavaca Centro",
            "fecha": "24/11/2025",
            "orden_compra": "4500123456",
            "productos": [
                {"clave_articulo": "12345", "descripcion": "Pan blanco", "costo": 35.5, "peso": 2.0}
            ],
            "subtotal": 71.0,
            "total": 71.0,
            "confidence": 0.92,
            "raw_response": "{}",
        }

    async def extract(self, image_url: str, correlation_id: Optional[str] = None) -> Dict[str, Any]:
        self.calls.append(image_url)
        if self.error is not None:
            raise self.error
        return dict(self.result)


class FakeResolutionAnalyzer:
    """Resolution analyser with a preset verdict."""

    def __init__(self):
        self.verdict: Dict[str, Any] = {
            "is_resolved": False,
            "confidence": 0.1,
            "reasoning": "Sin confirmación",
        }
        self.calls: List[Dict[str, Any]] = []

    async def analyze(self, message, tipo_reporte, motivo, history) -> Dict[str, Any]:
        self.calls.append(
            {"message": message, "tipo_reporte": tipo_reporte, "motivo": motivo, "history": history}
        )
        return dict(self.verdict)


class FakePushSender:
    """Push sender recording payloads; endpoints listed in gone answer 410."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.gone: set = set()

    async def send(self, subscription_info: Dict[str, Any], payload: Dict[str, Any]) -> None:
        from reportes.services.push_notifier import PushDeliveryError

        if subscription_info["endpoint"] in self.gone:
            raise PushDeliveryError("Gone", status_code=410)
        self.sent.append({"endpoint": subscription_info["endpoint"], "payload": payload})


@pytest.fixture
def anyio_backend():
    """
    Configure anyio backend for async tests.

    Returns:
        str: Backend name ("asyncio")
    """
    return "asyncio"


@pytest.fixture
async def async_session():
    """
    Create an in-memory database session for testing.

    Yields:
        AsyncSession for testing
    """
    from reportes.models.base import Base
    from reportes import models  # noqa: F401 - Import to register models

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def store_directory():
    return FakeStoreDirectory()


@pytest.fixture
def ticket_extractor():
    return FakeTicketExtractor()


@pytest.fixture
def resolution_analyzer():
    return FakeResolutionAnalyzer()


@pytest.fixture
def push_sender():
    return FakePushSender()


@pytest.fixture
def storage(tmp_path):
    from reportes.services.storage import LocalStorage

    return LocalStorage(root=str(tmp_path / "media"), public_base_url="http://test")


@pytest.fixture
async def app_with_db(
    async_session: AsyncSession,
    store_directory,
    ticket_extractor,
    resolution_analyzer,
    push_sender,
    storage,
):
    """
    Override the database and external service dependencies in the app.

    Returns:
        FastAPI app with overridden dependencies
    """
    from reportes.main import app
    from reportes.core.database import get_db
    from reportes.api import dependencies

    async def override_get_db():
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_store_directory] = lambda: store_directory
    app.dependency_overrides[dependencies.get_ticket_extractor] = lambda: ticket_extractor
    app.dependency_overrides[dependencies.get_resolution_analyzer] = lambda: resolution_analyzer
    app.dependency_overrides[dependencies.get_push_sender] = lambda: push_sender
    app.dependency_overrides[dependencies.get_storage] = lambda: storage
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app_with_db):
    async with AsyncClient(transport=ASGITransport(app=app_with_db), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_profile(async_session: AsyncSession):
    """Factory creating a profile with password "secreto123"."""
    from reportes.core.security import get_password_hash
    from reportes.repositories.user_profile import UserProfileRepository

    hashed = get_password_hash("secreto123")

    async def _make(email: str, role: str = "conductor", zona: Optional[str] = None, **kwargs):
        profile = await UserProfileRepository(async_session).create_profile(
            email=email,
            hashed_password=hashed,
            role=role,
            zona=zona,
            **kwargs,
        )
        await async_session.commit()
        return profile

    return _make


@pytest.fixture
def auth_headers():
    """Build the Bearer header for a profile."""
    from reportes.core.security import issue_token_for

    def _headers(profile) -> Dict[str, str]:
        return {"Authorization": f"Bearer {issue_token_for(profile).access_token}"}

    return _headers


@pytest.fixture
async def conductor(make_profile):
    return await make_profile("chofer@example.com", display_name="Juan Chofer")


@pytest.fixture
async def comercial(make_profile):
    return await make_profile("comercial@example.com", role="comercial", zona="Cuernavaca")


@pytest.fixture
async def admin(make_profile):
    return await make_profile("admin@example.com", role="administrador")


@pytest.fixture
async def store(async_session: AsyncSession):
    from reportes.repositories.store import StoreRepository

    store = await StoreRepository(async_session).upsert(
        codigo_tienda="50CUE",
        nombre="OXXO Cuernavaca Centro",
        zona="Cuernavaca",
        direccion="Plaza Cuernavaca",
    )
    await async_session.commit()
    return store


@pytest.fixture
async def draft_reporte(async_session: AsyncSession, conductor, store):
    """Draft entrega reporte owned by the conductor fixture."""
    from reportes.repositories.reporte import ReporteRepository

    reporte = await ReporteRepository(async_session).create_reporte(conductor, store)
    reporte.tipo_reporte = "entrega"
    await async_session.commit()
    return reporte
