"""
Unit tests for the repositories against an in-memory database.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reportes.models.base import Base, utc_now
from reportes.models.message import SENDER_USER, SENDER_AGENT
from reportes.models.reporte import (
    Reporte,
    STATUS_COMPLETED,
    STATUS_SUBMITTED,
    STATUS_TIMED_OUT,
)
from reportes.repositories.message import MessageRepository
from reportes.repositories.push_subscription import PushSubscriptionRepository
from reportes.repositories.reporte import ActiveReporteExistsError, ReporteRepository
from reportes.repositories.store import StoreRepository
from reportes.repositories.user_profile import UserProfileRepository


class TestUserProfileRepository:

    @pytest.mark.asyncio
    async def test_create_normalises_email_and_defaults_name(self, make_profile):
        profile = await make_profile("  Juan@Example.COM ")

        assert profile.email == "juan@example.com"
        assert profile.display_name == "juan"
        assert profile.role == "conductor"
        assert profile.is_active is True

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, make_profile):
        await make_profile("juan@example.com")

        with pytest.raises(ValueError, match="ya está registrado"):
            await make_profile("JUAN@example.com")

    @pytest.mark.asyncio
    async def test_comercial_requires_zona(self, make_profile):
        with pytest.raises(ValueError, match="zona"):
            await make_profile("ana@example.com", role="comercial")

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, make_profile):
        with pytest.raises(ValueError, match="Rol inválido"):
            await make_profile("ana@example.com", role="gerente")

    @pytest.mark.asyncio
    async def test_update_role_and_zona(self, async_session, conductor):
        repo = UserProfileRepository(async_session)

        updated = await repo.update_role_and_zona(conductor.id, "comercial", "CDMX")

        assert updated.role == "comercial"
        assert updated.zona == "CDMX"

    @pytest.mark.asyncio
    async def test_update_missing_profile(self, async_session):
        with pytest.raises(LookupError):
            await UserProfileRepository(async_session).update_role_and_zona("nope", "conductor", None)

    @pytest.mark.asyncio
    async def test_list_by_roles_skips_inactive(self, async_session, comercial, admin, make_profile):
        inactive = await make_profile("viejo@example.com", role="comercial", zona="CDMX")
        repo = UserProfileRepository(async_session)
        await repo.set_active(inactive.id, False)

        ids = {p.id for p in await repo.list_by_roles(["comercial", "administrador"])}

        assert ids == {comercial.id, admin.id}

    @pytest.mark.asyncio
    async def test_notifications_preference(self, async_session, comercial):
        repo = UserProfileRepository(async_session)

        await repo.set_notifications_enabled(comercial, False)

        assert comercial.get_metadata()["notifications_enabled"] is False
        assert comercial.notifications_enabled(default=True) is False


class TestStoreRepository:

    @pytest.mark.asyncio
    async def test_upsert_updates_existing_code(self, async_session, store):
        repo = StoreRepository(async_session)

        updated = await repo.upsert(
            codigo_tienda="50CUE",
            nombre="OXXO Cuernavaca Norte",
            zona="Cuernavaca",
            direccion="Plaza Norte",
        )

        assert updated.id == store.id
        assert updated.nombre == "OXXO Cuernavaca Norte"
        assert (await repo.get_by_codigo("50CUE")).direccion == "Plaza Norte"


class TestReporteRepository:

    @pytest.mark.asyncio
    async def test_create_copies_store_fields(self, async_session, conductor, store):
        reporte = await ReporteRepository(async_session).create_reporte(conductor, store)

        assert reporte.status == "draft"
        assert reporte.store_codigo == "50CUE"
        assert reporte.store_zona == "Cuernavaca"
        assert reporte.conductor_nombre == "Juan Chofer"
        assert reporte.get_evidence() == {}

    @pytest.mark.asyncio
    async def test_typed_conductor_name_wins(self, async_session, conductor, store):
        reporte = await ReporteRepository(async_session).create_reporte(
            conductor, store, conductor_nombre="  Pedro  "
        )

        assert reporte.conductor_nombre == "Pedro"

    @pytest.mark.asyncio
    async def test_second_active_reporte_rejected(self, async_session, conductor, store, draft_reporte):
        with pytest.raises(ActiveReporteExistsError) as exc_info:
            await ReporteRepository(async_session).create_reporte(conductor, store)

        assert exc_info.value.reporte_id == draft_reporte.id

    @pytest.mark.asyncio
    async def test_closed_reporte_allows_new_one(self, async_session, conductor, store, draft_reporte):
        draft_reporte.status = STATUS_COMPLETED
        await async_session.flush()

        reporte = await ReporteRepository(async_session).create_reporte(conductor, store)

        assert reporte.id != draft_reporte.id

    @pytest.mark.asyncio
    async def test_list_open_by_zona(self, async_session, draft_reporte):
        repo = ReporteRepository(async_session)

        assert [r.id for r in await repo.list_open_by_zona("Cuernavaca")] == [draft_reporte.id]
        assert list(await repo.list_open_by_zona("CDMX")) == []

    @pytest.mark.asyncio
    async def test_list_closed(self, async_session, draft_reporte):
        repo = ReporteRepository(async_session)
        assert list(await repo.list_closed()) == []

        draft_reporte.status = STATUS_TIMED_OUT
        await async_session.flush()

        assert [r.id for r in await repo.list_closed()] == [draft_reporte.id]

    @pytest.mark.asyncio
    async def test_list_overdue(self, async_session, draft_reporte):
        now = utc_now()
        draft_reporte.status = STATUS_SUBMITTED
        draft_reporte.timeout_at = (now - timedelta(minutes=1)).isoformat(timespec="microseconds")
        await async_session.flush()
        repo = ReporteRepository(async_session)

        assert [r.id for r in await repo.list_overdue(now.isoformat(timespec="microseconds"))] == [
            draft_reporte.id
        ]

        draft_reporte.timeout_at = (now + timedelta(minutes=5)).isoformat(timespec="microseconds")
        await async_session.flush()
        assert list(await repo.list_overdue(now.isoformat(timespec="microseconds"))) == []

    @pytest.mark.asyncio
    async def test_archive_ticket(self, async_session, draft_reporte):
        repo = ReporteRepository(async_session)

        await repo.archive_ticket(draft_reporte, "recibido", {"total": 71.0}, "http://test/t.jpg")

        tickets = await repo.list_processed_tickets(draft_reporte.id)
        assert len(tickets) == 1
        assert tickets[0].get_data() == {"total": 71.0}
        assert tickets[0].user_id == draft_reporte.user_id

    @pytest.mark.asyncio
    async def test_delete_removes_messages(self, async_session, draft_reporte):
        messages = MessageRepository(async_session)
        await messages.create_message(draft_reporte.id, SENDER_USER, text="hola")

        await ReporteRepository(async_session).delete(draft_reporte)

        assert await ReporteRepository(async_session).get_by_id(draft_reporte.id) is None
        assert list(await messages.list_for_reporte(draft_reporte.id)) == []

    @pytest.mark.asyncio
    async def test_unique_index_catches_missed_active_reporte(
        self, async_session, conductor, store, draft_reporte, monkeypatch
    ):
        # Arrange: the first lookup misses the existing draft, as a
        # concurrent request would
        repo = ReporteRepository(async_session)
        real_lookup = repo.get_active_for_user
        lookups = []

        async def stale_then_real(user_id):
            lookups.append(user_id)
            if len(lookups) == 1:
                return None
            return await real_lookup(user_id)

        monkeypatch.setattr(repo, "get_active_for_user", stale_then_real)

        # Act
        with pytest.raises(ActiveReporteExistsError) as exc_info:
            await repo.create_reporte(conductor, store)

        # Assert
        assert exc_info.value.reporte_id == draft_reporte.id
        assert len(lookups) == 2
        rows = await async_session.execute(
            select(func.count()).select_from(Reporte).where(Reporte.user_id == conductor.id)
        )
        assert rows.scalar_one() == 1


class TestConcurrentReporteCreation:
    """Two sessions on a file database racing to open a reporte."""

    @pytest.fixture
    async def session_maker(self, tmp_path):
        from reportes import models  # noqa: F401 - registers the tables

        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reportes.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        await engine.dispose()

    @pytest.mark.asyncio
    async def test_only_one_active_reporte_survives(self, session_maker):
        # Arrange
        async with session_maker() as session:
            conductor = await UserProfileRepository(session).create_profile(
                email="chofer@example.com", hashed_password="x", role="conductor"
            )
            store = await StoreRepository(session).upsert(
                codigo_tienda="50CUE", nombre="OXXO Cuernavaca Centro", zona="Cuernavaca"
            )
            await session.commit()

        async def create():
            async with session_maker() as session:
                try:
                    reporte = await ReporteRepository(session).create_reporte(conductor, store)
                    await session.commit()
                    return reporte.id
                except ActiveReporteExistsError as e:
                    await session.rollback()
                    return e

        # Act
        results = await asyncio.gather(create(), create())

        # Assert
        created = [r for r in results if isinstance(r, str)]
        rejected = [r for r in results if isinstance(r, ActiveReporteExistsError)]
        assert len(created) == 1
        assert len(rejected) == 1

        async with session_maker() as session:
            rows = await session.execute(
                select(Reporte.id).where(Reporte.user_id == conductor.id)
            )
            assert list(rows.scalars()) == created


class TestMessageRepository:

    @pytest.mark.asyncio
    async def test_messages_in_insertion_order(self, async_session, draft_reporte):
        repo = MessageRepository(async_session)
        for i in range(3):
            await repo.create_message(draft_reporte.id, SENDER_USER, text=f"m{i}")

        assert [m.text for m in await repo.list_for_reporte(draft_reporte.id)] == ["m0", "m1", "m2"]

    @pytest.mark.asyncio
    async def test_recent_history_keeps_latest_oldest_first(self, async_session, draft_reporte):
        repo = MessageRepository(async_session)
        for i in range(7):
            await repo.create_message(draft_reporte.id, SENDER_AGENT, text=f"m{i}")

        history = await repo.recent_history(draft_reporte.id, limit=5)

        assert [m.text for m in history] == ["m2", "m3", "m4", "m5", "m6"]

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, async_session, draft_reporte):
        with pytest.raises(ValueError, match="texto o imagen"):
            await MessageRepository(async_session).create_message(draft_reporte.id, SENDER_USER, text="   ")

    @pytest.mark.asyncio
    async def test_unknown_sender_rejected(self, async_session, draft_reporte):
        with pytest.raises(ValueError, match="Remitente"):
            await MessageRepository(async_session).create_message(draft_reporte.id, "bot", text="hola")

    @pytest.mark.asyncio
    async def test_image_only_message(self, async_session, draft_reporte):
        message = await MessageRepository(async_session).create_message(
            draft_reporte.id, SENDER_USER, image_url="http://test/media/reportes/x.jpg"
        )

        assert message.text is None
        assert message.ai_resolution_detected is False


class TestPushSubscriptionRepository:

    @pytest.mark.asyncio
    async def test_upsert_refreshes_keys(self, async_session, comercial):
        repo = PushSubscriptionRepository(async_session)

        first = await repo.upsert(comercial.id, "https://push.example/1", "p256", "auth")
        second = await repo.upsert(comercial.id, "https://push.example/1", "p256-new", "auth-new")

        assert first.id == second.id
        assert second.p256dh == "p256-new"
        assert second.subscription_info()["keys"]["auth"] == "auth-new"

    @pytest.mark.asyncio
    async def test_same_endpoint_per_user(self, async_session, comercial, admin):
        repo = PushSubscriptionRepository(async_session)

        first = await repo.upsert(comercial.id, "https://push.example/1", "p256", "auth")
        second = await repo.upsert(admin.id, "https://push.example/1", "p256", "auth")

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_list_and_delete(self, async_session, comercial):
        repo = PushSubscriptionRepository(async_session)
        subscription = await repo.upsert(comercial.id, "https://push.example/1", "p256", "auth")

        assert [s.id for s in await repo.list_for_users([comercial.id])] == [subscription.id]

        await repo.delete_by_id(subscription.id)
        assert list(await repo.list_for_users([comercial.id])) == []
