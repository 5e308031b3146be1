"""
Integration tests for the comercial panel.
"""

import pytest

from reportes.repositories.message import MessageRepository


@pytest.mark.asyncio
class TestZonaList:

    async def test_lists_open_reportes_of_zona(self, client, async_session, comercial, auth_headers, draft_reporte):
        draft_reporte.status = "submitted"
        await async_session.commit()

        response = await client.get("/api/v1/comercial/reportes", headers=auth_headers(comercial))

        assert response.status_code == 200
        data = response.json()
        assert data["zona"] == "Cuernavaca"
        assert [r["id"] for r in data["reportes"]] == [draft_reporte.id]
        assert data["reportes"][0]["status_label"]

    async def test_other_zona_sees_nothing(self, client, make_profile, auth_headers, draft_reporte):
        other = await make_profile("pachuca@example.com", role="comercial", zona="Pachuca")

        response = await client.get("/api/v1/comercial/reportes", headers=auth_headers(other))

        assert response.json()["reportes"] == []

    async def test_without_zona_gets_message(self, client, async_session, comercial, auth_headers):
        comercial.zona = None
        await async_session.commit()

        response = await client.get("/api/v1/comercial/reportes", headers=auth_headers(comercial))

        assert response.status_code == 200
        data = response.json()
        assert data["reportes"] == []
        assert data["message"] == "No tienes una zona asignada. Contacta a un administrador."

    @pytest.mark.parametrize("role", ["conductor", "administrador"])
    async def test_other_roles_forbidden(self, client, make_profile, auth_headers, role):
        profile = await make_profile(f"{role}@example.org", role=role)

        response = await client.get("/api/v1/comercial/reportes", headers=auth_headers(profile))

        assert response.status_code == 403
        assert response.json()["detail"] == "No tienes permiso para acceder a esta sección"


@pytest.mark.asyncio
class TestTimeline:

    async def test_timeline_includes_messages(self, client, async_session, comercial, auth_headers, draft_reporte):
        draft_reporte.set_evidence({"arrival_exhibit": "http://test/media/evidence/a.jpg"})
        await MessageRepository(async_session).create_message(
            reporte_id=draft_reporte.id, sender="user", text="Ayuda"
        )
        await async_session.commit()

        response = await client.get(
            f"/api/v1/comercial/reportes/{draft_reporte.id}", headers=auth_headers(comercial)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reporte"]["id"] == draft_reporte.id
        assert data["evidence"] == {"arrival_exhibit": "http://test/media/evidence/a.jpg"}
        assert [m["text"] for m in data["messages"]] == ["Ayuda"]

    async def test_timeline_outside_zona_returns_404(self, client, make_profile, auth_headers, draft_reporte):
        other = await make_profile("pachuca@example.com", role="comercial", zona="Pachuca")

        response = await client.get(
            f"/api/v1/comercial/reportes/{draft_reporte.id}", headers=auth_headers(other)
        )

        assert response.status_code == 404


@pytest.mark.asyncio
class TestClose:

    @pytest.mark.parametrize("status", ["submitted", "resolved_by_driver"])
    async def test_close_completes(self, client, async_session, comercial, auth_headers, draft_reporte, status):
        draft_reporte.status = status
        await async_session.commit()

        response = await client.post(
            f"/api/v1/comercial/reportes/{draft_reporte.id}/close", headers=auth_headers(comercial)
        )

        assert response.status_code == 200
        assert response.json()["reporte"]["status"] == "completed"

    @pytest.mark.parametrize("status", ["draft", "timed_out", "completed"])
    async def test_close_from_other_status_returns_409(
        self, client, async_session, comercial, auth_headers, draft_reporte, status
    ):
        draft_reporte.status = status
        await async_session.commit()

        response = await client.post(
            f"/api/v1/comercial/reportes/{draft_reporte.id}/close", headers=auth_headers(comercial)
        )

        assert response.status_code == 409

    async def test_admin_can_close(self, client, async_session, admin, auth_headers, draft_reporte):
        draft_reporte.status = "submitted"
        await async_session.commit()

        response = await client.post(
            f"/api/v1/comercial/reportes/{draft_reporte.id}/close", headers=auth_headers(admin)
        )

        assert response.status_code == 200

    async def test_conductor_cannot_close(self, client, async_session, conductor, auth_headers, draft_reporte):
        draft_reporte.status = "submitted"
        await async_session.commit()

        response = await client.post(
            f"/api/v1/comercial/reportes/{draft_reporte.id}/close", headers=auth_headers(conductor)
        )

        assert response.status_code == 403
