"""
Integration tests for the conductor capture flow.

Covers resuming a draft, evidence uploads, tickets, escalation to the
chat and the lifecycle actions a driver can take.
"""

import pytest

from reportes.core.config import settings
from reportes.repositories.push_subscription import PushSubscriptionRepository
from reportes.repositories.reporte import ReporteRepository

JPEG = b"\xff\xd8\xff\xe0fake-jpeg-bytes"


def base(reporte) -> str:
    return f"/api/v1/conductor/reportes/{reporte.id}"


async def subscribe(async_session, profile, endpoint="https://push.example/comercial"):
    await PushSubscriptionRepository(async_session).upsert(profile.id, endpoint, "p256dh", "auth")
    await async_session.commit()


@pytest.mark.asyncio
class TestConductorHome:

    async def test_home_returns_latest_draft(self, client, conductor, auth_headers, draft_reporte):
        response = await client.get("/api/v1/conductor", headers=auth_headers(conductor))

        assert response.status_code == 200
        data = response.json()
        assert data["display_name"] == "Juan Chofer"
        assert data["draft"]["id"] == draft_reporte.id

    async def test_home_without_draft(self, client, conductor, auth_headers):
        response = await client.get("/api/v1/conductor", headers=auth_headers(conductor))

        assert response.json()["draft"] is None

    async def test_active_includes_submitted(self, client, async_session, conductor, auth_headers, draft_reporte):
        draft_reporte.status = "submitted"
        await async_session.commit()

        response = await client.get("/api/v1/conductor/active", headers=auth_headers(conductor))

        assert response.json()["reporte"]["id"] == draft_reporte.id


@pytest.mark.asyncio
class TestFlow:

    async def test_default_step_for_type(self, client, conductor, auth_headers, draft_reporte):
        response = await client.get(f"{base(draft_reporte)}/flujo", headers=auth_headers(conductor))

        assert response.status_code == 200
        data = response.json()
        assert data["step"] == "4a"
        assert data["next_step"] == "4a"
        assert data["redirect_to"] is None

    async def test_saved_step_is_resumed(self, client, conductor, auth_headers, draft_reporte):
        saved = await client.put(
            f"{base(draft_reporte)}/step", json={"step": "5"}, headers=auth_headers(conductor)
        )
        assert saved.json()["current_step"] == "5"

        response = await client.get(f"{base(draft_reporte)}/flujo", headers=auth_headers(conductor))

        assert response.json()["step"] == "5"

    async def test_requested_step_wins(self, client, conductor, auth_headers, draft_reporte):
        response = await client.get(
            f"{base(draft_reporte)}/flujo?step=6", headers=auth_headers(conductor)
        )

        assert response.json()["step"] == "6"

    async def test_chat_step_is_not_saved(self, client, conductor, auth_headers, draft_reporte):
        response = await client.put(
            f"{base(draft_reporte)}/step", json={"step": "chat"}, headers=auth_headers(conductor)
        )

        assert response.status_code == 200
        assert response.json()["current_step"] is None

    async def test_submitted_chat_reporte_redirects_to_chat(self, client, conductor, auth_headers, draft_reporte):
        await client.post(f"{base(draft_reporte)}/chat/start", headers=auth_headers(conductor))

        response = await client.get(f"{base(draft_reporte)}/flujo", headers=auth_headers(conductor))

        data = response.json()
        assert data["redirect_to"] == "chat"
        assert data["step"] is None

    async def test_foreign_reporte_returns_404(self, client, make_profile, auth_headers, draft_reporte):
        other = await make_profile("otro@example.com")

        response = await client.get(f"{base(draft_reporte)}/flujo", headers=auth_headers(other))

        assert response.status_code == 404


@pytest.mark.asyncio
class TestCancel:

    async def test_delete_draft(self, client, async_session, conductor, auth_headers, draft_reporte):
        reporte_id = draft_reporte.id

        response = await client.delete(base(draft_reporte), headers=auth_headers(conductor))

        assert response.status_code == 204
        assert await ReporteRepository(async_session).get_by_id(reporte_id) is None

    async def test_submitted_cannot_be_deleted(self, client, async_session, conductor, auth_headers, draft_reporte):
        draft_reporte.status = "submitted"
        await async_session.commit()

        response = await client.delete(base(draft_reporte), headers=auth_headers(conductor))

        assert response.status_code == 409


@pytest.mark.asyncio
class TestEvidence:

    async def test_upload_records_url(self, client, conductor, auth_headers, draft_reporte, storage):
        response = await client.post(
            f"{base(draft_reporte)}/evidence/arrival_exhibit",
            files={"file": ("exhibidor.jpg", JPEG, "image/jpeg")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["url"].startswith(f"http://test/media/evidence/{draft_reporte.id}/arrival_exhibit_")
        assert data["url"].endswith(".jpg")
        assert data["evidence"] == {"arrival_exhibit": data["url"]}

        relative = data["url"].split("/media/evidence/", 1)[1]
        assert (storage.root / "evidence" / relative).read_bytes() == JPEG

    async def test_invalid_key_returns_400(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(
            f"{base(draft_reporte)}/evidence/Bad-Key",
            files={"file": ("a.jpg", JPEG, "image/jpeg")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 400

    async def test_empty_file_returns_400(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(
            f"{base(draft_reporte)}/evidence/facade",
            files={"file": ("a.jpg", b"", "image/jpeg")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 400

    async def test_non_image_returns_400(self, client, conductor, auth_headers, draft_reporte, storage):
        response = await client.post(
            f"{base(draft_reporte)}/evidence/facade",
            files={"file": ("pagina.html", b"<script>alert(1)</script>", "text/html")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "El archivo debe ser una imagen"
        assert not (storage.root / "evidence").exists()

    async def test_too_large_returns_413(self, client, conductor, auth_headers, draft_reporte, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 8)

        response = await client.post(
            f"{base(draft_reporte)}/evidence/facade",
            files={"file": ("a.jpg", JPEG, "image/jpeg")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 413

    async def test_closed_reporte_returns_409(self, client, async_session, conductor, auth_headers, draft_reporte):
        draft_reporte.status = "completed"
        await async_session.commit()

        response = await client.post(
            f"{base(draft_reporte)}/evidence/facade",
            files={"file": ("a.jpg", JPEG, "image/jpeg")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 409


@pytest.mark.asyncio
class TestIncidents:

    async def test_incidents_escalate_and_notify(
        self, client, async_session, conductor, comercial, auth_headers, draft_reporte, push_sender
    ):
        await subscribe(async_session, comercial)

        response = await client.post(
            f"{base(draft_reporte)}/incidents",
            json={"items": [{"tipo": "producto_danado", "cantidad": 2}]},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reporte"]["status"] == "submitted"
        assert data["reporte"]["incident_details"] == [{"tipo": "producto_danado", "cantidad": 2}]
        assert data["reporte"]["timeout_at"] is not None
        assert data["notification"]["sent"] == 1
        assert push_sender.sent[0]["payload"]["data"]["reportId"] == draft_reporte.id

    async def test_empty_items_returns_422(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(
            f"{base(draft_reporte)}/incidents", json={"items": []}, headers=auth_headers(conductor)
        )

        assert response.status_code == 422

    async def test_submitted_reporte_only_updates_incidents(
        self, client, async_session, conductor, auth_headers, draft_reporte
    ):
        draft_reporte.status = "submitted"
        await async_session.commit()

        response = await client.post(
            f"{base(draft_reporte)}/incidents",
            json={"items": [{"tipo": "faltante"}]},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 200
        assert response.json()["notification"] is None


@pytest.mark.asyncio
class TestTickets:

    async def test_no_ticket_reason_allows_submit(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(
            f"{base(draft_reporte)}/no-ticket",
            data={"reason": "  La tienda no imprimió ticket "},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 200
        assert response.json()["metadata"]["no_ticket_reason"] == "La tienda no imprimió ticket"

        submitted = await client.post(f"{base(draft_reporte)}/submit", headers=auth_headers(conductor))
        assert submitted.status_code == 200
        assert submitted.json()["reporte"]["status"] == "submitted"

    async def test_no_ticket_with_photo(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(
            f"{base(draft_reporte)}/no-ticket",
            data={"reason": "Impresora descompuesta"},
            files={"file": ("impresora.png", b"png-bytes", "image/png")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 200
        assert response.json()["evidence"]["no_ticket"].endswith(".png")

    async def test_no_ticket_rejects_non_image_photo(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(
            f"{base(draft_reporte)}/no-ticket",
            data={"reason": "Impresora descompuesta"},
            files={"file": ("nota.txt", b"texto", "text/plain")},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 400

    async def test_confirm_recibido_ticket(self, client, async_session, conductor, auth_headers, draft_reporte):
        draft_reporte.set_evidence({"ticket": "http://test/media/evidence/r/ticket_1.jpg"})
        await async_session.commit()

        response = await client.put(
            f"{base(draft_reporte)}/tickets/recibido",
            json={"data": {"total": 71.0, "orden_compra": "4500123456"}},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ticket_data"] == {"total": 71.0, "orden_compra": "4500123456"}
        assert data["ticket_image_url"] == "http://test/media/evidence/r/ticket_1.jpg"
        assert data["ticket_extraction_confirmed"] is True

        archived = await ReporteRepository(async_session).list_processed_tickets(draft_reporte.id)
        assert [t.tipo for t in archived] == ["recibido"]

    async def test_confirm_devolucion_ticket(self, client, conductor, auth_headers, draft_reporte):
        response = await client.put(
            f"{base(draft_reporte)}/tickets/devolucion",
            json={"data": {"total": 10.0}, "image_url": "http://test/media/evidence/r/ret.jpg"},
            headers=auth_headers(conductor),
        )

        data = response.json()
        assert data["return_ticket_data"] == {"total": 10.0}
        assert data["return_ticket_image_url"] == "http://test/media/evidence/r/ret.jpg"
        assert data["return_ticket_extraction_confirmed"] is True
        assert data["ticket_extraction_confirmed"] is False

    async def test_merma_goes_to_metadata(self, client, async_session, conductor, auth_headers, draft_reporte):
        response = await client.put(
            f"{base(draft_reporte)}/tickets/merma",
            json={"data": {"peso": 1.5}},
            headers=auth_headers(conductor),
        )

        assert response.json()["metadata"]["ticket_merma_data"] == {"peso": 1.5}
        assert list(await ReporteRepository(async_session).list_processed_tickets(draft_reporte.id)) == []

    async def test_unknown_kind_returns_422(self, client, conductor, auth_headers, draft_reporte):
        response = await client.put(
            f"{base(draft_reporte)}/tickets/factura",
            json={"data": {}},
            headers=auth_headers(conductor),
        )

        assert response.status_code == 422


@pytest.mark.asyncio
class TestLifecycle:

    async def test_entrega_without_ticket_cannot_submit(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(f"{base(draft_reporte)}/submit", headers=auth_headers(conductor))

        assert response.status_code == 409

    async def test_other_types_submit_without_ticket(
        self, client, async_session, conductor, auth_headers, draft_reporte
    ):
        draft_reporte.tipo_reporte = "tienda_cerrada"
        await async_session.commit()

        response = await client.post(f"{base(draft_reporte)}/submit", headers=auth_headers(conductor))

        assert response.status_code == 200
        data = response.json()["reporte"]
        assert data["submitted_at"] is not None
        assert data["timeout_at"] > data["submitted_at"]

    async def test_chat_start_escalates_once(
        self, client, async_session, conductor, comercial, auth_headers, draft_reporte, push_sender
    ):
        await subscribe(async_session, comercial)
        draft_reporte.current_step = "5"
        await async_session.commit()

        first = await client.post(
            f"{base(draft_reporte)}/chat/start", json={"step": "6"}, headers=auth_headers(conductor)
        )

        assert first.status_code == 200
        data = first.json()
        assert data["reporte"]["status"] == "submitted"
        assert data["reporte"]["current_step"] == "chat"
        assert data["reporte"]["metadata"]["last_step_before_chat"] == "6"
        assert data["notification"]["sent"] == 1
        assert data["notification"]["timeRemaining"]

        second = await client.post(f"{base(draft_reporte)}/chat/start", headers=auth_headers(conductor))

        assert second.status_code == 200
        assert second.json()["notification"] is None
        assert len(push_sender.sent) == 1

    async def test_chat_start_defaults_to_saved_step(self, client, async_session, conductor, auth_headers, draft_reporte):
        draft_reporte.current_step = "5"
        await async_session.commit()

        response = await client.post(f"{base(draft_reporte)}/chat/start", headers=auth_headers(conductor))

        assert response.json()["reporte"]["metadata"]["last_step_before_chat"] == "5"

    async def test_resolve_after_chat(self, client, conductor, auth_headers, draft_reporte):
        await client.post(f"{base(draft_reporte)}/chat/start", headers=auth_headers(conductor))

        response = await client.post(f"{base(draft_reporte)}/resolve", headers=auth_headers(conductor))

        assert response.status_code == 200
        data = response.json()["reporte"]
        assert data["status"] == "resolved_by_driver"
        assert data["resolved_at"] is not None

    async def test_resolve_draft_returns_409(self, client, conductor, auth_headers, draft_reporte):
        response = await client.post(f"{base(draft_reporte)}/resolve", headers=auth_headers(conductor))

        assert response.status_code == 409

    async def test_chat_start_on_closed_reporte_returns_409(
        self, client, async_session, conductor, auth_headers, draft_reporte
    ):
        draft_reporte.status = "resolved_by_driver"
        await async_session.commit()

        response = await client.post(f"{base(draft_reporte)}/chat/start", headers=auth_headers(conductor))

        assert response.status_code == 409
