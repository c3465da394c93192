"""
RepairDesk Backend - API Endpoint Tests
=========================================

What:  End-to-end tests through the FastAPI app: envelopes, status codes,
       authentication and the main workflows.
How:   HTTPX AsyncClient with ASGITransport against the temporary database.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from repairdesk.models.notification import Notification
from repairdesk.services.auth_service import ROLE_TECHNICIAN, create_access_token


def _submission_data():
    return {
        "personalInfo": {"fullName": "Jean Pierre Dupont", "email": "a@b.com", "phone": "0600000000"},
        "professionalInfo": {"specialization": "Réparation Matérielle", "yearsOfExperience": 3},
        "additionalInfo": {"skills": "Soudure, Diagnostic"},
    }


async def _submit_json(client, application_fields):
    response = await client.post("/api/technician-applications/json", json=application_fields)
    assert response.status_code == 201
    return response.json()["data"]


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["push"] == "disabled"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_admin_route_without_token(self, test_client):
        response = await test_client.get("/api/technician-applications")
        body = response.json()

        assert response.status_code == 401
        assert body["success"] is False
        assert body["error"] == "authentication_error"
        assert "request_id" in body

    @pytest.mark.asyncio
    async def test_admin_route_with_invalid_token(self, test_client):
        response = await test_client.get(
            "/api/admin/technicians", headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_route_with_technician_token(self, test_client):
        token = create_access_token(3, ROLE_TECHNICIAN, "t@b.com")
        response = await test_client.get(
            "/api/admin/technicians", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_admin_login(self, test_client, db_session):
        from repairdesk.services.auth_service import auth_service
        await auth_service.seed_default_admin(db_session)

        response = await test_client.post(
            "/api/auth/admin/login", json={"email": "admin@it13.com", "password": "admin123"}
        )
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["role"] == "admin"
        assert body["data"]["access_token"]

    @pytest.mark.asyncio
    async def test_admin_login_bad_password(self, test_client, db_session):
        from repairdesk.services.auth_service import auth_service
        await auth_service.seed_default_admin(db_session)

        response = await test_client.post(
            "/api/auth/admin/login", json={"email": "admin@it13.com", "password": "wrong"}
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestApplicationEndpoints:

    @pytest.mark.asyncio
    async def test_multipart_submission_and_document_download(self, test_client, admin_headers):
        response = await test_client.post(
            "/api/technician-applications",
            data={"data": json.dumps(_submission_data())},
            files={
                "cv": ("cv.pdf", b"%PDF-1.4 curriculum", "application/pdf"),
                "diploma_0": ("bts.jpg", b"\xff\xd8\xff\xe0", "image/jpeg"),
            },
        )
        body = response.json()

        assert response.status_code == 201
        assert body["success"] is True
        application = body["data"]
        assert application["status"] == "pending"
        assert application["personal_info"]["email"] == "a@b.com"
        assert application["additional_info"]["skills"] == ["Soudure", "Diagnostic"]
        cv_url = application["documents"]["cv"]["url"]
        assert cv_url.startswith("/api/documents/applications/")
        assert len(application["documents"]["diplomas"]) == 1

        anonymous = await test_client.get(cv_url)
        assert anonymous.status_code == 401

        download = await test_client.get(cv_url, headers=admin_headers)
        assert download.status_code == 200
        assert download.content == b"%PDF-1.4 curriculum"

    @pytest.mark.asyncio
    async def test_multipart_submission_without_cv(self, test_client):
        response = await test_client.post(
            "/api/technician-applications",
            data={"data": json.dumps(_submission_data())},
            files={"diploma_0": ("bts.jpg", b"\xff\xd8\xff\xe0", "image/jpeg")},
        )
        body = response.json()

        assert response.status_code == 400
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "cv"

    @pytest.mark.asyncio
    async def test_multipart_submission_with_bad_json(self, test_client):
        response = await test_client.post(
            "/api/technician-applications",
            data={"data": "{not json"},
            files={"cv": ("cv.pdf", b"%PDF", "application/pdf")},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_json_submission_missing_group(self, test_client, application_fields):
        del application_fields["professionalInfo"]

        response = await test_client.post("/api/technician-applications/json", json=application_fields)

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_list_and_get(self, test_client, admin_headers, application_fields):
        created = await _submit_json(test_client, application_fields)

        listed = await test_client.get("/api/technician-applications", headers=admin_headers)
        fetched = await test_client.get(
            f"/api/technician-applications/{created['id']}", headers=admin_headers
        )
        missing = await test_client.get("/api/technician-applications/999", headers=admin_headers)

        assert [a["id"] for a in listed.json()["data"]] == [created["id"]]
        assert fetched.json()["data"]["personal_info"]["full_name"] == "Jean Pierre Dupont"
        assert missing.status_code == 404
        assert missing.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_approve_then_reapprove_conflicts(self, test_client, admin_headers, application_fields):
        created = await _submit_json(test_client, application_fields)
        url = f"/api/technician-applications/{created['id']}/approve"

        approved = await test_client.post(url, json={"notes": "OK"}, headers=admin_headers)
        body = approved.json()

        assert approved.status_code == 200
        assert body["success"] is True
        assert body["data"]["application"]["status"] == "approved"
        assert body["data"]["application"]["technician_id"] == body["data"]["technician"]["id"]
        assert body["data"]["technician"]["email"] == "a@b.com"
        assert len(body["data"]["initial_password"]) == 12

        again = await test_client.post(url, json={"notes": "again"}, headers=admin_headers)
        assert again.status_code == 409
        assert again.json()["error"] == "invalid_state_transition"
        assert again.json()["details"]["current_status"] == "approved"

        # The new technician can log in with the initial password
        login = await test_client.post(
            "/api/auth/technician/login",
            json={"email": "a@b.com", "password": body["data"]["initial_password"]},
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_approve_without_body(self, test_client, admin_headers, application_fields):
        created = await _submit_json(test_client, application_fields)

        response = await test_client.post(
            f"/api/technician-applications/{created['id']}/approve", headers=admin_headers
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_approve_duplicate_email(self, test_client, admin_headers, application_fields):
        await test_client.post(
            "/api/admin/technicians",
            json={"name": "Déjà", "surname": "Là", "email": "a@b.com", "password": "secret123"},
            headers=admin_headers,
        )
        created = await _submit_json(test_client, application_fields)

        response = await test_client.post(
            f"/api/technician-applications/{created['id']}/approve", headers=admin_headers
        )
        fetched = await test_client.get(
            f"/api/technician-applications/{created['id']}", headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_email"
        assert fetched.json()["data"]["status"] == "pending"
        assert fetched.json()["data"]["technician_id"] is None

    @pytest.mark.asyncio
    async def test_reject_requires_notes(self, test_client, admin_headers, application_fields):
        created = await _submit_json(test_client, application_fields)
        url = f"/api/technician-applications/{created['id']}/reject"

        empty = await test_client.post(url, json={"notes": ""}, headers=admin_headers)
        rejected = await test_client.post(url, json={"notes": "Dossier incomplet"}, headers=admin_headers)

        assert empty.status_code == 400
        assert rejected.status_code == 200
        assert rejected.json()["data"]["status"] == "rejected"
        assert rejected.json()["data"]["admin_notes"] == "Dossier incomplet"

    @pytest.mark.asyncio
    async def test_generic_status_update(self, test_client, admin_headers, application_fields):
        created = await _submit_json(test_client, application_fields)
        url = f"/api/technician-applications/{created['id']}/status"

        reviewing = await test_client.patch(url, json={"status": "reviewing"}, headers=admin_headers)
        back = await test_client.patch(url, json={"status": "pending"}, headers=admin_headers)
        unknown = await test_client.patch(url, json={"status": "archived"}, headers=admin_headers)

        assert reviewing.status_code == 200
        assert reviewing.json()["data"]["status"] == "reviewing"
        assert back.status_code == 409
        assert unknown.status_code == 400


class TestTechnicianEndpoints:

    @pytest.mark.asyncio
    async def test_crud(self, test_client, admin_headers):
        created = await test_client.post(
            "/api/admin/technicians",
            json={"name": "Awa", "surname": "Diop", "email": "awa@b.com", "password": "secret123"},
            headers=admin_headers,
        )
        technician_id = created.json()["data"]["id"]

        listed = await test_client.get("/api/admin/technicians?search=awa", headers=admin_headers)
        updated = await test_client.put(
            f"/api/admin/technicians/{technician_id}",
            json={"specialization": "Réseaux"},
            headers=admin_headers,
        )
        deleted = await test_client.delete(f"/api/admin/technicians/{technician_id}", headers=admin_headers)
        gone = await test_client.get(f"/api/admin/technicians/{technician_id}", headers=admin_headers)

        assert created.status_code == 201
        assert listed.json()["data"]["total"] == 1
        assert listed.headers["X-Total-Count"] == "1"
        assert updated.json()["data"]["specialization"] == "Réseaux"
        assert deleted.json() == {"success": True, "data": None, "message": "Technician deleted"}
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_create_invalid_body(self, test_client, admin_headers):
        response = await test_client.post(
            "/api/admin/technicians", json={"name": "Awa"}, headers=admin_headers
        )
        body = response.json()

        assert response.status_code == 400
        assert body["error"] == "validation_error"
        assert body["details"]["errors"]

    @pytest.mark.asyncio
    async def test_create_duplicate(self, test_client, admin_headers):
        payload = {"name": "Awa", "surname": "Diop", "email": "awa@b.com", "password": "secret123"}
        await test_client.post("/api/admin/technicians", json=payload, headers=admin_headers)
        response = await test_client.post("/api/admin/technicians", json=payload, headers=admin_headers)

        assert response.status_code == 409


class TestNotificationEndpoints:

    @pytest.mark.asyncio
    async def test_inbox_flow(self, test_client, admin_headers, application_fields):
        # A submission records a broadcast admin notification
        await _submit_json(test_client, application_fields)

        count = await test_client.get("/api/notifications/unread-count", headers=admin_headers)
        listed = await test_client.get("/api/notifications", headers=admin_headers)
        notification_id = listed.json()["data"][0]["id"]
        read = await test_client.patch(f"/api/notifications/{notification_id}/read", headers=admin_headers)
        after = await test_client.get("/api/notifications/unread-count", headers=admin_headers)

        assert count.json()["data"]["count"] == 1
        assert listed.json()["data"][0]["type"] == "new_technician_application"
        assert read.json()["data"]["is_read"] is True
        assert after.json()["data"]["count"] == 0

    @pytest.mark.asyncio
    async def test_mark_all_read_matches_unread_count(self, test_client, admin_headers, application_fields):
        await _submit_json(test_client, application_fields)
        application_fields["personalInfo"]["email"] = "second@b.com"
        await _submit_json(test_client, application_fields)

        count = await test_client.get("/api/notifications/unread-count", headers=admin_headers)
        marked = await test_client.patch("/api/notifications/mark-all-read", headers=admin_headers)

        assert marked.json()["data"]["updated"] == count.json()["data"]["count"] == 2

    @pytest.mark.asyncio
    async def test_mark_read_missing(self, test_client, admin_headers):
        response = await test_client.patch("/api/notifications/9999/read", headers=admin_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cleanup_old_notifications(self, test_client, admin_headers, db_session):
        now = datetime.now(timezone.utc)
        for age in (45, 1):
            db_session.add(
                Notification(
                    recipient_type="admin",
                    type="info",
                    title="Titre",
                    message="Message",
                    created_at=now - timedelta(days=age),
                )
            )
        await db_session.commit()
        technician = {"Authorization": f"Bearer {create_access_token(3, ROLE_TECHNICIAN, 't@b.com')}"}

        refused = await test_client.delete("/api/notifications/cleanup", headers=technician)
        purged = await test_client.delete(
            "/api/notifications/cleanup?older_than_days=30", headers=admin_headers
        )
        remaining = await test_client.get("/api/notifications", headers=admin_headers)

        assert refused.status_code == 403
        assert purged.json()["data"]["deleted"] == 1
        assert len(remaining.json()["data"]) == 1


class TestDeviceTokenEndpoints:

    @staticmethod
    def _auth(user_id, role):
        return {"Authorization": f"Bearer {create_access_token(user_id, role, f'{role}{user_id}@b.com')}"}

    @pytest.mark.asyncio
    async def test_applicant_register_and_unregister(self, test_client):
        registered = await test_client.post(
            "/api/device-tokens",
            json={"user_id": "A@B.com", "user_type": "applicant", "token": "fcm-1", "platform": "android"},
        )
        removed = await test_client.request("DELETE", "/api/device-tokens", json={"token": "fcm-1"})
        removed_again = await test_client.request("DELETE", "/api/device-tokens", json={"token": "fcm-1"})

        assert registered.status_code == 201
        assert registered.json()["data"]["user_id"] == "a@b.com"
        assert removed.status_code == 200
        assert removed_again.status_code == 404

    @pytest.mark.asyncio
    async def test_applicant_must_use_an_email(self, test_client):
        response = await test_client.post(
            "/api/device-tokens", json={"user_id": 7, "user_type": "applicant", "token": "fcm-x"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_technician_registers_own_token(self, test_client):
        response = await test_client.post(
            "/api/device-tokens",
            json={"user_id": 1, "user_type": "technician", "token": "fcm-2"},
            headers=self._auth(1, ROLE_TECHNICIAN),
        )
        assert response.status_code == 201
        assert response.json()["data"]["user_id"] == "1"

    @pytest.mark.asyncio
    async def test_anonymous_technician_registration_refused(self, test_client):
        response = await test_client.post(
            "/api/device-tokens", json={"user_id": 1, "user_type": "technician", "token": "fcm-3"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_registering_for_another_user_refused(self, test_client):
        other_technician = await test_client.post(
            "/api/device-tokens",
            json={"user_id": 2, "user_type": "technician", "token": "fcm-4"},
            headers=self._auth(1, ROLE_TECHNICIAN),
        )
        as_admin = await test_client.post(
            "/api/device-tokens",
            json={"user_id": 1, "user_type": "admin", "token": "fcm-5"},
            headers=self._auth(1, ROLE_TECHNICIAN),
        )
        assert other_technician.status_code == 403
        assert as_admin.status_code == 403

    @pytest.mark.asyncio
    async def test_technician_token_removal_needs_owner(self, test_client):
        await test_client.post(
            "/api/device-tokens",
            json={"user_id": 1, "user_type": "technician", "token": "fcm-6"},
            headers=self._auth(1, ROLE_TECHNICIAN),
        )

        anonymous = await test_client.request("DELETE", "/api/device-tokens", json={"token": "fcm-6"})
        stranger = await test_client.request(
            "DELETE", "/api/device-tokens", json={"token": "fcm-6"}, headers=self._auth(2, ROLE_TECHNICIAN)
        )
        owner = await test_client.request(
            "DELETE", "/api/device-tokens", json={"token": "fcm-6"}, headers=self._auth(1, ROLE_TECHNICIAN)
        )

        assert anonymous.status_code == 401
        assert stranger.status_code == 403
        assert owner.status_code == 200

    @pytest.mark.asyncio
    async def test_client_registration_checks_email(self, test_client):
        created = await test_client.post(
            "/api/service-requests",
            json={"name": "Awa", "email": "awa@b.com", "device_type": "PC", "service_type": "Virus"},
        )
        client_id = created.json()["data"]["client_id"]

        wrong = await test_client.post(
            "/api/device-tokens",
            json={"user_id": client_id, "user_type": "client", "token": "fcm-7", "email": "eve@b.com"},
        )
        missing = await test_client.post(
            "/api/device-tokens",
            json={"user_id": client_id, "user_type": "client", "token": "fcm-7"},
        )
        right = await test_client.post(
            "/api/device-tokens",
            json={"user_id": client_id, "user_type": "client", "token": "fcm-7", "email": "AWA@b.com"},
        )

        assert wrong.status_code == 403
        assert missing.status_code == 403
        assert right.status_code == 201


class TestServiceRequestEndpoints:

    @pytest.mark.asyncio
    async def test_submit_and_update(self, test_client, admin_headers):
        created = await test_client.post(
            "/api/service-requests",
            json={
                "name": "Awa Diop",
                "email": "awa@b.com",
                "device_type": "Laptop",
                "service_type": "Écran cassé",
                "description": "Écran fissuré après une chute",
            },
        )
        request_id = created.json()["data"]["id"]

        listed = await test_client.get("/api/service-requests", headers=admin_headers)
        updated = await test_client.patch(
            f"/api/service-requests/{request_id}/status",
            json={"status": "in_progress"},
            headers=admin_headers,
        )
        invalid = await test_client.patch(
            f"/api/service-requests/{request_id}/status",
            json={"status": "teleported"},
            headers=admin_headers,
        )

        assert created.status_code == 201
        assert created.json()["data"]["status"] == "pending"
        assert [r["id"] for r in listed.json()["data"]] == [request_id]
        assert updated.json()["data"]["status"] == "in_progress"
        assert invalid.status_code == 400

    @pytest.mark.asyncio
    async def test_assign_unknown_technician(self, test_client, admin_headers):
        created = await test_client.post(
            "/api/service-requests",
            json={"name": "Awa", "email": "awa@b.com", "device_type": "PC", "service_type": "Virus"},
        )
        response = await test_client.patch(
            f"/api/service-requests/{created.json()['data']['id']}/status",
            json={"status": "assigned", "technician_id": 42},
            headers=admin_headers,
        )
        assert response.status_code == 404

    @staticmethod
    async def _technician(client, admin_headers, email="tech@b.com"):
        created = await client.post(
            "/api/admin/technicians",
            json={"name": "Jean", "surname": "Dupont", "email": email, "password": "secret123"},
            headers=admin_headers,
        )
        technician_id = created.json()["data"]["id"]
        token = create_access_token(technician_id, ROLE_TECHNICIAN, email)
        return technician_id, {"Authorization": f"Bearer {token}"}

    @staticmethod
    async def _request(client):
        created = await client.post(
            "/api/service-requests",
            json={"name": "Awa", "email": "awa@b.com", "device_type": "PC", "service_type": "Virus"},
        )
        return created.json()["data"]["id"]

    @pytest.mark.asyncio
    async def test_assign_endpoint(self, test_client, admin_headers):
        technician_id, _ = await self._technician(test_client, admin_headers)
        request_id = await self._request(test_client)

        assigned = await test_client.post(
            f"/api/admin/technicians/{technician_id}/assign/{request_id}", headers=admin_headers
        )
        missing_request = await test_client.post(
            f"/api/admin/technicians/{technician_id}/assign/999", headers=admin_headers
        )
        missing_technician = await test_client.post(
            f"/api/admin/technicians/999/assign/{request_id}", headers=admin_headers
        )

        assert assigned.status_code == 200
        assert assigned.json()["data"]["technician_id"] == technician_id
        assert assigned.json()["data"]["status"] == "assigned"
        assert missing_request.status_code == 404
        assert missing_technician.status_code == 404

    @pytest.mark.asyncio
    async def test_message_thread(self, test_client, admin_headers):
        technician_id, technician_headers = await self._technician(test_client, admin_headers)
        _, stranger_headers = await self._technician(test_client, admin_headers, email="other@b.com")
        request_id = await self._request(test_client)
        await test_client.post(
            f"/api/admin/technicians/{technician_id}/assign/{request_id}", headers=admin_headers
        )
        url = f"/api/service-requests/{request_id}/messages"

        posted = await test_client.post(url, json={"content": "Pièce commandée"}, headers=technician_headers)
        from_admin = await test_client.post(url, json={"content": "Devis validé"}, headers=admin_headers)
        refused = await test_client.post(url, json={"content": "Salut"}, headers=stranger_headers)
        empty = await test_client.post(url, json={"content": "   "}, headers=technician_headers)
        anonymous = await test_client.get(url)
        listed = await test_client.get(url, headers=technician_headers)

        assert posted.status_code == 201
        assert posted.json()["data"]["sender_type"] == "technician"
        assert posted.json()["data"]["sender_id"] == technician_id
        assert from_admin.status_code == 201
        assert refused.status_code == 403
        assert empty.status_code == 400
        assert anonymous.status_code == 401
        assert [m["content"] for m in listed.json()["data"]] == ["Pièce commandée", "Devis validé"]


class TestClientEndpoints:

    @pytest.mark.asyncio
    async def test_crud_with_contacts(self, test_client, admin_headers):
        created = await test_client.post(
            "/api/admin/clients",
            json={
                "name": "Diop SARL",
                "email": "contact@diop.sn",
                "company_name": "Diop SARL",
                "contacts": [{"full_name": "Moussa Diop", "email": "moussa@diop.sn"}],
            },
            headers=admin_headers,
        )
        client_id = created.json()["data"]["id"]

        contact = await test_client.post(
            f"/api/admin/clients/{client_id}/contacts",
            json={"full_name": "Fatou Sow", "email": "fatou@diop.sn", "preferred_contact": "sms"},
            headers=admin_headers,
        )
        contact_id = contact.json()["data"]["id"]
        patched_contact = await test_client.patch(
            f"/api/admin/clients/contacts/{contact_id}",
            json={"phone": "+221 77 000 00 00"},
            headers=admin_headers,
        )
        patched = await test_client.patch(
            f"/api/admin/clients/{client_id}", json={"address": "Dakar"}, headers=admin_headers
        )
        fetched = await test_client.get(f"/api/admin/clients/{client_id}", headers=admin_headers)
        business = await test_client.get("/api/admin/clients?is_business=true", headers=admin_headers)
        removed_contact = await test_client.delete(
            f"/api/admin/clients/contacts/{contact_id}", headers=admin_headers
        )
        deleted = await test_client.delete(f"/api/admin/clients/{client_id}", headers=admin_headers)
        gone = await test_client.get(f"/api/admin/clients/{client_id}", headers=admin_headers)

        assert created.status_code == 201
        assert created.json()["data"]["is_business"] is True
        assert contact.status_code == 201
        assert patched_contact.json()["data"]["phone"] == "+221 77 000 00 00"
        assert patched.json()["data"]["address"] == "Dakar"
        assert [c["full_name"] for c in fetched.json()["data"]["contacts"]] == ["Moussa Diop", "Fatou Sow"]
        assert [c["id"] for c in business.json()["data"]] == [client_id]
        assert removed_contact.status_code == 200
        assert deleted.json() == {"success": True, "data": None, "message": "Client deleted"}
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_business_without_company_name(self, test_client, admin_headers):
        response = await test_client.post(
            "/api/admin/clients",
            json={"name": "Awa", "email": "awa@b.com", "is_business": True},
            headers=admin_headers,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate_email(self, test_client, admin_headers):
        await test_client.post(
            "/api/service-requests",
            json={"name": "Awa", "email": "awa@b.com", "device_type": "PC", "service_type": "Virus"},
        )
        response = await test_client.post(
            "/api/admin/clients", json={"name": "Awa", "email": "AWA@b.com"}, headers=admin_headers
        )
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_email"

    @pytest.mark.asyncio
    async def test_requires_admin(self, test_client):
        token = create_access_token(3, ROLE_TECHNICIAN, "tech@b.com")
        response = await test_client.get(
            "/api/admin/clients", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 403


class TestTechnicianPasswordChange:

    @pytest.mark.asyncio
    async def test_change_temporary_password(self, test_client, admin_headers, application_fields):
        created = await _submit_json(test_client, application_fields)
        approved = await test_client.post(
            f"/api/technician-applications/{created['id']}/approve", headers=admin_headers
        )
        data = approved.json()["data"]
        assert data["email_sent"] is False
        login = await test_client.post(
            "/api/auth/technician/login",
            json={"email": "a@b.com", "password": data["initial_password"]},
        )
        headers = {"Authorization": f"Bearer {login.json()['data']['access_token']}"}
        url = "/api/auth/technician/change-password"

        wrong = await test_client.post(
            url, json={"current_password": "nope", "new_password": "mon-secret"}, headers=headers
        )
        too_short = await test_client.post(
            url, json={"current_password": data["initial_password"], "new_password": "abc"}, headers=headers
        )
        as_admin = await test_client.post(
            url, json={"current_password": "x", "new_password": "mon-secret"}, headers=admin_headers
        )
        changed = await test_client.post(
            url,
            json={"current_password": data["initial_password"], "new_password": "mon-secret"},
            headers=headers,
        )
        relogin = await test_client.post(
            "/api/auth/technician/login", json={"email": "a@b.com", "password": "mon-secret"}
        )

        assert wrong.status_code == 400
        assert wrong.json()["details"]["field"] == "current_password"
        assert too_short.status_code == 400
        assert as_admin.status_code == 403
        assert changed.json() == {"success": True, "data": None, "message": "Password changed"}
        assert relogin.status_code == 200
