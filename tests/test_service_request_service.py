"""
RepairDesk Backend - Service Request Service Tests
====================================================

What:  Assignment of technicians and the message thread on a request,
       including the notifications each one triggers after commit.
"""

from unittest.mock import AsyncMock

import pytest

from repairdesk.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from repairdesk.models.admin import Admin
from repairdesk.models.device_token import DeviceToken
from repairdesk.routes.deps import CurrentUser
from repairdesk.schemas.service_request import ServiceRequestCreate
from repairdesk.services.auth_service import ROLE_ADMIN, ROLE_TECHNICIAN
from repairdesk.services.service_request_service import ServiceRequestService
from repairdesk.services.technician_service import technician_service


async def _technician(db, email="tech@b.com", status="active"):
    technician = await technician_service.provision(
        db, name="Jean", surname="Dupont", email=email, password="secret123", status=status
    )
    await db.commit()
    return technician


class TestAssign:

    def setup_method(self):
        self.service = ServiceRequestService()

    async def _request(self, db):
        return await self.service.create(
            db,
            ServiceRequestCreate(
                name="Awa Diop", email="awa@b.com", device_type="Laptop", service_type="Écran cassé"
            ),
        )

    @pytest.mark.asyncio
    async def test_assign_sets_technician_and_notifies_client(
        self, db_session, push_dispatcher, fake_transport
    ):
        technician = await _technician(db_session)
        service_request = await self._request(db_session)
        db_session.add(
            DeviceToken(user_id=str(service_request.client_id), user_type="client", token="tok-client")
        )
        await db_session.commit()

        assigned = await self.service.assign(
            db_session, service_request.id, technician.id, dispatcher=push_dispatcher
        )

        assert assigned.technician_id == technician.id
        assert assigned.status == "assigned"
        tokens, message = fake_transport.send_multicast.await_args.args
        assert tokens == ["tok-client"]
        assert message.data == {
            "type": "service_update",
            "service_request_id": service_request.id,
            "status": "assigned",
        }

    @pytest.mark.asyncio
    async def test_unknown_technician(self, db_session):
        service_request = await self._request(db_session)

        with pytest.raises(NotFoundError, match="technician"):
            await self.service.assign(db_session, service_request.id, 99)

    @pytest.mark.asyncio
    async def test_unknown_request(self, db_session):
        technician = await _technician(db_session)

        with pytest.raises(NotFoundError, match="service request"):
            await self.service.assign(db_session, 99, technician.id)

    @pytest.mark.asyncio
    async def test_inactive_technician_cannot_be_assigned(self, db_session):
        technician = await _technician(db_session, status="inactive")
        service_request = await self._request(db_session)

        with pytest.raises(ValidationError, match="active"):
            await self.service.assign(db_session, service_request.id, technician.id)

    @pytest.mark.asyncio
    async def test_failed_notification_keeps_assignment(self, db_session):
        technician = await _technician(db_session)
        service_request = await self._request(db_session)
        dispatcher = AsyncMock()
        dispatcher.notify_service_status.side_effect = RuntimeError("push down")

        assigned = await self.service.assign(
            db_session, service_request.id, technician.id, dispatcher=dispatcher
        )

        assert assigned.status == "assigned"
        refreshed = await self.service.get(db_session, service_request.id)
        assert refreshed.technician_id == technician.id


class TestMessages:

    def setup_method(self):
        self.service = ServiceRequestService()

    async def _assigned_request(self, db):
        technician = await _technician(db)
        service_request = await self.service.create(
            db,
            ServiceRequestCreate(
                name="Awa Diop", email="awa@b.com", device_type="Phone", service_type="Batterie"
            ),
        )
        await self.service.assign(db, service_request.id, technician.id)
        return service_request, technician

    @pytest.mark.asyncio
    async def test_assigned_technician_posts_and_client_is_notified(self, db_session):
        service_request, technician = await self._assigned_request(db_session)
        user = CurrentUser(id=technician.id, role=ROLE_TECHNICIAN, email=technician.email)
        dispatcher = AsyncMock()

        message = await self.service.post_message(
            db_session, service_request.id, user, "Pièce commandée", dispatcher=dispatcher
        )

        assert message.id is not None
        assert message.sender_type == "technician"
        dispatcher.notify_new_message.assert_awaited_once_with(
            db_session, message, service_request.client_id, "client", "Jean Dupont"
        )

    @pytest.mark.asyncio
    async def test_admin_sender_name(self, db_session):
        service_request, _ = await self._assigned_request(db_session)
        admin = Admin(email="boss@b.com", password_hash="x", name="Marie", surname="Curie")
        db_session.add(admin)
        await db_session.commit()
        dispatcher = AsyncMock()

        await self.service.post_message(
            db_session,
            service_request.id,
            CurrentUser(id=admin.id, role=ROLE_ADMIN, email=admin.email),
            "Devis envoyé",
            dispatcher=dispatcher,
        )

        assert dispatcher.notify_new_message.await_args.args[4] == "Marie Curie"

    @pytest.mark.asyncio
    async def test_other_technician_is_refused(self, db_session):
        service_request, _ = await self._assigned_request(db_session)
        stranger = await _technician(db_session, email="other@b.com")
        user = CurrentUser(id=stranger.id, role=ROLE_TECHNICIAN, email=stranger.email)

        with pytest.raises(PermissionDeniedError):
            await self.service.post_message(db_session, service_request.id, user, "Bonjour")
        with pytest.raises(PermissionDeniedError):
            await self.service.list_messages(db_session, service_request.id, user)

    @pytest.mark.asyncio
    async def test_list_messages_in_order(self, db_session):
        service_request, technician = await self._assigned_request(db_session)
        user = CurrentUser(id=technician.id, role=ROLE_TECHNICIAN, email=technician.email)
        for content in ("Diagnostic", "Réparation", "Terminé"):
            await self.service.post_message(db_session, service_request.id, user, content)

        messages = await self.service.list_messages(db_session, service_request.id, user)

        assert [m.content for m in messages] == ["Diagnostic", "Réparation", "Terminé"]

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_message(self, db_session):
        service_request, technician = await self._assigned_request(db_session)
        user = CurrentUser(id=technician.id, role=ROLE_TECHNICIAN, email=technician.email)
        dispatcher = AsyncMock()
        dispatcher.notify_new_message.side_effect = RuntimeError("push down")

        await self.service.post_message(
            db_session, service_request.id, user, "Bonjour", dispatcher=dispatcher
        )

        assert len(await self.service.list_messages(db_session, service_request.id, user)) == 1
