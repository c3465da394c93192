"""
RepairDesk Backend - Application Repository Tests
===================================================

What:  Tests for ApplicationService: submission validation, listing order,
       lookup and the guarded status update.
How:   Runs against the temporary SQLite database from conftest.py.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select, update

from repairdesk.exceptions import InvalidStateTransition, NotFoundError, ValidationError
from repairdesk.models.notification import Notification
from repairdesk.models.technician_application import TechnicianApplication
from repairdesk.services.application_service import ApplicationService


class TestCreateApplication:

    def setup_method(self):
        self.service = ApplicationService()

    @pytest.mark.asyncio
    async def test_create_sets_pending_and_normalizes_groups(self, db_session, application_fields):
        application = await self.service.create_application(db_session, application_fields)

        assert application.id is not None
        assert application.status == "pending"
        assert application.technician_id is None
        assert application.submitted_at is not None
        assert application.personal_info["full_name"] == "Jean Pierre Dupont"
        assert application.personal_info["email"] == "a@b.com"
        assert application.professional_info["years_of_experience"] == 3
        assert application.professional_info["certifications"] == "CompTIA A+\nApple ACMT"
        assert application.additional_info["skills"] == ["Soudure", "Diagnostic"]
        assert application.documents["cv"]["url"] == "https://files.example.com/cv.pdf"

    @pytest.mark.asyncio
    async def test_email_is_lowercased(self, db_session, application_fields):
        application_fields["personalInfo"]["email"] = "Jean.Dupont@Example.COM"
        application = await self.service.create_application(db_session, application_fields)
        assert application.applicant_email == "jean.dupont@example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["personalInfo", "professionalInfo", "documents"])
    async def test_missing_required_group(self, db_session, application_fields, missing):
        del application_fields[missing]

        with pytest.raises(ValidationError):
            await self.service.create_application(db_session, application_fields)

        rows = (await db_session.execute(select(TechnicianApplication))).scalars().all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_malformed_email(self, db_session, application_fields):
        application_fields["personalInfo"]["email"] = "not-an-email"
        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_application(db_session, application_fields)
        assert "email" in exc_info.value.field

    @pytest.mark.asyncio
    async def test_cv_reference_is_required(self, db_session, application_fields):
        application_fields["documents"] = {"diplomas": []}
        with pytest.raises(ValidationError):
            await self.service.create_application(db_session, application_fields)

    @pytest.mark.asyncio
    async def test_non_object_payload(self, mock_db_session):
        with pytest.raises(ValidationError, match="must be an object"):
            await self.service.create_application(mock_db_session, ["not", "a", "dict"])
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_records_admin_notification(self, db_session, application_fields, push_dispatcher):
        application = await self.service.create_application(
            db_session, application_fields, dispatcher=push_dispatcher
        )

        notifications = (await db_session.execute(select(Notification))).scalars().all()
        assert len(notifications) == 1
        assert notifications[0].recipient_type == "admin"
        assert notifications[0].recipient_id is None
        assert notifications[0].priority == "high"
        assert notifications[0].related_entity_id == application.id


class TestReadApplications:

    def setup_method(self):
        self.service = ApplicationService()

    @pytest.mark.asyncio
    async def test_list_newest_first(self, db_session, make_application):
        first = await make_application(email="one@b.com")
        second = await make_application(email="two@b.com")
        third = await make_application(email="three@b.com")

        listed = await self.service.list_applications(db_session)
        assert [a.id for a in listed] == [third.id, second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, db_session, make_application):
        pending = await make_application(email="one@b.com")
        reviewing = await make_application(email="two@b.com")
        await self.service.update_status(db_session, reviewing.id, "reviewing")
        await db_session.commit()

        listed = await self.service.list_applications(db_session, status="pending")
        assert [a.id for a in listed] == [pending.id]

    @pytest.mark.asyncio
    async def test_list_unknown_status(self, db_session):
        with pytest.raises(ValidationError, match="Unknown application status"):
            await self.service.list_applications(db_session, status="archived")

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.get_application(db_session, 999)

    @pytest.mark.asyncio
    async def test_get_missing_with_mock_session(self, mock_db_session):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db_session.execute = AsyncMock(return_value=result)

        with pytest.raises(NotFoundError):
            await self.service.get_application(mock_db_session, 42)


class TestStatusTransitions:

    def setup_method(self):
        self.service = ApplicationService()

    @pytest.mark.parametrize(
        "current,requested",
        [
            ("pending", "reviewing"),
            ("pending", "approved"),
            ("pending", "rejected"),
            ("reviewing", "approved"),
            ("reviewing", "rejected"),
        ],
    )
    def test_allowed_transitions(self, current, requested):
        assert self.service.check_transition(current, requested) is True

    @pytest.mark.parametrize(
        "current,requested",
        [
            ("reviewing", "pending"),
            ("approved", "rejected"),
            ("approved", "approved"),
            ("rejected", "pending"),
            ("rejected", "rejected"),
        ],
    )
    def test_forbidden_transitions(self, current, requested):
        with pytest.raises(InvalidStateTransition):
            self.service.check_transition(current, requested)

    def test_reasserting_current_status_is_a_no_op(self):
        assert self.service.check_transition("pending", "pending") is False
        assert self.service.check_transition("reviewing", "reviewing") is False

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            self.service.check_transition("pending", "archived")

    @pytest.mark.asyncio
    async def test_update_to_reviewing(self, db_session, make_application):
        application = await make_application()

        updated, changed = await self.service.update_status(
            db_session, application.id, "reviewing", notes="CV complet"
        )
        await db_session.commit()

        assert changed is True
        assert updated.status == "reviewing"
        assert updated.admin_notes == "CV complet"

    @pytest.mark.asyncio
    async def test_update_refuses_terminal_targets(self, db_session, make_application):
        application = await make_application()

        with pytest.raises(ValidationError, match="review workflow"):
            await self.service.update_status(db_session, application.id, "approved")

    @pytest.mark.asyncio
    async def test_update_back_to_pending_is_invalid(self, db_session, make_application):
        application = await make_application()
        await self.service.update_status(db_session, application.id, "reviewing")
        await db_session.commit()

        with pytest.raises(InvalidStateTransition):
            await self.service.update_status(db_session, application.id, "pending")

    @pytest.mark.asyncio
    async def test_reassert_with_notes_only_updates_notes(self, db_session, make_application):
        application = await make_application()

        updated, changed = await self.service.update_status(
            db_session, application.id, "pending", notes="En attente du diplôme"
        )
        await db_session.commit()

        assert changed is False
        assert updated.status == "pending"
        assert updated.admin_notes == "En attente du diplôme"

    @pytest.mark.asyncio
    async def test_concurrent_change_is_detected(self, db_session, make_application):
        """A stale read loses: the conditional UPDATE matches no row."""
        application = await make_application()
        stale = await self.service.get_application(db_session, application.id)

        await db_session.execute(
            update(TechnicianApplication)
            .where(TechnicianApplication.id == application.id)
            .values(status="rejected")
            .execution_options(synchronize_session=False)
        )

        assert stale.status == "pending"
        with pytest.raises(InvalidStateTransition):
            await self.service.apply_transition(db_session, stale, "approved")
