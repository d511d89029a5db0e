"""
Tests for the ticket desk session coordinator

Covers the full ticket lifecycle across roles, per-ticket suppression of
concurrent actions and state handling when the store fails.
"""
import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from maintdesk.errors import (
    ActionInProgressError,
    AuthenticationError,
    InvalidTransitionError,
    PermissionDeniedError,
    TicketNotFoundError,
    TransportError,
    ValidationError,
)
from maintdesk.models.schemas import Priority, ReviewDraft, Role, TicketDraft, TicketStatus
from maintdesk.services.desk import TicketDesk, UploadedFile

ALL_FOURS = ReviewDraft(attitude=4, neatness=4, quality=4, speed=4, communication=4)


class TestSession:

    @pytest.mark.asyncio
    async def test_login_sets_user(self, memory_store):
        desk = TicketDesk(memory_store)
        user = await desk.login("outlet-a", "secret-a")
        assert desk.user == user
        assert user.role is Role.USER

    @pytest.mark.asyncio
    async def test_failed_login_keeps_logged_out(self, memory_store):
        desk = TicketDesk(memory_store)
        with pytest.raises(AuthenticationError):
            await desk.login("outlet-a", "nope")
        with pytest.raises(PermissionDeniedError):
            desk.user

    @pytest.mark.asyncio
    async def test_logout_clears_state(self, desk_for, sample_draft):
        desk = desk_for("outlet-a")
        await desk.create_ticket(sample_draft)
        desk.logout()
        assert desk.state.user is None
        assert desk.tickets == []

    @pytest.mark.asyncio
    async def test_refresh_requires_login(self, memory_store):
        with pytest.raises(PermissionDeniedError):
            await TicketDesk(memory_store).refresh()

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_previous_list(self, desk_for, sample_draft, memory_store):
        desk = desk_for("outlet-a")
        ticket = await desk.create_ticket(sample_draft)

        with patch.object(memory_store, "list_tickets", new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = TransportError("Ticket store unreachable")
            with pytest.raises(TransportError):
                await desk.refresh()

        assert desk.tickets == [ticket]

    def test_get_unknown_ticket(self, desk_for):
        with pytest.raises(TicketNotFoundError):
            desk_for("budi").get_ticket("TKT-404")


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, desk_for, sample_draft):
        """File, schedule, start, complete, review, then rate"""
        unit = desk_for("outlet-a")
        ticket = await unit.create_ticket(sample_draft)
        assert ticket.priority is Priority.MEDIUM
        assert ticket.status is TicketStatus.OPEN

        officer = desk_for("budi")
        await officer.refresh()

        scheduled = await officer.schedule(ticket.id, "2025-10-23")
        assert scheduled.status is TicketStatus.SCHEDULED
        assert scheduled.scheduled_at == datetime(2025, 10, 23, tzinfo=timezone.utc)

        started = await officer.start(ticket.id)
        assert started.status is TicketStatus.IN_PROGRESS
        assert started.started_at is not None

        completed = await officer.complete(ticket.id)
        assert completed.status is TicketStatus.COMPLETED
        assert completed.assigned_officer == "budi"
        assert completed.completed_at is not None
        assert officer.get_ticket(ticket.id) == completed

        await unit.refresh()
        assert [t.id for t in unit.my_pending_reviews()] == [ticket.id]

        reviewed = await unit.submit_review(ticket.id, ALL_FOURS)
        assert reviewed.status is TicketStatus.CLOSED
        assert reviewed.review.reviewed_at is not None
        assert unit.my_pending_reviews() == []

        admin = desk_for("admin")
        await admin.refresh()
        aggregates, detail = admin.officer_ratings()
        assert [r.officer for r in aggregates] == ["budi"]
        assert aggregates[0].averages == {
            "attitude": 4.0, "neatness": 4.0, "quality": 4.0, "speed": 4.0, "communication": 4.0
        }
        assert [t.id for t in detail] == [ticket.id]

        await officer.refresh()
        rating, mine = officer.my_rating()
        assert rating.review_count == 1
        assert [t.id for t in mine] == [ticket.id]

    @pytest.mark.asyncio
    async def test_cancel_and_priority(self, desk_for, sample_draft):
        ticket = await desk_for("outlet-a").create_ticket(sample_draft)
        officer = desk_for("budi")
        await officer.refresh()

        raised = await officer.change_priority(ticket.id, "High")
        assert raised.priority is Priority.HIGH
        assert raised.status is TicketStatus.OPEN

        cancelled = await officer.cancel(ticket.id)
        assert cancelled.status is TicketStatus.CLOSED
        assert cancelled.completed_at is None

        with pytest.raises(InvalidTransitionError) as exc_info:
            await officer.change_priority(ticket.id, "Low")
        assert "Cannot change priority of a ticket with status 'Closed'" in str(exc_info.value)


class TestCreateTicket:

    @pytest.mark.asyncio
    async def test_unit_is_logged_in_user(self, desk_for, sample_draft):
        ticket = await desk_for("outlet-b").create_ticket(sample_draft)
        assert ticket.unit == "outlet-b"

    @pytest.mark.asyncio
    async def test_files_uploaded_and_attached(self, desk_for, sample_draft, memory_store):
        files = [
            UploadedFile(name="1.jpg", mime_type="image/jpeg", data=b"one"),
            UploadedFile(name="2.jpg", mime_type="image/jpeg", data=b"two"),
        ]
        ticket = await desk_for("outlet-a").create_ticket(sample_draft, files)
        assert [a.name for a in ticket.attachments] == ["1.jpg", "2.jpg"]
        assert len(memory_store.files) == 2

    @pytest.mark.asyncio
    async def test_validation_happens_before_upload(self, desk_for, memory_store):
        draft = TicketDraft(reporter_name="Sari", title="", category="AC", sub_category="AC bocor")
        with patch.object(memory_store, "upload_file", new_callable=AsyncMock) as mock_upload:
            with pytest.raises(ValidationError) as exc_info:
                await desk_for("outlet-a").create_ticket(
                    draft, [UploadedFile(name="1.jpg", mime_type="image/jpeg", data=b"one")]
                )
            mock_upload.assert_not_called()
        assert exc_info.value.fields == ["title", "description"]
        assert memory_store.tickets == {}

    @pytest.mark.asyncio
    async def test_only_users_file_tickets(self, desk_for, sample_draft):
        with pytest.raises(PermissionDeniedError):
            await desk_for("budi").create_ticket(sample_draft)


class TestActionGuards:

    @pytest.mark.asyncio
    async def test_admin_cannot_act(self, desk_for, sample_draft, memory_store):
        ticket = await desk_for("outlet-a").create_ticket(sample_draft)
        admin = desk_for("admin")
        await admin.refresh()
        with patch.object(memory_store, "update_ticket", new_callable=AsyncMock) as mock_update:
            with pytest.raises(PermissionDeniedError):
                await admin.start(ticket.id)
            mock_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_user_cannot_review_other_unit(self, desk_for, sample_draft):
        unit = desk_for("outlet-a")
        ticket = await unit.create_ticket(sample_draft)
        officer = desk_for("budi")
        await officer.refresh()
        await officer.start(ticket.id)
        await officer.complete(ticket.id)

        other = desk_for("outlet-b")
        await other.refresh()
        with pytest.raises(PermissionDeniedError):
            await other.submit_review(ticket.id, ALL_FOURS)

    @pytest.mark.asyncio
    async def test_role_views(self, desk_for):
        with pytest.raises(PermissionDeniedError):
            desk_for("budi").my_tickets()
        with pytest.raises(PermissionDeniedError):
            desk_for("outlet-a").queue()
        with pytest.raises(PermissionDeniedError):
            desk_for("budi").officer_ratings()
        with pytest.raises(PermissionDeniedError):
            desk_for("admin").my_rating()


class TestInFlight:
    """Per-ticket suppression of concurrent actions"""

    @pytest.mark.asyncio
    async def test_second_action_rejected_while_first_pending(self, desk_for, sample_draft, memory_store):
        ticket = await desk_for("outlet-a").create_ticket(sample_draft)
        other = await desk_for("outlet-a").create_ticket(sample_draft)
        officer = desk_for("budi")
        await officer.refresh()

        gate = asyncio.Event()
        original_update = memory_store.update_ticket

        async def slow_update(ticket_id, update):
            await gate.wait()
            return await original_update(ticket_id, update)

        memory_store.update_ticket = slow_update

        first = asyncio.create_task(officer.start(ticket.id))
        await asyncio.sleep(0)
        assert ticket.id in officer.state.in_flight

        with pytest.raises(ActionInProgressError):
            await officer.cancel(ticket.id)

        # Other tickets are not blocked
        second = asyncio.create_task(officer.start(other.id))
        await asyncio.sleep(0)

        gate.set()
        started = await first
        await second

        assert started.status is TicketStatus.IN_PROGRESS
        assert officer.state.in_flight == set()
        assert officer.get_ticket(other.id).status is TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_failed_update_leaves_state_untouched(self, desk_for, sample_draft, memory_store):
        ticket = await desk_for("outlet-a").create_ticket(sample_draft)
        officer = desk_for("budi")
        await officer.refresh()

        with patch.object(memory_store, "update_ticket", new_callable=AsyncMock) as mock_update:
            mock_update.side_effect = TransportError("HTTP error! status: 503", status_code=503)
            with pytest.raises(TransportError):
                await officer.start(ticket.id)

        assert officer.get_ticket(ticket.id) == ticket
        assert officer.state.in_flight == set()

        # The action can be retried once the store is back
        started = await officer.start(ticket.id)
        assert started.status is TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_invalid_transition_never_reaches_store(self, desk_for, sample_draft, memory_store):
        ticket = await desk_for("outlet-a").create_ticket(sample_draft)
        officer = desk_for("budi")
        await officer.refresh()
        with patch.object(memory_store, "update_ticket", new_callable=AsyncMock) as mock_update:
            with pytest.raises(InvalidTransitionError):
                await officer.complete(ticket.id)
            mock_update.assert_not_called()
        assert officer.state.in_flight == set()
