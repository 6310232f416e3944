"""Tests for AuditLogStore queries and SLA computation"""
from datetime import datetime, timedelta, timezone

import pytest

from docflow.domain.enums import LogAction
from docflow.domain.models import LogDocumentRef, LogStepRef, WorkflowLogEntry


def assignment_at(timestamp: datetime) -> WorkflowLogEntry:
    return WorkflowLogEntry(
        workflow="wf",
        document=LogDocumentRef(collection="blogs", id="d1"),
        step=LogStepRef(step_number=1, step_name="Review", step_type="review"),
        action=LogAction.ASSIGNED,
        user="system",
        timestamp=timestamp,
    )


class TestComputeOverdue:

    @pytest.fixture
    def assigned(self):
        return assignment_at(datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))

    def test_25_hours_is_one_hour_overdue(self, services, assigned):
        status = services.audit_log.compute_overdue(assigned, 24, now=assigned.timestamp + timedelta(hours=25))
        assert status.is_overdue is True
        assert status.overdue_hours == 1.0

    def test_23_hours_is_not_overdue(self, services, assigned):
        status = services.audit_log.compute_overdue(assigned, 24, now=assigned.timestamp + timedelta(hours=23))
        assert status.is_overdue is False
        assert status.overdue_hours == 0.0

    def test_exactly_at_budget_is_not_overdue(self, services, assigned):
        status = services.audit_log.compute_overdue(assigned, 24, now=assigned.timestamp + timedelta(hours=24))
        assert status.is_overdue is False

    def test_overdue_hours_rounded(self, services, assigned):
        now = assigned.timestamp + timedelta(hours=24, minutes=20)
        assert services.audit_log.compute_overdue(assigned, 24, now=now).overdue_hours == 0.33

    def test_business_hours_skip_weekend(self, services):
        friday_afternoon = assignment_at(datetime(2024, 3, 8, 16, 0, tzinfo=timezone.utc))
        monday_morning = datetime(2024, 3, 11, 10, 0, tzinfo=timezone.utc)

        status = services.audit_log.compute_overdue(friday_afternoon, 1, business_hours=True, now=monday_morning)
        assert status.is_overdue is True
        assert status.overdue_hours == 1.0

        wall_clock = services.audit_log.compute_overdue(friday_afternoon, 1, now=monday_morning)
        assert wall_clock.overdue_hours == 65.0


class TestCheckSlaStatus:

    async def test_measured_from_latest_assignment(self, services, blog_workflow, make_document, clock):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        step = blog_workflow.get_step(1)

        clock.advance(hours=25)
        status = await services.audit_log.check_sla_status(blog_workflow, document, step)
        assert status.is_overdue is True
        assert status.overdue_hours == 1.0

        # Reassigning restarts the clock
        await services.engine.process_step(document, blog_workflow, step)
        status = await services.audit_log.check_sla_status(blog_workflow, document, step)
        assert status.is_overdue is False

    async def test_step_without_sla(self, services, blog_workflow, make_document, clock):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        clock.advance(hours=1000)
        status = await services.audit_log.check_sla_status(blog_workflow, document, blog_workflow.get_step(2))
        assert status.is_overdue is False
        assert status.overdue_hours == 0.0


class TestQueries:

    async def test_document_logs_in_order(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        await services.engine.apply_action("blogs", document.id, blog_workflow, "commented",
                                           await services.directory.find_by_id("u-editor"), "looks fine")

        actions = [e.action for e in await services.audit_log.document_logs(blog_workflow.id, document)]
        assert actions == ["started", "assigned", "commented"]

    async def test_user_logs_newest_first(self, services, blog_workflow, make_document):
        editor = await services.directory.find_by_id("u-editor")
        first = await make_document(title="First")
        second = await make_document(title="Second")
        for document in (first, second):
            await services.engine.start_workflow(document, blog_workflow)
            await services.engine.apply_action("blogs", document.id, blog_workflow, "commented", editor, "ok")

        entries = await services.audit_log.user_logs("u-editor")
        assert [e.document.id for e in entries] == [second.id, first.id]

    async def test_workflow_logs_newest_first_with_limit(self, services, blog_workflow, make_document, clock):
        first = await make_document(title="First")
        second = await make_document(title="Second")
        await services.engine.start_workflow(first, blog_workflow)
        clock.advance(minutes=5)
        await services.engine.start_workflow(second, blog_workflow)

        entries = await services.audit_log.workflow_logs(blog_workflow.id)
        assert [(e.document.id, e.action) for e in entries] == [
            (second.id, "assigned"),
            (second.id, "started"),
            (first.id, "assigned"),
            (first.id, "started"),
        ]

        latest = await services.audit_log.workflow_logs(blog_workflow.id, limit=1)
        assert [(e.document.id, e.action) for e in latest] == [(second.id, "assigned")]
        assert await services.audit_log.workflow_logs("WF-unknown") == []

    async def test_assignment_state_tracks_latest_assignment(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)

        assignment, escalated = await services.audit_log.assignment_state(blog_workflow.id, document, 1)
        assert assignment.action == "assigned"
        assert escalated is False

        editor = await services.directory.find_by_id("u-editor")
        await services.engine.apply_action("blogs", document.id, blog_workflow, "approved", editor)
        assert await services.audit_log.assignment_state(blog_workflow.id, document, 1) == (None, False)
        assert await services.audit_log.assignment_state(blog_workflow.id, document, 3) == (None, False)

    async def test_pending_assignments_close_on_resolution(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)

        pending = await services.audit_log.pending_assignments_for("u-editor")
        assert [(e.document.id, e.step.step_number) for e in pending] == [(document.id, 1)]
        assert not await services.audit_log.is_step_resolved(blog_workflow.id, document, 1)

        editor = await services.directory.find_by_id("u-editor")
        await services.engine.apply_action("blogs", document.id, blog_workflow, "approved", editor)

        assert await services.audit_log.pending_assignments_for("u-editor") == []
        assert await services.audit_log.is_step_resolved(blog_workflow.id, document, 1)
        publisher_pending = await services.audit_log.pending_assignments_for("u-publisher")
        assert [e.step.step_number for e in publisher_pending] == [2]

    async def test_entries_are_immutable(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        entry = (await services.audit_log.document_logs(blog_workflow.id, document))[0]
        with pytest.raises(Exception):
            entry.action = "approved"
