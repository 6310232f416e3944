"""Tests for WorkflowEngine"""
import asyncio
from datetime import datetime, timezone

import pytest

from docflow.domain.enums import NotificationEvent
from docflow.domain.errors import (
    ConcurrencyError, InternalFailureError, InvalidStateError, PermissionDeniedError, ValidationError,
    WorkflowAlreadyAssignedError, WorkflowInactiveError
)
from docflow.domain.models import Workflow


async def user(services, user_id):
    return await services.directory.find_by_id(user_id)


async def reload(services, document):
    return await services.engine.get_document(document.collection, document.id)


async def actions(services, workflow, document):
    return [e.action for e in await services.audit_log.document_logs(workflow.id, document)]


async def create_workflow(services, **definition):
    admin = await user(services, "u-admin")
    definition.setdefault("name", "Test Workflow")
    definition.setdefault("applicable_collections", ["blogs"])
    return await services.workflow_service.create_workflow(definition, admin)


def role_step(name, role, **extra):
    return {"name": name, "assignees": {"type": "role", "roles": [role]}, **extra}


class TestTwoStepApproval:

    async def test_end_to_end(self, services, blog_workflow, make_document, notifier):
        document = await make_document()

        started = await services.engine.start_workflow(document, blog_workflow)
        assert started.next_step.step_number == 1
        assert started.is_completed is False

        result = await services.engine.apply_action(
            "blogs", document.id, blog_workflow, "approved", await user(services, "u-editor")
        )
        assert (result.current_step, result.new_step, result.is_completed) == (1, 2, False)

        result = await services.engine.apply_action(
            "blogs", document.id, blog_workflow, "approved", await user(services, "u-publisher"), "ship it"
        )
        assert result.is_completed is True
        assert result.new_step is None

        status = (await reload(services, document)).workflow_status
        assert status.is_completed is True
        assert status.outcome == "approved"
        assert status.current_step == 2
        assert status.completed_at is not None

        assert await actions(services, blog_workflow, document) == [
            "started", "assigned", "approved", "assigned", "approved", "completed"
        ]

        assert notifier.events() == [
            NotificationEvent.STEP_ASSIGNED.value,
            NotificationEvent.STEP_ASSIGNED.value,
            NotificationEvent.WORKFLOW_COMPLETED.value,
        ]
        assert notifier.messages[0][0] == ["u-editor", "u-editor2"]
        assert notifier.messages[1][0] == ["u-publisher"]
        assert notifier.messages[2][0] == ["u-author", "u-admin"]

    async def test_assigned_entry_records_assignees(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        entries = await services.audit_log.document_logs(blog_workflow.id, document)
        assigned = [e for e in entries if e.action == "assigned"][0]
        assert assigned.metadata["assignees"] == ["u-editor", "u-editor2"]
        assert assigned.user == "system"

    async def test_rejection_completes_with_rejected_outcome(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        result = await services.engine.apply_action(
            "blogs", document.id, blog_workflow, "rejected", await user(services, "u-editor"), "needs work"
        )
        assert result.is_completed is True
        status = (await reload(services, document)).workflow_status
        assert status.outcome == "rejected"

    async def test_comment_keeps_step(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        before = (await reload(services, document)).workflow_status

        result = await services.engine.apply_action(
            "blogs", document.id, blog_workflow, "commented", await user(services, "u-editor"), "typo in para 2"
        )
        assert result.new_step is None
        assert result.is_completed is False
        assert (await reload(services, document)).workflow_status == before


class TestPermissions:

    async def test_denial_writes_nothing(self, services, blog_workflow, make_document, notifier):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        raw_before = await services.store.find_by_id("blogs", document.id)
        logs_before = await actions(services, blog_workflow, document)
        sent_before = len(notifier.messages)

        with pytest.raises(PermissionDeniedError):
            await services.engine.apply_action(
                "blogs", document.id, blog_workflow, "approved", await user(services, "u-publisher")
            )

        assert await services.store.find_by_id("blogs", document.id) == raw_before
        assert await actions(services, blog_workflow, document) == logs_before
        assert len(notifier.messages) == sent_before

    async def test_inactive_assignee_denied(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        with pytest.raises(PermissionDeniedError):
            await services.engine.apply_action(
                "blogs", document.id, blog_workflow, "approved", await user(services, "u-gone")
            )

    async def test_missing_actor_denied(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        with pytest.raises(PermissionDeniedError):
            await services.engine.apply_action("blogs", document.id, blog_workflow, "approved", None)

    async def test_comments_disabled(self, services, make_document):
        workflow = await create_workflow(services, steps=[role_step("Review", "editor", allow_comments=False)])
        document = await make_document()
        await services.engine.start_workflow(document, workflow)
        with pytest.raises(PermissionDeniedError):
            await services.engine.apply_action(
                "blogs", document.id, workflow, "commented", await user(services, "u-editor"), "hi"
            )

    async def test_required_comment(self, services, make_document):
        workflow = await create_workflow(services, steps=[role_step("Review", "editor", require_comments=True)])
        document = await make_document()
        await services.engine.start_workflow(document, workflow)
        editor = await user(services, "u-editor")

        with pytest.raises(ValidationError):
            await services.engine.apply_action("blogs", document.id, workflow, "approved", editor, "   ")

        result = await services.engine.apply_action("blogs", document.id, workflow, "approved", editor, "checked")
        assert result.is_completed is True


class TestInvalidActions:

    async def test_unsupported_action(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        with pytest.raises(ValidationError):
            await services.engine.apply_action(
                "blogs", document.id, blog_workflow, "archived", await user(services, "u-editor")
            )

    async def test_action_on_completed_workflow(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        editor = await user(services, "u-editor")
        await services.engine.apply_action("blogs", document.id, blog_workflow, "rejected", editor)

        with pytest.raises(InvalidStateError):
            await services.engine.apply_action("blogs", document.id, blog_workflow, "approved", editor)

    async def test_action_with_other_workflow(self, services, blog_workflow, make_document):
        other = await create_workflow(services, name="Other", steps=[role_step("Review", "editor")])
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        with pytest.raises(InvalidStateError):
            await services.engine.apply_action(
                "blogs", document.id, other, "approved", await user(services, "u-editor")
            )

    async def test_start_inactive_workflow(self, services, blog_workflow, make_document):
        admin = await user(services, "u-admin")
        inactive = await services.workflow_service.set_active(blog_workflow.id, False, admin)
        document = await make_document()
        with pytest.raises(WorkflowInactiveError):
            await services.engine.start_workflow(document, inactive)


class TestProcessStep:

    async def test_idempotent_after_resolution(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        step = blog_workflow.get_step(1)

        log_id = await services.engine.process_step(document, blog_workflow, step)
        assert log_id is not None
        assert (await actions(services, blog_workflow, document)).count("assigned") == 2

        await services.engine.apply_action(
            "blogs", document.id, blog_workflow, "approved", await user(services, "u-editor")
        )
        before = await actions(services, blog_workflow, document)
        assert await services.engine.process_step(document, blog_workflow, step) is None
        assert await actions(services, blog_workflow, document) == before


class TestBranching:

    async def test_determine_next_step(self, services, make_document):
        workflow = await create_workflow(services, steps=[
            role_step("Draft check", "editor", next_steps=[{"condition": "rejected", "next_step_number": 3}]),
            role_step("Publish", "publisher"),
            role_step("Rework", "author"),
        ])
        document = await make_document()
        current = workflow.get_step(1)
        assert services.engine.determine_next_step(document, workflow, current, "approved").step_number == 2
        assert services.engine.determine_next_step(document, workflow, current, "rejected").step_number == 3
        assert services.engine.determine_next_step(document, workflow, workflow.get_step(3), "rejected") is None

    async def test_rejection_loop(self, services, make_document):
        workflow = await create_workflow(services, steps=[
            role_step("Write", "author"),
            role_step("Review", "editor", next_steps=[{"condition": "rejected", "next_step_number": 1}]),
        ])
        document = await make_document()
        await services.engine.start_workflow(document, workflow)
        await services.engine.apply_action("blogs", document.id, workflow, "approved", await user(services, "u-author"))
        result = await services.engine.apply_action(
            "blogs", document.id, workflow, "rejected", await user(services, "u-editor"), "again"
        )
        assert result.new_step == 1
        assert (await reload(services, document)).workflow_status.is_completed is False

    async def test_non_applicable_first_step_is_skipped(self, services, make_document):
        workflow = await create_workflow(services, steps=[
            role_step("Legal", "legal", conditions=[{"field": "department", "operator": "eq", "value": "legal"}]),
            role_step("Editor", "editor"),
        ])
        document = await make_document(department="sales")
        result = await services.engine.start_workflow(document, workflow)

        assert result.next_step.step_number == 2
        assert await actions(services, workflow, document) == ["started", "skipped", "assigned"]

    async def test_all_steps_skipped_completes(self, services, make_document):
        workflow = await create_workflow(services, steps=[
            role_step("Legal", "legal", conditions=[{"field": "department", "operator": "eq", "value": "legal"}]),
        ])
        document = await make_document(department="sales")
        result = await services.engine.start_workflow(document, workflow)

        assert result.is_completed is True
        status = (await reload(services, document)).workflow_status
        assert status.outcome == "skipped"
        assert await actions(services, workflow, document) == ["started", "skipped", "completed"]

    async def test_move_and_complete_directly(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)

        moved = await services.engine.move_to_next_step(document, blog_workflow, blog_workflow.get_step(2))
        assert moved.next_step.step_number == 2
        assert (await reload(services, document)).workflow_status.current_step == 2

        done = await services.engine.complete_workflow(document, blog_workflow, "approved")
        assert done.is_completed is True
        assert (await reload(services, document)).workflow_status.outcome == "approved"


class TestAssignment:

    async def test_assign_twice(self, services, blog_workflow, make_document):
        document = await make_document()
        document, started = await services.engine.assign_workflow(document, blog_workflow)
        assert started is not None
        assert document.workflow_id == blog_workflow.id

        with pytest.raises(WorkflowAlreadyAssignedError):
            await services.engine.assign_workflow(document, blog_workflow)

    async def test_assign_without_start_then_restart_on_change(self, services, blog_workflow, make_document):
        document = await make_document()
        document, started = await services.engine.assign_workflow(document, blog_workflow, auto_start=False)
        assert started is None
        assert document.workflow_status.current_step == 0
        assert await actions(services, blog_workflow, document) == []

        restarted = await services.engine.handle_document_changed(document)
        assert restarted.next_step.step_number == 1
        assert (await reload(services, document)).workflow_status.current_step == 1

        # Nothing to do once the status points at a real step
        assert await services.engine.handle_document_changed(await reload(services, document)) is None

    async def test_auto_assignment_on_create(self, services, blog_workflow, make_document):
        blog = await make_document("blogs")
        contract = await make_document("contracts")

        assigned = await services.engine.handle_document_created(blog)
        assert assigned.id == blog_workflow.id
        assert (await reload(services, blog)).workflow_status.current_step == 1

        assert await services.engine.handle_document_created(contract) is None

    async def test_auto_assignment_respects_trigger_conditions(self, services, make_document):
        await create_workflow(
            services,
            name="Big contracts",
            applicable_collections=["contracts"],
            trigger_conditions=[{"field": "amount", "operator": "gt", "value": 10000}],
            steps=[role_step("Finance", "finance")],
        )
        small = await make_document("contracts", amount=50)
        large = await make_document("contracts", amount=20000)

        assert await services.engine.handle_document_created(small) is None
        assert (await services.engine.handle_document_created(large)).name == "Big contracts"

    async def test_earliest_applicable_workflow_wins(self, services, make_document):
        later = Workflow.model_validate({
            "id": "WF-later", "name": "Later", "applicable_collections": ["blogs"],
            "created_at": datetime(2024, 2, 1, tzinfo=timezone.utc),
            "steps": [{"step_number": 1, **role_step("A", "editor")}],
        })
        earlier = Workflow.model_validate({
            "id": "WF-earlier", "name": "Earlier", "applicable_collections": ["all"],
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "steps": [{"step_number": 1, **role_step("B", "editor")}],
        })
        await services.workflow_repo.create(later)
        await services.workflow_repo.create(earlier)

        document = await make_document()
        assert (await services.engine.handle_document_created(document)).id == "WF-earlier"


class TestConcurrencyAndFailures:

    async def test_concurrent_approvals_apply_once(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        editor = await user(services, "u-editor")
        editor2 = await user(services, "u-editor2")

        results = await asyncio.gather(
            services.engine.apply_action("blogs", document.id, blog_workflow, "approved", editor),
            services.engine.apply_action("blogs", document.id, blog_workflow, "approved", editor2),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], PermissionDeniedError)
        assert (await actions(services, blog_workflow, document)).count("approved") == 1
        assert len(services.engine.locks) == 0

    async def test_log_failure_restores_status(self, services, blog_workflow, make_document, monkeypatch):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        raw_before = await services.store.find_by_id("blogs", document.id)

        async def broken_insert(entry):
            raise RuntimeError("log store down")

        monkeypatch.setattr(services.audit_repo, "insert", broken_insert)
        with pytest.raises(InternalFailureError):
            await services.engine.apply_action(
                "blogs", document.id, blog_workflow, "approved", await user(services, "u-editor")
            )

        raw_after = await services.store.find_by_id("blogs", document.id)
        assert raw_after["workflow_status"]["current_step"] == raw_before["workflow_status"]["current_step"]
        assert raw_after["workflow_status"]["is_completed"] is False

    async def test_notification_failure_keeps_transition(self, services, blog_workflow, make_document, monkeypatch):
        async def broken_notify(user_ids, message):
            raise RuntimeError("smtp down")

        monkeypatch.setattr(services.engine.notifier, "notify", broken_notify)
        document = await make_document()
        result = await services.engine.start_workflow(document, blog_workflow)
        assert result.next_step.step_number == 1
        assert (await reload(services, document)).workflow_status.current_step == 1

    async def test_notifications_sent_after_lock_release(self, services, blog_workflow, make_document, monkeypatch):
        held = []

        async def observing_notify(user_ids, message):
            held.append(len(services.engine.locks))

        monkeypatch.setattr(services.engine.notifier, "notify", observing_notify)
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        await services.engine.apply_action(
            "blogs", document.id, blog_workflow, "approved", await user(services, "u-editor")
        )
        assert held == [0, 0]

    async def test_slow_notification_does_not_block_document(
        self, services, blog_workflow, make_document, monkeypatch
    ):
        release = asyncio.Event()
        entered = asyncio.Event()

        async def slow_notify(user_ids, message):
            entered.set()
            await release.wait()

        monkeypatch.setattr(services.engine.notifier, "notify", slow_notify)
        document = await make_document()
        starting = asyncio.create_task(services.engine.start_workflow(document, blog_workflow))
        await entered.wait()

        async def read_under_lock():
            async with services.engine.locks.hold(("blogs", document.id)):
                return await reload(services, document)

        current = await asyncio.wait_for(read_under_lock(), timeout=1)
        assert current.workflow_status.current_step == 1

        release.set()
        await starting

    async def test_stale_status_write_conflicts(self, services, blog_workflow, make_document):
        document = await make_document()
        await services.engine.start_workflow(document, blog_workflow)
        stale = await reload(services, document)
        await services.engine.apply_action(
            "blogs", document.id, blog_workflow, "approved", await user(services, "u-editor")
        )
        with pytest.raises(ConcurrencyError):
            await services.engine._commit_status(stale, blog_workflow, stale.workflow_status)
