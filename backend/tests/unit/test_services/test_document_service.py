"""Tests for DocumentService"""
import pytest

from docflow.domain.errors import (
    DocumentNotFoundError, InternalFailureError, PermissionDeniedError, ValidationError,
    WorkflowInactiveError, WorkflowNotFoundError
)


@pytest.fixture
def documents(services):
    return services.document_service


async def started_document(services, workflow, make_document, **fields):
    document = await make_document(**fields)
    await services.engine.start_workflow(document, workflow)
    return document


class TestTriggerAction:

    async def test_approve(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        result = await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-editor")
        assert result.new_step == 2

    async def test_missing_fields(self, documents):
        with pytest.raises(ValidationError) as exc_info:
            await documents.trigger_action("", "blogs", None, "approved", "u-editor")
        assert set(exc_info.value.details["missing"]) == {"document_id", "workflow_id"}

    async def test_unknown_user(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        with pytest.raises(PermissionDeniedError):
            await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-nobody")

    async def test_inactive_user(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        with pytest.raises(PermissionDeniedError):
            await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-gone")

    async def test_unknown_workflow(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        with pytest.raises(WorkflowNotFoundError):
            await documents.trigger_action(document.id, "blogs", "WF-nope", "approved", "u-editor")

    async def test_inactive_workflow(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        await services.workflow_service.set_active(
            blog_workflow.id, False, await services.directory.find_by_id("u-admin")
        )
        with pytest.raises(WorkflowInactiveError):
            await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-editor")

    async def test_unknown_document(self, documents, blog_workflow):
        with pytest.raises(DocumentNotFoundError):
            await documents.trigger_action("missing", "blogs", blog_workflow.id, "approved", "u-editor")

    async def test_unexpected_errors_become_internal_failures(
        self, services, documents, blog_workflow, make_document, monkeypatch
    ):
        document = await started_document(services, blog_workflow, make_document)

        async def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(services.engine, "apply_action", explode)
        with pytest.raises(InternalFailureError) as exc_info:
            await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-editor")
        assert exc_info.value.details == {"operation": "trigger_action"}


class TestAssign:

    async def test_assign(self, documents, blog_workflow, make_document):
        document = await make_document()
        result = await documents.assign_workflow(document.id, "blogs", blog_workflow.id, acting_user_id="u-admin")
        assert result == {
            "document_id": document.id,
            "collection": "blogs",
            "workflow_id": blog_workflow.id,
            "started": True,
            "current_step": 1,
            "is_completed": False,
        }

    async def test_assign_without_start(self, documents, blog_workflow, make_document):
        document = await make_document()
        result = await documents.assign_workflow(document.id, "blogs", blog_workflow.id, auto_start=False)
        assert result["started"] is False
        assert result["current_step"] == 0

    async def test_bulk_assign_collects_failures(self, services, documents, blog_workflow, make_document):
        first = await make_document()
        second = await make_document()
        await services.engine.start_workflow(second, blog_workflow)

        result = await documents.bulk_assign([first.id, second.id, "missing"], "blogs", blog_workflow.id)
        assert result["total"] == 3
        assert [item["document_id"] for item in result["assigned"]] == [first.id]
        failures = {item["document_id"]: item["code"] for item in result["failed"]}
        assert failures == {second.id: "WORKFLOW_ALREADY_ASSIGNED", "missing": "DOCUMENT_NOT_FOUND"}

    async def test_bulk_assign_requires_ids(self, documents, blog_workflow):
        with pytest.raises(ValidationError):
            await documents.bulk_assign([], "blogs", blog_workflow.id)


class TestStatus:

    async def test_without_workflow(self, documents, make_document):
        document = await make_document()
        status = await documents.get_status(document.id, "blogs")
        assert status["has_workflow"] is False
        assert status["document"]["id"] == document.id

    async def test_in_progress(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-editor")

        status = await documents.get_status(document.id, "blogs")
        assert status["has_workflow"] is True
        assert status["workflow"]["id"] == blog_workflow.id
        assert status["status"]["current_step"] == 2
        assert status["status"]["total_steps"] == 2
        assert status["status"]["progress"] == 50
        assert status["current_step"]["name"] == "Publisher Approval"
        assert status["available_actions"] == ["approved", "rejected", "commented"]
        assert [log["action"] for log in status["logs"]] == ["started", "assigned", "approved", "assigned"]

    async def test_completed(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        await documents.trigger_action(document.id, "blogs", blog_workflow.id, "rejected", "u-editor")

        status = await documents.get_status(document.id, "blogs", include_logs=False)
        assert status["status"]["progress"] == 100
        assert status["status"]["outcome"] == "rejected"
        assert status["current_step"] is None
        assert status["sla_status"] is None
        assert status["available_actions"] == []
        assert status["logs"] == []

    async def test_sla_status(self, services, documents, blog_workflow, make_document, clock):
        document = await started_document(services, blog_workflow, make_document)
        clock.advance(hours=26)
        status = await documents.get_status(document.id, "blogs")
        assert status["sla_status"] == {"is_overdue": True, "overdue_hours": 2.0}

    async def test_logs_are_limited_to_latest(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        for i in range(25):
            await documents.trigger_action(
                document.id, "blogs", blog_workflow.id, "commented", "u-editor", f"note {i}"
            )

        logs = (await documents.get_status(document.id, "blogs"))["logs"]
        assert len(logs) == 20
        assert logs[-1]["comment"] == "note 24"


class TestPendingActions:

    async def test_assignee_sees_current_step(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document, title="Pending post")

        pending = await documents.pending_actions("u-editor")
        assert len(pending) == 1
        assert pending[0]["document"]["id"] == document.id
        assert pending[0]["step"]["step_number"] == 1
        assert pending[0]["workflow_name"] == "Blog Publication"
        assert pending[0]["sla_status"] == {"is_overdue": False, "overdue_hours": 0.0}
        assert await documents.pending_actions("u-publisher") == []

    async def test_stale_assignments_are_dropped(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-editor")

        assert await documents.pending_actions("u-editor") == []
        assert [p["step"]["step_number"] for p in await documents.pending_actions("u-publisher")] == [2]


class TestHistoryAndHooks:

    async def test_histories(self, services, documents, blog_workflow, make_document):
        document = await started_document(services, blog_workflow, make_document)
        await documents.trigger_action(document.id, "blogs", blog_workflow.id, "approved", "u-editor")

        history = await documents.document_history("blogs", document.id)
        assert [e.action for e in history] == ["started", "assigned", "approved", "assigned"]

        mine = await documents.user_history("u-editor")
        assert [e.action for e in mine] == ["approved"]

        recent = await documents.workflow_history(blog_workflow.id, limit=3)
        assert [e.action for e in recent] == ["assigned", "approved", "assigned"]

    async def test_created_hook_assigns(self, documents, blog_workflow, make_document):
        document = await make_document()
        result = await documents.handle_document_created("blogs", document.id)
        assert result["assigned_workflow_id"] == blog_workflow.id

    async def test_created_hook_without_candidates(self, documents, make_document):
        document = await make_document("contracts")
        result = await documents.handle_document_created("contracts", document.id)
        assert result["assigned_workflow_id"] is None

    async def test_changed_hook_restarts_orphans(self, services, documents, blog_workflow, make_document):
        document = await make_document(workflow=blog_workflow.id)
        result = await documents.handle_document_changed("blogs", document.id)
        assert result["restarted"] is True
        status = (await services.engine.get_document("blogs", document.id)).workflow_status
        assert status.current_step == 1
