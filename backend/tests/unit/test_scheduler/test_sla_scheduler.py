"""Tests for SlaScheduler"""
from docflow.scheduler.sla_scheduler import SlaScheduler


async def test_start_and_stop(services):
    scheduler = SlaScheduler(services.sla_service, interval_seconds=60)
    scheduler.start()
    try:
        assert scheduler.is_running is True
        job = scheduler.scheduler.get_job("sla_escalation")
        assert job is not None
        assert job.max_instances == 1
    finally:
        scheduler.stop()
    assert scheduler.is_running is False


async def test_job_runs_escalation(services, blog_workflow, make_document, clock, notifier):
    document = await make_document()
    await services.engine.start_workflow(document, blog_workflow)
    clock.advance(hours=25)

    scheduler = SlaScheduler(services.sla_service)
    await scheduler._escalate_overdue()

    assert notifier.events()[-1] == "sla_reminder"


async def test_job_survives_errors(services, monkeypatch):
    async def explode():
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(services.sla_service, "escalate_overdue", explode)
    scheduler = SlaScheduler(services.sla_service)
    await scheduler._escalate_overdue()
