"""
Pytest Configuration and Fixtures

Shared fixtures: an in-memory document store, a controllable clock, a
seeded user directory and the fully wired service graph.
"""

import os

os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import pytest

from docflow.config.settings import Settings
from docflow.domain.models import Document, User
from docflow.repositories.memory_store import InMemoryDocumentStore
from docflow.services.factory import build_services


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, hours: float = 0, minutes: float = 0) -> None:
        self.current += timedelta(hours=hours, minutes=minutes)


class RecordingNotifier:
    """NotificationDispatcher that keeps every message"""

    def __init__(self):
        self.messages = []

    async def notify(self, user_ids, message):
        self.messages.append((list(user_ids), message))

    def events(self):
        return [message.event for _, message in self.messages]


USERS = [
    User(id="u-admin", name="Ada Admin", email="admin@example.com", role="admin", department="it"),
    User(id="u-director", name="Dana Director", email="director@example.com", role="director",
         department="management"),
    User(id="u-manager", name="Max Manager", email="manager@example.com", role="manager",
         department="editorial", manager="u-director"),
    User(id="u-editor", name="Erin Editor", email="editor@example.com", role="editor",
         department="editorial", manager="u-manager"),
    User(id="u-editor2", name="Eli Editor", email="editor2@example.com", role="editor",
         department="editorial", manager="u-manager"),
    User(id="u-publisher", name="Pat Publisher", email="publisher@example.com", role="publisher",
         department="editorial", manager="u-manager"),
    User(id="u-author", name="Alex Author", email="author@example.com", role="author",
         department="editorial", manager="u-manager"),
    User(id="u-legal", name="Lee Legal", email="legal@example.com", role="legal", department="legal",
         manager="u-director"),
    User(id="u-finance", name="Fran Finance", email="finance@example.com", role="finance",
         department="finance", manager="u-director"),
    User(id="u-ceo", name="Cam Chief", email="ceo@example.com", role="c_level", department="management"),
    User(id="u-gone", name="Former Editor", email="gone@example.com", role="editor",
         department="editorial", is_active=False),
]


BLOG_WORKFLOW: Dict[str, Any] = {
    "name": "Blog Publication",
    "description": "Editor review then publisher approval",
    "workflow_type": "publication",
    "applicable_collections": ["blogs"],
    "steps": [
        {
            "name": "Editor Review",
            "step_type": "review",
            "assignees": {"type": "role", "roles": ["editor"]},
            "sla": {"hours": 24, "escalation_action": "reminder"},
        },
        {
            "name": "Publisher Approval",
            "step_type": "approval",
            "assignees": {"type": "role", "roles": ["publisher"]},
        },
    ],
}


@pytest.fixture
def clock() -> FakeClock:
    # A Monday morning
    return FakeClock(datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        storage_backend="memory",
        log_file_enabled=False,
        workflow_collections="blogs,contracts",
        business_timezone="UTC",
    )


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def services(settings, store, notifier, clock):
    services = build_services(settings, store=store, notifier=notifier, clock=clock)
    for user in USERS:
        await services.directory.create(user)
    return services


@pytest.fixture
async def blog_workflow(services):
    admin = await services.directory.find_by_id("u-admin")
    return await services.workflow_service.create_workflow(dict(BLOG_WORKFLOW), admin)


@pytest.fixture
def make_document(store):
    """Insert a document and return it as a Document"""
    async def _make(collection: str = "blogs", **fields: Any) -> Document:
        fields.setdefault("title", "Hello World")
        fields.setdefault("created_by", "u-author")
        raw = await store.create(collection, fields)
        return Document(collection=collection, data=raw)
    return _make
