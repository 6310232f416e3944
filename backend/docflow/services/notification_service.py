"""Notification Service - Workflow notifications

Messages are rendered per event and handed to the stub email channel (a
structured log line). When a webhook URL is configured the event is also
POSTed there as JSON.
"""
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple
import httpx

from ..config.settings import Settings
from ..domain.enums import NotificationEvent
from ..domain.errors import NotificationDeliveryError
from ..domain.models import NotificationMessage, User
from ..repositories.base import UserDirectory
from ..utils.time import format_duration, format_iso, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


def render_message(message: NotificationMessage) -> Tuple[str, str]:
    """Build (subject, body) for a notification event"""
    title = message.document.title or message.document.id
    step_name = message.step.step_name if message.step else None

    if message.event == NotificationEvent.STEP_ASSIGNED.value:
        subject = f"Action required: {title}"
        body = (
            f'The document "{title}" ({message.document.collection}) is waiting for you '
            f'at step "{step_name}" of workflow "{message.workflow_name}".'
        )
    elif message.event == NotificationEvent.WORKFLOW_COMPLETED.value:
        outcome = message.action or "completed"
        subject = f"Workflow completed: {title}"
        body = f'Workflow "{message.workflow_name}" finished for "{title}" with outcome: {outcome}.'
    elif message.event == NotificationEvent.SLA_REMINDER.value:
        subject = f"Reminder: {title} is overdue"
        body = f'Step "{step_name}" of workflow "{message.workflow_name}" on "{title}" is past its SLA.'
    elif message.event == NotificationEvent.SLA_ESCALATION.value:
        subject = f"Escalation: {title} is overdue"
        body = (
            f'Step "{step_name}" of workflow "{message.workflow_name}" on "{title}" '
            f"has been escalated to you."
        )
    else:
        subject = f"Workflow update: {title}"
        body = f'There is an update on "{title}".'

    if message.sla_status and message.sla_status.is_overdue:
        body += f" Overdue by {format_duration(round(message.sla_status.overdue_hours * 60))}."

    return subject, body


class NotificationService:
    """Service for sending workflow notifications"""

    def __init__(
        self,
        directory: UserDirectory,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._directory = directory
        self._sender = settings.notification_sender
        self._webhook_url = settings.notification_webhook_url
        self._timeout = settings.notification_timeout_seconds
        self._http_client = http_client
        # Recent deliveries, newest last
        self.sent: Deque[Dict[str, Any]] = deque(maxlen=500)

    async def notify(self, user_ids: Sequence[str], message: NotificationMessage) -> None:
        """
        Deliver a message to users

        Unknown or inactive users are skipped. Raises NotificationDeliveryError
        when the webhook rejects the event; callers treat that as best-effort.
        """
        recipients = await self._recipients(user_ids)
        if not recipients:
            logger.info(
                f"No recipients for {message.event} notification",
                extra={"document_id": message.document.id, "workflow_id": message.workflow_id}
            )
            return

        subject, body = render_message(message)
        emails = [user.email for user in recipients if user.email]

        # Stub email channel
        logger.info(
            f"Sending email from {self._sender} to {emails}: {subject}",
            extra={"document_id": message.document.id, "workflow_id": message.workflow_id}
        )
        self.sent.append({
            "event": message.event,
            "recipients": [user.id for user in recipients],
            "subject": subject,
            "body": body,
        })

        if self._webhook_url:
            await self._post_webhook(recipients, message, subject, body)

    async def _recipients(self, user_ids: Sequence[str]) -> List[User]:
        users = []
        for user_id in dict.fromkeys(user_ids):
            user = await self._directory.find_by_id(user_id)
            if user is not None and user.is_active:
                users.append(user)
        return users

    async def _post_webhook(
        self,
        recipients: List[User],
        message: NotificationMessage,
        subject: str,
        body: str
    ) -> None:
        payload = {
            "event": message.event,
            "sent_at": format_iso(utc_now()),
            "recipients": [{"id": u.id, "email": u.email, "name": u.name} for u in recipients],
            "subject": subject,
            "body": body,
            "context": message.model_dump(mode="json"),
        }

        if self._http_client is not None:
            response = await self._http_client.post(self._webhook_url, json=payload, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._webhook_url, json=payload)

        if response.status_code >= 300:
            raise NotificationDeliveryError(
                f"Webhook error: {response.status_code}",
                details={"response": response.text[:500]}
            )
