import logging
from typing import Any, Dict, Iterable, List, Optional

from expense_approval.database import db
from expense_approval.models.notification import OutboxEvent

logger = logging.getLogger(__name__)

class NotificationDispatcher:
    def __init__(self):
        pass

    async def send_notification(self,
                                recipients: List[str],
                                type: str,
                                title: str,
                                message: str,
                                payload: Optional[Dict[str, Any]] = None,
                                channels: Iterable[str] = ("socket", "email")):
        """
        Routes a notification to every recipient on the given channels.
        Recipients are user ids or "role:<name>" addresses.
        """
        for recipient in recipients:
            for channel in channels:
                if channel == "socket":
                    await self._send_socket(recipient, type, title, payload or {})
                elif channel == "email":
                    await self._send_email(recipient, title, message)

    async def _send_socket(self, recipient: str, type: str, title: str, payload: Dict[str, Any]):
        # Mock socket push
        logger.info(f"[SOCKET] To {recipient} ({type}): {title}")

    async def _send_email(self, recipient: str, subject: str, body: str):
        # Mock Email integration (or use SMTP)
        logger.info(f"[EMAIL] To {recipient} | Subject: {subject}")

notification_dispatcher = NotificationDispatcher()

class OutboxRelay:
    """
    Delivers outbox events after their transaction committed.
    Delivery failures are logged and left for the next drain.
    """

    def __init__(self, dispatcher: NotificationDispatcher = notification_dispatcher, max_attempts: int = 5):
        self.dispatcher = dispatcher
        self.max_attempts = max_attempts

    async def deliver(self, events: List[OutboxEvent]) -> int:
        delivered = 0
        for event in events:
            try:
                await self.dispatcher.send_notification(
                    recipients=event.recipients,
                    type=event.type.value,
                    title=event.title,
                    message=event.message,
                    payload=event.payload
                )
            except Exception as e:
                logger.error(f"Notification {event.event_id} ({event.type.value}) failed: {e}")
                await self._mark(event, error=str(e))
                continue
            await self._mark(event)
            delivered += 1
        return delivered

    async def drain(self) -> int:
        """Retry everything still undelivered."""
        events = await db.outbox.list_undelivered(max_attempts=self.max_attempts)
        if events:
            logger.info(f"Draining {len(events)} undelivered notifications")
        return await self.deliver(events)

    async def _mark(self, event: OutboxEvent, error: Optional[str] = None):
        try:
            if error is None:
                await db.outbox.mark_dispatched(event.event_id)
            else:
                await db.outbox.mark_failed(event.event_id, error)
        except Exception as e:
            logger.error(f"Could not update outbox event {event.event_id}: {e}")

outbox_relay = OutboxRelay()
