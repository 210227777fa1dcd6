"""Admin and poster notifications for job lifecycle events.

Notifications are rows in the notifications table; the admin dashboard lists
them and the poster-scope ones drive emails. Creating a notification is always
best-effort: a failure is logged and never fails the lifecycle operation that
triggered it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .config import Settings, settings as default_settings
from .errors import format_service_error
from .models import AdminNotification, NotificationEvent, RecipientScope, ServiceResult, utc_now
from .store import RecordStore, StoreError, eq, eq_or_null
from .utils import to_nullable


logger = logging.getLogger(__name__)


class NotificationCenter:
    def __init__(self, store: RecordStore, config: Optional[Settings] = None) -> None:
        self.store = store
        self.table = (config or default_settings).JOB_ADMIN_NOTIFICATIONS_TABLE

    def _already_sent(
        self,
        event_type: NotificationEvent,
        job_post_id: Optional[str],
        recipient_scope: RecipientScope,
        recipient_email: Optional[str],
    ) -> bool:
        # Absent job ids and emails only match stored nulls.
        filters = [
            eq("event_type", event_type),
            eq("recipient_scope", recipient_scope),
            eq_or_null("job_post_id", job_post_id),
            eq_or_null("recipient_email", recipient_email),
        ]
        try:
            return bool(self.store.select(self.table, filters, limit=1))
        except StoreError as exc:
            logger.warning("Notification dedup lookup failed, inserting anyway: %s", exc.message)
            return False

    def create(
        self,
        event_type: NotificationEvent,
        title: str,
        message: str,
        job_post_id: Optional[str] = None,
        recipient_scope: RecipientScope = "admin",
        recipient_email: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        dedupe: bool = False,
    ) -> Optional[AdminNotification]:
        """Insert a notification; returns None if deduplicated or on failure."""
        recipient_email = to_nullable(recipient_email)

        if dedupe and self._already_sent(event_type, job_post_id, recipient_scope, recipient_email):
            logger.debug("Skipping duplicate %s notification for job %s (%s)", event_type, job_post_id, recipient_scope)
            return None

        try:
            row = self.store.insert(
                self.table,
                {
                    "job_post_id": job_post_id,
                    "event_type": event_type,
                    "title": title,
                    "message": message,
                    "recipient_scope": recipient_scope,
                    "recipient_email": recipient_email,
                    "metadata": metadata or {},
                },
            )
        except StoreError as exc:
            logger.warning("Could not create %s notification for job %s: %s", event_type, job_post_id, exc.message)
            return None
        return AdminNotification.model_validate(row)

    def fetch_recent(self, limit: int = 40) -> ServiceResult[List[AdminNotification]]:
        try:
            rows = self.store.select(self.table, order_by="created_at", descending=True, limit=limit)
        except StoreError as exc:
            return ServiceResult(
                ok=False, data=[], message=format_service_error(exc, "Unable to load admin notifications.")
            )
        return ServiceResult(ok=True, data=[AdminNotification.model_validate(r) for r in rows])

    def mark_read(self, notification_id: str) -> ServiceResult[None]:
        try:
            self.store.update(
                self.table,
                [eq("id", notification_id)],
                {"status": "read", "read_at": utc_now().isoformat()},
            )
        except StoreError as exc:
            return ServiceResult(
                ok=False, data=None, message=format_service_error(exc, "Unable to mark notification as read.")
            )
        return ServiceResult(ok=True, data=None)
