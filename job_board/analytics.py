"""Product analytics events (Mixpanel ingestion API).

Tracking is optional and fire-and-forget: with no token configured nothing is
sent, and delivery failures are only logged.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx

from .config import Settings, settings as default_settings


logger = logging.getLogger(__name__)

MIXPANEL_TRACK_URL = "https://api.mixpanel.com/track"


def clean_event_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None and empty-string values."""
    return {k: v for k, v in properties.items() if v is not None and v != ""}


class AnalyticsClient:
    """Send events under a stable anonymous id for this process."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        timeout_s: float = 10.0,
    ) -> None:
        self._config = config or default_settings
        self._client = client
        self._timeout = timeout_s
        self.distinct_id = str(uuid.uuid4())

    @property
    def enabled(self) -> bool:
        return bool(self._config.MIXPANEL_TOKEN.strip())

    def build_event(self, event: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = clean_event_properties(properties)
        email = cleaned.get("email") if isinstance(cleaned.get("email"), str) else None
        props: Dict[str, Any] = {
            "token": self._config.MIXPANEL_TOKEN.strip(),
            "distinct_id": email or self.distinct_id,
            "$device_id": self.distinct_id,
            "$insert_id": f"{event}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}",
        }
        if email:
            props["$user_id"] = email
        props.update(cleaned)
        return {"event": event, "properties": props}

    def track(self, event: str, properties: Optional[Dict[str, Any]] = None) -> bool:
        """Send one event; returns False if disabled or delivery failed."""
        if not self.enabled:
            return False

        body = [self.build_event(event, properties or {})]
        try:
            if self._client is not None:
                resp = self._client.post(MIXPANEL_TRACK_URL, json=body, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as http:
                    resp = http.post(MIXPANEL_TRACK_URL, json=body)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Analytics tracking failed for %r: %s", event, exc)
            return False
        return True


_default_client: Optional[AnalyticsClient] = None


def track_analytics_event(event: str, properties: Optional[Dict[str, Any]] = None) -> bool:
    """Track through a lazily created process-wide client."""
    global _default_client
    if _default_client is None:
        _default_client = AnalyticsClient()
    return _default_client.track(event, properties)
