"""Editable website settings stored as key/value rows.

Currently only the LinkedIn posts shown on the home page. Reads never fail:
when the store is unreachable the last cached list is served, then the list
configured in the environment.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from .cache import MISSING, TTLCache
from .config import Settings, settings as default_settings
from .errors import MISSING_TABLE_CODE, format_service_error
from .linkedin import RawInputs, normalize_linkedin_urls
from .models import AccessLevel, ServiceResult
from .store import RecordStore, StoreError, eq
from .utils import to_trimmed


logger = logging.getLogger(__name__)

LINKEDIN_POSTS_KEY = "home_linkedin_posts"
MAX_LINKEDIN_POST_URLS = 6


def linkedin_urls_from_value(value: Any) -> List[str]:
    """Accept a bare list, `{"postUrls": [...]}` or `{"urls": [...]}`."""
    if isinstance(value, list):
        items = value
    elif isinstance(value, dict) and isinstance(value.get("postUrls"), list):
        items = value["postUrls"]
    elif isinstance(value, dict) and isinstance(value.get("urls"), list):
        items = value["urls"]
    else:
        return []
    return normalize_linkedin_urls([str(v) if v is not None else "" for v in items], MAX_LINKEDIN_POST_URLS)


class SiteSettingsService:
    def __init__(
        self,
        store: Optional[RecordStore],
        cache: TTLCache,
        config: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.config = config or default_settings

    @property
    def table(self) -> str:
        return self.config.SITE_SETTINGS_TABLE

    def _fallback_urls(self) -> List[str]:
        cached = self.cache.get(LINKEDIN_POSTS_KEY)
        if cached is not MISSING and cached:
            return list(cached)
        return normalize_linkedin_urls(self.config.LINKEDIN_POST_URLS, MAX_LINKEDIN_POST_URLS)

    def fetch_linkedin_post_urls(self) -> ServiceResult[List[str]]:
        if self.store is None:
            return ServiceResult(ok=True, data=self._fallback_urls())

        try:
            row = self.store.select_one(self.table, [eq("key", LINKEDIN_POSTS_KEY)])
        except StoreError as exc:
            logger.warning("Reading LinkedIn post settings failed: %s", exc.message)
            return ServiceResult(
                ok=True,
                data=self._fallback_urls(),
                message=format_service_error(exc, "Unable to read LinkedIn post settings."),
            )

        if row is None:
            return ServiceResult(ok=True, data=self._fallback_urls())

        urls = linkedin_urls_from_value(row.get("value"))
        self.cache.set(LINKEDIN_POSTS_KEY, urls)
        return ServiceResult(ok=True, data=urls)

    def save_linkedin_post_urls(self, raw: RawInputs, access: Optional[AccessLevel]) -> ServiceResult[List[str]]:
        urls = normalize_linkedin_urls(raw, MAX_LINKEDIN_POST_URLS)

        if self.store is None:
            self.cache.set(LINKEDIN_POSTS_KEY, urls)
            return ServiceResult(ok=True, data=urls, message="Saved locally (record store not configured).")

        editor_email = to_trimmed(access.email if access else None).lower()
        if not editor_email:
            return ServiceResult(
                ok=False, data=urls, message="Sign in with an admin account to save website settings."
            )

        try:
            self.store.upsert(
                self.table,
                [{"key": LINKEDIN_POSTS_KEY, "value": {"postUrls": urls}, "updated_by_email": editor_email}],
                on_conflict="key",
            )
        except StoreError as exc:
            message = format_service_error(exc, "Unable to save LinkedIn post settings.")
            if exc.code == MISSING_TABLE_CODE:
                message = f"{exc.message} The {self.table} table is missing; run the latest Supabase SQL migration."
            return ServiceResult(ok=False, data=urls, message=message)

        self.cache.set(LINKEDIN_POSTS_KEY, urls)
        return ServiceResult(ok=True, data=urls)
