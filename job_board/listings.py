"""Read paths for job listings, and easy-apply applications.

Public reads re-check visibility on every call: a listing whose expiry has
passed is hidden even if the expiry sweep has not archived it yet.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from .analytics import track_analytics_event
from .config import Settings, settings as default_settings
from .errors import format_service_error
from .models import (
    SETTLED_PAYMENT_STATUSES,
    JobApplicationInput,
    JobPost,
    ServiceResult,
    UserIdentity,
    parse_job_row,
    parse_job_rows,
    utc_now,
)
from .store import RecordStore, StoreError, eq, in_
from .utils import is_valid_email, is_valid_url, to_nullable, to_trimmed


logger = logging.getLogger(__name__)


class JobListings:
    def __init__(
        self,
        store: RecordStore,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        analytics: Optional[Callable[..., object]] = None,
    ) -> None:
        self.store = store
        self.config = config or default_settings
        self._now = clock or utc_now
        self._track = analytics or track_analytics_event

    @property
    def table(self) -> str:
        return self.config.JOBS_TABLE

    def _published_filters(self):
        return [eq("status", "published"), in_("payment_status", SETTLED_PAYMENT_STATUSES)]

    def fetch_published_jobs(self) -> ServiceResult[List[JobPost]]:
        """Live listings, newest first."""
        try:
            rows = self.store.select(self.table, self._published_filters(), order_by="published_at", descending=True)
        except StoreError as exc:
            return ServiceResult(ok=False, data=[], message=format_service_error(exc, "Unable to load job listings."))

        now = self._now()
        return ServiceResult(ok=True, data=[j for j in parse_job_rows(rows) if j.is_publicly_visible(now)])

    def fetch_published_job_by_slug(self, slug: str) -> ServiceResult[Optional[JobPost]]:
        try:
            row = self.store.select_one(self.table, [eq("slug", slug), *self._published_filters()])
            job = parse_job_row(row) if row is not None else None
        except StoreError as exc:
            return ServiceResult(
                ok=False, data=None, message=format_service_error(exc, "Unable to load this job posting.")
            )

        if job is None:
            return ServiceResult(ok=False, data=None, message="This job is not available.")

        if not job.is_publicly_visible(self._now()):
            return ServiceResult(ok=False, data=None, message="This job is no longer active.")
        return ServiceResult(ok=True, data=job)

    def fetch_admin_jobs(self, status: str = "all") -> ServiceResult[List[JobPost]]:
        filters = [] if status == "all" else [eq("status", status)]
        try:
            rows = self.store.select(self.table, filters, order_by="created_at", descending=True)
        except StoreError as exc:
            return ServiceResult(
                ok=False, data=[], message=format_service_error(exc, "Unable to load admin job queue.")
            )
        return ServiceResult(ok=True, data=parse_job_rows(rows))

    def fetch_draft_for_owner(
        self, draft_id: str, identity: Optional[UserIdentity]
    ) -> ServiceResult[Optional[JobPost]]:
        """Load a draft for the poster who owns it (by user id or email)."""
        email = to_trimmed(identity.email if identity else None).lower()
        if not email:
            return ServiceResult(
                ok=False, data=None, message="Please sign in from your draft access email link first."
            )

        try:
            row = self.store.select_one(self.table, [eq("id", draft_id)])
            job = parse_job_row(row) if row is not None else None
        except StoreError as exc:
            return ServiceResult(ok=False, data=None, message=format_service_error(exc, "Unable to load draft job."))

        if job is None:
            return ServiceResult(ok=False, data=None, message="Draft not found or access expired.")

        owns_by_id = identity.user_id is not None and job.posted_by_user_id == identity.user_id
        if not owns_by_id and job.posted_by_email != email:
            return ServiceResult(
                ok=False, data=None, message="This draft belongs to a different email account."
            )
        return ServiceResult(ok=True, data=job)

    def submit_job_application(self, application: JobApplicationInput) -> ServiceResult[None]:
        name = to_trimmed(application.applicant_name)
        email = to_trimmed(application.applicant_email).lower()

        if len(name) < 2:
            return ServiceResult(ok=False, data=None, message="Please enter your full name.")
        if not is_valid_email(email):
            return ServiceResult(ok=False, data=None, message="Please enter a valid email address.")
        if application.linkedin_url and not is_valid_url(application.linkedin_url):
            return ServiceResult(ok=False, data=None, message="LinkedIn URL must start with http:// or https://.")
        if application.resume_url and not is_valid_url(application.resume_url):
            return ServiceResult(ok=False, data=None, message="Resume URL must start with http:// or https://.")

        try:
            self.store.insert(
                self.config.JOB_APPLICATIONS_TABLE,
                {
                    "job_post_id": application.job_post_id,
                    "applicant_name": name,
                    "applicant_email": email,
                    "phone": to_nullable(application.phone),
                    "linkedin_url": to_nullable(application.linkedin_url),
                    "resume_url": to_nullable(application.resume_url),
                    "cover_note": to_nullable(application.cover_note),
                },
            )
        except StoreError as exc:
            return ServiceResult(
                ok=False, data=None, message=format_service_error(exc, "Unable to submit application.")
            )

        try:
            self._track(
                "Job application submitted",
                {"form_type": "easy_apply", "source": "job-detail", "email": email, "job_id": application.job_post_id},
            )
        except Exception as exc:
            logger.warning("Analytics hook failed for application on %s: %s", application.job_post_id, exc)
        return ServiceResult(ok=True, data=None)
