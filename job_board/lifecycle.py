"""Job listing lifecycle: drafts, payment, moderation, expiry.

Status flow::

    draft -> pending_payment -> pending_review -> published -> archived
                     \\______(payments off)____/        \\-> changes_requested

Every method performs one read-modify-write against the record store and
returns a `ServiceResult`; store failures are caught here and turned into a
UI-ready message. Side effects that follow a successful write (notifications,
email forwarding, analytics) are best-effort and never change the result.

Payment status is never downgraded: publishing or extending a listing that is
already `paid` or `waived` keeps that status, anything else becomes `waived`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .analytics import track_analytics_event
from .config import Settings, settings as default_settings
from .errors import NO_ROWS_CODE, format_service_error
from .formatting import days_until, format_date, plural_days
from .forwarding import forward_form_by_email
from .models import (
    SETTLED_PAYMENT_STATUSES,
    AccessLevel,
    ExpirySweepCounts,
    FormForwardResult,
    JobDraftInput,
    JobPackageType,
    JobPost,
    PaymentStatus,
    ServiceResult,
    UserIdentity,
    parse_job_row,
    parse_job_rows,
    utc_now,
)
from .notifications import NotificationCenter
from .store import RecordStore, Row, StoreError, eq, in_
from .utils import build_slug, is_valid_email, is_valid_hex_color, is_valid_url, to_nullable, to_trimmed


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Forwarder = Callable[[str, Dict[str, Any]], FormForwardResult]
Tracker = Callable[[str, Dict[str, Any]], Any]

MIN_REVIEW_NOTE_LENGTH = 10
EXPIRED_REVIEW_NOTE = (
    "Listing reached the 3-month limit and was archived. Extend to republish for another 3 months."
)


def validate_draft(draft: JobDraftInput) -> List[str]:
    """All validation failures for a draft, in the order the form shows them."""
    errors: List[str] = []

    if len(to_trimmed(draft.title)) < 4:
        errors.append("Job title must be at least 4 characters.")
    if not to_trimmed(draft.company_name):
        errors.append("Company name is required.")
    if not to_trimmed(draft.location_text):
        errors.append("Job location is required.")
    if not to_trimmed(draft.summary):
        errors.append("A role summary is required.")
    if not to_trimmed(draft.responsibilities):
        errors.append("Responsibilities are required.")
    if not to_trimmed(draft.requirements):
        errors.append("Requirements are required.")
    if not is_valid_email(to_trimmed(draft.posted_by_email)):
        errors.append("A valid contact email is required.")

    external_url = to_nullable(draft.external_apply_url)
    easy_email = draft.easy_apply_email if draft.easy_apply_email is not None else draft.posted_by_email
    easy_apply = draft.application_mode in ("easy_apply", "both")

    if draft.application_mode == "external_apply" and not external_url:
        errors.append("External apply mode needs an apply URL.")
    if draft.application_mode == "both" and not external_url:
        errors.append("Both apply modes selected: external apply URL is required.")
    if easy_apply and not is_valid_email(to_trimmed(easy_email)):
        errors.append("Easy apply mode needs a valid application email.")
    if easy_apply and not draft.easy_apply_fields.collect_email:
        errors.append("Easy apply must collect applicant email.")

    if external_url and not is_valid_url(external_url):
        errors.append("External apply URL must start with http:// or https://.")

    website = to_nullable(draft.company_website)
    if website and not is_valid_url(website):
        errors.append("Company website must start with http:// or https://.")

    logo = to_nullable(draft.brand_logo_url)
    if logo and not is_valid_url(logo):
        errors.append("Brand logo URL must start with http:// or https://.")

    primary = to_nullable(draft.brand_primary_color)
    if primary and not is_valid_hex_color(primary):
        errors.append("Brand primary color must be a valid hex color.")

    secondary = to_nullable(draft.brand_secondary_color)
    if secondary and not is_valid_hex_color(secondary):
        errors.append("Brand secondary color must be a valid hex color.")

    return errors


def build_draft_record(draft: JobDraftInput, slug: str, posted_by_user_id: Optional[str]) -> Row:
    poster_email = to_trimmed(draft.posted_by_email).lower()
    fields = draft.easy_apply_fields
    return {
        "slug": slug,
        "status": "draft",
        "package_type": draft.package_type,
        "title": to_trimmed(draft.title),
        "company_name": to_trimmed(draft.company_name),
        "company_website": to_nullable(draft.company_website),
        "brand_logo_url": to_nullable(draft.brand_logo_url),
        "brand_primary_color": to_nullable(draft.brand_primary_color),
        "brand_secondary_color": to_nullable(draft.brand_secondary_color),
        "location_text": to_trimmed(draft.location_text),
        "location_mode": draft.location_mode,
        "employment_type": draft.employment_type,
        "seniority_level": draft.seniority_level,
        "salary_min": draft.salary_min,
        "salary_max": draft.salary_max,
        "salary_currency": to_trimmed(draft.salary_currency or "AUD").upper(),
        "salary_period": draft.salary_period,
        "summary": to_trimmed(draft.summary),
        "responsibilities": to_trimmed(draft.responsibilities),
        "requirements": to_trimmed(draft.requirements),
        "nice_to_have": to_nullable(draft.nice_to_have),
        "application_mode": draft.application_mode,
        "external_apply_url": to_nullable(draft.external_apply_url),
        "easy_apply_email": to_nullable(draft.easy_apply_email) or poster_email,
        "easy_apply_fields": {
            "collect_name": fields.collect_name,
            "collect_email": True,
            "collect_cv": fields.collect_cv,
            "collect_linkedin": fields.collect_linkedin,
            "collect_cover_letter": fields.collect_cover_letter,
        },
        "application_deadline": to_nullable(draft.application_deadline),
        "contact_name": to_nullable(draft.contact_name),
        "posted_by_email": poster_email,
        "posted_by_user_id": posted_by_user_id,
    }


def settled_payment_status(current: Optional[str]) -> PaymentStatus:
    """Keep a settled payment status as is; anything else becomes `waived`."""
    if current in SETTLED_PAYMENT_STATUSES:
        return current
    return "waived"


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment else None


def _reviewer(access: Optional[AccessLevel]) -> Optional[str]:
    return access.email if access else None


class JobLifecycle:
    """State-changing operations on job listings, plus the expiry sweep."""

    def __init__(
        self,
        store: RecordStore,
        config: Optional[Settings] = None,
        forwarder: Optional[Forwarder] = None,
        analytics: Optional[Tracker] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.config = config or default_settings
        self.table = self.config.JOBS_TABLE
        self.notifications = NotificationCenter(store, self.config)
        self._forward = forwarder or (lambda kind, submission: forward_form_by_email(kind, submission, self.config))
        self._track = analytics or track_analytics_event
        self._now = clock or utc_now

    @property
    def listing_duration(self) -> timedelta:
        return timedelta(days=self.config.LISTING_DURATION_DAYS)

    # ---- store access ----

    def _load(self, job_id: str) -> JobPost:
        row = self.store.select_one(self.table, [eq("id", job_id)])
        if row is None:
            raise StoreError("Job listing not found.", code=NO_ROWS_CODE)
        return parse_job_row(row)

    def _write(self, job_id: str, patch: Row) -> JobPost:
        return parse_job_row(self.store.update(self.table, [eq("id", job_id)], patch))

    # ---- best-effort side effects ----

    def _track_event(self, event: str, properties: Dict[str, Any]) -> None:
        try:
            self._track(event, properties)
        except Exception as exc:
            logger.warning("Analytics hook failed for %r: %s", event, exc)

    def _forward_for_review(self, job: JobPost) -> None:
        submission = {
            "type": "job",
            "source": "jobs-submit",
            "name": job.contact_name,
            "email": job.posted_by_email,
            "company": job.company_name,
            "message": f"Job submitted for review: {job.title}",
            "page_path": "/jobs/submit",
            "received_at": self._now().isoformat(),
            "payload": {
                "job_id": job.id,
                "title": job.title,
                "company_name": job.company_name,
                "package_type": job.package_type,
                "payment_status": job.payment_status,
                "posted_by_email": job.posted_by_email,
                "application_mode": job.application_mode,
                "location_mode": job.location_mode,
                "location_text": job.location_text,
            },
        }
        result = self._forward("job", submission)

        if not result.ok:
            logger.warning("Job forwarding failed for %s: %s", job.id, result.message or "unknown error")
            self._track_event(
                "Job submit forward failed",
                {
                    "form_type": "job_post",
                    "source": "jobs-submit",
                    "job_id": job.id,
                    "company_name": job.company_name,
                    "failure_reason": result.message or "forwarding_failed",
                },
            )
            return

        if not result.skipped:
            self._track_event(
                "Job submitted forwarded",
                {"form_type": "job_post", "source": "jobs-submit", "job_id": job.id, "company_name": job.company_name},
            )

    # ---- poster operations ----

    def save_draft(
        self,
        draft: JobDraftInput,
        draft_id: Optional[str] = None,
        identity: Optional[UserIdentity] = None,
    ) -> ServiceResult[Optional[JobPost]]:
        """Create or update a draft. Validation runs before any store access."""
        errors = validate_draft(draft)
        if errors:
            return ServiceResult(ok=False, data=None, message=errors[0])

        slug = build_slug(draft.title, draft.company_name)
        user_id = identity.user_id if identity else None

        try:
            if draft_id:
                existing = self.store.select_one(self.table, [eq("id", draft_id)])
                if existing and existing.get("slug"):
                    slug = existing["slug"]
            record = build_draft_record(draft, slug, user_id)
            if draft_id:
                job = self._write(draft_id, record)
            else:
                job = parse_job_row(self.store.insert(self.table, record))
        except StoreError as exc:
            return ServiceResult(ok=False, data=None, message=format_service_error(exc, "Unable to save draft."))

        self._track_event(
            "Job draft saved",
            {
                "form_type": "job_post",
                "source": "jobs-submit",
                "draft_id": job.id,
                "job_title": job.title,
                "company_name": job.company_name,
            },
        )
        return ServiceResult(ok=True, data=job)

    def mark_pending_payment(self, job_id: str, package_type: JobPackageType) -> ServiceResult[Optional[JobPost]]:
        try:
            job = self._write(job_id, {"status": "pending_payment", "package_type": package_type})
        except StoreError as exc:
            return ServiceResult(
                ok=False,
                data=None,
                message=format_service_error(exc, "Unable to prepare checkout for this job post."),
            )

        self._track_event(
            "Job publish requested",
            {"form_type": "job_post", "source": "jobs-submit", "draft_id": job_id, "package_type": package_type},
        )
        return ServiceResult(ok=True, data=job)

    def submit_for_review_without_payment(
        self, job_id: str, package_type: JobPackageType
    ) -> ServiceResult[Optional[JobPost]]:
        """Skip checkout when payments are switched off; the fee is waived."""
        try:
            job = self._write(
                job_id,
                {"status": "pending_review", "package_type": package_type, "payment_status": "waived"},
            )
        except StoreError as exc:
            return ServiceResult(
                ok=False,
                data=None,
                message=format_service_error(exc, "Unable to submit this job for admin review."),
            )

        package = job.package_type or package_type
        self.notifications.create(
            "job_submitted",
            "New job listing submitted for review",
            f'{job.company_name} submitted "{job.title}" ({package}).',
            job_post_id=job.id,
            recipient_scope="admin",
            metadata={"package_type": package, "payment_status": "waived"},
        )
        self._forward_for_review(job)
        self._track_event(
            "Job submitted for review (payments disabled)",
            {"form_type": "job_post", "source": "jobs-submit", "draft_id": job_id, "package_type": package_type},
        )
        return ServiceResult(ok=True, data=job)

    def request_publish(self, job_id: str, package_type: JobPackageType) -> ServiceResult[Optional[JobPost]]:
        """Poster's "publish" button: go to checkout, or straight to review when payments are off."""
        if self.config.PAYMENTS_ENABLED:
            return self.mark_pending_payment(job_id, package_type)
        return self.submit_for_review_without_payment(job_id, package_type)

    # ---- admin operations ----

    def mark_paid_and_submit_for_review(
        self, job_id: str, access: Optional[AccessLevel]
    ) -> ServiceResult[Optional[JobPost]]:
        if access is None or not access.can_manage:
            return ServiceResult(
                ok=False, data=None, message="Admin permission is required to mark payment as verified."
            )

        try:
            job = self._write(job_id, {"status": "pending_review", "payment_status": "paid"})
        except StoreError as exc:
            return ServiceResult(
                ok=False,
                data=None,
                message=format_service_error(exc, "Unable to submit this paid job for review."),
            )

        self.notifications.create(
            "job_payment_succeeded",
            "Payment received: job ready for review",
            f'{job.company_name} submitted payment for "{job.title}".',
            job_post_id=job.id,
            recipient_scope="admin",
            metadata={"package_type": job.package_type, "payment_status": job.payment_status},
        )
        self._forward_for_review(job)
        return ServiceResult(ok=True, data=job)

    def publish(
        self,
        job_id: str,
        review_note: Optional[str] = None,
        access: Optional[AccessLevel] = None,
    ) -> ServiceResult[Optional[JobPost]]:
        now = self._now()
        try:
            existing = self._load(job_id)
            job = self._write(
                job_id,
                {
                    "status": "published",
                    "payment_status": settled_payment_status(existing.payment_status),
                    "published_at": now.isoformat(),
                    "publish_expires_at": (now + self.listing_duration).isoformat(),
                    "review_note": to_nullable(review_note),
                    "last_reviewed_by_email": _reviewer(access),
                    "last_reviewed_at": now.isoformat(),
                },
            )
        except StoreError as exc:
            return ServiceResult(ok=False, data=None, message=format_service_error(exc, "Unable to publish this job."))

        self.notifications.create(
            "job_published",
            "Job listing published",
            f'Your listing "{job.title}" is now live on the DAWS job board.',
            job_post_id=job.id,
            recipient_scope="poster",
            recipient_email=job.posted_by_email,
            metadata={"expires_at": _iso(job.publish_expires_at)},
        )
        self._track_event(
            "Job published by admin",
            {
                "source": "admin-jobs",
                "job_id": job.id,
                "package_type": job.package_type,
                "payment_status": job.payment_status,
            },
        )
        return ServiceResult(ok=True, data=job)

    def request_changes(
        self,
        job_id: str,
        review_note: str,
        access: Optional[AccessLevel] = None,
    ) -> ServiceResult[Optional[JobPost]]:
        note = to_trimmed(review_note)
        if len(note) < MIN_REVIEW_NOTE_LENGTH:
            return ServiceResult(
                ok=False, data=None, message="Add a short review note so the poster knows what to update."
            )

        now = self._now()
        try:
            job = self._write(
                job_id,
                {
                    "status": "changes_requested",
                    "review_note": note,
                    "last_reviewed_by_email": _reviewer(access),
                    "last_reviewed_at": now.isoformat(),
                },
            )
        except StoreError as exc:
            return ServiceResult(
                ok=False,
                data=None,
                message=format_service_error(exc, "Unable to request changes for this listing."),
            )

        self.notifications.create(
            "job_changes_requested",
            "Changes requested on your job listing",
            note,
            job_post_id=job.id,
            recipient_scope="poster",
            recipient_email=job.posted_by_email,
            metadata={"status": job.status},
        )
        return ServiceResult(ok=True, data=job)

    def archive(
        self,
        job_id: str,
        review_note: Optional[str] = None,
        access: Optional[AccessLevel] = None,
    ) -> ServiceResult[Optional[JobPost]]:
        now = self._now()
        try:
            job = self._write(
                job_id,
                {
                    "status": "archived",
                    "review_note": to_nullable(review_note),
                    "last_reviewed_by_email": _reviewer(access),
                    "last_reviewed_at": now.isoformat(),
                },
            )
        except StoreError as exc:
            return ServiceResult(
                ok=False, data=None, message=format_service_error(exc, "Unable to archive this listing.")
            )

        self.notifications.create(
            "job_archived",
            "Job listing archived",
            f'Your listing "{job.title}" has been archived.',
            job_post_id=job.id,
            recipient_scope="poster",
            recipient_email=job.posted_by_email,
            metadata={"archived_at": now.isoformat()},
        )
        return ServiceResult(ok=True, data=job)

    def extend(self, job_id: str, access: Optional[AccessLevel] = None) -> ServiceResult[Optional[JobPost]]:
        """Republish for another listing period.

        The new period starts at the current expiry while that is still in the
        future, so extending early never shortens the remaining time. Archived
        or lapsed listings restart from now.
        """
        now = self._now()
        try:
            existing = self._load(job_id)
            base = existing.publish_expires_at
            if base is None or base <= now:
                base = now
            next_expiry = base + self.listing_duration
            job = self._write(
                job_id,
                {
                    "status": "published",
                    "payment_status": settled_payment_status(existing.payment_status),
                    "published_at": _iso(existing.published_at) or now.isoformat(),
                    "publish_expires_at": next_expiry.isoformat(),
                    "last_reviewed_by_email": _reviewer(access),
                    "last_reviewed_at": now.isoformat(),
                },
            )
        except StoreError as exc:
            return ServiceResult(
                ok=False, data=None, message=format_service_error(exc, "Unable to extend this listing.")
            )

        self.notifications.create(
            "job_extended",
            "Job listing extended by 3 months",
            f'Your listing "{job.title}" is now active until {format_date(next_expiry)}.',
            job_post_id=job.id,
            recipient_scope="poster",
            recipient_email=job.posted_by_email,
            metadata={"expires_at": _iso(job.publish_expires_at)},
        )
        return ServiceResult(ok=True, data=job)

    # ---- expiry sweep ----

    def sync_expiry_alerts(self, access: Optional[AccessLevel] = None) -> ServiceResult[ExpirySweepCounts]:
        """Archive lapsed listings and warn about ones close to expiry.

        Safe to run repeatedly: expiry and expiring-soon notifications are
        deduplicated per job and recipient. A failure on one listing is logged
        and the sweep moves on to the next.
        """
        try:
            rows = self.store.select(
                self.table,
                [eq("status", "published"), in_("payment_status", SETTLED_PAYMENT_STATUSES)],
            )
        except StoreError as exc:
            return ServiceResult(
                ok=False,
                data=ExpirySweepCounts(),
                message=format_service_error(exc, "Unable to check listing expiry alerts."),
            )

        counts = ExpirySweepCounts()
        now = self._now()
        window = self.config.EXPIRING_SOON_WINDOW_DAYS

        for job in parse_job_rows(rows):
            if job.publish_expires_at is None:
                continue

            days_remaining = days_until(job.publish_expires_at, now)

            if days_remaining <= 0:
                counts.expired += 1
                archived = self.archive(job.id, EXPIRED_REVIEW_NOTE, access)
                if not archived.ok:
                    logger.warning("Could not archive expired job %s: %s", job.id, archived.message)
                    continue
                self.notifications.create(
                    "job_expired",
                    "Job listing expired",
                    f'"{job.title}" has reached its 3-month limit and was archived.',
                    job_post_id=job.id,
                    recipient_scope="admin",
                    metadata={"job_id": job.id},
                    dedupe=True,
                )
                self.notifications.create(
                    "job_expired",
                    "Your job listing expired",
                    f'"{job.title}" reached its 3-month limit and was archived. You can request a 3-month extension.',
                    job_post_id=job.id,
                    recipient_scope="poster",
                    recipient_email=job.posted_by_email,
                    metadata={"job_id": job.id},
                    dedupe=True,
                )
                continue

            if days_remaining <= window:
                counts.expiring_soon += 1
                remaining = plural_days(days_remaining)
                self.notifications.create(
                    "job_expiring_soon",
                    "Job listing expiring soon",
                    f'"{job.title}" expires in {remaining}.',
                    job_post_id=job.id,
                    recipient_scope="admin",
                    metadata={"days_remaining": days_remaining},
                    dedupe=True,
                )
                self.notifications.create(
                    "job_expiring_soon",
                    "Your job listing expires soon",
                    f'"{job.title}" expires in {remaining}. Contact DAWS to extend for another 3 months.',
                    job_post_id=job.id,
                    recipient_scope="poster",
                    recipient_email=job.posted_by_email,
                    metadata={"days_remaining": days_remaining},
                    dedupe=True,
                )

        logger.info("Expiry sweep: %d expiring soon, %d expired", counts.expiring_soon, counts.expired)
        return ServiceResult(ok=True, data=counts)
