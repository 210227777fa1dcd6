"""Data models for the job board.

Rows arrive from the external store as untyped JSON. Each entity here is the
single place those rows are parsed: `parse_job_row(row)` coerces
timestamps, defaults malformed JSON columns and normalises emails, so the rest
of the package can trust the shape it gets. A row that still cannot be read
surfaces as `MalformedRowError`, a kind of `StoreError`.

This file uses Pydantic v2.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .store.base import MalformedRowError, Row


logger = logging.getLogger(__name__)


JobStatus = Literal[
    "draft",
    "pending_payment",
    "pending_review",
    "changes_requested",
    "published",
    "archived",
]
PaymentStatus = Literal["unpaid", "paid", "refunded", "waived"]
JobPackageType = Literal["standard", "amplified"]
ApplicationMode = Literal["easy_apply", "external_apply", "both"]
LocationMode = Literal["remote", "hybrid", "onsite"]
EmploymentType = Literal["full-time", "part-time", "contract", "internship", "temporary"]
SeniorityLevel = Literal["entry", "mid", "senior", "lead", "manager", "director"]
SalaryPeriod = Literal["year", "month", "day", "hour"]

NotificationEvent = Literal[
    "job_submitted",
    "job_payment_succeeded",
    "job_published",
    "job_changes_requested",
    "job_archived",
    "job_expiring_soon",
    "job_expired",
    "job_extended",
]
RecipientScope = Literal["admin", "poster", "all"]
NotificationStatus = Literal["unread", "read"]

SETTLED_PAYMENT_STATUSES = ("paid", "waived")

T = TypeVar("T")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a store timestamp into an aware datetime; None if unusable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ServiceResult(BaseModel, Generic[T]):
    """Uniform return shape of every public operation.

    Callers check `ok`; `message` explains a failure (or carries an advisory
    note on success).
    """

    ok: bool
    data: T
    message: Optional[str] = None


class EasyApplyFields(BaseModel):
    """Which applicant fields an easy-apply form collects."""

    collect_name: bool = True
    collect_email: bool = True
    collect_cv: bool = True
    collect_linkedin: bool = True
    collect_cover_letter: bool = True

    @model_validator(mode="before")
    @classmethod
    def _accept_either_case(cls, value: Any) -> Dict[str, bool]:
        if isinstance(value, EasyApplyFields):
            return value.model_dump()
        # Rows written by older clients use camelCase keys.
        source = value if isinstance(value, dict) else {}
        out: Dict[str, bool] = {}
        for name in ("collect_name", "collect_email", "collect_cv", "collect_linkedin", "collect_cover_letter"):
            head, *rest = name.split("_")
            camel = head + "".join(part.capitalize() for part in rest)
            raw = source.get(camel, source.get(name))
            out[name] = raw if isinstance(raw, bool) else True
        return out


class JobPost(BaseModel):
    """A job listing as stored, with its moderation lifecycle fields."""

    id: str
    slug: str
    status: JobStatus = "draft"
    package_type: Optional[JobPackageType] = None
    payment_status: PaymentStatus = "unpaid"

    title: str
    company_name: str
    company_website: Optional[str] = None
    brand_logo_url: Optional[str] = None
    brand_primary_color: Optional[str] = None
    brand_secondary_color: Optional[str] = None

    location_text: str = ""
    location_mode: LocationMode = "onsite"
    employment_type: EmploymentType = "full-time"
    seniority_level: SeniorityLevel = "mid"

    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: str = "AUD"
    salary_period: SalaryPeriod = "year"

    summary: str = ""
    responsibilities: str = ""
    requirements: str = ""
    nice_to_have: Optional[str] = None

    application_mode: ApplicationMode = "external_apply"
    external_apply_url: Optional[str] = None
    easy_apply_email: Optional[str] = None
    easy_apply_fields: EasyApplyFields = Field(default_factory=EasyApplyFields)
    application_deadline: Optional[str] = None
    contact_name: Optional[str] = None

    posted_by_email: str
    posted_by_user_id: Optional[str] = None
    stripe_checkout_session_id: Optional[str] = None

    published_at: Optional[datetime] = None
    publish_expires_at: Optional[datetime] = None
    review_note: Optional[str] = None
    last_reviewed_by_email: Optional[str] = None
    last_reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "published_at",
        "publish_expires_at",
        "last_reviewed_at",
        "created_at",
        "updated_at",
        mode="before",
    )
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @field_validator("easy_apply_fields", mode="before")
    @classmethod
    def _default_fields(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, EasyApplyFields)) else {}

    @field_validator("easy_apply_fields")
    @classmethod
    def _always_collect_email(cls, value: EasyApplyFields) -> EasyApplyFields:
        return value.model_copy(update={"collect_email": True})

    @field_validator("posted_by_email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("salary_currency", mode="before")
    @classmethod
    def _default_currency(cls, value: Any) -> str:
        return str(value or "AUD").strip().upper()

    def is_publicly_visible(self, now: Optional[datetime] = None) -> bool:
        """Published, settled, and not past its expiry at `now`."""
        if self.status != "published" or self.payment_status not in SETTLED_PAYMENT_STATUSES:
            return False
        if self.publish_expires_at is None:
            return True
        return self.publish_expires_at > (now or utc_now())


def parse_job_row(row: Row) -> JobPost:
    """Parse one stored row, raising `MalformedRowError` if it cannot be read."""
    try:
        return JobPost.model_validate(row)
    except ValidationError as exc:
        raise MalformedRowError(
            f"Job listing {row.get('id') or '(unknown)'} has unreadable fields and needs fixing in the database."
        ) from exc


def parse_job_rows(rows: List[Row]) -> List[JobPost]:
    jobs: List[JobPost] = []
    for row in rows:
        try:
            jobs.append(parse_job_row(row))
        except MalformedRowError as exc:
            logger.warning("Skipping unreadable job row %s: %s", row.get("id"), exc.__cause__)
    return jobs


class JobDraftInput(BaseModel):
    """What a poster submits from the job form."""

    title: str = ""
    company_name: str = ""
    package_type: Optional[JobPackageType] = None
    company_website: Optional[str] = None
    brand_logo_url: Optional[str] = None
    brand_primary_color: Optional[str] = None
    brand_secondary_color: Optional[str] = None
    location_text: str = ""
    location_mode: LocationMode = "onsite"
    employment_type: EmploymentType = "full-time"
    seniority_level: SeniorityLevel = "mid"
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: str = "AUD"
    salary_period: SalaryPeriod = "year"
    summary: str = ""
    responsibilities: str = ""
    requirements: str = ""
    nice_to_have: Optional[str] = None
    application_mode: ApplicationMode = "external_apply"
    external_apply_url: Optional[str] = None
    easy_apply_email: Optional[str] = None
    easy_apply_fields: EasyApplyFields = Field(default_factory=EasyApplyFields)
    application_deadline: Optional[str] = None
    contact_name: Optional[str] = None
    posted_by_email: str = ""


class JobApplicationInput(BaseModel):
    job_post_id: str
    applicant_name: str
    applicant_email: str
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    resume_url: Optional[str] = None
    cover_note: Optional[str] = None


class AdminNotification(BaseModel):
    """A lifecycle event addressed to admins, the poster, or both."""

    id: str
    job_post_id: Optional[str] = None
    event_type: NotificationEvent
    title: str
    message: str
    recipient_scope: RecipientScope = "admin"
    recipient_email: Optional[str] = None
    status: NotificationStatus = "unread"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @field_validator("created_at", "read_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)


class JobPackage(BaseModel):
    type: JobPackageType
    title: str
    price_aud: int
    description: str
    benefits: List[str] = Field(default_factory=list)


JOB_PACKAGES: List[JobPackage] = [
    JobPackage(
        type="standard",
        title="Standard Listing",
        price_aud=150,
        description="Job listing published on the DAWS job board for 3 months.",
        benefits=[
            "Live on the job board for 90 days",
            "Visible to data and analytics professionals browsing the community site",
            "Role detail page with company + role highlights",
        ],
    ),
    JobPackage(
        type="amplified",
        title="Amplified Reach",
        price_aud=950,
        description="Job board listing plus newsletter and on-stage event promotion.",
        benefits=[
            "Everything in Standard Listing",
            "3 newsletter pushes to the DAWS mailing list",
            "Live announcement at a DAWS event to 100+ in-person attendees",
        ],
    ),
]


class UserIdentity(BaseModel):
    """The signed-in user, as reported by the external auth provider."""

    user_id: Optional[str] = None
    email: Optional[str] = None


class AccessLevel(BaseModel):
    """Capability passed explicitly to privileged operations."""

    mode: Literal["store", "local"] = "store"
    email: Optional[str] = None
    can_manage: bool = False


class ExpirySweepCounts(BaseModel):
    expiring_soon: int = 0
    expired: int = 0


class FormForwardResult(BaseModel):
    ok: bool
    skipped: bool = False
    message: Optional[str] = None


class CheckoutSession(BaseModel):
    url: str
    mode: Literal["endpoint", "payment_link"]


class LinkedInEmbedPost(BaseModel):
    id: str
    source_url: str
    embed_url: str
