from datetime import timedelta

import pytest

from job_board.lifecycle import EXPIRED_REVIEW_NOTE, JobLifecycle, settled_payment_status, validate_draft
from job_board.models import AccessLevel, EasyApplyFields, JobDraftInput, JobPost, UserIdentity
from job_board.store import InMemoryRecordStore, StoreError


ADMIN = AccessLevel(mode="store", email="admin@daws.test", can_manage=True)


def valid_draft(**overrides) -> JobDraftInput:
    fields = dict(
        title="Senior Data Engineer",
        company_name="Acme Analytics",
        location_text="Melbourne VIC",
        summary="Own our pipelines.",
        responsibilities="Build and run ELT.",
        requirements="Python, SQL.",
        application_mode="external_apply",
        external_apply_url="https://acme.test/jobs/42",
        posted_by_email="  Hiring@Acme.TEST ",
        salary_currency="aud",
    )
    fields.update(overrides)
    return JobDraftInput(**fields)


def job_row(store, config, job_id):
    return next(r for r in store.rows(config.JOBS_TABLE) if r["id"] == job_id)


# ---- drafts ----


def test_invalid_draft_returns_first_error_and_writes_nothing(lifecycle, store, config):
    result = lifecycle.save_draft(valid_draft(title="abc", company_name=""))
    assert not result.ok
    assert result.message == "Job title must be at least 4 characters."
    assert store.rows(config.JOBS_TABLE) == []


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"application_mode": "external_apply", "external_apply_url": " "}, "External apply mode needs an apply URL."),
        ({"application_mode": "both", "external_apply_url": None}, "Both apply modes selected: external apply URL is required."),
        ({"application_mode": "easy_apply", "easy_apply_email": "nope"}, "Easy apply mode needs a valid application email."),
        (
            {"application_mode": "easy_apply", "easy_apply_fields": EasyApplyFields(collect_email=False)},
            "Easy apply must collect applicant email.",
        ),
        ({"external_apply_url": "ftp://acme.test"}, "External apply URL must start with http:// or https://."),
        ({"company_website": "acme.test"}, "Company website must start with http:// or https://."),
        ({"brand_primary_color": "red"}, "Brand primary color must be a valid hex color."),
        ({"brand_secondary_color": "#12345"}, "Brand secondary color must be a valid hex color."),
        ({"posted_by_email": "not-an-email"}, "A valid contact email is required."),
    ],
)
def test_draft_validation_messages(overrides, message):
    assert validate_draft(valid_draft(**overrides))[0] == message


def test_save_new_draft(lifecycle, tracked):
    result = lifecycle.save_draft(
        valid_draft(application_mode="easy_apply", external_apply_url=None),
        identity=UserIdentity(user_id="user-1", email="hiring@acme.test"),
    )
    assert result.ok
    job = result.data
    assert job.status == "draft"
    assert job.payment_status == "unpaid"
    assert job.slug.startswith("senior-data-engineer-acme-analytics-")
    assert len(job.slug.rsplit("-", 1)[-1]) == 8
    assert job.posted_by_email == "hiring@acme.test"
    assert job.easy_apply_email == "hiring@acme.test"
    assert job.salary_currency == "AUD"
    assert job.posted_by_user_id == "user-1"
    assert tracked[-1][0] == "Job draft saved"


def test_updating_draft_keeps_slug(lifecycle):
    first = lifecycle.save_draft(valid_draft()).data
    second = lifecycle.save_draft(valid_draft(title="Lead Data Engineer"), draft_id=first.id)
    assert second.ok
    assert second.data.id == first.id
    assert second.data.slug == first.slug
    assert second.data.title == "Lead Data Engineer"


def test_updating_missing_draft_reports_store_error(lifecycle):
    result = lifecycle.save_draft(valid_draft(), draft_id="missing")
    assert not result.ok
    assert "rows returned" in result.message


# ---- submission and payment ----


def test_request_publish_with_payments_goes_to_checkout(lifecycle, add_job):
    job_id = add_job()["id"]
    result = lifecycle.request_publish(job_id, "amplified")
    assert result.ok
    assert result.data.status == "pending_payment"
    assert result.data.package_type == "amplified"


def test_request_publish_without_payments_waives_fee(store, config, forwarded, add_job, notifications_of):
    config.PAYMENTS_ENABLED = False
    lifecycle = JobLifecycle(store, config, forwarder=lambda k, s: forwarded.append((k, s)) or _ok(), analytics=_noop)
    job_id = add_job()["id"]

    result = lifecycle.request_publish(job_id, "standard")

    assert result.ok
    assert result.data.status == "pending_review"
    assert result.data.payment_status == "waived"
    [note] = notifications_of("job_submitted")
    assert note["recipient_scope"] == "admin"
    assert note["message"] == 'Acme Analytics submitted "Data Analyst" (standard).'
    assert forwarded[0][0] == "job"
    assert forwarded[0][1]["payload"]["job_id"] == job_id


def test_mark_paid_requires_admin(lifecycle, store, config, add_job, notifications_of):
    job_id = add_job(status="pending_payment")["id"]
    for access in (None, AccessLevel(email="someone@x.test", can_manage=False)):
        result = lifecycle.mark_paid_and_submit_for_review(job_id, access)
        assert not result.ok
        assert result.message == "Admin permission is required to mark payment as verified."
    row = job_row(store, config, job_id)
    assert row["status"] == "pending_payment"
    assert row["payment_status"] == "unpaid"
    assert notifications_of() == []


def test_mark_paid_submits_for_review(lifecycle, add_job, notifications_of, forwarded):
    job_id = add_job(status="pending_payment")["id"]
    result = lifecycle.mark_paid_and_submit_for_review(job_id, ADMIN)
    assert result.ok
    assert result.data.status == "pending_review"
    assert result.data.payment_status == "paid"
    [note] = notifications_of("job_payment_succeeded")
    assert note["title"] == "Payment received: job ready for review"
    assert len(forwarded) == 1


def test_failed_forwarding_does_not_fail_submission(store, config, add_job, tracked):
    from job_board.models import FormForwardResult

    lifecycle = JobLifecycle(
        store,
        config,
        forwarder=lambda k, s: FormForwardResult(ok=False, message="Form forwarding timed out."),
        analytics=lambda e, p: tracked.append((e, p)),
    )
    result = lifecycle.mark_paid_and_submit_for_review(add_job()["id"], ADMIN)
    assert result.ok
    assert tracked[-1][0] == "Job submit forward failed"
    assert tracked[-1][1]["failure_reason"] == "Form forwarding timed out."


# ---- moderation ----


def test_publish_sets_window_and_stamps_reviewer(lifecycle, add_job, now, notifications_of):
    job_id = add_job(status="pending_review", payment_status="unpaid")["id"]
    result = lifecycle.publish(job_id, " Looks good ", ADMIN)
    job = result.data
    assert result.ok
    assert job.status == "published"
    assert job.payment_status == "waived"
    assert job.published_at == now
    assert job.publish_expires_at == now + timedelta(days=90)
    assert job.review_note == "Looks good"
    assert job.last_reviewed_by_email == "admin@daws.test"
    [note] = notifications_of("job_published")
    assert note["recipient_scope"] == "poster"
    assert note["recipient_email"] == "poster@acme.test"


@pytest.mark.parametrize("status", ["paid", "waived"])
def test_publish_never_changes_settled_payment(lifecycle, add_job, status):
    job_id = add_job(status="pending_review", payment_status=status)["id"]
    assert lifecycle.publish(job_id).data.payment_status == status


def test_publish_missing_job(lifecycle):
    result = lifecycle.publish("nope")
    assert not result.ok
    assert result.message == "Job listing not found."


def test_request_changes_needs_a_note(lifecycle, store, config, add_job):
    job_id = add_job(status="pending_review")["id"]
    result = lifecycle.request_changes(job_id, "  too short ")
    assert not result.ok
    assert result.message == "Add a short review note so the poster knows what to update."
    assert job_row(store, config, job_id)["status"] == "pending_review"


def test_request_changes(lifecycle, add_job, notifications_of):
    job_id = add_job(status="pending_review")["id"]
    result = lifecycle.request_changes(job_id, "Please add a salary range.", ADMIN)
    assert result.ok
    assert result.data.status == "changes_requested"
    assert result.data.review_note == "Please add a salary range."
    [note] = notifications_of("job_changes_requested")
    assert note["message"] == "Please add a salary range."


def test_archive(lifecycle, add_job, notifications_of):
    job_id = add_job(status="published", payment_status="paid")["id"]
    result = lifecycle.archive(job_id)
    assert result.ok
    assert result.data.status == "archived"
    assert result.data.review_note is None
    [note] = notifications_of("job_archived")
    assert note["message"] == 'Your listing "Data Analyst" has been archived.'


# ---- extension ----


def test_extend_adds_to_remaining_time(lifecycle, add_job, now):
    published_at = now - timedelta(days=80)
    job_id = add_job(
        status="published",
        payment_status="paid",
        published_at=published_at,
        publish_expires_at=now + timedelta(days=10),
    )["id"]

    job = lifecycle.extend(job_id, ADMIN).data

    assert job.publish_expires_at == now + timedelta(days=100)
    assert job.published_at == published_at
    assert job.payment_status == "paid"


def test_extend_lapsed_listing_restarts_from_now(lifecycle, add_job, now, notifications_of):
    job_id = add_job(
        status="archived",
        payment_status="unpaid",
        publish_expires_at=now - timedelta(days=3),
    )["id"]

    job = lifecycle.extend(job_id).data

    assert job.status == "published"
    assert job.publish_expires_at == now + timedelta(days=90)
    assert job.published_at == now
    assert job.payment_status == "waived"
    [note] = notifications_of("job_extended")
    assert note["message"] == 'Your listing "Data Analyst" is now active until 30/05/2026.'


# ---- expiry sweep ----


def test_sweep_archives_expired_listing(lifecycle, store, config, add_job, now, notifications_of):
    job_id = add_job(
        status="published",
        payment_status="paid",
        publish_expires_at=now - timedelta(seconds=1),
    )["id"]

    result = lifecycle.sync_expiry_alerts(ADMIN)

    assert result.ok
    assert result.data.expired == 1
    assert result.data.expiring_soon == 0
    row = job_row(store, config, job_id)
    assert row["status"] == "archived"
    assert row["review_note"] == EXPIRED_REVIEW_NOTE
    scopes = sorted(n["recipient_scope"] for n in notifications_of("job_expired"))
    assert scopes == ["admin", "poster"]


def test_sweep_warns_once_per_recipient(lifecycle, add_job, now, notifications_of):
    add_job(status="published", payment_status="waived", publish_expires_at=now + timedelta(days=5, hours=2))
    add_job(status="published", payment_status="paid", publish_expires_at=now + timedelta(days=40))
    add_job(status="published", payment_status="unpaid", publish_expires_at=now + timedelta(days=2))

    first = lifecycle.sync_expiry_alerts()
    second = lifecycle.sync_expiry_alerts()

    assert first.data.expiring_soon == 1
    assert second.data.expiring_soon == 1
    notes = notifications_of("job_expiring_soon")
    assert sorted(n["recipient_scope"] for n in notes) == ["admin", "poster"]
    admin_note = next(n for n in notes if n["recipient_scope"] == "admin")
    assert admin_note["message"] == '"Data Analyst" expires in 6 days.'
    assert admin_note["metadata"] == {"days_remaining": 6}


class FlakyStore(InMemoryRecordStore):
    def __init__(self, failing_id):
        super().__init__()
        self.failing_id = failing_id

    def update(self, table, filters, patch):
        if any(f.column == "id" and f.value == self.failing_id for f in filters):
            raise StoreError("connection reset")
        return super().update(table, filters, patch)


def test_sweep_continues_after_failed_archive(config, now):
    store = FlakyStore(failing_id=None)
    lifecycle = JobLifecycle(store, config, forwarder=lambda k, s: _ok(), analytics=_noop, clock=lambda: now)
    base = {
        "title": "Analyst",
        "company_name": "Acme",
        "posted_by_email": "p@acme.test",
        "status": "published",
        "payment_status": "paid",
        "publish_expires_at": (now - timedelta(days=1)).isoformat(),
    }
    broken = store.insert(config.JOBS_TABLE, dict(base, slug="broken"))
    healthy = store.insert(config.JOBS_TABLE, dict(base, slug="healthy"))
    store.failing_id = broken["id"]

    result = lifecycle.sync_expiry_alerts()

    assert result.ok
    assert result.data.expired == 2
    rows = {r["slug"]: r for r in store.rows(config.JOBS_TABLE)}
    assert rows["broken"]["status"] == "published"
    assert rows["healthy"]["status"] == "archived"
    expired_for = {n["job_post_id"] for n in store.rows(config.JOB_ADMIN_NOTIFICATIONS_TABLE) if n["event_type"] == "job_expired"}
    assert expired_for == {healthy["id"]}


def test_sweep_reports_store_failure(config):
    class DownStore(InMemoryRecordStore):
        def select(self, *args, **kwargs):
            raise StoreError("stack depth limit exceeded")

    result = JobLifecycle(DownStore(), config, analytics=_noop).sync_expiry_alerts()
    assert not result.ok
    assert result.data.expired == 0
    assert result.message.startswith("Database policy recursion detected.")


def test_sweep_leaves_rows_parseable(lifecycle, store, config, add_job, now):
    add_job(status="published", payment_status="paid", publish_expires_at=now - timedelta(days=1))
    lifecycle.sync_expiry_alerts()
    for row in store.rows(config.JOBS_TABLE):
        JobPost.model_validate(row)


def _ok():
    from job_board.models import FormForwardResult

    return FormForwardResult(ok=True)


def _noop(event, props):
    return None


# ---- rows the store returns in an unreadable shape ----


def test_extend_unreadable_row_returns_message(lifecycle, store, config, add_job, now):
    job_id = add_job(status="archived", employment_type="weird", publish_expires_at=now - timedelta(days=1))["id"]

    result = lifecycle.extend(job_id, ADMIN)

    assert not result.ok
    assert result.message == f"Job listing {job_id} has unreadable fields and needs fixing in the database."
    assert job_row(store, config, job_id)["status"] == "archived"


def test_publish_unreadable_row_writes_nothing(lifecycle, store, config, add_job):
    job_id = add_job(status="pending_review", payment_status="paid", salary_period="week")["id"]

    result = lifecycle.publish(job_id, access=ADMIN)

    assert not result.ok
    assert job_row(store, config, job_id)["status"] == "pending_review"


def test_sweep_skips_unreadable_rows(lifecycle, store, config, add_job, now):
    expired = now - timedelta(days=1)
    add_job(slug="bad", status="published", payment_status="paid", publish_expires_at=expired, salary_period="week")
    add_job(slug="good", status="published", payment_status="paid", publish_expires_at=expired)

    result = lifecycle.sync_expiry_alerts()

    assert result.ok
    assert result.data.expired == 1
    rows = {r["slug"]: r for r in store.rows(config.JOBS_TABLE)}
    assert rows["good"]["status"] == "archived"
    assert rows["bad"]["status"] == "published"


@pytest.mark.parametrize(
    "current, settled",
    [("paid", "paid"), ("waived", "waived"), ("unpaid", "waived"), ("refunded", "waived"), (None, "waived")],
)
def test_settled_payment_status(current, settled):
    assert settled_payment_status(current) == settled
