from __future__ import annotations

from datetime import datetime, timezone

import pytest

from job_board.config import Settings
from job_board.lifecycle import JobLifecycle
from job_board.listings import JobListings
from job_board.models import FormForwardResult
from job_board.store import InMemoryRecordStore


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        SUPABASE_URL="https://demo.supabase.co/",
        SUPABASE_ANON_KEY="anon-key",
        FORM_FORWARDER_FUNCTION="form-forwarder",
        FORM_FORWARDER_FUNCTION_URL="",
        PAYMENTS_ENABLED=True,
        STRIPE_CHECKOUT_ENDPOINT="",
        STRIPE_STANDARD_PAYMENT_LINK="",
        STRIPE_AMPLIFIED_PAYMENT_LINK="",
        MIXPANEL_TOKEN="",
        LINKEDIN_POST_URLS="",
        SITE_BASE_URL="https://jobs.example.org",
        LISTING_DURATION_DAYS=90,
        EXPIRING_SOON_WINDOW_DAYS=14,
    )


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def forwarded():
    return []


@pytest.fixture
def tracked():
    return []


@pytest.fixture
def lifecycle(store, config, forwarded, tracked):
    def forwarder(kind, submission):
        forwarded.append((kind, submission))
        return FormForwardResult(ok=True)

    return JobLifecycle(
        store,
        config,
        forwarder=forwarder,
        analytics=lambda event, props: tracked.append((event, props)),
        clock=lambda: NOW,
    )


@pytest.fixture
def listings(store, config, tracked):
    return JobListings(store, config, clock=lambda: NOW, analytics=lambda event, props: tracked.append((event, props)))


@pytest.fixture
def add_job(store, config):
    """Insert a job row with sensible defaults; keyword args override columns."""

    def _add(**fields):
        row = {
            "slug": "data-analyst-acme-analytics-1a2b3c4d",
            "status": "draft",
            "payment_status": "unpaid",
            "package_type": "standard",
            "title": "Data Analyst",
            "company_name": "Acme Analytics",
            "location_text": "Sydney NSW",
            "summary": "Analyse things.",
            "responsibilities": "Build dashboards.",
            "requirements": "SQL.",
            "application_mode": "external_apply",
            "external_apply_url": "https://acme.test/careers/1",
            "posted_by_email": "poster@acme.test",
            "published_at": None,
            "publish_expires_at": None,
        }
        row.update(fields)
        for key in ("published_at", "publish_expires_at"):
            if isinstance(row[key], datetime):
                row[key] = row[key].isoformat()
        return store.insert(config.JOBS_TABLE, row)

    return _add


@pytest.fixture
def notifications_of(store, config):
    def _rows(event_type=None):
        rows = store.rows(config.JOB_ADMIN_NOTIFICATIONS_TABLE)
        return [r for r in rows if event_type is None or r["event_type"] == event_type]

    return _rows
