"""Runtime configuration.

Values come from the environment or a local `.env` file. Every field has a safe
default so the package imports cleanly without any configuration; the store and
outbound integrations simply report themselves as unconfigured.
"""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Hosted row store (PostgREST / Supabase)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    STORE_TIMEOUT_S: float = 20.0
    STORE_MAX_RETRIES: int = 3

    JOBS_TABLE: str = "job_posts"
    JOB_APPLICATIONS_TABLE: str = "job_applications"
    JOB_ADMIN_NOTIFICATIONS_TABLE: str = "job_admin_notifications"
    SITE_SETTINGS_TABLE: str = "site_settings"

    # Serverless form forwarder
    FORM_FORWARDER_FUNCTION: str = "form-forwarder"
    FORM_FORWARDER_FUNCTION_URL: str = ""
    FORM_FORWARD_TIMEOUT_S: float = 10.0

    # Payments
    PAYMENTS_ENABLED: bool = True
    STRIPE_CHECKOUT_ENDPOINT: str = ""
    STRIPE_STANDARD_PAYMENT_LINK: str = ""
    STRIPE_AMPLIFIED_PAYMENT_LINK: str = ""
    CHECKOUT_TIMEOUT_S: float = 20.0

    # Listing lifecycle
    LISTING_DURATION_DAYS: int = 90
    EXPIRING_SOON_WINDOW_DAYS: int = 14

    # Misc
    MIXPANEL_TOKEN: str = ""
    LINKEDIN_POST_URLS: str = ""  # comma/newline separated
    SITE_BASE_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def supabase_base_url(self) -> str:
        return self.SUPABASE_URL.strip().rstrip("/")

    @property
    def has_store_config(self) -> bool:
        return bool(self.supabase_base_url and self.SUPABASE_ANON_KEY.strip())


settings = Settings()
