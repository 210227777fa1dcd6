"""Checkout URLs for paid listing packages.

Two configurations are supported: a checkout endpoint that creates a session and
answers `{"url": ...}`, or static per-package payment links. The payment
provider itself is external; only the URL is produced here.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from .config import Settings, settings as default_settings
from .errors import format_service_error
from .models import CheckoutSession, JobPackageType, ServiceResult


logger = logging.getLogger(__name__)


def with_prefilled_email(url: str, email: str) -> str:
    """Add `prefilled_email` to a payment link's query string."""
    if not email:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "prefilled_email"]
    query.append(("prefilled_email", email))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _return_url(config: Settings, job_id: str, outcome: str) -> str:
    path = f"/jobs/submit?{urlencode({'draft': job_id, 'payment': outcome})}"
    base = (config.SITE_BASE_URL or "").rstrip("/")
    return f"{base}{path}"


def create_publish_checkout_session(
    job_id: str,
    package_type: JobPackageType,
    email: str,
    config: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> ServiceResult[Optional[CheckoutSession]]:
    config = config or default_settings
    endpoint = config.STRIPE_CHECKOUT_ENDPOINT.strip()

    if endpoint:
        body = {
            "jobId": job_id,
            "packageType": package_type,
            "email": email,
            "successUrl": _return_url(config, job_id, "success"),
            "cancelUrl": _return_url(config, job_id, "cancelled"),
        }
        try:
            if client is not None:
                resp = client.post(endpoint, json=body, timeout=config.CHECKOUT_TIMEOUT_S)
            else:
                with httpx.Client(timeout=config.CHECKOUT_TIMEOUT_S) as http:
                    resp = http.post(endpoint, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Checkout endpoint request failed: %s", exc)
            return ServiceResult(
                ok=False,
                data=None,
                message=format_service_error(exc, "Unable to start Stripe checkout right now."),
            )

        if resp.status_code >= 400:
            return ServiceResult(
                ok=False,
                data=None,
                message=resp.text or "Unable to start Stripe checkout right now.",
            )

        try:
            url = (resp.json() or {}).get("url")
        except ValueError:
            url = None
        if isinstance(url, str) and url.lower().startswith(("http://", "https://")):
            return ServiceResult(ok=True, data=CheckoutSession(url=url, mode="endpoint"))
        # Fall through to payment links when the endpoint gave no usable URL.

    link = (
        config.STRIPE_STANDARD_PAYMENT_LINK if package_type == "standard" else config.STRIPE_AMPLIFIED_PAYMENT_LINK
    ).strip()
    if link:
        return ServiceResult(ok=True, data=CheckoutSession(url=with_prefilled_email(link, email), mode="payment_link"))

    return ServiceResult(
        ok=False,
        data=None,
        message="Stripe checkout is not configured yet. Add STRIPE_CHECKOUT_ENDPOINT or payment link settings.",
    )
