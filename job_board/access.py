"""Resolve what the signed-in user may manage.

Privileged operations take the resulting `AccessLevel` as an argument instead
of asking the session themselves, so the check happens once per request.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import MISSING_FUNCTION_CODE, format_service_error
from .models import AccessLevel, ServiceResult
from .store import RecordStore, StoreError
from .utils import to_trimmed


logger = logging.getLogger(__name__)

ADMIN_EMAIL_FUNCTION = "is_job_admin_email"
ADMIN_SESSION_FUNCTION = "is_job_admin"


def resolve_admin_access(store: Optional[RecordStore], email: Optional[str]) -> ServiceResult[AccessLevel]:
    """Ask the store whether `email` belongs to a job board admin.

    With no store configured everything runs locally and the operator is
    trusted. Older databases without the email-based check fall back to the
    session-based one.
    """
    if store is None:
        return ServiceResult(
            ok=True,
            data=AccessLevel(mode="local", email=None, can_manage=True),
            message="Record store is not configured. Admin edits are kept locally only.",
        )

    email = to_trimmed(email).lower() or None
    if email is None:
        return ServiceResult(ok=True, data=AccessLevel(mode="store", email=None, can_manage=False))

    try:
        allowed = store.rpc(ADMIN_EMAIL_FUNCTION, {"candidate_email": email})
    except StoreError as exc:
        if exc.code != MISSING_FUNCTION_CODE:
            return ServiceResult(
                ok=True,
                data=AccessLevel(mode="store", email=email, can_manage=False),
                message=format_service_error(exc, "Unable to verify admin access."),
            )
        logger.info("%s is not deployed; falling back to %s", ADMIN_EMAIL_FUNCTION, ADMIN_SESSION_FUNCTION)
        try:
            allowed = store.rpc(ADMIN_SESSION_FUNCTION)
        except StoreError:
            allowed = None
        if not isinstance(allowed, bool):
            return ServiceResult(
                ok=True,
                data=AccessLevel(mode="store", email=email, can_manage=False),
                message="Admin email check function is missing. Run the latest Supabase SQL migration.",
            )

    if not isinstance(allowed, bool):
        return ServiceResult(
            ok=True,
            data=AccessLevel(mode="store", email=email, can_manage=False),
            message="Unable to verify admin access.",
        )
    return ServiceResult(ok=True, data=AccessLevel(mode="store", email=email, can_manage=allowed))
