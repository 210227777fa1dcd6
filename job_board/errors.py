"""Error types and operator-facing error messages."""

from __future__ import annotations

from typing import Optional


POLICY_RECURSION_MESSAGE = (
    "Database policy recursion detected. Run supabase/admin_rls_fix.sql in "
    "Supabase SQL Editor, then refresh."
)
MISSING_TABLE_HINT = " The table is missing; run the latest Supabase SQL migration."

# PostgREST / Postgres codes we translate for operators.
MISSING_TABLE_CODE = "42P01"
MISSING_FUNCTION_CODE = "PGRST202"
NO_ROWS_CODE = "PGRST116"


class ServiceError(Exception):
    """Base class for errors raised inside the job board service layer."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def format_service_error(error: object, fallback: str) -> str:
    """Turn any error into a message fit for the UI.

    Recognised database conditions are translated into remediation hints;
    otherwise the error's own message is used, and `fallback` when it has none.
    """
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message.strip():
        message = str(error) if isinstance(error, Exception) else ""
    message = message.strip()

    if not message:
        return fallback

    if "stack depth limit exceeded" in message.lower():
        return POLICY_RECURSION_MESSAGE

    if getattr(error, "code", None) == MISSING_TABLE_CODE:
        return f"{message}{MISSING_TABLE_HINT}"

    return message
