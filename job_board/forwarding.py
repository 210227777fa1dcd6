"""Forward form submissions to the email-routing serverless function.

The function is deployed next to the hosted store and authenticated with the
same anon key. Forwarding is best-effort: this module never raises and always
returns a `FormForwardResult` the caller can log.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Literal, Optional
from urllib.parse import quote

import httpx

from .config import Settings, settings as default_settings
from .models import FormForwardResult


FormForwardKind = Literal["general", "speaker", "member", "sponsor", "job"]


def forwarder_endpoint(config: Settings) -> Optional[str]:
    if not config.has_store_config:
        return None
    override = config.FORM_FORWARDER_FUNCTION_URL.strip()
    if override:
        return override
    name = config.FORM_FORWARDER_FUNCTION.strip() or "form-forwarder"
    return f"{config.supabase_base_url}/functions/v1/{quote(name, safe='')}"


def forward_form_by_email(
    kind: FormForwardKind,
    submission: Dict[str, Any],
    config: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> FormForwardResult:
    """POST `{form_kind, submission}` to the forwarder and interpret the reply.

    The function may answer `{"ok": true, "skipped": true}` when no routing rule
    matches; that still counts as success.
    """
    config = config or default_settings
    endpoint = forwarder_endpoint(config)
    if endpoint is None:
        return FormForwardResult(ok=False, message="Supabase configuration is missing.")

    anon_key = config.SUPABASE_ANON_KEY.strip()
    headers = {
        "Content-Type": "application/json",
        "apikey": anon_key,
        "Authorization": f"Bearer {anon_key}",
    }
    body = {"form_kind": kind, "submission": submission}

    try:
        if client is not None:
            resp = client.post(endpoint, json=body, headers=headers, timeout=config.FORM_FORWARD_TIMEOUT_S)
        else:
            with httpx.Client(timeout=config.FORM_FORWARD_TIMEOUT_S) as http:
                resp = http.post(endpoint, json=body, headers=headers)
    except httpx.TimeoutException:
        return FormForwardResult(ok=False, message="Form forwarding timed out.")
    except httpx.HTTPError:
        return FormForwardResult(ok=False, message="Form forwarding network request failed.")

    payload: Dict[str, Any] = {}
    if resp.text:
        try:
            parsed = json.loads(resp.text)
            payload = parsed if isinstance(parsed, dict) else {}
        except ValueError:
            payload = {}

    message = payload.get("message")
    message = message if isinstance(message, str) else None

    if resp.status_code >= 400 or payload.get("ok") is False:
        return FormForwardResult(
            ok=False,
            message=message if message and message.strip() else f"Form forwarding failed with status {resp.status_code}.",
        )

    return FormForwardResult(ok=True, skipped=bool(payload.get("skipped")), message=message)
