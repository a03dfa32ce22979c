"""Structured logging helpers (PII-safe)."""

import hashlib
from typing import Any


def mask_email(email: str | None) -> str:
    """Return a stable, non-reversible token for an email address."""
    if not email:
        return ""
    digest = hashlib.sha256(email.strip().lower().encode()).hexdigest()
    return f"email:{digest[:12]}"


def build_log_context(
    *,
    tenant_id: str | None = None,
    booking_page_id: str | None = None,
    member_id: str | None = None,
    appointment_id: str | None = None,
    request_id: str | None = None,
    stage: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if tenant_id:
        context["tenant_id"] = str(tenant_id)
    if booking_page_id:
        context["booking_page_id"] = str(booking_page_id)
    if member_id:
        context["member_id"] = str(member_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if request_id:
        context["request_id"] = request_id
    if stage:
        context["stage"] = stage
    return context
