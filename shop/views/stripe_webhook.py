"""
shop.views.stripe_webhook

Stripe webhook endpoint: checkout.session.completed -> finalized Order.

LOCKED INTENT
- Signature verification is required; unsigned or mis-signed payloads never reach the finalizer.
- The finalizer is idempotent, so Stripe retries (any non-2xx) are safe.
- Other event types are acknowledged (200) and ignored.

SETTINGS
- STRIPE_WEBHOOK_SECRET (required) : Stripe webhook signing secret (whsec_...)

======== CHANGE LOG ========
2026-10-02
- CHANGE: handler delegates to shop.services.finalize (shared with /api/orders/confirm/).  # CHANGED:

2026-07-30
- ADD: Stripe webhook receiver with signature verification + stable JSON envelope.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe
from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from shop.services.finalize import safe_str, to_plain_dict, finalize_checkout_session

log = logging.getLogger("storefront")

WEBHOOK_VER = "stripe-webhook.v2026-10-02"  # CHANGED:

CHECKOUT_COMPLETED = "checkout.session.completed"


def _json_response(
    ok: bool,
    data: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
    status: int = 200,
) -> JsonResponse:
    return JsonResponse(
        {"ok": bool(ok), "ver": WEBHOOK_VER, "data": data or {}, "error": error or {}},
        status=status,
    )


def _get_stripe_webhook_secret() -> str:
    secret = (getattr(settings, "STRIPE_WEBHOOK_SECRET", "") or "").strip()
    if not secret:
        raise RuntimeError("Missing STRIPE_WEBHOOK_SECRET setting.")
    return secret


def _handle_checkout_session_completed(event: Dict[str, Any]) -> Dict[str, Any]:
    session = (event.get("data") or {}).get("object") or {}
    if not session.get("id"):
        raise RuntimeError("Missing checkout session id in event payload.")

    result = finalize_checkout_session(session)
    order = result.order
    return {
        "event": CHECKOUT_COMPLETED,
        "session_id": session.get("id"),
        "order_id": order.pk,
        "order_created": result.created,
        "order_status": order.status,
        "total": str(order.total),
    }


@csrf_exempt
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Stripe webhook receiver (POST only).
    Verifies Stripe signature (required).
    """
    if request.method != "POST":
        return _json_response(False, error={"code": "method_not_allowed", "message": "POST required."}, status=405)

    try:
        secret = _get_stripe_webhook_secret()
    except RuntimeError as e:
        log.error("Storefront Stripe webhook misconfigured: %s", safe_str(e))
        return _json_response(False, error={"code": "misconfigured", "message": "Webhook not configured."}, status=500)

    payload = request.body  # raw bytes
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")

    if not sig_header:
        return _json_response(
            False,
            error={"code": "missing_signature", "message": "Missing Stripe-Signature header."},
            status=400,
        )

    try:
        event = stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=secret)
    except ValueError:
        return _json_response(False, error={"code": "invalid_payload", "message": "Invalid JSON payload."}, status=400)
    except stripe.SignatureVerificationError:
        return _json_response(False, error={"code": "bad_signature", "message": "Signature verification failed."}, status=400)

    event = to_plain_dict(event)
    event_type = safe_str(event.get("type"))
    log.info("Storefront Stripe webhook received: type=%s id=%s", event_type, event.get("id"))

    try:
        if event_type == CHECKOUT_COMPLETED:
            data = _handle_checkout_session_completed(event)
            return _json_response(True, data=data, status=200)

        return _json_response(True, data={"event": event_type, "ignored": True}, status=200)

    except Exception as e:
        log.exception("Storefront Stripe webhook: handler error type=%s", event_type)
        # 500 so Stripe retries; the finalizer makes the retry safe.
        return _json_response(
            False,
            error={"code": "handler_error", "message": safe_str(e), "event": event_type},
            status=500,
        )
