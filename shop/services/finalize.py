"""
shop.services.finalize

Turn a completed Stripe Checkout Session into exactly one Order.

Called from two places with the same session:
- the Stripe webhook (checkout.session.completed)
- the success page (/api/orders/confirm/), which can win the race against the webhook

LOCKED INTENT
- The payment reference (PaymentIntent id, else Checkout Session id) is the idempotency
  key. Order.stripe_payment_id is UNIQUE, so a concurrent duplicate insert fails in the
  database and is answered with the order that won.
- Creating the Order (+ items + applied promos) is the only transactional step. Promo
  redemption counters, stock adjustments and the confirmation email run afterwards,
  each on its own, and never undo the order: the customer has already paid.
- Session metadata is untrusted text. Bad JSON is logged and treated as empty.

======== CHANGE LOG ========
2026-10-16
- ADD: the applied stock policy is stored on the order (Order.stock_reserved).          # CHANGED:
- FIX: amounts too large for a money column are treated as absent, not fatal.           # CHANGED:

2026-10-02
- CHANGE: stock policy comes from an injected config provider (default: SiteConfig).   # CHANGED:
- ADD: IntegrityError on insert → re-fetch by payment reference (duplicate delivery).   # CHANGED:

2026-08-21
- ADD: promoCodes metadata list → OrderAppliedPromoCode rows; legacy promoCode/promoCodeId
       pair still accepted. Header promo fields mirror the first applied entry.
- ADD: per-promo discountApplied total overrides metadata discount when positive.

2026-07-30
- ADD: Initial finalizer (idempotent by stripe_payment_id).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q

from shop.emailing import send_order_confirmation_email
from shop.models import (
    DiscountType,
    Order,
    OrderAppliedPromoCode,
    OrderItem,
    OrderStatus,
    Product,
    PromoCode,
    SiteConfig,
    normalize_promo_code,
)
from shop.services.inventory import apply_stock_policy
from shop.services.promo_codes import record_redemption

log = logging.getLogger("storefront")

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
# Largest value a money column (max_digits=12, decimal_places=2) holds.
MAX_AMOUNT = Decimal("9999999999.99")

ConfigProvider = Callable[[], bool]
Notifier = Callable[..., Any]


@dataclass(frozen=True)
class FinalizeResult:
    order: Order
    created: bool


@dataclass(frozen=True)
class AppliedPromo:
    promo: Optional[PromoCode]
    code: str
    discount_type: str
    amount: Decimal
    discount_applied: Decimal


# --------------------------------------------------------------------------------------
# Parsing helpers (never raise on bad metadata)
# --------------------------------------------------------------------------------------


def safe_str(val: Any) -> str:
    try:
        return str(val)
    except Exception:
        return ""


def _clean(val: Any) -> Optional[str]:
    if val is None:
        return None
    s = safe_str(val).strip()
    return s or None


def to_plain_dict(obj: Any) -> Dict[str, Any]:
    """
    Convert Stripe objects / mappings into a plain dict (best-effort).
    """
    if isinstance(obj, dict):
        return obj

    for attr in ("to_dict_recursive", "to_dict"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            try:
                return fn()
            except Exception:
                continue

    try:
        return dict(obj)
    except (TypeError, ValueError):
        return {}


def _q(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(val: Any) -> Optional[Decimal]:
    """Decimal from a metadata value; None for missing, unparsable, non-finite or too large to store."""
    if val is None or isinstance(val, bool):
        return None
    try:
        amount = Decimal(safe_str(val).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        return None
    return amount


def _coerce_quantity(raw: Any) -> Optional[int]:
    """Missing/zero/garbage → 1 (cart default); negative → None (drop the line)."""
    try:
        qty = int(raw)
    except (TypeError, ValueError):
        return 1
    if qty == 0:
        return 1
    if qty < 0:
        return None
    return qty


def _load_json_list(raw: Any, label: str) -> List[Any]:
    if not raw:
        return []
    if isinstance(raw, list):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        log.warning("Storefront finalize: malformed %s metadata ignored (%s)", label, safe_str(e))
        return []
    if not isinstance(parsed, list):
        log.warning("Storefront finalize: %s metadata is not a list; ignored", label)
        return []
    return parsed


def payment_reference(session: Mapping[str, Any]) -> Optional[str]:
    """Settled PaymentIntent id when present, else the Checkout Session id."""
    intent = session.get("payment_intent")
    if isinstance(intent, Mapping):
        intent = intent.get("id")
    return _clean(intent) or _clean(session.get("id"))


# --------------------------------------------------------------------------------------
# Finalizer
# --------------------------------------------------------------------------------------


class OrderFinalizer:
    """
    `config_provider()` returns the site-wide auto-deduct-stock flag.
    `notifier(**kwargs)` sends the confirmation; see send_order_confirmation_email.
    """

    def __init__(
        self,
        config_provider: Optional[ConfigProvider] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.config_provider = config_provider or SiteConfig.auto_deduct_stock_enabled
        self.notifier = notifier or send_order_confirmation_email

    # ---- public ----

    def finalize(self, session: Any, fallback_user_id: Optional[Any] = None) -> FinalizeResult:
        session = to_plain_dict(session)
        metadata = session.get("metadata") or {}
        details = session.get("customer_details") or {}

        payment_ref = payment_reference(session)
        if not payment_ref:
            raise ValueError("Checkout session has neither payment_intent nor id.")

        existing = self._find_existing(payment_ref)
        if existing is not None:
            log.info("Storefront finalize: order=%s already recorded for payment=%s", existing.pk, payment_ref)
            return FinalizeResult(existing, False)

        email = self._resolve_email(session, metadata, details)
        name = _clean(metadata.get("customerName")) or _clean(details.get("name")) or "Guest"
        address = self._resolve_address(metadata, details)

        cart = [line for line in _load_json_list(metadata.get("items"), "items") if isinstance(line, Mapping)]
        products = self._fetch_products(cart)

        subtotal = max(parse_amount(metadata.get("subtotal")) or ZERO, ZERO)
        meta_discount = max(parse_amount(metadata.get("discount")) or ZERO, ZERO)
        shipping = max(parse_amount(metadata.get("shipping")) or ZERO, ZERO)
        tax = max(parse_amount(metadata.get("tax")) or ZERO, ZERO)

        promos = self._resolve_promos(metadata, meta_discount)
        user_id = self._resolve_user_id(fallback_user_id, email)
        lines = self._build_lines(cart, products)

        # The per-promo ledger is authoritative when it carries any amount.
        ledger_total = sum((p.discount_applied for p in promos), ZERO)
        discount = ledger_total if ledger_total > 0 else meta_discount
        discount = min(max(discount, ZERO), subtotal)

        subtotal_after_discount = parse_amount(metadata.get("subtotalAfterDiscount")) or max(subtotal - discount, ZERO)
        total = parse_amount(metadata.get("total")) or (subtotal_after_discount + shipping + tax)

        primary = promos[0] if promos else None
        fields = {
            "user_id": user_id,
            "email": email,
            "name": name,
            "address": address,
            "subtotal": _q(subtotal),
            "shipping": _q(shipping),
            "tax": _q(tax),
            "discount": _q(discount),
            "total": _q(max(total, ZERO)),
            "status": OrderStatus.PROCESSING,
            "stripe_payment_id": payment_ref,
            "promo_code": primary.promo if primary else None,
            "promo_code_code": primary.code if primary else None,
        }

        order, created = self._create_order(fields, lines, promos)
        if not created:
            return FinalizeResult(order, False)

        log.info(
            "Storefront finalize: created order=%s payment=%s email=%s items=%s total=%s promos=%s",
            order.pk,
            payment_ref,
            email or "guest",
            len(lines),
            order.total,
            ",".join(p.code for p in promos) or "-",
        )

        self._count_redemptions(order, promos)
        self._adjust_stock(order)
        self._notify(order)
        return FinalizeResult(order, True)

    # ---- lookups ----

    def _find_existing(self, payment_ref: str) -> Optional[Order]:
        return (
            Order.objects.prefetch_related("items", "applied_promo_codes")
            .filter(stripe_payment_id=payment_ref)
            .first()
        )

    def _resolve_email(self, session: Mapping[str, Any], metadata: Mapping[str, Any], details: Mapping[str, Any]) -> Optional[str]:
        for candidate in (session.get("customer_email"), details.get("email"), metadata.get("email")):
            cleaned = _clean(candidate)
            if cleaned:
                return cleaned.lower()
        return None

    def _resolve_address(self, metadata: Mapping[str, Any], details: Mapping[str, Any]) -> str:
        raw = metadata.get("address")
        if isinstance(raw, str) and raw:
            return raw
        if isinstance(raw, Mapping) and raw:
            return json.dumps(dict(raw))
        return json.dumps(details.get("address") or {})

    def _fetch_products(self, cart: Iterable[Mapping[str, Any]]) -> Dict[str, Product]:
        ids = {_clean(line.get("productId")) for line in cart}
        ids.discard(None)
        if not ids:
            return {}
        return {p.pk: p for p in Product.objects.filter(pk__in=ids)}

    def _resolve_user_id(self, fallback_user_id: Optional[Any], email: Optional[str]) -> Optional[Any]:
        if fallback_user_id:
            return fallback_user_id
        if not email:
            return None
        User = get_user_model()
        return User.objects.filter(email__iexact=email).values_list("pk", flat=True).first()

    def _promo_entries(self, metadata: Mapping[str, Any], meta_discount: Decimal) -> List[Mapping[str, Any]]:
        entries = [e for e in _load_json_list(metadata.get("promoCodes"), "promoCodes") if isinstance(e, Mapping)]
        if entries:
            return entries

        # Legacy single-promo sessions: the whole metadata discount belongs to that code.
        code = _clean(metadata.get("promoCode"))
        promo_id = _clean(metadata.get("promoCodeId"))
        if code or promo_id:
            return [{"id": promo_id, "code": code, "discountApplied": meta_discount}]
        return []

    def _resolve_promos(self, metadata: Mapping[str, Any], meta_discount: Decimal) -> List[AppliedPromo]:
        entries = self._promo_entries(metadata, meta_discount)
        if not entries:
            return []

        ids = {_clean(e.get("id")) for e in entries}
        ids.discard(None)
        codes = {normalize_promo_code(safe_str(e.get("code") or "")) for e in entries}
        codes.discard("")

        by_id: Dict[str, PromoCode] = {}
        by_code: Dict[str, PromoCode] = {}
        for promo in PromoCode.objects.filter(Q(pk__in=ids) | Q(code__in=codes)):
            by_id[promo.pk] = promo
            by_code[promo.code] = promo

        applied: List[AppliedPromo] = []
        for entry in entries:
            entry_id = _clean(entry.get("id"))
            code = normalize_promo_code(safe_str(entry.get("code") or ""))
            promo = (by_id.get(entry_id) if entry_id else None) or by_code.get(code)

            if promo is None and not code:
                log.warning("Storefront finalize: promo entry id=%s not found and has no code; skipped", entry_id)
                continue

            discount_applied = parse_amount(entry.get("discountApplied"))
            if discount_applied is None:
                discount_applied = parse_amount(entry.get("discountAmount"))
            discount_applied = max(discount_applied or ZERO, ZERO)

            # Live record wins; the metadata snapshot covers promos deleted since checkout.
            if promo is not None:
                discount_type = promo.discount_type
                amount = promo.amount
            else:
                discount_type = safe_str(entry.get("discountType") or "").upper()
                if discount_type not in DiscountType.values:
                    discount_type = DiscountType.FIXED
                amount = parse_amount(entry.get("amount")) or ZERO

            applied.append(
                AppliedPromo(
                    promo=promo,
                    code=promo.code if promo is not None else code,
                    discount_type=discount_type,
                    amount=_q(amount),
                    discount_applied=_q(discount_applied),
                )
            )
        return applied

    def _build_lines(self, cart: Iterable[Mapping[str, Any]], products: Mapping[str, Product]) -> List[Dict[str, Any]]:
        lines: List[Dict[str, Any]] = []
        for line in cart:
            product_id = _clean(line.get("productId"))
            product = products.get(product_id) if product_id else None
            if product is None:
                if product_id:
                    log.info("Storefront finalize: product=%s no longer in catalog; line dropped", product_id)
                continue

            quantity = _coerce_quantity(line.get("quantity"))
            if quantity is None:
                log.warning("Storefront finalize: negative quantity for product=%s; line dropped", product_id)
                continue

            price = parse_amount(line.get("priceAtPurchase"))
            if price is None:
                price = product.price

            lines.append(
                {
                    "product_id": product.pk,
                    "product_name": _clean(line.get("productName")) or product.name or "Product",
                    "product_image": _clean(line.get("productImage")) or product.first_image(),
                    "quantity": quantity,
                    "size": _clean(line.get("size")),
                    "color": _clean(line.get("color")),
                    "price_at_purchase": _q(max(price, ZERO)),
                }
            )
        return lines

    # ---- the one transactional write ----

    def _create_order(
        self,
        fields: Dict[str, Any],
        lines: List[Dict[str, Any]],
        promos: List[AppliedPromo],
    ) -> Tuple[Order, bool]:
        try:
            with transaction.atomic():
                order = Order.objects.create(**fields)
                OrderItem.objects.bulk_create([OrderItem(order=order, **line) for line in lines])
                OrderAppliedPromoCode.objects.bulk_create(
                    [
                        OrderAppliedPromoCode(
                            order=order,
                            promo_code=p.promo,
                            code=p.code,
                            discount_type=p.discount_type,
                            amount=p.amount,
                            discount_applied=p.discount_applied,
                        )
                        for p in promos
                    ]
                )
        except IntegrityError:
            existing = self._find_existing(fields["stripe_payment_id"])
            if existing is None:
                raise
            log.info(
                "Storefront finalize: concurrent delivery for payment=%s; returning order=%s",
                fields["stripe_payment_id"],
                existing.pk,
            )
            return existing, False

        return self._find_existing(fields["stripe_payment_id"]) or order, True

    # ---- best-effort side effects ----

    def _count_redemptions(self, order: Order, promos: Iterable[AppliedPromo]) -> None:
        seen = set()
        for p in promos:
            if p.promo is None or p.promo.pk in seen:
                continue
            seen.add(p.promo.pk)
            try:
                with transaction.atomic():
                    record_redemption(p.promo.pk)
            except Exception:
                log.exception("Storefront finalize: redemption increment failed promo=%s order=%s", p.promo.pk, order.pk)

    def _adjust_stock(self, order: Order) -> None:
        try:
            auto_deduct = bool(self.config_provider())
        except Exception:
            log.exception("Storefront finalize: could not read stock policy; deducting stock for order=%s", order.pk)
            auto_deduct = False

        try:
            Order.objects.filter(pk=order.pk).update(stock_reserved=auto_deduct)
            order.stock_reserved = auto_deduct
        except Exception:
            log.exception("Storefront finalize: could not record stock policy for order=%s", order.pk)

        for item in order.items.all():
            if not item.product_id:
                continue
            try:
                with transaction.atomic():
                    updated = apply_stock_policy(item.product_id, item.quantity, auto_deduct)
                if not updated:
                    log.warning("Storefront finalize: product=%s vanished before stock update", item.product_id)
            except Exception:
                log.exception(
                    "Storefront finalize: stock update failed product=%s qty=%s order=%s",
                    item.product_id,
                    item.quantity,
                    order.pk,
                )

    def _notify(self, order: Order) -> None:
        if not order.email:
            return
        try:
            self.notifier(
                to_email=order.email,
                name=order.name,
                order_id=order.pk,
                items=[
                    {
                        "product_name": item.product_name,
                        "product_image": item.product_image,
                        "quantity": item.quantity,
                        "size": item.size,
                        "color": item.color,
                        "price_at_purchase": item.price_at_purchase,
                    }
                    for item in order.items.all()
                ],
                subtotal=order.subtotal,
                discount=order.discount,
                shipping=order.shipping,
                tax=order.tax,
                total=order.total,
            )
        except Exception:
            log.exception("Storefront finalize: confirmation email failed order=%s", order.pk)


def finalize_checkout_session(
    session: Any,
    fallback_user_id: Optional[Any] = None,
    *,
    config_provider: Optional[ConfigProvider] = None,
    notifier: Optional[Notifier] = None,
) -> FinalizeResult:
    finalizer = OrderFinalizer(config_provider=config_provider, notifier=notifier)
    return finalizer.finalize(session, fallback_user_id=fallback_user_id)
