"""Shared builders for shop tests."""

import json
from decimal import Decimal

from shop.models import Product


def make_product(name="Linen Tee", price="30.00", stock=10, **kwargs):
    kwargs.setdefault("cost_price", Decimal("8.00"))
    kwargs.setdefault("images", ["https://cdn.example.com/tee.jpg"])
    return Product.objects.create(name=name, price=Decimal(price), stock=stock, **kwargs)


def make_session(
    items=None,
    payment_intent="pi_test_1",
    session_id="cs_test_1",
    customer_email="Buyer@Example.com",
    customer_details=None,
    **metadata,
):
    """A checkout.session.completed `data.object` as the storefront creates it."""
    meta = {"customerName": "Ada Buyer"}
    if items is not None:
        meta["items"] = items if isinstance(items, str) else json.dumps(items)
    meta.update({k: str(v) if not isinstance(v, str) else v for k, v in metadata.items()})

    session = {
        "id": session_id,
        "object": "checkout.session",
        "payment_intent": payment_intent,
        "customer_email": customer_email,
        "customer_details": customer_details or {},
        "metadata": meta,
    }
    return session
