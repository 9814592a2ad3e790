"""
shop.addresses

Typed view over the serialized `Order.address` blob.

Online orders carry the postal address captured at checkout (Stripe
customer_details.address or the storefront's own form). In-person sales
carry {"type": "in-person", "location": "..."}; location is optional.
The column stays an opaque JSON string so historical rows are never
rewritten; these helpers are the only place that reads its shape.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

log = logging.getLogger("storefront")

IN_PERSON_TYPE = "in-person"
IN_PERSON_LABEL = "In-Person"
UNKNOWN_LABEL = "Unknown"


@dataclass(frozen=True)
class PostalAddress:
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    @property
    def label(self) -> str:
        return self.country or UNKNOWN_LABEL


@dataclass(frozen=True)
class InPersonLocation:
    location: Optional[str] = None

    @property
    def label(self) -> str:
        return self.location or IN_PERSON_LABEL


Address = Union[PostalAddress, InPersonLocation]


def _clean(val: Any) -> Optional[str]:
    if val is None:
        return None
    s = str(val).strip()
    return s or None


def _load(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        log.warning("shop.addresses: unparsable address blob ignored")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_address(raw: Any, is_in_person: bool = False) -> Address:
    """Never raises; malformed input yields an empty address of the right kind."""
    data = _load(raw)

    if is_in_person or data.get("type") == IN_PERSON_TYPE:
        return InPersonLocation(location=_clean(data.get("location")))

    return PostalAddress(
        line1=_clean(data.get("line1")),
        line2=_clean(data.get("line2")),
        city=_clean(data.get("city")),
        state=_clean(data.get("state")),
        postal_code=_clean(data.get("postal_code") or data.get("postalCode")),
        country=_clean(data.get("country") or data.get("countryCode")),
    )


def location_label(target: Any) -> str:
    """Reporting label for an Order (or an already-parsed Address)."""
    if isinstance(target, (PostalAddress, InPersonLocation)):
        return target.label
    return parse_address(target.address, is_in_person=target.is_in_person).label


def in_person_address(location: Optional[str] = None) -> str:
    payload: Dict[str, Any] = {"type": IN_PERSON_TYPE}
    loc = _clean(location)
    if loc:
        payload["location"] = loc
    return json.dumps(payload)
