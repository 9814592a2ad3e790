"""
shop.exceptions
Domain errors raised by shop services; views map them to 4xx responses.
"""


class ShopError(Exception):
    """Base class for expected, user-facing shop failures."""

    code = "shop_error"


class InvalidStatusTransition(ShopError):
    code = "invalid_status_transition"


class InvalidSale(ShopError):
    code = "invalid_sale"


class PromoCodeInvalid(ShopError):
    code = "promo_invalid"
