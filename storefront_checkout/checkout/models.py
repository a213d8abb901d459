"""
Pydantic models for the checkout flow.

The models fall in three groups:
- Customer input: CustomerFormData and the FormState that owns it
- Cart: CartLine as read from the cart source, plus the derived cart values
- Wire/snapshot shapes: Totals, CustomerInfo, the payment-session payload,
  and the snapshots saved before the payment redirect

Wire and snapshot shapes serialize with camelCase keys (by_alias=True),
matching what the payment-session service and the storefront expect.
"""

import math
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DeliveryMethod(str, Enum):
    """How the order reaches the customer."""
    PICKUP = "pickup"
    DELIVERY = "delivery"


# City value the storefront offers for "somewhere we don't deliver"
OTHER_CITY = "Other"


class CamelModel(BaseModel):
    """Base for models exchanged with the storefront or the payment service."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Customer Input
# =============================================================================

class CustomerFormData(CamelModel):
    """The customer's in-progress checkout input.

    Empty strings are valid here; the form is only judged at a gate.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
    )

    first_name: str = ""
    email: str = ""
    phone: str = ""
    delivery_method: Optional[DeliveryMethod] = DeliveryMethod.PICKUP
    address: str = ""
    city: str = ""
    area: str = ""
    zip_code: str = ""
    delivery_instructions: str = ""

    @field_validator("delivery_method", mode="before")
    @classmethod
    def blank_method_is_unset(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @property
    def is_delivery(self) -> bool:
        return self.delivery_method == DeliveryMethod.DELIVERY


# camelCase name -> field name, for input coming from the storefront
_FORM_FIELD_BY_ALIAS = {
    info.alias: name for name, info in CustomerFormData.model_fields.items() if info.alias
}


def _field_name(key: str) -> str:
    return _FORM_FIELD_BY_ALIAS.get(key, key)


class FormState:
    """
    Owns the CustomerFormData of one checkout.

    All mutation goes through update_form_data (merge) or set_field (the
    per-field change handler used by the storefront inputs).
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data = CustomerFormData.model_validate(initial or {})

    @property
    def data(self) -> CustomerFormData:
        return self._data

    def update_form_data(self, partial: dict[str, Any]) -> CustomerFormData:
        """Merge the given fields into the form.

        Raises pydantic.ValidationError for unknown fields or bad values; the
        form is left untouched in that case.
        """
        merged = self._data.model_dump()
        merged.update((_field_name(key), value) for key, value in partial.items())
        self._data = CustomerFormData.model_validate(merged)
        return self._data

    def set_field(self, name: str, value: Any) -> CustomerFormData:
        """Apply a single input change.

        Picking the "Other" city while delivery is selected switches the order
        to pickup, since nobody delivers there.
        """
        name = _field_name(name)
        updates: dict[str, Any] = {name: value}
        if name == "city" and value == OTHER_CITY and self._data.is_delivery:
            updates["delivery_method"] = DeliveryMethod.PICKUP
        return self.update_form_data(updates)

    def prefill(self, values: dict[str, Optional[str]]) -> CustomerFormData:
        """Fill the form from a stored profile, keeping what the customer typed
        wherever the profile has no value."""
        current = self._data.model_dump()
        updates = {
            name: value or current[name]
            for name, value in values.items()
        }
        return self.update_form_data(updates)

    def reset(self) -> CustomerFormData:
        self._data = CustomerFormData()
        return self._data

    def snapshot(self) -> CustomerFormData:
        """Independent copy, unaffected by later edits."""
        return self._data.model_copy(deep=True)


# =============================================================================
# Cart
# =============================================================================

# Single-URL image fields, in the order they are tried
IMAGE_FIELDS = ("image", "image_url", "thumbnail", "main_image", "photo", "img", "picture")


class CartLine(CamelModel):
    """One line of the cart, as read from the cart source.

    Price and quantity are typed loosely on purpose: the cart source is not
    trusted, and the submission checks report bad lines by index. An infinite
    or NaN price or quantity is kept as unknown (None) so the line reaches
    those checks.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: Optional[str] = None
    name: str = ""
    unit_price: Optional[float] = None
    quantity: Optional[Union[int, float]] = 1
    preparation_time_minutes: int = Field(default=0, ge=0)
    description: Optional[str] = None
    category: Optional[str] = None

    image: Optional[str] = None
    image_url: Optional[str] = None
    thumbnail: Optional[str] = None
    main_image: Optional[str] = None
    photo: Optional[str] = None
    img: Optional[str] = None
    picture: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list)

    @field_validator("unit_price", "quantity")
    @classmethod
    def non_finite_is_unknown(cls, value: Any) -> Any:
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value

    @property
    def line_total(self) -> float:
        price = self.unit_price if self.unit_price is not None and math.isfinite(self.unit_price) else 0.0
        return price * (self.quantity or 0)

    @property
    def image_candidates(self) -> list[str]:
        """Every image URL the line carries, single fields first, then arrays."""
        candidates = [getattr(self, name) for name in IMAGE_FIELDS]
        candidates.extend(self.images)
        candidates.extend(self.image_urls)
        return [c for c in candidates if c is not None]


def safe_cart(lines: list[CartLine]) -> list[CartLine]:
    """Drop lines whose quantity is not positive. Lines with an unknown
    quantity stay, for the submission checks to reject."""
    return [line for line in lines if line.quantity is None or line.quantity > 0]


def cart_item_count(lines: list[CartLine]) -> int:
    return int(sum(line.quantity or 0 for line in lines))


def cart_subtotal(lines: list[CartLine]) -> float:
    """Sum of price x quantity, accumulated left to right like the storefront."""
    subtotal = 0.0
    for line in lines:
        subtotal += line.line_total
    return subtotal


def points_earned(subtotal: float) -> int:
    """Loyalty points: one per whole dollar of subtotal."""
    return math.floor(subtotal)


BASE_PREP_MINUTES = 15
MAX_PREP_MINUTES = 45


def estimate_prep_time(lines: list[CartLine]) -> int:
    """Minutes until the order is ready: a base time plus each item's own
    preparation time, capped so we never promise more than 45 minutes."""
    total = BASE_PREP_MINUTES
    for line in lines:
        total += line.preparation_time_minutes * int(line.quantity or 0)
    return min(total, MAX_PREP_MINUTES)


# =============================================================================
# Wire and Snapshot Shapes
# =============================================================================

class Totals(CamelModel):
    """Money values of an order, each already rounded to the cent."""
    subtotal: float
    gst: float
    qst: float
    delivery_fee: float
    final_total: float


class CustomerInfo(CamelModel):
    """Customer block sent to the payment service and kept in the snapshot."""
    name: str
    email: str
    phone: str
    address: str
    city: str
    zip_code: str
    delivery_instructions: str = ""
    province: str
    delivery_method: Optional[DeliveryMethod] = None


class LineItemPayload(CamelModel):
    product_id: str
    name: str
    price: float
    quantity: int
    description: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    image_urls: Optional[list[str]] = None


class PointsInfo(CamelModel):
    user_id: str
    points_earned: int
    current_balance: int


class CheckoutRequestPayload(CamelModel):
    """Body of the POST to the payment-session service."""
    cart_items: list[LineItemPayload]
    customer_info: CustomerInfo
    totals: Totals
    user_id: str
    estimated_prep_time: int
    client_url: str
    points_info: Optional[PointsInfo] = None


class AuthenticatedCustomer(BaseModel):
    """A signed-in customer, as resolved from the identity gateway."""
    id: str
    points: int = 0


class CheckoutSession(CamelModel):
    """Snapshot saved right before the payment redirect."""
    cart_lines: list[CartLine]
    customer_info: CustomerInfo
    totals: Totals
    estimated_prep_time_minutes: int
    created_at_epoch_millis: int


class PendingPointsOrder(CamelModel):
    """Points to credit once the payment flow reports success."""
    user_id: str
    order_id: str
    points_earned: int
    cart_total: float
    estimated_prep_time: int
