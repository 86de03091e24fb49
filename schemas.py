"""
Database Schemas for the post-sale analytics API

Each top-level model below maps to a MongoDB collection named after the
lowercase class name (Event -> "event"). Documents are stored with the same
camelCase keys the API speaks, so models are dumped with ``by_alias=True``.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

Severity = Literal["info", "warning", "error"]
Role = Literal["user", "admin", "manager"]

ANONYMOUS_USER = "anonymous"


def utcnow() -> datetime:
    # naive UTC at millisecond precision, the form pymongo hands back
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Event payloads, one variant per eventType ---

class EventPayload(CamelModel):
    model_config = ConfigDict(extra="allow")


class PageViewData(EventPayload):
    page_title: Optional[str] = None


class ProductViewData(EventPayload):
    product_id: str
    product_name: Optional[str] = None
    category: Optional[str] = None


class ProductCustomizeData(EventPayload):
    product_id: str
    product_name: Optional[str] = None
    customizations: Dict[str, Any] = Field(default_factory=dict)


class Model3dViewData(EventPayload):
    product_id: str
    product_name: Optional[str] = None
    duration_seconds: Optional[float] = Field(None, ge=0)


class CartAddData(EventPayload):
    product_id: str
    product_name: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: Optional[float] = Field(None, ge=0)


class CartRemoveData(EventPayload):
    product_id: str
    product_name: Optional[str] = None
    quantity: int = Field(1, ge=1)


class CheckoutStartData(EventPayload):
    items: List[Dict[str, Any]] = Field(default_factory=list)
    total: Optional[float] = Field(None, ge=0)


class CheckoutCompleteData(CheckoutStartData):
    order_id: Optional[str] = None


class PurchaseData(EventPayload):
    order_id: Optional[str] = None
    product_id: Optional[str] = None
    items: List[Dict[str, Any]] = Field(default_factory=list)
    amount: Optional[float] = Field(None, ge=0)
    total: Optional[float] = Field(None, ge=0)


class ErrorData(EventPayload):
    message: str


EVENT_PAYLOADS = {
    "page_view": PageViewData,
    "product_view": ProductViewData,
    "product_customize": ProductCustomizeData,
    "view_3d_model": Model3dViewData,
    "cart_add": CartAddData,
    "cart_remove": CartRemoveData,
    "checkout_start": CheckoutStartData,
    "checkout_complete": CheckoutCompleteData,
    "purchase": PurchaseData,
    "error": ErrorData,
}


def validate_event_data(event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Check ``data`` against the payload variant of ``event_type``.

    Unknown event types are stored as given.
    """
    payload_model = EVENT_PAYLOADS.get(event_type)
    if payload_model is None:
        return data
    try:
        payload = payload_model.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValueError(f"Invalid eventData for '{event_type}': {location}: {first['msg']}")
    return payload.model_dump(by_alias=True, exclude_none=True)


# --- Events ---

class EventIn(CamelModel):
    event_type: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    session_id: str = Field(..., min_length=1)
    event_data: Dict[str, Any]
    page_url: Optional[str] = None
    referrer: Optional[str] = None
    severity: Severity = "info"

    @model_validator(mode="after")
    def check_event_data(self):
        self.event_data = validate_event_data(self.event_type, self.event_data)
        return self


class ClientEvent(CamelModel):
    """An event as queued by the logging client."""
    model_config = ConfigDict(extra="ignore")

    event_type: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: Optional[str] = None
    severity: Severity = "info"
    data: Optional[Dict[str, Any]] = None
    url: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class EventBatchIn(BaseModel):
    events: List[Dict[str, Any]] = Field(..., min_length=1)


class Event(CamelModel):
    event_type: str
    user_id: str = ANONYMOUS_USER
    is_authenticated: bool = False
    session_id: str
    event_data: Dict[str, Any]
    severity: Severity = "info"
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    page_url: str = ""
    referrer: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


# --- Products ---

class ColorOption(CamelModel):
    name: str
    hex_code: Optional[str] = None
    additional_price: float = 0


class MaterialOption(CamelModel):
    name: str
    additional_price: float = 0


class ComponentChoice(CamelModel):
    name: str
    additional_price: float = 0


class ComponentOption(CamelModel):
    name: str
    options: List[ComponentChoice] = Field(default_factory=list)


class CustomizationOptions(CamelModel):
    colors: List[ColorOption] = Field(default_factory=list)
    materials: List[MaterialOption] = Field(default_factory=list)
    components: List[ComponentOption] = Field(default_factory=list)


class Rating(CamelModel):
    user_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    date: datetime = Field(default_factory=utcnow)


class RatingIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


def average_rating(ratings: List[Rating]) -> float:
    if not ratings:
        return 0.0
    return round(sum(r.rating for r in ratings) / len(ratings), 1)


class Product(CamelModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    category: str = Field(..., min_length=1)
    subcategory: str = ""
    images: List[str] = Field(default_factory=list)
    model_3d_url: Optional[str] = Field(None, alias="model3dUrl")
    has_3d_model: bool = Field(False, alias="has3dModel")
    customization_options: CustomizationOptions = Field(default_factory=CustomizationOptions)
    stock: int = Field(0, ge=0)
    is_active: bool = True
    is_featured: bool = False
    tags: List[str] = Field(default_factory=list)
    ratings: List[Rating] = Field(default_factory=list)
    average_rating: float = 0.0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def recompute_average_rating(self):
        self.average_rating = average_rating(self.ratings)
        return self


# --- Users ---

class User(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr = Field(..., description="Lower-cased, unique")
    password: str = Field(..., description="BCrypt hash, never returned")
    role: Role = "user"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = "user"


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
