from enum import Enum
from typing import Optional, List, Any, Dict
from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict


class OrderStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"
    refunded = "refunded"


class TrackingStatus(str, Enum):
    processing = "processing"
    shipped = "shipped"
    out_for_delivery = "out_for_delivery"
    delivered = "delivered"
    delayed = "delayed"


class PaymentProvider(str, Enum):
    paystack = "paystack"
    flutterwave = "flutterwave"


class DiscountType(str, Enum):
    percent = "percent"
    fixed = "fixed"


def _upper_code(v):
    return v.strip().upper() if isinstance(v, str) and v.strip() else None


# Cart / checkout

class CartLine(BaseModel):
    # the SPA keeps extra keys (image, name...) on each line
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    price: Optional[float] = None
    quantity: int = Field(1, ge=1)
    image: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v):
        return str(v) if isinstance(v, int) else v


class Address(BaseModel):
    model_config = ConfigDict(extra="allow")

    raw_address: Optional[str] = None
    confirmed_address: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    notes: Optional[str] = None


class DeliveryInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    address: Optional[Address] = None
    delivery_charge: Optional[float] = None
    # older clients send a flat shape
    city: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None

    def location(self):
        addr = self.address or Address()
        return (addr.state or self.state or "", addr.city or self.city or "")

    def shipping_address(self) -> Dict[str, Any]:
        if self.address is not None:
            return self.address.model_dump(exclude_none=True)
        return {k: v for k, v in {"city": self.city, "state": self.state, "phone": self.phone}.items() if v}


class OrderCreate(BaseModel):
    cart: List[CartLine]
    delivery: DeliveryInfo
    delivery_charge: Optional[float] = None
    client_total: Optional[float] = None
    payment_provider: PaymentProvider = PaymentProvider.paystack
    userId: Optional[str] = None
    email: Optional[EmailStr] = None
    promo_code: Optional[str] = None
    discount_amount: Optional[float] = None

    @field_validator("promo_code")
    @classmethod
    def upper_code(cls, v):
        return _upper_code(v)


class CartQuoteRequest(BaseModel):
    cart: List[CartLine]
    state: Optional[str] = None
    city: Optional[str] = None
    promo_code: Optional[str] = None

    @field_validator("promo_code")
    @classmethod
    def upper_code(cls, v):
        return _upper_code(v)


# Order admin actions

class StatusUpdate(BaseModel):
    status: OrderStatus


class TrackingUpdate(BaseModel):
    status: TrackingStatus = TrackingStatus.out_for_delivery
    message: str = Field(..., min_length=1)


class NotifyRequest(BaseModel):
    type: str = Field("custom", pattern="^(delivery_started|refund|custom)$")
    message: Optional[str] = None


class RiderInfo(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    vehicle: Optional[str] = None


class EmailRequest(BaseModel):
    emailType: str = Field("order_confirmation", pattern="^(order_confirmation|delivery_details)$")
    riderInfo: Optional[RiderInfo] = None


class MarkPaidRequest(BaseModel):
    provider: str = "manual"
    provider_ref: Optional[str] = None


# Promos

class PromoIn(BaseModel):
    code: str = Field(..., min_length=2, max_length=40)
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.percent
    value: float = Field(..., ge=0)
    apply_to_delivery: bool = False
    min_subtotal: float = Field(0, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    expires_at: Optional[str] = None
    active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, v):
        return v.strip().upper()

    @field_validator("value")
    @classmethod
    def percent_range(cls, v, info):
        if info.data.get("discount_type") == DiscountType.percent and v > 100:
            raise ValueError("percent discount cannot exceed 100")
        return v

    @field_validator("expires_at")
    @classmethod
    def blank_expiry(cls, v):
        return v or None


class PromoUpdate(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    value: Optional[float] = Field(None, ge=0)
    apply_to_delivery: Optional[bool] = None
    min_subtotal: Optional[float] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    expires_at: Optional[str] = None
    active: Optional[bool] = None


# Delivery charges / drivers

class DeliveryChargeIn(BaseModel):
    state: str = Field(..., min_length=1)
    city: Optional[str] = None
    charge: float = Field(..., ge=0)
    min_subtotal: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class DeliveryChargeUpdate(BaseModel):
    state: Optional[str] = None
    city: Optional[str] = None
    charge: Optional[float] = Field(None, ge=0)
    min_subtotal: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class DriverIn(BaseModel):
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    vehicle: Optional[str] = None
    active: bool = True


class DriverUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    vehicle: Optional[str] = None
    active: Optional[bool] = None


# Catalog

class ProductIn(BaseModel):
    title: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    images: List[str] = []
    stock: int = Field(0, ge=0)
    category: Optional[str] = None
    featured: bool = False
    benefits: Optional[str] = None
    short_desc: Optional[str] = None
    description: Optional[str] = None


class ProductUpdate(BaseModel):
    title: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    featured: Optional[bool] = None
    benefits: Optional[str] = None
    short_desc: Optional[str] = None
    description: Optional[str] = None


class ReviewIn(BaseModel):
    product_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)
    order_id: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("comment cannot be blank")
        return v.strip()


# Newsletter

class SubscribeRequest(BaseModel):
    email: EmailStr


class NewsletterSend(BaseModel):
    subject: str = Field(..., min_length=1)
    html: str = Field(..., min_length=1)
