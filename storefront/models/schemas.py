from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any, Literal
from datetime import datetime, date as Date
from enum import Enum

from ..config import settings


class CamelModel(BaseModel):
    """Records are exposed in camelCase and accepted in either case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ShopStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"


ProductSort = Literal["newest", "price-asc", "price-desc", "rating", "popularity"]
SearchSort = Literal["relevance", "newest", "price_asc", "price_desc", "rating"]


# Catalog

class ProductModel(CamelModel):
    id: str
    name: str
    description: str = ""
    summary: str = ""
    price: float
    sale_price: Optional[float] = None
    images: List[str] = []
    category: str = ""
    colors: List[str] = []
    sizes: List[str] = []
    tags: List[str] = []
    is_new: bool = False
    is_trending: bool = False
    rating: float = 0
    review_count: int = 0
    view_count: int = 0
    stock: Optional[int] = None
    shop_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TrendingProduct(ProductModel):
    trending_score: float = 0


class DealProduct(ProductModel):
    discount_percentage: int
    end_time: datetime


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    sale_price: Optional[float] = Field(None, ge=0)
    images: List[str] = []
    category_id: Optional[str] = None
    colors: List[str] = []
    sizes: List[str] = []
    tags: List[str] = []
    is_new: bool = False
    is_trending: bool = False
    stock: Optional[int] = Field(0, ge=0)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    sale_price: Optional[float] = Field(None, ge=0)
    images: Optional[List[str]] = None
    category_id: Optional[str] = None
    colors: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    is_new: Optional[bool] = None
    is_trending: Optional[bool] = None
    stock: Optional[int] = Field(None, ge=0)


class ProductQuery(CamelModel):
    limit: int = Field(12, ge=1, le=200)
    category_id: Optional[str] = None
    shop_id: Optional[str] = None
    is_new: Optional[bool] = None
    is_trending: Optional[bool] = None
    with_discount: Optional[bool] = None
    sort_by: ProductSort = "newest"


class CategoryModel(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    image: Optional[str] = None


# Shops

class ShopModel(CamelModel):
    id: str
    name: str
    description: str = ""
    logo: str = ""
    cover_image: str = ""
    address: str = ""
    phone_number: str = ""
    owner_name: str = ""
    owner_email: str = ""
    rating: float = 0
    review_count: int = 0
    followers_count: int = 0
    status: ShopStatus = ShopStatus.PENDING
    is_verified: bool = False
    created_at: Optional[datetime] = None


class ShopCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    logo: Optional[str] = None
    cover_image: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None

    @field_validator("owner_email")
    @classmethod
    def validate_owner_email(cls, v):
        from ..utils.helpers import is_valid_email
        if v and not is_valid_email(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v):
        from ..utils.helpers import is_valid_phone
        if v and not is_valid_phone(v):
            raise ValueError("Invalid phone number")
        return v


class ShopUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = None
    logo: Optional[str] = None
    cover_image: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None


class ShopStatusUpdate(CamelModel):
    status: ShopStatus
    is_verified: Optional[bool] = None


class ShopAdminCreate(CamelModel):
    user_id: str
    role: Literal["owner", "admin"] = "admin"


class ShopFollower(CamelModel):
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    followed_at: datetime


# Profiles

class ProfileModel(CamelModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileUpdate(CamelModel):
    email: Optional[str] = None
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        from ..utils.helpers import is_valid_email
        if v and not is_valid_email(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        from ..utils.helpers import is_valid_phone
        if v and not is_valid_phone(v):
            raise ValueError("Invalid phone number")
        return v


# Cart

class CartLine(CamelModel):
    id: str
    product_id: str
    name: str
    image: str = ""
    price: float
    quantity: int
    color: Optional[str] = None
    size: Optional[str] = None
    shop_id: Optional[str] = None
    stock: int
    total: float


class CartAddRequest(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    color: Optional[str] = None
    size: Optional[str] = None


class CartQuantityUpdate(CamelModel):
    quantity: int


class OrderSummary(CamelModel):
    subtotal: float
    discount: float = 0
    shipping: float = 0
    total: float
    item_count: int = 0
    coupon_code: Optional[str] = None


class CartView(CamelModel):
    items: List[CartLine] = []
    summary: OrderSummary


# Wishlist

class WishlistEntry(CamelModel):
    id: str
    product: ProductModel
    added_at: Optional[datetime] = None


class WishlistAddRequest(CamelModel):
    product_id: str


# Addresses

class AddressModel(CamelModel):
    id: str
    user_id: str
    name: str
    full_name: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str
    phone_number: Optional[str] = None
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AddressCreate(CamelModel):
    name: str = Field(..., min_length=1)
    full_name: Optional[str] = None
    address_line1: str = Field(..., min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=3, max_length=20)
    country: str = Field(..., min_length=2)
    phone_number: Optional[str] = None
    is_default: bool = False

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v):
        from ..utils.helpers import is_valid_phone
        if v and not is_valid_phone(v):
            raise ValueError("Invalid phone number")
        return v


class AddressUpdate(CamelModel):
    name: Optional[str] = None
    full_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    phone_number: Optional[str] = None


# Orders

class CheckoutRequest(CamelModel):
    shipping_address_id: str
    payment_method: str = Field(..., min_length=2)
    coupon_code: Optional[str] = None
    notes: Optional[str] = None


class OrderItemModel(CamelModel):
    id: str
    order_id: str
    product_id: str
    product_name: str = "Product"
    product_image: str = ""
    quantity: int
    price: float
    color: Optional[str] = None
    size: Optional[str] = None
    shop_id: Optional[str] = None


class ShippingAddressModel(CamelModel):
    id: str
    name: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str


class OrderModel(CamelModel):
    id: str
    user_id: Optional[str] = None
    shop_id: Optional[str] = None
    status: OrderStatus
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[str] = None
    subtotal: float = 0
    discount: float = 0
    shipping: float = 0
    total: float
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemModel] = []
    shipping_address: Optional[ShippingAddressModel] = None


class OrderCancelRequest(CamelModel):
    reason: Optional[str] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus
    tracking_number: Optional[str] = None


class TrackingStep(CamelModel):
    status: OrderStatus
    label: str
    completed: bool


class OrderTracking(CamelModel):
    order_id: str
    status: OrderStatus
    tracking_number: Optional[str] = None
    steps: List[TrackingStep] = []
    updated_at: Optional[datetime] = None


class PaymentStartResponse(CamelModel):
    order_id: str
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str


class PaymentConfirmRequest(CamelModel):
    razorpay_payment_id: str
    razorpay_order_id: str
    razorpay_signature: str


# Coupons and offers

class CouponCreate(CamelModel):
    code: str = Field(..., min_length=3, max_length=50)
    discount_percent: Optional[float] = Field(None, gt=0, le=100)
    discount_amount: Optional[float] = Field(None, gt=0)
    minimum_purchase: Optional[float] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=1)
    start_date: datetime
    end_date: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def validate_discount(self):
        if self.discount_percent is None and self.discount_amount is None:
            raise ValueError("Either discountPercent or discountAmount is required")
        if self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class CouponModel(CamelModel):
    id: str
    code: str
    discount_percent: Optional[float] = None
    discount_amount: Optional[float] = None
    minimum_purchase: Optional[float] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    start_date: datetime
    end_date: datetime
    is_active: bool = True


class OfferModel(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    code: str
    discount: Optional[float] = None
    type: Literal["percentage", "shipping", "bogo"]
    shop_id: Optional[str] = None
    shop_name: Optional[str] = None
    banner_image: Optional[str] = None
    start_date: Optional[datetime] = None
    expiry: datetime
    is_active: bool = True
    created_at: Optional[datetime] = None


class OfferCreate(CamelModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    code: str = Field(..., min_length=3)
    discount: Optional[float] = Field(None, ge=0)
    type: Literal["percentage", "shipping", "bogo"]
    shop_id: Optional[str] = None
    banner_image: Optional[str] = None
    start_date: Optional[datetime] = None
    expiry: datetime
    is_active: bool = True


class OfferUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    code: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0)
    type: Optional[Literal["percentage", "shipping", "bogo"]] = None
    banner_image: Optional[str] = None
    start_date: Optional[datetime] = None
    expiry: Optional[datetime] = None
    is_active: Optional[bool] = None


# Notifications

class NotificationModel(CamelModel):
    id: str
    title: str
    message: str
    type: str
    read: bool = False
    link: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationCreate(CamelModel):
    user_id: str
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: str = "system"
    link: Optional[str] = None


# Search

class SearchFilters(CamelModel):
    category: str = ""
    shop: str = ""
    price_range: List[float] = Field(default_factory=lambda: [0, settings.DEFAULT_MAX_PRICE])
    rating: float = 0
    colors: List[str] = []
    sizes: List[str] = []
    tags: List[str] = []
    in_stock_only: bool = False
    on_sale_only: bool = False
    active_filters: List[str] = []
    sort: SearchSort = "relevance"
    page: int = Field(1, ge=1)
    per_page: int = Field(settings.DEFAULT_PAGE_SIZE, ge=1, le=100)

    @field_validator("price_range")
    @classmethod
    def validate_price_range(cls, v):
        if len(v) != 2 or v[0] > v[1]:
            raise ValueError("priceRange must be [min, max] with min <= max")
        return v


class SearchHistoryItem(CamelModel):
    id: str
    query: str
    searched_at: Optional[datetime] = None


class SearchResult(CamelModel):
    query: str = ""
    products: List[ProductModel] = []
    total: int = 0
    page: int = 1
    page_count: int = 0
    categories: List[CategoryModel] = []
    shops: List[ShopModel] = []


# Reviews

class ReviewModel(CamelModel):
    id: str
    rating: int
    comment: str = ""
    images: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    product_id: Optional[str] = None
    shop_id: Optional[str] = None
    user_id: Optional[str] = None
    helpful_count: int = 0
    review_type: Literal["product", "shop"]


class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    images: List[str] = []
    review_type: Literal["product", "shop"] = "product"
    product_id: Optional[str] = None
    shop_id: Optional[str] = None


# Partner requests

class PartnerRequestCreate(CamelModel):
    business_name: str = Field(..., min_length=2)
    contact_name: str = Field(..., min_length=2)
    mobile_number: str
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        from ..utils.helpers import is_valid_email
        if not is_valid_email(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile_number(cls, v):
        from ..utils.helpers import is_valid_phone
        if not is_valid_phone(v):
            raise ValueError("Invalid mobile number")
        return v


class PartnerRequestModel(CamelModel):
    id: str
    business_name: str
    contact_name: str
    mobile_number: str
    email: str
    status: Literal["pending", "approved", "rejected"] = "pending"
    created_at: Optional[datetime] = None


class PartnerRequestStatusUpdate(CamelModel):
    status: Literal["approved", "rejected"]


# Analytics

class SalesDataPoint(CamelModel):
    date: Date
    sales_amount: float
    orders_count: int


class ShopStats(CamelModel):
    shop_id: str
    total_sales: float = 0
    total_orders: int = 0
    product_count: int = 0
    followers_count: int = 0
    average_order_value: float = 0


class MonthlySales(CamelModel):
    month: str
    total_sales: float
    total_orders: int


class ShopPerformance(CamelModel):
    shop_id: str
    name: str
    sales: float
    orders: int


class DashboardAnalytics(CamelModel):
    total_revenue: float = 0
    total_orders: int = 0
    total_shops: int = 0
    total_users: int = 0
    monthly_sales_data: List[MonthlySales] = []
    shop_performance: List[ShopPerformance] = []


# Realtime

class ChangeEvent(CamelModel):
    table: str
    action: Literal["insert", "update", "delete"]
    user_id: Optional[str] = None
    record_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ErrorResponse(BaseModel):
    error: str
    message: str
    status_code: int
    timestamp: datetime = Field(default_factory=datetime.now)
    details: Optional[List[Dict[str, Any]]] = None
