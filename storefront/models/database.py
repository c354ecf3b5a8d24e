import uuid
from datetime import datetime

from sqlalchemy import (
    create_engine, Column, Integer, String, Text, Boolean, Float, DateTime,
    ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship

from ..config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"echo": settings.DEBUG, "connect_args": {"check_same_thread": False}}
    return {
        "echo": settings.DEBUG,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


# Create engine
engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class UserProfile(Base):
    """Registered customers (identity is owned by the auth provider)"""
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), index=True)
    full_name = Column(String(255))
    phone = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<UserProfile(id='{self.id}', email='{self.email}')>"


class Shop(Base):
    """Seller storefronts (tenants)"""
    __tablename__ = "shops"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    logo = Column(String(500))
    cover_image = Column(String(500))
    address = Column(Text)
    phone_number = Column(String(50))
    owner_name = Column(String(255))
    owner_email = Column(String(255))
    rating = Column(Float, default=0)
    review_count = Column(Integer, default=0)
    followers_count = Column(Integer, default=0)
    status = Column(String(20), default="pending", index=True)
    is_verified = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    products = relationship("Product", back_populates="shop")
    admins = relationship("ShopAdmin", back_populates="shop", cascade="all, delete-orphan")
    follows = relationship("ShopFollow", back_populates="shop", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Shop(id='{self.id}', name='{self.name}', status='{self.status}')>"


class ShopAdmin(Base):
    """Users allowed to administer a shop"""
    __tablename__ = "shop_admins"
    __table_args__ = (UniqueConstraint("shop_id", "user_id", name="uq_shop_admin"),)

    id = Column(String(36), primary_key=True, default=new_id)
    shop_id = Column(String(36), ForeignKey("shops.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    role = Column(String(20), default="admin")
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("Shop", back_populates="admins")

    def __repr__(self):
        return f"<ShopAdmin(shop_id='{self.shop_id}', user_id='{self.user_id}', role='{self.role}')>"


class ShopFollow(Base):
    __tablename__ = "shop_follows"
    __table_args__ = (UniqueConstraint("shop_id", "user_id", name="uq_shop_follow"),)

    id = Column(String(36), primary_key=True, default=new_id)
    shop_id = Column(String(36), ForeignKey("shops.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("Shop", back_populates="follows")

    def __repr__(self):
        return f"<ShopFollow(shop_id='{self.shop_id}', user_id='{self.user_id}')>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    image = Column(String(500))

    def __repr__(self):
        return f"<Category(id='{self.id}', name='{self.name}')>"


class Product(Base):
    """Products table"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(500), nullable=False, index=True)
    description = Column(Text)
    price = Column(Float, nullable=False)
    sale_price = Column(Float)
    images = Column(JSON)
    category_id = Column(String(100), index=True)
    colors = Column(JSON)
    sizes = Column(JSON)
    tags = Column(JSON)
    is_new = Column(Boolean, default=False)
    is_trending = Column(Boolean, default=False)
    rating = Column(Float, default=0)
    review_count = Column(Integer, default=0)
    view_count = Column(Integer, default=0)
    stock = Column(Integer, nullable=True)  # NULL: not tracked, counts as DEFAULT_STOCK
    shop_id = Column(String(36), ForeignKey("shops.id"), index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    shop = relationship("Shop", back_populates="products")
    views = relationship("ProductViewHistory", back_populates="product", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product(id='{self.id}', name='{self.name}', price={self.price})>"


class ProductReview(Base):
    """Product and shop reviews share one table, told apart by review_type"""
    __tablename__ = "product_reviews"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id"), index=True)
    shop_id = Column(String(36), ForeignKey("shops.id"), index=True)
    user_id = Column(String(36), index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    images = Column(JSON)
    helpful_count = Column(Integer, default=0)
    review_type = Column(String(20), default="product", index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ProductReview(id='{self.id}', type='{self.review_type}', rating={self.rating})>"


class ProductViewHistory(Base):
    __tablename__ = "product_view_history"
    __table_args__ = (UniqueConstraint("product_id", "user_id", name="uq_product_view"),)

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    view_count = Column(Integer, default=1)
    last_viewed_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="views")

    def __repr__(self):
        return f"<ProductViewHistory(product_id='{self.product_id}', user_id='{self.user_id}', views={self.view_count})>"


class CartItem(Base):
    """Authenticated users' cart rows"""
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", "color", "size", name="uq_cart_line"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, default=1)
    color = Column(String(50), default="")
    size = Column(String(50), default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<CartItem(user_id='{self.user_id}', product_id='{self.product_id}', quantity={self.quantity})>"


class WishlistItem(Base):
    __tablename__ = "user_wishlists"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_wishlist_item"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<WishlistItem(user_id='{self.user_id}', product_id='{self.product_id}')>"


class Address(Base):
    __tablename__ = "user_addresses"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    full_name = Column(String(255))
    address_line1 = Column(String(500), nullable=False)
    address_line2 = Column(String(500))
    city = Column(String(255), nullable=False)
    state = Column(String(255), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False)
    phone_number = Column(String(50))
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Address(id='{self.id}', user_id='{self.user_id}', city='{self.city}')>"


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), index=True)
    shop_id = Column(String(36), ForeignKey("shops.id"), index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), default="pending")
    payment_method = Column(String(50))
    payment_reference = Column(String(100))
    subtotal = Column(Float, default=0)
    discount = Column(Float, default=0)
    shipping = Column(Float, default=0)
    total = Column(Float, nullable=False)
    shipping_address_id = Column(String(36), ForeignKey("user_addresses.id"))
    tracking_number = Column(String(100))
    notes = Column(Text)
    cancellation_reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    shipping_address = relationship("Address")

    def __repr__(self):
        return f"<Order(id='{self.id}', status='{self.status}', total={self.total})>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    shop_id = Column(String(36), index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    color = Column(String(50))
    size = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    def __repr__(self):
        return f"<OrderItem(order_id='{self.order_id}', product_id='{self.product_id}', quantity={self.quantity})>"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(50), nullable=False, unique=True, index=True)
    discount_percent = Column(Float)
    discount_amount = Column(Float)
    minimum_purchase = Column(Float)
    max_uses = Column(Integer)
    current_uses = Column(Integer, default=0)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Coupon(code='{self.code}', active={self.is_active})>"


class OrderCouponUsage(Base):
    __tablename__ = "order_coupon_usage"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False)
    coupon_id = Column(String(36), ForeignKey("coupons.id"))
    discount_applied = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Offer(Base):
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    code = Column(String(50), nullable=False)
    discount = Column(Float)
    type = Column(String(20), nullable=False)
    shop_id = Column(String(36), ForeignKey("shops.id"), index=True)
    banner_image = Column(String(500))
    start_date = Column(DateTime, default=datetime.utcnow)
    expiry = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("Shop")

    def __repr__(self):
        return f"<Offer(id='{self.id}', code='{self.code}', type='{self.type}')>"


class Notification(Base):
    __tablename__ = "user_notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), default="system", index=True)
    link = Column(String(500))
    read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Notification(id='{self.id}', user_id='{self.user_id}', read={self.read})>"


class SearchHistory(Base):
    __tablename__ = "search_history"
    __table_args__ = (UniqueConstraint("user_id", "query", name="uq_search_history"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), index=True)
    query = Column(String(255), nullable=False)
    searched_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<SearchHistory(user_id='{self.user_id}', query='{self.query}')>"


class PopularSearchTerm(Base):
    __tablename__ = "popular_search_terms"

    id = Column(String(36), primary_key=True, default=new_id)
    query = Column(String(255), nullable=False, unique=True)
    count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class PartnerRequest(Base):
    __tablename__ = "partner_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    business_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    mobile_number = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False)
    status = Column(String(20), default="pending")
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<PartnerRequest(id='{self.id}', business_name='{self.business_name}', status='{self.status}')>"


class GuestStorage(Base):
    """Key/value JSON blobs for guest sessions (guest_cart, searchHistory, notifications)"""
    __tablename__ = "guest_storage"
    __table_args__ = (UniqueConstraint("guest_id", "key", name="uq_guest_key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    guest_id = Column(String(64), nullable=False, index=True)
    key = Column(String(64), nullable=False)
    value = Column(Text)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Database utility functions
def create_tables(bind=None):
    """Create all database tables"""
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind=None):
    """Drop all database tables (use with caution)"""
    Base.metadata.drop_all(bind=bind or engine)
